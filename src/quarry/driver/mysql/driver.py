from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from quarry.constants import DatabaseType, GenerationStrategy, QueryType, ReturningStyle
from quarry.driver.network import NetworkDriver
from quarry.driver.types import CteCapabilities, DriverCapabilities, QueryResult

if TYPE_CHECKING:
    from quarry.data_source import DataSource
    from quarry.metadata import EntityMetadata

# Largest LIMIT MySQL accepts; used when only an offset is requested.
_MAX_LIMIT = 18446744073709551615


class MysqlDriver(NetworkDriver):
    """MySQL and MariaDB over PyMySQL.

    MySQL cannot return rows from writes, so generated ids come from the
    connection's last insert id. MariaDB adds RETURNING for INSERT and
    DELETE.
    """

    dialect_driver = "mysql+pymysql"
    dbapi_package = "PyMySQL"
    last_insert_id_supported = True
    capabilities = DriverCapabilities(
        returning_style=ReturningStyle.NONE,
        cte=CteCapabilities(enabled=True, requires_recursive_hint=True),
        default_keyword_in_values=True,
        empty_insert_expression="VALUES ()",
        insert_ignore="ignore",
    )

    def __init__(self, data_source: "DataSource"):
        super().__init__(data_source)
        if self.options.type == DatabaseType.MARIADB.value:
            self.capabilities = DriverCapabilities(
                returning_style=ReturningStyle.RETURNING,
                returning_statements=frozenset({QueryType.INSERT, QueryType.DELETE}),
                cte=CteCapabilities(enabled=True, requires_recursive_hint=True),
                default_keyword_in_values=True,
                empty_insert_expression="VALUES ()",
                insert_ignore="ignore",
            )

    def escape(self, name: str) -> str:
        return "`" + name.replace("`", "``") + "`"

    def build_table_name(self, table_name: str, schema: Optional[str] = None, database: Optional[str] = None) -> str:
        return ".".join(part for part in (database, table_name) if part)

    def parameter_placeholder(self, index: int) -> str:
        return "%s"

    def escape_query_with_parameters(self, sql: str, parameters: Optional[Dict[str, Any]]) -> Tuple[str, List[Any]]:
        return super().escape_query_with_parameters(sql.replace("%", "%%"), parameters)

    def build_limit_offset(self, limit: Optional[int], offset: Optional[int], has_order: bool = True) -> str:
        if offset is not None and limit is None:
            return f" LIMIT {_MAX_LIMIT} OFFSET {offset}"
        return super().build_limit_offset(limit, offset, has_order)

    def create_generated_map(
        self,
        metadata: "EntityMetadata",
        insert_result: QueryResult,
        entity_index: int = 0,
        entity_count: int = 1,
    ) -> Optional[Dict[str, Any]]:
        if insert_result is not None and insert_result.records:
            return super().create_generated_map(metadata, insert_result, entity_index, entity_count)

        raw = insert_result.raw if insert_result is not None and isinstance(insert_result.raw, dict) else {}
        last_insert_id = raw.get("last_insert_id")
        generated: Dict[str, Any] = {}
        for column in metadata.generated_columns:
            if column.generation_strategy == GenerationStrategy.INCREMENT and last_insert_id:
                # the reported id belongs to the first row of a multi-row insert
                generated.update(column.create_value_map(last_insert_id + entity_index))
        return generated or None

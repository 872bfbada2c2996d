from typing import Any, Dict, List, Optional, Tuple

from quarry.constants import QueryType, ReturningStyle
from quarry.driver.network import NetworkDriver
from quarry.driver.types import CteCapabilities, DriverCapabilities


class PostgresDriver(NetworkDriver):
    """PostgreSQL over psycopg2.

    Supports RETURNING on every write statement and the full WITH syntax,
    including ``MATERIALIZED`` hints.
    """

    dialect_driver = "postgresql+psycopg2"
    dbapi_package = "psycopg2-binary"
    capabilities = DriverCapabilities(
        returning_style=ReturningStyle.RETURNING,
        returning_statements=frozenset({QueryType.INSERT, QueryType.UPDATE, QueryType.DELETE}),
        cte=CteCapabilities(enabled=True, requires_recursive_hint=True, materialized_hint=True, writable=True),
        default_keyword_in_values=True,
        insert_ignore="on_conflict",
    )

    def build_table_name(self, table_name: str, schema: Optional[str] = None, database: Optional[str] = None) -> str:
        return ".".join(part for part in (schema, table_name) if part)

    def parameter_placeholder(self, index: int) -> str:
        return "%s"

    def escape_query_with_parameters(self, sql: str, parameters: Optional[Dict[str, Any]]) -> Tuple[str, List[Any]]:
        # pyformat DB-APIs treat a bare % as a placeholder marker
        return super().escape_query_with_parameters(sql.replace("%", "%%"), parameters)

"""Driver contract shared by every backend.

A driver is bound to exactly one data source. It owns the SQLAlchemy engine
for that backend, hands out query runners, and answers the dialect questions
statement builders ask while lowering an expression map to SQL: how to quote
a name, which placeholder to bind a parameter with, whether rows can be
returned from a write, and how to page a result.
"""

import re
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Dict, List, Optional, Tuple

from sqlalchemy.engine import Connection, Engine

from quarry.common.exceptions import CannotExecuteNotConnectedError
from quarry.constants import QueryType, ReplicationMode
from quarry.driver.types import DriverCapabilities, QueryResult

if TYPE_CHECKING:
    from quarry.data_source import DataSource
    from quarry.driver.query_runner import QueryRunner
    from quarry.metadata import EntityMetadata

# ``:name`` binds one value, ``:...name`` expands a sequence. A colon preceded
# by a word character or another colon (``12:30``, ``x::int``) is left alone.
PARAMETER_PATTERN = re.compile(r"(?<![:\w]):(\.\.\.)?([A-Za-z0-9_.]+)")


class Driver(ABC):
    """Base class for backend drivers.

    Subclasses declare their dialect through ``capabilities`` and the
    ``escape``/``build_table_name``/``parameter_placeholder`` hooks, and
    implement the connection lifecycle.

    Attributes:
        data_source: Owning data source
        options: Connection settings of the data source
        engine: SQLAlchemy engine, set while connected
    """

    capabilities: ClassVar[DriverCapabilities] = DriverCapabilities()
    last_insert_id_supported: ClassVar[bool] = False
    # whether the reported last insert id belongs to the final row of a multi-row insert
    last_insert_id_is_last_row: ClassVar[bool] = False

    def __init__(self, data_source: "DataSource"):
        self.data_source = data_source
        self.options = data_source.options
        self.database: Optional[str] = self.options.database
        self.schema: Optional[str] = self.options.schema_name
        self.is_replicated = False
        self.engine: Optional[Engine] = None

    @property
    def name(self) -> str:
        return str(self.options.type)

    @abstractmethod
    def connect(self) -> None:
        """Open the backend connection (or pool)."""

    @abstractmethod
    def disconnect(self) -> None:
        """Close every connection this driver opened."""

    @abstractmethod
    def create_query_runner(self, mode: ReplicationMode = ReplicationMode.MASTER) -> "QueryRunner":
        """Return a query runner bound to this driver."""

    def after_connect(self) -> None:
        """Hook run by the data source once ``connect`` succeeded."""

    def obtain_connection(self) -> Connection:
        """Check a SQLAlchemy connection out of the engine."""
        if self.engine is None:
            raise CannotExecuteNotConnectedError(self.data_source.name)
        return self.engine.connect()

    def is_returning_sql_supported(self, query_type: QueryType) -> bool:
        """Whether rows can be handed back from a ``query_type`` statement."""
        return QueryType(query_type) in self.capabilities.returning_statements

    def escape(self, name: str) -> str:
        """Quote an identifier for this dialect."""
        return '"' + name.replace('"', '""') + '"'

    def build_table_name(self, table_name: str, schema: Optional[str] = None, database: Optional[str] = None) -> str:
        """Join table path segments with dots; subclasses decide which apply."""
        return ".".join(part for part in (schema, table_name) if part)

    def parameter_placeholder(self, index: int) -> str:
        """Positional placeholder for the parameter at ``index``."""
        return "?"

    def prepare_parameter_value(self, value: Any) -> Any:
        """Convert a Python value into something the DB-API accepts."""
        if isinstance(value, Enum):
            return value.value
        return value

    def escape_query_with_parameters(
        self,
        sql: str,
        parameters: Optional[Dict[str, Any]],
    ) -> Tuple[str, List[Any]]:
        """Rewrite named parameters into positional placeholders.

        ``:name`` becomes one placeholder bound to ``parameters[name]``;
        ``:...name`` becomes one placeholder per element of the sequence.
        Names missing from ``parameters`` are left untouched, so literals
        that merely look like parameters survive.

        Args:
            sql: Statement text with named parameters
            parameters: Values keyed by parameter name

        Returns:
            Tuple of the rewritten SQL and the values in placeholder order
        """
        if not parameters:
            return sql, []

        escaped: List[Any] = []

        def bind(value: Any) -> str:
            escaped.append(self.prepare_parameter_value(value))
            return self.parameter_placeholder(len(escaped) - 1)

        def replace(match: "re.Match[str]") -> str:
            is_expansion, key = match.group(1), match.group(2)
            if key not in parameters:
                return match.group(0)
            value = parameters[key]
            if is_expansion:
                values = list(value)
                if not values:
                    return "NULL"
                return ", ".join(bind(item) for item in values)
            return bind(value)

        return PARAMETER_PATTERN.sub(replace, sql), escaped

    def build_limit_offset(self, limit: Optional[int], offset: Optional[int], has_order: bool = True) -> str:
        """Render the paging suffix of a SELECT."""
        if limit is not None and offset is not None:
            return f" LIMIT {limit} OFFSET {offset}"
        if limit is not None:
            return f" LIMIT {limit}"
        if offset is not None:
            return f" OFFSET {offset}"
        return ""

    def create_generated_map(
        self,
        metadata: "EntityMetadata",
        insert_result: QueryResult,
        entity_index: int = 0,
        entity_count: int = 1,
    ) -> Optional[Dict[str, Any]]:
        """Map values the database generated for one inserted row.

        The default reads the row handed back by RETURNING/OUTPUT.

        Returns:
            ``{property_name: value}`` for generated columns, or None
        """
        records = insert_result.records if insert_result is not None else []
        if entity_index >= len(records):
            return None
        row = records[entity_index]
        generated: Dict[str, Any] = {}
        for column in metadata.generated_columns:
            if column.database_name in row:
                generated.update(column.create_value_map(row[column.database_name]))
        return generated or None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(data_source={self.data_source.name!r})"

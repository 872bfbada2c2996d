"""Common behaviour of drivers backed by the ``sqlite3`` module."""

import importlib
from types import ModuleType
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from quarry.common.exceptions import CannotExecuteNotConnectedError, DriverPackageNotInstalledError
from quarry.constants import GenerationStrategy, ReplicationMode, ReturningStyle
from quarry.driver.base import Driver
from quarry.driver.sqlite_abstract.query_runner import AbstractSqliteQueryRunner
from quarry.driver.types import CteCapabilities, DriverCapabilities, QueryResult
from quarry.logging import get_logger

if TYPE_CHECKING:
    from quarry.data_source import DataSource
    from quarry.metadata import EntityMetadata

logger = get_logger(__name__)


class AbstractSqliteDriver(Driver):
    """Base for SQLite drivers.

    The driver owns one native ``sqlite3`` connection and a SQLAlchemy
    engine pinned to it through ``StaticPool``. Foreign keys are enforced on
    every connection it installs.

    Attributes:
        sqlite: Engine module (``sqlite3`` or the injected replacement)
        database_connection: Native connection, set while connected
        query_runner: The single cached runner, created lazily
    """

    last_insert_id_supported = True
    last_insert_id_is_last_row = True
    capabilities = DriverCapabilities(
        returning_style=ReturningStyle.NONE,
        cte=CteCapabilities(enabled=True, requires_recursive_hint=True),
        default_keyword_in_values=False,
        insert_ignore="or_ignore",
    )

    def __init__(self, data_source: "DataSource"):
        super().__init__(data_source)
        self.sqlite: ModuleType = self._load_dependencies()
        self.database_connection: Optional[Any] = None
        self.query_runner: Optional[AbstractSqliteQueryRunner] = None

    def _load_dependencies(self) -> ModuleType:
        """Resolve the engine module, preferring one injected through settings.

        Raises:
            DriverPackageNotInstalledError: If the module cannot be imported
        """
        if self.options.driver is not None:
            return self.options.driver
        try:
            return importlib.import_module("sqlite3")
        except ImportError as exc:
            raise DriverPackageNotInstalledError("SQLite", "sqlite3", cause=exc) from exc

    def create_query_runner(self, mode: ReplicationMode = ReplicationMode.MASTER) -> AbstractSqliteQueryRunner:
        if self.database_connection is None:
            raise CannotExecuteNotConnectedError(self.data_source.name)
        if self.query_runner is None:
            self.query_runner = self._build_query_runner(mode)
        return self.query_runner

    def _build_query_runner(self, mode: ReplicationMode) -> AbstractSqliteQueryRunner:
        return AbstractSqliteQueryRunner(self, mode)

    def disconnect(self) -> None:
        if self.query_runner is not None:
            self.query_runner.close_connection()
            self.query_runner = None
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
        if self.database_connection is not None:
            self.database_connection.close()
            self.database_connection = None

    def _install_connection(self, connection: Any) -> Any:
        """Make ``connection`` the driver's live database.

        The previous connection (if any) is closed, the SQLAlchemy engine is
        rebuilt around the new one and the cached runner drops its checkout.
        """
        connection.execute("PRAGMA foreign_keys = ON")

        if self.query_runner is not None:
            self.query_runner.close_connection()
        previous_engine, previous_connection = self.engine, self.database_connection

        self.database_connection = connection
        self.engine = create_engine(
            "sqlite://",
            creator=lambda: connection,
            poolclass=StaticPool,
        )
        if previous_engine is not None:
            previous_engine.dispose()
        if previous_connection is not None and previous_connection is not connection:
            previous_connection.close()
        return connection

    def build_table_name(self, table_name: str, schema: Optional[str] = None, database: Optional[str] = None) -> str:
        return table_name

    def build_limit_offset(self, limit: Optional[int], offset: Optional[int], has_order: bool = True) -> str:
        if offset is not None and limit is None:
            return f" LIMIT -1 OFFSET {offset}"
        return super().build_limit_offset(limit, offset, has_order)

    def create_generated_map(
        self,
        metadata: "EntityMetadata",
        insert_result: QueryResult,
        entity_index: int = 0,
        entity_count: int = 1,
    ) -> Optional[Dict[str, Any]]:
        raw = insert_result.raw if insert_result is not None and isinstance(insert_result.raw, dict) else {}
        last_insert_id = raw.get("last_insert_id")
        if not last_insert_id:
            return None
        return self._map_increment_columns(metadata, last_insert_id, entity_index, entity_count)

    @staticmethod
    def _map_increment_columns(
        metadata: "EntityMetadata",
        last_insert_id: int,
        entity_index: int,
        entity_count: int,
    ) -> Optional[Dict[str, Any]]:
        # the reported rowid belongs to the last row of a multi-row insert
        value = last_insert_id - entity_count + entity_index + 1
        generated: Dict[str, Any] = {}
        for column in metadata.primary_columns:
            if column.is_generated and column.generation_strategy in (GenerationStrategy.INCREMENT, GenerationStrategy.ROWID):
                generated.update(column.create_value_map(value))
        return generated or None

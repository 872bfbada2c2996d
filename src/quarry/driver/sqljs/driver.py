"""Embedded SQLite driver with pluggable persistence.

The database lives in memory for the lifetime of the data source. Its
image can be hydrated from, and written back to, a storage provider: a file
on disk or a key of a key-value mapping. With ``auto_save`` enabled every
committed change is written out (or handed to ``auto_save_callback``).
"""

from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence, Union

from quarry.common.exceptions import (
    DriverOptionNotSetError,
    StorageNotFoundError,
    execution_error,
)
from quarry.constants import GenerationStrategy, ReplicationMode, StorageType
from quarry.driver.sqlite_abstract import AbstractSqliteDriver
from quarry.driver.sqljs.query_runner import SqljsQueryRunner
from quarry.driver.sqljs.storage import FileStorage, KeyValueStorage
from quarry.driver.types import QueryResult
from quarry.logging import get_logger
from quarry.protocols import StorageProvider

if TYPE_CHECKING:
    from quarry.data_source import DataSource
    from quarry.metadata import EntityMetadata

logger = get_logger(__name__)

DatabaseImage = Union[bytes, bytearray, memoryview, Sequence[int]]


class SqljsDriver(AbstractSqliteDriver):
    """In-process SQLite database persisted through a storage provider.

    The storage provider is chosen once, from ``options.storage``, when the
    driver is built.

    Example:
        >>> data_source = DataSource(type="sqljs", location="app.db", auto_save=True)
        >>> data_source.initialize()
        >>> data_source.query("CREATE TABLE item (id INTEGER PRIMARY KEY)")
        >>> # app.db now holds the exported image
    """

    def __init__(self, data_source: "DataSource"):
        options = data_source.options
        if options.auto_save and not options.location and not options.auto_save_callback:
            raise DriverOptionNotSetError("location or auto_save_callback")

        super().__init__(data_source)
        self.storage: StorageProvider = self._create_storage()

    def _create_storage(self) -> StorageProvider:
        if self.options.storage == StorageType.KEY_VALUE:
            return KeyValueStorage(self.options.storage_backend)
        return FileStorage()

    def connect(self) -> None:
        self._create_database_connection()
        logger.info(
            "Embedded database ready",
            extra={"data_source": self.data_source.name, "location": self.options.location},
        )

    def _build_query_runner(self, mode: ReplicationMode) -> SqljsQueryRunner:
        return SqljsQueryRunner(self, mode)

    def _create_database_connection(self) -> Any:
        if self.options.location:
            return self.load(self.options.location, check_if_exists=False)
        return self._create_database_connection_with_import(self.options.database_content)

    def _create_database_connection_with_import(self, database: Optional[DatabaseImage] = None) -> Any:
        connection = self.sqlite.connect(":memory:", check_same_thread=False)
        if database is not None:
            connection.deserialize(bytes(database))
        return self._install_connection(connection)

    def load(self, file_name_or_local_storage_or_data: Union[str, DatabaseImage], check_if_exists: bool = True) -> Any:
        """Replace the live database with a stored or given image.

        Args:
            file_name_or_local_storage_or_data: Storage identifier, or the raw
                image as bytes or a sequence of byte values
            check_if_exists: Raise when the identifier has nothing stored;
                otherwise start from an empty database

        Returns:
            The new native connection

        Raises:
            StorageNotFoundError: If the identifier is missing and
                ``check_if_exists`` is set
        """
        source = file_name_or_local_storage_or_data
        if isinstance(source, str):
            if self.storage.exists(source):
                return self._create_database_connection_with_import(self.storage.read(source))
            if check_if_exists:
                raise StorageNotFoundError(source)
            return self._create_database_connection_with_import()

        return self._create_database_connection_with_import(source)

    def save(self, location: Optional[str] = None) -> None:
        """Write the exported image to ``location`` or the configured one.

        Raises:
            DriverOptionNotSetError: If neither location is available
            QuarryError: If the storage provider fails to write
        """
        path = location or self.options.location
        if not path:
            raise DriverOptionNotSetError(
                "location",
                "No location is set, specify a location parameter or add the location option to your configuration",
            )

        content = self.export()
        try:
            self.storage.write(path, content)
        except OSError as exc:
            raise execution_error(f"Could not save database, error: {exc}", operation="save", cause=exc) from exc

    def auto_save(self) -> None:
        """Persist the database when ``auto_save`` is enabled."""
        if not self.options.auto_save:
            return
        if self.options.auto_save_callback is not None:
            self.options.auto_save_callback(self.export())
        else:
            self.save()

    def export(self) -> bytes:
        """Serialize the live database into an image."""
        return bytes(self.database_connection.serialize())

    def create_generated_map(
        self,
        metadata: "EntityMetadata",
        insert_result: QueryResult,
        entity_index: int = 0,
        entity_count: int = 1,
    ) -> Optional[Dict[str, Any]]:
        """Look up generated primary keys with ``last_insert_rowid()``.

        The lookup runs directly on the native connection. A failing lookup
        is logged and the column is left out of the map.
        """
        generated: Dict[str, Any] = {}
        for column in metadata.generated_columns:
            if not (column.is_primary and column.generation_strategy == GenerationStrategy.INCREMENT):
                continue
            query = "SELECT last_insert_rowid()"
            try:
                logger.debug("Executing query", extra={"db.statement": query, "data_source": self.data_source.name})
                row = self.database_connection.execute(query).fetchone()
            except Exception as exc:
                logger.error(
                    "Query failed",
                    extra={"db.statement": query, "data_source": self.data_source.name, "error": str(exc)},
                    exc_info=True,
                )
                continue
            if row is None or row[0] is None:
                continue
            value = row[0] - entity_count + entity_index + 1
            generated.update(column.create_value_map(value))

        return generated or None

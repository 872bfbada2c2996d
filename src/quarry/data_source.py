"""Data source: one configured backend plus its entity metadata.

The data source is the object application code holds on to. It builds the
driver for its configured backend, keeps the registry of entity metadata the
builders resolve targets against, and hands out query runners and query
builders.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Union

from quarry.common.exceptions import (
    CannotExecuteNotConnectedError,
    EntityMetadataNotFoundError,
    connection_error,
)
from quarry.constants import ReplicationMode
from quarry.driver.factory import DriverFactory
from quarry.driver.query_runner import QueryRunner
from quarry.logging import get_logger
from quarry.metadata import EntityMetadata, EntitySchema
from quarry.query_builder import SelectQueryBuilder
from quarry.settings import ConnectionSettings, get_settings

logger = get_logger(__name__)


class DataSource:
    """A configured backend, its driver and its entity metadata.

    Args:
        options: ``ConnectionSettings`` or a mapping of its fields; when
            omitted the keyword arguments are used, and without those the
            settings loaded from ``QUARRY_*`` environment variables
        entities: ``EntityMetadata`` or ``EntitySchema`` objects to register
        subscribers: Objects implementing ``EntitySubscriberInterface`` hooks
        **kwargs: Settings fields, merged over ``options``

    Raises:
        MissingDriverError: If ``options.type`` names no known backend
        DriverOptionNotSetError: If the driver's required options are missing
        DriverPackageNotInstalledError: If the driver's engine module is missing

    Example:
        >>> with DataSource(type="sqljs", entities=[user_metadata]) as data_source:
        ...     data_source.create_query_builder().insert().into("user").values({"name": "Ada"}).execute()
    """

    def __init__(
        self,
        options: Optional[Union[ConnectionSettings, Mapping[str, Any]]] = None,
        *,
        entities: Optional[Iterable[Union[EntityMetadata, EntitySchema]]] = None,
        subscribers: Optional[Sequence[Any]] = None,
        **kwargs: Any,
    ):
        if options is None and not kwargs:
            options = get_settings()
        elif options is None:
            options = ConnectionSettings(**kwargs)
        elif isinstance(options, Mapping):
            options = ConnectionSettings(**{**options, **kwargs})
        elif kwargs:
            options = options.model_copy(update=kwargs)

        self.options: ConnectionSettings = options
        self.subscribers: List[Any] = list(subscribers or [])
        self.entity_metadatas: List[EntityMetadata] = []
        for entity in entities or []:
            self.register_metadata(entity)

        self.is_initialized = False
        self.driver = DriverFactory().create(self)

    @property
    def name(self) -> str:
        return self.options.name

    def initialize(self) -> "DataSource":
        """Connect the driver.

        Raises:
            QuarryError: With CONNECTION_ERROR if already initialized or the
                backend could not be reached
        """
        if self.is_initialized:
            raise connection_error(
                f"Cannot connect to \"{self.name}\" connection because connection is already established.",
                service=self.options.type,
            )

        self.driver.connect()
        self.is_initialized = True
        try:
            self.driver.after_connect()
        except Exception:
            self.destroy()
            raise

        logger.info("Data source initialized", extra={"data_source": self.name, "db.system": self.options.type})
        return self

    def destroy(self) -> None:
        """Disconnect the driver and release every connection it holds.

        Raises:
            CannotExecuteNotConnectedError: If the data source is not initialized
        """
        if not self.is_initialized:
            raise CannotExecuteNotConnectedError(self.name)

        self.driver.disconnect()
        self.is_initialized = False
        logger.info("Data source destroyed", extra={"data_source": self.name})

    def __enter__(self) -> "DataSource":
        if not self.is_initialized:
            self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.is_initialized:
            self.destroy()

    # -- metadata ----------------------------------------------------------

    def register_metadata(self, entity: Union[EntityMetadata, EntitySchema]) -> EntityMetadata:
        """Add entity metadata (or a schema converted to it) to the registry."""
        metadata = entity.to_metadata() if isinstance(entity, EntitySchema) else entity
        self.entity_metadatas.append(metadata)
        return metadata

    def find_metadata(self, target: Any) -> Optional[EntityMetadata]:
        """Resolve ``target`` by identity, then by entity name or table name."""
        if isinstance(target, EntitySchema):
            target = target.options.name

        for metadata in self.entity_metadatas:
            if metadata.target is target:
                return metadata
        if isinstance(target, str):
            for metadata in self.entity_metadatas:
                if metadata.name == target or metadata.table_name == target:
                    return metadata
        return None

    def has_metadata(self, target: Any) -> bool:
        return self.find_metadata(target) is not None

    def get_metadata(self, target: Any) -> EntityMetadata:
        """Like ``find_metadata`` but raises when nothing matches.

        Raises:
            EntityMetadataNotFoundError: If no metadata is registered for ``target``
        """
        metadata = self.find_metadata(target)
        if metadata is None:
            raise EntityMetadataNotFoundError(target)
        return metadata

    # -- execution ---------------------------------------------------------

    def create_query_runner(self, mode: ReplicationMode = ReplicationMode.MASTER) -> QueryRunner:
        """Return a runner from the driver.

        Network drivers return a new runner per call; the sqlite family
        returns its single shared runner.

        Raises:
            CannotExecuteNotConnectedError: If the data source is not initialized
        """
        if not self.is_initialized:
            raise CannotExecuteNotConnectedError(self.name)
        return self.driver.create_query_runner(mode)

    def create_query_builder(
        self,
        target: Any = None,
        alias: Optional[str] = None,
        query_runner: Optional[QueryRunner] = None,
    ) -> SelectQueryBuilder:
        """Start a builder, selecting from ``target`` when one is given.

        Use ``.insert()``, ``.update()`` or ``.delete()`` on the result to
        build other statement kinds.
        """
        builder = SelectQueryBuilder(self, query_runner)
        if target is not None:
            builder.from_(target, alias)
        return builder

    def query(
        self,
        query: str,
        parameters: Optional[Union[Mapping[str, Any], Sequence[Any]]] = None,
        query_runner: Optional[QueryRunner] = None,
    ) -> List[Dict[str, Any]]:
        """Run raw SQL.

        Args:
            query: SQL text; with a mapping of parameters it may use
                ``:name``/``:...name`` placeholders, otherwise the driver's
                positional placeholders
            parameters: Named (mapping) or positional (sequence) values
            query_runner: Runner to use; a fresh one is obtained and released
                otherwise

        Returns:
            Rows returned by the statement
        """
        if not self.is_initialized:
            raise CannotExecuteNotConnectedError(self.name)

        if isinstance(parameters, Mapping):
            query, bound = self.driver.escape_query_with_parameters(query, dict(parameters))
        else:
            bound = list(parameters or [])

        runner = query_runner or self.create_query_runner()
        try:
            return runner.query(query, bound)
        finally:
            if runner is not query_runner:
                runner.release()

    @contextmanager
    def transaction(self, isolation_level: Optional[str] = None) -> Iterator[QueryRunner]:
        """Run a block inside one transaction.

        Yields a runner with an active transaction; pass it to builders with
        ``set_query_runner``. The transaction commits when the block exits
        normally and rolls back when it raises.

        Example:
            >>> with data_source.transaction() as runner:
            ...     data_source.create_query_builder(query_runner=runner).delete().from_("user").execute()
        """
        runner = self.create_query_runner()
        try:
            runner.start_transaction(isolation_level)
            try:
                yield runner
            except Exception:
                if runner.is_transaction_active:
                    runner.rollback_transaction()
                raise
            if runner.is_transaction_active:
                runner.commit_transaction()
        finally:
            runner.release()

    def __repr__(self) -> str:
        return f"DataSource(name={self.name!r}, type={self.options.type!r}, initialized={self.is_initialized})"

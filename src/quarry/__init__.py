from quarry.__version__ import __version__
from quarry.data_source import DataSource

from quarry.query_builder import (
    Brackets,
    NotBrackets,
    QueryBuilder,
    SelectQueryBuilder,
    InsertQueryBuilder,
    UpdateQueryBuilder,
    DeleteQueryBuilder,
    DeleteResult,
    InsertResult,
    UpdateResult,
)

from quarry.driver import Driver, DriverFactory, QueryRunner, QueryResult
from quarry.metadata import ColumnMetadata, EntityMetadata, EntitySchema
from quarry.settings import ConnectionSettings
from quarry.subscriber import EntitySubscriberInterface, SubscriberEvent

from quarry.common.exceptions import (
    ErrorCode,
    QuarryError,
    UnsupportedFeatureError,
    ReturningStatementNotSupportedError,
    DriverOptionNotSetError,
    DriverPackageNotInstalledError,
    MissingDriverError,
    StorageNotFoundError,
    EntityMetadataNotFoundError,
    QueryFailedError,
    QueryRunnerAlreadyReleasedError,
    TransactionAlreadyStartedError,
    TransactionNotStartedError,
    CannotExecuteNotConnectedError,
)


__all__ = [
    "__version__",

    "DataSource",
    "ConnectionSettings",

    # Builders
    "QueryBuilder",
    "SelectQueryBuilder",
    "InsertQueryBuilder",
    "UpdateQueryBuilder",
    "DeleteQueryBuilder",
    "Brackets",
    "NotBrackets",
    "DeleteResult",
    "InsertResult",
    "UpdateResult",

    # Drivers
    "Driver",
    "DriverFactory",
    "QueryRunner",
    "QueryResult",

    # Metadata and subscribers
    "ColumnMetadata",
    "EntityMetadata",
    "EntitySchema",
    "EntitySubscriberInterface",
    "SubscriberEvent",

    # Exceptions (public API)
    "ErrorCode",
    "QuarryError",
    "UnsupportedFeatureError",
    "ReturningStatementNotSupportedError",
    "DriverOptionNotSetError",
    "DriverPackageNotInstalledError",
    "MissingDriverError",
    "StorageNotFoundError",
    "EntityMetadataNotFoundError",
    "QueryFailedError",
    "QueryRunnerAlreadyReleasedError",
    "TransactionAlreadyStartedError",
    "TransactionNotStartedError",
    "CannotExecuteNotConnectedError",
]

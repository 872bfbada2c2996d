"""Common exceptions shared by every quarry layer."""

from .exceptions import (
    CannotExecuteNotConnectedError,
    DriverOptionNotSetError,
    DriverPackageNotInstalledError,
    EntityMetadataNotFoundError,
    ErrorCode,
    MissingDriverError,
    QueryFailedError,
    QueryRunnerAlreadyReleasedError,
    QuarryError,
    ReturningStatementNotSupportedError,
    StorageNotFoundError,
    TransactionAlreadyStartedError,
    TransactionNotStartedError,
    UnsupportedFeatureError,
    configuration_error,
    connection_error,
    execution_error,
    validation_error,
)

__all__ = [
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
    "configuration_error",
    "validation_error",
    "connection_error",
    "execution_error",
]

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence


class ErrorCode(Enum):
    """Standard error codes for quarry operations.

    Each category has its own number range so a code identifies the kind
    of failure without inspecting the exception class.

    Attributes:
        CONFIG_*: Configuration and capability errors (1xxx)
        VALIDATION_*: Input validation errors (2xxx)
        CONNECTION_*: Connection and driver loading errors (3xxx)
        EXECUTION_*: Runtime execution errors (4xxx)
        RESOURCE_*: Missing resources (5xxx)
        PLATFORM_*: Backend selection errors (7xxx)
    """
    # Configuration errors (1xxx)
    CONFIG_ERROR = "CONFIG_001"
    CONFIG_MISSING = "CONFIG_002"
    FEATURE_NOT_SUPPORTED = "CONFIG_003"

    # Validation errors (2xxx)
    VALIDATION_ERROR = "VALIDATION_001"
    INVALID_ARGUMENT = "VALIDATION_002"
    INVALID_IDENTIFIER = "VALIDATION_003"

    # Connection errors (3xxx)
    CONNECTION_ERROR = "CONNECTION_001"
    NOT_CONNECTED = "CONNECTION_002"
    DRIVER_PACKAGE_MISSING = "CONNECTION_003"

    # Execution errors (4xxx)
    EXECUTION_ERROR = "EXECUTION_001"
    QUERY_EXECUTION_ERROR = "EXECUTION_002"
    RUNNER_RELEASED = "EXECUTION_003"
    TRANSACTION_ERROR = "EXECUTION_004"

    # Resource errors (5xxx)
    RESOURCE_NOT_FOUND = "RESOURCE_001"
    STORAGE_NOT_FOUND = "RESOURCE_002"
    METADATA_NOT_FOUND = "RESOURCE_003"

    # Platform errors (7xxx)
    PLATFORM_NOT_SUPPORTED = "PLATFORM_001"


class QuarryError(Exception):
    """Base exception for all quarry errors.

    Attributes:
        message: Error message
        error_code: Error code from ErrorCode enum
        details: Additional error details
        cause: Optional underlying exception
    """

    default_code: ErrorCode = ErrorCode.EXECUTION_ERROR

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ):
        """Initialize quarry error.

        Args:
            message: Error message
            error_code: Error code from ErrorCode enum, defaults to the class code
            details: Additional error details
            cause: Optional underlying exception
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        self.cause = cause

        # Lazy import to avoid a cycle with quarry.logging
        from quarry.logging import get_logger
        logger = get_logger(__name__)
        logger.debug(
            message,
            extra={
                "error_code": self.error_code.value,
                "error_type": self.__class__.__name__,
                "details": self.details,
            },
        )

    def __str__(self) -> str:
        msg = f"[{self.error_code.value}] {self.message}"
        if self.cause:
            msg = f"{msg} (caused by: {type(self.cause).__name__}: {str(self.cause)})"
        return msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code.value,
            "error_name": self.error_code.name,
            "details": self.details,
        }

    @classmethod
    def from_error_code(cls, error_code: ErrorCode, message: str, **kwargs) -> "QuarryError":
        """Create exception from error code."""
        return cls(message=message, error_code=error_code, **kwargs)


class UnsupportedFeatureError(QuarryError):
    """Requested SQL feature is not available on the active dialect."""

    default_code = ErrorCode.FEATURE_NOT_SUPPORTED


class ReturningStatementNotSupportedError(UnsupportedFeatureError):
    """RETURNING/OUTPUT was requested on a dialect that cannot provide it."""

    def __init__(self, query_type: Optional[str] = None):
        super().__init__(
            "OUTPUT or RETURNING clause only supported by Microsoft SQL Server, "
            "PostgreSQL and MariaDB databases.",
            details={"query_type": query_type} if query_type else None,
        )


class DriverOptionNotSetError(QuarryError):
    """A driver option required by the chosen configuration is missing."""

    default_code = ErrorCode.CONFIG_MISSING

    def __init__(self, option_name: str, message: Optional[str] = None):
        self.option_name = option_name
        super().__init__(
            message or f"Driver option ({option_name}) is not set. Please set it to perform connection to the database.",
            details={"option": option_name},
        )


class DriverPackageNotInstalledError(QuarryError):
    """The engine package backing a driver could not be imported."""

    default_code = ErrorCode.DRIVER_PACKAGE_MISSING

    def __init__(self, driver_name: str, package_name: str, cause: Optional[BaseException] = None):
        self.driver_name = driver_name
        self.package_name = package_name
        super().__init__(
            f"{driver_name} package has not been found installed. "
            f"Please run \"pip install {package_name}\".",
            details={"driver": driver_name, "package": package_name},
            cause=cause,
        )


class MissingDriverError(QuarryError):
    """The configured backend type has no driver."""

    default_code = ErrorCode.PLATFORM_NOT_SUPPORTED

    def __init__(self, driver_type: Any, known_types: Sequence[str]):
        self.driver_type = driver_type
        self.known_types: List[str] = list(known_types)
        super().__init__(
            f"Wrong driver: \"{driver_type}\" given. Supported drivers are: "
            + ", ".join(f"\"{name}\"" for name in self.known_types)
            + ".",
            details={"driver_type": str(driver_type), "known_types": self.known_types},
        )


class StorageNotFoundError(QuarryError):
    """An identifier given to the embedded driver's load has no stored content."""

    default_code = ErrorCode.STORAGE_NOT_FOUND

    def __init__(self, location: str):
        self.location = location
        super().__init__(f"File {location} does not exist", details={"location": location})


class EntityMetadataNotFoundError(QuarryError):
    """No metadata is registered for the requested target."""

    default_code = ErrorCode.METADATA_NOT_FOUND

    def __init__(self, target: Any):
        name = getattr(target, "__name__", None) or str(target)
        self.target = target
        super().__init__(f"No metadata for \"{name}\" was found.", details={"target": name})


class QueryFailedError(QuarryError):
    """The backend rejected a statement.

    Attributes:
        query: SQL text as sent to the backend
        parameters: Positional parameters bound to the statement
    """

    default_code = ErrorCode.QUERY_EXECUTION_ERROR

    def __init__(self, query: str, parameters: Optional[Sequence[Any]], cause: BaseException):
        self.query = query
        self.parameters = list(parameters or [])
        super().__init__(
            f"Query failed: {cause}",
            details={"query": query[:500] + "..." if len(query) > 500 else query},
            cause=cause,
        )


class QueryRunnerAlreadyReleasedError(QuarryError):
    """A released query runner was used again."""

    default_code = ErrorCode.RUNNER_RELEASED

    def __init__(self):
        super().__init__("Query runner already released. Cannot run queries anymore.")


class TransactionAlreadyStartedError(QuarryError):
    """start_transaction was called while a transaction is active."""

    default_code = ErrorCode.TRANSACTION_ERROR

    def __init__(self):
        super().__init__("Transaction already started for the given connection, commit current transaction before starting a new one.")


class TransactionNotStartedError(QuarryError):
    """commit/rollback was called without an active transaction."""

    default_code = ErrorCode.TRANSACTION_ERROR

    def __init__(self):
        super().__init__("Transaction is not started yet, start transaction before committing or rolling it back.")


class CannotExecuteNotConnectedError(QuarryError):
    """An operation needs an initialized data source."""

    default_code = ErrorCode.NOT_CONNECTED

    def __init__(self, connection_name: str):
        super().__init__(
            f"Cannot execute operation on \"{connection_name}\" connection because connection is not yet established.",
            details={"connection": connection_name},
        )


# Helper functions for common error scenarios
def configuration_error(message: str, config_key: Optional[str] = None, **kwargs) -> QuarryError:
    """Create a configuration error.

    Args:
        message: Error message
        config_key: Configuration key that caused the error
        **kwargs: Additional error details

    Returns:
        QuarryError with CONFIG_ERROR code
    """
    details = kwargs.pop("details", {}) or {}
    if config_key:
        details["config_key"] = config_key
    return QuarryError(message=message, error_code=ErrorCode.CONFIG_ERROR, details=details, **kwargs)


def validation_error(message: str, field: Optional[str] = None, value: Any = None, **kwargs) -> QuarryError:
    """Create a validation error.

    Args:
        message: Error message
        field: Field that failed validation
        value: Invalid value
        **kwargs: Additional error details

    Returns:
        QuarryError with VALIDATION_ERROR code
    """
    details = kwargs.pop("details", {}) or {}
    if field:
        details["field"] = field
    if value is not None:
        details["value"] = str(value)
    return QuarryError(message=message, error_code=ErrorCode.VALIDATION_ERROR, details=details, **kwargs)


def connection_error(message: str, service: Optional[str] = None, host: Optional[str] = None, **kwargs) -> QuarryError:
    """Create a connection error.

    Args:
        message: Error message
        service: Backend that failed to connect
        host: Host/endpoint that failed
        **kwargs: Additional error details

    Returns:
        QuarryError with CONNECTION_ERROR code
    """
    details = kwargs.pop("details", {}) or {}
    if service:
        details["service"] = service
    if host:
        details["host"] = host
    return QuarryError(message=message, error_code=ErrorCode.CONNECTION_ERROR, details=details, **kwargs)


def execution_error(message: str, operation: Optional[str] = None, **kwargs) -> QuarryError:
    """Create an execution error.

    Args:
        message: Error message
        operation: Operation that failed
        **kwargs: Additional error details

    Returns:
        QuarryError with EXECUTION_ERROR code
    """
    details = kwargs.pop("details", {}) or {}
    if operation:
        details["operation"] = operation
    return QuarryError(message=message, error_code=ErrorCode.EXECUTION_ERROR, details=details, **kwargs)


"""Connection settings for a quarry data source.

One ``ConnectionSettings`` instance describes one backend: which driver the
factory builds, how the network drivers reach their server, and how the
embedded driver persists its database image.
"""

from typing import Any, Callable, Optional

from pydantic import Field, SecretStr, field_validator, model_validator

from quarry.constants import StorageType
from quarry.settings.base import QuarryBaseSettings


class ConnectionSettings(QuarryBaseSettings):
    type: str = Field(
        ...,
        description="Backend identifier (postgres, mysql, mariadb, mssql, sqlite, sqljs). Unknown values are rejected by the driver factory."
    )
    name: str = Field(
        default="default",
        description="Data source name used in log records and error messages"
    )

    # Network backends
    url: Optional[SecretStr] = Field(
        default=None,
        description="Full SQLAlchemy URL. Takes precedence over host/port/username/password/database."
    )
    host: Optional[str] = Field(default=None, description="Database server host")
    port: Optional[int] = Field(default=None, ge=1, le=65535, description="Database server port")
    username: Optional[str] = Field(default=None, description="Login user")
    password: Optional[SecretStr] = Field(default=None, description="Login password")
    database: Optional[str] = Field(
        default=None,
        description="Database name, or the file path for the sqlite driver"
    )
    schema_name: Optional[str] = Field(default=None, description="Default schema for unqualified tables")
    pool_size: int = Field(default=5, ge=1, le=100, description="SQLAlchemy connection pool size")
    max_overflow: int = Field(default=10, ge=0, le=100, description="Connections allowed beyond pool_size")
    pool_timeout: int = Field(default=30, ge=1, le=600, description="Seconds to wait for a pooled connection")
    connect_retries: int = Field(default=3, ge=0, le=10, description="Attempts made to reach the server on connect")
    odbc_connection_string: Optional[SecretStr] = Field(
        default=None,
        description="Raw ODBC connection string for mssql. Used verbatim through odbc_connect when set."
    )
    odbc_driver: str = Field(
        default="ODBC Driver 18 for SQL Server",
        description="ODBC driver name used when building the mssql URL from parts"
    )

    # Embedded backend
    location: Optional[str] = Field(
        default=None,
        description="Identifier the embedded database is loaded from and saved to (file path or storage key)"
    )
    auto_save: bool = Field(
        default=False,
        description="Persist the embedded database after every modifying statement"
    )
    auto_save_callback: Optional[Callable[[bytes], Any]] = Field(
        default=None,
        exclude=True,
        description="Receives the exported database bytes instead of a save to location"
    )
    storage: StorageType = Field(
        default=StorageType.FILE,
        description="Persistence target for the embedded database"
    )
    storage_backend: Optional[Any] = Field(
        default=None,
        exclude=True,
        description="Mutable mapping used by key_value storage, kept by reference. A fresh dict is used when unset."
    )
    driver: Optional[Any] = Field(
        default=None,
        exclude=True,
        description="Engine module to use instead of importing the default one"
    )
    database_content: Optional[bytes] = Field(
        default=None,
        exclude=True,
        description="Initial database image for the embedded driver when no location is set"
    )

    # Diagnostics
    log_queries: bool = Field(default=False, description="Log every statement at INFO instead of DEBUG")
    max_query_execution_time: Optional[float] = Field(
        default=None,
        gt=0,
        description="Seconds after which a statement is logged as slow"
    )

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return getattr(value, "value", value)

    @model_validator(mode="after")
    def _default_storage_backend(self) -> "ConnectionSettings":
        if self.storage == StorageType.KEY_VALUE and self.storage_backend is None:
            self.storage_backend = {}
        return self


# Singleton instance
_settings: Optional[ConnectionSettings] = None


def get_settings(force_reload: bool = False) -> ConnectionSettings:
    """Get the connection settings loaded from the environment.

    Args:
        force_reload: If True, creates a new instance even if one already
            exists. Useful when environment variables have changed.

    Returns:
        ConnectionSettings: The cached settings instance

    Example:
        ```python
        # QUARRY_TYPE=sqljs QUARRY_LOCATION=/tmp/app.db
        settings = get_settings()
        assert settings is get_settings()
        ```
    """
    global _settings

    if _settings is None or force_reload:
        _settings = ConnectionSettings()

    return _settings


def _reload_settings() -> ConnectionSettings:
    """Force reload of settings, mainly for tests."""
    global _settings
    _settings = None
    return get_settings(force_reload=True)

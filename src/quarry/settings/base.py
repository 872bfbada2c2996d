from pydantic_settings import BaseSettings, SettingsConfigDict


class QuarryBaseSettings(BaseSettings):
    """Shared configuration behaviour for every quarry settings class.

    Values are read from the process environment and an optional ``.env``
    file. Nested models use ``__`` as the delimiter, so
    ``QUARRY_STORAGE=key_value`` and similar variables map onto fields.
    """
    model_config = SettingsConfigDict(
        env_prefix="QUARRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
        arbitrary_types_allowed=True,
    )

"""Configuration for quarry data sources."""

from .base import QuarryBaseSettings
from .connection import ConnectionSettings, _reload_settings, get_settings

__all__ = [
    "QuarryBaseSettings",
    "ConnectionSettings",
    "get_settings",
    "_reload_settings",
]

"""Base model types for quarry."""

from .base import FrozenQuarryModel, QuarryBaseModel

__all__ = ["QuarryBaseModel", "FrozenQuarryModel"]

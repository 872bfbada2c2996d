"""Protocol definitions for quarry.

Protocols provide type-safe interfaces without requiring inheritance,
following Python's structural subtyping (duck typing with type hints).
"""

from .providers import StorageProvider

__all__ = ["StorageProvider"]

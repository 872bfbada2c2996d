"""Provider protocol definitions.

Protocols give the embedded driver a structural contract for its
persistence target without requiring inheritance.
"""

from typing import Protocol

from typing_extensions import runtime_checkable


@runtime_checkable
class StorageProvider(Protocol):
    """Persistence target for a serialized database image."""

    def exists(self, location: str) -> bool:
        """Return True when ``location`` holds a stored image."""
        ...

    def read(self, location: str) -> bytes:
        """Return the image stored at ``location``."""
        ...

    def write(self, location: str, content: bytes) -> None:
        """Store ``content`` at ``location``, replacing any previous image."""
        ...

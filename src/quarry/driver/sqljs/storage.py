"""Persistence targets for the embedded driver's database image."""

import json
from pathlib import Path
from typing import Any, MutableMapping, Optional

from quarry.logging import get_logger

logger = get_logger(__name__)


class FileStorage:
    """Stores the image as raw bytes in a file on disk."""

    def exists(self, location: str) -> bool:
        return Path(location).is_file()

    def read(self, location: str) -> bytes:
        return Path(location).read_bytes()

    def write(self, location: str, content: bytes) -> None:
        path = Path(location)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        logger.debug("Database image written", extra={"location": location, "size.bytes": len(content)})


class KeyValueStorage:
    """Stores the image under a key as a JSON array of byte values.

    Any mutable mapping of strings works as the backend, which lets a
    process keep several named databases side by side or persist them
    through a shelve-like store.
    """

    def __init__(self, backend: Optional[MutableMapping[str, Any]] = None):
        self.backend: MutableMapping[str, Any] = backend if backend is not None else {}

    def exists(self, location: str) -> bool:
        return self.backend.get(location) is not None

    def read(self, location: str) -> bytes:
        return bytes(json.loads(self.backend[location]))

    def write(self, location: str, content: bytes) -> None:
        self.backend[location] = json.dumps(list(content))
        logger.debug("Database image stored", extra={"location": location, "size.bytes": len(content)})

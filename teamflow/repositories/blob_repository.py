# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Repository: attachment bytes held in memory.
Mirrors BlobStoreClient for the memory backend.
"""

import threading
from typing import Iterator

from teamflow.core.errors import NotFoundError

CHUNK_SIZE = 64 * 1024


def _chunks(data: bytes) -> Iterator[bytes]:
    for offset in range(0, len(data), CHUNK_SIZE):
        yield data[offset:offset + CHUNK_SIZE]


class InMemoryBlobRepository:
    """In-memory blob storage keyed by object name."""

    def __init__(self) -> None:
        self._objects: dict[str, tuple[bytes, str]] = {}
        self._lock = threading.Lock()

    def upload(self, object_name: str, content: bytes, content_type: str) -> None:
        with self._lock:
            self._objects[object_name] = (bytes(content), content_type)

    def download(self, object_name: str) -> Iterator[bytes]:
        with self._lock:
            entry = self._objects.get(object_name)
        if entry is None:
            raise NotFoundError(f"Blob '{object_name}' not found")
        return _chunks(entry[0])

    def delete(self, object_name: str) -> None:
        with self._lock:
            self._objects.pop(object_name, None)

    def exists(self, object_name: str) -> bool:
        return object_name in self._objects

    def ping(self) -> bool:
        return True

    def clear(self) -> None:
        with self._lock:
            self._objects.clear()

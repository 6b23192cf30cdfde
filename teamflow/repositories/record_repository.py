# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Repository: keyed record collection held in memory.
Same contract as the HTTP store client, so either can back a store adapter.
Plain CRUD, atomic per call; no business rules.
"""

import copy
import threading
from typing import Any, Optional

from teamflow.core.errors import ConflictError, NotFoundError


class InMemoryRecordRepository:
    """In-memory record storage with integer ids and a per-record version."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._store: dict[int, dict[str, Any]] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    # ── Read ──

    def get(self, record_id: int) -> dict[str, Any]:
        with self._lock:
            record = self._store.get(record_id)
            if record is None:
                raise NotFoundError(f"{self.name} record {record_id} not found")
            return copy.deepcopy(record)

    def list(self, **filters: Any) -> list[dict[str, Any]]:
        with self._lock:
            records = [
                copy.deepcopy(r) for r in self._store.values()
                if all(r.get(k) == v for k, v in filters.items() if v is not None)
            ]
        return sorted(records, key=lambda r: r["id"])

    def count(self) -> int:
        return len(self._store)

    def ping(self) -> bool:
        return True

    # ── Write ──

    def create(self, record: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            record = copy.deepcopy(record)
            record_id = record.get("id")
            if record_id is None:
                record_id = self._next_id
            elif record_id in self._store:
                raise ConflictError(
                    f"{self.name} record {record_id} already exists",
                    reason="already_exists",
                )
            self._next_id = max(self._next_id, record_id + 1)
            record["id"] = record_id
            record["version"] = 1
            self._store[record_id] = record
            return copy.deepcopy(record)

    def update(self, record_id: int, patch: dict[str, Any],
               expected_version: Optional[int] = None) -> dict[str, Any]:
        with self._lock:
            record = self._store.get(record_id)
            if record is None:
                raise NotFoundError(f"{self.name} record {record_id} not found")
            if expected_version is not None and record["version"] != expected_version:
                raise ConflictError(
                    f"{self.name} record {record_id} changed concurrently "
                    f"(expected version {expected_version}, found {record['version']})",
                    reason="version_mismatch",
                )
            patch = {k: copy.deepcopy(v) for k, v in patch.items() if k not in ("id", "version")}
            record.update(patch)
            record["version"] += 1
            return copy.deepcopy(record)

    def delete(self, record_id: int) -> None:
        with self._lock:
            if self._store.pop(record_id, None) is None:
                raise NotFoundError(f"{self.name} record {record_id} not found")

    # ── Test support ──

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self._next_id = 1

    @property
    def store(self) -> dict[int, dict[str, Any]]:
        """Direct access for tests and seeding."""
        return self._store

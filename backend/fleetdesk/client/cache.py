"""Last-known-good dashboard data, kept for when the network is gone."""

import json
import logging
import os
import re
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from fleetdesk.client.exceptions import CacheError

logger = logging.getLogger(__name__)

DEFAULT_TTL = 300.0  # five minutes


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store; lost when the session ends."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def delete(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStore:
    """One JSON file per key in a directory, survives restarts.

    Writes go to a temporary file first and are renamed into place, so a
    reader never sees a half-written entry and the last writer wins.
    """

    _unsafe = re.compile(r"[^A-Za-z0-9_.-]")

    def __init__(self, directory: str | os.PathLike) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.directory / f"{self._unsafe.sub('_', key)}.json"

    def get(self, key: str) -> str | None:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CacheError(f"Cannot read cache entry {key}: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        try:
            fd, tmp = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp, self._path(key))
        except OSError as exc:
            raise CacheError(f"Cannot write cache entry {key}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            raise CacheError(f"Cannot delete cache entry {key}: {exc}") from exc


@dataclass(frozen=True)
class CacheEntry:
    key: str
    captured_at: datetime
    payload: Any


class DashboardCache:
    """Namespaced ``{timestamp, data}`` entries with a freshness window.

    An entry is served while its age is strictly below ``ttl``; after that
    it is deleted and reads report a miss. Store failures are logged and
    treated as misses so callers never see them.
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        ttl: float = DEFAULT_TTL,
        prefix: str = "dashboard_",
        clock: Callable[[], float] = time.time,
        enabled: bool = True,
    ):
        self.store = store if store is not None else MemoryStore()
        self.ttl = ttl
        self.prefix = prefix
        self.clock = clock
        self.enabled = enabled

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def put(self, key: str, payload: Any) -> CacheEntry | None:
        if not self.enabled:
            return None
        captured = datetime.fromtimestamp(self.clock(), tz=timezone.utc)
        try:
            self.store.set(
                self._key(key),
                json.dumps({"timestamp": captured.isoformat(), "data": payload}, default=str),
            )
        except (CacheError, TypeError, ValueError) as exc:
            logger.warning("Error writing %s to cache: %s", key, exc)
            return None
        return CacheEntry(key=key, captured_at=captured, payload=payload)

    def get(self, key: str) -> CacheEntry | None:
        """Fresh entry for ``key``, or None on a miss."""
        if not self.enabled:
            return None
        try:
            raw = self.store.get(self._key(key))
            if raw is None:
                return None
            parsed = json.loads(raw)
            captured = datetime.fromisoformat(parsed["timestamp"])
            payload = parsed["data"]
        except (CacheError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Error reading %s from cache: %s", key, exc)
            return None

        age = self.clock() - captured.timestamp()
        if age >= self.ttl:
            self.invalidate(key)
            return None
        return CacheEntry(key=key, captured_at=captured, payload=payload)

    def invalidate(self, key: str) -> None:
        try:
            self.store.delete(self._key(key))
        except CacheError as exc:
            logger.warning("Error removing %s from cache: %s", key, exc)

    def merge_record(
        self,
        key: str,
        record: dict[str, Any],
        deleted: bool = False,
        limit: int | None = None,
    ) -> CacheEntry | None:
        """Fold a single created/updated/deleted record into a cached list.

        The record replaces any entry with the same ``id`` and moves to the
        front; a deletion just removes it. The entry keeps its list shape.
        """
        current = self.get(key)
        items = list(current.payload) if current and isinstance(current.payload, list) else []
        record_id = record.get("id")
        items = [item for item in items if not (isinstance(item, dict) and item.get("id") == record_id)]
        if not deleted:
            items.insert(0, record)
        if limit is not None:
            items = items[:limit]
        return self.put(key, items)

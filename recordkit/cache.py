"""Short-lived key/value caches used for table row counts.

ActiveRecord only relies on the narrow CountCache interface (get/set/delete);
MemoryCache is the default, FileCache keeps entries on disk so several worker
processes can share them.
"""

import hashlib
import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, runtime_checkable

logger = logging.getLogger("recordkit")

DEFAULT_TTL = 300


@runtime_checkable
class CountCache(Protocol):
    """What recordkit needs from a cache."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any, ttl: int) -> bool: ...

    def delete(self, key: str) -> bool: ...


class _RememberMixin:

    def remember(self, key: str, ttl: int, callback: Callable[[], Any]) -> Any:
        """Return the cached value for key, or compute it with callback and cache it."""
        value = self.get(key)
        if value is not None:
            return value
        value = callback()
        self.set(key, value, ttl)
        return value

    def has(self, key: str) -> bool:
        return self.get(key) is not None


class MemoryCache(_RememberMixin):
    """In-process cache with per-entry expiry.

    Args:
        clock: Returns the current time in seconds; defaults to time.monotonic.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires, value = entry
            if expires < self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: int = DEFAULT_TTL) -> bool:
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> bool:
        with self._lock:
            self._entries.clear()
        return True


class FileCache(_RememberMixin):
    """One JSON file per key (named after the key's md5) under directory."""

    def __init__(self, directory: str | os.PathLike, clock: Optional[Callable[[], float]] = None):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._clock = clock or time.time

    def _path(self, key: str) -> Path:
        return self.directory / (hashlib.md5(key.encode("utf-8")).hexdigest() + ".cache")

    def get(self, key: str) -> Any:
        path = self._path(key)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except ValueError:
            logger.warning("Discarding unreadable cache file %s", path)
            path.unlink(missing_ok=True)
            return None
        if payload["expires"] < self._clock():
            path.unlink(missing_ok=True)
            return None
        return payload["value"]

    def set(self, key: str, value: Any, ttl: int = DEFAULT_TTL) -> bool:
        payload = {"key": key, "value": value, "expires": self._clock() + ttl}
        tmp = self._path(key).with_suffix(".tmp")
        tmp.write_text(json.dumps(payload), encoding="utf-8")
        tmp.replace(self._path(key))
        return True

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if path.exists():
            path.unlink(missing_ok=True)
            return True
        return False

    def clear(self) -> bool:
        for path in self.directory.glob("*.cache"):
            path.unlink(missing_ok=True)
        return True

    def cleanup(self) -> int:
        """Delete expired entries; return how many were removed."""
        deleted = 0
        now = self._clock()
        for path in self.directory.glob("*.cache"):
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
            except (FileNotFoundError, ValueError):
                continue
            if payload["expires"] < now:
                path.unlink(missing_ok=True)
                deleted += 1
        return deleted

"""Flat string-keyed storage for cached analysis results."""

import logging
import os
import re
from pathlib import Path
from typing import Protocol

from .exceptions import StorageQuotaError

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class CacheStorage(Protocol):
    """Minimal key/value contract the content cache relies on."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryCacheStorage:
    """In-process storage, optionally bounded by a byte quota."""

    def __init__(self, max_bytes: int | None = None):
        self.max_bytes = max_bytes
        self._items: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        if self.max_bytes is not None:
            used = sum(len(v.encode("utf-8")) for k, v in self._items.items() if k != key)
            needed = used + len(value.encode("utf-8"))
            if needed > self.max_bytes:
                raise StorageQuotaError(needed, self.max_bytes)
        self._items[key] = value

    def delete(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class FileCacheStorage:
    """Stores one JSON document per key in a directory, with atomic writes."""

    def __init__(self, directory: Path, max_bytes: int | None = None):
        self.directory = Path(directory)
        self.max_bytes = max_bytes

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid cache key '{key}'")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read cache entry {path}: {e}")
            return None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        payload = value.encode("utf-8")

        if self.max_bytes is not None:
            needed = self._used_bytes(exclude=path) + len(payload)
            if needed > self.max_bytes:
                raise StorageQuotaError(needed, self.max_bytes)

        self.directory.mkdir(parents=True, exist_ok=True)

        # Atomic write: write to temp file, then rename
        temp_path = path.with_suffix(".tmp")
        try:
            with open(temp_path, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            temp_path.replace(path)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise

        logger.debug(f"Saved cache entry to {path}")

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()
            logger.debug(f"Deleted cache entry {path}")

    def keys(self) -> list[str]:
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))

    def _used_bytes(self, exclude: Path) -> int:
        if not self.directory.exists():
            return 0
        return sum(p.stat().st_size for p in self.directory.glob("*.json") if p != exclude)

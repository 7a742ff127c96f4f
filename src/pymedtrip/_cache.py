"""Local key/value cache mirroring the last-known synchronized values.

The cache is a plain string store: callers serialize to JSON themselves.
Reads and writes are synchronous and never raise; a broken cache behaves
like an empty one.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

_logger = logging.getLogger(__name__)


class LocalCache(Protocol):
    """Synchronous string key/value store."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class MemoryCache:
    """Process-local cache; lost when the process exits."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        self._entries[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class FileCache:
    """Durable cache with one JSON file per key under *directory*.

    Keys are hashed into file names so any string is a valid key. Each file
    holds ``{"key": ..., "value": ...}`` and is replaced atomically through a
    uniquely named temporary file.
    """

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._directory / f"{digest}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            _logger.warning("Local cache read failed for %s: %s", key, exc)
            return None

        try:
            document = json.loads(text)
        except json.JSONDecodeError:
            _logger.warning("Discarding corrupt local cache entry for %s", key)
            return None
        if not isinstance(document, dict) or document.get("key") != key:
            return None
        value = document.get("value")
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_name: str | None = None
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, prefix=f"{path.stem}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump({"key": key, "value": value}, handle)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            _logger.warning("Local cache write failed for %s: %s", key, exc)
        finally:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)

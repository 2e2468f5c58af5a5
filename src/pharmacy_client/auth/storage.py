"""
Key/value storage backends for session artifacts.

Two interchangeable implementations of the SessionStorage protocol:

- FileStorage: durable JSON file that survives process restarts
- MemoryStorage: process-scoped dict, used when the file is unusable

Thread Safety:
    Both backends guard every operation with a threading.Lock. Operations
    are single-key; there is no multi-key transaction.

Example:
    >>> storage = FileStorage(Path("~/.pharmacy_client/session.json"))
    >>> storage.set_item("accessToken", "eyJ0eXAi...")
    >>> storage.get_item("accessToken")
    'eyJ0eXAi...'
"""

import contextlib
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional


class MemoryStorage:
    """
    Process-scoped session storage.

    Contents disappear when the process exits, matching the lifetime of a
    browser tab's session storage.
    """

    def __init__(self):
        self._items: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = str(value)

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class FileStorage:
    """
    Durable session storage backed by a single JSON object on disk.

    Every write rewrites the file atomically (temp file + os.replace), so
    a crash mid-write leaves the previous contents intact. Every read
    re-reads the file, so changes made by another process are visible.

    Any OSError (read-only filesystem, permissions, disk full) propagates
    to the caller; the TokenStore's availability check turns that into a
    fallback to MemoryStorage.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            # Corrupt file: treat as empty, the next write replaces it
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_path)
            raise

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._read().get(key)
            return None if value is None else str(value)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = str(value)
            self._write(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if key not in data:
                return
            del data[key]
            self._write(data)

    def clear(self) -> None:
        with self._lock:
            self._write({})


__all__ = ["FileStorage", "MemoryStorage"]

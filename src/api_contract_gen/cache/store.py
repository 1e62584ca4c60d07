"""Key/value stores backing the analysis cache.

Values must be JSON-serializable for FileStore. Expiry is a plain timestamp
check on read; there is no size bound.
"""

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    def get(self, key: str) -> Any: ...

    def put(self, key: str, value: Any, ttl: int | None = None) -> None: ...

    def has(self, key: str) -> bool: ...

    def forget(self, key: str) -> None: ...

    def flush(self) -> None: ...

    def save(self) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryStore:
    """Process-local store. Used in tests and with cache.backend: memory."""

    def __init__(self, clock=time.time):
        self._entries: dict[str, tuple[Any, float | None]] = {}
        self._clock = clock

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._entries[key]
            return None
        return value

    def put(self, key: str, value: Any, ttl: int | None = None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        self._entries[key] = (value, expires_at)

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def forget(self, key: str) -> None:
        self._entries.pop(key, None)

    def flush(self) -> None:
        self._entries.clear()

    def save(self) -> None:
        pass

    def keys(self) -> list[str]:
        return [k for k in list(self._entries) if self.has(k)]


class FileStore(MemoryStore):
    """A MemoryStore persisted to one JSON document.

    Writes are held in memory until save(); flush() saves immediately.
    """

    def __init__(self, path: Path, clock=time.time):
        super().__init__(clock=clock)
        self.path = path
        self._dirty = False
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable cache file %s: %s", self.path, e)
            return
        for key, entry in raw.items():
            self._entries[key] = (entry.get("value"), entry.get("expires_at"))

    def put(self, key: str, value: Any, ttl: int | None = None) -> None:
        super().put(key, value, ttl)
        self._dirty = True

    def forget(self, key: str) -> None:
        if key in self._entries:
            super().forget(key)
            self._dirty = True

    def flush(self) -> None:
        super().flush()
        self._dirty = True
        self.save()

    def save(self) -> None:
        if not self._dirty:
            return
        data = {
            key: {"value": value, "expires_at": expires_at}
            for key, (value, expires_at) in self._entries.items()
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", delete=False, dir=str(self.path.parent), prefix=".tmp_", suffix=".json", encoding="utf-8"
            ) as tmp:
                json.dump(data, tmp)
                tmp_path = Path(tmp.name)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning("Could not save cache file %s: %s", self.path, e)
            return
        self._dirty = False

"""Caching abstraction for provider outputs.

Values are serialized strings (pydantic ``model_dump_json`` output); callers
turn them back into models with ``model_validate_json``.
"""
import hashlib
import json
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from pathlib import Path
from uuid import uuid4


def make_cache_key(operation: str, text: str, discriminator: str = "") -> str:
    """Content-addressed key over (operation, normalized text, discriminator)."""
    normalized = " ".join(text.split()).lower()
    digest = hashlib.sha256(
        f"{operation}\x1f{normalized}\x1f{discriminator}".encode("utf-8")
    ).hexdigest()
    return f"{operation}_{digest[:32]}"


class Cache(ABC):
    """Key/value store with per-entry time-to-live."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the cached value, or None if missing or expired."""

    @abstractmethod
    def set(self, key: str, value: str, ttl: timedelta) -> None:
        """Store a value for ``ttl``. Last writer wins."""


class MemoryCache(Cache):
    """In-process cache with TTL; expired entries are evicted on read and on every write."""

    def __init__(self, clock=time.monotonic):
        self._entries: dict[str, tuple[float, str]] = {}
        self._clock = clock

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: str, ttl: timedelta) -> None:
        now = self._clock()
        self.purge_expired(now)
        self._entries[key] = (now + ttl.total_seconds(), value)

    def purge_expired(self, now: float | None = None) -> int:
        """Drop every expired entry. Returns how many were removed."""
        now = self._clock() if now is None else now
        expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class FileCache(Cache):
    """File-based cache: one JSON envelope per key holding expiry and value."""

    def __init__(self, cache_dir: Path, clock=time.time):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._clock = clock

    def _path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    def get(self, key: str) -> str | None:
        cache_file = self._path(key)
        if not cache_file.exists():
            return None
        try:
            envelope = json.loads(cache_file.read_text())
        except (json.JSONDecodeError, OSError):
            return None
        if self._clock() >= envelope.get("expires_at", 0):
            cache_file.unlink(missing_ok=True)
            return None
        return envelope.get("value")

    def set(self, key: str, value: str, ttl: timedelta) -> None:
        envelope = {"expires_at": self._clock() + ttl.total_seconds(), "value": value}
        # Write-then-rename so concurrent readers never see a partial file
        tmp_file = self.cache_dir / f"{key}.{uuid4().hex}.tmp"
        tmp_file.write_text(json.dumps(envelope))
        tmp_file.replace(self._path(key))

    def exists(self, key: str) -> bool:
        return self.get(key) is not None

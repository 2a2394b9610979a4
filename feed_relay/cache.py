"""Disk-backed cache of raw upstream response bodies."""

import hashlib
import os
import tempfile
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any
from urllib.parse import quote

from .errors import CacheUnavailable
from .logging_config import create_execution_logger
from .models import CacheEntry

# Longest key used verbatim as a file name; longer keys get a hash suffix.
MAX_FILENAME_KEY = 180
CACHE_SUFFIX = ".cache"


def make_cache_key(source: str, params: Mapping[str, Any] | None = None) -> str:
    """
    Build a deterministic, human-inspectable cache key.

    Parameters are sorted by name and ``None`` values are dropped, so the same
    logical query always yields the same key. Every component is
    percent-encoded, which keeps the ``+`` and ``=`` separators out of the
    components themselves: two distinct (source, params) tuples can never
    produce the same key.

    Example:
        make_cache_key("reddit", {"subreddit": "annarbor", "sort": "hot"})
        -> "reddit+sort=hot+subreddit=annarbor"
    """
    parts = [_encode(source)]
    for name in sorted(params or {}):
        value = params[name]
        if value is None:
            continue
        parts.append(f"{_encode(name)}={_encode(value)}")
    return "+".join(parts)


def _encode(value: Any) -> str:
    if isinstance(value, bool):
        value = "true" if value else "false"
    return quote(str(value), safe="")


class DiskCache:
    """
    Keyed storage of raw upstream bodies, one file per key.

    The cache has no notion of expiry: ``read`` reports an entry's age and the
    caller decides whether it is fresh. Entries are never deleted, so an old
    body stays available as a last-resort fallback. Storage errors never
    escape: reads degrade to a miss and writes are logged and dropped.
    """

    def __init__(
        self,
        cache_dir: Path | str,
        execution_id: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the cache.

        Args:
            cache_dir: Directory holding one file per cache key
            execution_id: Execution ID for logging context
            clock: Returns the current epoch time in seconds
        """
        self.cache_dir = Path(cache_dir)
        self.clock = clock
        self.logger = create_execution_logger("cache", execution_id)

    def path_for(self, key: str) -> Path:
        """File path holding the entry for ``key``."""
        if len(key) > MAX_FILENAME_KEY:
            digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]
            name = f"{key[:MAX_FILENAME_KEY]}+{digest}"
        else:
            name = key
        return self.cache_dir / f"{name}{CACHE_SUFFIX}"

    def read(self, key: str) -> CacheEntry | None:
        """Return the entry for ``key`` with its age, or None on a miss."""
        try:
            entry = self._load(key)
        except CacheUnavailable as e:
            self.logger.warning(
                f"Cache unavailable, treating as miss: {e}", cache_key=key, error=str(e)
            )
            return None

        if entry is None:
            self.logger.log_cache_event(key, "miss")
        else:
            self.logger.log_cache_event(key, "read", age_ms=entry.age_ms)
        return entry

    def read_stale_allowed(self, key: str) -> CacheEntry | None:
        """Same lookup as ``read``, accepting arbitrarily old data.

        Only used as a fallback after an upstream failure.
        """
        entry = self.read(key)
        if entry is not None:
            self.logger.log_cache_event(key, "stale_fallback", age_ms=entry.age_ms)
        return entry

    def write(self, key: str, body: str) -> bool:
        """
        Persist ``body`` under ``key``, replacing any previous value.

        The body goes to a temporary file in the cache directory which then
        replaces the target, so a concurrent reader sees either the old or the
        new body and a failed write leaves the old one intact.

        Returns:
            True if the body was stored, False if storage failed
        """
        target = self.path_for(key)
        temp_path = None
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.cache_dir,
                delete=False,
                prefix=".tmp-",
                suffix=CACHE_SUFFIX,
            ) as temp_file:
                temp_path = Path(temp_file.name)
                temp_file.write(body)
                temp_file.flush()
                os.fsync(temp_file.fileno())

            now = self.clock()
            os.utime(temp_path, (now, now))
            temp_path.replace(target)
        except OSError as e:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            self.logger.log_cache_event(key, "write_failed")
            self.logger.warning(f"Failed to write cache entry: {e}", cache_key=key, error=str(e))
            return False

        self.logger.log_cache_event(key, "write")
        return True

    def _load(self, key: str) -> CacheEntry | None:
        path = self.path_for(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                stats = os.fstat(f.fileno())
                body = f.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise CacheUnavailable(f"{path}: {e}") from e

        age_ms = max(0, int((self.clock() - stats.st_mtime) * 1000))
        return CacheEntry(key=key, body=body, written_at=stats.st_mtime, age_ms=age_ms)

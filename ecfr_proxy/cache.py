"""
In-memory key/value caches with per-entry expiry.

Nothing here survives a restart. Each namespace has its own TTL reflecting how
often the underlying eCFR data changes.
"""
import datetime
import logging
from dataclasses import dataclass
from typing import Any

from ecfr_proxy import timestamps
from ecfr_proxy.config import Settings

logger = logging.getLogger("ecfr")

MISSING = object()


class TTLCache:
    """
    Dict-like store where every entry carries an expiry timestamp.

    An entry read at or after its expiry is treated as absent and dropped.
    Supports both the get/set/has API and the mapping protocol
    (``key in cache``, ``cache[key]``, ``cache[key] = value``).
    """

    def __init__(self, name: str, ttl: float):
        self.name = name
        self.ttl = ttl
        self._entries: dict[str, tuple[Any, datetime.datetime]] = {}

    def _lookup(self, key):
        entry = self._entries.get(key)
        if entry is None:
            return MISSING
        value, expires_at = entry
        if timestamps.nowUTC() >= expires_at:
            logger.debug("Cache %s entry %s expired", self.name, key)
            del self._entries[key]
            return MISSING
        return value

    def get(self, key, default=None):
        value = self._lookup(key)
        return default if value is MISSING else value

    def set(self, key, value, ttl: float | None = None):
        ttl = self.ttl if ttl is None else ttl
        expires_at = timestamps.nowUTC() + datetime.timedelta(seconds=ttl)
        self._entries[key] = (value, expires_at)

    def has(self, key) -> bool:
        return self._lookup(key) is not MISSING

    def delete(self, key):
        self._entries.pop(key, None)

    def flush(self):
        logger.info("Flushing %s cache (%d entries)", self.name, len(self._entries))
        self._entries.clear()

    def __contains__(self, key):
        return self.has(key)

    def __getitem__(self, key):
        value = self._lookup(key)
        if value is MISSING:
            raise KeyError(key)
        return value

    def __setitem__(self, key, value):
        self.set(key, value)

    def __delitem__(self, key):
        self.delete(key)

    def __len__(self):
        return sum(1 for key in list(self._entries) if self.has(key))


@dataclass
class Caches:
    """The three cache namespaces, created once per process and passed to services"""

    metadata: TTLCache
    word_counts: TTLCache
    suggestions: TTLCache

    @classmethod
    def from_settings(cls, settings: Settings) -> "Caches":
        return cls(
            metadata=TTLCache("metadata", settings.metadata_ttl),
            word_counts=TTLCache("word-counts", settings.word_count_ttl),
            suggestions=TTLCache("suggestions", settings.suggestion_ttl),
        )

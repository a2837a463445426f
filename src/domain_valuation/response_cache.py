"""
In-memory response cache shared by single and bulk valuations.

Entries are keyed per domain and carry the time they were written. Freshness
is decided by the reader: stale entries stay in place until overwritten,
cleared, or removed by an explicit purge_expired() sweep.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .config import CacheConfig


CACHE_KEY_PREFIX = "single_"


@dataclass
class CacheEntry:
    """A cached valuation response."""

    domain: str
    data: Any
    timestamp: float


class ResponseCache:
    """
    Time-bounded cache of valuation responses.

    Unbounded unless ``max_entries`` is given, in which case the least
    recently written entries are evicted first.
    """

    def __init__(
        self,
        duration_seconds: float = 300.0,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._duration = duration_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    @classmethod
    def from_config(
        cls, config: CacheConfig, clock: Callable[[], float] = time.time
    ) -> "ResponseCache":
        return cls(
            duration_seconds=config.duration_seconds,
            max_entries=config.max_entries,
            clock=clock,
        )

    @property
    def duration_seconds(self) -> float:
        return self._duration

    @staticmethod
    def key_for(domain: str) -> str:
        return f"{CACHE_KEY_PREFIX}{domain}"

    def get(self, domain: str) -> Optional[CacheEntry]:
        """Return the entry for ``domain`` regardless of age."""
        return self._entries.get(self.key_for(domain))

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp < self._duration

    def get_fresh(self, domain: str) -> Optional[CacheEntry]:
        entry = self.get(domain)
        if entry is not None and self.is_fresh(entry):
            return entry
        return None

    def set(self, domain: str, data: Any) -> CacheEntry:
        key = self.key_for(domain)
        entry = CacheEntry(domain=domain, data=data, timestamp=self._clock())

        self._entries.pop(key, None)
        self._entries[key] = entry

        if self._max_entries is not None:
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

        return entry

    def purge_expired(self) -> int:
        """
        Remove every stale entry.

        Returns:
            Number of entries removed
        """
        stale = [key for key, entry in self._entries.items() if not self.is_fresh(entry)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, domain: object) -> bool:
        return isinstance(domain, str) and self.key_for(domain) in self._entries

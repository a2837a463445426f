"""
Search tracking for usage statistics, rate limiting and donation prompts.

The tracker keeps a durable search counter plus a single record describing
the most recent search. Only a short digest of the searched domain is stored,
wrapped in base64 so the raw name never lands in storage as plain text.

The rate-limit check reads that single record: a search is limited while the
previous one happened inside the window and the running counter exceeds the
configured maximum. This approximates a per-window limit rather than
counting distinct timestamps; see RateLimiter for a true sliding window.
"""

import base64
import binascii
import hashlib
import json
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .config import TrackerConfig
from .enums import DonationContext
from .storage import KeyValueStore


SEARCH_COUNT_KEY = "searchCount"
SEARCH_DATA_KEY = "searchData"
DONATION_SHOWN_KEY = "donationShown_{context}"

# Keys written by older clients, removed on reset
LEGACY_HISTORY_KEYS = ("lastSearch", "lastSearchedDomain")


@dataclass
class SearchRecord:
    """Metadata of the most recent search."""

    hash: str
    timestamp: float
    count: int


class SearchTracker:
    """
    Client-side search counter and rate-limit bookkeeping.

    Durable values (count, last record) go to ``persistent_store``; the
    donation prompt flags go to ``session_store`` and therefore reset with
    each session.
    """

    def __init__(
        self,
        persistent_store: KeyValueStore,
        session_store: KeyValueStore,
        config: Optional[TrackerConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._persistent = persistent_store
        self._session = session_store
        self._config = config or TrackerConfig()
        self._clock = clock

    def get_search_count(self) -> int:
        raw = self._persistent.get_item(SEARCH_COUNT_KEY)
        try:
            return int(raw) if raw is not None else 0
        except ValueError:
            return 0

    def increment_search_count(self) -> int:
        new_count = self.get_search_count() + 1
        self._persistent.set_item(SEARCH_COUNT_KEY, str(new_count))
        return new_count

    def record_search(self, domain: str) -> SearchRecord:
        """
        Count a search and overwrite the stored record with its metadata.

        Args:
            domain: The searched domain (only its digest is stored)

        Returns:
            The SearchRecord that was written
        """
        count = self.increment_search_count()
        record = SearchRecord(
            hash=self.hash_domain(domain),
            timestamp=self._clock(),
            count=count,
        )
        payload = json.dumps({
            "hash": record.hash,
            "timestamp": record.timestamp,
            "count": record.count,
        })
        self._persistent.set_item(SEARCH_DATA_KEY, self.encode_data(payload))
        return record

    @staticmethod
    def hash_domain(domain: str) -> str:
        """
        Digest a domain name for rate-limit bucketing.

        BLAKE2b truncated to 8 bytes; identifies repeat searches without
        keeping the name. Not intended as a security measure.
        """
        return hashlib.blake2b(domain.encode("utf-8"), digest_size=8).hexdigest()

    @staticmethod
    def encode_data(data: str) -> str:
        # Obfuscation only, not encryption
        return base64.b64encode(data.encode("utf-8")).decode("ascii")

    @staticmethod
    def decode_data(encoded: str) -> Optional[str]:
        try:
            return base64.b64decode(encoded.encode("ascii"), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeError, ValueError):
            return None

    def get_rate_limit_data(self) -> Optional[SearchRecord]:
        encoded = self._persistent.get_item(SEARCH_DATA_KEY)
        if not encoded:
            return None

        decoded = self.decode_data(encoded)
        if decoded is None:
            return None

        try:
            data = json.loads(decoded)
            return SearchRecord(
                hash=str(data["hash"]),
                timestamp=float(data["timestamp"]),
                count=int(data["count"]),
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            return None

    def is_rate_limited(self) -> bool:
        """True while the last search is inside the window and the count exceeds the limit."""
        data = self.get_rate_limit_data()
        if data is None:
            return False

        elapsed = self._clock() - data.timestamp
        return elapsed < self._config.window_seconds and data.count > self._config.max_searches

    def should_show_donation_prompt(
        self, context: Union[DonationContext, str] = DonationContext.SEARCH
    ) -> bool:
        """
        Decide whether the donation prompt should be offered.

        Regular searches qualify once the counter reaches the threshold; bulk
        valuations qualify unconditionally. Either is offered once per session.
        """
        context = self._context_value(context)
        if context is None:
            return False

        if self._session.get_item(DONATION_SHOWN_KEY.format(context=context)):
            return False

        if context == DonationContext.SEARCH.value:
            return self.get_search_count() >= self._config.donation_threshold

        return context == DonationContext.BULK.value

    def mark_donation_prompt_shown(
        self, context: Union[DonationContext, str] = DonationContext.SEARCH
    ) -> None:
        context = self._context_value(context)
        if context is None:
            return
        self._session.set_item(DONATION_SHOWN_KEY.format(context=context), "true")

    def reset_search_count(self) -> None:
        self._persistent.remove_item(SEARCH_COUNT_KEY)
        self.clear_search_history()

    def clear_all_data(self) -> None:
        self.reset_search_count()

    def clear_search_history(self) -> None:
        self._persistent.remove_item(SEARCH_DATA_KEY)
        for key in LEGACY_HISTORY_KEYS:
            self._persistent.remove_item(key)

    def get_search_stats(self) -> dict:
        """Summary suitable for display; contains no domain data."""
        return {
            "totalSearches": self.get_search_count(),
            "isUnlimited": True,
            "lastSearchDate": None,
        }

    @staticmethod
    def _context_value(context: Union[DonationContext, str]) -> Optional[str]:
        if isinstance(context, DonationContext):
            return context.value
        try:
            return DonationContext(context).value
        except ValueError:
            return None

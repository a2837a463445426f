"""
Valuation Service for front ends.

This module coordinates the components a search form needs:
- Sanitization and validation of single domains and bulk input
- Client-side rate limiting and search recording
- Cached, retried requests through the ValuationClient
- Classification of failures into user-facing messages
- Donation prompt gating and a short in-memory search history

Validation problems and request failures are returned inside the outcome
objects rather than raised, so callers can always render something.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union

from .audit_logger import AuditLogger
from .domain_validator import (
    ValidationResult,
    check_domain,
    normalize_domain,
    parse_domain_input,
    validate_domain_list,
)
from .enums import DonationContext, ErrorType
from .error_handler import ApiErrorInfo, handle_api_error
from .exceptions import DomainValuationError
from .rate_limiter import RateLimiter
from .search_tracker import SearchTracker
from .valuation_client import ValuationClient


COMPONENT = "valuation_service"

DEFAULT_HISTORY_SIZE = 10

EMPTY_BULK_MESSAGE = "Please enter at least one domain"
NO_VALID_DOMAINS_MESSAGE = "No valid domains found. Please check your input."
TOO_MANY_REQUESTS_MESSAGE = "Too many requests. Please wait a moment before trying again."


@dataclass
class SearchOutcome:
    """Outcome of a single-domain search."""

    domain: Optional[str]
    data: Optional[Any] = None
    error: Optional[ApiErrorInfo] = None
    show_donation_prompt: bool = False

    @property
    def success(self) -> bool:
        return self.error is None and self.data is not None


@dataclass
class BulkSearchOutcome:
    """Outcome of a bulk search."""

    results: list[Any] = field(default_factory=list)
    validation: Optional[ValidationResult] = None
    error: Optional[ApiErrorInfo] = None
    notice: Optional[str] = None
    show_donation_prompt: bool = False

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class HistoryEntry:
    """A completed search kept in the session history."""

    domains: list[str]
    results: Any
    timestamp: datetime
    is_bulk: bool = False


class ValuationService:
    """
    UI-facing orchestration of validation, tracking and valuation requests.

    The client, tracker and optional limiter are created once per session
    and passed in, so several services may share them.
    """

    def __init__(
        self,
        client: ValuationClient,
        tracker: SearchTracker,
        rate_limiter: Optional[RateLimiter] = None,
        logger: Optional[AuditLogger] = None,
        history_size: int = DEFAULT_HISTORY_SIZE,
        client_id: str = "local",
    ) -> None:
        """
        Initialize the valuation service.

        Args:
            client: Valuation client used for requests
            tracker: Search tracker for counts, rate limits and donation prompts
            rate_limiter: Optional sliding-window limiter applied to every search
            logger: Optional audit logger
            history_size: Number of searches kept in the history
            client_id: Key under which the sliding-window limiter counts requests
        """
        self._client = client
        self._tracker = tracker
        self._rate_limiter = rate_limiter
        self._logger = logger
        self._client_id = client_id
        self._history: deque[HistoryEntry] = deque(maxlen=history_size)

    @property
    def tracker(self) -> SearchTracker:
        return self._tracker

    def _rate_limited(self) -> bool:
        if self._tracker.is_rate_limited():
            return True
        if self._rate_limiter is not None and not self._rate_limiter.is_allowed(self._client_id):
            return True
        return False

    def _remember(self, domains: list[str], results: Any, is_bulk: bool) -> None:
        self._history.appendleft(HistoryEntry(
            domains=domains,
            results=results,
            timestamp=datetime.now(timezone.utc),
            is_bulk=is_bulk,
        ))

    async def search_domain(self, raw_domain: Any) -> SearchOutcome:
        """
        Validate and value a single domain.

        Args:
            raw_domain: Domain as typed by the user

        Returns:
            SearchOutcome with the payload or a classified error
        """
        checked = check_domain(raw_domain)
        if not checked.valid:
            if self._logger:
                self._logger.info(COMPONENT, "Rejected domain input", {
                    "code": checked.error.code.value,
                })
            return SearchOutcome(
                domain=None,
                error=ApiErrorInfo(message=checked.error.message, type=ErrorType.VALIDATION),
            )

        domain = checked.canonical_domain

        if self._rate_limited():
            if self._logger:
                self._logger.warn(COMPONENT, "Search blocked by rate limit")
            return SearchOutcome(
                domain=domain,
                error=ApiErrorInfo(message=TOO_MANY_REQUESTS_MESSAGE, type=ErrorType.RATE_LIMIT),
            )

        self._tracker.record_search(domain)

        try:
            data = await self._client.get_single(domain)
        except DomainValuationError as e:
            return SearchOutcome(domain=domain, error=handle_api_error(e))

        show_prompt = self._tracker.should_show_donation_prompt(DonationContext.SEARCH)

        if isinstance(data, dict) and data.get("error"):
            return SearchOutcome(
                domain=domain,
                error=ApiErrorInfo(message=str(data["error"]), type=ErrorType.SERVER),
                show_donation_prompt=show_prompt,
            )

        self._remember([domain], data, is_bulk=False)
        return SearchOutcome(domain=domain, data=data, show_donation_prompt=show_prompt)

    async def search_bulk(self, raw_input: Union[str, list[str]]) -> BulkSearchOutcome:
        """
        Validate and value a batch of domains.

        Args:
            raw_input: Newline-separated text or a list of raw domains

        Returns:
            BulkSearchOutcome with the results, the validation summary and a
            notice when invalid entries were skipped
        """
        if isinstance(raw_input, str):
            domains = parse_domain_input(raw_input)
            if not domains:
                return BulkSearchOutcome(
                    error=ApiErrorInfo(message=EMPTY_BULK_MESSAGE, type=ErrorType.VALIDATION),
                )
        else:
            domains = raw_input

        validation = validate_domain_list(domains)
        if not validation.valid:
            return BulkSearchOutcome(
                validation=validation,
                error=ApiErrorInfo(
                    message=validation.error or NO_VALID_DOMAINS_MESSAGE,
                    type=ErrorType.VALIDATION,
                ),
            )

        notice = None
        if validation.total_invalid > 0:
            notice = f"{validation.total_invalid} invalid domains found and will be skipped."
            if self._logger:
                self._logger.info(COMPONENT, "Skipping invalid bulk entries", {
                    "invalid": validation.total_invalid,
                })

        if self._rate_limiter is not None and not self._rate_limiter.is_allowed(self._client_id):
            return BulkSearchOutcome(
                validation=validation,
                error=ApiErrorInfo(message=TOO_MANY_REQUESTS_MESSAGE, type=ErrorType.RATE_LIMIT),
                notice=notice,
            )

        normalized = [normalize_domain(domain) for domain in validation.valid_domains]

        try:
            data = await self._client.get_bulk(normalized)
        except DomainValuationError as e:
            return BulkSearchOutcome(
                validation=validation,
                error=handle_api_error(e),
                notice=notice,
            )

        results = data["results"]
        self._remember(normalized, results, is_bulk=True)

        return BulkSearchOutcome(
            results=results,
            validation=validation,
            notice=notice,
            show_donation_prompt=self._tracker.should_show_donation_prompt(DonationContext.BULK),
        )

    def dismiss_donation_prompt(
        self, context: DonationContext = DonationContext.SEARCH
    ) -> None:
        self._tracker.mark_donation_prompt_shown(context)

    @property
    def history(self) -> list[HistoryEntry]:
        return list(self._history)

    def recent_searches(self, limit: int = 5) -> list[HistoryEntry]:
        return list(self._history)[:limit]

    def clear_history(self) -> None:
        self._history.clear()

"""
Tests for the Valuation Service.

The service is wired to a real ValuationClient over httpx.MockTransport and
to a SearchTracker backed by in-memory stores.
"""

import asyncio
import json
from io import StringIO

import httpx
from hypothesis import given, settings
from hypothesis import strategies as st

from domain_valuation.audit_logger import AuditLogger
from domain_valuation.config import ApiConfig, RateLimitRule, TrackerConfig
from domain_valuation.domain_validator import EMPTY_DOMAIN_MESSAGE, INVALID_DOMAIN_MESSAGE
from domain_valuation.enums import DonationContext, ErrorType
from domain_valuation.rate_limiter import RateLimiter
from domain_valuation.response_cache import ResponseCache
from domain_valuation.search_tracker import SearchTracker
from domain_valuation.service import (
    EMPTY_BULK_MESSAGE,
    NO_VALID_DOMAINS_MESSAGE,
    TOO_MANY_REQUESTS_MESSAGE,
    ValuationService,
)
from domain_valuation.storage import MemoryStore
from domain_valuation.valuation_client import BULK_PATH, WARMUP_PATH, ValuationClient


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def valuation_payload(domain: str) -> dict:
    return {"domain": domain, "valuation": {"estimatedValue": 1000, "brokerageValue": 1500}}


class Backend:
    """Valuation API double; ``override`` replaces the response for every POST."""

    def __init__(self, override=None) -> None:
        self.requests: list[httpx.Request] = []
        self.override = override

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == WARMUP_PATH:
            return httpx.Response(200)
        if self.override is not None:
            return self.override(request)
        body = json.loads(request.content)
        if request.url.path == BULK_PATH:
            return httpx.Response(200, json={
                "results": [valuation_payload(d) for d in body["domains"]],
            })
        return httpx.Response(200, json=valuation_payload(body["domain"]))

    def posts(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]


def run_with_service(backend: Backend, scenario, rate_limiter=None, tracker=None):
    """Build a service around ``backend`` and run ``scenario(service)``."""
    clock = FakeClock()
    tracker = tracker or SearchTracker(MemoryStore(), MemoryStore(), clock=clock)

    async def run():
        client = ValuationClient(
            config=ApiConfig(base_url="http://valuation.test"),
            cache=ResponseCache(clock=clock),
            transport=httpx.MockTransport(backend),
        )
        async with client:
            service = ValuationService(
                client,
                tracker,
                rate_limiter=rate_limiter,
                logger=AuditLogger(output_stream=StringIO()),
            )
            return await scenario(service)

    return asyncio.run(run())


class TestSingleSearch:
    def test_successful_search_uses_canonical_domain(self) -> None:
        backend = Backend()

        outcome = run_with_service(backend, lambda s: s.search_domain("  Example.COM "))

        assert outcome.success
        assert outcome.domain == "example.com"
        assert outcome.data == valuation_payload("example.com")
        assert json.loads(backend.posts()[0].content) == {"domain": "example.com"}

    @given(raw=st.sampled_from(["notadomain!!", "-bad.com", "a..b", "exa mple.com"]))
    @settings(max_examples=10)
    def test_invalid_domain_is_rejected_without_request(self, raw: str) -> None:
        backend = Backend()
        tracker = SearchTracker(MemoryStore(), MemoryStore(), clock=FakeClock())

        outcome = run_with_service(backend, lambda s: s.search_domain(raw), tracker=tracker)

        assert not outcome.success
        assert outcome.error.type == ErrorType.VALIDATION
        assert outcome.error.message == INVALID_DOMAIN_MESSAGE
        assert backend.requests == []
        assert tracker.get_search_count() == 0

    def test_empty_input(self) -> None:
        outcome = run_with_service(Backend(), lambda s: s.search_domain("   "))
        assert outcome.error.message == EMPTY_DOMAIN_MESSAGE

    def test_server_error_is_classified(self) -> None:
        backend = Backend(override=lambda request: httpx.Response(503))

        outcome = run_with_service(backend, lambda s: s.search_domain("example.com"))

        assert outcome.error.type == ErrorType.SERVER
        assert outcome.error.message == "Server error. Please try again later."

    def test_double_timeout_is_classified(self) -> None:
        def time_out(request):
            raise httpx.ReadTimeout("timed out", request=request)

        backend = Backend(override=time_out)

        outcome = run_with_service(backend, lambda s: s.search_domain("example.com"))

        assert outcome.error.type == ErrorType.TIMEOUT
        assert len(backend.posts()) == 2

    def test_redirect_loop_is_classified_as_network_error(self) -> None:
        backend = Backend(override=lambda request: httpx.Response(302, headers={"Location": "/api/value"}))

        outcome = run_with_service(backend, lambda s: s.search_domain("example.com"))

        assert not outcome.success
        assert outcome.error.type == ErrorType.NETWORK

    def test_error_payload_is_surfaced(self) -> None:
        backend = Backend(override=lambda request: httpx.Response(200, json={"error": "Lookup failed"}))

        outcome = run_with_service(backend, lambda s: s.search_domain("example.com"))

        assert outcome.error.type == ErrorType.SERVER
        assert outcome.error.message == "Lookup failed"


class TestRateLimiting:
    def test_tracker_limit_blocks_before_recording(self) -> None:
        backend = Backend()
        tracker = SearchTracker(MemoryStore(), MemoryStore(), clock=FakeClock())
        for i in range(11):
            tracker.record_search(f"d{i}.com")

        outcome = run_with_service(backend, lambda s: s.search_domain("example.com"), tracker=tracker)

        assert outcome.error.type == ErrorType.RATE_LIMIT
        assert outcome.error.message == TOO_MANY_REQUESTS_MESSAGE
        assert backend.requests == []
        assert tracker.get_search_count() == 11

    def test_sliding_window_limiter(self) -> None:
        backend = Backend()
        limiter = RateLimiter(RateLimitRule(max_requests=2, window_seconds=60), clock=FakeClock())

        async def scenario(service):
            return [await service.search_domain(f"d{i}.com") for i in range(3)]

        outcomes = run_with_service(backend, scenario, rate_limiter=limiter)

        assert [o.success for o in outcomes] == [True, True, False]
        assert outcomes[2].error.type == ErrorType.RATE_LIMIT
        assert len(backend.posts()) == 2


class TestDonationPrompt:
    def test_prompt_after_third_search_until_dismissed(self) -> None:
        async def scenario(service):
            flags = []
            for i in range(3):
                flags.append((await service.search_domain(f"d{i}.com")).show_donation_prompt)
            service.dismiss_donation_prompt()
            flags.append((await service.search_domain("d3.com")).show_donation_prompt)
            return flags

        assert run_with_service(Backend(), scenario) == [False, False, True, False]

    def test_bulk_always_prompts_once(self) -> None:
        async def scenario(service):
            first = await service.search_bulk("a.com")
            service.dismiss_donation_prompt(DonationContext.BULK)
            second = await service.search_bulk("b.com")
            return first.show_donation_prompt, second.show_donation_prompt

        assert run_with_service(Backend(), scenario) == (True, False)


class TestBulkSearch:
    def test_invalid_entries_are_skipped_with_notice(self) -> None:
        backend = Backend()

        outcome = run_with_service(
            backend,
            lambda s: s.search_bulk("Example.com\ngoogle.com\nnotadomain!!\n"),
        )

        assert outcome.success
        assert outcome.notice == "1 invalid domains found and will be skipped."
        assert outcome.validation.total_invalid == 1
        assert outcome.results == [valuation_payload("example.com"), valuation_payload("google.com")]
        assert json.loads(backend.posts()[0].content) == {"domains": ["example.com", "google.com"]}

    def test_empty_text(self) -> None:
        outcome = run_with_service(Backend(), lambda s: s.search_bulk("\n  \n"))
        assert outcome.error.message == EMPTY_BULK_MESSAGE

    def test_no_valid_domains(self) -> None:
        backend = Backend()
        outcome = run_with_service(backend, lambda s: s.search_bulk(["bad!!", "@@"]))

        assert outcome.error.type == ErrorType.VALIDATION
        assert outcome.error.message == NO_VALID_DOMAINS_MESSAGE
        assert backend.requests == []

    def test_too_many_domains(self) -> None:
        text = "\n".join(f"d{i}.com" for i in range(101))
        outcome = run_with_service(Backend(), lambda s: s.search_bulk(text))
        assert outcome.error.message == "Maximum 100 domains allowed"

    def test_bulk_failure_is_classified(self) -> None:
        backend = Backend(override=lambda request: httpx.Response(429))
        outcome = run_with_service(backend, lambda s: s.search_bulk(["a.com"]))
        assert outcome.error.type == ErrorType.RATE_LIMIT

    def test_single_search_reuses_bulk_results(self) -> None:
        backend = Backend()

        async def scenario(service):
            await service.search_bulk(["a.com", "b.com"])
            return await service.search_domain("A.com")

        outcome = run_with_service(backend, scenario)

        assert outcome.data == valuation_payload("a.com")
        assert [r.url.path for r in backend.posts()] == [BULK_PATH]


class TestHistory:
    def test_history_is_newest_first_and_bounded(self) -> None:
        async def scenario(service):
            for i in range(12):
                await service.search_domain(f"d{i}.com")
            return service.history, service.recent_searches()

        tracker = SearchTracker(
            MemoryStore(), MemoryStore(), config=TrackerConfig(max_searches=20), clock=FakeClock(),
        )

        history, recent = run_with_service(Backend(), scenario, tracker=tracker)

        assert len(history) == 10
        assert history[0].domains == ["d11.com"]
        assert [entry.domains[0] for entry in recent] == ["d11.com", "d10.com", "d9.com", "d8.com", "d7.com"]

    def test_failed_searches_are_not_recorded(self) -> None:
        async def scenario(service):
            await service.search_domain("bad!!")
            return service.history

        assert run_with_service(Backend(), scenario) == []

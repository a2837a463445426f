"""
Property-based tests for the Valuation Client module.

Requests are served by httpx.MockTransport so every test can count and
inspect the calls that reach the network.
"""

import asyncio
import json
from io import StringIO

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from domain_valuation.audit_logger import AuditLogger
from domain_valuation.config import ApiConfig
from domain_valuation.enums import LogLevel
from domain_valuation.exceptions import (
    HTTPStatusError,
    NetworkError,
    ProtocolError,
    RequestTimeoutError,
)
from domain_valuation.response_cache import ResponseCache
from domain_valuation.valuation_client import (
    BULK_PATH,
    SINGLE_PATH,
    WARMUP_PATH,
    ValuationClient,
)


BASE_URL = "http://valuation.test"


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


class RecordingBackend:
    """MockTransport handler that records requests and replays scripted responses."""

    def __init__(self, responses=None) -> None:
        self.requests: list[httpx.Request] = []
        self._responses = list(responses or [])

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._responses:
            outcome = self._responses.pop(0)
        else:
            outcome = self.default(request)
        if callable(outcome):
            outcome = outcome(request)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def default(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == WARMUP_PATH:
            return httpx.Response(200, json={"status": "ok"})
        body = json.loads(request.content)
        if request.url.path == BULK_PATH:
            return httpx.Response(200, json={
                "results": [valuation_payload(d) for d in body["domains"]],
            })
        return httpx.Response(200, json=valuation_payload(body["domain"]))

    def calls_to(self, path: str) -> int:
        return sum(1 for r in self.requests if r.url.path == path)


def valuation_payload(domain: str) -> dict:
    return {
        "domain": domain,
        "valuation": {
            "estimatedValue": 1200,
            "auctionValue": 800,
            "marketplaceValue": 1500,
            "brokerageValue": 2000,
        },
    }


def make_client(backend: RecordingBackend, clock=None, logger=None) -> ValuationClient:
    cache = ResponseCache(clock=clock or FakeClock())
    return ValuationClient(
        config=ApiConfig(base_url=BASE_URL),
        cache=cache,
        logger=logger,
        transport=httpx.MockTransport(backend),
    )


def read_timeout_of(request: httpx.Request) -> float:
    return request.extensions["timeout"]["read"]


def timeout_for(request: httpx.Request) -> httpx.TimeoutException:
    return httpx.ReadTimeout("timed out", request=request)


domain_strategy = st.from_regex(r"[a-z]{1,12}\.(com|net|org)", fullmatch=True)


class TestCacheIdempotenceProperty:
    """A fresh cached response is served without a network call."""

    @given(domain=domain_strategy)
    @settings(max_examples=30)
    def test_second_call_hits_cache(self, domain: str) -> None:
        backend = RecordingBackend()

        async def run_test():
            async with make_client(backend) as client:
                first = await client.get_single(domain)
                second = await client.get_single(domain)
            return first, second

        first, second = asyncio.run(run_test())

        assert first == second == valuation_payload(domain)
        assert backend.calls_to(SINGLE_PATH) == 1

    def test_expired_entry_triggers_new_request(self) -> None:
        backend = RecordingBackend()
        clock = FakeClock()

        async def run_test():
            async with make_client(backend, clock=clock) as client:
                await client.get_single("example.com")
                clock.now += 299
                await client.get_single("example.com")
                clock.now += 1
                await client.get_single("example.com")

        asyncio.run(run_test())

        assert backend.calls_to(SINGLE_PATH) == 2

    def test_error_payload_is_not_cached(self) -> None:
        backend = RecordingBackend([
            httpx.Response(200, json={"error": "Domain lookup failed"}),
        ])

        async def run_test():
            async with make_client(backend) as client:
                first = await client.get_single("example.com")
                second = await client.get_single("example.com")
            return first, second

        first, second = asyncio.run(run_test())

        assert first == {"error": "Domain lookup failed"}
        assert second == valuation_payload("example.com")
        assert backend.calls_to(SINGLE_PATH) == 2


class TestSingleRequestShape:
    def test_request_body_headers_and_timeout(self) -> None:
        backend = RecordingBackend()

        async def run_test():
            async with make_client(backend) as client:
                return await client.get_single("example.com")

        asyncio.run(run_test())

        request = backend.requests[0]
        assert request.method == "POST"
        assert request.url.path == SINGLE_PATH
        assert json.loads(request.content) == {"domain": "example.com"}
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["X-Requested-With"] == "XMLHttpRequest"
        assert request.headers["X-Client-Version"] == "2.0.0"
        assert read_timeout_of(request) == 18.0


class TestWarmUpRetryProperty:
    """A timed-out request triggers exactly one warm-up and one retry."""

    def test_timeout_then_success(self) -> None:
        backend = RecordingBackend([timeout_for])

        async def run_test():
            async with make_client(backend) as client:
                data = await client.get_single("example.com")
                cached = client.cache.get_fresh("example.com")
            return data, cached

        data, cached = asyncio.run(run_test())

        assert data == valuation_payload("example.com")
        assert cached is not None
        assert [r.url.path for r in backend.requests] == [SINGLE_PATH, WARMUP_PATH, SINGLE_PATH]
        assert [read_timeout_of(r) for r in backend.requests] == [18.0, 5.0, 15.0]

    def test_retry_timeout_is_propagated(self) -> None:
        backend = RecordingBackend([timeout_for, timeout_for, timeout_for])

        async def run_test():
            async with make_client(backend) as client:
                await client.get_single("example.com")

        with pytest.raises(RequestTimeoutError):
            asyncio.run(run_test())

        assert backend.calls_to(SINGLE_PATH) == 2
        assert backend.calls_to(WARMUP_PATH) == 1

    def test_failed_warm_up_does_not_stop_retry(self) -> None:
        backend = RecordingBackend([
            timeout_for,
            httpx.Response(503),
        ])

        async def run_test():
            async with make_client(backend) as client:
                return await client.get_single("example.com")

        assert asyncio.run(run_test()) == valuation_payload("example.com")
        assert backend.calls_to(WARMUP_PATH) == 1
        assert backend.calls_to(SINGLE_PATH) == 2

    def test_bulk_uses_bulk_timeouts(self) -> None:
        backend = RecordingBackend([timeout_for])

        async def run_test():
            async with make_client(backend) as client:
                return await client.get_bulk(["a.com", "b.com"])

        result = asyncio.run(run_test())

        assert len(result["results"]) == 2
        assert [read_timeout_of(r) for r in backend.requests] == [30.0, 5.0, 25.0]


class TestFailureMapping:
    @given(status=st.sampled_from([400, 404, 429, 500, 502, 503]))
    @settings(max_examples=12)
    def test_non_success_status_raises_without_retry(self, status: int) -> None:
        backend = RecordingBackend([httpx.Response(status, text="nope")])

        async def run_test():
            async with make_client(backend) as client:
                await client.get_single("example.com")

        with pytest.raises(HTTPStatusError) as exc_info:
            asyncio.run(run_test())

        assert exc_info.value.status == status
        assert str(exc_info.value) == f"HTTP error! status: {status}"
        assert len(backend.requests) == 1

    def test_connection_failure_raises_network_error(self) -> None:
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend = RecordingBackend([refuse])

        async def run_test():
            async with make_client(backend) as client:
                await client.get_single("example.com")

        with pytest.raises(NetworkError):
            asyncio.run(run_test())

        assert backend.calls_to(WARMUP_PATH) == 0

    def test_invalid_json_raises_protocol_error(self) -> None:
        backend = RecordingBackend([httpx.Response(200, text="<html>oops</html>")])

        async def run_test():
            async with make_client(backend) as client:
                await client.get_single("example.com")

        with pytest.raises(ProtocolError) as exc_info:
            asyncio.run(run_test())

        assert exc_info.value.code == "parse_error"

    def test_undecodable_body_raises_protocol_error(self) -> None:
        backend = RecordingBackend([
            httpx.Response(200, content=b"plain, not gzip", headers={"Content-Encoding": "gzip"}),
        ])

        async def run_test():
            async with make_client(backend) as client:
                await client.get_single("example.com")

        with pytest.raises(ProtocolError) as exc_info:
            asyncio.run(run_test())

        assert exc_info.value.code == "decode_error"
        assert backend.calls_to(WARMUP_PATH) == 0

    def test_redirect_loop_raises_network_error(self) -> None:
        requests: list[httpx.Request] = []

        def redirect(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(302, headers={"Location": SINGLE_PATH})

        async def run_test():
            client = ValuationClient(
                config=ApiConfig(base_url=BASE_URL),
                cache=ResponseCache(clock=FakeClock()),
                transport=httpx.MockTransport(redirect),
            )
            async with client:
                await client.get_single("example.com")

        with pytest.raises(NetworkError) as exc_info:
            asyncio.run(run_test())

        assert exc_info.value.code == "request_error"
        assert exc_info.value.details["cause"] == "TooManyRedirects"
        assert all(r.url.path == SINGLE_PATH for r in requests)

    def test_slow_response_hits_overall_deadline(self) -> None:
        async def stall(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, json=valuation_payload("example.com"))

        backend = RecordingBackend([stall, httpx.Response(200), stall])

        async def run_test():
            client = ValuationClient(
                config=ApiConfig(base_url=BASE_URL, single_timeout=0.05, single_retry_timeout=0.05),
                cache=ResponseCache(clock=FakeClock()),
                transport=httpx.MockTransport(backend),
            )
            async with client:
                await client.get_single("example.com")

        with pytest.raises(RequestTimeoutError):
            asyncio.run(run_test())

        assert backend.calls_to(SINGLE_PATH) == 2
        assert backend.calls_to(WARMUP_PATH) == 1

    def test_failure_is_logged(self) -> None:
        backend = RecordingBackend([httpx.Response(500)])
        logger = AuditLogger(output_stream=StringIO(), level=LogLevel.DEBUG)

        async def run_test():
            async with make_client(backend, logger=logger) as client:
                await client.get_single("example.com")

        with pytest.raises(HTTPStatusError):
            asyncio.run(run_test())

        errors = [e for e in logger.entries if e.level == LogLevel.ERROR]
        assert len(errors) == 1
        assert errors[0].data["response_status_code"] == 500
        assert errors[0].data["request_url"] == f"{BASE_URL}{SINGLE_PATH}"


class TestBulkPartialCacheProperty:
    """Only uncached domains are requested; cached results come first."""

    @given(
        domains=st.lists(domain_strategy, min_size=1, max_size=10, unique=True),
        data=st.data(),
    )
    @settings(max_examples=50)
    def test_only_uncached_domains_are_requested(self, domains: list[str], data) -> None:
        cached = data.draw(st.lists(st.sampled_from(domains), unique=True))
        uncached = [d for d in domains if d not in cached]
        backend = RecordingBackend()

        async def run_test():
            async with make_client(backend) as client:
                for domain in cached:
                    client.cache.set(domain, {"domain": domain, "cached": True})
                return await client.get_bulk(domains)

        result = asyncio.run(run_test())

        expected_cached = [{"domain": d, "cached": True} for d in domains if d in cached]
        expected_fetched = [valuation_payload(d) for d in uncached]
        assert result == {"results": expected_cached + expected_fetched}

        if uncached:
            assert backend.calls_to(BULK_PATH) == 1
            assert json.loads(backend.requests[0].content) == {"domains": uncached}
        else:
            assert backend.requests == []

    def test_bulk_results_populate_single_cache(self) -> None:
        backend = RecordingBackend()

        async def run_test():
            async with make_client(backend) as client:
                await client.get_bulk(["a.com", "b.com"])
                return await client.get_single("b.com")

        assert asyncio.run(run_test()) == valuation_payload("b.com")
        assert backend.calls_to(SINGLE_PATH) == 0
        assert backend.calls_to(BULK_PATH) == 1

    def test_bulk_error_items_are_not_cached(self) -> None:
        backend = RecordingBackend([
            httpx.Response(200, json={"results": [
                {"domain": "a.com", "error": "upstream failed"},
                valuation_payload("b.com"),
            ]}),
        ])

        async def run_test():
            async with make_client(backend) as client:
                await client.get_bulk(["a.com", "b.com"])
                cached = ("a.com" in client.cache, "b.com" in client.cache)
                return cached, await client.get_single("a.com")

        (a_cached, b_cached), single = asyncio.run(run_test())

        assert not a_cached
        assert b_cached
        assert single == valuation_payload("a.com")
        assert [r.url.path for r in backend.requests] == [BULK_PATH, SINGLE_PATH]

    def test_missing_results_list_raises_protocol_error(self) -> None:
        backend = RecordingBackend([
            httpx.Response(200, json={"valuations": []}),
        ])

        async def run_test():
            async with make_client(backend) as client:
                await client.get_bulk(["a.com"])

        with pytest.raises(ProtocolError) as exc_info:
            asyncio.run(run_test())

        assert exc_info.value.code == "unexpected_shape"

    def test_short_results_cache_matching_prefix(self) -> None:
        backend = RecordingBackend([
            httpx.Response(200, json={"results": [valuation_payload("a.com")]}),
        ])

        async def run_test():
            async with make_client(backend) as client:
                result = await client.get_bulk(["a.com", "b.com"])
                return result, "a.com" in client.cache, "b.com" in client.cache

        result, a_cached, b_cached = asyncio.run(run_test())

        assert result == {"results": [valuation_payload("a.com")]}
        assert a_cached
        assert not b_cached


class TestWarmUp:
    @given(status=st.sampled_from([200, 204]))
    @settings(max_examples=4)
    def test_success_status_returns_true(self, status: int) -> None:
        backend = RecordingBackend([httpx.Response(status)])

        async def run_test():
            async with make_client(backend) as client:
                return await client.warm_up_api()

        assert asyncio.run(run_test()) is True
        assert backend.requests[0].method == "GET"

    @given(status=st.sampled_from([404, 500, 503]))
    @settings(max_examples=6)
    def test_error_status_returns_false(self, status: int) -> None:
        backend = RecordingBackend([httpx.Response(status)])

        async def run_test():
            async with make_client(backend) as client:
                return await client.warm_up_api()

        assert asyncio.run(run_test()) is False

    def test_transport_failures_return_false(self) -> None:
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        def explode(request):
            raise RuntimeError("unexpected")

        backend = RecordingBackend([timeout_for, refuse, explode])

        async def run_test():
            async with make_client(backend) as client:
                return [await client.warm_up_api() for _ in range(3)]

        assert asyncio.run(run_test()) == [False, False, False]

"""
Valuation Client for the external domain valuation API.

This module provides an async client that:
- Serves fresh responses from the shared ResponseCache without network calls
- Sends single (POST /api/value) and batched (POST /api/bulk-value) requests
- Maps transport failures to RequestTimeoutError, NetworkError,
  HTTPStatusError and ProtocolError
- Retries a timed-out request once after a best-effort GET /warmup
"""

import asyncio
import time
from typing import Any, Optional

import httpx

from .audit_logger import AuditLogger
from .config import ApiConfig, RetryConfig
from .exceptions import (
    HTTPStatusError,
    NetworkError,
    ProtocolError,
    RequestTimeoutError,
)
from .response_cache import ResponseCache
from .retry_manager import RetryManager


COMPONENT = "valuation_client"

SINGLE_PATH = "/api/value"
BULK_PATH = "/api/bulk-value"
WARMUP_PATH = "/warmup"


def is_error_payload(data: Any) -> bool:
    """True for API payloads that report a failure; these are never cached."""
    return isinstance(data, dict) and bool(data.get("error"))


class ValuationClient:
    """
    Async client for single and bulk domain valuations.

    The cache is injected so one instance can be shared by every client
    created during a session.
    """

    def __init__(
        self,
        config: Optional[ApiConfig] = None,
        cache: Optional[ResponseCache] = None,
        retry_config: Optional[RetryConfig] = None,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the valuation client.

        Args:
            config: API base URL, headers and timeouts
            cache: Shared response cache (a private one is created if omitted)
            retry_config: Warm-up retry policy
            logger: Optional audit logger
            transport: Optional httpx transport (used by tests)
        """
        self._config = config or ApiConfig()
        self._cache = cache if cache is not None else ResponseCache()
        self._retry_manager = RetryManager(retry_config)
        self._logger = logger
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ValuationClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url.rstrip("/"),
                headers=self._config.headers,
                transport=self._transport,
                follow_redirects=True,
            )
        return self._client

    def _log(self, level: str, message: str, data: Optional[dict] = None) -> None:
        if self._logger is not None:
            getattr(self._logger, level)(COMPONENT, message, data)

    def _log_failure(self, message: str, error: Exception, path: str) -> None:
        if self._logger is not None:
            self._logger.log_error(
                COMPONENT,
                message,
                error=error,
                request_url=f"{self._config.base_url.rstrip('/')}{path}",
                response_status_code=getattr(error, "status", None),
            )

    async def _post_json(self, path: str, payload: dict, timeout: float) -> Any:
        """
        POST a JSON payload and return the decoded JSON body.

        ``timeout`` is a deadline for the whole exchange, body included; the
        same value also bounds each httpx phase.

        Raises:
            RequestTimeoutError: If the request exceeds ``timeout``
            NetworkError: If no HTTP response was received
            HTTPStatusError: On a non-2xx response
            ProtocolError: If the body cannot be decoded or is not valid JSON
        """
        client = self._ensure_client()
        start_time = time.perf_counter()

        try:
            response = await asyncio.wait_for(
                client.post(path, json=payload, timeout=timeout),
                timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise RequestTimeoutError(
                code="timeout",
                message=f"Request to {path} timed out after {timeout}s",
                details={"path": path, "timeout": timeout, "cause": type(e).__name__},
            )
        except httpx.TransportError as e:
            raise NetworkError(
                code="network_error",
                message=f"Network error while calling {path}: {e}",
                details={"path": path, "cause": type(e).__name__},
            )
        except httpx.DecodingError as e:
            raise ProtocolError(
                code="decode_error",
                message=f"Failed to decode response from {path}: {e}",
                details={"path": path},
            )
        except httpx.RequestError as e:
            # Redirect loops and other request failures without a usable response
            raise NetworkError(
                code="request_error",
                message=f"Request to {path} failed: {e}",
                details={"path": path, "cause": type(e).__name__},
            )

        elapsed_ms = (time.perf_counter() - start_time) * 1000

        if not response.is_success:
            raise HTTPStatusError(
                status=response.status_code,
                details={"path": path, "response_time_ms": elapsed_ms},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(
                code="parse_error",
                message=f"Failed to parse response from {path}: {e}",
                details={"path": path, "status": response.status_code},
            )

        self._log("debug", "Request completed", {
            "path": path,
            "status": response.status_code,
            "response_time_ms": round(elapsed_ms, 1),
        })
        return data

    async def warm_up_api(self) -> bool:
        """
        Wake the valuation backend with a lightweight GET.

        Returns:
            True only on a 2xx response; every failure yields False
        """
        client = self._ensure_client()
        try:
            response = await asyncio.wait_for(
                client.get(WARMUP_PATH, timeout=self._config.warmup_timeout),
                self._config.warmup_timeout,
            )
        except Exception as e:
            self._log("warn", "Warm-up request failed", {"error": str(e)})
            return False

        self._log("info", "Warm-up request finished", {"status": response.status_code})
        return response.is_success

    async def get_single(self, domain: str) -> Any:
        """
        Value a single domain, serving fresh cache hits without a request.

        Args:
            domain: Domain to value (canonical form recommended)

        Returns:
            The API payload, passed through unchanged

        Raises:
            RequestTimeoutError, NetworkError, HTTPStatusError, ProtocolError
        """
        cached = self._cache.get_fresh(domain)
        if cached is not None:
            self._log("debug", "Returning cached response", {"domain": domain})
            return cached.data

        async def attempt(timeout: float) -> Any:
            return await self._post_json(SINGLE_PATH, {"domain": domain}, timeout)

        try:
            data = await self._retry_manager.run(
                attempt,
                timeout=self._config.single_timeout,
                retry_timeout=self._config.single_retry_timeout,
                warm_up=self._warm_up_before_retry,
            )
        except Exception as e:
            self._log_failure("Single valuation failed", e, SINGLE_PATH)
            raise

        if is_error_payload(data):
            self._log("warn", "Valuation API returned an error payload", {
                "domain": domain,
                "api_error": data["error"],
            })
        else:
            self._cache.set(domain, data)

        return data

    async def get_bulk(self, domains: list[str]) -> dict:
        """
        Value several domains, requesting only those without a fresh cache entry.

        Cached results come first, followed by freshly fetched ones, so the
        output order can differ from the input order.

        Args:
            domains: Domains to value (canonical form recommended)

        Returns:
            ``{"results": [...]}``

        Raises:
            RequestTimeoutError, NetworkError, HTTPStatusError, ProtocolError
        """
        cached_results: list[Any] = []
        uncached_domains: list[str] = []

        for domain in domains:
            cached = self._cache.get_fresh(domain)
            if cached is not None:
                cached_results.append(cached.data)
            else:
                uncached_domains.append(domain)

        if not uncached_domains:
            self._log("debug", "All bulk domains served from cache", {"count": len(domains)})
            return {"results": cached_results}

        async def attempt(timeout: float) -> Any:
            return await self._post_json(BULK_PATH, {"domains": uncached_domains}, timeout)

        try:
            bulk_data = await self._retry_manager.run(
                attempt,
                timeout=self._config.bulk_timeout,
                retry_timeout=self._config.bulk_retry_timeout,
                warm_up=self._warm_up_before_retry,
            )
        except Exception as e:
            self._log_failure("Bulk valuation failed", e, BULK_PATH)
            raise

        fetched = bulk_data.get("results") if isinstance(bulk_data, dict) else None
        if not isinstance(fetched, list):
            keys = sorted(bulk_data) if isinstance(bulk_data, dict) else []
            error = ProtocolError(
                code="unexpected_shape",
                message="Bulk response does not contain a results list",
                details={"path": BULK_PATH, "keys": keys},
            )
            self._log_failure("Bulk valuation failed", error, BULK_PATH)
            raise error

        if len(fetched) != len(uncached_domains):
            self._log("warn", "Bulk response length differs from request", {
                "requested": len(uncached_domains),
                "received": len(fetched),
            })

        # Results are matched to request order by index
        for domain, result in zip(uncached_domains, fetched):
            if is_error_payload(result):
                self._log("warn", "Bulk result carries an error payload", {
                    "domain": domain,
                    "api_error": result["error"],
                })
                continue
            self._cache.set(domain, result)

        self._log("info", "Bulk valuation completed", {
            "cached": len(cached_results),
            "fetched": len(fetched),
        })
        return {"results": cached_results + fetched}

    async def _warm_up_before_retry(self) -> bool:
        self._log("warn", "Request timed out, warming up before retry")
        return await self.warm_up_api()

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

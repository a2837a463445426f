"""
Error classification for user-facing messages.

handle_api_error maps any exception raised while talking to the valuation
API onto a small set of categories, each with a fixed message. The mapping is
total: it always returns a value and never raises.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Optional

import httpx

from .enums import ErrorType
from .exceptions import (
    HTTPStatusError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    ValidationError,
)


MESSAGES = {
    ErrorType.TIMEOUT: "Request timeout. Please try again.",
    ErrorType.NETWORK: "Network error. Please check your connection.",
    ErrorType.RATE_LIMIT: "Rate limit exceeded. Please try again later.",
    ErrorType.SERVER: "Server error. Please try again later.",
    ErrorType.CLIENT: "Request could not be processed. Please check your input.",
    ErrorType.CONNECTION: "Unable to reach the valuation service. Please check your connection.",
    ErrorType.VALIDATION: "Please enter a valid domain name (e.g., example.com)",
    ErrorType.UNKNOWN: "An unexpected error occurred. Please try again.",
}

HTTP_STATUS_MARKER = re.compile(r"HTTP error!?\s*status:?\s*(\d{3})", re.IGNORECASE)
CONNECTION_MARKERS = ("Failed to fetch", "NetworkError")
TIMEOUT_ERROR_NAMES = ("AbortError", "TimeoutError")


@dataclass
class ApiErrorInfo:
    """User-facing description of a failure."""

    message: str
    type: ErrorType

    def to_dict(self) -> dict:
        return {"message": self.message, "type": self.type.value}


def _info(error_type: ErrorType) -> ApiErrorInfo:
    return ApiErrorInfo(message=MESSAGES[error_type], type=error_type)


def classify_status(status: int) -> ErrorType:
    """Map an HTTP status code onto an error category."""
    if status == 429:
        return ErrorType.RATE_LIMIT
    if status >= 500:
        return ErrorType.SERVER
    if 400 <= status < 500:
        return ErrorType.CLIENT
    return ErrorType.SERVER


def _status_from_message(message: str) -> Optional[int]:
    match = HTTP_STATUS_MARKER.search(message)
    return int(match.group(1)) if match else None


def handle_api_error(error: BaseException) -> ApiErrorInfo:
    """
    Classify an error raised by a valuation request.

    Args:
        error: The exception to classify

    Returns:
        ApiErrorInfo with a fixed message and an ErrorType
    """
    try:
        return _classify(error)
    except Exception:
        return _info(ErrorType.UNKNOWN)


def _classify(error: BaseException) -> ApiErrorInfo:
    message = str(error) if error is not None else ""

    if isinstance(error, (RequestTimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
        return _info(ErrorType.TIMEOUT)
    if type(error).__name__ in TIMEOUT_ERROR_NAMES:
        return _info(ErrorType.TIMEOUT)

    if isinstance(error, NetworkError):
        return _info(ErrorType.NETWORK)
    if isinstance(error, TypeError) and "fetch" in message:
        return _info(ErrorType.NETWORK)

    if isinstance(error, RateLimitError):
        return _info(ErrorType.RATE_LIMIT)

    if isinstance(error, HTTPStatusError):
        return _info(classify_status(error.status))
    status = _status_from_message(message)
    if status is not None:
        return _info(classify_status(status))

    if isinstance(error, (httpx.ConnectError, ConnectionError)):
        return _info(ErrorType.CONNECTION)
    if any(marker in message for marker in CONNECTION_MARKERS):
        return _info(ErrorType.CONNECTION)

    if isinstance(error, ValidationError):
        return _info(ErrorType.VALIDATION)

    return _info(ErrorType.UNKNOWN)

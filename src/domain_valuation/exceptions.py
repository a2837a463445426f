"""
Exception classes for the domain valuation client.

All exceptions inherit from DomainValuationError and carry a machine-readable
code, a human-readable message and optional structured details.
"""

from typing import Optional


class DomainValuationError(Exception):
    """Base exception for all domain valuation errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(DomainValuationError):
    """Raised when a domain or domain list cannot be accepted."""

    pass


class NetworkError(DomainValuationError):
    """Raised when a request fails before any HTTP response arrives."""

    pass


class RequestTimeoutError(DomainValuationError):
    """Raised when a request exceeds its timeout."""

    pass


class HTTPStatusError(DomainValuationError):
    """Raised when the valuation API answers with a non-2xx status."""

    def __init__(
        self,
        status: int,
        message: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        self.status = status
        super().__init__(
            code="http_error",
            message=message or f"HTTP error! status: {status}",
            details={"status": status, **(details or {})},
        )


class ProtocolError(DomainValuationError):
    """Raised when a 2xx response body is malformed (bad JSON, wrong shape)."""

    pass


class RateLimitError(DomainValuationError):
    """Raised when the client-side search limit is exceeded."""

    pass


class PersistenceError(DomainValuationError):
    """Raised when persistent storage cannot be read or written."""

    pass

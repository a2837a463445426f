"""
Enumeration types for the domain valuation client.

These enums provide type-safe constants for error categories, validation
error codes and configuration options throughout the package.
"""

from enum import Enum


class ErrorType(Enum):
    """User-facing failure categories produced by the error classifier."""

    TIMEOUT = "timeout"
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    CLIENT = "client"
    CONNECTION = "connection"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class DomainValidationErrorCode(Enum):
    """Error codes for single-domain validation failures."""

    EMPTY_INPUT = "empty_input"
    TOO_LONG = "too_long"
    INVALID_FORMAT = "invalid_format"
    IDNA_ERROR = "idna_error"


class DonationContext(Enum):
    """Places where the donation prompt can be offered."""

    SEARCH = "search"
    BULK = "bulk"

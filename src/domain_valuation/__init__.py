"""
Domain Valuation - Client-side request pipeline for a domain valuation API.

This package validates domain input, caches valuation responses, talks to the
valuation backend with a warm-up retry for cold starts, tracks local usage for
rate limiting and donation prompts, and classifies failures into user-facing
messages.
"""

__version__ = "0.1.0"
__author__ = "Domain Valuation Team"

from domain_valuation.exceptions import (
    DomainValuationError,
    ValidationError,
    NetworkError,
    RequestTimeoutError,
    HTTPStatusError,
    ProtocolError,
    RateLimitError,
    PersistenceError,
)
from domain_valuation.enums import (
    ErrorType,
    LogLevel,
    DomainValidationErrorCode,
    DonationContext,
)
from domain_valuation.config import (
    ApiConfig,
    RetryConfig,
    CacheConfig,
    TrackerConfig,
    RateLimitRule,
    PersistenceConfig,
    LoggingConfig,
    SystemConfig,
    ConfigValidationResult,
    load_config_from_env,
    validate_config,
)
from domain_valuation.audit_logger import (
    AuditLogger,
    LogEntry,
)
from domain_valuation.domain_validator import (
    ValidationResult,
    DomainValidationResult,
    DomainValidationError,
    sanitize_input,
    validate_domain,
    validate_domain_list,
    parse_domain_input,
    normalize_domain,
    check_domain,
)
from domain_valuation.storage import (
    KeyValueStore,
    MemoryStore,
    JsonFileStore,
)
from domain_valuation.search_tracker import (
    SearchTracker,
    SearchRecord,
)
from domain_valuation.rate_limiter import (
    RateLimiter,
    RateLimitStatus,
)
from domain_valuation.response_cache import (
    ResponseCache,
    CacheEntry,
)
from domain_valuation.retry_manager import (
    RetryManager,
    RetryResult,
)
from domain_valuation.valuation_client import (
    ValuationClient,
)
from domain_valuation.error_handler import (
    ApiErrorInfo,
    handle_api_error,
    classify_status,
)
from domain_valuation.formatters import (
    format_currency,
    format_date,
    format_domain,
    format_confidence,
    format_large_number,
)
from domain_valuation.export import (
    sort_by_value,
    results_to_csv,
    export_filename,
)
from domain_valuation.service import (
    ValuationService,
    SearchOutcome,
    BulkSearchOutcome,
    HistoryEntry,
)
from domain_valuation.cli import (
    main as cli_main,
    create_parser,
    load_config_from_file,
    save_config_to_file,
)

__all__ = [
    # Exceptions
    "DomainValuationError",
    "ValidationError",
    "NetworkError",
    "RequestTimeoutError",
    "HTTPStatusError",
    "ProtocolError",
    "RateLimitError",
    "PersistenceError",
    # Enums
    "ErrorType",
    "LogLevel",
    "DomainValidationErrorCode",
    "DonationContext",
    # Configuration
    "ApiConfig",
    "RetryConfig",
    "CacheConfig",
    "TrackerConfig",
    "RateLimitRule",
    "PersistenceConfig",
    "LoggingConfig",
    "SystemConfig",
    "ConfigValidationResult",
    "load_config_from_env",
    "validate_config",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Domain Validator
    "ValidationResult",
    "DomainValidationResult",
    "DomainValidationError",
    "sanitize_input",
    "validate_domain",
    "validate_domain_list",
    "parse_domain_input",
    "normalize_domain",
    "check_domain",
    # Storage
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    # Search Tracker
    "SearchTracker",
    "SearchRecord",
    # Rate Limiter
    "RateLimiter",
    "RateLimitStatus",
    # Response Cache
    "ResponseCache",
    "CacheEntry",
    # Retry Manager
    "RetryManager",
    "RetryResult",
    # Valuation Client
    "ValuationClient",
    # Error Handler
    "ApiErrorInfo",
    "handle_api_error",
    "classify_status",
    # Formatters
    "format_currency",
    "format_date",
    "format_domain",
    "format_confidence",
    "format_large_number",
    # Export
    "sort_by_value",
    "results_to_csv",
    "export_filename",
    # Service
    "ValuationService",
    "SearchOutcome",
    "BulkSearchOutcome",
    "HistoryEntry",
    # CLI
    "cli_main",
    "create_parser",
    "load_config_from_file",
    "save_config_to_file",
]

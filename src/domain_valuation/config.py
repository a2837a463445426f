"""
Configuration dataclasses for the domain valuation client.

This module defines every configuration structure used throughout the package
(API endpoint and timeouts, retry policy, cache, search tracking, rate
limiting, persistence and logging) and resolves them from the environment
once at startup.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv

from .exceptions import ValidationError


ENV_PREFIX = "DOMAIN_VALUATION_"

DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_STORAGE_PATH = Path.home() / ".domain_valuation" / "storage.json"

# Limits above this are rejected by validate_config
MAX_SAFE_SEARCHES_PER_MINUTE = 20


def _default_headers() -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "X-Requested-With": "XMLHttpRequest",
        "X-Client-Version": "2.0.0",
    }


@dataclass
class ApiConfig:
    """Valuation API endpoint and timeouts (seconds)."""

    base_url: str = DEFAULT_BASE_URL
    single_timeout: float = 18.0
    single_retry_timeout: float = 15.0
    bulk_timeout: float = 30.0
    bulk_retry_timeout: float = 25.0
    warmup_timeout: float = 5.0
    headers: dict[str, str] = field(default_factory=_default_headers)


@dataclass
class RetryConfig:
    """Warm-up retry behavior configuration."""

    retry_attempts: int = 1
    retry_delay_seconds: float = 0.0


@dataclass
class CacheConfig:
    """Response cache configuration."""

    duration_seconds: float = 300.0
    max_entries: Optional[int] = None


@dataclass
class TrackerConfig:
    """Search tracking and donation prompt configuration."""

    max_searches: int = 10
    window_seconds: float = 60.0
    donation_threshold: int = 3


@dataclass
class RateLimitRule:
    """A single sliding-window rate limit rule."""

    max_requests: int = 10
    window_seconds: float = 60.0


@dataclass
class PersistenceConfig:
    """Durable storage configuration."""

    storage_path: Path = DEFAULT_STORAGE_PATH


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    output_format: str = "text"  # 'json', 'text', 'both'


@dataclass
class SystemConfig:
    """Main configuration combining all sub-configurations."""

    api: ApiConfig = field(default_factory=ApiConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    rate_limit: Optional[RateLimitRule] = None
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


@dataclass
class ConfigValidationResult:
    """Result of configuration validation."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _env_value(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _env_value(env, name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(
            code="invalid_config",
            message=f"{ENV_PREFIX}{name} must be a number, got {raw!r}",
            details={"variable": ENV_PREFIX + name, "value": raw},
        )


def _env_int(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = _env_value(env, name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(
            code="invalid_config",
            message=f"{ENV_PREFIX}{name} must be an integer, got {raw!r}",
            details={"variable": ENV_PREFIX + name, "value": raw},
        )


def load_config_from_env(
    env: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[Path] = None,
) -> SystemConfig:
    """
    Build a SystemConfig from DOMAIN_VALUATION_* environment variables.

    When no mapping is passed, a .env file is loaded first (without
    overriding variables already set) and os.environ is used.

    Args:
        env: Optional mapping to read instead of the process environment
        dotenv_path: Optional explicit path to a .env file

    Returns:
        SystemConfig with defaults for every unset variable

    Raises:
        ValidationError: If a numeric variable cannot be parsed
    """
    if env is None:
        load_dotenv(dotenv_path)
        env = os.environ

    defaults = ApiConfig()
    api = ApiConfig(
        base_url=_env_value(env, "API_BASE_URL") or defaults.base_url,
        single_timeout=_env_float(env, "SINGLE_TIMEOUT", defaults.single_timeout),
        single_retry_timeout=_env_float(
            env, "SINGLE_RETRY_TIMEOUT", defaults.single_retry_timeout
        ),
        bulk_timeout=_env_float(env, "BULK_TIMEOUT", defaults.bulk_timeout),
        bulk_retry_timeout=_env_float(env, "BULK_RETRY_TIMEOUT", defaults.bulk_retry_timeout),
        warmup_timeout=_env_float(env, "WARMUP_TIMEOUT", defaults.warmup_timeout),
    )

    retry = RetryConfig(
        retry_attempts=_env_int(env, "RETRY_ATTEMPTS", 1),
        retry_delay_seconds=_env_float(env, "RETRY_DELAY", 0.0),
    )

    cache = CacheConfig(
        duration_seconds=_env_float(env, "CACHE_DURATION", 300.0),
        max_entries=_env_int(env, "CACHE_MAX_ENTRIES", None),
    )

    tracker = TrackerConfig(
        max_searches=_env_int(env, "MAX_SEARCHES", 10),
        window_seconds=_env_float(env, "SEARCH_WINDOW", 60.0),
        donation_threshold=_env_int(env, "DONATION_THRESHOLD", 3),
    )

    storage_path = _env_value(env, "STORAGE_PATH")
    persistence = PersistenceConfig(
        storage_path=Path(storage_path) if storage_path else DEFAULT_STORAGE_PATH,
    )

    logging_config = LoggingConfig(
        level=(_env_value(env, "LOG_LEVEL") or "info").lower(),
        output_format=(_env_value(env, "LOG_FORMAT") or "text").lower(),
    )

    return SystemConfig(
        api=api,
        retry=retry,
        cache=cache,
        tracker=tracker,
        persistence=persistence,
        logging=logging_config,
    )


def validate_config(config: SystemConfig) -> ConfigValidationResult:
    """
    Validate a configuration before use.

    Checks:
    - The base URL is an absolute http(s) URL
    - All timeouts are positive, retry timeouts do not exceed first attempts
    - The search limit stays within the safe per-minute bound
    - Logging options are recognised

    Returns:
        ConfigValidationResult with validation status
    """
    errors: list[str] = []
    warnings: list[str] = []

    parsed = urlparse(config.api.base_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        errors.append(f"Invalid API base URL: {config.api.base_url}")
    elif parsed.scheme == "http" and parsed.hostname not in ("localhost", "127.0.0.1"):
        warnings.append("API base URL does not use HTTPS")

    timeouts = {
        "single_timeout": config.api.single_timeout,
        "single_retry_timeout": config.api.single_retry_timeout,
        "bulk_timeout": config.api.bulk_timeout,
        "bulk_retry_timeout": config.api.bulk_retry_timeout,
        "warmup_timeout": config.api.warmup_timeout,
    }
    for name, value in timeouts.items():
        if value <= 0:
            errors.append(f"{name} must be positive")

    if config.api.single_retry_timeout > config.api.single_timeout:
        warnings.append("single_retry_timeout is longer than single_timeout")
    if config.api.bulk_retry_timeout > config.api.bulk_timeout:
        warnings.append("bulk_retry_timeout is longer than bulk_timeout")

    if config.retry.retry_attempts < 0:
        errors.append("retry_attempts cannot be negative")
    elif config.retry.retry_attempts == 0:
        warnings.append("retry_attempts is 0 - timeouts will not be retried")

    if config.cache.duration_seconds < 0:
        errors.append("Cache duration cannot be negative")
    if config.cache.max_entries is not None and config.cache.max_entries < 1:
        errors.append("cache max_entries must be at least 1")

    per_minute = config.tracker.max_searches * 60.0 / max(config.tracker.window_seconds, 1e-9)
    if per_minute > MAX_SAFE_SEARCHES_PER_MINUTE:
        errors.append("Rate limit too high for security")

    if config.logging.output_format not in ("json", "text", "both"):
        errors.append(f"Unsupported log format: {config.logging.output_format}")
    if config.logging.level not in ("debug", "info", "warn", "error"):
        errors.append(f"Unsupported log level: {config.logging.level}")

    return ConfigValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )

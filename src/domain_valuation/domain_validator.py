"""
Domain validation and sanitization module.

Provides input sanitization, syntactic domain validation, bulk list
partitioning, and normalization to the canonical (lowercase, IDNA) form used
for cache keys and request payloads.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

import idna

from domain_valuation.enums import DomainValidationErrorCode
from domain_valuation.exceptions import ValidationError


MAX_DOMAIN_LENGTH = 253
MAX_BULK_DOMAINS = 100

# Labels of 1-63 alphanumerics/hyphens, no leading or trailing hyphen
DOMAIN_PATTERN = re.compile(
    r"[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?"
    r"(\.[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?)*",
    re.IGNORECASE | re.ASCII,
)

ANGLE_BRACKETS_PATTERN = re.compile(r"[<>]")
JAVASCRIPT_SCHEME_PATTERN = re.compile(r"javascript:", re.IGNORECASE)
EVENT_HANDLER_PATTERN = re.compile(r"on\w+=", re.IGNORECASE)

EMPTY_DOMAIN_MESSAGE = "Please enter a valid domain name"
INVALID_DOMAIN_MESSAGE = "Please enter a valid domain name (e.g., example.com)"


@dataclass
class DomainValidationError:
    """Structured error information for domain validation failures."""

    code: DomainValidationErrorCode
    message: str
    details: dict


@dataclass
class DomainValidationResult:
    """Result of validating a single domain."""

    valid: bool
    canonical_domain: Optional[str]
    error: Optional[DomainValidationError]


@dataclass
class ValidationResult:
    """Result of validating a list of domains for bulk valuation."""

    valid: bool
    valid_domains: list[str] = field(default_factory=list)
    invalid_domains: list[Any] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def total_valid(self) -> int:
        return len(self.valid_domains)

    @property
    def total_invalid(self) -> int:
        return len(self.invalid_domains)

    def to_dict(self) -> dict:
        """Render the camelCase shape consumed by front ends."""
        if self.error is not None:
            return {"valid": self.valid, "error": self.error}
        return {
            "valid": self.valid,
            "validDomains": list(self.valid_domains),
            "invalidDomains": list(self.invalid_domains),
            "totalValid": self.total_valid,
            "totalInvalid": self.total_invalid,
        }


def sanitize_input(raw: Any) -> str:
    """
    Strip markup and script injection patterns from user input.

    Removes angle brackets, ``javascript:`` schemes and inline event handler
    attributes, then trims whitespace. Never raises.

    Args:
        raw: Untrusted user input

    Returns:
        The sanitized string, or '' for non-string input
    """
    if not isinstance(raw, str):
        return ""

    cleaned = ANGLE_BRACKETS_PATTERN.sub("", raw)
    cleaned = JAVASCRIPT_SCHEME_PATTERN.sub("", cleaned)
    cleaned = EVENT_HANDLER_PATTERN.sub("", cleaned)
    return cleaned.strip()


def validate_domain(domain: Any) -> bool:
    """Return True iff ``domain`` is a syntactically valid domain name."""
    if not domain or not isinstance(domain, str):
        return False
    if len(domain) > MAX_DOMAIN_LENGTH:
        return False
    return DOMAIN_PATTERN.fullmatch(domain) is not None


def validate_domain_list(domains: Any) -> ValidationResult:
    """
    Validate a list of raw domains for a bulk valuation.

    Fails fast when the input is not a list, is empty, or holds more than
    MAX_BULK_DOMAINS entries. Otherwise every entry is sanitized and
    validated; duplicates and casing are preserved.

    Args:
        domains: List of raw domain strings

    Returns:
        ValidationResult partitioning the input into valid and invalid entries
    """
    if not isinstance(domains, (list, tuple)):
        return ValidationResult(valid=False, error="Invalid input format")

    if len(domains) == 0:
        return ValidationResult(valid=False, error="No domains provided")

    if len(domains) > MAX_BULK_DOMAINS:
        return ValidationResult(
            valid=False,
            error=f"Maximum {MAX_BULK_DOMAINS} domains allowed",
        )

    valid_domains: list[str] = []
    invalid_domains: list[Any] = []

    for domain in domains:
        clean_domain = sanitize_input(domain)
        if validate_domain(clean_domain):
            valid_domains.append(clean_domain)
        else:
            invalid_domains.append(domain)

    return ValidationResult(
        valid=len(valid_domains) > 0,
        valid_domains=valid_domains,
        invalid_domains=invalid_domains,
    )


def parse_domain_input(text: str) -> list[str]:
    """Split multi-line user input into trimmed, non-empty lines."""
    if not text:
        return []
    return [line.strip() for line in text.split("\n") if line.strip()]


def normalize_domain(domain: str) -> str:
    """
    Convert a domain to canonical form (sanitized, lowercase, IDNA-encoded).

    Args:
        domain: Domain string to normalize

    Returns:
        Canonical form of the domain

    Raises:
        ValidationError: If IDNA encoding fails
    """
    domain_lower = sanitize_input(domain).lower()

    if any(ord(c) > 127 for c in domain_lower):
        try:
            return idna.encode(domain_lower, uts46=True).decode("ascii")
        except idna.IDNAError as e:
            raise ValidationError(
                code=DomainValidationErrorCode.IDNA_ERROR.value,
                message=f"IDNA encoding failed: {e}",
                details={"domain": domain, "idna_error": str(e)},
            )

    return domain_lower


def check_domain(raw_domain: Any) -> DomainValidationResult:
    """
    Sanitize, normalize and validate a single domain from a search form.

    Args:
        raw_domain: The raw user input

    Returns:
        DomainValidationResult with the canonical domain or a structured error
    """
    clean = sanitize_input(raw_domain)
    if not clean:
        return DomainValidationResult(
            valid=False,
            canonical_domain=None,
            error=DomainValidationError(
                code=DomainValidationErrorCode.EMPTY_INPUT,
                message=EMPTY_DOMAIN_MESSAGE,
                details={"raw_input": raw_domain},
            ),
        )

    try:
        canonical = normalize_domain(clean)
    except ValidationError as e:
        return DomainValidationResult(
            valid=False,
            canonical_domain=None,
            error=DomainValidationError(
                code=DomainValidationErrorCode.IDNA_ERROR,
                message=INVALID_DOMAIN_MESSAGE,
                details=e.details,
            ),
        )

    if len(canonical) > MAX_DOMAIN_LENGTH:
        return DomainValidationResult(
            valid=False,
            canonical_domain=None,
            error=DomainValidationError(
                code=DomainValidationErrorCode.TOO_LONG,
                message=INVALID_DOMAIN_MESSAGE,
                details={"raw_input": raw_domain, "length": len(canonical)},
            ),
        )

    if not validate_domain(canonical):
        return DomainValidationResult(
            valid=False,
            canonical_domain=None,
            error=DomainValidationError(
                code=DomainValidationErrorCode.INVALID_FORMAT,
                message=INVALID_DOMAIN_MESSAGE,
                details={"raw_input": raw_domain, "sanitized": clean},
            ),
        )

    return DomainValidationResult(
        valid=True,
        canonical_domain=canonical,
        error=None,
    )

"""Display formatting helpers for valuation results."""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional, Union

NOT_AVAILABLE = "N/A"


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def _round_half_up(number: Decimal) -> int:
    return int(number.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_currency(amount: Any) -> str:
    """Format an amount as whole US dollars, e.g. ``$12,500``; 0 or missing gives N/A."""
    number = _to_decimal(amount)
    if number is None or number == 0:
        return NOT_AVAILABLE

    rounded = _round_half_up(number)
    sign = "-" if rounded < 0 else ""
    return f"{sign}${abs(rounded):,}"


def format_date(value: Union[str, date, datetime, None]) -> str:
    """Format a date as ``Oct 19, 2026``."""
    if not value:
        return NOT_AVAILABLE

    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return NOT_AVAILABLE

    return f"{value:%b} {value.day}, {value.year}"


def format_domain(domain: Optional[str]) -> str:
    if not domain:
        return ""
    return domain.lower().strip()


def format_confidence(confidence: Any) -> str:
    """Format a 0-100 confidence value as a whole percentage."""
    number = _to_decimal(confidence)
    if number is None or number == 0:
        return NOT_AVAILABLE
    return f"{_round_half_up(number)}%"


def format_large_number(num: Any) -> str:
    """Abbreviate large numbers with K, M and B suffixes."""
    number = _to_decimal(num)
    if number is None or number == 0:
        return "0"

    for threshold, suffix in (
        (Decimal(1_000_000_000), "B"),
        (Decimal(1_000_000), "M"),
        (Decimal(1_000), "K"),
    ):
        if number >= threshold:
            scaled = (number / threshold).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
            return f"{scaled}{suffix}"

    if number == number.to_integral_value():
        return str(int(number))
    return str(number)

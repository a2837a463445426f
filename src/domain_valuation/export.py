"""
Export of bulk valuation results.

Results are the opaque payloads returned by the valuation API; only the
``domain`` field and the ``valuation`` sub-object are read here.
"""

import csv
import io
from datetime import date
from typing import Any, Iterable, Optional

from .formatters import format_currency


CSV_HEADER = [
    "Domain",
    "Estimated Value",
    "Auction Value",
    "Marketplace Value",
    "Brokerage Value",
]

VALUE_FIELDS = [
    "estimatedValue",
    "auctionValue",
    "marketplaceValue",
    "brokerageValue",
]


def _valuation_of(result: Any) -> dict:
    if not isinstance(result, dict):
        return {}
    valuation = result.get("valuation")
    return valuation if isinstance(valuation, dict) else {}


def _numeric(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def sort_by_value(
    results: Iterable[Any],
    field: str = "brokerageValue",
    descending: bool = True,
) -> list[Any]:
    """
    Sort results by one of the valuation fields.

    Missing or non-numeric values sort as 0. The sort is stable.
    """
    if field not in VALUE_FIELDS:
        raise ValueError(f"Unknown valuation field: {field}")
    return sorted(
        results,
        key=lambda result: _numeric(_valuation_of(result).get(field)),
        reverse=descending,
    )


def result_to_row(result: Any) -> list[str]:
    valuation = _valuation_of(result)
    domain = result.get("domain", "") if isinstance(result, dict) else ""
    return [str(domain or "")] + [
        format_currency(valuation.get(field)) for field in VALUE_FIELDS
    ]


def results_to_csv(results: Iterable[Any]) -> str:
    """Render results as CSV text with formatted currency columns."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for result in results:
        writer.writerow(result_to_row(result))
    return buffer.getvalue()


def export_filename(day: Optional[date] = None, extension: str = "csv") -> str:
    day = day or date.today()
    return f"domain-valuations-{day.isoformat()}.{extension}"

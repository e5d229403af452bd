"""Date parsing for upstream order and invoice payloads."""

from datetime import date, datetime
from typing import Any, Optional

from .exceptions import ReconciliationError

DATE_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%SZ",
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%d",
    "%d/%m/%Y",
]


def parse_date(raw: Any) -> Optional[date]:
    """Parse a calendar date from a payload value.

    Datetimes are reduced to their date; no timezone conversion happens
    here. Empty values and the all-zero placeholder some order exports use
    mean "no date".

    Args:
        raw: ``date``, ``datetime``, string or ``None``.

    Returns:
        Parsed date, or None when the value is absent.

    Raises:
        ReconciliationError: If a non-empty value cannot be parsed.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        raise ReconciliationError(f"Unsupported date value: {raw!r}")

    text = raw.strip()
    if not text or text.startswith("0000-00-00"):
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass

    raise ReconciliationError(
        f"Unable to parse date: {raw!r}. "
        f"Expected formats: YYYY-MM-DD or YYYY-MM-DD HH:MM:SS"
    )

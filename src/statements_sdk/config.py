"""Environment-driven configuration for the statements SDK."""

import os
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Australia/Sydney"
DEFAULT_TOLERANCE = Decimal("0.01")


def get_statement_timezone() -> ZoneInfo:
    """Return the timezone used to decide what "today" is for statements.

    Reads STATEMENT_TIMEZONE, falling back to Australia/Sydney when unset
    or unknown.
    """
    name = os.getenv("STATEMENT_TIMEZONE", DEFAULT_TIMEZONE)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown STATEMENT_TIMEZONE {name!r}, using {DEFAULT_TIMEZONE}")
        return ZoneInfo(DEFAULT_TIMEZONE)


def get_tolerance() -> Decimal:
    """Return the money comparison tolerance from RECONCILIATION_TOLERANCE."""
    raw = os.getenv("RECONCILIATION_TOLERANCE")
    if not raw:
        return DEFAULT_TOLERANCE
    try:
        tolerance = Decimal(raw)
    except InvalidOperation:
        logger.warning(f"Invalid RECONCILIATION_TOLERANCE {raw!r}, using {DEFAULT_TOLERANCE}")
        return DEFAULT_TOLERANCE
    if not tolerance.is_finite() or tolerance < 0:
        logger.warning(f"Invalid RECONCILIATION_TOLERANCE {raw!r}, using {DEFAULT_TOLERANCE}")
        return DEFAULT_TOLERANCE
    return tolerance


def get_api_key() -> str:
    """Return the API key expected by the HTTP layer, or an empty string."""
    return os.getenv("API_KEY", "")


def local_today() -> date:
    """Today's calendar date in the statement timezone."""
    return datetime.now(get_statement_timezone()).date()

"""Money parsing and formatting helpers.

Upstream payloads carry amounts as numbers, numeric strings, empty strings
or nothing at all. Everything is converted to ``Decimal`` here so that the
reconciler never compares floats.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .exceptions import ReconciliationError

ZERO = Decimal("0")
CENT = Decimal("0.01")
MONEY_TOLERANCE = CENT


def _coerce(raw: Any) -> Decimal:
    """Convert ``raw`` to a finite Decimal or raise InvalidOperation."""
    if isinstance(raw, bool):
        raise InvalidOperation(f"boolean is not an amount: {raw!r}")
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, int):
        value = Decimal(raw)
    elif isinstance(raw, float):
        # str() keeps 0.1 as 0.1 instead of its binary expansion
        value = Decimal(str(raw))
    elif isinstance(raw, str):
        cleaned = raw.strip().replace(",", "")
        if cleaned.startswith("$"):
            cleaned = cleaned[1:]
        elif cleaned.startswith("-$"):
            cleaned = "-" + cleaned[2:]
        value = Decimal(cleaned)
    else:
        raise InvalidOperation(f"unsupported amount type: {type(raw).__name__}")

    if not value.is_finite():
        raise InvalidOperation(f"amount is not finite: {raw!r}")
    return value


def parse_money_or_zero(raw: Any) -> Decimal:
    """Parse an amount, treating absent or non-numeric input as zero.

    This is the declared policy for order and invoice amounts coming from
    upstream systems: ``None``, ``""``, ``"abc"``, NaN and booleans all
    become ``Decimal("0")``.

    Args:
        raw: Value taken from an upstream payload.

    Returns:
        Decimal amount.
    """
    if raw is None:
        return ZERO
    try:
        return _coerce(raw)
    except (InvalidOperation, ValueError):
        return ZERO


def to_money(raw: Any) -> Decimal:
    """Parse an amount strictly.

    Raises:
        ReconciliationError: If the value is missing or not numeric.
    """
    if raw is None:
        raise ReconciliationError("Amount is required")
    try:
        return _coerce(raw)
    except (InvalidOperation, ValueError) as e:
        raise ReconciliationError(f"Invalid amount: {raw!r}") from e


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(raw: Any, symbol: bool = False) -> str:
    """Format an amount for display, e.g. ``1,234.50`` or ``$1,234.50``."""
    value = quantize_money(parse_money_or_zero(raw))
    formatted = f"{abs(value):,.2f}"
    sign = "-" if value < 0 else ""
    return f"{sign}${formatted}" if symbol else f"{sign}{formatted}"

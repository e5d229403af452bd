"""Exceptions raised by the reconciliation package."""


class ReconciliationError(ValueError):
    """Raised when reconciliation input violates the caller contract.

    Examples are a negative grand total, a due date that cannot be parsed,
    or an order payload that does not match its accounting record.
    """

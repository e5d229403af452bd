"""Balance reconciliation between order totals, payments and ledger records."""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

from .dates import parse_date
from .exceptions import ReconciliationError
from .models import (
    ExternalLedgerRecord,
    ExternalStatus,
    MonetaryOrder,
    PaymentStatus,
    ReconciliationResult,
)
from .money import MONEY_TOLERANCE, ZERO, to_money

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str, None]


def _check_grand_total(grand_total: Decimal, order_id: Optional[str] = None) -> None:
    if grand_total < 0:
        label = f" for order {order_id}" if order_id else ""
        raise ReconciliationError(f"Grand total{label} must not be negative: {grand_total}")


def compute_outstanding(order: MonetaryOrder) -> Decimal:
    """Grand total minus the sum of payments.

    The result is negative when the order is overpaid.

    Raises:
        ReconciliationError: If the order's grand total is negative.
    """
    _check_grand_total(order.grand_total, order.id)
    return order.grand_total - order.payments_sum


def classify_payment_status(
    grand_total: Any,
    payments_sum: Any,
    outstanding_amount: Any,
    tolerance: Decimal = MONEY_TOLERANCE,
) -> PaymentStatus:
    """Classify an order's payment state.

    Checks run in order and the first match wins:

    1. zero grand total -> ``free``
    2. outstanding within tolerance of zero -> ``paid``
    3. payments exceed the grand total -> ``overpaid``
    4. negative outstanding without overpayment -> ``indeterminate``
    5. some payment recorded -> ``partial``
    6. otherwise -> ``unpaid``

    Args:
        grand_total: Invoiced amount.
        payments_sum: Sum of recorded payments.
        outstanding_amount: Amount still owed; normally
            ``grand_total - payments_sum``.
        tolerance: Largest absolute outstanding still treated as settled.

    Returns:
        PaymentStatus for the order.
    """
    grand_total = to_money(grand_total)
    payments_sum = to_money(payments_sum)
    outstanding_amount = to_money(outstanding_amount)
    _check_grand_total(grand_total)

    if grand_total == ZERO:
        return PaymentStatus.FREE
    if abs(outstanding_amount) <= tolerance:
        return PaymentStatus.PAID
    if payments_sum > grand_total:
        return PaymentStatus.OVERPAID
    if outstanding_amount < ZERO:
        return PaymentStatus.INDETERMINATE
    if payments_sum > ZERO:
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID


def classify_external_status(
    total: Any = None,
    amount_paid: Any = None,
    amount_due: Any = None,
    tolerance: Decimal = MONEY_TOLERANCE,
) -> ExternalStatus:
    """Classify the accounting platform's view of an invoice.

    Passing no figures at all means the invoice was never exported. A
    figure left out while others are given counts as zero. An all-zero
    invoice is ``free``; that check runs before ``paid``, so zero figures
    never report ``paid``.
    """
    if total is None and amount_paid is None and amount_due is None:
        return ExternalStatus.NOT_EXPORTED

    total = to_money(total) if total is not None else ZERO
    amount_paid = to_money(amount_paid) if amount_paid is not None else ZERO
    amount_due = to_money(amount_due) if amount_due is not None else ZERO

    def settled(value: Decimal) -> bool:
        return abs(value) <= tolerance

    if settled(total) and settled(amount_paid) and settled(amount_due):
        return ExternalStatus.FREE
    if settled(total - amount_paid) and settled(amount_due):
        return ExternalStatus.PAID
    if not settled(total - amount_paid):
        return ExternalStatus.PARTIAL if amount_due > tolerance else ExternalStatus.OVERPAID
    return ExternalStatus.UNKNOWN


def detect_mismatch(
    outstanding_amount: Any,
    external_amount_due: Any,
    tolerance: Decimal = MONEY_TOLERANCE,
) -> bool:
    """True when the two amounts differ by more than ``tolerance``."""
    return abs(to_money(outstanding_amount) - to_money(external_amount_due)) > tolerance


def is_past_due(due_date: DateLike, today: DateLike) -> bool:
    """True iff ``due_date`` falls on a day strictly before ``today``.

    Both values are compared as calendar dates. ``today`` must already be
    resolved in the caller's timezone.

    Raises:
        ReconciliationError: If either value cannot be parsed, or ``today``
            is missing while a due date is given.
    """
    due = parse_date(due_date)
    if due is None:
        return False
    reference = parse_date(today)
    if reference is None:
        raise ReconciliationError("today is required to evaluate a due date")
    return due < reference


def aggregate_customer_balance(orders: Iterable[MonetaryOrder]) -> Decimal:
    """Sum the outstanding amounts of a customer's orders."""
    return sum((compute_outstanding(order) for order in orders), ZERO)


def reconcile_order(
    order: MonetaryOrder,
    external: Optional[ExternalLedgerRecord] = None,
    today: DateLike = None,
    tolerance: Decimal = MONEY_TOLERANCE,
    prefer_provided: bool = False,
) -> ReconciliationResult:
    """Derive every balance figure for one order.

    Args:
        order: Order from the order platform.
        external: Matching accounting record, if the order was exported.
        today: Reference date for the past-due flag. When omitted the
            order is never past due.
        tolerance: Money comparison tolerance.
        prefer_provided: Use the order's upstream-reported outstanding
            amount as the balance when present. The computed figure is
            still compared against it.

    Returns:
        ReconciliationResult for the order.
    """
    payments_sum = order.payments_sum
    computed_outstanding = compute_outstanding(order)

    outstanding = computed_outstanding
    discrepancy = False
    if order.provided_outstanding is not None:
        discrepancy = detect_mismatch(computed_outstanding, order.provided_outstanding, tolerance)
        if discrepancy:
            logger.warning(
                f"Outstanding discrepancy for order {order.id}: "
                f"calculated {computed_outstanding}, provided {order.provided_outstanding}"
            )
        if prefer_provided:
            outstanding = order.provided_outstanding

    payment_status = classify_payment_status(
        order.grand_total, payments_sum, outstanding, tolerance
    )

    result = ReconciliationResult(
        order_id=order.id,
        customer_username=order.customer_username,
        grand_total=order.grand_total,
        payments_sum=payments_sum,
        payment_count=len(order.payments),
        outstanding_amount=outstanding,
        payment_status=payment_status,
        provided_outstanding=order.provided_outstanding,
        outstanding_discrepancy=discrepancy,
        due_date=order.due_date,
        date_placed=order.date_placed,
        is_past_due=is_past_due(order.due_date, today) if today is not None else False,
    )

    if external is not None:
        result.exported_to_external = True
        result.external_total = external.total
        result.external_amount_paid = external.amount_paid
        result.external_amount_due = external.amount_due
        result.external_status = classify_external_status(
            external.total, external.amount_paid, external.amount_due, tolerance
        )
        result.difference = abs(outstanding - external.amount_due)
        result.balance_mismatch = detect_mismatch(outstanding, external.amount_due, tolerance)

    return result


class BalanceReconciler:
    """Reconciliation operations bound to a single tolerance."""

    def __init__(self, tolerance: Decimal = MONEY_TOLERANCE):
        """Initialize the reconciler.

        Args:
            tolerance: Largest absolute difference still treated as equal.
        """
        tolerance = to_money(tolerance)
        if tolerance < 0:
            raise ReconciliationError(f"Tolerance must not be negative: {tolerance}")
        self.tolerance = tolerance

    def amounts_match(self, a: Any, b: Any) -> bool:
        return not detect_mismatch(a, b, self.tolerance)

    def classify_payment_status(
        self, grand_total: Any, payments_sum: Any, outstanding_amount: Any
    ) -> PaymentStatus:
        return classify_payment_status(grand_total, payments_sum, outstanding_amount, self.tolerance)

    def classify_external_status(
        self, record: Optional[ExternalLedgerRecord]
    ) -> ExternalStatus:
        if record is None:
            return ExternalStatus.NOT_EXPORTED
        return classify_external_status(
            record.total, record.amount_paid, record.amount_due, self.tolerance
        )

    def detect_mismatch(self, outstanding_amount: Any, external_amount_due: Any) -> bool:
        return detect_mismatch(outstanding_amount, external_amount_due, self.tolerance)

    def reconcile(
        self,
        order: MonetaryOrder,
        external: Optional[ExternalLedgerRecord] = None,
        today: DateLike = None,
        prefer_provided: bool = False,
    ) -> ReconciliationResult:
        return reconcile_order(
            order,
            external=external,
            today=today,
            tolerance=self.tolerance,
            prefer_provided=prefer_provided,
        )

    def reconcile_many(
        self,
        orders: List[MonetaryOrder],
        externals: Optional[Dict[str, ExternalLedgerRecord]] = None,
        today: DateLike = None,
        prefer_provided: bool = False,
    ) -> List[ReconciliationResult]:
        """Reconcile a batch of orders.

        Args:
            orders: Orders to reconcile.
            externals: Accounting records keyed by order ID. Orders without
                an entry are treated as not exported.
            today: Reference date for past-due flags.
            prefer_provided: See ``reconcile_order``.

        Returns:
            One ReconciliationResult per order, in input order.
        """
        externals = externals or {}
        results = [
            self.reconcile(order, externals.get(order.id), today, prefer_provided)
            for order in orders
        ]

        mismatches = sum(1 for r in results if r.balance_mismatch)
        logger.info(
            f"Reconciled {len(results)} orders: "
            f"{sum(1 for r in results if r.exported_to_external)} exported, "
            f"{mismatches} balance mismatches"
        )
        return results

"""Per-customer statement assembly from reconciled orders."""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .exceptions import ReconciliationError
from .models import (
    BalanceSummary,
    CustomerBalanceRecord,
    CustomerStatement,
    MonetaryOrder,
    ReconciliationResult,
)
from .money import MONEY_TOLERANCE, ZERO, parse_money_or_zero
from .reconciler import BalanceReconciler, DateLike
from .sources import orders_from_statement_customer

logger = logging.getLogger(__name__)


def should_include_order(
    result: ReconciliationResult, tolerance: Decimal = MONEY_TOLERANCE
) -> bool:
    """False for free orders with nothing (or only a cent) left to pay."""
    return not (result.grand_total == ZERO and result.outstanding_amount <= tolerance)


def format_billing_name(billing_address: Optional[Dict[str, Any]]) -> Optional[str]:
    """Format ``"First Last (Company)"`` from a customer billing address.

    Falls back to the name alone, then the company alone, then None.
    """
    if not billing_address:
        return None

    parts = [
        (billing_address.get("BillFirstName") or "").strip(),
        (billing_address.get("BillLastName") or "").strip(),
    ]
    full_name = " ".join(part for part in parts if part)
    company = (billing_address.get("BillCompany") or "").strip()

    if full_name and company:
        return f"{full_name} ({company})"
    return full_name or company or None


def filter_customers_by_balance(customers: Any) -> List[Dict[str, Any]]:
    """Keep customers whose ``AccountBalance`` is strictly positive."""
    if not isinstance(customers, list):
        return []
    return [
        customer for customer in customers
        if parse_money_or_zero(customer.get("AccountBalance")) > ZERO
    ]


def statement_date_range(lines: Iterable[ReconciliationResult]) -> Optional[Tuple[date, date]]:
    """Earliest and latest due date across statement lines."""
    due_dates = [line.due_date for line in lines if line.due_date is not None]
    if not due_dates:
        return None
    return min(due_dates), max(due_dates)


def build_customer_statements(
    orders: Iterable[MonetaryOrder],
    today: DateLike,
    billing: Optional[Dict[str, Dict[str, Any]]] = None,
    usernames: Optional[Iterable[str]] = None,
    reconciler: Optional[BalanceReconciler] = None,
) -> List[CustomerStatement]:
    """Group orders into one statement per customer.

    Args:
        orders: Orders from the order platform.
        today: Reference date for past-due flags.
        billing: Customer records keyed by username, carrying
            ``BillingAddress`` and ``EmailAddress``.
        usernames: If given, only these customers get statements.
        reconciler: Reconciler to use; defaults to the standard tolerance.

    Returns:
        Statements in order of each customer's first appearance.
    """
    reconciler = reconciler or BalanceReconciler()
    billing = billing or {}
    allowed = set(usernames) if usernames is not None else None
    statements: Dict[str, CustomerStatement] = {}
    skipped = 0

    for order in orders:
        username = order.customer_username
        if not username or (allowed is not None and username not in allowed):
            continue

        result = reconciler.reconcile(order, today=today)
        if not should_include_order(result, reconciler.tolerance):
            skipped += 1
            continue

        statement = statements.get(username)
        if statement is None:
            customer = billing.get(username) or {}
            statement = CustomerStatement(
                customer_username=username,
                email=customer.get("EmailAddress") or order.email or "",
                billing_name=format_billing_name(customer.get("BillingAddress")),
            )
            statements[username] = statement

        statement.total_orders += 1
        statement.total_balance += result.outstanding_amount
        if result.is_past_due:
            statement.due_invoice_balance += result.outstanding_amount
        statement.lines.append(result)

    for statement in statements.values():
        statement.lines.sort(key=lambda line: line.date_placed or date.min)
        statement.date_range = statement_date_range(statement.lines)

    logger.info(
        f"Built {len(statements)} customer statements "
        f"({skipped} free orders skipped)"
    )
    return list(statements.values())


def summarize_customer_balances(
    customers: List[Dict[str, Any]],
    today: DateLike = None,
    reconciler: Optional[BalanceReconciler] = None,
    checked_at: Optional[datetime] = None,
) -> BalanceSummary:
    """Compute each customer's outstanding balance for statement_of_accounts.

    An upstream-reported outstanding amount takes precedence over the
    computed one; disagreements beyond tolerance are collected in
    ``discrepant_orders``.

    Customers whose orders cannot be read (for example an unparseable
    due date) are logged and listed in ``failed_customers`` instead of
    failing the batch.

    Args:
        customers: Statement-check customer entries (see
            ``orders_from_statement_customer``).
        today: Reference date for past-due flags.
        reconciler: Reconciler to use; defaults to the standard tolerance.
        checked_at: Timestamp stored as ``last_check``.

    Returns:
        BalanceSummary with one record per customer.
    """
    reconciler = reconciler or BalanceReconciler()
    checked_at = checked_at or datetime.utcnow()
    summary = BalanceSummary()

    for customer in customers:
        username = customer.get("customer_username")
        if not username:
            logger.warning("Skipping customer entry without customer_username")
            continue

        try:
            orders = orders_from_statement_customer(customer)
            results = [
                reconciler.reconcile(order, today=today, prefer_provided=True)
                for order in orders
            ]
        except ReconciliationError as e:
            logger.warning(f"Skipping customer {username}: {e}")
            summary.failed_customers.append(username)
            continue

        if not results:
            logger.debug(f"Customer {username} has no orders")

        balance = ZERO
        for result in results:
            summary.total_orders += 1
            balance += result.outstanding_amount
            if result.outstanding_discrepancy:
                summary.discrepant_orders.append(result.order_id)
            logger.debug(
                f"Order {result.order_id} ({username}): total {result.grand_total}, "
                f"payments {result.payments_sum}, outstanding {result.outstanding_amount}, "
                f"status {result.payment_status.value}"
            )

        summary.records.append(CustomerBalanceRecord(
            customer_username=username,
            exists_in_statements_list=True,
            last_check=checked_at,
            last_invoice_balance=balance,
        ))

        if reconciler.amounts_match(balance, ZERO):
            summary.customers_with_zero_balance += 1
        else:
            summary.customers_with_balance += 1

    logger.info(
        f"Summarized {len(summary.records)} customers, {summary.total_orders} orders: "
        f"{summary.customers_with_balance} with balance, "
        f"{summary.customers_with_zero_balance} at zero, "
        f"{len(summary.failed_customers)} skipped"
    )
    return summary

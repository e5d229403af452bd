"""Balance reconciliation for orders, accounting invoices and statements.

This module compares what the order platform says a customer owes with
what the accounting platform has recorded, and keeps the statement list
in step with both.

Features:
- Outstanding balance and payment status for each order
- Accounting invoice status and balance mismatch detection
- Past-due flags against the statement timezone's calendar date
- Per-customer statements and statement_of_accounts synchronization
"""

from .exceptions import ReconciliationError
from .money import (
    MONEY_TOLERANCE,
    format_money,
    parse_money_or_zero,
    quantize_money,
    to_money,
)
from .dates import parse_date
from .models import (
    PaymentStatus,
    ExternalStatus,
    SyncStatus,
    MonetaryOrder,
    ExternalLedgerRecord,
    ReconciliationResult,
    CustomerStatement,
    CustomerBalanceRecord,
    BalanceSummary,
    StatementSyncReport,
)
from .reconciler import (
    BalanceReconciler,
    aggregate_customer_balance,
    classify_external_status,
    classify_payment_status,
    compute_outstanding,
    detect_mismatch,
    is_past_due,
    reconcile_order,
)
from .sources import (
    ledger_record_from_xero,
    order_from_maropost,
    orders_from_maropost_response,
    orders_from_statement_customer,
)
from .statements import (
    build_customer_statements,
    filter_customers_by_balance,
    format_billing_name,
    should_include_order,
    summarize_customer_balances,
)
from .service import ReconciliationService
from .report import ReportGenerator, comparison_payload, statement_to_dict

__all__ = [
    "ReconciliationError",
    # Money and dates
    "MONEY_TOLERANCE",
    "format_money",
    "parse_money_or_zero",
    "quantize_money",
    "to_money",
    "parse_date",
    # Models
    "PaymentStatus",
    "ExternalStatus",
    "SyncStatus",
    "MonetaryOrder",
    "ExternalLedgerRecord",
    "ReconciliationResult",
    "CustomerStatement",
    "CustomerBalanceRecord",
    "BalanceSummary",
    "StatementSyncReport",
    # Core Components
    "BalanceReconciler",
    "aggregate_customer_balance",
    "classify_external_status",
    "classify_payment_status",
    "compute_outstanding",
    "detect_mismatch",
    "is_past_due",
    "reconcile_order",
    # Payload adapters
    "ledger_record_from_xero",
    "order_from_maropost",
    "orders_from_maropost_response",
    "orders_from_statement_customer",
    # Statements
    "build_customer_statements",
    "filter_customers_by_balance",
    "format_billing_name",
    "should_include_order",
    "summarize_customer_balances",
    "ReconciliationService",
    "ReportGenerator",
    "comparison_payload",
    "statement_to_dict",
]

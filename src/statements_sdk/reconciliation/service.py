"""Service layer for reconciliation operations."""

import uuid
import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_tolerance, local_today
from ..database.repository import (
    OrderReconciliationRepository,
    StatementOfAccountRepository,
)
from .exceptions import ReconciliationError
from .models import (
    CustomerStatement,
    ReconciliationResult,
    StatementSyncReport,
    SyncStatus,
)
from .reconciler import BalanceReconciler
from .report import ReportGenerator
from .sources import (
    ledger_record_from_xero,
    order_from_maropost,
    orders_from_maropost_response,
)
from .statements import (
    build_customer_statements,
    filter_customers_by_balance,
    summarize_customer_balances,
)

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Service for reconciling orders and synchronizing statement balances."""

    def __init__(
        self,
        session: Optional[AsyncSession] = None,
        reconciler: Optional[BalanceReconciler] = None,
        today_provider: Optional[Callable[[], date]] = None,
    ):
        """Initialize the reconciliation service.

        Args:
            session: Async database session. Without one nothing is persisted.
            reconciler: Reconciler instance. Defaults to the configured tolerance.
            today_provider: Callable returning today's date. Defaults to the
                configured statement timezone.
        """
        self.session = session
        self.reconciler = reconciler or BalanceReconciler(get_tolerance())
        self._today_provider = today_provider or local_today

    def today(self) -> date:
        return self._today_provider()

    async def reconcile_order_payload(
        self,
        maropost_data: Optional[Dict[str, Any]],
        xero_data: Optional[Dict[str, Any]] = None,
        save: bool = True,
    ) -> ReconciliationResult:
        """Reconcile one order against its accounting invoice.

        Args:
            maropost_data: Order platform response holding an ``Order`` list.
            xero_data: Accounting lookup response (``invoices``,
                ``foundCount``, ``requestedItems``), if any.
            save: Persist a snapshot when a session is configured.

        Returns:
            ReconciliationResult for the first order in the payload.

        Raises:
            ReconciliationError: If the order payload is missing or refers to
                a different order than the accounting lookup.
        """
        orders = (maropost_data or {}).get("Order")
        if not isinstance(orders, list) or not orders:
            raise ReconciliationError("Invalid order payload: Order array is required")

        raw_order = orders[0]
        order = order_from_maropost(raw_order)

        requested = (xero_data or {}).get("requestedItems") or []
        if requested and str(requested[0]) != order.id:
            raise ReconciliationError(
                f"OrderID mismatch between order and accounting data: "
                f"expected {requested[0]}, received {order.id}"
            )

        external = ledger_record_from_xero(xero_data)
        result = self.reconciler.reconcile(order, external=external, today=self.today())

        if result.balance_mismatch:
            logger.warning(
                f"Balance mismatch for order {order.id}: outstanding "
                f"{result.outstanding_amount}, accounting amount due {result.external_amount_due}"
            )
        else:
            logger.info(
                f"Order {order.id} reconciled: {result.payment_status.value}, "
                f"accounting {result.external_status.value}"
            )

        if save and self.session is not None:
            await OrderReconciliationRepository(self.session).save(
                result, email=order.email, order_status=order.order_status
            )

        return result

    async def sync_statement_balances(
        self,
        statement_payload: Optional[Dict[str, Any]],
        db_save: bool = True,
        limit: Optional[int] = None,
    ) -> StatementSyncReport:
        """Recompute customer balances and store them in statement_of_accounts.

        Customers already stored but missing from the payload are marked as
        no longer on the statement list.

        Args:
            statement_payload: Statement-check response (``success``,
                ``customers``).
            db_save: Persist the records; requires a session.
            limit: Only process the first ``limit`` customers.

        Returns:
            StatementSyncReport with counts, or a failed report carrying the
            error message.
        """
        report = StatementSyncReport(
            id=str(uuid.uuid4()),
            status=SyncStatus.IN_PROGRESS,
            db_save=db_save,
            created_at=datetime.utcnow(),
        )

        logger.info(f"Starting statement sync {report.id} (db_save={db_save}, limit={limit})")

        try:
            payload = statement_payload or {}
            customers = payload.get("customers")
            if not payload.get("success") or not isinstance(customers, list):
                raise ReconciliationError("Invalid statement payload: customers list is required")

            report.customers_received = len(customers)
            if limit is not None:
                customers = customers[:limit]
            report.customers_processed = len(customers)

            checked_at = datetime.utcnow()
            summary = summarize_customer_balances(
                customers,
                today=self.today(),
                reconciler=self.reconciler,
                checked_at=checked_at,
            )

            report.records = summary.records
            report.records_prepared = len(summary.records)
            report.orders_processed = summary.total_orders
            report.customers_with_zero_balance = summary.customers_with_zero_balance
            report.customers_with_balance = summary.customers_with_balance
            report.discrepant_orders = summary.discrepant_orders
            report.failed_customers = summary.failed_customers

            if db_save:
                if self.session is None:
                    raise RuntimeError("Database session is required when db_save is enabled")

                repo = StatementOfAccountRepository(self.session)
                # Unreadable customers keep their stored row untouched
                current = {r.customer_username for r in summary.records}
                current.update(summary.failed_customers)
                stored = await repo.list_usernames()
                inactive = sorted(stored - current)

                report.customers_marked_inactive = await repo.mark_inactive(inactive, checked_at)
                saved = await repo.upsert_balances(summary.records)
                report.records_saved = len(saved)

            report.status = SyncStatus.COMPLETED
            report.completed_at = datetime.utcnow()

            logger.info(
                f"Statement sync {report.id} completed: "
                f"{report.records_prepared} prepared, "
                f"{report.records_saved} saved, "
                f"{report.customers_marked_inactive} marked inactive"
            )

        except Exception as e:
            logger.error(f"Statement sync {report.id} failed: {e}")
            if db_save and self.session is not None:
                await self.session.rollback()
            report.status = SyncStatus.FAILED
            report.error_message = str(e)
            report.completed_at = datetime.utcnow()

        return report

    def build_statements(
        self,
        orders_payload: Optional[Dict[str, Any]],
        customers: Optional[List[Dict[str, Any]]] = None,
    ) -> List[CustomerStatement]:
        """Build customer statements from an order platform response.

        Args:
            orders_payload: Order platform response holding an ``Order`` list.
            customers: Customer records (``Username``, ``AccountBalance``,
                ``BillingAddress``, ``EmailAddress``). When given, only
                customers with a positive account balance get statements.

        Returns:
            One CustomerStatement per customer with outstanding orders.
        """
        orders = orders_from_maropost_response(orders_payload)

        billing = None
        usernames = None
        if customers is not None:
            eligible = filter_customers_by_balance(customers)
            billing = {c["Username"]: c for c in eligible if c.get("Username")}
            usernames = set(billing)
            logger.info(
                f"{len(eligible)} of {len(customers)} customers have a positive account balance"
            )

        return build_customer_statements(
            orders,
            today=self.today(),
            billing=billing,
            usernames=usernames,
            reconciler=self.reconciler,
        )

    def generate_report(
        self,
        report: StatementSyncReport,
        format: str = "json",
        include_details: bool = True,
    ) -> str:
        """Generate a formatted report from a sync run.

        Args:
            report: StatementSyncReport to format.
            format: Output format ('json', 'csv', 'text').
            include_details: Include per-customer records (for JSON format).

        Returns:
            Formatted report string.
        """
        generator = ReportGenerator(report)

        if format == "json":
            return generator.to_json(include_details=include_details)
        elif format == "csv":
            return generator.to_csv()
        elif format == "text":
            return generator.to_summary_text()
        else:
            raise ValueError(f"Unsupported report format: {format}")

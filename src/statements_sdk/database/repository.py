"""Repository layer for statement persistence operations."""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Optional, Iterable, List, Set

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import StatementOfAccount, OrderReconciliation

if TYPE_CHECKING:
    from ..reconciliation.models import CustomerBalanceRecord, ReconciliationResult

logger = logging.getLogger(__name__)


class StatementOfAccountRepository:
    """Repository for statement_of_accounts rows."""

    def __init__(self, session: AsyncSession):
        """Initialize the repository with a database session.

        Args:
            session: AsyncSession instance for database operations.
        """
        self.session = session

    async def get_by_username(self, customer_username: str) -> Optional[StatementOfAccount]:
        """Get a customer's row by username.

        Args:
            customer_username: Order platform username.

        Returns:
            StatementOfAccount if found, None otherwise.
        """
        result = await self.session.execute(
            select(StatementOfAccount).where(
                StatementOfAccount.customer_username == customer_username
            )
        )
        return result.scalar_one_or_none()

    async def list_usernames(self) -> Set[str]:
        """Return every username stored in the table."""
        result = await self.session.execute(select(StatementOfAccount.customer_username))
        return set(result.scalars().all())

    async def list_active(self) -> List[StatementOfAccount]:
        """Rows still present on the statement list, ordered by username."""
        result = await self.session.execute(
            select(StatementOfAccount)
            .where(StatementOfAccount.exists_in_statements_list.is_(True))
            .order_by(StatementOfAccount.customer_username)
        )
        return list(result.scalars().all())

    async def upsert_balances(
        self,
        records: Iterable["CustomerBalanceRecord"],
    ) -> List[StatementOfAccount]:
        """Insert or update one row per record, keyed by customer_username.

        Args:
            records: Balance records to store.

        Returns:
            The stored rows, in input order.
        """
        records = list(records)
        if not records:
            return []

        usernames = [r.customer_username for r in records]
        result = await self.session.execute(
            select(StatementOfAccount).where(
                StatementOfAccount.customer_username.in_(usernames)
            )
        )
        existing = {row.customer_username: row for row in result.scalars().all()}

        stored: List[StatementOfAccount] = []
        inserted = 0
        for record in records:
            row = existing.get(record.customer_username)
            if row is None:
                row = StatementOfAccount(customer_username=record.customer_username)
                self.session.add(row)
                existing[record.customer_username] = row
                inserted += 1
            row.exists_in_statements_list = record.exists_in_statements_list
            row.last_check = record.last_check
            row.last_invoice_balance = record.last_invoice_balance
            row.updated_at = datetime.utcnow()
            stored.append(row)

        await self.session.flush()
        logger.info(
            f"Upserted {len(stored)} statement_of_accounts rows "
            f"({inserted} inserted, {len(stored) - inserted} updated)"
        )
        return stored

    async def mark_inactive(
        self,
        usernames: Iterable[str],
        checked_at: Optional[datetime] = None,
    ) -> int:
        """Flag customers as no longer on the statement list.

        Args:
            usernames: Usernames to flag.
            checked_at: Timestamp stored as last_check.

        Returns:
            Number of rows updated.
        """
        usernames = list(usernames)
        if not usernames:
            return 0

        result = await self.session.execute(
            update(StatementOfAccount)
            .where(StatementOfAccount.customer_username.in_(usernames))
            .values(
                exists_in_statements_list=False,
                last_check=checked_at or datetime.utcnow(),
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session="evaluate")
        )
        await self.session.flush()
        logger.info(f"Marked {result.rowcount} customers as inactive")
        return result.rowcount


class OrderReconciliationRepository:
    """Repository for per-order reconciliation snapshots."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_order_id(self, order_id: str) -> Optional[OrderReconciliation]:
        result = await self.session.execute(
            select(OrderReconciliation).where(OrderReconciliation.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def save(
        self,
        result: "ReconciliationResult",
        email: Optional[str] = None,
        order_status: Optional[str] = None,
    ) -> OrderReconciliation:
        """Store the latest reconciliation of an order, replacing any earlier one.

        Args:
            result: Reconciliation outcome.
            email: Customer email from the order payload.
            order_status: Order platform status.

        Returns:
            The stored snapshot.
        """
        snapshot = await self.get_by_order_id(result.order_id)
        if snapshot is None:
            snapshot = OrderReconciliation(order_id=result.order_id)
            self.session.add(snapshot)

        snapshot.customer_username = result.customer_username
        snapshot.email = email
        snapshot.order_status = order_status
        snapshot.grand_total = result.grand_total
        snapshot.payments_sum = result.payments_sum
        snapshot.payment_count = result.payment_count
        snapshot.outstanding_amount = result.outstanding_amount
        snapshot.payment_status = result.payment_status.value
        snapshot.date_payment_due = result.due_date
        snapshot.is_past_due = result.is_past_due
        snapshot.exported_to_external = result.exported_to_external
        snapshot.external_total = result.external_total
        snapshot.external_amount_paid = result.external_amount_paid
        snapshot.external_amount_due = result.external_amount_due
        snapshot.external_status = result.external_status.value
        snapshot.balance_mismatch = result.balance_mismatch
        snapshot.last_updated = datetime.utcnow()

        await self.session.flush()
        logger.info(
            f"Saved reconciliation for order {result.order_id}: "
            f"{result.payment_status.value}/{result.external_status.value}"
        )
        return snapshot

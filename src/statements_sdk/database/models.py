"""SQLAlchemy models for statement persistence."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Dict, Any

from sqlalchemy import (
    String,
    Boolean,
    Date,
    DateTime,
    Integer,
    Numeric,
    Index,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

MONEY = Numeric(12, 2, asdecimal=True)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class StatementOfAccount(Base):
    """One customer's entry on the statement list."""
    __tablename__ = "statement_of_accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    customer_username: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    exists_in_statements_list: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_check: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_invoice_balance: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_statement_of_accounts_exists", "exists_in_statements_list"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the row to a dictionary."""
        return {
            "id": self.id,
            "customer_username": self.customer_username,
            "exists_in_statements_list": self.exists_in_statements_list,
            "last_check": self.last_check.isoformat() if self.last_check else None,
            "last_invoice_balance": (
                str(self.last_invoice_balance) if self.last_invoice_balance is not None else None
            ),
        }


class OrderReconciliation(Base):
    """Snapshot of the latest reconciliation of one order."""
    __tablename__ = "order_reconciliations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    customer_username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    order_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Order platform figures
    grand_total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    payments_sum: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    payment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    outstanding_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False)
    date_payment_due: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_past_due: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Accounting platform figures
    exported_to_external: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    external_total: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    external_amount_paid: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    external_amount_due: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    external_status: Mapped[str] = mapped_column(String(20), nullable=False)
    balance_mismatch: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    last_updated: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_order_reconciliations_mismatch", "balance_mismatch"),
        Index("ix_order_reconciliations_payment_status", "payment_status"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the snapshot to a dictionary."""
        def money(value: Optional[Decimal]) -> Optional[str]:
            return str(value) if value is not None else None

        return {
            "order_id": self.order_id,
            "customer_username": self.customer_username,
            "email": self.email,
            "order_status": self.order_status,
            "grand_total": money(self.grand_total),
            "payments_sum": money(self.payments_sum),
            "outstanding_amount": money(self.outstanding_amount),
            "payment_status": self.payment_status,
            "date_payment_due": self.date_payment_due.isoformat() if self.date_payment_due else None,
            "is_past_due": self.is_past_due,
            "exported_to_external": self.exported_to_external,
            "external_total": money(self.external_total),
            "external_amount_paid": money(self.external_amount_paid),
            "external_amount_due": money(self.external_amount_due),
            "external_status": self.external_status,
            "balance_mismatch": self.balance_mismatch,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }

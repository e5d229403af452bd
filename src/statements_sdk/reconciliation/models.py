"""Models for order balance reconciliation."""

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List, Tuple
from pydantic import BaseModel, Field, field_validator

from .money import parse_money_or_zero


class PaymentStatus(str, enum.Enum):
    """Payment state of an order on the order platform."""
    FREE = "free"
    PAID = "paid"
    OVERPAID = "overpaid"
    PARTIAL = "partial"
    UNPAID = "unpaid"
    # Outstanding amount contradicts the payments recorded against the order
    INDETERMINATE = "indeterminate"


class ExternalStatus(str, enum.Enum):
    """Payment state of the matching invoice on the accounting platform."""
    PAID = "paid"
    FREE = "free"
    PARTIAL = "partial"
    OVERPAID = "overpaid"
    UNKNOWN = "unknown"
    NOT_EXPORTED = "not_exported"


class SyncStatus(str, enum.Enum):
    """Status of a statement synchronization job."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class MonetaryOrder(BaseModel):
    """One order as invoiced on the order platform.

    Amounts go through ``parse_money_or_zero`` so missing or non-numeric
    values count as zero.
    """
    id: str = Field(..., description="Order identifier")
    grand_total: Decimal = Field(default=Decimal("0"), description="Invoiced amount")
    payments: List[Decimal] = Field(default_factory=list, description="Recorded payment amounts")
    due_date: Optional[date] = Field(None, description="Payment due date")
    customer_username: Optional[str] = Field(None, description="Owning customer")
    email: Optional[str] = None
    date_placed: Optional[date] = None
    order_status: Optional[str] = None
    provided_outstanding: Optional[Decimal] = Field(
        None, description="Outstanding amount reported by the upstream system"
    )

    @field_validator("grand_total", mode="before")
    @classmethod
    def _parse_grand_total(cls, value: Any) -> Decimal:
        return parse_money_or_zero(value)

    @field_validator("payments", mode="before")
    @classmethod
    def _parse_payments(cls, value: Any) -> List[Decimal]:
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            # A single payment given as a bare amount
            value = [value]
        return [parse_money_or_zero(amount) for amount in value]

    @field_validator("provided_outstanding", mode="before")
    @classmethod
    def _parse_provided_outstanding(cls, value: Any) -> Optional[Decimal]:
        if value is None:
            return None
        return parse_money_or_zero(value)

    @property
    def payments_sum(self) -> Decimal:
        return sum(self.payments, Decimal("0"))


class ExternalLedgerRecord(BaseModel):
    """The accounting platform's view of the same order."""
    total: Decimal = Field(default=Decimal("0"))
    amount_paid: Decimal = Field(default=Decimal("0"))
    amount_due: Decimal = Field(default=Decimal("0"))
    invoice_id: Optional[str] = Field(None, description="Accounting invoice number or ID")

    @field_validator("total", "amount_paid", "amount_due", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> Decimal:
        return parse_money_or_zero(value)


class ReconciliationResult(BaseModel):
    """Derived balance figures for one order."""
    order_id: str
    customer_username: Optional[str] = None
    grand_total: Decimal
    payments_sum: Decimal
    payment_count: int = 0
    outstanding_amount: Decimal
    payment_status: PaymentStatus
    external_status: ExternalStatus = ExternalStatus.NOT_EXPORTED
    exported_to_external: bool = False
    external_total: Optional[Decimal] = None
    external_amount_paid: Optional[Decimal] = None
    external_amount_due: Optional[Decimal] = None
    difference: Optional[Decimal] = Field(
        None, description="Absolute difference between outstanding and external amount due"
    )
    balance_mismatch: bool = False
    provided_outstanding: Optional[Decimal] = None
    outstanding_discrepancy: bool = False
    due_date: Optional[date] = None
    date_placed: Optional[date] = None
    is_past_due: bool = False

    class Config:
        from_attributes = True


class CustomerStatement(BaseModel):
    """Outstanding orders for one customer, ready for a statement."""
    customer_username: str
    email: str = ""
    billing_name: Optional[str] = None
    total_orders: int = 0
    total_balance: Decimal = Decimal("0")
    due_invoice_balance: Decimal = Decimal("0")
    lines: List[ReconciliationResult] = Field(default_factory=list)
    date_range: Optional[Tuple[date, date]] = None

    @property
    def display_name(self) -> str:
        return self.billing_name or self.customer_username or "Customer"


class CustomerBalanceRecord(BaseModel):
    """Row shape of the statement_of_accounts table."""
    customer_username: str
    exists_in_statements_list: bool = True
    last_check: datetime = Field(default_factory=datetime.utcnow)
    last_invoice_balance: Decimal = Decimal("0")


class BalanceSummary(BaseModel):
    """Result of summarizing a batch of customers' balances."""
    records: List[CustomerBalanceRecord] = Field(default_factory=list)
    total_orders: int = 0
    customers_with_zero_balance: int = 0
    customers_with_balance: int = 0
    discrepant_orders: List[str] = Field(default_factory=list)
    failed_customers: List[str] = Field(default_factory=list)


class StatementSyncReport(BaseModel):
    """Outcome of a statement_of_accounts synchronization run."""
    id: str = Field(..., description="Report ID")
    status: SyncStatus = Field(default=SyncStatus.PENDING)
    db_save: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    # Statistics
    customers_received: int = 0
    customers_processed: int = 0
    orders_processed: int = 0
    records_prepared: int = 0
    records_saved: int = 0
    customers_with_zero_balance: int = 0
    customers_with_balance: int = 0
    customers_marked_inactive: int = 0

    records: List[CustomerBalanceRecord] = Field(default_factory=list)
    discrepant_orders: List[str] = Field(default_factory=list)
    failed_customers: List[str] = Field(default_factory=list)

    error_message: Optional[str] = None

    def to_summary_dict(self) -> Dict[str, Any]:
        """Return a summary of the report without the per-customer records."""
        return {
            "id": self.id,
            "status": self.status.value,
            "db_save": self.db_save,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "statistics": {
                "customers_received": self.customers_received,
                "customers_processed": self.customers_processed,
                "orders_processed": self.orders_processed,
                "records_prepared": self.records_prepared,
                "records_saved": self.records_saved,
                "customers_with_zero_balance": self.customers_with_zero_balance,
                "customers_with_balance": self.customers_with_balance,
                "customers_marked_inactive": self.customers_marked_inactive,
                "discrepant_orders": len(self.discrepant_orders),
                "failed_customers": len(self.failed_customers),
            },
            "error_message": self.error_message,
        }

    def to_full_dict(self) -> Dict[str, Any]:
        """Return the complete report including all records."""
        result = self.to_summary_dict()
        result["records"] = [r.model_dump(mode="json") for r in self.records]
        result["discrepant_orders"] = list(self.discrepant_orders)
        result["failed_customers"] = list(self.failed_customers)
        return result

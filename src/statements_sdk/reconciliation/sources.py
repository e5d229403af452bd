"""Adapters from upstream JSON payloads to reconciliation models.

The payloads are fetched elsewhere; this module only reads them. Field
names follow the order platform's (``GrandTotal``, ``OrderPayment``) and the
accounting platform's (``total``, ``amountPaid``, ``amountDue``) responses.
"""

import logging
from typing import Any, Dict, List, Optional

from .dates import parse_date
from .exceptions import ReconciliationError
from .models import ExternalLedgerRecord, MonetaryOrder

logger = logging.getLogger(__name__)


def _payment_amounts(payments: Any) -> List[Any]:
    if not isinstance(payments, list):
        return []
    return [p.get("Amount") if isinstance(p, dict) else p for p in payments]


def _first_present(payload: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


def order_from_maropost(payload: Dict[str, Any]) -> MonetaryOrder:
    """Build a MonetaryOrder from one entry of an order-platform ``Order`` list.

    Args:
        payload: Order dictionary with ``OrderID``/``ID``, ``GrandTotal``,
            ``OrderPayment`` and optional customer and date fields.

    Returns:
        MonetaryOrder.

    Raises:
        ReconciliationError: If the order has no identifier or a date
            cannot be parsed.
    """
    if not isinstance(payload, dict):
        raise ReconciliationError("Order payload must be an object")

    order_id = _first_present(payload, "OrderID", "ID")
    if order_id is None:
        raise ReconciliationError("Order payload is missing OrderID")

    return MonetaryOrder(
        id=str(order_id),
        grand_total=payload.get("GrandTotal"),
        payments=_payment_amounts(payload.get("OrderPayment")),
        due_date=parse_date(payload.get("DatePaymentDue")),
        date_placed=parse_date(payload.get("DatePlaced")),
        customer_username=payload.get("Username") or None,
        email=payload.get("Email") or None,
        order_status=payload.get("OrderStatus") or None,
    )


def orders_from_maropost_response(payload: Optional[Dict[str, Any]]) -> List[MonetaryOrder]:
    """Build orders from a full order-platform response (``{"Order": [...]}``)."""
    if not payload:
        return []
    orders = payload.get("Order") or []
    if not isinstance(orders, list):
        raise ReconciliationError("Order payload 'Order' must be a list")
    parsed = [order_from_maropost(order) for order in orders]
    logger.info(f"Parsed {len(parsed)} orders from order platform response")
    return parsed


def ledger_record_from_xero(xero_data: Optional[Dict[str, Any]]) -> Optional[ExternalLedgerRecord]:
    """Extract the first invoice of an accounting lookup response.

    Returns None when the lookup found nothing, which callers treat as
    "not exported".
    """
    if not xero_data:
        return None

    found_count = xero_data.get("foundCount")
    invoices = xero_data.get("invoices") or []
    if not isinstance(invoices, list) or not invoices:
        return None
    if found_count is not None and not found_count:
        return None

    invoice = invoices[0]
    invoice_id = _first_present(invoice, "invoiceNumber", "InvoiceNumber", "invoiceID", "InvoiceID")
    return ExternalLedgerRecord(
        total=_first_present(invoice, "total", "Total"),
        amount_paid=_first_present(invoice, "amountPaid", "AmountPaid"),
        amount_due=_first_present(invoice, "amountDue", "AmountDue"),
        invoice_id=str(invoice_id) if invoice_id is not None else None,
    )


def orders_from_statement_customer(customer: Dict[str, Any]) -> List[MonetaryOrder]:
    """Build orders from one customer entry of a statement-check response.

    Entries look like ``{"customer_username": ..., "orders": [{"id",
    "grandTotal", "payments": [{"Amount"}], "outstandingAmount",
    "datePaymentDue"}]}``.
    """
    username = customer.get("customer_username")
    email = customer.get("email") or None
    orders = []
    for entry in customer.get("orders") or []:
        order_id = _first_present(entry, "id", "ID", "OrderID")
        if order_id is None:
            raise ReconciliationError(f"Order for customer {username} is missing an id")
        orders.append(MonetaryOrder(
            id=str(order_id),
            grand_total=entry.get("grandTotal"),
            payments=_payment_amounts(entry.get("payments")),
            provided_outstanding=entry.get("outstandingAmount"),
            due_date=parse_date(entry.get("datePaymentDue")),
            date_placed=parse_date(entry.get("datePlaced")),
            customer_username=username,
            email=email,
        ))
    return orders

"""Report generation for reconciliation results."""

import json
import csv
import io
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict

from .models import (
    CustomerStatement,
    ExternalStatus,
    ReconciliationResult,
    StatementSyncReport,
)
from .money import format_money, quantize_money

# Badge colours used by the order comparison view
EXTERNAL_STATUS_BACKGROUNDS = {
    ExternalStatus.PAID: "#4CAF50",
    ExternalStatus.FREE: "#9C27B0",
    ExternalStatus.PARTIAL: "#FFC107",
    ExternalStatus.OVERPAID: "#FF9800",
    ExternalStatus.UNKNOWN: "#607D8B",
    ExternalStatus.NOT_EXPORTED: "#757575",
}
LIGHT_TEXT_STATUSES = {
    ExternalStatus.PAID,
    ExternalStatus.FREE,
    ExternalStatus.UNKNOWN,
    ExternalStatus.NOT_EXPORTED,
}
MATCH_BACKGROUND = "#4CAF50"
MISMATCH_BACKGROUND = "#F44336"


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def comparison_payload(result: ReconciliationResult) -> Dict[str, Any]:
    """Build the order-vs-accounting comparison response for one order.

    Amounts are rendered as two-decimal strings; fields that need an
    accounting record fall back to placeholder text when the order was
    never exported.
    """
    exported = result.exported_to_external
    status = result.external_status

    if not exported:
        note = "Invoice not found in accounting system."
    elif result.balance_mismatch:
        note = "Amounts mismatch detected."
    else:
        note = "Amounts match."

    return {
        "order_id": result.order_id,
        "timestamp_utc": datetime.utcnow().isoformat(),
        "maropost_total": str(quantize_money(result.outstanding_amount)),
        "maropost_paid_status": result.payment_status.value,
        "xero_total": (
            str(quantize_money(result.external_amount_due)) if exported else "Not Yet Exported"
        ),
        "difference": str(quantize_money(result.difference)) if exported else "Not Available",
        "xero_paid_status": status.value,
        "xero_paid_status_background": EXTERNAL_STATUS_BACKGROUNDS[status],
        "xero_paid_status_font": "#FFFFFF" if status in LIGHT_TEXT_STATUSES else "#000000",
        "balance_mismatch": result.balance_mismatch,
        "is_past_due": result.is_past_due,
        "total_background": MISMATCH_BACKGROUND if result.balance_mismatch else MATCH_BACKGROUND,
        "total_font": "#FFFFFF",
        "debug": {"notes": note},
    }


def statement_to_dict(statement: CustomerStatement) -> Dict[str, Any]:
    """Serialize a customer statement with display-formatted totals."""
    date_range = None
    if statement.date_range:
        start, end = statement.date_range
        date_range = {"from": start.isoformat(), "to": end.isoformat()}

    return {
        "customer_username": statement.customer_username,
        "email": statement.email,
        "pdf_customer_name": statement.display_name,
        "total_orders": statement.total_orders,
        "total_balance": format_money(statement.total_balance),
        "due_invoice_balance": format_money(statement.due_invoice_balance),
        "date_range": date_range,
        "invoices": [
            {
                "id": line.order_id,
                "grand_total": format_money(line.grand_total),
                "payments": format_money(line.payments_sum),
                "outstanding_amount": format_money(line.outstanding_amount),
                "date_placed": line.date_placed.isoformat() if line.date_placed else None,
                "date_payment_due": line.due_date.isoformat() if line.due_date else None,
                "is_past_due": line.is_past_due,
                "payment_status": line.payment_status.value,
            }
            for line in statement.lines
        ],
    }


class ReportGenerator:
    """Generator for statement sync reports in various formats."""

    def __init__(self, report: StatementSyncReport):
        """Initialize the report generator.

        Args:
            report: The sync report to generate output from.
        """
        self.report = report

    def to_json(self, include_details: bool = True, indent: int = 2) -> str:
        """Generate JSON representation of the report.

        Args:
            include_details: If True, include all records. If False, only summary.
            indent: JSON indentation level.

        Returns:
            JSON string representation of the report.
        """
        if include_details:
            data = self.report.to_full_dict()
        else:
            data = self.report.to_summary_dict()

        return json.dumps(data, indent=indent, default=_json_default)

    def to_csv(self) -> str:
        """Generate CSV with one row per customer balance record."""
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow([
            "customer_username", "exists_in_statements_list",
            "last_invoice_balance", "last_check",
        ])
        for record in self.report.records:
            writer.writerow([
                record.customer_username,
                record.exists_in_statements_list,
                str(quantize_money(record.last_invoice_balance)),
                record.last_check.isoformat(),
            ])
        return output.getvalue()

    def to_summary_text(self) -> str:
        """Generate a human-readable text summary of the report.

        Returns:
            Formatted text summary of the sync report.
        """
        summary = self.report.to_summary_dict()
        stats = summary["statistics"]

        lines = [
            "=" * 60,
            "STATEMENT SYNC REPORT SUMMARY",
            "=" * 60,
            f"Report ID: {summary['id']}",
            f"Status: {summary['status']}",
            f"Database Save: {'enabled' if summary['db_save'] else 'disabled'}",
            "",
            "Statistics:",
            f"  Customers Received: {stats['customers_received']}",
            f"  Customers Processed: {stats['customers_processed']}",
            f"  Orders Processed: {stats['orders_processed']}",
            f"  Records Prepared: {stats['records_prepared']}",
            f"  Records Saved: {stats['records_saved']}",
            f"  Customers With Balance: {stats['customers_with_balance']}",
            f"  Customers With Zero Balance: {stats['customers_with_zero_balance']}",
            f"  Customers Marked Inactive: {stats['customers_marked_inactive']}",
            f"  Outstanding Discrepancies: {stats['discrepant_orders']}",
            f"  Customers Skipped: {stats['failed_customers']}",
            "",
            f"Created At: {summary['created_at']}",
            f"Completed At: {summary['completed_at'] or 'N/A'}",
        ]

        if summary.get("error_message"):
            lines.extend([
                "",
                "Error:",
                f"  {summary['error_message']}",
            ])

        lines.append("=" * 60)

        return "\n".join(lines)

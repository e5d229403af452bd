"""Tests for customer statement assembly."""

from datetime import date, datetime
from decimal import Decimal

from statements_sdk.reconciliation import (
    BalanceReconciler,
    MonetaryOrder,
    build_customer_statements,
    filter_customers_by_balance,
    format_billing_name,
    reconcile_order,
    should_include_order,
    summarize_customer_balances,
)


def make_order(order_id, username, grand_total, payments=(), **kwargs):
    return MonetaryOrder(
        id=order_id,
        customer_username=username,
        grand_total=grand_total,
        payments=list(payments),
        **kwargs,
    )


class TestShouldIncludeOrder:
    """Tests for statement line filtering."""

    def test_free_settled_order_excluded(self):
        assert should_include_order(reconcile_order(make_order("A", "u", "0"))) is False

    def test_free_overpaid_order_excluded(self):
        result = reconcile_order(make_order("A", "u", "0", ["5"]))
        assert should_include_order(result) is False

    def test_unpaid_order_included(self):
        assert should_include_order(reconcile_order(make_order("A", "u", "10"))) is True

    def test_paid_order_included(self):
        """Test only zero-total orders are dropped."""
        result = reconcile_order(make_order("A", "u", "10", ["10"]))
        assert should_include_order(result) is True


class TestFormatBillingName:
    """Tests for billing name formatting."""

    def test_name_and_company(self):
        address = {"BillFirstName": "Jo", "BillLastName": "Smith", "BillCompany": "Acme Pty Ltd"}
        assert format_billing_name(address) == "Jo Smith (Acme Pty Ltd)"

    def test_name_only(self):
        assert format_billing_name({"BillFirstName": " Jo ", "BillLastName": ""}) == "Jo"

    def test_company_only(self):
        assert format_billing_name({"BillCompany": "Acme"}) == "Acme"

    def test_empty(self):
        assert format_billing_name(None) is None
        assert format_billing_name({"BillFirstName": "  "}) is None


class TestFilterCustomersByBalance:
    """Tests for the positive-balance customer filter."""

    def test_keeps_positive_balances(self):
        customers = [
            {"Username": "a", "AccountBalance": "120.50"},
            {"Username": "b", "AccountBalance": "0.00"},
            {"Username": "c", "AccountBalance": "-5"},
            {"Username": "d"},
            {"Username": "e", "AccountBalance": "0.01"},
        ]
        assert [c["Username"] for c in filter_customers_by_balance(customers)] == ["a", "e"]

    def test_non_list(self):
        assert filter_customers_by_balance(None) == []


class TestBuildCustomerStatements:
    """Tests for per-customer statement building."""

    def test_groups_by_customer(self, fixed_today):
        orders = [
            make_order("A1", "alice", "100", date_placed=date(2024, 2, 10), due_date=date(2024, 3, 10)),
            make_order("B1", "bob", "50", ["20"], due_date=date(2024, 4, 1)),
            make_order("A2", "alice", "200", ["50"], date_placed=date(2024, 1, 5), due_date=date(2024, 2, 5)),
            make_order("A3", "alice", "0"),
        ]

        statements = build_customer_statements(orders, today=fixed_today)

        assert [s.customer_username for s in statements] == ["alice", "bob"]
        alice, bob = statements

        assert alice.total_orders == 2
        assert [line.order_id for line in alice.lines] == ["A2", "A1"]
        assert alice.total_balance == Decimal("250")
        assert alice.due_invoice_balance == Decimal("250")
        assert alice.date_range == (date(2024, 2, 5), date(2024, 3, 10))

        assert bob.total_balance == Decimal("30")
        assert bob.due_invoice_balance == Decimal("0")

    def test_billing_details_and_username_filter(self, fixed_today):
        orders = [
            make_order("A1", "alice", "100", email="alice@order.example"),
            make_order("B1", "bob", "50"),
            make_order("X1", None, "10"),
        ]
        billing = {
            "alice": {
                "EmailAddress": "billing@alice.example",
                "BillingAddress": {"BillFirstName": "Alice", "BillLastName": "Ng"},
            }
        }

        statements = build_customer_statements(
            orders, today=fixed_today, billing=billing, usernames=["alice"]
        )

        assert len(statements) == 1
        assert statements[0].email == "billing@alice.example"
        assert statements[0].display_name == "Alice Ng"

    def test_display_name_falls_back_to_username(self, fixed_today):
        statements = build_customer_statements(
            [make_order("A1", "alice", "10", email="a@example.com")], today=fixed_today
        )
        assert statements[0].email == "a@example.com"
        assert statements[0].display_name == "alice"
        assert statements[0].date_range is None


class TestSummarizeCustomerBalances:
    """Tests for statement_of_accounts balance computation."""

    def test_balances_per_customer(self, statement_payload, fixed_today):
        checked_at = datetime(2024, 3, 15, 1, 0, 0)
        summary = summarize_customer_balances(
            statement_payload["customers"], today=fixed_today, checked_at=checked_at
        )

        balances = {r.customer_username: r.last_invoice_balance for r in summary.records}
        assert balances == {"acme_hardware": Decimal("950.00"), "beta_builders": Decimal("0")}
        assert summary.total_orders == 3
        assert summary.customers_with_balance == 1
        assert summary.customers_with_zero_balance == 1
        assert summary.discrepant_orders == []
        assert all(r.last_check == checked_at for r in summary.records)
        assert all(r.exists_in_statements_list for r in summary.records)

    def test_provided_outstanding_wins(self):
        customers = [{
            "customer_username": "acme",
            "orders": [{"id": "N1", "grandTotal": "100", "payments": [], "outstandingAmount": "60"}],
        }]

        summary = summarize_customer_balances(customers)

        assert summary.records[0].last_invoice_balance == Decimal("60")
        assert summary.discrepant_orders == ["N1"]

    def test_computed_outstanding_without_provided(self):
        customers = [{
            "customer_username": "acme",
            "orders": [{"id": "N1", "grandTotal": "100", "payments": [{"Amount": "30"}]}],
        }]
        summary = summarize_customer_balances(customers)
        assert summary.records[0].last_invoice_balance == Decimal("70")

    def test_cent_balance_counts_as_zero(self):
        customers = [{
            "customer_username": "acme",
            "orders": [{"id": "N1", "grandTotal": "10.00", "payments": [{"Amount": "9.99"}]}],
        }]
        summary = summarize_customer_balances(customers)
        assert summary.customers_with_zero_balance == 1

    def test_skips_entries_without_username(self):
        summary = summarize_customer_balances([{"orders": []}, {"customer_username": "solo"}])
        assert [r.customer_username for r in summary.records] == ["solo"]
        assert summary.records[0].last_invoice_balance == Decimal("0")

    def test_unreadable_customer_does_not_stop_batch(self):
        """Test a bad due date skips only that customer."""
        customers = [
            {
                "customer_username": "good",
                "orders": [{"id": "G1", "grandTotal": "100", "datePaymentDue": "2024-03-01"}],
            },
            {
                "customer_username": "bad",
                "orders": [
                    {"id": "B1", "grandTotal": "40", "outstandingAmount": "99"},
                    {"id": "B2", "grandTotal": "50", "datePaymentDue": "N/A"},
                ],
            },
            {
                "customer_username": "later",
                "orders": [{"id": "L1", "grandTotal": "25"}],
            },
        ]

        summary = summarize_customer_balances(customers, today=date(2024, 3, 15))

        assert [r.customer_username for r in summary.records] == ["good", "later"]
        assert summary.failed_customers == ["bad"]
        assert summary.total_orders == 2
        assert summary.discrepant_orders == []
        assert summary.customers_with_balance == 2

    def test_negative_grand_total_skips_customer(self):
        customers = [{"customer_username": "neg", "orders": [{"id": "N1", "grandTotal": "-5"}]}]
        summary = summarize_customer_balances(customers)
        assert summary.records == []
        assert summary.failed_customers == ["neg"]

    def test_uses_reconciler_tolerance(self):
        customers = [{
            "customer_username": "acme",
            "orders": [{"id": "N1", "grandTotal": "10.00", "payments": [{"Amount": "9.50"}]}],
        }]
        summary = summarize_customer_balances(customers, reconciler=BalanceReconciler(Decimal("1")))
        assert summary.customers_with_zero_balance == 1

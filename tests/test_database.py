"""Tests for database models, session helpers and repositories."""

import os
import pytest
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy.pool import StaticPool

from statements_sdk.database import (
    OrderReconciliation,
    OrderReconciliationRepository,
    StatementOfAccountRepository,
    close_db,
    create_async_engine,
    get_async_session_factory,
    get_database_url,
    init_db,
)
from statements_sdk.reconciliation import (
    CustomerBalanceRecord,
    ExternalLedgerRecord,
    MonetaryOrder,
    reconcile_order,
)


class TestGetDatabaseUrl:
    """Tests for DATABASE_URL handling."""

    def test_default_sqlite(self):
        with patch.dict(os.environ, {}, clear=True):
            assert get_database_url() == "sqlite+aiosqlite:///./statements.db"

    @pytest.mark.parametrize("url", [
        "postgresql://user:pw@db:5432/statements",
        "postgres://user:pw@db:5432/statements",
    ])
    def test_postgres_uses_asyncpg(self, url):
        with patch.dict(os.environ, {"DATABASE_URL": url}):
            assert get_database_url() == "postgresql+asyncpg://user:pw@db:5432/statements"

    def test_explicit_driver_kept(self):
        with patch.dict(os.environ, {"DATABASE_URL": "sqlite+aiosqlite:///:memory:"}):
            assert get_database_url() == "sqlite+aiosqlite:///:memory:"


class TestSessionFactory:
    """Tests for session factory creation."""

    async def test_factory_per_engine(self, db_engine):
        first = get_async_session_factory(db_engine)
        second = get_async_session_factory(db_engine)
        assert first is not second
        async with first() as session:
            assert session.bind is db_engine


class TestEngineSetup:
    """Tests for engine creation and the process-wide connection."""

    async def test_sqlite_uses_static_pool(self):
        engine = create_async_engine("sqlite+aiosqlite:///:memory:")
        try:
            assert isinstance(engine.pool, StaticPool)
        finally:
            await engine.dispose()

    async def test_init_and_close(self):
        await init_db("sqlite+aiosqlite:///:memory:")
        try:
            async with get_async_session_factory()() as session:
                assert await StatementOfAccountRepository(session).list_usernames() == set()
        finally:
            await close_db()

        with pytest.raises(RuntimeError, match="init_db"):
            get_async_session_factory()
        await close_db()


class TestStatementOfAccountRepository:
    """Tests for statement_of_accounts persistence."""

    async def test_upsert_inserts_then_updates(self, db_session):
        repo = StatementOfAccountRepository(db_session)
        checked_at = datetime(2024, 3, 15, 1, 0, 0)

        rows = await repo.upsert_balances([
            CustomerBalanceRecord(
                customer_username="acme", last_check=checked_at, last_invoice_balance=Decimal("10.50")
            ),
        ])
        assert len(rows) == 1
        first_id = rows[0].id

        rows = await repo.upsert_balances([
            CustomerBalanceRecord(
                customer_username="acme", last_check=checked_at, last_invoice_balance=Decimal("0")
            ),
            CustomerBalanceRecord(customer_username="beta", last_check=checked_at),
        ])
        await db_session.commit()

        assert rows[0].id == first_id
        assert await repo.list_usernames() == {"acme", "beta"}
        acme = await repo.get_by_username("acme")
        assert acme.last_invoice_balance == Decimal("0")
        assert acme.to_dict()["last_check"] == "2024-03-15T01:00:00"

    async def test_upsert_empty(self, db_session):
        assert await StatementOfAccountRepository(db_session).upsert_balances([]) == []

    async def test_mark_inactive(self, db_session):
        repo = StatementOfAccountRepository(db_session)
        await repo.upsert_balances([
            CustomerBalanceRecord(customer_username="acme"),
            CustomerBalanceRecord(customer_username="beta"),
        ])

        count = await repo.mark_inactive(["beta", "unknown"], datetime(2024, 3, 15))

        assert count == 1
        beta = await repo.get_by_username("beta")
        assert beta.exists_in_statements_list is False
        assert beta.last_check == datetime(2024, 3, 15)
        assert [r.customer_username for r in await repo.list_active()] == ["acme"]

    async def test_mark_inactive_nothing(self, db_session):
        assert await StatementOfAccountRepository(db_session).mark_inactive([]) == 0

    async def test_get_missing(self, db_session):
        assert await StatementOfAccountRepository(db_session).get_by_username("nobody") is None


class TestOrderReconciliationRepository:
    """Tests for per-order reconciliation snapshots."""

    async def test_save_and_to_dict(self, db_session):
        order = MonetaryOrder(
            id="N1",
            customer_username="acme",
            grand_total="1500",
            payments=["800"],
            due_date=date(2024, 3, 1),
        )
        external = ExternalLedgerRecord(total="1500", amount_paid="800", amount_due="700")
        result = reconcile_order(order, external, today=date(2024, 3, 15))

        repo = OrderReconciliationRepository(db_session)
        await repo.save(result, email="a@example.com", order_status="Dispatched")
        await db_session.commit()

        snapshot = await repo.get_by_order_id("N1")
        assert isinstance(snapshot, OrderReconciliation)
        data = snapshot.to_dict()
        assert data["order_id"] == "N1"
        assert data["payment_status"] == "partial"
        assert data["external_status"] == "partial"
        assert data["date_payment_due"] == "2024-03-01"
        assert data["is_past_due"] is True
        assert data["exported_to_external"] is True
        assert data["balance_mismatch"] is False

    async def test_save_not_exported(self, db_session):
        result = reconcile_order(MonetaryOrder(id="N2", grand_total="20"))
        snapshot = await OrderReconciliationRepository(db_session).save(result)

        assert snapshot.external_status == "not_exported"
        assert snapshot.external_amount_due is None
        assert isinstance(snapshot, OrderReconciliation)

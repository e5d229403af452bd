"""Shared test fixtures and configuration."""

import os
import pytest
from datetime import date
from typing import Dict, Any
from unittest.mock import patch

# Set up test environment variables before importing modules
os.environ.setdefault("API_KEY", "test_api_key_12345")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STATEMENT_TIMEZONE", "Australia/Sydney")


@pytest.fixture
def mock_api_key():
    """Set up mock API key for authentication."""
    with patch.dict(os.environ, {"API_KEY": "test_api_key_12345"}):
        yield "test_api_key_12345"


@pytest.fixture
def auth_headers(mock_api_key):
    """Return headers with authentication."""
    return {"Authorization": f"Bearer {mock_api_key}"}


@pytest.fixture
def fixed_today() -> date:
    """Reference date used for past-due checks."""
    return date(2024, 3, 15)


@pytest.fixture
def maropost_order() -> Dict[str, Any]:
    """One order as returned by the order platform."""
    return {
        "OrderID": "N10001",
        "Username": "acme_hardware",
        "Email": "accounts@acme.example",
        "OrderStatus": "Dispatched",
        "GrandTotal": "1500.00",
        "DatePlaced": "2024-02-01 09:30:00",
        "DatePaymentDue": "2024-03-01",
        "OrderPayment": [
            {"Amount": "500.00"},
            {"Amount": "300.00"},
        ],
    }


@pytest.fixture
def xero_lookup() -> Dict[str, Any]:
    """Accounting lookup response for the same order."""
    return {
        "foundCount": 1,
        "requestedItems": ["N10001"],
        "invoices": [
            {
                "invoiceNumber": "N10001",
                "total": 1500.00,
                "amountPaid": 800.00,
                "amountDue": 700.00,
            }
        ],
    }


@pytest.fixture
def statement_payload() -> Dict[str, Any]:
    """Statement-check response with two customers."""
    return {
        "success": True,
        "customers": [
            {
                "customer_username": "acme_hardware",
                "email": "accounts@acme.example",
                "orders": [
                    {
                        "id": "N10001",
                        "grandTotal": "1500.00",
                        "payments": [{"Amount": "500.00"}, {"Amount": "300.00"}],
                        "outstandingAmount": "700.00",
                        "datePaymentDue": "2024-03-01",
                    },
                    {
                        "id": "N10002",
                        "grandTotal": "250.00",
                        "payments": [],
                        "outstandingAmount": "250.00",
                        "datePaymentDue": "2024-04-01",
                    },
                ],
            },
            {
                "customer_username": "beta_builders",
                "orders": [
                    {
                        "id": "N20001",
                        "grandTotal": "99.95",
                        "payments": [{"Amount": "99.95"}],
                        "outstandingAmount": "0",
                    },
                ],
            },
        ],
    }


# Database fixtures for integration tests
@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite database for testing."""
    from statements_sdk.database import Base, create_async_engine

    engine = create_async_engine(
        database_url="sqlite+aiosqlite:///:memory:",
        echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Create a database session for testing."""
    from statements_sdk.database import get_async_session_factory

    session_factory = get_async_session_factory(db_engine)
    async with session_factory() as session:
        yield session

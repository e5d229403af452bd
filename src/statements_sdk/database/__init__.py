"""Database module for statement persistence."""

from .models import (
    Base,
    StatementOfAccount,
    OrderReconciliation,
)
from .session import (
    get_db,
    get_database_url,
    init_db,
    close_db,
    create_async_engine,
    get_async_session_factory,
)
from .repository import (
    StatementOfAccountRepository,
    OrderReconciliationRepository,
)

__all__ = [
    # Models
    "Base",
    "StatementOfAccount",
    "OrderReconciliation",
    # Session management
    "get_db",
    "get_database_url",
    "init_db",
    "close_db",
    "create_async_engine",
    "get_async_session_factory",
    # Repositories
    "StatementOfAccountRepository",
    "OrderReconciliationRepository",
]

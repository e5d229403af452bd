# statements_sdk package
__version__ = "0.1.0"

from .database import (
    StatementOfAccount,
    OrderReconciliation,
    init_db,
    close_db,
    get_db,
)

# Reconciliation exports
from .reconciliation import (
    BalanceReconciler,
    ReconciliationService,
    ReconciliationError,
    ReconciliationResult,
    MonetaryOrder,
    ExternalLedgerRecord,
    PaymentStatus,
    ExternalStatus,
    StatementSyncReport,
    ReportGenerator,
)

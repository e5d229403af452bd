"""API endpoints for reconciliation operations."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import verify_api_key, limiter
from ..database import get_db
from .exceptions import ReconciliationError
from .models import SyncStatus
from .report import comparison_payload, statement_to_dict
from .service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])


class OrderComparisonBody(BaseModel):
    """Order platform and accounting lookup responses for one order."""
    maropost_data: Dict[str, Any] = Field(..., alias="maropostData")
    xero_data: Dict[str, Any] = Field(..., alias="xeroData")


class StatementSyncBody(BaseModel):
    """Statement-check response to synchronize into statement_of_accounts."""
    statement_data: Dict[str, Any] = Field(..., description="Response with success and customers")
    db_save: bool = Field(default=True, description="Persist the computed balances")
    limit: Optional[int] = Field(default=None, ge=1, description="Only process the first N customers")


class StatementBuildBody(BaseModel):
    """Order and customer data to build statements from."""
    orders: Dict[str, Any] = Field(..., description="Order platform response with an Order list")
    customers: Optional[List[Dict[str, Any]]] = Field(
        default=None, description="Customer records with AccountBalance and BillingAddress"
    )


@router.post("/orders")
async def compare_order(
    body: OrderComparisonBody,
    db: AsyncSession = Depends(get_db),
    api_key: str = Depends(verify_api_key),
):
    """
    Compare one order's balance with its accounting invoice.

    Returns the outstanding amount, both payment statuses, the difference
    and display colours for the comparison view.
    """
    service = ReconciliationService(db)
    try:
        result = await service.reconcile_order_payload(body.maropost_data, body.xero_data)
    except ReconciliationError as e:
        logger.warning(f"Rejected order comparison: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    return comparison_payload(result)


@router.post("/statements/sync")
@limiter.limit("60/minute")
async def sync_statements(
    request: Request,
    body: StatementSyncBody,
    db: AsyncSession = Depends(get_db),
    api_key: str = Depends(verify_api_key),
):
    """
    Recompute customer balances and synchronize statement_of_accounts.

    Customers missing from the payload are marked as no longer on the
    statement list when db_save is enabled.
    """
    service = ReconciliationService(db)
    report = await service.sync_statement_balances(
        body.statement_data,
        db_save=body.db_save,
        limit=body.limit,
    )
    summary = report.to_summary_dict()
    if report.status == SyncStatus.FAILED:
        return JSONResponse(status_code=500, content=summary)
    return summary


@router.post("/statements")
async def build_statements(
    body: StatementBuildBody,
    api_key: str = Depends(verify_api_key),
):
    """Build per-customer statements of outstanding orders."""
    service = ReconciliationService()
    try:
        statements = service.build_statements(body.orders, body.customers)
    except ReconciliationError as e:
        logger.warning(f"Rejected statement build: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "customers": [statement_to_dict(s) for s in statements],
        "total_customers": len(statements),
    }


@router.get("/health")
async def reconciliation_health():
    """Health check endpoint for reconciliation service."""
    return {"status": "healthy", "service": "reconciliation"}

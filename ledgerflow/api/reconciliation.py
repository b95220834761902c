"""
Reconciliation API - replay the movement history into the ledger
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional, List
from uuid import UUID

from ledgerflow.core import get_db
from ledgerflow.schemas.stock import DriftResponse, ReconcileResponse, ReconcileScope
from ledgerflow.services import LedgerService, ReplayService

router = APIRouter(prefix="/reconciliation", tags=["Reconciliation"])


@router.post("/run", response_model=ReconcileResponse)
def run_reconcile(data: ReconcileScope, db: Session = Depends(get_db)):
    """
    Rebuild ledger entries from history.
    Without a scope every entry is rebuilt.
    """
    report = ReplayService.reconcile(db, data.item_id, data.location_id, data.actor_id)
    return {
        "entries": [LedgerService.snapshot(e) for e in report.entries],
        "drift": [d.to_dict() for d in report.drift],
        "skipped_requests": report.skipped_requests,
        "movements_replayed": report.movements_replayed,
        "audit_id": report.audit.id if report.audit else None,
    }


@router.get("/verify", response_model=List[DriftResponse])
def verify_ledger(
    item_id: Optional[UUID] = Query(None),
    location_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db)
):
    """Report drift without changing anything"""
    return [d.to_dict() for d in ReplayService.verify(db, item_id, location_id)]

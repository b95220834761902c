"""
Stock API - ledger reads and manual adjustments
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional, List
from uuid import UUID

from ledgerflow.core import get_db
from ledgerflow.core.errors import NotFoundError
from ledgerflow.schemas.stock import (
    LedgerSnapshot, StockAdjustmentCreate, StockAdjustmentResponse, StockMovementResponse, StockSummary,
)
from ledgerflow.services import LedgerService

router = APIRouter(prefix="/stock", tags=["Stock"])


@router.get("/summary", response_model=List[StockSummary])
def stock_summary(
    location_id: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db)
):
    return LedgerService.get_stock_summary(db, location_id, search)


@router.get("/negative", response_model=List[StockSummary])
def negative_stock(location_id: Optional[UUID] = Query(None), db: Session = Depends(get_db)):
    """Entries below zero"""
    return LedgerService.get_negative_stock(db, location_id)


@router.get("/movements", response_model=List[StockMovementResponse])
def stock_movements(
    item_id: Optional[UUID] = Query(None),
    location_id: Optional[UUID] = Query(None),
    movement_type: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    return LedgerService.get_movements(db, item_id, location_id, movement_type, limit)


@router.get("/ledger/{item_id}/{location_id}", response_model=LedgerSnapshot)
def get_ledger_entry(item_id: UUID, location_id: UUID, db: Session = Depends(get_db)):
    entry = LedgerService.get_entry(db, item_id, location_id)
    if entry is None:
        raise NotFoundError("ledger entry not found", entity_id=item_id, location_id=str(location_id))
    return LedgerService.snapshot(entry)


@router.post("/adjust", response_model=StockAdjustmentResponse)
def adjust_stock(data: StockAdjustmentCreate, db: Session = Depends(get_db)):
    """Set an entry to a physical count"""
    result = LedgerService.adjust_stock(
        db,
        item_id=data.item_id,
        location_id=data.location_id,
        new_quantity=data.new_quantity,
        reason=data.reason,
        unit_cost=data.unit_cost,
        actor_id=data.actor_id,
    )
    return {
        "delta": result.delta,
        "ledger": LedgerService.snapshot(result.entry),
        "audit_id": result.audit.id,
    }

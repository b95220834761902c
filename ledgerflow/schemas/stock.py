"""
Stock Schemas
"""
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from decimal import Decimal

class LedgerSnapshot(BaseModel):
    item_id: UUID
    location_id: UUID
    quantity: Decimal
    unit_cost: Decimal
    version: Optional[int] = None

class StockAdjustmentCreate(BaseModel):
    item_id: UUID
    location_id: UUID
    new_quantity: Decimal
    reason: str
    unit_cost: Optional[Decimal] = None
    actor_id: Optional[str] = None

class StockAdjustmentResponse(BaseModel):
    delta: Decimal
    ledger: LedgerSnapshot
    audit_id: UUID

class StockMovementResponse(BaseModel):
    id: int
    item_id: UUID
    location_id: UUID
    movement_type: str
    quantity: Decimal
    unit_cost: Optional[Decimal]
    quantity_before: Decimal
    quantity_after: Decimal
    cost_before: Decimal
    cost_after: Decimal
    reference_type: Optional[str]
    reference_id: Optional[str]
    note: Optional[str]
    created_at: datetime
    created_by: Optional[str]

    class Config:
        from_attributes = True

class StockSummary(BaseModel):
    item_id: UUID
    item_name: str
    unit: str
    location_id: UUID
    location_name: str
    quantity: Decimal
    unit_cost: Decimal
    total_value: Decimal
    below_minimum: bool

class DriftResponse(BaseModel):
    item_id: UUID
    location_id: UUID
    current: LedgerSnapshot
    replayed: LedgerSnapshot

class ReconcileResponse(BaseModel):
    entries: List[LedgerSnapshot]
    drift: List[DriftResponse]
    skipped_requests: List[UUID]
    movements_replayed: int
    audit_id: Optional[UUID] = None

class ReconcileScope(BaseModel):
    item_id: Optional[UUID] = None
    location_id: Optional[UUID] = None
    actor_id: Optional[str] = None

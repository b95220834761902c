"""
Purchase Schemas
"""
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from decimal import Decimal

from .stock import LedgerSnapshot

class PurchaseRequestCreate(BaseModel):
    item_id: Optional[UUID] = None
    item_name: Optional[str] = None
    quantity: Decimal
    unit: str = "un"
    total_cost: Decimal = Decimal("0")
    destination_id: Optional[UUID] = None

class PurchaseOrderCreate(BaseModel):
    nickname: str
    supplier_id: Optional[UUID] = None
    items: List[PurchaseRequestCreate] = []

class PurchaseOrderUpdate(BaseModel):
    nickname: Optional[str] = None
    supplier_id: Optional[UUID] = None

class PurchaseRequestUpdate(BaseModel):
    item_id: Optional[UUID] = None
    item_name: Optional[str] = None
    quantity: Optional[Decimal] = None
    unit: Optional[str] = None
    total_cost: Optional[Decimal] = None
    destination_id: Optional[UUID] = None

class PurchaseRequestResponse(BaseModel):
    id: UUID
    order_id: UUID
    line_no: int
    item_id: Optional[UUID]
    item_name: str
    quantity: Decimal
    unit: str
    total_cost: Decimal
    destination_id: UUID
    status: str
    requested_by: Optional[str]
    approved_by: Optional[str]
    approved_at: Optional[datetime]
    change_reason: Optional[str]

    class Config:
        from_attributes = True

class PurchaseOrderResponse(BaseModel):
    id: UUID
    nickname: str
    supplier_id: Optional[UUID]
    created_by: Optional[str]
    stored_status: str
    status: str
    total_value: Decimal
    requests: List[PurchaseRequestResponse] = []

class ActorRequest(BaseModel):
    actor_id: Optional[str] = None

class EditRequest(BaseModel):
    actor_id: Optional[str] = None
    reason: Optional[str] = None

class ApplyEditRequest(BaseModel):
    actor_id: Optional[str] = None
    changes: PurchaseRequestUpdate

class BatchApproveRequest(BaseModel):
    request_ids: List[UUID]
    actor_id: Optional[str] = None

class ApprovalResponse(BaseModel):
    request: PurchaseRequestResponse
    ledger: Optional[LedgerSnapshot] = None
    exact: bool = True
    audit_id: Optional[UUID] = None

class BatchItemResponse(BaseModel):
    request_id: UUID
    ok: bool
    result: Optional[ApprovalResponse] = None
    error: Optional[dict] = None

"""
Production Schemas
"""
from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime
from uuid import UUID
from decimal import Decimal

class ProductionRequest(BaseModel):
    finished_item_id: UUID
    quantity: Decimal
    location_id: UUID
    actor_id: Optional[str] = None

class FeasibilityLineResponse(BaseModel):
    ingredient_id: UUID
    ingredient_name: str
    bom_quantity: Decimal
    bom_unit: str
    required: Decimal
    available: Decimal
    shortfall: Decimal
    stock_unit: str
    unit_cost: Decimal
    line_cost: Decimal
    sufficient: bool

class FeasibilityResponse(BaseModel):
    finished_item_id: UUID
    location_id: UUID
    quantity: Decimal
    feasible: bool
    estimated_batch_cost: Decimal
    estimated_unit_cost: Decimal
    lines: List[FeasibilityLineResponse]

class ProductionOrderLineResponse(BaseModel):
    ingredient_id: UUID
    quantity: Decimal
    unit: str
    unit_cost: Decimal
    line_cost: Decimal

    class Config:
        from_attributes = True

class ProductionOrderResponse(BaseModel):
    id: UUID
    finished_item_id: UUID
    location_id: UUID
    quantity: Decimal
    batch_cost: Decimal
    unit_cost: Decimal
    created_by: Optional[str]
    created_at: datetime
    lines: List[ProductionOrderLineResponse] = []

    class Config:
        from_attributes = True

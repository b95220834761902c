"""
Catalog Schemas
"""
from pydantic import BaseModel
from typing import Optional, List
from uuid import UUID
from decimal import Decimal

class LocationCreate(BaseModel):
    code: str
    name: str
    is_default: bool = False

class LocationResponse(BaseModel):
    id: UUID
    code: str
    name: str
    is_default: bool

    class Config:
        from_attributes = True

class SupplierCreate(BaseModel):
    name: str

class SupplierResponse(BaseModel):
    id: UUID
    name: str

    class Config:
        from_attributes = True

class ItemCreate(BaseModel):
    name: str
    category: Optional[str] = None
    unit: str = "un"
    secondary_unit: Optional[str] = None
    secondary_factor: Optional[Decimal] = None
    is_stock_tracked: bool = True
    is_product: bool = False
    batch_size: Decimal = Decimal("1")
    min_stock: Decimal = Decimal("0")

class ItemUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    secondary_unit: Optional[str] = None
    secondary_factor: Optional[Decimal] = None
    batch_size: Optional[Decimal] = None
    min_stock: Optional[Decimal] = None

class ItemResponse(BaseModel):
    id: UUID
    name: str
    category: Optional[str]
    unit: str
    secondary_unit: Optional[str]
    secondary_factor: Optional[Decimal]
    is_stock_tracked: bool
    is_product: bool
    batch_size: Decimal

    class Config:
        from_attributes = True

class BomLineCreate(BaseModel):
    ingredient_id: UUID
    quantity: Decimal
    unit: str

class BomLineResponse(BaseModel):
    id: UUID
    product_id: UUID
    ingredient_id: UUID
    quantity: Decimal
    unit: str

    class Config:
        from_attributes = True

class BomReplace(BaseModel):
    lines: List[BomLineCreate] = []

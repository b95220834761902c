"""
Catalog API - locations, suppliers, items and bills of materials
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional, List
from uuid import UUID

from ledgerflow.core import get_db
from ledgerflow.schemas.catalog import (
    LocationCreate, LocationResponse, SupplierCreate, SupplierResponse,
    ItemCreate, ItemUpdate, ItemResponse, BomLineResponse, BomReplace,
)
from ledgerflow.services import CatalogService

router = APIRouter(tags=["Catalog"])


# ===================== LOCATIONS =====================

@router.get("/locations", response_model=List[LocationResponse])
def list_locations(db: Session = Depends(get_db)):
    return CatalogService.list_locations(db)


@router.post("/locations", response_model=LocationResponse, status_code=201)
def create_location(data: LocationCreate, db: Session = Depends(get_db)):
    return CatalogService.create_location(db, data)


# ===================== SUPPLIERS =====================

@router.post("/suppliers", response_model=SupplierResponse, status_code=201)
def create_supplier(data: SupplierCreate, db: Session = Depends(get_db)):
    return CatalogService.create_supplier(db, data)


# ===================== ITEMS =====================

@router.get("/items")
def list_items(
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db)
):
    items, total = CatalogService.get_items(db, search, page=page, per_page=per_page)
    return {
        "items": [ItemResponse.model_validate(i) for i in items],
        "total": total,
        "page": page,
        "per_page": per_page,
    }


@router.post("/items", response_model=ItemResponse, status_code=201)
def create_item(data: ItemCreate, db: Session = Depends(get_db)):
    return CatalogService.create_item(db, data)


@router.get("/items/{item_id}", response_model=ItemResponse)
def get_item(item_id: UUID, db: Session = Depends(get_db)):
    return CatalogService.get_item(db, item_id)


@router.patch("/items/{item_id}", response_model=ItemResponse)
def update_item(item_id: UUID, data: ItemUpdate, db: Session = Depends(get_db)):
    return CatalogService.update_item(db, item_id, data)


@router.delete("/items/{item_id}")
def delete_item(item_id: UUID, actor_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """Soft delete; ledger history keeps referencing the item"""
    item = CatalogService.delete_item(db, item_id, actor_id)
    return {"deleted": str(item.id)}


@router.get("/items/{item_id}/bom", response_model=List[BomLineResponse])
def get_bom(item_id: UUID, db: Session = Depends(get_db)):
    CatalogService.get_item(db, item_id)
    return CatalogService.get_bom(db, item_id)


@router.put("/items/{item_id}/bom", response_model=List[BomLineResponse])
def replace_bom(item_id: UUID, data: BomReplace, actor_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    CatalogService.replace_bom(db, item_id, data.lines, actor_id)
    return CatalogService.get_bom(db, item_id)

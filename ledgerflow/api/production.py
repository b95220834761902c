"""
Production API - feasibility check and commit
"""
from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional, List
from uuid import UUID

from ledgerflow.core import get_db
from ledgerflow.schemas.production import ProductionRequest, FeasibilityResponse, ProductionOrderResponse
from ledgerflow.services import ProductionService

router = APIRouter(prefix="/production", tags=["Production"])


@router.post("/simulate", response_model=FeasibilityResponse)
def simulate_production(data: ProductionRequest, db: Session = Depends(get_db)):
    report = ProductionService.simulate(db, data.finished_item_id, data.quantity, data.location_id)
    return asdict(report)


@router.post("/commit", response_model=ProductionOrderResponse, status_code=201)
def commit_production(data: ProductionRequest, db: Session = Depends(get_db)):
    return ProductionService.commit(db, data.finished_item_id, data.quantity, data.location_id, data.actor_id)


@router.get("/orders", response_model=List[ProductionOrderResponse])
def list_production_orders(
    finished_item_id: Optional[UUID] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    return ProductionService.list_orders(db, finished_item_id, limit)

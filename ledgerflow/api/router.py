"""
API Router - JSON Endpoints
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime

from ledgerflow.core import get_db
from ledgerflow.services import AuditService

# Import sub-routers
from ledgerflow.api.catalog import router as catalog_router
from ledgerflow.api.purchases import router as purchases_router
from ledgerflow.api.stock import router as stock_router
from ledgerflow.api.production import router as production_router
from ledgerflow.api.reconciliation import router as reconciliation_router

api_router = APIRouter(tags=["API"])

# Include sub-routers
api_router.include_router(catalog_router)
api_router.include_router(purchases_router)
api_router.include_router(stock_router)
api_router.include_router(production_router)
api_router.include_router(reconciliation_router)

# ===================== HEALTH & STATUS =====================

@api_router.get("/status")
async def api_status():
    return {"status": "ok", "version": "1.0.0", "timestamp": datetime.now().isoformat()}

# ===================== AUDIT =====================

@api_router.get("/audit")
def audit_history(
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db)
):
    return [
        {
            "id": str(a.id),
            "entity_type": a.entity_type,
            "entity_id": a.entity_id,
            "action": a.action,
            "performed_by": a.performed_by,
            "performed_at": a.performed_at.isoformat() if a.performed_at else None,
            "before": a.before_data,
            "after": a.after_data,
            "note": a.note,
        }
        for a in AuditService.get_history(db, entity_type, entity_id, limit)
    ]

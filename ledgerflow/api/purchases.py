"""
Purchases API - orders, line items and the approval workflow
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional, List
from uuid import UUID

from ledgerflow.core import get_db
from ledgerflow.schemas.purchase import (
    PurchaseOrderCreate, PurchaseOrderUpdate, PurchaseOrderResponse, PurchaseRequestCreate,
    PurchaseRequestResponse, ActorRequest, EditRequest, ApplyEditRequest, BatchApproveRequest,
    ApprovalResponse, BatchItemResponse,
)
from ledgerflow.services import ApprovalService, PurchaseService
from ledgerflow.services.approval_service import ApprovalResult, BatchItemResult

router = APIRouter(prefix="/purchases", tags=["Purchases"])


def approval_response(result: ApprovalResult) -> ApprovalResponse:
    return ApprovalResponse(
        request=PurchaseRequestResponse.model_validate(result.request),
        ledger=result.ledger,
        exact=result.exact,
        audit_id=result.audit.id,
    )


def batch_response(results: List[BatchItemResult]) -> List[BatchItemResponse]:
    return [
        BatchItemResponse(
            request_id=r.request_id,
            ok=r.ok,
            result=approval_response(r.result) if r.result else None,
            error=r.error.to_dict() if r.error else None,
        )
        for r in results
    ]


def order_response(order) -> PurchaseOrderResponse:
    view = PurchaseService.order_view(order)
    view["requests"] = [PurchaseRequestResponse.model_validate(r) for r in view["requests"]]
    return PurchaseOrderResponse(**view)


# ===================== ORDERS =====================

@router.post("/orders", response_model=PurchaseOrderResponse, status_code=201)
def submit_order(data: PurchaseOrderCreate, actor_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """Submit a purchase batch; every line starts pending"""
    order = PurchaseService.submit_batch(db, data, actor_id)
    return order_response(order)


@router.get("/orders")
def list_orders(
    status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db)
):
    orders, total = PurchaseService.get_orders(db, status, page, per_page)
    return {
        "orders": [order_response(o) for o in orders],
        "total": total,
        "page": page,
        "per_page": per_page,
    }


@router.get("/orders/{order_id}", response_model=PurchaseOrderResponse)
def get_order(order_id: UUID, db: Session = Depends(get_db)):
    return order_response(PurchaseService.get_order(db, order_id))


@router.patch("/orders/{order_id}", response_model=PurchaseOrderResponse)
def update_order(order_id: UUID, data: PurchaseOrderUpdate, actor_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return order_response(PurchaseService.update_order_header(db, order_id, data, actor_id))


@router.delete("/orders/{order_id}")
def delete_order(order_id: UUID, actor_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """Delete an order, reverting the ledger effect of its applied lines"""
    audit = PurchaseService.delete_order(db, order_id, actor_id)
    return {"deleted": str(order_id), "audit_id": str(audit.id)}


@router.post("/orders/{order_id}/requests", response_model=PurchaseRequestResponse, status_code=201)
def add_request(order_id: UUID, data: PurchaseRequestCreate, actor_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return PurchaseService.add_request(db, order_id, data, actor_id)


@router.post("/orders/{order_id}/approve", response_model=List[BatchItemResponse])
def approve_order(order_id: UUID, data: ActorRequest, db: Session = Depends(get_db)):
    """Approve every pending line of the order"""
    return batch_response(ApprovalService.approve_order(db, order_id, data.actor_id))


@router.post("/orders/{order_id}/request-edit", response_model=PurchaseOrderResponse)
def request_order_edit(order_id: UUID, data: EditRequest, db: Session = Depends(get_db)):
    return order_response(PurchaseService.request_order_edit(db, order_id, data.reason, data.actor_id))


@router.post("/orders/{order_id}/approve-edit", response_model=PurchaseOrderResponse)
def approve_order_edit(order_id: UUID, data: ActorRequest, db: Session = Depends(get_db)):
    return order_response(PurchaseService.approve_order_edit(db, order_id, data.actor_id))


@router.post("/orders/{order_id}/close-edit", response_model=PurchaseOrderResponse)
def close_order_edit(order_id: UUID, data: ActorRequest, db: Session = Depends(get_db)):
    return order_response(PurchaseService.close_order_edit(db, order_id, data.actor_id))


# ===================== LINE ITEMS =====================

@router.post("/requests/batch-approve", response_model=List[BatchItemResponse])
def batch_approve(data: BatchApproveRequest, db: Session = Depends(get_db)):
    """Approve lines in the given order; one failure never blocks the rest"""
    return batch_response(ApprovalService.batch_approve(db, data.request_ids, data.actor_id))


@router.get("/requests/{request_id}", response_model=PurchaseRequestResponse)
def get_request(request_id: UUID, db: Session = Depends(get_db)):
    return ApprovalService.get_request(db, request_id)


@router.post("/requests/{request_id}/approve", response_model=ApprovalResponse)
def approve_request(request_id: UUID, data: ActorRequest, db: Session = Depends(get_db)):
    return approval_response(ApprovalService.approve_item(db, request_id, data.actor_id))


@router.post("/requests/{request_id}/reject", response_model=ApprovalResponse)
def reject_request(request_id: UUID, data: ActorRequest, db: Session = Depends(get_db)):
    return approval_response(ApprovalService.reject_item(db, request_id, data.actor_id))


@router.post("/requests/{request_id}/revert", response_model=ApprovalResponse)
def revert_request(request_id: UUID, data: ActorRequest, db: Session = Depends(get_db)):
    return approval_response(ApprovalService.revert_item(db, request_id, data.actor_id))


@router.patch("/requests/{request_id}", response_model=PurchaseRequestResponse)
def update_request(request_id: UUID, data: ApplyEditRequest, db: Session = Depends(get_db)):
    """Edit a pending line, or apply an approved edit"""
    return PurchaseService.update_request(db, request_id, data.changes, data.actor_id)


@router.post("/requests/{request_id}/request-edit", response_model=PurchaseRequestResponse)
def request_edit(request_id: UUID, data: EditRequest, db: Session = Depends(get_db)):
    return PurchaseService.request_edit(db, request_id, data.reason, data.actor_id)


@router.post("/requests/{request_id}/approve-edit", response_model=PurchaseRequestResponse)
def approve_edit(request_id: UUID, data: ActorRequest, db: Session = Depends(get_db)):
    return PurchaseService.approve_edit(db, request_id, data.actor_id)


@router.delete("/requests/{request_id}")
def delete_request(request_id: UUID, actor_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    audit = PurchaseService.delete_request(db, request_id, actor_id)
    return {"deleted": str(request_id), "audit_id": str(audit.id)}

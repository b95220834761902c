"""
Purchase Service - purchase batches and line item lifecycle
"""
from decimal import Decimal
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from uuid import UUID
import logging

from ledgerflow.core import run_atomic
from ledgerflow.core.errors import NotFoundError, ValidationError, InvalidTransitionError
from ledgerflow.models import PurchaseOrder, PurchaseRequest, AuditLog
from ledgerflow.schemas.purchase import PurchaseOrderCreate, PurchaseOrderUpdate, PurchaseRequestCreate, PurchaseRequestUpdate
from .approval_service import ApprovalService, request_state
from .audit_service import AuditService
from .catalog_service import CatalogService
from .costing import to_decimal
from . import request_states as states

logger = logging.getLogger(__name__)

class PurchaseService:
    """Purchase order business logic"""

    # ---------- Reads ----------

    @staticmethod
    def get_order(db: Session, order_id: UUID) -> PurchaseOrder:
        order = db.query(PurchaseOrder).filter(PurchaseOrder.id == order_id).first()
        if not order:
            raise NotFoundError("purchase order not found", entity_id=order_id)
        return order

    @staticmethod
    def order_status(order: PurchaseOrder) -> str:
        """Derived on every read from the line statuses"""
        return states.aggregate_status([r.status for r in order.requests], order.status)

    @staticmethod
    def order_view(order: PurchaseOrder) -> dict:
        return {
            "id": order.id,
            "nickname": order.nickname,
            "supplier_id": order.supplier_id,
            "created_by": order.created_by,
            "stored_status": order.status,
            "status": PurchaseService.order_status(order),
            "total_value": sum((to_decimal(r.total_cost) for r in order.requests), Decimal("0")),
            "requests": order.requests,
        }

    @staticmethod
    def get_orders(
        db: Session,
        status: Optional[str] = None,
        page: int = 1,
        per_page: int = 50
    ) -> Tuple[List[PurchaseOrder], int]:
        """Get orders, optionally filtered by derived status"""
        orders = db.query(PurchaseOrder).order_by(PurchaseOrder.created_at.desc()).all()
        if status and status != "all":
            orders = [o for o in orders if PurchaseService.order_status(o) == status]
        total = len(orders)
        start = (page - 1) * per_page
        return orders[start:start + per_page], total

    # ---------- Submission ----------

    @staticmethod
    def _validate_draft(db: Session, draft: PurchaseRequestCreate) -> str:
        """Check a line draft and return the item name to store"""
        if draft.quantity is None or to_decimal(draft.quantity) <= 0:
            raise ValidationError("quantity must be positive", entity_id=draft.item_id)
        if draft.total_cost is not None and to_decimal(draft.total_cost) < 0:
            raise ValidationError("total cost cannot be negative", entity_id=draft.item_id)
        if draft.destination_id is None:
            raise ValidationError("destination is required", entity_id=draft.item_id)
        CatalogService.get_location(db, draft.destination_id)

        if draft.item_id is not None:
            item = CatalogService.get_item(db, draft.item_id)
            return draft.item_name or item.name
        if not (draft.item_name or "").strip():
            raise ValidationError("item reference or name is required")
        return draft.item_name.strip()

    @staticmethod
    def _new_request(order: PurchaseOrder, draft: PurchaseRequestCreate, name: str, line_no: int, actor_id: Optional[str]) -> PurchaseRequest:
        return PurchaseRequest(
            order=order,
            line_no=line_no,
            item_id=draft.item_id,
            item_name=name,
            quantity=draft.quantity,
            unit=draft.unit,
            total_cost=draft.total_cost or Decimal("0"),
            destination_id=draft.destination_id,
            status=states.PENDING,
            requested_by=actor_id,
        )

    @staticmethod
    def submit_batch(db: Session, order_data: PurchaseOrderCreate, actor_id: Optional[str] = None) -> PurchaseOrder:
        """Create a purchase order with its pending line items"""
        if not (order_data.nickname or "").strip():
            raise ValidationError("order nickname is required")
        if order_data.supplier_id is not None:
            CatalogService.get_supplier(db, order_data.supplier_id)

        names = [PurchaseService._validate_draft(db, draft) for draft in order_data.items]

        def _submit() -> PurchaseOrder:
            order = PurchaseOrder(
                nickname=order_data.nickname.strip(),
                supplier_id=order_data.supplier_id,
                created_by=actor_id,
                status=states.ORDER_OPEN,
            )
            db.add(order)

            for line_no, (draft, name) in enumerate(zip(order_data.items, names), start=1):
                db.add(PurchaseService._new_request(order, draft, name, line_no, actor_id))

            db.flush()
            AuditService.record(
                db, "purchase_order", order.id, "SUBMIT", actor_id,
                after={"nickname": order.nickname, "lines": len(names)},
            )
            return order

        order = run_atomic(db, _submit, label="submit_batch")
        db.refresh(order)
        logger.info(f"Submitted purchase order {order.nickname} with {len(names)} lines")
        return order

    @staticmethod
    def add_request(db: Session, order_id: UUID, draft: PurchaseRequestCreate, actor_id: Optional[str] = None) -> PurchaseRequest:
        """Add a pending line to an existing order"""
        name = PurchaseService._validate_draft(db, draft)

        def _add() -> PurchaseRequest:
            order = PurchaseService.get_order(db, order_id)
            line_no = max((r.line_no for r in order.requests), default=0) + 1
            request = PurchaseService._new_request(order, draft, name, line_no, actor_id)
            db.add(request)
            db.flush()
            AuditService.record(db, "purchase_request", request.id, "CREATE", actor_id, after=request_state(request))
            return request

        request = run_atomic(db, _add, label="add_request")
        db.refresh(request)
        return request

    @staticmethod
    def update_order_header(db: Session, order_id: UUID, data: PurchaseOrderUpdate, actor_id: Optional[str] = None) -> PurchaseOrder:
        changes = data.model_dump(exclude_unset=True)
        if changes.get("supplier_id") is not None:
            CatalogService.get_supplier(db, changes["supplier_id"])

        def _update() -> PurchaseOrder:
            order = PurchaseService.get_order(db, order_id)
            before = {"nickname": order.nickname, "supplier_id": order.supplier_id}
            for field, value in changes.items():
                setattr(order, field, value)
            AuditService.record(db, "purchase_order", order.id, "UPDATE", actor_id, before=before, after=changes)
            return order

        order = run_atomic(db, _update, label="update_order")
        db.refresh(order)
        return order

    # ---------- Line edits ----------

    @staticmethod
    def _apply_changes(db: Session, request: PurchaseRequest, data: PurchaseRequestUpdate) -> None:
        changes = data.model_dump(exclude_unset=True)
        merged = PurchaseRequestCreate(
            item_id=changes.get("item_id", request.item_id),
            item_name=changes.get("item_name", request.item_name if "item_id" not in changes else None),
            quantity=changes.get("quantity", request.quantity),
            unit=changes.get("unit", request.unit),
            total_cost=changes.get("total_cost", request.total_cost),
            destination_id=changes.get("destination_id", request.destination_id),
        )
        name = PurchaseService._validate_draft(db, merged)

        request.item_id = merged.item_id
        request.item_name = name
        request.quantity = merged.quantity
        request.unit = merged.unit
        request.total_cost = merged.total_cost
        request.destination_id = merged.destination_id

    @staticmethod
    def update_request(db: Session, request_id: UUID, data: PurchaseRequestUpdate, actor_id: Optional[str] = None) -> PurchaseRequest:
        """
        Edit a line. Pending lines change in place; lines in edit_approved
        have their ledger effect reverted first and come back as pending.
        """
        def _update():
            request = ApprovalService.get_request(db, request_id)
            if request.status == states.EDIT_APPROVED:
                ApprovalService.apply_revert(db, request, actor_id, note="revert before edit")
            elif request.status != states.PENDING:
                raise InvalidTransitionError(
                    f"cannot edit a {request.status} request",
                    entity_id=request.id,
                    current=request.status,
                    target=states.PENDING,
                )

            before = request_state(request)
            PurchaseService._apply_changes(db, request, data)
            request.change_reason = None
            db.flush()
            AuditService.record(db, "purchase_request", request.id, "EDIT", actor_id, before=before, after=request_state(request))
            return request

        return run_atomic(db, _update, label="update_request")

    @staticmethod
    def request_edit(db: Session, request_id: UUID, reason: Optional[str] = None, actor_id: Optional[str] = None) -> PurchaseRequest:
        """approved -> edit_requested"""
        return PurchaseService._move(db, request_id, states.EDIT_REQUESTED, "REQUEST_EDIT", actor_id, reason)

    @staticmethod
    def approve_edit(db: Session, request_id: UUID, actor_id: Optional[str] = None) -> PurchaseRequest:
        """edit_requested -> edit_approved"""
        return PurchaseService._move(db, request_id, states.EDIT_APPROVED, "APPROVE_EDIT", actor_id)

    @staticmethod
    def _move(db: Session, request_id: UUID, target: str, action: str, actor_id: Optional[str], reason: Optional[str] = None) -> PurchaseRequest:
        def _transition():
            request = ApprovalService.get_request(db, request_id)
            states.ensure_transition(request, target)
            before = request_state(request)
            request.status = target
            if reason is not None:
                request.change_reason = reason
            db.flush()
            AuditService.record(db, "purchase_request", request.id, action, actor_id, before=before, after=request_state(request), note=reason)
            return request

        return run_atomic(db, _transition, label=action.lower())

    # ---------- Order-level edit workflow ----------

    @staticmethod
    def request_order_edit(db: Session, order_id: UUID, reason: Optional[str] = None, actor_id: Optional[str] = None) -> PurchaseOrder:
        return PurchaseService._move_order(db, order_id, states.ORDER_EDIT_REQUESTED, "REQUEST_EDIT", actor_id, reason)

    @staticmethod
    def approve_order_edit(db: Session, order_id: UUID, actor_id: Optional[str] = None) -> PurchaseOrder:
        return PurchaseService._move_order(db, order_id, states.ORDER_EDIT_APPROVED, "APPROVE_EDIT", actor_id)

    @staticmethod
    def close_order_edit(db: Session, order_id: UUID, actor_id: Optional[str] = None) -> PurchaseOrder:
        return PurchaseService._move_order(db, order_id, states.ORDER_OPEN, "CLOSE_EDIT", actor_id)

    @staticmethod
    def _move_order(db: Session, order_id: UUID, target: str, action: str, actor_id: Optional[str], reason: Optional[str] = None) -> PurchaseOrder:
        def _transition() -> PurchaseOrder:
            order = PurchaseService.get_order(db, order_id)
            states.ensure_order_transition(order, target)
            before = {"status": order.status}
            order.status = target
            AuditService.record(db, "purchase_order", order.id, action, actor_id, before=before, after={"status": target}, note=reason)
            return order

        order = run_atomic(db, _transition, label=f"order_{action.lower()}")
        db.refresh(order)
        return order

    # ---------- Secure delete ----------

    @staticmethod
    def delete_request(db: Session, request_id: UUID, actor_id: Optional[str] = None) -> AuditLog:
        """Delete a line, reverting its ledger effect first when it has one"""
        def _delete():
            request = ApprovalService.get_request(db, request_id)
            if request.status in states.APPLIED_STATES:
                ApprovalService.apply_revert(db, request, actor_id, note="revert before delete")
            before = request_state(request)
            before["order_id"] = request.order_id
            db.delete(request)
            db.flush()
            return AuditService.record(db, "purchase_request", request_id, "DELETE", actor_id, before=before)

        audit = run_atomic(db, _delete, label="delete_request")
        logger.info(f"Deleted purchase request {request_id}")
        return audit

    @staticmethod
    def delete_order(db: Session, order_id: UUID, actor_id: Optional[str] = None) -> AuditLog:
        """Delete an order and all its lines, reverting applied lines first"""
        def _delete():
            order = PurchaseService.get_order(db, order_id)
            reverted = []
            for request in list(order.requests):
                if request.status in states.APPLIED_STATES:
                    ApprovalService.apply_revert(db, request, actor_id, note="revert before order delete")
                    reverted.append(request.id)
            before = {"nickname": order.nickname, "lines": len(order.requests), "reverted": reverted}
            db.delete(order)
            db.flush()
            return AuditService.record(db, "purchase_order", order_id, "DELETE", actor_id, before=before)

        audit = run_atomic(db, _delete, label="delete_order")
        logger.info(f"Deleted purchase order {order_id}")
        return audit

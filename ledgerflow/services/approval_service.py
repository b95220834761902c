"""
Approval Service - commits purchase lines into the stock ledger

approve / reject / revert each run as one transaction per line. Batches run
sequentially in caller order so approvals landing on the same ledger entry
always see each other.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID
import logging

from ledgerflow.core import run_atomic
from ledgerflow.core.errors import LedgerError, NotFoundError, ValidationError, InvalidTransitionError
from ledgerflow.models import PurchaseRequest, PurchaseOrder, LedgerEntry, FinancialMovement, AuditLog
from .audit_service import AuditService
from .catalog_service import CatalogService
from .costing import quantize_cost, to_decimal
from .ledger_service import LedgerService, PURCHASE, PURCHASE_REVERT
from .units import to_stock_units
from . import request_states as states

logger = logging.getLogger(__name__)


@dataclass
class ApprovalResult:
    request: PurchaseRequest
    entry: Optional[LedgerEntry]
    audit: AuditLog
    exact: bool = True

    @property
    def ledger(self) -> Optional[dict]:
        return LedgerService.snapshot(self.entry) if self.entry is not None else None


@dataclass
class BatchItemResult:
    request_id: UUID
    ok: bool
    result: Optional[ApprovalResult] = None
    error: Optional[LedgerError] = None


def request_state(request: PurchaseRequest) -> dict:
    return {
        "status": request.status,
        "quantity": request.quantity,
        "unit": request.unit,
        "total_cost": request.total_cost,
        "destination_id": request.destination_id,
        "approved_by": request.approved_by,
    }


class ApprovalService:
    """Approval engine"""

    @staticmethod
    def get_request(db: Session, request_id: UUID) -> PurchaseRequest:
        request = db.query(PurchaseRequest).filter(PurchaseRequest.id == request_id).first()
        if not request:
            raise NotFoundError("purchase request not found", entity_id=request_id)
        return request

    # ---------- In-transaction steps ----------

    @staticmethod
    def apply_approval(db: Session, request: PurchaseRequest, actor_id: Optional[str]) -> ApprovalResult:
        """Approve inside the caller's transaction"""
        states.ensure_transition(request, states.APPROVED)
        before = request_state(request)

        if request.item_id is not None:
            item = CatalogService.get_item(db, request.item_id)
        else:
            item = CatalogService.find_item_by_name(db, request.item_name)
        CatalogService.get_location(db, request.destination_id)

        entry = None
        note = None
        if item is None:
            note = "uncatalogued item, no ledger effect"
        elif not item.is_stock_tracked:
            note = "expense item, no ledger effect"
        else:
            stock_qty = to_stock_units(item, request.quantity, request.unit)
            if stock_qty <= 0:
                raise ValidationError("purchase quantity must be positive", entity_id=request.id)
            unit_cost = quantize_cost(to_decimal(request.total_cost) / stock_qty)

            posted = LedgerService.post_movement(
                db,
                item_id=item.id,
                location_id=request.destination_id,
                signed_quantity=stock_qty,
                unit_cost=unit_cost,
                movement_type=PURCHASE,
                reference_type="PURCHASE_REQUEST",
                reference_id=request.id,
                actor_id=actor_id,
            )
            entry = posted.entry
            request.approval_seq = posted.movement.id
            request.applied_item_id = item.id
            request.applied_quantity = posted.movement.quantity
            request.applied_unit_cost = unit_cost

        ApprovalService._record_payable(db, request)

        request.status = states.APPROVED
        request.approved_by = actor_id
        request.approved_at = datetime.now(timezone.utc)
        db.flush()

        after = request_state(request)
        if entry is not None:
            after["ledger"] = LedgerService.snapshot(entry)
        audit = AuditService.record(db, "purchase_request", request.id, "APPROVE", actor_id, before=before, after=after, note=note)
        return ApprovalResult(request=request, entry=entry, audit=audit)

    @staticmethod
    def apply_revert(db: Session, request: PurchaseRequest, actor_id: Optional[str], note: Optional[str] = None) -> ApprovalResult:
        """
        Undo an approval inside the caller's transaction; the line returns to
        pending. The inverse movement is exact only when no later movement
        changed the entry's unit cost since the approval. Otherwise the entry
        keeps a blended cost that only reconciliation can correct.
        """
        if request.status not in states.APPLIED_STATES:
            raise InvalidTransitionError(
                f"cannot revert a {request.status} request",
                entity_id=request.id,
                current=request.status,
                target=states.PENDING,
            )
        before = request_state(request)

        entry = None
        exact = True
        if request.has_ledger_effect:
            exact = not LedgerService.has_incoming_since(db, request.applied_item_id, request.destination_id, request.approval_seq)
            posted = LedgerService.post_movement(
                db,
                item_id=request.applied_item_id,
                location_id=request.destination_id,
                signed_quantity=-to_decimal(request.applied_quantity),
                movement_type=PURCHASE_REVERT,
                reference_type="PURCHASE_REQUEST",
                reference_id=request.id,
                actor_id=actor_id,
                note=None if exact else "inexact revert, reconcile required",
            )
            entry = posted.entry
            if not exact:
                logger.warning(
                    f"Revert of request {request.id} is not exact: later movements changed the cost "
                    f"on item {request.applied_item_id} at {request.destination_id}; run reconcile"
                )

        db.query(FinancialMovement).filter(FinancialMovement.related_request_id == request.id).delete(synchronize_session=False)

        request.status = states.PENDING
        request.approved_by = None
        request.approved_at = None
        request.approval_seq = None
        request.applied_item_id = None
        request.applied_quantity = None
        request.applied_unit_cost = None
        db.flush()

        after = request_state(request)
        after["exact"] = exact
        if entry is not None:
            after["ledger"] = LedgerService.snapshot(entry)
        audit = AuditService.record(db, "purchase_request", request.id, "REVERT", actor_id, before=before, after=after, note=note)
        return ApprovalResult(request=request, entry=entry, audit=audit, exact=exact)

    @staticmethod
    def _record_payable(db: Session, request: PurchaseRequest) -> None:
        cost = to_decimal(request.total_cost)
        if cost <= 0:
            return
        payable = db.query(FinancialMovement).filter(FinancialMovement.related_request_id == request.id).first()
        if payable is None:
            payable = FinancialMovement(related_request_id=request.id)
            db.add(payable)
        payable.description = f"Purchase: {request.item_name}"
        payable.amount = -abs(cost)
        payable.movement_type = "expense"
        payable.status = "pending"

    # ---------- Public operations ----------

    @staticmethod
    def approve_item(db: Session, request_id: UUID, actor_id: Optional[str] = None) -> ApprovalResult:
        """Approve one pending line and post its stock movement"""
        def _approve():
            request = ApprovalService.get_request(db, request_id)
            return ApprovalService.apply_approval(db, request, actor_id)

        result = run_atomic(db, _approve, label="approve")
        logger.info(f"Approved purchase request {request_id} by {actor_id}")
        return result

    @staticmethod
    def reject_item(db: Session, request_id: UUID, actor_id: Optional[str] = None) -> ApprovalResult:
        """Reject a pending line, or revert then reject an approved one"""
        def _reject():
            request = ApprovalService.get_request(db, request_id)
            entry = None
            exact = True

            if request.status == states.APPROVED:
                reverted = ApprovalService.apply_revert(db, request, actor_id, note="revert before reject")
                entry, exact = reverted.entry, reverted.exact

            states.ensure_transition(request, states.REJECTED)
            before = request_state(request)
            request.status = states.REJECTED
            db.flush()
            audit = AuditService.record(db, "purchase_request", request.id, "REJECT", actor_id, before=before, after=request_state(request))
            return ApprovalResult(request=request, entry=entry, audit=audit, exact=exact)

        result = run_atomic(db, _reject, label="reject")
        logger.info(f"Rejected purchase request {request_id} by {actor_id}")
        return result

    @staticmethod
    def revert_item(db: Session, request_id: UUID, actor_id: Optional[str] = None) -> ApprovalResult:
        """Best-effort inverse of an approval; the line returns to pending"""
        def _revert():
            request = ApprovalService.get_request(db, request_id)
            if request.status != states.APPROVED:
                raise InvalidTransitionError(
                    f"cannot revert a {request.status} request",
                    entity_id=request.id,
                    current=request.status,
                    target=states.PENDING,
                )
            return ApprovalService.apply_revert(db, request, actor_id)

        result = run_atomic(db, _revert, label="revert")
        logger.info(f"Reverted purchase request {request_id} (exact={result.exact})")
        return result

    @staticmethod
    def batch_approve(db: Session, request_ids: List[UUID], actor_id: Optional[str] = None) -> List[BatchItemResult]:
        """Approve sequentially; failures are collected, never rolled into the others"""
        results = []
        for request_id in request_ids:
            try:
                result = ApprovalService.approve_item(db, request_id, actor_id)
                results.append(BatchItemResult(request_id=request_id, ok=True, result=result))
            except LedgerError as e:
                logger.warning(f"Batch approval failed for {request_id}: {e.kind} {e.detail}")
                results.append(BatchItemResult(request_id=request_id, ok=False, error=e))

        succeeded = sum(1 for r in results if r.ok)
        logger.info(f"Batch approval: {succeeded}/{len(results)} succeeded")
        return results

    @staticmethod
    def approve_order(db: Session, order_id: UUID, actor_id: Optional[str] = None) -> List[BatchItemResult]:
        """Batch-approve every pending line of an order that is not being edited"""
        order = db.query(PurchaseOrder).filter(PurchaseOrder.id == order_id).first()
        if not order:
            raise NotFoundError("purchase order not found", entity_id=order_id)

        status = states.aggregate_status([r.status for r in order.requests], order.status)
        if status == states.EDITING:
            raise ValidationError("order is being edited", entity_id=order_id, status=status)

        pending_ids = [r.id for r in order.requests if r.status == states.PENDING]
        return ApprovalService.batch_approve(db, pending_ids, actor_id)

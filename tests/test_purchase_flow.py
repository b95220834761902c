from decimal import Decimal
from uuid import uuid4

import pytest

from ledgerflow.core.errors import InvalidTransitionError, NotFoundError, ValidationError
from ledgerflow.models import AuditLog, PurchaseOrder, PurchaseRequest
from ledgerflow.schemas.purchase import PurchaseOrderCreate, PurchaseRequestCreate, PurchaseRequestUpdate
from ledgerflow.services import ApprovalService, AuditService, PurchaseService
from ledgerflow.services.costing import LedgerState


def test_submit_batch_creates_pending_lines(db, make_item, make_order):
    rice, beans = make_item("Rice"), make_item("Beans")
    order = make_order((rice, 2, "10.00"), (beans, 1, "6.50"))

    assert [r.status for r in order.requests] == ["pending", "pending"]
    assert [r.line_no for r in order.requests] == [1, 2]
    view = PurchaseService.order_view(order)
    assert view["status"] == "pending"
    assert view["total_value"] == Decimal("16.50")


def test_submit_rejects_bad_lines_before_writing(db, make_item, location):
    rice = make_item("Rice")
    data = PurchaseOrderCreate(nickname="Bad", items=[
        PurchaseRequestCreate(item_id=rice.id, quantity=Decimal("1"), total_cost=Decimal("1"), destination_id=location.id),
        PurchaseRequestCreate(item_id=rice.id, quantity=Decimal("0"), total_cost=Decimal("1"), destination_id=location.id),
    ])
    with pytest.raises(ValidationError):
        PurchaseService.submit_batch(db, data)
    assert db.query(PurchaseRequest).count() == 0


def test_submit_requires_known_destination(db, make_item):
    data = PurchaseOrderCreate(nickname="Lost", items=[
        PurchaseRequestCreate(item_id=make_item("Rice").id, quantity=Decimal("1"), destination_id=uuid4()),
    ])
    with pytest.raises(NotFoundError):
        PurchaseService.submit_batch(db, data)


def test_edit_workflow(db, make_item, purchase, ledger):
    item = make_item("Olive oil", unit="l")
    request = purchase(item, 2, "30.00")
    ApprovalService.approve_item(db, request.id)

    PurchaseService.request_edit(db, request.id, reason="wrong quantity", actor_id="buyer")
    order = PurchaseService.get_order(db, request.order_id)
    assert PurchaseService.order_status(order) == "editing"
    with pytest.raises(ValidationError):
        ApprovalService.approve_order(db, order.id)

    PurchaseService.approve_edit(db, request.id, actor_id="manager")
    edited = PurchaseService.update_request(db, request.id, PurchaseRequestUpdate(quantity=Decimal("3")), actor_id="buyer")

    assert edited.status == "pending"
    assert edited.quantity == Decimal("3")
    assert ledger(item).quantity == 0

    ApprovalService.approve_item(db, request.id)
    assert ledger(item) == LedgerState.of(3, 10)


def test_cannot_edit_approved_line_directly(db, make_item, purchase):
    request = purchase(make_item("Tea"), 1, "5.00")
    ApprovalService.approve_item(db, request.id)
    with pytest.raises(InvalidTransitionError):
        PurchaseService.update_request(db, request.id, PurchaseRequestUpdate(quantity=Decimal("2")))


def test_order_level_edit_state(db, make_item, make_order):
    order = make_order((make_item("Rice"), 1, "5.00"))

    PurchaseService.request_order_edit(db, order.id, reason="supplier changed")
    assert PurchaseService.order_status(PurchaseService.get_order(db, order.id)) == "editing"
    PurchaseService.approve_order_edit(db, order.id)
    PurchaseService.close_order_edit(db, order.id)

    results = ApprovalService.approve_order(db, order.id)
    assert all(r.ok for r in results)
    assert PurchaseService.order_status(PurchaseService.get_order(db, order.id)) == "approved"


def test_delete_request_reverts_ledger(db, make_item, purchase, ledger):
    item = make_item("Flour", unit="kg")
    request = purchase(item, 5, "15.00")
    ApprovalService.approve_item(db, request.id)
    request_id = request.id

    audit = PurchaseService.delete_request(db, request_id, actor_id="manager")

    assert audit.action == "DELETE"
    assert ledger(item).quantity == 0
    assert db.query(PurchaseRequest).filter(PurchaseRequest.id == request_id).count() == 0
    actions = {a.action for a in db.query(AuditLog).filter(AuditLog.entity_id == str(request_id))}
    assert {"APPROVE", "REVERT", "DELETE"} <= actions


def test_delete_order_reverts_applied_lines(db, make_item, make_order, ledger):
    rice, beans = make_item("Rice"), make_item("Beans")
    order = make_order((rice, 2, "10.00"), (beans, 1, "6.50"))
    ApprovalService.approve_item(db, order.requests[0].id)
    order_id = order.id

    PurchaseService.delete_order(db, order_id)

    assert ledger(rice).quantity == 0
    with pytest.raises(NotFoundError):
        PurchaseService.get_order(db, order_id)


def test_orders_filtered_by_derived_status(db, make_item, make_order):
    rice = make_item("Rice")
    first = make_order((rice, 1, "5.00"), nickname="first")
    make_order((rice, 1, "5.00"), nickname="second")
    ApprovalService.approve_order(db, first.id)

    orders, total = PurchaseService.get_orders(db, status="approved")
    assert total == 1
    assert orders[0].nickname == "first"


def test_failed_submit_leaves_nothing_behind(db, make_item, make_order, monkeypatch):
    rice = make_item("Rice")

    def failing_record(*args, **kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(AuditService, "record", staticmethod(failing_record))
    with pytest.raises(RuntimeError):
        make_order((rice, 2, "10.00"), (rice, 1, "5.00"))

    assert db.query(PurchaseOrder).count() == 0
    assert db.query(PurchaseRequest).count() == 0

    monkeypatch.undo()
    order = make_order((rice, 2, "10.00"))
    assert db.query(PurchaseRequest).filter(PurchaseRequest.order_id == order.id).count() == 1


def test_failed_order_transition_keeps_state(db, make_item, make_order, monkeypatch):
    order = make_order((make_item("Beans"), 1, "6.50"))

    def failing_record(*args, **kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(AuditService, "record", staticmethod(failing_record))
    with pytest.raises(RuntimeError):
        PurchaseService.request_order_edit(db, order.id, reason="wrong supplier")

    assert PurchaseService.get_order(db, order.id).status == "open"

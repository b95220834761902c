from decimal import Decimal
from uuid import uuid4

import pytest

from ledgerflow.core.errors import InvalidTransitionError, NotFoundError
from ledgerflow.models import AuditLog, FinancialMovement, PurchaseRequest, StockMovement
from ledgerflow.schemas.purchase import PurchaseOrderCreate, PurchaseRequestCreate
from ledgerflow.services import ApprovalService, AuditService, CatalogService, LedgerService, PurchaseService, ReplayService
from ledgerflow.services.costing import LedgerState


def test_approve_posts_purchase_movement(db, make_item, purchase, ledger):
    flour = make_item("Flour", unit="kg")
    request = purchase(flour, 10, "20.00")

    result = ApprovalService.approve_item(db, request.id, actor_id="manager")

    assert result.request.status == "approved"
    assert result.request.approved_by == "manager"
    assert ledger(flour).quantity == Decimal("10")
    assert ledger(flour).unit_cost == Decimal("2")
    assert result.ledger["quantity"] == Decimal("10")

    movement = db.query(StockMovement).filter(StockMovement.reference_id == str(request.id)).one()
    assert movement.movement_type == "PURCHASE"
    assert movement.id == result.request.approval_seq


def test_second_purchase_blends_cost(db, make_item, purchase, ledger):
    flour = make_item("Flour", unit="kg")
    ApprovalService.approve_item(db, purchase(flour, 10, "20.00").id)
    ApprovalService.approve_item(db, purchase(flour, 5, "15.00").id)

    state = ledger(flour)
    assert state.quantity == Decimal("15")
    assert state.unit_cost == Decimal("2.333333")


def test_purchase_in_other_unit_is_converted(db, make_item, purchase, ledger):
    sugar = make_item("Sugar", unit="g")
    ApprovalService.approve_item(db, purchase(sugar, 2, "8.00", "kg").id)

    state = ledger(sugar)
    assert state.quantity == Decimal("2000")
    assert state.unit_cost == Decimal("0.004")


def test_exact_revert_on_fresh_entry(db, make_item, purchase, ledger):
    item = make_item("Butter")
    request = purchase(item, 5, "15.00")
    ApprovalService.approve_item(db, request.id)

    result = ApprovalService.revert_item(db, request.id)

    assert result.exact is True
    assert result.request.status == "pending"
    assert result.request.approval_seq is None
    assert ledger(item).quantity == 0


def test_inexact_revert_leaves_drift_for_reconcile(db, make_item, purchase, ledger):
    item = make_item("Cocoa")
    a = purchase(item, 5, "15.00")
    b = purchase(item, 5, "25.00")
    ApprovalService.approve_item(db, a.id)
    ApprovalService.approve_item(db, b.id)
    assert ledger(item) == LedgerState.of(10, 4)

    result = ApprovalService.revert_item(db, a.id)

    assert result.exact is False
    assert ledger(item).quantity == Decimal("5")
    assert ledger(item).unit_cost == Decimal("4")

    ReplayService.reconcile(db)
    assert ledger(item).quantity == Decimal("5")
    assert ledger(item).unit_cost == Decimal("5")


def test_reject_pending(db, make_item, purchase, ledger):
    item = make_item("Eggs")
    request = purchase(item, 12, "6.00")

    result = ApprovalService.reject_item(db, request.id)

    assert result.request.status == "rejected"
    assert result.entry is None
    assert ledger(item).quantity == 0


def test_reject_approved_reverts_first(db, make_item, purchase, ledger):
    item = make_item("Milk", unit="l")
    request = purchase(item, 4, "12.00")
    ApprovalService.approve_item(db, request.id)

    result = ApprovalService.reject_item(db, request.id, actor_id="manager")

    assert result.request.status == "rejected"
    assert ledger(item).quantity == 0
    actions = [a.action for a in db.query(AuditLog).filter(AuditLog.entity_id == str(request.id)).all()]
    assert "REVERT" in actions
    assert "REJECT" in actions


def test_rejected_line_cannot_be_approved(db, make_item, purchase):
    item = make_item("Yeast")
    request = purchase(item, 1, "3.00")
    ApprovalService.reject_item(db, request.id)

    with pytest.raises(InvalidTransitionError):
        ApprovalService.approve_item(db, request.id)


def test_revert_requires_approved(db, make_item, purchase):
    request = purchase(make_item("Salt"), 1, "1.00")
    with pytest.raises(InvalidTransitionError):
        ApprovalService.revert_item(db, request.id)


def test_approve_unknown_request(db):
    with pytest.raises(NotFoundError):
        ApprovalService.approve_item(db, uuid4())


def test_batch_approve_collects_failures(db, make_item, make_order, ledger):
    a, b, c = make_item("Rice"), make_item("Beans"), make_item("Oil", unit="l")
    order = make_order((a, 1, "5.00"), (b, 2, "8.00"), (c, 3, "27.00"))
    CatalogService.delete_item(db, b.id)

    results = ApprovalService.batch_approve(db, [r.id for r in order.requests], actor_id="manager")

    assert [r.ok for r in results] == [True, False, True]
    assert results[1].error.kind == "not_found"
    assert ledger(a).quantity == Decimal("1")
    assert ledger(c).unit_cost == Decimal("9")
    assert PurchaseService.order_status(PurchaseService.get_order(db, order.id)) == "partial"


def test_expense_line_has_no_ledger_effect(db, make_item, purchase, ledger):
    gas = make_item("Gas refill", is_stock_tracked=False)
    request = purchase(gas, 1, "110.00")

    result = ApprovalService.approve_item(db, request.id)

    assert result.request.status == "approved"
    assert result.entry is None
    assert ledger(gas).quantity == 0
    assert db.query(FinancialMovement).filter(FinancialMovement.related_request_id == request.id).count() == 1


def test_uncatalogued_line_matches_by_name(db, location, make_item, ledger):
    sugar = make_item("Açúcar", unit="kg")
    order = PurchaseService.submit_batch(db, PurchaseOrderCreate(nickname="Market", items=[
        PurchaseRequestCreate(item_name="  acucar ", quantity=Decimal("2"), unit="kg",
                              total_cost=Decimal("9.00"), destination_id=location.id),
        PurchaseRequestCreate(item_name="Paper towels", quantity=Decimal("1"), unit="un",
                              total_cost=Decimal("4.00"), destination_id=location.id),
    ]))
    matched, unknown = order.requests

    ApprovalService.approve_item(db, matched.id)
    result = ApprovalService.approve_item(db, unknown.id)

    assert ledger(sugar).quantity == Decimal("2")
    assert result.entry is None
    assert result.request.status == "approved"


def test_payable_follows_approval(db, make_item, purchase):
    item = make_item("Cheese")
    request = purchase(item, 2, "30.00")

    ApprovalService.approve_item(db, request.id)
    payable = db.query(FinancialMovement).filter(FinancialMovement.related_request_id == request.id).one()
    assert payable.amount == Decimal("-30.00")
    assert payable.status == "pending"

    ApprovalService.revert_item(db, request.id)
    assert db.query(FinancialMovement).filter(FinancialMovement.related_request_id == request.id).count() == 0


def test_approval_is_audited(db, make_item, purchase):
    request = purchase(make_item("Ham"), 1, "12.00")
    result = ApprovalService.approve_item(db, request.id, actor_id="manager")

    assert result.audit.action == "APPROVE"
    assert result.audit.performed_by == "manager"
    assert result.audit.before_data["status"] == "pending"
    assert result.audit.after_data["status"] == "approved"


def test_revert_exact_after_plain_recount(db, make_item, purchase, location, ledger):
    item = make_item("Tea")
    request = purchase(item, 5, "15.00")
    ApprovalService.approve_item(db, request.id)
    LedgerService.adjust_stock(db, item.id, location.id, 8, "found box")

    result = ApprovalService.revert_item(db, request.id)

    assert result.exact is True
    assert ledger(item) == LedgerState.of(3, 3)


def test_revert_inexact_after_cost_override(db, make_item, purchase, location, ledger):
    item = make_item("Honey")
    request = purchase(item, 5, "15.00")
    ApprovalService.approve_item(db, request.id)
    LedgerService.adjust_stock(db, item.id, location.id, 4, "recount", unit_cost="4")

    result = ApprovalService.revert_item(db, request.id)

    assert result.exact is False
    assert ledger(item).quantity == Decimal("-1")


def test_failed_approval_applies_nothing(db, make_item, purchase, ledger, monkeypatch):
    item = make_item("Pepper")
    request = purchase(item, 3, "9.00")

    def failing_record(*args, **kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(AuditService, "record", staticmethod(failing_record))

    with pytest.raises(RuntimeError):
        ApprovalService.approve_item(db, request.id)

    assert ledger(item).quantity == 0
    assert db.query(StockMovement).count() == 0
    assert db.query(FinancialMovement).count() == 0
    assert db.get(PurchaseRequest, request.id).status == "pending"

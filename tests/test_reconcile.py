from decimal import Decimal

import pytest

from ledgerflow.core.errors import ConsistencyError
from ledgerflow.models import AuditLog
from ledgerflow.services import ApprovalService, CatalogService, LedgerService, ProductionService, ReplayService
from ledgerflow.services.costing import LedgerState
from ledgerflow.services.replay_service import ReplayMovement, fold


def corrupt(db, item, location, quantity, unit_cost):
    entry = LedgerService.get_entry(db, item.id, location.id)
    entry.quantity = Decimal(quantity)
    entry.unit_cost = Decimal(unit_cost)
    db.commit()


def test_fold_replays_in_sequence_order(make_item, location):
    item = make_item("Flour")
    key = (item.id, location.id)
    movements = [
        ReplayMovement(1, item.id, location.id, "PURCHASE", Decimal("10"), Decimal("2"), "a"),
        ReplayMovement(2, item.id, location.id, "PRODUCTION_OUT", Decimal("-4"), None, "b"),
        ReplayMovement(3, item.id, location.id, "PURCHASE", Decimal("6"), Decimal("4"), "c"),
        ReplayMovement(4, item.id, location.id, "ADJUST", Decimal("-2"), None, "d"),
    ]
    assert fold(movements)[key] == LedgerState.of(10, 3)


def test_clean_ledger_verifies(db, make_item, purchase):
    item = make_item("Rice")
    ApprovalService.approve_item(db, purchase(item, 10, "20.00").id)
    ApprovalService.approve_item(db, purchase(item, 5, "15.00").id)

    assert ReplayService.verify(db) == []
    ReplayService.assert_consistent(db)


def test_reconcile_repairs_drift(db, make_item, purchase, location, ledger):
    item = make_item("Rice")
    ApprovalService.approve_item(db, purchase(item, 10, "20.00").id)
    corrupt(db, item, location, "99", "7")

    drift = ReplayService.verify(db)
    assert len(drift) == 1
    assert drift[0].current.quantity == Decimal("99")
    assert drift[0].replayed == LedgerState.of(10, 2)
    with pytest.raises(ConsistencyError):
        ReplayService.assert_consistent(db)

    report = ReplayService.reconcile(db, actor_id="auditor")

    assert len(report.drift) == 1
    assert ledger(item) == LedgerState.of(10, 2)
    assert report.audit.action == "RECONCILE"
    ReplayService.assert_consistent(db)


def test_reconcile_is_idempotent(db, make_item, purchase, location, ledger):
    item = make_item("Beans")
    a = purchase(item, 5, "15.00")
    ApprovalService.approve_item(db, a.id)
    ApprovalService.approve_item(db, purchase(item, 5, "25.00").id)
    ApprovalService.revert_item(db, a.id)

    ReplayService.reconcile(db)
    first = ledger(item)
    second_report = ReplayService.reconcile(db)

    assert ledger(item) == first
    assert second_report.drift == []


def test_reconcile_scoped_to_item(db, make_item, purchase, location, ledger):
    rice, beans = make_item("Rice"), make_item("Beans")
    ApprovalService.approve_item(db, purchase(rice, 10, "20.00").id)
    ApprovalService.approve_item(db, purchase(beans, 4, "8.00").id)
    corrupt(db, rice, location, "1", "1")
    corrupt(db, beans, location, "1", "1")

    report = ReplayService.reconcile(db, item_id=rice.id)

    assert [e.item_id for e in report.entries] == [rice.id]
    assert ledger(rice) == LedgerState.of(10, 2)
    assert ledger(beans) == LedgerState.of(1, 1)


def test_entry_without_history_resets_to_zero(db, make_item, purchase, location, ledger):
    item = make_item("Salt")
    request = purchase(item, 3, "3.00")
    ApprovalService.approve_item(db, request.id)
    ApprovalService.revert_item(db, request.id)

    ReplayService.reconcile(db)

    assert ledger(item).quantity == 0


def test_deleted_item_is_skipped_with_note(db, make_item, purchase):
    item = make_item("Discontinued")
    request = purchase(item, 2, "4.00")
    ApprovalService.approve_item(db, request.id)
    CatalogService.delete_item(db, item.id)

    report = ReplayService.reconcile(db)

    assert report.skipped_requests == [request.id]
    note = db.query(AuditLog).filter(AuditLog.action == "RECONCILE_SKIP").one()
    assert note.entity_id == str(request.id)


def test_deleted_ingredient_keeps_its_entry(db, make_item, set_bom, purchase, location, ledger):
    flour = make_item("Flour", unit="g")
    bread = make_item("Bread", is_product=True)
    set_bom(bread, [(flour, Decimal("100"), "g")])
    request = purchase(flour, 1000, "10.00")
    ApprovalService.approve_item(db, request.id)
    ProductionService.commit(db, bread.id, 2, location.id)
    CatalogService.delete_item(db, flour.id)

    assert ReplayService.verify(db) == []
    report = ReplayService.reconcile(db)

    assert report.skipped_requests == [request.id]
    assert report.drift == []
    assert flour.id not in [e.item_id for e in report.entries]
    assert ledger(flour) == LedgerState.of(800, "0.01")
    assert ledger(bread) == LedgerState.of(2, "1")

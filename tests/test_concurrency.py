import logging
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ledgerflow.core import Base, run_atomic, settings
from ledgerflow.core.errors import ConflictError
from ledgerflow.models import PurchaseRequest, StockLocation, StockMovement
from ledgerflow.schemas.catalog import ItemCreate, LocationCreate
from ledgerflow.schemas.purchase import PurchaseOrderCreate, PurchaseRequestCreate
from ledgerflow.services import ApprovalService, CatalogService, LedgerService, PurchaseService, ReplayService


@pytest.fixture
def sessions(tmp_path):
    """Two independent sessions on one file-backed database"""
    engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    first, second = Session(), Session()
    try:
        yield first, second
    finally:
        first.close()
        second.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def contested(sessions):
    """One item with three lines, the first already approved; the second session holds its entry"""
    first, second = sessions
    location = CatalogService.create_location(first, LocationCreate(code="MAIN", name="Main store"))
    item = CatalogService.create_item(first, ItemCreate(name="Flour", unit="kg"))
    order = PurchaseService.submit_batch(first, PurchaseOrderCreate(nickname="Market", items=[
        PurchaseRequestCreate(item_id=item.id, quantity=Decimal(q), unit="kg",
                              total_cost=Decimal(c), destination_id=location.id)
        for q, c in [("5", "10.00"), ("10", "30.00"), ("10", "40.00")]
    ]))
    a, b, c = [r.id for r in order.requests]
    item_id, location_id = item.id, location.id
    ApprovalService.approve_item(first, a)

    held = LedgerService.get_entry(second, item_id, location_id)
    assert held.quantity == Decimal("5")

    ApprovalService.approve_item(first, b)
    return first, second, held, item_id, location_id, c


def test_stale_entry_is_retried(contested, caplog):
    first, second, held, item_id, location_id, c = contested

    with caplog.at_level(logging.WARNING, logger="ledgerflow.core.database"):
        ApprovalService.approve_item(second, c, actor_id="manager")

    assert any("Conflict in approve" in r.getMessage() for r in caplog.records)
    entry = LedgerService.get_entry(second, item_id, location_id)
    assert entry.quantity == Decimal("25")
    assert second.get(PurchaseRequest, c).status == "approved"
    assert ReplayService.verify(second) == []


def test_conflict_without_retries_applies_nothing(contested, monkeypatch):
    first, second, held, item_id, location_id, c = contested
    monkeypatch.setattr(settings, "CONFLICT_RETRIES", 0)
    movements = second.query(StockMovement).count()

    with pytest.raises(ConflictError):
        ApprovalService.approve_item(second, c)

    assert second.get(PurchaseRequest, c).status == "pending"
    assert LedgerService.get_entry(second, item_id, location_id).quantity == Decimal("15")
    assert second.query(StockMovement).count() == movements


def test_run_atomic_retries_conflicts(db):
    calls = []

    def operation():
        calls.append(1)
        if len(calls) < 3:
            raise ConflictError("busy")
        return "done"

    assert run_atomic(db, operation, retries=2) == "done"
    assert len(calls) == 3


def test_run_atomic_gives_up_after_retries(db):
    calls = []

    def operation():
        calls.append(1)
        raise ConflictError("busy", entity_id="x")

    with pytest.raises(ConflictError) as exc:
        run_atomic(db, operation, retries=1)
    assert len(calls) == 2
    assert exc.value.context["attempts"] == 2


def test_run_atomic_rolls_back_other_errors(db):
    calls = []

    def operation():
        calls.append(1)
        db.add(StockLocation(code="TMP", name="Temporary"))
        db.flush()
        raise ValueError("boom")

    with pytest.raises(ValueError):
        run_atomic(db, operation)
    assert len(calls) == 1
    assert db.query(StockLocation).count() == 0

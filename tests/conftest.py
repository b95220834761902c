import os

os.environ.setdefault("DATABASE_URI", "sqlite://")

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ledgerflow.core import Base
from ledgerflow import models  # noqa: F401  registers tables
from ledgerflow.schemas.catalog import LocationCreate, ItemCreate, BomLineCreate
from ledgerflow.schemas.purchase import PurchaseOrderCreate, PurchaseRequestCreate
from ledgerflow.services import CatalogService, LedgerService, PurchaseService


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def location(db):
    return CatalogService.create_location(db, LocationCreate(code="MAIN", name="Main store", is_default=True))


@pytest.fixture
def make_item(db):
    def _make_item(name, unit="un", **kwargs):
        return CatalogService.create_item(db, ItemCreate(name=name, unit=unit, **kwargs))
    return _make_item


@pytest.fixture
def set_bom(db):
    def _set_bom(product, lines):
        return CatalogService.replace_bom(
            db, product.id, [BomLineCreate(ingredient_id=i.id, quantity=q, unit=u) for i, q, u in lines]
        )
    return _set_bom


@pytest.fixture
def make_order(db, location):
    """Submit an order; lines are (item, quantity, total_cost[, unit])"""
    def _make_order(*lines, nickname="Weekly market"):
        drafts = []
        for line in lines:
            item, quantity, total_cost = line[:3]
            unit = line[3] if len(line) > 3 else item.unit
            drafts.append(PurchaseRequestCreate(
                item_id=item.id,
                quantity=Decimal(str(quantity)),
                unit=unit,
                total_cost=Decimal(str(total_cost)),
                destination_id=location.id,
            ))
        return PurchaseService.submit_batch(db, PurchaseOrderCreate(nickname=nickname, items=drafts), actor_id="buyer")
    return _make_order


@pytest.fixture
def purchase(make_order):
    """Submit a single-line order and return the line"""
    def _purchase(item, quantity, total_cost, unit=None):
        line = (item, quantity, total_cost) if unit is None else (item, quantity, total_cost, unit)
        return make_order(line).requests[0]
    return _purchase


@pytest.fixture
def ledger(db, location):
    def _ledger(item, at=None):
        return LedgerService.state_of(LedgerService.get_entry(db, item.id, (at or location).id))
    return _ledger

"""
Stock & Inventory Models
"""
from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey, Text, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ledgerflow.core import Base
from .base import UUIDMixin

class LedgerEntry(Base, UUIDMixin):
    """Current quantity and weighted-average unit cost per (item, location)"""
    __tablename__ = "ledger_entry"
    __table_args__ = (
        UniqueConstraint("item_id", "location_id", name="uq_ledger_entry_item_location"),
    )

    item_id = Column(Uuid(as_uuid=True), ForeignKey("inventory_item.id"), nullable=False, index=True)
    location_id = Column(Uuid(as_uuid=True), ForeignKey("stock_location.id"), nullable=False, index=True)

    quantity = Column(Numeric(18, 4), nullable=False, default=0)  # Signed
    unit_cost = Column(Numeric(18, 6), nullable=False, default=0)

    version = Column(Integer, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    item = relationship("InventoryItem", back_populates="ledger_entries")
    location = relationship("StockLocation", back_populates="ledger_entries")

class StockMovement(Base):
    """Stock Movement Journal (append-only, id is the global sequence)"""
    __tablename__ = "stock_movement"

    id = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(Uuid(as_uuid=True), ForeignKey("inventory_item.id"), nullable=False, index=True)
    location_id = Column(Uuid(as_uuid=True), ForeignKey("stock_location.id"), nullable=False, index=True)

    # Movement info
    movement_type = Column(String(20), nullable=False)  # PURCHASE, PURCHASE_REVERT, PRODUCTION_IN, PRODUCTION_OUT, ADJUST
    quantity = Column(Numeric(18, 4), nullable=False)  # Positive or negative
    unit_cost = Column(Numeric(18, 6))  # Incoming cost, or cost override for ADJUST

    quantity_before = Column(Numeric(18, 4), nullable=False)
    quantity_after = Column(Numeric(18, 4), nullable=False)
    cost_before = Column(Numeric(18, 6), nullable=False)
    cost_after = Column(Numeric(18, 6), nullable=False)

    # Reference
    reference_type = Column(String(30))  # PURCHASE_REQUEST, PRODUCTION_ORDER, ADJUSTMENT
    reference_id = Column(String(50), index=True)

    # Metadata
    note = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    created_by = Column(String(100))

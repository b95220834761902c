"""
Inventory Item & Bill of Materials Models
"""
from sqlalchemy import Column, String, Numeric, Boolean, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from ledgerflow.core import Base
from .base import UUIDMixin, TimestampMixin

class InventoryItem(Base, UUIDMixin, TimestampMixin):
    """Purchasable/consumable good or finished product"""
    __tablename__ = "inventory_item"

    name = Column(String(300), nullable=False, index=True)
    category = Column(String(100))
    unit = Column(String(20), nullable=False, default="un")  # Stock unit
    secondary_unit = Column(String(20))  # e.g. "cx" (box)
    secondary_factor = Column(Numeric(18, 6))  # 1 secondary unit = factor stock units
    is_stock_tracked = Column(Boolean, default=True, nullable=False)  # False = expense line
    is_product = Column(Boolean, default=False, nullable=False)  # Finished product entity
    batch_size = Column(Numeric(18, 4), default=1, nullable=False)  # BOM quantities are per batch
    min_stock = Column(Numeric(18, 4), default=0)
    deleted_at = Column(DateTime(timezone=True))

    # Relationships
    ledger_entries = relationship("LedgerEntry", back_populates="item")
    bom_lines = relationship("BomLine", foreign_keys="BomLine.product_id", back_populates="product", order_by="BomLine.ingredient_id")
    used_in = relationship("BomLine", foreign_keys="BomLine.ingredient_id", back_populates="ingredient")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

class BomLine(Base, UUIDMixin):
    """Bill of Materials line: ingredient needed per batch of the product"""
    __tablename__ = "bom_line"

    product_id = Column(Uuid(as_uuid=True), ForeignKey("inventory_item.id"), nullable=False, index=True)
    ingredient_id = Column(Uuid(as_uuid=True), ForeignKey("inventory_item.id"), nullable=False)
    quantity = Column(Numeric(18, 4), nullable=False)
    unit = Column(String(20), nullable=False)

    # Relationships
    product = relationship("InventoryItem", foreign_keys=[product_id], back_populates="bom_lines")
    ingredient = relationship("InventoryItem", foreign_keys=[ingredient_id], back_populates="used_in")

"""
Production Order Models
"""
from sqlalchemy import Column, String, Numeric, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from ledgerflow.core import Base
from .base import UUIDMixin, TimestampMixin

class ProductionOrder(Base, UUIDMixin, TimestampMixin):
    """Committed production run; costs are a snapshot taken at commit"""
    __tablename__ = "production_order"

    finished_item_id = Column(Uuid(as_uuid=True), ForeignKey("inventory_item.id"), nullable=False, index=True)
    location_id = Column(Uuid(as_uuid=True), ForeignKey("stock_location.id"), nullable=False)
    quantity = Column(Numeric(18, 4), nullable=False)
    batch_cost = Column(Numeric(18, 6), nullable=False)
    unit_cost = Column(Numeric(18, 6), nullable=False)
    created_by = Column(String(100))

    # Relationships
    finished_item = relationship("InventoryItem")
    location = relationship("StockLocation")
    lines = relationship("ProductionOrderLine", back_populates="production_order", cascade="all, delete-orphan")

class ProductionOrderLine(Base, UUIDMixin):
    """Ingredient consumed by a production order"""
    __tablename__ = "production_order_line"

    production_order_id = Column(Uuid(as_uuid=True), ForeignKey("production_order.id"), nullable=False, index=True)
    ingredient_id = Column(Uuid(as_uuid=True), ForeignKey("inventory_item.id"), nullable=False)
    quantity = Column(Numeric(18, 4), nullable=False)  # Stock units of the ingredient
    unit = Column(String(20), nullable=False)
    unit_cost = Column(Numeric(18, 6), nullable=False)
    line_cost = Column(Numeric(18, 6), nullable=False)

    # Relationships
    production_order = relationship("ProductionOrder", back_populates="lines")
    ingredient = relationship("InventoryItem")

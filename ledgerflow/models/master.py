"""
Master Tables: StockLocation, Supplier
"""
from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship
from ledgerflow.core import Base
from .base import UUIDMixin, TimestampMixin

class StockLocation(Base, UUIDMixin, TimestampMixin):
    """Stock Location (store, kitchen, warehouse)"""
    __tablename__ = "stock_location"

    code = Column(String(50), unique=True, nullable=False)
    name = Column(String(200), nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)

    # Relationships
    ledger_entries = relationship("LedgerEntry", back_populates="location")

class Supplier(Base, UUIDMixin, TimestampMixin):
    """Supplier"""
    __tablename__ = "supplier"

    name = Column(String(200), nullable=False)

    # Relationships
    purchase_orders = relationship("PurchaseOrder", back_populates="supplier")

"""
Purchase Order & Purchase Request Models
"""
from decimal import Decimal

from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import relationship
from ledgerflow.core import Base
from .base import UUIDMixin, TimestampMixin

class PurchaseOrder(Base, UUIDMixin, TimestampMixin):
    """Purchase batch header"""
    __tablename__ = "purchase_order"

    nickname = Column(String(200), nullable=False)
    supplier_id = Column(Uuid(as_uuid=True), ForeignKey("supplier.id"))
    created_by = Column(String(100))

    # Only the edit states are stored; everything else is derived from the lines
    status = Column(String(20), nullable=False, default="open")  # open, edit_requested, edit_approved

    # Relationships
    supplier = relationship("Supplier", back_populates="purchase_orders")
    requests = relationship(
        "PurchaseRequest",
        back_populates="order",
        order_by="PurchaseRequest.line_no",
        cascade="all, delete-orphan",
    )

class PurchaseRequest(Base, UUIDMixin, TimestampMixin):
    """Purchase line item"""
    __tablename__ = "purchase_request"

    order_id = Column(Uuid(as_uuid=True), ForeignKey("purchase_order.id"), nullable=False, index=True)
    line_no = Column(Integer, nullable=False, default=1)

    # Target item (free-text name when uncatalogued)
    item_id = Column(Uuid(as_uuid=True), ForeignKey("inventory_item.id"), index=True)
    item_name = Column(String(300), nullable=False)

    quantity = Column(Numeric(18, 4), nullable=False)
    unit = Column(String(20), nullable=False)
    total_cost = Column(Numeric(18, 2), nullable=False, default=0)
    destination_id = Column(Uuid(as_uuid=True), ForeignKey("stock_location.id"), nullable=False)

    status = Column(String(20), nullable=False, default="pending", index=True)
    requested_by = Column(String(100))
    approved_by = Column(String(100))
    approved_at = Column(DateTime(timezone=True))
    change_reason = Column(Text)

    # Movement actually posted at approval (stock units)
    approval_seq = Column(Integer, index=True)
    applied_item_id = Column(Uuid(as_uuid=True))
    applied_quantity = Column(Numeric(18, 4))
    applied_unit_cost = Column(Numeric(18, 6))

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    order = relationship("PurchaseOrder", back_populates="requests")
    item = relationship("InventoryItem")
    destination = relationship("StockLocation")

    @property
    def unit_cost(self) -> Decimal:
        """Cost per request unit"""
        if not self.quantity:
            return Decimal("0")
        return Decimal(self.total_cost) / Decimal(self.quantity)

    @property
    def has_ledger_effect(self) -> bool:
        return self.approval_seq is not None and self.applied_quantity is not None

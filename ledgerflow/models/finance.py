"""
Finance Models
"""
from sqlalchemy import Column, String, Numeric, DateTime, ForeignKey, Uuid
from sqlalchemy.sql import func
from ledgerflow.core import Base
from .base import UUIDMixin, TimestampMixin

class FinancialMovement(Base, UUIDMixin, TimestampMixin):
    """Payable raised by an approved purchase line"""
    __tablename__ = "financial_movement"

    description = Column(String(300), nullable=False)
    amount = Column(Numeric(18, 2), nullable=False)  # Negative for expenses
    movement_type = Column(String(20), nullable=False, default="expense")
    status = Column(String(20), nullable=False, default="pending")  # pending, paid
    due_date = Column(DateTime(timezone=True), server_default=func.now())

    related_request_id = Column(Uuid(as_uuid=True), ForeignKey("purchase_request.id"), unique=True, index=True)

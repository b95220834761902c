"""
Audit Log Model
"""
from sqlalchemy import Column, String, DateTime, Text, JSON, event
from sqlalchemy.sql import func
from ledgerflow.core import Base
from .base import UUIDMixin

class AuditLog(Base, UUIDMixin):
    """Append-only record of every mutating operation"""
    __tablename__ = "audit_log"

    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(50), nullable=False, index=True)

    action = Column(String(30), nullable=False)  # APPROVE, REJECT, REVERT, ADJUST, RECONCILE, ...

    performed_by = Column(String(100))
    performed_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    # Before/After data
    before_data = Column(JSON)
    after_data = Column(JSON)

    note = Column(Text)


@event.listens_for(AuditLog, "before_update")
def _block_audit_update(mapper, connection, target):
    raise RuntimeError("audit_log rows are append-only")


@event.listens_for(AuditLog, "before_delete")
def _block_audit_delete(mapper, connection, target):
    raise RuntimeError("audit_log rows are append-only")

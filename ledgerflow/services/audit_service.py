"""
Audit Service - append-only record of what happened and why
"""
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ledgerflow.models import AuditLog


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


class AuditService:

    @staticmethod
    def record(
        db: Session,
        entity_type: str,
        entity_id: Any,
        action: str,
        performed_by: Optional[str] = None,
        before: Optional[dict] = None,
        after: Optional[dict] = None,
        note: Optional[str] = None,
    ) -> AuditLog:
        """Add an audit row to the current transaction"""
        audit = AuditLog(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action,
            performed_by=performed_by,
            before_data=_jsonable(before) if before is not None else None,
            after_data=_jsonable(after) if after is not None else None,
            note=note,
        )
        db.add(audit)
        db.flush()
        return audit

    @staticmethod
    def get_history(db: Session, entity_type: Optional[str] = None, entity_id: Optional[Any] = None, limit: int = 100) -> List[AuditLog]:
        query = db.query(AuditLog)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        if entity_id is not None:
            query = query.filter(AuditLog.entity_id == str(entity_id))
        return query.order_by(AuditLog.performed_at.desc()).limit(limit).all()

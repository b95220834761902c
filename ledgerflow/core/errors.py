"""
Ledger Errors

Every failure leaving the engine carries a machine-readable kind and the id of
the offending entity. Callers build their own messages from these.
"""
from typing import Any, Optional


class LedgerError(Exception):
    """Base class for all engine failures"""

    kind = "ledger_error"

    def __init__(self, detail: str, entity_id: Optional[Any] = None, **context):
        super().__init__(detail)
        self.detail = detail
        self.entity_id = str(entity_id) if entity_id is not None else None
        self.context = context

    def to_dict(self) -> dict:
        data = {"error": self.kind, "entity_id": self.entity_id, "detail": self.detail}
        if self.context:
            data["context"] = self.context
        return data


class ValidationError(LedgerError):
    """Malformed input, rejected before any ledger access"""
    kind = "validation_error"


class InvalidTransitionError(ValidationError):
    kind = "invalid_transition"


class InsufficientStockError(ValidationError):
    kind = "insufficient_stock"


class UnitConversionError(ValidationError):
    kind = "unit_conversion"


class NotFoundError(LedgerError):
    kind = "not_found"


class ConflictError(LedgerError):
    """Concurrent mutation detected; nothing was applied"""
    kind = "conflict"


class ConsistencyError(LedgerError):
    """Ledger state disagrees with replayed history"""
    kind = "consistency_error"

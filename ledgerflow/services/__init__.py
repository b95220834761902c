# Services Package
from .catalog_service import CatalogService
from .ledger_service import LedgerService
from .approval_service import ApprovalService
from .purchase_service import PurchaseService
from .replay_service import ReplayService
from .production_service import ProductionService
from .audit_service import AuditService
from . import costing
from . import request_states

__all__ = [
    "CatalogService",
    "LedgerService",
    "ApprovalService",
    "PurchaseService",
    "ReplayService",
    "ProductionService",
    "AuditService",
    "costing",
    "request_states",
]

from .base import TimestampMixin, UUIDMixin
from .master import StockLocation, Supplier
from .item import InventoryItem, BomLine
from .stock import LedgerEntry, StockMovement
from .purchase import PurchaseOrder, PurchaseRequest
from .production import ProductionOrder, ProductionOrderLine
from .finance import FinancialMovement
from .audit import AuditLog

__all__ = [
    # Base
    "TimestampMixin", "UUIDMixin",
    # Master
    "StockLocation", "Supplier",
    # Items
    "InventoryItem", "BomLine",
    # Stock
    "LedgerEntry", "StockMovement",
    # Purchasing
    "PurchaseOrder", "PurchaseRequest",
    # Production
    "ProductionOrder", "ProductionOrderLine",
    # Finance
    "FinancialMovement",
    # Audit
    "AuditLog",
]

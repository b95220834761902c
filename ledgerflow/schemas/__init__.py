# Schemas Package
from .catalog import (
    LocationCreate, LocationResponse, SupplierCreate, SupplierResponse,
    ItemCreate, ItemUpdate, ItemResponse, BomLineCreate, BomLineResponse, BomReplace,
)
from .stock import (
    LedgerSnapshot, StockAdjustmentCreate, StockAdjustmentResponse, StockMovementResponse,
    StockSummary, DriftResponse, ReconcileResponse, ReconcileScope,
)
from .purchase import (
    PurchaseRequestCreate, PurchaseOrderCreate, PurchaseOrderUpdate, PurchaseRequestUpdate,
    PurchaseRequestResponse, PurchaseOrderResponse, ActorRequest, EditRequest, ApplyEditRequest,
    BatchApproveRequest, ApprovalResponse, BatchItemResponse,
)
from .production import (
    ProductionRequest, FeasibilityLineResponse, FeasibilityResponse,
    ProductionOrderLineResponse, ProductionOrderResponse,
)

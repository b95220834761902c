"""
Production Service - BOM expansion, feasibility and stock consumption
"""
from dataclasses import dataclass, field
from decimal import Decimal
from sqlalchemy.orm import Session
from typing import Dict, List, Optional
from uuid import UUID
import logging

from ledgerflow.core import run_atomic
from ledgerflow.core.errors import InsufficientStockError, ValidationError
from ledgerflow.models import InventoryItem, LedgerEntry, ProductionOrder, ProductionOrderLine
from .audit_service import AuditService
from .catalog_service import CatalogService
from .costing import quantize_cost, quantize_qty, to_decimal
from .ledger_service import LedgerService, PRODUCTION_IN, PRODUCTION_OUT
from .units import to_stock_units

logger = logging.getLogger(__name__)


@dataclass
class FeasibilityLine:
    ingredient_id: UUID
    ingredient_name: str
    bom_quantity: Decimal
    bom_unit: str
    required: Decimal
    available: Decimal
    shortfall: Decimal
    stock_unit: str
    unit_cost: Decimal
    line_cost: Decimal
    sufficient: bool


@dataclass
class FeasibilityReport:
    finished_item_id: UUID
    location_id: UUID
    quantity: Decimal
    feasible: bool
    estimated_batch_cost: Decimal
    estimated_unit_cost: Decimal
    lines: List[FeasibilityLine] = field(default_factory=list)


class ProductionService:
    """Production consumption engine"""

    @staticmethod
    def _check_request(db: Session, finished_item_id: UUID, quantity, location_id: UUID) -> InventoryItem:
        if quantity is None or to_decimal(quantity) <= 0:
            raise ValidationError("production quantity must be positive", entity_id=finished_item_id)
        product = CatalogService.get_item(db, finished_item_id)
        if not product.is_product:
            raise ValidationError("item is not a finished product", entity_id=finished_item_id)
        CatalogService.get_location(db, location_id)
        if not product.bom_lines:
            raise ValidationError("product has no bill of materials", entity_id=finished_item_id)
        return product

    @staticmethod
    def _evaluate(
        db: Session,
        product: InventoryItem,
        quantity: Decimal,
        location_id: UUID,
        entries: Dict[UUID, Optional[LedgerEntry]],
    ) -> FeasibilityReport:
        batch_size = to_decimal(product.batch_size) or Decimal("1")
        claimed: Dict[UUID, Decimal] = {}
        lines = []

        for bom in product.bom_lines:
            ingredient = CatalogService.get_item(db, bom.ingredient_id)
            needed = to_decimal(bom.quantity) * quantity / batch_size
            required = quantize_qty(to_stock_units(ingredient, needed, bom.unit))

            state = LedgerService.state_of(entries.get(ingredient.id))
            # Same ingredient on several lines draws from one entry
            available = state.quantity - claimed.get(ingredient.id, Decimal("0"))
            claimed[ingredient.id] = claimed.get(ingredient.id, Decimal("0")) + required
            shortfall = max(required - available, Decimal("0"))

            lines.append(FeasibilityLine(
                ingredient_id=ingredient.id,
                ingredient_name=ingredient.name,
                bom_quantity=to_decimal(bom.quantity),
                bom_unit=bom.unit,
                required=required,
                available=quantize_qty(available),
                shortfall=quantize_qty(shortfall),
                stock_unit=ingredient.unit,
                unit_cost=state.unit_cost,
                line_cost=quantize_cost(required * state.unit_cost),
                sufficient=shortfall == 0,
            ))

        batch_cost = quantize_cost(sum((l.line_cost for l in lines), Decimal("0")))
        return FeasibilityReport(
            finished_item_id=product.id,
            location_id=location_id,
            quantity=quantity,
            feasible=all(l.sufficient for l in lines),
            estimated_batch_cost=batch_cost,
            estimated_unit_cost=quantize_cost(batch_cost / quantity),
            lines=lines,
        )

    @staticmethod
    def simulate(db: Session, finished_item_id: UUID, quantity, location_id: UUID) -> FeasibilityReport:
        """Read-only feasibility and cost estimate using live ledger values"""
        product = ProductionService._check_request(db, finished_item_id, quantity, location_id)
        entries = {
            bom.ingredient_id: LedgerService.get_entry(db, bom.ingredient_id, location_id)
            for bom in product.bom_lines
        }
        return ProductionService._evaluate(db, product, quantize_qty(quantity), location_id, entries)

    @staticmethod
    def commit(
        db: Session,
        finished_item_id: UUID,
        quantity,
        location_id: UUID,
        actor_id: Optional[str] = None,
    ) -> ProductionOrder:
        """Consume ingredients and add the finished product, all or nothing"""
        product = ProductionService._check_request(db, finished_item_id, quantity, location_id)
        quantity = quantize_qty(quantity)

        def _commit() -> ProductionOrder:
            # Stable lock order across concurrent commits
            ingredient_ids = sorted({bom.ingredient_id for bom in product.bom_lines}, key=str)
            entries = {iid: LedgerService.lock_entry(db, iid, location_id) for iid in ingredient_ids}

            report = ProductionService._evaluate(db, product, quantity, location_id, entries)
            if not report.feasible:
                short = [l for l in report.lines if not l.sufficient]
                raise InsufficientStockError(
                    "insufficient stock for production",
                    entity_id=finished_item_id,
                    shortfalls=[
                        {"ingredient_id": l.ingredient_id, "required": l.required, "available": l.available}
                        for l in short
                    ],
                )

            order = ProductionOrder(
                finished_item_id=product.id,
                location_id=location_id,
                quantity=quantity,
                batch_cost=report.estimated_batch_cost,
                unit_cost=report.estimated_unit_cost,
                created_by=actor_id,
            )
            db.add(order)
            db.flush()

            for line in report.lines:
                LedgerService.post_movement(
                    db,
                    item_id=line.ingredient_id,
                    location_id=location_id,
                    signed_quantity=-line.required,
                    movement_type=PRODUCTION_OUT,
                    reference_type="PRODUCTION_ORDER",
                    reference_id=order.id,
                    actor_id=actor_id,
                    entry=entries[line.ingredient_id],
                )
                order.lines.append(ProductionOrderLine(
                    ingredient_id=line.ingredient_id,
                    quantity=line.required,
                    unit=line.stock_unit,
                    unit_cost=line.unit_cost,
                    line_cost=line.line_cost,
                ))

            LedgerService.post_movement(
                db,
                item_id=product.id,
                location_id=location_id,
                signed_quantity=quantity,
                unit_cost=report.estimated_unit_cost,
                movement_type=PRODUCTION_IN,
                reference_type="PRODUCTION_ORDER",
                reference_id=order.id,
                actor_id=actor_id,
            )
            db.flush()

            AuditService.record(
                db, "production_order", order.id, "COMMIT", actor_id,
                after={
                    "finished_item_id": product.id,
                    "quantity": quantity,
                    "batch_cost": report.estimated_batch_cost,
                    "unit_cost": report.estimated_unit_cost,
                    "lines": [{"ingredient_id": l.ingredient_id, "quantity": l.required} for l in report.lines],
                },
            )
            return order

        order = run_atomic(db, _commit, label="production_commit")
        logger.info(f"Produced {order.quantity} of {product.name} at unit cost {order.unit_cost}")
        return order

    @staticmethod
    def list_orders(db: Session, finished_item_id: Optional[UUID] = None, limit: int = 50) -> List[ProductionOrder]:
        query = db.query(ProductionOrder)
        if finished_item_id:
            query = query.filter(ProductionOrder.finished_item_id == finished_item_id)
        return query.order_by(ProductionOrder.created_at.desc()).limit(limit).all()

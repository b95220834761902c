"""
Ledger Service - stock quantity and weighted-average cost per (item, location)

All writes to LedgerEntry.quantity / unit_cost go through this module, and
every one of them is computed by the costing functions.
"""
from dataclasses import dataclass
from decimal import Decimal
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List, Optional, Dict
from uuid import UUID
import logging

from ledgerflow.core import settings, run_atomic
from ledgerflow.core.errors import ConflictError, InsufficientStockError, ValidationError
from ledgerflow.models import LedgerEntry, StockMovement, InventoryItem, StockLocation, AuditLog
from .audit_service import AuditService
from .catalog_service import CatalogService
from .costing import LedgerState, apply_movement, apply_adjustment, quantize_qty, to_decimal

logger = logging.getLogger(__name__)

# Movement types
PURCHASE = "PURCHASE"
PURCHASE_REVERT = "PURCHASE_REVERT"
PRODUCTION_IN = "PRODUCTION_IN"
PRODUCTION_OUT = "PRODUCTION_OUT"
ADJUST = "ADJUST"

INCOMING_TYPES = (PURCHASE, PRODUCTION_IN)


@dataclass
class PostedMovement:
    entry: LedgerEntry
    movement: StockMovement
    before: LedgerState
    after: LedgerState


@dataclass
class AdjustmentResult:
    delta: Decimal
    entry: LedgerEntry
    movement: StockMovement
    audit: AuditLog


class LedgerService:
    """Ledger store operations"""

    @staticmethod
    def state_of(entry: Optional[LedgerEntry]) -> LedgerState:
        if entry is None:
            return LedgerState.zero()
        return LedgerState.of(entry.quantity, entry.unit_cost)

    @staticmethod
    def snapshot(entry: LedgerEntry) -> Dict:
        state = LedgerService.state_of(entry)
        return {
            "item_id": entry.item_id,
            "location_id": entry.location_id,
            "quantity": state.quantity,
            "unit_cost": state.unit_cost,
            "version": entry.version,
        }

    @staticmethod
    def get_entry(db: Session, item_id: UUID, location_id: UUID) -> Optional[LedgerEntry]:
        """Read without locking"""
        return db.query(LedgerEntry).filter(
            LedgerEntry.item_id == item_id,
            LedgerEntry.location_id == location_id
        ).first()

    @staticmethod
    def lock_entry(db: Session, item_id: UUID, location_id: UUID) -> LedgerEntry:
        """Select the entry FOR UPDATE, creating a zero entry when missing"""
        entry = db.query(LedgerEntry).filter(
            LedgerEntry.item_id == item_id,
            LedgerEntry.location_id == location_id
        ).with_for_update().first()

        if entry is None:
            entry = LedgerEntry(item_id=item_id, location_id=location_id, quantity=Decimal("0"), unit_cost=Decimal("0"))
            db.add(entry)
            try:
                db.flush()
            except IntegrityError:
                # Another transaction created the same entry first
                raise ConflictError("ledger entry created concurrently", entity_id=item_id, location_id=str(location_id))
        return entry

    @staticmethod
    def post_movement(
        db: Session,
        item_id: UUID,
        location_id: UUID,
        signed_quantity,
        unit_cost=None,
        movement_type: str = ADJUST,
        reference_type: Optional[str] = None,
        reference_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        note: Optional[str] = None,
        entry: Optional[LedgerEntry] = None,
    ) -> PostedMovement:
        """Apply one signed movement through the costing function and journal it"""
        if entry is None:
            entry = LedgerService.lock_entry(db, item_id, location_id)

        before = LedgerService.state_of(entry)
        after = apply_movement(before, signed_quantity, unit_cost)

        if after.quantity < 0 and after.quantity < before.quantity:
            note = LedgerService._check_negative(item_id, location_id, after, note)

        entry.quantity = after.quantity
        entry.unit_cost = after.unit_cost

        movement = StockMovement(
            item_id=item_id,
            location_id=location_id,
            movement_type=movement_type,
            quantity=quantize_qty(signed_quantity),
            unit_cost=to_decimal(unit_cost) if unit_cost is not None else None,
            quantity_before=before.quantity,
            quantity_after=after.quantity,
            cost_before=before.unit_cost,
            cost_after=after.unit_cost,
            reference_type=reference_type,
            reference_id=str(reference_id) if reference_id is not None else None,
            note=note,
            created_by=actor_id,
        )
        db.add(movement)
        db.flush()

        return PostedMovement(entry=entry, movement=movement, before=before, after=after)

    @staticmethod
    def _check_negative(item_id: UUID, location_id: UUID, after: LedgerState, note: Optional[str]) -> Optional[str]:
        policy = settings.NEGATIVE_STOCK_POLICY.lower()
        if policy == "block":
            raise InsufficientStockError(
                "movement would drive stock negative",
                entity_id=item_id,
                location_id=str(location_id),
                resulting_quantity=str(after.quantity),
            )
        if policy == "warn":
            logger.warning(f"Negative stock for item {item_id} at {location_id}: {after.quantity}")
            return f"{note}; negative stock" if note else "negative stock"
        return note

    @staticmethod
    def overwrite(db: Session, entry: LedgerEntry, state: LedgerState) -> LedgerEntry:
        """Replace entry state with a replayed state (reconciliation only)"""
        entry.quantity = state.quantity
        entry.unit_cost = state.unit_cost
        db.flush()
        return entry

    @staticmethod
    def has_incoming_since(db: Session, item_id: UUID, location_id: UUID, sequence: int) -> bool:
        """True when a later movement changed the entry's unit cost after `sequence`"""
        return db.query(StockMovement.id).filter(
            StockMovement.item_id == item_id,
            StockMovement.location_id == location_id,
            StockMovement.id > sequence,
            StockMovement.cost_after != StockMovement.cost_before,
        ).first() is not None

    @staticmethod
    def adjust_stock(
        db: Session,
        item_id: UUID,
        location_id: UUID,
        new_quantity,
        reason: str,
        unit_cost=None,
        actor_id: Optional[str] = None,
    ) -> AdjustmentResult:
        """Manual correction to a physical count"""
        new_quantity = to_decimal(new_quantity)
        if new_quantity < 0:
            raise ValidationError("physical count cannot be negative", entity_id=item_id)
        if unit_cost is not None and to_decimal(unit_cost) < 0:
            raise ValidationError("unit cost cannot be negative", entity_id=item_id)
        if not reason:
            raise ValidationError("adjustment reason is required", entity_id=item_id)

        item = CatalogService.get_item(db, item_id)
        CatalogService.get_location(db, location_id)
        if not item.is_stock_tracked:
            raise ValidationError("expense items carry no stock", entity_id=item_id)

        def _adjust() -> AdjustmentResult:
            entry = LedgerService.lock_entry(db, item_id, location_id)
            before = LedgerService.state_of(entry)
            after = apply_adjustment(before, new_quantity, unit_cost)
            delta = quantize_qty(after.quantity - before.quantity)

            entry.quantity = after.quantity
            entry.unit_cost = after.unit_cost

            movement = StockMovement(
                item_id=item_id,
                location_id=location_id,
                movement_type=ADJUST,
                quantity=delta,
                unit_cost=after.unit_cost if unit_cost is not None else None,
                quantity_before=before.quantity,
                quantity_after=after.quantity,
                cost_before=before.unit_cost,
                cost_after=after.unit_cost,
                reference_type="ADJUSTMENT",
                note=reason,
                created_by=actor_id,
            )
            db.add(movement)
            db.flush()
            movement.reference_id = str(movement.id)

            audit = AuditService.record(
                db, "ledger_entry", entry.id, "ADJUST", actor_id,
                before={"quantity": before.quantity, "unit_cost": before.unit_cost},
                after={"quantity": after.quantity, "unit_cost": after.unit_cost, "delta": delta},
                note=reason,
            )
            return AdjustmentResult(delta=delta, entry=entry, movement=movement, audit=audit)

        result = run_atomic(db, _adjust, label="adjust_stock")
        logger.info(f"Adjusted {item.name} at {location_id} by {result.delta} ({reason})")
        return result

    @staticmethod
    def get_stock_summary(
        db: Session,
        location_id: Optional[UUID] = None,
        search: Optional[str] = None
    ) -> List[Dict]:
        """Get stock summary by item and location"""
        query = db.query(LedgerEntry, InventoryItem, StockLocation)\
            .join(InventoryItem, InventoryItem.id == LedgerEntry.item_id)\
            .join(StockLocation, StockLocation.id == LedgerEntry.location_id)\
            .filter(InventoryItem.deleted_at.is_(None))

        if location_id:
            query = query.filter(LedgerEntry.location_id == location_id)

        if search:
            query = query.filter(InventoryItem.name.ilike(f"%{search}%"))

        results = []
        for entry, item, location in query.order_by(InventoryItem.name, StockLocation.code).all():
            state = LedgerService.state_of(entry)
            results.append({
                "item_id": item.id,
                "item_name": item.name,
                "unit": item.unit,
                "location_id": location.id,
                "location_name": location.name,
                "quantity": state.quantity,
                "unit_cost": state.unit_cost,
                "total_value": state.value,
                "below_minimum": state.quantity < to_decimal(item.min_stock),
            })
        return results

    @staticmethod
    def get_negative_stock(db: Session, location_id: Optional[UUID] = None) -> List[Dict]:
        """Entries below zero (alert only, nothing is blocked here)"""
        return [row for row in LedgerService.get_stock_summary(db, location_id) if row["quantity"] < 0]

    @staticmethod
    def get_movements(
        db: Session,
        item_id: Optional[UUID] = None,
        location_id: Optional[UUID] = None,
        movement_type: Optional[str] = None,
        limit: int = 50
    ) -> List[StockMovement]:
        """Get recent stock movements"""
        query = db.query(StockMovement)

        if item_id:
            query = query.filter(StockMovement.item_id == item_id)

        if location_id:
            query = query.filter(StockMovement.location_id == location_id)

        if movement_type:
            query = query.filter(StockMovement.movement_type == movement_type)

        return query.order_by(StockMovement.id.desc()).limit(limit).all()

"""
Replay Service - rebuilds ledger state from the full movement history

Applied purchase lines (in approval order) plus production and adjustment
movements from the journal are folded through the costing function starting
from a zero entry. The fold is deterministic: the same history always gives
the same digits, so running reconcile twice changes nothing the second time.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from sqlalchemy.orm import Session
from typing import Dict, Iterable, List, Optional, Set, Tuple
from uuid import UUID
import logging

from ledgerflow.core import run_atomic
from ledgerflow.core.errors import ConsistencyError
from ledgerflow.models import PurchaseRequest, StockMovement, LedgerEntry, InventoryItem, AuditLog
from .audit_service import AuditService
from .costing import LedgerState, apply_movement, apply_adjustment, to_decimal
from .ledger_service import LedgerService, PRODUCTION_IN, PRODUCTION_OUT, ADJUST
from . import request_states as states

logger = logging.getLogger(__name__)

Key = Tuple[UUID, UUID]

QTY_TOLERANCE = Decimal("0.0001")
COST_TOLERANCE = Decimal("0.000001")


@dataclass(frozen=True)
class ReplayMovement:
    sequence: int
    item_id: UUID
    location_id: UUID
    kind: str
    quantity: Decimal
    unit_cost: Optional[Decimal]
    source_id: str


@dataclass
class Drift:
    item_id: UUID
    location_id: UUID
    current: LedgerState
    replayed: LedgerState

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "location_id": self.location_id,
            "current": {"item_id": self.item_id, "location_id": self.location_id,
                        "quantity": self.current.quantity, "unit_cost": self.current.unit_cost},
            "replayed": {"item_id": self.item_id, "location_id": self.location_id,
                         "quantity": self.replayed.quantity, "unit_cost": self.replayed.unit_cost},
        }


@dataclass
class ReconcileReport:
    entries: List[LedgerEntry] = field(default_factory=list)
    drift: List[Drift] = field(default_factory=list)
    skipped_requests: List[UUID] = field(default_factory=list)
    movements_replayed: int = 0
    audit: Optional[AuditLog] = None


def fold(movements: Iterable[ReplayMovement]) -> Dict[Key, LedgerState]:
    """Fold ordered movements into per-(item, location) states"""
    result: Dict[Key, LedgerState] = {}
    for m in movements:
        key = (m.item_id, m.location_id)
        state = result.get(key, LedgerState.zero())
        if m.kind == ADJUST:
            state = apply_adjustment(state, state.quantity + m.quantity, m.unit_cost)
        else:
            state = apply_movement(state, m.quantity, m.unit_cost)
        result[key] = state
    return result


def has_drift(current: LedgerState, replayed: LedgerState) -> bool:
    if abs(current.quantity - replayed.quantity) > QTY_TOLERANCE:
        return True
    # Cost carries no value while both sides hold nothing
    if current.quantity == 0 and replayed.quantity == 0:
        return False
    return abs(current.unit_cost - replayed.unit_cost) > COST_TOLERANCE


class ReplayService:
    """Reconciliation engine"""

    @staticmethod
    def collect_history(
        db: Session,
        item_id: Optional[UUID] = None,
        location_id: Optional[UUID] = None,
    ) -> Tuple[List[ReplayMovement], List[UUID], Set[UUID]]:
        """
        Ordered movements in scope. Deleted items take no part in replay:
        their purchase lines are returned as skipped, their journal rows are
        dropped, and their ids are returned so callers leave those entries alone.
        """
        movements: List[ReplayMovement] = []
        skipped: List[UUID] = []
        deleted = ReplayService.deleted_items(db, item_id)

        query = db.query(PurchaseRequest).filter(
            PurchaseRequest.status.in_(states.APPLIED_STATES),
            PurchaseRequest.approval_seq.isnot(None),
        )
        if item_id:
            query = query.filter(PurchaseRequest.applied_item_id == item_id)
        if location_id:
            query = query.filter(PurchaseRequest.destination_id == location_id)

        for r in query.all():
            if r.applied_item_id in deleted:
                skipped.append(r.id)
                continue
            movements.append(ReplayMovement(
                sequence=r.approval_seq,
                item_id=r.applied_item_id,
                location_id=r.destination_id,
                kind="PURCHASE",
                quantity=to_decimal(r.applied_quantity),
                unit_cost=to_decimal(r.applied_unit_cost),
                source_id=str(r.id),
            ))

        journal = db.query(StockMovement).filter(
            StockMovement.movement_type.in_([PRODUCTION_IN, PRODUCTION_OUT, ADJUST])
        )
        if item_id:
            journal = journal.filter(StockMovement.item_id == item_id)
        if location_id:
            journal = journal.filter(StockMovement.location_id == location_id)

        for m in journal.all():
            if m.item_id in deleted:
                continue
            movements.append(ReplayMovement(
                sequence=m.id,
                item_id=m.item_id,
                location_id=m.location_id,
                kind=m.movement_type,
                quantity=to_decimal(m.quantity),
                unit_cost=to_decimal(m.unit_cost) if m.unit_cost is not None else None,
                source_id=str(m.id),
            ))

        movements.sort(key=lambda m: m.sequence)
        return movements, skipped, deleted

    @staticmethod
    def deleted_items(db: Session, item_id: Optional[UUID] = None) -> Set[UUID]:
        query = db.query(InventoryItem.id).filter(InventoryItem.deleted_at.isnot(None))
        if item_id:
            query = query.filter(InventoryItem.id == item_id)
        return {row.id for row in query.all()}

    @staticmethod
    def _scoped_entries(db: Session, item_id: Optional[UUID], location_id: Optional[UUID], lock: bool) -> List[LedgerEntry]:
        query = db.query(LedgerEntry)
        if item_id:
            query = query.filter(LedgerEntry.item_id == item_id)
        if location_id:
            query = query.filter(LedgerEntry.location_id == location_id)
        query = query.order_by(LedgerEntry.item_id, LedgerEntry.location_id)
        if lock:
            query = query.with_for_update()
        return query.all()

    @staticmethod
    def verify(db: Session, item_id: Optional[UUID] = None, location_id: Optional[UUID] = None) -> List[Drift]:
        """Replay without writing and report where the ledger disagrees"""
        movements, _, deleted = ReplayService.collect_history(db, item_id, location_id)
        replayed = fold(movements)
        current = {(e.item_id, e.location_id): LedgerService.state_of(e)
                   for e in ReplayService._scoped_entries(db, item_id, location_id, lock=False)
                   if e.item_id not in deleted}

        drift = []
        for key in sorted(set(current) | set(replayed), key=lambda k: (str(k[0]), str(k[1]))):
            now = current.get(key, LedgerState.zero())
            expected = replayed.get(key, LedgerState.zero())
            if has_drift(now, expected):
                drift.append(Drift(item_id=key[0], location_id=key[1], current=now, replayed=expected))
        return drift

    @staticmethod
    def assert_consistent(db: Session, item_id: Optional[UUID] = None, location_id: Optional[UUID] = None) -> None:
        drift = ReplayService.verify(db, item_id, location_id)
        if drift:
            raise ConsistencyError(
                "ledger disagrees with replayed history",
                entity_id=drift[0].item_id,
                drifted=[d.to_dict() for d in drift],
            )

    @staticmethod
    def reconcile(
        db: Session,
        item_id: Optional[UUID] = None,
        location_id: Optional[UUID] = None,
        actor_id: Optional[str] = None,
    ) -> ReconcileReport:
        """Discard scoped ledger state and rebuild it from history"""
        def _reconcile() -> ReconcileReport:
            existing = ReplayService._scoped_entries(db, item_id, location_id, lock=True)
            movements, skipped, deleted = ReplayService.collect_history(db, item_id, location_id)
            replayed = fold(movements)

            # Entries of deleted items keep whatever they hold
            entries = {(e.item_id, e.location_id): e for e in existing if e.item_id not in deleted}
            report = ReconcileReport(skipped_requests=skipped, movements_replayed=len(movements))

            for key in sorted(set(entries) | set(replayed), key=lambda k: (str(k[0]), str(k[1]))):
                expected = replayed.get(key, LedgerState.zero())
                entry = entries.get(key)
                if entry is None:
                    entry = LedgerService.lock_entry(db, key[0], key[1])
                current = LedgerService.state_of(entry)
                if has_drift(current, expected):
                    report.drift.append(Drift(item_id=key[0], location_id=key[1], current=current, replayed=expected))
                if current != expected:
                    LedgerService.overwrite(db, entry, expected)
                report.entries.append(entry)

            for request_id in skipped:
                AuditService.record(db, "purchase_request", request_id, "RECONCILE_SKIP", actor_id,
                                    note="target item deleted, movement skipped during replay")

            report.audit = AuditService.record(
                db, "ledger", "reconcile", "RECONCILE", actor_id,
                before={"scope": {"item_id": item_id, "location_id": location_id}},
                after={
                    "entries": len(report.entries),
                    "movements_replayed": report.movements_replayed,
                    "drift": [d.to_dict() for d in report.drift],
                    "skipped_requests": skipped,
                },
            )
            return report

        report = run_atomic(db, _reconcile, label="reconcile")
        if report.drift:
            logger.warning(f"Reconcile repaired {len(report.drift)} drifted ledger entries")
        logger.info(f"Reconciled {len(report.entries)} ledger entries from {report.movements_replayed} movements")
        return report

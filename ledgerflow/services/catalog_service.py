"""
Catalog Service - locations, suppliers, items and bills of materials
"""
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from uuid import UUID
import logging

from ledgerflow.core.errors import NotFoundError, ValidationError
from ledgerflow.models import StockLocation, Supplier, InventoryItem, BomLine
from ledgerflow.schemas.catalog import LocationCreate, SupplierCreate, ItemCreate, ItemUpdate, BomLineCreate
from .audit_service import AuditService
from .units import normalize_name

logger = logging.getLogger(__name__)

class CatalogService:
    """Catalog lookups and configuration"""

    # ---------- Locations ----------

    @staticmethod
    def create_location(db: Session, data: LocationCreate) -> StockLocation:
        location = StockLocation(code=data.code, name=data.name, is_default=data.is_default)
        db.add(location)
        db.commit()
        db.refresh(location)
        return location

    @staticmethod
    def get_location(db: Session, location_id: UUID) -> StockLocation:
        location = db.query(StockLocation).filter(StockLocation.id == location_id).first()
        if not location:
            raise NotFoundError("stock location not found", entity_id=location_id)
        return location

    @staticmethod
    def list_locations(db: Session) -> List[StockLocation]:
        return db.query(StockLocation).order_by(StockLocation.code).all()

    # ---------- Suppliers ----------

    @staticmethod
    def create_supplier(db: Session, data: SupplierCreate) -> Supplier:
        supplier = Supplier(name=data.name)
        db.add(supplier)
        db.commit()
        db.refresh(supplier)
        return supplier

    @staticmethod
    def get_supplier(db: Session, supplier_id: UUID) -> Supplier:
        supplier = db.query(Supplier).filter(Supplier.id == supplier_id).first()
        if not supplier:
            raise NotFoundError("supplier not found", entity_id=supplier_id)
        return supplier

    # ---------- Items ----------

    @staticmethod
    def get_items(
        db: Session,
        search: Optional[str] = None,
        include_deleted: bool = False,
        page: int = 1,
        per_page: int = 50
    ) -> Tuple[List[InventoryItem], int]:
        """Get items with filters and pagination"""
        query = db.query(InventoryItem)

        if not include_deleted:
            query = query.filter(InventoryItem.deleted_at.is_(None))

        if search:
            query = query.filter(InventoryItem.name.ilike(f"%{search}%"))

        total = query.count()
        items = query.order_by(InventoryItem.name)\
            .offset((page - 1) * per_page)\
            .limit(per_page)\
            .all()
        return items, total

    @staticmethod
    def get_item(db: Session, item_id: UUID) -> InventoryItem:
        """Get a live item; deleted items count as missing"""
        item = db.query(InventoryItem).filter(InventoryItem.id == item_id).first()
        if not item or item.is_deleted:
            raise NotFoundError("inventory item not found", entity_id=item_id)
        return item

    @staticmethod
    def find_item_by_name(db: Session, name: str) -> Optional[InventoryItem]:
        """Match an uncatalogued line to an item by normalized name"""
        target = normalize_name(name)
        if not target:
            return None
        for item in db.query(InventoryItem).filter(InventoryItem.deleted_at.is_(None)).all():
            if normalize_name(item.name) == target:
                return item
        return None

    @staticmethod
    def create_item(db: Session, data: ItemCreate) -> InventoryItem:
        if data.batch_size is not None and Decimal(data.batch_size) <= 0:
            raise ValidationError("batch size must be positive")
        if data.secondary_factor is not None and Decimal(data.secondary_factor) <= 0:
            raise ValidationError("secondary factor must be positive")

        item = InventoryItem(**data.model_dump())
        db.add(item)
        db.commit()
        db.refresh(item)
        return item

    @staticmethod
    def update_item(db: Session, item_id: UUID, data: ItemUpdate) -> InventoryItem:
        item = CatalogService.get_item(db, item_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(item, field, value)
        db.commit()
        db.refresh(item)
        return item

    @staticmethod
    def delete_item(db: Session, item_id: UUID, actor_id: Optional[str] = None) -> InventoryItem:
        """Soft delete; history referencing the item stays intact"""
        item = CatalogService.get_item(db, item_id)
        item.deleted_at = datetime.now(timezone.utc)
        AuditService.record(db, "inventory_item", item.id, "DELETE", actor_id, before={"name": item.name})
        db.commit()
        db.refresh(item)
        logger.info(f"Deleted inventory item {item.name} ({item.id})")
        return item

    # ---------- Bill of Materials ----------

    @staticmethod
    def get_bom(db: Session, product_id: UUID) -> List[BomLine]:
        return db.query(BomLine).filter(BomLine.product_id == product_id).all()

    @staticmethod
    def replace_bom(db: Session, product_id: UUID, lines: List[BomLineCreate], actor_id: Optional[str] = None) -> List[BomLine]:
        """Replace the BOM of a finished product"""
        product = CatalogService.get_item(db, product_id)
        if not product.is_product:
            raise ValidationError("only finished products carry a bill of materials", entity_id=product_id)

        for line in lines:
            if line.ingredient_id == product_id:
                raise ValidationError("a product cannot consume itself", entity_id=product_id)
            if Decimal(line.quantity) <= 0:
                raise ValidationError("BOM quantity must be positive", entity_id=line.ingredient_id)
            CatalogService.get_item(db, line.ingredient_id)

        before = [{"ingredient_id": b.ingredient_id, "quantity": b.quantity, "unit": b.unit} for b in CatalogService.get_bom(db, product_id)]
        db.query(BomLine).filter(BomLine.product_id == product_id).delete(synchronize_session=False)

        created = []
        for line in lines:
            bom = BomLine(product_id=product_id, ingredient_id=line.ingredient_id, quantity=line.quantity, unit=line.unit)
            db.add(bom)
            created.append(bom)

        AuditService.record(
            db, "bom", product_id, "REPLACE", actor_id,
            before={"lines": before},
            after={"lines": [{"ingredient_id": l.ingredient_id, "quantity": l.quantity, "unit": l.unit} for l in lines]},
        )
        db.commit()
        return created

import logging
from collections.abc import Callable

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_api.config import settings
from inventory_api.exceptions import NotFoundError, ValidationError
from inventory_api.models.category import Category
from inventory_api.models.inventory_log import InventoryLog
from inventory_api.models.product import Product, ProductStatus
from inventory_api.models.supplier import Supplier
from inventory_api.models.user import User
from inventory_api.schemas.product import InventoryAdjust, ProductCreate, ProductUpdate
from inventory_api.services import auth_service, ledger_service, notification_service
from inventory_api.services.transactions import run_atomic

logger = logging.getLogger(__name__)


def _check_references(db: Session, category_id: str | None, supplier_id: str | None) -> None:
    if category_id is not None and not db.get(Category, category_id):
        raise NotFoundError(f"Category not found: {category_id}", category_id=category_id)
    if supplier_id is not None and not db.get(Supplier, supplier_id):
        raise NotFoundError(f"Supplier not found: {supplier_id}", supplier_id=supplier_id)


def _alert_low_stock(db: Session, products: list[dict], schedule: Callable | None) -> None:
    """Best-effort: the stock change is already committed when this runs."""
    try:
        recipients = auth_service.low_stock_recipients(db)
        if not recipients:
            return
        if schedule is None:
            notification_service.send_low_stock_alert(recipients, products)
        else:
            schedule(notification_service.send_low_stock_alert, recipients, products)
    except Exception:
        logger.exception("Low stock alert for %s failed", ", ".join(p["sku"] for p in products))
        db.rollback()


def create_product(db: Session, data: ProductCreate, creator: User | None = None) -> Product:
    def work() -> Product:
        if get_product_by_sku(db, data.sku):
            raise ValidationError(f"Product with SKU {data.sku} already exists", sku=data.sku)
        _check_references(db, data.category_id, data.supplier_id)

        product = Product(
            sku=data.sku,
            name=data.name,
            description=data.description,
            category_id=data.category_id,
            supplier_id=data.supplier_id,
            price=data.price,
            cost_price=data.cost_price,
            quantity=data.quantity,
            min_stock_level=(
                data.min_stock_level if data.min_stock_level is not None else settings.DEFAULT_MIN_STOCK_LEVEL
            ),
            unit=data.unit,
            location=data.location,
            image_url=data.image_url,
            created_by_id=creator.id if creator else None,
        )
        db.add(product)
        try:
            db.flush()
        except IntegrityError as exc:
            # Another create of the same SKU committed first
            if "sku" not in str(exc.orig):
                raise
            raise ValidationError(f"Product with SKU {data.sku} already exists", sku=data.sku) from exc

        if data.quantity > 0:
            db.add(
                InventoryLog(
                    product_id=product.id,
                    change=data.quantity,
                    reason="inbound",
                    balance_after=data.quantity,
                    note="Initial stock on product creation",
                )
            )
        return product

    product = run_atomic(db, work, action="create product")
    db.refresh(product)
    logger.info("Created product %s (%s)", product.sku, product.id)
    return product


def get_product(db: Session, product_id: str) -> Product | None:
    return db.query(Product).filter(Product.id == product_id).first()


def get_product_by_sku(db: Session, sku: str) -> Product | None:
    return db.query(Product).filter(Product.sku == sku).first()


def list_products(
    db: Session,
    category_id: str | None = None,
    status: ProductStatus | None = None,
    search: str | None = None,
    low_stock: bool = False,
) -> list[Product]:
    q = db.query(Product)
    if category_id:
        q = q.filter(Product.category_id == category_id)
    if status:
        q = q.filter(Product.status == status)
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    if low_stock:
        q = q.filter(Product.quantity <= Product.min_stock_level)
    return q.order_by(Product.created_at.desc()).all()


def update_product(
    db: Session, product_id: str, data: ProductUpdate, schedule: Callable | None = None
) -> Product | None:
    product = get_product(db, product_id)
    if not product:
        return None
    update_data = data.model_dump(exclude_unset=True)
    _check_references(db, update_data.get("category_id"), update_data.get("supplier_id"))

    was_low_stock = product.is_low_stock
    for field, value in update_data.items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)

    if not was_low_stock and product.is_low_stock:
        _alert_low_stock(db, [_low_stock_entry(product)], schedule)
    return product


def delete_product(db: Session, product_id: str) -> bool:
    """Remove a product. Orders keep their sku/name snapshots."""
    product = get_product(db, product_id)
    if not product:
        return False
    db.delete(product)
    db.commit()
    logger.info("Deleted product %s", product_id)
    return True


def adjust_inventory(
    db: Session, product_id: str, data: InventoryAdjust, schedule: Callable | None = None
) -> Product:
    if data.quantity == 0:
        raise ValidationError("Adjustment quantity cannot be zero")
    change = run_atomic(
        db,
        lambda: ledger_service.apply_delta(db, product_id, data.quantity, reason=data.reason, note=data.note),
        action="adjust inventory",
    )

    if change.became_low_stock:
        _alert_low_stock(db, [notification_service.low_stock_payload(change)], schedule)
    return get_product(db, product_id)


def get_inventory_logs(db: Session, product_id: str) -> list[InventoryLog]:
    return (
        db.query(InventoryLog)
        .filter(InventoryLog.product_id == product_id)
        .order_by(InventoryLog.created_at.desc())
        .all()
    )


def get_low_stock(db: Session) -> list[Product]:
    return list_products(db, low_stock=True)


def product_stats(db: Session) -> dict:
    total_products = db.query(func.count(Product.id)).scalar()
    low_stock = db.query(func.count(Product.id)).filter(Product.quantity <= Product.min_stock_level).scalar()
    out_of_stock = db.query(func.count(Product.id)).filter(Product.quantity == 0).scalar()
    total_value = db.query(func.coalesce(func.sum(Product.quantity * Product.price), 0)).scalar()
    return {
        "total_products": total_products,
        "low_stock_products": low_stock,
        "out_of_stock": out_of_stock,
        "total_inventory_value": round(float(total_value), 2),
    }


def _low_stock_entry(product: Product) -> dict:
    return {
        "product_id": product.id,
        "sku": product.sku,
        "name": product.name,
        "quantity": product.quantity,
        "min_stock_level": product.min_stock_level,
    }

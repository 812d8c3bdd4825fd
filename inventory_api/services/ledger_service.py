"""Product ledger: the only code path that changes a product's quantity-on-hand.

Deltas are applied as a single conditional ``UPDATE``. For a decrement the
``WHERE quantity >= n`` guard makes the sufficiency check and the write one
atomic statement, so two concurrent sales can never both pass against the same
stale read. The caller owns the transaction; nothing here commits.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from inventory_api.exceptions import InsufficientStockError, NotFoundError
from inventory_api.models.inventory_log import InventoryLog
from inventory_api.models.product import Product

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockChange:
    product_id: str
    sku: str
    name: str
    change: int
    balance_before: int
    balance_after: int
    min_stock_level: int

    @property
    def became_low_stock(self) -> bool:
        """True when this change moved the product from healthy stock into low stock."""
        return self.balance_before > self.min_stock_level >= self.balance_after


def get_quantity(db: Session, product_id: str) -> int:
    quantity = db.scalar(select(Product.quantity).where(Product.id == product_id))
    if quantity is None:
        raise NotFoundError(f"Product not found: {product_id}", product_id=product_id)
    return quantity


def apply_delta(
    db: Session,
    product_id: str,
    delta: int,
    reason: str,
    reference_id: str = "",
    note: str = "",
) -> StockChange:
    stmt = update(Product).where(Product.id == product_id)
    if delta < 0:
        stmt = stmt.where(Product.quantity >= -delta)
    stmt = stmt.values(quantity=Product.quantity + delta).execution_options(synchronize_session=False)

    result = db.execute(stmt)
    if result.rowcount == 0:
        product = _reload(db, product_id)
        if product is None:
            raise NotFoundError(f"Product not found: {product_id}", product_id=product_id)
        raise InsufficientStockError(product.id, product.name, product.quantity, -delta)

    # The row is write-locked by the update above, so this read is our own balance
    product = _reload(db, product_id)
    log = InventoryLog(
        product_id=product.id,
        change=delta,
        reason=reason,
        reference_id=reference_id,
        balance_after=product.quantity,
        note=note,
    )
    db.add(log)
    logger.debug("Stock %s %+d -> %d (%s)", product.sku, delta, product.quantity, reason)

    return StockChange(
        product_id=product.id,
        sku=product.sku,
        name=product.name,
        change=delta,
        balance_before=product.quantity - delta,
        balance_after=product.quantity,
        min_stock_level=product.min_stock_level,
    )


def _reload(db: Session, product_id: str) -> Product | None:
    return db.scalars(
        select(Product).where(Product.id == product_id).execution_options(populate_existing=True)
    ).first()

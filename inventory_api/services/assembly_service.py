"""Order assembly: validate requested line items and price them.

Reads product state but never writes; the result is handed to
``order_service.create_order`` which reserves stock and persists.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy.orm import Session

from inventory_api.exceptions import InsufficientStockError, NotFoundError, ValidationError
from inventory_api.models.order import OrderType
from inventory_api.models.product import Product
from inventory_api.schemas.order import OrderItemCreate


def _money(value: float) -> float:
    return round(value, 2)


@dataclass(frozen=True)
class AssembledItem:
    product_id: str
    sku: str
    product_name: str
    quantity: int
    price: float
    total: float


@dataclass(frozen=True)
class AssembledOrder:
    type: OrderType
    items: tuple[AssembledItem, ...]
    subtotal: float
    tax: float
    discount: float
    total_amount: float

    def quantities_by_product(self) -> dict[str, int]:
        totals: dict[str, int] = {}
        for item in self.items:
            totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
        return totals

    def stock_deltas(self) -> dict[str, int]:
        """Signed ledger effect of this order: sales take stock, purchases add it."""
        sign = -1 if self.type == OrderType.SALE else 1
        return {pid: sign * qty for pid, qty in self.quantities_by_product().items()}


def assemble_order(
    db: Session,
    order_type: OrderType,
    items: Sequence[OrderItemCreate],
    tax: float | None = 0.0,
    discount: float | None = 0.0,
) -> AssembledOrder:
    if not items:
        raise ValidationError("Please add at least one item to the order")

    tax = tax or 0.0
    discount = discount or 0.0
    if tax < 0:
        raise ValidationError("Tax cannot be negative")
    if discount < 0:
        raise ValidationError("Discount cannot be negative")

    order_type = OrderType(order_type)
    assembled: list[AssembledItem] = []
    requested: dict[str, int] = {}

    for item_data in items:
        if item_data.quantity < 1:
            raise ValidationError(
                f"Quantity must be at least 1 (product {item_data.product_id})",
                product_id=item_data.product_id,
            )
        if item_data.price < 0:
            raise ValidationError(
                f"Price cannot be negative (product {item_data.product_id})",
                product_id=item_data.product_id,
            )

        product = db.get(Product, item_data.product_id)
        if not product:
            raise NotFoundError(f"Product not found: {item_data.product_id}", product_id=item_data.product_id)

        requested[product.id] = requested.get(product.id, 0) + item_data.quantity
        if order_type == OrderType.SALE and product.quantity < requested[product.id]:
            raise InsufficientStockError(product.id, product.name, product.quantity, requested[product.id])

        assembled.append(
            AssembledItem(
                product_id=product.id,
                sku=product.sku,
                product_name=product.name,
                quantity=item_data.quantity,
                price=item_data.price,
                total=_money(item_data.quantity * item_data.price),
            )
        )

    subtotal = _money(sum(i.total for i in assembled))
    total_amount = _money(subtotal + tax - discount)
    if total_amount < 0:
        raise ValidationError(
            f"Discount {discount:.2f} exceeds subtotal plus tax ({subtotal + tax:.2f})",
            subtotal=subtotal,
            tax=tax,
            discount=discount,
        )

    return AssembledOrder(
        type=order_type,
        items=tuple(assembled),
        subtotal=subtotal,
        tax=_money(tax),
        discount=_money(discount),
        total_amount=total_amount,
    )

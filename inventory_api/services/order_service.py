import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_api.config import settings
from inventory_api.exceptions import ConflictError, NotFoundError, ValidationError
from inventory_api.models.order import STATUS_TRANSITIONS, Order, OrderItem, OrderStatus, OrderType, PaymentStatus
from inventory_api.models.supplier import Supplier
from inventory_api.models.user import User
from inventory_api.schemas.order import OrderCreate, OrderUpdate
from inventory_api.services import (
    assembly_service,
    auth_service,
    ledger_service,
    notification_service,
    order_number_service,
)
from inventory_api.services.ledger_service import StockChange
from inventory_api.services.transactions import run_atomic

logger = logging.getLogger(__name__)

# Anything with the shape of BackgroundTasks.add_task
Scheduler = Callable[..., None]


def _add_status_history(order: Order, status: str, note: str = "") -> None:
    history = json.loads(order.status_history) if order.status_history else []
    history.append({
        "status": status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "note": note,
    })
    order.status_history = json.dumps(history)


def _insert_with_order_number(db: Session, order: Order) -> None:
    for attempt in range(settings.ORDER_NUMBER_MAX_ATTEMPTS):
        order.order_number = order_number_service.next_order_number(db, offset=attempt)
        try:
            with db.begin_nested():
                db.add(order)
                db.flush()
            return
        except IntegrityError as exc:
            if "order_number" not in str(exc.orig):
                raise
            logger.info("Order number %s already taken, retrying", order.order_number)
    raise ConflictError("Could not allocate a unique order number")


def _schedule(schedule: Scheduler | None, func: Callable, *args) -> None:
    if schedule is None:
        func(*args)
    else:
        schedule(func, *args)


def _notify_low_stock(db: Session, changes: list[StockChange], schedule: Scheduler | None) -> None:
    low = [notification_service.low_stock_payload(c) for c in changes if c.became_low_stock]
    if not low:
        return
    recipients = auth_service.low_stock_recipients(db)
    if recipients:
        _schedule(schedule, notification_service.send_low_stock_alert, recipients, low)


def create_order(
    db: Session,
    data: OrderCreate,
    creator: User | None = None,
    schedule: Scheduler | None = None,
) -> Order:
    """Validate, price, persist and reserve stock for a new order as one transaction."""

    def work() -> tuple[Order, list[StockChange]]:
        assembled = assembly_service.assemble_order(db, data.type, data.items, data.tax, data.discount)

        order = Order(
            type=assembled.type,
            subtotal=assembled.subtotal,
            tax=assembled.tax,
            discount=assembled.discount,
            total_amount=assembled.total_amount,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.UNPAID,
            notes=data.notes,
            created_by_id=creator.id if creator else None,
        )
        if assembled.type == OrderType.PURCHASE:
            if data.supplier_id:
                supplier = db.get(Supplier, data.supplier_id)
                if not supplier:
                    raise NotFoundError(f"Supplier not found: {data.supplier_id}", supplier_id=data.supplier_id)
                order.supplier_id = supplier.id
        else:
            order.customer_name = data.customer_name
            order.customer_email = data.customer_email

        order.items = [
            OrderItem(
                position=position,
                product_id=item.product_id,
                sku=item.sku,
                product_name=item.product_name,
                quantity=item.quantity,
                price=item.price,
                total=item.total,
            )
            for position, item in enumerate(assembled.items)
        ]
        _add_status_history(order, OrderStatus.PENDING.value, "Order created")
        _insert_with_order_number(db, order)

        # Fixed product order keeps row-lock acquisition consistent across transactions
        reason = assembled.type.value
        changes = [
            ledger_service.apply_delta(
                db,
                product_id,
                delta,
                reason=reason,
                reference_id=order.id,
                note=f"{reason.capitalize()} order {order.order_number}",
            )
            for product_id, delta in sorted(assembled.stock_deltas().items())
        ]
        return order, changes

    order, changes = run_atomic(db, work, action="create order")
    order_number = order.order_number
    logger.info("Created %s order %s (total %.2f)", order.type.value, order_number, order.total_amount)

    # The order is committed; nothing past this point may fail the request
    try:
        payload = notification_service.order_payload(order)
        if order.type == OrderType.SALE:
            email_to = order.customer_email
        else:
            email_to = creator.email if creator else ""
        if email_to:
            _schedule(schedule, notification_service.send_order_confirmation, email_to, payload)
        _schedule(schedule, notification_service.send_webhook, "order_created", payload)
        _notify_low_stock(db, changes, schedule)
    except Exception:
        logger.exception("Notifications for order %s failed", order_number)
        # Reset a read transaction the failure may have aborted
        db.rollback()
    return order


def get_order(db: Session, order_id: str) -> Order | None:
    return db.query(Order).filter(Order.id == order_id).first()


def get_order_by_number(db: Session, order_number: str) -> Order | None:
    return db.query(Order).filter(Order.order_number == order_number).first()


def list_orders(
    db: Session,
    type: OrderType | None = None,
    status: OrderStatus | None = None,
    payment_status: PaymentStatus | None = None,
) -> list[Order]:
    q = db.query(Order)
    if type:
        q = q.filter(Order.type == type)
    if status:
        q = q.filter(Order.status == status)
    if payment_status:
        q = q.filter(Order.payment_status == payment_status)
    return q.order_by(Order.created_at.desc()).all()


def _load_for_update(db: Session, order_id: str) -> Order:
    order = db.scalars(select(Order).where(Order.id == order_id).with_for_update()).first()
    if not order:
        raise NotFoundError("Order not found", order_id=order_id)
    return order


def update_order(db: Session, order_id: str, data: OrderUpdate) -> Order:
    """Partial update of status, payment status and notes; omitted fields are left alone."""

    def work() -> Order:
        order = _load_for_update(db, order_id)
        if data.status is not None and data.status != order.status:
            current = OrderStatus(order.status)
            if data.status not in STATUS_TRANSITIONS[current]:
                raise ValidationError(
                    f"Cannot change order status from {current.value} to {data.status.value}",
                    order_id=order_id,
                )
            order.status = data.status
            _add_status_history(order, data.status.value, data.note)
        if data.payment_status is not None:
            order.payment_status = data.payment_status
        if data.notes is not None:
            order.notes = data.notes
        return order

    order = run_atomic(db, work, action="update order")
    db.refresh(order)
    return order


def cancel_order(db: Session, order_id: str, schedule: Scheduler | None = None) -> dict:
    """Reverse the stock effect of an order and delete it, as one transaction.

    Sale cancellations put stock back, purchase cancellations take it out again.
    A purchase reversal that would take a product below zero fails the whole
    cancellation. Items whose product has since been deleted are skipped.
    """

    def work() -> tuple[dict, list[StockChange]]:
        order = _load_for_update(db, order_id)
        order_type = OrderType(order.type)
        sign = 1 if order_type == OrderType.SALE else -1
        reason = f"{order_type.value}_cancelled"

        deltas: dict[str, int] = {}
        for item in order.items:
            deltas[item.product_id] = deltas.get(item.product_id, 0) + sign * item.quantity

        changes = []
        for product_id, delta in sorted(deltas.items()):
            try:
                changes.append(
                    ledger_service.apply_delta(
                        db,
                        product_id,
                        delta,
                        reason=reason,
                        reference_id=order.id,
                        note=f"Reversed by cancelling order {order.order_number}",
                    )
                )
            except NotFoundError:
                logger.warning(
                    "Product %s no longer exists, skipping stock reversal for order %s",
                    product_id,
                    order.order_number,
                )

        payload = notification_service.order_payload(order)
        payload["status"] = OrderStatus.CANCELLED.value
        db.delete(order)
        return payload, changes

    payload, changes = run_atomic(db, work, action="cancel order")
    logger.info("Cancelled order %s", payload["order_number"])

    try:
        _schedule(schedule, notification_service.send_webhook, "order_cancelled", payload)
        _notify_low_stock(db, changes, schedule)
    except Exception:
        logger.exception("Notifications for cancelled order %s failed", payload["order_number"])
        db.rollback()
    return {
        "message": "Order cancelled and inventory restored",
        "order_id": payload["id"],
        "order_number": payload["order_number"],
    }

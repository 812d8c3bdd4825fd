import calendar
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from inventory_api.models.order import Order, OrderStatus, OrderType

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def _months_back(now: datetime, months: int) -> datetime:
    """Same day and time ``months`` calendar months earlier, clamped to the month's last day."""
    month_index = now.year * 12 + (now.month - 1) - months
    year, month = divmod(month_index, 12)
    day = min(now.day, calendar.monthrange(year, month + 1)[1])
    return now.replace(year=year, month=month + 1, day=day)


def _completed_total(db: Session, order_type: OrderType) -> float:
    total = (
        db.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.type == order_type, Order.status == OrderStatus.COMPLETED)
        .scalar()
    )
    return round(float(total), 2)


def sales_trend(db: Session, months: int = 6, now: datetime | None = None) -> list[dict]:
    """Completed sale/purchase totals per calendar month, oldest first.

    The window starts exactly ``months`` months before ``now``, so the oldest
    bucket only holds orders from that day onwards.
    """
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)
    since = _months_back(now, months)
    orders = (
        db.query(Order)
        .filter(Order.status == OrderStatus.COMPLETED, Order.created_at >= since)
        .all()
    )

    buckets: dict[tuple[int, int], dict] = {}
    for o in orders:
        key = (o.created_at.year, o.created_at.month)
        if key not in buckets:
            buckets[key] = {"name": f"{MONTH_NAMES[key[1] - 1]} {key[0]}", "sales": 0.0, "purchases": 0.0}
        if o.type == OrderType.SALE:
            buckets[key]["sales"] += o.total_amount
        else:
            buckets[key]["purchases"] += o.total_amount

    trend = [buckets[k] for k in sorted(buckets)]
    for row in trend:
        row["sales"] = round(row["sales"], 2)
        row["purchases"] = round(row["purchases"], 2)
    return trend


def order_stats(db: Session) -> dict:
    return {
        "total_orders": db.query(Order).count(),
        "pending_orders": db.query(Order).filter(Order.status == OrderStatus.PENDING).count(),
        "completed_orders": db.query(Order).filter(Order.status == OrderStatus.COMPLETED).count(),
        "total_sales_amount": _completed_total(db, OrderType.SALE),
        "total_purchases_amount": _completed_total(db, OrderType.PURCHASE),
        "sales_trend": sales_trend(db),
    }

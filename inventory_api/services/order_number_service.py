from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_api.config import settings
from inventory_api.models.order import Order


def next_order_number(db: Session, offset: int = 0) -> str:
    """Build ``<prefix>-<UTC timestamp>-<sequence>`` from the current order count.

    The number is opaque: uniqueness is enforced by the unique index on
    ``orders.order_number``, and callers bump ``offset`` after a collision.
    """
    count = db.scalar(select(func.count()).select_from(Order))
    ts = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"{settings.ORDER_NUMBER_PREFIX}-{ts}-{count + 1 + offset}"

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from inventory_api.database import Base


class InventoryLog(Base):
    """Journal of every stock delta applied by the ledger."""

    __tablename__ = "inventory_logs"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    # No FK: products may be deleted while their history is kept
    product_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    change: Mapped[int] = mapped_column(Integer, nullable=False)  # positive=in, negative=out
    reason: Mapped[str] = mapped_column(String, nullable=False)  # inbound, sale, purchase, sale_cancelled, ...
    reference_id: Mapped[str] = mapped_column(String, default="")  # order_id or note
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    note: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

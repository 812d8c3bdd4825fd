import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import CheckConstraint, DateTime, Enum, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_api.database import Base
from inventory_api.models.category import Category
from inventory_api.models.supplier import Supplier


class ProductStatus(str, PyEnum):
    ACTIVE = "active"
    DISCONTINUED = "discontinued"
    OUT_OF_STOCK = "out_of_stock"


class StockStatus(str, PyEnum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


def stock_status_for(quantity: int, min_stock_level: int) -> StockStatus:
    if quantity == 0:
        return StockStatus.OUT_OF_STOCK
    if quantity <= min_stock_level:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    sku: Mapped[str] = mapped_column(String, unique=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    category_id: Mapped[str] = mapped_column(String, ForeignKey("categories.id"), nullable=False)
    supplier_id: Mapped[str | None] = mapped_column(String, ForeignKey("suppliers.id"), nullable=True)
    price: Mapped[float] = mapped_column(Float, default=0.0)
    cost_price: Mapped[float] = mapped_column(Float, default=0.0)
    # Only changed through ledger_service.apply_delta
    quantity: Mapped[int] = mapped_column(Integer, default=0)
    min_stock_level: Mapped[int] = mapped_column(Integer, default=10)
    unit: Mapped[str] = mapped_column(String, default="pcs")
    location: Mapped[str] = mapped_column(String, default="")
    status: Mapped[str] = mapped_column(
        Enum(ProductStatus, values_callable=lambda x: [e.value for e in x]),
        default=ProductStatus.ACTIVE,
    )
    image_url: Mapped[str] = mapped_column(String, default="")
    created_by_id: Mapped[str | None] = mapped_column(String, ForeignKey("users.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    category: Mapped[Category] = relationship(Category)
    supplier: Mapped[Supplier | None] = relationship(Supplier)

    @property
    def stock_status(self) -> StockStatus:
        return stock_status_for(self.quantity, self.min_stock_level)

    @property
    def is_low_stock(self) -> bool:
        return self.quantity <= self.min_stock_level

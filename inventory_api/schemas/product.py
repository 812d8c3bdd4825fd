from datetime import datetime

from pydantic import BaseModel, Field

from inventory_api.models.product import ProductStatus, StockStatus


class ProductCreate(BaseModel):
    sku: str
    name: str
    description: str = ""
    category_id: str
    supplier_id: str | None = None
    price: float = Field(ge=0)
    cost_price: float = Field(ge=0)
    quantity: int = Field(0, ge=0)
    min_stock_level: int | None = Field(None, ge=0)  # None = DEFAULT_MIN_STOCK_LEVEL
    unit: str = "pcs"
    location: str = ""
    image_url: str = ""


class ProductUpdate(BaseModel):
    # sku is immutable and quantity only moves through the ledger
    name: str | None = None
    description: str | None = None
    category_id: str | None = None
    supplier_id: str | None = None
    price: float | None = Field(None, ge=0)
    cost_price: float | None = Field(None, ge=0)
    min_stock_level: int | None = Field(None, ge=0)
    unit: str | None = None
    location: str | None = None
    status: ProductStatus | None = None
    image_url: str | None = None


class NamedRef(BaseModel):
    id: str
    name: str

    model_config = {"from_attributes": True}


class ProductOut(BaseModel):
    id: str
    sku: str
    name: str
    description: str = ""
    category: NamedRef | None = None
    supplier: NamedRef | None = None
    price: float
    cost_price: float
    quantity: int
    min_stock_level: int
    unit: str
    location: str = ""
    status: ProductStatus
    stock_status: StockStatus
    image_url: str = ""
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class InventoryAdjust(BaseModel):
    quantity: int  # positive to add, negative to remove
    reason: str = "adjustment"
    note: str = ""


class InventoryLogOut(BaseModel):
    id: str
    product_id: str
    change: int
    reason: str
    reference_id: str
    balance_after: int
    note: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ProductStats(BaseModel):
    total_products: int
    low_stock_products: int
    out_of_stock: int
    total_inventory_value: float

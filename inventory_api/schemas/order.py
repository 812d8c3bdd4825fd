import json
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from inventory_api.models.order import OrderStatus, OrderType, PaymentStatus


class OrderItemCreate(BaseModel):
    product_id: str
    quantity: int = 1
    price: float


class OrderCreate(BaseModel):
    type: OrderType
    supplier_id: str | None = None  # purchases only
    customer_name: str = ""  # sales only
    customer_email: str = ""  # sales only
    items: list[OrderItemCreate] = []
    tax: float = 0.0
    discount: float = 0.0
    notes: str = ""


class OrderUpdate(BaseModel):
    status: OrderStatus | None = None
    payment_status: PaymentStatus | None = None
    notes: str | None = None
    note: str = Field("", description="Comment recorded in the status history")


class OrderItemOut(BaseModel):
    id: str
    product_id: str
    sku: str
    product_name: str
    quantity: int
    price: float
    total: float

    model_config = {"from_attributes": True}


class SupplierRef(BaseModel):
    id: str
    name: str
    email: str = ""

    model_config = {"from_attributes": True}


class UserRef(BaseModel):
    id: str
    name: str = ""
    email: str = ""

    model_config = {"from_attributes": True}


class OrderOut(BaseModel):
    id: str
    order_number: str
    type: OrderType
    supplier: SupplierRef | None = None
    customer_name: str = ""
    customer_email: str = ""
    items: list[OrderItemOut]
    subtotal: float
    tax: float
    discount: float
    total_amount: float
    status: OrderStatus
    payment_status: PaymentStatus
    status_history: list[dict] = []
    notes: str = ""
    created_by: UserRef | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("status_history", mode="before")
    @classmethod
    def parse_status_history(cls, v):
        if isinstance(v, str):
            return json.loads(v) if v else []
        return v

    @field_validator("customer_name", "customer_email", "notes", mode="before")
    @classmethod
    def empty_if_none(cls, v):
        return v or ""


class OrderCancelled(BaseModel):
    message: str
    order_id: str
    order_number: str


class MonthlyTrend(BaseModel):
    name: str
    sales: float = 0.0
    purchases: float = 0.0


class OrderStats(BaseModel):
    total_orders: int
    pending_orders: int
    completed_orders: int
    total_sales_amount: float
    total_purchases_amount: float
    sales_trend: list[MonthlyTrend] = []

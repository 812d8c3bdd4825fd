from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from inventory_api.api.auth import get_current_user, require_manager
from inventory_api.database import get_db
from inventory_api.models.order import OrderStatus, OrderType, PaymentStatus
from inventory_api.models.user import User
from inventory_api.schemas.order import OrderCancelled, OrderCreate, OrderOut, OrderStats, OrderUpdate
from inventory_api.services import order_service, report_service

router = APIRouter(prefix="/orders", tags=["Orders"])


# Must be declared before /{order_id}
@router.get("/stats/overview", response_model=OrderStats)
def order_stats(db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return report_service.order_stats(db)


@router.get("", response_model=list[OrderOut])
def list_orders(
    type: OrderType | None = None,
    status: OrderStatus | None = None,
    payment_status: PaymentStatus | None = None,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return order_service.list_orders(db, type=type, status=status, payment_status=payment_status)


@router.post("", response_model=OrderOut, status_code=201)
def create_order(
    data: OrderCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(require_manager),
):
    return order_service.create_order(db, data, creator=user, schedule=background_tasks.add_task)


@router.get("/by-number/{order_number}", response_model=OrderOut)
def get_order_by_number(order_number: str, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    order = order_service.get_order_by_number(db, order_number)
    if not order:
        raise HTTPException(404, "Order not found")
    return order


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: str, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    order = order_service.get_order(db, order_id)
    if not order:
        raise HTTPException(404, "Order not found")
    return order


@router.api_route("/{order_id}", methods=["PUT", "PATCH"], response_model=OrderOut)
def update_order(
    order_id: str,
    data: OrderUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_manager),
):
    return order_service.update_order(db, order_id, data)


@router.delete("/{order_id}", response_model=OrderCancelled)
def cancel_order(
    order_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    _: User = Depends(require_manager),
):
    return order_service.cancel_order(db, order_id, schedule=background_tasks.add_task)

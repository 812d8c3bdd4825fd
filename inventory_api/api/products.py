from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from inventory_api.api.auth import get_current_user, require_manager
from inventory_api.database import get_db
from inventory_api.models.product import ProductStatus
from inventory_api.models.user import User
from inventory_api.schemas.product import (
    InventoryAdjust,
    InventoryLogOut,
    ProductCreate,
    ProductOut,
    ProductStats,
    ProductUpdate,
)
from inventory_api.services import product_service

router = APIRouter(prefix="/products", tags=["Products"])


@router.post("", response_model=ProductOut, status_code=201)
def create_product(data: ProductCreate, db: Session = Depends(get_db), user: User = Depends(require_manager)):
    return product_service.create_product(db, data, creator=user)


@router.get("", response_model=list[ProductOut])
def list_products(
    category_id: str | None = None,
    status: ProductStatus | None = None,
    search: str | None = None,
    low_stock: bool = False,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    return product_service.list_products(
        db, category_id=category_id, status=status, search=search, low_stock=low_stock
    )


@router.get("/stats/overview", response_model=ProductStats)
def product_stats(db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return product_service.product_stats(db)


@router.get("/low-stock", response_model=list[ProductOut])
def low_stock(db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return product_service.get_low_stock(db)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: str, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    product = product_service.get_product(db, product_id)
    if not product:
        raise HTTPException(404, "Product not found")
    return product


@router.put("/{product_id}", response_model=ProductOut)
def update_product(
    product_id: str,
    data: ProductUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    _: User = Depends(require_manager),
):
    product = product_service.update_product(db, product_id, data, schedule=background_tasks.add_task)
    if not product:
        raise HTTPException(404, "Product not found")
    return product


@router.delete("/{product_id}")
def delete_product(product_id: str, db: Session = Depends(get_db), _: User = Depends(require_manager)):
    if not product_service.delete_product(db, product_id):
        raise HTTPException(404, "Product not found")
    return {"message": "Product removed"}


@router.post("/{product_id}/adjust", response_model=ProductOut)
def adjust_inventory(
    product_id: str,
    data: InventoryAdjust,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    _: User = Depends(require_manager),
):
    return product_service.adjust_inventory(db, product_id, data, schedule=background_tasks.add_task)


@router.get("/{product_id}/inventory-logs", response_model=list[InventoryLogOut])
def get_inventory_logs(product_id: str, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return product_service.get_inventory_logs(db, product_id)

"""Product catalog endpoints."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.security import get_current_user, require_roles
from app.db.session import get_db
from app.models.catalog import Product
from app.models.user import User
from app.schemas.catalog import ProductCreate, ProductRead, ProductStatusUpdate
from app.services.catalog_service import create_product, list_products, set_product_active

router: APIRouter = APIRouter()


@router.get("", response_model=list[ProductRead])
def read_products(vendor_id: int | None = None, db: Session = Depends(get_db)) -> list[Product]:
    return list_products(db, vendor_id=vendor_id)


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
def add_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles("VENDOR")),
) -> Product:
    return create_product(db, current_user, payload.name, payload.price)


@router.patch("/{product_id}", response_model=ProductRead)
def update_product_status(
    product_id: int,
    payload: ProductStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Product:
    return set_product_active(db, current_user, product_id, payload.is_active)

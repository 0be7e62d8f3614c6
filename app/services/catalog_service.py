"""Vendor catalog helpers shared by the product endpoints and checkout."""

from decimal import Decimal

from sqlalchemy.orm import Session

from app.core.errors import NotFound, Unauthorized, ValidationError
from app.models.catalog import Product, Vendor
from app.models.user import User
from app.services.security_guards import vendor_for_user


def list_products(db: Session, vendor_id: int | None = None, include_inactive: bool = False) -> list[Product]:
    """Return catalog products, optionally for one vendor."""
    query = db.query(Product).join(Vendor, Product.vendor_id == Vendor.id).filter(Vendor.is_active.is_(True))
    if vendor_id is not None:
        query = query.filter(Product.vendor_id == vendor_id)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.id.asc()).all()


def create_product(db: Session, actor: User, name: str, price: Decimal) -> Product:
    """Add a product to the acting vendor's catalog."""
    vendor: Vendor | None = vendor_for_user(db, actor)
    if vendor is None:
        raise Unauthorized("Only vendors can add products")
    if not name.strip():
        raise ValidationError("Product name is required")
    if price < 0:
        raise ValidationError("Product price must be >= 0")
    product = Product(vendor_id=vendor.id, name=name.strip(), price=price, is_active=True)
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def set_product_active(db: Session, actor: User, product_id: int, is_active: bool) -> Product:
    product: Product | None = db.get(Product, product_id)
    if product is None:
        raise NotFound(f"Product {product_id} not found")
    vendor: Vendor | None = vendor_for_user(db, actor)
    if actor.role != "ADMIN" and (vendor is None or vendor.id != product.vendor_id):
        raise Unauthorized("Only the owning vendor can change this product")
    product.is_active = is_active
    db.commit()
    db.refresh(product)
    return product

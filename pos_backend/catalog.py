"""
Product catalog and staff accounts: plain inserts and listings.
"""
from decimal import Decimal, InvalidOperation
from typing import List

from sqlalchemy.orm import Session

from pos_backend.auth import get_password_hash
from pos_backend.errors import ValidationError
from pos_backend.logging import get_logger
from pos_backend.models import PRODUCT_TYPES, Product, User

logger = get_logger(__name__)


def create_product(db: Session, name: str, price: str, product_type: str) -> Product:
    name = (name or "").strip()
    if not name or not price or not product_type:
        raise ValidationError("Invalid inputs")
    if product_type not in PRODUCT_TYPES:
        raise ValidationError("Invalid product type")
    try:
        amount = Decimal(price).quantize(Decimal("0.01"))
    except InvalidOperation:
        raise ValidationError("Invalid price")
    if not amount.is_finite() or amount < 0:
        raise ValidationError("Invalid price")
    if db.query(Product).filter(Product.name == name).first():
        raise ValidationError("Product already exists")

    product = Product(name=name, price=amount, type=product_type)
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info(f"Created product {product.id} ({product.name})")
    return product


def list_products(db: Session) -> List[Product]:
    return db.query(Product).order_by(Product.type.asc(), Product.name.asc()).all()


def create_user(db: Session, username: str, password: str, is_admin: bool = False) -> User:
    username = (username or "").strip()
    if not username or not password:
        raise ValidationError("Invalid inputs")
    if db.query(User).filter(User.username == username).first():
        raise ValidationError("Username already exists")

    user = User(username=username, password_hash=get_password_hash(password), is_admin=is_admin)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created {'admin' if is_admin else 'staff'} user {user.username}")
    return user

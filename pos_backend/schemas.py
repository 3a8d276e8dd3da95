"""
API payloads. Money leaves the service as JSON numbers rounded to cents.
"""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel

from pos_backend.auth import Authenticated, Identity, ServiceToken
from pos_backend.models import Order, Product


class ApiResponse(BaseModel):
    success: bool
    data: Any = None
    error: Optional[str] = None


def ok(data: Any = None) -> ApiResponse:
    return ApiResponse(success=True, data=data)


def failure(message: str) -> ApiResponse:
    return ApiResponse(success=False, error=message)


class ProductOut(BaseModel):
    id: int
    name: str
    price: float
    type: str
    created_at: datetime

    @classmethod
    def from_model(cls, product: Product) -> "ProductOut":
        return cls(id=product.id, name=product.name, price=product.price, type=product.type,
                   created_at=product.created_at)


class LineItemOut(BaseModel):
    id: int
    product: ProductOut
    quantity: int
    subtotal: float


class OrderOut(BaseModel):
    id: int
    public_id: str
    cancelled: bool
    created_at: datetime
    items: List[LineItemOut]
    total: float

    @classmethod
    def from_model(cls, order: Order) -> "OrderOut":
        return cls(
            id=order.id,
            public_id=order.public_id,
            cancelled=order.cancelled,
            created_at=order.created_at,
            items=[
                LineItemOut(
                    id=item.id,
                    product=ProductOut.from_model(item.product),
                    quantity=item.quantity,
                    subtotal=item.subtotal,
                )
                for item in order.line_items
            ],
            total=order.total,
        )


class ShopHeader(BaseModel):
    name: str = ""
    address1: str = ""
    address2: str = ""


class PrintableOrder(OrderOut):
    shop: ShopHeader


class PublicLineItem(BaseModel):
    name: str
    type: str
    price: float
    quantity: int
    subtotal: float


class PublicOrderView(BaseModel):
    public_id: str
    created_at: datetime
    cancelled: bool
    items: List[PublicLineItem]
    total: float
    shop: ShopHeader


class UserOut(BaseModel):
    username: Optional[str] = None
    is_admin: bool
    service: bool = False

    @classmethod
    def from_identity(cls, identity: Identity) -> Optional["UserOut"]:
        if isinstance(identity, Authenticated):
            return cls(username=identity.username, is_admin=identity.is_admin)
        if isinstance(identity, ServiceToken):
            return cls(is_admin=True, service=True)
        return None

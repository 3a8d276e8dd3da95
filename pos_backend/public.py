"""
Public receipts. An order is shared through its opaque `public_id`; holding the
id is the only access control, so the view carries nothing beyond the receipt.
"""
import io

import qrcode
from qrcode.image.pure import PyPNGImage
from sqlalchemy.orm import Session

from pos_backend.config import Settings
from pos_backend.orders import OrderRepository
from pos_backend.schemas import PublicLineItem, PublicOrderView, ShopHeader


class PublicShareResolver:
    def __init__(self, db: Session, settings: Settings) -> None:
        self.orders = OrderRepository(db)
        self.settings = settings

    def shop(self) -> ShopHeader:
        return ShopHeader(
            name=self.settings.shop_name,
            address1=self.settings.shop_address1,
            address2=self.settings.shop_address2,
        )

    def resolve_public(self, public_id: str) -> PublicOrderView:
        order = self.orders.get_by_public_id(public_id)
        return PublicOrderView(
            public_id=order.public_id,
            created_at=order.created_at,
            cancelled=order.cancelled,
            items=[
                PublicLineItem(
                    name=item.product.name,
                    type=item.product.type,
                    price=item.product.price,
                    quantity=item.quantity,
                    subtotal=item.subtotal,
                )
                for item in order.line_items
            ],
            total=order.total,
            shop=self.shop(),
        )

    def public_url(self, order) -> str:
        return f"{self.settings.public_base_url.rstrip('/')}/api/order/{order.public_id}/pub"

    def qr_png(self, order) -> bytes:
        image = qrcode.make(self.public_url(order), image_factory=PyPNGImage)
        buffer = io.BytesIO()
        image.save(buffer)
        return buffer.getvalue()

"""
Order repository: creation, lookup, listing and cancellation.
"""
import json
from collections import OrderedDict
from typing import Iterable, List

from sqlalchemy.orm import Session, selectinload

from pos_backend.errors import NotFound, ValidationError
from pos_backend.logging import get_logger
from pos_backend.models import MAX_ID, Order, OrderProduct, Product

logger = get_logger(__name__)


def parse_product_ids(raw: str) -> List[int]:
    """Parse the `products` form field: a JSON array of product ids."""
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, TypeError, RecursionError):
        raise ValidationError("Invalid inputs")
    if not isinstance(value, list):
        raise ValidationError("Invalid inputs")
    return value


def collapse_quantities(product_ids: Iterable) -> "OrderedDict[int, int]":
    """Turn an ordered id sequence into {product_id: quantity}, keeping first-seen order."""
    quantities = OrderedDict()
    for product_id in product_ids:
        # bool is an int subclass; true/false in the payload are not ids
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError("Invalid inputs")
        if not 1 <= product_id <= MAX_ID:
            raise ValidationError("Invalid inputs")
        quantities[product_id] = quantities.get(product_id, 0) + 1
    if not quantities:
        raise ValidationError("Invalid inputs")
    return quantities


class OrderRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _query(self):
        return self.db.query(Order).options(
            selectinload(Order.line_items).selectinload(OrderProduct.product)
        )

    def create_order(self, product_ids) -> Order:
        quantities = collapse_quantities(product_ids)

        found = {
            product.id
            for product in self.db.query(Product).filter(Product.id.in_(list(quantities))).all()
        }
        missing = [product_id for product_id in quantities if product_id not in found]
        if missing:
            raise ValidationError(f"Product with ID {missing[0]} not found")

        order = Order()
        for product_id, quantity in quantities.items():
            order.line_items.append(OrderProduct(product_id=product_id, quantity=quantity))
        self.db.add(order)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Created order {order.id} with {len(quantities)} line item(s)")
        return self.get_order(order.id)

    def get_order(self, order_id: int) -> Order:
        if not 1 <= order_id <= MAX_ID:
            raise NotFound("Order not found")
        order = self._query().filter(Order.id == order_id).first()
        if not order:
            raise NotFound("Order not found")
        return order

    def get_by_public_id(self, public_id: str) -> Order:
        order = self._query().filter(Order.public_id == public_id).first()
        if not order:
            raise NotFound("Order not found")
        return order

    def list_orders(self, active_only: bool = False) -> List[Order]:
        query = self._query()
        if active_only:
            query = query.filter(Order.cancelled.is_(False))
        return query.order_by(Order.created_at.desc(), Order.id.desc()).all()

    def cancel_order(self, order_id: int, actor: str = "<unknown>") -> Order:
        """Cancel an order. Cancelling is one-way; repeating it is a no-op."""
        order = self.get_order(order_id)
        if order.cancelled:
            return order
        order.cancelled = True
        self.db.commit()
        logger.info(f"Order {order_id} cancelled by {actor}")
        return order

"""
Earnings are derived on every call from non-cancelled orders and the current
product prices; there is no stored total to drift out of date.

Orders are bucketed into calendar days of `Settings.timezone`. A day covers
[local midnight, next local midnight).
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Dict, Iterator, List, Tuple
from zoneinfo import ZoneInfo

import pandas as pd
from sqlalchemy.orm import Session

from pos_backend.config import Settings
from pos_backend.errors import ValidationError
from pos_backend.models import Order, OrderProduct, Product

CENT = Decimal("0.01")
EXPORT_COLUMNS = ["day", "orders", "earnings", "cumulative"]


@dataclass
class DailyTotal:
    day: date
    orders: int
    earnings: Decimal
    cumulative: Decimal


def _quantize(amount: Decimal) -> Decimal:
    return Decimal(amount).quantize(CENT)


class EarningsAggregator:
    def __init__(self, db: Session, settings: Settings) -> None:
        self.db = db
        self.zone = ZoneInfo(settings.timezone)

    def _lines(self, start: datetime = None, end: datetime = None):
        query = (
            self.db.query(Order.id, Order.created_at, Product.price, OrderProduct.quantity)
            .join(OrderProduct, OrderProduct.order_id == Order.id)
            .join(Product, Product.id == OrderProduct.product_id)
            .filter(Order.cancelled.is_(False))
        )
        if start is not None:
            query = query.filter(Order.created_at >= start)
        if end is not None:
            query = query.filter(Order.created_at < end)
        return query

    def _amounts(self, query) -> Iterator[Tuple[int, datetime, Decimal]]:
        for order_id, created_at, price, quantity in query:
            yield order_id, created_at, Decimal(price) * quantity

    def local_day(self, created_at: datetime) -> date:
        return created_at.replace(tzinfo=timezone.utc).astimezone(self.zone).date()

    def day_bounds(self, day: date) -> Tuple[datetime, datetime]:
        """Naive UTC bounds of a local calendar day."""
        def to_utc(d: date) -> datetime:
            local = datetime.combine(d, time.min, tzinfo=self.zone)
            return local.astimezone(timezone.utc).replace(tzinfo=None)
        return to_utc(day), to_utc(day + timedelta(days=1))

    def total_earnings(self) -> Decimal:
        return _quantize(sum((amount for _, _, amount in self._amounts(self._lines())), Decimal(0)))

    def earnings_per_day(self, day: date) -> Decimal:
        start, end = self.day_bounds(day)
        lines = self._amounts(self._lines(start, end))
        return _quantize(sum((amount for _, _, amount in lines), Decimal(0)))

    def daily_totals(self) -> List[DailyTotal]:
        earnings: Dict[date, Decimal] = {}
        orders: Dict[date, set] = {}
        for order_id, created_at, amount in self._amounts(self._lines()):
            day = self.local_day(created_at)
            earnings[day] = earnings.get(day, Decimal(0)) + amount
            orders.setdefault(day, set()).add(order_id)

        rows = []
        cumulative = Decimal(0)
        for day in sorted(earnings):
            day_total = _quantize(earnings[day])
            cumulative += day_total
            rows.append(DailyTotal(day=day, orders=len(orders[day]), earnings=day_total, cumulative=cumulative))
        return rows

    def export_totals(self) -> bytes:
        """CSV with one row per day; the earnings column sums to total_earnings()."""
        frame = pd.DataFrame(
            [
                {
                    "day": row.day.isoformat(),
                    "orders": row.orders,
                    "earnings": str(row.earnings),
                    "cumulative": str(row.cumulative),
                }
                for row in self.daily_totals()
            ],
            columns=EXPORT_COLUMNS,
        )
        return frame.to_csv(index=False).encode("utf-8")


def parse_day(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("Invalid day, expected YYYY-MM-DD")

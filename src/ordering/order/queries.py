"""Read side of the order book: search, summaries and statistics.

Filters the provider understands (status, customer, number, amount range) are
pushed down to the repository query. Date and vendor filters, visibility and
sorting are applied in Python on the narrowed set, with all timestamps
normalised to UTC so naive values from SQL providers compare correctly.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.order.order import Order, OrderStatus

MAX_PAGE_SIZE = 100
DAILY_STATS_WINDOW_DAYS = 30

_LIFECYCLE_RANK = {status.value: rank for rank, status in enumerate(OrderStatus)}


class SortKey(Enum):
    ORDER_DATE = "orderdate"
    TOTAL_AMOUNT = "totalamount"
    STATUS = "status"


def as_utc(value: datetime | date | None, end_of_day: bool = False) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.max if end_of_day else time.min)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass
class OrderSearchCriteria:
    order_number: str | None = None
    status: str | None = None
    from_date: datetime | date | None = None
    to_date: datetime | date | None = None
    customer_id: str | None = None
    vendor_id: str | None = None
    min_amount: float | None = None
    max_amount: float | None = None
    sort_by: str = SortKey.ORDER_DATE.value
    sort_direction: str = "desc"
    page_number: int = 1
    page_size: int = 20

    def __post_init__(self):
        errors = {}
        if self.page_number < 1:
            errors["page_number"] = ["Page number must be at least 1"]
        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            errors["page_size"] = [f"Page size must be between 1 and {MAX_PAGE_SIZE}"]
        if self.status is not None and self.status not in _LIFECYCLE_RANK:
            errors["status"] = [f"Unknown status '{self.status}'"]
        if (self.sort_direction or "desc").lower() not in ("asc", "desc"):
            errors["sort_direction"] = ["Sort direction must be 'asc' or 'desc'"]
        if errors:
            raise ValidationError(errors)

    @property
    def sort_key(self) -> SortKey:
        normalized = (self.sort_by or "").replace("_", "").lower()
        return next((key for key in SortKey if key.value == normalized), SortKey.ORDER_DATE)

    def pushdown_filters(self) -> dict:
        filters = {}
        if self.status:
            filters["status"] = self.status
        if self.customer_id:
            filters["customer_id"] = str(self.customer_id)
        if self.order_number:
            filters["order_number__icontains"] = self.order_number
        if self.min_amount is not None:
            filters["total_amount__gte"] = self.min_amount
        if self.max_amount is not None:
            filters["total_amount__lte"] = self.max_amount
        return filters

    def matches(self, order: Order) -> bool:
        """Checks that are evaluated in Python."""
        created_at = as_utc(order.created_at)
        if self.from_date is not None and created_at < as_utc(self.from_date):
            return False
        if self.to_date is not None and created_at > as_utc(self.to_date, end_of_day=True):
            return False
        if self.vendor_id and not order.is_fulfilled_by(self.vendor_id):
            return False
        return True


@dataclass(frozen=True)
class OrderSummary:
    id: str
    order_number: str
    customer_id: str
    status: str
    total_amount: float
    item_count: int
    created_at: datetime
    tracking_number: str | None = None
    estimated_delivery_date: datetime | None = None

    @classmethod
    def from_order(cls, order: Order, vendor_id=None) -> "OrderSummary":
        return cls(
            id=str(order.id),
            order_number=order.order_number,
            customer_id=str(order.customer_id),
            status=order.status,
            total_amount=order.total_amount,
            item_count=order.item_count(vendor_id),
            created_at=order.created_at,
            tracking_number=order.tracking_number,
            estimated_delivery_date=order.estimated_delivery_date,
        )


@dataclass(frozen=True)
class OrderPage:
    orders: list[OrderSummary]
    total_count: int
    page_number: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total_count + self.page_size - 1) // self.page_size


@dataclass(frozen=True)
class DailyOrderStats:
    day: date
    order_count: int
    revenue: float


@dataclass(frozen=True)
class OrderStats:
    total_orders: int
    status_counts: dict[str, int]
    total_revenue: float
    average_order_value: float
    daily_stats: list[DailyOrderStats] = field(default_factory=list)

    def count_for(self, status: OrderStatus) -> int:
        return self.status_counts.get(status.value, 0)


def _orders():
    return current_domain.repository_for(Order)


# Order number breaks ties so pages are stable
_SORT_VALUES = {
    SortKey.ORDER_DATE: lambda order: (as_utc(order.created_at), order.order_number),
    SortKey.TOTAL_AMOUNT: lambda order: (order.total_amount or 0.0, order.order_number),
    SortKey.STATUS: lambda order: (_LIFECYCLE_RANK.get(order.status, 0), order.order_number),
}


def _sort(orders: list[Order], key: SortKey, descending: bool) -> list[Order]:
    return sorted(orders, key=_SORT_VALUES[key], reverse=descending)


def search_orders(criteria: OrderSearchCriteria, visible_to: str | None = None) -> OrderPage:
    """Filter, sort and paginate orders.

    ``visible_to`` restricts results to orders the user is customer or vendor
    on; pass ``None`` for an unrestricted (admin) search.
    """
    matched = [
        order
        for order in _orders().each(**criteria.pushdown_filters())
        if criteria.matches(order) and (visible_to is None or order.is_visible_to(visible_to))
    ]
    ordered = _sort(matched, criteria.sort_key, (criteria.sort_direction or "desc").lower() == "desc")

    start = (criteria.page_number - 1) * criteria.page_size
    page = ordered[start : start + criteria.page_size]
    return OrderPage(
        orders=[OrderSummary.from_order(order) for order in page],
        total_count=len(matched),
        page_number=criteria.page_number,
        page_size=criteria.page_size,
    )


def customer_orders(customer_id) -> list[OrderSummary]:
    orders = _sort(_orders().for_customer(customer_id), SortKey.ORDER_DATE, descending=True)
    return [OrderSummary.from_order(order) for order in orders]


def vendor_orders(vendor_id) -> list[OrderSummary]:
    """Orders containing the vendor's items, counting only the vendor's units."""
    orders = _sort(_orders().for_vendor(vendor_id), SortKey.ORDER_DATE, descending=True)
    return [OrderSummary.from_order(order, vendor_id=vendor_id) for order in orders]


def compute_order_stats(vendor_id=None, from_date=None, to_date=None, as_of: datetime | None = None) -> OrderStats:
    """Counts, revenue and a trailing daily breakdown over the matched orders.

    Revenue excludes cancelled orders; the average is taken over every
    matched order.
    """
    criteria = OrderSearchCriteria(vendor_id=vendor_id, from_date=from_date, to_date=to_date)
    orders = [order for order in _orders().each() if criteria.matches(order)]

    status_counts = Counter(order.status for order in orders)
    earning = [order for order in orders if order.status != OrderStatus.CANCELLED.value]
    revenue = round(sum(order.total_amount or 0.0 for order in earning), 2)
    average = round(sum(order.total_amount or 0.0 for order in orders) / len(orders), 2) if orders else 0.0

    window_start = (as_utc(as_of) or datetime.now(UTC)).date() - timedelta(days=DAILY_STATS_WINDOW_DAYS)
    daily_counts = defaultdict(int)
    daily_revenue = defaultdict(float)
    for order in orders:
        day = as_utc(order.created_at).date()
        if day < window_start:
            continue
        daily_counts[day] += 1
        if order.status != OrderStatus.CANCELLED.value:
            daily_revenue[day] += order.total_amount or 0.0

    return OrderStats(
        total_orders=len(orders),
        status_counts=dict(status_counts),
        total_revenue=revenue,
        average_order_value=average,
        daily_stats=[
            DailyOrderStats(day=day, order_count=daily_counts[day], revenue=round(daily_revenue[day], 2))
            for day in sorted(daily_counts)
        ],
    )

"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands and aggregates.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class OrderLineRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1)


class CreateOrderRequest(BaseModel):
    items: list[OrderLineRequest] = Field(min_length=1)
    shipping_address: str = Field(min_length=1, max_length=500)
    billing_address: str | None = Field(default=None, max_length=500)
    shipping_method: str | None = None
    notes: str | None = Field(default=None, max_length=1000)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"product_id": "prod-001", "variant_id": "var-001", "quantity": 2}],
                    "shipping_address": "12 Balogun Street, Lagos, NG",
                    "billing_address": None,
                    "shipping_method": "express",
                    "notes": "Leave at the gate",
                }
            ]
        }
    }


class UpdateOrderStatusRequest(BaseModel):
    status: str
    tracking_number: str | None = Field(default=None, max_length=100)
    location: str | None = Field(default=None, max_length=100)
    note: str | None = Field(default=None, max_length=500)
    estimated_delivery_date: datetime | None = None
    actual_delivery_date: datetime | None = None


class CancelOrderRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class UpdateTrackingRequest(BaseModel):
    tracking_number: str | None = Field(default=None, max_length=100)
    location: str | None = Field(default=None, max_length=100)


class RecordPaymentOutcomeRequest(BaseModel):
    outcome: str
    payment_id: str | None = None
    amount: float | None = Field(default=None, ge=0)
    payment_method: str | None = None
    provider: str | None = None
    failure_reason: str | None = None
    refund_amount: float | None = Field(default=None, gt=0)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderItemResponse(BaseModel):
    id: str
    product_id: str
    variant_id: str | None = None
    vendor_id: str
    product_name: str
    product_sku: str | None = None
    variant_description: str | None = None
    image_url: str | None = None
    quantity: int
    unit_price: float
    total_price: float


class TrackingEntryResponse(BaseModel):
    status: str
    recorded_at: datetime
    note: str | None = None
    tracking_number: str | None = None
    location: str | None = None
    actor_id: str | None = None

    @classmethod
    def from_entry(cls, entry) -> "TrackingEntryResponse":
        return cls(
            status=entry.status,
            recorded_at=entry.recorded_at,
            note=entry.note,
            tracking_number=entry.tracking_number,
            location=entry.location,
            actor_id=entry.actor_id,
        )


class OrderResponse(BaseModel):
    id: str
    order_number: str
    customer_id: str
    status: str
    subtotal: float
    shipping_cost: float
    tax_amount: float
    discount_amount: float
    total_amount: float
    shipping_address: str
    billing_address: str | None = None
    shipping_method: str | None = None
    tracking_number: str | None = None
    notes: str | None = None
    estimated_delivery_date: datetime | None = None
    actual_delivery_date: datetime | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    payment_status: str | None = None
    refunded_amount: float | None = None
    created_at: datetime | None = None
    items: list[OrderItemResponse]
    tracking: list[TrackingEntryResponse]

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        return cls(
            id=str(order.id),
            order_number=order.order_number,
            customer_id=str(order.customer_id),
            status=order.status,
            subtotal=order.subtotal,
            shipping_cost=order.shipping_cost,
            tax_amount=order.tax_amount,
            discount_amount=order.discount_amount,
            total_amount=order.total_amount,
            shipping_address=order.shipping_address,
            billing_address=order.billing_address,
            shipping_method=order.shipping_method,
            tracking_number=order.tracking_number,
            notes=order.notes,
            estimated_delivery_date=order.estimated_delivery_date,
            actual_delivery_date=order.actual_delivery_date,
            cancellation_reason=order.cancellation_reason,
            cancelled_at=order.cancelled_at,
            payment_status=order.payment_status,
            refunded_amount=order.refunded_amount,
            created_at=order.created_at,
            items=[
                OrderItemResponse(
                    id=str(item.id),
                    product_id=str(item.product_id),
                    variant_id=str(item.variant_id) if item.variant_id else None,
                    vendor_id=str(item.vendor_id),
                    product_name=item.product_name,
                    product_sku=item.product_sku,
                    variant_description=item.variant_description,
                    image_url=item.image_url,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.total_price,
                )
                for item in order.items
            ],
            tracking=[TrackingEntryResponse.from_entry(entry) for entry in order.history],
        )


class OrderSummaryResponse(BaseModel):
    id: str
    order_number: str
    customer_id: str
    status: str
    total_amount: float
    item_count: int
    created_at: datetime | None = None
    tracking_number: str | None = None
    estimated_delivery_date: datetime | None = None


class OrderPageResponse(BaseModel):
    orders: list[OrderSummaryResponse]
    total_count: int
    page_number: int
    page_size: int
    total_pages: int


class DailyOrderStatsResponse(BaseModel):
    day: date
    order_count: int
    revenue: float


class OrderStatsResponse(BaseModel):
    total_orders: int
    status_counts: dict[str, int]
    total_revenue: float
    average_order_value: float
    daily_stats: list[DailyOrderStatsResponse]


class StatusResponse(BaseModel):
    status: str = "ok"

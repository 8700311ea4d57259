"""FastAPI routes for the Ordering domain.

The authentication layer in front of this service resolves the caller and
passes their id in the ``X-User-Id`` header.
"""

from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from ordering.access import get_policy
from ordering.api.schemas import (
    CancelOrderRequest,
    CreateOrderRequest,
    DailyOrderStatsResponse,
    OrderPageResponse,
    OrderResponse,
    OrderStatsResponse,
    OrderSummaryResponse,
    RecordPaymentOutcomeRequest,
    StatusResponse,
    TrackingEntryResponse,
    UpdateOrderStatusRequest,
    UpdateTrackingRequest,
)
from ordering.exceptions import Forbidden, OrderNumberGenerationFailed, TransientError
from ordering.order.queries import OrderSearchCriteria
from ordering.order.workflow import OrderWorkflowService

order_router = APIRouter(prefix="/orders", tags=["orders"])


def _workflow() -> OrderWorkflowService:
    return OrderWorkflowService(policy=get_policy())


def _not_found(order_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Order {order_id} not found")


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------
def register_error_handlers(app: FastAPI) -> None:
    """Protean's mappings (400 / 404) plus the ordering-specific ones."""
    register_exception_handlers(app)

    @app.exception_handler(Forbidden)
    async def forbidden_handler(request: Request, exc: Forbidden):
        return JSONResponse(status_code=403, content={"error": exc.messages})

    @app.exception_handler(TransientError)
    async def conflict_handler(request: Request, exc: TransientError):
        return JSONResponse(status_code=409, content={"error": exc.messages})

    @app.exception_handler(OrderNumberGenerationFailed)
    async def numbering_exhausted_handler(request: Request, exc: OrderNumberGenerationFailed):
        return JSONResponse(status_code=503, content={"error": exc.messages})


# ---------------------------------------------------------------------------
# Collection routes
# ---------------------------------------------------------------------------
@order_router.post("", status_code=201, response_model=OrderResponse)
async def create_order(body: CreateOrderRequest, x_user_id: str = Header()) -> OrderResponse:
    order = _workflow().create_order(
        customer_id=x_user_id,
        items=[item.model_dump() for item in body.items],
        shipping_address=body.shipping_address,
        billing_address=body.billing_address,
        shipping_method=body.shipping_method,
        notes=body.notes,
    )
    return OrderResponse.from_order(order)


@order_router.get("", response_model=OrderPageResponse)
async def search_orders(
    x_user_id: str = Header(),
    order_number: str | None = None,
    status: str | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    customer_id: str | None = None,
    vendor_id: str | None = None,
    min_amount: float | None = None,
    max_amount: float | None = None,
    sort_by: str = "orderdate",
    sort_direction: str = "desc",
    page_number: int = 1,
    page_size: int = 20,
) -> OrderPageResponse:
    criteria = OrderSearchCriteria(
        order_number=order_number,
        status=status,
        from_date=from_date,
        to_date=to_date,
        customer_id=customer_id,
        vendor_id=vendor_id,
        min_amount=min_amount,
        max_amount=max_amount,
        sort_by=sort_by,
        sort_direction=sort_direction,
        page_number=page_number,
        page_size=page_size,
    )
    page = _workflow().search_orders(criteria, requesting_user_id=x_user_id)
    return OrderPageResponse(
        orders=[OrderSummaryResponse(**asdict(summary)) for summary in page.orders],
        total_count=page.total_count,
        page_number=page.page_number,
        page_size=page.page_size,
        total_pages=page.total_pages,
    )


@order_router.get("/stats", response_model=OrderStatsResponse)
async def order_stats(
    x_user_id: str = Header(),
    vendor_id: str | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
) -> OrderStatsResponse:
    # Vendors may only see their own figures
    if not get_policy().is_admin(x_user_id) and vendor_id != x_user_id:
        raise Forbidden(x_user_id, "*", "read statistics of")

    stats = _workflow().get_order_stats(vendor_id=vendor_id, from_date=from_date, to_date=to_date)
    return OrderStatsResponse(
        total_orders=stats.total_orders,
        status_counts=stats.status_counts,
        total_revenue=stats.total_revenue,
        average_order_value=stats.average_order_value,
        daily_stats=[DailyOrderStatsResponse(**asdict(day)) for day in stats.daily_stats],
    )


@order_router.get("/customer", response_model=list[OrderSummaryResponse])
async def my_orders(x_user_id: str = Header()) -> list[OrderSummaryResponse]:
    return [OrderSummaryResponse(**asdict(summary)) for summary in _workflow().list_customer_orders(x_user_id)]


@order_router.get("/vendor", response_model=list[OrderSummaryResponse])
async def my_vendor_orders(x_user_id: str = Header()) -> list[OrderSummaryResponse]:
    return [OrderSummaryResponse(**asdict(summary)) for summary in _workflow().list_vendor_orders(x_user_id)]


# ---------------------------------------------------------------------------
# Single order routes
# ---------------------------------------------------------------------------
@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, x_user_id: str = Header()) -> OrderResponse:
    order = _workflow().get_order(order_id, requesting_user_id=x_user_id)
    if order is None:
        raise _not_found(order_id)
    return OrderResponse.from_order(order)


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str, body: UpdateOrderStatusRequest, x_user_id: str = Header()
) -> OrderResponse:
    order = _workflow().update_order_status(
        order_id,
        body.status,
        actor_id=x_user_id,
        tracking_number=body.tracking_number,
        location=body.location,
        note=body.note,
        estimated_delivery_date=body.estimated_delivery_date,
        actual_delivery_date=body.actual_delivery_date,
    )
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest, x_user_id: str = Header()) -> StatusResponse:
    if not _workflow().cancel_order(order_id, body.reason, actor_id=x_user_id):
        raise _not_found(order_id)
    return StatusResponse(status="cancelled")


@order_router.get("/{order_id}/tracking", response_model=list[TrackingEntryResponse])
async def get_tracking(order_id: str, x_user_id: str = Header()) -> list[TrackingEntryResponse]:
    workflow = _workflow()
    if workflow.get_order(order_id, requesting_user_id=x_user_id) is None:
        raise _not_found(order_id)
    return [TrackingEntryResponse.from_entry(entry) for entry in workflow.get_order_tracking(order_id)]


@order_router.put("/{order_id}/tracking", response_model=StatusResponse)
async def update_tracking(order_id: str, body: UpdateTrackingRequest, x_user_id: str = Header()) -> StatusResponse:
    updated = _workflow().update_order_tracking(
        order_id,
        tracking_number=body.tracking_number,
        location=body.location,
        actor_id=x_user_id,
    )
    if not updated:
        raise _not_found(order_id)
    return StatusResponse()


@order_router.put("/{order_id}/payment", response_model=OrderResponse)
async def record_payment_outcome(
    order_id: str, body: RecordPaymentOutcomeRequest, x_user_id: str = Header()
) -> OrderResponse:
    # Reported by the payment service, which runs with administrative rights
    if not get_policy().is_admin(x_user_id):
        raise Forbidden(x_user_id, order_id, "record payments for")

    order = _workflow().record_payment_outcome(
        order_id,
        body.outcome,
        payment_id=body.payment_id,
        amount=body.amount,
        payment_method=body.payment_method,
        provider=body.provider,
        failure_reason=body.failure_reason,
        refund_amount=body.refund_amount,
        actor_id=x_user_id,
    )
    return OrderResponse.from_order(order)

"""Order workflow service: the public entry point of the ordering core.

Each write is one command processed synchronously in its own unit of work.
Commands that lose an optimistic concurrency race are retried from scratch,
so every attempt re-reads stock and sequences; business errors are never
retried. Access decisions come from an injected ``AccessPolicy``.
"""

import json

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, TransactionError
from protean.utils.globals import current_domain
from sqlalchemy.exc import IntegrityError

from ordering.access import get_policy
from ordering.access.port import AccessPolicy
from ordering.exceptions import ConcurrentModification, Forbidden, OrderNotFound, TransientError
from ordering.order.cancellation import CancelOrder
from ordering.order.creation import CreateOrder
from ordering.order.order import Order
from ordering.order.payment import RecordPaymentOutcome
from ordering.order.queries import (
    OrderPage,
    OrderSearchCriteria,
    OrderStats,
    OrderSummary,
    compute_order_stats,
    customer_orders,
    search_orders,
    vendor_orders,
)
from ordering.order.status import UpdateOrderStatus, UpdateOrderTracking

logger = structlog.get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


def _line_payload(item) -> dict:
    if isinstance(item, dict):
        return {
            "product_id": item.get("product_id"),
            "variant_id": item.get("variant_id"),
            "quantity": item.get("quantity"),
        }
    product_id, variant_id, quantity = item
    return {"product_id": product_id, "variant_id": variant_id, "quantity": quantity}


def _is_write_conflict(exc) -> bool:
    """Whether ``exc`` means a competing writer committed first."""
    if isinstance(exc, (ExpectedVersionError, TransientError, IntegrityError)):
        return True
    # Commit failures arrive wrapped by the unit of work
    return isinstance(exc, TransactionError) and isinstance(exc.__cause__, IntegrityError)


class OrderWorkflowService:
    def __init__(self, policy: AccessPolicy | None = None, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self._policy = policy
        self.max_attempts = max_attempts

    @property
    def policy(self) -> AccessPolicy:
        return self._policy or get_policy()

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------
    def _process(self, command):
        name = command.__class__.__name__
        for attempt in range(1, self.max_attempts + 1):
            try:
                return current_domain.process(command, asynchronous=False)
            except (ExpectedVersionError, TransientError, TransactionError, IntegrityError) as exc:
                if not _is_write_conflict(exc):
                    raise
                if attempt == self.max_attempts:
                    logger.error("Command abandoned after concurrent conflicts", command=name, attempts=attempt)
                    raise ConcurrentModification(name, attempt) from exc
                logger.warning("Concurrent conflict, retrying command", command=name, attempt=attempt, error=str(exc))

    def _find(self, order_id) -> Order | None:
        try:
            return current_domain.repository_for(Order).get(order_id)
        except ObjectNotFoundError:
            return None

    def _load(self, order_id) -> Order:
        order = self._find(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    # -------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------
    def create_order(
        self,
        customer_id,
        items,
        shipping_address,
        billing_address=None,
        shipping_method=None,
        notes=None,
    ) -> Order:
        """Place an order for ``items``: dicts or ``(product_id, variant_id, quantity)`` tuples."""
        order_id = self._process(
            CreateOrder(
                customer_id=customer_id,
                items=json.dumps([_line_payload(item) for item in items]),
                shipping_address=shipping_address,
                billing_address=billing_address,
                shipping_method=shipping_method,
                notes=notes,
            )
        )
        return self._load(order_id)

    def update_order_status(
        self,
        order_id,
        new_status,
        actor_id,
        tracking_number=None,
        location=None,
        note=None,
        estimated_delivery_date=None,
        actual_delivery_date=None,
    ) -> Order:
        order = self._load(order_id)
        if not self.policy.can_update_status(actor_id, order):
            raise Forbidden(actor_id, order_id, "update the status of")

        self._process(
            UpdateOrderStatus(
                order_id=order_id,
                new_status=getattr(new_status, "value", new_status),
                actor_id=str(actor_id),
                tracking_number=tracking_number,
                location=location,
                note=note,
                estimated_delivery_date=estimated_delivery_date,
                actual_delivery_date=actual_delivery_date,
            )
        )
        return self._load(order_id)

    def cancel_order(self, order_id, reason, actor_id) -> bool:
        """Cancel on the customer's behalf; ``False`` when the order does not exist."""
        return self._process(CancelOrder(order_id=order_id, reason=reason, actor_id=str(actor_id)))

    def update_order_tracking(self, order_id, tracking_number, location, actor_id) -> bool:
        order = self._find(order_id)
        if order is None:
            return False
        if not self.policy.can_update_status(actor_id, order):
            raise Forbidden(actor_id, order_id, "update tracking of")

        return self._process(
            UpdateOrderTracking(
                order_id=order_id,
                tracking_number=tracking_number,
                location=location,
                actor_id=str(actor_id),
            )
        )

    def record_payment_outcome(
        self,
        order_id,
        outcome,
        payment_id=None,
        amount=None,
        payment_method=None,
        provider=None,
        failure_reason=None,
        refund_amount=None,
        actor_id=None,
    ) -> Order:
        self._process(
            RecordPaymentOutcome(
                order_id=order_id,
                outcome=getattr(outcome, "value", outcome),
                payment_id=payment_id,
                amount=amount,
                payment_method=payment_method,
                provider=provider,
                failure_reason=failure_reason,
                refund_amount=refund_amount,
                actor_id=actor_id,
            )
        )
        return self._load(order_id)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get_order(self, order_id, requesting_user_id=None) -> Order | None:
        order = self._find(order_id)
        if order is None:
            return None
        if requesting_user_id is not None and not self.policy.can_view(requesting_user_id, order):
            return None
        return order

    def get_order_tracking(self, order_id, requesting_user_id=None):
        order = self.get_order(order_id, requesting_user_id)
        if order is None:
            return []
        return order.history

    def search_orders(
        self, criteria: OrderSearchCriteria, requesting_user_id=None, is_admin: bool = False
    ) -> OrderPage:
        admin = is_admin or self.policy.is_admin(requesting_user_id)
        visible_to = None if admin or requesting_user_id is None else str(requesting_user_id)
        return search_orders(criteria, visible_to=visible_to)

    def get_order_stats(self, vendor_id=None, from_date=None, to_date=None) -> OrderStats:
        return compute_order_stats(vendor_id=vendor_id, from_date=from_date, to_date=to_date)

    def list_customer_orders(self, customer_id) -> list[OrderSummary]:
        return customer_orders(customer_id)

    def list_vendor_orders(self, vendor_id) -> list[OrderSummary]:
        return vendor_orders(vendor_id)

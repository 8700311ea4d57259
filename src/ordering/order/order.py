"""Order aggregate: the durable record of a completed checkout.

State Machine:
    PENDING → PROCESSING → SHIPPED → DELIVERED
    PENDING / PROCESSING / SHIPPED → CANCELLED
    DELIVERED / CANCELLED → PARTIALLY_REFUNDED → REFUNDED   (payment refunds only)

DELIVERED, CANCELLED, REFUNDED and PARTIALLY_REFUNDED are terminal for status
updates. Every status change appends exactly one tracking entry, and the
latest entry always carries the order's current status.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from ordering.domain import ordering
from ordering.exceptions import Forbidden, InvalidTransition, OrderNotCancellable, OrderTerminal
from ordering.order.events import (
    OrderCancelled,
    OrderPlaced,
    OrderStatusChanged,
    OrderTrackingUpdated,
    PaymentOutcomeRecorded,
)

# Amounts are stored rounded to cents; comparisons allow for float noise
_CENT_TOLERANCE = 0.005


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"
    PARTIALLY_REFUNDED = "PartiallyRefunded"


class PaymentStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"
    PARTIALLY_REFUNDED = "PartiallyRefunded"


class PaymentOutcome(Enum):
    """Results reported by the payment collaborator."""

    PENDING = "Pending"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    REFUNDED = "Refunded"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
    OrderStatus.PARTIALLY_REFUNDED: set(),
}

TERMINAL_STATES = frozenset(status for status, targets in _VALID_TRANSITIONS.items() if not targets)

_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.PROCESSING, OrderStatus.SHIPPED}

# States in which the payment collaborator may report a refund
_REFUNDABLE_STATES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.PARTIALLY_REFUNDED}

_PAYMENT_STATUS_BY_OUTCOME = {
    PaymentOutcome.PENDING: PaymentStatus.PENDING,
    PaymentOutcome.SUCCEEDED: PaymentStatus.COMPLETED,
    PaymentOutcome.FAILED: PaymentStatus.FAILED,
}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A purchased line, with product data copied at the time of ordering.

    ``stock_reserved`` records whether the stock ledger actually decremented
    counters for this line, so cancellation gives back exactly what was taken.
    """

    product_id = Identifier(required=True)
    variant_id = Identifier()
    vendor_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    total_price = Float(required=True, min_value=0.0)
    product_name = String(required=True, max_length=255)
    product_sku = String(max_length=50)
    variant_description = String(max_length=200)
    image_url = String(max_length=500)
    stock_reserved = Boolean(default=False)


@ordering.entity(part_of="Order")
class OrderTracking:
    """One immutable entry of the order's status history."""

    status = String(required=True, choices=OrderStatus)
    recorded_at = DateTime(required=True)
    sequence = Integer(required=True, min_value=1)
    note = String(max_length=500)
    tracking_number = String(max_length=100)
    location = String(max_length=100)
    actor_id = String(max_length=100)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    customer_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    items = HasMany(OrderItem)
    tracking_entries = HasMany(OrderTracking)

    subtotal = Float(default=0.0, min_value=0.0)
    shipping_cost = Float(default=0.0, min_value=0.0)
    tax_amount = Float(default=0.0, min_value=0.0)
    discount_amount = Float(default=0.0, min_value=0.0)
    total_amount = Float(default=0.0, min_value=0.0)

    shipping_address = String(required=True, max_length=500)
    billing_address = String(max_length=500)
    shipping_method = String(max_length=50)
    tracking_number = String(max_length=100)
    notes = String(max_length=1000)
    estimated_delivery_date = DateTime()
    actual_delivery_date = DateTime()
    cancellation_reason = String(max_length=500)
    cancelled_at = DateTime()

    payment_id = String(max_length=255)
    payment_method = String(max_length=50)
    payment_provider = String(max_length=50)
    payment_status = String(choices=PaymentStatus)
    payment_amount = Float()
    payment_failure_reason = String(max_length=500)
    refunded_amount = Float(default=0.0)

    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def total_must_equal_sum_of_charges(self):
        expected = (self.subtotal or 0) + (self.shipping_cost or 0) + (self.tax_amount or 0)
        expected -= self.discount_amount or 0
        if abs((self.total_amount or 0) - expected) > _CENT_TOLERANCE:
            raise ValidationError(
                {"total_amount": [f"Total {self.total_amount} does not match charges {round(expected, 2)}"]}
            )

    @invariant.post
    def subtotal_must_equal_sum_of_items(self):
        if not self.items:
            return
        items_total = sum(item.total_price or 0 for item in self.items)
        if abs(items_total - (self.subtotal or 0)) > _CENT_TOLERANCE:
            raise ValidationError({"subtotal": [f"Subtotal {self.subtotal} does not match items {items_total}"]})

    @invariant.post
    def latest_tracking_entry_must_match_status(self):
        if not self.tracking_entries:
            return
        latest = max(self.tracking_entries, key=lambda entry: entry.sequence)
        if latest.status != self.status:
            raise ValidationError(
                {"tracking_entries": [f"Latest tracking status {latest.status} differs from order status {self.status}"]}
            )

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        customer_id,
        lines,
        charges,
        shipping_address,
        billing_address=None,
        shipping_method=None,
        notes=None,
        placed_at=None,
    ):
        """Build a PENDING order with its items and the initial tracking entry.

        Args:
            lines: dicts of ``OrderItem`` attributes, already priced.
            charges: ``ordering.pricing.calculator.Charges`` for the lines.
        """
        now = placed_at or datetime.now(UTC)

        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            items=[OrderItem(**line) for line in lines],
            tracking_entries=[
                OrderTracking(
                    status=OrderStatus.PENDING.value,
                    recorded_at=now,
                    sequence=1,
                    note="Order created",
                    actor_id=str(customer_id),
                )
            ],
            subtotal=charges.subtotal,
            shipping_cost=charges.shipping_cost,
            tax_amount=charges.tax_amount,
            discount_amount=charges.discount_amount,
            total_amount=charges.total_amount,
            shipping_address=shipping_address,
            billing_address=billing_address or shipping_address,
            shipping_method=shipping_method,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                vendor_ids=json.dumps(sorted(order.vendor_ids)),
                item_count=order.item_count(),
                subtotal=order.subtotal,
                shipping_cost=order.shipping_cost,
                tax_amount=order.tax_amount,
                total_amount=order.total_amount,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.current_status in TERMINAL_STATES

    @property
    def vendor_ids(self) -> set[str]:
        return {str(item.vendor_id) for item in self.items}

    @property
    def history(self) -> list[OrderTracking]:
        """Tracking entries, oldest first."""
        return sorted(self.tracking_entries, key=lambda entry: entry.sequence)

    def item_count(self, vendor_id=None) -> int:
        """Units on the order, optionally only those sold by ``vendor_id``."""
        return sum(
            item.quantity for item in self.items if vendor_id is None or str(item.vendor_id) == str(vendor_id)
        )

    def is_fulfilled_by(self, vendor_id) -> bool:
        return vendor_id is not None and str(vendor_id) in self.vendor_ids

    def is_visible_to(self, user_id) -> bool:
        return str(user_id) == str(self.customer_id) or self.is_fulfilled_by(user_id)

    def items_to_restock(self) -> list[OrderItem]:
        return [item for item in self.items if item.stock_reserved]

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _append_tracking(self, status, actor_id, note=None, tracking_number=None, location=None, at=None):
        self.add_tracking_entries(
            OrderTracking(
                status=status.value,
                recorded_at=at or datetime.now(UTC),
                sequence=len(self.tracking_entries) + 1,
                note=note,
                tracking_number=tracking_number,
                location=location,
                actor_id=str(actor_id) if actor_id is not None else None,
            )
        )

    def _assert_can_transition(self, target):
        current = self.current_status
        if current in TERMINAL_STATES:
            raise OrderTerminal(self.id, current)
        if target not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(self.id, current, target)

    def transition_to(
        self,
        target,
        actor_id,
        note=None,
        tracking_number=None,
        location=None,
        estimated_delivery_date=None,
        actual_delivery_date=None,
    ):
        """Move the order along the state machine, recording one tracking entry."""
        target = OrderStatus(target)
        self._assert_can_transition(target)

        previous = self.current_status
        now = datetime.now(UTC)
        note = note or f"Status updated from {previous.value} to {target.value}"

        with atomic_change(self):
            self.status = target.value
            if tracking_number:
                self.tracking_number = tracking_number
            if estimated_delivery_date:
                self.estimated_delivery_date = estimated_delivery_date
            if target == OrderStatus.DELIVERED:
                self.actual_delivery_date = actual_delivery_date or now
            elif actual_delivery_date:
                self.actual_delivery_date = actual_delivery_date
            if target == OrderStatus.CANCELLED:
                self.cancellation_reason = note
                self.cancelled_at = now
            self.updated_at = now
            self._append_tracking(target, actor_id, note, tracking_number, location, at=now)

        if target == OrderStatus.CANCELLED:
            self.raise_(
                OrderCancelled(
                    order_id=str(self.id),
                    order_number=self.order_number,
                    previous_status=previous.value,
                    reason=note,
                    actor_id=str(actor_id),
                    cancelled_at=now,
                )
            )
        else:
            self.raise_(
                OrderStatusChanged(
                    order_id=str(self.id),
                    order_number=self.order_number,
                    previous_status=previous.value,
                    new_status=target.value,
                    actor_id=str(actor_id),
                    tracking_number=self.tracking_number,
                    changed_at=now,
                )
            )

    def cancel(self, reason, actor_id):
        """Customer cancellation of their own order."""
        current = self.current_status
        if current not in _CANCELLABLE_STATES:
            raise OrderNotCancellable(self.id, current)
        if str(actor_id) != str(self.customer_id):
            raise Forbidden(actor_id, self.id, "cancel")

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.CANCELLED.value
            self.cancellation_reason = reason
            self.cancelled_at = now
            self.updated_at = now
            self._append_tracking(OrderStatus.CANCELLED, actor_id, f"Order cancelled: {reason}", at=now)

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=current.value,
                reason=reason,
                actor_id=str(actor_id),
                cancelled_at=now,
            )
        )

    def update_tracking(self, tracking_number, location, actor_id):
        """Record carrier progress without changing the status."""
        now = datetime.now(UTC)
        with atomic_change(self):
            if tracking_number:
                self.tracking_number = tracking_number
            self.updated_at = now
            self._append_tracking(
                self.current_status,
                actor_id,
                "Tracking information updated",
                tracking_number=tracking_number,
                location=location,
                at=now,
            )

        self.raise_(
            OrderTrackingUpdated(
                order_id=str(self.id),
                tracking_number=tracking_number,
                location=location,
                actor_id=str(actor_id),
                recorded_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def record_payment(
        self,
        outcome,
        payment_id=None,
        amount=None,
        payment_method=None,
        provider=None,
        failure_reason=None,
        refund_amount=None,
        actor_id=None,
    ):
        outcome = PaymentOutcome(outcome)
        now = datetime.now(UTC)

        if outcome == PaymentOutcome.REFUNDED:
            self._record_refund(refund_amount, actor_id, now)
        else:
            self.payment_status = _PAYMENT_STATUS_BY_OUTCOME[outcome].value
            if outcome == PaymentOutcome.FAILED:
                self.payment_failure_reason = failure_reason
            if amount is not None:
                self.payment_amount = amount
            self.updated_at = now

        if payment_id:
            self.payment_id = payment_id
        if payment_method:
            self.payment_method = payment_method
        if provider:
            self.payment_provider = provider

        self.raise_(
            PaymentOutcomeRecorded(
                order_id=str(self.id),
                payment_id=self.payment_id,
                payment_status=self.payment_status,
                amount=amount,
                refunded_amount=self.refunded_amount,
                order_status=self.status,
                recorded_at=now,
            )
        )

    def _record_refund(self, refund_amount, actor_id, now):
        current = self.current_status
        if current == OrderStatus.REFUNDED:
            raise OrderTerminal(self.id, current)
        if current not in _REFUNDABLE_STATES:
            raise InvalidTransition(self.id, current, OrderStatus.REFUNDED)

        already_refunded = self.refunded_amount or 0.0
        outstanding = round((self.total_amount or 0.0) - already_refunded, 2)
        amount = outstanding if refund_amount is None else refund_amount
        if amount <= 0:
            raise ValidationError({"refund_amount": ["Refund amount must be positive"]})
        if amount > outstanding + _CENT_TOLERANCE:
            raise ValidationError({"refund_amount": [f"Refund of {amount} exceeds the outstanding {outstanding}"]})

        refunded = round(already_refunded + amount, 2)
        fully_refunded = refunded >= (self.total_amount or 0.0) - _CENT_TOLERANCE
        target = OrderStatus.REFUNDED if fully_refunded else OrderStatus.PARTIALLY_REFUNDED
        payment_status = PaymentStatus.REFUNDED if fully_refunded else PaymentStatus.PARTIALLY_REFUNDED

        with atomic_change(self):
            self.status = target.value
            self.refunded_amount = refunded
            self.payment_status = payment_status.value
            self.updated_at = now
            self._append_tracking(target, actor_id, f"Refund of {amount:.2f} recorded", at=now)

"""Domain events for the Order aggregate.

Events are versioned, immutable facts raised alongside the state change they
describe and dispatched when the unit of work commits.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A customer placed an order and its stock was reserved."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    vendor_ids = Text()  # JSON: distinct vendors on the order
    item_count = Integer(required=True)
    subtotal = Float(required=True)
    shipping_cost = Float()
    tax_amount = Float()
    total_amount = Float(required=True)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    actor_id = String()
    tracking_number = String()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled; reserved stock goes back to the vendors."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    reason = String()
    actor_id = String()
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderTrackingUpdated:
    __version__ = 1

    order_id = Identifier(required=True)
    tracking_number = String()
    location = String()
    actor_id = String()
    recorded_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentOutcomeRecorded:
    """The payment collaborator reported the result of a charge or refund."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = String()
    payment_status = String(required=True)
    amount = Float()
    refunded_amount = Float()
    order_status = String(required=True)
    recorded_at = DateTime(required=True)

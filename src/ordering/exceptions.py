"""Error taxonomy of the ordering domain.

Errors extend Protean's exception hierarchy so that the FastAPI integration
maps them to HTTP status codes: ``ValidationError`` subclasses become 400,
``ObjectNotFoundError`` subclasses 404. ``Forbidden``, ``TransientError`` and
``OrderNumberGenerationFailed`` get their own handlers in ``ordering.api``.

Every error carries a ``messages`` dict in Protean's field-to-errors shape and
also exposes its details as attributes for callers that branch on them.
"""

from protean.exceptions import ObjectNotFoundError, ProteanExceptionWithMessage, ValidationError


def _status_value(status):
    return getattr(status, "value", status)


class _NotFound(ObjectNotFoundError):
    """Not-found error carrying a ``messages`` dict like the validation errors."""

    def __init__(self, messages):
        self.messages = messages
        super().__init__(messages)


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------
class ProductNotFound(_NotFound):
    """The product does not exist or is no longer offered."""

    def __init__(self, product_id):
        self.product_id = str(product_id)
        super().__init__({"product_id": [f"Product {product_id} not found or inactive"]})


class VariantNotFound(_NotFound):
    def __init__(self, product_id, variant_id):
        self.product_id = str(product_id)
        self.variant_id = str(variant_id)
        super().__init__({"variant_id": [f"Variant {variant_id} of product {product_id} not found or inactive"]})


class OrderNotFound(_NotFound):
    def __init__(self, order_id):
        self.order_id = str(order_id)
        super().__init__({"order_id": [f"Order {order_id} not found"]})


# ---------------------------------------------------------------------------
# Business rule violations
# ---------------------------------------------------------------------------
class InsufficientStock(ValidationError):
    """Tracked stock cannot cover the requested quantity."""

    def __init__(self, product_id, variant_id, requested, available):
        self.product_id = str(product_id)
        self.variant_id = str(variant_id) if variant_id else None
        self.requested = requested
        self.available = available

        subject = f"variant {variant_id} of product {product_id}" if variant_id else f"product {product_id}"
        super().__init__(
            {"stock": [f"Insufficient stock for {subject}: {available} available, {requested} requested"]}
        )


class InvalidTransition(ValidationError):
    def __init__(self, order_id, current, attempted):
        self.order_id = str(order_id)
        self.current = _status_value(current)
        self.attempted = _status_value(attempted)
        super().__init__({"status": [f"Cannot transition from {self.current} to {self.attempted}"]})


class OrderTerminal(ValidationError):
    """The order reached a final state and accepts no further transitions."""

    def __init__(self, order_id, status):
        self.order_id = str(order_id)
        self.status = _status_value(status)
        super().__init__({"status": [f"Order is {self.status} and can no longer change status"]})


class OrderNotCancellable(ValidationError):
    def __init__(self, order_id, status):
        self.order_id = str(order_id)
        self.status = _status_value(status)
        super().__init__({"status": [f"Cannot cancel an order that is {self.status}"]})


# ---------------------------------------------------------------------------
# Access and infrastructure
# ---------------------------------------------------------------------------
class Forbidden(ProteanExceptionWithMessage):
    """The actor is not allowed to perform the action on the order."""

    def __init__(self, actor_id, order_id, action):
        self.actor_id = str(actor_id) if actor_id is not None else None
        self.order_id = str(order_id)
        self.action = action
        super().__init__({"actor": [f"User {actor_id} may not {action} order {order_id}"]})


class OrderNumberGenerationFailed(ProteanExceptionWithMessage):
    """The day's order number space is exhausted."""

    def __init__(self, sequence_date, limit):
        self.sequence_date = sequence_date
        self.limit = limit
        super().__init__({"order_number": [f"No order numbers left for {sequence_date} (limit {limit})"]})


class TransientError(ProteanExceptionWithMessage):
    """A conflict that may succeed when the whole command is retried."""


class OrderNumberCollision(TransientError):
    def __init__(self, order_number):
        self.order_number = order_number
        super().__init__({"order_number": [f"Order number {order_number} is already taken"]})


class ConcurrentModification(TransientError):
    def __init__(self, command_name, attempts):
        self.command_name = command_name
        self.attempts = attempts
        super().__init__({"_entity": [f"{command_name} conflicted with concurrent changes after {attempts} attempts"]})

"""Order status updates and carrier tracking: commands and handler.

Who may issue these commands is decided by the workflow service's access
policy before dispatch; the handler enforces the state machine.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.exceptions import OrderNotFound
from ordering.order.cancellation import restore_reserved_stock
from ordering.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    new_status = String(required=True, max_length=50)
    actor_id = String(required=True, max_length=100)
    tracking_number = String(max_length=100)
    location = String(max_length=100)
    note = String(max_length=500)
    estimated_delivery_date = DateTime()
    actual_delivery_date = DateTime()


@ordering.command(part_of="Order")
class UpdateOrderTracking:
    order_id = Identifier(required=True)
    tracking_number = String(max_length=100)
    location = String(max_length=100)
    actor_id = String(required=True, max_length=100)


def load_order(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        raise OrderNotFound(order_id) from None


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        allowed = ", ".join(status.value for status in OrderStatus)
        raise ValidationError({"new_status": [f"Unknown status '{value}', expected one of: {allowed}"]}) from None


@ordering.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        target = parse_status(command.new_status)
        order = load_order(command.order_id)
        previous = order.status

        order.transition_to(
            target,
            actor_id=command.actor_id,
            note=command.note,
            tracking_number=command.tracking_number,
            location=command.location,
            estimated_delivery_date=command.estimated_delivery_date,
            actual_delivery_date=command.actual_delivery_date,
        )
        current_domain.repository_for(Order).add(order)

        if target == OrderStatus.CANCELLED:
            restore_reserved_stock(order)

        logger.info(
            "Order status updated",
            order_id=str(order.id),
            order_number=order.order_number,
            previous_status=previous,
            new_status=order.status,
            actor_id=command.actor_id,
        )
        return str(order.id)

    @handle(UpdateOrderTracking)
    def update_tracking(self, command):
        try:
            order = current_domain.repository_for(Order).get(command.order_id)
        except ObjectNotFoundError:
            return False

        order.update_tracking(
            tracking_number=command.tracking_number,
            location=command.location,
            actor_id=command.actor_id,
        )
        current_domain.repository_for(Order).add(order)
        return True

"""Order cancellation: command and handler.

Customers cancel their own orders here; vendors and admins cancel through a
status update. Both paths give reserved stock back inside the same unit of
work that records the cancellation.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order
from ordering.stock.ledger import StockLedger

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    actor_id = String(required=True, max_length=100)


def restore_reserved_stock(order) -> int:
    """Return every reserved line's quantity to the stock ledger."""
    ledger = StockLedger()
    restored = 0
    for item in order.items_to_restock():
        if ledger.restore(item.product_id, item.variant_id, item.quantity):
            restored += item.quantity
    ledger.persist()
    return restored


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        try:
            order = repo.get(command.order_id)
        except ObjectNotFoundError:
            return False

        order.cancel(reason=command.reason, actor_id=command.actor_id)
        repo.add(order)
        restored = restore_reserved_stock(order)

        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            order_number=order.order_number,
            actor_id=command.actor_id,
            units_restored=restored,
        )
        return True

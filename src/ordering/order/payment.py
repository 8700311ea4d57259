"""Payment outcomes reported by the payment collaborator: command and handler."""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order, PaymentOutcome
from ordering.order.status import load_order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class RecordPaymentOutcome:
    order_id = Identifier(required=True)
    outcome = String(required=True, choices=PaymentOutcome)
    payment_id = String(max_length=255)
    amount = Float(min_value=0.0)
    payment_method = String(max_length=50)
    provider = String(max_length=50)
    failure_reason = String(max_length=500)
    refund_amount = Float(min_value=0.0)
    actor_id = String(max_length=100)


@ordering.command_handler(part_of=Order)
class PaymentOutcomeHandler:
    @handle(RecordPaymentOutcome)
    def record_outcome(self, command):
        order = load_order(command.order_id)
        order.record_payment(
            outcome=command.outcome,
            payment_id=command.payment_id,
            amount=command.amount,
            payment_method=command.payment_method,
            provider=command.provider,
            failure_reason=command.failure_reason,
            refund_amount=command.refund_amount,
            actor_id=command.actor_id,
        )
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Payment outcome recorded",
            order_id=str(order.id),
            outcome=command.outcome,
            payment_status=order.payment_status,
            order_status=order.status,
        )
        return str(order.id)

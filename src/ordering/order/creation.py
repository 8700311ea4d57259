"""Order creation: command and handler.

Everything happens inside the handler's unit of work: the day's order number
is claimed, lines are resolved and checked against the stock ledger, charges
are computed, and the order and the decremented stock are registered with
their repositories. Any error rolls all of it back, the claimed number
included.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.exceptions import OrderNumberCollision
from ordering.order.numbering import OrderNumberGenerator
from ordering.order.order import Order
from ordering.pricing.calculator import PricingCalculator
from ordering.stock.ledger import StockLedger

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class CreateOrder:
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: [{"product_id", "variant_id"?, "quantity"}]
    shipping_address = String(required=True, max_length=500)
    billing_address = String(max_length=500)
    shipping_method = String(max_length=50)
    notes = String(max_length=1000)


def parse_order_lines(raw) -> list[dict]:
    """Decode and validate the requested lines of a ``CreateOrder``."""
    lines = json.loads(raw) if isinstance(raw, str) else raw
    if not lines:
        raise ValidationError({"items": ["An order needs at least one item"]})

    parsed = []
    for position, line in enumerate(lines, start=1):
        if not line.get("product_id"):
            raise ValidationError({"items": [f"Item {position} has no product"]})
        try:
            quantity = int(line.get("quantity", 0))
        except (TypeError, ValueError):
            raise ValidationError({"items": [f"Item {position} has an invalid quantity"]}) from None
        if quantity <= 0:
            raise ValidationError({"items": [f"Item {position} quantity must be greater than zero"]})

        parsed.append(
            {
                "product_id": str(line["product_id"]),
                "variant_id": str(line["variant_id"]) if line.get("variant_id") else None,
                "quantity": quantity,
            }
        )
    return parsed


@ordering.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        requested = parse_order_lines(command.items)
        ledger = StockLedger()
        calculator = PricingCalculator()

        # Claim the number first. On SQL providers competing creators queue on
        # the day's sequence row, so the stock read below sees their commits
        repo = current_domain.repository_for(Order)
        order_number = OrderNumberGenerator().next_number()
        if repo.find_by_number(order_number) is not None:
            raise OrderNumberCollision(order_number)

        # Resolve and check every line before any stock is taken
        for line in requested:
            ledger.ensure_available(line["product_id"], line["variant_id"], line["quantity"])

        lines = []
        for line in requested:
            product, variant = ledger.resolve(line["product_id"], line["variant_id"])
            unit_price = product.unit_price(variant)
            reserved = ledger.decrement(line["product_id"], line["variant_id"], line["quantity"])
            lines.append(
                {
                    "product_id": str(product.id),
                    "variant_id": str(variant.id) if variant else None,
                    "vendor_id": str(product.vendor_id),
                    "quantity": line["quantity"],
                    "unit_price": float(calculator.line_total(unit_price, 1)),
                    "total_price": float(calculator.line_total(unit_price, line["quantity"])),
                    "product_name": product.name,
                    "product_sku": variant.sku if variant and variant.sku else product.sku,
                    "variant_description": variant.description if variant else None,
                    "image_url": product.image_url,
                    "stock_reserved": reserved,
                }
            )

        charges = calculator.calculate(
            [(line["unit_price"], line["quantity"]) for line in lines],
            command.shipping_method,
        )

        order = Order.place(
            order_number=order_number,
            customer_id=command.customer_id,
            lines=lines,
            charges=charges,
            shipping_address=command.shipping_address,
            billing_address=command.billing_address,
            shipping_method=command.shipping_method or charges.shipping_method.value,
            notes=command.notes,
        )
        repo.add(order)
        ledger.persist()

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order_number,
            customer_id=str(command.customer_id),
            total_amount=order.total_amount,
        )
        return str(order.id)

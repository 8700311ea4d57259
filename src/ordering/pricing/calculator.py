"""Order charge calculation: line totals, shipping, tax and grand total.

Amounts are computed with ``Decimal`` and rounded half-up to cents before
they are stored on the order as floats.

Shipping is priced per method as ``base_fee + per_kg * weight``, where weight
is a proxy of ``UNIT_WEIGHT_KG`` per ordered unit. Unknown or missing methods
are charged at the standard rate.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

CENTS = Decimal("0.01")
UNIT_WEIGHT_KG = Decimal("0.5")
TAX_RATE = Decimal("0.10")


class ShippingMethod(Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    OVERNIGHT = "overnight"

    @classmethod
    def resolve(cls, name: str | None) -> "ShippingMethod":
        """Match a method name case-insensitively, falling back to standard."""
        if isinstance(name, cls):
            return name
        normalized = (name or "").strip().lower()
        for method in cls:
            if method.value == normalized:
                return method
        return cls.STANDARD


@dataclass(frozen=True)
class ShippingRate:
    base_fee: Decimal
    per_kg: Decimal


SHIPPING_RATES = {
    ShippingMethod.STANDARD: ShippingRate(base_fee=Decimal("5"), per_kg=Decimal("1")),
    ShippingMethod.EXPRESS: ShippingRate(base_fee=Decimal("15"), per_kg=Decimal("2")),
    ShippingMethod.OVERNIGHT: ShippingRate(base_fee=Decimal("25"), per_kg=Decimal("3")),
}


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Charges:
    """The monetary summary of an order."""

    subtotal: float
    shipping_cost: float
    tax_amount: float
    discount_amount: float
    total_amount: float
    shipping_method: ShippingMethod


class PricingCalculator:
    def __init__(
        self,
        tax_rate: Decimal = TAX_RATE,
        shipping_rates: dict[ShippingMethod, ShippingRate] | None = None,
        unit_weight_kg: Decimal = UNIT_WEIGHT_KG,
    ):
        self.tax_rate = Decimal(str(tax_rate))
        self.shipping_rates = shipping_rates or SHIPPING_RATES
        self.unit_weight_kg = Decimal(str(unit_weight_kg))

    def line_total(self, unit_price, quantity: int) -> Decimal:
        return to_money(to_money(unit_price) * quantity)

    def shipping_cost(self, total_quantity: int, method: str | ShippingMethod | None) -> Decimal:
        rate = self.shipping_rates.get(ShippingMethod.resolve(method), self.shipping_rates[ShippingMethod.STANDARD])
        weight = self.unit_weight_kg * total_quantity
        return to_money(rate.base_fee + rate.per_kg * weight)

    def tax(self, subtotal) -> Decimal:
        """Tax is levied on the merchandise subtotal only, never on shipping."""
        return to_money(Decimal(str(subtotal)) * self.tax_rate)

    def calculate(
        self,
        lines: Iterable[tuple[float, int]],
        shipping_method: str | ShippingMethod | None = None,
        discount=0,
    ) -> Charges:
        """Compute charges for ``(unit_price, quantity)`` lines."""
        lines = list(lines)
        subtotal = sum((self.line_total(price, quantity) for price, quantity in lines), Decimal("0"))
        total_quantity = sum(quantity for _, quantity in lines)

        method = ShippingMethod.resolve(shipping_method)
        shipping = self.shipping_cost(total_quantity, method)
        tax = self.tax(subtotal)
        discount = to_money(discount)
        total = subtotal + shipping + tax - discount

        return Charges(
            subtotal=float(subtotal),
            shipping_cost=float(shipping),
            tax_amount=float(tax),
            discount_amount=float(discount),
            total_amount=float(total),
            shipping_method=method,
        )

"""Stock ledger: safe reads and mutations of product and variant stock.

A ledger belongs to one unit of work. Products are loaded once and cached
for that unit only, so several lines for the same product see each other's
decrements. ``persist()`` hands every touched product back to the repository,
where Protean's aggregate versioning rejects a concurrent writer at commit.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.catalogue.product import Product
from ordering.exceptions import InsufficientStock, ProductNotFound, VariantNotFound

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockLevel:
    quantity: int
    tracking_enabled: bool
    allow_backorder: bool

    def covers(self, amount: int) -> bool:
        return not self.tracking_enabled or self.allow_backorder or self.quantity >= amount


class StockLedger:
    def __init__(self):
        self._products: dict[str, Product] = {}
        self._touched: set[str] = set()

    def _load(self, product_id) -> Product | None:
        key = str(product_id)
        if key not in self._products:
            try:
                self._products[key] = current_domain.repository_for(Product).get(key)
            except ObjectNotFoundError:
                return None
        return self._products[key]

    def resolve(self, product_id, variant_id=None):
        """Return the orderable ``(product, variant)`` pair for a line.

        Raises ``ProductNotFound`` or ``VariantNotFound`` when either is
        missing or no longer active.
        """
        product = self._load(product_id)
        if product is None or not product.is_active:
            raise ProductNotFound(product_id)

        variant = None
        if variant_id:
            variant = product.find_variant(variant_id)
            if variant is None or not variant.is_active:
                raise VariantNotFound(product_id, variant_id)
        return product, variant

    def get_availability(self, product_id, variant_id=None) -> StockLevel:
        product, _ = self.resolve(product_id, variant_id)
        return StockLevel(
            quantity=product.available_quantity(variant_id),
            tracking_enabled=bool(product.track_quantity),
            allow_backorder=bool(product.allow_backorder),
        )

    def ensure_available(self, product_id, variant_id, amount: int) -> StockLevel:
        level = self.get_availability(product_id, variant_id)
        if not level.covers(amount):
            raise InsufficientStock(product_id, variant_id, amount, level.quantity)
        return level

    def decrement(self, product_id, variant_id, amount: int) -> bool:
        """Take stock for an order line; ``True`` when counters were touched."""
        product, _ = self.resolve(product_id, variant_id)
        reserved = product.decrement_stock(amount, variant_id)
        if reserved:
            self._touched.add(str(product_id))
        return reserved

    def restore(self, product_id, variant_id, amount: int) -> bool:
        """Give stock back; a product that no longer exists is skipped."""
        product = self._load(product_id)
        if product is None:
            logger.warning(
                "Stock restore skipped for missing product",
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=amount,
            )
            return False

        product.restore_stock(amount, variant_id)
        self._touched.add(str(product_id))
        return True

    def persist(self):
        repo = current_domain.repository_for(Product)
        for product_id in sorted(self._touched):
            repo.add(self._products[product_id])
        self._touched.clear()

"""Product aggregate: the ordering context's view of a vendor's catalogue item.

Only what order processing needs is held here: pricing, the snapshot data
copied onto order lines, and the stock counters kept for the product and
each of its variants.

Stock is only counted when ``track_quantity`` is set. Tracked counters never
drop below zero through ordering unless ``allow_backorder`` is also set.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String

from ordering.catalogue.events import ProductRegistered, ProductVariantAdded, StockDecremented, StockRestored
from ordering.domain import ordering
from ordering.exceptions import InsufficientStock, VariantNotFound


@ordering.entity(part_of="Product")
class ProductVariant:
    """A separately priced and stocked option of a product, e.g. ``Size: L``."""

    name = String(required=True, max_length=100)
    value = String(required=True, max_length=100)
    sku = String(max_length=50)
    price_adjustment = Float(default=0.0)
    stock_quantity = Integer(default=0)
    is_active = Boolean(default=True)

    @property
    def description(self):
        return f"{self.name}: {self.value}"


@ordering.aggregate
class Product:
    vendor_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    sku = String(max_length=50)
    price = Float(required=True, min_value=0.0)
    image_url = String(max_length=500)
    is_active = Boolean(default=True)
    track_quantity = Boolean(default=True)
    allow_backorder = Boolean(default=False)
    stock_quantity = Integer(default=0)
    variants = HasMany(ProductVariant)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def tracked_stock_cannot_go_negative_without_backorder(self):
        if not self.track_quantity or self.allow_backorder:
            return
        if (self.stock_quantity or 0) < 0:
            raise ValidationError({"stock_quantity": ["Stock cannot be negative"]})
        for variant in self.variants:
            if (variant.stock_quantity or 0) < 0:
                raise ValidationError({"variants": [f"Stock of variant {variant.id} cannot be negative"]})

    @classmethod
    def register(
        cls,
        vendor_id,
        name,
        price,
        sku=None,
        stock_quantity=0,
        track_quantity=True,
        allow_backorder=False,
        image_url=None,
    ):
        now = datetime.now(UTC)
        product = cls(
            vendor_id=vendor_id,
            name=name,
            sku=sku,
            price=price,
            stock_quantity=stock_quantity,
            track_quantity=track_quantity,
            allow_backorder=allow_backorder,
            image_url=image_url,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                vendor_id=str(vendor_id),
                name=name,
                sku=sku,
                price=price,
                track_quantity=track_quantity,
                stock_quantity=stock_quantity,
                registered_at=now,
            )
        )
        return product

    def add_variant(self, name, value, sku=None, price_adjustment=0.0, stock_quantity=0, is_active=True):
        variant = ProductVariant(
            name=name,
            value=value,
            sku=sku,
            price_adjustment=price_adjustment,
            stock_quantity=stock_quantity,
            is_active=is_active,
        )
        self.add_variants(variant)
        self.updated_at = datetime.now(UTC)

        self.raise_(
            ProductVariantAdded(
                product_id=str(self.id),
                variant_id=str(variant.id),
                name=name,
                value=value,
                price_adjustment=price_adjustment,
                stock_quantity=stock_quantity,
            )
        )
        return variant

    def find_variant(self, variant_id):
        return next((v for v in self.variants if str(v.id) == str(variant_id)), None)

    def _variant_or_raise(self, variant_id):
        if not variant_id:
            return None
        variant = self.find_variant(variant_id)
        if variant is None:
            raise VariantNotFound(self.id, variant_id)
        return variant

    def unit_price(self, variant=None) -> float:
        """Catalogue price plus the variant's adjustment."""
        adjustment = (variant.price_adjustment or 0.0) if variant else 0.0
        return (self.price or 0.0) + adjustment

    def available_quantity(self, variant_id=None) -> int:
        """The binding counter: the variant's when one is given, else the product's."""
        variant = self._variant_or_raise(variant_id)
        if variant is not None:
            return min(self.stock_quantity or 0, variant.stock_quantity or 0)
        return self.stock_quantity or 0

    def can_supply(self, quantity, variant_id=None) -> bool:
        if not self.track_quantity or self.allow_backorder:
            return True
        return self.available_quantity(variant_id) >= quantity

    def decrement_stock(self, quantity, variant_id=None) -> bool:
        """Take ``quantity`` units from the product and variant counters.

        Returns ``False`` without touching anything when stock is not tracked.
        """
        variant = self._variant_or_raise(variant_id)
        if not self.track_quantity:
            return False

        if not self.can_supply(quantity, variant_id):
            raise InsufficientStock(self.id, variant_id, quantity, self.available_quantity(variant_id))

        self.stock_quantity = (self.stock_quantity or 0) - quantity
        if variant is not None:
            variant.stock_quantity = (variant.stock_quantity or 0) - quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockDecremented(
                product_id=str(self.id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                product_stock=self.stock_quantity,
                variant_stock=variant.stock_quantity if variant is not None else None,
            )
        )
        return True

    def restore_stock(self, quantity, variant_id=None):
        """Give back units taken by ``decrement_stock``.

        A variant removed since the order was placed only restores the product counter.
        """
        variant = self.find_variant(variant_id) if variant_id else None

        self.stock_quantity = (self.stock_quantity or 0) + quantity
        if variant is not None:
            variant.stock_quantity = (variant.stock_quantity or 0) + quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockRestored(
                product_id=str(self.id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                product_stock=self.stock_quantity,
                variant_stock=variant.stock_quantity if variant is not None else None,
            )
        )

"""Domain events raised by the Product aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Product")
class ProductRegistered:
    """A vendor product became orderable in the marketplace."""

    __version__ = 1

    product_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    name = String(required=True)
    sku = String()
    price = Float(required=True)
    track_quantity = Boolean()
    stock_quantity = Integer()
    registered_at = DateTime(required=True)


@ordering.event(part_of="Product")
class ProductVariantAdded:
    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    name = String(required=True)
    value = String(required=True)
    price_adjustment = Float()
    stock_quantity = Integer()


@ordering.event(part_of="Product")
class StockDecremented:
    """Stock was taken for an order line."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    product_stock = Integer(required=True)
    variant_stock = Integer()


@ordering.event(part_of="Product")
class StockRestored:
    """Stock taken for an order line was given back."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    product_stock = Integer(required=True)
    variant_stock = Integer()

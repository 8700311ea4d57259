"""Product registration: commands and handler.

The marketplace catalogue is owned elsewhere; these commands let it (and the
test suite) make products and variants orderable in this context.
"""

from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.catalogue.product import Product
from ordering.domain import ordering


@ordering.command(part_of="Product")
class RegisterProduct:
    vendor_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    sku = String(max_length=50)
    stock_quantity = Integer(default=0)
    track_quantity = Boolean(default=True)
    allow_backorder = Boolean(default=False)
    image_url = String(max_length=500)


@ordering.command(part_of="Product")
class AddProductVariant:
    product_id = Identifier(required=True)
    name = String(required=True, max_length=100)
    value = String(required=True, max_length=100)
    sku = String(max_length=50)
    price_adjustment = Float(default=0.0)
    stock_quantity = Integer(default=0)


@ordering.command_handler(part_of=Product)
class ProductRegistrationHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        product = Product.register(
            vendor_id=command.vendor_id,
            name=command.name,
            price=command.price,
            sku=command.sku,
            stock_quantity=command.stock_quantity or 0,
            track_quantity=command.track_quantity,
            allow_backorder=command.allow_backorder,
            image_url=command.image_url,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    @handle(AddProductVariant)
    def add_variant(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        variant = product.add_variant(
            name=command.name,
            value=command.value,
            sku=command.sku,
            price_adjustment=command.price_adjustment or 0.0,
            stock_quantity=command.stock_quantity or 0,
        )
        repo.add(product)
        return str(variant.id)

import pytest
from protean.utils.globals import current_domain

from ordering.access import reset_policy, set_policy
from ordering.access.static_adapter import StaticAccessPolicy

ADMIN_ID = "admin-001"


@pytest.fixture(scope="session")
def _ordering_domain():
    """Initialize the ordering domain once per session."""
    from ordering.domain import ordering

    ordering.init()
    return ordering


@pytest.fixture(scope="session", autouse=True)
def setup_db(_ordering_domain):
    from ordering.utils.db import drop_db, setup_db

    setup_db(_ordering_domain)

    yield

    drop_db(_ordering_domain)


@pytest.fixture(autouse=True)
def run_around_tests(_ordering_domain):
    """Push domain context before each test, cleanup after."""
    ctx = _ordering_domain.domain_context()
    ctx.push()
    set_policy(StaticAccessPolicy(admin_ids=[ADMIN_ID]))

    yield

    reset_policy()
    for _, provider in current_domain.providers.items():
        provider._data_reset()

    current_domain.event_store.store._data_reset()
    ctx.pop()


@pytest.fixture()
def admin_id():
    return ADMIN_ID


@pytest.fixture()
def register_product():
    """Factory: register a product (and optional variants) and return its id."""
    from ordering.catalogue.registration import AddProductVariant, RegisterProduct

    def _register(vendor_id="vendor-001", name="Adire Scarf", price=40.0, stock=5, **options):
        variants = options.pop("variants", [])
        product_id = current_domain.process(
            RegisterProduct(vendor_id=vendor_id, name=name, price=price, stock_quantity=stock, **options),
            asynchronous=False,
        )
        variant_ids = [
            current_domain.process(AddProductVariant(product_id=product_id, **variant), asynchronous=False)
            for variant in variants
        ]
        return (product_id, variant_ids) if variants else product_id

    return _register


@pytest.fixture()
def workflow():
    from ordering.order.workflow import OrderWorkflowService

    return OrderWorkflowService()


@pytest.fixture()
def place_order(workflow):
    """Factory: place an order for ``(product_id, variant_id, quantity)`` lines."""

    def _place(customer_id="cust-001", lines=(), shipping_method="standard", **options):
        return workflow.create_order(
            customer_id=customer_id,
            items=list(lines),
            shipping_address=options.pop("shipping_address", "12 Balogun Street, Lagos"),
            shipping_method=shipping_method,
            **options,
        )

    return _place


@pytest.fixture()
def stock_of():
    """Current stock of a product, or of one of its variants."""
    from ordering.catalogue.product import Product

    def _stock(product_id, variant_id=None):
        product = current_domain.repository_for(Product).get(product_id)
        if variant_id:
            return product.find_variant(variant_id).stock_quantity
        return product.stock_quantity

    return _stock

"""Application tests for the stock ledger over persisted products."""

import pytest
from ordering.catalogue.product import Product
from ordering.exceptions import InsufficientStock, ProductNotFound, VariantNotFound
from ordering.stock.ledger import StockLedger
from protean import current_domain


class TestAvailability:
    def test_tracked_product(self, register_product):
        product_id = register_product(stock=7)

        level = StockLedger().get_availability(product_id)

        assert level.quantity == 7
        assert level.tracking_enabled is True
        assert level.allow_backorder is False
        assert level.covers(7)
        assert not level.covers(8)

    def test_variant_availability(self, register_product):
        product_id, (variant_id,) = register_product(
            stock=7, variants=[{"name": "Size", "value": "L", "stock_quantity": 2}]
        )

        assert StockLedger().get_availability(product_id, variant_id).quantity == 2

    def test_untracked_product_always_covers(self, register_product):
        product_id = register_product(stock=0, track_quantity=False)
        assert StockLedger().get_availability(product_id).covers(1000)

    def test_unknown_product(self):
        with pytest.raises(ProductNotFound):
            StockLedger().get_availability("missing")

    def test_inactive_variant(self, register_product):
        product_id, (variant_id,) = register_product(variants=[{"name": "Size", "value": "S"}])
        repo = current_domain.repository_for(Product)
        product = repo.get(product_id)
        product.find_variant(variant_id).is_active = False
        repo.add(product)

        with pytest.raises(VariantNotFound):
            StockLedger().get_availability(product_id, variant_id)


class TestMutations:
    def test_decrements_are_cumulative_within_a_ledger(self, register_product, stock_of):
        product_id = register_product(stock=5)
        ledger = StockLedger()

        ledger.decrement(product_id, None, 3)
        with pytest.raises(InsufficientStock):
            ledger.decrement(product_id, None, 3)

        assert stock_of(product_id) == 5

    def test_persist_writes_decrements(self, register_product, stock_of):
        product_id = register_product(stock=5)
        ledger = StockLedger()

        assert ledger.decrement(product_id, None, 2) is True
        ledger.persist()

        assert stock_of(product_id) == 3

    def test_restore_of_missing_product_is_skipped(self):
        ledger = StockLedger()

        assert ledger.restore("gone-product", None, 2) is False
        ledger.persist()

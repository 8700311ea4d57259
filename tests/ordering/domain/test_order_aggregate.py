"""Tests for placing an order and the Order aggregate's invariants."""

import json

import pytest
from ordering.order.events import OrderPlaced
from ordering.order.order import Order, OrderItem, OrderStatus, OrderTracking
from ordering.pricing.calculator import PricingCalculator
from protean.exceptions import ValidationError


def _lines():
    return [
        {
            "product_id": "prod-001",
            "vendor_id": "vendor-001",
            "quantity": 2,
            "unit_price": 40.0,
            "total_price": 80.0,
            "product_name": "Adire Scarf",
            "product_sku": "ADR-001",
            "stock_reserved": True,
        },
        {
            "product_id": "prod-002",
            "variant_id": "var-002",
            "vendor_id": "vendor-002",
            "quantity": 1,
            "unit_price": 15.5,
            "total_price": 15.5,
            "product_name": "Shea Butter",
            "variant_description": "Size: 250ml",
            "stock_reserved": False,
        },
    ]


def _place_order(**overrides):
    lines = overrides.pop("lines", _lines())
    charges = PricingCalculator().calculate([(line["unit_price"], line["quantity"]) for line in lines])
    defaults = {
        "order_number": "ORD-20260309-0001",
        "customer_id": "cust-001",
        "lines": lines,
        "charges": charges,
        "shipping_address": "12 Balogun Street, Lagos",
    }
    defaults.update(overrides)
    return Order.place(**defaults)


class TestPlaceOrder:
    def test_order_starts_pending(self):
        order = _place_order()
        assert order.status == OrderStatus.PENDING.value
        assert order.created_at is not None

    def test_order_carries_item_snapshots(self):
        order = _place_order()

        assert len(order.items) == 2
        scarf = next(item for item in order.items if item.product_id == "prod-001")
        assert scarf.product_name == "Adire Scarf"
        assert scarf.vendor_id == "vendor-001"
        assert scarf.stock_reserved is True

    def test_charges_are_recorded(self):
        order = _place_order()

        assert order.subtotal == 95.5
        # 3 units -> 1.5 kg -> 5 + 1.5
        assert order.shipping_cost == 6.5
        assert order.tax_amount == 9.55
        assert order.total_amount == 111.55

    def test_billing_address_defaults_to_shipping_address(self):
        order = _place_order()
        assert order.billing_address == order.shipping_address

    def test_initial_tracking_entry(self):
        order = _place_order()

        assert len(order.tracking_entries) == 1
        entry = order.history[0]
        assert entry.status == OrderStatus.PENDING.value
        assert entry.note == "Order created"
        assert entry.actor_id == "cust-001"
        assert entry.sequence == 1

    def test_order_placed_event(self):
        order = _place_order()

        event = order._events[0]
        assert isinstance(event, OrderPlaced)
        assert event.order_number == "ORD-20260309-0001"
        assert event.item_count == 3
        assert json.loads(event.vendor_ids) == ["vendor-001", "vendor-002"]


class TestOrderQueries:
    def test_vendor_ids(self):
        assert _place_order().vendor_ids == {"vendor-001", "vendor-002"}

    def test_item_count_per_vendor(self):
        order = _place_order()
        assert order.item_count() == 3
        assert order.item_count("vendor-001") == 2

    def test_visibility(self):
        order = _place_order()
        assert order.is_visible_to("cust-001")
        assert order.is_visible_to("vendor-002")
        assert not order.is_visible_to("stranger")

    def test_only_reserved_items_are_restocked(self):
        restock = _place_order().items_to_restock()
        assert [item.product_id for item in restock] == ["prod-001"]


class TestInvariants:
    def test_total_must_match_charges(self):
        with pytest.raises(ValidationError) as exc:
            Order(
                order_number="ORD-20260309-0002",
                customer_id="cust-001",
                shipping_address="Somewhere",
                subtotal=10.0,
                shipping_cost=5.0,
                tax_amount=1.0,
                total_amount=99.0,
            )
        assert "total_amount" in exc.value.messages

    def test_subtotal_must_match_items(self):
        with pytest.raises(ValidationError) as exc:
            Order(
                order_number="ORD-20260309-0003",
                customer_id="cust-001",
                shipping_address="Somewhere",
                subtotal=50.0,
                total_amount=50.0,
                items=[
                    OrderItem(
                        product_id="prod-001",
                        vendor_id="vendor-001",
                        quantity=1,
                        unit_price=10.0,
                        total_price=10.0,
                        product_name="Thing",
                    )
                ],
            )
        assert "subtotal" in exc.value.messages

    def test_latest_tracking_entry_must_match_status(self):
        with pytest.raises(ValidationError) as exc:
            Order(
                order_number="ORD-20260309-0004",
                customer_id="cust-001",
                shipping_address="Somewhere",
                status=OrderStatus.SHIPPED.value,
                tracking_entries=[
                    OrderTracking(status=OrderStatus.PENDING.value, recorded_at=_place_order().created_at, sequence=1)
                ],
            )
        assert "tracking_entries" in exc.value.messages

    def test_item_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            OrderItem(
                product_id="prod-001",
                vendor_id="vendor-001",
                quantity=0,
                unit_price=10.0,
                total_price=0.0,
                product_name="Thing",
            )

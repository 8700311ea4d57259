"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from ordering.order.order import OrderStatus
from pytest_bdd import given, parsers, then


@pytest.fixture()
def catalogue():
    """Product ids registered by Given steps, keyed by product name."""
    return {}


@pytest.fixture()
def outcome():
    """Container for the order or error produced by a When step."""
    return {"order": None, "exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('vendor "{vendor_id}" sells "{name}" at {price:f} with {stock:d} in stock'))
def _(catalogue, register_product, vendor_id, name, price, stock):
    catalogue[name] = register_product(vendor_id=vendor_id, name=name, price=price, stock=stock)


@given(parsers.cfparse('customer "{customer_id}" has ordered {quantity:d} of "{name}"'))
def _(catalogue, outcome, place_order, customer_id, quantity, name):
    outcome["order"] = place_order(customer_id=customer_id, lines=[(catalogue[name], None, quantity)])


@given(parsers.cfparse('the order has been delivered by "{vendor_id}"'))
def _(outcome, workflow, vendor_id):
    for status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
        outcome["order"] = workflow.update_order_status(outcome["order"].id, status.value, actor_id=vendor_id)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order is "{status}"'))
def _(outcome, workflow, status):
    order = workflow.get_order(outcome["order"].id)
    assert order.status == status


@then(parsers.cfparse('"{name}" has {stock:d} in stock'))
def _(catalogue, stock_of, name, stock):
    assert stock_of(catalogue[name]) == stock

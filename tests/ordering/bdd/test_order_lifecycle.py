"""BDD tests for the order lifecycle."""

from ordering.exceptions import InsufficientStock, OrderNotCancellable
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/order_lifecycle.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('customer "{customer_id}" orders {quantity:d} of "{name}" by "{method}" shipping'))
def _(catalogue, outcome, place_order, customer_id, quantity, name, method):
    outcome["order"] = place_order(
        customer_id=customer_id, lines=[(catalogue[name], None, quantity)], shipping_method=method
    )


@when(parsers.cfparse('customer "{customer_id}" tries to order {quantity:d} of "{name}"'))
def _(catalogue, outcome, place_order, customer_id, quantity, name):
    try:
        outcome["order"] = place_order(customer_id=customer_id, lines=[(catalogue[name], None, quantity)])
    except InsufficientStock as exc:
        outcome["exc"] = exc


@when(parsers.cfparse('vendor "{vendor_id}" moves the order to "{status}"'))
def _(outcome, workflow, vendor_id, status):
    outcome["order"] = workflow.update_order_status(outcome["order"].id, status, actor_id=vendor_id)


@when(parsers.cfparse('customer "{customer_id}" cancels the order because "{reason}"'))
def _(outcome, workflow, customer_id, reason):
    assert workflow.cancel_order(outcome["order"].id, reason, actor_id=customer_id) is True


@when(parsers.cfparse('customer "{customer_id}" tries to cancel the order'))
def _(outcome, workflow, customer_id):
    try:
        workflow.cancel_order(outcome["order"].id, "Too late", actor_id=customer_id)
    except OrderNotCancellable as exc:
        outcome["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the order total is {total:f}"))
def _(outcome, total):
    assert outcome["order"].total_amount == total


@then("the order is rejected for insufficient stock")
def _(outcome):
    assert outcome["order"] is None
    assert isinstance(outcome["exc"], InsufficientStock)
    assert outcome["exc"].requested == 6
    assert outcome["exc"].available == 5


@then(parsers.cfparse('the order history reads "{statuses}"'))
def _(outcome, workflow, statuses):
    history = workflow.get_order_tracking(outcome["order"].id)
    assert [entry.status for entry in history] == [status.strip() for status in statuses.split(",")]


@then("the cancellation is refused")
def _(outcome):
    assert isinstance(outcome["exc"], OrderNotCancellable)

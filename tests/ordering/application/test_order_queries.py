"""Application tests for order lookup, search, listings and statistics."""

from datetime import UTC, datetime, timedelta

import pytest
from ordering.order.order import Order
from ordering.order.queries import OrderSearchCriteria
from protean import current_domain
from protean.exceptions import ValidationError


@pytest.fixture()
def order_book(register_product, place_order, workflow):
    """Three orders across two customers and two vendors.

    - first:  cust-001, vendor-001 x2            -> total 94.00, Processing
    - second: cust-002, vendor-002 x1            -> total 16.50, Pending
    - third:  cust-001, vendor-001 x1 + vendor-002 x1 -> total 61.00, Cancelled
    """
    scarf = register_product(vendor_id="vendor-001", name="Adire Scarf", price=40.0, stock=10)
    soap = register_product(vendor_id="vendor-002", name="Black Soap", price=10.0, stock=10)

    first = place_order(customer_id="cust-001", lines=[(scarf, None, 2)])
    second = place_order(customer_id="cust-002", lines=[(soap, None, 1)])
    third = place_order(customer_id="cust-001", lines=[(scarf, None, 1), (soap, None, 1)])

    workflow.update_order_status(first.id, "Processing", actor_id="vendor-001")
    workflow.cancel_order(third.id, "Ordered twice", actor_id="cust-001")

    return {"first": first, "second": second, "third": third}


def _numbers(page):
    return [summary.order_number for summary in page.orders]


class TestGetOrder:
    def test_get_without_requester(self, order_book, workflow):
        order = workflow.get_order(order_book["first"].id)
        assert order.order_number == order_book["first"].order_number

    def test_unknown_order_is_none(self, workflow):
        assert workflow.get_order("no-such-order") is None

    @pytest.mark.parametrize("requester", ["cust-001", "vendor-001", "admin-001"])
    def test_visible_to_customer_vendor_and_admin(self, order_book, workflow, requester):
        assert workflow.get_order(order_book["first"].id, requesting_user_id=requester) is not None

    @pytest.mark.parametrize("requester", ["cust-002", "vendor-002"])
    def test_hidden_from_everyone_else(self, order_book, workflow, requester):
        assert workflow.get_order(order_book["first"].id, requesting_user_id=requester) is None


class TestSearchOrders:
    def test_default_sort_is_newest_first(self, order_book, workflow):
        page = workflow.search_orders(OrderSearchCriteria(), is_admin=True)

        expected = [order_book[key].order_number for key in ("third", "second", "first")]
        assert _numbers(page) == expected
        assert page.total_count == 3

    def test_filter_by_status(self, order_book, workflow):
        page = workflow.search_orders(OrderSearchCriteria(status="Cancelled"), is_admin=True)
        assert _numbers(page) == [order_book["third"].order_number]

    def test_filter_by_customer(self, order_book, workflow):
        page = workflow.search_orders(OrderSearchCriteria(customer_id="cust-002"), is_admin=True)
        assert _numbers(page) == [order_book["second"].order_number]

    def test_filter_by_vendor(self, order_book, workflow):
        page = workflow.search_orders(OrderSearchCriteria(vendor_id="vendor-002"), is_admin=True)
        assert set(_numbers(page)) == {order_book["second"].order_number, order_book["third"].order_number}

    def test_filter_by_order_number_fragment(self, order_book, workflow):
        fragment = order_book["second"].order_number[-5:]
        page = workflow.search_orders(OrderSearchCriteria(order_number=fragment), is_admin=True)
        assert _numbers(page) == [order_book["second"].order_number]

    def test_filter_by_amount_range(self, order_book, workflow):
        page = workflow.search_orders(OrderSearchCriteria(min_amount=80.0, max_amount=100.0), is_admin=True)
        assert _numbers(page) == [order_book["first"].order_number]

    def test_filter_by_date_range(self, order_book, workflow):
        now = datetime.now(UTC)

        recent = workflow.search_orders(OrderSearchCriteria(from_date=now - timedelta(hours=1)), is_admin=True)
        future = workflow.search_orders(OrderSearchCriteria(from_date=now + timedelta(days=1)), is_admin=True)

        assert recent.total_count == 3
        assert future.total_count == 0

    def test_sort_by_total_ascending(self, order_book, workflow):
        page = workflow.search_orders(
            OrderSearchCriteria(sort_by="totalamount", sort_direction="asc"), is_admin=True
        )
        totals = [summary.total_amount for summary in page.orders]
        assert totals == sorted(totals)

    def test_sort_by_status_follows_lifecycle(self, order_book, workflow):
        page = workflow.search_orders(OrderSearchCriteria(sort_by="status", sort_direction="asc"), is_admin=True)
        assert [summary.status for summary in page.orders] == ["Pending", "Processing", "Cancelled"]

    def test_pagination(self, order_book, workflow):
        first_page = workflow.search_orders(OrderSearchCriteria(page_number=1, page_size=2), is_admin=True)
        second_page = workflow.search_orders(OrderSearchCriteria(page_number=2, page_size=2), is_admin=True)

        assert len(first_page.orders) == 2
        assert len(second_page.orders) == 1
        assert first_page.total_pages == 2
        assert not set(_numbers(first_page)) & set(_numbers(second_page))

    def test_non_admin_sees_only_their_orders(self, order_book, workflow):
        page = workflow.search_orders(OrderSearchCriteria(), requesting_user_id="cust-002")
        assert _numbers(page) == [order_book["second"].order_number]

    def test_vendor_sees_orders_with_their_items(self, order_book, workflow):
        page = workflow.search_orders(OrderSearchCriteria(), requesting_user_id="vendor-001")
        assert set(_numbers(page)) == {order_book["first"].order_number, order_book["third"].order_number}

    def test_admin_identified_by_policy(self, order_book, workflow, admin_id):
        page = workflow.search_orders(OrderSearchCriteria(), requesting_user_id=admin_id)
        assert page.total_count == 3

    @pytest.mark.parametrize(
        "criteria",
        [{"page_number": 0}, {"page_size": 0}, {"page_size": 101}, {"status": "Lost"}, {"sort_direction": "up"}],
    )
    def test_invalid_criteria(self, criteria):
        with pytest.raises(ValidationError):
            OrderSearchCriteria(**criteria)


class TestListings:
    def test_customer_orders_newest_first(self, order_book, workflow):
        summaries = workflow.list_customer_orders("cust-001")
        assert [summary.order_number for summary in summaries] == [
            order_book["third"].order_number,
            order_book["first"].order_number,
        ]

    def test_vendor_orders_count_only_vendor_units(self, order_book, workflow):
        summaries = {summary.order_number: summary for summary in workflow.list_vendor_orders("vendor-002")}

        assert summaries[order_book["third"].order_number].item_count == 1
        assert summaries[order_book["second"].order_number].item_count == 1
        assert order_book["first"].order_number not in summaries


class TestOrderStats:
    def test_counts_and_revenue(self, order_book, workflow):
        stats = workflow.get_order_stats()

        first, second, third = (order_book[key].total_amount for key in ("first", "second", "third"))
        assert stats.total_orders == 3
        assert stats.status_counts == {"Processing": 1, "Pending": 1, "Cancelled": 1}
        assert stats.total_revenue == round(first + second, 2)
        assert stats.average_order_value == round((first + second + third) / 3, 2)

    def test_daily_breakdown(self, order_book, workflow):
        stats = workflow.get_order_stats()

        assert len(stats.daily_stats) == 1
        today = stats.daily_stats[0]
        assert today.day == datetime.now(UTC).date()
        assert today.order_count == 3
        assert today.revenue == stats.total_revenue

    def test_vendor_scope(self, order_book, workflow):
        stats = workflow.get_order_stats(vendor_id="vendor-001")

        assert stats.total_orders == 2
        assert stats.total_revenue == order_book["first"].total_amount

    def test_date_scope(self, order_book, workflow):
        stats = workflow.get_order_stats(to_date=datetime.now(UTC) - timedelta(days=2))
        assert stats.total_orders == 0
        assert stats.average_order_value == 0.0

    def test_empty_order_book(self, workflow):
        stats = workflow.get_order_stats()
        assert stats.total_orders == 0
        assert stats.daily_stats == []

    def test_stats_ignore_orders_outside_trailing_window(self, order_book, workflow):
        repo = current_domain.repository_for(Order)
        old = repo.get(order_book["second"].id)
        old.created_at = datetime.now(UTC) - timedelta(days=45)
        repo.add(old)

        stats = workflow.get_order_stats()

        assert stats.total_orders == 3
        assert sum(day.order_count for day in stats.daily_stats) == 2

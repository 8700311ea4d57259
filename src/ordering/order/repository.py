"""Repository for the Order aggregate."""

from collections.abc import Iterator

from ordering.domain import ordering
from ordering.order.order import Order

_BATCH_SIZE = 200


@ordering.repository(part_of=Order)
class OrderRepository:
    """Order lookups beyond get-by-id.

    Scalar filters are pushed down to the provider; results are read in
    batches so large order books never hit the provider's default limit.
    """

    def find_by_number(self, order_number: str) -> Order | None:
        return self._dao.query.filter(order_number=order_number).all().first

    def each(self, **filters) -> Iterator[Order]:
        """Yield every order matching ``filters``, oldest first."""
        offset = 0
        while True:
            query = self._dao.query
            if filters:
                query = query.filter(**filters)
            batch = query.order_by("created_at").offset(offset).limit(_BATCH_SIZE).all()
            yield from batch.items
            if len(batch.items) < _BATCH_SIZE:
                return
            offset += _BATCH_SIZE

    def for_customer(self, customer_id) -> list[Order]:
        return list(self.each(customer_id=str(customer_id)))

    def for_vendor(self, vendor_id) -> list[Order]:
        return [order for order in self.each() if order.is_fulfilled_by(vendor_id)]

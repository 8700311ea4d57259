"""Human-readable order numbers: ``ORD-{YYYYMMDD}-{NNNN}``.

Each UTC day has its own ``DailyOrderSequence`` row holding the last issued
value. Advancing it happens inside the order-creation unit of work and is
flushed straight away, so creators of the same day serialise on that row.
A creator that read a stale value ends up with a number that is already
taken, or loses the insert of the day's first row, and is retried.
"""

from datetime import UTC, date, datetime

from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Integer, String
from protean.utils.globals import current_domain, current_uow
from sqlalchemy.exc import IntegrityError

from ordering.domain import ordering
from ordering.exceptions import OrderNumberCollision, OrderNumberGenerationFailed

ORDER_NUMBER_PREFIX = "ORD"
MAX_DAILY_SEQUENCE = 9999


def sequence_key(day: date | datetime) -> str:
    return day.strftime("%Y%m%d")


def format_order_number(day: date | datetime, sequence: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{sequence_key(day)}-{sequence:04d}"


@ordering.aggregate
class DailyOrderSequence:
    sequence_date = String(identifier=True, max_length=8)
    last_value = Integer(default=0, min_value=0)
    updated_at = DateTime()

    def advance(self, limit=MAX_DAILY_SEQUENCE) -> int:
        """Claim the next value of the day; never wraps past ``limit``."""
        if (self.last_value or 0) >= limit:
            raise OrderNumberGenerationFailed(self.sequence_date, limit)
        self.last_value = (self.last_value or 0) + 1
        self.updated_at = datetime.now(UTC)
        return self.last_value


class OrderNumberGenerator:
    def __init__(self, limit=MAX_DAILY_SEQUENCE):
        self.limit = limit

    def next_number(self, created_at: datetime | None = None) -> str:
        created_at = created_at or datetime.now(UTC)
        key = sequence_key(created_at)

        repo = current_domain.repository_for(DailyOrderSequence)
        try:
            sequence = repo.get(key)
        except ObjectNotFoundError:
            sequence = DailyOrderSequence(sequence_date=key)

        value = sequence.advance(self.limit)
        order_number = format_order_number(created_at, value)

        try:
            repo.add(sequence)
            _flush_claim(repo)
        except IntegrityError as exc:
            # Another creator inserted the day's first row before us
            raise OrderNumberCollision(order_number) from exc
        return order_number


def _flush_claim(repo) -> None:
    """Write the advanced sequence row now, inside the open unit of work.

    SQL providers hold the row's write lock from here until commit, so
    creators of the same day queue behind each other before they read stock.
    The memory provider has nothing to flush.
    """
    if not current_uow:
        return
    session = current_uow.get_session(repo._dao.provider.name)
    if hasattr(session, "flush"):
        session.flush()

"""Ordering bounded context: marketplace order processing.

Turns a customer's selection of catalogue items into a durable order while
reserving vendor stock, computing charges and tracking the order's status
for customers, vendors and administrators.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)

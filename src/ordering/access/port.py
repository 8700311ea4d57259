"""Access policy port (abstract interface).

Identity and roles belong to the authentication layer. Ordering only asks
these questions, so role storage can change without touching the workflow.
"""

from abc import ABC, abstractmethod


class AccessPolicy(ABC):
    """Decides what an actor may see or do with an order."""

    @abstractmethod
    def is_admin(self, actor_id: str | None) -> bool:
        """Whether the actor holds marketplace-wide administrative rights."""
        ...

    def can_view(self, actor_id: str | None, order) -> bool:
        if actor_id is None:
            return False
        return order.is_visible_to(actor_id) or self.is_admin(actor_id)

    def can_update_status(self, actor_id: str | None, order) -> bool:
        if actor_id is None:
            return False
        return order.is_fulfilled_by(actor_id) or self.is_admin(actor_id)

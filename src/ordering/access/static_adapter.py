"""Access policy backed by a fixed set of administrator ids."""

import os

from ordering.access.port import AccessPolicy

ADMIN_IDS_ENV = "KASUWA_ADMIN_IDS"


class StaticAccessPolicy(AccessPolicy):
    def __init__(self, admin_ids=()):
        self.admin_ids = frozenset(str(admin_id) for admin_id in admin_ids)

    @classmethod
    def from_env(cls) -> "StaticAccessPolicy":
        """Read a comma separated list of administrator ids from the environment."""
        raw = os.getenv(ADMIN_IDS_ENV, "")
        return cls(admin_id.strip() for admin_id in raw.split(",") if admin_id.strip())

    def is_admin(self, actor_id: str | None) -> bool:
        return actor_id is not None and str(actor_id) in self.admin_ids

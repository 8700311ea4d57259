"""Access policy factory.

Provides get_policy() / set_policy() to swap implementations; the default
reads administrator ids from the environment.
"""

from ordering.access.port import AccessPolicy
from ordering.access.static_adapter import StaticAccessPolicy

_current_policy: AccessPolicy | None = None


def get_policy() -> AccessPolicy:
    """Return the active access policy. Defaults to StaticAccessPolicy.from_env()."""
    global _current_policy
    if _current_policy is None:
        _current_policy = StaticAccessPolicy.from_env()
    return _current_policy


def set_policy(policy: AccessPolicy) -> None:
    """Override the active access policy (useful for tests)."""
    global _current_policy
    _current_policy = policy


def reset_policy() -> None:
    global _current_policy
    _current_policy = None

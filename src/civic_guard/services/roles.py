"""Identity and role lookups used by authority and voting checks."""

from __future__ import annotations

from typing import Protocol

from sqlalchemy.orm import Session

from civic_guard.models import Account
from civic_guard.models.account import PRIVILEGED_ROLES
from civic_guard.services.errors import PermissionDenied


class RoleProvider(Protocol):
    """Anything able to answer which role an actor holds."""

    def role_of(self, actor_ref: str) -> str | None:
        """Return the actor's role, or None for unknown actors."""


class AccountRoleProvider:
    """Role provider backed by the local ``account`` table."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def role_of(self, actor_ref: str) -> str | None:
        account = self.db.get(Account, actor_ref)
        return account.role if account is not None else None


def require_role(
    provider: RoleProvider,
    actor_ref: str,
    allowed: frozenset[str] = PRIVILEGED_ROLES,
    action: str = "perform this action",
) -> str:
    """Return the actor's role, raising PermissionDenied unless it is allowed."""
    role = provider.role_of(actor_ref)
    if role not in allowed:
        raise PermissionDenied(f"Only {', '.join(sorted(allowed))} may {action}")
    return role

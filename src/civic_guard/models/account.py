# src/civic_guard/models/account.py
"""SQLAlchemy model for actor accounts and their roles."""

from __future__ import annotations

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from civic_guard.db.session import Base

ROLE_CITIZEN = "citizen"
ROLE_VOLUNTEER = "volunteer"
ROLE_NGO = "ngo"
ROLE_CIVIL_DEFENSE = "civil_defense"
ROLE_ADMIN = "admin"
# Service identity used by the scoring trigger.
ROLE_SYSTEM = "system"

ROLES = (ROLE_CITIZEN, ROLE_VOLUNTEER, ROLE_NGO, ROLE_CIVIL_DEFENSE, ROLE_ADMIN, ROLE_SYSTEM)
PRIVILEGED_ROLES = frozenset({ROLE_CIVIL_DEFENSE, ROLE_ADMIN})


class Account(Base):
    """Identity known to the service, keyed by an opaque actor reference."""

    __tablename__ = "account"

    actor_ref: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=ROLE_CITIZEN)

    # Chat infractions counted from automated hide/block decisions.
    warning_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_suspended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def is_privileged(self) -> bool:
        """Return True for civil defense and admin accounts."""
        return self.role in PRIVILEGED_ROLES

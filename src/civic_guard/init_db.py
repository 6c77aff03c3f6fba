# src/civic_guard/init_db.py
"""Create the schema and seed service accounts.

Usage: ``python -m civic_guard.init_db [actor_ref:role ...]``
"""

from __future__ import annotations

import logging
import sys

from civic_guard.db.session import SessionLocal, create_tables
from civic_guard.models import Account
from civic_guard.models.account import ROLE_SYSTEM, ROLES

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "scoring-trigger"


def parse_account_spec(spec: str) -> tuple[str, str]:
    """Split ``actor_ref:role`` and validate the role."""
    actor_ref, _, role = spec.partition(":")
    if not actor_ref or role not in ROLES:
        raise ValueError(f"Expected actor_ref:role with role in {', '.join(ROLES)}, got {spec!r}")
    return actor_ref, role


def init_db(accounts: list[tuple[str, str]] | None = None) -> None:
    """Create all tables and make sure the given accounts exist."""
    create_tables()
    wanted = [(SYSTEM_ACTOR, ROLE_SYSTEM), *(accounts or [])]
    with SessionLocal() as db:
        for actor_ref, role in wanted:
            account = db.get(Account, actor_ref)
            if account is None:
                db.add(Account(actor_ref=actor_ref, role=role))
                logger.info("Created account %s (%s)", actor_ref, role)
            elif account.role != role:
                account.role = role
                logger.info("Updated account %s to role %s", actor_ref, role)
        db.commit()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db([parse_account_spec(arg) for arg in sys.argv[1:]])
    print("Database initialized.")

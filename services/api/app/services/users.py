from __future__ import annotations

import logging

from services.api.app.services.ledger_base import LedgerStore, UsernameTakenError, UserRecord

logger = logging.getLogger(__name__)


def normalize_role(role: str) -> str:
    role = role.strip().upper()
    if not role.startswith("ROLE_"):
        role = f"ROLE_{role}"
    return role


def register_user(store: LedgerStore, username: str, role: str) -> UserRecord:
    with store.transaction(write=True) as tx:
        if tx.get_user_by_username(username) is not None:
            raise UsernameTakenError(username)
        user = tx.add_user(username, normalize_role(role))

    logger.info("Registered user %s (%s) as %s", user.id, user.username, user.role)
    return user


def get_user(store: LedgerStore, user_id: int) -> UserRecord | None:
    with store.transaction() as tx:
        return tx.get_user(user_id)

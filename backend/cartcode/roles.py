# Overview: Role hierarchy for store staff and owners.

from __future__ import annotations

from typing import Iterable

ROLE_ORGANIZER = "organizer"
ROLE_ADMIN = "admin"
ROLE_STAFF = "staff"

ROLE_PRIORITY = {
    ROLE_ORGANIZER: 3,
    ROLE_ADMIN: 2,
    ROLE_STAFF: 1,
}

ALL_ROLES = tuple(ROLE_PRIORITY)


def _meets(required: str, actual: str) -> bool:
    return ROLE_PRIORITY.get(actual, 0) >= ROLE_PRIORITY.get(required, 0)


def role_satisfies(required: str | Iterable[str], actual: str | None) -> bool:
    """
    True when actual ranks at or above required (or any of several required roles).

    role_satisfies("admin", "organizer") -> True
    role_satisfies(["admin", "organizer"], "staff") -> False
    """
    if not actual or actual not in ROLE_PRIORITY:
        return False
    if isinstance(required, str):
        return _meets(required, actual)
    return any(_meets(role, actual) for role in required)

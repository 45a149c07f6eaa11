"""
Stored join codes: random 6-digit, single-use onboarding codes scoped to
(store, role).

LIFECYCLE:
active -> used     (consume, conditional update)
active -> expired  (superseded by a newer code, or lazily once expires_at passes)

INVARIANTS:
- at most one active row per (store_id, role): issuance expires every active
  row for the pair before inserting, and a partial unique index backs it up
- consume is a single conditional UPDATE; the row-level atomicity of that
  statement is what prevents double use, not application logic
"""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import JoinCode, Store
from ..models.codes import JOIN_CODE_STATUS_ACTIVE, JOIN_CODE_STATUS_EXPIRED, JOIN_CODE_STATUS_USED
from ..time_utils import utcnow
from ..validation import ValidationError, NotFoundError
from .concurrency import run_with_retry, insert_with_conflict_retry


JOIN_ROLES = ("admin", "staff")
CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 5


def _ttl() -> timedelta:
    return timedelta(minutes=current_app.config.get("JOIN_CODE_TTL_MINUTES", 10))


def _generate_code() -> str:
    return f"{secrets.randbelow(10 ** CODE_LENGTH):0{CODE_LENGTH}d}"


def validate_role(role: str | None) -> str:
    if role not in JOIN_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(JOIN_ROLES)}")
    return role


def expire_stale(store_id: int, role: str, now: datetime | None = None) -> int:
    """
    Flip active rows whose expires_at has passed to expired. Does not commit.

    Idempotent: running it twice only rewrites rows that are still active.
    """
    now = now or utcnow()
    return db.session.query(JoinCode).filter(
        JoinCode.store_id == store_id,
        JoinCode.role == role,
        JoinCode.status == JOIN_CODE_STATUS_ACTIVE,
        JoinCode.expires_at <= now,
    ).update({"status": JOIN_CODE_STATUS_EXPIRED}, synchronize_session=False)


def _pick_unused_code() -> str:
    code = _generate_code()
    for _ in range(MAX_CODE_ATTEMPTS):
        collision = db.session.query(JoinCode.id).filter_by(code=code).first()
        if not collision:
            return code
        code = _generate_code()
    # Verification is scoped by (store, role), so a historic duplicate is harmless.
    current_app.logger.warning("Join code collision retries exhausted; issuing last candidate")
    return code


def get_active_code(store_id: int, role: str, now: datetime | None = None) -> JoinCode | None:
    """Newest unexpired active code for (store, role), after the lazy expiry sweep."""
    role = validate_role(role)
    now = now or utcnow()

    def _op():
        expire_stale(store_id, role, now)
        db.session.commit()
        return db.session.query(JoinCode).filter(
            JoinCode.store_id == store_id,
            JoinCode.role == role,
            JoinCode.status == JOIN_CODE_STATUS_ACTIVE,
            JoinCode.expires_at > now,
        ).order_by(JoinCode.created_at.desc(), JoinCode.id.desc()).first()

    return run_with_retry(_op)


def issue_join_code(
    store_id: int,
    role: str,
    created_by: int | None = None,
    now: datetime | None = None,
) -> JoinCode:
    """
    Issue a fresh join code for (store, role), expiring any prior active one.

    The superseded code stops verifying immediately.
    """
    role = validate_role(role)
    now = now or utcnow()

    def _op():
        if not db.session.get(Store, store_id):
            raise NotFoundError("Store not found")

        superseded = db.session.query(JoinCode).filter_by(
            store_id=store_id,
            role=role,
            status=JOIN_CODE_STATUS_ACTIVE,
        ).update({"status": JOIN_CODE_STATUS_EXPIRED}, synchronize_session=False)

        join_code = JoinCode(
            store_id=store_id,
            role=role,
            code=_pick_unused_code(),
            status=JOIN_CODE_STATUS_ACTIVE,
            expires_at=now + _ttl(),
            created_by=created_by,
        )
        db.session.add(join_code)
        db.session.flush()
        db.session.commit()

        current_app.logger.info(
            "Issued %s join code %s for store %s (superseded %s)", role, join_code.id, store_id, superseded
        )
        return join_code

    return insert_with_conflict_retry(lambda: run_with_retry(_op))


def verify_join_code(store_id: int, role: str, code: str, now: datetime | None = None) -> JoinCode | None:
    """Matching active, unexpired code for (store, role), or None."""
    role = validate_role(role)
    code = (code or "").strip()
    if not code:
        return None
    now = now or utcnow()

    def _op():
        expire_stale(store_id, role, now)
        db.session.commit()
        return db.session.query(JoinCode).filter(
            JoinCode.store_id == store_id,
            JoinCode.role == role,
            JoinCode.code == code,
            JoinCode.status == JOIN_CODE_STATUS_ACTIVE,
            JoinCode.expires_at > now,
        ).first()

    return run_with_retry(_op)


def consume_join_code(
    join_code_id: int,
    user_id: int | None = None,
    now: datetime | None = None,
    commit: bool = True,
) -> JoinCode | None:
    """
    Mark a code used by user_id.

    Single conditional UPDATE: returns None when the row is no longer active
    or has expired, which is how a concurrent second consumer loses.
    Pass commit=False to fold the consumption into a larger transaction.
    """
    now = now or utcnow()

    claimed = db.session.query(JoinCode).filter(
        JoinCode.id == join_code_id,
        JoinCode.status == JOIN_CODE_STATUS_ACTIVE,
        JoinCode.expires_at > now,
    ).update(
        {"status": JOIN_CODE_STATUS_USED, "used_at": now, "used_by": user_id},
        synchronize_session=False,
    )
    if not claimed:
        return None

    if commit:
        db.session.commit()

    current_app.logger.info("Join code %s consumed by user %s", join_code_id, user_id)
    return db.session.query(JoinCode).populate_existing().filter_by(id=join_code_id).first()

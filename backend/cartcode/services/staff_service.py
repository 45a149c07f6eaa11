"""
Staff enrollment through stored join codes.

A registering user presents (store, code) for a staff join code. Admin join
codes are not redeemable here: admin is a platform-wide role (it manages
every store), so a store-scoped code must never grant it.

The code is verified, the membership checked, and the code consumed with the
conditional update in the same transaction that creates the StaffMember, so a
code admits exactly one user.
"""
from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import StaffMember, User
from ..roles import ROLE_STAFF, role_satisfies
from ..time_utils import utcnow
from ..validation import ValidationError, NotFoundError, ConflictError, coerce_optional_str
from . import join_code_service
from .concurrency import run_with_retry, insert_with_conflict_retry
from .store_service import get_store


def enroll_staff(
    user_id: int,
    name: str,
    store_id: int,
    code: str,
    role: str = ROLE_STAFF,
    now: datetime | None = None,
) -> StaffMember:
    """
    Create a store membership by redeeming a join code.

    Raises:
        ValidationError: role other than staff, or missing name
        NotFoundError: unknown user or store
        ConflictError: invalid/expired/used code, or user already a member
    """
    if role != ROLE_STAFF:
        raise ValidationError("Invalid role for staff creation")
    name = coerce_optional_str(name)
    if not name:
        raise ValidationError("name required")
    now = now or utcnow()

    def _op():
        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        get_store(store_id)

        match = join_code_service.verify_join_code(store_id, role, code, now=now)
        if not match:
            raise ConflictError("Invalid or expired join code")

        if db.session.query(StaffMember.id).filter_by(user_id=user.id).first():
            raise ConflictError("User is already staff")

        consumed = join_code_service.consume_join_code(match.id, user.id, now=now, commit=False)
        if not consumed:
            db.session.rollback()
            raise ConflictError("Join code already used or expired")

        member = StaffMember(
            user_id=user.id,
            store_id=store_id,
            role=role,
            name=name,
            join_code_id=consumed.id,
        )
        db.session.add(member)

        if not role_satisfies(role, user.role):
            user.role = role
        user.store_id = store_id

        db.session.flush()
        db.session.commit()

        current_app.logger.info("User %s joined store %s as %s", user.id, store_id, role)
        return member

    return insert_with_conflict_retry(lambda: run_with_retry(_op))


def list_staff(store_ids: list[int] | None = None) -> list[StaffMember]:
    query = db.session.query(StaffMember)
    if store_ids is not None:
        query = query.filter(StaffMember.store_id.in_(store_ids))
    return query.order_by(StaffMember.created_at.desc(), StaffMember.id.desc()).all()

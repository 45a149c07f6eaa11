# Overview: Store lookup and management-access checks for code operations.

from __future__ import annotations

from ..extensions import db
from ..models import Store, User
from ..roles import ROLE_ADMIN, ROLE_ORGANIZER, role_satisfies
from ..validation import AuthorizationError, NotFoundError, ValidationError


def get_store(store_id: int) -> Store:
    store = db.session.get(Store, store_id)
    if not store:
        raise NotFoundError("Store not found")
    return store


def require_managed_store(store_id: int, user: User) -> Store:
    """
    Store the user may manage join and staff codes for.

    Admins manage every store; organizers only the stores they own. A store
    outside an organizer's reach reads as not found so its existence is not
    disclosed.
    """
    if not role_satisfies([ROLE_ADMIN, ROLE_ORGANIZER], user.role):
        raise AuthorizationError("Forbidden")

    store = db.session.get(Store, store_id)
    if not store:
        raise NotFoundError("Store not found")

    if user.role == ROLE_ORGANIZER and store.organizer_id != user.id:
        raise NotFoundError("Store not found")

    return store


def create_store(name: str, slug: str, organizer_id: int | None = None) -> Store:
    if not name or not slug:
        raise ValidationError("name and slug required")
    if db.session.query(Store).filter_by(slug=slug).first():
        raise ValidationError(f"Store slug {slug!r} already exists")

    store = Store(name=name, slug=slug, organizer_id=organizer_id)
    db.session.add(store)
    db.session.commit()
    return store


def list_stores() -> list[Store]:
    return db.session.query(Store).order_by(Store.id).all()

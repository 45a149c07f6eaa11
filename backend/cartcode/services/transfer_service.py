"""
Transfer codes: cart-bound checkout handoff codes.

WHY: A customer builds a cart on their own device; a cashier redeems a
short code to turn it into a paid order (see checkout_service).

LIFECYCLE:
1. pending: issued for a non-empty cart (re-issuing returns the same code)
2. confirmed: cashier completed the sale (checkout_service.confirm_transfer)
3. cancelled: cashier dropped the handoff; cart and stock untouched
4. expired: expires_at passed while pending, detected lazily on access

Every transition out of pending is a single conditional UPDATE on
(id, status='pending', expires_at > now), so two cashiers acting on the same
code cannot both succeed.
"""
from __future__ import annotations

import secrets
import string
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import Cart, TransferCode
from ..models.codes import TRANSFER_STATUS_PENDING, TRANSFER_STATUS_CANCELLED, TRANSFER_STATUS_EXPIRED
from ..time_utils import utcnow, as_naive_utc
from ..validation import ValidationError, NotFoundError, ConflictError
from . import cart_service
from .concurrency import lock_for_update, run_with_retry, insert_with_conflict_retry


CODE_ALPHABET = string.digits + string.ascii_uppercase
CODE_LENGTH = 6
MAX_CODE_ATTEMPTS = 5


def _ttl() -> timedelta:
    return timedelta(minutes=current_app.config.get("TRANSFER_CODE_TTL_MINUTES", 60))


def _generate_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def _pick_unused_code() -> str:
    for _ in range(MAX_CODE_ATTEMPTS):
        code = _generate_code()
        if not db.session.query(TransferCode.id).filter_by(code=code).first():
            return code
    # Still colliding: let the unique constraint decide and the caller retry.
    return _generate_code()


def _is_past(expires_at: datetime, now: datetime) -> bool:
    return as_naive_utc(expires_at) <= now


def _expire_pending(transfer_id: int) -> int:
    """Lazy expiry of one pending row. Idempotent; does not commit."""
    return db.session.query(TransferCode).filter_by(
        id=transfer_id,
        status=TRANSFER_STATUS_PENDING,
    ).update({"status": TRANSFER_STATUS_EXPIRED}, synchronize_session=False)


def _expire_stale_for_cart(cart_id: int, now: datetime) -> int:
    return db.session.query(TransferCode).filter(
        TransferCode.cart_id == cart_id,
        TransferCode.status == TRANSFER_STATUS_PENDING,
        TransferCode.expires_at <= now,
    ).update({"status": TRANSFER_STATUS_EXPIRED}, synchronize_session=False)


def issue_transfer_code(cart_id: int, now: datetime | None = None) -> tuple[TransferCode, bool]:
    """
    Issue a handoff code for a cart.

    Returns (transfer_code, created). While a pending, unexpired code exists
    for the cart it is returned unchanged with created=False.

    Raises:
        NotFoundError: unknown cart
        ConflictError: cart has no items
    """
    now = now or utcnow()

    def _op():
        cart = lock_for_update(db.session.query(Cart).filter_by(id=cart_id)).first()
        if not cart:
            raise NotFoundError("Cart not found")

        if cart_service.count_items(cart.id) == 0:
            raise ConflictError("Cart is empty")

        if _expire_stale_for_cart(cart.id, now):
            current_app.logger.info("Expired stale transfer codes for cart %s", cart.id)

        existing = db.session.query(TransferCode).filter(
            TransferCode.cart_id == cart.id,
            TransferCode.status == TRANSFER_STATUS_PENDING,
            TransferCode.expires_at > now,
        ).first()
        if existing:
            db.session.commit()
            return existing, False

        transfer = TransferCode(
            code=_pick_unused_code(),
            cart_id=cart.id,
            status=TRANSFER_STATUS_PENDING,
            expires_at=now + _ttl(),
        )
        db.session.add(transfer)
        db.session.flush()
        db.session.commit()

        current_app.logger.info("Issued transfer code %s for cart %s", transfer.id, cart.id)
        return transfer, True

    return insert_with_conflict_retry(lambda: run_with_retry(_op))


def raise_not_pending(transfer: TransferCode | None, now: datetime, noun: str = "Transfer") -> None:
    """
    Explain why a pending-only operation did not apply and raise.

    A row that is still pending but past expires_at is flipped to expired
    (and committed) before reporting.
    """
    if transfer is None:
        raise NotFoundError(f"{noun} not found")

    if transfer.status == TRANSFER_STATUS_PENDING and _is_past(transfer.expires_at, now):
        _expire_pending(transfer.id)
        db.session.commit()
        current_app.logger.info("Transfer code %s expired on access", transfer.id)
        raise ConflictError("Code expired", expired=True)

    if transfer.status == TRANSFER_STATUS_EXPIRED:
        raise ConflictError("Code expired", expired=True)

    raise ConflictError(f"{noun} already {transfer.status}")


def claim_pending(transfer_id: int, new_status: str, staff_id: int | None, now: datetime) -> bool:
    """
    Compare-and-swap pending -> new_status. Does not commit.

    True only for the caller whose UPDATE matched the still-pending row.
    """
    claimed = db.session.query(TransferCode).filter(
        TransferCode.id == transfer_id,
        TransferCode.status == TRANSFER_STATUS_PENDING,
        TransferCode.expires_at > now,
    ).update(
        {"status": new_status, "staff_id": staff_id, "updated_at": now},
        synchronize_session=False,
    )
    return bool(claimed)


def _reload(transfer_id: int) -> TransferCode | None:
    return db.session.query(TransferCode).populate_existing().filter_by(id=transfer_id).first()


def lookup_transfer_code(code: str | None, store_id: int | None = None, now: datetime | None = None) -> dict:
    """
    Cashier lookup: the code's pending cart, live-priced.

    Raises:
        ValidationError: no code given
        NotFoundError: unknown code, or the cart belongs to another store
        ConflictError: expired (410) or already confirmed/cancelled (400)
    """
    code = normalize_code(code)
    if not code:
        raise ValidationError("code required")
    now = now or utcnow()

    transfer = db.session.query(TransferCode).filter_by(code=code).first()
    if not transfer:
        raise NotFoundError("Invalid code")

    if store_id is not None and transfer.cart.store_id != store_id:
        raise NotFoundError("Invalid code")

    if transfer.status != TRANSFER_STATUS_PENDING or _is_past(transfer.expires_at, now):
        raise_not_pending(transfer, now, noun="Code")

    return {
        "transfer_id": transfer.id,
        "code": transfer.code,
        "status": transfer.status,
        "expires_at": transfer.expires_at,
        **cart_service.view_cart(transfer.cart_id),
    }


def cancel_transfer(transfer_id: int, staff_id: int | None = None, now: datetime | None = None) -> TransferCode:
    """pending -> cancelled. No effect on cart or stock."""
    now = now or utcnow()

    def _op():
        if not claim_pending(transfer_id, TRANSFER_STATUS_CANCELLED, staff_id, now):
            db.session.rollback()
            raise_not_pending(_reload(transfer_id), now)

        db.session.commit()
        current_app.logger.info("Transfer %s cancelled by staff %s", transfer_id, staff_id)
        return _reload(transfer_id)

    return run_with_retry(_op)

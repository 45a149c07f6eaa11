from __future__ import annotations

from ..extensions import db
from cartcode.time_utils import to_utc_z


JOIN_CODE_STATUS_ACTIVE = "active"
JOIN_CODE_STATUS_USED = "used"
JOIN_CODE_STATUS_EXPIRED = "expired"

TRANSFER_STATUS_PENDING = "pending"
TRANSFER_STATUS_CONFIRMED = "confirmed"
TRANSFER_STATUS_CANCELLED = "cancelled"
TRANSFER_STATUS_EXPIRED = "expired"


class JoinCode(db.Model):
    """
    Stored, single-use onboarding code scoped to (store, role).

    INVARIANT: at most one active row per (store_id, role). Enforced by the
    partial unique index as well as by issuance expiring prior rows first.
    Codes are not globally unique across history; issuance retries on
    collision with any existing row.
    """
    __tablename__ = "join_codes"
    __table_args__ = (
        db.Index("ix_join_codes_store_role_status", "store_id", "role", "status"),
        db.Index(
            "uq_join_codes_one_active",
            "store_id",
            "role",
            unique=True,
            sqlite_where=db.text("status = 'active'"),
            postgresql_where=db.text("status = 'active'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    role = db.Column(db.String(16), nullable=False)
    code = db.Column(db.String(6), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=JOIN_CODE_STATUS_ACTIVE)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    used_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store")

    def __repr__(self) -> str:
        return f"<JoinCode id={self.id} store_id={self.store_id} role={self.role!r} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "role": self.role,
            "code": self.code,
            "status": self.status,
            "expires_at": to_utc_z(self.expires_at),
            "created_by": self.created_by,
            "used_by": self.used_by,
            "used_at": to_utc_z(self.used_at),
            "created_at": to_utc_z(self.created_at),
        }


class TransferCode(db.Model):
    """
    Cart-bound checkout handoff code.

    LIFECYCLE:
    pending -> confirmed | cancelled | expired (all terminal)

    INVARIANT: at most one pending row per cart (partial unique index).
    expired is reached lazily on access; no sweeper is required.
    """
    __tablename__ = "transfer_codes"
    __table_args__ = (
        db.Index("ix_transfer_codes_cart_status", "cart_id", "status"),
        db.Index(
            "uq_transfer_codes_one_pending",
            "cart_id",
            unique=True,
            sqlite_where=db.text("status = 'pending'"),
            postgresql_where=db.text("status = 'pending'"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(6), nullable=False, unique=True, index=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("carts.id"), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=TRANSFER_STATUS_PENDING)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    staff_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    cart = db.relationship("Cart", backref=db.backref("transfer_codes", lazy=True))

    def __repr__(self) -> str:
        return f"<TransferCode id={self.id} code={self.code!r} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "cart_id": self.cart_id,
            "status": self.status,
            "expires_at": to_utc_z(self.expires_at),
            "staff_id": self.staff_id,
            "created_at": to_utc_z(self.created_at),
        }

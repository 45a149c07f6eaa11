from __future__ import annotations

from ..extensions import db
from cartcode.time_utils import to_utc_z


class Cart(db.Model):
    """
    Per-customer-session cart, created lazily on first access.

    One cart per (session_id, store). store_scope mirrors store_id with 0 for
    the global storefront so the unique constraint also covers the NULL case.
    """
    __tablename__ = "carts"
    __table_args__ = (
        db.UniqueConstraint("session_id", "store_scope", name="uq_carts_session_store"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(128), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)
    store_scope = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "store_id": self.store_id,
            "created_at": to_utc_z(self.created_at),
        }


class CartItem(db.Model):
    """
    Cart line. Identity is (cart, product, size); a NULL size and a named size
    are distinct lines. size_key is the NULL-safe uniqueness key ("" for no size).

    unit_price_cents is a snapshot refreshed on every mutation; readers that
    present totals re-price from live catalog data instead of trusting it.
    """
    __tablename__ = "cart_items"
    __table_args__ = (
        db.UniqueConstraint("cart_id", "product_id", "size_key", name="uq_cart_items_identity"),
        db.CheckConstraint("quantity > 0", name="ck_cart_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("carts.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    size = db.Column(db.String(32), nullable=True)
    size_key = db.Column(db.String(32), nullable=False, default="")

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    is_wholesale = db.Column(db.Boolean, nullable=False, default=False)
    tier_label = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    cart = db.relationship("Cart", backref=db.backref("items", lazy=True))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cart_id": self.cart_id,
            "product_id": self.product_id,
            "size": self.size,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "is_wholesale": self.is_wholesale,
            "tier_label": self.tier_label,
        }

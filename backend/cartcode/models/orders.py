from __future__ import annotations

from ..extensions import db
from cartcode.time_utils import to_utc_z


class Order(db.Model):
    """
    Completed sale materialized from a confirmed transfer code.

    Immutable once created. transfer_code_id is unique, so one code can never
    produce two orders even if two confirmations race.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("transfer_code_id", name="uq_orders_transfer_code"),
        db.Index("ix_orders_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True)
    transfer_code_id = db.Column(db.Integer, db.ForeignKey("transfer_codes.id"), nullable=False)
    staff_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="completed")
    payment_method = db.Column(db.String(32), nullable=False, default="cash")

    # All amounts in cents
    total_amount_cents = db.Column(db.Integer, nullable=False)
    total_discount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    transfer_code = db.relationship("TransferCode", backref=db.backref("order", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "transfer_code_id": self.transfer_code_id,
            "staff_id": self.staff_id,
            "status": self.status,
            "payment_method": self.payment_method,
            "total_amount_cents": self.total_amount_cents,
            "total_discount_cents": self.total_discount_cents,
            "created_at": to_utc_z(self.created_at),
        }


class OrderItem(db.Model):
    """Denormalized sale line: name and prices are frozen at confirmation time."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    product_name = db.Column(db.String(255), nullable=False)
    size = db.Column(db.String(32), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)

    unit_price_cents = db.Column(db.Integer, nullable=False)
    retail_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)
    is_wholesale = db.Column(db.Boolean, nullable=False, default=False)
    tier_label = db.Column(db.String(64), nullable=True)

    order = db.relationship("Order", backref=db.backref("items", lazy=True, order_by="OrderItem.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "size": self.size,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "retail_price_cents": self.retail_price_cents,
            "line_total_cents": self.line_total_cents,
            "is_wholesale": self.is_wholesale,
            "tier_label": self.tier_label,
        }

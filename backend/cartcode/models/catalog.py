from __future__ import annotations

from ..extensions import db
from cartcode.time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog product as seen by the cart and checkout.

    Product CRUD, images and recognition live elsewhere; this model carries
    only the pricing and stock contract:

    - price_cents: base retail unit price
    - wholesale_tiers: [{"min_qty": int, "price_cents": int, "label": str|None}]
      stored in any order; consumers sort before selection
    - sizes: [{"size": str, "price_cents": int|None, "stock": int}] or NULL
    - stock: product-level advisory counter for unsized sales

    Tier and size entries also accept the camelCase keys "minQty" and "price";
    "price" is read as cents like "price_cents", never as currency units.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_store_active", "store_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(120), nullable=True)
    image_url = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    wholesale_tiers = db.Column(db.JSON, nullable=False, default=list)
    sizes = db.Column(db.JSON, nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} store_id={self.store_id}>"

    def size_price_cents(self, size: str | None) -> int | None:
        """Size-level base price override, or None when the size has no own price."""
        if not size or not isinstance(self.sizes, list):
            return None
        for entry in self.sizes:
            if isinstance(entry, dict) and entry.get("size") == size:
                price = entry.get("price_cents", entry.get("price"))
                return int(price) if price is not None else None
        return None

    def summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "image_url": self.image_url,
            "price_cents": self.price_cents,
            "stock": self.stock,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "brand": self.brand,
            "image_url": self.image_url,
            "price_cents": self.price_cents,
            "wholesale_tiers": list(self.wholesale_tiers or []),
            "sizes": list(self.sizes) if self.sizes is not None else None,
            "stock": self.stock,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

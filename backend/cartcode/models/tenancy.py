from __future__ import annotations

from ..extensions import db
from cartcode.time_utils import to_utc_z


class Store(db.Model):
    """
    Store (tenant) that owns products, carts, codes and staff.

    OWNERSHIP: organizer_id references users.id. Organizers may only manage
    codes for stores they own; admins may manage every store.
    """
    __tablename__ = "stores"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    slug = db.Column(db.String(64), nullable=False, unique=True, index=True)

    # users.id of the owning organizer (no FK: users.store_id points back here)
    organizer_id = db.Column(db.Integer, nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Store id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "organizer_id": self.organizer_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

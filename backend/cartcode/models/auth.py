from __future__ import annotations

from ..extensions import db
from cartcode.time_utils import to_utc_z


class User(db.Model):
    """
    Identity record consumed from the external auth provider.

    ROLES: organizer > admin > staff (see cartcode.roles). Customers browsing
    the catalog have no User row; they are identified by an opaque cart session.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=True, unique=True)
    role = db.Column(db.String(16), nullable=False, default="staff", index=True)

    # Primary store affiliation (nullable for organizers and platform admins)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("users", lazy=True))

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "store_id": self.store_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class SessionToken(db.Model):
    """
    Bearer token issued by the auth provider.

    Only the SHA-256 hash is stored; the plaintext never touches the database.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))


class StaffMember(db.Model):
    """
    Store membership created by redeeming a join code.

    A user belongs to at most one store as staff or admin.
    """
    __tablename__ = "staff_members"
    __table_args__ = (
        db.UniqueConstraint("user_id", name="uq_staff_members_user"),
        db.Index("ix_staff_members_store_role", "store_id", "role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    role = db.Column(db.String(16), nullable=False, default="staff")
    name = db.Column(db.String(120), nullable=False)

    join_code_id = db.Column(db.Integer, db.ForeignKey("join_codes.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("membership", uselist=False, lazy=True))
    store = db.relationship("Store", backref=db.backref("staff_members", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "store_id": self.store_id,
            "store_name": self.store.name if self.store else None,
            "role": self.role,
            "name": self.name,
            "join_code_id": self.join_code_id,
            "created_at": to_utc_z(self.created_at),
        }

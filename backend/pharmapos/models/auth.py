from __future__ import annotations

from ..extensions import db

ROLE_ADMIN = "ADMIN"
ROLE_MEDICAL_OWNER = "MEDICAL_OWNER"
ROLE_CASHIER = "CASHIER"


class User(db.Model):
    """
    User accounts for attribution.

    MULTI-TENANT: Owners and cashiers belong to one store (store_id).
    Admins may have no store.

    WHY: Every sale must be attributable to the operator who rang it up.
    Credentials live with the identity provider; this table only holds
    what the sale path needs.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_store_role", "store_id", "role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # ADMIN, MEDICAL_OWNER, CASHIER
    role = db.Column(db.String(32), nullable=False, default=ROLE_CASHIER)

    # Store association (nullable for admins)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("users", lazy=True))

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"

    def to_summary(self) -> dict:
        """Minimal identity projection used on sale listings."""
        return {"id": self.id, "name": self.name, "email": self.email}


class SessionToken(db.Model):
    """
    Bearer session tokens.

    MULTI-TENANT: store_id is captured when the token is issued and stays
    fixed for the token's lifetime.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - Absolute and idle timeouts
    - Revocable
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))

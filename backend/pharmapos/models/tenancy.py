from __future__ import annotations

from ..extensions import db


class Store(db.Model):
    """
    Medical store (pharmacy).

    MULTI-TENANT: The store is the tenant boundary. Inventory, sales,
    distributors and every non-admin user belong to exactly one store.
    """
    __tablename__ = "stores"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    # Drug license number issued to the store
    license_no = db.Column(db.String(64), nullable=True, unique=True, index=True)
    gst_no = db.Column(db.String(64), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r}>"

from __future__ import annotations

from ..extensions import db
from pharmapos.money import from_cents
from pharmapos.time_utils import to_utc_z

PAYMENT_METHODS = ("CASH", "ONLINE")


class Sale(db.Model):
    """
    Immutable record of one completed sale.

    SCHEMA DRIFT: Deployed databases may lag this model (customer/doctor
    fields and cashier_id were added over time). Application code never
    loads Sale through the ORM; writes and reads go through
    services.schema_service, which builds statements from the columns
    that physically exist. For the same reason no column here carries a
    Python-side default: Core inserts would otherwise always name it.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Globally unique, server generated (INV-<epoch ms>-<random>)
    invoice_no = db.Column(db.String(64), nullable=False, unique=True, index=True)

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    # Weak reference: the sale survives cashier deactivation
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False)
    net_amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, server_default="CASH")

    customer_name = db.Column(db.String(120), nullable=True)
    customer_mobile = db.Column(db.String(32), nullable=True)
    customer_address = db.Column(db.String(255), nullable=True)
    doctor_name = db.Column(db.String(120), nullable=True)
    doctor_mobile = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Sale id={self.id} invoice_no={self.invoice_no!r} store_id={self.store_id}>"


class SaleItem(db.Model):
    """Line item on a sale. Manual (free-text) items have no product_id."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    # Always quantity * price_cents, frozen at creation
    subtotal_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "saleId": self.sale_id,
            "productId": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "price": from_cents(self.price_cents),
            "subtotal": from_cents(self.subtotal_cents),
            "createdAt": to_utc_z(self.created_at),
        }

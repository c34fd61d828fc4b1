from __future__ import annotations

from ..extensions import db
from pharmapos.money import from_cents
from pharmapos.time_utils import to_utc_z


class Product(db.Model):
    """
    Product batch: one receipt of stock for a named product.

    MULTI-TENANT: Batches are scoped to stores via store_id.

    QUANTITY INVARIANT:
    - quantity is never negative (CHECK constraint + service checks)
    - only replenishment creates batches
    - only the sale transaction decrements quantity

    version_id gives optimistic locking on top of the row lock taken by
    the sale path, so a lost update surfaces as StaleDataError.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_nonnegative"),
        db.Index("ix_products_store_name", "store_id", "name"),
        db.Index("ix_products_store_batch", "store_id", "batch_no"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    batch_no = db.Column(db.String(64), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    # Authoritative storage in cents
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    mrp_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    # Manufacturer / supplier as printed on the invoice
    manufacturer = db.Column(db.String(255), nullable=True)
    reorder_level = db.Column(db.Integer, nullable=True)

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
        return f"<Product id={self.id} name={self.name!r} batch={self.batch_no!r} store_id={self.store_id}>"

    @property
    def is_low_stock(self) -> bool:
        return self.reorder_level is not None and self.quantity <= self.reorder_level

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "storeId": self.store_id,
            "name": self.name,
            "batchNo": self.batch_no,
            "expiryDate": self.expiry_date.isoformat() if self.expiry_date else None,
            "quantity": self.quantity,
            "costPrice": from_cents(self.cost_price_cents),
            "mrp": from_cents(self.mrp_cents),
            "discount": float(self.discount_percent) if self.discount_percent is not None else 0.0,
            "manufacturer": self.manufacturer,
            "reorderLevel": self.reorder_level,
            "lowStock": self.is_low_stock,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class Distributor(db.Model):
    """
    Distributor ledger entry: cumulative purchases per (store, distributor).

    Incremented only by replenishment; never decremented.
    """
    __tablename__ = "distributors"
    __table_args__ = (
        db.UniqueConstraint("store_id", "name", name="uq_distributors_store_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    total_purchase_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    store = db.relationship("Store", backref=db.backref("distributors", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "storeId": self.store_id,
            "name": self.name,
            "totalPurchase": from_cents(self.total_purchase_cents),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

# Overview: Service-layer operations for inventory; batch replenishment and the distributor ledger.

"""
Inventory invariants:
- A product batch is created only by replenishment (receiving stock).
- quantity is never negative; only the sale transaction decrements it.
- The distributor ledger total for (store, distributor) only grows, by
  quantity x cost price of each received batch, in the same transaction
  as the batch itself.
"""

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Distributor, Product
from .concurrency import begin_write_transaction, run_with_retry
from .tenant_service import scoped_query


def _increment_distributor(store_id: int, name: str, amount_cents: int) -> None:
    """Upsert the ledger row and add amount_cents atomically."""
    stmt = (
        update(Distributor)
        .where(Distributor.store_id == store_id, Distributor.name == name)
        .values(total_purchase_cents=Distributor.total_purchase_cents + amount_cents)
    )
    if db.session.execute(stmt).rowcount:
        return

    try:
        with db.session.begin_nested():
            db.session.add(Distributor(store_id=store_id, name=name, total_purchase_cents=amount_cents))
    except IntegrityError:
        # Created concurrently; fall back to the increment
        if not db.session.execute(stmt).rowcount:
            raise


def replenish_batch(store_id: int, patch: dict) -> Product:
    """
    Create a product batch in store_id from a validated patch and, when a
    manufacturer/supplier is named, credit its distributor ledger entry.
    """
    def _op() -> Product:
        begin_write_transaction()

        product = Product(store_id=store_id, **patch)
        db.session.add(product)
        db.session.flush()

        if product.manufacturer:
            amount_cents = (product.quantity or 0) * (product.cost_price_cents or 0)
            _increment_distributor(store_id, product.manufacturer, amount_cents)

        db.session.commit()
        return product

    try:
        return run_with_retry(_op)
    except Exception:
        db.session.rollback()
        raise


def list_batches(store_id: int | None, low_stock: bool = False) -> list[Product]:
    """Batches of a store, newest first; low_stock keeps those at or below reorder level."""
    query = scoped_query(Product, store_id)
    if low_stock:
        query = query.filter(
            Product.reorder_level.isnot(None),
            Product.quantity <= Product.reorder_level,
        )
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def get_distributor(store_id: int, name: str) -> Distributor | None:
    return db.session.query(Distributor).filter_by(store_id=store_id, name=name).first()

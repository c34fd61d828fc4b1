# Overview: Pytest coverage for batch replenishment and the distributor ledger.

"""
Replenishment Tests

Receiving a batch creates the product in the caller's store and credits
the supplier's distributor ledger by quantity x cost price, atomically.
"""

import pytest

from pharmapos.models import Distributor, Product
from pharmapos.services import inventory_service


def _batch(**overrides):
    payload = {
        "name": "Amoxicillin 250mg",
        "batchNumber": "AMX-0425",
        "expiryDate": "2027-04-30",
        "quantity": 100,
        "costPrice": 2.5,
        "mrp": "4.00",
        "discount": 5,
        "supplier": "Cipla Distributors",
    }
    payload.update(overrides)
    return payload


class TestReplenishRoute:

    def test_creates_batch_and_credits_distributor(self, client, db_session, owner_a, auth_headers):
        resp = client.post("/api/products", json=_batch(), headers=auth_headers(owner_a))

        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["product"]["storeId"] == owner_a.store_id
        assert data["product"]["batchNo"] == "AMX-0425"
        assert data["product"]["expiryDate"] == "2027-04-30"
        assert data["product"]["costPrice"] == 2.5
        assert data["product"]["mrp"] == 4.0
        assert data["distributor"]["totalPurchase"] == 250.0

    def test_distributor_total_is_monotonic(self, client, db_session, owner_a, auth_headers):
        headers = auth_headers(owner_a)
        client.post("/api/products", json=_batch(), headers=headers)
        client.post("/api/products", json=_batch(batchNumber="AMX-0426", quantity=10, costPrice=3), headers=headers)

        db_session.expire_all()
        rows = db_session.query(Distributor).filter_by(store_id=owner_a.store_id).all()
        assert len(rows) == 1
        assert rows[0].total_purchase_cents == 25000 + 3000

    def test_distributor_ledger_is_per_store(self, client, db_session, owner_a, cashier_b, auth_headers):
        client.post("/api/products", json=_batch(), headers=auth_headers(owner_a))
        client.post("/api/products", json=_batch(quantity=1), headers=auth_headers(cashier_b))

        db_session.expire_all()
        totals = {
            d.store_id: d.total_purchase_cents
            for d in db_session.query(Distributor).filter_by(name="Cipla Distributors")
        }
        assert totals == {owner_a.store_id: 25000, cashier_b.store_id: 250}

    @pytest.mark.parametrize("overrides, message", [
        ({"batchNumber": ""}, "Missing required fields: batch_no"),
        ({"expiryDate": None}, "Missing required fields: expiry_date"),
        ({"expiryDate": "30/04/2027"}, "expiry_date must be an ISO-8601 date"),
        ({"quantity": -1}, "quantity must be a non-negative integer"),
        ({"costPrice": "cheap"}, "costPrice must be a number"),
        ({"discount": 120}, "discount_percent must be between 0 and 100"),
        ({"storeId": 99}, "Field not allowed: storeId"),
    ])
    def test_validation(self, client, db_session, owner_a, auth_headers, overrides, message):
        resp = client.post("/api/products", json=_batch(**overrides), headers=auth_headers(owner_a))
        assert resp.status_code == 400
        assert resp.get_json()["message"] == message
        assert db_session.query(Product).count() == 0

    def test_requires_store(self, client, db_session, admin_user, auth_headers):
        resp = client.post("/api/products", json=_batch(), headers=auth_headers(admin_user))
        assert resp.status_code == 400


class TestListBatches:

    def test_lists_own_store_only(self, client, db_session, owner_a, product_a, product_b, auth_headers):
        resp = client.get("/api/products", headers=auth_headers(owner_a))
        ids = [p["id"] for p in resp.get_json()["data"]["products"]]
        assert ids == [product_a.id]

    def test_low_stock_filter(self, client, db_session, owner_a, store_a, auth_headers):
        low = Product(store_id=store_a.id, name="Insulin", quantity=2, reorder_level=5)
        ok = Product(store_id=store_a.id, name="Vitamin C", quantity=50, reorder_level=5)
        db_session.add_all([low, ok])
        db_session.commit()

        resp = client.get("/api/products?lowStock=1", headers=auth_headers(owner_a))
        products = resp.get_json()["data"]["products"]
        assert [p["name"] for p in products] == ["Insulin"]
        assert products[0]["lowStock"] is True

    def test_admin_without_store_sees_all(self, db_session, product_a, product_b):
        ids = {p.id for p in inventory_service.list_batches(None)}
        assert ids == {product_a.id, product_b.id}

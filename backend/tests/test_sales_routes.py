# Overview: Pytest coverage for the sales HTTP API.

"""
Sales API Tests

Verifies the JSON contract of /api/sales: status codes, the
{success, message, data|details} envelope, authentication and
per-role read scoping.
"""

from pharmapos.models import Product


def _post(client, headers, payload):
    return client.post("/api/sales", json=payload, headers=headers)


class TestCreateSaleRoute:

    def test_created(self, client, db_session, cashier_a, product_a, auth_headers):
        resp = _post(client, auth_headers(cashier_a), {
            "items": [{"productId": product_a.id, "quantity": 3, "price": 10}],
            "paymentMethod": "CASH",
        })

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["success"] is True
        assert body["message"] == "Sale created"
        sale = body["data"]["sale"]
        assert sale["totalAmount"] == 30.0
        assert sale["cashierId"] == cashier_a.id
        assert sale["items"][0]["quantity"] == 3
        assert sale["items"][0]["price"] == 10.0

        db_session.expire_all()
        assert db_session.get(Product, product_a.id).quantity == 7

    def test_requires_authentication(self, client, db_session):
        resp = _post(client, {}, {"items": [{"name": "x", "quantity": 1, "price": 1}]})
        assert resp.status_code == 401
        assert resp.get_json()["success"] is False

    def test_invalid_token(self, client, db_session):
        resp = _post(client, {"Authorization": "Bearer not-a-token"}, {"items": []})
        assert resp.status_code == 401

    def test_empty_cart(self, client, db_session, cashier_a, auth_headers):
        resp = _post(client, auth_headers(cashier_a), {"items": []})
        assert resp.status_code == 400
        assert resp.get_json() == {"success": False, "message": "No items provided"}

    def test_validation_details(self, client, db_session, cashier_a, auth_headers):
        resp = _post(client, auth_headers(cashier_a), {"items": [{"productId": 1, "quantity": -2, "price": 1}]})
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["details"]["errors"] == ["items[0].quantity must be a non-negative integer"]

    def test_oversized_quantity_is_a_validation_error(self, client, db_session, cashier_a, auth_headers):
        resp = _post(client, auth_headers(cashier_a), {"items": [{"name": "x", "quantity": 10**12, "price": 9999999}]})
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["success"] is False
        assert body["details"]["errors"] == ["items[0].quantity cannot exceed 1,000,000"]

    def test_tenant_comes_from_session(self, client, db_session, cashier_a, store_a, store_b, auth_headers):
        headers = auth_headers(cashier_a)
        cashier_a.store_id = store_b.id
        db_session.commit()

        resp = _post(client, headers, {"items": [{"name": "Gauze", "quantity": 1, "price": 2}]})

        assert resp.status_code == 201
        assert resp.get_json()["data"]["sale"]["storeId"] == store_a.id

    def test_no_store(self, client, db_session, storeless_cashier, auth_headers):
        resp = _post(client, auth_headers(storeless_cashier), {"items": []})
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "User not assigned to a store"

    def test_unknown_product(self, client, db_session, cashier_a, auth_headers):
        resp = _post(client, auth_headers(cashier_a), {"items": [{"productId": 424242, "quantity": 1, "price": 1}]})
        assert resp.status_code == 404
        assert resp.get_json()["message"] == "Product not found"

    def test_other_store_product(self, client, db_session, cashier_a, product_b, auth_headers):
        resp = _post(client, auth_headers(cashier_a), {"items": [{"productId": product_b.id, "quantity": 1, "price": 1}]})
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Product does not belong to your store"

    def test_insufficient_stock(self, client, db_session, cashier_a, product_a, auth_headers):
        resp = _post(client, auth_headers(cashier_a), {"items": [{"productId": product_a.id, "quantity": 11, "price": 1}]})
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["message"] == "Insufficient stock for product Paracetamol 500mg"
        assert body["details"]["available"] == 10

    def test_attribution_conflict(self, client, db_session, cashier_a, cashier_a2, auth_headers):
        resp = _post(client, auth_headers(cashier_a), {
            "items": [{"name": "x", "quantity": 1, "price": 1}],
            "cashierId": cashier_a2.id,
        })
        assert resp.status_code == 403


class TestListSalesRoute:

    def test_scoping_by_role(self, client, db_session, owner_a, cashier_a, cashier_a2, cashier_b, auth_headers):
        for user in (cashier_a, cashier_a2, cashier_b):
            resp = _post(client, auth_headers(user), {"items": [{"name": user.name, "quantity": 1, "price": 2}]})
            assert resp.status_code == 201

        own = client.get("/api/sales", headers=auth_headers(cashier_a)).get_json()["data"]["sales"]
        assert [s["cashier"]["id"] for s in own] == [cashier_a.id]

        store = client.get("/api/sales", headers=auth_headers(owner_a)).get_json()["data"]["sales"]
        assert {s["cashierId"] for s in store} == {cashier_a.id, cashier_a2.id}
        assert all(s["storeId"] == owner_a.store_id for s in store)

    def test_get_sale(self, client, db_session, cashier_a, cashier_b, auth_headers):
        created = _post(client, auth_headers(cashier_a), {"items": [{"name": "Gauze", "quantity": 1, "price": 2}]})
        sale_id = created.get_json()["data"]["sale"]["id"]

        resp = client.get(f"/api/sales/{sale_id}", headers=auth_headers(cashier_a))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["sale"]["items"][0]["name"] == "Gauze"

        resp = client.get(f"/api/sales/{sale_id}", headers=auth_headers(cashier_b))
        assert resp.status_code == 404
        assert resp.get_json()["success"] is False


class TestHealthRoute:

    def test_healthy(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["sales_schema"]["details"]["attributionMode"] == "column"

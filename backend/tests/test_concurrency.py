# Overview: Pytest coverage for concurrent sales against a shared file database.

"""
Concurrency Tests

Runs sale transactions from several threads against one SQLite file
database (an in-memory database cannot be shared between connections).
"""

import threading

import pytest

from pharmapos import create_app
from pharmapos.errors import InsufficientStockError
from pharmapos.extensions import db
from pharmapos.models import Product, Sale, Store, User, ROLE_CASHIER
from pharmapos.services import sales_service


@pytest.fixture
def file_app(tmp_path):
    db_path = tmp_path / "concurrency.db"
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "SALE_RETRY_BACKOFF": 0.01,
    })

    with app.app_context():
        db.create_all()

        store = Store(name="Concurrency Store")
        db.session.add(store)
        db.session.commit()

        users = [
            User(name=f"Cashier {i}", email=f"cashier{i}@example.com", role=ROLE_CASHIER, store_id=store.id)
            for i in range(4)
        ]
        product = Product(store_id=store.id, name="Concurrent Product", batch_no="C-1", quantity=10)
        db.session.add_all(users + [product])
        db.session.commit()

        app.config["TEST_USER_IDS"] = [u.id for u in users]
        app.config["TEST_PRODUCT_ID"] = product.id

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


def _run_sales(app, quantities):
    results = []
    lock = threading.Lock()
    user_ids = app.config["TEST_USER_IDS"]
    product_id = app.config["TEST_PRODUCT_ID"]

    def worker(user_id, quantity):
        with app.app_context():
            try:
                user = db.session.get(User, user_id)
                sale = sales_service.create_sale(
                    user=user,
                    payload={"items": [{"productId": product_id, "quantity": quantity, "price": 10}]},
                )
                with lock:
                    results.append(sale)
            except Exception as exc:
                with lock:
                    results.append(exc)
            finally:
                db.session.remove()

    threads = [
        threading.Thread(target=worker, args=(user_ids[i % len(user_ids)], qty))
        for i, qty in enumerate(quantities)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_concurrent_oversell_exactly_one_succeeds(file_app):
    results = _run_sales(file_app, [6, 6])

    sales = [r for r in results if isinstance(r, dict)]
    failures = [r for r in results if not isinstance(r, dict)]

    assert len(sales) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], InsufficientStockError)

    with file_app.app_context():
        product = db.session.get(Product, file_app.config["TEST_PRODUCT_ID"])
        assert product.quantity == 4
        assert db.session.query(Sale).count() == 1


def test_concurrent_sales_conserve_stock(file_app):
    results = _run_sales(file_app, [1, 2, 3, 4, 1, 2])

    sold = sum(s["items"][0]["quantity"] for s in results if isinstance(s, dict))
    assert all(isinstance(r, (dict, InsufficientStockError)) for r in results)

    with file_app.app_context():
        product = db.session.get(Product, file_app.config["TEST_PRODUCT_ID"])
        assert product.quantity == 10 - sold
        assert product.quantity >= 0
        invoices = [inv for (inv,) in db.session.query(Sale.invoice_no).all()]
        assert len(invoices) == len(set(invoices))

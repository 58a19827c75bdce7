"""
Concurrent postings against a file-backed SQLite database.

Each worker runs in its own thread with its own app context (and so its own
session and connection), the way concurrent requests would.
"""

import threading
from datetime import datetime

import pytest

from mypos import create_app
from mypos.config import TestingConfig
from mypos.extensions import db
from mypos.errors import InsufficientStockError
from mypos.models import Product, Sale, Supplier, User
from mypos.services import inventory_service, purchase_service, sales_service
from mypos.services.ledger_schemas import (
    LedgerContext,
    PurchaseHeader,
    PurchaseLineInput,
    SaleHeader,
    SaleLineInput,
)


WORKERS = 8


@pytest.fixture
def file_app(tmp_path):
    class FileConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'concurrency.db'}"

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()

        user = User(username="concurrent_user", role="CASHIER", is_active=True)
        supplier = Supplier(name="Concurrent Supplier", is_active=True)
        product = Product(code="CONCUR-1", name="Concurrent Product", sell_price_cents=100, stock_qty=100)
        db.session.add_all([user, supplier, product])
        db.session.commit()
        app.config["SEED"] = {"user_id": user.id, "supplier_id": supplier.id, "product_id": product.id}

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _run_workers(app, target, count=WORKERS):
    results = []
    errors = []
    lock = threading.Lock()

    def worker(index):
        with app.app_context():
            try:
                result = target(index)
                with lock:
                    results.append(result)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results, errors


def _sale_line(seed, quantity):
    return [SaleLineInput(seed["product_id"], "CONCUR-1", "Concurrent Product", quantity, 100)]


def test_concurrent_sales_do_not_lose_updates(file_app):
    seed = file_app.config["SEED"]
    ctx = LedgerContext(user_id=seed["user_id"], now=datetime(2026, 1, 14, 12, 0))

    def sell(_):
        sale_id = sales_service.create_sale(
            ctx, SaleHeader(payment_type="CASH", amount_paid_cents=500), _sale_line(seed, 5)
        )
        return sales_service.get_sale(sale_id).invoice_number

    invoices, errors = _run_workers(file_app, sell)

    assert errors == []
    assert sorted(invoices) == [f"INV-20260114-{n:04d}" for n in range(1, WORKERS + 1)]
    with file_app.app_context():
        assert inventory_service.get_stock_level(seed["product_id"]) == 100 - 5 * WORKERS
        assert db.session.query(Sale).count() == WORKERS


def test_concurrent_sales_and_purchases_conserve_stock(file_app):
    seed = file_app.config["SEED"]
    ctx = LedgerContext(user_id=seed["user_id"])

    def post(index):
        if index % 2:
            return sales_service.create_sale(
                ctx, SaleHeader(payment_type="CARD", amount_paid_cents=300), _sale_line(seed, 3)
            )
        return purchase_service.create_purchase(
            ctx,
            PurchaseHeader(supplier_id=seed["supplier_id"]),
            [PurchaseLineInput(seed["product_id"], "CONCUR-1", "Concurrent Product", 7, 40)],
        )

    results, errors = _run_workers(file_app, post)

    assert errors == []
    assert len(results) == WORKERS
    with file_app.app_context():
        half = WORKERS // 2
        assert inventory_service.get_stock_level(seed["product_id"]) == 100 + 7 * half - 3 * half


def test_guarded_stock_never_oversells_under_contention(file_app):
    file_app.config["LEDGER_ALLOW_NEGATIVE_STOCK"] = False
    seed = file_app.config["SEED"]
    ctx = LedgerContext(user_id=seed["user_id"])

    def sell(_):
        return sales_service.create_sale(
            ctx, SaleHeader(payment_type="CASH", amount_paid_cents=3000), _sale_line(seed, 30)
        )

    posted, errors = _run_workers(file_app, sell)

    # 100 on hand, 30 per sale: exactly three fit
    assert len(posted) == 3
    assert len(errors) == WORKERS - 3
    assert all(isinstance(e, InsufficientStockError) for e in errors)
    with file_app.app_context():
        assert inventory_service.get_stock_level(seed["product_id"]) == 10

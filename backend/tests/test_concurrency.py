"""
Concurrency tests for the stock ledger, sales and refunds.

Verifies:
- Two concurrent sales that each fit the shelf but not together: one wins
- Two concurrent restocks of one product both count (no lost update)
- Two concurrent refunds of one sale restore stock exactly once
- Two concurrent loyalty credits both count
- Constraint violations surface as typed errors

Threaded tests run against a file-backed SQLite database so every thread
gets its own connection.
"""

import threading
from decimal import Decimal

import pytest

from boutique_pos import create_app
from boutique_pos.config import TestConfig
from boutique_pos.errors import ConflictError, InsufficientStockError, ValidationError
from boutique_pos.extensions import db
from boutique_pos.models import Category, Customer, Sale, StockAdjustment, StockRecord
from boutique_pos.services import customers_service, inventory_service, products_service, sales_service
from boutique_pos.services.auth_service import create_user
from boutique_pos.services.concurrency import transaction
from boutique_pos.services.sales_service import SaleItemRequest, SaleRequest

from conftest import PASSWORD

BARRIER_TIMEOUT = 10


@pytest.fixture
def file_app(tmp_path):
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'pos.sqlite3'}"

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def seeded(file_app):
    cashier = create_user(
        db.session, name="Cashier", email="cashier@boutique.test", password=PASSWORD, role="cashier"
    )
    product = products_service.create_product(
        db.session,
        {"name": "Linen Shirt", "sku": "LS-1", "selling_price": "100.00", "initial_stock": 5},
    )
    return cashier.id, product.id


def _quantity(product_id):
    db.session.expire_all()
    return db.session.query(StockRecord).filter_by(product_id=product_id).one().quantity


def _run_in_threads(app, target, count=2):
    """Run ``target()`` in ``count`` threads, each in its own app context."""
    results = []
    lock = threading.Lock()

    def worker():
        with app.app_context():
            try:
                outcome = target()
            except Exception as exc:
                outcome = type(exc).__name__
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return sorted(results)


class TestConcurrentSales:

    def test_two_sales_cannot_oversell(self, file_app, seeded, monkeypatch):
        cashier_id, product_id = seeded
        barrier = threading.Barrier(2, timeout=BARRIER_TIMEOUT)
        check_stock = sales_service._check_stock

        # both attempts pass the stock check before either deducts
        def check_then_wait(session, request):
            products = check_stock(session, request)
            barrier.wait()
            return products

        monkeypatch.setattr(sales_service, "_check_stock", check_then_wait)

        def sell():
            sales_service.create_sale(
                db.session,
                SaleRequest(
                    cashier_id=cashier_id,
                    items=(SaleItemRequest(product_id=product_id, quantity=3),),
                    payment_method="cash",
                    amount_paid=Decimal("400"),
                ),
            )
            return "ok"

        results = _run_in_threads(file_app, sell)

        assert results == ["InsufficientStockError", "ok"]
        assert _quantity(product_id) == 2
        assert db.session.query(Sale).count() == 1


class TestConcurrentLedger:

    def test_concurrent_restocks_both_count(self, file_app, seeded, monkeypatch):
        _, product_id = seeded
        barrier = threading.Barrier(2, timeout=BARRIER_TIMEOUT)
        get_stock_record = inventory_service.get_stock_record

        def read_then_wait(session, pid, *, lock=False):
            record = get_stock_record(session, pid, lock=lock)
            barrier.wait()
            return record

        monkeypatch.setattr(inventory_service, "get_stock_record", read_then_wait)

        def restock():
            inventory_service.adjust_stock(
                db.session,
                product_id=product_id,
                adjustment_type="restock",
                quantity=3,
                actor_user_id=None,
            )
            return "ok"

        results = _run_in_threads(file_app, restock)

        assert results == ["ok", "ok"]
        assert _quantity(product_id) == 11
        rows = db.session.query(StockAdjustment).order_by(StockAdjustment.new_quantity).all()
        assert [(r.previous_quantity, r.new_quantity) for r in rows] == [(5, 8), (8, 11)]


class TestConcurrentRefunds:

    def test_double_refund_restores_stock_once(self, file_app, seeded):
        cashier_id, product_id = seeded
        sale = sales_service.create_sale(
            db.session,
            SaleRequest(
                cashier_id=cashier_id,
                items=(SaleItemRequest(product_id=product_id, quantity=3),),
                payment_method="cash",
                amount_paid=Decimal("400"),
            ),
        )
        sale_id = sale.id
        assert _quantity(product_id) == 2
        barrier = threading.Barrier(2, timeout=BARRIER_TIMEOUT)

        def refund():
            barrier.wait()
            sales_service.refund_sale(db.session, sale_id)
            return "ok"

        results = _run_in_threads(file_app, refund)

        assert results == ["AlreadyRefundedError", "ok"]
        assert _quantity(product_id) == 5
        db.session.expire_all()
        assert db.session.get(Sale, sale_id).status == "refunded"


class TestConcurrentLoyalty:

    def test_concurrent_credits_both_count(self, file_app):
        customer_id = customers_service.create_customer(db.session, {"name": "Zawadi"}).id
        barrier = threading.Barrier(2, timeout=BARRIER_TIMEOUT)

        def credit():
            barrier.wait()
            customers_service.add_loyalty_points(db.session, customer_id, 7)
            return "ok"

        results = _run_in_threads(file_app, credit)

        assert results == ["ok", "ok"]
        db.session.expire_all()
        assert db.session.get(Customer, customer_id).loyalty_points == 14


class TestConstraintErrors:

    def test_stock_floor_violation_is_insufficient_stock(self, db_session, make_product):
        product = make_product(stock=1)
        record = db_session.query(StockRecord).filter_by(product_id=product.id).one()

        with pytest.raises(InsufficientStockError) as exc:
            with transaction(db_session):
                record.quantity = -1

        assert exc.value.status_code == 400
        assert exc.value.details["constraint"] == "ck_stock_records_quantity_nonnegative"
        db_session.expire_all()
        assert db_session.query(StockRecord).filter_by(product_id=product.id).one().quantity == 1

    def test_negative_loyalty_is_validation_error(self, db_session, make_customer):
        customer = make_customer()

        with pytest.raises(ValidationError):
            with transaction(db_session):
                db_session.get(Customer, customer.id).loyalty_points = -10

    def test_duplicate_key_is_conflict(self, db_session):
        with pytest.raises(ConflictError):
            with transaction(db_session):
                db_session.add(Category(name="Knitwear"))
                db_session.add(Category(name="Knitwear"))
                db_session.flush()

        assert db_session.query(Category).count() == 0

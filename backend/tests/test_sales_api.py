"""
Sales API tests.

Verifies:
- POST /api/sales returns the committed sale with items and 2-dp amounts
- Failed sales answer with the right status and persist nothing
- Refund endpoint restores stock exactly once
- Listing, detail and today's summary
"""

from boutique_pos.models import Sale, SaleItem, StockRecord
from boutique_pos.services import sales_service


def _stock(db_session, product_id):
    db_session.expire_all()
    return db_session.query(StockRecord).filter_by(product_id=product_id).one().quantity


def _sell(client, headers, items, **extra):
    body = {"items": items, "payment_method": "cash", "amount_paid": 0}
    body.update(extra)
    return client.post("/api/sales", json=body, headers=headers)


class TestCreateSaleApi:

    def test_worked_example(self, client, db_session, cashier_headers, make_product):
        product = make_product(price="100.00", stock=10)

        resp = _sell(client, cashier_headers, [{"product_id": product.id, "quantity": 3}], amount_paid=400)

        assert resp.status_code == 201
        sale = resp.get_json()["sale"]
        assert sale["subtotal"] == "300.00"
        assert sale["discount_amount"] == "0.00"
        assert sale["tax_amount"] == "48.00"
        assert sale["total"] == "348.00"
        assert sale["amount_paid"] == "400.00"
        assert sale["change_amount"] == "52.00"
        assert sale["status"] == "completed"
        assert sale["cashier_name"] == "Cashier"
        assert sale["items"][0]["quantity"] == 3
        assert sale["items"][0]["unit_price"] == "100.00"
        assert sale["items"][0]["total"] == "300.00"
        assert _stock(db_session, product.id) == 7

    def test_order_discount_and_customer(self, client, db_session, cashier_headers, make_product, make_customer):
        product = make_product(price="50.00", stock=10)
        customer = make_customer(phone="+254700000001")

        resp = _sell(
            client,
            cashier_headers,
            [{"product_id": product.id, "quantity": 4}],
            discount_amount="20.00",
            amount_paid="300",
            customer_id=customer.id,
            payment_method="mobile_money",
        )

        assert resp.status_code == 201
        sale = resp.get_json()["sale"]
        # (200 - 20) * 1.16
        assert sale["total"] == "208.80"
        assert sale["change_amount"] == "91.20"
        assert sale["customer_name"] == customer.name
        assert sale["payment_method"] == "mobile_money"

        loyalty = client.get(f"/api/customers/{customer.id}", headers=cashier_headers).get_json()
        assert loyalty["customer"]["loyalty_points"] == 2

    def test_insufficient_stock(self, client, db_session, cashier_headers, make_product):
        product = make_product(name="Leather Belt", stock=2)

        resp = _sell(client, cashier_headers, [{"product_id": product.id, "quantity": 5}])

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Insufficient stock for: Leather Belt"
        assert _stock(db_session, product.id) == 2
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0

    def test_unknown_product(self, client, db_session, cashier_headers, make_product):
        product = make_product(stock=5)

        resp = _sell(
            client,
            cashier_headers,
            [{"product_id": product.id, "quantity": 1}, {"product_id": 999, "quantity": 1}],
        )

        assert resp.status_code == 404
        assert _stock(db_session, product.id) == 5

    def test_validation_errors(self, client, cashier_headers):
        assert _sell(client, cashier_headers, []).status_code == 400
        assert _sell(client, cashier_headers, [{"product_id": 1, "quantity": 1}], payment_method="iou").status_code == 400
        assert client.post("/api/sales", data="not json", headers=cashier_headers).status_code == 400

    def test_underpayment_rejected_when_configured(self, app, client, db_session, cashier_headers, make_product):
        app.config["ALLOW_UNDERPAYMENT"] = False
        product = make_product(price="100.00", stock=10)

        resp = _sell(client, cashier_headers, [{"product_id": product.id, "quantity": 1}], amount_paid=50)

        assert resp.status_code == 400
        assert _stock(db_session, product.id) == 10

    def test_tax_rate_from_config(self, app, client, cashier_headers, make_product):
        app.config["TAX_RATE"] = "0"
        product = make_product(price="100.00", stock=10)

        resp = _sell(client, cashier_headers, [{"product_id": product.id, "quantity": 1}], amount_paid=100)

        assert resp.get_json()["sale"]["total"] == "100.00"


class TestRefundApi:

    def test_refund_twice(self, client, db_session, cashier_headers, manager_headers, make_product):
        product = make_product(stock=10)
        sale_id = _sell(client, cashier_headers, [{"product_id": product.id, "quantity": 4}]).get_json()["sale"]["id"]
        assert _stock(db_session, product.id) == 6

        first = client.post(f"/api/sales/{sale_id}/refund", headers=manager_headers)
        second = client.post(f"/api/sales/{sale_id}/refund", headers=manager_headers)

        assert first.status_code == 200
        assert first.get_json()["sale"]["status"] == "refunded"
        assert second.status_code == 400
        assert second.get_json()["error"] == "Sale already refunded."
        assert _stock(db_session, product.id) == 10

    def test_refund_missing_sale(self, client, manager_headers):
        resp = client.post("/api/sales/9999/refund", headers=manager_headers)
        assert resp.status_code == 404


class TestReadSalesApi:

    def test_list_get_and_summary(self, client, cashier, cashier_headers, make_product):
        product = make_product(price="10.00", stock=10)
        sale_id = _sell(
            client, cashier_headers, [{"product_id": product.id, "quantity": 2}], amount_paid="23.20"
        ).get_json()["sale"]["id"]

        listing = client.get(f"/api/sales?cashier_id={cashier.id}", headers=cashier_headers).get_json()
        assert [s["id"] for s in listing["sales"]] == [sale_id]
        assert listing["sales"][0]["items_count"] == 1

        detail = client.get(f"/api/sales/{sale_id}", headers=cashier_headers).get_json()
        assert detail["sale"]["items"][0]["product_id"] == product.id

        summary = client.get("/api/sales/summary/today", headers=cashier_headers).get_json()
        assert summary["summary"]["total_transactions"] == 1
        assert summary["summary"]["total_revenue"] == "23.20"

    def test_bad_date_filter(self, client, cashier_headers):
        resp = client.get("/api/sales?from=yesterday", headers=cashier_headers)
        assert resp.status_code == 400

    def test_missing_sale(self, client, cashier_headers):
        assert client.get("/api/sales/424242", headers=cashier_headers).status_code == 404

    def test_unexpected_failure_is_generic_500(self, client, cashier_headers, monkeypatch):
        def broken(session, sale_id):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(sales_service, "get_sale", broken)

        resp = client.get("/api/sales/1", headers=cashier_headers)

        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Internal server error"}

"""
Products, inventory and customers API tests.
"""

import pytest

from boutique_pos.models import StockAdjustment


class TestProductsApi:

    def test_create_product_opens_stock(self, client, manager_headers):
        resp = client.post(
            "/api/products",
            json={
                "name": "Silk Blouse",
                "sku": "BL-001",
                "barcode": "6001234567890",
                "selling_price": "2499.99",
                "cost_price": 1200,
                "tax_rate": "0.16",
                "initial_stock": 12,
            },
            headers=manager_headers,
        )

        assert resp.status_code == 201
        product = resp.get_json()["product"]
        assert product["selling_price"] == "2499.99"
        assert product["cost_price"] == "1200.00"
        assert product["tax_rate"] == "0.16"
        assert product["stock_quantity"] == 12

    @pytest.mark.parametrize("payload", [
        {"name": "No Price"},
        {"selling_price": 10},
        {"name": "Bad Price", "selling_price": "ten"},
        {"name": "Too Precise", "selling_price": "1.234"},
        {"name": "Bad Stock", "selling_price": 10, "initial_stock": -1},
        {"name": "Unknown", "selling_price": 10, "colour": "red"},
    ])
    def test_invalid_products(self, client, manager_headers, payload):
        resp = client.post("/api/products", json=payload, headers=manager_headers)
        assert resp.status_code == 400

    def test_duplicate_sku_conflicts(self, client, manager_headers, make_product):
        make_product(sku="DUP-1")
        resp = client.post(
            "/api/products",
            json={"name": "Twin", "sku": "DUP-1", "selling_price": 10},
            headers=manager_headers,
        )
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "SKU already exists."

    def test_update_and_soft_delete(self, client, manager_headers, cashier_headers, make_product):
        product = make_product(name="Wool Coat", price="80.00")

        resp = client.put(
            f"/api/products/{product.id}",
            json={"selling_price": "95.50", "description": "Winter line"},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["product"]["selling_price"] == "95.50"

        assert client.delete(f"/api/products/{product.id}", headers=manager_headers).status_code == 200
        listing = client.get("/api/products", headers=cashier_headers).get_json()
        assert product.id not in [p["id"] for p in listing["products"]]
        assert client.get(f"/api/products/{product.id}", headers=cashier_headers).get_json()["product"]["is_active"] is False

    def test_search_matches_category(self, client, manager_headers, cashier_headers):
        category = client.post("/api/products/categories", json={"name": "Accessories"}, headers=manager_headers)
        assert category.status_code == 201
        category_id = category.get_json()["category"]["id"]
        client.post(
            "/api/products",
            json={"name": "Beaded Necklace", "selling_price": 15, "category_id": category_id},
            headers=manager_headers,
        )

        resp = client.get("/api/products/search?q=access", headers=cashier_headers)

        assert [p["name"] for p in resp.get_json()["products"]] == ["Beaded Necklace"]
        assert client.get("/api/products/search", headers=cashier_headers).status_code == 400

    def test_duplicate_category(self, client, manager_headers):
        client.post("/api/products/categories", json={"name": "Shoes"}, headers=manager_headers)
        resp = client.post("/api/products/categories", json={"name": "Shoes"}, headers=manager_headers)
        assert resp.status_code == 409

    def test_missing_product(self, client, cashier_headers):
        assert client.get("/api/products/31337", headers=cashier_headers).status_code == 404


class TestInventoryApi:

    def test_restock_scenario(self, client, db_session, stock_headers, stock_controller, make_product):
        product = make_product(stock=10)

        resp = client.post(
            "/api/inventory/adjust",
            json={"product_id": product.id, "type": "restock", "quantity": 5, "reason": "Delivery"},
            headers=stock_headers,
        )

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["previous_quantity"] == 10
        assert data["new_quantity"] == 15
        assert data["adjustment"]["type"] == "restock"

        history = client.get("/api/inventory/adjustments", headers=stock_headers).get_json()["adjustments"]
        assert len(history) == 1
        assert history[0]["adjusted_by"] == stock_controller.id
        assert db_session.query(StockAdjustment).count() == 1

    def test_loss_beyond_stock(self, client, stock_headers, make_product):
        product = make_product(stock=1)

        resp = client.post(
            "/api/inventory/adjust",
            json={"product_id": product.id, "type": "loss", "quantity": 3},
            headers=stock_headers,
        )

        assert resp.status_code == 400
        assert resp.get_json()["details"]["on_hand"] == 1

    @pytest.mark.parametrize("payload", [
        {"type": "restock", "quantity": 1},
        {"product_id": 1, "quantity": 1},
        {"product_id": 1, "type": "restock"},
        {"product_id": 1, "type": "theft", "quantity": 1},
        {"product_id": 1, "type": "restock", "quantity": "2.5"},
    ])
    def test_invalid_adjustments(self, client, stock_headers, make_product, payload):
        make_product(stock=10)
        resp = client.post("/api/inventory/adjust", json=payload, headers=stock_headers)
        assert resp.status_code == 400

    def test_adjust_unknown_product(self, client, stock_headers):
        resp = client.post(
            "/api/inventory/adjust",
            json={"product_id": 777, "type": "restock", "quantity": 1},
            headers=stock_headers,
        )
        assert resp.status_code == 404

    def test_reorder_level_and_low_stock(self, client, manager_headers, make_product):
        product = make_product(stock=8)

        resp = client.put(
            f"/api/inventory/{product.id}/reorder-level",
            json={"reorder_level": 5},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert client.get("/api/inventory/low-stock", headers=manager_headers).get_json()["inventory"] == []

        client.put(f"/api/inventory/{product.id}/reorder-level", json={"reorder_level": 8}, headers=manager_headers)
        low = client.get("/api/inventory/low-stock", headers=manager_headers).get_json()["inventory"]
        assert [r["product_id"] for r in low] == [product.id]

    def test_expiring_days_must_be_integer(self, client, stock_headers):
        assert client.get("/api/inventory/expiring?days=soon", headers=stock_headers).status_code == 400
        assert client.get("/api/inventory/expiring?days=7", headers=stock_headers).status_code == 200


class TestCustomersApi:

    def test_create_search_and_update(self, client, cashier_headers):
        resp = client.post(
            "/api/customers",
            json={"name": "Amina Otieno", "phone": "+254711000111", "birthday": "1990-04-12"},
            headers=cashier_headers,
        )
        assert resp.status_code == 201
        customer_id = resp.get_json()["customer"]["id"]
        assert resp.get_json()["customer"]["loyalty_points"] == 0

        found = client.get("/api/customers/search?q=711000", headers=cashier_headers).get_json()["customers"]
        assert [c["id"] for c in found] == [customer_id]

        resp = client.put(f"/api/customers/{customer_id}", json={"notes": "Prefers linen"}, headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.get_json()["customer"]["notes"] == "Prefers linen"

    def test_duplicate_phone(self, client, cashier_headers, make_customer):
        make_customer(phone="+254722333444")
        resp = client.post(
            "/api/customers",
            json={"name": "Other", "phone": "+254722333444"},
            headers=cashier_headers,
        )
        assert resp.status_code == 409

    def test_manual_loyalty(self, client, cashier_headers, make_customer):
        customer = make_customer()

        resp = client.put(f"/api/customers/{customer.id}/loyalty", json={"points": 15}, headers=cashier_headers)
        assert resp.status_code == 200
        assert resp.get_json()["customer"]["loyalty_points"] == 15

        for bad in ({"points": 0}, {"points": -5}, {}):
            resp = client.put(f"/api/customers/{customer.id}/loyalty", json=bad, headers=cashier_headers)
            assert resp.status_code == 400

    def test_purchase_history(self, client, cashier_headers, make_customer, make_product):
        customer = make_customer()
        product = make_product(stock=5)
        client.post(
            "/api/sales",
            json={
                "items": [{"product_id": product.id, "quantity": 1}],
                "payment_method": "card",
                "amount_paid": 116,
                "customer_id": customer.id,
            },
            headers=cashier_headers,
        )

        history = client.get(f"/api/customers/{customer.id}/purchases", headers=cashier_headers).get_json()
        assert len(history["sales"]) == 1
        assert client.get("/api/customers/999/purchases", headers=cashier_headers).status_code == 404

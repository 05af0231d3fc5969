"""
Authorization tests for the POS API.

Verifies:
- Unauthenticated requests return 401
- Cashier and stock controller roles denied privileged operations (403)
- Each role reaches the operations its allow-list grants
"""

import pytest

from boutique_pos.permissions import DEFAULT_ROLE_PERMISSIONS, PERMISSION_CODES, role_has_permission


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/register"),
            ("POST", "/api/auth/logout"),
            ("GET", "/api/auth/users"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/inventory"),
            ("POST", "/api/inventory/adjust"),
            ("GET", "/api/customers"),
            ("POST", "/api/customers"),
            ("GET", "/api/sales"),
            ("POST", "/api/sales"),
            ("GET", "/api/sales/summary/today"),
            ("POST", "/api/sales/1/refund"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token_rejected(self, client):
        resp = client.get("/api/products", headers={"Authorization": "Bearer not-a-real-token"})
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "Invalid or expired token."}

    def test_missing_token_message(self, client):
        resp = client.get("/api/sales")
        assert resp.get_json() == {"error": "Access denied. No token provided."}


# =============================================================================
# ROLE ALLOW-LISTS
# =============================================================================


class TestPermissionMap:

    def test_admin_holds_every_permission(self):
        assert DEFAULT_ROLE_PERMISSIONS["admin"] == PERMISSION_CODES

    @pytest.mark.parametrize("role,code,allowed", [
        ("cashier", "CREATE_SALE", True),
        ("cashier", "REFUND_SALE", False),
        ("cashier", "ADJUST_INVENTORY", False),
        ("stock_controller", "ADJUST_INVENTORY", True),
        ("stock_controller", "CREATE_SALE", False),
        ("manager", "REFUND_SALE", True),
        ("manager", "EDIT_USER", False),
        ("unknown", "CREATE_SALE", False),
    ])
    def test_role_has_permission(self, role, code, allowed):
        assert role_has_permission(role, code) is allowed


# =============================================================================
# CASHIER DENIED HIGH-RISK OPERATIONS (403)
# =============================================================================


class TestCashierDeniedHighRisk:
    """Cashier role cannot perform privileged operations."""

    def test_cannot_list_users(self, client, cashier_headers):
        resp = client.get("/api/auth/users", headers=cashier_headers)
        assert resp.status_code == 403

    def test_cannot_register_user(self, client, cashier_headers):
        resp = client.post(
            "/api/auth/register",
            json={"name": "x", "email": "x@x.com", "password": "P@ssw0rd123!", "role": "admin"},
            headers=cashier_headers,
        )
        assert resp.status_code == 403

    def test_cannot_adjust_inventory(self, client, cashier_headers, make_product):
        product = make_product(stock=10)
        resp = client.post(
            "/api/inventory/adjust",
            json={"product_id": product.id, "type": "restock", "quantity": 10},
            headers=cashier_headers,
        )
        assert resp.status_code == 403
        assert resp.get_json() == {
            "error": "Access denied. Insufficient permissions.",
            "required_permission": "ADJUST_INVENTORY",
        }

    def test_cannot_refund(self, client, cashier_headers):
        resp = client.post("/api/sales/1/refund", headers=cashier_headers)
        assert resp.status_code == 403

    def test_cannot_create_product(self, client, cashier_headers):
        resp = client.post(
            "/api/products",
            json={"name": "Evil Product", "selling_price": 1},
            headers=cashier_headers,
        )
        assert resp.status_code == 403


class TestStockControllerScope:

    def test_cannot_sell(self, client, stock_headers, make_product):
        product = make_product(stock=10)
        resp = client.post(
            "/api/sales",
            json={"items": [{"product_id": product.id, "quantity": 1}], "payment_method": "cash", "amount_paid": 200},
            headers=stock_headers,
        )
        assert resp.status_code == 403

    def test_cannot_delete_product(self, client, stock_headers, make_product):
        product = make_product()
        resp = client.delete(f"/api/products/{product.id}", headers=stock_headers)
        assert resp.status_code == 403

    def test_can_adjust_inventory(self, client, stock_headers, make_product):
        product = make_product(stock=10)
        resp = client.post(
            "/api/inventory/adjust",
            json={"product_id": product.id, "type": "restock", "quantity": 2},
            headers=stock_headers,
        )
        assert resp.status_code == 200


# =============================================================================
# PRIVILEGED ROLES (200)
# =============================================================================


class TestPrivilegedAccess:

    def test_admin_can_list_users(self, client, admin_headers):
        resp = client.get("/api/auth/users", headers=admin_headers)
        assert resp.status_code == 200
        assert len(resp.get_json()["users"]) >= 1

    def test_manager_can_list_users(self, client, manager_headers):
        resp = client.get("/api/auth/users", headers=manager_headers)
        assert resp.status_code == 200

    def test_manager_cannot_edit_users(self, client, manager_headers, cashier):
        resp = client.put(f"/api/auth/users/{cashier.id}", json={"role": "admin"}, headers=manager_headers)
        assert resp.status_code == 403


# =============================================================================
# PUBLIC ENDPOINTS (NO AUTH REQUIRED)
# =============================================================================


class TestPublicEndpoints:
    """System health endpoint is public."""

    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"

"""
HTTP API tests.

Verifies:
- Unauthenticated requests return 401
- Roles without the capability get 403
- Domain errors map to their status codes with details
- End-to-end: create item, bill it, cancel it
"""

import pytest

from gstbill.models import Item


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/items/"),
            ("POST", "/api/items/"),
            ("GET", "/api/invoices/"),
            ("POST", "/api/invoices/"),
            ("GET", "/api/purchases/"),
            ("GET", "/api/customers"),
            ("GET", "/api/suppliers"),
            ("GET", "/api/reports/hsn-summary"),
            ("GET", "/api/audit/"),
            ("GET", "/api/sequences"),
            ("GET", "/api/settings"),
            ("GET", "/api/reports/profit"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_bad_token(self, client, db_session):
        resp = client.get("/api/items/", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_health_is_public(self, client, db_session):
        assert client.get("/api/health").get_json() == {"status": "ok"}


# =============================================================================
# LOGIN
# =============================================================================


class TestLogin:

    def test_login_and_me(self, client, billing_user):
        resp = client.post("/api/auth/login", json={"username": "billing_staff_user", "password": "Password123!"})
        assert resp.status_code == 200
        token = resp.get_json()["token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        data = me.get_json()["user"]
        assert data["role"] == "billing_staff"
        assert "CREATE_INVOICE" in data["permissions"]
        assert "CANCEL_INVOICE" not in data["permissions"]

    def test_wrong_password(self, client, billing_user):
        resp = client.post("/api/auth/login", json={"username": "billing_staff_user", "password": "nope"})
        assert resp.status_code == 401

    def test_non_string_password(self, client, billing_user):
        resp = client.post("/api/auth/login", json={"username": "billing_staff_user", "password": 12345678})
        assert resp.status_code == 401

    def test_logout_revokes_token(self, client, billing_user, auth_headers):
        headers = auth_headers(billing_user)
        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401


# =============================================================================
# ROLE ENFORCEMENT (403)
# =============================================================================


class TestRoleEnforcement:

    def test_billing_staff_cannot_cancel(self, client, billing_user, auth_headers):
        resp = client.post("/api/invoices/1/cancel", headers=auth_headers(billing_user))
        assert resp.status_code == 403
        assert resp.get_json()["required_permission"] == "CANCEL_INVOICE"

    def test_auditor_cannot_create_items(self, client, auditor_user, auth_headers):
        resp = client.post("/api/items/", json={"sku": "X", "name": "X"}, headers=auth_headers(auditor_user))
        assert resp.status_code == 403

    def test_admin_cannot_manage_users(self, client, admin_user, auth_headers):
        resp = client.get("/api/auth/users", headers=auth_headers(admin_user))
        assert resp.status_code == 403

    def test_superadmin_creates_user(self, client, superadmin_user, auth_headers):
        resp = client.post(
            "/api/auth/users",
            json={"username": "auditor2", "password": "Password123!", "role": "readonly_auditor"},
            headers=auth_headers(superadmin_user),
        )
        assert resp.status_code == 201
        assert resp.get_json()["user"]["role"] == "readonly_auditor"

    def test_admin_can_export_hsn_csv(self, client, make_user, auth_headers):
        admin = make_user("admin")
        resp = client.get("/api/reports/hsn-summary?format=csv", headers=auth_headers(admin))
        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"

    def test_only_settings_managers_change_settings(self, client, admin_user, billing_user, auth_headers):
        resp = client.put("/api/settings", json={"invoice.prefix": "BILL"}, headers=auth_headers(billing_user))
        assert resp.status_code == 403
        assert resp.get_json()["required_permission"] == "MANAGE_SETTINGS"

        resp = client.put("/api/settings", json={"invoice.prefix": "BILL"}, headers=auth_headers(admin_user))
        assert resp.status_code == 200
        settings = client.get("/api/settings", headers=auth_headers(billing_user)).get_json()["settings"]
        assert settings["invoice.prefix"] == {"value": "BILL", "source": "stored"}

    def test_unknown_setting_is_400(self, client, admin_user, auth_headers):
        resp = client.put("/api/settings", json={"theme": "dark"}, headers=auth_headers(admin_user))
        assert resp.status_code == 400
        assert resp.get_json()["details"]["keys"] == ["theme"]


# =============================================================================
# BILLING FLOW
# =============================================================================


class TestBillingFlow:

    def _create_item(self, client, headers, **overrides):
        body = {
            "sku": "mcb-32a",
            "name": "MCB 32A",
            "hsn_code": "8536",
            "selling_price": "1000.00",
            "purchase_price": "700",
            "gst_percent": 18,
            "opening_stock": 100,
        }
        body.update(overrides)
        resp = client.post("/api/items/", json=body, headers=headers)
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["item"]

    def test_item_create_books_opening_stock(self, client, admin_user, auth_headers):
        headers = auth_headers(admin_user)
        item = self._create_item(client, headers)
        assert item["sku"] == "MCB-32A"
        assert item["current_stock"] == 100

        ledger = client.get(f"/api/items/{item['id']}/ledger", headers=headers).get_json()
        assert [e["type"] for e in ledger["entries"]] == ["opening"]

    def test_duplicate_sku_conflict(self, client, admin_user, auth_headers):
        headers = auth_headers(admin_user)
        self._create_item(client, headers)
        resp = client.post("/api/items/", json={"sku": "MCB-32A", "name": "Again"}, headers=headers)
        assert resp.status_code == 409

    def test_current_stock_not_writable(self, client, admin_user, auth_headers):
        headers = auth_headers(admin_user)
        item = self._create_item(client, headers)
        resp = client.patch(f"/api/items/{item['id']}", json={"current_stock": 5}, headers=headers)
        assert resp.status_code == 400

    def test_sell_then_cancel(self, client, admin_user, billing_user, auth_headers):
        admin_headers = auth_headers(admin_user)
        biller_headers = auth_headers(billing_user)
        item = self._create_item(client, admin_headers)

        resp = client.post(
            "/api/invoices/",
            json={
                "document_date": "2025-06-15",
                "status": "completed",
                "lines": [{"item_id": item["id"], "quantity": 5}],
            },
            headers=biller_headers,
        )
        assert resp.status_code == 201, resp.get_json()
        invoice = resp.get_json()["invoice"]
        assert invoice["document_number"] == "INV/2025-26/0001"
        assert invoice["status"] == "completed"
        assert invoice["total_cgst"] == "450.00"
        assert invoice["total_sgst"] == "450.00"
        assert invoice["grand_total"] == "5900.00"
        assert invoice["amount_in_words"] == "Five Thousand Nine Hundred Rupees Only"
        assert invoice["hsn_summary"][0]["hsn_code"] == "8536"

        stock = client.get(f"/api/items/{item['id']}", headers=admin_headers).get_json()["item"]["current_stock"]
        assert stock == 95

        resp = client.post(f"/api/invoices/{invoice['id']}/cancel", json={"reason": "Duplicate bill"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["invoice"]["status"] == "cancelled"

        stock = client.get(f"/api/items/{item['id']}", headers=admin_headers).get_json()["item"]["current_stock"]
        assert stock == 100

        again = client.post(f"/api/invoices/{invoice['id']}/cancel", headers=admin_headers)
        assert again.status_code == 409

        check = client.get("/api/reports/ledger-check", headers=admin_headers).get_json()
        assert check["items_with_problems"] == {}

    def test_shortage_is_409_with_every_item(self, client, admin_user, auth_headers):
        headers = auth_headers(admin_user)
        mcb = self._create_item(client, headers, opening_stock=10)
        wire = self._create_item(client, headers, sku="wire-1", name="Wire", opening_stock=1)

        resp = client.post(
            "/api/invoices/",
            json={
                "status": "completed",
                "lines": [
                    {"item_id": mcb["id"], "quantity": 15},
                    {"item_id": wire["id"], "quantity": 2},
                ],
            },
            headers=headers,
        )

        assert resp.status_code == 409
        short = resp.get_json()["details"]["items"]
        assert {s["item_id"] for s in short} == {mcb["id"], wire["id"]}

    def test_invalid_line_is_400(self, client, admin_user, auth_headers):
        headers = auth_headers(admin_user)
        item = self._create_item(client, headers)
        resp = client.post(
            "/api/invoices/",
            json={"lines": [{"item_id": item["id"], "quantity": 1, "gst_percent": 7}]},
            headers=headers,
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"].startswith("Line 1")

    def test_non_string_payment_mode_is_400(self, client, admin_user, auth_headers):
        headers = auth_headers(admin_user)
        item = self._create_item(client, headers)
        resp = client.post(
            "/api/invoices/",
            json={"payment_mode": 5, "lines": [{"item_id": item["id"], "quantity": 1}]},
            headers=headers,
        )
        assert resp.status_code == 400
        assert "payment_mode" in resp.get_json()["error"]

    def test_missing_invoice_is_404(self, client, admin_user, auth_headers):
        resp = client.get("/api/invoices/999", headers=auth_headers(admin_user))
        assert resp.status_code == 404

    def test_next_number_preview(self, client, admin_user, auth_headers):
        resp = client.get("/api/invoices/next-number?date=2025-03-31", headers=auth_headers(admin_user))
        assert resp.get_json() == {"fiscal_year": "2024-25", "next_number": "INV/2024-25/0001"}

    def test_availability_dry_run(self, client, db_session, admin_user, auth_headers):
        headers = auth_headers(admin_user)
        item = self._create_item(client, headers, opening_stock=3)
        resp = client.post(
            "/api/items/availability",
            json={"lines": [{"item_id": item["id"], "quantity": 4}]},
            headers=headers,
        )
        body = resp.get_json()
        assert body["ok"] is False
        assert body["shortages"][0]["shortfall"] == 1
        assert db_session.get(Item, item["id"]).current_stock == 3

    def test_hsn_report_counts_completed_only(self, client, admin_user, auth_headers):
        headers = auth_headers(admin_user)
        item = self._create_item(client, headers)
        for status in ("completed", "draft"):
            client.post(
                "/api/invoices/",
                json={"status": status, "lines": [{"item_id": item["id"], "quantity": 2}]},
                headers=headers,
            )

        rows = client.get("/api/reports/hsn-summary", headers=headers).get_json()["rows"]
        assert len(rows) == 1
        assert rows[0]["quantity"] == 2
        assert rows[0]["taxable_value"] == "2000.00"

    def test_audit_log_lists_actions(self, client, admin_user, auditor_user, auth_headers):
        self._create_item(client, auth_headers(admin_user))
        resp = client.get("/api/audit/?entity_type=item", headers=auth_headers(auditor_user))
        assert resp.status_code == 200
        assert [e["action"] for e in resp.get_json()["entries"]] == ["item.created"]

    def test_stock_value_and_profit_reports(self, client, admin_user, auditor_user, auth_headers):
        headers = auth_headers(admin_user)
        item = self._create_item(client, headers, opening_stock=10)
        client.post(
            "/api/invoices/",
            json={"status": "completed", "document_date": "2025-06-10", "lines": [{"item_id": item["id"], "quantity": 4}]},
            headers=headers,
        )

        reader = auth_headers(auditor_user)
        stock = client.get("/api/reports/stock-value", headers=reader).get_json()
        assert stock["total_quantity"] == 6
        assert stock["total_value"] == "4200.00"

        profit = client.get("/api/reports/profit?from=2025-06-01&to=2025-06-30", headers=reader).get_json()
        assert profit == {"invoice_count": 1, "revenue": "4000.00", "cost": "2800.00", "profit": "1200.00"}

"""
HTTP API tests.

Verifies:
- Unauthenticated requests return 401
- Partner sessions are denied admin routes (403)
- Service errors map to their status codes
- End-to-end flows: catalogue -> purchase bill -> payment -> stock sync,
  partner registration -> approval -> login -> storefront
"""

import pytest


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("POST", "/api/products/bulk-price"),
            ("POST", "/api/products/sync-stock"),
            ("GET", "/api/products/recalculate-costs"),
            ("GET", "/api/brands"),
            ("GET", "/api/vendors"),
            ("GET", "/api/purchase-bills"),
            ("POST", "/api/purchase-bills/1/payments"),
            ("GET", "/api/partners/reseller"),
            ("POST", "/api/partners/reseller/1/approve"),
            ("GET", "/api/reseller/products"),
            ("GET", "/api/auth/me"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        response = client.open(path, method=method, json={})
        assert response.status_code == 401

    def test_bad_token(self, client, db_session):
        response = client.get("/api/products", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401


class TestSystem:

    def test_health(self, client, db_session):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json["status"] == "ok"


# =============================================================================
# ADMIN AUTH
# =============================================================================


class TestAdminAuth:

    def test_login_and_me(self, client, admin_headers):
        response = client.get("/api/auth/me", headers=admin_headers)
        assert response.status_code == 200
        assert response.json["user"]["username"] == "admin"

    def test_wrong_password(self, client, admin):
        response = client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
        assert response.status_code == 401

    def test_missing_fields(self, client, db_session):
        response = client.post("/api/auth/login", json={"username": "admin"})
        assert response.status_code == 400

    def test_logout_revokes_token(self, client, admin_headers):
        assert client.post("/api/auth/logout", headers=admin_headers).status_code == 200
        assert client.get("/api/auth/me", headers=admin_headers).status_code == 401


# =============================================================================
# CATALOGUE, PURCHASING AND PAYMENTS
# =============================================================================


@pytest.fixture
def catalogue(client, admin_headers):
    brand = client.post("/api/brands", json={"name": "Maison"}, headers=admin_headers).json
    category = client.post("/api/categories", json={"name": "Bags"}, headers=admin_headers).json
    product = client.post("/api/products", json={
        "sku": "bag-1",
        "name": "Tote",
        "brand_id": brand["id"],
        "category_id": category["id"],
        "mrp": 2000,
    }, headers=admin_headers)
    assert product.status_code == 201
    vendor = client.post("/api/vendors", json={"name": "Atelier"}, headers=admin_headers)
    assert vendor.status_code == 201
    return {"product": product.json, "vendor": vendor.json}


class TestCatalogueRoutes:

    def test_sku_normalized(self, catalogue):
        assert catalogue["product"]["sku"] == "BAG-1"
        assert catalogue["product"]["stock_quantity"] == 0
        assert catalogue["product"]["status"] == "out_of_stock"

    def test_duplicate_brand(self, client, admin_headers, catalogue):
        response = client.post("/api/brands", json={"name": "Maison"}, headers=admin_headers)
        assert response.status_code == 400

    def test_unknown_product(self, client, admin_headers):
        assert client.get("/api/products/999999", headers=admin_headers).status_code == 404

    def test_apply_price(self, client, admin_headers, catalogue):
        product_id = catalogue["product"]["id"]
        response = client.patch(f"/api/products/{product_id}/price", json={
            "markup_type": "fixed", "markup_value": 250, "price_field": "retail_price",
        }, headers=admin_headers)
        assert response.status_code == 200
        assert response.json["retail_price"] == "250.00"

    def test_apply_price_unknown_markup(self, client, admin_headers, catalogue):
        product_id = catalogue["product"]["id"]
        response = client.patch(f"/api/products/{product_id}/price", json={
            "markup_type": "double", "markup_value": 2,
        }, headers=admin_headers)
        assert response.status_code == 400

    def test_bulk_price_requires_rule(self, client, admin_headers, catalogue):
        response = client.post("/api/products/bulk-price", json={"markup_type": "fixed"}, headers=admin_headers)
        assert response.status_code == 400

    def test_bulk_price(self, client, admin_headers, catalogue):
        response = client.post("/api/products/bulk-price", json={
            "markup_type": "percentage", "markup_value": 10,
        }, headers=admin_headers)
        assert response.status_code == 200
        assert response.json["updated_count"] == 1
        assert "wholesale price" in response.json["message"]


    def test_update_product(self, client, admin_headers, catalogue):
        product_id = catalogue["product"]["id"]
        response = client.patch(f"/api/products/{product_id}", json={
            "name": "Weekender", "retail_price": 2500,
        }, headers=admin_headers)
        assert response.status_code == 200
        assert response.json["name"] == "Weekender"
        assert response.json["retail_price"] == "2500.00"

        response = client.put(f"/api/products/{product_id}", json={"stock_quantity": 9}, headers=admin_headers)
        assert response.status_code == 400

    def test_delete_product(self, client, admin_headers, catalogue):
        product_id = catalogue["product"]["id"]
        assert client.delete(f"/api/products/{product_id}", headers=admin_headers).json == {"ok": True}
        assert client.get(f"/api/products/{product_id}", headers=admin_headers).status_code == 404

    def test_delete_purchased_product_conflict(self, client, admin_headers, catalogue):
        product_id = catalogue["product"]["id"]
        client.post("/api/purchase-bills", json={
            "vendor_id": catalogue["vendor"]["id"],
            "items": [{"product_id": product_id, "quantity": 1, "cost_price": 500}],
        }, headers=admin_headers)
        assert client.delete(f"/api/products/{product_id}", headers=admin_headers).status_code == 409

    def test_edit_and_delete_brand(self, client, admin_headers, catalogue):
        brand_id = catalogue["product"]["brand_id"]
        renamed = client.put(f"/api/brands/{brand_id}", json={"name": "Maison Rouge"}, headers=admin_headers)
        assert renamed.status_code == 200
        assert renamed.json["slug"] == "maison-rouge"

        assert client.delete(f"/api/brands/{brand_id}", headers=admin_headers).status_code == 409

        spare = client.post("/api/brands", json={"name": "Spare"}, headers=admin_headers).json
        assert client.delete(f"/api/brands/{spare['id']}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/brands/{spare['id']}", headers=admin_headers).status_code == 404

    def test_category_rename_clash(self, client, admin_headers, catalogue):
        shoes = client.post("/api/categories", json={"name": "Shoes"}, headers=admin_headers).json
        response = client.patch(f"/api/categories/{shoes['id']}", json={"name": "bags"}, headers=admin_headers)
        assert response.status_code == 400

    def test_array_body_is_rejected(self, client, admin_headers, catalogue):
        response = client.post("/api/products", json=[{"sku": "X"}], headers=admin_headers)
        assert response.status_code == 400
        assert response.json["error"] == "JSON object body is required"


class TestPurchaseBillRoutes:

    def _create_bill(self, client, headers, catalogue, **fields):
        body = {
            "vendor_id": catalogue["vendor"]["id"],
            "items": [{"product_id": catalogue["product"]["id"], "quantity": 2, "cost_price": 500}],
        }
        body.update(fields)
        return client.post("/api/purchase-bills", json=body, headers=headers)

    def test_create_and_pay(self, client, admin_headers, catalogue):
        created = self._create_bill(client, admin_headers, catalogue, shipping_charges=100)
        assert created.status_code == 201
        bill = created.json
        assert bill["balance_amount"] == "1100.00"
        assert len(bill["items"]) == 1

        paid = client.post(f"/api/purchase-bills/{bill['id']}/payments", json={
            "amount": 1100, "payment_mode": "upi", "transaction_details": "UTR42",
        }, headers=admin_headers)
        assert paid.status_code == 201
        assert paid.json["bill"]["status"] == "paid"
        assert paid.json["payment"]["amount"] == "1100.00"

        again = client.post(f"/api/purchase-bills/{bill['id']}/payments", json={
            "amount": 1, "payment_mode": "cash",
        }, headers=admin_headers)
        assert again.status_code == 400
        assert again.json["error"] == "Payment amount exceeds balance. Maximum allowed: 0.00"

        payments = client.get(f"/api/purchase-bills/{bill['id']}/payments", headers=admin_headers)
        assert len(payments.json["items"]) == 1

    @pytest.mark.parametrize(
        "body",
        [
            {"payment_mode": "cash"},
            {"amount": 100},
            {"amount": 0, "payment_mode": "cash"},
        ],
    )
    def test_payment_validation(self, client, admin_headers, catalogue, body):
        bill = self._create_bill(client, admin_headers, catalogue).json
        response = client.post(f"/api/purchase-bills/{bill['id']}/payments", json=body, headers=admin_headers)
        assert response.status_code == 400

    def test_payment_unknown_bill(self, client, admin_headers, catalogue):
        response = client.post("/api/purchase-bills/999999/payments", json={
            "amount": 10, "payment_mode": "cash",
        }, headers=admin_headers)
        assert response.status_code == 404

    def test_cancelled_bill_payment_conflict(self, client, admin_headers, catalogue):
        bill = self._create_bill(client, admin_headers, catalogue).json
        cancelled = client.post(f"/api/purchase-bills/{bill['id']}/cancel", headers=admin_headers)
        assert cancelled.status_code == 200
        assert cancelled.json["bill"]["status"] == "cancelled"

        response = client.post(f"/api/purchase-bills/{bill['id']}/payments", json={
            "amount": 10, "payment_mode": "cash",
        }, headers=admin_headers)
        assert response.status_code == 409

    def test_sync_stock(self, client, admin_headers, catalogue):
        self._create_bill(client, admin_headers, catalogue)
        self._create_bill(client, admin_headers, catalogue)

        response = client.post("/api/products/sync-stock", headers=admin_headers)

        assert response.status_code == 200
        assert response.json["updated_product_count"] == 1
        assert response.json["contributing_bill_count"] == 2
        assert response.json["message"] == "Synced stock for 1 products from 2 bills"
        product = client.get(f"/api/products/{catalogue['product']['id']}", headers=admin_headers).json
        assert product["stock_quantity"] == 4
        assert product["status"] == "in_stock"

    def test_edit_bill(self, client, admin_headers, catalogue):
        bill = self._create_bill(client, admin_headers, catalogue, paid_amount=300).json

        response = client.put(f"/api/purchase-bills/{bill['id']}", json={
            "items": [{"product_id": catalogue["product"]["id"], "quantity": 1, "cost_price": 400}],
            "notes": "short delivery",
        }, headers=admin_headers)

        assert response.status_code == 200
        assert response.json["total_amount"] == "400.00"
        assert response.json["balance_amount"] == "100.00"
        assert response.json["notes"] == "short delivery"
        product = client.get(f"/api/products/{catalogue['product']['id']}", headers=admin_headers).json
        assert product["stock_quantity"] == 1
        assert product["cost_price"] == "400.00"

    def test_edit_bill_below_paid(self, client, admin_headers, catalogue):
        bill = self._create_bill(client, admin_headers, catalogue, paid_amount=1000).json
        response = client.put(f"/api/purchase-bills/{bill['id']}", json={"total_amount": 10}, headers=admin_headers)
        assert response.status_code == 400

    def test_edit_cancelled_bill_conflict(self, client, admin_headers, catalogue):
        bill = self._create_bill(client, admin_headers, catalogue).json
        client.post(f"/api/purchase-bills/{bill['id']}/cancel", headers=admin_headers)
        response = client.put(f"/api/purchase-bills/{bill['id']}", json={"notes": "x"}, headers=admin_headers)
        assert response.status_code == 409

    def test_recalculate_costs_preview(self, client, admin_headers, catalogue):
        self._create_bill(client, admin_headers, catalogue)
        response = client.get("/api/products/recalculate-costs", headers=admin_headers)
        assert response.status_code == 200
        assert response.json["summary"]["products_that_need_update"] == 0


# =============================================================================
# CHANNEL PARTNERS
# =============================================================================


def _register(client, partner_type="reseller", **overrides):
    body = {
        "name": "Ravi Luxe",
        "email": "ravi@example.com",
        "contact_number": "9876543210",
        "password": "secret99",
        "shop_name": "Ravi Luxe Store",
    }
    body.update(overrides)
    return client.post(f"/api/partners/{partner_type}/register", json=body)


class TestPartnerRoutes:

    def test_register_pending_then_approved_login(self, client, admin_headers):
        registered = _register(client)
        assert registered.status_code == 201
        partner = registered.json["partner"]
        assert partner["username"] == "raviluxe"

        pending = client.post("/api/partners/reseller/login", json={
            "identifier": "raviluxe", "password": "secret99",
        })
        assert pending.status_code == 403
        assert pending.json["reason"] == "pending_approval"

        approved = client.post(f"/api/partners/reseller/{partner['id']}/approve", headers=admin_headers)
        assert approved.status_code == 200
        assert approved.json["registration_status"] == "approved"

        login = client.post("/api/partners/reseller/login", json={
            "identifier": "ravi@example.com", "password": "secret99",
        })
        assert login.status_code == 200
        assert login.json["token"]

    def test_rejected_login(self, client, admin_headers):
        partner = _register(client).json["partner"]
        client.post(f"/api/partners/reseller/{partner['id']}/reject", headers=admin_headers)

        response = client.post("/api/partners/reseller/login", json={
            "identifier": "raviluxe", "password": "wrong",
        })
        assert response.status_code == 403
        assert response.json["reason"] == "rejected"

    def test_double_approval_conflict(self, client, admin_headers):
        partner = _register(client).json["partner"]
        client.post(f"/api/partners/reseller/{partner['id']}/approve", headers=admin_headers)

        response = client.post(f"/api/partners/reseller/{partner['id']}/reject", headers=admin_headers)
        assert response.status_code == 409

    def test_duplicate_registration(self, client, db_session):
        _register(client)
        response = _register(client, contact_number="9000000000")
        assert response.status_code == 400

    def test_unknown_partner_type(self, client, db_session):
        assert _register(client, partner_type="distributor").status_code == 400

    def test_check_availability(self, client, db_session):
        _register(client)
        response = client.get("/api/partners/reseller/check-availability?username=raviluxe")
        assert response.status_code == 200
        assert response.json == {"username_available": False}

    def test_approval_records_reviewer(self, client, admin_headers):
        partner = _register(client).json["partner"]
        approved = client.post(f"/api/partners/reseller/{partner['id']}/approve", headers=admin_headers)
        assert approved.json["reviewed_by"] == "admin"
        assert approved.json["reviewed_at"]

    def test_register_array_body(self, client, db_session):
        response = client.post("/api/partners/reseller/register", json=[{"name": "Ravi"}])
        assert response.status_code == 400

    def test_register_non_string_password(self, client, db_session):
        response = _register(client, password=12345678)
        assert response.status_code == 400
        assert "must be strings" in response.json["error"]

    def test_login_non_string_password(self, client, admin_headers):
        partner = _register(client).json["partner"]
        client.post(f"/api/partners/reseller/{partner['id']}/approve", headers=admin_headers)

        response = client.post("/api/partners/reseller/login", json={
            "identifier": "raviluxe", "password": ["secret99"],
        })
        assert response.status_code == 401

    def test_login_array_body(self, client, db_session):
        assert client.post("/api/partners/reseller/login", json=["raviluxe"]).status_code == 400

    def test_admin_lists_pending(self, client, admin_headers):
        _register(client)
        response = client.get("/api/partners/reseller?registration_status=pending", headers=admin_headers)
        assert response.status_code == 200
        assert response.json["count"] == 1


class TestResellerStorefrontRoutes:

    @pytest.fixture
    def reseller_headers(self, client, admin_headers, partner_headers):
        partner = _register(client).json["partner"]
        client.post(f"/api/partners/reseller/{partner['id']}/approve", headers=admin_headers)
        return partner_headers("reseller", "raviluxe")

    def test_partner_denied_admin_routes(self, client, reseller_headers):
        response = client.post("/api/products/sync-stock", headers=reseller_headers)
        assert response.status_code == 403
        assert client.get("/api/auth/me", headers=reseller_headers).status_code == 403

    def test_admin_denied_reseller_routes(self, client, admin_headers):
        assert client.get("/api/reseller/products", headers=admin_headers).status_code == 403

    def test_import_and_markup(self, client, admin_headers, reseller_headers, catalogue):
        product_id = catalogue["product"]["id"]
        client.patch(f"/api/products/{product_id}/price", json={
            "markup_type": "fixed", "markup_value": 1000, "price_field": "reseller_price",
        }, headers=admin_headers)
        client.patch(f"/api/products/{product_id}/price", json={
            "markup_type": "fixed", "markup_value": 1200, "price_field": "retail_price",
        }, headers=admin_headers)

        imported = client.post("/api/reseller/products", json={"product_ids": [product_id]}, headers=reseller_headers)
        assert imported.status_code == 200
        assert imported.json["imported"] == 1

        markup = client.post("/api/reseller/bulk-markup", json={
            "markup_type": "percentage", "markup_value": 10, "apply_to_existing": True,
        }, headers=reseller_headers)
        assert markup.status_code == 200
        assert markup.json["updated_count"] == 1

        listed = client.get("/api/reseller/products", headers=reseller_headers).json
        assert listed["total"] == 1
        assert listed["products"][0]["selling_price"] == "1300.00"

        row_id = listed["products"][0]["id"]
        hidden = client.patch(f"/api/reseller/products/{row_id}", json={"is_visible": False}, headers=reseller_headers)
        assert hidden.status_code == 200
        visible = client.get("/api/reseller/products?visibility=visible", headers=reseller_headers).json
        assert visible["total"] == 0

    def test_bulk_markup_requires_rule(self, client, reseller_headers):
        response = client.post("/api/reseller/bulk-markup", json={"markup_type": "fixed"}, headers=reseller_headers)
        assert response.status_code == 400

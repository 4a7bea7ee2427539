"""
HTTP API tests.

Exercises every blueprint through the Flask test client: the public
warranty and inquiry endpoints, admin auth, unit/warranty/return
administration, inquiry triage and statistics.
"""

from disktrack.extensions import db
from disktrack.models import ReturnRecord, Unit

from conftest import auth_headers, bill_upload, registration_form


def _register(client, serial="SN-100", bill=True, **overrides):
    form = registration_form(serial, **overrides)
    if bill:
        form["billFile"] = bill_upload()
    return client.post("/warranty/register", data=form, content_type="multipart/form-data")


# =============================================================================
# SYSTEM / AUTH
# =============================================================================


class TestSystem:

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"
        assert resp.json["status"] in ("healthy", "degraded")

    def test_unknown_route_is_json_404(self, client):
        resp = client.get("/nope")
        assert resp.status_code == 404
        assert resp.json == {"success": False, "error": "NotFound", "message": "Resource not found"}


class TestAuth:

    def test_login_me_logout(self, client, admin):
        resp = client.post("/api/auth/login", json={"email": "admin@disktrack.local", "password": "Password123!"})
        assert resp.status_code == 200
        token = resp.json["token"]

        me = client.get("/api/auth/me", headers=auth_headers(token))
        assert me.status_code == 200
        assert me.json["user"]["email"] == "admin@disktrack.local"

        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers(token)).status_code == 401

    def test_bad_password(self, client, admin):
        resp = client.post("/api/auth/login", json={"email": "admin@disktrack.local", "password": "wrong"})
        assert resp.status_code == 401
        assert resp.json["success"] is False

    def test_admin_routes_require_token(self, client, db_session):
        for path in ("/api/units", "/api/returns", "/api/inquiries", "/api/stats/dashboard"):
            resp = client.get(path)
            assert resp.status_code == 401
            assert resp.json["success"] is False

    def test_garbage_token(self, client, db_session):
        assert client.get("/api/units", headers=auth_headers("not-a-token")).status_code == 401


# =============================================================================
# PUBLIC
# =============================================================================


class TestPublicWarranty:

    def test_register_then_check(self, client, db_session):
        resp = _register(client)
        assert resp.status_code == 201
        assert resp.json["success"] is True
        assert resp.json["warranty"]["status"] == "pending"

        check = client.get("/warranty/check/SN-100")
        assert check.status_code == 200
        assert check.json["warranty_registered"] is True
        assert check.json["warranty"]["status"] == "pending"
        assert check.json["buyer"]["email"] == "jane@x.com"

    def test_second_registration(self, client, db_session):
        _register(client)
        resp = _register(client, buyerName="Mallory")
        assert resp.status_code == 400
        assert resp.json["error"] == "AlreadyRegistered"

    def test_missing_bill(self, client, db_session):
        resp = _register(client, bill=False)
        assert resp.status_code == 400
        assert resp.json["error"] == "ValidationError"

    def test_invalid_platform(self, client, db_session):
        resp = _register(client, platform="ebay")
        assert resp.status_code == 400
        assert "Supported platforms" in resp.json["message"]

    def test_check_unknown_serial(self, client, db_session):
        resp = client.get("/warranty/check/SN-NOPE")
        assert resp.status_code == 404
        assert resp.json["success"] is False


class TestPublicQueries:

    def test_submit(self, client, db_session):
        resp = client.post("/api/queries", json={
            "name": "Jane",
            "email": "jane@x.com",
            "subject": "technical-support",
            "description": "Not detected",
            "productSerialNumber": "SN-1",
        })
        assert resp.status_code == 201
        assert resp.json["query_id"]

    def test_missing_fields(self, client, db_session):
        resp = client.post("/api/queries", json={"name": "Jane"})
        assert resp.status_code == 400
        assert resp.json["error"] == "ValidationError"


# =============================================================================
# ADMIN: UNITS / WARRANTY / RETURNS
# =============================================================================


class TestUnitsApi:

    def test_create_get_update(self, client, admin_headers):
        resp = client.post("/api/units", headers=admin_headers, json={
            "serial_number": "SN-1", "name": "Portable SSD", "type_capacity": "1024",
        })
        assert resp.status_code == 201
        unit_id = resp.json["product"]["id"]

        assert client.get(f"/api/units/{unit_id}", headers=admin_headers).json["product"]["serial_number"] == "SN-1"

        resp = client.put(f"/api/units/{unit_id}", headers=admin_headers, json={"buyer_name": "Jane"})
        assert resp.status_code == 200
        assert resp.json["product"]["buyer"]["name"] == "Jane"

        resp = client.put(f"/api/units/{unit_id}", headers=admin_headers, json={"serial_number": "SN-2"})
        assert resp.status_code == 400

    def test_duplicate_serial(self, client, admin_headers, make_unit):
        make_unit("SN-1")
        resp = client.post("/api/units", headers=admin_headers, json={
            "serial_number": "SN-1", "name": "Other", "type_capacity": "512",
        })
        assert resp.status_code == 409
        assert resp.json["error"] == "Conflict"

    def test_list(self, client, admin_headers, make_unit):
        make_unit("SN-1", platform="amazon")
        make_unit("SN-2", platform="flipkart")
        resp = client.get("/api/units?platform=amazon", headers=admin_headers)
        assert resp.status_code == 200
        assert [u["serial_number"] for u in resp.json["items"]] == ["SN-1"]

    def test_missing_unit(self, client, admin_headers):
        resp = client.get("/api/units/999", headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json["error"] == "NotFound"


class TestWarrantyAdminApi:

    def test_approve_pending(self, client, admin_headers):
        _register(client)
        unit = db.session.query(Unit).filter_by(serial_number="SN-100").one()

        queue = client.get("/api/units/warranty-requests?status=pending", headers=admin_headers)
        assert queue.json["pending_count"] == 1

        resp = client.patch(
            f"/api/units/{unit.id}/warranty/status",
            headers=admin_headers,
            json={"status": "active", "duration_months": 24, "notes": "Bill verified"},
        )
        assert resp.status_code == 200
        warranty = resp.json["product"]["warranty"]
        assert warranty["status"] == "active"
        assert warranty["duration_months"] == 24
        assert warranty["last_modified_by"] == "admin@disktrack.local"

    def test_invalid_status(self, client, admin_headers):
        _register(client)
        unit = db.session.query(Unit).filter_by(serial_number="SN-100").one()
        resp = client.patch(f"/api/units/{unit.id}/warranty/status", headers=admin_headers, json={"status": "approved"})
        assert resp.status_code == 400
        assert resp.json["error"] == "InvalidStatus"

    def test_admin_registration_with_bill(self, client, admin_headers, make_unit):
        unit = make_unit("SN-5")
        resp = client.post(
            f"/api/units/{unit.id}/warranty",
            headers=admin_headers,
            data={"status": "active", "duration_months": "6", "billFile": bill_upload()},
            content_type="multipart/form-data",
        )
        assert resp.status_code == 201
        assert resp.json["warranty"]["registration_source"] == "admin"
        assert resp.json["warranty"]["registered_by"] == "admin@disktrack.local"

        bill = client.get(f"/api/units/{unit.id}/warranty/bill", headers=admin_headers)
        assert bill.status_code == 200
        assert bill.data == b"%PDF-1.4 test bill"

        resp = client.post(
            f"/api/units/{unit.id}/warranty",
            headers=admin_headers,
            data={"status": "void"},
            content_type="multipart/form-data",
        )
        assert resp.status_code == 200
        assert resp.json["warranty"]["status"] == "void"

    def test_bill_missing(self, client, admin_headers, make_unit):
        unit = make_unit("SN-6")
        assert client.get(f"/api/units/{unit.id}/warranty/bill", headers=admin_headers).status_code == 404


class TestReturnsApi:

    def test_mark_return_and_archive(self, client, admin_headers, make_unit):
        unit = make_unit("SN-9", platform="amazon")

        resp = client.post(f"/api/units/{unit.id}/return", headers=admin_headers, json={"return_reason": "defective"})
        assert resp.status_code == 201
        record_id = resp.json["return"]["id"]
        assert resp.json["return"]["returned_by"] == "admin@disktrack.local"
        assert db.session.query(Unit).count() == 0

        listing = client.get("/api/returns", headers=admin_headers)
        assert listing.json["total"] == 1

        resp = client.post(f"/api/returns/{record_id}/notes", headers=admin_headers, json={"note": "Refunded"})
        assert resp.status_code == 200
        assert resp.json["return"]["return_notes"].endswith("Refunded")

        detail = client.get(f"/api/returns/{record_id}", headers=admin_headers)
        assert detail.json["return"]["serial_number"] == "SN-9"

    def test_reason_required(self, client, admin_headers, make_unit):
        unit = make_unit("SN-10")
        resp = client.post(f"/api/units/{unit.id}/return", headers=admin_headers, json={})
        assert resp.status_code == 400
        assert db.session.query(ReturnRecord).count() == 0

    def test_unknown_unit(self, client, admin_headers):
        resp = client.post("/api/units/999/return", headers=admin_headers, json={"return_reason": "x"})
        assert resp.status_code == 404


# =============================================================================
# ADMIN: INQUIRIES / STATS
# =============================================================================


class TestInquiriesApi:

    def test_triage(self, client, admin_headers):
        created = client.post("/api/queries", json={
            "name": "Jane", "email": "jane@x.com", "subject": "bulk-order", "description": "50 units",
        })
        query_id = created.json["query_id"]

        listing = client.get("/api/inquiries", headers=admin_headers)
        assert listing.json["total"] == 1

        toggled = client.post(f"/api/inquiries/{query_id}/toggle-status", headers=admin_headers)
        assert toggled.json["query"]["is_resolved"] is True

        notes = client.put(f"/api/inquiries/{query_id}/notes", headers=admin_headers, json={"admin_notes": "Quoted"})
        assert notes.json["query"]["admin_notes"] == "Quoted"

        assert client.delete(f"/api/inquiries/{query_id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/inquiries/{query_id}", headers=admin_headers).status_code == 404


class TestStatsApi:

    def test_dashboard(self, client, admin_headers, make_unit):
        make_unit("SN-1", platform="amazon")
        make_unit("SN-2", platform="flipkart")

        resp = client.get("/api/stats/dashboard?platform=amazon&dateRange=all", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["stats"]["overview"]["total_units"] == 1
        assert resp.json["stats"]["degraded"] is False

    def test_dashboard_invalid_filter(self, client, admin_headers):
        resp = client.get("/api/stats/dashboard?dateRange=decade", headers=admin_headers)
        assert resp.status_code == 400

    def test_summary(self, client, admin_headers, make_unit):
        make_unit("SN-1")
        resp = client.get("/api/stats/summary", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["stats"]["total_units"] == 1

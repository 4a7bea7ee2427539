"""
Public registration workflow tests.

Verifies:
- An unseen serial gets a unit and a pending 12-month warranty
- Approval, then a check past expiry persists `expired`
- A second registration is AlreadyRegistered
- An invalid bill is rejected before anything is persisted
- Compensation removes the created unit and stored bill when a later step fails
- A losing concurrent registration never rolls back the winner's sale
- A lost race on the unique serial surfaces as Conflict
"""

import io
import os
from datetime import timedelta

import pytest
from werkzeug.datastructures import FileStorage

from disktrack.errors import InternalError, ValidationError
from disktrack.extensions import db
from disktrack.models import BillFile, Unit, Warranty
from disktrack.services import bill_store, registration_service, warranty_service
from disktrack.services.units_service import find_unit_by_serial
from disktrack.time_utils import add_months
from disktrack.validation import RegistrationInput

from conftest import FIXED_NOW, registration_form

PLATFORMS = ["amazon", "flipkart", "offline", "other"]


def _input(serial="SN-100", **overrides) -> RegistrationInput:
    return RegistrationInput.from_form(
        registration_form(serial, **overrides), platforms=PLATFORMS, max_months=60
    )


def _bill(name="bill.pdf", content=b"%PDF-1.4 bill") -> FileStorage:
    return FileStorage(stream=io.BytesIO(content), filename=name, content_type="application/pdf")


def _register(serial="SN-100", bill=None, now=FIXED_NOW, **overrides):
    return registration_service.register_warranty(
        _input(serial, **overrides),
        bill if bill is not None else _bill(),
        ip_address="10.0.0.1",
        user_agent="pytest",
        now=now,
    )


# =============================================================================
# INPUT STRUCT
# =============================================================================


class TestRegistrationInput:

    def test_normalizes_platform_and_email(self):
        data = _input(platform="Amazon", buyerEmail="Jane@X.com")
        assert data.platform == "amazon"
        assert data.buyer_email == "jane@x.com"
        assert data.duration_months is None

    def test_unknown_fields_are_ignored(self):
        data = _input(warrantyRegistered="true", status="active")
        assert not hasattr(data, "status")

    def test_invalid_platform_lists_supported(self):
        with pytest.raises(ValidationError) as exc:
            _input(platform="ebay")
        assert "Supported platforms: amazon, flipkart, offline, other" in exc.value.message

    @pytest.mark.parametrize("field", ["serialNumber", "platform", "buyerName", "buyerEmail", "buyerPhone"])
    def test_required_fields(self, field):
        with pytest.raises(ValidationError):
            _input(**{field: "  "})

    def test_rejects_malformed_email(self):
        with pytest.raises(ValidationError):
            _input(buyerEmail="not-an-email")

    @pytest.mark.parametrize("raw", ["0", "61", "abc", "1.5"])
    def test_rejects_bad_duration(self, raw):
        with pytest.raises(ValidationError):
            _input(durationMonths=raw)

    def test_accepts_duration(self):
        assert _input(durationMonths="24").duration_months == 24


# =============================================================================
# WORKFLOW
# =============================================================================


class TestRegisterWarranty:

    def test_unseen_serial_creates_unit(self, db_session):
        result = _register()

        assert result["success"] is True
        assert result["warranty"]["status"] == "pending"
        assert result["warranty"]["duration_months"] == 12

        unit = find_unit_by_serial("SN-100")
        assert unit.name == "Product SN-100"
        assert unit.type_capacity == "512"
        assert unit.product_type == "Disk"
        assert unit.platform == "amazon"
        assert unit.buyer_name == "Jane"
        assert unit.buyer_phone == "555-0100"
        assert unit.sold_date == FIXED_NOW
        assert unit.warranty_registered is True
        assert unit.warranty.expiry_date == add_months(FIXED_NOW, 12)
        assert unit.warranty.registration_source == "public-api"
        assert "for platform: amazon" in unit.warranty.notes

    def test_bill_is_tagged(self, db_session):
        _register()
        unit = find_unit_by_serial("SN-100")
        bill = db.session.get(BillFile, unit.warranty.bill_file_id)

        assert bill.unit_id == unit.id
        assert bill.uploaded_by == "jane@x.com"
        assert bill.source == "public-api"
        assert bill.ip_address == "10.0.0.1"
        assert os.path.isfile(bill.path)

    def test_second_registration_is_refused(self, db_session):
        _register()
        result = _register(buyerName="Mallory", buyerEmail="m@x.com")

        assert result["success"] is False
        assert result["error"] == "AlreadyRegistered"
        assert result["status_code"] == 400
        assert db.session.query(BillFile).count() == 1
        assert find_unit_by_serial("SN-100").buyer_name == "Jane"

    def test_existing_unit_without_warranty(self, make_unit):
        unit = make_unit("SN-200", name="Portable SSD", type_capacity="1024")
        result = _register("SN-200")

        assert result["success"] is True
        db.session.expire_all()
        unit = find_unit_by_serial("SN-200")
        assert unit.name == "Portable SSD"
        assert unit.type_capacity == "1024"
        assert unit.buyer_email == "jane@x.com"

    def test_missing_bill(self, db_session):
        result = registration_service.register_warranty(_input(), None, now=FIXED_NOW)
        assert result["success"] is False
        assert result["error"] == "ValidationError"
        assert find_unit_by_serial("SN-100") is None

    def test_rejected_bill_fails_before_persistence(self, db_session, monkeypatch):
        def _lookup(serial):
            raise AssertionError("unit lookup reached with an invalid bill")

        monkeypatch.setattr(registration_service, "find_unit_by_serial", _lookup)
        result = _register(bill=_bill(name="bill.exe"))

        assert result["error"] == "ValidationError"
        assert "Unsupported bill file type" in result["message"]
        assert db.session.query(Unit).count() == 0
        assert db.session.query(BillFile).count() == 0

    def test_failed_warranty_step_restores_existing_unit(self, make_unit, monkeypatch):
        make_unit("SN-201", buyer_name="Previous", platform="offline")

        def _boom(*args, **kwargs):
            raise InternalError("Database error")

        monkeypatch.setattr(warranty_service, "submit", _boom)
        result = _register("SN-201")

        assert result["success"] is False
        db.session.expire_all()
        unit = find_unit_by_serial("SN-201")
        assert unit.buyer_name == "Previous"
        assert unit.platform == "offline"
        assert unit.sold_date is None
        assert db.session.query(BillFile).count() == 0

    def test_failed_warranty_step_compensates(self, db_session, monkeypatch):
        def _boom(*args, **kwargs):
            raise InternalError("Database error")

        monkeypatch.setattr(warranty_service, "submit", _boom)
        result = _register()

        assert result["success"] is False
        assert result["status_code"] == 500
        assert find_unit_by_serial("SN-100") is None
        assert db.session.query(BillFile).count() == 0

    def test_lost_race_is_conflict(self, make_unit, monkeypatch):
        # The winner committed between our lookup and our insert.
        make_unit("SN-300")
        monkeypatch.setattr(registration_service, "find_unit_by_serial", lambda serial: None)

        result = _register("SN-300")

        assert result["success"] is False
        assert result["error"] == "Conflict"
        assert result["status_code"] == 409
        assert db.session.query(Unit).filter_by(serial_number="SN-300").count() == 1
        assert db.session.query(Warranty).count() == 0

    @pytest.mark.parametrize("existing", [True, False])
    def test_losing_registration_keeps_winner_sale(self, db_session, make_unit, monkeypatch, existing):
        # The winner registers while the loser sits between its unit and bill steps.
        if existing:
            make_unit("SN-500")
        real_store_bill = bill_store.store_bill

        def _winner_first(upload, **kwargs):
            monkeypatch.setattr(bill_store, "store_bill", real_store_bill)
            winner = _register("SN-500", buyerName="Alice", buyerEmail="alice@x.com", platform="flipkart")
            assert winner["success"] is True
            return real_store_bill(upload, **kwargs)

        monkeypatch.setattr(bill_store, "store_bill", _winner_first)
        result = _register(
            "SN-500", buyerName="Bob", buyerEmail="bob@x.com", now=FIXED_NOW + timedelta(minutes=1)
        )

        assert result["success"] is False
        assert result["error"] == "AlreadyRegistered"

        db.session.expire_all()
        unit = find_unit_by_serial("SN-500")
        assert unit is not None
        assert unit.buyer_name == "Alice"
        assert unit.buyer_email == "alice@x.com"
        assert unit.platform == "flipkart"
        assert unit.sold_date == FIXED_NOW
        assert unit.warranty_registered is True
        assert unit.warranty.registered_by == "alice@x.com"
        assert db.session.query(BillFile).count() == 1


# =============================================================================
# STATUS CHECK
# =============================================================================


class TestCheckWarranty:

    def test_unknown_serial_is_not_found(self, db_session):
        result = registration_service.check_warranty("NOPE")
        assert result["success"] is False
        assert result["error"] == "NotFound"
        assert result["status_code"] == 404

    def test_unit_without_warranty(self, make_unit):
        make_unit("SN-400")
        result = registration_service.check_warranty("SN-400")
        assert result["success"] is True
        assert result["warranty_registered"] is False

    def test_expiry_is_persisted(self, db_session):
        _register()
        unit = find_unit_by_serial("SN-100")
        warranty_service.approve_or_set(unit, "active", actor="admin@x.com", now=FIXED_NOW)

        past_expiry = add_months(FIXED_NOW, 12) + timedelta(days=1)
        result = registration_service.check_warranty("SN-100", now=past_expiry)

        assert result["warranty"]["status"] == "expired"
        db.session.expire_all()
        assert find_unit_by_serial("SN-100").warranty.status == "expired"

    def test_view_has_buyer_and_no_bill(self, db_session):
        _register(buyerAddress="1 Main St", buyerPaymentMethod="card")
        result = registration_service.check_warranty("SN-100", now=FIXED_NOW)

        assert result["buyer"] == {
            "name": "Jane",
            "phone": "555-0100",
            "email": "jane@x.com",
            "address": "1 Main St",
            "payment_method": "card",
        }
        assert "bill_file_id" not in result["warranty"]

"""
Warranty state machine tests.

Verifies:
- Submission creates a pending warranty with expiry = registration + duration
- Allowed and rejected transitions
- Duration bounds and recomputation from the original registration date
- reconcile_expiry is idempotent and check_status persists the flip
- effective_status never writes
"""

from datetime import datetime, timedelta

import pytest

from disktrack.errors import AlreadyRegisteredError, InvalidStatusError, NotFoundError, ValidationError
from disktrack.extensions import db
from disktrack.models import Warranty
from disktrack.services import warranty_service
from disktrack.services.warranty_service import WarrantyClaim
from disktrack.time_utils import add_months

from conftest import FIXED_NOW


def _claim(**overrides) -> WarrantyClaim:
    values = {"registered_by": "jane@x.com", "registration_source": "public-api"}
    values.update(overrides)
    return WarrantyClaim(**values)


@pytest.fixture
def pending_unit(make_unit):
    unit = make_unit("SN-100")
    warranty_service.submit(unit, _claim(), now=FIXED_NOW)
    return unit


def _activate(unit, now=FIXED_NOW):
    return warranty_service.approve_or_set(unit, "active", actor="admin@x.com", now=now)


# =============================================================================
# SUBMISSION
# =============================================================================


class TestSubmit:

    def test_submit_creates_pending_with_default_duration(self, make_unit):
        unit = make_unit("SN-100")
        warranty = warranty_service.submit(unit, _claim(), now=FIXED_NOW)

        assert warranty.status == "pending"
        assert warranty.duration_months == 12
        assert warranty.registration_date == FIXED_NOW
        assert warranty.expiry_date == datetime(2027, 3, 15, 10, 0, 0)
        assert unit.warranty_registered is True

    def test_submit_twice_is_already_registered(self, pending_unit):
        with pytest.raises(AlreadyRegisteredError):
            warranty_service.submit(pending_unit, _claim(), now=FIXED_NOW)

    def test_month_end_is_clamped(self, make_unit):
        unit = make_unit("SN-101")
        warranty = warranty_service.submit(
            unit, _claim(duration_months=1), now=datetime(2026, 1, 31, 12, 0, 0)
        )
        assert warranty.expiry_date == datetime(2026, 2, 28, 12, 0, 0)

    @pytest.mark.parametrize("months", [0, -1, 61])
    def test_submit_rejects_out_of_bounds_duration(self, make_unit, months):
        unit = make_unit("SN-102")
        with pytest.raises(ValidationError):
            warranty_service.submit(unit, _claim(duration_months=months), now=FIXED_NOW)
        db.session.rollback()


# =============================================================================
# TRANSITIONS
# =============================================================================


class TestApproveOrSet:

    def test_pending_to_active(self, pending_unit):
        warranty = _activate(pending_unit)
        assert warranty.status == "active"
        assert warranty.last_modified_by == "admin@x.com"
        assert warranty.last_modified_at == FIXED_NOW

    def test_pending_to_void(self, pending_unit):
        warranty = warranty_service.approve_or_set(pending_unit, "void", actor="admin@x.com")
        assert warranty.status == "void"

    def test_pending_to_expired_is_rejected(self, pending_unit):
        with pytest.raises(InvalidStatusError):
            warranty_service.approve_or_set(pending_unit, "expired", actor="admin@x.com")

    @pytest.mark.parametrize("status", ["pending", "approved", "", "ACTIVE "])
    def test_status_outside_admin_set_is_rejected(self, pending_unit, status):
        with pytest.raises(InvalidStatusError):
            warranty_service.approve_or_set(pending_unit, status, actor="admin@x.com")

    def test_void_is_terminal(self, pending_unit):
        warranty_service.approve_or_set(pending_unit, "void", actor="admin@x.com")
        with pytest.raises(InvalidStatusError):
            _activate(pending_unit)

    def test_expired_can_be_reinstated(self, pending_unit):
        _activate(pending_unit)
        warranty_service.approve_or_set(pending_unit, "expired", actor="admin@x.com")
        warranty = _activate(pending_unit)
        assert warranty.status == "active"

    def test_unit_without_warranty_is_not_found(self, make_unit):
        unit = make_unit("SN-200")
        with pytest.raises(NotFoundError):
            _activate(unit)

    def test_notes_are_appended(self, pending_unit):
        before = pending_unit.warranty.notes
        warranty_service.approve_or_set(pending_unit, "active", actor="a@x.com", notes="Approved")
        warranty_service.approve_or_set(pending_unit, "active", actor="a@x.com", notes="Checked bill")
        notes = pending_unit.warranty.notes.splitlines()
        assert notes[-2:] == ["Approved", "Checked bill"]
        if before:
            assert notes[0] == before


class TestDurationCorrection:

    def test_expiry_recomputed_from_original_registration(self, pending_unit):
        later = FIXED_NOW + timedelta(days=40)
        warranty = warranty_service.approve_or_set(
            pending_unit, "active", actor="a@x.com", duration_months=24, now=later
        )
        assert warranty.duration_months == 24
        assert warranty.registration_date == FIXED_NOW
        assert warranty.expiry_date == add_months(FIXED_NOW, 24)

    @pytest.mark.parametrize("months", [0, 61, -3])
    def test_out_of_bounds_duration_is_rejected(self, pending_unit, months):
        with pytest.raises(ValidationError):
            warranty_service.approve_or_set(pending_unit, "active", actor="a@x.com", duration_months=months)
        assert pending_unit.warranty.status == "pending"

    def test_boundary_durations_are_accepted(self, pending_unit):
        warranty = warranty_service.approve_or_set(pending_unit, "active", actor="a@x.com", duration_months=60)
        assert warranty.expiry_date == add_months(warranty.registration_date, 60)
        warranty = warranty_service.approve_or_set(pending_unit, "active", actor="a@x.com", duration_months=1)
        assert warranty.expiry_date == add_months(warranty.registration_date, 1)

    def test_duration_ignored_when_not_activating(self, pending_unit):
        warranty = warranty_service.approve_or_set(pending_unit, "void", actor="a@x.com", duration_months=24)
        assert warranty.duration_months == 12
        assert warranty.expiry_date == add_months(warranty.registration_date, 12)


# =============================================================================
# EXPIRY RECONCILIATION
# =============================================================================


class TestReconcileExpiry:

    def test_overdue_active_is_flipped_once(self, pending_unit):
        _activate(pending_unit)
        past_expiry = pending_unit.warranty.expiry_date + timedelta(days=1)

        assert warranty_service.reconcile_expiry(pending_unit, now=past_expiry) is True
        assert pending_unit.warranty.status == "expired"
        assert pending_unit.warranty.last_modified_by == "system"

        assert warranty_service.reconcile_expiry(pending_unit, now=past_expiry) is False
        assert warranty_service.reconcile_expiry(pending_unit, now=past_expiry + timedelta(days=30)) is False
        assert pending_unit.warranty.status == "expired"

    def test_not_yet_expired_is_untouched(self, pending_unit):
        _activate(pending_unit)
        assert warranty_service.reconcile_expiry(pending_unit, now=FIXED_NOW + timedelta(days=1)) is False
        assert pending_unit.warranty.status == "active"

    def test_pending_is_never_flipped(self, pending_unit):
        far_future = FIXED_NOW + timedelta(days=5000)
        assert warranty_service.reconcile_expiry(pending_unit, now=far_future) is False
        assert pending_unit.warranty.status == "pending"

    def test_check_status_persists_expiry(self, pending_unit):
        _activate(pending_unit)
        past_expiry = pending_unit.warranty.expiry_date + timedelta(hours=1)

        first = warranty_service.check_status(pending_unit, now=past_expiry)
        second = warranty_service.check_status(pending_unit, now=past_expiry)

        assert first["warranty"]["status"] == "expired"
        assert first["warranty"]["is_expired"] is True
        assert first["warranty"]["days_remaining"] == 0
        assert second["warranty"]["status"] == "expired"

        db.session.expire_all()
        stored = db.session.query(Warranty).filter_by(unit_id=pending_unit.id).one()
        assert stored.status == "expired"

    def test_check_status_days_remaining_rounds_up(self, pending_unit):
        _activate(pending_unit)
        expiry = pending_unit.warranty.expiry_date
        view = warranty_service.check_status(pending_unit, now=expiry - timedelta(days=2, hours=3))
        assert view["warranty"]["days_remaining"] == 3
        assert view["warranty"]["is_expired"] is False

    def test_check_status_hides_bill(self, pending_unit):
        view = warranty_service.check_status(pending_unit, now=FIXED_NOW)
        assert "bill_file_id" not in view["warranty"]
        assert set(view["product"]) == {"name", "product_type", "type_capacity", "serial_number", "platform"}

    def test_check_status_without_warranty(self, make_unit):
        view = warranty_service.check_status(make_unit("SN-300"))
        assert view["warranty_registered"] is False


class TestEffectiveStatus:

    def test_overdue_active_reads_as_expired_without_writing(self, pending_unit):
        _activate(pending_unit)
        warranty = pending_unit.warranty
        past_expiry = warranty.expiry_date + timedelta(days=1)

        assert warranty_service.effective_status(warranty, past_expiry) == "expired"
        db.session.expire_all()
        assert db.session.get(Warranty, warranty.id).status == "active"


# =============================================================================
# ADMIN REGISTRATION AND QUEUE
# =============================================================================


class TestAdminRegistration:

    def test_admin_creates_active_warranty(self, make_unit):
        unit = make_unit("SN-400")
        warranty, is_update = warranty_service.register_or_update_by_admin(
            unit, status="active", duration_months=6, actor="admin@x.com", now=FIXED_NOW
        )
        assert is_update is False
        assert warranty.status == "active"
        assert warranty.registration_source == "admin"
        assert warranty.registered_by == "admin@x.com"
        assert warranty.expiry_date == add_months(FIXED_NOW, 6)

    def test_admin_update_preserves_registration(self, pending_unit):
        later = FIXED_NOW + timedelta(days=90)
        warranty, is_update = warranty_service.register_or_update_by_admin(
            pending_unit, status="active", duration_months=18, actor="admin@x.com", now=later
        )
        assert is_update is True
        assert warranty.registration_date == FIXED_NOW
        assert warranty.registered_by == "jane@x.com"
        assert warranty.registration_source == "public-api"
        assert warranty.expiry_date == add_months(FIXED_NOW, 18)

    def test_list_warranty_requests(self, pending_unit, make_unit):
        other = make_unit("SN-500")
        warranty_service.submit(other, _claim(), now=FIXED_NOW + timedelta(days=1))
        _activate(other)

        pending = warranty_service.list_warranty_requests("pending")
        everything = warranty_service.list_warranty_requests()

        assert [u["serial_number"] for u in pending["items"]] == ["SN-100"]
        assert pending["pending_count"] == 1
        assert [u["serial_number"] for u in everything["items"]] == ["SN-500", "SN-100"]

    def test_list_rejects_unknown_status(self, db_session):
        with pytest.raises(InvalidStatusError):
            warranty_service.list_warranty_requests("approved")

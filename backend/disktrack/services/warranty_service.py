# Overview: Service-layer operations for the warranty lifecycle; encapsulates business logic and database work.

"""
Warranty State Machine

================================================================================
PURPOSE: Validate and apply warranty status transitions on a unit
================================================================================

STATE MACHINE:
    pending -> active | void
    active  -> expired | void
    expired -> active | void       (admin reinstates, optionally with a corrected duration)
    void                           (terminal by convention: no transition out is offered)

RULES:
1. A unit carries at most one warranty. submit() on a unit that already has
   one raises AlreadyRegisteredError; there is no lock behind that guard.
2. expiry_date is always add_months(registration_date, duration_months).
   A duration correction recomputes it from the ORIGINAL registration date,
   never from "now".
3. Notes are an append-only log.
4. Every admin change stamps last_modified_by / last_modified_at.
5. reconcile_expiry() is the only transition that happens outside an explicit
   admin or public action. It is triggered by the public status check and is
   idempotent: once flipped, repeated calls change nothing.

Reporting code must use effective_status(), which reclassifies an overdue
active warranty as expired without writing anything.
================================================================================
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from flask import current_app

from ..extensions import db
from ..errors import AlreadyRegisteredError, InvalidStatusError, NotFoundError, ValidationError
from ..models import Unit, Warranty
from .concurrency import commit_or_raise, run_with_retry
from disktrack.time_utils import add_months, as_naive_utc, to_utc_z, utcnow


VALID_STATUSES = {"pending", "active", "expired", "void"}
ADMIN_SETTABLE_STATUSES = {"active", "expired", "void"}
WarrantyStatus = Literal["pending", "active", "expired", "void"]

ALLOWED_TRANSITIONS = {
    "pending": {"active", "void"},
    "active": {"expired", "void"},
    "expired": {"active", "void"},
    "void": set(),
}

SOURCE_PUBLIC = "public-api"
SOURCE_ADMIN = "admin"


@dataclass(frozen=True)
class WarrantyClaim:
    """What a registering party supplies when filing a warranty."""
    registered_by: str
    registration_source: str
    bill_file_id: int | None = None
    duration_months: int | None = None
    notes: str | None = None


def validate_status(status: str) -> None:
    if status not in VALID_STATUSES:
        raise InvalidStatusError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
        )


def can_transition(from_status: str, to_status: str) -> bool:
    """
    Check a status change against the state machine.

    Re-setting the current status is allowed (used for duration and note
    corrections); anything else must be listed in ALLOWED_TRANSITIONS.
    """
    validate_status(from_status)
    validate_status(to_status)
    if from_status == to_status:
        return True
    return to_status in ALLOWED_TRANSITIONS[from_status]


def validate_duration(duration_months: int) -> int:
    max_months = current_app.config["MAX_WARRANTY_MONTHS"]
    if isinstance(duration_months, bool) or not isinstance(duration_months, int):
        raise ValidationError("duration_months must be an integer")
    if duration_months <= 0 or duration_months > max_months:
        raise ValidationError(f"duration_months must be between 1 and {max_months}")
    return duration_months


def compute_expiry(registration_date: datetime, duration_months: int) -> datetime:
    return add_months(registration_date, duration_months)


def append_note(warranty: Warranty, note: str | None) -> None:
    if not note:
        return
    warranty.notes = f"{warranty.notes}\n{note}" if warranty.notes else note


def _set_duration(warranty: Warranty, duration_months: int) -> None:
    # duration and expiry are only ever written together
    warranty.duration_months = validate_duration(duration_months)
    warranty.expiry_date = compute_expiry(warranty.registration_date, warranty.duration_months)


def is_past_expiry(warranty: Warranty, now: datetime) -> bool:
    return as_naive_utc(now) > as_naive_utc(warranty.expiry_date)


def effective_status(warranty: Warranty, now: datetime | None = None) -> str:
    """Reporting view: an overdue active warranty reads as expired. Never writes."""
    now = now or utcnow()
    if warranty.status == "active" and is_past_expiry(warranty, now):
        return "expired"
    return warranty.status


# ================================================================================
# TRANSITIONS
# ================================================================================

def submit(unit: Unit, claim: WarrantyClaim, *, now: datetime | None = None) -> Warranty:
    """
    File a new warranty claim in `pending` status and persist the unit.

    Raises:
        AlreadyRegisteredError: the unit already carries a warranty
        ValidationError: duration outside (0, MAX_WARRANTY_MONTHS]
    """
    if unit.warranty is not None or unit.warranty_registered:
        raise AlreadyRegisteredError("Warranty already registered for this product")

    now = now or utcnow()
    duration = claim.duration_months
    if duration is None:
        duration = current_app.config["DEFAULT_WARRANTY_MONTHS"]

    warranty = Warranty(
        registration_date=now,
        status="pending",
        bill_file_id=claim.bill_file_id,
        registered_by=claim.registered_by,
        registration_source=claim.registration_source,
        notes=claim.notes,
    )
    _set_duration(warranty, duration)

    unit.warranty = warranty
    unit.warranty_registered = True
    commit_or_raise(conflict_message="Warranty already registered for this product")
    return warranty


def approve_or_set(
    unit: Unit,
    status: str,
    *,
    actor: str,
    duration_months: int | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> Warranty:
    """
    Admin status change: approve a pending claim, expire, void or reinstate.

    Args:
        status: target status, one of active/expired/void
        duration_months: optional correction, bounds-checked; applied when
            the target status is active, recomputing expiry from the original
            registration date
        notes: appended to the warranty's note log

    Raises:
        InvalidStatusError: status outside {active, expired, void}, or a move
            the state machine does not allow (e.g. out of void)
        NotFoundError: the unit has no warranty
        ValidationError: duration outside (0, MAX_WARRANTY_MONTHS]
    """
    if status not in ADMIN_SETTABLE_STATUSES:
        raise InvalidStatusError("Valid status is required (active, expired, void)")

    warranty = unit.warranty
    if warranty is None:
        raise NotFoundError("Warranty not registered for this product")

    if duration_months is not None:
        validate_duration(duration_months)

    if not can_transition(warranty.status, status):
        raise InvalidStatusError(
            f"Cannot change warranty status from '{warranty.status}' to '{status}'"
        )

    now = now or utcnow()
    warranty.status = status
    if status == "active" and duration_months is not None:
        _set_duration(warranty, duration_months)
    append_note(warranty, notes)
    warranty.last_modified_by = actor
    warranty.last_modified_at = now

    commit_or_raise()
    return warranty


def reconcile_expiry(unit: Unit, *, now: datetime | None = None) -> bool:
    """
    Persist active -> expired for an overdue warranty.

    Uses a conditional UPDATE so a concurrent admin change (e.g. void) is
    never overwritten. Returns True when this call flipped the status.
    """
    warranty = unit.warranty
    if warranty is None or warranty.status != "active":
        return False

    now = now or utcnow()
    if not is_past_expiry(warranty, now):
        return False

    actor = current_app.config["SYSTEM_ACTOR"]

    def _flip() -> int:
        changed = (
            db.session.query(Warranty)
            .filter(
                Warranty.id == warranty.id,
                Warranty.status == "active",
            )
            .update(
                {
                    Warranty.status: "expired",
                    Warranty.last_modified_by: actor,
                    Warranty.last_modified_at: now,
                },
                synchronize_session=False,
            )
        )
        db.session.commit()
        return changed

    changed = run_with_retry(_flip)
    db.session.refresh(warranty)
    return bool(changed)


def check_status(unit: Unit, *, now: datetime | None = None) -> dict:
    """
    Public status view of a unit's warranty.

    Runs reconcile_expiry first, so an overdue active warranty is reported
    (and from then on stored) as expired. The bill artifact is never part of
    the view.
    """
    now = now or utcnow()
    if not unit.warranty_registered or unit.warranty is None:
        return {
            "warranty_registered": False,
            "message": "Warranty not registered for this product",
        }

    reconcile_expiry(unit, now=now)
    warranty = unit.warranty

    remaining = as_naive_utc(warranty.expiry_date) - as_naive_utc(now)
    is_expired = remaining.total_seconds() < 0
    days_remaining = 0 if is_expired else math.ceil(remaining.total_seconds() / 86400)

    return {
        "warranty_registered": True,
        "warranty": {
            "status": warranty.status,
            "registration_date": to_utc_z(warranty.registration_date),
            "expiry_date": to_utc_z(warranty.expiry_date),
            "duration_months": warranty.duration_months,
            "is_expired": is_expired,
            "days_remaining": days_remaining,
        },
        "product": {
            "name": unit.name,
            "product_type": unit.product_type,
            "type_capacity": unit.type_capacity,
            "serial_number": unit.serial_number,
            "platform": unit.platform,
        },
        "buyer": unit.buyer_dict(),
    }


def register_or_update_by_admin(
    unit: Unit,
    *,
    status: str,
    duration_months: int,
    actor: str,
    notes: str | None = None,
    bill_file_id: int | None = None,
    now: datetime | None = None,
) -> tuple[Warranty, bool]:
    """
    Admin registration of a warranty, or update of the existing one.

    New warranty: registered now through the admin channel by `actor`.
    Existing warranty: registration date, registering party, channel and bill
    reference are preserved (a new bill replaces the reference); duration is
    re-applied from the original registration date; the status change must be
    allowed by the state machine.

    Returns (warranty, is_update).
    """
    validate_status(status)
    validate_duration(duration_months)
    now = now or utcnow()

    warranty = unit.warranty
    if warranty is not None:
        if not can_transition(warranty.status, status):
            raise InvalidStatusError(
                f"Cannot change warranty status from '{warranty.status}' to '{status}'"
            )
        warranty.status = status
        _set_duration(warranty, duration_months)
        if bill_file_id is not None:
            warranty.bill_file_id = bill_file_id
        append_note(warranty, notes)
        warranty.last_modified_by = actor
        warranty.last_modified_at = now
        unit.warranty_registered = True
        commit_or_raise()
        return warranty, True

    warranty = Warranty(
        registration_date=now,
        status=status,
        bill_file_id=bill_file_id,
        registered_by=actor,
        registration_source=SOURCE_ADMIN,
        notes=notes,
        last_modified_by=actor,
        last_modified_at=now,
    )
    _set_duration(warranty, duration_months)
    unit.warranty = warranty
    unit.warranty_registered = True
    commit_or_raise()
    return warranty, False


# ================================================================================
# QUERIES
# ================================================================================

def list_warranty_requests(status: str | None = None, *, limit: int = 200) -> dict:
    """
    Warranty queue for admins, newest registration first.

    USAGE:
    - Pending approvals: list_warranty_requests("pending")
    - Everything registered: list_warranty_requests()
    """
    query = (
        db.session.query(Unit)
        .join(Warranty, Warranty.unit_id == Unit.id)
        .filter(Unit.warranty_registered.is_(True))
    )
    if status:
        validate_status(status)
        query = query.filter(Warranty.status == status)

    units = query.order_by(Warranty.registration_date.desc(), Unit.id.desc()).limit(limit).all()

    pending_count = (
        db.session.query(Warranty)
        .join(Unit, Warranty.unit_id == Unit.id)
        .filter(Unit.warranty_registered.is_(True), Warranty.status == "pending")
        .count()
    )

    return {
        "items": [u.to_dict() for u in units],
        "count": len(units),
        "pending_count": pending_count,
        "status": status,
    }

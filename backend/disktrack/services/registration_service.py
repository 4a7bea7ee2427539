# Overview: Public warranty registration and status-check workflows.

"""
Registration Workflow (public)

STEPS (strict order, later steps never run after an earlier failure):
1. Look up the unit by serial; an unseen serial gets a new unit with
   placeholder name/capacity for an admin to correct later.
2. Refuse units that already carry a warranty (AlreadyRegistered).
3. Attach buyer details and platform, set the sale date to now.
4. Persist the unit.
5. Persist the bill artifact, tagged with the unit, uploader and channel.
6. warranty_service.submit(): pending warranty with a system note.
7. Persist the unit with its warranty (done by submit).

The bill name and extension are checked before step 1, so a rejected upload
never reaches persistence.

Steps 4, 5 and 6/7 are independent commits run through a Saga. Compensation
removes a stored bill. A unit created in step 4 is deleted, and an existing
unit gets its previous buyer/platform/sale fields back, but only while the
row still holds this request's sale and no warranty.

CONCURRENCY: two first registrations for the same unseen serial race in
step 4. The unique serial constraint lets one win; the loser gets a
structured Conflict result.

Every outcome is returned as a dict with `success`; nothing raises past
register_warranty() or check_warranty().
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from werkzeug.datastructures import FileStorage

from ..extensions import db
from ..errors import AlreadyRegisteredError, InternalError, ServiceError, ValidationError
from ..models import Unit, Warranty
from ..validation import AdminWarrantyInput, RegistrationInput
from . import bill_store, warranty_service
from .concurrency import commit_or_raise
from .saga import Saga
from .units_service import find_unit_by_serial, get_unit
from disktrack.time_utils import to_utc_z, utcnow

BUYER_FIELDS = (
    "buyer_name",
    "buyer_phone",
    "buyer_email",
    "buyer_address",
    "buyer_payment_method",
    "platform",
    "sold_date",
)


def _failure(exc: ServiceError) -> dict:
    result = exc.to_dict()
    result["status_code"] = exc.status_code
    return result


def _persist_unit(data: RegistrationInput, now: datetime):
    def action(ctx: dict) -> Unit:
        unit = find_unit_by_serial(data.serial_number)
        if unit is not None:
            if unit.warranty_registered:
                raise AlreadyRegisteredError("Warranty already registered for this product")
            ctx["created"] = False
            ctx["previous"] = {f: getattr(unit, f) for f in BUYER_FIELDS}
        else:
            unit = Unit(
                serial_number=data.serial_number,
                name=f"Product {data.serial_number}",
                product_type=current_app.config["PRODUCT_TYPE"],
                type_capacity=current_app.config["DEFAULT_CAPACITY"],
                add_date=now,
                warranty_registered=False,
            )
            db.session.add(unit)
            ctx["created"] = True

        unit.buyer_name = data.buyer_name
        unit.buyer_phone = data.buyer_phone
        unit.buyer_email = data.buyer_email
        unit.buyer_address = data.buyer_address or ""
        unit.buyer_payment_method = data.buyer_payment_method or ""
        unit.platform = data.platform
        unit.sold_date = now

        commit_or_raise(conflict_message="Serial number already exists")
        return unit

    def compensate(ctx: dict) -> None:
        # Only undo a row that still holds this request's sale. A concurrent
        # registration that has since claimed the unit is left alone.
        untouched = db.session.query(Unit).filter(
            Unit.id == ctx["unit"].id,
            Unit.warranty_registered.is_(False),
            Unit.buyer_email == data.buyer_email,
            Unit.platform == data.platform,
            Unit.sold_date == now,
        )
        if ctx.get("created"):
            changed = untouched.delete(synchronize_session=False)
        else:
            changed = untouched.update(
                {getattr(Unit, f): v for f, v in ctx["previous"].items()},
                synchronize_session=False,
            )
        commit_or_raise()
        if not changed:
            current_app.logger.warning(
                "Registration rollback skipped for %s: unit was claimed by another registration",
                data.serial_number,
            )

    return action, compensate


def register_warranty(
    data: RegistrationInput,
    bill: FileStorage | None,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Run the public registration workflow.

    Returns on success:
        {"success": True, "message": ..., "warranty": {registration_date,
         expiry_date, duration_months, status}}
    Returns on failure:
        {"success": False, "error": <kind>, "message": ..., "status_code": int}
    """
    now = now or utcnow()
    if bill is None or not bill.filename:
        return _failure(ValidationError("Bill file is required"))
    try:
        bill_store.check_upload(bill)
    except ValidationError as exc:
        return _failure(exc)

    persist_unit, restore_unit = _persist_unit(data, now)

    def persist_bill(ctx: dict):
        return bill_store.store_bill(
            bill,
            unit_id=ctx["unit"].id,
            uploaded_by=data.buyer_email,
            source=warranty_service.SOURCE_PUBLIC,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def discard_bill(ctx: dict) -> None:
        bill_store.discard_bill(ctx["bill"])

    def submit_claim(ctx: dict):
        claim = warranty_service.WarrantyClaim(
            registered_by=data.buyer_email,
            registration_source=warranty_service.SOURCE_PUBLIC,
            bill_file_id=ctx["bill"].id,
            duration_months=data.duration_months,
            notes=(
                f"Warranty request submitted via {warranty_service.SOURCE_PUBLIC} "
                f"on {to_utc_z(now)} for platform: {data.platform}"
            ),
        )
        return warranty_service.submit(ctx["unit"], claim, now=now)

    saga = (
        Saga(name="warranty-registration")
        .step("unit", persist_unit, restore_unit)
        .step("bill", persist_bill, discard_bill)
        .step("warranty", submit_claim)
    )

    try:
        ctx = saga.run()
    except ServiceError as exc:
        if isinstance(exc, InternalError):
            current_app.logger.error("Warranty registration failed for %s: %s", data.serial_number, exc)
        return _failure(exc)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Warranty registration error")
        return _failure(InternalError("Internal server error"))

    warranty = ctx["warranty"]
    current_app.logger.info(
        "Warranty registration submitted serial=%s platform=%s new_unit=%s",
        data.serial_number,
        data.platform,
        ctx.get("created"),
    )
    return {
        "success": True,
        "message": "Warranty registration request submitted successfully. Pending admin approval.",
        "warranty": {
            "registration_date": to_utc_z(warranty.registration_date),
            "expiry_date": to_utc_z(warranty.expiry_date),
            "duration_months": warranty.duration_months,
            "status": warranty.status,
        },
    }


def check_warranty(serial_number: str, *, now: datetime | None = None) -> dict:
    """
    Public status check by serial.

    NotFound when no unit has the serial; `warranty_registered: False` when
    the unit has no warranty; otherwise the restricted status view.
    """
    serial_number = (serial_number or "").strip()
    try:
        if not serial_number:
            raise ValidationError("Serial number is required")
        unit = find_unit_by_serial(serial_number)
        if unit is None:
            return {
                "success": False,
                "error": "NotFound",
                "message": "Product not found with this serial number",
                "status_code": 404,
            }
        view = warranty_service.check_status(unit, now=now)
    except ServiceError as exc:
        return _failure(exc)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Warranty check error")
        return _failure(InternalError("Internal server error"))

    return {"success": True, **view}


def admin_register_warranty(
    unit_id: int,
    data: AdminWarrantyInput,
    bill: FileStorage | None,
    *,
    actor: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> tuple[Warranty, bool]:
    """
    Admin registers a warranty on a unit, or updates the existing one.

    An uploaded bill is stored first and replaces the warranty's bill
    reference; if the warranty change is rejected the bill is removed again.
    Raises ServiceError subclasses; the admin route maps them.
    """
    unit = get_unit(unit_id)
    if bill is not None and bill.filename:
        bill_store.check_upload(bill)

    saga = Saga(name="admin-warranty")
    if bill is not None and bill.filename:
        saga.step(
            "bill",
            lambda ctx: bill_store.store_bill(
                bill,
                unit_id=unit.id,
                uploaded_by=actor,
                source=warranty_service.SOURCE_ADMIN,
                ip_address=ip_address,
                user_agent=user_agent,
            ),
            lambda ctx: bill_store.discard_bill(ctx["bill"]),
        )
    saga.step(
        "warranty",
        lambda ctx: warranty_service.register_or_update_by_admin(
            unit,
            status=data.status,
            duration_months=data.duration_months,
            actor=actor,
            notes=data.notes,
            bill_file_id=ctx["bill"].id if ctx.get("bill") else None,
            now=now,
        ),
    )

    return saga.run()["warranty"]

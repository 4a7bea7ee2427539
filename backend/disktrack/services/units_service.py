# backend/disktrack/services/units_service.py
"""
Unit Record Store

Create, update, look up and list active inventory units.

SERIAL NUMBERS:
- Unique across active inventory (uq_units_serial_number)
- Immutable after creation
- A uniqueness violation always surfaces as ConflictError, never as an
  overwrite of the existing unit
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Unit
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_unit
from .concurrency import commit_or_raise
from disktrack.time_utils import utcnow

UNIT_MUTABLE_FIELDS = {
    "name",
    "product_type",
    "type_capacity",
    "platform",
    "source",
    "description",
    "add_date",
    "buyer_name",
    "buyer_phone",
    "buyer_email",
    "buyer_address",
    "buyer_payment_method",
    "sold_date",
}

UNIT_POLICY = ModelValidationPolicy(
    writable_fields=UNIT_MUTABLE_FIELDS | {"serial_number"},
    required_on_create={"serial_number", "name", "type_capacity"},
)


def _enforce(patch: dict, unit: Unit | None = None) -> None:
    enforce_rules_unit(
        patch,
        capacities=current_app.config["TYPE_CAPACITIES"],
        platforms=current_app.config["SUPPORTED_PLATFORMS"],
    )

    # Checked on the merged row: the patch overlaid on the stored values.
    def merged(field):
        if field in patch:
            return patch[field]
        return getattr(unit, field) if unit is not None else None

    if merged("sold_date") is not None and not merged("platform"):
        raise ValidationError("Platform is required once a unit is sold")


def apply_unit_patch(unit: Unit, patch: dict) -> None:
    for k, v in patch.items():
        if k not in UNIT_MUTABLE_FIELDS:
            continue
        setattr(unit, k, v)


def get_unit(unit_id: int) -> Unit:
    unit = db.session.get(Unit, unit_id)
    if unit is None:
        raise NotFoundError("Product not found")
    return unit


def find_unit_by_serial(serial_number: str) -> Unit | None:
    return db.session.query(Unit).filter_by(serial_number=serial_number).first()


def get_unit_by_serial(serial_number: str) -> Unit:
    unit = find_unit_by_serial(serial_number)
    if unit is None:
        raise NotFoundError("Product not found with this serial number")
    return unit


def create_unit(payload: dict) -> Unit:
    """
    Create a unit from an admin payload.

    Raises:
        ValidationError: missing/unknown fields, capacity or platform outside the configured sets,
            or a sold unit without a platform
        ConflictError: serial number already exists
    """
    patch = validate_payload(model=Unit, payload=payload, policy=UNIT_POLICY, partial=False)
    _enforce(patch)

    unit = Unit(
        serial_number=patch["serial_number"],
        product_type=current_app.config["PRODUCT_TYPE"],
        add_date=utcnow(),
        warranty_registered=False,
    )
    apply_unit_patch(unit, patch)
    if not unit.product_type:
        unit.product_type = current_app.config["PRODUCT_TYPE"]

    db.session.add(unit)
    commit_or_raise()
    return unit


def update_unit(unit_id: int, payload: dict) -> Unit:
    """Partial update. The serial number may be echoed back but never changed."""
    unit = get_unit(unit_id)
    patch = validate_payload(model=Unit, payload=payload, policy=UNIT_POLICY, partial=True)

    if "serial_number" in patch and patch["serial_number"] != unit.serial_number:
        raise ValidationError("Serial number cannot be changed")
    _enforce(patch, unit)

    apply_unit_patch(unit, patch)
    commit_or_raise()
    return unit


def list_units(
    *,
    q: str | None = None,
    capacity: str | None = None,
    platform: str | None = None,
    buyer: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    """
    Paginated listing, newest first.

    q is a substring search over serial, name, description, buyer name and
    buyer email; buyer matches buyer name, email or phone.
    """
    page = max(page or 1, 1)
    limit = min(max(limit or 10, 1), 100)

    query = db.session.query(Unit)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(
            Unit.serial_number.ilike(like),
            Unit.name.ilike(like),
            Unit.description.ilike(like),
            Unit.buyer_name.ilike(like),
            Unit.buyer_email.ilike(like),
        ))
    if capacity:
        query = query.filter(Unit.type_capacity == capacity)
    if platform:
        query = query.filter(Unit.platform == platform.lower())
    if buyer:
        like = f"%{buyer}%"
        query = query.filter(or_(
            Unit.buyer_name.ilike(like),
            Unit.buyer_email.ilike(like),
            Unit.buyer_phone.ilike(like),
        ))

    total = query.count()
    items = (
        query.order_by(Unit.created_at.desc(), Unit.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    total_pages = max(1, (total + limit - 1) // limit)

    return {
        "items": [u.to_dict() for u in items],
        "count": len(items),
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages,
    }

"""
Return Processing Service

WHY: A returned unit leaves active inventory but its full history (buyer,
sale, warranty) must survive for audit and analytics.

MIGRATION (mark_as_return):
1. Load the unit (NotFound if absent)
2. Build a ReturnRecord copying every unit column verbatim, the embedded
   warranty, the return fields and a back-reference to the unit's identity
   and original timestamps
3. Insert the ReturnRecord
4. Delete the unit

Steps 3 and 4 are flushed in one database transaction and committed once, so
the store never holds both records or neither of them.

REPLAY SAFETY: original_product_id is unique. If a return record for the
unit already exists (an earlier attempt committed the insert but the unit
survived), that record is reused and only the delete runs. Migration can
therefore be retried without creating duplicates.

DESIGN PRINCIPLES:
- Return records are immutable apart from appending to return_notes
- No compensating rollback of an inserted return record is ever attempted
"""

from __future__ import annotations

from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..errors import InternalError, NotFoundError, ValidationError
from ..models import ReturnRecord, ReturnWarranty, Unit
from ..models.units import UNIT_COPY_FIELDS, WARRANTY_COPY_FIELDS
from .concurrency import commit_or_raise
from .units_service import find_unit_by_serial
from disktrack.time_utils import add_months, to_utc_z, utcnow


DATE_RANGES = ("today", "week", "month", "quarter")


# =============================================================================
# MIGRATION
# =============================================================================

def build_return_record(
    unit: Unit,
    *,
    return_reason: str,
    returned_by: str,
    return_notes: str | None = None,
    now: datetime | None = None,
) -> ReturnRecord:
    """Structural copy of a unit plus the return fields. Not added to the session."""
    record = ReturnRecord(
        return_date=now or utcnow(),
        return_reason=return_reason,
        return_notes=return_notes or "",
        returned_by=returned_by,
        original_product_id=unit.id,
        original_created_at=unit.created_at,
        original_updated_at=unit.updated_at,
    )
    for f in UNIT_COPY_FIELDS:
        setattr(record, f, getattr(unit, f))

    if unit.warranty is not None:
        copy = ReturnWarranty()
        for f in WARRANTY_COPY_FIELDS:
            setattr(copy, f, getattr(unit.warranty, f))
        record.warranty = copy

    return record


def mark_as_return(
    unit_id: int,
    *,
    return_reason: str,
    return_notes: str | None = None,
    returned_by: str | None = None,
    now: datetime | None = None,
) -> ReturnRecord:
    """
    Move a unit from active inventory into the return archive.

    Args:
        unit_id: identity of the unit to archive
        return_reason: required
        return_notes: optional free text
        returned_by: acting identity; defaults to SYSTEM_ACTOR

    Returns:
        The ReturnRecord (new, or the existing one on replay)

    Raises:
        ValidationError: missing return reason
        NotFoundError: unit does not exist
        InternalError: the transaction could not be committed (nothing changed)
    """
    if not return_reason or not return_reason.strip():
        raise ValidationError("Return reason is required")
    returned_by = returned_by or current_app.config["SYSTEM_ACTOR"]

    unit = db.session.get(Unit, unit_id)
    if unit is None:
        raise NotFoundError("Product not found")

    record = (
        db.session.query(ReturnRecord)
        .filter_by(original_product_id=unit.id)
        .first()
    )
    replay = record is not None
    if not replay:
        record = build_return_record(
            unit,
            return_reason=return_reason.strip(),
            returned_by=returned_by,
            return_notes=return_notes,
            now=now,
        )
        db.session.add(record)

    db.session.delete(unit)
    commit_or_raise(conflict_message="Return record already exists for this product")

    if replay:
        current_app.logger.warning(
            "Return migration replayed for unit %s; reused return record %s",
            unit_id,
            record.id,
        )
    current_app.logger.info(
        "Unit %s (%s) moved to returns as record %s by %s",
        unit_id,
        record.serial_number,
        record.id,
        returned_by,
    )
    return record


# =============================================================================
# ARCHIVE READS
# =============================================================================

def _date_range_start(date_range: str, now: datetime) -> datetime | None:
    if date_range == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if date_range == "week":
        return now - timedelta(days=7)
    if date_range == "month":
        return add_months(now, -1)
    if date_range == "quarter":
        return add_months(now, -3)
    return None


def list_returns(
    *,
    q: str | None = None,
    capacity: str | None = None,
    platform: str | None = None,
    source: str | None = None,
    reason: str | None = None,
    date_range: str | None = None,
    page: int = 1,
    limit: int = 10,
    now: datetime | None = None,
) -> dict:
    """
    Paginated return archive, newest return first, plus filter vocabularies
    (distinct sources and reasons) and total / this-month counts.
    """
    now = now or utcnow()
    page = max(page or 1, 1)
    limit = min(max(limit or 10, 1), 100)

    if date_range and date_range not in DATE_RANGES:
        raise ValidationError(f"date_range must be one of: {', '.join(DATE_RANGES)}")

    query = db.session.query(ReturnRecord)
    if q:
        like = f"%{q}%"
        query = query.filter(or_(
            ReturnRecord.serial_number.ilike(like),
            ReturnRecord.name.ilike(like),
            ReturnRecord.description.ilike(like),
            ReturnRecord.buyer_name.ilike(like),
            ReturnRecord.buyer_email.ilike(like),
        ))
    if capacity:
        query = query.filter(ReturnRecord.type_capacity == capacity)
    if platform:
        query = query.filter(ReturnRecord.platform == platform.lower())
    if source:
        query = query.filter(ReturnRecord.source == source)
    if reason:
        query = query.filter(ReturnRecord.return_reason.ilike(f"%{reason}%"))
    if date_range:
        start = _date_range_start(date_range, now)
        query = query.filter(ReturnRecord.return_date >= start)
        if date_range == "today":
            query = query.filter(ReturnRecord.return_date < start + timedelta(days=1))

    total = query.count()
    items = (
        query.order_by(ReturnRecord.return_date.desc(), ReturnRecord.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    sources = [
        row[0] for row in db.session.query(ReturnRecord.source)
        .filter(ReturnRecord.source.isnot(None), ReturnRecord.source != "")
        .distinct()
        .all()
    ]
    reasons = [row[0] for row in db.session.query(ReturnRecord.return_reason).distinct().all()]

    this_month = (
        db.session.query(ReturnRecord)
        .filter(ReturnRecord.return_date >= add_months(now, -1))
        .count()
    )

    return {
        "items": [r.to_dict() for r in items],
        "count": len(items),
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": max(1, (total + limit - 1) // limit),
        "stats": {"total": total, "this_month": this_month},
        "sources": sorted(sources),
        "reasons": sorted(reasons),
    }


def get_return(return_id: int) -> dict:
    """Return record plus the active unit currently holding the same serial, if any."""
    record = db.session.get(ReturnRecord, return_id)
    if record is None:
        raise NotFoundError("Return record not found")

    data = record.to_dict()
    active = find_unit_by_serial(record.serial_number) if record.serial_number else None
    data["active_unit"] = active.to_dict() if active else None
    return data


def append_return_note(return_id: int, note: str, *, actor: str) -> ReturnRecord:
    """Audit-only appension; every other column of a return record is frozen."""
    note = (note or "").strip()
    if not note:
        raise ValidationError("Note is required")

    record = db.session.get(ReturnRecord, return_id)
    if record is None:
        raise NotFoundError("Return record not found")

    entry = f"[{to_utc_z(utcnow())} {actor}] {note}"
    record.return_notes = f"{record.return_notes}\n{entry}" if record.return_notes else entry
    try:
        commit_or_raise()
    except InternalError:
        current_app.logger.error("Failed to append note to return record %s", return_id)
        raise
    return record

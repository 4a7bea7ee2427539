# Overview: Service-layer operations for customer inquiries; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Inquiry, Unit
from ..models.inquiries import INQUIRY_TYPES
from ..validation import InquiryInput
from .concurrency import commit_or_raise
from disktrack.time_utils import utcnow


def _query_type_for(subject: str) -> str:
    candidate = (subject or "").strip().lower()
    return candidate if candidate in INQUIRY_TYPES else "general-inquiry"


def _get(inquiry_id: int) -> Inquiry:
    inquiry = db.session.get(Inquiry, inquiry_id)
    if inquiry is None:
        raise NotFoundError("Query not found")
    return inquiry


def _units_by_serial(serials: set[str]) -> dict[str, Unit]:
    if not serials:
        return {}
    units = db.session.query(Unit).filter(Unit.serial_number.in_(serials)).all()
    return {u.serial_number: u for u in units}


def create_inquiry(data: InquiryInput) -> Inquiry:
    """
    File a public inquiry.

    The serial number is stored as given; it is not required to match a unit.
    """
    inquiry = Inquiry(
        name=data.name,
        email=data.email,
        subject=data.subject,
        description=data.description,
        product_serial_number=data.product_serial_number,
        query_type=_query_type_for(data.subject),
        source="contact-form",
        is_resolved=False,
    )
    db.session.add(inquiry)
    commit_or_raise()
    return inquiry


def list_inquiries(*, search: str | None = None, page: int = 1, limit: int = 20) -> dict:
    """Newest first; each item carries the linked unit (or None)."""
    page = max(page or 1, 1)
    limit = min(max(limit or 20, 1), 100)

    query = db.session.query(Inquiry)
    if search:
        like = f"%{search}%"
        query = query.filter(or_(
            Inquiry.name.ilike(like),
            Inquiry.description.ilike(like),
            Inquiry.product_serial_number.ilike(like),
        ))

    total = query.count()
    inquiries = (
        query.order_by(Inquiry.created_at.desc(), Inquiry.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    units = _units_by_serial({i.product_serial_number for i in inquiries if i.product_serial_number})
    items = []
    for inquiry in inquiries:
        data = inquiry.to_dict()
        unit = units.get(inquiry.product_serial_number)
        data["unit"] = unit.to_dict() if unit else None
        items.append(data)

    return {
        "items": items,
        "count": len(items),
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": max(1, (total + limit - 1) // limit),
    }


def get_inquiry(inquiry_id: int) -> dict:
    inquiry = _get(inquiry_id)
    data = inquiry.to_dict()
    unit = None
    if inquiry.product_serial_number:
        unit = db.session.query(Unit).filter_by(serial_number=inquiry.product_serial_number).first()
    data["unit"] = unit.to_dict() if unit else None
    return data


def toggle_resolved(inquiry_id: int, *, actor: str) -> Inquiry:
    """Flip the resolved flag; resolution time and resolver are cleared on reopen."""
    inquiry = _get(inquiry_id)
    inquiry.is_resolved = not inquiry.is_resolved
    if inquiry.is_resolved:
        inquiry.resolved_at = utcnow()
        inquiry.resolved_by = actor
    else:
        inquiry.resolved_at = None
        inquiry.resolved_by = None
    commit_or_raise()
    return inquiry


def update_admin_notes(inquiry_id: int, notes: str | None) -> Inquiry:
    if notes is not None and not isinstance(notes, str):
        raise ValidationError("notes must be a string")
    inquiry = _get(inquiry_id)
    inquiry.admin_notes = notes
    commit_or_raise()
    return inquiry


def delete_inquiry(inquiry_id: int) -> None:
    inquiry = _get(inquiry_id)
    db.session.delete(inquiry)
    commit_or_raise()

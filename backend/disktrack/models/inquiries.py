from __future__ import annotations

from ..extensions import db
from disktrack.time_utils import to_utc_z, utcnow


INQUIRY_TYPES = (
    "technical-support",
    "warranty-claim",
    "bulk-order",
    "general-inquiry",
    "partnership",
)


class Inquiry(db.Model):
    """
    Customer-submitted contact/support message.

    product_serial_number is a soft cross-reference: the unit may not exist,
    or may have been archived since the inquiry was filed.
    """
    __tablename__ = "inquiries"
    __table_args__ = (
        db.Index("ix_inquiries_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    subject = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    product_serial_number = db.Column(db.String(128), nullable=True, index=True)

    query_type = db.Column(db.String(32), nullable=False, default="general-inquiry")
    source = db.Column(db.String(64), nullable=False, default="contact-form")

    is_resolved = db.Column(db.Boolean, nullable=False, default=False, index=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolved_by = db.Column(db.String(255), nullable=True)
    admin_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "subject": self.subject,
            "description": self.description,
            "product_serial_number": self.product_serial_number,
            "query_type": self.query_type,
            "source": self.source,
            "is_resolved": self.is_resolved,
            "resolved_at": to_utc_z(self.resolved_at),
            "resolved_by": self.resolved_by,
            "admin_notes": self.admin_notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

from __future__ import annotations

from ..extensions import db
from .units import UnitFieldsMixin, WarrantyFieldsMixin
from disktrack.time_utils import to_utc_z, utcnow


class ReturnRecord(UnitFieldsMixin, db.Model):
    """
    Archived copy of a Unit that has left active inventory.

    Written only by return_service.mark_as_return. Every unit column is copied
    verbatim, the warranty is preserved in ReturnWarranty, and
    original_product_id points back at the deleted Unit.

    IMMUTABLE: apart from appending to return_notes, never updated.

    original_product_id is unique: a migration that is replayed after a crash
    between insert and delete finds the existing record instead of writing a
    second one.
    """
    __tablename__ = "return_records"
    __table_args__ = (
        db.UniqueConstraint("original_product_id", name="uq_return_records_original_product"),
        db.Index("ix_return_records_return_date", "return_date"),
        db.Index("ix_return_records_returned_by", "returned_by"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    serial_number = db.Column(db.String(128), nullable=False, index=True)

    # Return-specific fields
    return_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    return_reason = db.Column(db.Text, nullable=False)
    return_notes = db.Column(db.Text, nullable=True)
    returned_by = db.Column(db.String(255), nullable=False)

    # Back-reference to the original unit (no FK: the unit row is gone)
    original_product_id = db.Column(db.Integer, nullable=False)
    original_created_at = db.Column(db.DateTime(timezone=True), nullable=True)
    original_updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    warranty = db.relationship(
        "ReturnWarranty",
        uselist=False,
        back_populates="return_record",
        cascade="all, delete-orphan",
        lazy="joined",
    )

    def __repr__(self) -> str:
        return f"<ReturnRecord id={self.id} serial={self.serial_number!r} original={self.original_product_id}>"

    def to_dict(self) -> dict:
        data = {"id": self.id}
        data.update(self.unit_fields_dict())
        data.update({
            "warranty": self.warranty.to_dict() if self.warranty else None,
            "return_date": to_utc_z(self.return_date),
            "return_reason": self.return_reason,
            "return_notes": self.return_notes,
            "returned_by": self.returned_by,
            "original_product_id": self.original_product_id,
            "original_created_at": to_utc_z(self.original_created_at),
            "original_updated_at": to_utc_z(self.original_updated_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        })
        return data


class ReturnWarranty(WarrantyFieldsMixin, db.Model):
    """Verbatim copy of the warranty a unit carried when it was returned."""
    __tablename__ = "return_warranties"
    __table_args__ = (
        db.UniqueConstraint("return_record_id", name="uq_return_warranties_record"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_record_id = db.Column(
        db.Integer,
        db.ForeignKey("return_records.id", ondelete="CASCADE"),
        nullable=False,
    )

    return_record = db.relationship("ReturnRecord", back_populates="warranty")

    def to_dict(self) -> dict:
        return self.warranty_fields_dict()

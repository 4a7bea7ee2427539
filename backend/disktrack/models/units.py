from __future__ import annotations

from sqlalchemy.orm import declared_attr

from ..extensions import db
from disktrack.time_utils import to_utc_z, utcnow


WARRANTY_STATUSES = ("pending", "active", "expired", "void")
REGISTRATION_SOURCES = ("public-api", "admin")


class UnitFieldsMixin:
    """
    Column group shared by active units and archived return records.

    ReturnRecord is a structural copy of Unit, so both tables are built from
    the same column definitions. Uniqueness of serial_number is declared on
    Unit only: an archived serial may be re-added to active inventory.
    """

    name = db.Column(db.String(255), nullable=False)
    product_type = db.Column(db.String(64), nullable=False, default="Disk", index=True)
    type_capacity = db.Column(db.String(32), nullable=False)
    platform = db.Column(db.String(32), nullable=True, index=True)  # stored lowercase
    source = db.Column(db.String(128), nullable=True, index=True)   # supplier label
    description = db.Column(db.Text, nullable=True)
    add_date = db.Column(db.DateTime(timezone=True), nullable=True, default=utcnow)

    # Buyer (embedded)
    buyer_name = db.Column(db.String(255), nullable=True)
    buyer_phone = db.Column(db.String(64), nullable=True)
    buyer_email = db.Column(db.String(255), nullable=True)
    buyer_address = db.Column(db.Text, nullable=True)
    buyer_payment_method = db.Column(db.String(64), nullable=True)

    # A unit is "sold" iff sold_date is set
    sold_date = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    # Mirrors presence of the embedded warranty for fast filtering
    warranty_registered = db.Column(db.Boolean, nullable=False, default=False, index=True)

    @property
    def is_sold(self) -> bool:
        return self.sold_date is not None

    def buyer_dict(self) -> dict:
        return {
            "name": self.buyer_name,
            "phone": self.buyer_phone,
            "email": self.buyer_email,
            "address": self.buyer_address,
            "payment_method": self.buyer_payment_method,
        }

    def unit_fields_dict(self) -> dict:
        return {
            "serial_number": self.serial_number,
            "name": self.name,
            "product_type": self.product_type,
            "type_capacity": self.type_capacity,
            "platform": self.platform,
            "source": self.source,
            "description": self.description,
            "add_date": to_utc_z(self.add_date),
            "buyer": self.buyer_dict(),
            "sold_date": to_utc_z(self.sold_date),
            "is_sold": self.is_sold,
            "warranty_registered": self.warranty_registered,
        }


# Column names copied verbatim from a Unit into a ReturnRecord.
UNIT_COPY_FIELDS = (
    "serial_number",
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
    "warranty_registered",
)


class WarrantyFieldsMixin:
    """
    Column group of the embedded warranty sub-record.

    expiry_date is derived (registration_date + duration_months) and is only
    ever written by warranty_service alongside duration_months.
    """

    registration_date = db.Column(db.DateTime(timezone=True), nullable=False)
    expiry_date = db.Column(db.DateTime(timezone=True), nullable=False)
    duration_months = db.Column(db.Integer, nullable=False, default=12)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    registered_by = db.Column(db.String(255), nullable=False)  # customer email or admin identity
    registration_source = db.Column(db.String(16), nullable=False)  # public-api | admin

    # Append-only log, entries separated by newlines
    notes = db.Column(db.Text, nullable=True)

    last_modified_by = db.Column(db.String(255), nullable=True)
    last_modified_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @declared_attr
    def bill_file_id(cls):
        return db.Column(db.Integer, db.ForeignKey("bill_files.id"), nullable=True)

    def warranty_fields_dict(self) -> dict:
        return {
            "registration_date": to_utc_z(self.registration_date),
            "expiry_date": to_utc_z(self.expiry_date),
            "duration_months": self.duration_months,
            "status": self.status,
            "bill_file_id": self.bill_file_id,
            "registered_by": self.registered_by,
            "registration_source": self.registration_source,
            "notes": self.notes,
            "last_modified_by": self.last_modified_by,
            "last_modified_at": to_utc_z(self.last_modified_at),
        }


# Column names copied verbatim from a Warranty into a ReturnWarranty.
WARRANTY_COPY_FIELDS = (
    "registration_date",
    "expiry_date",
    "duration_months",
    "status",
    "bill_file_id",
    "registered_by",
    "registration_source",
    "notes",
    "last_modified_by",
    "last_modified_at",
)


class Unit(UnitFieldsMixin, db.Model):
    """
    One physical inventory unit (disk), tracked by serial number.

    Created by an admin or by the first public warranty registration that
    references an unseen serial. Destroyed only by return_service.mark_as_return,
    which archives it as a ReturnRecord in the same transaction.
    """
    __tablename__ = "units"
    __table_args__ = (
        db.UniqueConstraint("serial_number", name="uq_units_serial_number"),
        db.Index("ix_units_serial_platform", "serial_number", "platform"),
        db.Index("ix_units_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Immutable after creation
    serial_number = db.Column(db.String(128), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    warranty = db.relationship(
        "Warranty",
        uselist=False,
        back_populates="unit",
        cascade="all, delete-orphan",
        lazy="joined",
    )

    def __repr__(self) -> str:
        return f"<Unit id={self.id} serial={self.serial_number!r} platform={self.platform!r}>"

    def to_dict(self) -> dict:
        data = {"id": self.id}
        data.update(self.unit_fields_dict())
        data["warranty"] = self.warranty.to_dict() if self.warranty else None
        data["created_at"] = to_utc_z(self.created_at)
        data["updated_at"] = to_utc_z(self.updated_at)
        return data


class Warranty(WarrantyFieldsMixin, db.Model):
    """
    Warranty embedded in a Unit (at most one per unit).

    STATE MACHINE (see services/warranty_service.py):
        pending -> active | void
        active  -> expired | void
        expired -> active | void
        void    (terminal by convention)
    """
    __tablename__ = "warranties"
    __table_args__ = (
        db.UniqueConstraint("unit_id", name="uq_warranties_unit_id"),
        db.Index("ix_warranties_registration_date", "registration_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id", ondelete="CASCADE"), nullable=False)

    unit = db.relationship("Unit", back_populates="warranty")
    bill_file = db.relationship("BillFile", foreign_keys="Warranty.bill_file_id")

    def to_dict(self) -> dict:
        return self.warranty_fields_dict()

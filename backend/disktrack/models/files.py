from __future__ import annotations

from ..extensions import db
from disktrack.time_utils import to_utc_z, utcnow


class BillFile(db.Model):
    """
    Metadata for an uploaded bill artifact.

    The bytes live in the external bill store (services/bill_store.py);
    `path` is that store's locator and is never exposed on public endpoints.
    unit_id is a plain indexed integer: the unit may later be archived.
    """
    __tablename__ = "bill_files"
    __table_args__ = (
        db.Index("ix_bill_files_unit_type", "unit_id", "file_type"),
        db.Index("ix_bill_files_uploaded_at", "uploaded_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    filename = db.Column(db.String(255), nullable=False)       # storage identifier
    original_name = db.Column(db.String(255), nullable=False)
    mimetype = db.Column(db.String(128), nullable=False)
    size = db.Column(db.Integer, nullable=False)
    path = db.Column(db.String(1024), nullable=False)          # storage locator

    file_type = db.Column(db.String(32), nullable=False, default="warranty_bill")  # warranty_bill | other
    uploaded_by = db.Column(db.String(255), nullable=False)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    unit_id = db.Column(db.Integer, nullable=True, index=True)

    # Client context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)
    source = db.Column(db.String(16), nullable=False, default="public-api")  # public-api | admin

    def to_dict(self, include_locator: bool = False) -> dict:
        data = {
            "id": self.id,
            "filename": self.filename,
            "original_name": self.original_name,
            "mimetype": self.mimetype,
            "size": self.size,
            "file_type": self.file_type,
            "uploaded_by": self.uploaded_by,
            "uploaded_at": to_utc_z(self.uploaded_at),
            "unit_id": self.unit_id,
            "source": self.source,
        }
        if include_locator:
            data["path"] = self.path
        return data

from __future__ import annotations

from ..extensions import db
from disktrack.time_utils import to_utc_z, utcnow


class RateLimitHit(db.Model):
    """
    One counted request against a public, rate-limited endpoint.

    Backing table of SqlRateLimitStore. Shared by every worker process that
    talks to the same database, so the window survives restarts.

    IMMUTABLE: rows are only inserted and, once outside every window,
    purged by `flask maintenance cleanup-rate-limits`.
    """
    __tablename__ = "rate_limit_hits"
    __table_args__ = (
        db.Index("ix_rate_limit_hits_bucket_key_at", "bucket", "key", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bucket = db.Column(db.String(64), nullable=False)   # e.g. "public-warranty"
    key = db.Column(db.String(128), nullable=False)     # caller address
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bucket": self.bucket,
            "key": self.key,
            "occurred_at": to_utc_z(self.occurred_at),
        }

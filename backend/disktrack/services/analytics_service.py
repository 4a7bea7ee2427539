# Overview: Service-layer operations for dashboard analytics; read-only aggregation over units, returns and inquiries.

"""
Analytics Aggregator

READ ONLY: nothing here writes. Overdue active warranties are reported as
expired through warranty_service.effective_status(); the stored status is
left for reconcile_expiry() to flip.

POPULATIONS:
- Units: filtered by date range (on created_at), platform, capacity, source
  and warranty status, read once and aggregated in a single pass.
- Returns and inquiries: capped windows (ANALYTICS_WINDOW rows, newest
  first) that are NOT filtered by the unit predicate. Return counts per
  platform/capacity/source are attributed from each return record's own
  copied fields. This is a known limitation of the dashboard.

TREND: six calendar months ending with the current one. Every series comes
from count queries per month and is independent of ANALYTICS_WINDOW.

FAILURE POLICY: dashboard_stats() never fails outright. If the full
computation raises, minimal totals are returned with degraded=True.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import ValidationError
from ..models import Inquiry, ReturnRecord, Unit, Warranty
from .warranty_service import VALID_STATUSES, effective_status
from disktrack.time_utils import add_months, as_naive_utc, month_start, to_utc_z, utcnow


DATE_RANGES = ("all", "week", "month", "quarter", "year")
WARRANTY_FILTERS = ("registered", "not_registered", *sorted(VALID_STATUSES))

TREND_MONTHS = 6
RECENT_UNITS = 10
RECENT_RETURNS = 5
RECENT_WARRANTIES = 10
TOP_PLATFORMS = 5
TOP_CAPACITIES = 5
TOP_SOURCES = 10

DEGRADED_NOTICE = "Detailed analytics are temporarily unavailable; showing basic totals only."


@dataclass(frozen=True)
class StatsFilter:
    date_range: str = "all"
    platform: str | None = None
    capacity: str | None = None
    source: str | None = None
    warranty_status: str | None = None

    @classmethod
    def from_args(cls, args) -> "StatsFilter":
        def _arg(name: str) -> str | None:
            value = (args.get(name) or "").strip()
            return None if not value or value == "all" else value

        date_range = (args.get("dateRange") or args.get("date_range") or "all").strip().lower()
        if date_range not in DATE_RANGES:
            raise ValidationError(f"dateRange must be one of: {', '.join(DATE_RANGES)}")

        warranty_status = _arg("warrantyStatus") or _arg("warranty_status")
        if warranty_status and warranty_status not in WARRANTY_FILTERS:
            raise ValidationError(f"warrantyStatus must be one of: {', '.join(WARRANTY_FILTERS)}")

        platform = _arg("platform")
        return cls(
            date_range=date_range,
            platform=platform.lower() if platform else None,
            capacity=_arg("capacity"),
            source=_arg("source"),
            warranty_status=warranty_status,
        )


def _range_start(date_range: str, now: datetime) -> datetime | None:
    if date_range == "week":
        return now - timedelta(days=7)
    if date_range == "month":
        return add_months(now, -1)
    if date_range == "quarter":
        return add_months(now, -3)
    if date_range == "year":
        return add_months(now, -12)
    return None


def _apply_dimensions(query, flt: StatsFilter):
    if flt.platform:
        query = query.filter(Unit.platform == flt.platform)
    if flt.capacity:
        query = query.filter(Unit.type_capacity == flt.capacity)
    if flt.source:
        query = query.filter(Unit.source == flt.source)
    return query


def _filtered_units(flt: StatsFilter, now: datetime) -> list[Unit]:
    query = _apply_dimensions(db.session.query(Unit), flt)

    start = _range_start(flt.date_range, now)
    if start is not None:
        query = query.filter(Unit.created_at >= start)

    if flt.warranty_status == "registered":
        query = query.filter(Unit.warranty_registered.is_(True))
    elif flt.warranty_status == "not_registered":
        query = query.filter(Unit.warranty_registered.is_(False))
    elif flt.warranty_status:
        query = query.join(Warranty, Warranty.unit_id == Unit.id).filter(Warranty.status == flt.warranty_status)

    return (
        query.order_by(Unit.created_at.desc(), Unit.id.desc())
        .limit(current_app.config["ANALYTICS_UNIT_LIMIT"])
        .all()
    )


def _return_window() -> list[ReturnRecord]:
    return (
        db.session.query(ReturnRecord)
        .order_by(ReturnRecord.return_date.desc(), ReturnRecord.id.desc())
        .limit(current_app.config["ANALYTICS_WINDOW"])
        .all()
    )


def _inquiry_window() -> list[Inquiry]:
    return (
        db.session.query(Inquiry)
        .order_by(Inquiry.created_at.desc(), Inquiry.id.desc())
        .limit(current_app.config["ANALYTICS_WINDOW"])
        .all()
    )


def _percentage(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


def _dimension_rows(
    totals: Counter,
    sold: Counter,
    warranties: Counter,
    returns: Counter,
    filtered_total: int,
) -> list[dict]:
    rows = [
        {
            "name": name,
            "total": totals[name],
            "sold": sold[name],
            "warranties": warranties[name],
            "returns": returns[name],
            "percentage": _percentage(totals[name], filtered_total),
        }
        for name in set(totals) | set(returns)
    ]
    rows.sort(key=lambda r: (-r["total"], r["name"]))
    return rows


def _trend(flt: StatsFilter, now: datetime) -> list[dict]:
    series = []
    for offset in range(-(TREND_MONTHS - 1), 1):
        start = month_start(now, offset)
        end = month_start(now, offset + 1)

        sales = _apply_dimensions(
            db.session.query(func.count(Unit.id)).filter(
                Unit.sold_date.isnot(None),
                Unit.sold_date >= start,
                Unit.sold_date < end,
            ),
            flt,
        ).scalar()

        registrations = _apply_dimensions(
            db.session.query(func.count(Warranty.id))
            .join(Unit, Warranty.unit_id == Unit.id)
            .filter(Warranty.registration_date >= start, Warranty.registration_date < end),
            flt,
        ).scalar()

        returned = db.session.query(func.count(ReturnRecord.id)).filter(
            ReturnRecord.return_date >= start,
            ReturnRecord.return_date < end,
        ).scalar()

        series.append({
            "month": start.strftime("%b %Y"),
            "sales": int(sales or 0),
            "returns": int(returned or 0),
            "warranties": int(registrations or 0),
        })
    return series


def _compute(flt: StatsFilter, now: datetime) -> dict:
    units = _filtered_units(flt, now)
    returns = _return_window()
    inquiries = _inquiry_window()

    total = len(units)
    sold_total = 0
    warranty_breakdown = Counter()

    by_platform, by_capacity, by_source = Counter(), Counter(), Counter()
    sold_platform, sold_capacity, sold_source = Counter(), Counter(), Counter()
    war_platform, war_capacity, war_source = Counter(), Counter(), Counter()

    for unit in units:
        platform = unit.platform or "unknown"
        capacity = unit.type_capacity or "unknown"
        source = unit.source or "unknown"

        by_platform[platform] += 1
        by_capacity[capacity] += 1
        by_source[source] += 1

        if unit.is_sold:
            sold_total += 1
            sold_platform[platform] += 1
            sold_capacity[capacity] += 1
            sold_source[source] += 1

        if unit.warranty_registered and unit.warranty is not None:
            warranty_breakdown["registered"] += 1
            warranty_breakdown[effective_status(unit.warranty, now)] += 1
            war_platform[platform] += 1
            war_capacity[capacity] += 1
            war_source[source] += 1

    ret_platform, ret_capacity, ret_source = Counter(), Counter(), Counter()
    for record in returns:
        ret_platform[record.platform or "unknown"] += 1
        ret_capacity[record.type_capacity or "unknown"] += 1
        ret_source[record.source or "unknown"] += 1

    platforms = _dimension_rows(by_platform, sold_platform, war_platform, ret_platform, total)
    capacities = _dimension_rows(by_capacity, sold_capacity, war_capacity, ret_capacity, total)
    sources = _dimension_rows(by_source, sold_source, war_source, ret_source, total)

    month_begin = month_start(now)
    week_begin = now - timedelta(days=7)
    inquiry_stats = {
        "total": len(inquiries),
        "this_month": sum(1 for i in inquiries if as_naive_utc(i.created_at) >= month_begin),
        "this_week": sum(1 for i in inquiries if as_naive_utc(i.created_at) >= week_begin),
        "unresolved": sum(1 for i in inquiries if not i.is_resolved),
    }

    with_warranty = [u for u in units if u.warranty is not None]
    with_warranty.sort(key=lambda u: as_naive_utc(u.warranty.registration_date), reverse=True)

    registered = warranty_breakdown["registered"]
    return {
        "filters": asdict(flt),
        "generated_at": to_utc_z(now),
        "overview": {
            "total_units": total,
            "sold": sold_total,
            "unsold": total - sold_total,
            "sold_percentage": _percentage(sold_total, total),
            "total_returns": len(returns),
            "total_inquiries": len(inquiries),
        },
        "warranty": {
            "registered": registered,
            "not_registered": total - registered,
            "active": warranty_breakdown["active"],
            "expired": warranty_breakdown["expired"],
            "pending": warranty_breakdown["pending"],
            "void": warranty_breakdown["void"],
            "registration_rate": _percentage(registered, total),
        },
        "platforms": platforms,
        "capacities": capacities,
        "sources": sources,
        "top": {
            "platforms": platforms[:TOP_PLATFORMS],
            "capacities": capacities[:TOP_CAPACITIES],
            "sources": sources[:TOP_SOURCES],
        },
        "trend": _trend(flt, now),
        "recent": {
            "units": [u.to_dict() for u in units[:RECENT_UNITS]],
            "returns": [r.to_dict() for r in returns[:RECENT_RETURNS]],
            "warranties": [
                {
                    "unit_id": u.id,
                    "serial_number": u.serial_number,
                    "buyer_name": u.buyer_name,
                    "platform": u.platform,
                    "status": effective_status(u.warranty, now),
                    "registration_date": to_utc_z(u.warranty.registration_date),
                    "expiry_date": to_utc_z(u.warranty.expiry_date),
                }
                for u in with_warranty[:RECENT_WARRANTIES]
            ],
        },
        "inquiries": inquiry_stats,
        "degraded": False,
    }


def minimal_counts() -> dict:
    return {
        "total_units": db.session.query(func.count(Unit.id)).scalar() or 0,
        "total_sold": db.session.query(func.count(Unit.id)).filter(Unit.sold_date.isnot(None)).scalar() or 0,
        "total_returns": db.session.query(func.count(ReturnRecord.id)).scalar() or 0,
        "total_inquiries": db.session.query(func.count(Inquiry.id)).scalar() or 0,
    }


def dashboard_stats(flt: StatsFilter | None = None, *, now: datetime | None = None) -> dict:
    """
    Full dashboard aggregation for the given filter.

    Falls back to minimal_counts() with degraded=True if anything in the
    full computation fails.
    """
    flt = flt or StatsFilter()
    now = as_naive_utc(now or utcnow())
    try:
        return _compute(flt, now)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Dashboard analytics failed; serving degraded totals")

    return {
        "filters": asdict(flt),
        "generated_at": to_utc_z(now),
        "overview": minimal_counts(),
        "degraded": True,
        "notice": DEGRADED_NOTICE,
    }


def basic_stats(*, now: datetime | None = None) -> dict:
    """Unfiltered totals with the warranty breakdown over every active unit."""
    now = as_naive_utc(now or utcnow())

    counts = minimal_counts()
    registered = (
        db.session.query(func.count(Unit.id)).filter(Unit.warranty_registered.is_(True)).scalar() or 0
    )

    breakdown = Counter()
    for warranty in db.session.query(Warranty).all():
        breakdown[effective_status(warranty, now)] += 1

    unresolved = (
        db.session.query(func.count(Inquiry.id)).filter(Inquiry.is_resolved.is_(False)).scalar() or 0
    )

    return {
        "total_units": counts["total_units"],
        "sold": counts["total_sold"],
        "unsold": counts["total_units"] - counts["total_sold"],
        "warranty_registered": registered,
        "warranty_not_registered": counts["total_units"] - registered,
        "active_warranties": breakdown["active"],
        "pending_warranties": breakdown["pending"],
        "expired_warranties": breakdown["expired"],
        "void_warranties": breakdown["void"],
        "total_returns": counts["total_returns"],
        "total_inquiries": counts["total_inquiries"],
        "unresolved_inquiries": unresolved,
    }

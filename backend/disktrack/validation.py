from __future__ import annotations
from datetime import datetime
import re

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from disktrack.errors import ValidationError
from disktrack.time_utils import parse_iso_datetime


EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - ignore_unknown: drop unknown keys instead of rejecting the payload
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    ignore_unknown: bool = False


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or not re.fullmatch(r"-?\d+", stripped):
                raise ValidationError(f"{col.key} must be an integer")
            return int(stripped)
        raise ValidationError(f"{col.key} must be an integer")

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            if not value.strip():
                return None
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(
            f for f in policy.required_on_create
            if payload.get(f) is None or (isinstance(payload.get(f), str) and not payload[f].strip())
        )
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    patch: dict = {}
    for k, raw in payload.items():
        if k not in policy.writable_fields or k not in cols:
            if policy.ignore_unknown:
                continue
            raise ValidationError(f"Field not allowed: {k}")

        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_unit(patch: dict, *, capacities: list[str], platforms: list[str]) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if patch.get("type_capacity") is not None and patch["type_capacity"] not in capacities:
        raise ValidationError(
            f"Invalid capacity. Supported capacities: {', '.join(capacities)}",
            details={"valid": capacities},
        )

    if patch.get("platform"):
        patch["platform"] = patch["platform"].lower()
        if patch["platform"] not in platforms:
            raise ValidationError(
                f"Invalid platform. Supported platforms: {', '.join(platforms)}",
                details={"valid": platforms},
            )
    elif "platform" in patch:
        patch["platform"] = None

    if patch.get("buyer_email") and not EMAIL_RE.match(patch["buyer_email"]):
        raise ValidationError("buyer_email must be a valid email address")


# =============================================================================
# WORKFLOW INPUT STRUCTS
# =============================================================================
# One explicit struct per public/admin workflow. Unknown request fields are
# ignored by contract; nothing outside these fields is ever persisted.


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def parse_duration_months(raw: Any, *, max_months: int, field_name: str = "durationMonths") -> int | None:
    """Parse an optional duration; bounds are (0, max_months]."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    if isinstance(raw, bool):
        raise ValidationError(f"{field_name} must be an integer")
    if isinstance(raw, int):
        months = raw
    else:
        s = str(raw).strip()
        if not re.fullmatch(r"-?\d+", s):
            raise ValidationError(f"{field_name} must be an integer")
        months = int(s)
    if months <= 0 or months > max_months:
        raise ValidationError(f"{field_name} must be between 1 and {max_months}")
    return months


@dataclass(frozen=True)
class RegistrationInput:
    serial_number: str
    platform: str
    buyer_name: str
    buyer_phone: str
    buyer_email: str
    buyer_address: str | None = None
    buyer_payment_method: str | None = None
    duration_months: int | None = None

    @classmethod
    def from_form(cls, form: dict, *, platforms: list[str], max_months: int) -> "RegistrationInput":
        serial = _clean(form.get("serialNumber"))
        if not serial:
            raise ValidationError("Serial number is required")

        platform = _clean(form.get("platform"))
        if not platform:
            raise ValidationError("Platform is required")
        platform = platform.lower()
        if platform not in platforms:
            raise ValidationError(
                f"Invalid platform. Supported platforms: {', '.join(platforms)}",
                details={"valid": platforms},
            )

        name = _clean(form.get("buyerName"))
        email = _clean(form.get("buyerEmail"))
        phone = _clean(form.get("buyerPhone"))
        if not name or not email or not phone:
            raise ValidationError("Buyer name, email, and phone are required")
        if not EMAIL_RE.match(email):
            raise ValidationError("Please provide a valid email address")

        return cls(
            serial_number=serial,
            platform=platform,
            buyer_name=name,
            buyer_phone=phone,
            buyer_email=email.lower(),
            buyer_address=_clean(form.get("buyerAddress")),
            buyer_payment_method=_clean(form.get("buyerPaymentMethod")),
            duration_months=parse_duration_months(form.get("durationMonths"), max_months=max_months),
        )


@dataclass(frozen=True)
class InquiryInput:
    name: str
    email: str
    subject: str
    description: str
    product_serial_number: str | None = None

    @classmethod
    def from_json(cls, payload: dict | None) -> "InquiryInput":
        payload = payload or {}
        name = _clean(payload.get("name"))
        email = _clean(payload.get("email"))
        subject = _clean(payload.get("subject"))
        description = _clean(payload.get("description"))
        if not name or not email or not subject or not description:
            raise ValidationError("Name, email, subject, and description are required")
        if not EMAIL_RE.match(email):
            raise ValidationError("Please provide a valid email address")
        return cls(
            name=name,
            email=email.lower(),
            subject=subject,
            description=description,
            product_serial_number=_clean(payload.get("productSerialNumber")),
        )


@dataclass(frozen=True)
class WarrantyStatusInput:
    status: str
    duration_months: int | None = None
    notes: str | None = None

    @classmethod
    def from_json(cls, payload: dict | None, *, max_months: int) -> "WarrantyStatusInput":
        payload = payload or {}
        status = _clean(payload.get("status"))
        if not status:
            raise ValidationError("Valid status is required (active, expired, void)")
        return cls(
            status=status.lower(),
            duration_months=parse_duration_months(
                payload.get("duration_months"), max_months=max_months, field_name="duration_months"
            ),
            notes=_clean(payload.get("notes")),
        )


@dataclass(frozen=True)
class AdminWarrantyInput:
    status: str
    duration_months: int
    notes: str | None = None

    @classmethod
    def from_form(cls, form: dict, *, default_months: int, max_months: int) -> "AdminWarrantyInput":
        months = parse_duration_months(
            form.get("duration_months"), max_months=max_months, field_name="duration_months"
        )
        return cls(
            status=(_clean(form.get("status")) or "active").lower(),
            duration_months=months if months is not None else default_months,
            notes=_clean(form.get("notes")),
        )


@dataclass(frozen=True)
class ReturnInput:
    return_reason: str
    return_notes: str | None = None

    @classmethod
    def from_json(cls, payload: dict | None) -> "ReturnInput":
        payload = payload or {}
        reason = _clean(payload.get("return_reason"))
        if not reason:
            raise ValidationError("Return reason is required")
        return cls(return_reason=reason, return_notes=_clean(payload.get("return_notes")))

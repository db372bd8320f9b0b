from __future__ import annotations
from datetime import date, datetime
import re
from omni.time_utils import parse_iso_date
from omni.services.warranty_status import VALID_PERIOD_YEARS

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# VIN / chassis numbers on scooters are shorter than the 17-char automotive
# VIN; accept alphanumerics and dashes after uppercasing.
VIN_PATTERN = re.compile(r"^[A-Z0-9-]{5,20}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_vin(vin: str) -> str:
    """Canonical stored form of a VIN: uppercase, no whitespace."""
    return "".join(vin.split()).upper()


class ValidationError(ValueError):
    """400-level input problem. `fields` names the offending payload keys."""

    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message)
        self.fields = list(fields or [])


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate VIN registration)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer", [col.key])
            if 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"{col.key} must be a plain integer", [col.key])
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer", [col.key])
        raise ValidationError(f"{col.key} must be an integer", [col.key])

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        return bool(value)

    # Calendar dates (accept "YYYY-MM-DD" or a full ISO-8601 datetime)
    if isinstance(coltype, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date", [col.key])
            if d is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date", [col.key])
            return d
        raise ValidationError(f"{col.key} must be a date", [col.key])

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
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

    Unknown keys are rejected rather than ignored so a client cannot smuggle
    review fields (review_status, reviewer_*) into a submission.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing)

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields or k not in cols:
            raise ValidationError(f"Field not allowed: {k}", [k])

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", [k])
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", [k])

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", [k])

        patch[k] = val

    return patch


def enforce_rules_warranty_registration(patch: dict, *, today: date) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Normalizes VIN (uppercase) and customer email (lowercase) in place.
    """
    if "vin" in patch and patch["vin"] is not None:
        vin = normalize_vin(patch["vin"])
        if not VIN_PATTERN.match(vin):
            raise ValidationError(
                "vin must be 5-20 characters of letters, digits or dashes", ["vin"]
            )
        patch["vin"] = vin

    if "customer_email" in patch and patch["customer_email"] is not None:
        email = patch["customer_email"].lower()
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("customer_email is not a valid email address", ["customer_email"])
        patch["customer_email"] = email

    if "period_years" in patch and patch["period_years"] not in VALID_PERIOD_YEARS:
        raise ValidationError(
            "Invalid warranty period. Must be 1, 2, or 3 years", ["period_years"]
        )

    if "purchase_date" in patch and patch["purchase_date"] is not None:
        if patch["purchase_date"] > today:
            raise ValidationError("purchase_date cannot be in the future", ["purchase_date"])

# Overview: Service-layer operations for the warranty review workflow; encapsulates business logic and database work.

"""
Omni Warranty Review Workflow

================================================================================
PURPOSE: Drive a warranty registration from submission to a terminal review
================================================================================

STATE MACHINE:
    PendingReview -> Approved
    PendingReview -> Declined

    PendingReview: submitted by a dealer (or an admin on a dealer's behalf)
    Approved:      terminal; coverage clock is visible to the customer
    Declined:      terminal; a re-registration is a NEW record

RULES:
1. Only REVIEW_WARRANTIES holders (admins) may approve or decline. The
   permission is re-checked here even though routes check it too.
2. Terminal records are never mutated again (warranty_store.update_review
   enforces this with a guarded UPDATE).
3. After a successful transition a WarrantyReviewEvent is published to the
   notification collaborator. Delivery is best-effort: a failure is logged
   and never undoes the transition.
4. Duplicate VIN submissions follow WARRANTY_DUPLICATE_VIN_POLICY:
       allow       always accept (historic behaviour)
       block_open  reject while a PendingReview or Approved record exists
       block_any   reject if any record exists, declined ones included
   Holders of OVERRIDE_DUPLICATE_VIN may pass override_duplicate=true.

PUBLIC LOOKUP:
    Only Approved records are ever returned, projected to the public
    contract (expiry_date / is_expired / days_remaining / status).
================================================================================
"""

from __future__ import annotations

from datetime import date, datetime

from flask import current_app

from ..models import Dealer, User, WarrantyRegistration
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_warranty_registration,
    validate_payload,
)
from omni.time_utils import as_utc_naive, to_utc_z, utcnow
from . import notification_service, permission_service, warranty_status, warranty_store
from .notification_service import WarrantyReviewEvent
from .warranty_status import CoreStatus, DisplayStatus, ReviewStatus
from .warranty_store import WarrantyNotFoundError


POLICY_ALLOW = "allow"
POLICY_BLOCK_OPEN = "block_open"
POLICY_BLOCK_ANY = "block_any"
VALID_DUPLICATE_VIN_POLICIES = {POLICY_ALLOW, POLICY_BLOCK_OPEN, POLICY_BLOCK_ANY}

REVIEWABLE_STATUSES = (ReviewStatus.APPROVED.value, ReviewStatus.DECLINED.value)

SUBMISSION_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_email",
        "customer_name",
        "phone",
        "vehicle_model_id",
        "vehicle_model_name",
        "vin",
        "purchase_date",
        "period_years",
        "invoice_ref",
        "signature_ref",
        "notes",
    },
    required_on_create={
        "customer_email",
        "customer_name",
        "vehicle_model_name",
        "vin",
        "purchase_date",
        "period_years",
    },
)

# Dealers may correct descriptive details while a record is PendingReview.
# The coverage window (purchase_date, period_years), the VIN and the review
# and dealer fields stay fixed.
UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_email",
        "customer_name",
        "phone",
        "vehicle_model_id",
        "vehicle_model_name",
        "invoice_ref",
        "signature_ref",
        "notes",
    },
)

# Field names used by the storefront forms
PAYLOAD_ALIASES = {
    "vehicle_model": "vehicle_model_name",
    "model_id": "vehicle_model_id",
    "invoice_image_url": "invoice_ref",
    "signature_data_url": "signature_ref",
}


def _expiring_soon_days() -> int:
    return int(current_app.config.get("WARRANTY_EXPIRING_SOON_DAYS", warranty_status.EXPIRING_SOON_DAYS))


def _duplicate_vin_policy() -> str:
    policy = current_app.config.get("WARRANTY_DUPLICATE_VIN_POLICY", POLICY_ALLOW)
    if policy not in VALID_DUPLICATE_VIN_POLICIES:
        raise ValueError(
            f"Invalid WARRANTY_DUPLICATE_VIN_POLICY '{policy}'. "
            f"Must be one of: {', '.join(sorted(VALID_DUPLICATE_VIN_POLICIES))}"
        )
    return policy


def _normalize_aliases(payload: dict) -> dict:
    normalized = {}
    for key, value in payload.items():
        target = PAYLOAD_ALIASES.get(key, key)
        if target in normalized and value in (None, ""):
            continue
        normalized[target] = value
    return normalized


# ================================================================================
# SUBMISSION
# ================================================================================

def check_duplicate_vin(vin: str, policy: str) -> None:
    """Raise ConflictError if the duplicate-VIN policy forbids another registration."""
    if policy == POLICY_ALLOW:
        return

    existing = warranty_store.list_by_vin(vin)
    if policy == POLICY_BLOCK_OPEN:
        existing = [r for r in existing if r.review_status != ReviewStatus.DECLINED.value]

    if existing:
        current_app.logger.warning(
            "duplicate VIN %s rejected by policy %s (existing: %s)",
            vin, policy, ", ".join(r.id for r in existing),
        )
        raise ConflictError(
            f"VIN {vin} already has a warranty registration ({existing[0].id}, {existing[0].review_status})"
        )


def submit_registration(
    actor: User,
    payload: dict,
    *,
    dealer: Dealer | None = None,
    today: date | None = None,
) -> WarrantyRegistration:
    """
    Validate and store a new registration in PendingReview.

    Dealers submit under their own profile (dealer_name comes from the
    profile, never the payload). Admins without a profile must name the
    dealer explicitly via `dealer_name`.

    Raises:
        PermissionDeniedError: actor lacks SUBMIT_WARRANTY
        ValidationError: malformed payload (see .fields)
        ConflictError: duplicate-VIN policy violation
        PersistenceError: storage failure
    """
    permission_service.require_permission(actor, "SUBMIT_WARRANTY", resource="warranty.submit")

    if payload is None or not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payload = _normalize_aliases(payload)
    override_duplicate = bool(payload.pop("override_duplicate", False))
    requested_dealer_name = payload.pop("dealer_name", None)

    fields = validate_payload(
        model=WarrantyRegistration,
        payload=payload,
        policy=SUBMISSION_POLICY,
        partial=False,
    )
    enforce_rules_warranty_registration(fields, today=today or utcnow().date())

    if dealer is not None:
        fields["dealer_id"] = dealer.id
        fields["dealer_name"] = dealer.business_name
    else:
        dealer_name = (requested_dealer_name or "").strip()
        if not dealer_name:
            raise ValidationError("dealer_name is required when submitting without a dealer profile", ["dealer_name"])
        fields["dealer_name"] = dealer_name

    fields["submitted_by_user_id"] = actor.id

    if override_duplicate:
        permission_service.require_permission(actor, "OVERRIDE_DUPLICATE_VIN", resource="warranty.submit")
    else:
        check_duplicate_vin(fields["vin"], _duplicate_vin_policy())

    record = warranty_store.create(fields)
    current_app.logger.info(
        "warranty %s submitted by user %s for VIN %s", record.id, actor.id, record.vin
    )
    return record


def update_registration(
    actor: User,
    record_id: str,
    payload: dict,
    *,
    dealer: Dealer,
) -> WarrantyRegistration:
    """
    Correct a PendingReview registration submitted under `dealer`.

    Only UPDATE_POLICY fields may be sent; anything else is a ValidationError.

    Raises:
        PermissionDeniedError: actor lacks SUBMIT_WARRANTY
        ValidationError: malformed payload or a non-editable field
        WarrantyNotFoundError: no such record under this dealer
        InvalidReviewStateError: record already Approved or Declined
    """
    permission_service.require_permission(actor, "SUBMIT_WARRANTY", resource=f"warranty/{record_id}")

    if payload is None or not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    fields = validate_payload(
        model=WarrantyRegistration,
        payload=_normalize_aliases(payload),
        policy=UPDATE_POLICY,
        partial=True,
    )
    if not fields:
        raise ValidationError("No fields to update")
    enforce_rules_warranty_registration(fields, today=utcnow().date())

    record = warranty_store.update_details(record_id, fields, dealer_id=dealer.id)
    current_app.logger.info(
        "warranty %s updated by user %s (%s)", record.id, actor.id, ", ".join(sorted(fields))
    )
    return record


# ================================================================================
# REVIEW
# ================================================================================

def _publish(event: WarrantyReviewEvent, record: WarrantyRegistration) -> None:
    try:
        notification_service.publish_warranty_review(event, record)
    except Exception:
        # The transition is already committed; notification delivery is best-effort.
        from ..extensions import db
        db.session.rollback()
        current_app.logger.exception("Failed to publish review notification for warranty %s", event.record_id)


def _review_text(value, field: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", [field])
    return value.strip() or None


def _transition(
    record_id: str,
    actor: User,
    status: ReviewStatus,
    notes: str | None,
    *,
    notes_field: str = "notes",
) -> WarrantyRegistration:
    permission_service.require_permission(actor, "REVIEW_WARRANTIES", resource=f"warranty/{record_id}")
    notes = _review_text(notes, notes_field)

    record = warranty_store.update_review(
        record_id,
        status,
        reviewer_user_id=actor.id,
        reviewer_name=actor.display_name,
        notes=notes,
    )
    current_app.logger.info("warranty %s %s by user %s", record.id, status.value.lower(), actor.id)

    _publish(
        WarrantyReviewEvent(
            record_id=record.id,
            new_status=record.review_status,
            customer_email=record.customer_email,
            notes=notes,
        ),
        record,
    )
    return record


def approve(record_id: str, actor: User, *, notes: str | None = None) -> WarrantyRegistration:
    """
    Approve a PendingReview registration (PendingReview -> Approved).

    Raises:
        PermissionDeniedError: actor lacks REVIEW_WARRANTIES
        WarrantyNotFoundError: no such record
        ValidationError: notes is not a string
        InvalidReviewStateError: record already Approved or Declined
    """
    return _transition(record_id, actor, ReviewStatus.APPROVED, notes)


def decline(record_id: str, actor: User, reason: str | None = None) -> WarrantyRegistration:
    """Decline a PendingReview registration (PendingReview -> Declined), optionally with a reason."""
    return _transition(record_id, actor, ReviewStatus.DECLINED, reason, notes_field="reason")


def review(record_id: str, actor: User, review_status: str, notes: str | None = None) -> WarrantyRegistration:
    """Admin review endpoint contract: review_status must be "Approved" or "Declined"."""
    if review_status not in REVIEWABLE_STATUSES:
        raise ValidationError("Invalid review status", ["review_status"])
    return _transition(record_id, actor, ReviewStatus(review_status), notes)


# ================================================================================
# READ MODELS
# ================================================================================

def display_for(record: WarrantyRegistration, now: date | datetime | None = None) -> DisplayStatus:
    return warranty_status.display_status(record, now, expiring_soon_days=_expiring_soon_days())


def serialize(record: WarrantyRegistration, now: date | datetime | None = None) -> dict:
    data = record.to_dict()
    data["coverage_end"] = warranty_status.coverage_end(record.purchase_date, record.period_years).isoformat()
    data["display_status"] = display_for(record, now).to_dict()
    return data


def public_view(record: WarrantyRegistration, now: date | datetime | None = None) -> dict:
    """Projection used by the public warranty check (field names are a published contract)."""
    current = utcnow() if now is None else as_utc_naive(now)
    end = as_utc_naive(warranty_status.coverage_end(record.purchase_date, record.period_years))
    is_expired = current > end
    return {
        "id": record.id,
        "customer_name": record.customer_name,
        "customer_email": record.customer_email,
        "vehicle_model": record.vehicle_model_name,
        "vin": record.vin,
        "purchase_date": record.purchase_date.isoformat(),
        "period_years": record.period_years,
        "dealer_name": record.dealer_name,
        "expiry_date": to_utc_z(end),
        "is_expired": is_expired,
        "days_remaining": warranty_status.days_remaining(record.purchase_date, record.period_years, current),
        "status": CoreStatus.EXPIRED.value if is_expired else CoreStatus.ACTIVE.value,
    }


def public_lookup(
    *,
    vin: str | None = None,
    email: str | None = None,
    now: date | datetime | None = None,
) -> list[dict]:
    """
    Approved registrations for a VIN (preferred) or customer email.

    Raises ValidationError when neither key is given and WarrantyNotFoundError
    when nothing approved matches.
    """
    vin = (vin or "").strip()
    email = (email or "").strip()
    if not vin and not email:
        raise ValidationError("Please provide either VIN or email to check warranty", ["vin", "email"])

    if vin:
        records = warranty_store.list_by_vin(vin, approved_only=True)
    else:
        records = [
            r for r in warranty_store.list_by_customer_email(email)
            if r.review_status == ReviewStatus.APPROVED.value
        ]

    if not records:
        raise WarrantyNotFoundError("No warranty found for the provided information")

    return [public_view(r, now) for r in records]


def list_expiring(
    *,
    within_days: int | None = None,
    now: date | datetime | None = None,
) -> list[tuple[WarrantyRegistration, DisplayStatus]]:
    """Approved registrations whose coverage ends within `within_days` (not yet expired)."""
    window = _expiring_soon_days() if within_days is None else within_days
    current = utcnow() if now is None else now
    expiring = []
    for record in warranty_store.list_by_review_status(ReviewStatus.APPROVED):
        status = warranty_status.display_status(record, current, expiring_soon_days=window)
        if status.core is CoreStatus.EXPIRING_SOON:
            expiring.append((record, status))
    expiring.sort(key=lambda pair: pair[1].days_remaining)
    return expiring


def dashboard_stats(now: date | datetime | None = None) -> dict:
    counts = warranty_store.count_by_review_status()
    return {
        "by_review_status": counts,
        "total": sum(counts.values()),
        "expiring_soon": len(list_expiring(now=now)),
    }

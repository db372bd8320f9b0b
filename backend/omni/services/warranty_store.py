# Overview: Persistence operations for warranty registrations; keyed point reads and writes only.

"""
Warranty Record Store

Owns the warranty_registrations table and the query patterns the rest of
the system needs. Every write touches exactly one row.

REVIEW WRITES ARE GUARDED:
    UPDATE warranty_registrations
       SET review_status = :new, reviewed_at = :now, ...
     WHERE id = :id AND review_status = 'PendingReview'

Zero affected rows means either the id does not exist (NotFound) or the
record already left PendingReview (InvalidState). Two concurrent reviews of
the same record are therefore serialized by the database: the first writer
wins, the second gets InvalidReviewStateError.

ERRORS:
    WarrantyNotFoundError     unknown id
    InvalidReviewStateError   record is terminal
    PersistenceError          the database failed; retryable, never retried here
"""

from __future__ import annotations

import secrets
import string
from contextlib import contextmanager

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import WarrantyRegistration
from ..validation import normalize_vin
from omni.time_utils import utcnow
from .warranty_status import ReviewStatus


ID_PREFIX = "WAR-"
ID_ALPHABET = string.ascii_uppercase + string.digits
ID_LENGTH = 8
_ID_ATTEMPTS = 5


class WarrantyNotFoundError(ValueError):
    """Referenced warranty registration does not exist."""


class InvalidReviewStateError(ValueError):
    """
    Transition attempted on a record that is no longer PendingReview.

    Indicates a race or a stale review queue; report as a conflict.
    """


class PersistenceError(RuntimeError):
    """The storage layer failed (timeout, lost connection). Safe to retry."""


@contextmanager
def _persistence_guard(action: str):
    try:
        yield
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError(f"Failed to {action}") from exc


def _ordered(query):
    return query.order_by(
        WarrantyRegistration.created_at.desc(),
        WarrantyRegistration.id.desc(),
    )


def generate_id() -> str:
    return ID_PREFIX + "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))


def create(fields: dict) -> WarrantyRegistration:
    """
    Persist a new registration in PendingReview.

    `fields` must already be validated and normalized (see
    validation.enforce_rules_warranty_registration). Duplicate VINs are not
    this function's concern.
    """
    with _persistence_guard("create warranty registration"):
        record_id = generate_id()
        for _ in range(_ID_ATTEMPTS - 1):
            if db.session.get(WarrantyRegistration, record_id) is None:
                break
            record_id = generate_id()

        record = WarrantyRegistration(
            **fields,
            id=record_id,
            review_status=ReviewStatus.PENDING_REVIEW.value,
            created_at=utcnow(),
        )
        db.session.add(record)
        db.session.commit()
    return record


def get_by_id(record_id: str) -> WarrantyRegistration:
    with _persistence_guard("load warranty registration"):
        record = db.session.get(WarrantyRegistration, record_id)
    if record is None:
        raise WarrantyNotFoundError(f"Warranty {record_id} not found")
    return record


def list_all(*, limit: int | None = None) -> list[WarrantyRegistration]:
    with _persistence_guard("list warranty registrations"):
        q = _ordered(WarrantyRegistration.query)
        if limit is not None:
            q = q.limit(limit)
        return q.all()


def list_by_review_status(status: ReviewStatus | str) -> list[WarrantyRegistration]:
    status = ReviewStatus(status)
    with _persistence_guard("list warranty registrations"):
        return _ordered(
            WarrantyRegistration.query.filter_by(review_status=status.value)
        ).all()


def list_by_customer_email(email: str) -> list[WarrantyRegistration]:
    """Case-insensitive match on the customer email."""
    with _persistence_guard("list warranty registrations"):
        return _ordered(
            WarrantyRegistration.query.filter(
                func.lower(WarrantyRegistration.customer_email) == email.strip().lower()
            )
        ).all()


def list_by_dealer_name(dealer_name: str) -> list[WarrantyRegistration]:
    """Exact match on the submitting dealer's name."""
    with _persistence_guard("list warranty registrations"):
        return _ordered(
            WarrantyRegistration.query.filter_by(dealer_name=dealer_name)
        ).all()


def list_by_vin(vin: str, *, approved_only: bool = False) -> list[WarrantyRegistration]:
    """
    VIN match after normalize_vin (case and whitespace insensitive).

    Public callers must pass approved_only=True: pending and declined
    registrations are never exposed through VIN lookup.
    """
    with _persistence_guard("list warranty registrations"):
        q = WarrantyRegistration.query.filter(
            WarrantyRegistration.vin == normalize_vin(vin)
        )
        if approved_only:
            q = q.filter(WarrantyRegistration.review_status == ReviewStatus.APPROVED.value)
        return _ordered(q).all()


def count_by_review_status() -> dict[str, int]:
    with _persistence_guard("count warranty registrations"):
        rows = (
            db.session.query(WarrantyRegistration.review_status, func.count(WarrantyRegistration.id))
            .group_by(WarrantyRegistration.review_status)
            .all()
        )
    counts = {status.value: 0 for status in ReviewStatus}
    counts.update({status: count for status, count in rows})
    return counts


def update_review(
    record_id: str,
    status: ReviewStatus | str,
    *,
    reviewer_user_id: int | None,
    reviewer_name: str | None,
    notes: str | None = None,
) -> WarrantyRegistration:
    """
    Move a PendingReview record to Approved or Declined.

    Sets reviewed_at and reviewer fields in the same guarded UPDATE, so they
    are written exactly once.
    """
    status = ReviewStatus(status)
    if status is ReviewStatus.PENDING_REVIEW:
        raise InvalidReviewStateError("A record cannot be moved back to PendingReview")

    with _persistence_guard("update warranty review"):
        affected = (
            db.session.query(WarrantyRegistration)
            .filter(
                WarrantyRegistration.id == record_id,
                WarrantyRegistration.review_status == ReviewStatus.PENDING_REVIEW.value,
            )
            .update(
                {
                    WarrantyRegistration.review_status: status.value,
                    WarrantyRegistration.reviewed_at: utcnow(),
                    WarrantyRegistration.reviewer_user_id: reviewer_user_id,
                    WarrantyRegistration.reviewer_name: reviewer_name,
                    WarrantyRegistration.review_notes: notes,
                },
                synchronize_session=False,
            )
        )
        db.session.commit()

    record = get_by_id(record_id)
    if affected == 0:
        raise InvalidReviewStateError(
            f"Cannot review warranty {record_id}: "
            f"current status is '{record.review_status}', must be 'PendingReview'"
        )
    return record


def update_details(record_id: str, fields: dict, *, dealer_id: int) -> WarrantyRegistration:
    """
    Edit descriptive fields of a PendingReview record submitted by `dealer_id`.

    Guarded like update_review. A record owned by another dealer reads as
    not found; a reviewed one is InvalidReviewStateError.
    """
    with _persistence_guard("update warranty registration"):
        affected = (
            db.session.query(WarrantyRegistration)
            .filter(
                WarrantyRegistration.id == record_id,
                WarrantyRegistration.dealer_id == dealer_id,
                WarrantyRegistration.review_status == ReviewStatus.PENDING_REVIEW.value,
            )
            .update(
                {getattr(WarrantyRegistration, key): value for key, value in fields.items()},
                synchronize_session=False,
            )
        )
        db.session.commit()

    record = get_by_id(record_id)
    if affected == 0:
        if record.dealer_id != dealer_id:
            raise WarrantyNotFoundError(f"Warranty {record_id} not found")
        raise InvalidReviewStateError(
            f"Cannot update warranty {record_id}: "
            f"current status is '{record.review_status}', must be 'PendingReview'"
        )
    return record

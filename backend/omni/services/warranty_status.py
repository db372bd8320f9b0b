# Overview: Pure warranty status computations; no database access, no side effects.

"""
Warranty Status Engine

================================================================================
PURPOSE: Derive the live status of a warranty from its coverage window
================================================================================

Every function here is a pure function of (purchase_date, period_years,
review_status, now). Nothing is persisted; callers recompute on every read.

COVERAGE WINDOW:
    start = purchase_date (midnight UTC)
    end   = purchase_date + period_years calendar years (midnight UTC)

    A purchase on Feb 29 ends on Feb 28 of a non-leap target year
    (relativedelta semantics). This is accepted, not special-cased.

CORE STATUS (time only):
    Expired       now > end
    ExpiringSoon  0 <= days_remaining <= 30
    Active        otherwise

DISPLAY LABEL:
    Review status wins unless the record is Approved. Only an Approved
    warranty exposes its core status as the public label.

`now` may be a date or a datetime. Dates are treated as midnight; aware
datetimes are converted to UTC.
================================================================================
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta

from ..time_utils import as_utc_naive, utcnow


EXPIRING_SOON_DAYS = 30
VALID_PERIOD_YEARS = (1, 2, 3)

_ONE_DAY = timedelta(days=1)
_MIN_WINDOW = timedelta(milliseconds=1)


class ReviewStatus(str, enum.Enum):
    """Workflow state of a registration (independent of time)."""
    PENDING_REVIEW = "PendingReview"
    APPROVED = "Approved"
    DECLINED = "Declined"


class CoreStatus(str, enum.Enum):
    """Time-derived state of a coverage window."""
    ACTIVE = "Active"
    EXPIRING_SOON = "ExpiringSoon"
    EXPIRED = "Expired"


class WarrantyLabel(str, enum.Enum):
    """Single user-facing label: either a core status or a non-approved review status."""
    ACTIVE = "Active"
    EXPIRING_SOON = "ExpiringSoon"
    EXPIRED = "Expired"
    PENDING_REVIEW = "PendingReview"
    DECLINED = "Declined"


@dataclass(frozen=True)
class DisplayStatus:
    core: CoreStatus
    days_remaining: int
    percent_remaining: int
    label: WarrantyLabel

    def to_dict(self) -> dict:
        return {
            "core": self.core.value,
            "days_remaining": self.days_remaining,
            "percent_remaining": self.percent_remaining,
            "label": self.label.value,
        }


def coverage_end(purchase_date: date, period_years: int) -> date:
    """Purchase date advanced by exactly `period_years` calendar years."""
    return purchase_date + relativedelta(years=period_years)


def _window(purchase_date: date, period_years: int) -> tuple[datetime, datetime]:
    start = as_utc_naive(purchase_date)
    end = as_utc_naive(coverage_end(purchase_date, period_years))
    return start, end


def _resolve_now(now: date | datetime | None) -> datetime:
    return utcnow() if now is None else as_utc_naive(now)


def days_remaining(purchase_date: date, period_years: int, now: date | datetime | None = None) -> int:
    """Whole days between now and the coverage end, floored, never negative."""
    _, end = _window(purchase_date, period_years)
    left = end - _resolve_now(now)
    if left <= timedelta(0):
        return 0
    return left // _ONE_DAY


def core_status(
    purchase_date: date,
    period_years: int,
    now: date | datetime | None = None,
    *,
    expiring_soon_days: int = EXPIRING_SOON_DAYS,
) -> CoreStatus:
    current = _resolve_now(now)
    _, end = _window(purchase_date, period_years)
    if current > end:
        return CoreStatus.EXPIRED
    if days_remaining(purchase_date, period_years, current) <= expiring_soon_days:
        return CoreStatus.EXPIRING_SOON
    return CoreStatus.ACTIVE


def percent_remaining(purchase_date: date, period_years: int, now: date | datetime | None = None) -> int:
    """
    Share of the coverage window still ahead of `now`, 0-100.

    Rounds half up. A zero-length window is treated as 1 ms long so the
    division is always defined.
    """
    start, end = _window(purchase_date, period_years)
    total = max(_MIN_WINDOW, end - start)
    left = max(timedelta(0), end - _resolve_now(now))
    percent = math.floor(left / total * 100 + 0.5)
    return min(100, max(0, percent))


def display_status(
    record,
    now: date | datetime | None = None,
    *,
    expiring_soon_days: int = EXPIRING_SOON_DAYS,
) -> DisplayStatus:
    """
    Combine review status and coverage window into one DisplayStatus.

    `record` needs `purchase_date`, `period_years` and `review_status`
    attributes (a WarrantyRegistration row or anything shaped like it).
    """
    current = _resolve_now(now)
    core = core_status(
        record.purchase_date,
        record.period_years,
        current,
        expiring_soon_days=expiring_soon_days,
    )
    review = ReviewStatus(record.review_status)
    if review is ReviewStatus.APPROVED:
        label = WarrantyLabel(core.value)
    else:
        label = WarrantyLabel(review.value)

    return DisplayStatus(
        core=core,
        days_remaining=days_remaining(record.purchase_date, record.period_years, current),
        percent_remaining=percent_remaining(record.purchase_date, record.period_years, current),
        label=label,
    )

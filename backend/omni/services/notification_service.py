# Overview: Service-layer operations for in-app notifications.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Dealer, Notification, User, WarrantyRegistration
from omni.time_utils import utcnow


TYPE_WARRANTY = "warranty"
PRIORITY_NORMAL = "normal"
PRIORITY_HIGH = "high"


@dataclass(frozen=True)
class WarrantyReviewEvent:
    """Emitted once per successful review transition."""
    record_id: str
    new_status: str
    customer_email: str
    notes: str | None = None


def _create(user_id: int, *, title: str, message: str, type: str, priority: str, data: dict) -> Notification:
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        priority=priority,
        data=data,
        is_read=False,
        created_at=utcnow(),
    )
    db.session.add(notification)
    return notification


def publish_warranty_review(event: WarrantyReviewEvent, record: WarrantyRegistration) -> list[Notification]:
    """
    Notify the submitting dealer and, if they have an account, the customer.

    Raises whatever the database raises; the caller decides that delivery
    is best-effort.
    """
    status = event.new_status
    approved = status == "Approved"
    data = {"warranty_id": event.record_id, "status": status}
    reason = f" Reason: {event.notes}" if event.notes else ""
    created: list[Notification] = []

    dealer_user_id = None
    if record.dealer_id is not None:
        dealer = db.session.get(Dealer, record.dealer_id)
        dealer_user_id = dealer.user_id if dealer else None
    if dealer_user_id is None:
        dealer_user_id = record.submitted_by_user_id

    if dealer_user_id is not None:
        created.append(_create(
            dealer_user_id,
            title=f"Warranty {status}",
            message=(
                f"Warranty registration for {record.customer_name} "
                f"({record.vehicle_model_name}) has been {status.lower()}.{reason}"
            ),
            type=TYPE_WARRANTY,
            priority=PRIORITY_NORMAL if approved else PRIORITY_HIGH,
            data=data,
        ))

    customer = db.session.query(User).filter_by(email=event.customer_email.lower()).first()
    if customer is not None and customer.id != dealer_user_id:
        if approved:
            message = (
                f"Your warranty for {record.vehicle_model_name} has been approved! "
                f"Valid for {record.period_years} year(s) from {record.purchase_date.isoformat()}."
            )
        else:
            message = (
                f"Your warranty for {record.vehicle_model_name} has been declined.{reason} "
                "Please contact your dealer for assistance."
            )
        created.append(_create(
            customer.id,
            title=f"Warranty {status}",
            message=message,
            type=TYPE_WARRANTY,
            priority=PRIORITY_HIGH,
            data=data,
        ))

    db.session.commit()
    return created


def list_for_user(user_id: int, *, unread_only: bool = False, limit: int = 100) -> list[Notification]:
    q = Notification.query.filter_by(user_id=user_id)
    if unread_only:
        q = q.filter_by(is_read=False)
    return q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def count_unread(user_id: int) -> int:
    return Notification.query.filter_by(user_id=user_id, is_read=False).count()


def mark_read(notification_id: int, user_id: int) -> Notification:
    """Raises ValueError if the notification does not exist or belongs to someone else."""
    notification = db.session.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise ValueError(f"Notification {notification_id} not found")

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        db.session.commit()
    return notification

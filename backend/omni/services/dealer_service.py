# Overview: Service-layer operations for dealer profiles.

from __future__ import annotations

from ..extensions import db
from ..models import Dealer, User
from ..models.auth import ROLE_DEALER


class DealerNotFoundError(ValueError):
    """The user has no (active) dealer profile."""


def get_dealer_for_user(user_id: int) -> Dealer:
    dealer = db.session.query(Dealer).filter_by(user_id=user_id, is_active=True).first()
    if dealer is None:
        raise DealerNotFoundError("Dealer not found")
    return dealer


def find_dealer_for_user(user_id: int) -> Dealer | None:
    return db.session.query(Dealer).filter_by(user_id=user_id, is_active=True).first()


def create_dealer(
    user_id: int,
    business_name: str,
    *,
    city: str | None = None,
    phone: str | None = None,
) -> Dealer:
    """
    Attach a dealer profile to a dealer-role user.

    Raises ValueError if the user is missing, is not a dealer, already has a
    profile, or the business name is taken.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise ValueError(f"User {user_id} not found")
    if user.role != ROLE_DEALER:
        raise ValueError(f"User {user_id} does not have the dealer role")

    business_name = business_name.strip()
    if not business_name:
        raise ValueError("business_name is required")

    if db.session.query(Dealer).filter_by(user_id=user_id).first():
        raise ValueError(f"User {user_id} already has a dealer profile")
    if db.session.query(Dealer).filter_by(business_name=business_name).first():
        raise ValueError(f"Dealer '{business_name}' already exists")

    dealer = Dealer(user_id=user_id, business_name=business_name, city=city, phone=phone)
    db.session.add(dealer)
    db.session.commit()
    return dealer

"""
Pytest fixtures for Omni backend tests.

Provides test database setup, one user per role, a dealer profile, and
helpers for bearer-token auth against the test client.
"""

from datetime import date

import pytest
from omni import create_app
from omni.extensions import db
from omni.models import Dealer, User
from omni.services import session_service
from omni.services.auth_service import hash_password


PASSWORD = "Password123!"
# bcrypt is deliberately slow; hash once per run
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'WARRANTY_DUPLICATE_VIN_POLICY': 'allow',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        app.config['WARRANTY_DUPLICATE_VIN_POLICY'] = 'allow'


def make_user(db_session, email: str, role: str, name: str | None = None) -> User:
    user = User(email=email, name=name, role=role, password_hash=PASSWORD_HASH)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user(db_session, "admin@omni.local", "admin", name="Head Office")


@pytest.fixture(scope='function')
def dealer_user(db_session):
    return make_user(db_session, "dealer@voltmotors.in", "dealer", name="Volt Motors")


@pytest.fixture(scope='function')
def other_dealer_user(db_session):
    return make_user(db_session, "dealer@zipscoot.in", "dealer", name="Zip Scoot")


@pytest.fixture(scope='function')
def customer_user(db_session):
    return make_user(db_session, "asha@example.com", "customer", name="Asha Verma")


@pytest.fixture(scope='function')
def dealer(db_session, dealer_user):
    """Dealer profile for dealer_user."""
    profile = Dealer(user_id=dealer_user.id, business_name="Volt Motors Pune", city="Pune")
    db_session.add(profile)
    db_session.commit()
    return profile


@pytest.fixture(scope='function')
def other_dealer(db_session, other_dealer_user):
    profile = Dealer(user_id=other_dealer_user.id, business_name="Zip Scoot Mumbai", city="Mumbai")
    db_session.add(profile)
    db_session.commit()
    return profile


def registration_payload(**overrides) -> dict:
    """A valid submission body; override any field."""
    payload = {
        "customer_name": "Asha Verma",
        "customer_email": "Asha@Example.com",
        "phone": "+91 9800000000",
        "vehicle_model_name": "Volt S1",
        "vin": "vin123abc",
        "purchase_date": "2023-01-01",
        "period_years": 2,
    }
    payload.update(overrides)
    return payload


def token_for(user: User) -> str:
    """Open a session directly (skips the login round trip)."""
    _, token = session_service.create_session(user.id)
    return token


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user through the login endpoint."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def days_ago(n: int) -> str:
    return date.fromordinal(date.today().toordinal() - n).isoformat()

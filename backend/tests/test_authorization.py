"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Customers and dealers are denied admin operations (403)
- Permission denials land in security_events
- Login, session and logout round trip
"""

import pytest

from omni.models import SecurityEvent
from omni.services import session_service

from conftest import PASSWORD, auth_headers, get_auth_token, token_for


@pytest.fixture
def customer_headers(customer_user):
    return auth_headers(token_for(customer_user))


@pytest.fixture
def dealer_headers(dealer_user, dealer):
    return auth_headers(token_for(dealer_user))


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(token_for(admin_user))


# =============================================================================
# UNAUTHENTICATED ACCESS (401)
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/session"),
            ("POST", "/api/auth/logout"),
            ("GET", "/api/dealer/profile"),
            ("GET", "/api/dealer/warranties"),
            ("POST", "/api/dealer/warranties"),
            ("PUT", "/api/dealer/warranties"),
            ("GET", "/api/admin/warranties"),
            ("PUT", "/api/admin/warranties"),
            ("POST", "/api/admin/warranties/WAR-ANY00000/approve"),
            ("POST", "/api/admin/warranties/WAR-ANY00000/decline"),
            ("GET", "/api/admin/warranties/stats"),
            ("GET", "/api/warranties/mine"),
            ("GET", "/api/warranties/WAR-ANY00000"),
            ("GET", "/api/notifications"),
            ("POST", "/api/notifications/1/read"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token_rejected(self, client, db_session):
        resp = client.get("/api/warranties/mine", headers=auth_headers("not-a-real-token"))
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid or expired token"

    def test_public_check_needs_no_auth(self, client, db_session):
        resp = client.get("/api/public/warranty/check?vin=NOTHING1")
        assert resp.status_code == 404


# =============================================================================
# ROLE BOUNDARIES (403)
# =============================================================================


class TestCustomerDenied:
    """Customer role cannot submit or review."""

    def test_cannot_submit(self, client, customer_headers):
        resp = client.post("/api/dealer/warranties", json={}, headers=customer_headers)
        assert resp.status_code == 403
        assert resp.json["required_permission"] == "SUBMIT_WARRANTY"

    def test_cannot_list_all(self, client, customer_headers):
        resp = client.get("/api/admin/warranties", headers=customer_headers)
        assert resp.status_code == 403

    def test_cannot_review(self, client, customer_headers):
        resp = client.put(
            "/api/admin/warranties",
            json={"id": "WAR-ANY00000", "review_status": "Approved"},
            headers=customer_headers,
        )
        assert resp.status_code == 403

    def test_cannot_view_dealer_profile(self, client, customer_headers):
        resp = client.get("/api/dealer/profile", headers=customer_headers)
        assert resp.status_code == 403


class TestDealerDenied:
    """Dealers submit, but never review."""

    def test_cannot_approve(self, client, dealer_headers):
        resp = client.post("/api/admin/warranties/WAR-ANY00000/approve", headers=dealer_headers)
        assert resp.status_code == 403

    def test_cannot_decline(self, client, dealer_headers):
        resp = client.post(
            "/api/admin/warranties/WAR-ANY00000/decline",
            json={"reason": "x"},
            headers=dealer_headers,
        )
        assert resp.status_code == 403

    def test_cannot_view_stats(self, client, dealer_headers):
        resp = client.get("/api/admin/warranties/stats", headers=dealer_headers)
        assert resp.status_code == 403

    def test_denial_is_audited(self, client, db_session, dealer_user, dealer_headers):
        client.put(
            "/api/admin/warranties",
            json={"id": "WAR-ANY00000", "review_status": "Approved"},
            headers=dealer_headers,
        )

        event = db_session.query(SecurityEvent).filter_by(
            user_id=dealer_user.id, event_type="PERMISSION_DENIED"
        ).one()
        assert event.action == "REVIEW_WARRANTIES"
        assert event.resource == "/api/admin/warranties"


class TestAdminAllowed:

    def test_can_list_and_view_stats(self, client, admin_headers):
        assert client.get("/api/admin/warranties", headers=admin_headers).status_code == 200
        assert client.get("/api/admin/warranties/stats", headers=admin_headers).status_code == 200

    def test_deactivated_admin_loses_access(self, client, db_session, admin_user, admin_headers):
        admin_user.is_active = False
        db_session.commit()

        resp = client.get("/api/admin/warranties", headers=admin_headers)
        assert resp.status_code == 401


# =============================================================================
# LOGIN / SESSION / LOGOUT
# =============================================================================


class TestSessionLifecycle:

    def test_login_session_logout(self, client, dealer_user, dealer):
        token = get_auth_token(client, "DEALER@voltmotors.in", PASSWORD)
        assert token

        resp = client.get("/api/auth/session", headers=auth_headers(token))
        assert resp.status_code == 200
        assert resp.json["user"]["role"] == "dealer"
        assert "SUBMIT_WARRANTY" in resp.json["permissions"]
        assert "REVIEW_WARRANTIES" not in resp.json["permissions"]
        assert resp.json["dealer"]["business_name"] == "Volt Motors Pune"

        assert client.post("/api/auth/logout", headers=auth_headers(token)).status_code == 200
        assert client.get("/api/auth/session", headers=auth_headers(token)).status_code == 401

    def test_wrong_password(self, client, db_session, dealer_user):
        resp = client.post("/api/auth/login", json={"email": dealer_user.email, "password": "nope"})
        assert resp.status_code == 401

        event = db_session.query(SecurityEvent).filter_by(event_type="LOGIN_FAILED").one()
        assert event.success is False

    def test_missing_credentials(self, client, db_session):
        resp = client.post("/api/auth/login", json={"email": "a@b.c"})
        assert resp.status_code == 400

    def test_revoked_session_is_invalid(self, db_session, customer_user):
        token = token_for(customer_user)
        assert session_service.validate_session(token) is not None
        assert session_service.revoke_session(token) is True
        assert session_service.validate_session(token) is None

"""
Warranty review workflow tests.

Verifies:
- Submission validation and normalization
- PendingReview -> Approved | Declined, terminal afterwards
- Reviewers are re-authorized inside the workflow
- Review notifications reach dealer and customer, best-effort
- Duplicate VIN policy (allow / block_open / block_any / admin override)
- Public lookup exposes approved registrations only
"""

from datetime import date, datetime

import pytest

from omni.models import Notification, SecurityEvent, WarrantyRegistration
from omni.services import notification_service, warranty_service, warranty_store
from omni.services.permission_service import PermissionDeniedError
from omni.services.warranty_status import CoreStatus, WarrantyLabel
from omni.services.warranty_store import InvalidReviewStateError, WarrantyNotFoundError
from omni.validation import ConflictError, ValidationError, validate_payload

from conftest import registration_payload


@pytest.fixture
def submit(dealer_user, dealer):
    """Submit as the Volt Motors dealer."""
    def _submit(**overrides):
        return warranty_service.submit_registration(
            dealer_user, registration_payload(**overrides), dealer=dealer
        )
    return _submit


# =============================================================================
# SUBMISSION
# =============================================================================


class TestSubmission:

    def test_submission_is_pending_and_normalized(self, submit, dealer, dealer_user):
        record = submit()

        assert record.review_status == "PendingReview"
        assert record.vin == "VIN123ABC"
        assert record.customer_email == "asha@example.com"
        assert record.purchase_date == date(2023, 1, 1)
        assert record.dealer_id == dealer.id
        assert record.dealer_name == "Volt Motors Pune"
        assert record.submitted_by_user_id == dealer_user.id
        assert record.reviewed_at is None

    def test_dealer_name_always_comes_from_profile(self, submit):
        record = submit(dealer_name="Somebody Else Motors")
        assert record.dealer_name == "Volt Motors Pune"

    def test_storefront_field_names_accepted(self, dealer_user, dealer):
        payload = registration_payload()
        payload["vehicle_model"] = payload.pop("vehicle_model_name")
        payload["invoice_image_url"] = "https://files.example.com/inv/42.png"

        record = warranty_service.submit_registration(dealer_user, payload, dealer=dealer)

        assert record.vehicle_model_name == "Volt S1"
        assert record.invoice_ref == "https://files.example.com/inv/42.png"

    def test_missing_fields_are_listed(self, dealer_user, dealer):
        with pytest.raises(ValidationError) as exc:
            warranty_service.submit_registration(
                dealer_user, {"customer_name": "Asha"}, dealer=dealer
            )
        assert exc.value.fields == [
            "customer_email", "period_years", "purchase_date", "vehicle_model_name", "vin",
        ]

    @pytest.mark.parametrize("period", [0, 4, 5])
    def test_period_outside_one_to_three_rejected(self, submit, period):
        with pytest.raises(ValidationError) as exc:
            submit(period_years=period)
        assert exc.value.fields == ["period_years"]

    def test_future_purchase_date_rejected(self, submit):
        with pytest.raises(ValidationError) as exc:
            submit(purchase_date="2999-01-01")
        assert exc.value.fields == ["purchase_date"]

    def test_malformed_vin_rejected(self, submit):
        with pytest.raises(ValidationError) as exc:
            submit(vin="AB!")
        assert exc.value.fields == ["vin"]

    @pytest.mark.parametrize("posted", [
        "2024-03-15T00:00:00+05:30",
        "2024-03-15T23:30:00-08:00",
        "2024-03-15T10:00:00Z",
    ])
    def test_timestamp_keeps_calendar_day_as_written(self, posted):
        fields = validate_payload(
            model=WarrantyRegistration,
            payload={"purchase_date": posted},
            policy=warranty_service.SUBMISSION_POLICY,
            partial=True,
        )
        assert fields["purchase_date"] == date(2024, 3, 15)

    def test_offset_timestamp_submission_coverage(self, submit):
        record = submit(purchase_date="2024-03-15T00:00:00+05:30", period_years=1)

        assert record.purchase_date == date(2024, 3, 15)
        assert warranty_service.serialize(record)["coverage_end"] == "2025-03-15"

    def test_vin_whitespace_removed(self, submit):
        record = submit(vin=" abc 12345 ")
        assert record.vin == "ABC12345"

    def test_review_fields_cannot_be_smuggled_in(self, submit):
        with pytest.raises(ValidationError) as exc:
            submit(review_status="Approved")
        assert exc.value.fields == ["review_status"]

    def test_customer_cannot_submit(self, db_session, customer_user):
        with pytest.raises(PermissionDeniedError):
            warranty_service.submit_registration(customer_user, registration_payload())

        event = db_session.query(SecurityEvent).filter_by(user_id=customer_user.id).one()
        assert event.event_type == "PERMISSION_DENIED"
        assert event.action == "SUBMIT_WARRANTY"

    def test_admin_without_profile_must_name_dealer(self, admin_user):
        with pytest.raises(ValidationError) as exc:
            warranty_service.submit_registration(admin_user, registration_payload())
        assert exc.value.fields == ["dealer_name"]

        record = warranty_service.submit_registration(
            admin_user, registration_payload(dealer_name="Walk-in Service Centre")
        )
        assert record.dealer_name == "Walk-in Service Centre"
        assert record.dealer_id is None


# =============================================================================
# REVIEW STATE MACHINE
# =============================================================================


class TestReviewStateMachine:

    def test_approve_then_coverage_clock(self, submit, admin_user):
        record = submit(purchase_date="2023-01-01", period_years=2)
        assert record.review_status == "PendingReview"

        approved = warranty_service.approve(record.id, admin_user)

        assert approved.review_status == "Approved"
        assert approved.reviewed_at is not None
        assert approved.reviewer_user_id == admin_user.id
        assert approved.reviewer_name == "Head Office"

        december = warranty_service.display_for(approved, date(2024, 12, 15))
        assert december.core is CoreStatus.EXPIRING_SOON
        assert december.days_remaining == 17

        february = warranty_service.display_for(approved, date(2025, 2, 1))
        assert february.core is CoreStatus.EXPIRED
        assert february.days_remaining == 0
        assert february.label is WarrantyLabel.EXPIRED

    def test_decline_is_terminal(self, submit, admin_user):
        record = submit()
        declined = warranty_service.decline(record.id, admin_user, reason="documents illegible")
        assert declined.review_status == "Declined"
        assert declined.review_notes == "documents illegible"

        with pytest.raises(InvalidReviewStateError):
            warranty_service.approve(record.id, admin_user)

        reloaded = warranty_store.get_by_id(record.id)
        assert reloaded.review_status == "Declined"
        assert reloaded.review_notes == "documents illegible"

    def test_approve_then_decline_rejected(self, submit, admin_user):
        record = submit()
        warranty_service.approve(record.id, admin_user)

        with pytest.raises(InvalidReviewStateError):
            warranty_service.decline(record.id, admin_user, reason="changed my mind")

        assert warranty_store.get_by_id(record.id).review_status == "Approved"

    def test_unknown_record_is_not_found(self, db_session, admin_user):
        with pytest.raises(WarrantyNotFoundError):
            warranty_service.approve("WAR-NOPE0000", admin_user)

    def test_dealer_cannot_review(self, submit, dealer_user):
        record = submit()

        with pytest.raises(PermissionDeniedError):
            warranty_service.approve(record.id, dealer_user)

        assert warranty_store.get_by_id(record.id).review_status == "PendingReview"

    def test_review_contract_rejects_other_statuses(self, submit, admin_user):
        record = submit()
        for status in ("PendingReview", "Archived", None):
            with pytest.raises(ValidationError):
                warranty_service.review(record.id, admin_user, status)

    def test_review_contract_dispatches(self, submit, admin_user):
        record = submit()
        reviewed = warranty_service.review(record.id, admin_user, "Declined", notes="no invoice")
        assert reviewed.review_status == "Declined"
        assert reviewed.review_notes == "no invoice"

    @pytest.mark.parametrize("notes", [{"x": 1}, ["a"], 42])
    def test_non_text_notes_rejected_before_write(self, submit, admin_user, notes):
        record = submit()

        with pytest.raises(ValidationError) as exc:
            warranty_service.review(record.id, admin_user, "Approved", notes=notes)
        assert exc.value.fields == ["notes"]

        with pytest.raises(ValidationError) as exc:
            warranty_service.decline(record.id, admin_user, reason=notes)
        assert exc.value.fields == ["reason"]

        assert warranty_store.get_by_id(record.id).review_status == "PendingReview"


# =============================================================================
# DEALER CORRECTIONS
# =============================================================================


class TestDealerCorrections:

    def test_descriptive_fields_editable_while_pending(self, submit, dealer_user, dealer):
        record = submit()

        updated = warranty_service.update_registration(
            dealer_user,
            record.id,
            {"customer_name": "Asha V.", "customer_email": "ASHA.V@Example.com", "vehicle_model": "Volt S2"},
            dealer=dealer,
        )

        assert updated.customer_name == "Asha V."
        assert updated.customer_email == "asha.v@example.com"
        assert updated.vehicle_model_name == "Volt S2"
        assert updated.review_status == "PendingReview"
        assert updated.purchase_date == date(2023, 1, 1)

    @pytest.mark.parametrize("field,value", [
        ("vin", "NEWVIN123"),
        ("purchase_date", "2023-06-01"),
        ("period_years", 3),
        ("review_status", "Approved"),
        ("reviewer_name", "Someone"),
        ("dealer_name", "Zip Scoot Mumbai"),
        ("dealer_id", 99),
    ])
    def test_fixed_fields_rejected(self, submit, dealer_user, dealer, field, value):
        record = submit()

        with pytest.raises(ValidationError) as exc:
            warranty_service.update_registration(dealer_user, record.id, {field: value}, dealer=dealer)
        assert exc.value.fields == [field]

        reloaded = warranty_store.get_by_id(record.id)
        assert reloaded.vin == "VIN123ABC"
        assert reloaded.period_years == 2

    def test_empty_update_rejected(self, submit, dealer_user, dealer):
        record = submit()
        with pytest.raises(ValidationError):
            warranty_service.update_registration(dealer_user, record.id, {}, dealer=dealer)

    def test_reviewed_record_is_frozen(self, submit, dealer_user, dealer, admin_user):
        record = submit()
        warranty_service.approve(record.id, admin_user)

        with pytest.raises(InvalidReviewStateError):
            warranty_service.update_registration(
                dealer_user, record.id, {"customer_name": "Changed"}, dealer=dealer
            )
        assert warranty_store.get_by_id(record.id).customer_name == "Asha Verma"

    def test_other_dealership_sees_not_found(self, submit, other_dealer_user, other_dealer):
        record = submit()

        with pytest.raises(WarrantyNotFoundError):
            warranty_service.update_registration(
                other_dealer_user, record.id, {"customer_name": "Hijacked"}, dealer=other_dealer
            )
        assert warranty_store.get_by_id(record.id).customer_name == "Asha Verma"

    def test_unknown_record(self, db_session, dealer_user, dealer):
        with pytest.raises(WarrantyNotFoundError):
            warranty_service.update_registration(
                dealer_user, "WAR-NOPE0000", {"customer_name": "x"}, dealer=dealer
            )


# =============================================================================
# NOTIFICATIONS
# =============================================================================


class TestReviewNotifications:

    def test_approval_notifies_dealer_and_customer(self, db_session, submit, admin_user, dealer_user, customer_user):
        record = submit()
        warranty_service.approve(record.id, admin_user)

        dealer_notes = notification_service.list_for_user(dealer_user.id)
        customer_notes = notification_service.list_for_user(customer_user.id)

        assert len(dealer_notes) == 1
        assert dealer_notes[0].title == "Warranty Approved"
        assert dealer_notes[0].priority == "normal"
        assert dealer_notes[0].data == {"warranty_id": record.id, "status": "Approved"}

        assert len(customer_notes) == 1
        assert "has been approved" in customer_notes[0].message
        assert "2 year(s) from 2023-01-01" in customer_notes[0].message

    def test_decline_notification_carries_reason(self, submit, admin_user, dealer_user, customer_user):
        record = submit()
        warranty_service.decline(record.id, admin_user, reason="documents illegible")

        dealer_note = notification_service.list_for_user(dealer_user.id)[0]
        customer_note = notification_service.list_for_user(customer_user.id)[0]

        assert dealer_note.priority == "high"
        assert "Reason: documents illegible" in dealer_note.message
        assert "contact your dealer" in customer_note.message

    def test_no_customer_account_only_dealer_notified(self, db_session, submit, admin_user):
        record = submit(customer_email="walkin@example.com")
        warranty_service.approve(record.id, admin_user)

        assert db_session.query(Notification).count() == 1

    def test_notification_failure_does_not_undo_transition(self, monkeypatch, submit, admin_user):
        def broken(event, record):
            raise RuntimeError("notification backend down")

        monkeypatch.setattr(notification_service, "publish_warranty_review", broken)
        record = submit()

        approved = warranty_service.approve(record.id, admin_user)

        assert approved.review_status == "Approved"
        assert warranty_store.get_by_id(record.id).review_status == "Approved"

    def test_mark_read_only_for_owner(self, submit, admin_user, dealer_user, customer_user):
        record = submit()
        warranty_service.approve(record.id, admin_user)
        note = notification_service.list_for_user(dealer_user.id)[0]

        with pytest.raises(ValueError):
            notification_service.mark_read(note.id, customer_user.id)

        read = notification_service.mark_read(note.id, dealer_user.id)
        assert read.is_read is True
        assert read.read_at is not None
        assert notification_service.list_for_user(dealer_user.id, unread_only=True) == []


# =============================================================================
# DUPLICATE VIN POLICY
# =============================================================================


class TestDuplicateVinPolicy:

    def test_allow_accepts_duplicates(self, submit):
        first = submit()
        second = submit(vin="VIN123abc")
        assert first.id != second.id
        assert len(warranty_store.list_by_vin("vin123abc")) == 2

    def test_block_open_rejects_while_pending(self, app, submit):
        app.config["WARRANTY_DUPLICATE_VIN_POLICY"] = "block_open"
        submit()
        with pytest.raises(ConflictError):
            submit()

    def test_block_open_allows_after_decline(self, app, submit, admin_user):
        app.config["WARRANTY_DUPLICATE_VIN_POLICY"] = "block_open"
        first = submit()
        warranty_service.decline(first.id, admin_user, reason="wrong VIN photo")

        second = submit()
        assert second.review_status == "PendingReview"

    def test_block_any_rejects_after_decline(self, app, submit, admin_user):
        app.config["WARRANTY_DUPLICATE_VIN_POLICY"] = "block_any"
        first = submit()
        warranty_service.decline(first.id, admin_user)

        with pytest.raises(ConflictError):
            submit()

    def test_admin_override(self, app, submit, admin_user):
        app.config["WARRANTY_DUPLICATE_VIN_POLICY"] = "block_any"
        submit()

        record = warranty_service.submit_registration(
            admin_user,
            registration_payload(dealer_name="Volt Motors Pune", override_duplicate=True),
        )
        assert record.review_status == "PendingReview"

    def test_dealer_cannot_override(self, app, submit):
        app.config["WARRANTY_DUPLICATE_VIN_POLICY"] = "block_any"
        submit()
        with pytest.raises(PermissionDeniedError):
            submit(override_duplicate=True)

    def test_unknown_policy_is_a_configuration_error(self, app, submit):
        app.config["WARRANTY_DUPLICATE_VIN_POLICY"] = "sometimes"
        with pytest.raises(ValueError, match="WARRANTY_DUPLICATE_VIN_POLICY"):
            submit()


# =============================================================================
# PUBLIC LOOKUP AND READ MODELS
# =============================================================================


class TestPublicLookup:

    def test_pending_and_declined_never_returned(self, submit, admin_user):
        submit()
        declined = submit()
        warranty_service.decline(declined.id, admin_user)

        with pytest.raises(WarrantyNotFoundError):
            warranty_service.public_lookup(vin="VIN123ABC")

    def test_vin_lookup_case_insensitive_and_projected(self, submit, admin_user):
        record = submit(vin="ABC123")
        warranty_service.approve(record.id, admin_user)

        [view] = warranty_service.public_lookup(vin="abc123", now=date(2024, 12, 15))

        assert view == {
            "id": record.id,
            "customer_name": "Asha Verma",
            "customer_email": "asha@example.com",
            "vehicle_model": "Volt S1",
            "vin": "ABC123",
            "purchase_date": "2023-01-01",
            "period_years": 2,
            "dealer_name": "Volt Motors Pune",
            "expiry_date": "2025-01-01T00:00:00Z",
            "is_expired": False,
            "days_remaining": 17,
            "status": "Active",
        }

    def test_expired_projection(self, submit, admin_user):
        record = submit()
        warranty_service.approve(record.id, admin_user)

        [view] = warranty_service.public_lookup(vin="VIN123ABC", now=datetime(2025, 2, 1))

        assert view["is_expired"] is True
        assert view["days_remaining"] == 0
        assert view["status"] == "Expired"

    def test_email_lookup(self, submit, admin_user):
        approved = submit()
        submit(vin="VIN999XYZ")
        warranty_service.approve(approved.id, admin_user)

        views = warranty_service.public_lookup(email="ASHA@example.com")
        assert [v["id"] for v in views] == [approved.id]

    def test_requires_vin_or_email(self, db_session):
        with pytest.raises(ValidationError):
            warranty_service.public_lookup(vin="  ", email=None)


class TestExpiring:

    def test_list_expiring_and_stats(self, submit, admin_user):
        soon = submit(purchase_date="2023-01-01", period_years=2)
        later = submit(vin="VIN999XYZ", purchase_date="2024-06-01", period_years=3)
        pending = submit(vin="VIN555PQR", purchase_date="2023-01-01", period_years=2)
        warranty_service.approve(soon.id, admin_user)
        warranty_service.approve(later.id, admin_user)

        expiring = warranty_service.list_expiring(now=date(2024, 12, 15))
        assert [(r.id, s.days_remaining) for r, s in expiring] == [(soon.id, 17)]

        wider = warranty_service.list_expiring(within_days=3 * 366, now=date(2024, 12, 15))
        assert [r.id for r, _ in wider] == [soon.id, later.id]
        assert pending.id not in [r.id for r, _ in wider]

        stats = warranty_service.dashboard_stats(now=date(2024, 12, 15))
        assert stats["by_review_status"] == {"PendingReview": 1, "Approved": 2, "Declined": 0}
        assert stats["total"] == 3
        assert stats["expiring_soon"] == 1

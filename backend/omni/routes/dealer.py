# Overview: Flask API routes for dealer operations; parses input and returns JSON responses.

"""
Dealer API routes

- GET  /api/dealer/profile     - The caller's dealer profile
- GET  /api/dealer/warranties  - Registrations submitted under the caller's dealership
- POST /api/dealer/warranties  - Submit a new registration (PendingReview)
- PUT  /api/dealer/warranties  - Correct a PendingReview registration ({id, ...fields})

SECURITY:
- dealer_name and dealer_id come from the caller's profile, NOT from the request body
- Admins may submit too; without a profile they must name the dealer explicitly
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models.auth import ROLE_DEALER
from ..services import dealer_service, warranty_service, warranty_store
from ..services.dealer_service import DealerNotFoundError
from ..services.permission_service import PermissionDeniedError
from ..services.warranty_store import InvalidReviewStateError, PersistenceError
from ..validation import ConflictError, ValidationError
from ..decorators import require_auth, require_permission


dealer_bp = Blueprint("dealer", __name__, url_prefix="/api/dealer")


@dealer_bp.get("/profile")
@require_auth
@require_permission("VIEW_DEALER_PROFILE")
def dealer_profile_route():
    try:
        dealer = dealer_service.get_dealer_for_user(g.current_user.id)
        return jsonify({"dealer": dealer.to_dict()}), 200

    except DealerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load dealer profile")
        return jsonify({"error": "Internal server error"}), 500


@dealer_bp.get("/warranties")
@require_auth
@require_permission("VIEW_DEALER_WARRANTIES")
def list_dealer_warranties_route():
    """
    List registrations submitted by the caller's dealership, newest first.

    Each entry carries its display_status (core status, days/percent
    remaining and the combined label).
    """
    try:
        dealer = dealer_service.get_dealer_for_user(g.current_user.id)
        records = warranty_store.list_by_dealer_name(dealer.business_name)

        return jsonify({
            "dealer": dealer.to_dict(),
            "warranties": [warranty_service.serialize(r) for r in records],
            "count": len(records),
        }), 200

    except DealerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except PersistenceError as e:
        return jsonify({"error": str(e), "retryable": True}), 503
    except Exception:
        current_app.logger.exception("Failed to list dealer warranties")
        return jsonify({"error": "Internal server error"}), 500


@dealer_bp.post("/warranties")
@require_auth
@require_permission("SUBMIT_WARRANTY")
def submit_warranty_route():
    """
    Submit a warranty registration.

    Request body:
    {
        "customer_name": "Asha Verma",
        "customer_email": "asha@example.com",
        "phone": "+91 98xxxxxx",              // optional
        "vehicle_model_name": "Volt S1",       // or "vehicle_model"
        "vin": "VIN123ABC",
        "purchase_date": "2024-03-15",
        "period_years": 2,                    // 1, 2 or 3
        "invoice_ref": "...",                 // optional
        "signature_ref": "...",               // optional
        "notes": "...",                       // optional
        "dealer_name": "...",                 // admins without a profile only
        "override_duplicate": false           // requires OVERRIDE_DUPLICATE_VIN
    }

    Error responses:
        400: Validation error (fields lists offending keys)
        403: Missing permission
        404: Dealer-role caller has no dealer profile
        409: Duplicate VIN rejected by policy
        503: Storage unavailable (retryable)
    """
    try:
        user = g.current_user
        dealer = dealer_service.find_dealer_for_user(user.id)
        if dealer is None and user.role == ROLE_DEALER:
            return jsonify({"error": "Dealer not found"}), 404

        record = warranty_service.submit_registration(
            user,
            request.get_json(silent=True),
            dealer=dealer,
        )

        return jsonify({
            "success": True,
            "warranty": warranty_service.serialize(record),
            "message": "Warranty registration submitted for review",
        }), 201

    except ValidationError as e:
        return jsonify({"error": str(e), "fields": e.fields}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except PermissionDeniedError as e:
        return jsonify({"error": "Permission denied", "message": str(e)}), 403
    except PersistenceError as e:
        return jsonify({"error": str(e), "retryable": True}), 503
    except Exception:
        current_app.logger.exception("Failed to submit warranty registration")
        return jsonify({"error": "Internal server error"}), 500


@dealer_bp.put("/warranties")
@require_auth
@require_permission("SUBMIT_WARRANTY")
def update_warranty_route():
    """
    Correct a registration the caller's dealership submitted.

    Request body:
    {
        "id": "WAR-7Q2K9ZD1",
        "customer_name": "Asha Verma",
        "phone": "+91 98xxxxxx"
    }

    Editable: customer_name, customer_email, phone, vehicle_model_name,
    vehicle_model_id, invoice_ref, signature_ref, notes. VIN, purchase_date
    and period_years cannot be changed.

    Error responses:
        400: Missing id, non-editable field or invalid value
        404: No dealer profile, or no such registration under this dealership
        409: Registration already reviewed
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400

        data = dict(data)
        record_id = data.pop("id", None)
        if not record_id:
            return jsonify({"error": "Warranty id is required", "fields": ["id"]}), 400

        dealer = dealer_service.find_dealer_for_user(g.current_user.id)
        if dealer is None:
            return jsonify({"error": "Dealer not found"}), 404

        record = warranty_service.update_registration(
            g.current_user,
            str(record_id),
            data,
            dealer=dealer,
        )

        return jsonify({
            "success": True,
            "warranty": warranty_service.serialize(record),
            "message": "Warranty updated successfully",
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e), "fields": e.fields}), 400
    except InvalidReviewStateError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        # Warranty not found (or owned by another dealership)
        return jsonify({"error": str(e)}), 404
    except PermissionDeniedError as e:
        return jsonify({"error": "Permission denied", "message": str(e)}), 403
    except PersistenceError as e:
        return jsonify({"error": str(e), "retryable": True}), 503
    except Exception:
        current_app.logger.exception("Failed to update warranty registration")
        return jsonify({"error": "Internal server error"}), 500

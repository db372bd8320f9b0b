# Overview: Flask API routes for reading warranty registrations; parses input and returns JSON responses.

from flask import Blueprint, jsonify, g, current_app

from ..services import dealer_service, permission_service, warranty_service, warranty_store
from ..services.warranty_store import PersistenceError, WarrantyNotFoundError
from ..decorators import require_auth, require_permission


warranties_bp = Blueprint("warranties", __name__, url_prefix="/api/warranties")


def _can_view(user, record) -> bool:
    permissions = permission_service.get_user_permissions(user)
    if "VIEW_ALL_WARRANTIES" in permissions:
        return True
    if "VIEW_DEALER_WARRANTIES" in permissions:
        dealer = dealer_service.find_dealer_for_user(user.id)
        if dealer is not None and record.dealer_name == dealer.business_name:
            return True
    if "VIEW_OWN_WARRANTIES" in permissions:
        return record.customer_email.lower() == user.email.lower()
    return False


@warranties_bp.get("/mine")
@require_auth
@require_permission("VIEW_OWN_WARRANTIES")
def my_warranties_route():
    """Registrations recorded under the caller's account email, any review status."""
    try:
        records = warranty_store.list_by_customer_email(g.current_user.email)
        return jsonify({
            "warranties": [warranty_service.serialize(r) for r in records],
            "count": len(records),
        }), 200

    except PersistenceError as e:
        return jsonify({"error": str(e), "retryable": True}), 503
    except Exception:
        current_app.logger.exception("Failed to list customer warranties")
        return jsonify({"error": "Internal server error"}), 500


@warranties_bp.get("/<record_id>")
@require_auth
def get_warranty_route(record_id: str):
    """
    Registration detail for admins, the submitting dealer, or the customer.

    Anyone else gets 404 so that ids cannot be enumerated.
    """
    try:
        record = warranty_store.get_by_id(record_id)
        if not _can_view(g.current_user, record):
            raise WarrantyNotFoundError(f"Warranty {record_id} not found")

        return jsonify({"warranty": warranty_service.serialize(record)}), 200

    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except PersistenceError as e:
        return jsonify({"error": str(e), "retryable": True}), 503
    except Exception:
        current_app.logger.exception("Failed to load warranty")
        return jsonify({"error": "Internal server error"}), 500

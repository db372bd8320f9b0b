# Overview: Flask API routes for the unauthenticated warranty check; parses input and returns JSON responses.

"""
Public warranty check

GET /api/public/warranty/check?vin=VIN123ABC
GET /api/public/warranty/check?email=asha@example.com

No authentication. Only Approved registrations are ever returned; pending
and declined records are indistinguishable from "not found".

Response (200):
{
    "success": true,
    "warranties": [
        {
            "id", "customer_name", "customer_email", "vehicle_model", "vin",
            "purchase_date", "period_years", "dealer_name",
            "expiry_date",       // ISO-8601, midnight UTC of the coverage end date
            "is_expired",
            "days_remaining",    // whole days, never negative
            "status"             // "Active" | "Expired"
        }
    ]
}
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import warranty_service
from ..services.warranty_store import PersistenceError, WarrantyNotFoundError
from ..validation import ValidationError


public_bp = Blueprint("public", __name__, url_prefix="/api/public")


@public_bp.get("/warranty/check")
def check_warranty_route():
    try:
        warranties = warranty_service.public_lookup(
            vin=request.args.get("vin"),
            email=request.args.get("email"),
        )
        return jsonify({"success": True, "warranties": warranties}), 200

    except ValidationError as e:
        return jsonify({"error": str(e), "fields": e.fields}), 400
    except WarrantyNotFoundError as e:
        return jsonify({"error": str(e), "warranties": []}), 404
    except PersistenceError as e:
        return jsonify({"error": str(e), "retryable": True}), 503
    except Exception:
        current_app.logger.exception("Failed to check warranty")
        return jsonify({"error": "Internal server error"}), 500

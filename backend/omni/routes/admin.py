# Overview: Flask API routes for warranty administration; parses input and returns JSON responses.

"""
Admin warranty review routes

- GET  /api/admin/warranties                 - All registrations (?review_status=PendingReview)
- PUT  /api/admin/warranties                 - Review: {id, review_status, notes?}
- POST /api/admin/warranties/:id/approve     - PendingReview -> Approved
- POST /api/admin/warranties/:id/decline     - PendingReview -> Declined ({reason?})
- GET  /api/admin/warranties/stats           - Counts per review status + expiring soon

SECURITY:
- All routes require REVIEW_WARRANTIES or VIEW_ALL_WARRANTIES
- The reviewer is taken from the authenticated session (g.current_user),
  NOT from the request body. This prevents audit trail spoofing.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import warranty_service, warranty_store
from ..services.permission_service import PermissionDeniedError
from ..services.warranty_status import ReviewStatus
from ..services.warranty_store import InvalidReviewStateError, PersistenceError
from ..validation import ValidationError
from ..decorators import require_auth, require_permission


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _review_response(record):
    return jsonify({
        "success": True,
        "warranty": warranty_service.serialize(record),
        "message": f"Warranty {record.review_status.lower()} successfully",
    }), 200


@admin_bp.get("/warranties")
@require_auth
@require_permission("VIEW_ALL_WARRANTIES")
def list_warranties_route():
    """
    List registrations, newest first.

    Query params:
        review_status: PendingReview | Approved | Declined (optional)
    """
    try:
        review_status = request.args.get("review_status")
        if review_status:
            if review_status not in {s.value for s in ReviewStatus}:
                return jsonify({"error": f"Invalid review_status '{review_status}'", "fields": ["review_status"]}), 400
            records = warranty_store.list_by_review_status(review_status)
        else:
            records = warranty_store.list_all()

        return jsonify({
            "success": True,
            "warranties": [warranty_service.serialize(r) for r in records],
            "count": len(records),
        }), 200

    except PersistenceError as e:
        return jsonify({"error": str(e), "retryable": True}), 503
    except Exception:
        current_app.logger.exception("Failed to list warranties")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.put("/warranties")
@require_auth
@require_permission("REVIEW_WARRANTIES")
def review_warranty_route():
    """
    Approve or decline a registration.

    Request body:
    {
        "id": "WAR-7Q2K9ZD1",
        "review_status": "Approved",   // or "Declined"
        "notes": "..."                 // optional, stored as the review notes
    }

    Error responses:
        400: Missing id or review_status other than Approved/Declined
        404: Registration not found
        409: Registration already reviewed
    """
    try:
        data = request.get_json(silent=True) or {}
        record_id = data.get("id")
        if not record_id:
            return jsonify({"error": "Warranty id is required", "fields": ["id"]}), 400

        record = warranty_service.review(
            str(record_id),
            g.current_user,
            data.get("review_status"),
            notes=data.get("notes"),
        )
        return _review_response(record)

    except ValidationError as e:
        return jsonify({"error": str(e), "fields": e.fields}), 400
    except InvalidReviewStateError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        # Warranty not found
        return jsonify({"error": str(e)}), 404
    except PermissionDeniedError as e:
        return jsonify({"error": "Permission denied", "message": str(e)}), 403
    except PersistenceError as e:
        return jsonify({"error": str(e), "retryable": True}), 503
    except Exception:
        current_app.logger.exception("Failed to review warranty")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/warranties/<record_id>/approve")
@require_auth
@require_permission("REVIEW_WARRANTIES")
def approve_warranty_route(record_id: str):
    """
    Approve a PendingReview registration (PendingReview -> Approved).

    Error responses:
        400: notes is not a string
        404: Registration not found
        409: Registration not in PendingReview
    """
    try:
        data = request.get_json(silent=True) or {}
        record = warranty_service.approve(record_id, g.current_user, notes=data.get("notes"))
        return _review_response(record)

    except ValidationError as e:
        return jsonify({"error": str(e), "fields": e.fields}), 400
    except InvalidReviewStateError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except PermissionDeniedError as e:
        return jsonify({"error": "Permission denied", "message": str(e)}), 403
    except PersistenceError as e:
        return jsonify({"error": str(e), "retryable": True}), 503
    except Exception:
        current_app.logger.exception("Failed to approve warranty")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/warranties/<record_id>/decline")
@require_auth
@require_permission("REVIEW_WARRANTIES")
def decline_warranty_route(record_id: str):
    """
    Decline a PendingReview registration (PendingReview -> Declined).

    Request body (optional):
    {
        "reason": "documents illegible"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        record = warranty_service.decline(record_id, g.current_user, reason=data.get("reason"))
        return _review_response(record)

    except ValidationError as e:
        return jsonify({"error": str(e), "fields": e.fields}), 400
    except InvalidReviewStateError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except PermissionDeniedError as e:
        return jsonify({"error": "Permission denied", "message": str(e)}), 403
    except PersistenceError as e:
        return jsonify({"error": str(e), "retryable": True}), 503
    except Exception:
        current_app.logger.exception("Failed to decline warranty")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.get("/warranties/stats")
@require_auth
@require_permission("VIEW_ALL_WARRANTIES")
def warranty_stats_route():
    try:
        return jsonify({"success": True, "stats": warranty_service.dashboard_stats()}), 200

    except PersistenceError as e:
        return jsonify({"error": str(e), "retryable": True}), 503
    except Exception:
        current_app.logger.exception("Failed to compute warranty stats")
        return jsonify({"error": "Internal server error"}), 500

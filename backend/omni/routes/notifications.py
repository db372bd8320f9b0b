# Overview: Flask API routes for in-app notifications; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import notification_service
from ..decorators import require_auth, require_permission


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
@require_permission("VIEW_NOTIFICATIONS")
def list_notifications_route():
    """
    List the caller's notifications, newest first.

    Query params:
        unread: "true" to return only unread notifications
        limit: max rows (default 100)
    """
    try:
        unread_only = request.args.get("unread", "").lower() in ("1", "true", "yes")
        try:
            limit = int(request.args.get("limit", 100))
        except ValueError:
            return jsonify({"error": "limit must be an integer"}), 400
        if limit < 1:
            return jsonify({"error": "limit must be positive"}), 400

        notifications = notification_service.list_for_user(
            g.current_user.id,
            unread_only=unread_only,
            limit=limit,
        )
        return jsonify({
            "notifications": [n.to_dict() for n in notifications],
            "unread_count": notification_service.count_unread(g.current_user.id),
        }), 200

    except Exception:
        current_app.logger.exception("Failed to list notifications")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.post("/<int:notification_id>/read")
@require_auth
@require_permission("VIEW_NOTIFICATIONS")
def mark_notification_read_route(notification_id: int):
    try:
        notification = notification_service.mark_read(notification_id, g.current_user.id)
        return jsonify({"notification": notification.to_dict()}), 200

    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to mark notification read")
        return jsonify({"error": "Internal server error"}), 500

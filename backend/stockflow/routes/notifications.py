# Overview: Flask API routes for in-app notifications.

"""
Notification API Routes

WHY: Feed the header bell (recent + unread count) and the notifications page
(list, filters, bulk actions).
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_tenant
from ..services import notification_service
from ..validation import NotFoundError, ValidationError


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


# =============================================================================
# QUERIES
# =============================================================================

@notifications_bp.get("")
@require_tenant
def list_notifications_route():
    """
    List notifications, newest first.

    Query params: type, priority, read, search, page, limit

    Returns:
        200: {"data": [...], "meta": {"total", "page", "limit", "total_pages", "unread_count"}}
    """
    try:
        result = notification_service.list_notifications(g.org_id, request.args.to_dict())
        return jsonify(result), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list notifications")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.get("/recent")
@require_tenant
def recent_notifications_route():
    try:
        rows = notification_service.get_recent_notifications(g.org_id, request.args.get("limit"))
        return jsonify([n.to_dict() for n in rows]), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to load recent notifications")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.get("/unread/count")
@require_tenant
def unread_count_route():
    try:
        return jsonify(notification_service.get_unread_summary(g.org_id)), 200
    except Exception:
        current_app.logger.exception("Failed to count unread notifications")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.get("/<int:notification_id>")
@require_tenant
def get_notification_route(notification_id: int):
    try:
        notification = notification_service.get_notification(g.org_id, notification_id)
        return jsonify(notification.to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to load notification %s", notification_id)
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# MUTATIONS
# =============================================================================

@notifications_bp.post("")
@require_tenant
def create_notification_route():
    """
    Create a notification.

    Request body:
    {
        "type": "PAYMENT_RECEIVED",
        "title": "Pago recibido",
        "message": "...",
        "priority": "HIGH",  (optional, default MEDIUM)
        "user_id": "u-1",  (optional)
        "link": "/payments/12",  (optional)
        "metadata": {...}  (optional)
    }
    """
    try:
        notification = notification_service.create_notification(g.org_id, _json_body())
        return jsonify(notification.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create notification")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.patch("/<int:notification_id>/read")
@require_tenant
def mark_read_route(notification_id: int):
    try:
        notification = notification_service.mark_as_read(g.org_id, notification_id)
        return jsonify(notification.to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to mark notification %s as read", notification_id)
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.patch("/<int:notification_id>/unread")
@require_tenant
def mark_unread_route(notification_id: int):
    try:
        notification = notification_service.mark_as_unread(g.org_id, notification_id)
        return jsonify(notification.to_dict()), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to mark notification %s as unread", notification_id)
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.patch("/read")
@require_tenant
def mark_many_read_route():
    """Request body: {"ids": [1, 2, 3]}"""
    try:
        data = _json_body()
        return jsonify(notification_service.mark_many_as_read(g.org_id, data.get("ids"))), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to mark notifications as read")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.patch("/read-all")
@require_tenant
def mark_all_read_route():
    try:
        return jsonify(notification_service.mark_all_as_read(g.org_id)), 200
    except Exception:
        current_app.logger.exception("Failed to mark all notifications as read")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.delete("/<int:notification_id>")
@require_tenant
def delete_notification_route(notification_id: int):
    try:
        notification_service.delete_notification(g.org_id, notification_id)
        return jsonify({"success": True}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete notification %s", notification_id)
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.delete("")
@require_tenant
def delete_many_route():
    """Request body: {"ids": [1, 2, 3]}"""
    try:
        data = _json_body()
        return jsonify(notification_service.delete_many(g.org_id, data.get("ids"))), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to delete notifications")
        return jsonify({"error": "Internal server error"}), 500


@notifications_bp.delete("/clear-read")
@require_tenant
def clear_read_route():
    try:
        return jsonify(notification_service.clear_read(g.org_id)), 200
    except Exception:
        current_app.logger.exception("Failed to clear read notifications")
        return jsonify({"error": "Internal server error"}), 500

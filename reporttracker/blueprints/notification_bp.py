"""
ReportTracker
Notification Blueprint — the caller's in-app inbox.

Endpoints:
    GET    /api/v1/notifications                 — List (newest first); ?unread=true
    GET    /api/v1/notifications/unread-count    — Badge count
    PATCH  /api/v1/notifications/<id>/read       — Mark one as read
"""

from flask import Blueprint, jsonify, request

from reporttracker.auth import current_principal, require_auth
from reporttracker.services.notification import NotificationService
from reporttracker.utils.errors import register_service_error_handlers

notification_bp = Blueprint("notification_bp", __name__, url_prefix="/api/v1")
register_service_error_handlers(notification_bp)


@notification_bp.route("/notifications", methods=["GET"])
@require_auth
def list_notifications():
    unread_only = request.args.get("unread", "false").lower() in ("true", "1", "yes")
    try:
        limit = min(int(request.args.get("limit", 200)), 1000)
    except (ValueError, TypeError):
        limit = 200
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0

    items, total = NotificationService.list_for_user(
        current_principal().user_id, unread_only=unread_only, limit=limit, offset=offset,
    )
    return jsonify({"items": [n.to_dict() for n in items], "total": total})


@notification_bp.route("/notifications/unread-count", methods=["GET"])
@require_auth
def unread_count():
    return jsonify({"unread_count": NotificationService.unread_count(current_principal().user_id)})


@notification_bp.route("/notifications/<int:notification_id>/read", methods=["PATCH"])
@require_auth
def mark_read(notification_id):
    notif = NotificationService.mark_read(notification_id, current_principal())
    return jsonify(notif.to_dict())

"""
Daily Data Blueprint — the canonical records flags are raised against.

Endpoints:
    POST    /api/v1/daily-data         — Submit an entry (users file under their own code)
    GET     /api/v1/daily-data         — Admin: list entries; ?year=&month=&division=
    GET     /api/v1/daily-data/mine    — Entries submitted by the caller
    GET     /api/v1/daily-data/<id>    — Single entry (admin, or the caller's own division)
    PATCH   /api/v1/daily-data/<id>    — Admin: edit fields
    DELETE  /api/v1/daily-data/<id>    — Admin: delete entry and its flags
"""

from flask import Blueprint, jsonify, request

from reporttracker.auth import current_principal, require_auth, require_role
from reporttracker.blueprints import paginate_query, request_data
from reporttracker.core.exceptions import ForbiddenError, ValidationError
from reporttracker.services import daily_data_service
from reporttracker.utils.errors import register_service_error_handlers

daily_data_bp = Blueprint("daily_data_bp", __name__, url_prefix="/api/v1")
register_service_error_handlers(daily_data_bp)


def _int_arg(name):
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer", details={name: "must be an integer"}) from None


@daily_data_bp.route("/daily-data", methods=["POST"])
@require_auth
def create_daily_data():
    entry = daily_data_service.create_daily_data(request_data(), current_principal())
    return jsonify(entry.to_dict()), 201


@daily_data_bp.route("/daily-data", methods=["GET"])
@require_auth
@require_role("admin")
def list_daily_data():
    query = daily_data_service.list_daily_data(
        year=_int_arg("year"),
        month=_int_arg("month"),
        division=request.args.get("division"),
    )
    items, total = paginate_query(query)
    return jsonify({"items": [d.to_dict() for d in items], "total": total})


@daily_data_bp.route("/daily-data/mine", methods=["GET"])
@require_auth
def list_my_daily_data():
    items, total = paginate_query(daily_data_service.list_for_user(current_principal().user_id))
    return jsonify({"items": [d.to_dict() for d in items], "total": total})


@daily_data_bp.route("/daily-data/<int:daily_data_id>", methods=["GET"])
@require_auth
def get_daily_data(daily_data_id):
    principal = current_principal()
    entry = daily_data_service.get_daily_data(daily_data_id)
    if not principal.is_admin and not principal.owns_division(entry.division):
        raise ForbiddenError("Not authorized")
    return jsonify(entry.to_dict())


@daily_data_bp.route("/daily-data/<int:daily_data_id>", methods=["PATCH"])
@require_auth
@require_role("admin")
def update_daily_data(daily_data_id):
    return jsonify(daily_data_service.update_daily_data(daily_data_id, request_data()).to_dict())


@daily_data_bp.route("/daily-data/<int:daily_data_id>", methods=["DELETE"])
@require_auth
@require_role("admin")
def delete_daily_data(daily_data_id):
    daily_data_service.delete_daily_data(daily_data_id)
    return jsonify({"deleted": True, "id": daily_data_id})

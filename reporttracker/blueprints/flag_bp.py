"""
Flag Blueprint — dispute workflow over daily data.

Endpoints:
    POST   /api/v1/flags                    — Raise a flag (JSON or multipart with ``slip``)
    GET    /api/v1/flags                    — List flags (admin: all, user: own); ?status=
    GET    /api/v1/flags/<id>               — Single flag (owner or admin)
    PATCH  /api/v1/flags/<id>               — Edit proposal / remarks / slip
    PATCH  /api/v1/flags/<id>/accept        — Admin: apply proposed values
    PATCH  /api/v1/flags/<id>/discard       — Admin: restore the snapshot
    PATCH  /api/v1/flags/<id>/revive        — Admin: re-open a decided flag

All business rules live in services/flag_workflow.py; this module only
parses requests and shapes responses.
"""

import logging

from flask import Blueprint, jsonify, request

from reporttracker.auth import current_principal, require_auth, require_role
from reporttracker.blueprints import paginate_query, request_data
from reporttracker.services import flag_workflow
from reporttracker.services.evidence_store import EvidenceUpload
from reporttracker.utils.errors import register_service_error_handlers

logger = logging.getLogger(__name__)

flag_bp = Blueprint("flag_bp", __name__, url_prefix="/api/v1")
register_service_error_handlers(flag_bp)


def _slip_from_request():
    return EvidenceUpload.from_file_storage(request.files.get("slip"))


@flag_bp.route("/flags", methods=["POST"])
@require_auth
def create_flag():
    """
    Raise a flag against a daily data record.

    Body (JSON or multipart/form-data):
        daily_data_id, any of liters / dry_kilos / metrolac / nh3_volume / tmt_d_volume,
        remark_text?, remark_tags?, slip? (file, multipart only)
    """
    flag = flag_workflow.create_flag(current_principal(), request_data(), _slip_from_request())
    return jsonify({"message": "Flag created", "flag": flag.to_dict()}), 201


@flag_bp.route("/flags", methods=["GET"])
@require_auth
def list_flags():
    query = flag_workflow.list_flags(current_principal(), status=request.args.get("status") or None)
    items, total = paginate_query(query)
    return jsonify({"items": [f.to_dict() for f in items], "total": total})


@flag_bp.route("/flags/<int:flag_id>", methods=["GET"])
@require_auth
def get_flag(flag_id):
    return jsonify(flag_workflow.get_flag(flag_id, current_principal()).to_dict())


@flag_bp.route("/flags/<int:flag_id>", methods=["PATCH"])
@require_auth
def edit_flag(flag_id):
    flag = flag_workflow.edit_flag(flag_id, current_principal(), request_data(), _slip_from_request())
    return jsonify({"message": "Flag updated", "flag": flag.to_dict()})


def _transition_response(flag_id, action):
    result = flag_workflow.transition_flag(flag_id, action, current_principal())
    flag = flag_workflow.get_flag(flag_id, current_principal())
    return jsonify({"message": result["message"], "result": result, "flag": flag.to_dict()})


@flag_bp.route("/flags/<int:flag_id>/accept", methods=["PATCH"])
@require_auth
@require_role("admin")
def accept_flag(flag_id):
    return _transition_response(flag_id, "accept")


@flag_bp.route("/flags/<int:flag_id>/discard", methods=["PATCH"])
@require_auth
@require_role("admin")
def discard_flag(flag_id):
    return _transition_response(flag_id, "discard")


@flag_bp.route("/flags/<int:flag_id>/revive", methods=["PATCH"])
@require_auth
@require_role("admin")
def revive_flag(flag_id):
    return _transition_response(flag_id, "revive")

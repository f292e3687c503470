"""
Auth Blueprint — JWT authentication endpoints.

Endpoints:
  POST /api/v1/auth/login       — Code + password → access token
  GET  /api/v1/auth/me          — Current user profile
"""

import logging

from flask import Blueprint, jsonify, request

from reporttracker import limiter
from reporttracker.auth import current_principal, require_auth
from reporttracker.models import db
from reporttracker.models.user import User
from reporttracker.services.jwt_service import token_response
from reporttracker.services.user_service import authenticate_user
from reporttracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
@limiter.limit("10/minute")
def login():
    """
    Authenticate with division code + password.

    Body: { "code": "...", "password": "..." }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    code = str(data.get("code") or "").strip()
    password = data.get("password") or ""

    if not code or not password:
        return api_error(E.VALIDATION_REQUIRED, "Code and password are required")

    user = authenticate_user(code, password)
    if user is None:
        logger.info("Failed login for code '%s' from %s", code, request.remote_addr)
        return api_error(E.UNAUTHENTICATED, "Invalid code or password")
    if not user.is_approved:
        return api_error(E.FORBIDDEN, "Account is awaiting approval")

    return jsonify(token_response(user)), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    user = db.session.get(User, current_principal().user_id)
    return jsonify(user.to_dict())

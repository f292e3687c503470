"""
JWT Auth Middleware — parses the bearer token and sets g.principal.

For every /api/v1/* request (except the skip list):
  1. Read Authorization: Bearer <token>
  2. Verify the token (signature, expiry, type)
  3. Load the user row and build a Principal from its current role + code

Failures never abort here: g.principal stays None and g.auth_error holds
the reason, so @require_auth can answer with a 401.
"""

import logging

import jwt as pyjwt
from flask import g, request

from reporttracker.auth import Principal
from reporttracker.models import db
from reporttracker.models.user import User
from reporttracker.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/health",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.principal = None
        g.auth_error = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            g.auth_error = "No token provided"
            return

        token = auth_header[7:].strip()
        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            g.auth_error = "Token expired"
            return
        except pyjwt.InvalidTokenError:
            g.auth_error = "Invalid token"
            return

        try:
            user_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            g.auth_error = "Invalid token"
            return

        user = db.session.get(User, user_id)
        if user is None or not user.is_approved:
            logger.warning("Token for unknown or unapproved user %s rejected", user_id)
            g.auth_error = "Invalid token"
            return

        g.principal = Principal.from_user(user)

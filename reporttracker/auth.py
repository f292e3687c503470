"""
ReportTracker
Authentication & Authorization decorators.

Provides:
    - Principal: the acting user as seen by the service layer
    - require_auth: reject requests without a valid bearer token
    - require_role: reject principals without the required role

Security model:
    - Every /api/v1/* endpoint except login and health requires a JWT
      (Authorization: Bearer <token>), resolved by middleware/jwt_auth.py.
    - Accept / discard / revive and daily-data administration require the
      'admin' role. Ownership checks live in the service layer.
"""

import functools
import logging
from dataclasses import dataclass

from flask import g

from reporttracker.models.user import ADMIN_ROLE, normalize_code
from reporttracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """Acting user: id, role and division code."""

    user_id: int
    role: str
    code: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    def owns_division(self, division) -> bool:
        """True if this principal's code matches ``division`` (case-insensitive, trimmed)."""
        mine = normalize_code(self.code)
        return bool(mine) and mine == normalize_code(division)

    @classmethod
    def from_user(cls, user) -> "Principal":
        return cls(user_id=user.id, role=user.role, code=user.code or "")


def current_principal() -> Principal | None:
    return getattr(g, "principal", None)


def require_auth(f):
    """
    Decorator: require an authenticated principal.

    The JWT middleware has already run; this only turns its outcome into
    a 401 when no principal could be resolved.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if current_principal() is None:
            reason = getattr(g, "auth_error", None) or "No token provided"
            return api_error(E.UNAUTHENTICATED, reason)
        return f(*args, **kwargs)

    return decorated


def require_role(role: str):
    """
    Decorator: require an exact role.

    Usage:
        @require_auth
        @require_role("admin")
        def accept_flag(flag_id): ...
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            principal = current_principal()
            if principal is None:
                return api_error(E.UNAUTHENTICATED, "Authentication required")
            if principal.role != role:
                logger.warning(
                    "Access denied: user %s with role '%s' tried to access '%s'-only endpoint %s",
                    principal.user_id, principal.role, role, f.__name__,
                )
                return api_error(E.FORBIDDEN, "Forbidden")
            return f(*args, **kwargs)

        return decorated
    return decorator

"""
User service — lookups and account creation used by auth, CLI and notifications.

All user persistence belongs here, not in blueprints.
"""

from __future__ import annotations

import logging

from flask import current_app

from reporttracker.core.exceptions import ValidationError
from reporttracker.models import db
from reporttracker.models.user import ADMIN_ROLE, ROLES, User, normalize_code
from reporttracker.utils.crypto import hash_password, verify_password
from reporttracker.utils.helpers import commit_or_rollback

logger = logging.getLogger(__name__)


def get_user_by_code(code: str) -> User | None:
    return User.query.filter_by(code=normalize_code(code)).first()


def authenticate_user(code: str, password: str) -> User | None:
    """Return the user for valid credentials, else None.

    Unknown code and wrong password are indistinguishable to the caller.
    """
    user = get_user_by_code(code)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def create_user(
    *,
    name: str,
    code: str,
    password: str,
    role: str = "user",
    email: str | None = None,
    phone: str | None = None,
) -> User:
    """Create and commit a user. Raises ValidationError on bad input or duplicate code."""
    code = normalize_code(code)
    errors = {}
    if not (name or "").strip():
        errors["name"] = "required"
    if not code:
        errors["code"] = "required"
    if not password:
        errors["password"] = "required"
    if role not in ROLES:
        errors["role"] = f"must be one of {', '.join(ROLES)}"
    if errors:
        raise ValidationError("Invalid user data", details=errors)
    if get_user_by_code(code):
        raise ValidationError(f"User code '{code}' already exists", details={"code": "already exists"})

    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    user = User(
        name=name.strip(),
        code=code,
        password_hash=hash_password(password, rounds=rounds),
        role=role,
        email=(email or "").strip().lower() or None,
        phone=phone,
    )
    db.session.add(user)
    commit_or_rollback()
    logger.info("User created: id=%s code=%s role=%s", user.id, user.code, user.role)
    return user


def list_admin_ids() -> list[int]:
    """IDs of every admin, the audience of new-flag notifications."""
    rows = db.session.query(User.id).filter(User.role == ADMIN_ROLE).order_by(User.id).all()
    return [row[0] for row in rows]


def get_users_by_ids(user_ids) -> list[User]:
    if not user_ids:
        return []
    return User.query.filter(User.id.in_(list(user_ids))).all()

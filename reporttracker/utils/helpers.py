"""Shared parsing helpers used by blueprints and services.

parse_date:          returns None on empty/bad input
parse_remark_tags:   list | JSON-encoded list | comma-separated string -> list[str]
commit_or_rollback:  commit the session, rolling back and re-raising on failure
"""
import json
import logging
from datetime import date, datetime

from reporttracker.models import db

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_remark_tags(value) -> list[str]:
    """Normalise remark tags sent as a list, a JSON list or a comma list.

    Multipart forms can only carry strings, so the UI sends either
    ``'["wrong reading", "late"]'`` or ``"wrong reading, late"``.
    """
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except ValueError:
            decoded = value.split(",")
        value = decoded if isinstance(decoded, list) else [decoded]
    if not isinstance(value, (list, tuple)):
        value = [value]
    return [str(tag).strip() for tag in value if str(tag).strip()]


def commit_or_rollback():
    """Commit the current SQLAlchemy session; roll back and re-raise on failure.

    Services own their commits. A failed commit must never leave the
    scoped session in a half-flushed state for the next request.
    """
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Database error on commit")
        raise

"""
ReportTracker
Blueprint registry.
"""

from flask import request

from reporttracker.core.exceptions import ValidationError


def paginate_query(query, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit  — max items (default 200, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = query.count()
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = query.limit(limit).offset(offset).all()
    return items, total


def request_data() -> dict:
    """Body of a JSON or multipart/form request as a plain dict.

    An empty body reads as ``{}``. JSON that does not parse to an object
    (arrays, strings, numbers, malformed text) is a ValidationError.
    """
    if not request.is_json:
        return request.form.to_dict()
    if not request.get_data():
        return {}
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object", details={"body": "must be an object"})
    return body

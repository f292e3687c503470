"""
Daily data service — CRUD over DailyData and the two calls the flag
workflow relies on (``find_by_id``, ``update_fields``).

Rules:
  - db.session.commit() happens in the service layer only.
  - Non-admin entries are always filed under the submitter's own division code.
"""

from __future__ import annotations

import logging
from datetime import date

from reporttracker.core.exceptions import NotFoundError, ValidationError
from reporttracker.models import db
from reporttracker.models.daily_data import NUMERIC_FIELDS, DailyData
from reporttracker.services.field_values import FieldValues, apply_present, parse_number
from reporttracker.utils.helpers import commit_or_rollback, parse_date

logger = logging.getLogger(__name__)


def find_by_id(daily_data_id: int) -> DailyData | None:
    return db.session.get(DailyData, daily_data_id)


def get_daily_data(daily_data_id: int) -> DailyData:
    entry = find_by_id(daily_data_id)
    if entry is None:
        raise NotFoundError("Daily data", daily_data_id)
    return entry


def update_fields(daily_data_id: int, values: FieldValues) -> DailyData:
    """Sparse-write ``values`` onto a record. Flushes; the caller commits."""
    entry = get_daily_data(daily_data_id)
    written = apply_present(entry, values)
    db.session.flush()
    logger.debug("DailyData %s fields written: %s", daily_data_id, ", ".join(written) or "-")
    return entry


def _month_bounds(year: int, month: int | None) -> tuple[date, date]:
    if month is None:
        return date(year, 1, 1), date(year + 1, 1, 1)
    if month == 12:
        return date(year, 12, 1), date(year + 1, 1, 1)
    return date(year, month, 1), date(year, month + 1, 1)


def list_daily_data(*, year: int | None = None, month: int | None = None,
                    division: str | None = None):
    """Admin listing, newest first. Month only applies together with year."""
    q = DailyData.query
    if division:
        q = q.filter(DailyData.division == division.strip())
    if year:
        if month is not None and not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12", details={"month": "out of range"})
        start, end = _month_bounds(year, month)
        q = q.filter(DailyData.date >= start, DailyData.date < end)
    return q.order_by(DailyData.date.desc(), DailyData.id.desc())


def list_for_user(user_id: int):
    return (
        DailyData.query.filter_by(created_by_id=user_id)
        .order_by(DailyData.date.desc(), DailyData.id.desc())
    )


def _parse_numbers(data: dict, *, default_zero: bool) -> dict:
    values, errors = {}, {}
    for field in NUMERIC_FIELDS:
        raw = data.get(field)
        if raw is None or raw == "":
            if default_zero:
                values[field] = 0.0
            continue
        try:
            values[field] = parse_number(field, raw)
        except ValidationError as exc:
            errors.update(exc.details)
    if errors:
        raise ValidationError("Invalid daily data values", details=errors)
    return values


def create_daily_data(data: dict, principal) -> DailyData:
    """Create an entry. Admins choose the division; everyone else gets their own code."""
    entry_date = parse_date(data.get("date"))
    if entry_date is None:
        raise ValidationError("Date is required", details={"date": "required (YYYY-MM-DD)"})
    numbers = _parse_numbers(data, default_zero=True)

    if principal.is_admin:
        division = (data.get("division") or "").strip()
        created_by_id = data.get("created_by_id") or principal.user_id
    else:
        division = (principal.code or data.get("division") or "").strip()
        created_by_id = principal.user_id

    entry = DailyData(
        date=entry_date,
        division=division,
        supplier_code=(data.get("supplier_code") or "").strip(),
        created_by_id=created_by_id,
        **numbers,
    )
    db.session.add(entry)
    commit_or_rollback()
    logger.info("DailyData created: id=%s division=%s date=%s by user %s",
                entry.id, entry.division, entry.date, principal.user_id)
    return entry


def update_daily_data(daily_data_id: int, data: dict) -> DailyData:
    """Admin edit: only the fields supplied are changed."""
    entry = get_daily_data(daily_data_id)
    values = _parse_numbers(data, default_zero=False)
    if data.get("date"):
        parsed = parse_date(data["date"])
        if parsed is None:
            raise ValidationError("Invalid date", details={"date": "use YYYY-MM-DD"})
        values["date"] = parsed
    if "division" in data:
        values["division"] = (data.get("division") or "").strip()
    if "supplier_code" in data:
        values["supplier_code"] = (data.get("supplier_code") or "").strip()

    apply_present(entry, FieldValues(**values))
    commit_or_rollback()
    logger.info("DailyData updated: id=%s fields=%s", entry.id, sorted(values))
    return entry


def delete_daily_data(daily_data_id: int) -> None:
    """Admin delete. Flags raised against the record go with it."""
    entry = get_daily_data(daily_data_id)
    db.session.delete(entry)
    commit_or_rollback()
    logger.info("DailyData deleted: id=%s", daily_data_id)

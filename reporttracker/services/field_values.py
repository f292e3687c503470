"""
Daily-data field values shared by flag snapshots and flag proposals.

A ``FieldValues`` holds the disputable view of one DailyData record. Every
field is optional: ``None`` means "absent", and absent fields are never
written by ``apply_present``. Accept merges a flag's proposal onto the record
with it; Discard merges the creation-time snapshot back with the same call,
so a user can dispute only ``liters`` without blanking ``metrolac``.

Usage:
    snapshot = FieldValues.from_record(daily)
    proposal = parse_proposed_fields(request_data)
    apply_present(daily, proposal)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from datetime import date

from reporttracker.core.exceptions import ValidationError
from reporttracker.models.daily_data import NUMERIC_FIELDS
from reporttracker.utils.helpers import parse_date

# Fields a user may propose a replacement value for
PROPOSABLE_FIELDS = NUMERIC_FIELDS


@dataclass
class FieldValues:
    date: date | None = None
    liters: float | None = None
    dry_kilos: float | None = None
    metrolac: float | None = None
    nh3_volume: float | None = None
    tmt_d_volume: float | None = None
    division: str | None = None
    supplier_code: str | None = None

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_record(cls, record) -> FieldValues:
        """Capture every field of a DailyData record (the admin snapshot)."""
        return cls(**{name: getattr(record, name) for name in cls.field_names()})

    @classmethod
    def from_json(cls, data: dict | None) -> FieldValues:
        """Rebuild from a stored JSON mapping; unknown keys are ignored."""
        data = data or {}
        values = {name: data[name] for name in cls.field_names() if data.get(name) is not None}
        if "date" in values:
            values["date"] = parse_date(values["date"])
        return cls(**values)

    def present(self) -> dict:
        """Field name → value for every field that is set."""
        return {
            name: getattr(self, name)
            for name in self.field_names()
            if getattr(self, name) is not None
        }

    def to_json(self) -> dict:
        out = self.present()
        if "date" in out:
            out["date"] = out["date"].isoformat()
        return out

    def is_empty(self) -> bool:
        return not self.present()

    def merged_with(self, other: FieldValues) -> FieldValues:
        """Return a copy where every present field of ``other`` wins."""
        return FieldValues(**{**self.present(), **other.present()})


def apply_present(target, source: FieldValues) -> list[str]:
    """Copy only the present fields of ``source`` onto ``target``.

    Returns the names of the fields written, in declaration order.
    """
    written = []
    for name, value in source.present().items():
        setattr(target, name, value)
        written.append(name)
    return written


def parse_number(field: str, raw) -> float:
    """Parse one non-negative numeric input, raising ValidationError on bad input."""
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be a number", details={field: "must be a number"})
    try:
        value = float(str(raw).strip()) if isinstance(raw, str) else float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", details={field: "must be a number"}) from None
    if math.isnan(value) or math.isinf(value):
        raise ValidationError(f"{field} must be a finite number", details={field: "must be finite"})
    if value < 0:
        raise ValidationError(f"{field} must not be negative", details={field: "must be >= 0"})
    return value


def parse_proposed_fields(data: dict) -> FieldValues:
    """Build a proposal from request data, keeping only the fields supplied.

    Keys that are missing, ``None`` or an empty string count as not proposed.
    All malformed values are reported together in ``ValidationError.details``.
    """
    values: dict[str, float] = {}
    errors: dict[str, str] = {}
    for field in PROPOSABLE_FIELDS:
        raw = data.get(field)
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            continue
        try:
            values[field] = parse_number(field, raw)
        except ValidationError as exc:
            errors.update(exc.details)
    if errors:
        raise ValidationError("Invalid proposed values", details=errors)
    return FieldValues(**values)

"""
Flag Review & Reconciliation Workflow.

Manages disputes (FlaggedDailyData) against canonical DailyData records:

    create   (none)               → open       user or admin; division must match for users
    edit     open | revived       → unchanged  owner or admin; admins may edit any status
    accept   open | revived       → accepted   admin; proposal merged onto the record
    discard  any                  → discarded  admin; creation snapshot merged back
    revive   accepted | discarded → revived    admin; record untouched

Accept and discard use the same sparse merge (``update_fields``): only the
fields present in the source are written, so the record is consistent
whichever side won last.

Admin transitions are a single conditional UPDATE on ``status``; zero
matched rows means another request moved the flag first, or the move is
not allowed, and the caller gets a ConflictError.

Every successful create / accept / discard / revive publishes exactly one
NotificationEvent after the commit. Publishing never fails the operation.

Usage:
    from reporttracker.services import flag_workflow

    flag = flag_workflow.create_flag(principal, {"daily_data_id": 7, "liters": 90})
    result = flag_workflow.accept_flag(flag.id, admin_principal)
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from reporttracker.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from reporttracker.models import db
from reporttracker.models.flag import (
    ACTIVE_STATUSES,
    FLAG_STATUSES,
    FLAG_TRANSITIONS,
    LOCKED_STATUSES,
    TRANSITION_EVENT_TYPES,
    FlaggedDailyData,
    validate_flag_transition,
)
from reporttracker.services import daily_data_service
from reporttracker.services.evidence_store import EvidenceStore, EvidenceUpload, get_evidence_store
from reporttracker.services.field_values import (
    PROPOSABLE_FIELDS,
    FieldValues,
    parse_proposed_fields,
)
from reporttracker.services.notification import (
    NotificationEvent,
    NotificationSink,
    get_notification_sink,
)
from reporttracker.utils.helpers import commit_or_rollback, parse_remark_tags

logger = logging.getLogger(__name__)

_TRANSITION_MESSAGES = {
    "accept": "Flag accepted and daily data updated",
    "discard": "Flag discarded and record restored",
    "revive": "Flag revived",
}

_OWNER_MESSAGES = {
    "accept": "Your flag for {label} was accepted",
    "discard": "Your flag for {label} was discarded by admin and the record was restored",
    "revive": "Your flag for {label} was revived by admin",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _publish(sink: NotificationSink | None, event: NotificationEvent) -> None:
    try:
        (sink or get_notification_sink()).enqueue(event)
    except Exception:
        logger.exception("Could not publish %s notification", event.type)


def _payload(flag: FlaggedDailyData) -> dict:
    return {"flag_id": flag.id, "daily_data_id": flag.daily_data_id}


def _get_flag(flag_id: int) -> FlaggedDailyData:
    flag = db.session.get(FlaggedDailyData, flag_id)
    if flag is None:
        raise NotFoundError("Flag", flag_id)
    return flag


def _parse_daily_data_id(raw) -> int:
    """An int, an integral float or a string of digits. Booleans and fractions are rejected."""
    if raw is None or raw == "":
        raise ValidationError("daily_data_id is required", details={"daily_data_id": "required"})
    if isinstance(raw, int) and not isinstance(raw, bool):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str) and raw.strip().isdecimal():
        return int(raw.strip())
    raise ValidationError("daily_data_id must be an integer",
                          details={"daily_data_id": "must be an integer"})


def _store_slip(store: EvidenceStore, slip: EvidenceUpload | None) -> str | None:
    return store.store(slip) if slip is not None else None


def _commit_or_discard_slip(store: EvidenceStore, slip_url: str | None) -> None:
    """Commit; if that fails, remove the slip written for this request."""
    try:
        commit_or_rollback()
    except Exception:
        if slip_url:
            store.delete(slip_url)
        raise


# ═══════════════════════════════════════════════════════════════════════════
#  Queries
# ═══════════════════════════════════════════════════════════════════════════


def list_flags(principal, *, status: str | None = None):
    """Admins see every flag; everyone else only their own. Newest first."""
    q = FlaggedDailyData.query
    if not principal.is_admin:
        q = q.filter(FlaggedDailyData.user_id == principal.user_id)
    if status:
        if status not in FLAG_STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(FLAG_STATUSES)}", details={"status": "invalid"},
            )
        q = q.filter(FlaggedDailyData.status == status)
    return q.order_by(FlaggedDailyData.created_at.desc(), FlaggedDailyData.id.desc())


def get_flag(flag_id: int, principal) -> FlaggedDailyData:
    flag = _get_flag(flag_id)
    if not principal.is_admin and flag.user_id != principal.user_id:
        raise ForbiddenError("Not authorized")
    return flag


def find_active_flag(daily_data_id: int) -> FlaggedDailyData | None:
    """The flag still awaiting admin action for a record, if any."""
    return (
        FlaggedDailyData.query
        .filter(
            FlaggedDailyData.daily_data_id == daily_data_id,
            FlaggedDailyData.status.in_(sorted(ACTIVE_STATUSES)),
        )
        .first()
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Create / edit (owner side)
# ═══════════════════════════════════════════════════════════════════════════


def create_flag(
    principal,
    data: dict,
    slip: EvidenceUpload | None = None,
    *,
    store: EvidenceStore | None = None,
    sink: NotificationSink | None = None,
) -> FlaggedDailyData:
    """
    Open a dispute against a DailyData record.

    Args:
        principal: Acting user (admin, or a user whose code matches the record's division).
        data: daily_data_id, one or more proposed numeric fields, remark_text?, remark_tags?
        slip: Optional evidence file.

    Raises:
        ValidationError, NotFoundError, ForbiddenError, ConflictError, CollaboratorError
    """
    daily_data_id = _parse_daily_data_id(data.get("daily_data_id"))
    daily = daily_data_service.find_by_id(daily_data_id)
    if daily is None:
        raise NotFoundError("Daily data", daily_data_id)

    if not principal.is_admin and not principal.owns_division(daily.division):
        logger.warning("User %s (code=%s) tried to flag daily data %s of division %s",
                       principal.user_id, principal.code, daily.id, daily.division)
        raise ForbiddenError("Not authorized to flag this record")

    proposal = parse_proposed_fields(data)
    if proposal.is_empty():
        raise ValidationError(
            "No proposed data provided",
            details={"user_proposed_data": f"propose at least one of: {', '.join(PROPOSABLE_FIELDS)}"},
        )

    if find_active_flag(daily.id) is not None:
        raise ConflictError("Flag", None, "This record already has a flag awaiting admin review")

    store = store or get_evidence_store()
    if slip is not None:
        store.validate(slip)
    remark_tags = parse_remark_tags(data.get("remark_tags"))
    slip_url = _store_slip(store, slip)

    flag = FlaggedDailyData(
        daily_data_id=daily.id,
        admin_data=FieldValues.from_record(daily).to_json(),
        user_proposed_data=proposal.to_json(),
        user_id=principal.user_id,
        remark_text=data.get("remark_text") or "",
        remark_tags=remark_tags,
        slip_url=slip_url or "",
        status="open",
    )
    db.session.add(flag)
    _commit_or_discard_slip(store, slip_url)

    logger.info("Flag %s opened on daily data %s by user %s (fields: %s)",
                flag.id, daily.id, principal.user_id, ", ".join(proposal.present()),
                extra={"flag_id": flag.id, "daily_data_id": daily.id})

    _publish(sink, NotificationEvent.for_admins(
        "flagged_daily", f"Flag raised for {flag.context_label()}", _payload(flag),
    ))
    return flag


def edit_flag(
    flag_id: int,
    principal,
    data: dict,
    slip: EvidenceUpload | None = None,
    *,
    store: EvidenceStore | None = None,
) -> FlaggedDailyData:
    """
    Update proposed values, remarks or the slip of a flag.

    Owners may edit only while the flag is open or revived; admins may edit
    in any status. Status itself never changes here.
    """
    flag = _get_flag(flag_id)
    if flag.user_id != principal.user_id and not principal.is_admin:
        raise ForbiddenError("Not authorized")
    if not principal.is_admin and flag.status in LOCKED_STATUSES:
        raise ForbiddenError("Cannot edit flag after it has been accepted or discarded by admin")

    proposal = parse_proposed_fields(data)
    store = store or get_evidence_store()
    if slip is not None:
        store.validate(slip)
    remark_tags = parse_remark_tags(data.get("remark_tags")) if "remark_tags" in data else None

    if not proposal.is_empty():
        current = FieldValues.from_json(flag.user_proposed_data)
        # Reassign so the JSON column is marked dirty
        flag.user_proposed_data = current.merged_with(proposal).to_json()
    if "remark_text" in data:
        flag.remark_text = data.get("remark_text") or ""
    if remark_tags is not None:
        flag.remark_tags = remark_tags

    slip_url = _store_slip(store, slip)
    if slip_url:
        flag.slip_url = slip_url
    _commit_or_discard_slip(store, slip_url)

    logger.info("Flag %s edited by user %s", flag.id, principal.user_id,
                extra={"flag_id": flag.id})
    return flag


# ═══════════════════════════════════════════════════════════════════════════
#  Admin transitions
# ═══════════════════════════════════════════════════════════════════════════


def _conflict_reason(action: str, status: str) -> str:
    if action == "accept" and status == "accepted":
        return "Already accepted"
    if action == "accept":
        return f"Cannot accept a {status} flag; revive it first"
    if action == "revive":
        return f"Cannot revive a flag that is {status}; only accepted or discarded flags can be revived"
    return f"Cannot {action} flag in status '{status}'"


def transition_flag(
    flag_id: int,
    action: str,
    principal,
    *,
    sink: NotificationSink | None = None,
) -> dict:
    """
    Execute an admin decision on a flag.

    Args:
        flag_id: Flag to act on.
        action: "accept" | "discard" | "revive".
        principal: Acting admin.

    Returns:
        {"flag_id", "daily_data_id", "action", "previous_status", "new_status", "message"}

    Raises:
        ForbiddenError, NotFoundError, ConflictError
    """
    if action not in FLAG_TRANSITIONS:
        raise ValidationError(f"Unknown action: {action}", details={"action": "unknown"})
    if not principal.is_admin:
        raise ForbiddenError("Forbidden")

    flag = _get_flag(flag_id)
    if not validate_flag_transition(action, flag.status):
        raise ConflictError("Flag", flag.status, _conflict_reason(action, flag.status))

    rule = FLAG_TRANSITIONS[action]
    daily = None
    if action in ("accept", "discard"):
        daily = daily_data_service.get_daily_data(flag.daily_data_id)

    previous_status = flag.status
    now = _utcnow()
    matched = (
        db.session.query(FlaggedDailyData)
        .filter(
            FlaggedDailyData.id == flag.id,
            FlaggedDailyData.status.in_(sorted(rule["from"])),
        )
        .update(
            {
                "status": rule["to"],
                "acted_by_id": principal.user_id,
                "action_at": now,
                "updated_at": now,
            },
            synchronize_session=False,
        )
    )
    if matched == 0:
        db.session.rollback()
        current_status = db.session.get(FlaggedDailyData, flag_id).status
        raise ConflictError("Flag", current_status, _conflict_reason(action, current_status))

    written = []
    if daily is not None:
        source = flag.user_proposed_data if action == "accept" else flag.admin_data
        values = FieldValues.from_json(source)
        daily_data_service.update_fields(daily.id, values)
        written = list(values.present())
    commit_or_rollback()
    db.session.refresh(flag)

    logger.info("Flag %s %s by admin %s: %s → %s (record fields written: %s)",
                flag.id, action, principal.user_id, previous_status, flag.status,
                ", ".join(written) or "-",
                extra={"flag_id": flag.id, "daily_data_id": flag.daily_data_id})

    _publish(sink, NotificationEvent.for_user(
        flag.user_id,
        TRANSITION_EVENT_TYPES[action],
        _OWNER_MESSAGES[action].format(label=flag.context_label()),
        _payload(flag),
    ))

    return {
        "flag_id": flag.id,
        "daily_data_id": flag.daily_data_id,
        "action": action,
        "previous_status": previous_status,
        "new_status": flag.status,
        "message": _TRANSITION_MESSAGES[action],
    }


def accept_flag(flag_id: int, principal, *, sink: NotificationSink | None = None) -> dict:
    """Apply the disputant's proposed values onto the record."""
    return transition_flag(flag_id, "accept", principal, sink=sink)


def discard_flag(flag_id: int, principal, *, sink: NotificationSink | None = None) -> dict:
    """Restore the record from the flag's creation-time snapshot."""
    return transition_flag(flag_id, "discard", principal, sink=sink)


def revive_flag(flag_id: int, principal, *, sink: NotificationSink | None = None) -> dict:
    """Re-open a decided flag for edit and a fresh decision."""
    return transition_flag(flag_id, "revive", principal, sink=sink)

"""
ReportTracker
Flagged daily data (dispute) model.

Models:
    - FlaggedDailyData: a user's dispute against exactly one DailyData record

Lifecycle states:
    open → accepted | discarded
    accepted | discarded → revived
    revived → accepted | discarded

``open`` and ``revived`` both mean "awaiting admin action"; ``revived`` only
records that an admin re-opened a decided flag. ``admin_data`` is written
once at creation and is the baseline every discard restores.
"""

from datetime import datetime, timezone

from reporttracker.models import db


# ── Constants ────────────────────────────────────────────────────────────────

FLAG_STATUSES = ("open", "accepted", "discarded", "revived")

# Statuses in which the owner may still edit and an admin must still decide
ACTIVE_STATUSES = frozenset({"open", "revived"})

# Statuses in which non-admin edits are refused
LOCKED_STATUSES = frozenset({"accepted", "discarded"})

# action → allowed source statuses + target status
FLAG_TRANSITIONS = {
    "accept": {"from": frozenset({"open", "revived"}), "to": "accepted"},
    "discard": {"from": frozenset(FLAG_STATUSES), "to": "discarded"},
    "revive": {"from": frozenset({"accepted", "discarded"}), "to": "revived"},
}

# Notification type emitted after each admin decision
TRANSITION_EVENT_TYPES = {
    "accept": "flag_accepted",
    "discard": "flag_discarded",
    "revive": "flag_revived",
}


def validate_flag_transition(action: str, old_status: str) -> bool:
    """Return True if ``action`` may be applied to a flag in ``old_status``."""
    rule = FLAG_TRANSITIONS.get(action)
    return bool(rule) and old_status in rule["from"]


class FlaggedDailyData(db.Model):
    __tablename__ = "flagged_daily_data"

    id = db.Column(db.Integer, primary_key=True)
    daily_data_id = db.Column(
        db.Integer, db.ForeignKey("daily_data.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    admin_data = db.Column(db.JSON, nullable=False, default=dict,
                           comment="Snapshot of the disputed record at flag creation")
    user_proposed_data = db.Column(db.JSON, nullable=False, default=dict,
                                   comment="Sparse field → proposed value map")
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    remark_text = db.Column(db.Text, default="")
    remark_tags = db.Column(db.JSON, nullable=False, default=list)
    slip_url = db.Column(db.String(500), default="")
    status = db.Column(db.String(20), nullable=False, default="open", index=True)
    acted_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    daily_data = db.relationship("DailyData", back_populates="flags")
    user = db.relationship("User", foreign_keys=[user_id])
    acted_by = db.relationship("User", foreign_keys=[acted_by_id])

    def context_label(self) -> str:
        """'<division> on <date>' taken from the snapshot, for messages."""
        snapshot = self.admin_data or {}
        division = snapshot.get("division") or "Division"
        return f"{division} on {snapshot.get('date') or ''}".strip()

    def to_dict(self, include_daily_data=True):
        d = {
            "id": self.id,
            "daily_data_id": self.daily_data_id,
            "admin_data": dict(self.admin_data or {}),
            "user_proposed_data": dict(self.user_proposed_data or {}),
            "user_id": self.user_id,
            "user": self.user.to_summary() if self.user else None,
            "remark_text": self.remark_text or "",
            "remark_tags": list(self.remark_tags or []),
            "slip_url": self.slip_url or "",
            "status": self.status,
            "acted_by_id": self.acted_by_id,
            "action_at": self.action_at.isoformat() if self.action_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_daily_data:
            d["daily_data"] = self.daily_data.to_dict() if self.daily_data else None
        return d

    def __repr__(self):
        return f"<FlaggedDailyData {self.id}: daily={self.daily_data_id} [{self.status}]>"

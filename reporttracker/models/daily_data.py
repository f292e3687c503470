"""
ReportTracker
Daily production data model.

Models:
    - DailyData: canonical production figures for one division on one day

Mutated directly by admin edits and indirectly by the flag workflow
(accept applies a disputant's proposal, discard restores the snapshot).
"""

from datetime import datetime, timezone

from reporttracker.models import db


NUMERIC_FIELDS = ("liters", "dry_kilos", "metrolac", "nh3_volume", "tmt_d_volume")


class DailyData(db.Model):
    __tablename__ = "daily_data"

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, nullable=False, index=True)
    liters = db.Column(db.Float, nullable=False, default=0)
    dry_kilos = db.Column(db.Float, nullable=False, default=0)
    metrolac = db.Column(db.Float, nullable=False, default=0)
    supplier_code = db.Column(db.String(50), default="")
    nh3_volume = db.Column(db.Float, nullable=False, default=0)
    tmt_d_volume = db.Column(db.Float, nullable=False, default=0)
    division = db.Column(db.String(50), default="", index=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    created_by = db.relationship("User", lazy="joined")
    flags = db.relationship(
        "FlaggedDailyData", back_populates="daily_data",
        cascade="all, delete-orphan", lazy="dynamic",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "date": self.date.isoformat() if self.date else None,
            "liters": self.liters,
            "dry_kilos": self.dry_kilos,
            "metrolac": self.metrolac,
            "supplier_code": self.supplier_code,
            "nh3_volume": self.nh3_volume,
            "tmt_d_volume": self.tmt_d_volume,
            "division": self.division,
            "created_by": self.created_by.to_summary() if self.created_by else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<DailyData {self.id}: {self.division} {self.date}>"

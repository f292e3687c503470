"""
ReportTracker
User model.

A user's ``code`` is both the login name and the division/route code that
decides which daily-data records the user may dispute.
"""

from datetime import datetime, timezone

from reporttracker.models import db


ROLES = ("admin", "manager", "user")
ADMIN_ROLE = "admin"


def normalize_code(value) -> str:
    """Division codes compare case-insensitively with surrounding whitespace ignored."""
    return str(value or "").strip().lower()


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    code = db.Column(db.String(50), nullable=False, unique=True, index=True,
                     comment="Division/route code, lowercase; used as username")
    phone = db.Column(db.String(30))
    email = db.Column(db.String(200), comment="Optional; used for notification emails")
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="user")
    is_approved = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    def to_summary(self):
        return {"id": self.id, "name": self.name, "code": self.code}

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "phone": self.phone,
            "email": self.email,
            "role": self.role,
            "is_approved": self.is_approved,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.code} ({self.role})>"

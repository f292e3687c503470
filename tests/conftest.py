"""
Shared pytest fixtures for the ReportTracker test suite.

Provides:
    - app: Flask application (session-scoped, uploads in a temp dir)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - admin / field_user / other_user: Pre-created accounts
    - daily: A DailyData record in field_user's division
    - sink: NotificationSink that records events instead of delivering them
"""

from datetime import date

import pytest

from reporttracker import create_app
from reporttracker.models import db as _db
from reporttracker.models.daily_data import DailyData
from reporttracker.services.jwt_service import generate_access_token
from reporttracker.services.notification import NotificationSink
from reporttracker.services.user_service import create_user


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create the Flask application once per test session."""
    upload_dir = tmp_path_factory.mktemp("uploads")
    application = create_app("testing", UPLOAD_FOLDER=str(upload_dir))
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Accounts ─────────────────────────────────────────────────────────────


@pytest.fixture()
def admin():
    return create_user(name="Head Office", code="hq", password="admin-pass",
                       role="admin", email="admin@example.com")


@pytest.fixture()
def field_user():
    return create_user(name="North Route", code="north", password="north-pass",
                       email="north@example.com")


@pytest.fixture()
def other_user():
    return create_user(name="South Route", code="south", password="south-pass")


@pytest.fixture()
def auth_headers():
    """Build a Bearer header for a user, bypassing the login endpoint."""
    def _headers(user) -> dict:
        token = generate_access_token(user.id, user.role, user.code)
        return {"Authorization": f"Bearer {token}"}
    return _headers


# ── Records ──────────────────────────────────────────────────────────────


def _make_daily(user=None, **overrides) -> DailyData:
    values = {
        "date": date(2024, 5, 1),
        "liters": 100.0,
        "dry_kilos": 30.0,
        "metrolac": 1.2,
        "nh3_volume": 5.0,
        "tmt_d_volume": 2.0,
        "division": "North",
        "supplier_code": "S-01",
        "created_by_id": user.id if user else None,
    }
    values.update(overrides)
    entry = DailyData(**values)
    _db.session.add(entry)
    _db.session.commit()
    return entry


@pytest.fixture()
def daily(field_user):
    """A record in field_user's division ('North' vs code 'north')."""
    return _make_daily(field_user)


@pytest.fixture()
def make_daily():
    """Factory for extra DailyData rows."""
    return _make_daily


# ── Collaborators ────────────────────────────────────────────────────────


class RecordingSink(NotificationSink):
    def __init__(self):
        self.events = []

    def enqueue(self, event):
        self.events.append(event)


@pytest.fixture()
def sink():
    return RecordingSink()

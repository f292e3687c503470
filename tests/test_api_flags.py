"""
Flag API integration tests.

Tests cover:
  - POST /flags (JSON and multipart with slip)
  - PATCH /flags/<id> edit rules
  - PATCH /flags/<id>/accept | discard | revive
  - GET /flags, GET /flags/<id>
  - Error envelope and status codes (400 / 401 / 403 / 404)
  - In-app notifications written by the default sink
"""

import io

import pytest

from reporttracker.models import db
from reporttracker.models.daily_data import DailyData
from reporttracker.models.flag import FlaggedDailyData
from reporttracker.models.notification import EmailLog, Notification
from reporttracker.services.notification import NotificationService

BASE = "/api/v1/flags"
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _create(client, headers, daily, **data):
    body = {"daily_data_id": daily.id, "liters": 90}
    body.update(data)
    return client.post(BASE, json=body, headers=headers)


# ═══════════════════════════════════════════════════════════════
# CREATE
# ═══════════════════════════════════════════════════════════════

class TestCreate:
    def test_create_json(self, client, auth_headers, field_user, daily):
        res = _create(client, auth_headers(field_user), daily, remark_text="meter misread")
        assert res.status_code == 201
        body = res.get_json()
        assert body["message"] == "Flag created"
        flag = body["flag"]
        assert flag["status"] == "open"
        assert flag["user_proposed_data"] == {"liters": 90.0}
        assert flag["admin_data"]["liters"] == 100.0
        assert flag["daily_data"]["id"] == daily.id
        assert flag["user"]["code"] == "north"

    def test_create_multipart_with_slip(self, client, auth_headers, field_user, daily):
        res = client.post(
            BASE,
            data={
                "daily_data_id": str(daily.id),
                "dry_kilos": "28",
                "remark_tags": '["wrong reading"]',
                "slip": (io.BytesIO(PNG), "meter.png", "image/png"),
            },
            headers=auth_headers(field_user),
            content_type="multipart/form-data",
        )
        assert res.status_code == 201
        flag = res.get_json()["flag"]
        assert flag["user_proposed_data"] == {"dry_kilos": 28.0}
        assert flag["remark_tags"] == ["wrong reading"]
        assert flag["slip_url"].startswith("/uploads/")

        served = client.get(flag["slip_url"])
        assert served.status_code == 200
        assert served.data == PNG

    def test_slip_wrong_type(self, client, auth_headers, field_user, daily):
        res = client.post(
            BASE,
            data={
                "daily_data_id": str(daily.id),
                "liters": "90",
                "slip": (io.BytesIO(b"hello"), "notes.txt", "text/plain"),
            },
            headers=auth_headers(field_user),
            content_type="multipart/form-data",
        )
        assert res.status_code == 400
        assert "slip" in res.get_json()["details"]

    def test_requires_token(self, client, daily):
        res = client.post(BASE, json={"daily_data_id": daily.id, "liters": 1})
        assert res.status_code == 401
        assert res.get_json()["error"] == "No token provided"

    def test_invalid_token(self, client, daily):
        res = client.post(BASE, json={"daily_data_id": daily.id, "liters": 1},
                          headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid token"

    def test_other_division(self, client, auth_headers, other_user, daily):
        res = _create(client, auth_headers(other_user), daily)
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_missing_record(self, client, auth_headers, field_user):
        res = client.post(BASE, json={"daily_data_id": 4242, "liters": 1},
                          headers=auth_headers(field_user))
        assert res.status_code == 404
        assert res.get_json()["error"] == "Daily data not found"

    def test_fractional_daily_data_id(self, client, auth_headers, field_user, daily):
        res = client.post(BASE, json={"daily_data_id": daily.id + 0.7, "liters": 5},
                          headers=auth_headers(field_user))
        assert res.status_code == 400
        assert res.get_json()["details"] == {"daily_data_id": "must be an integer"}
        assert FlaggedDailyData.query.count() == 0

    def test_empty_proposal(self, client, auth_headers, field_user, daily):
        res = client.post(BASE, json={"daily_data_id": daily.id}, headers=auth_headers(field_user))
        assert res.status_code == 400
        assert res.get_json()["error"] == "No proposed data provided"

    def test_duplicate_active_flag(self, client, auth_headers, field_user, daily):
        assert _create(client, auth_headers(field_user), daily).status_code == 201
        res = _create(client, auth_headers(field_user), daily, liters=80)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"

    def test_admins_notified_in_app(self, client, auth_headers, admin, field_user, daily):
        _create(client, auth_headers(field_user), daily)
        notes = Notification.query.filter_by(user_id=admin.id).all()
        assert len(notes) == 1
        assert notes[0].type == "flagged_daily"
        assert notes[0].message == "Flag raised for North on 2024-05-01"
        assert EmailLog.query.filter_by(recipient_email="admin@example.com").count() == 1

    def test_form_content_type_rejected(self, client, auth_headers, field_user, daily):
        res = client.post(BASE, data="daily_data_id=1", headers={
            **auth_headers(field_user), "Content-Type": "text/plain",
        })
        assert res.status_code == 415

    @pytest.mark.parametrize("body", [[1, 2], "x", 7])
    def test_body_must_be_object(self, client, auth_headers, field_user, daily, body):
        res = client.post(BASE, json=body, headers=auth_headers(field_user))
        assert res.status_code == 400
        assert res.get_json()["details"] == {"body": "must be an object"}
        assert Notification.query.count() == 0

    def test_malformed_json(self, client, auth_headers, field_user, daily):
        res = client.post(BASE, data="{\"daily_data_id\": ", content_type="application/json",
                          headers=auth_headers(field_user))
        assert res.status_code == 400
        assert res.get_json()["details"] == {"body": "must be an object"}


# ═══════════════════════════════════════════════════════════════
# EDIT
# ═══════════════════════════════════════════════════════════════

class TestEdit:
    def test_owner_edit_merges(self, client, auth_headers, field_user, daily):
        flag_id = _create(client, auth_headers(field_user), daily).get_json()["flag"]["id"]
        res = client.patch(f"{BASE}/{flag_id}", json={"metrolac": 1.5},
                           headers=auth_headers(field_user))
        assert res.status_code == 200
        body = res.get_json()
        assert body["message"] == "Flag updated"
        assert body["flag"]["user_proposed_data"] == {"liters": 90.0, "metrolac": 1.5}

    def test_owner_locked_after_accept(self, client, auth_headers, admin, field_user, daily):
        flag_id = _create(client, auth_headers(field_user), daily).get_json()["flag"]["id"]
        client.patch(f"{BASE}/{flag_id}/accept", headers=auth_headers(admin))
        res = client.patch(f"{BASE}/{flag_id}", json={"liters": 1}, headers=auth_headers(field_user))
        assert res.status_code == 403
        assert res.get_json()["error"] == (
            "Cannot edit flag after it has been accepted or discarded by admin"
        )

    def test_stranger_edit(self, client, auth_headers, field_user, other_user, daily):
        flag_id = _create(client, auth_headers(field_user), daily).get_json()["flag"]["id"]
        res = client.patch(f"{BASE}/{flag_id}", json={"liters": 1}, headers=auth_headers(other_user))
        assert res.status_code == 403

    def test_edit_body_must_be_object(self, client, auth_headers, field_user, daily):
        flag_id = _create(client, auth_headers(field_user), daily).get_json()["flag"]["id"]
        res = client.patch(f"{BASE}/{flag_id}", json="x", headers=auth_headers(field_user))
        assert res.status_code == 400
        assert res.get_json()["details"] == {"body": "must be an object"}
        assert db.session.get(DailyData, daily.id).liters == 100.0

    def test_edit_missing(self, client, auth_headers, field_user):
        res = client.patch(f"{BASE}/999", json={"liters": 1}, headers=auth_headers(field_user))
        assert res.status_code == 404

    def test_replace_slip(self, client, auth_headers, field_user, daily):
        flag_id = _create(client, auth_headers(field_user), daily).get_json()["flag"]["id"]
        res = client.patch(
            f"{BASE}/{flag_id}",
            data={"slip": (io.BytesIO(b"%PDF-1.4 test"), "slip.pdf", "application/pdf")},
            headers=auth_headers(field_user),
            content_type="multipart/form-data",
        )
        assert res.status_code == 200
        flag = res.get_json()["flag"]
        assert flag["slip_url"].endswith(".pdf")
        assert flag["user_proposed_data"] == {"liters": 90.0}


# ═══════════════════════════════════════════════════════════════
# ADMIN DECISIONS
# ═══════════════════════════════════════════════════════════════

class TestDecisions:
    def test_accept_updates_record(self, client, auth_headers, admin, field_user, daily):
        flag_id = _create(client, auth_headers(field_user), daily).get_json()["flag"]["id"]
        res = client.patch(f"{BASE}/{flag_id}/accept", headers=auth_headers(admin))
        assert res.status_code == 200
        body = res.get_json()
        assert body["message"] == "Flag accepted and daily data updated"
        assert body["flag"]["status"] == "accepted"
        assert body["flag"]["acted_by_id"] == admin.id
        assert body["flag"]["daily_data"]["liters"] == 90.0
        assert body["flag"]["daily_data"]["dry_kilos"] == 30.0

    def test_accept_twice(self, client, auth_headers, admin, field_user, daily):
        flag_id = _create(client, auth_headers(field_user), daily).get_json()["flag"]["id"]
        client.patch(f"{BASE}/{flag_id}/accept", headers=auth_headers(admin))
        res = client.patch(f"{BASE}/{flag_id}/accept", headers=auth_headers(admin))
        assert res.status_code == 400
        assert res.get_json()["error"] == "Already accepted"

    def test_discard_restores(self, client, auth_headers, admin, field_user, daily):
        flag_id = _create(client, auth_headers(field_user), daily).get_json()["flag"]["id"]
        client.patch(f"{BASE}/{flag_id}/accept", headers=auth_headers(admin))
        res = client.patch(f"{BASE}/{flag_id}/discard", headers=auth_headers(admin))
        assert res.status_code == 200
        assert res.get_json()["message"] == "Flag discarded and record restored"
        db.session.expire_all()
        assert db.session.get(DailyData, daily.id).liters == 100.0

    def test_revive(self, client, auth_headers, admin, field_user, daily):
        flag_id = _create(client, auth_headers(field_user), daily).get_json()["flag"]["id"]
        assert client.patch(f"{BASE}/{flag_id}/revive", headers=auth_headers(admin)).status_code == 400

        client.patch(f"{BASE}/{flag_id}/discard", headers=auth_headers(admin))
        res = client.patch(f"{BASE}/{flag_id}/revive", headers=auth_headers(admin))
        assert res.status_code == 200
        assert res.get_json()["flag"]["status"] == "revived"

    @pytest.mark.parametrize("action", ["accept", "discard", "revive"])
    def test_user_cannot_decide(self, client, auth_headers, field_user, daily, action):
        flag_id = _create(client, auth_headers(field_user), daily).get_json()["flag"]["id"]
        res = client.patch(f"{BASE}/{flag_id}/{action}", headers=auth_headers(field_user))
        assert res.status_code == 403

    @pytest.mark.parametrize("action", ["accept", "discard", "revive"])
    def test_missing_flag(self, client, auth_headers, admin, action):
        res = client.patch(f"{BASE}/555/{action}", headers=auth_headers(admin))
        assert res.status_code == 404
        assert res.get_json()["error"] == "Flag not found"

    def test_owner_notified(self, client, auth_headers, admin, field_user, daily):
        flag_id = _create(client, auth_headers(field_user), daily).get_json()["flag"]["id"]
        client.patch(f"{BASE}/{flag_id}/accept", headers=auth_headers(admin))
        notes = Notification.query.filter_by(user_id=field_user.id).all()
        assert [n.type for n in notes] == ["flag_accepted"]
        assert notes[0].data == {"flag_id": flag_id, "daily_data_id": daily.id}

    def test_delivery_failure_does_not_fail_accept(self, client, auth_headers, admin, field_user,
                                                   daily, monkeypatch):
        flag_id = _create(client, auth_headers(field_user), daily).get_json()["flag"]["id"]

        def _boom(event):
            raise RuntimeError("mail relay unreachable")

        monkeypatch.setattr(NotificationService, "deliver", staticmethod(_boom))
        res = client.patch(f"{BASE}/{flag_id}/accept", headers=auth_headers(admin))
        assert res.status_code == 200
        db.session.expire_all()
        assert db.session.get(DailyData, daily.id).liters == 90.0


# ═══════════════════════════════════════════════════════════════
# LIST / GET
# ═══════════════════════════════════════════════════════════════

class TestListAndGet:
    def test_user_sees_only_own(self, client, auth_headers, admin, field_user, other_user,
                                daily, make_daily):
        south = make_daily(other_user, division="South")
        _create(client, auth_headers(field_user), daily)
        _create(client, auth_headers(other_user), south)

        mine = client.get(BASE, headers=auth_headers(field_user)).get_json()
        assert mine["total"] == 1
        assert mine["items"][0]["user_id"] == field_user.id

        everything = client.get(BASE, headers=auth_headers(admin)).get_json()
        assert everything["total"] == 2

    def test_status_filter(self, client, auth_headers, admin, field_user, daily):
        _create(client, auth_headers(field_user), daily)
        res = client.get(f"{BASE}?status=accepted", headers=auth_headers(admin))
        assert res.get_json()["total"] == 0
        res = client.get(f"{BASE}?status=bogus", headers=auth_headers(admin))
        assert res.status_code == 400

    def test_get_single(self, client, auth_headers, field_user, other_user, daily):
        flag_id = _create(client, auth_headers(field_user), daily).get_json()["flag"]["id"]
        assert client.get(f"{BASE}/{flag_id}", headers=auth_headers(field_user)).status_code == 200
        assert client.get(f"{BASE}/{flag_id}", headers=auth_headers(other_user)).status_code == 403
        assert client.get(f"{BASE}/9999", headers=auth_headers(field_user)).status_code == 404

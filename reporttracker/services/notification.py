"""
ReportTracker
Notification Service.

Two halves:
    - NotificationService: stateless helpers to create, deliver and query
      in-app notifications (plus a courtesy email per recipient).
    - NotificationSink: the message-passing seam the flag workflow talks to.
      The workflow only calls ``sink.enqueue(event)`` after its own commit;
      what happens next can never undo the transition.

BackgroundNotificationSink delivers on a daemon thread with its own app
context. With NOTIFY_ASYNC=false (tests) it delivers inline. Either way a
delivery failure is logged and dropped, never raised to the caller.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from flask import current_app, has_app_context

from reporttracker.core.exceptions import ForbiddenError, NotFoundError
from reporttracker.models import db
from reporttracker.models.notification import Notification
from reporttracker.services.email_service import EmailService, render_notification_email
from reporttracker.services.user_service import get_users_by_ids, list_admin_ids
from reporttracker.utils.helpers import commit_or_rollback

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEvent:
    """One outward notification intent.

    Exactly one of ``user_id`` / ``to_admins`` addresses the event.
    """

    type: str
    message: str
    payload: dict = field(default_factory=dict)
    user_id: int | None = None
    to_admins: bool = False

    @classmethod
    def for_admins(cls, type: str, message: str, payload: dict) -> NotificationEvent:
        return cls(type=type, message=message, payload=payload, to_admins=True)

    @classmethod
    def for_user(cls, user_id: int, type: str, message: str, payload: dict) -> NotificationEvent:
        return cls(type=type, message=message, payload=payload, user_id=user_id)


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Delivery ──────────────────────────────────────────────────────────

    @staticmethod
    def resolve_recipients(event: NotificationEvent) -> list[int]:
        if event.to_admins:
            return list_admin_ids()
        return [event.user_id] if event.user_id is not None else []

    @classmethod
    def deliver(cls, event: NotificationEvent) -> list[Notification]:
        """
        Write one in-app notification per recipient and email those with an address.

        Returns:
            The created Notification rows (committed).
        """
        recipients = get_users_by_ids(cls.resolve_recipients(event))
        notifications = []
        for user in recipients:
            notif = Notification(
                user_id=user.id,
                type=event.type,
                message=event.message,
                data=dict(event.payload),
            )
            db.session.add(notif)
            notifications.append((user, notif))
        db.session.flush()

        for user, notif in notifications:
            if not user.email:
                continue
            subject, html_body = render_notification_email(event.type, event.message)
            EmailService.send(
                to_email=user.email,
                to_name=user.name,
                subject=subject,
                html_body=html_body,
                category=event.type,
                notification_id=notif.id,
            )

        commit_or_rollback()
        logger.info("Delivered %s notification to %d recipient(s)",
                    event.type, len(notifications), extra={"event_type": event.type})
        return [notif for _, notif in notifications]

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_user(user_id: int, *, unread_only: bool = False, limit: int = 200, offset: int = 0):
        """Retrieve a user's notifications, newest first. Returns (items, total)."""
        q = Notification.query.filter_by(user_id=user_id)
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit).all()
        )
        return items, total

    @staticmethod
    def unread_count(user_id: int) -> int:
        return Notification.query.filter_by(user_id=user_id, is_read=False).count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id: int, principal) -> Notification:
        """Mark one notification read. Only its recipient or an admin may do so."""
        notif = db.session.get(Notification, notification_id)
        if notif is None:
            raise NotFoundError("Notification", notification_id)
        if notif.user_id != principal.user_id and not principal.is_admin:
            raise ForbiddenError("Not allowed")
        notif.mark_read()
        commit_or_rollback()
        return notif


# ═══════════════════════════════════════════════════════════════════════════
#  Sinks
# ═══════════════════════════════════════════════════════════════════════════


class NotificationSink:
    """Interface the flag workflow publishes to."""

    def enqueue(self, event: NotificationEvent) -> None:
        raise NotImplementedError


class BackgroundNotificationSink(NotificationSink):
    """Deliver through NotificationService, off the request path when async."""

    def __init__(self, app, run_async: bool = True):
        self.app = app
        self.run_async = run_async

    def enqueue(self, event: NotificationEvent) -> threading.Thread | None:
        """Deliver now, or start a daemon thread for it and return the thread."""
        if not self.run_async:
            self._deliver_safely(event)
            return None
        t = threading.Thread(target=self._deliver_safely, args=(event,), daemon=True)
        t.start()
        return t

    def _deliver_safely(self, event: NotificationEvent) -> None:
        if has_app_context():
            self._deliver(event)
            return
        with self.app.app_context():
            self._deliver(event)

    @staticmethod
    def _deliver(event: NotificationEvent) -> None:
        try:
            NotificationService.deliver(event)
        except Exception:
            # Delivery is best-effort: the transition that produced it is already committed
            db.session.rollback()
            logger.exception("Notification delivery failed: type=%s payload=%s",
                             event.type, event.payload, extra={"event_type": event.type})


def init_notifications(app) -> NotificationSink:
    """Install the default sink on the app unless one was provided."""
    sink = app.extensions.get("notification_sink")
    if sink is None:
        sink = BackgroundNotificationSink(app, run_async=app.config.get("NOTIFY_ASYNC", True))
        app.extensions["notification_sink"] = sink
    return sink


def get_notification_sink() -> NotificationSink:
    return current_app.extensions["notification_sink"]

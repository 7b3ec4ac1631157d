"""
core.domain.notifications — Notification dispatch helper (the Notifier).

Centralises notification creation so every app uses one consistent
entry-point rather than directly constructing ``Notification`` objects.

Two entry points
----------------
* ``NotificationService.create`` — persists one ``Notification`` per
  recipient and lets any error propagate.  Use when the notification is
  part of the caller's own transaction.
* ``NotificationService.notify`` — best-effort delivery.  The write runs
  inside a savepoint; a failure is logged and reported as ``False`` so the
  caller's outer transaction (and its result) stay intact.

Usage::

    from core.domain.notifications import NotificationService

    delivered = NotificationService.notify(
        actor=request.user,
        recipients=report.assigned_worker.user,
        event_type="report_assigned",
        payload={"report_id": report.id},
        related_object=report,
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from django.contrib.contenttypes.models import ContentType
from django.db import DatabaseError, models, transaction

if TYPE_CHECKING:
    from accounts.models import User
    from core.models import Notification

logger = logging.getLogger(__name__)

# ── Event-type → human-readable templates ───────────────────────────
_EVENT_TEMPLATES: dict[str, tuple[str, str]] = {
    # event_type: (title, message)
    "report_assigned":       ("New Report Assigned",     "A new incident report has been assigned to you."),
    "report_reassigned":     ("Report Reassigned",       "An incident report has been reassigned to you."),
    "report_updated":        ("Report Updated",          "The priority or comment of a report you filed has changed."),
    "report_status_changed": ("Report Status Updated",   "A report you filed has changed status."),
    "report_reopened":       ("Report Reopened",         "A resolved report has been reopened."),
}


class NotificationService:
    """
    Stateless helper for creating ``Notification`` records.

    All methods are classmethods; no instance state is needed.
    """

    @classmethod
    def create(
        cls,
        *,
        actor: User | None,
        recipients: User | Iterable[User],
        event_type: str,
        payload: dict[str, Any] | None = None,
        related_object: models.Model | None = None,
    ) -> list[Notification]:
        """
        Create one ``Notification`` per recipient.

        Args:
            actor:          The user who performed the action (logged only).
            recipients:     A single ``User`` or iterable of ``User``
                            instances.
            event_type:     Key into ``_EVENT_TEMPLATES``.  If unknown
                            the raw event_type is used as title.
            payload:        Structured context persisted with the
                            notification (must be JSON-serialisable).
            related_object: Optional model instance linked via
                            ``GenericForeignKey``.

        Returns:
            List of created ``Notification`` instances.
        """
        from core.models import Notification  # lazy import (circular)

        # Normalise recipients to a list
        if isinstance(recipients, models.Model):
            recipients = [recipients]
        else:
            recipients = list(recipients)

        if not recipients:
            logger.warning(
                "NotificationService.create called with empty recipients "
                "for event_type=%s by actor=%s",
                event_type,
                actor,
            )
            return []

        title, message = _EVENT_TEMPLATES.get(
            event_type,
            (event_type.replace("_", " ").title(), f"Event: {event_type}"),
        )

        # Resolve GenericFK fields
        content_type = None
        object_id = None
        if related_object is not None:
            content_type = ContentType.objects.get_for_model(related_object)
            object_id = related_object.pk

        notifications: list[Notification] = []
        for recipient in recipients:
            notif = Notification.objects.create(
                recipient=recipient,
                event_type=event_type,
                title=title,
                message=message,
                payload=payload or {},
                content_type=content_type,
                object_id=object_id,
            )
            notifications.append(notif)

        logger.info(
            "Created %d notification(s) [%s] by actor=%s",
            len(notifications),
            event_type,
            actor,
        )
        return notifications

    @classmethod
    def notify(
        cls,
        *,
        actor: User | None,
        recipients: User | Iterable[User],
        event_type: str,
        payload: dict[str, Any] | None = None,
        related_object: models.Model | None = None,
    ) -> bool:
        """
        Best-effort variant of ``create``.

        Returns ``True`` when at least one notification was stored and
        ``False`` when delivery failed or there was nobody to notify.
        Never raises for delivery failures.
        """
        try:
            with transaction.atomic():
                created = cls.create(
                    actor=actor,
                    recipients=recipients,
                    event_type=event_type,
                    payload=payload,
                    related_object=related_object,
                )
        except (DatabaseError, TypeError, ValueError) as exc:
            logger.warning(
                "Notification [%s] could not be delivered: %s",
                event_type,
                exc,
            )
            return False
        return bool(created)

"""
Core app services — **Service Layer**.

Contains cross-app aggregation logic.  Views delegate all business logic
to the service classes defined here, keeping views thin and ensuring
testability.

╔══════════════════════════════════════════════════════════════════════╗
║  CROSS-APP IMPORT RULEBOOK                                         ║
║                                                                    ║
║  The core app is the ONLY app allowed to query models from other   ║
║  apps.  To prevent circular imports at module load time:           ║
║                                                                    ║
║  1. NEVER import models from other apps at the **module level**.   ║
║     Always import inside the method/function that needs them.      ║
║                                                                    ║
║  2. Preferred pattern:                                             ║
║       from django.apps import apps                                 ║
║       Report = apps.get_model("reports", "Report")                 ║
║                                                                    ║
║  3. Choice/enum classes (e.g. ReportStatus, Department) live in    ║
║     the respective app's ``models.py`` alongside the models.       ║
║     Import them lazily inside methods too.                          ║
║                                                                    ║
║  4. For aggregations, prefer Django ORM ``.aggregate()`` and       ║
║     ``.values().annotate()`` over Python-side loops.               ║
╚══════════════════════════════════════════════════════════════════════╝
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from django.apps import apps
from django.db.models import Count, Q, QuerySet

from core.domain.access import apply_permission_scope
from core.domain.exceptions import NotFound
from core.permissions_constants import CorePerms, ReportsPerms

if TYPE_CHECKING:
    from accounts.models import User


# ════════════════════════════════════════════════════════════════════
#  Dashboard Aggregation Service
# ════════════════════════════════════════════════════════════════════

class DashboardAggregationService:
    """
    Produces an aggregated statistics dict consumed by
    ``DashboardStatsSerializer``.

    The statistics are **permission-scoped**:

    * **Authorities / System Admin**: facility-wide counts.
    * **Workers**: counts over the reports assigned to them.
    * **Reporters**: counts over the reports they filed.
    """

    #: Maximum number of recent activity items to return.
    RECENT_ACTIVITY_LIMIT: int = 20

    #: Permission-based scope rules for dashboard report scoping.
    _DASHBOARD_SCOPE_RULES: list[tuple[str, Any]] = [
        (f"core.{CorePerms.CAN_VIEW_FULL_DASHBOARD}", lambda qs, u: qs),
        (f"reports.{ReportsPerms.CAN_SCOPE_ALL_REPORTS}", lambda qs, u: qs),
        (f"reports.{ReportsPerms.CAN_SCOPE_ASSIGNED_REPORTS}",
         lambda qs, u: qs.filter(assigned_worker__user=u)),
    ]

    def __init__(self, user: User) -> None:
        self.user = user

    # ── Public API ──────────────────────────────────────────────────

    def get_stats(self) -> dict[str, Any]:
        """Return the full dashboard statistics dictionary."""
        from reports.models import ReportStatus

        report_qs = self._get_report_queryset()

        aggregates = report_qs.aggregate(
            total_reports=Count("id"),
            open_reports=Count("id", filter=~Q(status=ReportStatus.RESOLVED)),
            resolved_reports=Count("id", filter=Q(status=ReportStatus.RESOLVED)),
            unassigned_reports=Count("id", filter=Q(assigned_worker__isnull=True)),
        )

        return {
            **aggregates,
            "total_workers": self._get_worker_count(),
            "reports_by_status": self._group_by(report_qs, "status", "ReportStatus"),
            "reports_by_priority": self._group_by(report_qs, "priority", "ReportPriority"),
            "reports_by_department": self._group_by_department(report_qs),
            "recent_activity": self._get_recent_activity(report_qs),
        }

    # ── Private helpers ─────────────────────────────────────────────

    def _get_report_queryset(self) -> QuerySet:
        """Return a ``Report`` queryset scoped to the requesting user."""
        Report = apps.get_model("reports", "Report")
        qs = Report.objects.all()
        if any(self.user.has_perm(perm) for perm, _ in self._DASHBOARD_SCOPE_RULES):
            return apply_permission_scope(
                qs, self.user, scope_rules=self._DASHBOARD_SCOPE_RULES,
            )
        return qs.filter(creator_link__creator=self.user)

    def _group_by(self, report_qs: QuerySet, field: str, choices_name: str) -> list[dict[str, Any]]:
        """Group ``report_qs`` by ``field`` and label each row from the choices enum."""
        from reports import models as report_models

        label_map = dict(getattr(report_models, choices_name).choices)
        rows = (
            report_qs
            .order_by()
            .values(field)
            .annotate(count=Count("id"))
            .order_by(field)
        )
        return [
            {
                "value": row[field],
                "label": label_map.get(row[field], row[field]),
                "count": row["count"],
            }
            for row in rows
        ]

    def _group_by_department(self, report_qs: QuerySet) -> list[dict[str, Any]]:
        from accounts.models import Department

        label_map = dict(Department.choices)
        rows = (
            report_qs
            .order_by()
            .values("department")
            .annotate(count=Count("id"))
            .order_by("department")
        )
        return [
            {
                "value": row["department"],
                "label": label_map.get(row["department"], row["department"]),
                "count": row["count"],
            }
            for row in rows
        ]

    def _get_recent_activity(self, report_qs: QuerySet) -> list[dict[str, Any]]:
        """Return the latest status changes on visible reports."""
        ReportStatusLog = apps.get_model("reports", "ReportStatusLog")

        logs = (
            ReportStatusLog.objects
            .select_related("changed_by")
            .filter(report_id__in=report_qs.values("id"))
            .order_by("-created_at", "-id")[: self.RECENT_ACTIVITY_LIMIT]
        )
        return [
            {
                "timestamp": log.created_at,
                "type": "report_reopened" if log.is_reopen else "report_status_change",
                "description": (
                    f"Report #{log.report_id} moved from "
                    f"{log.from_status} to {log.to_status}"
                ),
                "actor": log.changed_by.username if log.changed_by else None,
            }
            for log in logs
        ]

    def _get_worker_count(self) -> int:
        Worker = apps.get_model("accounts", "Worker")
        return Worker.objects.filter(user__is_active=True).count()


# ════════════════════════════════════════════════════════════════════
#  System Constants Service
# ════════════════════════════════════════════════════════════════════

class SystemConstantsService:
    """
    Gathers all system-wide choice enumerations, limits and the role
    hierarchy into a single dict for the frontend.

    This service is **stateless**: it does not depend on the requesting
    user.
    """

    @staticmethod
    def get_constants() -> dict[str, Any]:
        """Return all system constants as a dict."""
        from django.conf import settings

        from accounts.models import Department
        from core import constants
        from reports.models import ObjectCategory, ReportPriority, ReportStatus

        Role = apps.get_model("accounts", "Role")

        to_list = SystemConstantsService._choices_to_list
        reports_settings = getattr(settings, "REPORTS", {})

        roles = list(
            Role.objects
            .order_by("-hierarchy_level")
            .values("id", "name", "hierarchy_level")
        )

        return {
            "departments": to_list(Department),
            "object_categories": to_list(ObjectCategory),
            "report_statuses": to_list(ReportStatus),
            "report_priorities": to_list(ReportPriority),
            "limits": {
                "description_max_length": constants.DESCRIPTION_MAX_LENGTH,
                "object_name_max_length": constants.OBJECT_NAME_MAX_LENGTH,
                "place_name_max_length": constants.PLACE_NAME_MAX_LENGTH,
                "max_attachments": reports_settings.get(
                    "MAX_ATTACHMENTS", constants.MAX_ATTACHMENTS,
                ),
                "max_attachment_bytes": reports_settings.get(
                    "MAX_ATTACHMENT_BYTES", constants.MAX_ATTACHMENT_BYTES,
                ),
                "allowed_attachment_types": sorted(constants.ALLOWED_ATTACHMENT_CONTENT_TYPES),
            },
            "role_hierarchy": roles,
        }

    @staticmethod
    def _choices_to_list(
        choices_class: type,
    ) -> list[dict[str, str]]:
        """
        Convert a Django ``TextChoices`` or ``IntegerChoices`` class to
        a list of ``{"value": ..., "label": ...}`` dicts.
        """
        return [
            {"value": str(value), "label": str(label)}
            for value, label in choices_class.choices
        ]


# ═══════════════════════════════════════════════════════════════════
#  Notification Inbox Service
# ═══════════════════════════════════════════════════════════════════

class NotificationInboxService:
    """
    Handles listing and marking notifications as read for a given user.
    Creation lives in ``core.domain.notifications``.
    """

    def __init__(self, user: Any) -> None:
        self.user = user

    def list_notifications(self, *, unread_only: bool = False) -> QuerySet:
        """Return notifications for ``self.user``, most recent first."""
        from core.models import Notification

        qs = (
            Notification.objects
            .filter(recipient=self.user)
            .select_related("content_type")
            .order_by("-created_at", "-id")
        )
        if unread_only:
            qs = qs.filter(is_read=False)
        return qs

    def mark_as_read(self, notification_id: int) -> Any:
        """
        Mark a single notification as read.

        Raises:
            NotFound: No such notification for this user.
        """
        from core.models import Notification

        try:
            notification = Notification.objects.get(
                pk=notification_id,
                recipient=self.user,
            )
        except Notification.DoesNotExist:
            raise NotFound(f"Notification with id {notification_id} not found.")
        if not notification.is_read:
            notification.is_read = True
            notification.save(update_fields=["is_read", "updated_at"])
        return notification

"""
Core app serializers.

**Response-only** serializers for the aggregated endpoints served by the
core app.  These serializers define the *output schema* for the dashboard,
system constants and notification views.

Architectural note
------------------
These serializers never import models from other apps.  They work
exclusively with plain Python dicts / lists produced by the service
layer, keeping the core app decoupled from ``reports`` and ``accounts``.
"""

from __future__ import annotations

from rest_framework import serializers


# ════════════════════════════════════════════════════════════════════
#  Dashboard Statistics
# ════════════════════════════════════════════════════════════════════

class CountByValueSerializer(serializers.Serializer):
    """
    One bucket of a grouped count.

    Example::

        {"value": "pending", "label": "Pending", "count": 12}
    """

    value = serializers.CharField(help_text="Machine-readable value.")
    label = serializers.CharField(help_text="Human-readable label.")
    count = serializers.IntegerField(help_text="Number of reports in this bucket.")


class RecentActivitySerializer(serializers.Serializer):
    """A single item in the recent-activity feed."""

    timestamp = serializers.DateTimeField(help_text="When the change happened.")
    type = serializers.CharField(
        help_text="'report_status_change' or 'report_reopened'.",
    )
    description = serializers.CharField(help_text="Human-readable summary.")
    actor = serializers.CharField(
        help_text="Username of the user who performed the action.",
        allow_null=True,
        allow_blank=True,
    )


class DashboardStatsSerializer(serializers.Serializer):
    """
    Top-level response serializer for ``GET /api/core/dashboard/``.

    Response shape::

        {
            "total_reports": 42,
            "open_reports": 17,
            "resolved_reports": 25,
            "unassigned_reports": 3,
            "total_workers": 9,
            "reports_by_status": [...],
            "reports_by_priority": [...],
            "reports_by_department": [...],
            "recent_activity": [...]
        }
    """

    total_reports = serializers.IntegerField(help_text="Reports visible to the caller.")
    open_reports = serializers.IntegerField(help_text="Reports not yet resolved.")
    resolved_reports = serializers.IntegerField()
    unassigned_reports = serializers.IntegerField(
        help_text="Reports filed while the department roster was empty.",
    )
    total_workers = serializers.IntegerField(help_text="Active roster workers.")

    reports_by_status = CountByValueSerializer(many=True)
    reports_by_priority = CountByValueSerializer(many=True)
    reports_by_department = CountByValueSerializer(many=True)
    recent_activity = RecentActivitySerializer(many=True)


# ════════════════════════════════════════════════════════════════════
#  System Constants / Enums
# ════════════════════════════════════════════════════════════════════

class ChoiceItemSerializer(serializers.Serializer):
    """
    A single key-label pair representing one choice/enum option.

    Example::

        {"value": "maintenance", "label": "Maintenance"}
    """

    value = serializers.CharField(
        help_text="Machine-readable value to send in API requests.",
    )
    label = serializers.CharField(
        help_text="Human-readable display label for the UI.",
    )


class RoleHierarchyItemSerializer(serializers.Serializer):
    id = serializers.IntegerField(help_text="Role PK.")
    name = serializers.CharField(help_text="Role display name.")
    hierarchy_level = serializers.IntegerField(
        help_text="Authority level (higher = more authority).",
    )


class ReportLimitsSerializer(serializers.Serializer):
    description_max_length = serializers.IntegerField()
    object_name_max_length = serializers.IntegerField()
    place_name_max_length = serializers.IntegerField()
    max_attachments = serializers.IntegerField()
    max_attachment_bytes = serializers.IntegerField()
    allowed_attachment_types = serializers.ListField(child=serializers.CharField())


class SystemConstantsSerializer(serializers.Serializer):
    """
    Top-level response serializer for ``GET /api/core/constants/``.

    Provides all choice enumerations and input limits so the frontend can
    build the report form and filters without hardcoding values.
    """

    departments = ChoiceItemSerializer(many=True)
    object_categories = ChoiceItemSerializer(many=True)
    report_statuses = ChoiceItemSerializer(many=True)
    report_priorities = ChoiceItemSerializer(many=True)
    limits = ReportLimitsSerializer()
    role_hierarchy = RoleHierarchyItemSerializer(
        many=True,
        help_text="All roles with their hierarchy levels, ordered by authority.",
    )


# ════════════════════════════════════════════════════════════════════
#  Notifications
# ════════════════════════════════════════════════════════════════════

class NotificationSerializer(serializers.Serializer):
    """
    Read-only serializer for ``Notification`` instances.
    """

    id = serializers.IntegerField(read_only=True, help_text="Notification PK.")
    event_type = serializers.CharField(read_only=True)
    title = serializers.CharField(
        read_only=True,
        help_text="Short notification title.",
    )
    message = serializers.CharField(
        read_only=True,
        help_text="Full notification message body.",
    )
    payload = serializers.JSONField(
        read_only=True,
        help_text="Structured event context (e.g. report id, place, photos).",
    )
    is_read = serializers.BooleanField(
        read_only=True,
        help_text="Whether the recipient has marked this notification as read.",
    )
    created_at = serializers.DateTimeField(read_only=True)
    content_type = serializers.StringRelatedField(
        read_only=True,
        help_text="Related content type (if any).",
    )
    object_id = serializers.IntegerField(
        read_only=True,
        allow_null=True,
        help_text="PK of the related object (if any).",
    )


class NotificationFilterSerializer(serializers.Serializer):
    unread = serializers.BooleanField(required=False, default=False)

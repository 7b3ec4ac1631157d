"""
Reports app models.

Covers an incident report from intake to closure: the deduplicated
``Place``, the ``Report`` itself, the ``SubjectObject`` it is about, the
``ReportCreatorLink`` that ties it to the user who filed it, and the
audit trails for status changes and reassignments.
"""

from django.conf import settings
from django.db import models

from accounts.models import Department
from core import constants
from core.models import TimeStampedModel
from core.permissions_constants import ReportsPerms


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class ReportStatus(models.TextChoices):
    """Lifecycle states; a report only ever moves one step forward."""

    PENDING = "pending", "Pending"
    IN_PROGRESS = "in_progress", "In Progress"
    RESOLVED = "resolved", "Resolved"


class ReportPriority(models.TextChoices):
    """``unassigned`` until the assigned worker triages the report."""

    UNASSIGNED = "unassigned", "Unassigned"
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    URGENT = "urgent", "Urgent"


class ObjectCategory(models.TextChoices):
    ELECTRICAL = "electrical", "Electrical"
    PLUMBING = "plumbing", "Plumbing"
    COMPUTER_EQUIPMENT = "computer_equipment", "Computer Equipment"
    PROJECTORS_SCREENS = "projectors_screens", "Projectors / Screens"
    TOOLS = "tools", "Tools"
    LAB_EQUIPMENT = "lab_equipment", "Laboratory Equipment"
    DOORS_WINDOWS = "doors_windows", "Doors / Windows"
    OTHER = "other", "Other"


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class Place(models.Model):
    """
    A deduplicated (name, floor) location.

    Created lazily by the report orchestrator and never deleted by the
    workflow; the unique constraint lets concurrent resolvers converge on
    one row.
    """

    name = models.CharField(
        max_length=constants.PLACE_NAME_MAX_LENGTH,
        verbose_name="Place Name",
    )
    floor = models.PositiveSmallIntegerField(verbose_name="Floor")

    class Meta:
        verbose_name = "Place"
        verbose_name_plural = "Places"
        ordering = ["name", "floor"]
        constraints = [
            models.UniqueConstraint(
                fields=["name", "floor"],
                name="unique_place_name_floor",
            ),
            models.CheckConstraint(
                condition=models.Q(floor__gte=1),
                name="place_floor_positive",
            ),
        ]

    def __str__(self):
        return f"{self.name} (floor {self.floor})"


class Report(TimeStampedModel):
    """
    A filed incident.

    ``status``, ``priority`` and ``comment`` are only changed through
    ``ReportLifecycleService``; ``attachment_refs`` is only appended to by
    ``ReportOrchestrator``.  ``assigned_worker`` is null only when the
    department's roster was empty at creation time (or after the worker
    was removed from the roster).
    """

    description = models.TextField(
        max_length=constants.DESCRIPTION_MAX_LENGTH,
        verbose_name="Description",
    )
    department = models.CharField(
        max_length=20,
        choices=Department.choices,
        db_index=True,
        verbose_name="Department",
    )
    status = models.CharField(
        max_length=20,
        choices=ReportStatus.choices,
        default=ReportStatus.PENDING,
        db_index=True,
        verbose_name="Status",
    )
    priority = models.CharField(
        max_length=20,
        choices=ReportPriority.choices,
        default=ReportPriority.UNASSIGNED,
        db_index=True,
        verbose_name="Priority",
    )
    comment = models.TextField(
        blank=True,
        default="",
        verbose_name="Worker Comment / Estimate",
    )
    attachment_refs = models.JSONField(
        default=list,
        blank=True,
        verbose_name="Attachment References",
        help_text="Public URLs of uploaded photos, in upload order.",
    )
    assigned_worker = models.ForeignKey(
        "accounts.Worker",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_reports",
        verbose_name="Assigned Worker",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_reports",
        verbose_name="Created By",
    )

    class Meta:
        verbose_name = "Report"
        verbose_name_plural = "Reports"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["department", "status"]),
        ]
        permissions = [
            # Scope permissions (data-visibility tiers)
            (ReportsPerms.CAN_SCOPE_ALL_REPORTS, "Can list every report"),
            (ReportsPerms.CAN_SCOPE_ASSIGNED_REPORTS, "Can list reports assigned to self"),
            (ReportsPerms.CAN_SCOPE_OWN_REPORTS, "Can list reports filed by self"),
            # Workflow capabilities
            (ReportsPerms.CAN_REASSIGN_REPORT, "Can reassign a report to another worker"),
            (ReportsPerms.CAN_REOPEN_REPORT, "Can reopen a resolved report"),
        ]

    def __str__(self):
        return f"Report #{self.pk} [{self.get_status_display()}]"


class SubjectObject(models.Model):
    """The physical item a report is about.  Exactly one per report."""

    report = models.OneToOneField(
        Report,
        on_delete=models.CASCADE,
        related_name="subject",
        verbose_name="Report",
    )
    name = models.CharField(
        max_length=constants.OBJECT_NAME_MAX_LENGTH,
        verbose_name="Object Name",
    )
    category = models.CharField(
        max_length=30,
        choices=ObjectCategory.choices,
        verbose_name="Category",
    )
    place = models.ForeignKey(
        Place,
        on_delete=models.PROTECT,
        related_name="objects_reported",
        verbose_name="Place",
    )

    class Meta:
        verbose_name = "Subject Object"
        verbose_name_plural = "Subject Objects"

    def __str__(self):
        return f"{self.name} @ {self.place}"


class ReportCreatorLink(models.Model):
    """
    Ties a report to the user who filed it.  Exactly one per report;
    "my reports" queries go through this link.
    """

    report = models.OneToOneField(
        Report,
        on_delete=models.CASCADE,
        related_name="creator_link",
        verbose_name="Report",
    )
    creator = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="report_links",
        verbose_name="Creator",
    )

    class Meta:
        verbose_name = "Report Creator Link"
        verbose_name_plural = "Report Creator Links"

    def __str__(self):
        return f"Report #{self.report_id} ← user #{self.creator_id}"


class ReportStatusLog(TimeStampedModel):
    """
    Immutable audit trail of every status transition for a report.

    Re-opening a resolved report is flagged with ``is_reopen`` so it is
    never mistaken for normal forward progress.
    """

    report = models.ForeignKey(
        Report,
        on_delete=models.CASCADE,
        related_name="status_logs",
        verbose_name="Report",
    )
    from_status = models.CharField(
        max_length=20,
        choices=ReportStatus.choices,
        verbose_name="Previous Status",
    )
    to_status = models.CharField(
        max_length=20,
        choices=ReportStatus.choices,
        verbose_name="New Status",
    )
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="report_status_changes",
        verbose_name="Changed By",
    )
    message = models.TextField(
        blank=True,
        default="",
        verbose_name="Message / Reopen Reason",
    )
    is_reopen = models.BooleanField(default=False, verbose_name="Reopen")

    class Meta:
        verbose_name = "Report Status Log"
        verbose_name_plural = "Report Status Logs"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return (
            f"Report #{self.report_id}: "
            f"{self.from_status} → {self.to_status}"
        )


class ReportAssignmentLog(TimeStampedModel):
    """Audit trail of manual reassignments."""

    report = models.ForeignKey(
        Report,
        on_delete=models.CASCADE,
        related_name="assignment_logs",
        verbose_name="Report",
    )
    from_worker = models.ForeignKey(
        "accounts.Worker",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        verbose_name="Previous Worker",
    )
    to_worker = models.ForeignKey(
        "accounts.Worker",
        on_delete=models.SET_NULL,
        null=True,
        related_name="+",
        verbose_name="New Worker",
    )
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="report_reassignments",
        verbose_name="Changed By",
    )

    class Meta:
        verbose_name = "Report Assignment Log"
        verbose_name_plural = "Report Assignment Logs"
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"Report #{self.report_id}: {self.from_worker_id} → {self.to_worker_id}"

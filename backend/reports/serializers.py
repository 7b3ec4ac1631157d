"""
Reports app serializers.

Request serializers handle field definitions and shape validation only;
length limits, category / department membership and attachment bounds
are re-checked by ``ReportOrchestrator.validate`` so non-HTTP callers get
the same rules.

Structure
---------
1. Filter / query-param serializers
2. Report read serializers (list, detail, creation result)
3. Report write serializers (create)
4. Lifecycle action serializers (priority, advance, reopen, reassign)
5. Sub-resource serializers (status log, assignment log)
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from accounts.models import Department
from core import constants

from .models import (
    ObjectCategory,
    Place,
    Report,
    ReportAssignmentLog,
    ReportPriority,
    ReportStatus,
    ReportStatusLog,
)
from .services import ASSIGNABLE_PRIORITIES, AttachmentUpload


# ═══════════════════════════════════════════════════════════════════
#  1. Filter / Query-Parameter Serializers
# ═══════════════════════════════════════════════════════════════════


class ReportFilterSerializer(serializers.Serializer):
    """
    Validates query-parameter filters for ``GET /api/reports/``.

    All fields are optional.  The view passes the validated dict directly
    to ``ReportQueryService.get_filtered_queryset``.
    """

    status = serializers.ChoiceField(choices=ReportStatus.choices, required=False)
    priority = serializers.ChoiceField(choices=ReportPriority.choices, required=False)
    department = serializers.ChoiceField(choices=Department.choices, required=False)
    assigned_worker = serializers.IntegerField(required=False, min_value=1)
    created_after = serializers.DateField(required=False)
    created_before = serializers.DateField(required=False)
    search = serializers.CharField(required=False, max_length=200)


# ═══════════════════════════════════════════════════════════════════
#  2. Report Read Serializers
# ═══════════════════════════════════════════════════════════════════


class PlaceSerializer(serializers.ModelSerializer):

    class Meta:
        model = Place
        fields = ["id", "name", "floor"]
        read_only_fields = fields


class ReportListSerializer(serializers.ModelSerializer):
    """Compact representation for list views."""

    status_display = serializers.CharField(source="get_status_display", read_only=True)
    priority_display = serializers.CharField(source="get_priority_display", read_only=True)
    object_name = serializers.CharField(source="subject.name", read_only=True, default=None)
    place = PlaceSerializer(source="subject.place", read_only=True, default=None)
    assigned_worker_name = serializers.CharField(
        source="assigned_worker.user.display_name", read_only=True, default=None,
    )

    class Meta:
        model = Report
        fields = [
            "id",
            "description",
            "department",
            "status",
            "status_display",
            "priority",
            "priority_display",
            "object_name",
            "place",
            "assigned_worker",
            "assigned_worker_name",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ReportDetailSerializer(ReportListSerializer):
    """Full report including the subject object, creator and attachments."""

    object_category = serializers.CharField(source="subject.category", read_only=True, default=None)
    creator = serializers.SerializerMethodField()
    status_logs = serializers.SerializerMethodField()

    class Meta(ReportListSerializer.Meta):
        fields = ReportListSerializer.Meta.fields + [
            "object_category",
            "comment",
            "attachment_refs",
            "creator",
            "status_logs",
        ]
        read_only_fields = fields

    def get_creator(self, obj: Report) -> dict[str, Any] | None:
        link = getattr(obj, "creator_link", None)
        creator = link.creator if link else obj.created_by
        if creator is None:
            return None
        return {"id": creator.pk, "display_name": creator.display_name}

    def get_status_logs(self, obj: Report) -> list[dict[str, Any]]:
        return ReportStatusLogSerializer(obj.status_logs.all(), many=True).data


class FailedAttachmentSerializer(serializers.Serializer):
    index = serializers.IntegerField()
    filename = serializers.CharField(allow_blank=True)
    reason = serializers.CharField()


class CreateReportResultSerializer(serializers.Serializer):
    """Serializes ``CreateReportResult`` (the ``outcome`` of a create call)."""

    report_id = serializers.IntegerField()
    assigned_worker_id = serializers.IntegerField(allow_null=True)
    place_id = serializers.IntegerField()
    attachment_refs = serializers.ListField(child=serializers.CharField())
    failed_attachments = FailedAttachmentSerializer(many=True)
    notification_status = serializers.CharField()
    warnings = serializers.ListField(child=serializers.CharField())
    is_partial = serializers.BooleanField()


# ═══════════════════════════════════════════════════════════════════
#  3. Report Write Serializers
# ═══════════════════════════════════════════════════════════════════


class ReportCreateSerializer(serializers.Serializer):
    """
    Body of ``POST /api/reports/``.

    Accepts JSON or multipart; ``attachments`` are files under the same
    key (multipart only).
    """

    description = serializers.CharField(max_length=constants.DESCRIPTION_MAX_LENGTH)
    department = serializers.ChoiceField(choices=Department.choices)
    object_name = serializers.CharField(max_length=constants.OBJECT_NAME_MAX_LENGTH)
    object_category = serializers.ChoiceField(choices=ObjectCategory.choices)
    place_name = serializers.CharField(max_length=constants.PLACE_NAME_MAX_LENGTH)
    floor = serializers.IntegerField(min_value=1)
    attachments = serializers.ListField(
        child=serializers.FileField(),
        required=False,
        allow_empty=True,
        max_length=constants.MAX_ATTACHMENTS,
    )

    def validate_attachments(self, files: list) -> list:
        for upload in files:
            if upload.size > constants.MAX_ATTACHMENT_BYTES:
                raise serializers.ValidationError(
                    f"'{upload.name}' exceeds the {constants.MAX_ATTACHMENT_BYTES} byte limit."
                )
            content_type = getattr(upload, "content_type", None)
            if content_type and content_type not in constants.ALLOWED_ATTACHMENT_CONTENT_TYPES:
                raise serializers.ValidationError(
                    f"'{upload.name}' has unsupported type '{content_type}'."
                )
        return files

    def to_attachment_uploads(self) -> list[AttachmentUpload]:
        uploads = []
        for upload in self.validated_data.get("attachments", []):
            uploads.append(
                AttachmentUpload(
                    content=upload.read(),
                    filename=upload.name,
                    content_type=getattr(upload, "content_type", None),
                )
            )
        return uploads


# ═══════════════════════════════════════════════════════════════════
#  4. Lifecycle Action Serializers
# ═══════════════════════════════════════════════════════════════════


class SetPriorityRequestSerializer(serializers.Serializer):
    priority = serializers.ChoiceField(choices=sorted(ASSIGNABLE_PRIORITIES))
    comment = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=constants.COMMENT_MAX_LENGTH,
        help_text="Free-text note or time estimate shown to the reporter.",
    )


class AdvanceRequestSerializer(serializers.Serializer):
    target_status = serializers.ChoiceField(choices=ReportStatus.choices)
    comment = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=constants.COMMENT_MAX_LENGTH,
    )


class ReopenRequestSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=constants.COMMENT_MAX_LENGTH)


class ReassignRequestSerializer(serializers.Serializer):
    worker_id = serializers.IntegerField(min_value=1)


# ═══════════════════════════════════════════════════════════════════
#  5. Sub-resource Serializers
# ═══════════════════════════════════════════════════════════════════


class ReportStatusLogSerializer(serializers.ModelSerializer):
    changed_by_name = serializers.CharField(
        source="changed_by.display_name", read_only=True, default=None,
    )

    class Meta:
        model = ReportStatusLog
        fields = [
            "id",
            "from_status",
            "to_status",
            "changed_by",
            "changed_by_name",
            "message",
            "is_reopen",
            "created_at",
        ]
        read_only_fields = fields


class ReportAssignmentLogSerializer(serializers.ModelSerializer):
    from_worker_name = serializers.CharField(
        source="from_worker.user.display_name", read_only=True, default=None,
    )
    to_worker_name = serializers.CharField(
        source="to_worker.user.display_name", read_only=True, default=None,
    )
    changed_by_name = serializers.CharField(
        source="changed_by.display_name", read_only=True, default=None,
    )

    class Meta:
        model = ReportAssignmentLog
        fields = [
            "id",
            "from_worker",
            "from_worker_name",
            "to_worker",
            "to_worker_name",
            "changed_by",
            "changed_by_name",
            "created_at",
        ]
        read_only_fields = fields

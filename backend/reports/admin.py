from django.contrib import admin

from .models import (
    Place,
    Report,
    ReportAssignmentLog,
    ReportCreatorLink,
    ReportStatusLog,
    SubjectObject,
)


class SubjectObjectInline(admin.StackedInline):
    model = SubjectObject
    extra = 0


class ReportCreatorLinkInline(admin.TabularInline):
    model = ReportCreatorLink
    extra = 0
    raw_id_fields = ("creator",)


class ReportStatusLogInline(admin.TabularInline):
    model = ReportStatusLog
    extra = 0
    readonly_fields = ("from_status", "to_status", "changed_by",
                       "message", "is_reopen", "created_at")


@admin.register(Report)
class ReportAdmin(admin.ModelAdmin):
    list_display = ("id", "department", "status", "priority",
                    "assigned_worker", "created_at")
    list_filter = ("department", "status", "priority")
    search_fields = ("description", "subject__name")
    raw_id_fields = ("assigned_worker", "created_by")
    inlines = [SubjectObjectInline, ReportCreatorLinkInline,
               ReportStatusLogInline]


@admin.register(Place)
class PlaceAdmin(admin.ModelAdmin):
    list_display = ("name", "floor")
    search_fields = ("name",)


@admin.register(ReportStatusLog)
class ReportStatusLogAdmin(admin.ModelAdmin):
    list_display = ("report", "from_status", "to_status",
                    "changed_by", "is_reopen", "created_at")
    list_filter = ("to_status", "is_reopen")


@admin.register(ReportAssignmentLog)
class ReportAssignmentLogAdmin(admin.ModelAdmin):
    list_display = ("report", "from_worker", "to_worker",
                    "changed_by", "created_at")

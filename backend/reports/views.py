"""
Reports app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate all business logic to the appropriate service class.
    3. Serialize the result and return a DRF ``Response``.

ViewSets
--------
- ``ReportViewSet`` — the single ViewSet for report endpoints.  Custom
  ``@action`` methods cover the lifecycle operations and sub-resources.
- ``ReportAssignmentLogViewSet`` — nested, read-only reassignment history.
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from .serializers import (
    AdvanceRequestSerializer,
    CreateReportResultSerializer,
    ReassignRequestSerializer,
    ReopenRequestSerializer,
    ReportAssignmentLogSerializer,
    ReportCreateSerializer,
    ReportDetailSerializer,
    ReportFilterSerializer,
    ReportListSerializer,
    ReportStatusLogSerializer,
    SetPriorityRequestSerializer,
)
from .services import (
    CreateReportInput,
    ReportLifecycleService,
    ReportOrchestrator,
    ReportQueryService,
)

logger = logging.getLogger(__name__)


class ReportViewSet(viewsets.ViewSet):
    """
    Central ViewSet for the reports app.

    Permission Strategy
    -------------------
    The base permission is ``IsAuthenticated``.  Scoping (who sees which
    report) and lifecycle authorization (assigned worker / authority) are
    enforced in the service layer.
    """

    permission_classes = [IsAuthenticated]
    parser_classes = [JSONParser, MultiPartParser, FormParser]
    lookup_value_regex = r"\d+"

    # ── Standard CRUD ────────────────────────────────────────────────

    @extend_schema(
        summary="List reports",
        description=(
            "List reports visible to the authenticated user: authorities see all, "
            "workers see reports assigned to them, reporters see their own."
        ),
        parameters=[ReportFilterSerializer],
        responses={200: ReportListSerializer(many=True)},
        tags=["Reports"],
    )
    def list(self, request: Request) -> Response:
        """GET /api/reports/"""
        filter_serializer = ReportFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        qs = ReportQueryService.get_filtered_queryset(
            request.user, filter_serializer.validated_data,
        )
        return Response(ReportListSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="File a new report",
        description=(
            "Create a report, assign it to a random worker of the chosen department, "
            "upload the attached photos and notify the worker.  Photo upload and "
            "notification failures are reported in the body, not as errors."
        ),
        request={
            "multipart/form-data": ReportCreateSerializer,
            "application/json": ReportCreateSerializer,
        },
        responses={
            201: OpenApiResponse(response=ReportDetailSerializer, description="Report created; see ``outcome`` for partial success."),
            400: OpenApiResponse(description="Validation error."),
            503: OpenApiResponse(description="A required dependency failed; nothing was kept."),
        },
        tags=["Reports"],
    )
    def create(self, request: Request) -> Response:
        """
        POST /api/reports/

        Steps
        -----
        1. Validate with ``ReportCreateSerializer``.
        2. Build ``CreateReportInput`` (attachments read into memory).
        3. Delegate to ``ReportOrchestrator.create_report``.
        4. Return the report detail with the result under ``outcome``, HTTP 201.
        """
        serializer = ReportCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = ReportOrchestrator().create_report(
            CreateReportInput(
                description=data["description"],
                department=data["department"],
                object_name=data["object_name"],
                object_category=data["object_category"],
                place_name=data["place_name"],
                floor=data["floor"],
                creator=request.user,
                attachments=serializer.to_attachment_uploads(),
            )
        )

        report = ReportQueryService.get_report_detail(request.user, result.report_id)
        payload = ReportDetailSerializer(report).data
        payload["outcome"] = CreateReportResultSerializer(result.as_dict()).data
        return Response(payload, status=status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve report details",
        responses={
            200: ReportDetailSerializer,
            404: OpenApiResponse(description="Report not found or not visible."),
        },
        tags=["Reports"],
    )
    def retrieve(self, request: Request, pk: str = None) -> Response:
        """GET /api/reports/{id}/"""
        report = ReportQueryService.get_report_detail(request.user, int(pk))
        return Response(ReportDetailSerializer(report).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="mine")
    @extend_schema(
        summary="Reports filed by me",
        responses={200: ReportListSerializer(many=True)},
        tags=["Reports"],
    )
    def mine(self, request: Request) -> Response:
        """GET /api/reports/mine/"""
        qs = ReportQueryService.list_my_reports(request.user)
        return Response(ReportListSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    # ── Lifecycle @actions ───────────────────────────────────────────

    @action(detail=True, methods=["post"], url_path="priority")
    @extend_schema(
        summary="Set priority and estimate",
        description="Assigned worker only.  Priority cannot be set back to 'unassigned'.",
        request=SetPriorityRequestSerializer,
        responses={
            200: ReportDetailSerializer,
            400: OpenApiResponse(description="Validation error."),
            403: OpenApiResponse(description="Not the assigned worker."),
            404: OpenApiResponse(description="Report not found."),
        },
        tags=["Reports – Lifecycle"],
    )
    def priority(self, request: Request, pk: str = None) -> Response:
        """POST /api/reports/{id}/priority/"""
        serializer = SetPriorityRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ReportLifecycleService.set_priority_and_estimate(
            int(pk),
            request.user,
            serializer.validated_data["priority"],
            serializer.validated_data.get("comment"),
        )
        report = ReportQueryService.get_report_detail(request.user, int(pk))
        return Response(ReportDetailSerializer(report).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="advance")
    @extend_schema(
        summary="Advance report status",
        description=(
            "Assigned worker only.  Moves pending → in_progress → resolved, "
            "one step at a time."
        ),
        request=AdvanceRequestSerializer,
        responses={
            200: ReportDetailSerializer,
            403: OpenApiResponse(description="Not the assigned worker."),
            409: OpenApiResponse(description="Target is not the next state."),
        },
        tags=["Reports – Lifecycle"],
    )
    def advance(self, request: Request, pk: str = None) -> Response:
        """POST /api/reports/{id}/advance/"""
        serializer = AdvanceRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ReportLifecycleService.advance(
            int(pk),
            request.user,
            serializer.validated_data["target_status"],
            serializer.validated_data.get("comment"),
        )
        report = ReportQueryService.get_report_detail(request.user, int(pk))
        return Response(ReportDetailSerializer(report).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="reopen")
    @extend_schema(
        summary="Reopen a resolved report",
        request=ReopenRequestSerializer,
        responses={
            200: ReportDetailSerializer,
            403: OpenApiResponse(description="Not allowed to reopen."),
            409: OpenApiResponse(description="Report is not resolved."),
        },
        tags=["Reports – Lifecycle"],
    )
    def reopen(self, request: Request, pk: str = None) -> Response:
        """POST /api/reports/{id}/reopen/"""
        serializer = ReopenRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ReportLifecycleService.reopen(
            int(pk), request.user, serializer.validated_data["reason"],
        )
        report = ReportQueryService.get_report_detail(request.user, int(pk))
        return Response(ReportDetailSerializer(report).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="reassign")
    @extend_schema(
        summary="Reassign report to another worker",
        description="Requires the reassign capability (authorities).",
        request=ReassignRequestSerializer,
        responses={
            200: ReportDetailSerializer,
            403: OpenApiResponse(description="Permission denied."),
            404: OpenApiResponse(description="Report or worker not found."),
        },
        tags=["Reports – Lifecycle"],
    )
    def reassign(self, request: Request, pk: str = None) -> Response:
        """POST /api/reports/{id}/reassign/"""
        serializer = ReassignRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ReportLifecycleService.reassign(
            int(pk), request.user, serializer.validated_data["worker_id"],
        )
        report = ReportQueryService.get_report_detail(request.user, int(pk))
        return Response(ReportDetailSerializer(report).data, status=status.HTTP_200_OK)

    # ── Sub-resource @actions ────────────────────────────────────────

    @action(detail=True, methods=["get"], url_path="status-log")
    @extend_schema(
        summary="Report status audit log",
        responses={
            200: ReportStatusLogSerializer(many=True),
            404: OpenApiResponse(description="Report not found."),
        },
        tags=["Reports"],
    )
    def status_log(self, request: Request, pk: str = None) -> Response:
        """GET /api/reports/{id}/status-log/"""
        logs = ReportQueryService.get_status_log(request.user, int(pk))
        return Response(ReportStatusLogSerializer(logs, many=True).data, status=status.HTTP_200_OK)


class ReportAssignmentLogViewSet(viewsets.ViewSet):
    """
    Reassignment history of one report (nested under ``/reports/{report_pk}/``).

    Read-only; entries are written by ``ReportLifecycleService.reassign``.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Report reassignment history",
        responses={
            200: ReportAssignmentLogSerializer(many=True),
            404: OpenApiResponse(description="Report not found."),
        },
        tags=["Reports"],
    )
    def list(self, request: Request, report_pk: str = None) -> Response:
        """GET /api/reports/{report_pk}/assignment-logs/"""
        logs = ReportQueryService.get_assignment_log(request.user, int(report_pk))
        return Response(ReportAssignmentLogSerializer(logs, many=True).data, status=status.HTTP_200_OK)

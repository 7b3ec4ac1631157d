"""
Reports app URL configuration.

All routes are registered under the ``/api/`` prefix.

Route Hierarchy
---------------
  /api/reports/                           → list / create
  /api/reports/mine/                      → reports filed by the caller
  /api/reports/{id}/                      → retrieve

  ── Lifecycle @actions ──────────────────────────────────────────
  POST /api/reports/{id}/priority/        → assigned worker triages
  POST /api/reports/{id}/advance/         → assigned worker moves one step forward
  POST /api/reports/{id}/reopen/          → resolved → in_progress (logged as reopen)
  POST /api/reports/{id}/reassign/        → authority overrides the worker

  ── Sub-resources ───────────────────────────────────────────────
  GET  /api/reports/{id}/status-log/                 (@action)
  GET  /api/reports/{report_pk}/assignment-logs/     (nested router)
"""

from rest_framework.routers import DefaultRouter
from rest_framework_nested import routers as nested_routers

from .views import ReportAssignmentLogViewSet, ReportViewSet

router = DefaultRouter()
router.register(
    prefix=r"reports",
    viewset=ReportViewSet,
    basename="report",
)

# Parent lookup kwarg → report_pk
assignment_logs_router = nested_routers.NestedDefaultRouter(
    parent_router=router,
    parent_prefix=r"reports",
    lookup="report",
)
assignment_logs_router.register(
    prefix=r"assignment-logs",
    viewset=ReportAssignmentLogViewSet,
    basename="report-assignment-log",
)

urlpatterns = [
    *router.urls,
    *assignment_logs_router.urls,
]

"""
Permissions Constants — **Single Source of Truth**

Every permission referenced in code (views, services, ``setup_rbac``,
DRF permission classes) MUST use one of the constants defined here.

Organisation
------------
- **Standard CRUD** permissions follow Django's auto-generated naming:
  ``<action>_<model_lowercase>``. They are listed here for reference so
  that the ``setup_rbac`` command can map them to roles without typos.

- **Custom workflow** permissions are constants that map to codenames
  registered via each model's ``Meta.permissions`` tuple. Adding a new
  custom permission requires:
    1. Add the constant below.
    2. Add the ``(codename, description)`` to the related model's
       ``Meta.permissions``.
    3. Run ``makemigrations`` + ``migrate`` to insert it into Django's
       ``auth_permission`` table.
    4. Add the constant to the appropriate role lists in ``setup_rbac``.

All constants store the **codename only** (no ``app_label.`` prefix).
The ``setup_rbac`` command resolves them to full
``app_label.codename`` via ``Permission.objects.get(codename=...)``.
"""


# ════════════════════════════════════════════════════════════════════
#  ACCOUNTS APP — Standard CRUD
# ════════════════════════════════════════════════════════════════════

class AccountsPerms:
    """Standard CRUD permissions for accounts models."""

    # Role
    VIEW_ROLE = "view_role"
    ADD_ROLE = "add_role"
    CHANGE_ROLE = "change_role"
    DELETE_ROLE = "delete_role"

    # User
    VIEW_USER = "view_user"
    ADD_USER = "add_user"
    CHANGE_USER = "change_user"
    DELETE_USER = "delete_user"

    # Worker
    VIEW_WORKER = "view_worker"
    ADD_WORKER = "add_worker"
    CHANGE_WORKER = "change_worker"
    DELETE_WORKER = "delete_worker"

    # ── Custom workflow permissions ─────────────────────────────────
    CAN_MANAGE_USERS = "can_manage_users"
    """Admin-level user management (activate, deactivate, assign roles)."""

    CAN_MANAGE_WORKERS = "can_manage_workers"
    """Register workers on the roster and edit their department / rank."""


# ════════════════════════════════════════════════════════════════════
#  REPORTS APP — Standard CRUD + Custom Workflow
# ════════════════════════════════════════════════════════════════════

class ReportsPerms:
    """Standard + custom permissions for the reports app."""

    # ── Report — standard CRUD ──────────────────────────────────────
    VIEW_REPORT = "view_report"
    ADD_REPORT = "add_report"
    CHANGE_REPORT = "change_report"
    DELETE_REPORT = "delete_report"

    # ── Place — standard CRUD ───────────────────────────────────────
    VIEW_PLACE = "view_place"
    ADD_PLACE = "add_place"

    # ── ReportStatusLog — standard CRUD ─────────────────────────────
    VIEW_REPORTSTATUSLOG = "view_reportstatuslog"

    # ── Custom workflow permissions ─────────────────────────────────
    CAN_REASSIGN_REPORT = "can_reassign_report"
    """Authority capability: overwrite the worker assigned to a report."""

    CAN_REOPEN_REPORT = "can_reopen_report"
    """Move a resolved report back to in-progress (logged as a re-open)."""

    CAN_SCOPE_ALL_REPORTS = "can_scope_all_reports"
    """List every report in the facility."""

    CAN_SCOPE_ASSIGNED_REPORTS = "can_scope_assigned_reports"
    """List reports assigned to the requesting worker."""

    CAN_SCOPE_OWN_REPORTS = "can_scope_own_reports"
    """List reports filed by the requesting user."""


# ════════════════════════════════════════════════════════════════════
#  CORE APP — Standard CRUD
# ════════════════════════════════════════════════════════════════════

class CorePerms:
    """Standard CRUD permissions for core models."""

    # ── Notification — standard CRUD ────────────────────────────────
    VIEW_NOTIFICATION = "view_notification"
    CHANGE_NOTIFICATION = "change_notification"

    # ── Custom workflow permissions ─────────────────────────────────
    CAN_VIEW_FULL_DASHBOARD = "can_view_full_dashboard"
    """Facility-wide report statistics access."""

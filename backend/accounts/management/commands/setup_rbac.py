"""
Management command: setup_rbac
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Seeds the database with base **Roles** and links each role to its
set of Django permissions.

This command does NOT create Permission objects.  Standard CRUD
permissions are created by ``migrate``; custom workflow permissions are
declared in each model's ``Meta.permissions`` and inserted by ``migrate``.

The command is **idempotent**: existing roles are updated and their
permissions replaced (set) to match the mapping below.

Usage::

    python manage.py setup_rbac
"""

from django.contrib.auth.models import Permission
from django.core.management.base import BaseCommand

from accounts.models import Role
from core.permissions_constants import AccountsPerms, CorePerms, ReportsPerms

_NOTIFICATION_PERMS = [CorePerms.VIEW_NOTIFICATION, CorePerms.CHANGE_NOTIFICATION]

# ────────────────────────────────────────────────────────────────────
# Role → Permission mapping  (codenames come from permissions_constants)
# ────────────────────────────────────────────────────────────────────
# Key:   (role_name, description, hierarchy_level)
# Value: list of codenames from ``core.permissions_constants``

ROLE_PERMISSIONS_MAP: dict[tuple[str, str, int], list[str]] = {

    # ── System Administrator ────────────────────────────────────────
    (
        "System Admin",
        "Full system access: manages users, roles, the roster and all reports.",
        100,
    ): [
        AccountsPerms.VIEW_ROLE, AccountsPerms.ADD_ROLE,
        AccountsPerms.CHANGE_ROLE, AccountsPerms.DELETE_ROLE,
        AccountsPerms.VIEW_USER, AccountsPerms.ADD_USER,
        AccountsPerms.CHANGE_USER, AccountsPerms.DELETE_USER,
        AccountsPerms.VIEW_WORKER, AccountsPerms.ADD_WORKER,
        AccountsPerms.CHANGE_WORKER, AccountsPerms.DELETE_WORKER,
        AccountsPerms.CAN_MANAGE_USERS, AccountsPerms.CAN_MANAGE_WORKERS,
        ReportsPerms.VIEW_REPORT, ReportsPerms.ADD_REPORT,
        ReportsPerms.CHANGE_REPORT, ReportsPerms.DELETE_REPORT,
        ReportsPerms.VIEW_PLACE, ReportsPerms.ADD_PLACE,
        ReportsPerms.VIEW_REPORTSTATUSLOG,
        ReportsPerms.CAN_REASSIGN_REPORT, ReportsPerms.CAN_REOPEN_REPORT,
        ReportsPerms.CAN_SCOPE_ALL_REPORTS,
        CorePerms.CAN_VIEW_FULL_DASHBOARD,
        *_NOTIFICATION_PERMS,
    ],

    # ── Max Authority ───────────────────────────────────────────────
    (
        "Max Authority",
        "Facility director. Oversees every report and manages the roster.",
        10,
    ): [
        AccountsPerms.VIEW_WORKER, AccountsPerms.ADD_WORKER,
        AccountsPerms.CHANGE_WORKER, AccountsPerms.CAN_MANAGE_WORKERS,
        ReportsPerms.VIEW_REPORT, ReportsPerms.ADD_REPORT,
        ReportsPerms.VIEW_PLACE, ReportsPerms.VIEW_REPORTSTATUSLOG,
        ReportsPerms.CAN_REASSIGN_REPORT, ReportsPerms.CAN_REOPEN_REPORT,
        ReportsPerms.CAN_SCOPE_ALL_REPORTS,
        CorePerms.CAN_VIEW_FULL_DASHBOARD,
        *_NOTIFICATION_PERMS,
    ],

    # ── Authority ───────────────────────────────────────────────────
    (
        "Authority",
        "Department head. Reviews reports and reassigns them between workers.",
        7,
    ): [
        AccountsPerms.VIEW_WORKER,
        ReportsPerms.VIEW_REPORT, ReportsPerms.ADD_REPORT,
        ReportsPerms.VIEW_PLACE, ReportsPerms.VIEW_REPORTSTATUSLOG,
        ReportsPerms.CAN_REASSIGN_REPORT,
        ReportsPerms.CAN_SCOPE_ALL_REPORTS,
        CorePerms.CAN_VIEW_FULL_DASHBOARD,
        *_NOTIFICATION_PERMS,
    ],

    # ── Worker ──────────────────────────────────────────────────────
    (
        "Worker",
        "Department staff who resolve incident reports.",
        3,
    ): [
        ReportsPerms.VIEW_REPORT, ReportsPerms.ADD_REPORT,
        ReportsPerms.VIEW_PLACE, ReportsPerms.VIEW_REPORTSTATUSLOG,
        ReportsPerms.CAN_SCOPE_ASSIGNED_REPORTS,
        *_NOTIFICATION_PERMS,
    ],

    # ── Base User ───────────────────────────────────────────────────
    (
        "Base User",
        "Default role for newly registered users; files incident reports.",
        1,
    ): [
        ReportsPerms.ADD_REPORT,
        ReportsPerms.CAN_SCOPE_OWN_REPORTS,
        *_NOTIFICATION_PERMS,
    ],
}


class Command(BaseCommand):
    help = (
        "Seeds the database with base Roles and maps each role to its "
        "Django permissions.  Safe to run multiple times (idempotent).  "
        "Does NOT create permissions; run `migrate` first."
    )

    def handle(self, *args, **options):
        self.stdout.write(self.style.MIGRATE_HEADING(
            "\n══════════════════════════════════════════"
            "\n  RBAC Setup — Seeding Roles & Permissions"
            "\n══════════════════════════════════════════\n"
        ))

        all_permissions: dict[str, Permission] = {
            p.codename: p
            for p in Permission.objects.select_related("content_type").all()
        }

        roles_created = 0
        roles_updated = 0
        warnings = 0

        for (role_name, description, hierarchy_level), codenames in ROLE_PERMISSIONS_MAP.items():
            role, created = Role.objects.get_or_create(
                name=role_name,
                defaults={
                    "description": description,
                    "hierarchy_level": hierarchy_level,
                },
            )

            if not created and (
                role.description != description
                or role.hierarchy_level != hierarchy_level
            ):
                role.description = description
                role.hierarchy_level = hierarchy_level
                role.save(update_fields=["description", "hierarchy_level"])

            resolved_permissions: list[Permission] = []
            for codename in codenames:
                perm = all_permissions.get(codename)
                if perm is not None:
                    resolved_permissions.append(perm)
                else:
                    warnings += 1
                    self.stdout.write(self.style.WARNING(
                        f"  ⚠  Permission '{codename}' not found — "
                        f"skipped for role '{role_name}'.  "
                        f"(Run makemigrations & migrate first?)"
                    ))

            role.permissions.set(resolved_permissions)

            if created:
                roles_created += 1
            else:
                roles_updated += 1

            self.stdout.write(self.style.SUCCESS(
                f"  ✔  {'Created' if created else 'Updated'} role: {role_name:<15s} "
                f"(hierarchy={hierarchy_level}, "
                f"permissions={len(resolved_permissions)})"
            ))

        summary = (
            f"  Done!  {roles_created} role(s) created, "
            f"{roles_updated} role(s) updated."
        )
        if warnings:
            summary += f"  ({warnings} permission warning(s) — see above.)"
        self.stdout.write(self.style.SUCCESS(summary + "\n"))

"""
core.domain.access — Permission-scoped queryset selectors (shared patterns).

This module provides shared utilities that each app's service layer
calls to obtain querysets filtered by the requesting user's permissions.

Per-app scoping logic does NOT live here.  Each app's ``services.py``
owns its own scope-rules list; this module provides:

  1) ``apply_permission_scope`` — ordered permission dispatch.
  2) ``require_permission`` — guard that checks ``has_perm``.
  3) ``get_user_role_name`` — informational role-name helper.

Usage in an app's service layer::

    from core.domain.access import apply_permission_scope

    REPORT_SCOPE_RULES = [
        ("reports.can_scope_all_reports",      lambda qs, u: qs),
        ("reports.can_scope_assigned_reports", lambda qs, u: qs.filter(assigned_worker__user=u)),
        ("reports.can_scope_own_reports",      lambda qs, u: qs.filter(creator_link__creator=u)),
    ]

    qs = apply_permission_scope(Report.objects.all(), user, scope_rules=REPORT_SCOPE_RULES)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from django.db.models import QuerySet

from core.domain.exceptions import PermissionDenied

if TYPE_CHECKING:
    from accounts.models import User

# Takes (queryset, user) and returns a filtered queryset.
ScopeFilter = Callable[[QuerySet, "User"], QuerySet]

# A single scope rule: (permission_codename, filter_fn).
# The codename must include the app label (e.g. "reports.can_scope_all_reports").
ScopeRule = tuple[str, ScopeFilter]


def get_user_role_name(user: User) -> str | None:
    """
    Return the lowercased role name for a user, or ``None`` if unassigned.

    Informational only (JWT claims, API responses, logging).  Access
    control should use ``apply_permission_scope`` or ``user.has_perm()``.
    """
    if user.is_superuser:
        return "system_admin"
    role = getattr(user, "role", None)
    if role is None:
        return None
    return role.name.lower().replace(" ", "_")


def apply_permission_scope(
    queryset: QuerySet,
    user: User,
    *,
    scope_rules: list[ScopeRule],
    default: str = "none",
) -> QuerySet:
    """
    Apply the first matching permission-based scope rule.

    Rules are checked **in order** and the first permission match wins, so
    order them from broadest to narrowest.

    Args:
        queryset:     Base (unfiltered) queryset.
        user:         The authenticated user.
        scope_rules:  Ordered list of ``(perm_codename, filter_fn)`` tuples.
        default:      ``"none"`` (default) → empty queryset when no rule
                      matches; ``"all"`` → return unfiltered.

    Returns:
        The (possibly filtered) queryset.
    """
    for perm, filter_fn in scope_rules:
        if user.has_perm(perm):
            return filter_fn(queryset, user)

    if default == "none":
        return queryset.none()
    return queryset


def require_permission(user: User, *perms: str, message: str = "") -> None:
    """
    Guard that raises ``PermissionDenied`` if the user lacks **all** of
    the given permissions (OR-logic: having any one is sufficient).

    Args:
        user:    Authenticated user.
        *perms:  One or more full permission strings (``app.codename``).
        message: Optional custom error message.

    Raises:
        core.domain.exceptions.PermissionDenied: If the user has none
            of the listed permissions.
    """
    for perm in perms:
        if user.has_perm(perm):
            return
    raise PermissionDenied(
        message or f"Missing required permission: {', '.join(perms)}."
    )

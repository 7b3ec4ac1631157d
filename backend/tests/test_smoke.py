"""
Smoke tests — verify that Django boots, URL routing resolves, and
the core domain modules are importable.

These tests require a DB (they use ``@pytest.mark.django_db`` where
needed) but do NOT require real data; they just prove the plumbing
works.
"""

from __future__ import annotations

import pytest
from django.urls import resolve, reverse


# ════════════════════════════════════════════════════════════════════
#  URL Routing Smoke Tests
# ════════════════════════════════════════════════════════════════════

class TestURLRouting:
    """Ensure all top-level app URL namespaces resolve without 404."""

    EXPECTED_URLS = [
        # (url_name, expected_path_prefix)
        ("report-list",            "/api/reports/"),
        ("report-mine",            "/api/reports/mine/"),
        ("accounts:login",         "/api/accounts/auth/login/"),
        ("accounts:worker-list",   "/api/accounts/workers/"),
        ("core:dashboard-stats",   "/api/core/dashboard/"),
        ("core:system-constants",  "/api/core/constants/"),
        ("core:notification-list", "/api/core/notifications/"),
    ]

    @pytest.mark.parametrize("url_name,expected_prefix", EXPECTED_URLS)
    def test_url_resolves(self, url_name: str, expected_prefix: str):
        """Named URL reverses to the expected path prefix."""
        url = reverse(url_name)
        assert url.startswith(expected_prefix), (
            f"{url_name} resolved to {url}, expected prefix {expected_prefix}"
        )

    @pytest.mark.parametrize("url_name,expected_prefix", EXPECTED_URLS)
    def test_url_resolve_matches_view(self, url_name: str, expected_prefix: str):
        """Path resolves to a view function (not a 404)."""
        match = resolve(expected_prefix)
        assert match.func is not None

    def test_report_detail_only_accepts_numeric_ids(self):
        assert reverse("report-advance", args=[7]) == "/api/reports/7/advance/"
        assert (
            reverse("report-assignment-log-list", kwargs={"report_pk": 7})
            == "/api/reports/7/assignment-logs/"
        )
        with pytest.raises(Exception):
            reverse("report-detail", args=["abc"])


# ════════════════════════════════════════════════════════════════════
#  Core Domain Module Import Tests
# ════════════════════════════════════════════════════════════════════

class TestCoreDomainImports:
    """Verify that shared domain utility modules are importable."""

    def test_import_exceptions(self):
        from core.domain.exceptions import (
            Conflict,
            ConsistencyViolation,
            DependencyUnavailable,
            DomainError,
            InvalidTransition,
            NotFound,
            PermissionDenied,
            ValidationError,
        )
        # Ensure they form an inheritance chain
        assert issubclass(InvalidTransition, Conflict)
        assert issubclass(Conflict, DomainError)
        assert issubclass(PermissionDenied, DomainError)
        assert issubclass(NotFound, DomainError)
        assert issubclass(ValidationError, DomainError)
        assert issubclass(DependencyUnavailable, DomainError)
        assert issubclass(ConsistencyViolation, DomainError)

    def test_import_notifications(self):
        from core.domain.notifications import NotificationService
        assert hasattr(NotificationService, "create")
        assert hasattr(NotificationService, "notify")

    def test_import_transactions(self):
        from core.domain.transactions import lock_for_update, run_store_step
        assert callable(run_store_step)
        assert callable(lock_for_update)

    def test_import_access(self):
        from core.domain.access import (
            apply_permission_scope,
            get_user_role_name,
            require_permission,
        )
        assert callable(apply_permission_scope)
        assert callable(get_user_role_name)
        assert callable(require_permission)


# ════════════════════════════════════════════════════════════════════
#  Exception Behaviour Tests
# ════════════════════════════════════════════════════════════════════

class TestDomainExceptions:
    """Unit tests for domain exception classes."""

    def test_domain_error_message(self):
        from core.domain.exceptions import DomainError
        err = DomainError("test message")
        assert str(err) == "test message"

    def test_invalid_transition_structured(self):
        from core.domain.exceptions import InvalidTransition
        err = InvalidTransition(
            current="pending",
            target="resolved",
            reason="the next state is 'in_progress'",
        )
        assert "pending" in str(err)
        assert "resolved" in str(err)
        assert "in_progress" in str(err)
        assert err.current == "pending"
        assert err.target == "resolved"

    def test_invalid_transition_plain_message(self):
        from core.domain.exceptions import InvalidTransition
        err = InvalidTransition("Cannot resolve report.")
        assert str(err) == "Cannot resolve report."

    def test_consistency_violation_names_orphan(self):
        from core.domain.exceptions import ConsistencyViolation
        err = ConsistencyViolation(record_type="Report", record_id=42)
        assert "Report #42" in str(err)
        assert err.record_id == 42


class TestExceptionHandler:
    """``domain_exception_handler`` maps domain errors to HTTP responses."""

    @pytest.mark.parametrize("exc,expected_status,extra", [
        ("validation", 400, {"field": "floor"}),
        ("denied", 403, {}),
        ("missing", 404, {}),
        ("transition", 409, {"current": "pending", "target": "resolved"}),
        ("dependency", 503, {"dependency": "object_store"}),
        ("consistency", 500, {"record_type": "Report", "record_id": 9}),
    ])
    def test_status_and_body(self, exc, expected_status, extra):
        from core.domain.exception_handler import domain_exception_handler
        from core.domain import exceptions as domain

        errors = {
            "validation": domain.ValidationError("bad floor", field="floor"),
            "denied": domain.PermissionDenied(),
            "missing": domain.NotFound(),
            "transition": domain.InvalidTransition(current="pending", target="resolved"),
            "dependency": domain.DependencyUnavailable(dependency="object_store"),
            "consistency": domain.ConsistencyViolation(record_id=9),
        }
        error = errors[exc]
        response = domain_exception_handler(error, {})

        assert response.status_code == expected_status
        assert response.data["code"] == type(error).__name__
        for key, value in extra.items():
            assert response.data[key] == value

    def test_unknown_exception_is_left_to_django(self):
        from core.domain.exception_handler import domain_exception_handler
        assert domain_exception_handler(RuntimeError("boom"), {}) is None


# ════════════════════════════════════════════════════════════════════
#  Deadline Unit Tests
# ════════════════════════════════════════════════════════════════════

class TestOperationDeadline:

    def test_unbounded_never_expires(self):
        from core.domain.deadlines import OperationDeadline
        deadline = OperationDeadline.unbounded()
        assert deadline.remaining() is None
        assert not deadline.expired
        deadline.check("anything")

    def test_zero_timeout_is_expired(self):
        from core.domain.deadlines import OperationDeadline
        from core.domain.exceptions import DependencyUnavailable

        deadline = OperationDeadline(timeout=0)
        assert deadline.expired
        with pytest.raises(DependencyUnavailable) as ctx:
            deadline.check("resolve_place")
        assert ctx.value.dependency == "deadline"

    def test_cancel_stops_the_operation(self):
        from core.domain.deadlines import OperationDeadline
        from core.domain.exceptions import DependencyUnavailable

        deadline = OperationDeadline(timeout=60)
        deadline.cancel()
        assert deadline.cancelled
        assert deadline.expired
        with pytest.raises(DependencyUnavailable, match="cancelled"):
            deadline.check("create_report")


# ════════════════════════════════════════════════════════════════════
#  Access Helper Unit Tests
# ════════════════════════════════════════════════════════════════════

class TestAccessHelpers:
    """Unit tests for core.domain.access helpers."""

    def test_apply_permission_scope_no_match_default_all(self):
        """No matching rule with default='all' returns unfiltered qs."""
        from unittest.mock import MagicMock
        from core.domain.access import apply_permission_scope

        user = MagicMock()
        user.has_perm.return_value = False

        qs = MagicMock()
        result = apply_permission_scope(qs, user, scope_rules=[], default="all")
        assert result is qs  # returned unmodified

    def test_apply_permission_scope_no_match_default_none(self):
        """No matching rule with default='none' returns empty qs."""
        from unittest.mock import MagicMock
        from core.domain.access import apply_permission_scope

        user = MagicMock()
        user.has_perm.return_value = False

        qs = MagicMock()
        apply_permission_scope(
            qs, user, scope_rules=[("reports.can_scope_all_reports", lambda q, u: q)],
        )
        qs.none.assert_called_once()

    def test_first_matching_rule_wins(self):
        from unittest.mock import MagicMock
        from core.domain.access import apply_permission_scope

        user = MagicMock()
        user.has_perm.side_effect = lambda perm: perm == "reports.can_scope_assigned_reports"
        qs = MagicMock()

        result = apply_permission_scope(
            qs,
            user,
            scope_rules=[
                ("reports.can_scope_all_reports", lambda q, u: "all"),
                ("reports.can_scope_assigned_reports", lambda q, u: "assigned"),
                ("reports.can_scope_own_reports", lambda q, u: "own"),
            ],
        )
        assert result == "assigned"

    def test_require_permission_raises(self):
        """require_permission raises PermissionDenied when no perm matches."""
        from unittest.mock import MagicMock
        from core.domain.access import require_permission
        from core.domain.exceptions import PermissionDenied

        user = MagicMock()
        user.has_perm.return_value = False

        with pytest.raises(PermissionDenied):
            require_permission(user, "reports.can_reassign_report")

    def test_get_user_role_name_superuser(self):
        """Superusers are mapped to 'system_admin'."""
        from unittest.mock import MagicMock
        from core.domain.access import get_user_role_name

        user = MagicMock()
        user.is_superuser = True
        assert get_user_role_name(user) == "system_admin"

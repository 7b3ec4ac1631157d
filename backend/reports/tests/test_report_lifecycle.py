"""
Tests for ``ReportLifecycleService``: triage, forward-only advancement,
re-opening and authority reassignment.
"""

from __future__ import annotations

from accounts.models import Department
from core.domain.exceptions import (
    InvalidTransition,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from core.models import Notification
from reports.models import (
    Report,
    ReportAssignmentLog,
    ReportPriority,
    ReportStatus,
    ReportStatusLog,
)
from reports.services import ReportLifecycleService

from .base import ReportsTestCase


class LifecycleTestCase(ReportsTestCase):

    @classmethod
    def setUpTestData(cls):
        super().setUpTestData()
        cls.creator = cls.make_user()
        cls.worker = cls.make_worker(Department.MAINTENANCE)
        cls.other_worker = cls.make_worker(Department.MAINTENANCE)
        cls.systems_worker = cls.make_worker(Department.SYSTEMS)
        cls.authority = cls.make_user("Authority")
        cls.director = cls.make_user("Max Authority")

    def setUp(self):
        self.report = self.make_report(self.creator, self.worker)


class TestSetPriorityAndEstimate(LifecycleTestCase):

    def test_assigned_worker_sets_priority_and_comment(self):
        ReportLifecycleService.set_priority_and_estimate(
            self.report.pk, self.worker.user, ReportPriority.HIGH, "About two hours",
        )

        self.report.refresh_from_db()
        self.assertEqual(self.report.priority, ReportPriority.HIGH)
        self.assertEqual(self.report.comment, "About two hours")
        self.assertTrue(
            Notification.objects.filter(
                recipient=self.creator, event_type="report_updated",
            ).exists()
        )

    def test_other_worker_is_rejected(self):
        with self.assertRaises(PermissionDenied):
            ReportLifecycleService.set_priority_and_estimate(
                self.report.pk, self.other_worker.user, ReportPriority.LOW,
            )
        self.report.refresh_from_db()
        self.assertEqual(self.report.priority, ReportPriority.UNASSIGNED)

    def test_priority_cannot_be_unassigned(self):
        with self.assertRaises(ValidationError) as ctx:
            ReportLifecycleService.set_priority_and_estimate(
                self.report.pk, self.worker.user, ReportPriority.UNASSIGNED,
            )
        self.assertEqual(ctx.exception.field, "priority")

    def test_missing_report(self):
        with self.assertRaises(NotFound):
            ReportLifecycleService.set_priority_and_estimate(
                999_999, self.worker.user, ReportPriority.LOW,
            )


class TestAdvance(LifecycleTestCase):

    def test_full_forward_path_is_logged(self):
        ReportLifecycleService.advance(self.report.pk, self.worker.user, ReportStatus.IN_PROGRESS)
        ReportLifecycleService.advance(
            self.report.pk, self.worker.user, ReportStatus.RESOLVED, "Bulb replaced",
        )

        self.report.refresh_from_db()
        self.assertEqual(self.report.status, ReportStatus.RESOLVED)
        self.assertEqual(self.report.comment, "Bulb replaced")

        transitions = list(
            ReportStatusLog.objects.filter(report=self.report)
            .order_by("id")
            .values_list("from_status", "to_status", "is_reopen")
        )
        self.assertEqual(
            transitions,
            [
                (ReportStatus.PENDING, ReportStatus.IN_PROGRESS, False),
                (ReportStatus.IN_PROGRESS, ReportStatus.RESOLVED, False),
            ],
        )
        self.assertEqual(
            Notification.objects.filter(
                recipient=self.creator, event_type="report_status_changed",
            ).count(),
            2,
        )

    def test_skipping_a_state_is_rejected(self):
        with self.assertRaises(InvalidTransition) as ctx:
            ReportLifecycleService.advance(self.report.pk, self.worker.user, ReportStatus.RESOLVED)

        self.assertEqual(ctx.exception.current, ReportStatus.PENDING)
        self.assertEqual(ctx.exception.target, ReportStatus.RESOLVED)
        self.report.refresh_from_db()
        self.assertEqual(self.report.status, ReportStatus.PENDING)
        self.assertFalse(ReportStatusLog.objects.exists())

    def test_moving_backwards_is_rejected(self):
        ReportLifecycleService.advance(self.report.pk, self.worker.user, ReportStatus.IN_PROGRESS)
        with self.assertRaises(InvalidTransition):
            ReportLifecycleService.advance(self.report.pk, self.worker.user, ReportStatus.PENDING)

    def test_resolved_is_terminal_for_advance(self):
        resolved = self.make_report(self.creator, self.worker, status=ReportStatus.RESOLVED)
        for target in ReportStatus.values:
            with self.subTest(target=target):
                with self.assertRaises(InvalidTransition):
                    ReportLifecycleService.advance(resolved.pk, self.worker.user, target)

    def test_same_state_is_rejected(self):
        with self.assertRaises(InvalidTransition):
            ReportLifecycleService.advance(self.report.pk, self.worker.user, ReportStatus.PENDING)

    def test_non_owner_gets_permission_error_before_transition_check(self):
        with self.assertRaises(PermissionDenied):
            ReportLifecycleService.advance(
                self.report.pk, self.other_worker.user, ReportStatus.RESOLVED,
            )
        with self.assertRaises(PermissionDenied):
            ReportLifecycleService.advance(
                self.report.pk, self.creator, ReportStatus.IN_PROGRESS,
            )

    def test_unassigned_report_cannot_be_advanced(self):
        unassigned = self.make_report(self.creator, worker=None)
        with self.assertRaises(PermissionDenied):
            ReportLifecycleService.advance(unassigned.pk, self.worker.user, ReportStatus.IN_PROGRESS)

    def test_unknown_status_is_a_validation_error(self):
        with self.assertRaises(ValidationError):
            ReportLifecycleService.advance(self.report.pk, self.worker.user, "closed")


class TestReopen(LifecycleTestCase):

    def setUp(self):
        self.report = self.make_report(self.creator, self.worker, status=ReportStatus.RESOLVED)

    def test_assigned_worker_reopens_with_reason(self):
        with self.assertLogs("reports.services", level="WARNING"):
            ReportLifecycleService.reopen(self.report.pk, self.worker.user, "Still flickering")

        self.report.refresh_from_db()
        self.assertEqual(self.report.status, ReportStatus.IN_PROGRESS)
        log = ReportStatusLog.objects.get(report=self.report)
        self.assertTrue(log.is_reopen)
        self.assertEqual(log.message, "Still flickering")
        self.assertEqual(
            (log.from_status, log.to_status),
            (ReportStatus.RESOLVED, ReportStatus.IN_PROGRESS),
        )

    def test_holder_of_reopen_permission_may_reopen(self):
        ReportLifecycleService.reopen(self.report.pk, self.director, "Inspection failed")
        self.report.refresh_from_db()
        self.assertEqual(self.report.status, ReportStatus.IN_PROGRESS)
        self.assertTrue(
            Notification.objects.filter(
                recipient=self.worker.user, event_type="report_reopened",
            ).exists()
        )

    def test_reporter_cannot_reopen(self):
        with self.assertRaises(PermissionDenied):
            ReportLifecycleService.reopen(self.report.pk, self.creator, "Not fixed")

    def test_only_resolved_reports_can_be_reopened(self):
        pending = self.make_report(self.creator, self.worker)
        with self.assertRaises(InvalidTransition):
            ReportLifecycleService.reopen(pending.pk, self.worker.user, "Why not")

    def test_reason_is_required(self):
        with self.assertRaises(ValidationError) as ctx:
            ReportLifecycleService.reopen(self.report.pk, self.worker.user, "  ")
        self.assertEqual(ctx.exception.field, "reason")


class TestReassign(LifecycleTestCase):

    def test_authority_reassigns_and_department_follows_worker(self):
        ReportLifecycleService.reassign(self.report.pk, self.authority, self.systems_worker.pk)

        self.report.refresh_from_db()
        self.assertEqual(self.report.assigned_worker_id, self.systems_worker.pk)
        self.assertEqual(self.report.department, Department.SYSTEMS)

        log = ReportAssignmentLog.objects.get(report=self.report)
        self.assertEqual(log.from_worker_id, self.worker.pk)
        self.assertEqual(log.to_worker_id, self.systems_worker.pk)
        self.assertEqual(log.changed_by, self.authority)
        self.assertTrue(
            Notification.objects.filter(
                recipient=self.systems_worker.user, event_type="report_reassigned",
            ).exists()
        )

    def test_previous_worker_loses_ownership(self):
        ReportLifecycleService.reassign(self.report.pk, self.authority, self.other_worker.pk)

        with self.assertRaises(PermissionDenied):
            ReportLifecycleService.advance(self.report.pk, self.worker.user, ReportStatus.IN_PROGRESS)
        ReportLifecycleService.advance(self.report.pk, self.other_worker.user, ReportStatus.IN_PROGRESS)

    def test_unassigned_report_can_be_assigned(self):
        unassigned = self.make_report(self.creator, worker=None)
        ReportLifecycleService.reassign(unassigned.pk, self.authority, self.worker.pk)
        self.assertEqual(Report.objects.get(pk=unassigned.pk).assigned_worker_id, self.worker.pk)

    def test_worker_cannot_reassign(self):
        with self.assertRaises(PermissionDenied):
            ReportLifecycleService.reassign(self.report.pk, self.worker.user, self.other_worker.pk)

    def test_unknown_worker(self):
        with self.assertRaises(NotFound):
            ReportLifecycleService.reassign(self.report.pk, self.authority, 999_999)

"""
Tests for ``AssignmentSelector``: department membership, uniform choice,
empty pools and the least-loaded strategy.
"""

from __future__ import annotations

import random
from collections import Counter
from unittest import mock

from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError

from accounts.models import Department
from core import constants
from core.domain.exceptions import DependencyUnavailable, ValidationError
from reports.models import ReportStatus
from reports.services import AssignmentSelector

from .base import ReportsTestCase


class TestAssignmentSelector(ReportsTestCase):

    @classmethod
    def setUpTestData(cls):
        super().setUpTestData()
        cls.maintenance = [cls.make_worker(Department.MAINTENANCE) for _ in range(3)]
        cls.systems = cls.make_worker(Department.SYSTEMS)

    def test_selected_worker_belongs_to_department(self):
        selector = AssignmentSelector(rng=random.Random(7))
        maintenance_ids = {w.pk for w in self.maintenance}

        for _ in range(50):
            self.assertIn(selector.select(Department.MAINTENANCE), maintenance_ids)
        self.assertEqual(selector.select(Department.SYSTEMS), self.systems.pk)

    def test_selection_is_roughly_uniform(self):
        selector = AssignmentSelector(rng=random.Random(2024))
        counts = Counter(selector.select(Department.MAINTENANCE) for _ in range(3000))

        self.assertEqual(set(counts), {w.pk for w in self.maintenance})
        for worker in self.maintenance:
            self.assertGreater(counts[worker.pk], 800)
            self.assertLess(counts[worker.pk], 1200)

    def test_empty_pool_returns_none(self):
        self.systems.user.is_active = False
        self.systems.user.save(update_fields=["is_active"])

        self.assertIsNone(AssignmentSelector().select(Department.SYSTEMS))

    def test_unknown_department_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            AssignmentSelector().select("cleaning")
        self.assertEqual(ctx.exception.field, "department")

    def test_roster_failure_is_a_dependency_error(self):
        selector = AssignmentSelector()
        with mock.patch.object(
            AssignmentSelector, "_candidate_ids", side_effect=DatabaseError("down"),
        ):
            with self.assertRaises(DependencyUnavailable):
                selector.select(Department.MAINTENANCE)

    def test_unknown_strategy_is_a_configuration_error(self):
        with self.assertRaises(ImproperlyConfigured):
            AssignmentSelector(strategy="round_robin")


class TestLeastLoadedStrategy(ReportsTestCase):

    @classmethod
    def setUpTestData(cls):
        super().setUpTestData()
        cls.creator = cls.make_user()
        cls.busy = cls.make_worker(Department.MAINTENANCE)
        cls.idle = cls.make_worker(Department.MAINTENANCE)
        cls.make_report(cls.creator, cls.busy)
        cls.make_report(cls.creator, cls.busy, status=ReportStatus.IN_PROGRESS)
        cls.make_report(cls.creator, cls.idle, status=ReportStatus.RESOLVED)

    def test_picks_worker_with_fewest_open_reports(self):
        selector = AssignmentSelector(
            strategy=constants.ASSIGNMENT_STRATEGY_LEAST_LOADED,
            rng=random.Random(1),
        )
        for _ in range(20):
            self.assertEqual(selector.select(Department.MAINTENANCE), self.idle.pk)

    def test_ties_are_broken_among_least_loaded(self):
        third = self.make_worker(Department.MAINTENANCE)
        selector = AssignmentSelector(
            strategy=constants.ASSIGNMENT_STRATEGY_LEAST_LOADED,
            rng=random.Random(3),
        )
        picks = {selector.select(Department.MAINTENANCE) for _ in range(60)}
        self.assertEqual(picks, {self.idle.pk, third.pk})

"""
Shared helpers for the reports test-suite.

``ReportsTestCase`` seeds the default roles once per class and offers
small factories for users, workers and reports; the fake collaborators
below stand in for the object store and notifier so orchestration
failures can be injected deterministically.
"""

from __future__ import annotations

import itertools
import threading
from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from accounts.models import Department, Role, User, Worker
from core.domain.exceptions import DependencyUnavailable
from reports.models import (
    ObjectCategory,
    Place,
    Report,
    ReportCreatorLink,
    ReportStatus,
    SubjectObject,
)
from reports.services import AttachmentUpload, CreateReportInput

_seq = itertools.count(1)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeObjectStore:
    """In-memory object store; filenames listed in ``fail`` are rejected."""

    def __init__(self, fail: set[str] | None = None) -> None:
        self.fail = fail or set()
        self.stored: list[str] = []
        self._lock = threading.Lock()

    def put(self, content: bytes, *, filename: str = "", content_type: str | None = None) -> str:
        if filename in self.fail:
            raise DependencyUnavailable(f"store rejected {filename}", dependency="object_store")
        with self._lock:
            self.stored.append(filename)
        return f"https://objects.test/report_attachments/{filename}"


class BlockingObjectStore(FakeObjectStore):
    """Blocks every ``put`` until ``release`` is set (or five seconds pass)."""

    def __init__(self) -> None:
        super().__init__()
        self.release = threading.Event()
        self.started = threading.Event()

    def put(self, content: bytes, *, filename: str = "", content_type: str | None = None) -> str:
        self.started.set()
        self.release.wait(timeout=5)
        return super().put(content, filename=filename, content_type=content_type)


class RecordingNotifier:
    """Notifier double; ``result`` is returned, ``error`` is raised if set."""

    def __init__(self, result: bool = True, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[dict] = []

    def notify(self, **kwargs) -> bool:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result


class ReportsTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        call_command("setup_rbac", stdout=StringIO())
        cls.roles = {role.name: role for role in Role.objects.all()}

    # ── Factories ────────────────────────────────────────────────────

    @classmethod
    def make_user(cls, role_name: str = "Base User", **kwargs) -> User:
        n = next(_seq)
        kwargs.setdefault("username", f"user{n}")
        kwargs.setdefault("email", f"user{n}@facility.test")
        kwargs.setdefault("first_name", "Test")
        kwargs.setdefault("last_name", f"User{n}")
        user = User.objects.create_user(password="TestPass123!", **kwargs)
        user.role = cls.roles[role_name]
        user.save(update_fields=["role"])
        return user

    @classmethod
    def make_worker(cls, department: str = Department.MAINTENANCE, **kwargs) -> Worker:
        user = cls.make_user("Worker", **kwargs)
        return Worker.objects.create(user=user, department=department)

    @classmethod
    def make_report(
        cls,
        creator: User,
        worker: Worker | None = None,
        status: str = ReportStatus.PENDING,
        department: str = Department.MAINTENANCE,
    ) -> Report:
        place, _ = Place.objects.get_or_create(name="Main Hall", floor=1)
        report = Report.objects.create(
            description="Ceiling light flickers",
            department=department,
            status=status,
            assigned_worker=worker,
            created_by=creator,
        )
        ReportCreatorLink.objects.create(report=report, creator=creator)
        SubjectObject.objects.create(
            report=report,
            name="Ceiling light",
            category=ObjectCategory.ELECTRICAL,
            place=place,
        )
        return report

    @staticmethod
    def make_input(creator: User, **overrides) -> CreateReportInput:
        data = {
            "description": "Projector does not turn on",
            "department": Department.SYSTEMS,
            "object_name": "Projector",
            "object_category": ObjectCategory.PROJECTORS_SCREENS,
            "place_name": "Library",
            "floor": 2,
            "creator": creator,
            "attachments": [],
        }
        data.update(overrides)
        return CreateReportInput(**data)

    @staticmethod
    def photos(*names: str) -> list[AttachmentUpload]:
        return [
            AttachmentUpload(content=PNG_BYTES, filename=name, content_type="image/png")
            for name in names
        ]

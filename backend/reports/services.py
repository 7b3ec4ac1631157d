"""
Reports app Service Layer.

This module is the **single source of truth** for all business logic
in the ``reports`` app.  Views must remain thin: validate input via
serializers, call a service method, and return the result wrapped in
a DRF ``Response``.

Architecture
------------
- ``AssignmentSelector``      — picks the responsible worker for a department.
- ``PlaceResolver``           — idempotent (name, floor) → Place id.
- ``ReportOrchestrator``      — the multi-step create workflow with
                                compensation and partial-success results.
- ``ReportLifecycleService``  — role-gated status / priority / assignment changes.
- ``ReportQueryService``      — permission-scoped listing and detail.

Failure classes
---------------
``ValidationError`` (caller input), ``PermissionDenied`` / ``InvalidTransition``
(caller errors on the lifecycle), ``DependencyUnavailable`` (hard failure,
retry the whole operation), ``ConsistencyViolation`` (compensation failed).
Partial success of a creation run is returned on ``CreateReportResult``.
"""

from __future__ import annotations

import concurrent.futures
import enum
import functools
import logging
import random
import time
from dataclasses import asdict, dataclass, field
from typing import Any

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Count, Q, QuerySet

from accounts.models import Department, User, Worker
from core import constants
from core.domain.access import apply_permission_scope, require_permission
from core.domain.deadlines import OperationDeadline
from core.domain.exceptions import (
    ConsistencyViolation,
    DependencyUnavailable,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from core.domain.notifications import NotificationService
from core.domain.object_store import ObjectStoreClient
from core.domain.transactions import lock_for_update, run_store_step
from core.permissions_constants import ReportsPerms

from .models import (
    ObjectCategory,
    Place,
    Report,
    ReportAssignmentLog,
    ReportCreatorLink,
    ReportPriority,
    ReportStatus,
    ReportStatusLog,
    SubjectObject,
)

logger = logging.getLogger(__name__)
integrity_logger = logging.getLogger("reports.integrity")

#: Seconds between cancellation checks while attachment uploads run.
UPLOAD_POLL_INTERVAL = 0.1


OPEN_STATUSES = (ReportStatus.PENDING, ReportStatus.IN_PROGRESS)


def _reports_setting(key: str, default: Any) -> Any:
    return getattr(settings, "REPORTS", {}).get(key, default)


# ════════════════════════════════════════════════════════════════════
#  Input validation helpers
# ════════════════════════════════════════════════════════════════════

def validate_department(department: Any) -> str:
    if department not in Department.values:
        raise ValidationError(
            f"Department must be one of: {', '.join(Department.values)}.",
            field="department",
        )
    return department


def _clean_text(value: Any, field_name: str, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must not be empty.", field=field_name)
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(
            f"'{field_name}' must be at most {max_length} characters.",
            field=field_name,
        )
    return value


def _clean_floor(floor: Any) -> int:
    # bool is an int subclass; True must not be accepted as floor 1
    if isinstance(floor, bool) or not isinstance(floor, int):
        raise ValidationError("Floor must be an integer.", field="floor")
    if floor < 1:
        raise ValidationError("Floor must be 1 or greater.", field="floor")
    return floor


# ════════════════════════════════════════════════════════════════════
#  Assignment Selector
# ════════════════════════════════════════════════════════════════════

class AssignmentSelector:
    """
    ``select(department) -> worker id | None``.

    Strategies
    ----------
    ``random`` (default)
        Uniform choice among the department's active workers.  Stateless
        and memoryless: no load counter is kept, so small samples may be
        unbalanced.
    ``least_loaded``
        Chooses among the workers with the fewest unresolved reports,
        counted live from the record store at call time; ties are broken
        uniformly at random.

    An empty pool returns ``None``: an unassigned report is a valid state.
    """

    STRATEGIES = (
        constants.ASSIGNMENT_STRATEGY_RANDOM,
        constants.ASSIGNMENT_STRATEGY_LEAST_LOADED,
    )

    def __init__(self, strategy: str | None = None, rng: random.Random | None = None) -> None:
        self.strategy = strategy or _reports_setting(
            "ASSIGNMENT_STRATEGY", constants.ASSIGNMENT_STRATEGY,
        )
        if self.strategy not in self.STRATEGIES:
            raise ImproperlyConfigured(
                f"Unknown assignment strategy '{self.strategy}'. "
                f"Expected one of: {', '.join(self.STRATEGIES)}."
            )
        self.rng = rng or random.SystemRandom()

    def _candidate_ids(self, department: str) -> list[int]:
        pool = Worker.objects.filter(department=department, user__is_active=True)

        if self.strategy == constants.ASSIGNMENT_STRATEGY_LEAST_LOADED:
            loads = list(
                pool.annotate(
                    open_reports=Count(
                        "assigned_reports",
                        filter=Q(assigned_reports__status__in=OPEN_STATUSES),
                    )
                )
                .order_by("pk")
                .values_list("pk", "open_reports")
            )
            if not loads:
                return []
            lowest = min(load for _, load in loads)
            return [pk for pk, load in loads if load == lowest]

        return list(pool.order_by("pk").values_list("pk", flat=True))

    def select(self, department: str) -> int | None:
        """
        Return the id of the worker who should own a new report.

        Raises:
            ValidationError:       ``department`` is not a known department.
            DependencyUnavailable: The roster could not be read.
        """
        validate_department(department)
        try:
            candidates = self._candidate_ids(department)
        except DatabaseError as exc:
            logger.error("Worker roster unavailable for %s: %s", department, exc)
            raise DependencyUnavailable(
                "Worker roster is unavailable.", dependency="record_store",
            ) from exc

        if not candidates:
            logger.info("No %s workers on the roster; report stays unassigned", department)
            return None
        return self.rng.choice(candidates)


# ════════════════════════════════════════════════════════════════════
#  Place Resolver
# ════════════════════════════════════════════════════════════════════

class PlaceResolver:
    """
    ``resolve(name, floor) -> place id``, creating the Place on first use.

    The (name, floor) pair is unique in the database.  When a concurrent
    resolver wins the insert race, the ``IntegrityError`` is treated as
    "someone else created it" and their row is returned.
    """

    @staticmethod
    def resolve(name: str, floor: int) -> int:
        """
        Raises:
            ValidationError:       Empty / too long name, or floor not an int >= 1.
            DependencyUnavailable: The record store failed.
        """
        name = _clean_text(name, "place_name", constants.PLACE_NAME_MAX_LENGTH)
        floor = _clean_floor(floor)

        try:
            existing = Place.objects.filter(name=name, floor=floor).values_list("pk", flat=True).first()
            if existing is not None:
                return existing
            try:
                with transaction.atomic():
                    place = Place.objects.create(name=name, floor=floor)
            except IntegrityError:
                logger.info("Place %r floor %d created concurrently; reusing it", name, floor)
                return Place.objects.get(name=name, floor=floor).pk
        except DatabaseError as exc:
            logger.error("Place lookup failed for %r floor %d: %s", name, floor, exc)
            raise DependencyUnavailable(
                "Could not resolve the place.", dependency="record_store",
            ) from exc

        logger.info("Created Place #%d (%s, floor %d)", place.pk, name, floor)
        return place.pk


# ════════════════════════════════════════════════════════════════════
#  Report Orchestrator
# ════════════════════════════════════════════════════════════════════

class OrchestrationStage(str, enum.Enum):
    VALIDATING = "validating"
    ASSIGNING = "assigning"
    RESOLVING_PLACE = "resolving_place"
    PERSISTING_CORE = "persisting_core"
    UPLOADING_ATTACHMENTS = "uploading_attachments"
    NOTIFYING = "notifying"
    DONE = "done"
    ROLLING_BACK = "rolling_back"
    FAILED = "failed"


class NotificationStatus(str, enum.Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED_NO_WORKER = "skipped_no_worker"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class AttachmentUpload:
    content: bytes
    filename: str = ""
    content_type: str | None = None


@dataclass
class CreateReportInput:
    description: str
    department: str
    object_name: str
    object_category: str
    place_name: str
    floor: int
    creator: User
    attachments: list[AttachmentUpload] = field(default_factory=list)


@dataclass(frozen=True)
class FailedAttachment:
    index: int
    filename: str
    reason: str


@dataclass
class CreateReportResult:
    """
    Outcome of a successful creation run.

    The report, its creator link and its subject object always exist
    when this is returned; ``is_partial`` tells whether the soft steps
    (attachment uploads, worker notification) fell short.
    """

    report_id: int
    assigned_worker_id: int | None
    place_id: int
    attachment_refs: list[str] = field(default_factory=list)
    failed_attachments: list[FailedAttachment] = field(default_factory=list)
    notification_status: NotificationStatus = NotificationStatus.SKIPPED_NO_WORKER
    warnings: list[str] = field(default_factory=list)
    stages: list[OrchestrationStage] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_attachments) or self.notification_status in (
            NotificationStatus.FAILED,
            NotificationStatus.ABANDONED,
        )

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["notification_status"] = self.notification_status.value
        data["stages"] = [stage.value for stage in self.stages]
        data["is_partial"] = self.is_partial
        return data


class _Run:
    """Stage tracker for one orchestration run."""

    def __init__(self) -> None:
        self.stages: list[OrchestrationStage] = []

    @property
    def stage(self) -> OrchestrationStage | None:
        return self.stages[-1] if self.stages else None

    def enter(self, stage: OrchestrationStage) -> None:
        logger.debug("Report orchestration: %s -> %s", self.stage, stage.value)
        self.stages.append(stage)


class ReportOrchestrator:
    """
    Turns a submitted incident into a durable, assigned, trackable report.

    Steps (in order)
    ----------------
    1. Validate input.                                  caller error
    2. Select a worker.                                 hard failure
    3. Resolve the place.                               hard failure
    4. Create the Report.                               hard failure
    5. Create the ReportCreatorLink.                    hard, compensated
    6. Create the SubjectObject.                        hard, compensated
    7. Upload attachments (concurrently) and append.    soft
    8. Notify the assigned worker, if any.              soft
    9. Return ``CreateReportResult``.

    Collaborators are injected so alternative stores and notifiers can be
    swapped in; the instance keeps no per-run state and may be shared.
    """

    def __init__(
        self,
        *,
        selector: AssignmentSelector | None = None,
        place_resolver: PlaceResolver | None = None,
        object_store: ObjectStoreClient | None = None,
        notifier: type[NotificationService] | Any = NotificationService,
        upload_workers: int | None = None,
        max_attachments: int | None = None,
        max_attachment_bytes: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self.selector = selector or AssignmentSelector()
        self.place_resolver = place_resolver or PlaceResolver()
        self.object_store = object_store or ObjectStoreClient()
        self.notifier = notifier
        self.upload_workers = upload_workers or _reports_setting(
            "ATTACHMENT_UPLOAD_WORKERS", constants.ATTACHMENT_UPLOAD_WORKERS,
        )
        self.max_attachments = max_attachments or _reports_setting(
            "MAX_ATTACHMENTS", constants.MAX_ATTACHMENTS,
        )
        self.max_attachment_bytes = max_attachment_bytes or _reports_setting(
            "MAX_ATTACHMENT_BYTES", constants.MAX_ATTACHMENT_BYTES,
        )
        self.timeout = timeout if timeout is not None else _reports_setting(
            "ORCHESTRATION_TIMEOUT_SECONDS", constants.ORCHESTRATION_TIMEOUT_SECONDS,
        )

    # ── Public API ──────────────────────────────────────────────────

    def create_report(
        self,
        data: CreateReportInput,
        *,
        deadline: OperationDeadline | None = None,
    ) -> CreateReportResult:
        """
        Run the full creation workflow.

        Args:
            data:     The submitted incident.
            deadline: Caller-supplied timeout / cancellation token.  A
                      default one is built from ``ORCHESTRATION_TIMEOUT_SECONDS``.

        Returns:
            ``CreateReportResult``; never raises for attachment or
            notification failures.

        Raises:
            ValidationError:       Malformed input (nothing written).
            DependencyUnavailable: A hard step failed, timed out or was
                                   cancelled (any partial core records
                                   have been removed).
            ConsistencyViolation:  Removing the partial core records failed.
        """
        deadline = deadline or OperationDeadline(self.timeout)
        run = _Run()

        run.enter(OrchestrationStage.VALIDATING)
        data = self.validate(data)

        run.enter(OrchestrationStage.ASSIGNING)
        deadline.check("assign_worker")
        worker_id = self.selector.select(data.department)

        run.enter(OrchestrationStage.RESOLVING_PLACE)
        deadline.check("resolve_place")
        place_id = self.place_resolver.resolve(data.place_name, data.floor)

        run.enter(OrchestrationStage.PERSISTING_CORE)
        report = self._persist_core(run, data, worker_id, place_id, deadline)

        result = CreateReportResult(
            report_id=report.pk,
            assigned_worker_id=worker_id,
            place_id=place_id,
        )

        run.enter(OrchestrationStage.UPLOADING_ATTACHMENTS)
        if data.attachments:
            self._upload_attachments(report, data.attachments, deadline, result)

        run.enter(OrchestrationStage.NOTIFYING)
        result.notification_status = self._notify_worker(report, data, worker_id, place_id, deadline, result)

        run.enter(OrchestrationStage.DONE)
        result.stages = list(run.stages)

        logger.info(
            "Report #%d created by user #%d (worker=%s, attachments=%d/%d, notification=%s)",
            report.pk,
            data.creator.pk,
            worker_id,
            len(result.attachment_refs),
            len(data.attachments),
            result.notification_status.value,
        )
        return result

    def validate(self, data: CreateReportInput) -> CreateReportInput:
        """Return a cleaned copy of ``data`` or raise ``ValidationError``."""
        creator = data.creator
        if creator is None or not getattr(creator, "pk", None) or not creator.is_active:
            raise ValidationError("An active creator is required.", field="creator")

        description = _clean_text(data.description, "description", constants.DESCRIPTION_MAX_LENGTH)
        object_name = _clean_text(data.object_name, "object_name", constants.OBJECT_NAME_MAX_LENGTH)
        if data.object_category not in ObjectCategory.values:
            raise ValidationError(
                f"Category must be one of: {', '.join(ObjectCategory.values)}.",
                field="object_category",
            )
        place_name = _clean_text(data.place_name, "place_name", constants.PLACE_NAME_MAX_LENGTH)
        floor = _clean_floor(data.floor)
        department = validate_department(data.department)

        attachments = list(data.attachments or [])
        if len(attachments) > self.max_attachments:
            raise ValidationError(
                f"At most {self.max_attachments} attachments are allowed.",
                field="attachments",
            )
        for index, attachment in enumerate(attachments):
            size = len(attachment.content or b"")
            if size == 0:
                raise ValidationError(f"Attachment #{index + 1} is empty.", field="attachments")
            if size > self.max_attachment_bytes:
                raise ValidationError(
                    f"Attachment #{index + 1} exceeds {self.max_attachment_bytes} bytes.",
                    field="attachments",
                )
            if (
                attachment.content_type
                and attachment.content_type not in constants.ALLOWED_ATTACHMENT_CONTENT_TYPES
            ):
                raise ValidationError(
                    f"Attachment #{index + 1} has unsupported type '{attachment.content_type}'.",
                    field="attachments",
                )

        return CreateReportInput(
            description=description,
            department=department,
            object_name=object_name,
            object_category=data.object_category,
            place_name=place_name,
            floor=floor,
            creator=creator,
            attachments=attachments,
        )

    # ── Steps 4-6: core records ─────────────────────────────────────

    def _create_report(self, data: CreateReportInput, worker_id: int | None) -> Report:
        return Report.objects.create(
            description=data.description,
            department=data.department,
            status=ReportStatus.PENDING,
            priority=ReportPriority.UNASSIGNED,
            comment="",
            attachment_refs=[],
            assigned_worker_id=worker_id,
            created_by=data.creator,
        )

    def _create_creator_link(self, report: Report, creator: User) -> ReportCreatorLink:
        return ReportCreatorLink.objects.create(report=report, creator=creator)

    def _create_subject_object(self, report: Report, data: CreateReportInput, place_id: int) -> SubjectObject:
        return SubjectObject.objects.create(
            report=report,
            name=data.object_name,
            category=data.object_category,
            place_id=place_id,
        )

    def _persist_core(
        self,
        run: _Run,
        data: CreateReportInput,
        worker_id: int | None,
        place_id: int,
        deadline: OperationDeadline,
    ) -> Report:
        deadline.check("create_report")
        report = run_store_step("create_report", self._create_report, data, worker_id)

        try:
            deadline.check("create_creator_link")
            run_store_step("create_creator_link", self._create_creator_link, report, data.creator)
            deadline.check("create_subject_object")
            run_store_step("create_subject_object", self._create_subject_object, report, data, place_id)
        except Exception as exc:
            logger.warning("Rolling back Report #%d after core failure: %s", report.pk, exc)
            run.enter(OrchestrationStage.ROLLING_BACK)
            self._compensate(report.pk)
            run.enter(OrchestrationStage.FAILED)
            raise
        return report

    def _delete_core_records(self, report_id: int) -> None:
        with transaction.atomic():
            SubjectObject.objects.filter(report_id=report_id).delete()
            ReportCreatorLink.objects.filter(report_id=report_id).delete()
            Report.objects.filter(pk=report_id).delete()

    def _compensate(self, report_id: int) -> None:
        try:
            self._delete_core_records(report_id)
        except DatabaseError as exc:
            integrity_logger.critical(
                "Compensation failed: Report #%d is orphaned without its creator "
                "link or subject object: %s",
                report_id,
                exc,
            )
            raise ConsistencyViolation(record_type="Report", record_id=report_id) from exc
        logger.info("Report #%d rolled back", report_id)

    # ── Step 7: attachments ─────────────────────────────────────────

    def _upload_one(self, attachment: AttachmentUpload) -> str:
        return self.object_store.put(
            attachment.content,
            filename=attachment.filename,
            content_type=attachment.content_type,
        )

    def _upload_attachments(
        self,
        report: Report,
        attachments: list[AttachmentUpload],
        deadline: OperationDeadline,
        result: CreateReportResult,
    ) -> None:
        if deadline.expired:
            for index, attachment in enumerate(attachments):
                result.failed_attachments.append(
                    FailedAttachment(index, attachment.filename, "abandoned: deadline reached"),
                )
            result.warnings.append("Attachment upload was abandoned because the operation timed out.")
            return

        uploaded: dict[int, str] = {}
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=min(self.upload_workers, len(attachments)),
            thread_name_prefix="report-upload",
        )
        try:
            futures = {
                executor.submit(self._upload_one, attachment): index
                for index, attachment in enumerate(attachments)
            }
            done, not_done = self._wait_for_uploads(futures, deadline)
            for future in done:
                index = futures[future]
                try:
                    uploaded[index] = future.result()
                except Exception as exc:
                    logger.warning(
                        "Attachment #%d of Report #%d failed to upload: %s",
                        index, report.pk, exc,
                    )
                    result.failed_attachments.append(
                        FailedAttachment(index, attachments[index].filename, str(exc)),
                    )
            reason = "abandoned: cancelled" if deadline.cancelled else "abandoned: deadline reached"
            for future in not_done:
                index = futures[future]
                result.failed_attachments.append(
                    FailedAttachment(index, attachments[index].filename, reason),
                )
                future.add_done_callback(
                    functools.partial(self._log_late_upload, report.pk, attachments[index].filename),
                )
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        refs = [uploaded[index] for index in sorted(uploaded)]
        if refs:
            try:
                self._append_attachment_refs(report.pk, refs)
            except (DatabaseError, NotFound) as exc:
                logger.warning("Could not record attachments on Report #%d: %s", report.pk, exc)
                for index in sorted(uploaded):
                    result.failed_attachments.append(
                        FailedAttachment(index, attachments[index].filename, "could not record reference"),
                    )
                refs = []

        result.attachment_refs = refs
        result.failed_attachments.sort(key=lambda failed: failed.index)
        if result.failed_attachments:
            result.warnings.append(
                f"{len(result.failed_attachments)} of {len(attachments)} attachment(s) could not be stored."
            )

    @staticmethod
    def _wait_for_uploads(futures, deadline: OperationDeadline):
        """
        Wait for the uploads in short slices so a ``cancel()`` from another
        thread is noticed promptly.  Returns ``(done, not_done)``.
        """
        limit = deadline.remaining()
        give_up_at = None if limit is None else time.monotonic() + limit
        done, not_done = set(), set(futures)
        while not_done and not deadline.cancelled:
            slice_timeout = UPLOAD_POLL_INTERVAL
            if give_up_at is not None:
                left = give_up_at - time.monotonic()
                if left <= 0:
                    break
                slice_timeout = min(slice_timeout, left)
            finished, not_done = concurrent.futures.wait(
                not_done,
                timeout=slice_timeout,
                return_when=concurrent.futures.FIRST_COMPLETED,
            )
            done |= finished
        return done, not_done

    @staticmethod
    def _log_late_upload(report_id: int, filename: str, future: concurrent.futures.Future) -> None:
        # Runs on the upload thread once an abandoned upload finishes anyway.
        if future.cancelled() or future.exception() is not None:
            return
        logger.warning(
            "Abandoned upload %r for Report #%d completed late; object %s is unreferenced",
            filename, report_id, future.result(),
        )

    def _append_attachment_refs(self, report_id: int, refs: list[str]) -> None:
        with transaction.atomic():
            report = lock_for_update(Report, report_id)
            report.attachment_refs = [*report.attachment_refs, *refs]
            report.save(update_fields=["attachment_refs", "updated_at"])

    # ── Step 8: notification ────────────────────────────────────────

    def _notify_worker(
        self,
        report: Report,
        data: CreateReportInput,
        worker_id: int | None,
        place_id: int,
        deadline: OperationDeadline,
        result: CreateReportResult,
    ) -> NotificationStatus:
        if worker_id is None:
            return NotificationStatus.SKIPPED_NO_WORKER
        if deadline.expired:
            result.warnings.append("Worker notification was abandoned because the operation timed out.")
            return NotificationStatus.ABANDONED

        try:
            place = Place.objects.filter(pk=place_id).first()
            payload = {
                "report_id": report.pk,
                "creator_name": data.creator.display_name,
                "description": data.description,
                "object_name": data.object_name,
                "object_category": data.object_category,
                "place": place.name if place else data.place_name,
                "floor": place.floor if place else data.floor,
                "attachments": list(result.attachment_refs),
            }
            worker = Worker.objects.select_related("user").get(pk=worker_id)
            delivered = self.notifier.notify(
                actor=data.creator,
                recipients=worker.user,
                event_type="report_assigned",
                payload=payload,
                related_object=report,
            )
        except Exception as exc:
            logger.warning("Notifying worker #%d about Report #%d failed: %s", worker_id, report.pk, exc)
            delivered = False

        if not delivered:
            result.warnings.append("The assigned worker could not be notified.")
            return NotificationStatus.FAILED
        return NotificationStatus.SENT


# ════════════════════════════════════════════════════════════════════
#  Lifecycle
# ════════════════════════════════════════════════════════════════════

#: Forward-only transitions; each state has exactly one successor.
NEXT_STATUS: dict[str, str] = {
    ReportStatus.PENDING: ReportStatus.IN_PROGRESS,
    ReportStatus.IN_PROGRESS: ReportStatus.RESOLVED,
}

#: The only backward move, available through ``reopen`` alone.
REOPEN_TRANSITIONS: dict[str, str] = {
    ReportStatus.RESOLVED: ReportStatus.IN_PROGRESS,
}

ASSIGNABLE_PRIORITIES = frozenset(
    value for value in ReportPriority.values if value != ReportPriority.UNASSIGNED
)


def _is_assigned_worker(report: Report, user: User) -> bool:
    if report.assigned_worker_id is None:
        return False
    return Worker.objects.filter(pk=report.assigned_worker_id, user_id=user.pk).exists()


def _require_assigned_worker(report: Report, user: User) -> None:
    if not _is_assigned_worker(report, user):
        raise PermissionDenied("Only the worker assigned to this report can change it.")


def _report_creator(report: Report) -> User:
    link = ReportCreatorLink.objects.select_related("creator").filter(report=report).first()
    return link.creator if link else report.created_by


class ReportLifecycleService:
    """
    Validates and applies state changes on an existing report.

    Every write locks the report row (``select_for_update``) so two
    concurrent requests cannot both apply a transition from the same state.
    Creator and worker notifications are best-effort and sent after the
    change is committed.
    """

    @staticmethod
    def set_priority_and_estimate(
        report_id: int,
        actor: User,
        priority: str,
        comment: str | None = None,
    ) -> Report:
        """
        Triage a report: set its priority and (optionally) the worker's
        comment / time estimate.

        Raises
        ------
        ValidationError
            ``priority`` is not low / medium / high / urgent, or the
            comment is too long.
        PermissionDenied
            ``actor`` is not the assigned worker.
        NotFound
            No such report.
        """
        if priority not in ASSIGNABLE_PRIORITIES:
            raise ValidationError(
                f"Priority must be one of: {', '.join(sorted(ASSIGNABLE_PRIORITIES))}.",
                field="priority",
            )
        if comment is not None and len(comment) > constants.COMMENT_MAX_LENGTH:
            raise ValidationError(
                f"Comment must be at most {constants.COMMENT_MAX_LENGTH} characters.",
                field="comment",
            )

        with transaction.atomic():
            report = lock_for_update(Report, report_id)
            _require_assigned_worker(report, actor)

            changed: list[str] = []
            if report.priority != priority:
                report.priority = priority
                changed.append("priority")
            if comment is not None and comment != report.comment:
                report.comment = comment
                changed.append("comment")
            if changed:
                report.save(update_fields=[*changed, "updated_at"])

        if changed:
            logger.info(
                "Report #%d triaged by user #%d (%s)",
                report.pk, actor.pk, ", ".join(changed),
            )
            NotificationService.notify(
                actor=actor,
                recipients=_report_creator(report),
                event_type="report_updated",
                payload={
                    "report_id": report.pk,
                    "priority": report.priority,
                    "comment": report.comment,
                },
                related_object=report,
            )
        return report

    @staticmethod
    def advance(
        report_id: int,
        actor: User,
        target_status: str,
        comment: str | None = None,
    ) -> Report:
        """
        Move a report to the immediate successor of its current status.

        Raises
        ------
        ValidationError
            ``target_status`` is not a known status.
        PermissionDenied
            ``actor`` is not the assigned worker (checked first).
        InvalidTransition
            ``target_status`` is not the next state.
        """
        if target_status not in ReportStatus.values:
            raise ValidationError(
                f"Status must be one of: {', '.join(ReportStatus.values)}.",
                field="status",
            )

        with transaction.atomic():
            report = lock_for_update(Report, report_id)
            _require_assigned_worker(report, actor)

            current = report.status
            expected = NEXT_STATUS.get(current)
            if target_status != expected:
                reason = (
                    f"the next state is '{expected}'"
                    if expected
                    else "a resolved report can only be reopened"
                )
                raise InvalidTransition(current=current, target=target_status, reason=reason)

            report.status = target_status
            update_fields = ["status", "updated_at"]
            if comment is not None:
                report.comment = comment
                update_fields.append("comment")
            report.save(update_fields=update_fields)

            ReportStatusLog.objects.create(
                report=report,
                from_status=current,
                to_status=target_status,
                changed_by=actor,
                message=comment or "",
            )

        logger.info(
            "Report #%d moved %s -> %s by user #%d",
            report.pk, current, target_status, actor.pk,
        )
        NotificationService.notify(
            actor=actor,
            recipients=_report_creator(report),
            event_type="report_status_changed",
            payload={
                "report_id": report.pk,
                "from_status": current,
                "to_status": target_status,
            },
            related_object=report,
        )
        return report

    @staticmethod
    def reopen(report_id: int, actor: User, reason: str) -> Report:
        """
        Move a resolved report back to in-progress.

        Allowed for the assigned worker and for holders of
        ``reports.can_reopen_report``.  Recorded as a re-open in the
        status log, never as normal advancement.
        """
        if not isinstance(reason, str) or not reason.strip():
            raise ValidationError("A reason is required to reopen a report.", field="reason")
        reason = reason.strip()

        with transaction.atomic():
            report = lock_for_update(Report, report_id)
            if not (
                _is_assigned_worker(report, actor)
                or actor.has_perm(f"reports.{ReportsPerms.CAN_REOPEN_REPORT}")
            ):
                raise PermissionDenied("You are not allowed to reopen this report.")

            current = report.status
            target = REOPEN_TRANSITIONS.get(current)
            if target is None:
                raise InvalidTransition(
                    current=current,
                    target=ReportStatus.IN_PROGRESS,
                    reason="only resolved reports can be reopened",
                )

            report.status = target
            report.save(update_fields=["status", "updated_at"])
            ReportStatusLog.objects.create(
                report=report,
                from_status=current,
                to_status=target,
                changed_by=actor,
                message=reason,
                is_reopen=True,
            )

        logger.warning(
            "Report #%d reopened (%s -> %s) by user #%d: %s",
            report.pk, current, target, actor.pk, reason,
        )
        recipients = [_report_creator(report)]
        if report.assigned_worker_id and not _is_assigned_worker(report, actor):
            recipients.append(report.assigned_worker.user)
        NotificationService.notify(
            actor=actor,
            recipients=recipients,
            event_type="report_reopened",
            payload={"report_id": report.pk, "reason": reason},
            related_object=report,
        )
        return report

    @staticmethod
    def reassign(report_id: int, actor: User, new_worker_id: int) -> Report:
        """
        Overwrite the assigned worker.  Requires the authority capability
        ``reports.can_reassign_report``; the assignment selector is not run.

        The report's department follows the new worker so department
        filters keep matching who actually owns the report.
        """
        require_permission(
            actor,
            f"reports.{ReportsPerms.CAN_REASSIGN_REPORT}",
            message="Only authorities can reassign reports.",
        )

        with transaction.atomic():
            report = lock_for_update(Report, report_id)
            try:
                new_worker = Worker.objects.select_related("user").get(pk=new_worker_id)
            except Worker.DoesNotExist:
                raise NotFound(f"Worker with id {new_worker_id} not found.")

            previous_id = report.assigned_worker_id
            if previous_id == new_worker.pk:
                return report

            report.assigned_worker = new_worker
            report.department = new_worker.department
            report.save(update_fields=["assigned_worker", "department", "updated_at"])
            ReportAssignmentLog.objects.create(
                report=report,
                from_worker_id=previous_id,
                to_worker=new_worker,
                changed_by=actor,
            )

        logger.info(
            "Report #%d reassigned from worker %s to #%d by user #%d",
            report.pk, previous_id, new_worker.pk, actor.pk,
        )
        NotificationService.notify(
            actor=actor,
            recipients=new_worker.user,
            event_type="report_reassigned",
            payload={
                "report_id": report.pk,
                "description": report.description,
                "previous_worker_id": previous_id,
            },
            related_object=report,
        )
        return report


# ════════════════════════════════════════════════════════════════════
#  Queries
# ════════════════════════════════════════════════════════════════════

REPORT_SCOPE_RULES = [
    (f"reports.{ReportsPerms.CAN_SCOPE_ALL_REPORTS}",
     lambda qs, u: qs),
    (f"reports.{ReportsPerms.CAN_SCOPE_ASSIGNED_REPORTS}",
     lambda qs, u: qs.filter(assigned_worker__user=u)),
    (f"reports.{ReportsPerms.CAN_SCOPE_OWN_REPORTS}",
     lambda qs, u: qs.filter(creator_link__creator=u)),
]


class ReportQueryService:
    """Permission-scoped report retrieval."""

    @staticmethod
    def _base_queryset() -> QuerySet[Report]:
        return Report.objects.select_related(
            "assigned_worker__user",
            "subject__place",
            "creator_link__creator",
            "created_by",
        )

    @staticmethod
    def scoped_queryset(user: User) -> QuerySet[Report]:
        """Reports visible to ``user``: their permission scope plus their own."""
        base = ReportQueryService._base_queryset()
        scoped = apply_permission_scope(base, user, scope_rules=REPORT_SCOPE_RULES)
        own = base.filter(creator_link__creator=user)
        return (scoped | own).distinct()

    @staticmethod
    def get_filtered_queryset(user: User, filters: dict[str, Any] | None = None) -> QuerySet[Report]:
        """
        Apply the optional filters ``status``, ``priority``, ``department``,
        ``created_after``, ``created_before`` (dates) and ``search``
        (description, object or place name).
        """
        qs = ReportQueryService.scoped_queryset(user)
        filters = filters or {}

        if filters.get("status"):
            qs = qs.filter(status=filters["status"])
        if filters.get("priority"):
            qs = qs.filter(priority=filters["priority"])
        if filters.get("department"):
            qs = qs.filter(department=filters["department"])
        if filters.get("assigned_worker"):
            qs = qs.filter(assigned_worker_id=filters["assigned_worker"])
        if filters.get("created_after"):
            qs = qs.filter(created_at__date__gte=filters["created_after"])
        if filters.get("created_before"):
            qs = qs.filter(created_at__date__lte=filters["created_before"])
        if filters.get("search"):
            term = filters["search"]
            qs = qs.filter(
                Q(description__icontains=term)
                | Q(subject__name__icontains=term)
                | Q(subject__place__name__icontains=term)
            )
        return qs.order_by("-created_at")

    @staticmethod
    def list_my_reports(user: User) -> QuerySet[Report]:
        return (
            ReportQueryService._base_queryset()
            .filter(creator_link__creator=user)
            .order_by("-created_at")
        )

    @staticmethod
    def get_report_detail(user: User, report_id: int) -> Report:
        """
        Raises
        ------
        NotFound
            The report does not exist or is outside the user's scope.
        """
        report = (
            ReportQueryService.scoped_queryset(user)
            .prefetch_related("status_logs__changed_by")
            .filter(pk=report_id)
            .first()
        )
        if report is None:
            raise NotFound(f"Report with id {report_id} not found.")
        return report

    @staticmethod
    def get_status_log(user: User, report_id: int) -> QuerySet[ReportStatusLog]:
        report = ReportQueryService.get_report_detail(user, report_id)
        return report.status_logs.select_related("changed_by").all()

    @staticmethod
    def get_assignment_log(user: User, report_id: int) -> QuerySet[ReportAssignmentLog]:
        """Reassignment history of a report visible to ``user``, newest first."""
        ReportQueryService.get_report_detail(user, report_id)
        return ReportAssignmentLog.objects.filter(report_id=report_id).select_related(
            "from_worker__user", "to_worker__user", "changed_by",
        )

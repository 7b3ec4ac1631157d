"""
core.domain.exceptions — Domain-specific exception hierarchy.

These exceptions represent business-rule violations and dependency
failures inside service layers.  They are deliberately **not** DRF
exceptions so that the domain layer stays framework-agnostic.  The global
DRF exception handler (``core.domain.exception_handler``) maps them to
HTTP responses.

Mapping cheatsheet
------------------
┌───────────────────────┬────────────────────────────────┬──────┐
│ Domain Exception      │ Meaning                        │ Code │
├───────────────────────┼────────────────────────────────┼──────┤
│ DomainError           │ generic business-rule error    │ 400  │
│ ValidationError       │ caller input malformed         │ 400  │
│ PermissionDenied      │ not the owner / missing perm   │ 403  │
│ NotFound              │ missing or out of scope        │ 404  │
│ Conflict              │ clashes with current state     │ 409  │
│ InvalidTransition     │ lifecycle move out of order    │ 409  │
│ DependencyUnavailable │ store / remote call failed     │ 503  │
│ ConsistencyViolation  │ compensation failed (orphan)   │ 500  │
└───────────────────────┴────────────────────────────────┴──────┘

Partial success of a report creation (failed attachments, failed
notification) is **not** an exception; it is carried on the result object
returned by ``ReportOrchestrator.create_report``.

Recommended usage inside a service::

    from core.domain.exceptions import InvalidTransition

    if target != NEXT_STATUS.get(current):
        raise InvalidTransition(current=current, target=target)
"""

from __future__ import annotations


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Catch this at the view boundary and convert to a 400 Bad Request.
    """

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)


class ValidationError(DomainError):
    """
    The caller's input is malformed.  Raised before any write happens.

    ``field`` names the offending input when there is exactly one.
    Maps to HTTP 400.
    """

    def __init__(self, message: str = "Invalid input.", *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class PermissionDenied(DomainError):
    """
    The authenticated user does not have the required role or permission
    for this operation, or is not the owner of the resource.

    Maps to HTTP 403.
    """

    def __init__(self, message: str = "You do not have permission to perform this action.") -> None:
        super().__init__(message)


class NotFound(DomainError):
    """
    The requested resource does not exist (or is not visible to the
    requesting user given their permission scope).

    Maps to HTTP 404.
    """

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Maps to HTTP 409.
    """

    def __init__(self, message: str = "The operation conflicts with the current state.") -> None:
        super().__init__(message)


class InvalidTransition(Conflict):
    """
    A lifecycle transition that is not allowed from the current status.

    Example::

        raise InvalidTransition(
            current="pending",
            target="resolved",
            reason="A report must be in progress before it is resolved.",
        )
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        reason: str | None = None,
    ) -> None:
        if message is None:
            parts = ["Invalid state transition"]
            if current and target:
                parts.append(f"from '{current}' to '{target}'")
            if reason:
                parts.append(f"({reason})")
            message = " ".join(parts) + "."
        super().__init__(message)
        self.current = current
        self.target = target
        self.reason = reason


class DependencyUnavailable(DomainError):
    """
    A record-store, object-store or other remote call could not complete
    (unreachable, timed out, cancelled).

    The whole operation may be retried by the caller.  Maps to HTTP 503.
    """

    def __init__(
        self,
        message: str = "A required service is temporarily unavailable.",
        *,
        dependency: str | None = None,
    ) -> None:
        super().__init__(message)
        self.dependency = dependency


class ConsistencyViolation(DomainError):
    """
    A compensating action failed and left an orphaned partial record.

    This is a data-integrity incident and must never be hidden behind a
    generic error.  ``record_id`` identifies the orphan for operators.
    Maps to HTTP 500.
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        record_type: str = "Report",
        record_id: int | None = None,
    ) -> None:
        if message is None:
            message = (
                f"Data integrity incident: {record_type} #{record_id} could not "
                f"be rolled back and requires operator attention."
            )
        super().__init__(message)
        self.record_type = record_type
        self.record_id = record_id

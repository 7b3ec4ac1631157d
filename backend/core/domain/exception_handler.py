"""
core.domain.exception_handler — DRF-compatible global exception handler.

Maps domain exceptions from ``core.domain.exceptions`` to proper
DRF ``Response`` objects so that views don't need per-endpoint
try/except boilerplate.

Register in ``settings.py``::

    REST_FRAMEWORK = {
        ...
        'EXCEPTION_HANDLER': 'core.domain.exception_handler.domain_exception_handler',
    }
"""

from __future__ import annotations

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_default_handler

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

logger = logging.getLogger(__name__)
integrity_logger = logging.getLogger("reports.integrity")

# Domain exception → (HTTP status code, log level)
_STATUS_MAP: dict[type, tuple[int, int]] = {
    ConsistencyViolation:  (500, logging.CRITICAL),
    DependencyUnavailable: (503, logging.ERROR),
    ValidationError:       (400, logging.WARNING),
    PermissionDenied:      (403, logging.WARNING),
    NotFound:              (404, logging.WARNING),
    InvalidTransition:     (409, logging.WARNING),
    Conflict:              (409, logging.WARNING),
    DomainError:           (400, logging.WARNING),  # catch-all base class last
}


def _body_for(exc: DomainError) -> dict:
    body: dict = {"detail": str(exc), "code": type(exc).__name__}
    if isinstance(exc, ValidationError) and exc.field:
        body["field"] = exc.field
    elif isinstance(exc, InvalidTransition):
        body["current"] = exc.current
        body["target"] = exc.target
    elif isinstance(exc, DependencyUnavailable) and exc.dependency:
        body["dependency"] = exc.dependency
    elif isinstance(exc, ConsistencyViolation):
        body["record_type"] = exc.record_type
        body["record_id"] = exc.record_id
    return body


def domain_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    DRF exception handler that also handles ``core.domain.exceptions``.

    The default DRF handler is called first.  If it returns ``None``
    (meaning DRF doesn't recognise the exception), we check whether
    it's one of our domain exceptions and return an appropriate response.
    """
    # Let DRF handle its own exceptions (ValidationError, AuthN, etc.)
    response = drf_default_handler(exc, context)
    if response is not None:
        return response

    # Check domain exceptions (most specific first)
    for exc_class, (status_code, level) in _STATUS_MAP.items():
        if isinstance(exc, exc_class):
            target_logger = integrity_logger if exc_class is ConsistencyViolation else logger
            target_logger.log(
                level,
                "Domain exception [%s] in %s: %s",
                type(exc).__name__,
                context.get("view", "unknown"),
                exc,
            )
            return Response(_body_for(exc), status=status_code)

    # Not a domain exception; let it propagate
    return None

"""
core.domain.transactions — Helpers for safe record-store writes.

Provides utilities that wrap ``transaction.atomic`` and
``select_for_update`` into reusable patterns so that every app's
service layer follows the same concurrency-safe approach.

Design goals
------------
* State-changing reads always lock the row first (``select_for_update``)
  to prevent lost updates between concurrent callers.
* Each write step of a multi-step workflow runs in its own atomic block,
  and store failures surface as ``DependencyUnavailable`` instead of raw
  ``DatabaseError`` so callers can apply their compensation rules.

Usage::

    from core.domain.transactions import lock_for_update, run_store_step

    with transaction.atomic():
        report = lock_for_update(Report, report_id)
        ...

    link = run_store_step(
        "create_creator_link",
        ReportCreatorLink.objects.create,
        report=report, creator=user,
    )
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from django.db import DatabaseError, models, transaction

from core.domain.exceptions import DependencyUnavailable, NotFound

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=models.Model)


def run_store_step(step: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """
    Execute ``fn(*args, **kwargs)`` inside ``transaction.atomic()``.

    A ``DatabaseError`` rolls the block back and is re-raised as
    ``DependencyUnavailable`` naming ``step``.  Domain errors raised by
    ``fn`` propagate unchanged.

    Args:
        step:     Short name of the workflow step (for logs and errors).
        fn:       Callable to run.
        *args:    Positional arguments forwarded to ``fn``.
        **kwargs: Keyword arguments forwarded to ``fn``.

    Returns:
        Whatever ``fn`` returns.

    Raises:
        DependencyUnavailable: The record store failed during ``step``.
    """
    try:
        with transaction.atomic():
            return fn(*args, **kwargs)
    except DatabaseError as exc:
        logger.error("Record store failure during %s: %s", step, exc)
        raise DependencyUnavailable(
            f"Record store unavailable during '{step}'.",
            dependency="record_store",
        ) from exc


def lock_for_update(model_class: type[M], pk: Any) -> M:
    """
    Acquire a row-level lock on the given model instance.

    Convenience wrapper around ``select_for_update().get(pk=pk)``
    that must be called inside an ``atomic()`` block.

    Args:
        model_class: The Django model class.
        pk:          Primary key value.

    Returns:
        The locked model instance.

    Raises:
        NotFound: If no row with that PK exists.
    """
    try:
        return model_class.objects.select_for_update().get(pk=pk)
    except model_class.DoesNotExist:
        raise NotFound(f"{model_class.__name__} with pk={pk} does not exist.")

"""
core.domain.deadlines — Caller-supplied timeout / cancellation token.

Every long-running service operation accepts an ``OperationDeadline``.
The service calls ``check(step)`` before each remote call; once the
deadline has passed or ``cancel()`` was called, ``check`` raises
``DependencyUnavailable`` so the normal hard-failure path (including
compensation) takes over.

Usage::

    deadline = OperationDeadline(timeout=5.0)
    orchestrator.create_report(data, deadline=deadline)

    # from another thread
    deadline.cancel()
"""

from __future__ import annotations

import threading
import time

from core.domain.exceptions import DependencyUnavailable


class OperationDeadline:
    """A monotonic-clock deadline plus a thread-safe cancellation flag."""

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self._expires_at = None if timeout is None else time.monotonic() + timeout
        self._cancelled = threading.Event()

    @classmethod
    def unbounded(cls) -> "OperationDeadline":
        return cls(timeout=None)

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def remaining(self) -> float | None:
        """Seconds left, ``None`` when unbounded, never negative."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        if self.cancelled:
            return True
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, step: str) -> None:
        """
        Raise ``DependencyUnavailable`` if the operation may not continue.

        Args:
            step: Name of the step about to run (used in the message).
        """
        if self.cancelled:
            raise DependencyUnavailable(
                f"Operation cancelled before '{step}'.", dependency="deadline",
            )
        if self.expired:
            raise DependencyUnavailable(
                f"Operation timed out before '{step}' "
                f"(limit {self.timeout}s).",
                dependency="deadline",
            )

"""
core.domain — Shared domain utilities for cross-app service layers.

Modules
-------
exceptions     Domain-specific exceptions that map cleanly to HTTP responses.
notifications  Best-effort notification dispatch (the Notifier).
object_store   Attachment uploads returning public references.
deadlines      Caller-supplied timeout / cancellation token.
transactions   Helpers for ``transaction.atomic`` + ``select_for_update``.
access         Permission-scoped queryset selectors and guards.

Usage from any app::

    from core.domain.exceptions import DomainError, InvalidTransition
    from core.domain.notifications import NotificationService
    from core.domain.object_store import ObjectStoreClient
    from core.domain.deadlines import OperationDeadline
    from core.domain.transactions import lock_for_update
    from core.domain.access import apply_permission_scope
"""

"""
Core constants — **Single Source of Truth** for project-wide magic numbers.

Any business rule that references a numeric limit should import it from
here (or read the ``REPORTS`` settings block, whose defaults come from
here) instead of hardcoding.
"""

# ── Report input bounds ─────────────────────────────────────────────
DESCRIPTION_MAX_LENGTH: int = 500
OBJECT_NAME_MAX_LENGTH: int = 100
PLACE_NAME_MAX_LENGTH: int = 100
COMMENT_MAX_LENGTH: int = 1000

# ── Attachments ─────────────────────────────────────────────────────
MAX_ATTACHMENTS: int = 10
MAX_ATTACHMENT_BYTES: int = 10 * 1024 * 1024  # 10 MiB
ALLOWED_ATTACHMENT_CONTENT_TYPES: frozenset[str] = frozenset({
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/heic",
    "image/gif",
})
ATTACHMENT_PREFIX: str = "report_attachments"
ATTACHMENT_UPLOAD_WORKERS: int = 4

# ── Orchestration ───────────────────────────────────────────────────
ORCHESTRATION_TIMEOUT_SECONDS: float = 30.0

# Worker selection strategies
ASSIGNMENT_STRATEGY_RANDOM: str = "random"
ASSIGNMENT_STRATEGY_LEAST_LOADED: str = "least_loaded"
ASSIGNMENT_STRATEGY: str = ASSIGNMENT_STRATEGY_RANDOM

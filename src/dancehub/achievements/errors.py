"""Achievement engine error taxonomy.

Retryable failures (``StoreUnavailable``, ``CommitConflict``) abort the whole
per-user evaluation before anything is recorded; the caller re-runs the full
evaluate-then-commit cycle.
"""

from __future__ import annotations


class AchievementError(Exception):
    """Base class for achievement engine failures."""

    retryable: bool = False


class StoreUnavailable(AchievementError):
    """Catalog, activity, or progress store unreachable or timed out."""

    retryable = True


class CommitConflict(AchievementError):
    """Another writer committed this user's progress first."""

    retryable = True

    def __init__(self, user_id: str, attempts: int = 1) -> None:
        super().__init__(f"Progress commit conflict for user {user_id} after {attempts} attempt(s)")
        self.user_id = user_id
        self.attempts = attempts


class InvalidActivity(AchievementError):
    """Activity payload failed validation at ingestion."""

    def __init__(self, action_type: str, errors: list[dict]) -> None:
        super().__init__(f"Invalid details for activity '{action_type}'")
        self.action_type = action_type
        self.errors = errors

"""Exception hierarchy for the permutation service."""

from __future__ import annotations


class PermutationServiceError(Exception):
    """Base exception for every error raised by the service."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TotalOutOfRangeError(PermutationServiceError, ValueError):
    """Requested total is outside the accepted domain. Never retried."""

    def __init__(self, total, minimum: int, maximum: int):
        super().__init__(
            f"Pills must be a number between {minimum} and {maximum}!",
            {"total": total, "min": minimum, "max": maximum},
        )
        self.total = total
        self.minimum = minimum
        self.maximum = maximum


class CacheUnavailableError(PermutationServiceError):
    """Cache read or write failed; callers degrade to recomputation."""


class TaskStoreUnavailableError(PermutationServiceError):
    """Task store create/update/read failed."""


class TaskNotFoundError(TaskStoreUnavailableError):
    """No task record exists for the given id."""

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} not found", {"task_id": task_id})
        self.task_id = task_id


class TaskAlreadyCompleteError(PermutationServiceError):
    """COMPLETE is terminal; the task cannot move to another status."""

    def __init__(self, task_id: str, status: str):
        super().__init__(f"Task {task_id} is already COMPLETE; refusing to set {status}", {"task_id": task_id})
        self.task_id = task_id
        self.status = status

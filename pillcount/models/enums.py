"""Shared *Enum* definitions for SQLAlchemy & Pydantic models.

The Enums inherit from ``str`` so that:

* JSON serialisation remains unchanged (values render as plain strings).
* Equality checks against raw literals (``status == "COMPLETE"``) keep working.
"""

from __future__ import annotations

from enum import Enum


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETE = "COMPLETE"

    @property
    def is_terminal(self) -> bool:
        return self is TaskStatus.COMPLETE


class ChangeEventName(str, Enum):
    """Kind of change a task-store notification describes."""

    INSERT = "INSERT"
    MODIFY = "MODIFY"


__all__ = [
    "TaskStatus",
    "ChangeEventName",
]

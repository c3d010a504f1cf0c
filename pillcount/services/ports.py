"""Abstract interfaces the dispatcher and deferred worker depend on.

The core never talks to SQLAlchemy directly; it goes through these ports so
the store backing them can be swapped (SQL tables in production, dicts in
unit tests).
"""

from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass
from typing import Optional

from pillcount.models.enums import TaskStatus


@dataclass(frozen=True)
class TaskSnapshot:
    """Point-in-time view of a deferred task, as returned to pollers."""

    id: str
    total: int
    status: TaskStatus
    result: Optional[int] = None

    @classmethod
    def from_row(cls, row) -> "TaskSnapshot":
        return cls(id=row.id, total=row.total, status=TaskStatus(row.status), result=row.result)


@dataclass(frozen=True)
class ChangeRecord:
    """One task-store change notification."""

    event_name: str
    task_id: str
    total: int

    @classmethod
    def from_event(cls, data: dict) -> "ChangeRecord":
        return cls(event_name=str(data["event_name"]), task_id=str(data["id"]), total=int(data["total"]))

    def to_event(self) -> dict:
        return {"event_name": self.event_name, "id": self.task_id, "total": self.total}


class CachePort(ABC):
    """Key-value store mapping a total to its permutation count.

    Implementations raise :class:`~pillcount.exceptions.CacheUnavailableError`
    on failure.
    """

    @abstractmethod
    async def get(self, total: int) -> Optional[int]:
        """Return the cached count for *total*, or ``None`` on a miss."""

    @abstractmethod
    async def put(self, total: int, permutations: int) -> None:
        """Store *permutations* under *total* (last write wins)."""


class TaskStorePort(ABC):
    """Durable deferred-task records plus a creation notification feed.

    Implementations raise
    :class:`~pillcount.exceptions.TaskStoreUnavailableError` on failure and
    :class:`~pillcount.exceptions.TaskNotFoundError` for unknown ids.
    """

    @abstractmethod
    async def create(self, total: int) -> str:
        """Insert a PENDING task, emit a creation notification and return its id."""

    @abstractmethod
    async def update_status(self, task_id: str, status: TaskStatus, result: Optional[int] = None) -> None:
        """Record a status transition (and the result once COMPLETE)."""

    @abstractmethod
    async def get(self, task_id: str) -> Optional[TaskSnapshot]:
        """Return the current state of *task_id*, or ``None`` if unknown."""

    @abstractmethod
    async def list_stale(self, older_than_seconds: float) -> list[TaskSnapshot]:
        """Return unfinished tasks not updated for *older_than_seconds*."""

"""Dict-backed port implementations.

These keep the same contracts as the SQL stores (including change
notifications) and are used by unit tests that exercise the dispatcher and
worker without a database.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Dict
from typing import Optional
from uuid import uuid4

from pillcount.events import EventBus
from pillcount.events import EventType
from pillcount.events.publisher import publish_event_fire_and_forget
from pillcount.exceptions import TaskAlreadyCompleteError
from pillcount.exceptions import TaskNotFoundError
from pillcount.models.enums import ChangeEventName
from pillcount.models.enums import TaskStatus
from pillcount.services.ports import CachePort
from pillcount.services.ports import ChangeRecord
from pillcount.services.ports import TaskSnapshot
from pillcount.services.ports import TaskStorePort
from pillcount.utils.time import utc_now_naive


class InMemoryCacheStore(CachePort):
    def __init__(self, initial: Optional[Dict[int, int]] = None):
        self.entries: Dict[int, int] = dict(initial or {})

    async def get(self, total: int) -> Optional[int]:
        return self.entries.get(total)

    async def put(self, total: int, permutations: int) -> None:
        self.entries[total] = permutations


class InMemoryTaskStore(TaskStorePort):
    def __init__(self, bus: Optional[EventBus] = None, *, notify: bool = True):
        self._bus = bus
        self._notify = notify
        self.tasks: Dict[str, TaskSnapshot] = {}
        self.updated_at: Dict[str, object] = {}
        # Every status written, in order, per task
        self.history: Dict[str, list[TaskStatus]] = {}

    async def create(self, total: int) -> str:
        task_id = str(uuid4())
        self.tasks[task_id] = TaskSnapshot(id=task_id, total=total, status=TaskStatus.PENDING)
        self.updated_at[task_id] = utc_now_naive()
        self.history[task_id] = [TaskStatus.PENDING]
        if self._notify:
            record = ChangeRecord(event_name=ChangeEventName.INSERT.value, task_id=task_id, total=total)
            publish_event_fire_and_forget(EventType.TASK_CREATED, record.to_event(), bus=self._bus)
        return task_id

    async def update_status(self, task_id: str, status: TaskStatus, result: Optional[int] = None) -> None:
        current = self.tasks.get(task_id)
        if current is None:
            raise TaskNotFoundError(task_id)
        status = TaskStatus(status)
        if current.status is TaskStatus.COMPLETE and status is not TaskStatus.COMPLETE:
            raise TaskAlreadyCompleteError(task_id, status.value)
        self.tasks[task_id] = TaskSnapshot(
            id=task_id,
            total=current.total,
            status=status,
            result=result if status is TaskStatus.COMPLETE else current.result,
        )
        self.updated_at[task_id] = utc_now_naive()
        self.history[task_id].append(status)

    async def get(self, task_id: str) -> Optional[TaskSnapshot]:
        return self.tasks.get(task_id)

    async def list_stale(self, older_than_seconds: float) -> list[TaskSnapshot]:
        cutoff = utc_now_naive() - timedelta(seconds=older_than_seconds)
        return [
            task
            for task_id, task in self.tasks.items()
            if not task.status.is_terminal and self.updated_at[task_id] <= cutoff
        ]

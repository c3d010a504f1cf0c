"""SQL-backed :class:`TaskStorePort` over the ``deferred_tasks`` table.

Session work runs in a worker thread (:func:`run_in_db_thread`) so a slow
database never stalls the event loop.  Every committed insert emits a
``TASK_CREATED`` change record on the event bus and every status update a
``TASK_UPDATED`` record.  Delivery is fire-and-forget so the caller never
waits for subscribers (the deferred worker) to finish.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from pillcount.crud import crud
from pillcount.database import db_session
from pillcount.database import run_in_db_thread
from pillcount.events import EventBus
from pillcount.events import EventType
from pillcount.events.publisher import publish_event_fire_and_forget
from pillcount.exceptions import TaskNotFoundError
from pillcount.exceptions import TaskStoreUnavailableError
from pillcount.models.enums import ChangeEventName
from pillcount.models.enums import TaskStatus
from pillcount.services.ports import ChangeRecord
from pillcount.services.ports import TaskSnapshot
from pillcount.services.ports import TaskStorePort

logger = logging.getLogger(__name__)


class SqlTaskStore(TaskStorePort):
    def __init__(self, session_factory=None, bus: Optional[EventBus] = None):
        self._session_factory = session_factory
        self._bus = bus

    # ------------------------------------------------------------------
    # Blocking session work (runs in a worker thread)
    # ------------------------------------------------------------------

    def _insert(self, total: int) -> str:
        with db_session(self._session_factory) as db:
            return crud.create_task(db, total=total).id

    def _update(self, task_id: str, status: TaskStatus, result: Optional[int]) -> int:
        with db_session(self._session_factory) as db:
            row = crud.update_task_status(db, task_id, status=status, result=result)
            if row is None:
                raise TaskNotFoundError(task_id)
            return row.total

    def _load(self, task_id: str) -> Optional[TaskSnapshot]:
        with db_session(self._session_factory) as db:
            row = crud.get_task(db, task_id)
            return None if row is None else TaskSnapshot.from_row(row)

    def _load_stale(self, older_than_seconds: float) -> list[TaskSnapshot]:
        with db_session(self._session_factory) as db:
            rows = crud.list_stale_tasks(db, older_than=timedelta(seconds=older_than_seconds))
            return [TaskSnapshot.from_row(row) for row in rows]

    # ------------------------------------------------------------------
    # Port
    # ------------------------------------------------------------------

    async def create(self, total: int) -> str:
        try:
            task_id = await run_in_db_thread(self._insert, total, session_factory=self._session_factory)
        except SQLAlchemyError as exc:
            raise TaskStoreUnavailableError(f"Could not create task for total={total}: {exc}") from exc

        logger.info(f"Created deferred task {task_id} for total={total}")
        record = ChangeRecord(event_name=ChangeEventName.INSERT.value, task_id=task_id, total=total)
        publish_event_fire_and_forget(EventType.TASK_CREATED, record.to_event(), bus=self._bus)
        return task_id

    async def update_status(self, task_id: str, status: TaskStatus, result: Optional[int] = None) -> None:
        try:
            total = await run_in_db_thread(self._update, task_id, status, result, session_factory=self._session_factory)
        except SQLAlchemyError as exc:
            raise TaskStoreUnavailableError(f"Could not update task {task_id} to {status}: {exc}") from exc

        record = ChangeRecord(event_name=ChangeEventName.MODIFY.value, task_id=task_id, total=total)
        publish_event_fire_and_forget(
            EventType.TASK_UPDATED,
            {**record.to_event(), "status": TaskStatus(status).value, "result": result},
            bus=self._bus,
        )

    async def get(self, task_id: str) -> Optional[TaskSnapshot]:
        try:
            return await run_in_db_thread(self._load, task_id, session_factory=self._session_factory)
        except SQLAlchemyError as exc:
            raise TaskStoreUnavailableError(f"Could not read task {task_id}: {exc}") from exc

    async def list_stale(self, older_than_seconds: float) -> list[TaskSnapshot]:
        try:
            return await run_in_db_thread(self._load_stale, older_than_seconds, session_factory=self._session_factory)
        except SQLAlchemyError as exc:
            raise TaskStoreUnavailableError(f"Could not list stale tasks: {exc}") from exc

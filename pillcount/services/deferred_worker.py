"""Deferred Worker – completes tasks the dispatcher handed off.

The worker listens for ``TASK_CREATED`` change records on the event bus and,
for each one, advances the task through its state machine::

    PENDING ──▶ IN_PROGRESS ──▶ COMPLETE

The IN_PROGRESS write is advisory (pollers use it for display) so a failure
there is logged and processing continues.  The COMPLETE write is the durable
record of completion and is retried with back-off before giving up.  The
result is also written to the cache so later requests for the same total are
answered without another deferral.

Processing the same record twice is safe: a task that is already COMPLETE
is returned as is, and COMPLETE is never moved back to another status.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from typing import Callable
from typing import Dict
from typing import Iterable
from typing import Optional

from pillcount.config import Settings
from pillcount.config import get_settings
from pillcount.events import EventBus
from pillcount.events import EventType
from pillcount.events import event_bus
from pillcount.exceptions import TaskAlreadyCompleteError
from pillcount.exceptions import TaskNotFoundError
from pillcount.metrics import deferred_tasks_completed_total
from pillcount.metrics import permutation_cache_errors_total
from pillcount.metrics import permutation_compute_seconds
from pillcount.metrics import task_status_update_failures_total
from pillcount.models.enums import ChangeEventName
from pillcount.models.enums import TaskStatus
from pillcount.services.counter import count_permutations
from pillcount.services.ports import CachePort
from pillcount.services.ports import ChangeRecord
from pillcount.services.ports import TaskStorePort
from pillcount.utils.log import get_logger
from pillcount.utils.retry import async_retry

logger = logging.getLogger(__name__)


def _is_transient(exc: Exception) -> bool:
    """A missing or finished task will not change by retrying."""
    return not isinstance(exc, (TaskNotFoundError, TaskAlreadyCompleteError))


class DeferredWorker:
    """React to task creation notifications and drive tasks to COMPLETE."""

    def __init__(
        self,
        cache: CachePort,
        task_store: TaskStorePort,
        *,
        bus: Optional[EventBus] = None,
        counter: Callable[[int], int] = count_permutations,
        complete_max_attempts: int = 5,
    ):
        self.cache = cache
        self.task_store = task_store
        self._bus = bus if bus is not None else event_bus
        self._counter = counter
        self._running = False
        self._mark_complete = async_retry(
            max_attempts=complete_max_attempts,
            retriable=_is_transient,
            provider="task_store",
        )(self._write_complete)

    @classmethod
    def from_settings(
        cls,
        cache: CachePort,
        task_store: TaskStorePort,
        settings: Optional[Settings] = None,
        *,
        bus: Optional[EventBus] = None,
    ) -> "DeferredWorker":
        settings = settings or get_settings()
        return cls(cache, task_store, bus=bus, complete_max_attempts=settings.task_complete_max_attempts)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to task creation notifications."""
        if self._running:
            logger.warning("Deferred worker already running")
            return
        self._bus.subscribe(EventType.TASK_CREATED, self._on_task_created)
        self._running = True
        logger.info("Deferred worker started")

    def stop(self) -> None:
        """Unsubscribe; records already being processed run to completion."""
        if not self._running:
            return
        self._bus.unsubscribe(EventType.TASK_CREATED, self._on_task_created)
        self._running = False
        logger.info("Deferred worker stopped")

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Notification handling
    # ------------------------------------------------------------------

    async def _on_task_created(self, data: Dict[str, Any]) -> None:
        try:
            record = ChangeRecord.from_event(data)
        except (KeyError, TypeError, ValueError) as exc:
            logger.error(f"Ignoring malformed task notification {data!r}: {exc}")
            return
        await self.handle_change(record)

    async def handle_change(self, record: ChangeRecord) -> bool:
        """Process *record* if it describes a task insert; return whether it did."""
        if record.event_name != ChangeEventName.INSERT.value:
            logger.debug(f"Skipping {record.event_name} notification for task {record.task_id}")
            return False
        await self.react(record.task_id, record.total)
        return True

    async def process_batch(self, records: Iterable[ChangeRecord]) -> int:
        """Process a batch of change records concurrently.

        A failure in one record is logged and never prevents the others from
        completing.  Returns the number of insert records processed.
        """
        records = list(records)
        results = await asyncio.gather(*(self.handle_change(r) for r in records), return_exceptions=True)

        processed = 0
        for record, result in zip(records, results):
            if isinstance(result, Exception):
                logger.error(f"Failed to process notification for task {record.task_id}: {result}")
            elif result:
                processed += 1
        return processed

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def react(self, task_id: str, total: int) -> int:
        """Run one task to completion and return the computed count."""
        task_log = get_logger(task_id=task_id, total=total)

        finished = await self._stored_result(task_id)
        if finished is not None:
            task_log.info("task-already-complete", permutations=finished)
            return finished

        try:
            await self.task_store.update_status(task_id, TaskStatus.IN_PROGRESS)
            task_log.info("task-in-progress")
        except Exception as exc:
            task_status_update_failures_total.labels(TaskStatus.IN_PROGRESS.value).inc()
            task_log.warning("task-in-progress-update-failed", error=str(exc))

        # No response budget applies here; compute whatever the total is.
        with permutation_compute_seconds.time():
            permutations = self._counter(total)

        try:
            await self._mark_complete(task_id, permutations)
            deferred_tasks_completed_total.inc()
            task_log.info("task-complete", permutations=permutations)
        except Exception as exc:
            task_status_update_failures_total.labels(TaskStatus.COMPLETE.value).inc()
            # The task stays IN_PROGRESS for pollers until recovery re-runs it.
            task_log.error("task-complete-update-failed", error=str(exc), permutations=permutations)

        try:
            await self.cache.put(total, permutations)
        except Exception as exc:
            permutation_cache_errors_total.labels("put").inc()
            task_log.warning("task-cache-write-failed", error=str(exc))

        return permutations

    async def _stored_result(self, task_id: str) -> Optional[int]:
        """Return the result of *task_id* if it is already COMPLETE."""
        try:
            task = await self.task_store.get(task_id)
        except Exception as exc:
            logger.warning(f"Could not read task {task_id} before processing, continuing: {exc}")
            return None
        if task is None or task.status is not TaskStatus.COMPLETE:
            return None
        return task.result

    async def _write_complete(self, task_id: str, permutations: int) -> None:
        await self.task_store.update_status(task_id, TaskStatus.COMPLETE, permutations)

"""
Deferred task recovery for application startup.

A task can be left PENDING or IN_PROGRESS when the process handling it dies
between the status writes, or when its COMPLETE write exhausted its retries.
Nothing else ever revisits such a task, so on startup we look for unfinished
tasks that have not been touched for a while and run them through the worker
again.  Re-running is safe because the worker is idempotent.
"""

import logging
from typing import List

from pillcount.services.deferred_worker import DeferredWorker
from pillcount.services.ports import TaskStorePort

logger = logging.getLogger(__name__)


async def recover_stale_tasks(task_store: TaskStorePort, worker: DeferredWorker, *, stale_after: float) -> List[str]:
    """
    Re-run every unfinished task not updated within *stale_after* seconds.

    Returns:
        List of task IDs that were re-run
    """
    logger.info("Starting deferred task recovery process...")

    stale_tasks = await task_store.list_stale(stale_after)
    if not stale_tasks:
        logger.info("No stale deferred tasks found during startup recovery")
        return []

    logger.warning(f"Found {len(stale_tasks)} stale deferred tasks, recovering...")

    recovered_task_ids = []
    for task in stale_tasks:
        try:
            await worker.react(task.id, task.total)
            recovered_task_ids.append(task.id)
            logger.info(f"Recovered task {task.id} (total={task.total}, was {task.status.value})")
        except Exception as e:
            logger.error(f"Failed to recover task {task.id}: {e}")

    logger.info(f"Recovered {len(recovered_task_ids)} deferred tasks: {recovered_task_ids}")
    return recovered_task_ids

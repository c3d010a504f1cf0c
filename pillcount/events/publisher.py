"""
Event publishing helpers.

Two ways to publish, with clear semantics:

1. ``await publish_event(...)`` – wait until every subscriber finished.
2. ``publish_event_fire_and_forget(...)`` – schedule delivery on the running
   loop and return immediately.  Tasks are tracked so they are neither
   garbage-collected mid-flight nor lost on shutdown.
"""

import asyncio
import logging
from typing import Any
from typing import Dict
from typing import Optional

from .event_bus import EventBus
from .event_bus import EventType
from .event_bus import event_bus

logger = logging.getLogger(__name__)

# Track fire-and-forget tasks to prevent resource leaks
_active_tasks: set = set()


async def publish_event(event_type: EventType, data: Dict[str, Any], *, bus: Optional[EventBus] = None) -> None:
    """
    Publish and wait for all subscribers.

    Publishing failures are logged, never raised: a notification problem must
    not break the operation that produced it.
    """
    try:
        await (bus or event_bus).publish(event_type, data)
    except Exception as e:
        logger.error(f"Failed to publish event {event_type}: {e}")


def publish_event_fire_and_forget(
    event_type: EventType, data: Dict[str, Any], *, bus: Optional[EventBus] = None
) -> Optional[asyncio.Task]:
    """
    Schedule event delivery without waiting for subscribers.

    Returns the tracked task, or ``None`` when no event loop is running.

    Usage:
        publish_event_fire_and_forget(EventType.TASK_CREATED, {"id": task_id, "total": 45})
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # No running loop - this is a programming error
        logger.error(f"Cannot publish fire-and-forget event {event_type} - no running event loop")
        return None

    task = loop.create_task(publish_event(event_type, data, bus=bus))
    _active_tasks.add(task)
    task.add_done_callback(_cleanup_task)
    return task


def _cleanup_task(task: asyncio.Task) -> None:
    """Remove task from tracking and log any exceptions."""
    _active_tasks.discard(task)

    if not task.cancelled() and task.exception() is not None:
        logger.error(f"Fire-and-forget event publishing task failed: {task.exception()}")


async def drain_event_publisher(timeout: float = 10.0) -> None:
    """
    Wait for all active fire-and-forget tasks to complete.

    Call this during application shutdown (and in tests) so pending
    notifications are delivered; tasks still running after *timeout* are
    cancelled.
    """
    if not _active_tasks:
        return

    logger.info(f"Waiting for {len(_active_tasks)} active event publishing tasks to complete")

    # Tasks may publish further events while we wait, so loop until idle.
    try:
        async with asyncio.timeout(timeout):
            while _active_tasks:
                await asyncio.gather(*list(_active_tasks), return_exceptions=True)
    except TimeoutError:
        logger.warning(f"Timeout waiting for {len(_active_tasks)} event publishing tasks, cancelling them")
        for task in list(_active_tasks):
            if not task.done():
                task.cancel()


def get_active_task_count() -> int:
    """Get the number of active fire-and-forget tasks (for monitoring/debugging)."""
    return len(_active_tasks)

from unittest.mock import AsyncMock
from unittest.mock import MagicMock

import pytest

from pillcount.models.enums import TaskStatus
from pillcount.services.deferred_worker import DeferredWorker
from pillcount.services.memory_store import InMemoryTaskStore
from pillcount.services.task_recovery import recover_stale_tasks


@pytest.mark.asyncio
async def test_recovers_unfinished_tasks(cache, bus):
    store = InMemoryTaskStore(bus, notify=False)
    worker = DeferredWorker(cache, store, bus=bus)

    pending = await store.create(44)
    stuck = await store.create(45)
    await store.update_status(stuck, TaskStatus.IN_PROGRESS)
    done = await store.create(46)
    await store.update_status(done, TaskStatus.COMPLETE, 2971215073)

    recovered = await recover_stale_tasks(store, worker, stale_after=0)

    assert sorted(recovered) == sorted([pending, stuck])
    assert store.tasks[pending].result == 1134903170
    assert store.tasks[stuck].result == 1836311903
    assert store.tasks[stuck].status is TaskStatus.COMPLETE
    # Completed tasks are left alone
    assert store.history[done] == [TaskStatus.PENDING, TaskStatus.COMPLETE]


@pytest.mark.asyncio
async def test_recent_tasks_are_not_recovered(cache, bus):
    store = InMemoryTaskStore(bus, notify=False)
    worker = DeferredWorker(cache, store, bus=bus)
    task_id = await store.create(44)

    assert await recover_stale_tasks(store, worker, stale_after=300) == []
    assert store.tasks[task_id].status is TaskStatus.PENDING


@pytest.mark.asyncio
async def test_one_failure_does_not_stop_recovery(bus):
    store = InMemoryTaskStore(bus, notify=False)
    first = await store.create(44)
    second = await store.create(45)

    async def react(task_id, total):
        if task_id == first:
            raise RuntimeError("boom")
        return 0

    worker = MagicMock()
    worker.react = AsyncMock(side_effect=react)
    recovered = await recover_stale_tasks(store, worker, stale_after=0)

    assert recovered == [second]
    assert worker.react.await_count == 2

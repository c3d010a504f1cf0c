"""Tests for the SQL-backed cache and task stores."""

import asyncio
import threading
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from pillcount.events import EventType
from pillcount.events.publisher import drain_event_publisher
from pillcount.exceptions import CacheUnavailableError
from pillcount.exceptions import TaskAlreadyCompleteError
from pillcount.exceptions import TaskNotFoundError
from pillcount.exceptions import TaskStoreUnavailableError
from pillcount.models.enums import TaskStatus
from pillcount.services.cache_store import SqlCacheStore
from pillcount.services.deferred_worker import DeferredWorker
from pillcount.services.task_store import SqlTaskStore


def _broken_session_factory():
    raise OperationalError("SELECT 1", {}, Exception("database is locked"))


def _recorder(bus, event_type):
    received = []

    async def handler(data):
        received.append(data)

    bus.subscribe(event_type, handler)
    return received


# ---------------------------------------------------------------------------
# Cache store
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_cache_store_get_put(test_session_factory):
    store = SqlCacheStore(test_session_factory)

    assert await store.get(10) is None

    await store.put(10, 89)
    assert await store.get(10) == 89

    # Last write wins
    await store.put(10, 89)
    assert await store.get(10) == 89


@pytest.mark.asyncio
async def test_cache_store_resolves_default_factory_at_call_time(db_session):
    store = SqlCacheStore()
    await store.put(47, 4807526976)
    assert await store.get(47) == 4807526976


@pytest.mark.asyncio
async def test_cache_store_wraps_database_errors():
    store = SqlCacheStore(_broken_session_factory)

    with pytest.raises(CacheUnavailableError):
        await store.get(10)
    with pytest.raises(CacheUnavailableError):
        await store.put(10, 89)


# ---------------------------------------------------------------------------
# Task store
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_task_store_create_emits_insert_record(test_session_factory, bus):
    created = _recorder(bus, EventType.TASK_CREATED)
    store = SqlTaskStore(test_session_factory, bus=bus)

    task_id = await store.create(45)
    await drain_event_publisher()

    assert created == [{"event_name": "INSERT", "id": task_id, "total": 45}]

    snapshot = await store.get(task_id)
    assert snapshot.status is TaskStatus.PENDING
    assert snapshot.total == 45
    assert snapshot.result is None


@pytest.mark.asyncio
async def test_task_store_update_emits_modify_record(test_session_factory, bus):
    updated = _recorder(bus, EventType.TASK_UPDATED)
    store = SqlTaskStore(test_session_factory, bus=bus)

    task_id = await store.create(45)
    await store.update_status(task_id, TaskStatus.IN_PROGRESS)
    await store.update_status(task_id, TaskStatus.COMPLETE, 1836311903)
    await drain_event_publisher()

    assert [u["event_name"] for u in updated] == ["MODIFY", "MODIFY"]
    assert [u["status"] for u in updated] == ["IN_PROGRESS", "COMPLETE"]
    assert updated[-1]["result"] == 1836311903

    snapshot = await store.get(task_id)
    assert snapshot.status is TaskStatus.COMPLETE
    assert snapshot.result == 1836311903


@pytest.mark.asyncio
async def test_task_store_unknown_task(test_session_factory, bus):
    store = SqlTaskStore(test_session_factory, bus=bus)

    assert await store.get("missing") is None
    with pytest.raises(TaskNotFoundError):
        await store.update_status("missing", TaskStatus.COMPLETE, 1)


@pytest.mark.asyncio
async def test_task_store_list_stale(test_session_factory, bus):
    store = SqlTaskStore(test_session_factory, bus=bus)

    pending = await store.create(44)
    done = await store.create(45)
    await store.update_status(done, TaskStatus.COMPLETE, 1836311903)
    await drain_event_publisher()

    assert [t.id for t in await store.list_stale(0)] == [pending]
    assert await store.list_stale(3600) == []


@pytest.mark.asyncio
async def test_task_store_wraps_database_errors(bus):
    store = SqlTaskStore(_broken_session_factory, bus=bus)

    with pytest.raises(TaskStoreUnavailableError):
        await store.create(45)
    with pytest.raises(TaskStoreUnavailableError):
        await store.update_status("any", TaskStatus.IN_PROGRESS)
    with pytest.raises(TaskStoreUnavailableError):
        await store.get("any")


@pytest.mark.asyncio
async def test_task_store_refuses_to_reopen_complete_task(test_session_factory, bus):
    store = SqlTaskStore(test_session_factory, bus=bus)
    task_id = await store.create(44)
    await store.update_status(task_id, TaskStatus.COMPLETE, 1134903170)

    with pytest.raises(TaskAlreadyCompleteError):
        await store.update_status(task_id, TaskStatus.IN_PROGRESS)
    await drain_event_publisher()

    snapshot = await store.get(task_id)
    assert snapshot.status is TaskStatus.COMPLETE
    assert snapshot.result == 1134903170


@pytest.mark.asyncio
async def test_duplicate_processing_keeps_completed_result(test_session_factory, bus, cache):
    store = SqlTaskStore(test_session_factory, bus=bus)
    worker = DeferredWorker(cache, store, bus=bus)
    task_id = await store.create(44)

    assert await worker.react(task_id, 44) == 1134903170

    # A second delivery whose COMPLETE write would fail must not reopen the task
    with patch.object(SqlTaskStore, "_update", side_effect=OperationalError("UPDATE", {}, Exception("locked"))):
        assert await worker.react(task_id, 44) == 1134903170
    await drain_event_publisher()

    snapshot = await store.get(task_id)
    assert snapshot.status is TaskStatus.COMPLETE
    assert snapshot.result == 1134903170


@pytest.mark.asyncio
async def test_session_work_runs_off_the_event_loop(test_session_factory, bus):
    loop_thread = threading.get_ident()
    session_threads = []

    def recording_factory():
        session_threads.append(threading.get_ident())
        return test_session_factory()

    cache_store = SqlCacheStore(recording_factory)
    task_store = SqlTaskStore(recording_factory, bus=bus)

    await cache_store.put(10, 89)
    assert await cache_store.get(10) == 89
    task_id = await task_store.create(45)
    await task_store.update_status(task_id, TaskStatus.IN_PROGRESS)
    assert (await task_store.get(task_id)).status is TaskStatus.IN_PROGRESS
    await task_store.list_stale(0)
    await drain_event_publisher()

    assert len(session_threads) == 6
    assert loop_thread not in session_threads


@pytest.mark.asyncio
async def test_slow_database_does_not_stall_the_loop(test_session_factory, bus):
    release = threading.Event()

    def slow_factory():
        release.wait(timeout=5)
        return test_session_factory()

    store = SqlCacheStore(slow_factory)
    pending = asyncio.ensure_future(store.put(10, 89))

    # The loop keeps running other coroutines while the write is blocked
    await asyncio.sleep(0.05)
    assert not pending.done()

    release.set()
    await pending
    assert await SqlCacheStore(test_session_factory).get(10) == 89

"""Tests for the event bus implementation."""

import pytest

from pillcount.events import EventBus
from pillcount.events import EventType


@pytest.mark.asyncio
async def test_event_bus_basic_publish_subscribe():
    """Test basic publish/subscribe functionality."""
    bus = EventBus()
    received_data = None

    async def test_handler(data: dict):
        nonlocal received_data
        received_data = data

    bus.subscribe(EventType.TASK_CREATED, test_handler)

    test_data = {"event_name": "INSERT", "id": "abc", "total": 45}
    await bus.publish(EventType.TASK_CREATED, test_data)

    assert received_data == test_data


@pytest.mark.asyncio
async def test_event_bus_multiple_subscribers():
    """Test multiple subscribers for the same event."""
    bus = EventBus()
    received_count = 0

    async def test_handler1(_):
        nonlocal received_count
        received_count += 1

    async def test_handler2(_):
        nonlocal received_count
        received_count += 1

    bus.subscribe(EventType.TASK_UPDATED, test_handler1)
    bus.subscribe(EventType.TASK_UPDATED, test_handler2)

    await bus.publish(EventType.TASK_UPDATED, {"id": "abc"})

    assert received_count == 2
    assert bus.subscriber_count(EventType.TASK_UPDATED) == 2


@pytest.mark.asyncio
async def test_event_bus_unsubscribe():
    """Test unsubscribing from events."""
    bus = EventBus()
    call_count = 0

    async def test_handler(_):
        nonlocal call_count
        call_count += 1

    bus.subscribe(EventType.TASK_CREATED, test_handler)
    await bus.publish(EventType.TASK_CREATED, {})
    assert call_count == 1

    bus.unsubscribe(EventType.TASK_CREATED, test_handler)
    await bus.publish(EventType.TASK_CREATED, {})
    assert call_count == 1
    assert bus.subscriber_count(EventType.TASK_CREATED) == 0


@pytest.mark.asyncio
async def test_event_bus_error_handling():
    """A failing handler neither raises to the publisher nor blocks others."""
    bus = EventBus()
    success_called = False

    async def failing_handler(_):
        raise ValueError("Test error")

    async def success_handler(_):
        nonlocal success_called
        success_called = True

    bus.subscribe(EventType.TASK_CREATED, failing_handler)
    bus.subscribe(EventType.TASK_CREATED, success_handler)

    await bus.publish(EventType.TASK_CREATED, {})

    assert success_called


@pytest.mark.asyncio
async def test_event_bus_only_notifies_matching_type():
    bus = EventBus()
    seen = []

    async def handler(data):
        seen.append(data)

    bus.subscribe(EventType.TASK_CREATED, handler)
    await bus.publish(EventType.TASK_UPDATED, {"id": "x"})

    assert seen == []

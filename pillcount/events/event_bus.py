"""Event bus implementation for decoupled event handling."""

import asyncio
import logging
from enum import Enum
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Dict
from typing import Set

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Standardized event types for the system."""

    # Task-store change notifications
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"


class EventBus:
    """Central event bus for publishing and subscribing to events."""

    def __init__(self):
        """Initialize an empty event bus."""
        self._subscribers: Dict[EventType, Set[Callable[[Dict[str, Any]], Awaitable[None]]]] = {}

    async def publish(self, event_type: EventType, data: Dict[str, Any]) -> None:
        """Publish an event to all subscribers.

        Subscribers run concurrently so a slow one cannot block the others;
        any exception a subscriber raises is logged individually.

        Args:
            event_type: The type of event being published
            data: Event payload data
        """
        callbacks = list(self._subscribers.get(event_type, ()))
        if not callbacks:
            logger.debug("No subscribers for %s", event_type)
            return

        logger.debug("Publishing event %s with data: %s", event_type, data)

        results = await asyncio.gather(*(callback(data) for callback in callbacks), return_exceptions=True)

        for result in results:
            if isinstance(result, Exception):
                logger.error("Error in event handler for %s: %s", event_type, result)

    def subscribe(self, event_type: EventType, callback: Callable[[Dict[str, Any]], Awaitable[None]]) -> None:
        """Subscribe to an event type.

        Args:
            event_type: The event type to subscribe to
            callback: Async callback function to handle the event
        """
        self._subscribers.setdefault(event_type, set()).add(callback)
        logger.debug(f"Added subscriber for event {event_type}")

    def unsubscribe(self, event_type: EventType, callback: Callable[[Dict[str, Any]], Awaitable[None]]) -> None:
        """Unsubscribe from an event type.

        Args:
            event_type: The event type to unsubscribe from
            callback: The callback function to remove
        """
        if event_type in self._subscribers:
            self._subscribers[event_type].discard(callback)
            logger.debug(f"Removed subscriber for event {event_type}")

            # Clean up empty subscriber sets
            if not self._subscribers[event_type]:
                del self._subscribers[event_type]

    def subscriber_count(self, event_type: EventType) -> int:
        return len(self._subscribers.get(event_type, ()))


# Global event bus instance
event_bus = EventBus()

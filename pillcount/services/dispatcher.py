"""Cache-aside dispatch for a single permutation request.

:meth:`Dispatcher.handle` resolves a requested total to exactly one of

* :class:`Completed` – served from the cache or computed synchronously,
* :class:`Deferred` – too large for the response budget; a task was created
  and the worker will complete it asynchronously,
* :class:`Invalid` – the total is outside the accepted domain.

The cache is an optimisation only: read failures degrade to a miss and write
failures are logged.  Task creation is the one store call whose failure is
surfaced, because a deferred total has no other way to be answered.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable
from typing import Optional
from typing import Union

from pillcount.config import DEFAULT_MAX_TOTAL
from pillcount.config import DEFAULT_SYNC_THRESHOLD
from pillcount.config import Settings
from pillcount.config import get_settings
from pillcount.constants import MIN_TOTAL
from pillcount.exceptions import TotalOutOfRangeError
from pillcount.metrics import deferred_tasks_created_total
from pillcount.metrics import permutation_cache_errors_total
from pillcount.metrics import permutation_compute_seconds
from pillcount.metrics import permutation_requests_total
from pillcount.services.counter import count_permutations
from pillcount.services.ports import CachePort
from pillcount.services.ports import TaskStorePort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Completed:
    permutations: int
    source: str  # "cache" | "computed"


@dataclass(frozen=True)
class Deferred:
    task_id: str


@dataclass(frozen=True)
class Invalid:
    message: str


DispatchResult = Union[Completed, Deferred, Invalid]


class Dispatcher:
    """Route one request to the cache, the counter or a deferred task."""

    def __init__(
        self,
        cache: CachePort,
        task_store: TaskStorePort,
        *,
        sync_threshold: int = DEFAULT_SYNC_THRESHOLD,
        max_total: int = DEFAULT_MAX_TOTAL,
        counter: Callable[[int], int] = count_permutations,
    ):
        if not MIN_TOTAL <= sync_threshold <= max_total:
            raise ValueError(f"sync_threshold must be within [{MIN_TOTAL}, {max_total}], got {sync_threshold}")
        self.cache = cache
        self.task_store = task_store
        self.sync_threshold = sync_threshold
        self.max_total = max_total
        self._counter = counter
        self._pending_writes: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls, cache: CachePort, task_store: TaskStorePort, settings: Optional[Settings] = None
    ) -> "Dispatcher":
        settings = settings or get_settings()
        return cls(cache, task_store, sync_threshold=settings.sync_threshold, max_total=settings.max_total)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self, total) -> int:
        """Return *total* if it is an integer inside the domain, else raise."""
        if isinstance(total, bool) or not isinstance(total, int):
            raise TotalOutOfRangeError(total, MIN_TOTAL, self.max_total)
        if not MIN_TOTAL <= total <= self.max_total:
            raise TotalOutOfRangeError(total, MIN_TOTAL, self.max_total)
        return total

    async def handle(self, total) -> DispatchResult:
        try:
            total = self.validate(total)
        except TotalOutOfRangeError as exc:
            permutation_requests_total.labels("invalid").inc()
            return Invalid(exc.message)

        cached = await self._lookup(total)
        if cached is not None:
            permutation_requests_total.labels("cache_hit").inc()
            return Completed(permutations=cached, source="cache")

        if total <= self.sync_threshold:
            with permutation_compute_seconds.time():
                permutations = self._counter(total)
            logger.info(f"Computed {permutations} permutations for total={total}")
            self._schedule_cache_write(total, permutations)
            permutation_requests_total.labels("computed").inc()
            return Completed(permutations=permutations, source="computed")

        # Above the synchronous budget – failures propagate to the caller.
        task_id = await self.task_store.create(total)
        deferred_tasks_created_total.inc()
        permutation_requests_total.labels("deferred").inc()
        logger.info(f"Deferred total={total} as task {task_id}")
        return Deferred(task_id=task_id)

    async def drain(self) -> None:
        """Wait for outstanding background cache writes."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes), return_exceptions=True)

    @property
    def pending_write_count(self) -> int:
        return len(self._pending_writes)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _lookup(self, total: int) -> Optional[int]:
        try:
            return await self.cache.get(total)
        except Exception as exc:
            permutation_cache_errors_total.labels("get").inc()
            logger.warning(f"Cache lookup failed for total={total}, recomputing: {exc}")
            return None

    def _schedule_cache_write(self, total: int, permutations: int) -> None:
        task = asyncio.get_running_loop().create_task(self._write_cache(total, permutations))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _write_cache(self, total: int, permutations: int) -> None:
        try:
            await self.cache.put(total, permutations)
        except Exception as exc:
            permutation_cache_errors_total.labels("put").inc()
            logger.warning(f"Cache write failed for total={total}: {exc}")

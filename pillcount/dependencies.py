"""Dependency providers wiring the core services to their store adapters.

Instances are process-wide so background work they schedule (cache writes,
task notifications) stays referenced after the request that started it has
returned.  Tests swap them via ``app.dependency_overrides`` or
:func:`reset_services`.
"""

from __future__ import annotations

from fastapi import Depends

from pillcount.config import get_settings
from pillcount.services.cache_store import SqlCacheStore
from pillcount.services.deferred_worker import DeferredWorker
from pillcount.services.dispatcher import Dispatcher
from pillcount.services.ports import CachePort
from pillcount.services.ports import TaskStorePort
from pillcount.services.task_store import SqlTaskStore

_cache_store: CachePort | None = None
_task_store: TaskStorePort | None = None
_dispatcher: Dispatcher | None = None
_deferred_worker: DeferredWorker | None = None


def get_cache_store() -> CachePort:
    """Dependency provider for the cache port."""
    global _cache_store
    if _cache_store is None:
        _cache_store = SqlCacheStore()
    return _cache_store


def get_task_store() -> TaskStorePort:
    """Dependency provider for the task store port."""
    global _task_store
    if _task_store is None:
        _task_store = SqlTaskStore()
    return _task_store


def get_dispatcher(
    cache: CachePort = Depends(get_cache_store),
    task_store: TaskStorePort = Depends(get_task_store),
) -> Dispatcher:
    """Dependency provider for the request dispatcher."""
    global _dispatcher
    if _dispatcher is None or _dispatcher.cache is not cache or _dispatcher.task_store is not task_store:
        _dispatcher = Dispatcher.from_settings(cache, task_store, get_settings())
    return _dispatcher


def get_deferred_worker() -> DeferredWorker:
    """Return the worker that completes deferred tasks."""
    global _deferred_worker
    if _deferred_worker is None:
        _deferred_worker = DeferredWorker.from_settings(get_cache_store(), get_task_store(), get_settings())
    return _deferred_worker


def reset_services() -> None:
    """Drop cached instances (tests swap the database between cases)."""
    global _cache_store, _task_store, _dispatcher, _deferred_worker
    if _deferred_worker is not None:
        _deferred_worker.stop()
    _cache_store = None
    _task_store = None
    _dispatcher = None
    _deferred_worker = None

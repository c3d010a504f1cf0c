"""Prometheus metrics for the dispatch and deferred-completion paths.

The module bundles all collectors in one place so importing side-effects
(metric registration) happen exactly once per process.  Routers and
services can simply ``from pillcount.metrics import …`` and increment.
"""

from __future__ import annotations

from prometheus_client import Counter
from prometheus_client import Histogram

permutation_requests_total = Counter(
    "permutation_requests_total",
    "Dispatcher outcomes per request",
    labelnames=("outcome",),  # cache_hit | computed | deferred | invalid
)

permutation_cache_errors_total = Counter(
    "permutation_cache_errors_total",
    "Cache reads/writes that failed and were degraded",
    labelnames=("op",),  # get | put
)

deferred_tasks_created_total = Counter(
    "deferred_tasks_created_total",
    "Total number of deferred tasks created",
)

deferred_tasks_completed_total = Counter(
    "deferred_tasks_completed_total",
    "Total number of deferred tasks marked COMPLETE",
)

task_status_update_failures_total = Counter(
    "task_status_update_failures_total",
    "Task status writes that failed after all attempts",
    labelnames=("status",),
)

external_store_retry_total = Counter(
    "external_store_retry_total",
    "Total retries executed against the cache/task stores",
    labelnames=("provider", "function"),
)

# ------------------------------------------------------------------
# Histograms (latency) ---------------------------------------------
# ------------------------------------------------------------------

permutation_compute_seconds = Histogram(
    "permutation_compute_seconds",
    "Time spent computing a single permutation count (seconds)",
    buckets=(0.00001, 0.0001, 0.001, 0.01, 0.1, 1.0),
)

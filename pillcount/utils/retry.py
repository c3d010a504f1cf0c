"""Generic *async* retry decorator with exponential back-off + jitter.

This helper isolates retry logic in one place so call-sites stay concise
(``await complete_task(...)``) while the policy (max attempts, back-off,
metrics, logging) can be evolved centrally.

Usage
-----

```python
from pillcount.utils.retry import async_retry


@async_retry(provider="task_store")
async def mark_complete(task_id: str, result: int) -> None:
    ...
```

Parameters can be tuned per-function:

```python
@async_retry(max_attempts=4, base_delay=1.0, max_delay=16.0, jitter=0.3)
```
"""

from __future__ import annotations

import asyncio
import functools
import random
from typing import Awaitable
from typing import Callable
from typing import ParamSpec
from typing import TypeVar

# Centralised settings access
from pillcount.config import get_settings
from pillcount.metrics import external_store_retry_total
from pillcount.utils.log import log

_T = TypeVar("_T")
_P = ParamSpec("_P")


def _default_retriable(exc: Exception) -> bool:  # noqa: D401 – small helper
    """Retry **everything** by default (caller can override)."""

    return True


def async_retry(
    *,
    max_attempts: int = 5,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: float = 0.25,
    retriable: Callable[[Exception], bool] | None = None,
    provider: str | None = None,  # Metric label only – optional
) -> Callable[[Callable[_P, Awaitable[_T]]], Callable[_P, Awaitable[_T]]]:
    """Decorate an *async* function so it is executed with retry semantics.

    Parameters
    ----------
    max_attempts:
        Inclusive – the *first* try counts. ``max_attempts=1`` disables retry.
    base_delay:
        Initial sleep in seconds (doubles on every retry).
    max_delay:
        Upper bound for back-off sleep.
    jitter:
        0-1.0 – percentage of random noise added/subtracted from delay.
    retriable:
        Callback deciding if *exc* is worth another attempt. Defaults to
        retrying **all** exceptions.
    provider:
        Optional string used for metrics label (e.g. "task_store", "cache").
    """

    # Shrink back-off dramatically when running inside the unit-test harness
    # so failure-path tests do not dominate runtime.
    if get_settings().testing:
        base_delay = min(base_delay, 0.01)
        max_delay = min(max_delay, 0.05)

    max_attempts = max(1, max_attempts)
    retriable = retriable or _default_retriable

    def decorator(fn: Callable[_P, Awaitable[_T]]) -> Callable[_P, Awaitable[_T]]:
        @functools.wraps(fn)
        async def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _T:
            attempt = 1
            delay = base_delay

            while True:
                try:
                    return await fn(*args, **kwargs)
                except Exception as exc:
                    if attempt >= max_attempts or not retriable(exc):
                        log.warning(
                            "retry-exhausted",
                            provider=provider or fn.__module__,
                            function=fn.__name__,
                            attempts=attempt,
                            error=str(exc),
                        )
                        raise

                    sleep_for = delay * (1 + random.uniform(-jitter, jitter))
                    log.debug(
                        "retry",
                        provider=provider or fn.__module__,
                        function=fn.__name__,
                        attempt=attempt,
                        max_attempts=max_attempts,
                        sleep=sleep_for,
                    )
                    external_store_retry_total.labels(provider or fn.__module__, fn.__name__).inc()

                    await asyncio.sleep(sleep_for)

                    attempt += 1
                    delay = min(delay * 2, max_delay)

        return wrapper

    return decorator


__all__ = [
    "async_retry",
]

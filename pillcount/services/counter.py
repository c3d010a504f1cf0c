"""Count ordered dosing sequences.

A dosing sequence is an ordered list of daily doses drawn from *steps*
(one or two pills per day by default) whose sum is exactly the prescribed
total.  With the default steps the count follows the Fibonacci recurrence::

    Count(0) = 1
    Count(n) = Count(n - 1) + Count(n - 2)
    Count(n < 0) = 0

Evaluation is bottom-up over a rolling window of the last ``max(steps)``
values, so a single call is ``O(n)`` time and ``O(max(steps))`` space with
no recursion and no state shared between calls.
"""

from __future__ import annotations

import time
from collections import deque
from typing import Iterable
from typing import Tuple

from pillcount.constants import DEFAULT_STEPS


def _normalise_steps(steps: Iterable[int]) -> Tuple[int, ...]:
    normalised = tuple(sorted(set(steps)))
    if not normalised:
        raise ValueError("steps must contain at least one dose size")
    if any(not isinstance(step, int) or isinstance(step, bool) or step < 1 for step in normalised):
        raise ValueError(f"dose sizes must be positive integers, got {normalised}")
    return normalised


def count_permutations(total: int, *, steps: Iterable[int] = DEFAULT_STEPS) -> int:
    """Return the number of ordered dose sequences that sum exactly to *total*."""

    dose_sizes = _normalise_steps(steps)
    if total < 0:
        return 0

    width = dose_sizes[-1]
    # window[-k] holds Count(n - k) for the n being computed; entries for
    # negative running sums are zero.
    window = deque([0] * (width - 1) + [1], maxlen=width)
    for _ in range(total):
        window.append(sum(window[-step] for step in dose_sizes))
    return window[-1]


def count_permutations_timed(total: int, *, steps: Iterable[int] = DEFAULT_STEPS) -> tuple[int, float]:
    """Like :func:`count_permutations` but also return elapsed seconds."""

    started = time.perf_counter()
    result = count_permutations(total, steps=steps)
    elapsed = time.perf_counter() - started
    return result, elapsed


__all__ = ["count_permutations", "count_permutations_timed"]

"""Tests for the async retry decorator."""

import pytest

from pillcount.utils.retry import async_retry


class _Transient(Exception):
    pass


class _Permanent(Exception):
    pass


@pytest.mark.asyncio
async def test_retries_until_success():
    calls = 0

    @async_retry(max_attempts=4, provider="test")
    async def flaky():
        nonlocal calls
        calls += 1
        if calls < 3:
            raise _Transient("not yet")
        return "ok"

    assert await flaky() == "ok"
    assert calls == 3


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts():
    calls = 0

    @async_retry(max_attempts=3)
    async def always_fails():
        nonlocal calls
        calls += 1
        raise _Transient("down")

    with pytest.raises(_Transient):
        await always_fails()
    assert calls == 3


@pytest.mark.asyncio
async def test_non_retriable_errors_raise_immediately():
    calls = 0

    @async_retry(max_attempts=5, retriable=lambda exc: not isinstance(exc, _Permanent))
    async def broken():
        nonlocal calls
        calls += 1
        raise _Permanent("nope")

    with pytest.raises(_Permanent):
        await broken()
    assert calls == 1


@pytest.mark.asyncio
async def test_single_attempt_disables_retry():
    calls = 0

    @async_retry(max_attempts=0)
    async def fails():
        nonlocal calls
        calls += 1
        raise _Transient("down")

    with pytest.raises(_Transient):
        await fails()
    assert calls == 1


@pytest.mark.asyncio
async def test_wrapper_preserves_metadata_and_arguments():
    @async_retry()
    async def add(a, b, *, c=0):
        """Add numbers."""
        return a + b + c

    assert add.__name__ == "add"
    assert add.__doc__ == "Add numbers."
    assert await add(1, 2, c=3) == 6

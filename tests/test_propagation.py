"""
Tests for bounded polling.
"""

from typing import Any

import pytest

from mint_harness.errors import MintAPIError, PropagationTimeout
from mint_harness.propagation import wait_until


class _Recorder:
    """Fake sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _not_found() -> MintAPIError:
    return MintAPIError(404, {"code": 404, "message": "Not found"})


@pytest.mark.asyncio
async def test_returns_first_result_without_sleeping():
    sleep = _Recorder()

    async def fetch() -> Any:
        return {"data": {"id": "x"}}

    result = await wait_until(fetch, "resource", sleep=sleep)

    assert result == {"data": {"id": "x"}}
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_retries_not_found_with_doubling_delay():
    sleep = _Recorder()
    attempts = []

    async def fetch() -> Any:
        attempts.append(1)
        if len(attempts) < 3:
            raise _not_found()
        return {"data": {"status": "complete"}}

    result = await wait_until(fetch, "resource", timeout=100, initial_delay=1, max_delay=8, sleep=sleep)

    assert result["data"]["status"] == "complete"
    assert sleep.delays == [1, 2]


@pytest.mark.asyncio
async def test_delay_is_capped():
    sleep = _Recorder()
    statuses = iter(["pending"] * 5 + ["complete"])

    async def fetch() -> Any:
        return {"status": next(statuses)}

    await wait_until(
        fetch,
        "payout",
        ready=lambda r: r["status"] == "complete",
        timeout=100,
        initial_delay=1,
        max_delay=4,
        sleep=sleep,
    )

    assert sleep.delays == [1, 2, 4, 4, 4]


@pytest.mark.asyncio
async def test_times_out_with_last_error():
    sleep = _Recorder()

    async def fetch() -> Any:
        raise _not_found()

    with pytest.raises(PropagationTimeout) as exc_info:
        await wait_until(fetch, "wire instructions", timeout=0, sleep=sleep)

    assert exc_info.value.description == "wire instructions"
    assert isinstance(exc_info.value.last_error, MintAPIError)


@pytest.mark.asyncio
async def test_other_errors_propagate_immediately():
    sleep = _Recorder()
    attempts = []

    async def fetch() -> Any:
        attempts.append(1)
        raise MintAPIError(401, {"code": 401, "message": "Unauthorized"})

    with pytest.raises(MintAPIError):
        await wait_until(fetch, "resource", sleep=sleep)

    assert len(attempts) == 1
    assert sleep.delays == []

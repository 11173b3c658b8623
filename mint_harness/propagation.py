"""
Bounded polling for eventually-consistent remote resources.

The Mint sandbox does not make newly created resources visible immediately.
Instead of sleeping a fixed amount, flows poll with a doubling delay and a
hard timeout, and raise PropagationTimeout when the resource never shows up.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

import structlog

from .config import Settings
from .errors import MintAPIError, PropagationTimeout

logger = structlog.get_logger()

Fetch = Callable[[], Awaitable[Any]]
Ready = Callable[[Any], bool]


def _always_ready(_: Any) -> bool:
    return True


async def wait_until(
    fetch: Fetch,
    description: str,
    ready: Ready = _always_ready,
    timeout: float = 30.0,
    initial_delay: float = 1.0,
    max_delay: float = 8.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> Any:
    """
    Call `fetch` until `ready(result)` holds.

    A MintAPIError of kind NOT_FOUND counts as "not there yet"; any other
    error propagates immediately.

    Returns:
        The first result accepted by `ready`

    Raises:
        PropagationTimeout: if `timeout` seconds pass without a ready result
    """
    deadline = time.monotonic() + timeout
    delay = initial_delay
    attempt = 0
    last_error: Optional[Exception] = None

    while True:
        attempt += 1
        try:
            result = await fetch()
        except MintAPIError as e:
            if not e.is_not_found:
                raise
            last_error = e
        else:
            if ready(result):
                if attempt > 1:
                    logger.info("resource_propagated", resource=description, attempts=attempt)
                return result
            last_error = None

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise PropagationTimeout(description, timeout, last_error)

        logger.debug("waiting_for_resource", resource=description, attempt=attempt, delay=delay)
        await sleep(min(delay, remaining))
        delay = min(delay * 2, max_delay) if delay > 0 else 0


async def wait_with_settings(
    settings: Settings,
    fetch: Fetch,
    description: str,
    ready: Ready = _always_ready,
) -> Any:
    """wait_until() using the propagation limits from Settings."""
    return await wait_until(
        fetch,
        description,
        ready=ready,
        timeout=settings.propagation_timeout,
        initial_delay=settings.propagation_initial_delay,
        max_delay=settings.propagation_max_delay,
    )

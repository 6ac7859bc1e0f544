"""Rate-limited batch fetching against the Riot API.

Keys are cut into slices of floor(rate * buffer) requests. A slice is fired
concurrently, awaited as a whole, and followed by a one second pause before
the next slice starts, so no more than rate * buffer requests begin inside
any one-second window. This is the only place where API concurrency is
decided; everything else goes through fetch_many.
"""

import asyncio
import inspect
import logging
import math

from config import MAX_RETRY_ATTEMPTS, REQUEST_BUFFER_RATE, RETRY_BASE_DELAY
from errors import FatalError, NotFoundError, TransientError

logger = logging.getLogger(__name__)

SLICE_INTERVAL_SECONDS = 1.0


def slice_size_for(rate_per_second: float, buffer_fraction: float) -> int:
    size = math.floor(rate_per_second * buffer_fraction)
    if size < 1:
        raise ValueError(
            f"rate_per_second={rate_per_second} with buffer_fraction={buffer_fraction} leaves no room for a request"
        )
    return size


def _name_of(request_fn) -> str:
    return getattr(request_fn, "__name__", None) or getattr(getattr(request_fn, "func", None), "__name__", "request")


async def _invoke(request_fn, key):
    if inspect.iscoroutinefunction(request_fn):
        return await request_fn(key)
    # blocking clients (requests) run on a worker thread so the slice stays concurrent
    return await asyncio.to_thread(request_fn, key)


async def call_with_retry(request_fn, key, max_retries=MAX_RETRY_ATTEMPTS, base_delay=RETRY_BASE_DELAY,
                          sleep=asyncio.sleep):
    """Run request_fn(key), retrying TransientError with exponential backoff.

    The wait is base_delay * 2**attempt, or the server's Retry-After when that
    is longer. After max_retries retries the last TransientError is wrapped
    in a FatalError. NotFoundError and anything else propagate untouched.
    """
    attempt = 0
    while True:
        try:
            return await _invoke(request_fn, key)
        except TransientError as e:
            if attempt >= max_retries:
                raise FatalError(
                    f"{_name_of(request_fn)}({key}) failed after {attempt + 1} attempts: {e}"
                ) from e
            wait = base_delay * 2 ** attempt
            if e.retry_after is not None and e.retry_after > wait:
                wait = e.retry_after
            logger.warning("[%s] %s(%s): waiting %.1fs before retry %d/%d",
                           e.status, _name_of(request_fn), key, wait, attempt + 1, max_retries)
            await sleep(wait)
            attempt += 1


async def fetch_many(keys, request_fn, rate_per_second, buffer_fraction=REQUEST_BUFFER_RATE, *,
                     max_retries=MAX_RETRY_ATTEMPTS, base_delay=RETRY_BASE_DELAY,
                     sleep=asyncio.sleep, stop=None):
    """Fetch request_fn(key) for every key, slice by slice.

    Keys that come back NotFoundError are dropped. If any key in a slice ends
    in an error (e.g. FatalError after exhausted retries) the rest of that
    slice still completes, then the first error is raised and no further
    slices are started. When ``stop`` (anything with is_set()) is set, no new
    slice is started and the results gathered so far are returned.
    """
    keys = list(keys)
    size = slice_size_for(rate_per_second, buffer_fraction)
    results = []

    for n in range(0, len(keys), size):
        if stop is not None and stop.is_set():
            logger.warning("Stop requested: %d of %d keys left unfetched", len(keys) - n, len(keys))
            break

        chunk = keys[n:n + size]
        outcomes = await asyncio.gather(
            *(call_with_retry(request_fn, key, max_retries, base_delay, sleep) for key in chunk),
            return_exceptions=True,
        )

        failure = None
        for key, outcome in zip(chunk, outcomes):
            if isinstance(outcome, NotFoundError):
                logger.debug("Not found: %s(%s)", _name_of(request_fn), key)
                continue
            if isinstance(outcome, BaseException):
                logger.error("Failed API call: %s(%s): %s", _name_of(request_fn), key, outcome)
                if failure is None:
                    failure = outcome
                continue
            results.append(outcome)

        if failure is not None:
            raise failure

        if n + size < len(keys):
            await sleep(SLICE_INTERVAL_SECONDS)

    return results

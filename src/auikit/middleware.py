"""
Stock middleware stages.

Each factory returns a stage for CapabilityBuilder.middleware(). Nothing
here is applied implicitly; the engine itself stays free of logging,
timing, timeouts, retries and caching.

Stages:
    - log_calls: Log start, finish and failure of each call
    - timed: Record the duration of the inner chain in context.extras
    - timeout: Fail the call when the inner chain runs too long
    - retry: Re-run the inner chain on failure with exponential backoff
    - cached: Memoize results in context.cache with an optional TTL

Example:
    search = (
        capability("search")
        .input(SearchInput)
        .execute(run_search)
        .middleware(log_calls())
        .middleware(cached(ttl_seconds=60))
        .build()
    )
"""

import asyncio
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from auikit.errors import MiddlewareTimeoutError

if TYPE_CHECKING:
    from auikit.context import InvocationContext
    from auikit.engine import Continuation


logger = logging.getLogger(__name__)


def log_calls(
    log: logging.Logger | None = None,
    level: int = logging.INFO,
) -> Callable[..., Any]:
    """Log each call's start and outcome, then pass errors through."""
    log = log or logger

    async def log_calls_stage(input: Any, context: "InvocationContext", next: "Continuation") -> Any:
        origin = "trusted" if context.is_trusted_origin else "untrusted"
        log.log(level, "Capability call started (%s origin)", origin)
        start = time.perf_counter()
        try:
            result = await next()
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            log.log(level, "Capability call failed after %.1fms: %s", duration_ms, type(e).__name__)
            raise
        duration_ms = (time.perf_counter() - start) * 1000
        log.log(level, "Capability call finished in %.1fms", duration_ms)
        return result

    return log_calls_stage


def timed(key: str = "duration_ms") -> Callable[..., Any]:
    """Store the inner chain's duration (ms) in context.extras[key]."""

    async def timed_stage(input: Any, context: "InvocationContext", next: "Continuation") -> Any:
        start = time.perf_counter()
        try:
            return await next()
        finally:
            context.extras[key] = (time.perf_counter() - start) * 1000

    return timed_stage


def timeout(seconds: float) -> Callable[..., Any]:
    """
    Fail the call with MiddlewareTimeoutError after `seconds`.

    The inner chain is cancelled when the timer wins.
    """
    if seconds <= 0:
        msg = "timeout seconds must be positive"
        raise ValueError(msg)

    async def timeout_stage(input: Any, context: "InvocationContext", next: "Continuation") -> Any:
        try:
            async with asyncio.timeout(seconds) as scope:
                return await next()
        except TimeoutError as e:
            # A TimeoutError raised by the inner chain itself passes through
            if not scope.expired():
                raise
            raise MiddlewareTimeoutError(
                capability=next.capability,
                stage="timeout",
                timeout_seconds=seconds,
            ) from e

    return timeout_stage


def retry(
    attempts: int = 3,
    backoff_seconds: float = 0.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> Callable[..., Any]:
    """
    Re-run the inner chain when it raises one of `retry_on`.

    Sleeps backoff_seconds * 2**attempt between tries and re-raises the
    last error once attempts are exhausted.
    """
    if attempts < 1:
        msg = "retry attempts must be at least 1"
        raise ValueError(msg)

    async def retry_stage(input: Any, context: "InvocationContext", next: "Continuation") -> Any:
        for attempt in range(attempts):
            try:
                if attempt == 0:
                    return await next()
                return await next.rerun()
            except retry_on as e:
                if attempt == attempts - 1:
                    raise
                logger.debug("Attempt %d/%d failed: %s", attempt + 1, attempts, e)
                if backoff_seconds > 0:
                    await asyncio.sleep(backoff_seconds * 2**attempt)
        # Unreachable: the loop either returns or raises
        raise AssertionError("retry loop exited without a result")

    return retry_stage


@dataclass
class CacheEntry:
    """A memoized result with the monotonic time it was stored."""

    value: Any
    stored_at: float


def default_cache_key(input: Any) -> str:
    """Stable key derived from the validated input."""
    if isinstance(input, BaseModel):
        input = input.model_dump(mode="json")
    return json.dumps(input, sort_keys=True, default=str)


def cached(
    key: Callable[[Any], str] | None = None,
    ttl_seconds: float | None = None,
    namespace: str | None = None,
) -> Callable[..., Any]:
    """
    Memoize results in context.cache.

    Entries live in the context's cache, so they are shared only by calls
    that share a context. Keys are prefixed with namespace, which defaults
    to the capability name; pass the same namespace to several capabilities
    to let them share entries. Expired entries are recomputed.
    """
    make_key = key or default_cache_key

    async def cached_stage(input: Any, context: "InvocationContext", next: "Continuation") -> Any:
        cache_key = f"{namespace or next.capability}:{make_key(input)}"
        entry = context.cache.get(cache_key)
        if isinstance(entry, CacheEntry):
            age = time.monotonic() - entry.stored_at
            if ttl_seconds is None or age < ttl_seconds:
                return entry.value

        result = await next()
        context.cache[cache_key] = CacheEntry(value=result, stored_at=time.monotonic())
        return result

    return cached_stage

from __future__ import annotations

import asyncio
import functools
import logging
import random
from typing import Awaitable, Callable, Tuple, Type, TypeVar

import httpx

from ..constants import DEFAULT_RETRY_ATTEMPTS, DEFAULT_RETRY_BASE, DEFAULT_RETRY_JITTER
from ..errors import HandlerError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_backoff(
    attempt: int,
    base: float = DEFAULT_RETRY_BASE,
    jitter: float = DEFAULT_RETRY_JITTER,
) -> float:
    """Compute exponential backoff with jitter."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


async def schedule_retry(
    attempt: int,
    base: float = DEFAULT_RETRY_BASE,
    jitter: float = DEFAULT_RETRY_JITTER,
) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(attempt, base, jitter)
    await asyncio.sleep(delay)


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, HandlerError):
        return exc.retryable
    return isinstance(exc, httpx.TransportError)


def retry(
    attempts: int = DEFAULT_RETRY_ATTEMPTS,
    base: float = DEFAULT_RETRY_BASE,
    jitter: float = DEFAULT_RETRY_JITTER,
    retry_on: Tuple[Type[BaseException], ...] = (HandlerError, httpx.TransportError),
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Retry an async connector handler on transient failures.

    Only exceptions in ``retry_on`` that :func:`is_transient` accepts are
    retried; the last failure propagates once ``attempts`` is exhausted.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except retry_on as exc:
                    if attempt >= attempts or not is_transient(exc):
                        raise
                    logger.warning(
                        f"{func.__name__} failed on attempt {attempt}/{attempts}: {exc}; retrying"
                    )
                    await schedule_retry(attempt, base, jitter)
                    attempt += 1

        return wrapper

    return decorator

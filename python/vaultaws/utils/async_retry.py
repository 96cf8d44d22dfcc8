"""
vaultaws/utils/async_retry.py

Provides a decorator to retry an async function multiple times upon failure.
"""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Tuple, Type
from typing_extensions import ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)


def async_retry(
    retries: int = 3,
    delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    noisy: bool = False,
) -> Callable[
    [Callable[P, Coroutine[Any, Any, R]]], Callable[P, Coroutine[Any, Any, R]]
]:
    """Decorates an async function to retry upon failure.

    The decorated function is attempted up to `retries` times, sleeping `delay`
    seconds between attempts. Only exceptions matching `retry_on` are retried;
    anything else propagates immediately.

    Args:
        retries (int, optional):
            Maximum number of total attempts (not just failures). Defaults to 3.
        delay (float, optional):
            Delay in seconds between attempts. Defaults to 1.0.
        retry_on (Tuple[Type[BaseException], ...], optional):
            Exception types that trigger another attempt. Defaults to (Exception,).
        noisy (bool, optional):
            If True, logs a warning on each failure and an error if all attempts
            fail. Defaults to False.

    Returns:
        A decorator wrapping an async function with the retry behaviour.
    """

    def decorator(
        func: Callable[P, Coroutine[Any, Any, R]]
    ) -> Callable[P, Coroutine[Any, Any, R]]:
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            async def attempt(attempt_number: int) -> R:
                try:
                    return await func(*args, **kwargs)
                except retry_on as exc:
                    if noisy:
                        logger.warning(
                            "Attempt %d/%d for %r failed: %s",
                            attempt_number,
                            retries,
                            func.__qualname__,
                            exc,
                        )
                    if attempt_number < retries:
                        await asyncio.sleep(delay)
                        return await attempt(attempt_number + 1)

                    if noisy:
                        logger.error(
                            "All %d attempts failed for %r", retries, func.__qualname__
                        )
                    raise

            return await attempt(1)

        return wrapper

    return decorator

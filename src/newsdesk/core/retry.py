"""Retry decorator with exponential backoff for network-bound provider calls."""

import functools
import time
from typing import Any, Callable, Tuple, Type, TypeVar, cast

from newsdesk.core.logger import logger

F = TypeVar("F", bound=Callable[..., Any])


def with_retries(
    max_retries: int = 3,
    initial_delay: float = 2,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
) -> Callable[[F], F]:
    """
    Retry the wrapped call when it raises one of ``exceptions``.

    The delay doubles after each failed attempt. The last exception is
    re-raised once the attempts are used up; anything not listed in
    ``exceptions`` propagates immediately.

    Args:
        max_retries (int): Number of retries after the first attempt.
        initial_delay (float): Seconds to wait before the first retry.
        exceptions (Tuple[Type[BaseException], ...]): Exception types worth retrying.

    Returns:
        Callable: The decorator.
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = initial_delay
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_retries:
                        logger.error(f"{func.__name__} failed after {max_retries} retries: {e}")
                        raise
                    logger.warning(
                        f"{func.__name__} attempt {attempt + 1}/{max_retries + 1} failed: {e}. "
                        f"Retrying in {delay}s"
                    )
                    time.sleep(delay)
                    delay *= 2
        return cast(F, wrapper)
    return decorator

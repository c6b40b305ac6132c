"""Retry-with-fallback strategy for external calls"""

import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_fallback(
    primary: Callable[[], Awaitable[T]],
    fallback: Optional[Callable[[], Awaitable[T]]],
    retry_on: tuple[type[BaseException], ...],
    label: str = "operation",
) -> T:
    """
    Run ``primary``; if it raises one of ``retry_on`` run ``fallback`` once.

    The fallback is attempted at most one time and its errors propagate.
    Exceptions outside ``retry_on`` propagate from the primary untouched.
    """
    try:
        return await primary()
    except retry_on as e:
        if fallback is None:
            raise
        logger.warning(f"⚠️ {label} failed with primary strategy ({e}), trying fallback once")
        return await fallback()

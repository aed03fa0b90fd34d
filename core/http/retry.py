"""Retry policy for calls to the remote ride authority.

Built on tenacity. Only transport-level failures are retried; a request the
authority rejected as invalid is never repeated.
"""

from __future__ import annotations

import asyncio
import logging

from aiohttp import ClientConnectionError, ServerDisconnectedError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.exceptions import RemoteNetworkError

logger = logging.getLogger(__name__)

TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    ClientConnectionError,
    ServerDisconnectedError,
    RemoteNetworkError,
    asyncio.TimeoutError,
)


def retry_async(
    max_retries: int = 3,
    retry_delay: float = 1.0,
    backoff_factor: float = 2.0,
    retry_exceptions: tuple = TRANSIENT_EXCEPTIONS,
):
    """Build a tenacity decorator for an async remote call.

    Args:
        max_retries: Attempts after the first one; 0 disables retrying.
        retry_delay: Backoff multiplier in seconds.
        backoff_factor: Exponential base of the backoff.
        retry_exceptions: Exception types worth another attempt.

    Example:
        send = retry_async(max_retries=2, retry_delay=0.5)(authority_call)
    """
    return retry(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=retry_delay, exp_base=backoff_factor),
        retry=retry_if_exception_type(retry_exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )

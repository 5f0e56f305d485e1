"""
retry.py — Bounded Retry With Exponential Backoff
===================================================

Used by the API client and by outbound provider calls.

    result = await with_retry(lambda: client.get(url), max_retries=3)

Delay before retry n (1-based):
    min(initial_delay * 2^(n-1), max_delay) * jitter,  jitter ∈ [0.75, 1.25)
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_BACKOFF_S = 10.0


# ─────────────────────────────────────────────────────────────
# Error categories
# ─────────────────────────────────────────────────────────────

ERROR_AUTH = "auth"
ERROR_NETWORK = "network"
ERROR_NOT_FOUND = "not_found"
ERROR_SERVER = "server"
ERROR_UNKNOWN = "unknown"

USER_MESSAGES = {
    ERROR_AUTH: "Your session has expired. Please sign in again.",
    ERROR_NETWORK: "Network error. Please check your connection and try again.",
    ERROR_NOT_FOUND: "The requested resource could not be found.",
    ERROR_SERVER: "The server ran into a problem. Please try again shortly.",
    ERROR_UNKNOWN: "An unknown error occurred",
}


def categorize_error(error: BaseException) -> str:
    """Map an exception onto one of the coarse error categories."""
    if isinstance(error, (httpx.TimeoutException, httpx.TransportError,
                          asyncio.TimeoutError, ConnectionError)):
        return ERROR_NETWORK

    if isinstance(error, httpx.HTTPStatusError):
        code = error.response.status_code
        if code in (401, 403):
            return ERROR_AUTH
        if code == 404:
            return ERROR_NOT_FOUND
        if code >= 500:
            return ERROR_SERVER
        return ERROR_UNKNOWN

    # Fall back to matching the message text
    text = str(error).lower()
    if any(word in text for word in ("jwt", "token", "unauthorized")):
        return ERROR_AUTH
    if any(word in text for word in ("network", "fetch", "timeout", "timed out", "connection")):
        return ERROR_NETWORK
    if "not found" in text or "404" in text:
        return ERROR_NOT_FOUND
    if "server" in text or "500" in text:
        return ERROR_SERVER
    return ERROR_UNKNOWN


def user_message(category: str) -> str:
    return USER_MESSAGES.get(category, USER_MESSAGES[ERROR_UNKNOWN])


def is_retryable(error: BaseException) -> bool:
    """Only transient failures are worth another attempt."""
    return categorize_error(error) in (ERROR_NETWORK, ERROR_SERVER)


def backoff_delay(attempt: int, initial_delay: float, max_delay: float = MAX_BACKOFF_S) -> float:
    """Seconds to wait before retry number `attempt` (1-based)."""
    base = min(initial_delay * (2 ** (attempt - 1)), max_delay)
    return base * (0.75 + random.random() * 0.5)


# ─────────────────────────────────────────────────────────────
# Retry loop
# ─────────────────────────────────────────────────────────────

async def with_retry(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    retry_if: Optional[Callable[[BaseException], bool]] = None,
    on_retry: Optional[Callable[[int, BaseException], None]] = None,
    timeout: Optional[float] = None,
) -> T:
    """
    Call `fn` until it succeeds or `max_retries` extra attempts are used.

    Args:
        fn:            Zero-arg coroutine factory.
        max_retries:   Retries after the first attempt.
        initial_delay: Seconds before the first retry.
        retry_if:      Predicate; a False result re-raises immediately.
        on_retry:      Called with (attempt, last_error) before each retry.
        timeout:       Per-attempt timeout in seconds.
    """
    last_error: Optional[BaseException] = None

    for attempt in range(max_retries + 1):
        if attempt > 0:
            delay = backoff_delay(attempt, initial_delay)
            logger.info(f"Retrying operation, attempt {attempt}/{max_retries}, waiting {delay:.2f}s")
            await asyncio.sleep(delay)
            if on_retry:
                on_retry(attempt, last_error)

        try:
            if timeout:
                return await asyncio.wait_for(fn(), timeout=timeout)
            return await fn()
        except Exception as e:
            last_error = e
            logger.warning(f"Attempt {attempt + 1}/{max_retries + 1} failed: {e}")

            if retry_if and not retry_if(e):
                raise
            if attempt == max_retries:
                raise

    raise last_error  # pragma: no cover

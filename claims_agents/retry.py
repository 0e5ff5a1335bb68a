"""Retry logic with exponential backoff for reasoner and tool-service calls."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 10.0
    exponential_base: float = 2.0
    jitter_factor: float = 0.2  # ±20% random variation


class TransientError(Exception):
    """Exception for transient errors that should be retried."""

    pass


class PermanentError(Exception):
    """Exception for permanent errors that should not be retried."""

    pass


def backoff_delay(config: RetryConfig, attempt: int, rand: Optional[Callable[[], float]] = None) -> float:
    """Delay before retry number ``attempt`` (0-based), jitter included."""
    base = min(config.base_delay * (config.exponential_base**attempt), config.max_delay)
    sample = (rand or random.random)()
    return max(0.0, base + base * config.jitter_factor * (2 * sample - 1))


async def retry_with_backoff(
    func: Callable[..., Any],
    config: RetryConfig,
    *args: Any,
    on_retry: Optional[Callable[[int, Exception], None]] = None,
    **kwargs: Any,
) -> Any:
    """
    Execute an async function with exponential backoff retry logic.

    Args:
        func: Async function to execute
        config: Retry configuration
        *args: Positional arguments for func
        on_retry: Optional hook called with (attempt, error) before each sleep
        **kwargs: Keyword arguments for func

    Returns:
        Result from successful function execution

    Raises:
        PermanentError: If the error is not transient
        Exception: The last error once every attempt has failed
    """
    last_exception: Optional[Exception] = None

    for attempt in range(config.max_attempts):
        try:
            result = await func(*args, **kwargs)
            if attempt > 0:
                logger.info("Retry succeeded on attempt %d", attempt + 1)
            return result

        except asyncio.CancelledError:
            raise
        except PermanentError:
            logger.error("Permanent error encountered, not retrying")
            raise

        except Exception as e:
            last_exception = e

            if not is_transient_error(e):
                logger.error("Permanent error encountered, not retrying: %s", e)
                raise PermanentError(str(e)) from e

            if attempt == config.max_attempts - 1:
                logger.error("All %d retry attempts failed", config.max_attempts)
                raise

            delay = backoff_delay(config, attempt)
            logger.warning(
                "Attempt %d/%d failed: %s. Retrying in %.2fs...",
                attempt + 1,
                config.max_attempts,
                e,
                delay,
            )
            if on_retry is not None:
                on_retry(attempt + 1, e)
            await asyncio.sleep(delay)

    raise last_exception or Exception("Retry failed with unknown error")


def is_transient_error(error: Exception) -> bool:
    """
    Determine if an error is transient and should be retried.

    Args:
        error: Exception to check

    Returns:
        True if error is transient, False otherwise
    """
    if isinstance(error, TransientError):
        return True

    if isinstance(error, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status == 429 or status >= 500

    error_msg = str(error).lower()
    transient_patterns = [
        "timeout",
        "connection",
        "rate limit",
        "overloaded",
        "429",
        "500",
        "503",
        "504",
        "529",
        "connection reset",
        "broken pipe",
        "temporary",
        "unavailable",
    ]

    return any(pattern in error_msg for pattern in transient_patterns)

"""Retry utilities for config store calls and account sync attempts."""

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from functools import wraps
from typing import TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError

from batchsync.core.config import get_settings

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Non-retryable exceptions
NON_RETRYABLE_EXCEPTIONS = (
    IntegrityError,
    ValueError,
    TypeError,
    KeyError,
)


@dataclass
class RetryPolicy:
    """Configuration for retry behavior."""

    max_retries: int = 3
    backoff_factor: float = 1.0
    max_wait: float = 60.0


def is_retryable_error(error: Exception) -> bool:
    """Determine if an error is retryable."""
    if isinstance(error, NON_RETRYABLE_EXCEPTIONS):
        return False

    # Locked database, dropped connection
    if isinstance(error, OperationalError):
        return True

    if isinstance(error, (TimeoutError, ConnectionError)):
        return True

    # Default: retry unknown errors
    return True


def linear_backoff_seconds(retry_delay_ms: int, attempt: int) -> float:
    """Wait before retry number `attempt` (1-based): retry_delay x attempt."""
    return retry_delay_ms * attempt / 1000


def retry_with_backoff(policy: RetryPolicy | None = None):
    """Decorator that retries async functions with exponential backoff."""
    if policy is None:
        policy = RetryPolicy()

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            last_exception = None

            for attempt in range(policy.max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    last_exception = e

                    if not is_retryable_error(e):
                        logger.warning(f"Non-retryable error in {func.__name__}: {e}")
                        raise

                    if attempt >= policy.max_retries:
                        logger.error(
                            f"{func.__name__} failed after {policy.max_retries + 1} attempts: {e}"
                        )
                        raise

                    # Backoff with jitter
                    wait_time = min(
                        policy.backoff_factor * (2 ** attempt) + random.uniform(0, policy.backoff_factor),
                        policy.max_wait,
                    )

                    logger.warning(
                        f"{func.__name__} attempt {attempt + 1}/{policy.max_retries + 1} "
                        f"failed: {e}. Retrying in {wait_time:.1f}s..."
                    )
                    await asyncio.sleep(wait_time)

            raise last_exception if last_exception else RuntimeError("Unexpected retry failure")

        return wrapper

    return decorator


_settings = get_settings()

STORE_POLICY = RetryPolicy(
    max_retries=_settings.store_max_retries,
    backoff_factor=_settings.store_backoff_factor,
    max_wait=10.0,
)

"""
Retry with exponential backoff for async operations.

Decisions follow the error hierarchy: transient and unclassified errors are
retried, permanent ones fail on the first attempt. Callers see the final
error only; intermediate attempts are logged here at WARNING.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import wraps
from typing import Any

from core.errors.exceptions import PipelineError, classify_exception, wrap_exception
from core.types import ErrorCategory

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """
    Backoff policy.

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Delay before the first retry, seconds
        max_delay: Upper bound for any single delay, seconds
        exponential_base: Growth factor between retries
        respect_permanent: Fail immediately on permanent errors
    """

    max_attempts: int = 3
    base_delay: float = 0.1
    max_delay: float = 2.0
    exponential_base: float = 2.0
    respect_permanent: bool = True

    def __post_init__(self):
        # Values may arrive as strings from YAML/env expansion
        self.max_attempts = int(self.max_attempts)
        self.base_delay = float(self.base_delay)
        self.max_delay = float(self.max_delay)
        self.exponential_base = float(self.exponential_base)
        if not isinstance(self.respect_permanent, bool):
            self.respect_permanent = str(self.respect_permanent).strip().lower() == "true"

    def get_delay(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (0-indexed), with equal jitter."""
        ceiling = min(self.base_delay * self.exponential_base**attempt, self.max_delay)
        half = ceiling / 2
        return half + random.uniform(0, half)

    def category_of(self, error: Exception) -> ErrorCategory:
        if isinstance(error, PipelineError):
            return error.category
        return classify_exception(error)

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """True if another attempt is allowed after ``attempt`` (0-indexed) failed."""
        if attempt + 1 >= self.max_attempts:
            return False
        category = self.category_of(error)
        if category == ErrorCategory.PERMANENT:
            return not self.respect_permanent
        return True


DEFAULT_RETRY = RetryConfig()
NO_RETRY = RetryConfig(max_attempts=1)


def with_retry_async(config: RetryConfig | None = None, wrap_errors: bool = True):
    """
    Decorator retrying an async callable according to ``config``.

    Args:
        config: Backoff policy (defaults to DEFAULT_RETRY)
        wrap_errors: Raise foreign exceptions as PipelineError subclasses,
            chained to the original

    Usage:
        @with_retry_async(config=RetryConfig(max_attempts=5))
        async def store(key, value):
            ...
    """
    policy = config or DEFAULT_RETRY

    def decorator(func: Callable[..., Awaitable[Any]]):
        operation = getattr(func, "__name__", "operation")

        @wraps(func)
        async def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    result = await func(*args, **kwargs)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    error = wrap_exception(e) if wrap_errors else e
                    category = policy.category_of(error).value

                    if not policy.should_retry(error, attempt):
                        logger.debug(
                            "Giving up on %s after %d attempt(s)",
                            operation,
                            attempt + 1,
                            extra={
                                "operation": operation,
                                "attempt": attempt + 1,
                                "error_category": category,
                            },
                        )
                        if error is e:
                            raise
                        raise error from e

                    delay = policy.get_delay(attempt)
                    logger.warning(
                        "Retryable error for %s, will retry",
                        operation,
                        extra={
                            "operation": operation,
                            "attempt": attempt + 1,
                            "max_attempts": policy.max_attempts,
                            "error_category": category,
                            "delay_seconds": round(delay, 3),
                            "error_message": str(e)[:200],
                        },
                    )
                    attempt += 1
                    await asyncio.sleep(delay)
                    continue

                if attempt:
                    logger.info(
                        "%s succeeded on attempt %d",
                        operation,
                        attempt + 1,
                        extra={"operation": operation, "attempt": attempt + 1},
                    )
                return result

        return wrapper

    return decorator


__all__ = [
    "RetryConfig",
    "with_retry_async",
    "DEFAULT_RETRY",
    "NO_RETRY",
]

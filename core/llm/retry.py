"""
Retry policy for provider calls.

Exponential backoff (base * 2^(attempt-1), capped) plus up to ``jitter_ratio``
random jitter. Only TransientProviderError is retried; everything else
propagates on the first attempt.
"""
import logging
import random
import time
from typing import Callable, Optional

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
)
from tenacity import RetryCallState

from core.config_loader import ResilienceConfig
from core.exceptions import TransientProviderError

logger = logging.getLogger(__name__)


def _log_retry(retry_state: RetryCallState) -> None:
    """Log a warning before each retry sleep."""
    exc = retry_state.outcome.exception()
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        "Transient provider error (attempt %s). Waiting %.2fs before retry. Details: %s",
        retry_state.attempt_number, wait, exc,
    )


def backoff_with_jitter(
    base_delay: float,
    max_delay: float,
    jitter_ratio: float,
    rng: Callable[[float, float], float] = random.uniform,
) -> Callable[[RetryCallState], float]:
    """Build a tenacity wait callable: min(base * 2^(n-1), max) + jitter."""
    def _wait(retry_state: RetryCallState) -> float:
        delay = min(base_delay * (2 ** (retry_state.attempt_number - 1)), max_delay)
        return delay + rng(0, delay * jitter_ratio)
    return _wait


def provider_retry(config: Optional[ResilienceConfig] = None, sleep: Callable[[float], None] = time.sleep):
    """Return a tenacity @retry decorator for provider calls."""
    config = config or ResilienceConfig()
    return retry(
        retry=retry_if_exception_type(TransientProviderError),
        wait=backoff_with_jitter(config.base_delay_seconds, config.max_delay_seconds, config.jitter_ratio),
        stop=stop_after_attempt(config.max_attempts),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )

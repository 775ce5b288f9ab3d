#!/usr/bin/env python3
"""
Circuit Breaker - Fail fast against an unhealthy provider.

States:
    closed     calls pass through; consecutive failures are counted
    open       calls fail immediately with CircuitOpenError until the
               reset timeout has elapsed since the breaker opened
    half_open  trial calls pass through; ``half_open_successes`` consecutive
               successes close the breaker, any failure reopens it

All counter mutation happens under one lock. The guarded call itself runs
outside the lock so concurrent callers are not serialized on the network.
"""
import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional, TypeVar

from core.exceptions import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Thread-safe closed/open/half-open circuit breaker."""

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        half_open_successes: int = 3,
        name: str = "provider",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.half_open_successes = half_open_successes
        self.name = name
        self._clock = clock

        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'name': self.name,
                'state': self._state.value,
                'failure_count': self._failure_count,
                'success_count': self._success_count,
            }

    def before_call(self) -> None:
        """Admit or reject a call.

        Raises:
            CircuitOpenError: breaker is open and the cooldown has not elapsed
        """
        with self._lock:
            if self._state != CircuitState.OPEN:
                return
            elapsed = self._clock() - self._opened_at
            if elapsed < self.reset_timeout:
                raise CircuitOpenError(
                    f"Circuit breaker '{self.name}' is open",
                    retry_after=self.reset_timeout - elapsed,
                )
            self._transition(CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.half_open_successes:
                    self._transition(CircuitState.CLOSED)
            elif self._state == CircuitState.OPEN:
                # Call admitted before the breaker opened
                self._transition(CircuitState.CLOSED)
            else:
                self._failure_count = 0

    def record_failure(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
                return
            self._failure_count += 1
            if self._state == CircuitState.CLOSED and self._failure_count >= self.failure_threshold:
                self._transition(CircuitState.OPEN)

    def call(self, func: Callable[..., T], *args, **kwargs) -> T:
        """Run ``func`` through the breaker."""
        self.before_call()
        try:
            result = func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result

    def reset(self) -> None:
        with self._lock:
            self._transition(CircuitState.CLOSED)

    def _transition(self, new_state: CircuitState) -> None:
        # Caller holds the lock
        old_state = self._state
        self._state = new_state
        self._success_count = 0
        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
            logger.error(
                f"Circuit breaker '{self.name}' opened after {self._failure_count} consecutive failures"
            )
        elif new_state == CircuitState.CLOSED:
            self._failure_count = 0
            self._opened_at = None
            if old_state != CircuitState.CLOSED:
                logger.info(f"Circuit breaker '{self.name}' closed")
        else:
            logger.info(f"Circuit breaker '{self.name}' half-open, allowing trial calls")

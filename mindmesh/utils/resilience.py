"""Retry and circuit-breaker primitives for calls to remote providers.

Two building blocks are exposed:

1. **retry_async** -- run an async callable up to ``max_attempts`` times,
   sleeping ``base_delay * multiplier ** (attempt - 1)`` seconds between
   attempts.  Retries are strictly sequential.

2. **CircuitBreaker** -- a count-based sliding-window breaker.  Once the
   window is full and the failure rate reaches the threshold it opens and
   rejects calls for ``open_seconds``; afterwards it half-opens and lets a
   fixed number of probe calls through.  Any failed or cancelled probe
   re-opens it, all probes succeeding closes it.

The sleep function and clock are injectable so tests never wait.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, TypeVar

import structlog

from mindmesh.utils.errors import CircuitOpenError

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts to make and how long to wait between them."""

    max_attempts: int = 3
    base_delay: float = 0.5
    multiplier: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Return the backoff to sleep after the given failed *attempt* (1-based)."""
        return self.base_delay * self.multiplier ** (attempt - 1)


async def retry_async(
    func: Callable[[], Awaitable[_T]],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    give_up_on: tuple[type[BaseException], ...] = (),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    operation: str = "call",
) -> _T:
    """Invoke *func* with sequential retries and exponential backoff.

    Exceptions listed in *give_up_on* are re-raised immediately even if
    they also match *retry_on*.  After the last attempt the final
    exception propagates unchanged so callers can wrap it.
    """
    attempts = max(1, policy.max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except give_up_on:
            raise
        except retry_on as exc:
            if attempt >= attempts:
                raise
            backoff = policy.delay_for(attempt)
            logger.warning(
                f"{operation}_retry",
                attempt=attempt,
                max_attempts=attempts,
                backoff_seconds=backoff,
                error=str(exc),
            )
            await sleep(backoff)
    raise AssertionError("unreachable")  # pragma: no cover


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Count-based circuit breaker guarding a single remote dependency.

    Parameters
    ----------
    name:
        Label used in log events and in :class:`CircuitOpenError`.
    enabled:
        When ``False`` every call passes straight through; outcomes are
        still recorded so :attr:`failure_rate` stays observable.
    failure_rate_threshold:
        Fraction of failures (0..1) in a full window that opens the circuit.
    window_size:
        Number of most recent calls the failure rate is computed over.
    open_seconds:
        How long the circuit stays open before half-opening.
    half_open_calls:
        Probe calls permitted while half-open.
    clock:
        Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        name: str,
        *,
        enabled: bool = False,
        failure_rate_threshold: float = 0.5,
        window_size: int = 10,
        open_seconds: float = 30.0,
        half_open_calls: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._name = name
        self._enabled = enabled
        self._threshold = failure_rate_threshold
        self._window: deque[bool] = deque(maxlen=max(1, window_size))
        self._open_seconds = open_seconds
        self._half_open_calls = max(1, half_open_calls)
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._opened_at = 0.0
        self._probes_started = 0
        self._probes_succeeded = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def state(self) -> CircuitState:
        if self._state is CircuitState.OPEN and self._cooldown_elapsed():
            return CircuitState.HALF_OPEN
        return self._state

    @property
    def failure_rate(self) -> float:
        if not self._window:
            return 0.0
        return self._window.count(False) / len(self._window)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def call(self, func: Callable[[], Awaitable[_T]]) -> _T:
        """Run *func* through the breaker, recording its outcome."""
        self._before_call()
        try:
            result = await func()
        except (Exception, asyncio.CancelledError):
            # A call cancelled by a caller's timeout counts as a failure,
            # otherwise a half-open probe slot would never be released.
            self._record(success=False)
            raise
        self._record(success=True)
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cooldown_elapsed(self) -> bool:
        return self._clock() - self._opened_at >= self._open_seconds

    def _before_call(self) -> None:
        if not self._enabled:
            return
        if self._state is CircuitState.OPEN:
            if not self._cooldown_elapsed():
                raise CircuitOpenError(
                    message=f"Circuit '{self._name}' is open", provider_name=self._name
                )
            self._state = CircuitState.HALF_OPEN
            self._probes_started = 0
            self._probes_succeeded = 0
            logger.info("circuit_half_open", circuit=self._name)
        if self._state is CircuitState.HALF_OPEN:
            if self._probes_started >= self._half_open_calls:
                raise CircuitOpenError(
                    message=f"Circuit '{self._name}' is half-open and saturated",
                    provider_name=self._name,
                )
            self._probes_started += 1

    def _record(self, success: bool) -> None:
        self._window.append(success)
        if not self._enabled:
            return

        if self._state is CircuitState.HALF_OPEN:
            if not success:
                self._open()
                return
            self._probes_succeeded += 1
            if self._probes_succeeded >= self._half_open_calls:
                self._state = CircuitState.CLOSED
                self._window.clear()
                logger.info("circuit_closed", circuit=self._name)
            return

        if len(self._window) == self._window.maxlen and self.failure_rate >= self._threshold:
            self._open()

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        logger.warning(
            "circuit_opened",
            circuit=self._name,
            failure_rate=round(self.failure_rate, 2),
            open_seconds=self._open_seconds,
        )

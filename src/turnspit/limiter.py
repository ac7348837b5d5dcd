import asyncio
import logging
import math
import threading
import time
from collections.abc import Awaitable, Callable
from typing import Union

from .errors import RequestCancelled
from .types import RateLimit

# Throttle "limiter is blocking" log lines to one per this many seconds
NOTICE_INTERVAL_S = 5.0


# ---------- Token bucket (shared logic; synchronization handled by subclasses) ----------


class _TokenBucket:
    def __init__(
        self,
        rate: float,
        burst: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize a token bucket.

        Args:
            rate (float): tokens added per second; math.inf disables limiting
            burst (int): bucket capacity
            clock (Callable[[], float]): monotonic time source, seconds
        """
        RateLimit(rate, burst)  # validates
        self.rate = float(rate)
        self.burst = int(burst)
        self._clock = clock
        self._tokens = float(burst)
        self._last = clock()
        # when the most recent reservation becomes usable
        self._latest = self._last
        self._logger = logging.getLogger("turnspit")
        self._next_notice = 0.0

    @classmethod
    def from_config(cls, config: RateLimit, **kwargs):
        return cls(config.requests_per_second, config.burst, **kwargs)

    @property
    def unlimited(self) -> bool:
        return math.isinf(self.rate)

    def _advance(self, now: float) -> None:
        if now > self._last:
            self._tokens = min(float(self.burst), self._tokens + (now - self._last) * self.rate)
            self._last = now

    def _reserve(
        self, max_delay: Union[float, None] = None
    ) -> Union[tuple[float, float], None]:
        """Take one token, possibly on credit.

        Returns `(delay, ready_at)`: how long until the token is usable and the
        clock time at which it is. The balance may go negative: every waiter
        queues behind the reservations made before it, so concurrent waiters
        never exceed `rate`. Returns None, taking nothing, when the wait would
        exceed `max_delay`.
        """
        now = self._clock()
        if self.unlimited:
            return 0.0, now
        self._advance(now)
        delay = 0.0 if self._tokens >= 1.0 else (1.0 - self._tokens) / self.rate
        if max_delay is not None and delay > max_delay:
            return None
        self._tokens -= 1.0
        ready_at = now + delay
        self._latest = max(self._latest, ready_at)
        return delay, ready_at

    def _release(self, ready_at: float) -> None:
        """Give back a reservation that was never used.

        Later reservations were timed on top of this one and keep their slots,
        so only the part of the token none of them was scheduled against returns.
        """
        if self.unlimited:
            return
        restore = 1.0 - (self._latest - ready_at) * self.rate
        if restore <= 0:
            return
        self._advance(self._clock())
        self._tokens = min(float(self.burst), self._tokens + restore)

    def _notice(self, delay: float) -> None:
        # caller holds the lock
        now = self._clock()
        if self._next_notice <= now:
            self._logger.info(f"rate limiter blocking; sleeping ~{delay:.2f}s")
            self._next_notice = now + NOTICE_INTERVAL_S


# ---------- Sync limiter (threads) ----------


class RateLimiter(_TokenBucket):
    def __init__(
        self,
        rate: float = 4.0,
        burst: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(rate, burst, clock)
        self._lock = threading.Lock()
        self._sleep = sleep

    def wait(
        self,
        cancel: Union[threading.Event, None] = None,
        timeout: Union[float, None] = None,
    ) -> None:
        """Block until a token is available.

        Raises RequestCancelled if `cancel` is set while waiting, or if the wait
        would outlast `timeout` seconds (in which case no token is taken).
        """
        with self._lock:
            reservation = self._reserve(timeout)
            if reservation is not None and reservation[0] > 0:
                self._notice(reservation[0])
        if reservation is None:
            raise RequestCancelled("deadline exceeded waiting for rate limiter")
        delay, ready_at = reservation
        if delay <= 0:
            return
        if cancel is None:
            self._sleep(delay)
            return
        if cancel.wait(delay):
            with self._lock:
                self._release(ready_at)
            raise RequestCancelled("cancelled while waiting for rate limiter")


# ---------- Async limiter (asyncio) ----------


class AsyncRateLimiter(_TokenBucket):
    def __init__(
        self,
        rate: float = 4.0,
        burst: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        super().__init__(rate, burst, clock)
        self._lock = asyncio.Lock()
        self._sleep = sleep

    async def wait(self, timeout: Union[float, None] = None) -> None:
        """Await a token. Task cancellation returns the reservation and propagates."""
        async with self._lock:
            reservation = self._reserve(timeout)
            if reservation is not None and reservation[0] > 0:
                self._notice(reservation[0])
        if reservation is None:
            raise RequestCancelled("deadline exceeded waiting for rate limiter")
        delay, ready_at = reservation
        if delay <= 0:
            return
        try:
            await self._sleep(delay)
        except asyncio.CancelledError:
            # no await before the release, so no other task runs in between
            self._release(ready_at)
            raise

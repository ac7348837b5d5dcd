import asyncio
import logging
import math
import threading
import time
from collections.abc import Awaitable, Callable, Mapping
from typing import Union

from .classify import Verdict, classify, error_for_status
from .errors import RequestCancelled, TransportError
from .limiter import AsyncRateLimiter, RateLimiter
from .types import PreparedRequest, Response, RetryPolicy

# Longest body excerpt written to the log for an error response
LOG_BODY_LIMIT = 512

# ---------- Common helpers ----------


def _parse_retry_after(headers: Mapping[str, str], now: float) -> float:
    ra = None
    for k, v in headers.items():
        if k.lower() == "retry-after":
            ra = v
            break
    if ra is None:
        return 0.0
    try:
        return max(0.0, float(ra))
    except ValueError:
        # Try HTTP-date per RFC7231
        import email.utils as eut  # noqa: PLC0415

        try:
            ts = eut.parsedate_to_datetime(ra)
        except (TypeError, ValueError):
            return 0.0
        # Round up to the next whole second so short delays are not truncated
        return max(0.0, float(math.ceil(ts.timestamp() - now)))


def _flatten(body: bytes) -> str:
    text = body[:LOG_BODY_LIMIT].decode("utf-8", errors="replace")
    return text.replace("\n", "").replace("\t", "")


class _Deadline:
    def __init__(self, timeout: Union[float, None], clock: Callable[[], float]):
        self._clock = clock
        self._expires = None if timeout is None else clock() + timeout

    def remaining(self) -> Union[float, None]:
        if self._expires is None:
            return None
        return max(0.0, self._expires - self._clock())

    def expired(self) -> bool:
        return self._expires is not None and self._clock() >= self._expires


# ---------- Base executor (shared logic; waiting handled by subclasses) ----------


class _RetryLogic:
    def __init__(
        self,
        transport,
        limiter,
        policy: RetryPolicy,
        attempt_timeout: Union[float, None] = None,
        respect_retry_after: bool = False,
        clock: Callable[[], float] = time.monotonic,
        logger: Union[logging.Logger, None] = None,
    ):
        """Initialize an executor.

        Args:
            transport: adapter with a `send(request, timeout)` method
            limiter: rate limiter every attempt waits on
            policy (RetryPolicy): retry budget and backoff bounds
            attempt_timeout (float | None): per-attempt network timeout, seconds
            respect_retry_after (bool): let a server Retry-After stretch the backoff
            clock (Callable[[], float]): monotonic time source for deadlines
            logger (logging.Logger | None): defaults to the "turnspit" logger
        """
        self.transport = transport
        self.limiter = limiter
        self.policy = policy
        self.attempt_timeout = attempt_timeout
        self.respect_retry_after = respect_retry_after
        self._clock = clock
        self._logger = logger or logging.getLogger("turnspit")

    def _backoff(self, attempt: int, last: Union[Response, None]) -> float:
        delay = self.policy.delay_for(attempt)
        if self.respect_retry_after and last is not None:
            retry_after = _parse_retry_after(last.headers, time.time())
            if retry_after > delay:
                delay = min(retry_after, self.policy.max_retry_delay)
        return delay

    def _timeout_for(self, deadline: _Deadline) -> Union[float, None]:
        remaining = deadline.remaining()
        if remaining is None:
            return self.attempt_timeout
        if self.attempt_timeout is None:
            return remaining
        return min(self.attempt_timeout, remaining)

    def _check_deadline(self, deadline: _Deadline, operation: str) -> None:
        if deadline.expired():
            raise RequestCancelled("deadline exceeded", operation=operation)

    def _judge(self, operation: str, attempt: int, response: Response) -> bool:
        """Return True on success, False to retry; raise when the call is over."""
        verdict = classify(response.status_code)
        if verdict is Verdict.SUCCESS:
            return True
        error = error_for_status(operation, response, attempts=attempt + 1)
        if verdict is Verdict.FATAL or attempt >= self.policy.max_retries:
            raise error
        self._logger.warning(
            f"op={operation} attempt={attempt + 1} got an error response "
            f"{response.status_code}: {_flatten(response.body)}"
        )
        return False

    def _exhausted(self, operation: str, cause: TransportError) -> TransportError:
        return TransportError(
            cause.message, operation=operation, attempts=self.policy.max_retries + 1
        )


# ---------- Sync executor ----------


class RetryExecutor(_RetryLogic):
    def __init__(
        self,
        transport,
        limiter: RateLimiter,
        policy: RetryPolicy,
        sleep: Callable[[float], None] = time.sleep,
        **kwargs,
    ):
        super().__init__(transport, limiter, policy, **kwargs)
        self._sleep = sleep

    def execute(
        self,
        request: PreparedRequest,
        operation: Union[str, None] = None,
        cancel: Union[threading.Event, None] = None,
        timeout: Union[float, None] = None,
    ) -> Response:
        """Send `request` until it succeeds, fails fatally, or the retry budget is spent.

        Args:
            request (PreparedRequest): fully resolved request
            operation (str | None): name carried by every raised error
            cancel (threading.Event | None): aborts limiter waits and backoff sleeps and
                stops retries once set. A request already on the wire is not
                interrupted; it is bounded only by the attempt timeout and `timeout`.
            timeout (float | None): overall deadline for the call, seconds

        Raises:
            RequestCancelled: cancel was set or the deadline elapsed
            TransportError: no response on the final attempt
            HTTPStatusError: fatal status, or retryable status on the final attempt
        """
        operation = operation or f"{request.method} {request.url}"
        deadline = _Deadline(timeout, self._clock)
        last_response: Union[Response, None] = None
        last_error: Union[TransportError, None] = None
        for attempt in range(self.policy.max_retries + 1):
            if attempt > 0:
                delay = self._backoff(attempt, last_response)
                self._pause(delay, attempt, operation, cancel, deadline)
            self._check(operation, cancel, deadline)
            try:
                self.limiter.wait(cancel=cancel, timeout=deadline.remaining())
            except RequestCancelled as e:
                raise RequestCancelled(e.message, operation=operation) from e

            self._logger.debug(f"req start op={operation} attempt={attempt + 1}")
            try:
                response = self.transport.send(request, timeout=self._timeout_for(deadline))
            except TransportError as e:
                self._check(operation, cancel, deadline, cause=e)
                self._logger.warning(
                    f"op={operation} attempt={attempt + 1} error performing request: {e.message}"
                )
                last_response, last_error = None, e
                continue
            self._logger.debug(f"req done op={operation} status={response.status_code}")

            if self._judge(operation, attempt, response):
                return response
            last_response = response

        raise self._exhausted(operation, last_error) from last_error

    def _check(self, operation, cancel, deadline, cause=None):
        if cancel is not None and cancel.is_set():
            raise RequestCancelled("cancelled", operation=operation) from cause
        if deadline.expired():
            raise RequestCancelled("deadline exceeded", operation=operation) from cause

    def _pause(self, delay, attempt, operation, cancel, deadline):
        remaining = deadline.remaining()
        if remaining is not None and delay > remaining:
            raise RequestCancelled("deadline exceeded before retry", operation=operation)
        self._logger.warning(
            f"op={operation} sleeping {delay:.2f}s before retry attempt number {attempt}"
        )
        if cancel is None:
            self._sleep(delay)
        elif cancel.wait(delay):
            raise RequestCancelled("cancelled", operation=operation)


# ---------- Async executor ----------


class AsyncRetryExecutor(_RetryLogic):
    def __init__(
        self,
        transport,
        limiter: AsyncRateLimiter,
        policy: RetryPolicy,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        **kwargs,
    ):
        super().__init__(transport, limiter, policy, **kwargs)
        self._sleep = sleep

    async def execute(
        self,
        request: PreparedRequest,
        operation: Union[str, None] = None,
        timeout: Union[float, None] = None,
    ) -> Response:
        """Async twin of RetryExecutor.execute; cancel the task to abort the call."""
        operation = operation or f"{request.method} {request.url}"
        deadline = _Deadline(timeout, self._clock)
        last_response: Union[Response, None] = None
        last_error: Union[TransportError, None] = None
        for attempt in range(self.policy.max_retries + 1):
            if attempt > 0:
                delay = self._backoff(attempt, last_response)
                remaining = deadline.remaining()
                if remaining is not None and delay > remaining:
                    raise RequestCancelled("deadline exceeded before retry", operation=operation)
                self._logger.warning(
                    f"op={operation} sleeping {delay:.2f}s before retry attempt number {attempt}"
                )
                await self._sleep(delay)
            self._check_deadline(deadline, operation)
            try:
                await self.limiter.wait(timeout=deadline.remaining())
            except RequestCancelled as e:
                raise RequestCancelled(e.message, operation=operation) from e

            self._logger.debug(f"req start op={operation} attempt={attempt + 1}")
            try:
                response = await self.transport.send(request, timeout=self._timeout_for(deadline))
            except TransportError as e:
                if deadline.expired():
                    raise RequestCancelled("deadline exceeded", operation=operation) from e
                self._logger.warning(
                    f"op={operation} attempt={attempt + 1} error performing request: {e.message}"
                )
                last_response, last_error = None, e
                continue
            self._logger.debug(f"req done op={operation} status={response.status_code}")

            if self._judge(operation, attempt, response):
                return response
            last_response = response

        raise self._exhausted(operation, last_error) from last_error

import enum

from .errors import (
    AuthError,
    ClientError,
    HTTPStatusError,
    RateLimitedError,
    ServiceFailureError,
)
from .types import Response

TOO_MANY_REQUESTS = 429
# Origin unreachable family: connection timed out / origin unreachable / timeout occurred
ORIGIN_UNREACHABLE = frozenset({522, 523, 524})
SERVICE_FAILURE = frozenset({502, 503, 504}) | ORIGIN_UNREACHABLE


class Verdict(str, enum.Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


def classify(status_code: int | None) -> Verdict:
    """Judge one attempt. `None` means the transport produced no response at all."""
    if status_code is None:
        return Verdict.RETRYABLE
    if 200 <= status_code < 300:  # noqa: PLR2004
        return Verdict.SUCCESS
    if status_code in (401, 403):  # noqa: PLR2004
        return Verdict.FATAL
    if status_code == TOO_MANY_REQUESTS or 500 <= status_code < 600:  # noqa: PLR2004
        return Verdict.RETRYABLE
    return Verdict.FATAL


def error_for_status(operation: str, response: Response, attempts: int = 1) -> HTTPStatusError:
    """Build the exception matching a non-success response."""
    status = response.status_code
    kwargs = dict(
        status_code=status,
        body=response.body,
        headers=response.headers,
        operation=operation,
        attempts=attempts,
    )
    if status == 401:  # noqa: PLR2004
        return AuthError("invalid credentials", **kwargs)
    if status == 403:  # noqa: PLR2004
        return AuthError("insufficient permissions", **kwargs)
    if status == TOO_MANY_REQUESTS:
        return RateLimitedError("rate limited", **kwargs)
    if status in SERVICE_FAILURE:
        return ServiceFailureError("service failure", **kwargs)
    if 500 <= status < 600:  # noqa: PLR2004
        return ServiceFailureError(f"content {response.text!r}", **kwargs)
    return ClientError(f"content {response.text!r}", **kwargs)

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ResponseInfo:
    """One entry of an envelope's `errors` or `messages` list."""

    code: int = 0
    message: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResponseInfo":
        try:
            code = int(data.get("code") or 0)
        except (TypeError, ValueError):
            code = 0
        return cls(code=code, message=str(data.get("message") or ""))


class TurnspitError(Exception):
    """Base class for every error raised by turnspit.

    `operation` names the call that failed (e.g. "GET /zones") so callers can
    log or branch without parsing the message.
    """

    def __init__(self, message: str, *, operation: str | None = None):
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}" if operation else message)


class ConfigurationError(TurnspitError, ValueError):
    """Invalid client options or credentials, raised before any request is sent."""


class RequestCancelled(TurnspitError):
    """The caller's cancel event fired or the call deadline elapsed."""


class TransportError(TurnspitError):
    """No response was obtained (DNS, connect, TLS, timeout)."""

    def __init__(self, message: str, *, operation: str | None = None, attempts: int = 1):
        super().__init__(message, operation=operation)
        self.attempts = attempts


class DecodeError(TurnspitError):
    """The HTTP exchange succeeded but the body did not have the expected shape."""

    def __init__(self, message: str, *, operation: str | None = None, body: bytes = b""):
        super().__init__(message, operation=operation)
        self.body = body


class HTTPStatusError(TurnspitError):
    """A non-2xx response. The raw body is kept apart from the message."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: bytes = b"",
        headers: Mapping[str, str] | None = None,
        operation: str | None = None,
        attempts: int = 1,
    ):
        super().__init__(f"HTTP status {status_code}: {message}", operation=operation)
        self.status_code = status_code
        self.body = body
        self.headers = dict(headers or {})
        self.attempts = attempts

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def api_errors(self) -> list[ResponseInfo]:
        """Entries of the `errors` list of a JSON error envelope, if the body is one."""
        try:
            payload = json.loads(self.body)
        except ValueError:
            return []
        if not isinstance(payload, dict) or not isinstance(payload.get("errors"), list):
            return []
        return [ResponseInfo.from_dict(e) for e in payload["errors"] if isinstance(e, dict)]


class AuthError(HTTPStatusError):
    """401/403: never retried."""


class ServiceFailureError(HTTPStatusError):
    """5xx responses that survived the whole retry budget."""


class RateLimitedError(ServiceFailureError):
    """429 responses that survived the whole retry budget."""


class ClientError(HTTPStatusError):
    """Any other non-2xx status; never retried."""

import enum
import json
import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Union

from .errors import ConfigurationError


class AuthMode(enum.IntFlag):
    """Bitmask of authentication schemes; every set bit contributes its headers."""

    KEY_EMAIL = 1
    USER_SERVICE = 2
    TOKEN = 4

    @classmethod
    def infer(cls, credentials: "Credentials") -> "AuthMode":
        if credentials.api_token:
            return cls.TOKEN
        if credentials.api_key and credentials.api_email:
            return cls.KEY_EMAIL
        if credentials.user_service_key:
            return cls.USER_SERVICE
        raise ConfigurationError("no usable credentials supplied")


@dataclass(frozen=True)
class Credentials:
    api_key: str | None = field(default=None, repr=False)
    api_email: str | None = None
    user_service_key: str | None = field(default=None, repr=False)
    api_token: str | None = field(default=None, repr=False)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    # seconds
    min_retry_delay: float = 1.0
    max_retry_delay: float = 30.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ConfigurationError("max_retries must be >= 0")
        if self.min_retry_delay < 0:
            raise ConfigurationError("min_retry_delay must be >= 0")
        if self.min_retry_delay > self.max_retry_delay:
            raise ConfigurationError("min_retry_delay must be <= max_retry_delay")

    def delay_for(self, attempt: int) -> float:
        """Backoff before attempt `attempt` (0-based); the first attempt never waits."""
        if attempt <= 0:
            return 0.0
        return min(self.min_retry_delay * (2.0 ** (attempt - 1)), self.max_retry_delay)


@dataclass(frozen=True)
class RateLimit:
    # 4 rps equates to the default API quota of 1200 requests per 5 minutes
    requests_per_second: float = 4.0
    burst: int = 1

    def __post_init__(self):
        if math.isnan(self.requests_per_second) or self.requests_per_second <= 0:
            raise ConfigurationError("requests_per_second must be > 0")
        if self.burst < 1:
            raise ConfigurationError("burst must be >= 1")


@dataclass(frozen=True)
class Request:
    method: str
    path: str
    body: Any = None
    params: Mapping[str, Any] | None = None
    headers: Mapping[str, str] | None = None

    def with_params(self, **params) -> "Request":
        return replace(self, params={**(self.params or {}), **params})

    def describe(self) -> str:
        return f"{self.method.upper()} {self.path}"

    def encoded_body(self) -> Union[bytes, None]:
        if self.body is None:
            return None
        if isinstance(self.body, bytes):
            return self.body
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return json.dumps(self.body).encode("utf-8")


@dataclass(frozen=True)
class PreparedRequest:
    """A Request resolved against a client: absolute URL and final headers."""

    method: str
    url: str
    headers: dict[str, str]
    body: bytes | None = None
    params: dict[str, Any] | None = None


@dataclass(frozen=True)
class Response:
    status_code: int
    body: bytes = b""
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)


@dataclass(frozen=True)
class ResultInfo:
    page: int = 0
    per_page: int = 0
    total_pages: int = 0
    count: int = 0
    total: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResultInfo":
        def _int(name: str) -> int:
            value = data.get(name)
            return int(value) if value is not None else 0

        return cls(
            page=_int("page"),
            per_page=_int("per_page"),
            total_pages=_int("total_pages"),
            count=_int("count"),
            total=_int("total_count"),
        )

    def is_last_page(self, per_page: int) -> bool:
        """True when no further page should be requested.

        `total_pages` decides when the server reports it; otherwise a page
        shorter than the requested size is the last one.
        """
        if self.total_pages > 0:
            return self.page >= self.total_pages
        return self.count < (self.per_page or per_page)

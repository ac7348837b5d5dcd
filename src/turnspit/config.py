import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

from .auth import validate_credentials
from .errors import ConfigurationError
from .types import AuthMode, Credentials, RateLimit, RetryPolicy

DEFAULT_BASE_URL = "https://api.cloudflare.com/client/v4"
DEFAULT_TIMEOUT = 30.0

_RETRY_OPTIONS = {"max_retries", "min_retry_delay", "max_retry_delay"}
_RATE_OPTIONS = {"requests_per_second", "burst"}
_PLAIN_OPTIONS = {"base_url", "headers", "user_agent", "timeout", "respect_retry_after"}
KNOWN_OPTIONS = frozenset(
    _RETRY_OPTIONS | _RATE_OPTIONS | _PLAIN_OPTIONS | {"retry_config", "rate_limit"}
)


@dataclass(frozen=True)
class ClientConfig:
    """Everything a client needs, validated once before any request is sent."""

    credentials: Credentials
    auth_mode: AuthMode
    base_url: str = DEFAULT_BASE_URL
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    rate_limit: RateLimit = field(default_factory=RateLimit)
    headers: Mapping[str, str] = field(default_factory=dict)
    user_agent: Union[str, None] = None
    # per-attempt network timeout, seconds
    timeout: Union[float, None] = DEFAULT_TIMEOUT
    respect_retry_after: bool = False

    def __post_init__(self):
        validate_credentials(self.credentials, self.auth_mode)
        if not self.base_url:
            raise ConfigurationError("base_url must not be empty")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError("timeout must be > 0 or None")
        object.__setattr__(self, "auth_mode", AuthMode(self.auth_mode))
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers or {})))

    @classmethod
    def build(
        cls,
        credentials: Credentials,
        auth_mode: Union[int, None] = None,
        **kwargs,
    ) -> "ClientConfig":
        """Build a config from keyword options, applying defaults.

        Args:
            credentials (Credentials): key material
            auth_mode (int | None): AuthMode bits; inferred from credentials if None

            kwargs keywords:
            - retry_config: RetryPolicy object (or the individual fields below)
            - max_retries: int
            - min_retry_delay: float seconds
            - max_retry_delay: float seconds
            - rate_limit: RateLimit object (or the individual fields below)
            - requests_per_second: float
            - burst: int
            - base_url, headers, user_agent, timeout, respect_retry_after

        Raises:
            ConfigurationError: unknown option, invalid value or unusable credentials
        """
        if auth_mode is None:
            auth_mode = AuthMode.infer(credentials)
        return cls(credentials=credentials, auth_mode=auth_mode, **_resolve(None, kwargs))

    def replace(self, **kwargs) -> "ClientConfig":
        """Return a new validated config with `kwargs` applied on top of this one."""
        credentials = kwargs.pop("credentials", self.credentials)
        auth_mode = kwargs.pop("auth_mode", self.auth_mode)
        return ClientConfig(credentials=credentials, auth_mode=auth_mode, **_resolve(self, kwargs))


def _resolve(base: Union[ClientConfig, None], kwargs: dict[str, Any]) -> dict[str, Any]:
    unknown = set(kwargs) - KNOWN_OPTIONS
    if unknown:
        raise ConfigurationError(f"unknown client options: {', '.join(sorted(unknown))}")

    # Prefer config objects, then individual fields over the base (or defaults)
    retry = kwargs.get("retry_config") or (base.retry if base else RetryPolicy())
    retry_fields = {k: kwargs[k] for k in _RETRY_OPTIONS if k in kwargs}
    if retry_fields:
        retry = dataclasses.replace(retry, **retry_fields)

    rate = kwargs.get("rate_limit") or (base.rate_limit if base else RateLimit())
    rate_fields = {k: kwargs[k] for k in _RATE_OPTIONS if k in kwargs}
    if rate_fields:
        rate = dataclasses.replace(rate, **rate_fields)

    resolved: dict[str, Any] = {"retry": retry, "rate_limit": rate}
    for name in _PLAIN_OPTIONS:
        if name in kwargs:
            resolved[name] = kwargs[name]
        elif base is not None:
            resolved[name] = getattr(base, name)
    return resolved

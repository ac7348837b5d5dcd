from .adapters import AiohttpTransport, HttpxTransport, RequestsTransport
from .auth import auth_headers, validate_credentials
from .classify import Verdict, classify, error_for_status
from .client import AsyncClient, Client
from .config import ClientConfig
from .env import load_credentials_from_env, load_options_from_env
from .errors import (
    AuthError,
    ClientError,
    ConfigurationError,
    DecodeError,
    HTTPStatusError,
    RateLimitedError,
    RequestCancelled,
    ResponseInfo,
    ServiceFailureError,
    TransportError,
    TurnspitError,
)
from .executor import AsyncRetryExecutor, RetryExecutor
from .limiter import AsyncRateLimiter, RateLimiter
from .pagination import Page
from .types import (
    AuthMode,
    Credentials,
    PreparedRequest,
    RateLimit,
    Request,
    Response,
    ResultInfo,
    RetryPolicy,
)

__all__ = [
    "Client",
    "AsyncClient",
    "ClientConfig",
    "Credentials",
    "AuthMode",
    "RetryPolicy",
    "RateLimit",
    "Request",
    "PreparedRequest",
    "Response",
    "ResultInfo",
    "ResponseInfo",
    "Page",
    "auth_headers",
    "validate_credentials",
    "RateLimiter",
    "AsyncRateLimiter",
    "Verdict",
    "classify",
    "error_for_status",
    "RetryExecutor",
    "AsyncRetryExecutor",
    "RequestsTransport",
    "HttpxTransport",
    "AiohttpTransport",
    "load_credentials_from_env",
    "load_options_from_env",
    "TurnspitError",
    "ConfigurationError",
    "RequestCancelled",
    "TransportError",
    "DecodeError",
    "HTTPStatusError",
    "AuthError",
    "ServiceFailureError",
    "RateLimitedError",
    "ClientError",
]

import logging
import threading
import time
from collections.abc import AsyncIterator, Iterator
from typing import Any, Union

from . import pagination
from .adapters import HttpxTransport, RequestsTransport
from .auth import auth_headers
from .config import ClientConfig
from .env import DEFAULT_PREFIX, load_credentials_from_env, load_options_from_env
from .errors import ConfigurationError, DecodeError
from .executor import AsyncRetryExecutor, RetryExecutor
from .limiter import AsyncRateLimiter, RateLimiter
from .types import AuthMode, Credentials, PreparedRequest, Request, Response

# constructor keywords that belong to the client rather than its ClientConfig
_CLIENT_KWARGS = {"transport", "log_level", "clock", "sleep"}


def _set_header(headers: dict[str, str], name: str, value: str) -> None:
    # header names are case-insensitive; drop any other spelling first
    for k in [k for k in headers if k.lower() == name.lower()]:
        del headers[k]
    headers[name] = value


def _has_header(headers: dict[str, str], name: str) -> bool:
    return any(k.lower() == name.lower() for k in headers)


# ---------- Shared client logic (I/O handled by subclasses) ----------


class _BaseClient:
    def __init__(self, config: ClientConfig, log_level: Union[int, None] = None):
        self.config = config
        self._logger = logging.getLogger("turnspit")
        if log_level is not None:
            self._logger.setLevel(log_level)

    def prepare(self, request: Request) -> PreparedRequest:
        """Resolve a Request against this client's base URL, headers and credentials.

        Order: client headers, request headers, User-Agent (unless already given),
        auth headers (always win), then Content-Type if still missing.
        """
        cfg = self.config
        headers = {**cfg.headers}
        for name, value in (request.headers or {}).items():
            _set_header(headers, name, value)
        if cfg.user_agent and not _has_header(headers, "User-Agent"):
            headers["User-Agent"] = cfg.user_agent
        for name, value in auth_headers(cfg.credentials, cfg.auth_mode).items():
            _set_header(headers, name, value)
        if not _has_header(headers, "Content-Type"):
            headers["Content-Type"] = "application/json"
        path = request.path if request.path.startswith("/") else f"/{request.path}"
        return PreparedRequest(
            method=request.method.upper(),
            url=f"{cfg.base_url}{path}",
            headers=headers,
            body=request.encoded_body(),
            params=dict(request.params) if request.params else None,
        )

    def _result(self, operation: str, response: Response) -> Any:
        # standard envelope: {"success": ..., "errors": [...], "messages": [...], "result": ...}
        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(
                f"error unmarshalling the JSON response: {e}",
                operation=operation,
                body=response.body,
            ) from e
        if not isinstance(payload, dict):
            raise DecodeError("expected a JSON object", operation=operation, body=response.body)
        return payload.get("result")

    # ---------- constructors ----------
    @classmethod
    def with_api_token(cls, token: str, **kwargs):
        if not token:
            raise ConfigurationError("empty API token")
        return cls._from_credentials(Credentials(api_token=token), AuthMode.TOKEN, kwargs)

    @classmethod
    def with_api_key(cls, key: str, email: str, **kwargs):
        if not key or not email:
            raise ConfigurationError("invalid credentials: key & email must not be empty")
        return cls._from_credentials(
            Credentials(api_key=key, api_email=email), AuthMode.KEY_EMAIL, kwargs
        )

    @classmethod
    def with_user_service_key(cls, key: str, **kwargs):
        if not key:
            raise ConfigurationError("invalid credentials: user service key must not be empty")
        return cls._from_credentials(
            Credentials(user_service_key=key), AuthMode.USER_SERVICE, kwargs
        )

    @classmethod
    def from_env(
        cls,
        prefix: str = DEFAULT_PREFIX,
        env_path: Union[str, None] = None,
        **kwargs,
    ):
        """Create a client from <prefix>* environment variables (and an optional .env file).

        Explicit keyword options override values found in the environment.
        """
        credentials = load_credentials_from_env(prefix=prefix, env_path=env_path)
        options = {**load_options_from_env(prefix=prefix, env_path=env_path), **kwargs}
        auth_mode = options.pop("auth_mode", None)
        return cls._from_credentials(credentials, auth_mode, options)

    @classmethod
    def _from_credentials(cls, credentials, auth_mode, kwargs):
        client_kwargs = {k: kwargs.pop(k) for k in list(kwargs) if k in _CLIENT_KWARGS}
        config = ClientConfig.build(credentials, auth_mode, **kwargs)
        return cls(config, **client_kwargs)


# ---------- Sync client (requests) ----------


class Client(_BaseClient):
    def __init__(
        self,
        config: ClientConfig,
        transport=None,
        log_level: Union[int, None] = None,
        clock=time.monotonic,
        sleep=time.sleep,
    ):
        """Initialize a Client.

        Args:
            config (ClientConfig): validated configuration
            transport: object with `send(prepared, timeout)`; RequestsTransport by default
            log_level (int | None): level for the "turnspit" logger
            clock: monotonic time source shared by the limiter and deadlines
            sleep: blocking sleep used for backoff and rate limiting
        """
        super().__init__(config, log_level)
        self._own_transport = transport is None
        self.transport = transport if transport is not None else RequestsTransport()
        self._clock = clock
        self._sleep = sleep
        self._limiter = RateLimiter.from_config(config.rate_limit, clock=clock, sleep=sleep)
        self._executor = RetryExecutor(
            self.transport,
            self._limiter,
            config.retry,
            sleep=sleep,
            attempt_timeout=config.timeout,
            respect_retry_after=config.respect_retry_after,
            clock=clock,
            logger=self._logger,
        )

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def close(self):
        if self._own_transport:
            self.transport.close()

    def reconfigure(self, **kwargs) -> "Client":
        """Return a new client with options applied; this client is left untouched.

        The new client shares the transport but gets a fresh rate limiter.
        """
        return Client(
            self.config.replace(**kwargs),
            transport=self.transport,
            clock=self._clock,
            sleep=self._sleep,
        )

    def execute(
        self,
        request: Request,
        *,
        operation: Union[str, None] = None,
        cancel: Union[threading.Event, None] = None,
        timeout: Union[float, None] = None,
    ) -> Response:
        """Send `request` with rate limiting and retries; return the successful response."""
        return self._executor.execute(
            self.prepare(request),
            operation or request.describe(),
            cancel=cancel,
            timeout=timeout,
        )

    def pages(
        self,
        request: Request,
        *,
        per_page: int = pagination.DEFAULT_PER_PAGE,
        operation: Union[str, None] = None,
        cancel: Union[threading.Event, None] = None,
        timeout: Union[float, None] = None,
        items_key: str = pagination.ITEMS_KEY,
        info_key: str = pagination.INFO_KEY,
    ) -> Iterator[pagination.Page]:
        """Lazily fetch every page of a list endpoint. `timeout` applies to each page."""

        def run(req: Request, op: str) -> Response:
            return self.execute(req, operation=op, cancel=cancel, timeout=timeout)

        return pagination.iter_pages(
            run,
            request,
            per_page=per_page,
            operation=operation,
            items_key=items_key,
            info_key=info_key,
        )

    def paginate(self, request: Request, **kwargs) -> Iterator[Any]:
        """Lazily yield the items of every page, in page order."""
        for page in self.pages(request, **kwargs):
            yield from page.items

    def raw(self, method: str, path: str, body: Any = None, **kwargs) -> Any:
        """Execute and return the envelope's `result` as untouched JSON."""
        request = Request(method, path, body)
        operation = kwargs.pop("operation", None) or request.describe()
        response = self.execute(request, operation=operation, **kwargs)
        return self._result(operation, response)


# ---------- Async client (httpx / aiohttp) ----------


class AsyncClient(_BaseClient):
    def __init__(
        self,
        config: ClientConfig,
        transport=None,
        log_level: Union[int, None] = None,
        clock=time.monotonic,
        sleep=None,
    ):
        super().__init__(config, log_level)
        self._own_transport = transport is None
        self.transport = transport if transport is not None else HttpxTransport()
        self._clock = clock
        self._sleep = sleep
        sleep_kw = {} if sleep is None else {"sleep": sleep}
        self._limiter = AsyncRateLimiter.from_config(config.rate_limit, clock=clock, **sleep_kw)
        self._executor = AsyncRetryExecutor(
            self.transport,
            self._limiter,
            config.retry,
            attempt_timeout=config.timeout,
            respect_retry_after=config.respect_retry_after,
            clock=clock,
            logger=self._logger,
            **sleep_kw,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False

    async def aclose(self):
        if self._own_transport:
            await self.transport.aclose()

    def reconfigure(self, **kwargs) -> "AsyncClient":
        return AsyncClient(
            self.config.replace(**kwargs),
            transport=self.transport,
            clock=self._clock,
            sleep=self._sleep,
        )

    async def execute(
        self,
        request: Request,
        *,
        operation: Union[str, None] = None,
        timeout: Union[float, None] = None,
    ) -> Response:
        return await self._executor.execute(
            self.prepare(request),
            operation or request.describe(),
            timeout=timeout,
        )

    def pages(
        self,
        request: Request,
        *,
        per_page: int = pagination.DEFAULT_PER_PAGE,
        operation: Union[str, None] = None,
        timeout: Union[float, None] = None,
        items_key: str = pagination.ITEMS_KEY,
        info_key: str = pagination.INFO_KEY,
    ) -> AsyncIterator[pagination.Page]:
        async def run(req: Request, op: str) -> Response:
            return await self.execute(req, operation=op, timeout=timeout)

        return pagination.aiter_pages(
            run,
            request,
            per_page=per_page,
            operation=operation,
            items_key=items_key,
            info_key=info_key,
        )

    async def paginate(self, request: Request, **kwargs) -> AsyncIterator[Any]:
        async for page in self.pages(request, **kwargs):
            for item in page.items:
                yield item

    async def raw(self, method: str, path: str, body: Any = None, **kwargs) -> Any:
        request = Request(method, path, body)
        operation = kwargs.pop("operation", None) or request.describe()
        response = await self.execute(request, operation=operation, **kwargs)
        return self._result(operation, response)

import asyncio
import contextlib
from typing import Union

from .errors import TransportError
from .types import PreparedRequest, Response

# Transports send exactly one attempt. Each one reads the whole body and releases
# the connection before returning so the pool can reuse it for the next attempt.


# ---------- requests (sync) ----------
class RequestsTransport:
    def __init__(self, session=None):
        if session is None:
            import requests  # noqa: PLC0415

            self.session = requests.Session()
            self._own_session = True
        else:
            self.session = session
            self._own_session = False

    def send(self, request: PreparedRequest, timeout: Union[float, None] = None) -> Response:
        import requests  # noqa: PLC0415

        try:
            resp = self.session.request(
                request.method,
                request.url,
                headers=request.headers,
                params=request.params,
                data=request.body,
                timeout=timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"HTTP request failed: {e}") from e
        try:
            body = resp.content
        except requests.RequestException as e:
            raise TransportError(f"could not read response body: {e}") from e
        finally:
            with contextlib.suppress(Exception):
                resp.close()
        return Response(resp.status_code, body or b"", dict(resp.headers))

    def close(self):
        if self._own_session:
            self.session.close()


# ---------- httpx (async) ----------
class HttpxTransport:
    def __init__(self, client=None):
        self.client = client
        self._own_client = client is None

    async def send(self, request: PreparedRequest, timeout: Union[float, None] = None) -> Response:
        import httpx  # noqa: PLC0415

        if self.client is None:
            self.client = httpx.AsyncClient()
        kwargs = {} if timeout is None else {"timeout": timeout}
        try:
            resp = await self.client.request(
                request.method,
                request.url,
                headers=request.headers,
                params=request.params,
                content=request.body,
                **kwargs,
            )
        except httpx.RequestError as e:
            raise TransportError(f"HTTP request failed: {e}") from e
        try:
            body = resp.content
        finally:
            await resp.aclose()
        return Response(resp.status_code, body, dict(resp.headers))

    async def aclose(self):
        if self._own_client and self.client is not None:
            await self.client.aclose()
            self.client = None


# ---------- aiohttp (async) ----------
class AiohttpTransport:
    def __init__(self, session=None):
        self.session = session
        self._own_session = session is None

    async def send(self, request: PreparedRequest, timeout: Union[float, None] = None) -> Response:
        import aiohttp  # noqa: PLC0415

        if self.session is None:
            self.session = aiohttp.ClientSession()
        kwargs = {}
        if timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)
        try:
            async with self.session.request(
                request.method,
                request.url,
                headers=request.headers,
                params=request.params,
                data=request.body,
                **kwargs,
            ) as resp:
                body = await resp.read()
                return Response(resp.status, body, dict(resp.headers))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"HTTP request failed: {e!r}") from e

    async def aclose(self):
        if self._own_session and self.session is not None:
            await self.session.close()
            self.session = None

import httpx
import pytest

from turnspit import HttpxTransport, PreparedRequest, TransportError

REQ = PreparedRequest(
    "GET",
    "https://api.example.com/zones",
    {"Authorization": "Bearer T"},
    None,
    {"page": 2, "per_page": 50},
)


@pytest.mark.asyncio
async def test_httpx_send_reads_body():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(503, content=b"busy", headers={"Retry-After": "3"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as async_client:
        transport = HttpxTransport(client=async_client)
        out = await transport.send(REQ, timeout=5.0)
        # injected client stays open
        await transport.aclose()
        assert not async_client.is_closed

    assert out.status_code == 503  # noqa: PLR2004
    assert out.body == b"busy"
    assert out.headers["retry-after"] == "3"
    assert seen[0].headers["Authorization"] == "Bearer T"
    assert seen[0].url.params["page"] == "2"


@pytest.mark.asyncio
async def test_httpx_connect_error_maps_to_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as async_client:
        with pytest.raises(TransportError) as ei:
            await HttpxTransport(client=async_client).send(REQ)
    assert isinstance(ei.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_httpx_redirect_loop_maps_to_transport_error():
    def handler(request):
        raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as async_client:
        with pytest.raises(TransportError) as ei:
            await HttpxTransport(client=async_client).send(REQ)
    assert isinstance(ei.value.__cause__, httpx.TooManyRedirects)

import pytest

from turnspit import AsyncClient, Client


def test_construct_sync():
    with Client.with_api_key("k1", "user@example.com") as client:
        assert client.config.base_url == "https://api.cloudflare.com/client/v4"


@pytest.mark.asyncio
async def test_construct_async():
    async with AsyncClient.with_api_token("t1") as client:
        assert client.config.rate_limit.requests_per_second == 4.0  # noqa: PLR2004

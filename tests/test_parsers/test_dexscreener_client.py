"""Tests for the DexScreener batch token endpoint."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from src.parsers.dexscreener.client import DexScreenerClient


def _resp(status: int, payload=None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.headers = {}
    resp.json = lambda: payload
    if status >= 400:
        request = httpx.Request("GET", "https://api.dexscreener.com/tokens")
        resp.raise_for_status = MagicMock(side_effect=httpx.HTTPStatusError(
            f"HTTP {status}", request=request, response=httpx.Response(status, request=request)
        ))
    return resp


@pytest.mark.asyncio
async def test_batch_parsed_and_joined():
    client = DexScreenerClient(max_rps=1000)
    payload = [{
        "chainId": "solana",
        "pairAddress": "Pair1",
        "baseToken": {"address": "MintA", "name": "Alpha", "symbol": "ALP"},
        "liquidity": {"usd": 1234.5},
        "volume": {"h24": 99},
        "pairCreatedAt": 1_700_000_000_000,
        "unknownField": "ignored",
    }]
    with patch.object(client, "_client") as mock_http:
        mock_http.get = AsyncMock(return_value=_resp(200, payload))
        pairs = await client.get_tokens_batch(["MintA", "MintB"])
        path = mock_http.get.await_args.args[0]

    assert path == "/tokens/v1/solana/MintA,MintB"
    assert pairs[0].baseToken.symbol == "ALP"
    assert float(pairs[0].liquidity.usd) == 1234.5
    await client.close()


@pytest.mark.asyncio
async def test_batch_capped_at_thirty():
    client = DexScreenerClient(max_rps=1000)
    with patch.object(client, "_client") as mock_http:
        mock_http.get = AsyncMock(return_value=_resp(200, []))
        await client.get_tokens_batch([f"M{i}" for i in range(40)])
        path = mock_http.get.await_args.args[0]
    assert len(path.rsplit("/", 1)[1].split(",")) == 30
    await client.close()


@pytest.mark.asyncio
async def test_empty_input_skips_request():
    client = DexScreenerClient(max_rps=1000)
    with patch.object(client, "_client") as mock_http:
        mock_http.get = AsyncMock()
        assert await client.get_tokens_batch([]) == []
        mock_http.get.assert_not_awaited()
    await client.close()


@pytest.mark.asyncio
async def test_http_error_propagates():
    client = DexScreenerClient(max_rps=1000)
    with patch.object(client, "_client") as mock_http:
        mock_http.get = AsyncMock(return_value=_resp(500))
        with pytest.raises(httpx.HTTPStatusError):
            await client.get_tokens_batch(["MintA"])
    await client.close()


@pytest.mark.asyncio
async def test_rate_limit_retried():
    client = DexScreenerClient(max_rps=1000)
    with (
        patch.object(client, "_client") as mock_http,
        patch("src.parsers.dexscreener.client.asyncio.sleep", new=AsyncMock()),
    ):
        mock_http.get = AsyncMock(side_effect=[_resp(429), _resp(200, [])])
        assert await client.get_tokens_batch(["MintA"]) == []
        assert mock_http.get.await_count == 2
    await client.close()

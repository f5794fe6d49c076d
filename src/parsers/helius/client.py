"""Helius API client: enhanced transaction history and Solana RPC.

Helius is the primary chain data provider: core scan steps cannot proceed
without it, so exhausted retries, 5xx responses and timeouts raise
HeliusUnavailableError instead of returning empty results.
"""

import asyncio
from decimal import Decimal
from typing import Any

import httpx
from loguru import logger

from src.parsers.helius.exceptions import HeliusRateLimitError, HeliusUnavailableError
from src.parsers.helius.models import (
    HeliusMintInfo,
    HeliusNativeTransfer,
    HeliusSignature,
    HeliusTokenAccountBalance,
    HeliusTokenBalanceChange,
    HeliusTokenTransfer,
    HeliusTransaction,
)
from src.parsers.rate_limiter import RateLimiter

MAX_RETRIES = 2
RETRY_DELAYS = [1.0, 3.0]
LAMPORTS_PER_SOL = 1_000_000_000


class HeliusClient:
    """Async HTTP client for Helius Enhanced API + RPC."""

    def __init__(
        self,
        api_key: str,
        rpc_url: str = "",
        max_rps: float = 10.0,
        timeout: float = 15.0,
    ) -> None:
        self._api_key = api_key
        self._rpc_url = rpc_url or f"https://mainnet.helius-rpc.com/?api-key={api_key}"
        self._api_url = "https://api.helius.xyz/v0"
        self._rate_limiter = RateLimiter(max_rps)
        self._client = httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response | None:
        """Execute a request with retry on 429/5xx/timeout.

        Returns None on a non-retryable 4xx. Raises HeliusUnavailableError once
        retries are exhausted.
        """
        last_error = ""
        for attempt in range(MAX_RETRIES + 1):
            delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
            try:
                await self._rate_limiter.acquire()
                resp = await self._client.request(method, url, **kwargs)
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                last_error = f"{type(e).__name__}: {e}"
                if attempt < MAX_RETRIES:
                    logger.debug(f"[HELIUS] {type(e).__name__}, retry in {delay}s")
                    await asyncio.sleep(delay)
                    continue
                break

            if resp.status_code == 429:
                last_error = "HTTP 429"
                if attempt < MAX_RETRIES:
                    logger.debug(f"[HELIUS] Rate limited, backing off {delay}s")
                    self._rate_limiter.backoff(delay)
                    continue
                raise HeliusRateLimitError("Helius API rate limited")
            if resp.status_code >= 500:
                last_error = f"HTTP {resp.status_code}"
                if attempt < MAX_RETRIES:
                    await asyncio.sleep(delay)
                    continue
                break
            if resp.status_code != 200:
                logger.debug(f"[HELIUS] HTTP {resp.status_code} for {url.split('?')[0]}")
                return None
            return resp

        logger.warning(f"[HELIUS] Request failed after {MAX_RETRIES + 1} attempts: {last_error}")
        raise HeliusUnavailableError(f"Helius API unavailable ({last_error})")

    async def _rpc(self, method: str, params: list[Any] | dict[str, Any]) -> Any:
        """JSON-RPC call. Returns `result`, or None on RPC-level error."""
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        resp = await self._send("POST", self._rpc_url, json=payload)
        if resp is None:
            return None
        data = resp.json()
        if "error" in data:
            logger.debug(f"[HELIUS] {method} RPC error: {data['error']}")
            return None
        return data.get("result")

    async def get_enhanced_transactions(
        self,
        address: str,
        *,
        limit: int = 100,
        before: str = "",
        sort_order: str = "desc",
        tx_type: str = "",
    ) -> list[HeliusTransaction]:
        """Fetch parsed transaction history for an address (max 100 per page)."""
        params: dict[str, Any] = {
            "api-key": self._api_key,
            "limit": min(limit, 100),
        }
        if before:
            params["before"] = before
        if sort_order == "asc":
            params["sort-order"] = "asc"
        if tx_type:
            params["type"] = tx_type

        resp = await self._send(
            "GET", f"{self._api_url}/addresses/{address}/transactions", params=params
        )
        if resp is None:
            return []
        data = resp.json()
        if not isinstance(data, list):
            return []
        return [_parse_tx(tx) for tx in data]

    async def get_signatures_for_address(
        self, address: str, *, limit: int = 50, before: str = ""
    ) -> list[HeliusSignature]:
        """Fetch transaction signatures for an address via RPC (newest first)."""
        opts: dict[str, Any] = {"limit": min(limit, 1000)}
        if before:
            opts["before"] = before

        result = await self._rpc("getSignaturesForAddress", [address, opts])
        return [
            HeliusSignature(
                signature=sig.get("signature", ""),
                slot=sig.get("slot", 0),
                timestamp=sig.get("blockTime") or 0,
                err=sig.get("err"),
            )
            for sig in result or []
        ]

    async def get_transaction(self, signature: str) -> dict[str, Any] | None:
        """Fetch a raw jsonParsed transaction (RPC fallback path)."""
        return await self._rpc(
            "getTransaction",
            [signature, {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0}],
        )

    async def get_asset(self, asset_id: str) -> dict[str, Any] | None:
        """Fetch asset metadata via Helius DAS getAsset."""
        return await self._rpc("getAsset", {"id": asset_id})

    async def get_balance(self, wallet: str) -> Decimal | None:
        """Native SOL balance of a wallet."""
        result = await self._rpc("getBalance", [wallet])
        if not isinstance(result, dict) or "value" not in result:
            return None
        return Decimal(result["value"]) / LAMPORTS_PER_SOL

    async def get_mint_info(self, mint: str) -> HeliusMintInfo | None:
        """Parsed mint account: authorities, supply and decimals."""
        result = await self._rpc("getAccountInfo", [mint, {"encoding": "jsonParsed"}])
        return _parse_mint_info(result, mint)

    async def get_token_largest_accounts(self, mint: str) -> list[HeliusTokenAccountBalance]:
        result = await self._rpc("getTokenLargestAccounts", [mint])
        if not isinstance(result, dict):
            return []
        return [
            HeliusTokenAccountBalance(
                address=acc.get("address", ""),
                ui_amount=Decimal(str(acc.get("uiAmount") or 0)),
            )
            for acc in result.get("value", [])
        ]

    async def get_token_balance_for_owner(self, owner: str, mint: str) -> Decimal | None:
        """Total ui balance of `mint` held by `owner` across its token accounts."""
        result = await self._rpc(
            "getTokenAccountsByOwner",
            [owner, {"mint": mint}, {"encoding": "jsonParsed"}],
        )
        if not isinstance(result, dict):
            return None
        total = Decimal("0")
        for acc in result.get("value", []):
            info = acc.get("account", {}).get("data", {}).get("parsed", {}).get("info", {})
            amount = info.get("tokenAmount", {}).get("uiAmount")
            if amount:
                total += Decimal(str(amount))
        return total

    async def health(self) -> bool:
        """True when the RPC endpoint reports healthy."""
        try:
            return await self._rpc("getHealth", []) == "ok"
        except HeliusUnavailableError:
            return False


def _parse_tx(data: dict) -> HeliusTransaction:
    """Parse raw Helius enhanced transaction."""
    token_transfers = [
        HeliusTokenTransfer(
            from_user_account=t.get("fromUserAccount") or "",
            to_user_account=t.get("toUserAccount") or "",
            from_token_account=t.get("fromTokenAccount") or "",
            to_token_account=t.get("toTokenAccount") or "",
            token_amount=t.get("tokenAmount") or 0,
            mint=t.get("mint") or "",
            token_standard=t.get("tokenStandard") or "",
        )
        for t in data.get("tokenTransfers") or []
    ]

    native_transfers = [
        HeliusNativeTransfer(
            from_user_account=t.get("fromUserAccount") or "",
            to_user_account=t.get("toUserAccount") or "",
            amount=t.get("amount") or 0,
        )
        for t in data.get("nativeTransfers") or []
    ]

    account_keys: list[str] = []
    balance_changes: list[HeliusTokenBalanceChange] = []
    for acc in data.get("accountData") or []:
        if acc.get("account"):
            account_keys.append(acc["account"])
        for change in acc.get("tokenBalanceChanges") or []:
            balance_changes.append(HeliusTokenBalanceChange(
                user_account=change.get("userAccount") or "",
                mint=change.get("mint") or "",
            ))

    program_ids = [
        ix.get("programId", "") for ix in data.get("instructions") or [] if ix.get("programId")
    ]

    return HeliusTransaction(
        signature=data.get("signature", ""),
        type=data.get("type", ""),
        source=data.get("source", ""),
        fee=data.get("fee", 0),
        fee_payer=data.get("feePayer", ""),
        slot=data.get("slot") or 0,
        timestamp=data.get("timestamp") or 0,
        description=data.get("description") or "",
        token_transfers=token_transfers,
        native_transfers=native_transfers,
        account_keys=account_keys,
        program_ids=program_ids,
        token_balance_changes=balance_changes,
        transaction_error=data.get("transactionError"),
    )


def _parse_mint_info(result: Any, mint: str) -> HeliusMintInfo | None:
    if not isinstance(result, dict):
        return None
    value = result.get("value")
    if not value:
        return None
    parsed = value.get("data", {})
    if not isinstance(parsed, dict):
        return None
    info = parsed.get("parsed", {}).get("info", {})
    if not info:
        return None
    return HeliusMintInfo(
        mint=mint,
        mint_authority=info.get("mintAuthority"),
        freeze_authority=info.get("freezeAuthority"),
        supply=Decimal(str(info.get("supply", "0"))),
        decimals=int(info.get("decimals", 0)),
    )

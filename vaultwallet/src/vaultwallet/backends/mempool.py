"""
Mempool.space REST API backend.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from vaultcore.models import UTXO, FeeOption, NetworkType
from vaultwallet.backends.base import BlockchainBackend, MempoolAcceptResult

DEFAULT_TIMEOUT = 30.0
MEMPOOL_HOST = "https://mempool.space"

SATS_PER_BTC = 100_000_000

FEE_OPTION_FIELDS = {
    FeeOption.MINIMUM_FEE: "minimumFee",
    FeeOption.ECONOMY_FEE: "economyFee",
    FeeOption.HOUR_FEE: "hourFee",
    FeeOption.HALF_HOUR_FEE: "halfHourFee",
    FeeOption.FASTEST_FEE: "fastestFee",
}


def mempool_api_url(network: NetworkType | str) -> str:
    """Default API base URL for a network. Mainnet and regtest share the mainnet URL."""
    network = NetworkType(network)
    if network in (NetworkType.MAINNET, NetworkType.REGTEST):
        return f"{MEMPOOL_HOST}/api"
    return f"{MEMPOOL_HOST}/{network.value}/api"


class MempoolBackend(BlockchainBackend):
    """Blockchain backend using a mempool.space compatible REST API."""

    name = "mempool"

    def __init__(
        self,
        base_url: str | None = None,
        network: NetworkType | str = NetworkType.MAINNET,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or mempool_api_url(network)).rstrip("/")
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def _get(self, path: str) -> Any:
        try:
            response = await self.client.get(f"{self.base_url}{path}")
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            logger.error(f"Mempool API request failed: GET {path} - {e}")
            raise

    async def get_utxos(self, address: str) -> list[UTXO]:
        entries = await self._get(f"/address/{address}/utxo")
        utxos = [
            UTXO(
                txid=entry["txid"],
                vout=entry["vout"],
                value=entry["value"],
                confirmed=bool(entry.get("status", {}).get("confirmed", False)),
            )
            for entry in entries
        ]
        logger.debug(f"Mempool API returned {len(utxos)} UTXO(s)")
        return utxos

    async def broadcast_transaction(self, tx_hex: str) -> str:
        try:
            response = await self.client.post(f"{self.base_url}/tx", content=tx_hex)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Failed to broadcast transaction: {e.response.text}")
            raise ValueError(f"Broadcast failed: {e.response.text}") from e
        except httpx.HTTPError as e:
            logger.error(f"Failed to broadcast transaction: {e}")
            raise ValueError(f"Broadcast failed: {e}") from e

        txid = response.text.strip()
        logger.info(f"Broadcast transaction: {txid}")
        return txid

    async def test_mempool_accept(self, tx_hex: str) -> MempoolAcceptResult:
        try:
            response = await self.client.post(f"{self.base_url}/txs/test", json=[tx_hex])
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Mempool acceptance test failed: {e}")
            raise ValueError(f"Mempool acceptance test failed: {e}") from e

        results = response.json()
        if not results:
            raise ValueError("Mempool acceptance test returned no result")

        entry = results[0]
        fees = entry.get("fees") or {}
        base_fee = fees.get("base")
        return MempoolAcceptResult(
            txid=entry.get("txid", ""),
            allowed=bool(entry.get("allowed", False)),
            reject_reason=entry.get("reject-reason"),
            vsize=entry.get("vsize"),
            fee=round(base_fee * SATS_PER_BTC) if base_fee is not None else None,
        )

    async def get_recommended_fees(self) -> dict[str, int]:
        return await self._get("/v1/fees/recommended")

    async def fee_rate_for(self, option: FeeOption) -> int:
        fees = await self.get_recommended_fees()
        return int(fees[FEE_OPTION_FIELDS[FeeOption(option)]])

    async def estimate_fee(self, target_blocks: int) -> int:
        if target_blocks <= 1:
            option = FeeOption.FASTEST_FEE
        elif target_blocks <= 3:
            option = FeeOption.HALF_HOUR_FEE
        elif target_blocks <= 6:
            option = FeeOption.HOUR_FEE
        else:
            option = FeeOption.ECONOMY_FEE

        try:
            fee = await self.fee_rate_for(option)
            logger.debug(f"Estimated fee for {target_blocks} blocks: {fee} sat/vB")
            return fee
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.warning(f"Failed to estimate fee: {e}, using fallback")
            return 10

    async def close(self) -> None:
        await self.client.aclose()

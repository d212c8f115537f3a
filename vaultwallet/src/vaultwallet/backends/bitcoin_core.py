"""
Bitcoin Core RPC blockchain backend.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from vaultcore.models import UTXO
from vaultwallet.backends.base import BlockchainBackend, MempoolAcceptResult

# Timeout for regular RPC calls (seconds)
DEFAULT_RPC_TIMEOUT = 30.0

# listunspent filters
MIN_CONFIRMATIONS = 1
MAX_CONFIRMATIONS = 9_999_999
MINIMUM_AMOUNT_BTC = 1 / 100_000

SATS_PER_BTC = 100_000_000


class BitcoinCoreBackend(BlockchainBackend):
    """
    Blockchain backend using Bitcoin Core RPC.
    UTXO lookups use the node wallet's listunspent, so the funding address
    must be watched by the node.
    """

    name = "bitcoin-core"

    def __init__(
        self,
        rpc_url: str = "http://127.0.0.1:18443",
        rpc_user: str = "rpcuser",
        rpc_password: str = "rpcpassword",
        timeout: float = DEFAULT_RPC_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.rpc_url = rpc_url.rstrip("/")
        self.rpc_user = rpc_user
        self.rpc_password = rpc_password
        self.client = httpx.AsyncClient(
            timeout=timeout, auth=(rpc_user, rpc_password), transport=transport
        )
        self._request_id = 0

    async def _rpc_call(self, method: str, params: list | None = None) -> Any:
        """
        Make an RPC call to Bitcoin Core.

        Args:
            method: RPC method name
            params: Method parameters

        Returns:
            RPC result

        Raises:
            ValueError: On RPC errors
            httpx.HTTPError: On connection/timeout errors
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }

        try:
            response = await self.client.post(self.rpc_url, json=payload)
            # Bitcoin Core reports RPC errors with HTTP 500 and a JSON body
            if response.status_code != 500:
                response.raise_for_status()
            data = response.json()

            if "error" in data and data["error"]:
                error_info = data["error"]
                error_code = error_info.get("code", "unknown")
                error_msg = error_info.get("message", str(error_info))
                raise ValueError(f"RPC error {error_code}: {error_msg}")

            return data.get("result")

        except httpx.TimeoutException as e:
            logger.error(f"RPC call timed out: {method} - {e}")
            raise
        except httpx.HTTPError as e:
            logger.error(f"RPC call failed: {method} - {e}")
            raise

    async def get_utxos(self, address: str) -> list[UTXO]:
        result = await self._rpc_call(
            "listunspent",
            [
                MIN_CONFIRMATIONS,
                MAX_CONFIRMATIONS,
                [address],
                True,
                {"minimumAmount": MINIMUM_AMOUNT_BTC},
            ],
        )

        utxos = [
            UTXO(
                txid=entry["txid"],
                vout=entry["vout"],
                value=round(entry["amount"] * SATS_PER_BTC),
                confirmed=entry.get("confirmations", 0) > 0,
            )
            for entry in result or []
        ]
        logger.debug(f"listunspent returned {len(utxos)} UTXO(s)")
        return utxos

    async def broadcast_transaction(self, tx_hex: str) -> str:
        try:
            txid = await self._rpc_call("sendrawtransaction", [tx_hex])
            logger.info(f"Broadcast transaction: {txid}")
            return txid

        except (ValueError, httpx.HTTPError) as e:
            logger.error(f"Failed to broadcast transaction: {e}")
            raise ValueError(f"Broadcast failed: {e}") from e

    async def test_mempool_accept(self, tx_hex: str) -> MempoolAcceptResult:
        results = await self._rpc_call("testmempoolaccept", [[tx_hex]])
        if not results:
            raise ValueError("testmempoolaccept returned no result")

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

    async def estimate_fee(self, target_blocks: int) -> int:
        try:
            result = await self._rpc_call("estimatesmartfee", [target_blocks])

            if result and "feerate" in result:
                btc_per_kb = result["feerate"]
                sat_per_vbyte = max(1, int((btc_per_kb * SATS_PER_BTC) / 1000))
                logger.debug(f"Estimated fee for {target_blocks} blocks: {sat_per_vbyte} sat/vB")
                return sat_per_vbyte
            else:
                logger.warning("Fee estimation unavailable, using fallback")
                return 10

        except (ValueError, httpx.HTTPError) as e:
            logger.warning(f"Failed to estimate fee: {e}, using fallback")
            return 10

    async def close(self) -> None:
        await self.client.aclose()

"""
Blockchain backend implementations.

Available backends:
- BitcoinCoreBackend: Full node via Bitcoin Core RPC (listunspent, sendrawtransaction)
- MempoolBackend: Mempool.space API (third-party, no setup required)

get_address_utxos() treats them as interchangeable: the primary source is
asked first and the fallback is used when it fails or has nothing.
"""

from __future__ import annotations

import httpx
from loguru import logger

from vaultcore.models import UTXO
from vaultwallet.backends.base import BlockchainBackend, MempoolAcceptResult
from vaultwallet.backends.bitcoin_core import BitcoinCoreBackend
from vaultwallet.backends.mempool import MempoolBackend, mempool_api_url


async def get_address_utxos(
    address: str,
    primary: BlockchainBackend | None = None,
    fallback: BlockchainBackend | None = None,
) -> list[UTXO]:
    """
    Fetch the UTXOs of ``address``, falling back to a second source.

    Raises:
        ValueError: No address or no backend given
    """
    if not address:
        raise ValueError("Address is required")
    if primary is None and fallback is None:
        raise ValueError("Either a primary or a fallback backend is required")

    if primary is not None:
        try:
            utxos = await primary.get_utxos(address)
            if utxos:
                return utxos
            logger.warning(f"No UTXOs for {address} from {primary.name}")
        except (ValueError, httpx.HTTPError) as e:
            logger.warning(f"Failed to get UTXOs for {address} from {primary.name}: {e}")

    if fallback is None:
        return []

    logger.info(f"Fetching UTXOs for {address} from {fallback.name}")
    return await fallback.get_utxos(address)


__all__ = [
    "BitcoinCoreBackend",
    "BlockchainBackend",
    "MempoolAcceptResult",
    "MempoolBackend",
    "get_address_utxos",
    "mempool_api_url",
]

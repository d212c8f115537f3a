"""
Base blockchain backend interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from vaultcore.models import UTXO


@dataclass
class MempoolAcceptResult:
    """Outcome of a testmempoolaccept-style check for one transaction."""

    txid: str
    allowed: bool
    reject_reason: str | None = None
    vsize: int | None = None
    fee: int | None = None


class BlockchainBackend(ABC):
    """
    Abstract UTXO source and broadcaster.
    The core treats implementations as interchangeable.
    """

    name: str = "backend"

    @abstractmethod
    async def get_utxos(self, address: str) -> list[UTXO]:
        """Get UTXOs for an address"""

    @abstractmethod
    async def broadcast_transaction(self, tx_hex: str) -> str:
        """Broadcast transaction, returns txid"""

    @abstractmethod
    async def test_mempool_accept(self, tx_hex: str) -> MempoolAcceptResult:
        """Check whether the mempool would accept a transaction without broadcasting it"""

    @abstractmethod
    async def estimate_fee(self, target_blocks: int) -> int:
        """Estimate fee in sat/vbyte for target confirmation blocks"""

    async def close(self) -> None:
        """Close backend connection"""
        pass

"""
Async glue between the vault orchestrator and the chain backends.

Each flow is a straight sequence of awaited steps that returns an explicit
result; a rejected transaction is reported, not raised.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger

from staker.config import StakerSettings
from staker.signer import SigningFlow, run_signing_flow
from staker.unstaking import UnstakingVariant
from staker.vault import StakingRequest, VaultOrchestrator
from vaultcore.errors import SigningError, UninitializedComponent
from vaultwallet.backends import (
    BitcoinCoreBackend,
    BlockchainBackend,
    MempoolBackend,
    get_address_utxos,
)
from vaultwallet.wallet.psbt import Psbt
from vaultwallet.wallet.signing import finalize_psbt

DEFAULT_FEE_TARGET_BLOCKS = 3


@dataclass
class SubmitResult:
    tx_hex: str
    accepted: bool
    txid: str | None = None
    reject_reason: str | None = None
    broadcast: bool = False
    fee: int | None = None
    psbt: Psbt | None = None


class VaultService:
    """
    Runs staking and unstaking end to end.

    Args:
        orchestrator: Configured vault orchestrator
        primary: Preferred UTXO source and broadcaster
        fallback: Used for UTXOs when the primary fails or has none, and for
            everything else when there is no primary
    """

    def __init__(
        self,
        orchestrator: VaultOrchestrator,
        primary: BlockchainBackend | None = None,
        fallback: BlockchainBackend | None = None,
    ):
        if primary is None and fallback is None:
            raise ValueError("At least one backend is required")
        self.orchestrator = orchestrator
        self.primary = primary
        self.fallback = fallback

    @classmethod
    def from_settings(cls, settings: StakerSettings) -> VaultService:
        orchestrator = VaultOrchestrator(settings.to_vault_config())
        primary = None
        if settings.rpc_user:
            primary = BitcoinCoreBackend(
                rpc_url=settings.rpc_url,
                rpc_user=settings.rpc_user,
                rpc_password=settings.rpc_password,
            )
        fallback = MempoolBackend(base_url=settings.mempool_api_url, network=settings.network)
        return cls(orchestrator, primary, fallback)

    @property
    def backend(self) -> BlockchainBackend:
        backend = self.primary or self.fallback
        if backend is None:
            raise UninitializedComponent("No blockchain backend configured")
        return backend

    async def close(self) -> None:
        for backend in (self.primary, self.fallback):
            if backend is not None:
                await backend.close()

    async def resolve_fee_rate(self, fee_rate: int | None) -> int:
        if fee_rate is not None:
            return fee_rate
        estimated = await self.backend.estimate_fee(DEFAULT_FEE_TARGET_BLOCKS)
        logger.info(f"Using estimated fee rate {estimated} sat/vB")
        return estimated

    async def stake(
        self,
        request: StakingRequest,
        wif: str,
        fee_rate: int | None = None,
        broadcast: bool = True,
    ) -> SubmitResult:
        """
        Fetch UTXOs, build, sign and submit a staking transaction.

        Raises:
            InsufficientFunds: The staker's UTXOs cannot cover amount + fee
            SigningError: The key does not control every selected input
        """
        utxos = await get_address_utxos(request.staker_address, self.primary, self.fallback)
        logger.info(f"Found {len(utxos)} UTXO(s) for {request.staker_address}")

        rate = await self.resolve_fee_rate(fee_rate)
        build = self.orchestrator.build_staking_psbt(request, utxos, rate)

        result = self.orchestrator.sign(build.psbt, wif)
        if not result.is_valid:
            raise SigningError("Staker key does not control every selected input")
        finalize_psbt(build.psbt)

        submitted = await self.submit(build.psbt, broadcast)
        submitted.fee = build.fee
        return submitted

    async def unstake(
        self,
        variant: UnstakingVariant,
        wifs: Sequence[str],
        flow: SigningFlow,
        quorum: int | None = None,
        broadcast: bool = True,
    ) -> SubmitResult:
        """Build an unstaking PSBT, run the signing flow over it and submit it."""
        psbt = self.orchestrator.build_unstaking_psbt(variant)
        result = run_signing_flow(psbt, wifs, self.orchestrator.config.network, flow, quorum)
        if not result.is_valid:
            logger.warning(f"{flow.value}: not every signer was accepted by every input")
        return await self.submit(psbt, broadcast)

    async def submit(self, psbt: Psbt, broadcast: bool = True) -> SubmitResult:
        """Check a finalized PSBT against the mempool and broadcast it."""
        tx_hex = psbt.extract_transaction().serialize().hex()

        check = await self.backend.test_mempool_accept(tx_hex)
        if not check.allowed:
            logger.error(f"Transaction rejected by mempool: {check.reject_reason}")
            return SubmitResult(
                tx_hex=tx_hex,
                accepted=False,
                txid=check.txid,
                reject_reason=check.reject_reason,
                psbt=psbt,
            )

        if not broadcast:
            return SubmitResult(tx_hex=tx_hex, accepted=True, txid=check.txid, psbt=psbt)

        txid = await self.backend.broadcast_transaction(tx_hex)
        logger.info(f"Broadcast transaction {txid}")
        return SubmitResult(tx_hex=tx_hex, accepted=True, txid=txid, broadcast=True, psbt=psbt)

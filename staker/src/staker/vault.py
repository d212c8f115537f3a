"""
Vault orchestrator.

Composes address classification, the script engine, coin selection, PSBT
assembly and signing for each staking and unstaking scenario. One
orchestrator is configured once and reused for many builds; each build works
on its own PSBT.

Lifecycle of a transaction:

    UNCONFIGURED -> READY -> (build) -> AWAITING_SIGNATURES -> FINALIZED

READY is per orchestrator; the later states belong to each built PSBT.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from staker.config import VaultConfig
from staker.engine import ScriptEngine, TaprootScriptEngine
from staker.signer import SigningResult, sign_psbt
from staker.tx_builder import build_staking_psbt
from staker.unstaking import UnstakingVariant
from vaultcore.chain import DestinationChain
from vaultcore.encoding import decode_output_descriptors
from vaultcore.errors import UninitializedComponent
from vaultcore.models import UTXO, AddressType, CoinSelection, OutputDescriptor
from vaultwallet.wallet.address import (
    classify_address,
    derive_input_metadata,
    scriptpubkey_to_address,
)
from vaultwallet.wallet.coin_selection import select_utxos
from vaultwallet.wallet.psbt import Psbt


class VaultState(str, Enum):
    UNCONFIGURED = "unconfigured"
    READY = "ready"
    AWAITING_SIGNATURES = "awaiting_signatures"
    FINALIZED = "finalized"


def psbt_state(psbt: Psbt) -> VaultState:
    if psbt.is_finalized:
        return VaultState.FINALIZED
    return VaultState.AWAITING_SIGNATURES


@dataclass(frozen=True)
class StakingRequest:
    """
    Intent to lock ``amount`` sats from the staker's address into a vault.

    Without a protocol key the vault is custodian-only.
    """

    staker_address: str
    staker_pubkey: bytes
    amount: int
    custodian_keys: tuple[bytes, ...]
    quorum: int
    destination_chain: DestinationChain
    destination_contract: bytes
    destination_recipient: bytes
    protocol_key: bytes | None = None
    with_custodian_only: bool = False
    change_address: str | None = None
    rbf: bool = True


@dataclass
class StakingBuild:
    psbt: Psbt
    outputs: list[OutputDescriptor]
    selection: CoinSelection
    change: int

    @property
    def fee(self) -> int:
        return self.selection.fee


class VaultOrchestrator:
    """
    Builds and signs vault transactions for one network / tag / version.

    Args:
        config: Network, tags, version and policies shared by all builds
        engine: Script engine; defaults to TaprootScriptEngine for ``config``
    """

    def __init__(self, config: VaultConfig | None = None, engine: ScriptEngine | None = None):
        self._config = config
        if engine is None and config is not None:
            engine = TaprootScriptEngine(
                config.tag_bytes, config.service_tag_bytes, config.version, config.network_kind
            )
        self._engine = engine

    @property
    def config(self) -> VaultConfig:
        if self._config is None:
            raise UninitializedComponent("Vault configuration is not set")
        return self._config

    @property
    def engine(self) -> ScriptEngine:
        if self._engine is None:
            raise UninitializedComponent("Script engine is not set")
        return self._engine

    @property
    def state(self) -> VaultState:
        if self._config is None or self._engine is None:
            return VaultState.UNCONFIGURED
        return VaultState.READY

    def classify_address(self, address: str) -> AddressType:
        return classify_address(address, self.config.network, self.config.address_fallback)

    def staking_outputs(self, request: StakingRequest) -> list[OutputDescriptor]:
        """Outputs the engine produces for ``request``, decoded."""
        chain = request.destination_chain.to_bytes()
        if request.protocol_key is None:
            buffer = self.engine.build_custodian_only_staking_output(
                request.amount,
                request.custodian_keys,
                request.quorum,
                chain,
                request.destination_contract,
                request.destination_recipient,
            )
        else:
            buffer = self.engine.build_staking_output(
                request.amount,
                request.staker_pubkey,
                request.protocol_key,
                request.custodian_keys,
                request.quorum,
                request.with_custodian_only,
                chain,
                request.destination_contract,
                request.destination_recipient,
            )
        return decode_output_descriptors(buffer)

    def build_staking_psbt(
        self, request: StakingRequest, utxos: Sequence[UTXO], fee_rate: int
    ) -> StakingBuild:
        """
        Build the unsigned staking PSBT for ``request``.

        Raises:
            InsufficientFunds: ``utxos`` cannot cover the amount plus fee
            UninitializedComponent: No configuration or engine
        """
        config = self.config
        input_meta = derive_input_metadata(
            request.staker_address,
            request.staker_pubkey,
            config.network,
            config.address_fallback,
        )
        outputs = self.staking_outputs(request)

        # one more output for the change, whether or not it survives the dust check
        selection = select_utxos(utxos, request.amount, len(outputs) + 1, fee_rate)

        change_address = request.change_address or request.staker_address
        psbt = build_staking_psbt(
            config.network,
            input_meta,
            selection.utxos,
            outputs,
            request.amount,
            selection.fee,
            change_address,
            rbf=request.rbf,
            dust_threshold=config.dust_threshold,
        )
        change = selection.total_value - request.amount - selection.fee
        logger.info(
            f"Staking {request.amount} sats from {request.staker_address}: "
            f"{len(selection.utxos)} input(s), fee {selection.fee} sats"
        )
        return StakingBuild(psbt=psbt, outputs=outputs, selection=selection, change=change)

    def build_unstaking_psbt(self, variant: UnstakingVariant) -> Psbt:
        """
        Raises:
            UnsupportedUnstakingVariant: The engine has no spending path for ``variant``
        """
        psbt = Psbt.parse(self.engine.build_spend(variant))
        logger.info(f"Built {type(variant).__name__} PSBT with {len(psbt.inputs)} input(s)")
        return psbt

    def upc_locking_address(
        self,
        user_key: bytes,
        protocol_key: bytes,
        custodian_keys: Sequence[bytes],
        quorum: int,
        with_custodian_only: bool = False,
    ) -> str:
        script = self.engine.upc_locking_script(
            user_key, protocol_key, custodian_keys, quorum, with_custodian_only
        )
        return scriptpubkey_to_address(script, self.config.network)

    def custodian_only_locking_address(self, custodian_keys: Sequence[bytes], quorum: int) -> str:
        script = self.engine.custodian_only_locking_script(custodian_keys, quorum)
        return scriptpubkey_to_address(script, self.config.network)

    def sign(self, psbt: Psbt, wif: str, finalize: bool = False) -> SigningResult:
        return sign_psbt(psbt, wif, self.config.network, finalize)

"""
Script engine: builds vault locking outputs and unstaking PSBTs.

The orchestrator only talks to the ScriptEngine interface, binary in and
binary out. TaprootScriptEngine is the pure-Python implementation over the
taproot trees in staker.taproot.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from loguru import logger

from staker.taproot import CustodianOnlyTree, TaprootTree, UpcTree
from staker.unstaking import (
    CustodianOnlySpend,
    CustodianProtocolSpend,
    CustodianUserSpend,
    StakingInput,
    UnstakingVariant,
    UpcSpend,
    UserProtocolSpend,
)
from vaultcore.constants import (
    BTC_DUST_SAT,
    DEFAULT_INPUT_SIZE,
    DEST_CONTRACT_ADDRESS_SIZE,
    DEST_RECIPIENT_ADDRESS_SIZE,
    DESTINATION_CHAIN_SIZE,
    FEE_OUTPUT_VBYTES,
    FEE_OVERHEAD_VBYTES,
    FLAG_CUSTODIAN_ONLY,
    FLAG_UPC,
    SEQUENCE_FINAL,
    SEQUENCE_RBF,
    SERVICE_TAG_HASH_SIZE,
    TAG_HASH_SIZE,
    TAPSCRIPT_LEAF_VERSION,
)
from vaultcore.crypto import hash256, tapleaf_hash, xonly
from vaultcore.encoding import encode_output_descriptors
from vaultcore.errors import InsufficientFunds, UnsupportedUnstakingVariant
from vaultcore.models import OutputDescriptor
from vaultcore.script import op_return_script
from vaultwallet.wallet.psbt import Psbt, TapLeafScript, TxOutput, encode_tap_key_origin
from vaultwallet.wallet.signing import SIGHASH_DEFAULT


def hash_tag(tag: bytes, width: int) -> bytes:
    """Tags that fit are left-padded with zeros, longer ones are hashed."""
    if len(tag) <= width:
        return tag.rjust(width, b"\x00")
    return hash256(tag)[:width]


def spend_fee(fee_rate: int, n_inputs: int, n_outputs: int) -> int:
    """Fee of an unstaking transaction; script-path inputs are counted at 180 vB."""
    return (
        FEE_OVERHEAD_VBYTES + DEFAULT_INPUT_SIZE * n_inputs + FEE_OUTPUT_VBYTES * n_outputs
    ) * fee_rate


class ScriptEngine(ABC):
    """Builds locking outputs, spend PSBTs and locking scripts for a vault."""

    @abstractmethod
    def build_staking_output(
        self,
        amount: int,
        staker_key: bytes,
        protocol_key: bytes,
        custodian_keys: Sequence[bytes],
        quorum: int,
        custodian_only: bool,
        destination_chain: bytes,
        destination_contract: bytes,
        destination_recipient: bytes,
    ) -> bytes:
        """Encoded output descriptors of a staking transaction."""

    @abstractmethod
    def build_custodian_only_staking_output(
        self,
        amount: int,
        custodian_keys: Sequence[bytes],
        quorum: int,
        destination_chain: bytes,
        destination_contract: bytes,
        destination_recipient: bytes,
    ) -> bytes:
        pass

    @abstractmethod
    def build_spend(self, variant: UnstakingVariant) -> bytes:
        """Serialized unsigned PSBT spending a vault output along one path."""

    @abstractmethod
    def upc_locking_script(
        self,
        user_key: bytes,
        protocol_key: bytes,
        custodian_keys: Sequence[bytes],
        quorum: int,
        with_custodian_only: bool = False,
    ) -> bytes:
        pass

    @abstractmethod
    def custodian_only_locking_script(self, custodian_keys: Sequence[bytes], quorum: int) -> bytes:
        pass


class TaprootScriptEngine(ScriptEngine):
    """
    Reference engine over NUMS-keyed taproot trees.

    Args:
        tag: Protocol tag embedded in the staking data output
        service_tag: Service tag embedded in the staking data output
        version: Protocol version byte
        network_kind: 0 for mainnet, 1 for test networks
    """

    def __init__(self, tag: bytes, service_tag: bytes, version: int, network_kind: int):
        if not 0 <= version <= 0xFF:
            raise ValueError(f"Version must fit in one byte, got {version}")
        self.tag = tag
        self.service_tag = service_tag
        self.version = version
        self.network_kind = network_kind

    def data_script(
        self,
        flags: int,
        quorum: int,
        destination_chain: bytes,
        destination_contract: bytes,
        destination_recipient: bytes,
    ) -> bytes:
        """OP_RETURN output carrying the vault parameters and the cross-chain destination."""
        if len(destination_chain) != DESTINATION_CHAIN_SIZE:
            raise ValueError(f"Destination chain must be {DESTINATION_CHAIN_SIZE} bytes")
        if len(destination_contract) != DEST_CONTRACT_ADDRESS_SIZE:
            raise ValueError(f"Destination contract must be {DEST_CONTRACT_ADDRESS_SIZE} bytes")
        if len(destination_recipient) != DEST_RECIPIENT_ADDRESS_SIZE:
            raise ValueError(f"Destination recipient must be {DEST_RECIPIENT_ADDRESS_SIZE} bytes")

        data = (
            hash_tag(self.tag, TAG_HASH_SIZE)
            + bytes([self.version, self.network_kind, flags])
            + hash_tag(self.service_tag, SERVICE_TAG_HASH_SIZE)
            + bytes([quorum])
            + destination_chain
            + destination_contract
            + destination_recipient
        )
        return op_return_script(data)

    def build_staking_output(
        self,
        amount: int,
        staker_key: bytes,
        protocol_key: bytes,
        custodian_keys: Sequence[bytes],
        quorum: int,
        custodian_only: bool,
        destination_chain: bytes,
        destination_contract: bytes,
        destination_recipient: bytes,
    ) -> bytes:
        tree = UpcTree(staker_key, protocol_key, custodian_keys, quorum, custodian_only)
        data = self.data_script(
            FLAG_UPC, quorum, destination_chain, destination_contract, destination_recipient
        )
        logger.debug(f"UPC staking output: {amount} sats, quorum {quorum}/{len(custodian_keys)}")
        return encode_output_descriptors(
            [
                OutputDescriptor(value=amount, script=tree.script_pubkey),
                OutputDescriptor(value=0, script=data),
            ]
        )

    def build_custodian_only_staking_output(
        self,
        amount: int,
        custodian_keys: Sequence[bytes],
        quorum: int,
        destination_chain: bytes,
        destination_contract: bytes,
        destination_recipient: bytes,
    ) -> bytes:
        tree = CustodianOnlyTree(custodian_keys, quorum)
        data = self.data_script(
            FLAG_CUSTODIAN_ONLY,
            quorum,
            destination_chain,
            destination_contract,
            destination_recipient,
        )
        return encode_output_descriptors(
            [
                OutputDescriptor(value=amount, script=tree.script_pubkey),
                OutputDescriptor(value=0, script=data),
            ]
        )

    def upc_locking_script(
        self,
        user_key: bytes,
        protocol_key: bytes,
        custodian_keys: Sequence[bytes],
        quorum: int,
        with_custodian_only: bool = False,
    ) -> bytes:
        return UpcTree(
            user_key, protocol_key, custodian_keys, quorum, with_custodian_only
        ).script_pubkey

    def custodian_only_locking_script(self, custodian_keys: Sequence[bytes], quorum: int) -> bytes:
        return CustodianOnlyTree(custodian_keys, quorum).script_pubkey

    def build_spend(self, variant: UnstakingVariant) -> bytes:
        if isinstance(variant, CustodianOnlySpend):
            psbt = self._custodian_only_spend(variant)
        elif isinstance(variant, UpcSpend):
            psbt = self._upc_spend(variant)
        else:
            raise UnsupportedUnstakingVariant(
                f"Unsupported unstaking variant: {type(variant).__name__}"
            )
        return psbt.serialize()

    def _upc_spend(self, variant: UpcSpend) -> Psbt:
        if not variant.inputs:
            raise ValueError("At least one staking input is required")

        tree = UpcTree(
            variant.user_key,
            variant.protocol_key,
            variant.custodian_keys,
            variant.quorum,
            variant.with_custodian_only,
        )
        if isinstance(variant, UserProtocolSpend):
            leaf = tree.user_protocol_leaf
            keys = [variant.user_key, variant.protocol_key]
        elif isinstance(variant, CustodianProtocolSpend):
            leaf = tree.custodian_protocol_leaf
            keys = [variant.protocol_key, *variant.custodian_keys]
        elif isinstance(variant, CustodianUserSpend):
            leaf = tree.custodian_user_leaf
            keys = [variant.user_key, *variant.custodian_keys]
        else:
            raise UnsupportedUnstakingVariant(
                f"Unsupported unstaking variant: {type(variant).__name__}"
            )

        total_in = sum(inp.value for inp in variant.inputs)
        fee = spend_fee(variant.fee_rate, len(variant.inputs), 1)
        if total_in - fee <= 0:
            raise InsufficientFunds(f"Inputs ({total_in} sats) cannot cover the fee ({fee} sats)")

        psbt = Psbt()
        self._add_inputs(psbt, variant.inputs, tree, leaf, keys, variant.rbf)
        psbt.add_output(variant.output_script, total_in - fee)

        logger.info(
            f"Built {type(variant).__name__}: {len(variant.inputs)} input(s), "
            f"output {total_in - fee} sats, fee {fee} sats"
        )
        return psbt

    def _custodian_only_spend(self, variant: CustodianOnlySpend) -> Psbt:
        if not variant.inputs:
            raise ValueError("At least one staking input is required")
        if not variant.outputs:
            raise ValueError("At least one unstaking output is required")

        tree = CustodianOnlyTree(variant.custodian_keys, variant.quorum)

        total_in = sum(inp.value for inp in variant.inputs)
        total_out = sum(out.value for out in variant.outputs)
        if total_in < total_out:
            raise InsufficientFunds(
                f"Inputs ({total_in} sats) cannot cover the outputs ({total_out} sats)"
            )

        change = total_in - total_out
        has_change = change > BTC_DUST_SAT
        n_outputs = len(variant.outputs) + (1 if has_change else 0)
        fee = spend_fee(variant.fee_rate, len(variant.inputs), n_outputs)

        # The requested outputs pay the fee, split evenly with the remainder on the first
        share, remainder = divmod(fee, len(variant.outputs))
        values = [out.value - share for out in variant.outputs]
        values[0] -= remainder
        if any(value <= 0 for value in values):
            raise InsufficientFunds(f"Outputs cannot cover the fee ({fee} sats)")

        psbt = Psbt()
        self._add_inputs(
            psbt,
            variant.inputs,
            tree,
            tree.custodian_only_leaf,
            list(variant.custodian_keys),
            variant.rbf,
        )
        for out, value in zip(variant.outputs, values):
            psbt.add_output(out.script_pubkey, value)
        if has_change:
            psbt.add_output(tree.script_pubkey, change)

        logger.info(
            f"Built CustodianOnlySpend: {len(variant.inputs)} input(s), "
            f"{len(variant.outputs)} output(s), change {change if has_change else 0} sats, "
            f"fee {fee} sats"
        )
        return psbt

    @staticmethod
    def _add_inputs(
        psbt: Psbt,
        inputs: Sequence[StakingInput],
        tree: TaprootTree,
        leaf: bytes,
        keys: Sequence[bytes],
        rbf: bool,
    ) -> None:
        """Add script-path inputs carrying everything a signer of ``leaf`` needs."""
        leaf_hash = tapleaf_hash(leaf, TAPSCRIPT_LEAF_VERSION)
        origin = encode_tap_key_origin([leaf_hash])
        sequence = SEQUENCE_RBF if rbf else SEQUENCE_FINAL

        for staking_input in inputs:
            script_pubkey = staking_input.script_pubkey or tree.script_pubkey
            psbt_input = psbt.add_input(
                staking_input.txid,
                staking_input.vout,
                sequence,
                witness_utxo=TxOutput(staking_input.value, script_pubkey),
                tap_internal_key=tree.internal_key,
            )
            psbt_input.tap_merkle_root = tree.merkle_root
            psbt_input.sighash_type = SIGHASH_DEFAULT
            psbt_input.tap_leaf_scripts.append(
                TapLeafScript(tree.control_block(leaf), leaf, TAPSCRIPT_LEAF_VERSION)
            )
            for key in keys:
                psbt_input.tap_bip32_derivations[xonly(key)] = origin

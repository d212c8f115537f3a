"""
Staking PSBT assembly.

Builds the unsigned staking transaction from the selected UTXOs, the outputs
decoded from the script engine, and a change output when it is worth having.
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from vaultcore.constants import BTC_DUST_SAT, SEQUENCE_FINAL, SEQUENCE_RBF
from vaultcore.errors import InsufficientFunds
from vaultcore.models import UTXO, InputByAddress, NetworkType, OutputDescriptor
from vaultwallet.wallet.address import address_to_scriptpubkey
from vaultwallet.wallet.psbt import Psbt, TxOutput


def output_script(output: OutputDescriptor, network: NetworkType | str) -> bytes:
    if output.script is not None:
        return output.script
    if output.address is None:
        raise ValueError("Output has neither a script nor an address")
    return address_to_scriptpubkey(output.address, network)


def calculate_change(total_in: int, amount: int, fee: int) -> int:
    return total_in - (amount + fee)


def build_staking_psbt(
    network: NetworkType | str,
    input_meta: InputByAddress,
    utxos: Sequence[UTXO],
    outputs: Sequence[OutputDescriptor],
    amount: int,
    fee: int,
    change_address: str,
    rbf: bool = True,
    dust_threshold: int = BTC_DUST_SAT,
) -> Psbt:
    """
    Build an unsigned staking PSBT.

    Args:
        network: Network of the funding and change addresses
        input_meta: Spending metadata of the funding address
        utxos: Selected UTXOs, all from the funding address
        outputs: Staking outputs in the order they appear in the transaction
        amount: Staking amount funded by the inputs
        fee: Miner fee funded by the inputs
        change_address: Address receiving the change
        rbf: Signal replace-by-fee on every input
        dust_threshold: Change at or below this value is left to the miner

    Returns:
        Psbt with one input per UTXO, the staking outputs and possibly change

    Raises:
        InsufficientFunds: The UTXOs cannot cover amount + fee
    """
    total_in = sum(utxo.value for utxo in utxos)
    change = calculate_change(total_in, amount, fee)
    if change < 0:
        raise InsufficientFunds(
            f"Insufficient funds: inputs {total_in} sats, need {amount + fee} sats"
        )

    sequence = SEQUENCE_RBF if rbf else SEQUENCE_FINAL
    psbt = Psbt()

    for utxo in utxos:
        psbt.add_input(
            utxo.txid,
            utxo.vout,
            sequence,
            witness_utxo=TxOutput(utxo.value, input_meta.output_script),
            tap_internal_key=input_meta.tap_internal_key,
            redeem_script=None if input_meta.tap_internal_key else input_meta.redeem_script,
        )

    for output in outputs:
        psbt.add_output(output_script(output, network), output.value)

    if change > dust_threshold:
        psbt.add_output(address_to_scriptpubkey(change_address, network), change)
        logger.debug(f"Change output: {change} sats to {change_address}")
    else:
        logger.debug(f"Change of {change} sats is at or below dust, left as fee")

    logger.info(
        f"Built staking PSBT: {len(utxos)} input(s), {len(psbt.tx.outputs)} output(s), "
        f"fee {fee} sats"
    )
    return psbt

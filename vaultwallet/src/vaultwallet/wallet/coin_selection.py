"""
Coin selection and fee estimation for staking transactions.
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from vaultcore.constants import FEE_INPUT_VBYTES, FEE_OUTPUT_VBYTES, FEE_OVERHEAD_VBYTES
from vaultcore.errors import InsufficientFunds
from vaultcore.models import UTXO, CoinSelection


def estimate_fee(fee_rate: int, n_inputs: int, n_outputs: int) -> int:
    """
    Fee in satoshis for a transaction of the given shape.

    Uses fixed weights: 148 vB per input, 34 vB per output, 11 vB overhead.
    """
    vbytes = FEE_INPUT_VBYTES * n_inputs + FEE_OUTPUT_VBYTES * n_outputs + FEE_OVERHEAD_VBYTES
    return vbytes * fee_rate


def select_utxos(
    available: Sequence[UTXO],
    target_amount: int,
    n_outputs: int,
    fee_rate: int,
) -> CoinSelection:
    """
    Select UTXOs largest-first until they cover the amount plus the fee.

    The fee depends on the number of selected inputs, so it is recomputed
    after every addition. The result is always a prefix of the UTXOs sorted
    by descending value; equal values keep their original order.

    Args:
        available: Spendable UTXOs
        target_amount: Amount the selection must fund, excluding fee
        n_outputs: Number of outputs of the transaction (including change)
        fee_rate: Fee rate in sat/vB

    Returns:
        CoinSelection with the selected UTXOs and the fee

    Raises:
        InsufficientFunds: No UTXOs, or all of them cannot cover amount + fee
    """
    if not available:
        raise InsufficientFunds("Insufficient funds")

    sorted_utxos = sorted(available, key=lambda u: u.value, reverse=True)

    selected: list[UTXO] = []
    total = 0
    for utxo in sorted_utxos:
        selected.append(utxo)
        total += utxo.value

        fee = estimate_fee(fee_rate, len(selected), n_outputs)
        logger.debug(
            f"Selected {len(selected)} UTXO(s), total={total} sats, "
            f"need={target_amount + fee} sats (fee={fee})"
        )

        if total >= target_amount + fee:
            return CoinSelection(utxos=tuple(selected), fee=fee)

    raise InsufficientFunds(
        "Insufficient funds: unable to gather enough UTXOs to cover the staking amount and fees "
        f"(have {total} sats, need {target_amount} + fee)"
    )

"""
Wallet primitives: address classification, coin selection, PSBT and signing.
"""

from vaultwallet.wallet.address import (
    address_to_scriptpubkey,
    classify_address,
    derive_input_metadata,
    p2tr_script,
    p2wpkh_script,
    scriptpubkey_to_address,
)
from vaultwallet.wallet.coin_selection import estimate_fee, select_utxos
from vaultwallet.wallet.psbt import Psbt, PsbtInput, PsbtOutput, Transaction, TxInput, TxOutput
from vaultwallet.wallet.signing import finalize_input, finalize_psbt, sign_input

__all__ = [
    "Psbt",
    "PsbtInput",
    "PsbtOutput",
    "Transaction",
    "TxInput",
    "TxOutput",
    "address_to_scriptpubkey",
    "classify_address",
    "derive_input_metadata",
    "estimate_fee",
    "finalize_input",
    "finalize_psbt",
    "p2tr_script",
    "p2wpkh_script",
    "scriptpubkey_to_address",
    "select_utxos",
    "sign_input",
]

"""
Bitcoin and vault protocol constants.

Input size estimates follow the usual vbyte figures for a single-key spend of
each address type. The fee formula used for coin selection does NOT use them;
it uses the fixed legacy-equivalent weights below.
"""

from __future__ import annotations

# Standard P2PKH dust limit in Bitcoin Core
BTC_DUST_SAT = 546  # satoshis

# Fee estimation weights (vbytes)
FEE_INPUT_VBYTES = 148
FEE_OUTPUT_VBYTES = 34
FEE_OVERHEAD_VBYTES = 11

# Estimated input sizes per funding address type (vbytes)
DEFAULT_INPUT_SIZE = 180
P2WPKH_INPUT_SIZE = 68
P2TR_INPUT_SIZE = 58

# Sequence numbers
SEQUENCE_FINAL = 0xFFFFFFFF
SEQUENCE_RBF = 0xFFFFFFFD

TX_VERSION = 2

# Key sizes
PUBKEY_SIZE = 33
XONLY_PUBKEY_SIZE = 32

# Destination chain encoding
DESTINATION_CHAIN_SIZE = 8

# Embedded data carried by the staking OP_RETURN output
TAG_HASH_SIZE = 6
SERVICE_TAG_HASH_SIZE = 5
DEST_CONTRACT_ADDRESS_SIZE = 20
DEST_RECIPIENT_ADDRESS_SIZE = 20
EMBEDDED_DATA_SCRIPT_SIZE = (
    TAG_HASH_SIZE
    + 1  # version
    + 1  # network kind
    + 1  # flags
    + SERVICE_TAG_HASH_SIZE
    + 1  # custodian quorum
    + DESTINATION_CHAIN_SIZE
    + DEST_CONTRACT_ADDRESS_SIZE
    + DEST_RECIPIENT_ADDRESS_SIZE
)  # 63 bytes

# Taproot tree flags carried in the embedded data
FLAG_CUSTODIAN_ONLY = 0b01000000
FLAG_UPC = 0b10000000

# Tapscript leaf version
TAPSCRIPT_LEAF_VERSION = 0xC0

# BIP341 "nothing up my sleeve" internal key, unspendable by key path
NUMS_BIP341 = bytes.fromhex("50929b74c1a04954b78b4b6035e97a5e078a5a0f28ec96d547bfee9ace803ac0")

"""
vaultcore - Core library for the vault staking components

Shared value types, codecs and primitives used by the wallet and staker.
"""

__version__ = "0.3.0"

from vaultcore.chain import (
    ChainType,
    DestinationChain,
    decode_chain,
    encode_chain,
    validate_chain_type,
)
from vaultcore.constants import BTC_DUST_SAT, NUMS_BIP341, SEQUENCE_RBF
from vaultcore.crypto import KeyPair, hash160, hash256, tagged_hash
from vaultcore.encoding import (
    CustodianOnlyPayload,
    PayloadKind,
    UpcPayload,
    decode_contract_call_payload,
    decode_output_descriptors,
    encode_contract_call_payload,
    encode_output_descriptors,
)
from vaultcore.errors import (
    FinalizeError,
    InsufficientFunds,
    InvalidAddress,
    InvalidChainType,
    InvalidPayloadType,
    MalformedOutputBuffer,
    MissingPayloadFields,
    PsbtError,
    SigningError,
    UnclassifiableAddress,
    UninitializedComponent,
    UnsupportedUnstakingVariant,
    VaultError,
)
from vaultcore.models import (
    UTXO,
    AddressFallback,
    AddressType,
    CoinSelection,
    FeeOption,
    InputByAddress,
    NetworkParams,
    NetworkType,
    OutputDescriptor,
    get_network_params,
)

__all__ = [
    "AddressFallback",
    "AddressType",
    "BTC_DUST_SAT",
    "ChainType",
    "CoinSelection",
    "CustodianOnlyPayload",
    "DestinationChain",
    "FeeOption",
    "FinalizeError",
    "InputByAddress",
    "InsufficientFunds",
    "InvalidAddress",
    "InvalidChainType",
    "InvalidPayloadType",
    "KeyPair",
    "MalformedOutputBuffer",
    "MissingPayloadFields",
    "NUMS_BIP341",
    "NetworkParams",
    "NetworkType",
    "OutputDescriptor",
    "PayloadKind",
    "PsbtError",
    "SEQUENCE_RBF",
    "SigningError",
    "UTXO",
    "UnclassifiableAddress",
    "UninitializedComponent",
    "UnsupportedUnstakingVariant",
    "UpcPayload",
    "VaultError",
    "decode_chain",
    "decode_contract_call_payload",
    "decode_output_descriptors",
    "encode_chain",
    "encode_contract_call_payload",
    "encode_output_descriptors",
    "get_network_params",
    "hash160",
    "hash256",
    "tagged_hash",
    "validate_chain_type",
]

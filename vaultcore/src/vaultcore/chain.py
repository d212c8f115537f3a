"""
Destination chain identifiers.

A destination chain is encoded in 8 bytes: byte 0 is the chain type, bytes 1-7
are the low 56 bits of the chain id, big-endian. The top byte of a 64-bit
chain id does not fit and is dropped on encoding; decoding therefore only
recovers ids below 2**56.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from loguru import logger

from vaultcore.constants import DESTINATION_CHAIN_SIZE
from vaultcore.errors import InvalidChainType

MAX_CHAIN_ID = 2**64 - 1
ENCODABLE_CHAIN_ID_BITS = 56


class ChainType(IntEnum):
    BITCOIN = 0
    EVM = 1
    SOLANA = 2
    COSMOS = 3

    def __str__(self) -> str:
        return {
            ChainType.BITCOIN: "Bitcoin",
            ChainType.EVM: "EVM",
            ChainType.SOLANA: "Solana",
            ChainType.COSMOS: "Cosmos",
        }[self]


def validate_chain_type(chain_type: int) -> bool:
    return 0 <= chain_type <= ChainType.COSMOS


@dataclass(frozen=True)
class DestinationChain:
    chain_type: ChainType
    chain_id: int

    def __post_init__(self) -> None:
        if not validate_chain_type(int(self.chain_type)):
            raise InvalidChainType(f"Invalid chain type: {self.chain_type}")
        if not 0 <= self.chain_id <= MAX_CHAIN_ID:
            raise ValueError(f"Chain id must be an unsigned 64-bit integer: {self.chain_id}")
        object.__setattr__(self, "chain_type", ChainType(self.chain_type))

    def to_bytes(self) -> bytes:
        return encode_chain(self.chain_type, self.chain_id)

    @classmethod
    def from_bytes(cls, data: bytes) -> DestinationChain | None:
        return decode_chain(data)


def encode_chain(chain_type: ChainType | int, chain_id: int) -> bytes:
    """
    Encode a destination chain into its 8-byte form.

    The chain id is serialized as a full big-endian uint64 and only its last
    7 bytes are kept, so ids >= 2**56 lose their most significant byte.
    """
    if not validate_chain_type(int(chain_type)):
        raise InvalidChainType(f"Invalid chain type: {chain_type}")
    if not 0 <= chain_id <= MAX_CHAIN_ID:
        raise ValueError(f"Chain id must be an unsigned 64-bit integer: {chain_id}")

    if chain_id >> ENCODABLE_CHAIN_ID_BITS:
        logger.warning(
            f"Chain id {chain_id} exceeds {ENCODABLE_CHAIN_ID_BITS} bits, top byte is dropped"
        )

    scratch = chain_id.to_bytes(8, "big")
    return bytes([int(chain_type)]) + scratch[1:]


def decode_chain(data: bytes) -> DestinationChain | None:
    """Decode the 8-byte form. Returns None for a wrong length or unknown chain type."""
    if len(data) != DESTINATION_CHAIN_SIZE:
        return None

    chain_type = data[0]
    if not validate_chain_type(chain_type):
        return None

    chain_id = int.from_bytes(b"\x00" + bytes(data[1:]), "big")
    return DestinationChain(ChainType(chain_type), chain_id)

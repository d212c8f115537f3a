"""
Core data models.

Network parameters and enums are plain Python; the value objects that travel
across component boundaries are frozen dataclasses. Pydantic models live with
the configuration layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    TESTNET4 = "testnet4"
    SIGNET = "signet"
    REGTEST = "regtest"


@dataclass(frozen=True)
class NetworkParams:
    """Version bytes and prefixes registered for a network."""

    name: str
    pubkey_hash: int
    script_hash: int
    bech32_hrp: str
    wif: int
    # 0 for mainnet, 1 for every test network; consumed by the script engine
    kind: int


MAINNET_PARAMS = NetworkParams(
    name="mainnet", pubkey_hash=0x00, script_hash=0x05, bech32_hrp="bc", wif=0x80, kind=0
)
TESTNET_PARAMS = NetworkParams(
    name="testnet", pubkey_hash=0x6F, script_hash=0xC4, bech32_hrp="tb", wif=0xEF, kind=1
)
REGTEST_PARAMS = NetworkParams(
    name="regtest", pubkey_hash=0x6F, script_hash=0xC4, bech32_hrp="bcrt", wif=0xEF, kind=1
)


def get_network_params(network: NetworkType | str) -> NetworkParams:
    """Get the address and key parameters for a network."""
    network = NetworkType(network)
    if network == NetworkType.MAINNET:
        return MAINNET_PARAMS
    if network == NetworkType.REGTEST:
        return REGTEST_PARAMS
    # testnet, testnet4 and signet share the testnet encodings
    return TESTNET_PARAMS


class AddressType(IntEnum):
    P2PKH = 0  # base58, version = pubkey hash
    P2SH = 1  # base58, version = script hash
    P2WPKH = 2  # bech32, version 0, 20-byte program
    P2WSH = 3  # bech32, version 0, 32-byte program
    P2TR = 4  # bech32m, version 1, 32-byte program


class AddressFallback(str, Enum):
    """What to do with an address that decodes as neither base58 nor bech32."""

    P2WPKH = "p2wpkh"
    RAISE = "raise"


class FeeOption(IntEnum):
    MINIMUM_FEE = 0
    ECONOMY_FEE = 1
    HOUR_FEE = 2
    HALF_HOUR_FEE = 3
    FASTEST_FEE = 4


@dataclass(frozen=True)
class UTXO:
    """Spendable output as reported by a UTXO source."""

    txid: str
    vout: int
    value: int
    confirmed: bool = True


@dataclass(frozen=True)
class InputByAddress:
    """Spending metadata for every input drawn from one funding address."""

    address_type: AddressType
    output_script: bytes
    output_script_size: int
    tap_internal_key: bytes | None = None
    redeem_script: bytes | None = None


@dataclass(frozen=True)
class OutputDescriptor:
    """A transaction output to add to a PSBT: either a raw script or an address."""

    value: int
    script: bytes | None = None
    address: str | None = None

    def __post_init__(self) -> None:
        if (self.script is None) == (self.address is None):
            raise ValueError("OutputDescriptor needs exactly one of script or address")
        if self.value < 0:
            raise ValueError(f"Output value must be non-negative, got {self.value}")


@dataclass(frozen=True)
class CoinSelection:
    """Result of coin selection"""

    utxos: tuple[UTXO, ...]
    fee: int

    @property
    def total_value(self) -> int:
        return sum(utxo.value for utxo in self.utxos)

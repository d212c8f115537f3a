"""
Shared fixtures for staker tests.

The custodian-only vector is a testnet 3-of-5 custodian vault spent by two
100,000 sat inputs into one 7,000 sat request, with the rest returned to the
vault as change.
"""

from __future__ import annotations

import sys

import pytest
from coincurve import PrivateKey
from loguru import logger

from staker.config import VaultConfig
from staker.vault import VaultOrchestrator
from vaultcore.crypto import KeyPair
from vaultcore.models import NetworkType

CUSTODIAN_PSBT_HEX = (
    "70736274ff0100a602000000022aab2ff2a776da8dc894306e83562776a664e56ec64d346d61b79c81996539"
    "4a0000000000fdffffff6bdd8c7e85c6a5599ca62f758ecac1369ebc14fec9569c84678a7aa12a371bcd0000"
    "000000fdffffff02a11900000000000016001450dceca158a9c872eb405d52293d351110572c9ee8f1020000"
    "0000002251207f815abf6dfd78423a708aa8db1c2c906eecac910c035132d342e4988a37b8d5000000000001"
    "012ba0860100000000002251207f815abf6dfd78423a708aa8db1c2c906eecac910c035132d342e4988a37b8"
    "d5010304000000002215c050929b74c1a04954b78b4b6035e97a5e078a5a0f28ec96d547bfee9ace803ac0ad"
    "2015da913b3e87b4932b1e1b87d9667c28e7250aa0ed60b3a31095f541e1641488ac20594e78c0a2968210d9"
    "c1550d4ad31b03d5e4b9659cf2f67842483bb3c2bb7811ba20b59e575cef873ea95273afd55956c845905072"
    "00d410e693e4b079a426cc6102ba20e2d226cfdaec93903c3f3b81a01a81b19137627cb26e621a0afb7bcd6e"
    "fbcfffba20f0f3d9beaf7a3945bcaa147e041ae1d5ca029bde7e40d8251f0783d6ecbe8fb5ba53a2c0211615"
    "da913b3e87b4932b1e1b87d9667c28e7250aa0ed60b3a31095f541e164148825015a10a5ec729629c6dd863d"
    "c28b7162e18f96b00dedd87f158b228428a298bccb000000002116594e78c0a2968210d9c1550d4ad31b03d5"
    "e4b9659cf2f67842483bb3c2bb781125015a10a5ec729629c6dd863dc28b7162e18f96b00dedd87f158b2284"
    "28a298bccb000000002116b59e575cef873ea95273afd55956c84590507200d410e693e4b079a426cc610225"
    "015a10a5ec729629c6dd863dc28b7162e18f96b00dedd87f158b228428a298bccb000000002116e2d226cfda"
    "ec93903c3f3b81a01a81b19137627cb26e621a0afb7bcd6efbcfff25015a10a5ec729629c6dd863dc28b7162"
    "e18f96b00dedd87f158b228428a298bccb000000002116f0f3d9beaf7a3945bcaa147e041ae1d5ca029bde7e"
    "40d8251f0783d6ecbe8fb525015a10a5ec729629c6dd863dc28b7162e18f96b00dedd87f158b228428a298bc"
    "cb0000000001172050929b74c1a04954b78b4b6035e97a5e078a5a0f28ec96d547bfee9ace803ac00118205a"
    "10a5ec729629c6dd863dc28b7162e18f96b00dedd87f158b228428a298bccb0001012ba08601000000000022"
    "51207f815abf6dfd78423a708aa8db1c2c906eecac910c035132d342e4988a37b8d5010304000000002215c0"
    "50929b74c1a04954b78b4b6035e97a5e078a5a0f28ec96d547bfee9ace803ac0ad2015da913b3e87b4932b1e"
    "1b87d9667c28e7250aa0ed60b3a31095f541e1641488ac20594e78c0a2968210d9c1550d4ad31b03d5e4b965"
    "9cf2f67842483bb3c2bb7811ba20b59e575cef873ea95273afd55956c84590507200d410e693e4b079a426cc"
    "6102ba20e2d226cfdaec93903c3f3b81a01a81b19137627cb26e621a0afb7bcd6efbcfffba20f0f3d9beaf7a"
    "3945bcaa147e041ae1d5ca029bde7e40d8251f0783d6ecbe8fb5ba53a2c0211615da913b3e87b4932b1e1b87"
    "d9667c28e7250aa0ed60b3a31095f541e164148825015a10a5ec729629c6dd863dc28b7162e18f96b00dedd8"
    "7f158b228428a298bccb000000002116594e78c0a2968210d9c1550d4ad31b03d5e4b9659cf2f67842483bb3"
    "c2bb781125015a10a5ec729629c6dd863dc28b7162e18f96b00dedd87f158b228428a298bccb000000002116"
    "b59e575cef873ea95273afd55956c84590507200d410e693e4b079a426cc610225015a10a5ec729629c6dd86"
    "3dc28b7162e18f96b00dedd87f158b228428a298bccb000000002116e2d226cfdaec93903c3f3b81a01a81b1"
    "9137627cb26e621a0afb7bcd6efbcfff25015a10a5ec729629c6dd863dc28b7162e18f96b00dedd87f158b22"
    "8428a298bccb000000002116f0f3d9beaf7a3945bcaa147e041ae1d5ca029bde7e40d8251f0783d6ecbe8fb5"
    "25015a10a5ec729629c6dd863dc28b7162e18f96b00dedd87f158b228428a298bccb0000000001172050929b"
    "74c1a04954b78b4b6035e97a5e078a5a0f28ec96d547bfee9ace803ac00118205a10a5ec729629c6dd863dc2"
    "8b7162e18f96b00dedd87f158b228428a298bccb000000")

# Raw (little-endian) input txids of the vector
CUSTODIAN_INPUT_TXIDS_RAW = (
    "2aab2ff2a776da8dc894306e83562776a664e56ec64d346d61b79c819965394a",
    "6bdd8c7e85c6a5599ca62f758ecac1369ebc14fec9569c84678a7aa12a371bcd",
)

CUSTODIAN_XONLY_KEYS = (
    "15da913b3e87b4932b1e1b87d9667c28e7250aa0ed60b3a31095f541e1641488",
    "594e78c0a2968210d9c1550d4ad31b03d5e4b9659cf2f67842483bb3c2bb7811",
    "b59e575cef873ea95273afd55956c84590507200d410e693e4b079a426cc6102",
    "e2d226cfdaec93903c3f3b81a01a81b19137627cb26e621a0afb7bcd6efbcfff",
    "f0f3d9beaf7a3945bcaa147e041ae1d5ca029bde7e40d8251f0783d6ecbe8fb5",
)

CUSTODIAN_LOCKING_SCRIPT = (
    "51207f815abf6dfd78423a708aa8db1c2c906eecac910c035132d342e4988a37b8d5"
)

CUSTODIAN_RECIPIENT_SCRIPT = "001450dceca158a9c872eb405d52293d351110572c9e"


@pytest.fixture(autouse=True)
def reset_logger():
    """CLI commands replace the loguru sinks; restore a plain stderr sink afterwards."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def user() -> KeyPair:
    return KeyPair(PrivateKey.from_int(0x1001))


@pytest.fixture
def protocol() -> KeyPair:
    return KeyPair(PrivateKey.from_int(0x2002))


@pytest.fixture
def custodians() -> list[KeyPair]:
    return [KeyPair(PrivateKey.from_int(0x3000 + i)) for i in range(1, 4)]


@pytest.fixture
def vault_config() -> VaultConfig:
    return VaultConfig(network=NetworkType.REGTEST, tag="SCALAR", service_tag="light", version=1)


@pytest.fixture
def vault(vault_config: VaultConfig) -> VaultOrchestrator:
    return VaultOrchestrator(vault_config)


@pytest.fixture
def custodian_psbt_hex() -> str:
    return CUSTODIAN_PSBT_HEX


@pytest.fixture
def custodian_input_txids() -> tuple[str, ...]:
    """Input txids in RPC (big-endian) form."""
    return tuple(bytes.fromhex(raw)[::-1].hex() for raw in CUSTODIAN_INPUT_TXIDS_RAW)


@pytest.fixture
def custodian_xonly_keys() -> tuple[bytes, ...]:
    return tuple(bytes.fromhex(key) for key in CUSTODIAN_XONLY_KEYS)


@pytest.fixture
def custodian_locking_script() -> bytes:
    return bytes.fromhex(CUSTODIAN_LOCKING_SCRIPT)


@pytest.fixture
def custodian_recipient_script() -> bytes:
    return bytes.fromhex(CUSTODIAN_RECIPIENT_SCRIPT)

"""
Shared fixtures for vaultwallet tests.

The custodian vectors come from a testnet custodian-only 3-of-5 vault: two
inputs locked to a single tapscript leaf, signed by four of the five
custodians with SIGHASH_DEFAULT.
"""

import pytest
from coincurve import PrivateKey

from vaultcore.crypto import KeyPair

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

CUSTODIAN_FINAL_TX_HEX = (
    "020000000001022aab2ff2a776da8dc894306e83562776a664e56ec64d346d61b79c819965394a0000000000"
    "fdffffff6bdd8c7e85c6a5599ca62f758ecac1369ebc14fec9569c84678a7aa12a371bcd0000000000fdffff"
    "ff02a11900000000000016001450dceca158a9c872eb405d52293d351110572c9ee8f1020000000000225120"
    "7f815abf6dfd78423a708aa8db1c2c906eecac910c035132d342e4988a37b8d50740f873b486cebd17e41263"
    "4e254e657c036b74bf8bd456a238edab2453d98b12aa763447a8cd884ccf488b0759dab0d37058b1bf539f1e"
    "b849257902325eac71760040dded3a360c7b8b8e0980605f69fd1579c7fd42ac51b820ec9a1e45b82c6a628b"
    "d0f27a2bbec89e95080abe4c6019e6dc1e28a026a3157927d3edffb9b07f9d42405027c5d8e9262485ac0fb2"
    "93211dfd8e0237edf3ff3c4049a5e27e7bb32bb931de0f05c83008f2be9c68689cc3983703360efb890f386d"
    "06e4da0c75b61302304030dc8bfa32aedcc43ded62a0631031fabf3c7952d5e3ebf2e68d91b7ddab1210d206"
    "dad3e53f27ff01c59fea535de3c830601cb80017fed4d013a90782272b4bac2015da913b3e87b4932b1e1b87"
    "d9667c28e7250aa0ed60b3a31095f541e1641488ac20594e78c0a2968210d9c1550d4ad31b03d5e4b9659cf2"
    "f67842483bb3c2bb7811ba20b59e575cef873ea95273afd55956c84590507200d410e693e4b079a426cc6102"
    "ba20e2d226cfdaec93903c3f3b81a01a81b19137627cb26e621a0afb7bcd6efbcfffba20f0f3d9beaf7a3945"
    "bcaa147e041ae1d5ca029bde7e40d8251f0783d6ecbe8fb5ba53a221c050929b74c1a04954b78b4b6035e97a"
    "5e078a5a0f28ec96d547bfee9ace803ac00740e6612e759ffbec3a75ac1c1aa13b7e0ad43ce39f2ecf01eb1f"
    "5d82372db27cd925d8aca6fc3e1e7ed3de22b36af8376465ae6352b7ec82e605b0b5f523057e450040f42cf8"
    "5133106b71d2b77d5e7dc4e7430835f790da85ee3bac3442f0f809d8753526eec5aa30df0f41314bf2cbdff8"
    "34a5fb28c3789cf4457c6c7ff6aab92de0407b45bc90894bdc50b07512e8f420493f5ec47bc8d774bb961ce3"
    "7c01963c41226f300b6c3c4f251946e3f7593aaf56b606bc48cdbd90d1b243747f1fbd2ac16040f6c313aad0"
    "9b8ffb673ba0750200362d6c328098803d6e1e9947466ba3238455381dca2e8cc70e831d0813b6d382988a6c"
    "27226a91be6cf700d5869edc91fda7ac2015da913b3e87b4932b1e1b87d9667c28e7250aa0ed60b3a31095f5"
    "41e1641488ac20594e78c0a2968210d9c1550d4ad31b03d5e4b9659cf2f67842483bb3c2bb7811ba20b59e57"
    "5cef873ea95273afd55956c84590507200d410e693e4b079a426cc6102ba20e2d226cfdaec93903c3f3b81a0"
    "1a81b19137627cb26e621a0afb7bcd6efbcfffba20f0f3d9beaf7a3945bcaa147e041ae1d5ca029bde7e40d8"
    "251f0783d6ecbe8fb5ba53a221c050929b74c1a04954b78b4b6035e97a5e078a5a0f28ec96d547bfee9ace80"
    "3ac000000000")

CUSTODIAN_LEAF_HASH = "5a10a5ec729629c6dd863dc28b7162e18f96b00dedd87f158b228428a298bccb"

# x-only key -> (signature for input 0, signature for input 1)
CUSTODIAN_TAP_SIGS = {
    "b59e575cef873ea95273afd55956c84590507200d410e693e4b079a426cc6102": (
        "dded3a360c7b8b8e0980605f69fd1579c7fd42ac51b820ec9a1e45b82c6a628b"
        "d0f27a2bbec89e95080abe4c6019e6dc1e28a026a3157927d3edffb9b07f9d42",
        "f42cf85133106b71d2b77d5e7dc4e7430835f790da85ee3bac3442f0f809d875"
        "3526eec5aa30df0f41314bf2cbdff834a5fb28c3789cf4457c6c7ff6aab92de0",
    ),
    "f0f3d9beaf7a3945bcaa147e041ae1d5ca029bde7e40d8251f0783d6ecbe8fb5": (
        "f873b486cebd17e412634e254e657c036b74bf8bd456a238edab2453d98b12aa"
        "763447a8cd884ccf488b0759dab0d37058b1bf539f1eb849257902325eac7176",
        "e6612e759ffbec3a75ac1c1aa13b7e0ad43ce39f2ecf01eb1f5d82372db27cd9"
        "25d8aca6fc3e1e7ed3de22b36af8376465ae6352b7ec82e605b0b5f523057e45",
    ),
    "594e78c0a2968210d9c1550d4ad31b03d5e4b9659cf2f67842483bb3c2bb7811": (
        "5027c5d8e9262485ac0fb293211dfd8e0237edf3ff3c4049a5e27e7bb32bb931"
        "de0f05c83008f2be9c68689cc3983703360efb890f386d06e4da0c75b6130230",
        "7b45bc90894bdc50b07512e8f420493f5ec47bc8d774bb961ce37c01963c4122"
        "6f300b6c3c4f251946e3f7593aaf56b606bc48cdbd90d1b243747f1fbd2ac160",
    ),
    "15da913b3e87b4932b1e1b87d9667c28e7250aa0ed60b3a31095f541e1641488": (
        "30dc8bfa32aedcc43ded62a0631031fabf3c7952d5e3ebf2e68d91b7ddab1210"
        "d206dad3e53f27ff01c59fea535de3c830601cb80017fed4d013a90782272b4b",
        "f6c313aad09b8ffb673ba0750200362d6c328098803d6e1e9947466ba3238455"
        "381dca2e8cc70e831d0813b6d382988a6c27226a91be6cf700d5869edc91fda7",
    ),
}


@pytest.fixture
def alice() -> KeyPair:
    return KeyPair(PrivateKey.from_int(0xA11CE))


@pytest.fixture
def bob() -> KeyPair:
    return KeyPair(PrivateKey.from_int(0xB0B))


@pytest.fixture
def carol() -> KeyPair:
    return KeyPair(PrivateKey.from_int(0xCA201))


@pytest.fixture
def custodian_psbt_hex() -> str:
    return CUSTODIAN_PSBT_HEX


@pytest.fixture
def custodian_final_tx_hex() -> str:
    return CUSTODIAN_FINAL_TX_HEX


@pytest.fixture
def custodian_leaf_hash() -> bytes:
    return bytes.fromhex(CUSTODIAN_LEAF_HASH)


@pytest.fixture
def custodian_tap_sigs() -> dict[bytes, tuple[bytes, bytes]]:
    return {
        bytes.fromhex(key): (bytes.fromhex(sig0), bytes.fromhex(sig1))
        for key, (sig0, sig1) in CUSTODIAN_TAP_SIGS.items()
    }

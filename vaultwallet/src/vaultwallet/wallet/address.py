"""
Bitcoin address utilities.

Classification of funding addresses, conversion between addresses and
scriptPubKeys, and the per-address spending metadata used when a staking
transaction draws inputs from a single funding address.
"""

from __future__ import annotations

import hashlib

import base58
from bip_utils import Bech32ChecksumError, SegwitBech32Decoder, SegwitBech32Encoder
from loguru import logger

from vaultcore.constants import (
    DEFAULT_INPUT_SIZE,
    P2TR_INPUT_SIZE,
    P2WPKH_INPUT_SIZE,
    PUBKEY_SIZE,
)
from vaultcore.crypto import hash160
from vaultcore.errors import InvalidAddress, UnclassifiableAddress
from vaultcore.models import (
    AddressFallback,
    AddressType,
    InputByAddress,
    NetworkType,
    get_network_params,
)
from vaultcore.script import p2pkh_script, p2sh_script


def p2wpkh_script(pubkey: bytes) -> bytes:
    """Create P2WPKH scriptPubKey (OP_0 <20-byte-hash>)"""
    return bytes([0x00, 0x14]) + hash160(pubkey)


def p2wsh_script(witness_script: bytes) -> bytes:
    """Create P2WSH scriptPubKey (OP_0 <32-byte-hash>)"""
    return bytes([0x00, 0x20]) + hashlib.sha256(witness_script).digest()


def p2tr_script(output_key: bytes) -> bytes:
    """Create P2TR scriptPubKey (OP_1 <32-byte-xonly-key>)"""
    if len(output_key) != 32:
        raise ValueError(f"Invalid x-only key length: {len(output_key)}")
    return bytes([0x51, 0x20]) + output_key


def _decode_base58(address: str) -> tuple[int, bytes] | None:
    try:
        decoded = base58.b58decode_check(address)
    except ValueError:
        return None
    if len(decoded) != 21:
        return None
    return decoded[0], decoded[1:]


def _decode_segwit(address: str, hrp: str | None = None) -> tuple[str, int, bytes] | None:
    """
    Decode a segwit address. Returns (hrp, version, program).

    Version 0 programs must carry a bech32 checksum, version 1 and above a
    bech32m one. Without ``hrp`` the address prefix is taken as is.
    """
    if hrp is None:
        hrp = address.rpartition("1")[0].lower()
        if not hrp:
            return None
    try:
        witver, witprog = SegwitBech32Decoder.Decode(hrp, address)
    except (Bech32ChecksumError, ValueError):
        return None
    return hrp, witver, bytes(witprog)


def classify_address(
    address: str,
    network: NetworkType | str,
    fallback: AddressFallback | str = AddressFallback.P2WPKH,
) -> AddressType:
    """
    Determine the type of a funding address.

    Base58check is tried first and the version byte is matched against the
    network's pubkey-hash and script-hash versions. Otherwise the address is
    decoded as bech32/bech32m and typed by witness version and program length.

    Anything that cannot be typed resolves to P2WPKH, unless ``fallback`` is
    ``raise``, in which case UnclassifiableAddress is raised.
    """
    params = get_network_params(network)

    legacy = _decode_base58(address)
    if legacy is not None:
        version, _ = legacy
        if version == params.pubkey_hash:
            return AddressType.P2PKH
        if version == params.script_hash:
            return AddressType.P2SH
    else:
        segwit = _decode_segwit(address)
        if segwit is not None:
            _, witver, witprog = segwit
            if witver == 0 and len(witprog) == 20:
                return AddressType.P2WPKH
            if witver == 0 and len(witprog) == 32:
                return AddressType.P2WSH
            if witver == 1 and len(witprog) == 32:
                return AddressType.P2TR

    if AddressFallback(fallback) == AddressFallback.RAISE:
        raise UnclassifiableAddress(f"Cannot determine address type of {address}")

    logger.warning(f"Could not classify address {address} on {params.name}, assuming P2WPKH")
    return AddressType.P2WPKH


def address_to_scriptpubkey(address: str, network: NetworkType | str) -> bytes:
    """
    Convert a Bitcoin address to scriptPubKey.

    Supports:
    - P2WPKH / P2WSH (bech32, witness version 0)
    - P2TR (bech32m, witness version 1)
    - P2PKH / P2SH (base58check)

    Raises:
        InvalidAddress: Undecodable address or address of another network
    """
    params = get_network_params(network)

    if address.lower().startswith(params.bech32_hrp + "1"):
        segwit = _decode_segwit(address, params.bech32_hrp)
        if segwit is None:
            raise InvalidAddress(f"Invalid segwit address: {address}")
        _, witver, witprog = segwit

        if witver == 0 and len(witprog) == 20:
            return bytes([0x00, 0x14]) + witprog
        if witver == 0 and len(witprog) == 32:
            return bytes([0x00, 0x20]) + witprog
        if witver == 1 and len(witprog) == 32:
            return p2tr_script(witprog)

        raise InvalidAddress(f"Unsupported witness program v{witver} ({len(witprog)} bytes)")

    legacy = _decode_base58(address)
    if legacy is None:
        raise InvalidAddress(f"Invalid address for {params.name}: {address}")

    version, payload = legacy
    if version == params.pubkey_hash:
        return p2pkh_script(payload)
    if version == params.script_hash:
        return p2sh_script(payload)

    raise InvalidAddress(f"Unknown address version {version:#04x} for {params.name}")


def scriptpubkey_to_address(scriptpubkey: bytes, network: NetworkType | str) -> str:
    """Convert scriptPubKey to address."""
    params = get_network_params(network)

    witness_program: tuple[int, bytes] | None = None
    if len(scriptpubkey) == 22 and scriptpubkey[:2] == b"\x00\x14":
        witness_program = (0, scriptpubkey[2:])
    elif len(scriptpubkey) == 34 and scriptpubkey[:2] == b"\x00\x20":
        witness_program = (0, scriptpubkey[2:])
    elif len(scriptpubkey) == 34 and scriptpubkey[:2] == b"\x51\x20":
        witness_program = (1, scriptpubkey[2:])

    if witness_program is not None:
        witver, witprog = witness_program
        # bech32 for version 0, bech32m for version 1 and above
        return SegwitBech32Encoder.Encode(params.bech32_hrp, witver, witprog)

    if (
        len(scriptpubkey) == 25
        and scriptpubkey[:3] == b"\x76\xa9\x14"
        and scriptpubkey[23:] == b"\x88\xac"
    ):
        payload = bytes([params.pubkey_hash]) + scriptpubkey[3:23]
        return base58.b58encode_check(payload).decode("ascii")

    if len(scriptpubkey) == 23 and scriptpubkey[:2] == b"\xa9\x14" and scriptpubkey[22] == 0x87:
        payload = bytes([params.script_hash]) + scriptpubkey[2:22]
        return base58.b58encode_check(payload).decode("ascii")

    raise InvalidAddress(f"Unsupported scriptPubKey: {scriptpubkey.hex()}")


def derive_input_metadata(
    address: str,
    public_key: bytes,
    network: NetworkType | str,
    fallback: AddressFallback | str = AddressFallback.P2WPKH,
) -> InputByAddress:
    """
    Build the spending metadata shared by every input drawn from ``address``.

    Args:
        address: Funding address
        public_key: 33-byte compressed public key controlling the address
        network: Network the address belongs to
        fallback: Policy for addresses that cannot be classified

    Returns:
        InputByAddress with the output script, input size estimate and either a
        taproot internal key (P2TR) or a P2WPKH redeem script (P2WSH)
    """
    if len(public_key) != PUBKEY_SIZE:
        raise ValueError(f"Invalid compressed pubkey length: {len(public_key)}")

    address_type = classify_address(address, network, fallback)

    legacy = _decode_base58(address)
    if legacy is not None and address_type == AddressType.P2PKH:
        output_script = p2pkh_script(legacy[1])
    else:
        output_script = address_to_scriptpubkey(address, network)

    output_script_size = DEFAULT_INPUT_SIZE
    tap_internal_key = None
    redeem_script = None

    if address_type == AddressType.P2TR:
        tap_internal_key = public_key[1:33]
        output_script_size = P2TR_INPUT_SIZE

    if address_type == AddressType.P2WSH:
        redeem_script = p2wpkh_script(public_key)
        output_script_size = P2WPKH_INPUT_SIZE

    logger.debug(
        f"Input metadata for {address}: type={address_type.name}, "
        f"estimated input size={output_script_size} vB"
    )

    return InputByAddress(
        address_type=address_type,
        output_script=output_script,
        output_script_size=output_script_size,
        tap_internal_key=tap_internal_key,
        redeem_script=redeem_script,
    )

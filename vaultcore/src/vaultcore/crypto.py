"""
Cryptographic primitives for the vault components.
"""

from __future__ import annotations

import hashlib

import base58
from coincurve import PrivateKey, PublicKey

from vaultcore.constants import TAPSCRIPT_LEAF_VERSION
from vaultcore.errors import SigningError
from vaultcore.models import NetworkType, get_network_params

# secp256k1 group order
CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def hash256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def tagged_hash(tag: str, data: bytes) -> bytes:
    """BIP340 tagged hash: SHA256(SHA256(tag) || SHA256(tag) || data)"""
    tag_digest = hashlib.sha256(tag.encode()).digest()
    return hashlib.sha256(tag_digest + tag_digest + data).digest()


def encode_varint(value: int) -> bytes:
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + value.to_bytes(2, "little")
    if value <= 0xFFFFFFFF:
        return b"\xfe" + value.to_bytes(4, "little")
    return b"\xff" + value.to_bytes(8, "little")


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Read a compact size integer. Returns (value, new_offset)."""
    first = data[offset]
    offset += 1

    if first < 0xFD:
        return first, offset
    if first == 0xFD:
        return int.from_bytes(data[offset : offset + 2], "little"), offset + 2
    if first == 0xFE:
        return int.from_bytes(data[offset : offset + 4], "little"), offset + 4
    return int.from_bytes(data[offset : offset + 8], "little"), offset + 8


def xonly(pubkey: bytes) -> bytes:
    """Drop the parity byte of a compressed public key."""
    if len(pubkey) == 32:
        return pubkey
    if len(pubkey) != 33:
        raise ValueError(f"Invalid compressed pubkey length: {len(pubkey)}")
    return pubkey[1:33]


def tapleaf_hash(script: bytes, leaf_version: int = TAPSCRIPT_LEAF_VERSION) -> bytes:
    return tagged_hash("TapLeaf", bytes([leaf_version]) + encode_varint(len(script)) + script)


def tapbranch_hash(left: bytes, right: bytes) -> bytes:
    """Children are ordered lexicographically before hashing."""
    if right < left:
        left, right = right, left
    return tagged_hash("TapBranch", left + right)


def taproot_tweak(internal_key: bytes, merkle_root: bytes | None = None) -> bytes:
    """Tweak scalar t = TaggedHash("TapTweak", P || merkle_root)."""
    return tagged_hash("TapTweak", internal_key + (merkle_root or b""))


def taproot_output_key(internal_key: bytes, merkle_root: bytes | None = None) -> tuple[bytes, int]:
    """
    Compute the BIP341 output key for an x-only internal key.

    Returns:
        (x-only output key, parity of the output key's y coordinate)
    """
    tweak = taproot_tweak(internal_key, merkle_root)
    point = PublicKey(b"\x02" + internal_key).add(tweak)
    compressed = point.format(compressed=True)
    return compressed[1:], compressed[0] & 1


def tweak_private_key(private_key: PrivateKey, merkle_root: bytes | None = None) -> PrivateKey:
    """Tweak a private key for taproot key path spending."""
    compressed = private_key.public_key.format(compressed=True)
    secret = private_key.to_int()
    if compressed[0] == 0x03:
        secret = CURVE_ORDER - secret
    tweak = int.from_bytes(taproot_tweak(compressed[1:], merkle_root), "big")
    if tweak >= CURVE_ORDER:
        raise SigningError("Taproot tweak out of range")
    return PrivateKey.from_int((secret + tweak) % CURVE_ORDER)


class KeyPair:
    """A secp256k1 key pair bound to a network."""

    def __init__(self, private_key: PrivateKey | None = None, compressed: bool = True):
        self.private_key = private_key or PrivateKey()
        self.compressed = compressed

    @classmethod
    def from_wif(cls, wif: str, network: NetworkType | str) -> KeyPair:
        """
        Decode a WIF private key.

        Raises:
            SigningError: Invalid encoding or a key for a different network
        """
        try:
            payload = base58.b58decode_check(wif)
        except ValueError as e:
            raise SigningError(f"Invalid WIF encoding: {e}") from e

        params = get_network_params(network)
        if payload[0] != params.wif:
            raise SigningError(f"Invalid network version {payload[0]:#04x} for {params.name}")

        if len(payload) == 34 and payload[33] == 0x01:
            return cls(PrivateKey(payload[1:33]), compressed=True)
        if len(payload) == 33:
            return cls(PrivateKey(payload[1:33]), compressed=False)
        raise SigningError(f"Invalid WIF payload length: {len(payload)}")

    def to_wif(self, network: NetworkType | str) -> str:
        params = get_network_params(network)
        payload = bytes([params.wif]) + self.private_key.secret
        if self.compressed:
            payload += b"\x01"
        return base58.b58encode_check(payload).decode("ascii")

    @property
    def public_key(self) -> bytes:
        return self.private_key.public_key.format(compressed=self.compressed)

    @property
    def xonly_public_key(self) -> bytes:
        return self.private_key.public_key.format(compressed=True)[1:]

    def public_key_hex(self) -> str:
        return self.public_key.hex()

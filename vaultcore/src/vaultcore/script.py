"""
Bitcoin script assembly helpers.

Only the subset of script needed by the vault locking/spending paths is
covered: data pushes, small integers and the handful of opcodes used by
P2PKH/P2SH/segwit templates and the tapscript quorum leaves.
"""

from __future__ import annotations

from vaultcore.errors import VaultError

OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1 = 0x51
OP_16 = 0x60
OP_RETURN = 0x6A
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_GREATERTHANOREQUAL = 0xA2
OP_HASH160 = 0xA9
OP_CHECKSIG = 0xAC
OP_CHECKSIGVERIFY = 0xAD
OP_CHECKMULTISIG = 0xAE
OP_CHECKSIGADD = 0xBA


class ScriptError(VaultError):
    pass


def push_data(data: bytes) -> bytes:
    """Minimal push of arbitrary data."""
    length = len(data)
    if length < OP_PUSHDATA1:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + length.to_bytes(2, "little") + data
    return bytes([OP_PUSHDATA4]) + length.to_bytes(4, "little") + data


def push_int(value: int) -> bytes:
    """Push a non-negative integer using OP_0/OP_1..OP_16 or a minimal scriptnum."""
    if value < 0:
        raise ScriptError(f"Negative script numbers are not supported: {value}")
    if value == 0:
        return bytes([OP_0])
    if value <= 16:
        return bytes([OP_1 + value - 1])

    encoded = bytearray()
    remaining = value
    while remaining:
        encoded.append(remaining & 0xFF)
        remaining >>= 8
    if encoded[-1] & 0x80:
        encoded.append(0x00)
    return push_data(bytes(encoded))


def decode_small_int(opcode: int) -> int | None:
    if opcode == OP_0:
        return 0
    if OP_1 <= opcode <= OP_16:
        return opcode - OP_1 + 1
    return None


def parse_script(script: bytes) -> list[int | bytes]:
    """
    Split a script into its elements.

    Opcodes are returned as ints and pushed data as bytes.

    Raises:
        ScriptError: A push runs past the end of the script
    """
    elements: list[int | bytes] = []
    offset = 0
    while offset < len(script):
        opcode = script[offset]
        offset += 1

        if 0 < opcode < OP_PUSHDATA1:
            size = opcode
        elif opcode == OP_PUSHDATA1:
            size = script[offset]
            offset += 1
        elif opcode == OP_PUSHDATA2:
            size = int.from_bytes(script[offset : offset + 2], "little")
            offset += 2
        elif opcode == OP_PUSHDATA4:
            size = int.from_bytes(script[offset : offset + 4], "little")
            offset += 4
        else:
            elements.append(opcode)
            continue

        if offset + size > len(script):
            raise ScriptError(f"Push of {size} bytes runs past end of script")
        elements.append(bytes(script[offset : offset + size]))
        offset += size

    return elements


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    """OP_DUP OP_HASH160 <20-byte-hash> OP_EQUALVERIFY OP_CHECKSIG"""
    return bytes([OP_DUP, OP_HASH160, 0x14]) + pubkey_hash + bytes([OP_EQUALVERIFY, OP_CHECKSIG])


def p2sh_script(script_hash: bytes) -> bytes:
    """OP_HASH160 <20-byte-hash> OP_EQUAL"""
    return bytes([OP_HASH160, 0x14]) + script_hash + bytes([OP_EQUAL])


def op_return_script(data: bytes) -> bytes:
    return bytes([OP_RETURN]) + push_data(data)

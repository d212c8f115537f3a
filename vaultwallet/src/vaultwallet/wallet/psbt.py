"""
Partially Signed Bitcoin Transactions (BIP174, version 0).

Covers the key types used by segwit v0 and taproot spends. Any other
key-value pair is kept as-is so a PSBT produced elsewhere survives a
parse/serialize cycle unchanged.
"""

from __future__ import annotations

import base64
import struct
from dataclasses import dataclass, field

from vaultcore.constants import SEQUENCE_FINAL, TX_VERSION
from vaultcore.crypto import encode_varint, hash256, read_varint
from vaultcore.errors import PsbtError

PSBT_MAGIC = b"psbt\xff"

PSBT_GLOBAL_UNSIGNED_TX = 0x00

PSBT_IN_NON_WITNESS_UTXO = 0x00
PSBT_IN_WITNESS_UTXO = 0x01
PSBT_IN_PARTIAL_SIG = 0x02
PSBT_IN_SIGHASH_TYPE = 0x03
PSBT_IN_REDEEM_SCRIPT = 0x04
PSBT_IN_WITNESS_SCRIPT = 0x05
PSBT_IN_FINAL_SCRIPTSIG = 0x07
PSBT_IN_FINAL_SCRIPTWITNESS = 0x08
PSBT_IN_TAP_KEY_SIG = 0x13
PSBT_IN_TAP_SCRIPT_SIG = 0x14
PSBT_IN_TAP_LEAF_SCRIPT = 0x15
PSBT_IN_TAP_BIP32_DERIVATION = 0x16
PSBT_IN_TAP_INTERNAL_KEY = 0x17
PSBT_IN_TAP_MERKLE_ROOT = 0x18

PSBT_OUT_REDEEM_SCRIPT = 0x00
PSBT_OUT_WITNESS_SCRIPT = 0x01
PSBT_OUT_TAP_INTERNAL_KEY = 0x05


@dataclass
class TxInput:
    """Transaction input. ``txid`` is in RPC (big-endian) hex."""

    txid: str
    vout: int
    script_sig: bytes = b""
    sequence: int = SEQUENCE_FINAL
    witness: list[bytes] = field(default_factory=list)

    @property
    def outpoint(self) -> bytes:
        return bytes.fromhex(self.txid)[::-1] + struct.pack("<I", self.vout)


@dataclass
class TxOutput:
    value: int
    script_pubkey: bytes

    def serialize(self) -> bytes:
        script = self.script_pubkey
        return struct.pack("<Q", self.value) + encode_varint(len(script)) + script


@dataclass
class Transaction:
    version: int = TX_VERSION
    inputs: list[TxInput] = field(default_factory=list)
    outputs: list[TxOutput] = field(default_factory=list)
    locktime: int = 0

    @property
    def has_witness(self) -> bool:
        return any(inp.witness for inp in self.inputs)

    def serialize(self, include_witness: bool = True) -> bytes:
        use_witness = include_witness and self.has_witness

        result = struct.pack("<I", self.version)
        if use_witness:
            result += b"\x00\x01"

        result += encode_varint(len(self.inputs))
        for inp in self.inputs:
            result += inp.outpoint
            result += encode_varint(len(inp.script_sig)) + inp.script_sig
            result += struct.pack("<I", inp.sequence)

        result += encode_varint(len(self.outputs))
        for out in self.outputs:
            result += out.serialize()

        if use_witness:
            for inp in self.inputs:
                result += serialize_witness(inp.witness)

        result += struct.pack("<I", self.locktime)
        return result

    def txid(self) -> str:
        return hash256(self.serialize(include_witness=False))[::-1].hex()

    @classmethod
    def parse(cls, data: bytes) -> Transaction:
        try:
            offset = 0
            (version,) = struct.unpack_from("<I", data, offset)
            offset += 4

            segwit = data[offset] == 0x00 and data[offset + 1] == 0x01
            if segwit:
                offset += 2

            input_count, offset = read_varint(data, offset)
            inputs: list[TxInput] = []
            for _ in range(input_count):
                txid = data[offset : offset + 32][::-1].hex()
                offset += 32
                (vout,) = struct.unpack_from("<I", data, offset)
                offset += 4
                script_len, offset = read_varint(data, offset)
                script_sig = data[offset : offset + script_len]
                offset += script_len
                (sequence,) = struct.unpack_from("<I", data, offset)
                offset += 4
                inputs.append(TxInput(txid, vout, script_sig, sequence))

            output_count, offset = read_varint(data, offset)
            outputs: list[TxOutput] = []
            for _ in range(output_count):
                (value,) = struct.unpack_from("<Q", data, offset)
                offset += 8
                script_len, offset = read_varint(data, offset)
                outputs.append(TxOutput(value, data[offset : offset + script_len]))
                offset += script_len

            if segwit:
                for inp in inputs:
                    inp.witness, offset = parse_witness(data, offset)

            (locktime,) = struct.unpack_from("<I", data, offset)
            offset += 4
        except (IndexError, struct.error) as e:
            raise PsbtError(f"Failed to parse transaction: {e}") from e

        if offset != len(data):
            raise PsbtError(f"Trailing data after transaction ({len(data) - offset} bytes)")

        return cls(version=version, inputs=inputs, outputs=outputs, locktime=locktime)


def serialize_witness(items: list[bytes]) -> bytes:
    return encode_varint(len(items)) + b"".join(encode_varint(len(i)) + i for i in items)


def parse_witness(data: bytes, offset: int = 0) -> tuple[list[bytes], int]:
    count, offset = read_varint(data, offset)
    items: list[bytes] = []
    for _ in range(count):
        size, offset = read_varint(data, offset)
        if offset + size > len(data):
            raise PsbtError("Witness item runs past end of data")
        items.append(data[offset : offset + size])
        offset += size
    return items, offset


def encode_tap_key_origin(
    leaf_hashes: list[bytes], fingerprint: bytes = b"\x00" * 4, path: list[int] | None = None
) -> bytes:
    """Value of a PSBT_IN_TAP_BIP32_DERIVATION entry."""
    result = encode_varint(len(leaf_hashes)) + b"".join(leaf_hashes) + fingerprint
    for index in path or []:
        result += struct.pack("<I", index)
    return result


@dataclass
class TapLeafScript:
    control_block: bytes
    script: bytes
    leaf_version: int


@dataclass
class PsbtInput:
    non_witness_utxo: bytes | None = None
    witness_utxo: TxOutput | None = None
    partial_sigs: dict[bytes, bytes] = field(default_factory=dict)
    sighash_type: int | None = None
    redeem_script: bytes | None = None
    witness_script: bytes | None = None
    final_script_sig: bytes | None = None
    final_script_witness: list[bytes] | None = None
    tap_key_sig: bytes | None = None
    # (x-only key, leaf hash) -> signature
    tap_script_sigs: dict[tuple[bytes, bytes], bytes] = field(default_factory=dict)
    tap_leaf_scripts: list[TapLeafScript] = field(default_factory=list)
    # x-only key -> leaf hashes and key origin, kept in serialized form
    tap_bip32_derivations: dict[bytes, bytes] = field(default_factory=dict)
    tap_internal_key: bytes | None = None
    tap_merkle_root: bytes | None = None
    unknown: dict[bytes, bytes] = field(default_factory=dict)

    @property
    def is_finalized(self) -> bool:
        return self.final_script_sig is not None or self.final_script_witness is not None

    @property
    def has_signatures(self) -> bool:
        return bool(self.partial_sigs or self.tap_script_sigs or self.tap_key_sig)

    def clear_signing_data(self) -> None:
        """Drop everything but the UTXO once the input is finalized."""
        self.partial_sigs = {}
        self.sighash_type = None
        self.redeem_script = None
        self.witness_script = None
        self.tap_key_sig = None
        self.tap_script_sigs = {}
        self.tap_leaf_scripts = []
        self.tap_bip32_derivations = {}
        self.tap_internal_key = None
        self.tap_merkle_root = None

    def _pairs(self) -> list[tuple[bytes, bytes]]:
        pairs: list[tuple[bytes, bytes]] = []
        if self.non_witness_utxo is not None:
            pairs.append((bytes([PSBT_IN_NON_WITNESS_UTXO]), self.non_witness_utxo))
        if self.witness_utxo is not None:
            pairs.append((bytes([PSBT_IN_WITNESS_UTXO]), self.witness_utxo.serialize()))
        for pubkey, sig in self.partial_sigs.items():
            pairs.append((bytes([PSBT_IN_PARTIAL_SIG]) + pubkey, sig))
        if self.sighash_type is not None:
            pairs.append((bytes([PSBT_IN_SIGHASH_TYPE]), struct.pack("<I", self.sighash_type)))
        if self.redeem_script is not None:
            pairs.append((bytes([PSBT_IN_REDEEM_SCRIPT]), self.redeem_script))
        if self.witness_script is not None:
            pairs.append((bytes([PSBT_IN_WITNESS_SCRIPT]), self.witness_script))
        if self.final_script_sig is not None:
            pairs.append((bytes([PSBT_IN_FINAL_SCRIPTSIG]), self.final_script_sig))
        if self.final_script_witness is not None:
            pairs.append(
                (bytes([PSBT_IN_FINAL_SCRIPTWITNESS]), serialize_witness(self.final_script_witness))
            )
        if self.tap_key_sig is not None:
            pairs.append((bytes([PSBT_IN_TAP_KEY_SIG]), self.tap_key_sig))
        for (key, leaf_hash), sig in self.tap_script_sigs.items():
            pairs.append((bytes([PSBT_IN_TAP_SCRIPT_SIG]) + key + leaf_hash, sig))
        for leaf in self.tap_leaf_scripts:
            pairs.append(
                (
                    bytes([PSBT_IN_TAP_LEAF_SCRIPT]) + leaf.control_block,
                    leaf.script + bytes([leaf.leaf_version]),
                )
            )
        for key, origin in self.tap_bip32_derivations.items():
            pairs.append((bytes([PSBT_IN_TAP_BIP32_DERIVATION]) + key, origin))
        if self.tap_internal_key is not None:
            pairs.append((bytes([PSBT_IN_TAP_INTERNAL_KEY]), self.tap_internal_key))
        if self.tap_merkle_root is not None:
            pairs.append((bytes([PSBT_IN_TAP_MERKLE_ROOT]), self.tap_merkle_root))
        pairs.extend(self.unknown.items())
        return pairs

    def _set(self, key: bytes, value: bytes) -> None:
        key_type, key_data = key[0], key[1:]

        if key_type == PSBT_IN_NON_WITNESS_UTXO and not key_data:
            self.non_witness_utxo = value
        elif key_type == PSBT_IN_WITNESS_UTXO and not key_data:
            (amount,) = struct.unpack_from("<Q", value, 0)
            script_len, offset = read_varint(value, 8)
            self.witness_utxo = TxOutput(amount, value[offset : offset + script_len])
        elif key_type == PSBT_IN_PARTIAL_SIG:
            self.partial_sigs[key_data] = value
        elif key_type == PSBT_IN_SIGHASH_TYPE and not key_data:
            (self.sighash_type,) = struct.unpack("<I", value)
        elif key_type == PSBT_IN_REDEEM_SCRIPT and not key_data:
            self.redeem_script = value
        elif key_type == PSBT_IN_WITNESS_SCRIPT and not key_data:
            self.witness_script = value
        elif key_type == PSBT_IN_FINAL_SCRIPTSIG and not key_data:
            self.final_script_sig = value
        elif key_type == PSBT_IN_FINAL_SCRIPTWITNESS and not key_data:
            self.final_script_witness, _ = parse_witness(value)
        elif key_type == PSBT_IN_TAP_KEY_SIG and not key_data:
            self.tap_key_sig = value
        elif key_type == PSBT_IN_TAP_SCRIPT_SIG and len(key_data) == 64:
            self.tap_script_sigs[(key_data[:32], key_data[32:])] = value
        elif key_type == PSBT_IN_TAP_LEAF_SCRIPT and key_data:
            self.tap_leaf_scripts.append(TapLeafScript(key_data, value[:-1], value[-1]))
        elif key_type == PSBT_IN_TAP_BIP32_DERIVATION and len(key_data) == 32:
            self.tap_bip32_derivations[key_data] = value
        elif key_type == PSBT_IN_TAP_INTERNAL_KEY and not key_data:
            self.tap_internal_key = value
        elif key_type == PSBT_IN_TAP_MERKLE_ROOT and not key_data:
            self.tap_merkle_root = value
        else:
            self.unknown[key] = value


@dataclass
class PsbtOutput:
    redeem_script: bytes | None = None
    witness_script: bytes | None = None
    tap_internal_key: bytes | None = None
    unknown: dict[bytes, bytes] = field(default_factory=dict)

    def _pairs(self) -> list[tuple[bytes, bytes]]:
        pairs: list[tuple[bytes, bytes]] = []
        if self.redeem_script is not None:
            pairs.append((bytes([PSBT_OUT_REDEEM_SCRIPT]), self.redeem_script))
        if self.witness_script is not None:
            pairs.append((bytes([PSBT_OUT_WITNESS_SCRIPT]), self.witness_script))
        if self.tap_internal_key is not None:
            pairs.append((bytes([PSBT_OUT_TAP_INTERNAL_KEY]), self.tap_internal_key))
        pairs.extend(self.unknown.items())
        return pairs

    def _set(self, key: bytes, value: bytes) -> None:
        key_type, key_data = key[0], key[1:]
        if key_type == PSBT_OUT_REDEEM_SCRIPT and not key_data:
            self.redeem_script = value
        elif key_type == PSBT_OUT_WITNESS_SCRIPT and not key_data:
            self.witness_script = value
        elif key_type == PSBT_OUT_TAP_INTERNAL_KEY and not key_data:
            self.tap_internal_key = value
        else:
            self.unknown[key] = value


def _write_map(pairs: list[tuple[bytes, bytes]]) -> bytes:
    result = b""
    for key, value in sorted(pairs, key=lambda kv: kv[0]):
        result += encode_varint(len(key)) + key
        result += encode_varint(len(value)) + value
    return result + b"\x00"


def _read_map(data: bytes, offset: int) -> tuple[list[tuple[bytes, bytes]], int]:
    pairs: list[tuple[bytes, bytes]] = []
    seen: set[bytes] = set()
    while True:
        key_len, offset = read_varint(data, offset)
        if key_len == 0:
            return pairs, offset
        key = data[offset : offset + key_len]
        offset += key_len
        value_len, offset = read_varint(data, offset)
        value = data[offset : offset + value_len]
        offset += value_len
        if len(key) != key_len or len(value) != value_len:
            raise PsbtError("Key-value pair runs past end of PSBT")
        if key in seen:
            raise PsbtError(f"Duplicate PSBT key {key.hex()}")
        seen.add(key)
        pairs.append((key, value))


class Psbt:
    """
    A PSBT: the unsigned transaction plus per-input and per-output maps.

    Signing and finalization mutate the inputs in place.
    """

    def __init__(self, tx: Transaction | None = None):
        self.tx = tx or Transaction()
        self.inputs: list[PsbtInput] = [PsbtInput() for _ in self.tx.inputs]
        self.outputs: list[PsbtOutput] = [PsbtOutput() for _ in self.tx.outputs]
        self.unknown: dict[bytes, bytes] = {}

    def add_input(
        self,
        txid: str,
        vout: int,
        sequence: int = SEQUENCE_FINAL,
        witness_utxo: TxOutput | None = None,
        tap_internal_key: bytes | None = None,
        redeem_script: bytes | None = None,
    ) -> PsbtInput:
        self.tx.inputs.append(TxInput(txid=txid, vout=vout, sequence=sequence))
        psbt_input = PsbtInput(
            witness_utxo=witness_utxo,
            tap_internal_key=tap_internal_key,
            redeem_script=redeem_script,
        )
        self.inputs.append(psbt_input)
        return psbt_input

    def add_output(self, script_pubkey: bytes, value: int) -> PsbtOutput:
        self.tx.outputs.append(TxOutput(value=value, script_pubkey=script_pubkey))
        psbt_output = PsbtOutput()
        self.outputs.append(psbt_output)
        return psbt_output

    @property
    def is_finalized(self) -> bool:
        return bool(self.inputs) and all(inp.is_finalized for inp in self.inputs)

    def serialize(self) -> bytes:
        unsigned = Transaction(
            version=self.tx.version,
            inputs=[TxInput(i.txid, i.vout, b"", i.sequence) for i in self.tx.inputs],
            outputs=self.tx.outputs,
            locktime=self.tx.locktime,
        )
        global_pairs = [(bytes([PSBT_GLOBAL_UNSIGNED_TX]), unsigned.serialize(False))]
        global_pairs.extend(self.unknown.items())

        result = PSBT_MAGIC + _write_map(global_pairs)
        for psbt_input in self.inputs:
            result += _write_map(psbt_input._pairs())
        for psbt_output in self.outputs:
            result += _write_map(psbt_output._pairs())
        return result

    @classmethod
    def parse(cls, data: bytes) -> Psbt:
        if not data.startswith(PSBT_MAGIC):
            raise PsbtError("Invalid PSBT magic")

        try:
            offset = len(PSBT_MAGIC)
            global_pairs, offset = _read_map(data, offset)

            tx: Transaction | None = None
            unknown: dict[bytes, bytes] = {}
            for key, value in global_pairs:
                if key == bytes([PSBT_GLOBAL_UNSIGNED_TX]):
                    tx = Transaction.parse(value)
                else:
                    unknown[key] = value
            if tx is None:
                raise PsbtError("PSBT is missing the unsigned transaction")
            if any(inp.script_sig or inp.witness for inp in tx.inputs):
                raise PsbtError("PSBT unsigned transaction has signature data")

            psbt = cls(tx)
            psbt.unknown = unknown

            for psbt_input in psbt.inputs:
                pairs, offset = _read_map(data, offset)
                for key, value in pairs:
                    psbt_input._set(key, value)

            for psbt_output in psbt.outputs:
                pairs, offset = _read_map(data, offset)
                for key, value in pairs:
                    psbt_output._set(key, value)

        except (IndexError, struct.error) as e:
            raise PsbtError(f"Failed to parse PSBT: {e}") from e

        if offset != len(data):
            raise PsbtError(f"Trailing data after PSBT ({len(data) - offset} bytes)")

        return psbt

    def to_base64(self) -> str:
        return base64.b64encode(self.serialize()).decode("ascii")

    @classmethod
    def from_base64(cls, data: str) -> Psbt:
        try:
            raw = base64.b64decode(data, validate=True)
        except ValueError as e:
            raise PsbtError(f"Invalid base64 PSBT: {e}") from e
        return cls.parse(raw)

    def to_hex(self) -> str:
        return self.serialize().hex()

    @classmethod
    def from_hex(cls, data: str) -> Psbt:
        try:
            raw = bytes.fromhex(data)
        except ValueError as e:
            raise PsbtError(f"Invalid hex PSBT: {e}") from e
        return cls.parse(raw)

    def extract_transaction(self) -> Transaction:
        """
        Build the network transaction from the finalized inputs.

        Raises:
            PsbtError: If any input is not finalized
        """
        if not self.inputs:
            raise PsbtError("PSBT has no inputs")

        inputs: list[TxInput] = []
        for index, (tx_input, psbt_input) in enumerate(zip(self.tx.inputs, self.inputs)):
            if not psbt_input.is_finalized:
                raise PsbtError(f"Input {index} is not finalized")
            inputs.append(
                TxInput(
                    txid=tx_input.txid,
                    vout=tx_input.vout,
                    script_sig=psbt_input.final_script_sig or b"",
                    sequence=tx_input.sequence,
                    witness=list(psbt_input.final_script_witness or []),
                )
            )

        return Transaction(
            version=self.tx.version,
            inputs=inputs,
            outputs=list(self.tx.outputs),
            locktime=self.tx.locktime,
        )

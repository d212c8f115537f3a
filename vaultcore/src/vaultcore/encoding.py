"""
Binary codecs owned by the vault core.

Output descriptor buffer (as produced by the script engine), repeated until the
buffer is exhausted:

    [2-byte BE length L][8-byte BE value][L - 8 bytes of script]

Contract-call payload: one discriminator byte (0 = custodian-only, 1 = UPC)
followed by the ABI encoding of the fields for that kind.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError

from vaultcore.errors import InvalidPayloadType, MalformedOutputBuffer, MissingPayloadFields
from vaultcore.models import FeeOption, OutputDescriptor

LENGTH_FIELD_SIZE = 2
VALUE_FIELD_SIZE = 8
MAX_RECORD_LENGTH = 0xFFFF


def encode_output_descriptors(outputs: list[OutputDescriptor]) -> bytes:
    """Serialize script outputs into the length-prefixed buffer."""
    buffer = bytearray()
    for output in outputs:
        if output.script is None:
            raise ValueError("Only script outputs can be encoded")
        length = VALUE_FIELD_SIZE + len(output.script)
        if length > MAX_RECORD_LENGTH:
            raise ValueError(f"Output script too long to encode: {len(output.script)} bytes")
        buffer += struct.pack(">HQ", length, output.value)
        buffer += output.script
    return bytes(buffer)


def decode_output_descriptors(buffer: bytes) -> list[OutputDescriptor]:
    """
    Decode the script engine's output buffer.

    Raises:
        MalformedOutputBuffer: If a record is truncated or declares a length
            shorter than its value field.
    """
    outputs: list[OutputDescriptor] = []
    offset = 0
    total = len(buffer)

    while offset < total:
        if offset + LENGTH_FIELD_SIZE > total:
            raise MalformedOutputBuffer(
                f"Truncated length field at offset {offset} (buffer is {total} bytes)"
            )
        (length,) = struct.unpack_from(">H", buffer, offset)
        offset += LENGTH_FIELD_SIZE

        if length < VALUE_FIELD_SIZE:
            raise MalformedOutputBuffer(
                f"Record length {length} at offset {offset - LENGTH_FIELD_SIZE} "
                f"is shorter than the value field"
            )
        if offset + length > total:
            raise MalformedOutputBuffer(
                f"Record at offset {offset - LENGTH_FIELD_SIZE} needs {length} bytes, "
                f"only {total - offset} left"
            )

        (value,) = struct.unpack_from(">Q", buffer, offset)
        offset += VALUE_FIELD_SIZE

        script_len = length - VALUE_FIELD_SIZE
        script = bytes(buffer[offset : offset + script_len])
        offset += script_len

        outputs.append(OutputDescriptor(value=value, script=script))

    return outputs


class PayloadKind(str, Enum):
    CUSTODIAN_ONLY = "custodianOnly"
    UPC = "upc"


PAYLOAD_DISCRIMINATORS: dict[PayloadKind, int] = {
    PayloadKind.CUSTODIAN_ONLY: 0,
    PayloadKind.UPC: 1,
}

CUSTODIAN_ONLY_ABI = ["uint8", "bool", "bytes"]
UPC_ABI = ["bytes"]


@dataclass(frozen=True)
class CustodianOnlyPayload:
    fee_option: FeeOption
    rbf: bool
    recipient_chain_identifier: bytes


@dataclass(frozen=True)
class UpcPayload:
    psbt: bytes


def encode_contract_call_payload(
    kind: PayloadKind | str,
    custodian_only: CustodianOnlyPayload | None = None,
    upc: UpcPayload | None = None,
) -> bytes:
    """
    Encode a cross-chain contract-call payload.

    Args:
        kind: Which payload layout to use
        custodian_only: Fields for the custodian-only layout
        upc: Fields for the UPC layout

    Returns:
        Discriminator byte followed by the ABI-encoded fields

    Raises:
        InvalidPayloadType: Unknown kind
        MissingPayloadFields: The fields for the selected kind were not given
    """
    try:
        kind = PayloadKind(kind)
    except ValueError as e:
        raise InvalidPayloadType(f"Invalid payload type: {kind}") from e

    if kind == PayloadKind.CUSTODIAN_ONLY:
        if custodian_only is None:
            raise MissingPayloadFields("CustodianOnly payload is required")
        encoded = abi_encode(
            CUSTODIAN_ONLY_ABI,
            [
                int(custodian_only.fee_option),
                custodian_only.rbf,
                custodian_only.recipient_chain_identifier,
            ],
        )
    else:
        if upc is None:
            raise MissingPayloadFields("UPC payload is required")
        encoded = abi_encode(UPC_ABI, [upc.psbt])

    return bytes([PAYLOAD_DISCRIMINATORS[kind]]) + encoded


def decode_contract_call_payload(
    payload: bytes,
) -> tuple[PayloadKind, CustodianOnlyPayload | UpcPayload]:
    """Inverse of encode_contract_call_payload."""
    if not payload:
        raise InvalidPayloadType("Empty payload")

    discriminator = payload[0]
    body = bytes(payload[1:])

    try:
        if discriminator == PAYLOAD_DISCRIMINATORS[PayloadKind.CUSTODIAN_ONLY]:
            fee_option, rbf, recipient = abi_decode(CUSTODIAN_ONLY_ABI, body)
            return PayloadKind.CUSTODIAN_ONLY, CustodianOnlyPayload(
                fee_option=FeeOption(fee_option),
                rbf=rbf,
                recipient_chain_identifier=recipient,
            )
        if discriminator == PAYLOAD_DISCRIMINATORS[PayloadKind.UPC]:
            (psbt,) = abi_decode(UPC_ABI, body)
            return PayloadKind.UPC, UpcPayload(psbt=psbt)
    except (DecodingError, ValueError) as e:
        raise InvalidPayloadType(f"Failed to decode payload body: {e}") from e

    raise InvalidPayloadType(f"Unknown payload discriminator: {discriminator}")

"""
Bitcoin transaction signing utilities for PSBT inputs.

Supported spends:
- P2WPKH and P2SH-P2WPKH (BIP143, ECDSA)
- P2WSH with a witness script containing the key (BIP143, ECDSA)
- P2TR key path and tapscript leaves (BIP341, Schnorr)
"""

from __future__ import annotations

import hashlib
import struct

from loguru import logger

from vaultcore.crypto import (
    KeyPair,
    encode_varint,
    hash160,
    hash256,
    tagged_hash,
    tapleaf_hash,
    tweak_private_key,
)
from vaultcore.errors import FinalizeError, SigningError
from vaultcore.script import (
    OP_CHECKMULTISIG,
    OP_CHECKSIG,
    OP_CHECKSIGADD,
    OP_CHECKSIGVERIFY,
    OP_GREATERTHANOREQUAL,
    ScriptError,
    decode_small_int,
    p2pkh_script,
    parse_script,
    push_data,
)
from vaultwallet.wallet.psbt import Psbt, PsbtInput, TapLeafScript, Transaction, TxOutput

SIGHASH_DEFAULT = 0x00
SIGHASH_ALL = 0x01


def _is_p2wpkh(script: bytes) -> bool:
    return len(script) == 22 and script[:2] == b"\x00\x14"


def _is_p2wsh(script: bytes) -> bool:
    return len(script) == 34 and script[:2] == b"\x00\x20"


def _is_p2tr(script: bytes) -> bool:
    return len(script) == 34 and script[:2] == b"\x51\x20"


def _is_p2sh(script: bytes) -> bool:
    return len(script) == 23 and script[:2] == b"\xa9\x14" and script[22] == 0x87


def compute_sighash_segwit(
    tx: Transaction,
    input_index: int,
    script_code: bytes,
    value: int,
    sighash_type: int = SIGHASH_ALL,
) -> bytes:
    """BIP143 signature hash for a segwit v0 input (SIGHASH_ALL only)."""
    if input_index >= len(tx.inputs):
        raise SigningError("Input index out of range")
    if sighash_type != SIGHASH_ALL:
        raise SigningError(f"Unsupported sighash type for segwit v0: {sighash_type:#x}")

    hash_prevouts = hash256(b"".join(inp.outpoint for inp in tx.inputs))
    hash_sequence = hash256(b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs))
    hash_outputs = hash256(b"".join(out.serialize() for out in tx.outputs))

    target_input = tx.inputs[input_index]

    preimage = (
        struct.pack("<I", tx.version)
        + hash_prevouts
        + hash_sequence
        + target_input.outpoint
        + encode_varint(len(script_code))
        + script_code
        + struct.pack("<Q", value)
        + struct.pack("<I", target_input.sequence)
        + hash_outputs
        + struct.pack("<I", tx.locktime)
        + struct.pack("<I", sighash_type)
    )

    return hash256(preimage)


def compute_sighash_taproot(
    tx: Transaction,
    input_index: int,
    prevouts: list[TxOutput],
    sighash_type: int = SIGHASH_DEFAULT,
    leaf_hash: bytes | None = None,
) -> bytes:
    """
    BIP341 signature hash.

    Only SIGHASH_DEFAULT and SIGHASH_ALL are supported and no annex is
    committed. ``leaf_hash`` selects a script path spend.
    """
    if input_index >= len(tx.inputs):
        raise SigningError("Input index out of range")
    if sighash_type not in (SIGHASH_DEFAULT, SIGHASH_ALL):
        raise SigningError(f"Unsupported sighash type for taproot: {sighash_type:#x}")
    if len(prevouts) != len(tx.inputs):
        raise SigningError("Taproot signing needs the previous output of every input")

    sha_prevouts = hashlib.sha256(b"".join(inp.outpoint for inp in tx.inputs)).digest()
    sha_amounts = hashlib.sha256(b"".join(struct.pack("<Q", p.value) for p in prevouts)).digest()
    sha_scriptpubkeys = hashlib.sha256(
        b"".join(encode_varint(len(p.script_pubkey)) + p.script_pubkey for p in prevouts)
    ).digest()
    sha_sequences = hashlib.sha256(
        b"".join(struct.pack("<I", inp.sequence) for inp in tx.inputs)
    ).digest()
    sha_outputs = hashlib.sha256(b"".join(out.serialize() for out in tx.outputs)).digest()

    spend_type = 2 if leaf_hash is not None else 0

    msg = (
        b"\x00"
        + bytes([sighash_type])
        + struct.pack("<I", tx.version)
        + struct.pack("<I", tx.locktime)
        + sha_prevouts
        + sha_amounts
        + sha_scriptpubkeys
        + sha_sequences
        + sha_outputs
        + bytes([spend_type])
        + struct.pack("<I", input_index)
    )
    if leaf_hash is not None:
        # key_version 0, no OP_CODESEPARATOR executed
        msg += leaf_hash + b"\x00" + b"\xff\xff\xff\xff"

    return tagged_hash("TapSighash", msg)


def create_p2wpkh_script_code(pubkey_bytes: bytes) -> bytes:
    """scriptCode for P2WPKH signing (BIP143): the P2PKH script of the key."""
    return p2pkh_script(hash160(pubkey_bytes))


def tapscript_keys(script: bytes) -> list[tuple[bytes, int]]:
    """x-only keys checked by a tapscript, in script order, with their opcode."""
    try:
        elements = parse_script(script)
    except ScriptError:
        return []

    keys: list[tuple[bytes, int]] = []
    for element, following in zip(elements, elements[1:]):
        if (
            isinstance(element, bytes)
            and len(element) == 32
            and following in (OP_CHECKSIG, OP_CHECKSIGVERIFY, OP_CHECKSIGADD)
        ):
            keys.append((element, following))
    return keys


def _tapscript_threshold(script: bytes) -> int | None:
    """Threshold of a `... <m> OP_GREATERTHANOREQUAL` script, else None."""
    try:
        elements = parse_script(script)
    except ScriptError:
        return None
    if len(elements) < 2 or elements[-1] != OP_GREATERTHANOREQUAL:
        return None
    m = elements[-2]
    if isinstance(m, bytes):
        return int.from_bytes(m, "little")
    return decode_small_int(m)


def _prevouts(psbt: Psbt) -> list[TxOutput] | None:
    prevouts = [inp.witness_utxo for inp in psbt.inputs]
    if any(p is None for p in prevouts):
        return None
    return prevouts  # type: ignore[return-value]


def _sig_with_hashtype(sig: bytes, sighash_type: int) -> bytes:
    if sighash_type == SIGHASH_DEFAULT:
        return sig
    return sig + bytes([sighash_type])


def _sign_taproot(psbt: Psbt, index: int, keypair: KeyPair) -> bool:
    psbt_input = psbt.inputs[index]
    prevouts = _prevouts(psbt)
    if prevouts is None:
        logger.warning(f"Input {index}: missing previous outputs, cannot compute taproot sighash")
        return False

    sighash_type = psbt_input.sighash_type if psbt_input.sighash_type is not None else 0
    xonly_key = keypair.xonly_public_key
    signed = False

    for leaf in psbt_input.tap_leaf_scripts:
        if xonly_key not in [key for key, _ in tapscript_keys(leaf.script)]:
            continue
        leaf_hash = tapleaf_hash(leaf.script, leaf.leaf_version)
        sighash = compute_sighash_taproot(psbt.tx, index, prevouts, sighash_type, leaf_hash)
        sig = keypair.private_key.sign_schnorr(sighash)
        psbt_input.tap_script_sigs[(xonly_key, leaf_hash)] = _sig_with_hashtype(sig, sighash_type)
        signed = True
        logger.debug(f"Input {index}: signed tapscript leaf {leaf_hash.hex()[:16]}...")

    if psbt_input.tap_internal_key == xonly_key:
        tweaked = tweak_private_key(keypair.private_key, psbt_input.tap_merkle_root)
        output_key = prevouts[index].script_pubkey[2:]
        if tweaked.public_key.format(compressed=True)[1:] == output_key:
            sighash = compute_sighash_taproot(psbt.tx, index, prevouts, sighash_type)
            sig = tweaked.sign_schnorr(sighash)
            psbt_input.tap_key_sig = _sig_with_hashtype(sig, sighash_type)
            signed = True
            logger.debug(f"Input {index}: signed taproot key path")

    return signed


def _sign_ecdsa(
    psbt: Psbt, index: int, keypair: KeyPair, script_code: bytes, value: int
) -> None:
    psbt_input = psbt.inputs[index]
    sighash_type = psbt_input.sighash_type if psbt_input.sighash_type is not None else SIGHASH_ALL
    sighash = compute_sighash_segwit(psbt.tx, index, script_code, value, sighash_type)

    # sighash is already SHA256d, hasher=None skips hashing
    signature = keypair.private_key.sign(sighash, hasher=None)
    psbt_input.partial_sigs[keypair.public_key] = signature + bytes([sighash_type])


def sign_input(psbt: Psbt, index: int, keypair: KeyPair) -> bool:
    """
    Sign one input of ``psbt`` in place.

    Returns:
        True if the key controls this input and a signature was added, False if
        the input's script does not accept the key
    """
    psbt_input = psbt.inputs[index]
    if psbt_input.is_finalized:
        logger.debug(f"Input {index}: already finalized")
        return False

    utxo = psbt_input.witness_utxo
    if utxo is None:
        logger.warning(f"Input {index}: no witness UTXO, only segwit inputs can be signed")
        return False

    script = utxo.script_pubkey
    pubkey = keypair.public_key

    if _is_p2tr(script):
        return _sign_taproot(psbt, index, keypair)

    if _is_p2wpkh(script):
        if script[2:] != hash160(pubkey):
            return False
        _sign_ecdsa(psbt, index, keypair, create_p2wpkh_script_code(pubkey), utxo.value)
        return True

    if _is_p2sh(script):
        redeem = psbt_input.redeem_script
        if redeem is None or hash160(redeem) != script[2:22]:
            return False
        if not _is_p2wpkh(redeem) or redeem[2:] != hash160(pubkey):
            return False
        _sign_ecdsa(psbt, index, keypair, create_p2wpkh_script_code(pubkey), utxo.value)
        return True

    if _is_p2wsh(script):
        witness_script = psbt_input.witness_script
        if witness_script is None or hashlib.sha256(witness_script).digest() != script[2:]:
            return False
        if pubkey not in parse_script(witness_script):
            return False
        _sign_ecdsa(psbt, index, keypair, witness_script, utxo.value)
        return True

    return False


def _finalize_tapscript(psbt_input: PsbtInput, leaf: TapLeafScript) -> list[bytes] | None:
    keys = tapscript_keys(leaf.script)
    if not keys:
        return None

    leaf_hash = tapleaf_hash(leaf.script, leaf.leaf_version)
    sigs = {key: psbt_input.tap_script_sigs.get((key, leaf_hash)) for key, _ in keys}

    required = [key for key, op in keys if op == OP_CHECKSIGVERIFY]
    counted = [key for key, op in keys if op != OP_CHECKSIGVERIFY]
    if any(sigs[key] is None for key in required):
        return None

    threshold = _tapscript_threshold(leaf.script)
    have = sum(1 for key in counted if sigs[key] is not None)
    if threshold is None:
        if have < len(counted):
            return None
    elif have < threshold:
        return None

    # Stack items are consumed in script order, so they are pushed reversed
    witness = [sigs[key] or b"" for key, _ in reversed(keys)]
    return witness + [leaf.script, leaf.control_block]


def _finalize_p2wsh(psbt_input: PsbtInput) -> list[bytes] | None:
    witness_script = psbt_input.witness_script
    if witness_script is None:
        return None
    elements = parse_script(witness_script)

    # <pubkey> OP_CHECKSIG
    if len(elements) == 2 and elements[1] == OP_CHECKSIG and isinstance(elements[0], bytes):
        sig = psbt_input.partial_sigs.get(elements[0])
        return [sig, witness_script] if sig else None

    # OP_m <pubkeys...> OP_n OP_CHECKMULTISIG
    if len(elements) >= 4 and elements[-1] == OP_CHECKMULTISIG:
        m = decode_small_int(elements[0]) if isinstance(elements[0], int) else None
        pubkeys = [e for e in elements[1:-2] if isinstance(e, bytes)]
        if m is None:
            return None
        sigs = [psbt_input.partial_sigs[pk] for pk in pubkeys if pk in psbt_input.partial_sigs]
        if len(sigs) < m:
            return None
        return [b""] + sigs[:m] + [witness_script]

    return None


def finalize_input(psbt: Psbt, index: int) -> None:
    """
    Assemble the final scriptSig/witness of an input from its signatures.

    Raises:
        FinalizeError: The input does not hold enough signatures
    """
    psbt_input = psbt.inputs[index]
    if psbt_input.is_finalized:
        return

    utxo = psbt_input.witness_utxo
    if utxo is None:
        raise FinalizeError(f"Input {index}: no witness UTXO")
    script = utxo.script_pubkey

    final_script_sig: bytes | None = None
    witness: list[bytes] | None = None

    if _is_p2tr(script):
        if psbt_input.tap_key_sig is not None:
            witness = [psbt_input.tap_key_sig]
        else:
            for leaf in psbt_input.tap_leaf_scripts:
                witness = _finalize_tapscript(psbt_input, leaf)
                if witness is not None:
                    break

    elif _is_p2wpkh(script):
        for pubkey, sig in psbt_input.partial_sigs.items():
            if hash160(pubkey) == script[2:]:
                witness = [sig, pubkey]
                break

    elif _is_p2sh(script) and psbt_input.redeem_script is not None:
        redeem = psbt_input.redeem_script
        for pubkey, sig in psbt_input.partial_sigs.items():
            if _is_p2wpkh(redeem) and hash160(pubkey) == redeem[2:]:
                witness = [sig, pubkey]
                final_script_sig = push_data(redeem)
                break

    elif _is_p2wsh(script):
        witness = _finalize_p2wsh(psbt_input)

    if witness is None:
        raise FinalizeError(f"Input {index}: not enough signatures to finalize")

    psbt_input.final_script_witness = witness
    psbt_input.final_script_sig = final_script_sig
    psbt_input.clear_signing_data()
    logger.debug(f"Input {index}: finalized with {len(witness)} witness item(s)")


def finalize_psbt(psbt: Psbt) -> None:
    for index in range(len(psbt.inputs)):
        finalize_input(psbt, index)

"""
Tests for PSBT input signing and finalization.
"""

import pytest
from coincurve import PublicKey, PublicKeyXOnly

from vaultcore.constants import NUMS_BIP341, SEQUENCE_RBF
from vaultcore.crypto import hash160, tapleaf_hash, taproot_output_key
from vaultcore.errors import FinalizeError, SigningError
from vaultcore.script import OP_CHECKSIG, OP_CHECKSIGVERIFY, p2sh_script, push_data
from vaultwallet.wallet.address import p2tr_script, p2wpkh_script, p2wsh_script
from vaultwallet.wallet.psbt import Psbt, TapLeafScript, TxOutput
from vaultwallet.wallet.signing import (
    SIGHASH_ALL,
    SIGHASH_DEFAULT,
    compute_sighash_segwit,
    compute_sighash_taproot,
    create_p2wpkh_script_code,
    finalize_input,
    finalize_psbt,
    sign_input,
    tapscript_keys,
)

FUNDING_TXID = "5e2383defe7efcbdc9fdd6dba55da148b206617bbb49e6bb93fce7bfbb459d44"


def _single_input_psbt(script_pubkey: bytes, value: int = 100_000) -> Psbt:
    psbt = Psbt()
    psbt.add_input(FUNDING_TXID, 1, SEQUENCE_RBF, witness_utxo=TxOutput(value, script_pubkey))
    psbt.add_output(p2wpkh_script(b"\x02" + b"\x11" * 32), value - 1_000)
    return psbt


def _two_party_leaf(first: bytes, second: bytes) -> bytes:
    return (
        push_data(first)
        + bytes([OP_CHECKSIGVERIFY])
        + push_data(second)
        + bytes([OP_CHECKSIG])
    )


def _script_path_psbt(script: bytes) -> Psbt:
    leaf_hash = tapleaf_hash(script)
    output_key, parity = taproot_output_key(NUMS_BIP341, leaf_hash)
    psbt = _single_input_psbt(p2tr_script(output_key))
    psbt_input = psbt.inputs[0]
    psbt_input.tap_internal_key = NUMS_BIP341
    psbt_input.tap_merkle_root = leaf_hash
    psbt_input.tap_leaf_scripts.append(
        TapLeafScript(bytes([0xC0 | parity]) + NUMS_BIP341, script, 0xC0)
    )
    return psbt


class TestP2WPKH:
    def test_sign_and_verify(self, alice):
        psbt = _single_input_psbt(p2wpkh_script(alice.public_key))

        assert sign_input(psbt, 0, alice) is True

        sig = psbt.inputs[0].partial_sigs[alice.public_key]
        assert sig[-1] == SIGHASH_ALL
        sighash = compute_sighash_segwit(
            psbt.tx, 0, create_p2wpkh_script_code(alice.public_key), 100_000
        )
        assert PublicKey(alice.public_key).verify(sig[:-1], sighash, hasher=None)

    def test_finalize(self, alice):
        psbt = _single_input_psbt(p2wpkh_script(alice.public_key))
        sign_input(psbt, 0, alice)
        sig = psbt.inputs[0].partial_sigs[alice.public_key]

        finalize_psbt(psbt)

        assert psbt.inputs[0].final_script_witness == [sig, alice.public_key]
        assert psbt.inputs[0].partial_sigs == {}
        tx = psbt.extract_transaction()
        assert tx.inputs[0].witness == [sig, alice.public_key]
        assert tx.inputs[0].script_sig == b""

    def test_foreign_key(self, alice, bob):
        psbt = _single_input_psbt(p2wpkh_script(alice.public_key))
        assert sign_input(psbt, 0, bob) is False
        assert psbt.inputs[0].partial_sigs == {}

    def test_finalize_without_signature(self, alice):
        psbt = _single_input_psbt(p2wpkh_script(alice.public_key))
        with pytest.raises(FinalizeError):
            finalize_input(psbt, 0)

    def test_missing_witness_utxo(self, alice):
        psbt = Psbt()
        psbt.add_input(FUNDING_TXID, 0)
        psbt.add_output(p2wpkh_script(alice.public_key), 1_000)
        assert sign_input(psbt, 0, alice) is False

    def test_already_finalized(self, alice):
        psbt = _single_input_psbt(p2wpkh_script(alice.public_key))
        sign_input(psbt, 0, alice)
        finalize_psbt(psbt)
        assert sign_input(psbt, 0, alice) is False


class TestP2SHWrapped:
    def test_sign_and_finalize(self, alice):
        redeem = p2wpkh_script(alice.public_key)
        psbt = _single_input_psbt(p2sh_script(hash160(redeem)))
        psbt.inputs[0].redeem_script = redeem

        assert sign_input(psbt, 0, alice) is True
        finalize_psbt(psbt)

        assert psbt.inputs[0].final_script_sig == push_data(redeem)
        assert psbt.inputs[0].final_script_witness[1] == alice.public_key

    def test_redeem_script_mismatch(self, alice, bob):
        psbt = _single_input_psbt(p2sh_script(hash160(p2wpkh_script(alice.public_key))))
        psbt.inputs[0].redeem_script = p2wpkh_script(bob.public_key)
        assert sign_input(psbt, 0, alice) is False


class TestP2WSH:
    def test_single_key_witness_script(self, alice):
        witness_script = push_data(alice.public_key) + bytes([OP_CHECKSIG])
        psbt = _single_input_psbt(p2wsh_script(witness_script))
        psbt.inputs[0].witness_script = witness_script

        assert sign_input(psbt, 0, alice) is True
        sig = psbt.inputs[0].partial_sigs[alice.public_key]
        sighash = compute_sighash_segwit(psbt.tx, 0, witness_script, 100_000)
        assert PublicKey(alice.public_key).verify(sig[:-1], sighash, hasher=None)

        finalize_psbt(psbt)
        assert psbt.inputs[0].final_script_witness == [sig, witness_script]

    def test_without_witness_script(self, alice):
        psbt = _single_input_psbt(p2wsh_script(p2wpkh_script(alice.public_key)))
        assert sign_input(psbt, 0, alice) is False


class TestTaprootKeyPath:
    def test_sign_and_verify(self, alice):
        output_key, _ = taproot_output_key(alice.xonly_public_key)
        psbt = _single_input_psbt(p2tr_script(output_key))
        psbt.inputs[0].tap_internal_key = alice.xonly_public_key

        assert sign_input(psbt, 0, alice) is True

        sig = psbt.inputs[0].tap_key_sig
        assert len(sig) == 64
        sighash = compute_sighash_taproot(psbt.tx, 0, [psbt.inputs[0].witness_utxo])
        assert PublicKeyXOnly(output_key).verify(sig, sighash)

        finalize_psbt(psbt)
        assert psbt.inputs[0].final_script_witness == [sig]

    def test_sighash_all_appends_type(self, alice):
        output_key, _ = taproot_output_key(alice.xonly_public_key)
        psbt = _single_input_psbt(p2tr_script(output_key))
        psbt.inputs[0].tap_internal_key = alice.xonly_public_key
        psbt.inputs[0].sighash_type = SIGHASH_ALL

        sign_input(psbt, 0, alice)

        sig = psbt.inputs[0].tap_key_sig
        assert len(sig) == 65
        assert sig[-1] == SIGHASH_ALL
        sighash = compute_sighash_taproot(
            psbt.tx, 0, [psbt.inputs[0].witness_utxo], SIGHASH_ALL
        )
        assert PublicKeyXOnly(output_key).verify(sig[:64], sighash)

    def test_foreign_key(self, alice, bob):
        output_key, _ = taproot_output_key(alice.xonly_public_key)
        psbt = _single_input_psbt(p2tr_script(output_key))
        psbt.inputs[0].tap_internal_key = alice.xonly_public_key
        assert sign_input(psbt, 0, bob) is False

    def test_unsupported_sighash_type(self, alice):
        output_key, _ = taproot_output_key(alice.xonly_public_key)
        psbt = _single_input_psbt(p2tr_script(output_key))
        with pytest.raises(SigningError, match="Unsupported sighash"):
            compute_sighash_taproot(psbt.tx, 0, [psbt.inputs[0].witness_utxo], 0x83)


class TestTaprootScriptPath:
    def test_keys_in_script_order(self, alice, bob):
        script = _two_party_leaf(alice.xonly_public_key, bob.xonly_public_key)
        assert tapscript_keys(script) == [
            (alice.xonly_public_key, OP_CHECKSIGVERIFY),
            (bob.xonly_public_key, OP_CHECKSIG),
        ]

    def test_sign_leaf(self, alice, bob):
        script = _two_party_leaf(alice.xonly_public_key, bob.xonly_public_key)
        psbt = _script_path_psbt(script)
        leaf_hash = tapleaf_hash(script)

        assert sign_input(psbt, 0, alice) is True

        sig = psbt.inputs[0].tap_script_sigs[(alice.xonly_public_key, leaf_hash)]
        sighash = compute_sighash_taproot(
            psbt.tx, 0, [psbt.inputs[0].witness_utxo], SIGHASH_DEFAULT, leaf_hash
        )
        assert PublicKeyXOnly(alice.xonly_public_key).verify(sig, sighash)
        # the internal key is NUMS, so no key path signature is possible
        assert psbt.inputs[0].tap_key_sig is None

    def test_two_party_flow(self, alice, bob):
        script = _two_party_leaf(alice.xonly_public_key, bob.xonly_public_key)
        psbt = _script_path_psbt(script)
        leaf_hash = tapleaf_hash(script)

        sign_input(psbt, 0, alice)
        with pytest.raises(FinalizeError):
            finalize_input(psbt, 0)
        assert not psbt.inputs[0].is_finalized

        # second party picks up the serialized PSBT
        handed_over = Psbt.from_base64(psbt.to_base64())
        assert sign_input(handed_over, 0, bob) is True
        finalize_psbt(handed_over)

        leaf = _script_path_psbt(script).inputs[0].tap_leaf_scripts[0]
        sig_alice = psbt.inputs[0].tap_script_sigs[(alice.xonly_public_key, leaf_hash)]
        witness = handed_over.inputs[0].final_script_witness
        assert witness[1] == sig_alice
        assert witness[2:] == [script, leaf.control_block]

        tx = handed_over.extract_transaction()
        assert len(tx.inputs[0].witness) == 4

    def test_key_not_in_leaf(self, alice, bob, carol):
        script = _two_party_leaf(alice.xonly_public_key, bob.xonly_public_key)
        psbt = _script_path_psbt(script)
        assert sign_input(psbt, 0, carol) is False
        assert psbt.inputs[0].tap_script_sigs == {}

    def test_custodian_vector_sighash(
        self, custodian_psbt_hex, custodian_leaf_hash, custodian_tap_sigs
    ):
        psbt = Psbt.from_hex(custodian_psbt_hex)
        prevouts = [inp.witness_utxo for inp in psbt.inputs]

        for key, sigs in custodian_tap_sigs.items():
            for index, sig in enumerate(sigs):
                sighash = compute_sighash_taproot(
                    psbt.tx, index, prevouts, SIGHASH_DEFAULT, custodian_leaf_hash
                )
                assert PublicKeyXOnly(key).verify(sig, sighash)


def test_script_code_is_p2pkh(alice):
    script_code = create_p2wpkh_script_code(alice.public_key)
    assert script_code == b"\x76\xa9\x14" + hash160(alice.public_key) + b"\x88\xac"

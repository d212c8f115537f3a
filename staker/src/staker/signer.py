"""
Signing coordinator.

Each party signs the same PSBT in turn; only the last signer finalizes.
Signing with a key that no input accepts does not raise, it is reported
through ``SigningResult.is_valid``. Finalizing before enough signatures are
present raises FinalizeError.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from vaultcore.crypto import KeyPair
from vaultcore.errors import SigningError
from vaultcore.models import NetworkType
from vaultwallet.wallet.psbt import Psbt
from vaultwallet.wallet.signing import finalize_psbt, sign_input


@dataclass
class SigningResult:
    psbt: Psbt
    is_valid: bool
    # Indices of the inputs the key signed
    signed_inputs: list[int] = field(default_factory=list)


class SigningFlow(str, Enum):
    TWO_PARTY = "two_party"
    CUSTODIAN_QUORUM = "custodian_quorum"
    CUSTODIAN_ONLY = "custodian_only"


def sign_psbt(
    psbt: Psbt,
    wif: str,
    network: NetworkType | str,
    finalize: bool = False,
) -> SigningResult:
    """
    Sign every input of ``psbt`` with one key, in place.

    Args:
        psbt: PSBT to sign; mutated
        wif: WIF-encoded private key of the signer
        network: Network the key belongs to
        finalize: Assemble the final witnesses after signing

    Returns:
        SigningResult; ``is_valid`` is False if any input rejected the key

    Raises:
        SigningError: Invalid WIF or a key for another network
        FinalizeError: ``finalize`` is set and an input lacks signatures
    """
    keypair = KeyPair.from_wif(wif, network)

    signed_inputs = []
    for index in range(len(psbt.inputs)):
        if sign_input(psbt, index, keypair):
            signed_inputs.append(index)
        else:
            logger.warning(f"Input {index} did not accept key {keypair.public_key_hex()[:16]}...")

    is_valid = bool(psbt.inputs) and len(signed_inputs) == len(psbt.inputs)
    logger.debug(f"Signed {len(signed_inputs)}/{len(psbt.inputs)} input(s)")

    if finalize:
        finalize_psbt(psbt)
        logger.info("PSBT finalized")

    return SigningResult(psbt=psbt, is_valid=is_valid, signed_inputs=signed_inputs)


def required_signers(flow: SigningFlow, quorum: int | None = None) -> int:
    """Number of keys a signing flow consumes."""
    if flow == SigningFlow.TWO_PARTY:
        return 2
    if quorum is None or quorum < 1:
        raise SigningError(f"{flow.value} flow needs a positive quorum")
    if flow == SigningFlow.CUSTODIAN_QUORUM:
        return 1 + quorum
    return quorum


def run_signing_flow(
    psbt: Psbt,
    wifs: Sequence[str],
    network: NetworkType | str,
    flow: SigningFlow,
    quorum: int | None = None,
) -> SigningResult:
    """
    Apply each key in order, finalizing with the last one.

    For the custodian quorum flow the first key is the staker's (or the
    protocol's), followed by ``quorum`` custodian keys.

    Returns:
        SigningResult of the whole flow: valid only if every signer was
        accepted by every input

    Raises:
        SigningError: Wrong number of keys for the flow
    """
    expected = required_signers(flow, quorum)
    if len(wifs) != expected:
        raise SigningError(f"{flow.value} flow needs {expected} key(s), got {len(wifs)}")

    is_valid = True
    signed_inputs: set[int] = set()
    for position, wif in enumerate(wifs):
        last = position == len(wifs) - 1
        result = sign_psbt(psbt, wif, network, finalize=last)
        is_valid = is_valid and result.is_valid
        signed_inputs.update(result.signed_inputs)
        logger.debug(f"{flow.value}: signer {position + 1}/{len(wifs)} done")

    return SigningResult(psbt=psbt, is_valid=is_valid, signed_inputs=sorted(signed_inputs))

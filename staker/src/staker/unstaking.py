"""
Unstaking variants, one type per spending path of the vault tree.

Each variant carries exactly the fields its spending path needs; the script
engine dispatches on the type.
"""

from __future__ import annotations

from dataclasses import dataclass

from vaultwallet.wallet.psbt import TxOutput


@dataclass(frozen=True)
class StakingInput:
    """A previous staking output to spend. ``txid`` is in RPC (big-endian) hex."""

    txid: str
    vout: int
    value: int
    # Defaults to the locking script of the tree being spent
    script_pubkey: bytes | None = None


@dataclass(frozen=True)
class UpcSpend:
    """Common fields of the user / protocol / custodian spending paths."""

    inputs: tuple[StakingInput, ...]
    output_script: bytes
    user_key: bytes
    protocol_key: bytes
    custodian_keys: tuple[bytes, ...]
    quorum: int
    fee_rate: int = 1
    rbf: bool = True
    with_custodian_only: bool = False


@dataclass(frozen=True)
class UserProtocolSpend(UpcSpend):
    """2-of-2 spend by the user and the protocol."""


@dataclass(frozen=True)
class CustodianProtocolSpend(UpcSpend):
    """Protocol plus a quorum of custodians."""


@dataclass(frozen=True)
class CustodianUserSpend(UpcSpend):
    """User plus a quorum of custodians."""


@dataclass(frozen=True)
class CustodianOnlySpend:
    """
    Quorum-of-custodians spend paying several outputs.

    Whatever the inputs hold beyond the requested outputs goes back to the
    custodian-only locking script as change.
    """

    inputs: tuple[StakingInput, ...]
    outputs: tuple[TxOutput, ...]
    custodian_keys: tuple[bytes, ...]
    quorum: int
    fee_rate: int = 1
    rbf: bool = True


UnstakingVariant = (
    UserProtocolSpend | CustodianProtocolSpend | CustodianUserSpend | CustodianOnlySpend
)

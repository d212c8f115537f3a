"""
Taproot script trees for vault locking outputs.

Leaf scripts:
- two-party:     <x> OP_CHECKSIGVERIFY <y> OP_CHECKSIG
- custodian:     [<x> OP_CHECKSIGVERIFY] <c1> OP_CHECKSIG <c2> OP_CHECKSIGADD ...
                 <m> OP_GREATERTHANOREQUAL

Trees (NUMS internal key, so only script paths can spend):

    UPC                          UPC with custodian-only branch
         root                              root
        /    \\                           /      \\
     U+P     / \\                       / \\      / \\
           C+P C+U                   C+P C+U  U+P  C only

    Custodian-only: a single custodian leaf.
"""

from __future__ import annotations

from collections.abc import Sequence

from vaultcore.constants import NUMS_BIP341, TAPSCRIPT_LEAF_VERSION
from vaultcore.crypto import tapbranch_hash, tapleaf_hash, taproot_output_key, xonly
from vaultcore.script import (
    OP_CHECKSIG,
    OP_CHECKSIGADD,
    OP_CHECKSIGVERIFY,
    OP_GREATERTHANOREQUAL,
    ScriptError,
    push_data,
    push_int,
)
from vaultwallet.wallet.address import p2tr_script

# A tree node is either a leaf script or a pair of subtrees
TreeNode = bytes | tuple["TreeNode", "TreeNode"]


def two_party_leaf(first: bytes, second: bytes) -> bytes:
    return (
        push_data(xonly(first))
        + bytes([OP_CHECKSIGVERIFY])
        + push_data(xonly(second))
        + bytes([OP_CHECKSIG])
    )


def custodian_leaf(
    custodian_keys: Sequence[bytes], quorum: int, initial_key: bytes | None = None
) -> bytes:
    """
    Quorum leaf over the custodian keys, optionally gated by one extra party.

    Keys are x-only and sorted ascending, so the script does not depend on
    the order the keys were given in.

    Raises:
        ScriptError: No keys, duplicate keys, or a quorum outside 1..len(keys)
    """
    keys = sorted(xonly(key) for key in custodian_keys)
    if not keys:
        raise ScriptError("At least one custodian key is required")
    if len(set(keys)) != len(keys):
        raise ScriptError("Duplicate custodian keys")
    if not 1 <= quorum <= len(keys):
        raise ScriptError(f"Invalid custodian quorum {quorum} for {len(keys)} keys")

    script = b""
    if initial_key is not None:
        script += push_data(xonly(initial_key)) + bytes([OP_CHECKSIGVERIFY])

    script += push_data(keys[0]) + bytes([OP_CHECKSIG])
    for key in keys[1:]:
        script += push_data(key) + bytes([OP_CHECKSIGADD])

    return script + push_int(quorum) + bytes([OP_GREATERTHANOREQUAL])


class TaprootTree:
    """A script tree committed to a P2TR output key."""

    def __init__(self, root: TreeNode, internal_key: bytes = NUMS_BIP341):
        self.root = root
        self.internal_key = internal_key
        self.merkle_root = self._hash(root)
        self.output_key, self.parity = taproot_output_key(internal_key, self.merkle_root)
        self._paths = dict(self._leaf_paths(root))

    @staticmethod
    def _hash(node: TreeNode) -> bytes:
        if isinstance(node, bytes):
            return tapleaf_hash(node, TAPSCRIPT_LEAF_VERSION)
        left, right = node
        return tapbranch_hash(TaprootTree._hash(left), TaprootTree._hash(right))

    @staticmethod
    def _leaf_paths(node: TreeNode) -> list[tuple[bytes, bytes]]:
        """(leaf script, merkle path) for every leaf; paths run from the leaf upwards."""
        if isinstance(node, bytes):
            return [(node, b"")]
        left, right = node
        left_hash, right_hash = TaprootTree._hash(left), TaprootTree._hash(right)
        return [(leaf, path + right_hash) for leaf, path in TaprootTree._leaf_paths(left)] + [
            (leaf, path + left_hash) for leaf, path in TaprootTree._leaf_paths(right)
        ]

    @property
    def leaves(self) -> list[bytes]:
        return list(self._paths)

    @property
    def script_pubkey(self) -> bytes:
        return p2tr_script(self.output_key)

    def control_block(self, leaf_script: bytes) -> bytes:
        if leaf_script not in self._paths:
            raise ScriptError("Leaf is not part of this tree")
        return (
            bytes([TAPSCRIPT_LEAF_VERSION | self.parity])
            + self.internal_key
            + self._paths[leaf_script]
        )


class UpcTree(TaprootTree):
    """User / protocol / custodian tree, optionally with a custodian-only branch."""

    def __init__(
        self,
        user_key: bytes,
        protocol_key: bytes,
        custodian_keys: Sequence[bytes],
        quorum: int,
        with_custodian_only: bool = False,
    ):
        self.user_protocol_leaf = two_party_leaf(user_key, protocol_key)
        self.custodian_protocol_leaf = custodian_leaf(custodian_keys, quorum, protocol_key)
        self.custodian_user_leaf = custodian_leaf(custodian_keys, quorum, user_key)
        self.custodian_only_leaf: bytes | None = None

        custodian_pair = (self.custodian_protocol_leaf, self.custodian_user_leaf)
        if with_custodian_only:
            self.custodian_only_leaf = custodian_leaf(custodian_keys, quorum)
            root: TreeNode = (custodian_pair, (self.user_protocol_leaf, self.custodian_only_leaf))
        else:
            root = (self.user_protocol_leaf, custodian_pair)

        super().__init__(root)


class CustodianOnlyTree(TaprootTree):
    def __init__(self, custodian_keys: Sequence[bytes], quorum: int):
        self.custodian_only_leaf = custodian_leaf(custodian_keys, quorum)
        super().__init__(self.custodian_only_leaf)

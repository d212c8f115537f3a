"""
Exception hierarchy shared by all vault components.
"""

from __future__ import annotations


class VaultError(Exception):
    """Base class for all vault errors."""


class InsufficientFunds(VaultError):
    """Available UTXOs cannot cover the requested amount plus fee."""


class InvalidAddress(VaultError):
    pass


class UnclassifiableAddress(InvalidAddress):
    """Address is neither valid base58check nor valid bech32/bech32m."""


class InvalidPayloadType(VaultError):
    pass


class MissingPayloadFields(InvalidPayloadType):
    pass


class MalformedOutputBuffer(VaultError):
    """Output descriptor buffer is truncated or carries an impossible length."""


class InvalidChainType(VaultError):
    pass


class UninitializedComponent(VaultError):
    """A component was used before it was configured."""


class UnsupportedUnstakingVariant(VaultError):
    pass


class PsbtError(VaultError):
    pass


class SigningError(VaultError):
    pass


class FinalizeError(PsbtError):
    """An input does not carry enough signatures to be finalized."""

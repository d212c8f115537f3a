"""
staker - Vault staking and unstaking transactions

Builds vault locking outputs through a script engine, funds and assembles the
staking PSBT, and coordinates the signers of staking and unstaking PSBTs.
"""

__version__ = "0.3.0"

"""
vaultwallet - Address handling, coin selection, PSBTs and signing for vault staking
"""

__version__ = "0.3.0"

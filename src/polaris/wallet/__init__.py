"""
Wallet session management.
"""

from polaris.wallet.manager import EPHEMERAL_PASSWORD, AddressProbe, WalletManager

__all__ = [
    "AddressProbe",
    "EPHEMERAL_PASSWORD",
    "WalletManager",
]

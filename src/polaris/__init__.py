"""
Polaris - session manager for a privacy-first shielded wallet.

Wallet cryptography, merkletree scanning and proving are done by an external
shielded-ledger engine; this package manages wallets, network providers,
scan progress and balances around it, behind an interactive shell.
"""

__version__ = "1.0.0"

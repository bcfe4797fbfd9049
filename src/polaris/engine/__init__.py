"""
Shielded-ledger engine interfaces and implementations.

Available engines:
- RemoteEngine: engine daemon reached over its REST API
"""

from polaris.engine.base import (
    ChainProvider,
    EngineWallet,
    RawTokenBalance,
    ScanProgressSink,
    WalletEngine,
)
from polaris.engine.remote import RemoteEngine

__all__ = [
    "ChainProvider",
    "EngineWallet",
    "RawTokenBalance",
    "RemoteEngine",
    "ScanProgressSink",
    "WalletEngine",
]

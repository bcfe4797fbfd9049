"""
Interfaces to the external shielded-ledger engine.

The engine owns wallet cryptography, merkletree scanning and proof
generation. Polaris only talks to it through these two capability sets, so
the session layer can run against an in-memory double in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from polaris.models import (
    FallbackProviderConfig,
    FeeData,
    ScanProgressEvent,
    TokenType,
    TxidVersion,
)

ScanProgressSink = Callable[[ScanProgressEvent], None]


@dataclass
class EngineWallet:
    id: str
    railgun_address: str


@dataclass
class RawTokenBalance:
    """Balance entry as reported by the engine, before registry lookup."""

    token_address: str  # hex, with or without 0x prefix
    balance: int
    token_type: TokenType = TokenType.ERC20
    token_hash: str | None = None


class WalletEngine(ABC):
    """Wallet capability set of the shielded-ledger engine."""

    @abstractmethod
    async def start(self, on_scan_progress: ScanProgressSink | None = None) -> None:
        """Start the engine. Scan progress events are delivered to on_scan_progress."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop the engine and release its database"""

    @abstractmethod
    async def create_wallet(
        self,
        encryption_key: str,
        mnemonic: str,
        creation_block_numbers: dict[str, int],
        derivation_index: int = 0,
    ) -> EngineWallet:
        """Create a spending wallet from a mnemonic"""

    @abstractmethod
    async def create_view_only_wallet(
        self,
        encryption_key: str,
        shareable_viewing_key: str,
        creation_block_numbers: dict[str, int],
    ) -> EngineWallet:
        """Create a view-only wallet from a shareable viewing key"""

    @abstractmethod
    async def load_wallet(self, encryption_key: str, wallet_id: str, is_view_only: bool) -> None:
        """Load a wallet. Fails if the encryption key does not match."""

    @abstractmethod
    async def unload_wallet(self, wallet_id: str) -> None:
        """Unload a wallet from engine memory"""

    @abstractmethod
    async def delete_wallet(self, wallet_id: str) -> None:
        """Delete a wallet from the engine database"""

    @abstractmethod
    async def get_mnemonic(self, encryption_key: str, wallet_id: str) -> str:
        """Decrypt and return the wallet mnemonic"""

    @abstractmethod
    async def get_viewing_key(self, wallet_id: str) -> str:
        """Get the shareable viewing key of a loaded wallet"""

    @abstractmethod
    async def refresh_balances(self, chain_id: int, wallet_ids: list[str]) -> None:
        """Pull new commitments into local scan state"""

    @abstractmethod
    async def get_token_balances(
        self, wallet_id: str, chain_id: int, txid_version: TxidVersion
    ) -> list[RawTokenBalance]:
        """Get raw per-token balances for a wallet"""

    @abstractmethod
    async def get_transaction_history(
        self, chain_id: int, wallet_id: str, starting_block: int | None = None
    ) -> list[dict[str, Any]]:
        """Get wallet transaction history"""

    @abstractmethod
    async def rescan_full_utxo_merkletrees(self, chain_id: int, wallet_ids: list[str]) -> None:
        """Rescan UTXO merkletrees and wallets from scratch"""

    @abstractmethod
    async def reset_txid_merkletrees(self, chain_id: int) -> None:
        """Reset the TXID merkletrees for a chain"""

    async def validate_address(self, address: str) -> bool:
        """
        Check whether a string is a valid shielded address.

        Default implementation only checks the 0zk prefix; engines that can
        decode addresses should override it.
        """
        return address.startswith("0zk") and len(address) > 3


class ChainProvider(ABC):
    """Network provider capability set of the shielded-ledger engine."""

    @abstractmethod
    async def load_provider(
        self,
        config: FallbackProviderConfig,
        network_name: str,
        polling_interval: int,
    ) -> FeeData:
        """Connect to a network and start polling it"""

    @abstractmethod
    async def unload_provider(self, network_name: str) -> None:
        """Disconnect from a network"""

    @abstractmethod
    async def pause_all_polling(self, except_network: str | None = None) -> None:
        """Pause polling for every network except except_network"""

    @abstractmethod
    async def resume_polling(self, network_name: str) -> None:
        """Resume polling for a single network"""

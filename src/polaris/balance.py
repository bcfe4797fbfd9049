"""
Shielded balance retrieval and formatting.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from polaris.config import NETWORK_CONFIGS, TOKEN_REGISTRY, get_token_info
from polaris.engine.base import WalletEngine
from polaris.errors import UnsupportedNetworkError
from polaris.models import (
    NetworkConfig,
    ScanTrack,
    TokenBalance,
    TokenInfo,
    TokenType,
    TxidVersion,
    WalletBalances,
)
from polaris.scan import ScanTracker

DEFAULT_DECIMALS = 18
DISPLAY_DECIMALS = 6


def format_balance(balance: int, decimals: int) -> str:
    """
    Render a smallest-unit amount with 6 fractional digits.

    Digits past the sixth are truncated, not rounded.

    >>> format_balance(1234567890123456789, 18)
    '1.234567'
    """
    if balance < 0:
        raise ValueError("balance must be non-negative")
    if decimals <= 0:
        return f"{balance}.{'0' * DISPLAY_DECIMALS}"

    divisor = 10**decimals
    whole, remainder = divmod(balance, divisor)
    fraction = str(remainder).zfill(decimals)[:DISPLAY_DECIMALS].ljust(DISPLAY_DECIMALS, "0")
    return f"{whole}.{fraction}"


def normalize_token_address(address: str) -> str:
    return address if address.startswith("0x") else f"0x{address}"


class BalanceService:
    def __init__(
        self,
        engine: WalletEngine,
        tracker: ScanTracker,
        networks: dict[str, NetworkConfig] | None = None,
        token_registry: dict[str, dict[str, TokenInfo]] | None = None,
    ):
        self.engine = engine
        self.tracker = tracker
        self.networks = networks if networks is not None else NETWORK_CONFIGS
        self.token_registry = token_registry if token_registry is not None else TOKEN_REGISTRY

    def _chain_id(self, network_name: str) -> int:
        config = self.networks.get(network_name)
        if config is None:
            raise UnsupportedNetworkError(f"Unknown network: {network_name}")
        return config.chain_id

    async def refresh_balances(self, wallet_id: str, network_name: str) -> None:
        chain_id = self._chain_id(network_name)
        logger.info(f"Refreshing balances for {wallet_id} on {network_name}...")
        await self.engine.refresh_balances(chain_id, [wallet_id])

    async def get_balances(
        self,
        wallet_id: str,
        network_name: str,
        txid_version: TxidVersion = TxidVersion.V2_POSEIDON_MERKLE,
    ) -> WalletBalances:
        """
        Get non-zero fungible token balances for a wallet on a network.

        The result is marked fresh only once the UTXO scan for the chain has
        completed.
        """
        chain_id = self._chain_id(network_name)
        raw_balances = await self.engine.get_token_balances(wallet_id, chain_id, txid_version)

        tokens: list[TokenBalance] = []
        for raw in raw_balances:
            if raw.balance <= 0 or raw.token_type != TokenType.ERC20:
                continue

            address = normalize_token_address(raw.token_address)
            info = get_token_info(network_name, address, self.token_registry)
            tokens.append(
                TokenBalance(
                    token_address=address,
                    symbol=info.symbol if info else None,
                    balance=raw.balance,
                    decimals=info.decimals if info else DEFAULT_DECIMALS,
                )
            )

        return WalletBalances(
            network_name=network_name,
            tokens=tokens,
            fresh=self.tracker.is_utxo_scan_complete(chain_id),
        )

    async def get_transaction_history(
        self, wallet_id: str, network_name: str, starting_block: int | None = None
    ) -> list[dict[str, Any]]:
        chain_id = self._chain_id(network_name)
        return await self.engine.get_transaction_history(chain_id, wallet_id, starting_block)

    async def full_rescan(self, wallet_id: str, network_name: str) -> None:
        chain_id = self._chain_id(network_name)
        logger.info(f"Starting full UTXO rescan for {wallet_id} on {network_name}...")
        self.tracker.reset(chain_id, track=ScanTrack.UTXO)
        await self.engine.rescan_full_utxo_merkletrees(chain_id, [wallet_id])
        logger.info("Full rescan initiated")

    async def reset_txid_merkletrees(self, network_name: str) -> None:
        chain_id = self._chain_id(network_name)
        logger.info(f"Resetting TXID merkletrees for {network_name}...")
        self.tracker.reset(chain_id, track=ScanTrack.TXID)
        await self.engine.reset_txid_merkletrees(chain_id)
        logger.info("TXID merkletrees reset")

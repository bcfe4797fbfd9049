"""
Test configuration for Polaris tests.

FakeEngine stands in for the shielded-ledger engine daemon: wallets, keys,
providers and balances are kept in memory and every call is recorded.
"""

from __future__ import annotations

import hashlib
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
import typer

from polaris.config import Settings
from polaris.engine.base import (
    ChainProvider,
    EngineWallet,
    RawTokenBalance,
    ScanProgressSink,
    WalletEngine,
)
from polaris.errors import EngineError
from polaris.models import FallbackProviderConfig, FeeData, NetworkConfig, TxidVersion
from polaris.prompts import Prompter
from polaris.session import SessionContext
from polaris.storage import WalletStorage
from polaris.wallet.manager import WalletManager

TEST_PASSWORD = "longenough1"


class FakeEngine(WalletEngine, ChainProvider):
    """
    In-memory engine. Like the real engine, wallet ids are derived from the
    key material, and creating a wallet that already exists returns it
    unchanged under its original encryption key.
    """

    def __init__(self) -> None:
        self.started = False
        self.stop_calls = 0
        self.fail_start = False
        self.sink: ScanProgressSink | None = None

        self.wallets: dict[str, dict[str, Any]] = {}
        self.loaded: set[str] = set()
        self.fail_create_indices: set[int] = set()
        self.fail_delete = False

        self.providers: dict[str, FallbackProviderConfig] = {}
        self.paused: set[str] = set()
        self.fees = FeeData(shield_fee_v2="25", unshield_fee_v2="25")
        self.fail_networks: set[str] = set()

        self.balances: dict[str, list[RawTokenBalance]] = {}
        self.history: list[dict[str, Any]] = []
        self.calls: list[tuple[Any, ...]] = []

    @staticmethod
    def address_for(mnemonic: str, derivation_index: int) -> str:
        digest = hashlib.sha256(f"{mnemonic}|{derivation_index}".encode()).hexdigest()
        return f"0zk1q{digest}"

    @staticmethod
    def wallet_id_for(material: str, derivation_index: int = 0) -> str:
        return hashlib.sha256(f"id|{material}|{derivation_index}".encode()).hexdigest()[:32]

    def _add_wallet(
        self, wallet_id: str, encryption_key: str, mnemonic: str | None, address: str
    ) -> EngineWallet:
        if wallet_id not in self.wallets:
            self.wallets[wallet_id] = {
                "key": encryption_key,
                "mnemonic": mnemonic,
                "address": address,
                "view_only": mnemonic is None,
            }
        self.loaded.add(wallet_id)
        return EngineWallet(id=wallet_id, railgun_address=self.wallets[wallet_id]["address"])

    async def start(self, on_scan_progress: ScanProgressSink | None = None) -> None:
        if self.fail_start:
            raise EngineError("engine failed to start")
        self.started = True
        self.sink = on_scan_progress

    async def stop(self) -> None:
        self.started = False
        self.stop_calls += 1

    async def create_wallet(
        self,
        encryption_key: str,
        mnemonic: str,
        creation_block_numbers: dict[str, int],
        derivation_index: int = 0,
    ) -> EngineWallet:
        self.calls.append(("create_wallet", derivation_index, dict(creation_block_numbers)))
        if derivation_index in self.fail_create_indices:
            raise EngineError(f"cannot derive index {derivation_index}")
        return self._add_wallet(
            self.wallet_id_for(mnemonic, derivation_index),
            encryption_key,
            mnemonic,
            self.address_for(mnemonic, derivation_index),
        )

    async def create_view_only_wallet(
        self,
        encryption_key: str,
        shareable_viewing_key: str,
        creation_block_numbers: dict[str, int],
    ) -> EngineWallet:
        address = f"0zk1qview{hashlib.sha256(shareable_viewing_key.encode()).hexdigest()}"
        return self._add_wallet(
            self.wallet_id_for(shareable_viewing_key), encryption_key, None, address
        )

    def _check_key(self, encryption_key: str, wallet_id: str) -> dict[str, Any]:
        wallet = self.wallets.get(wallet_id)
        if wallet is None:
            raise EngineError(f"Unknown wallet {wallet_id}")
        if wallet["key"] != encryption_key:
            raise EngineError("Invalid encryption key")
        return wallet

    async def load_wallet(self, encryption_key: str, wallet_id: str, is_view_only: bool) -> None:
        self._check_key(encryption_key, wallet_id)
        self.loaded.add(wallet_id)

    async def unload_wallet(self, wallet_id: str) -> None:
        self.loaded.discard(wallet_id)

    async def delete_wallet(self, wallet_id: str) -> None:
        self.calls.append(("delete_wallet", wallet_id))
        if self.fail_delete:
            raise EngineError("delete failed")
        if wallet_id not in self.wallets:
            raise EngineError(f"Unknown wallet {wallet_id}")
        del self.wallets[wallet_id]
        self.loaded.discard(wallet_id)

    async def get_mnemonic(self, encryption_key: str, wallet_id: str) -> str:
        wallet = self._check_key(encryption_key, wallet_id)
        if wallet["mnemonic"] is None:
            raise EngineError("View-only wallet has no mnemonic")
        return str(wallet["mnemonic"])

    async def get_viewing_key(self, wallet_id: str) -> str:
        if wallet_id not in self.loaded:
            raise EngineError("Wallet not loaded in engine")
        return f"vk-{wallet_id}"

    async def refresh_balances(self, chain_id: int, wallet_ids: list[str]) -> None:
        self.calls.append(("refresh_balances", chain_id, list(wallet_ids)))

    async def get_token_balances(
        self, wallet_id: str, chain_id: int, txid_version: TxidVersion
    ) -> list[RawTokenBalance]:
        self.calls.append(("get_token_balances", wallet_id, chain_id, txid_version))
        return list(self.balances.get(wallet_id, []))

    async def get_transaction_history(
        self, chain_id: int, wallet_id: str, starting_block: int | None = None
    ) -> list[dict[str, Any]]:
        self.calls.append(("get_transaction_history", chain_id, wallet_id, starting_block))
        return list(self.history)

    async def rescan_full_utxo_merkletrees(self, chain_id: int, wallet_ids: list[str]) -> None:
        self.calls.append(("rescan_full_utxo_merkletrees", chain_id, list(wallet_ids)))

    async def reset_txid_merkletrees(self, chain_id: int) -> None:
        self.calls.append(("reset_txid_merkletrees", chain_id))

    async def load_provider(
        self,
        config: FallbackProviderConfig,
        network_name: str,
        polling_interval: int,
    ) -> FeeData:
        self.calls.append(("load_provider", network_name, polling_interval))
        if network_name in self.fail_networks:
            raise EngineError(f"RPC unreachable for {network_name}")
        self.providers[network_name] = config
        return self.fees

    async def unload_provider(self, network_name: str) -> None:
        self.calls.append(("unload_provider", network_name))
        self.providers.pop(network_name, None)
        self.paused.discard(network_name)

    async def pause_all_polling(self, except_network: str | None = None) -> None:
        self.calls.append(("pause_all_polling", except_network))
        self.paused = {name for name in self.providers if name != except_network}

    async def resume_polling(self, network_name: str) -> None:
        self.calls.append(("resume_polling", network_name))
        self.paused.discard(network_name)


class ScriptedPrompter(Prompter):
    """
    Answers prompts from a list, in order. Running out of answers behaves
    like a closed terminal: typer raises Abort.
    """

    def __init__(self, answers: list[Any] | None = None, lines: list[str] | None = None):
        self.answers = list(answers or [])
        self.lines = list(lines or [])
        self.asked: list[str] = []

    async def read_line(self, prompt: str) -> str:
        if not self.lines:
            raise typer.Abort()
        return self.lines.pop(0)

    async def ask(self, message: str, hide_input: bool = False) -> str:
        self.asked.append(message)
        if not self.answers:
            raise typer.Abort()
        return str(self.answers.pop(0))

    async def confirm(self, message: str, default: bool = False) -> bool:
        self.asked.append(message)
        if not self.answers:
            raise typer.Abort()
        return bool(self.answers.pop(0))


@pytest.fixture
def sample_mnemonic() -> str:
    """Test mnemonic (not for production use!)."""
    return (
        "abandon abandon abandon abandon abandon abandon "
        "abandon abandon abandon abandon abandon about"
    )


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "polaris"


@pytest.fixture
def storage(data_dir: Path) -> WalletStorage:
    return WalletStorage(data_dir)


@pytest.fixture
def wallet_manager(engine: FakeEngine, storage: WalletStorage) -> WalletManager:
    return WalletManager(engine, storage)


@pytest.fixture
def test_networks() -> dict[str, NetworkConfig]:
    """Two-network registry for provider tests."""
    return {
        "A": NetworkConfig(
            name="A", chain_id=1001, rpc_urls=["https://a-1.example", "https://a-2.example"]
        ),
        "B": NetworkConfig(name="B", chain_id=1002, rpc_urls=["https://b-1.example"]),
    }


@pytest.fixture
def settings(data_dir: Path) -> Settings:
    return Settings(data_dir=data_dir, auto_connect=False)


@pytest_asyncio.fixture
async def session(settings: Settings, engine: FakeEngine) -> AsyncIterator[SessionContext]:
    ctx = SessionContext(settings, engine=engine)
    await ctx.start()
    try:
        yield ctx
    finally:
        await ctx.shutdown()

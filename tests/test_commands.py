"""
Tests for the command registry, argument helpers and REPL command handlers.
"""

import asyncio

import pytest
from conftest import TEST_PASSWORD, FakeEngine, ScriptedPrompter

from polaris.commands import build_registry, find_command
from polaris.commands.base import (
    CommandRegistry,
    has_flag,
    int_option,
    positional,
    short_id,
)
from polaris.engine.base import RawTokenBalance
from polaris.errors import ValidationError
from polaris.models import ScanProgressEvent, ScanStatus, ScanTrack
from polaris.repl import Repl
from polaris.session import SessionContext

USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"


async def _noop(args: list[str], ctx: object) -> None:
    return None


class TestRegistry:
    """Tests for CommandRegistry and command resolution."""

    def test_duplicate_alias_rejected(self) -> None:
        registry = CommandRegistry()
        registry.add("status", _noop, ("st",))
        with pytest.raises(ValueError):
            registry.add("stats", _noop, ("ST",))

    def test_category_from_first_word(self) -> None:
        registry = CommandRegistry()
        assert registry.add("wallet list", _noop).category == "wallet"
        assert registry.add("frobnicate", _noop).category == "general"
        assert registry.add("sync", _noop, category="balance").category == "balance"

    def test_full_command_set(self) -> None:
        registry = build_registry()
        for key in (
            "help", "h", "?", "status", "st", "clear", "cls", "exit", "quit", "q",
            "wc", "wi", "wiv", "wl", "wload", "wun", "wu", "we", "wvk", "wd", "wf",
            "nl", "nc", "nd", "ns", "sync", "sy", "balance", "bal", "b", "br",
            "history", "hist",
        ):  # fmt: skip
            assert registry.get(key) is not None, key

    @pytest.mark.parametrize(
        "line,name,args",
        [
            ("wallet create", "wallet create", []),
            ("WALLET LIST", "wallet list", []),
            ("st", "status", []),
            ("balance refresh --full", "balance refresh", ["--full"]),
            ("br --full", "balance refresh", ["--full"]),
            ("balance --no-refresh", "balance", ["--no-refresh"]),
            ("  nc   Polygon ", "network connect", ["Polygon"]),
            ("history --limit 3", "history", ["--limit", "3"]),
        ],
    )
    def test_find_command(self, line: str, name: str, args: list[str]) -> None:
        match = find_command(line, build_registry())
        assert match is not None
        command, found_args = match
        assert command.name == name
        assert found_args == args

    @pytest.mark.parametrize("line", ["", "   ", "bogus", "wallet"])
    def test_unresolved(self, line: str) -> None:
        assert find_command(line, build_registry()) is None


class TestArguments:
    """Tests for argument helpers."""

    def test_has_flag(self) -> None:
        assert has_flag(["-w"], "--wait", "-w")
        assert not has_flag(["--full"], "--wait", "-w")

    def test_int_option(self) -> None:
        assert int_option(["--num", "7"], "--num", 5) == 7
        assert int_option(["-n", "3"], "--num", 5, "-n") == 3
        assert int_option([], "--num", 5) == 5

    @pytest.mark.parametrize("args", [["--limit"], ["--limit", "ten"]])
    def test_int_option_invalid(self, args: list[str]) -> None:
        with pytest.raises(ValidationError):
            int_option(args, "--limit", 10)

    def test_positional_skips_flags_and_values(self) -> None:
        args = ["--index", "2", "-y", "wallet-1", "--full", "second"]
        assert positional(args) == "wallet-1"
        assert positional(args, 1) == "second"
        assert positional(args, 2) is None

    def test_short_id(self) -> None:
        assert short_id("0123456789abcdef") == "01234567..."


@pytest.fixture
def prompter() -> ScriptedPrompter:
    return ScriptedPrompter()


@pytest.fixture
def repl(session: SessionContext, prompter: ScriptedPrompter) -> Repl:
    return Repl(session, prompter=prompter, color=False)


class TestWalletCommands:
    """Tests for wallet command handlers."""

    @pytest.mark.asyncio
    async def test_create(
        self,
        repl: Repl,
        prompter: ScriptedPrompter,
        session: SessionContext,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        prompter.answers = [True, TEST_PASSWORD, TEST_PASSWORD]
        await repl.execute("wallet create")

        wallets = session.wallet_manager.get_all_wallets()
        assert len(wallets) == 1
        out = capsys.readouterr().out
        assert "BACKUP YOUR RECOVERY PHRASE" in out
        assert f"Wallet ID: {wallets[0].id}" in out

    @pytest.mark.asyncio
    async def test_create_without_backup_confirmation(
        self, repl: Repl, prompter: ScriptedPrompter, session: SessionContext
    ) -> None:
        prompter.answers = [False]
        await repl.execute("wc")
        assert session.wallet_manager.get_all_wallets() == []

    @pytest.mark.asyncio
    async def test_create_with_short_password(
        self,
        repl: Repl,
        prompter: ScriptedPrompter,
        session: SessionContext,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        prompter.answers = [True, "short"]
        await repl.execute("wc")

        assert "Password must be at least 8 characters" in capsys.readouterr().out
        assert session.wallet_manager.get_all_wallets() == []

    @pytest.mark.asyncio
    async def test_create_with_mismatched_confirmation(
        self,
        repl: Repl,
        prompter: ScriptedPrompter,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        prompter.answers = [True, TEST_PASSWORD, "longenough2"]
        await repl.execute("wc")
        assert "Passwords do not match." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_import_with_index(
        self,
        repl: Repl,
        prompter: ScriptedPrompter,
        session: SessionContext,
        sample_mnemonic: str,
    ) -> None:
        prompter.answers = [sample_mnemonic, TEST_PASSWORD, TEST_PASSWORD]
        await repl.execute("wallet import --index 2")

        (wallet,) = session.wallet_manager.get_all_wallets()
        assert wallet.railgun_address == FakeEngine.address_for(sample_mnemonic, 2)

    @pytest.mark.asyncio
    async def test_import_twice_keeps_first_password(
        self,
        repl: Repl,
        prompter: ScriptedPrompter,
        session: SessionContext,
        sample_mnemonic: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        prompter.answers = [sample_mnemonic, TEST_PASSWORD, TEST_PASSWORD]
        await repl.execute("wi")
        prompter.answers = [sample_mnemonic, "otherpassword", "otherpassword"]
        await repl.execute("wi")

        assert "Wallet already imported" in capsys.readouterr().out
        (wallet,) = session.wallet_manager.get_all_wallets()
        await session.wallet_manager.unload_wallet(wallet.id)
        await session.wallet_manager.load_wallet(wallet.id, TEST_PASSWORD)

    @pytest.mark.asyncio
    async def test_import_invalid_mnemonic(
        self,
        repl: Repl,
        prompter: ScriptedPrompter,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        prompter.answers = ["these are not words"]
        await repl.execute("wi")
        assert "Invalid mnemonic phrase." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_import_view_only(
        self, repl: Repl, prompter: ScriptedPrompter, session: SessionContext
    ) -> None:
        prompter.answers = ["vk-shared", TEST_PASSWORD, TEST_PASSWORD]
        await repl.execute("wiv")

        (wallet,) = session.wallet_manager.get_all_wallets()
        assert wallet.view_only

    @pytest.mark.asyncio
    async def test_list_marks_active_and_loaded(
        self,
        repl: Repl,
        session: SessionContext,
        sample_mnemonic: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        wallet = await session.wallet_manager.create_wallet(sample_mnemonic, TEST_PASSWORD)
        await repl.execute("wl")

        out = capsys.readouterr().out
        assert short_id(wallet.id) in out
        assert "(active)" in out
        assert "[loaded]" in out

    @pytest.mark.asyncio
    async def test_list_empty(self, repl: Repl, capsys: pytest.CaptureFixture[str]) -> None:
        await repl.execute("wallet list")
        assert "No wallets found" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_use_and_unload_and_load(
        self,
        repl: Repl,
        prompter: ScriptedPrompter,
        session: SessionContext,
        sample_mnemonic: str,
    ) -> None:
        manager = session.wallet_manager
        first = await manager.create_wallet(sample_mnemonic, TEST_PASSWORD)
        second = await manager.create_wallet(sample_mnemonic, TEST_PASSWORD, 1)

        await repl.execute(f"wu {second.id}")
        active = manager.get_active_wallet()
        assert active is not None and active.id == second.id

        await repl.execute(f"wun {first.id}")
        assert not manager.is_wallet_loaded(first.id)

        prompter.answers = [TEST_PASSWORD]
        await repl.execute(f"wload {first.id}")
        assert manager.is_wallet_loaded(first.id)

    @pytest.mark.asyncio
    async def test_use_unknown_wallet(
        self, repl: Repl, capsys: pytest.CaptureFixture[str]
    ) -> None:
        await repl.execute("wallet use missing")
        assert "Wallet not found: missing" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_load_wrong_password(
        self,
        repl: Repl,
        prompter: ScriptedPrompter,
        session: SessionContext,
        sample_mnemonic: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        wallet = await session.wallet_manager.create_wallet(sample_mnemonic, TEST_PASSWORD)
        await session.wallet_manager.unload_wallet(wallet.id)

        prompter.answers = ["wrongpassword"]
        await repl.execute("wload")

        assert "Invalid encryption key" in capsys.readouterr().out
        assert not session.wallet_manager.is_wallet_loaded(wallet.id)

    @pytest.mark.asyncio
    async def test_export(
        self,
        repl: Repl,
        prompter: ScriptedPrompter,
        session: SessionContext,
        sample_mnemonic: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        await session.wallet_manager.create_wallet(sample_mnemonic, TEST_PASSWORD)
        prompter.answers = [TEST_PASSWORD]
        await repl.execute("we")
        assert sample_mnemonic in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_viewing_key_loads_wallet_first(
        self,
        repl: Repl,
        prompter: ScriptedPrompter,
        session: SessionContext,
        sample_mnemonic: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        wallet = await session.wallet_manager.create_wallet(sample_mnemonic, TEST_PASSWORD)
        await session.wallet_manager.unload_wallet(wallet.id)

        prompter.answers = [TEST_PASSWORD]
        await repl.execute("wvk")

        assert f"vk-{wallet.id}" in capsys.readouterr().out
        assert prompter.asked == ["Wallet password"]

    @pytest.mark.asyncio
    async def test_delete_requires_confirmation(
        self,
        repl: Repl,
        prompter: ScriptedPrompter,
        session: SessionContext,
        sample_mnemonic: str,
    ) -> None:
        wallet = await session.wallet_manager.create_wallet(sample_mnemonic, TEST_PASSWORD)

        prompter.answers = [False]
        await repl.execute(f"wd {wallet.id}")
        assert session.wallet_manager.get_wallet(wallet.id) is not None

        prompter.answers = [True, TEST_PASSWORD]
        await repl.execute(f"wd {wallet.id}")
        assert session.wallet_manager.get_wallet(wallet.id) is None

    @pytest.mark.asyncio
    async def test_find_addresses(
        self,
        repl: Repl,
        prompter: ScriptedPrompter,
        session: SessionContext,
        engine: FakeEngine,
        sample_mnemonic: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        engine.fail_create_indices.add(1)
        prompter.answers = [sample_mnemonic]
        await repl.execute("wf --num 3")

        out = capsys.readouterr().out
        assert f"Index 0: {FakeEngine.address_for(sample_mnemonic, 0)}" in out
        assert "Index 1: Error generating" in out
        assert f"Index 2: {FakeEngine.address_for(sample_mnemonic, 2)}" in out
        assert session.wallet_manager.get_all_wallets() == []


class TestNetworkCommands:
    """Tests for network command handlers."""

    @pytest.mark.asyncio
    async def test_connect_by_name(
        self, repl: Repl, session: SessionContext, capsys: pytest.CaptureFixture[str]
    ) -> None:
        await repl.execute("nc Polygon")

        assert session.provider_manager.get_active_network() == "Polygon"
        out = capsys.readouterr().out
        assert "Connected to Polygon" in out
        assert "Shield fee: 25 basis points" in out

    @pytest.mark.asyncio
    async def test_connect_by_selection(
        self, repl: Repl, prompter: ScriptedPrompter, session: SessionContext
    ) -> None:
        prompter.answers = ["2"]
        await repl.execute("network connect")
        assert session.provider_manager.get_active_network() == "Polygon"

    @pytest.mark.asyncio
    async def test_connect_unsupported(
        self, repl: Repl, session: SessionContext, capsys: pytest.CaptureFixture[str]
    ) -> None:
        await repl.execute("nc Nowhere")
        assert "Unsupported network: Nowhere" in capsys.readouterr().out
        assert session.provider_manager.get_loaded_networks() == []

    @pytest.mark.asyncio
    async def test_switch_and_disconnect(
        self, repl: Repl, session: SessionContext, engine: FakeEngine
    ) -> None:
        await repl.execute("nc Ethereum")
        await repl.execute("ns Polygon")

        manager = session.provider_manager
        assert manager.get_loaded_networks() == ["Ethereum", "Polygon"]
        assert manager.get_active_network() == "Polygon"
        assert engine.paused == {"Ethereum"}

        await repl.execute("nd Polygon")
        assert manager.get_active_network() == "Ethereum"

    @pytest.mark.asyncio
    async def test_disconnect_with_nothing_connected(
        self, repl: Repl, capsys: pytest.CaptureFixture[str]
    ) -> None:
        await repl.execute("nd")
        assert "No networks connected." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_disconnect_not_connected(
        self, repl: Repl, capsys: pytest.CaptureFixture[str]
    ) -> None:
        await repl.execute("nc Ethereum")
        await repl.execute("nd Polygon")
        assert "Network not connected: Polygon" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_list_marks_active(
        self, repl: Repl, capsys: pytest.CaptureFixture[str]
    ) -> None:
        await repl.execute("nc Arbitrum")
        capsys.readouterr()
        await repl.execute("nl")
        out = capsys.readouterr().out
        assert "Arbitrum (active)" in out
        assert "Chain ID: 42161" in out


class TestBalanceCommands:
    """Tests for balance, history and sync handlers."""

    @pytest.mark.asyncio
    async def test_balance_requires_wallet(
        self, repl: Repl, capsys: pytest.CaptureFixture[str]
    ) -> None:
        await repl.execute("balance")
        assert "No active wallet" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_balance_requires_network(
        self,
        repl: Repl,
        session: SessionContext,
        sample_mnemonic: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        await session.wallet_manager.create_wallet(sample_mnemonic, TEST_PASSWORD)
        await repl.execute("bal")
        assert "No network connected" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_balance_shows_tokens_and_stale_warning(
        self,
        repl: Repl,
        session: SessionContext,
        engine: FakeEngine,
        sample_mnemonic: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        wallet = await session.wallet_manager.create_wallet(sample_mnemonic, TEST_PASSWORD)
        await session.provider_manager.load_network("Ethereum")
        engine.balances[wallet.id] = [RawTokenBalance(token_address=USDC, balance=2_500_000)]

        await repl.execute("balance")

        out = capsys.readouterr().out
        assert "USDC" in out
        assert "Balance: 2.500000" in out
        assert "balances may be stale" in out
        assert ("refresh_balances", 1, [wallet.id]) in engine.calls

    @pytest.mark.asyncio
    async def test_balance_no_refresh_when_synced(
        self,
        repl: Repl,
        session: SessionContext,
        engine: FakeEngine,
        sample_mnemonic: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        await session.wallet_manager.create_wallet(sample_mnemonic, TEST_PASSWORD)
        await session.provider_manager.load_network("Ethereum")
        session.tracker.apply(
            ScanProgressEvent(chain_id=1, track=ScanTrack.UTXO, status=ScanStatus.COMPLETE)
        )

        await repl.execute("b --no-refresh")

        out = capsys.readouterr().out
        assert "No private balances found." in out
        assert "stale" not in out
        assert not any(call[0] == "refresh_balances" for call in engine.calls)

    @pytest.mark.asyncio
    async def test_full_refresh(
        self,
        repl: Repl,
        session: SessionContext,
        engine: FakeEngine,
        sample_mnemonic: str,
    ) -> None:
        wallet = await session.wallet_manager.create_wallet(sample_mnemonic, TEST_PASSWORD)
        await session.provider_manager.load_network("Ethereum")

        await repl.execute("br --full")
        assert ("rescan_full_utxo_merkletrees", 1, [wallet.id]) in engine.calls

    @pytest.mark.asyncio
    async def test_history_limit(
        self,
        repl: Repl,
        session: SessionContext,
        engine: FakeEngine,
        sample_mnemonic: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        await session.wallet_manager.create_wallet(sample_mnemonic, TEST_PASSWORD)
        await session.provider_manager.load_network("Ethereum")
        engine.history = [{"txid": f"0x{i}"} for i in range(3)]

        await repl.execute("history --limit 1")

        out = capsys.readouterr().out
        assert '"txid": "0x0"' in out
        assert '"txid": "0x1"' not in out
        assert "... and 2 more transactions" in out

    @pytest.mark.asyncio
    async def test_history_bad_limit(
        self,
        repl: Repl,
        session: SessionContext,
        sample_mnemonic: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        await session.wallet_manager.create_wallet(sample_mnemonic, TEST_PASSWORD)
        await session.provider_manager.load_network("Ethereum")
        await repl.execute("hist --limit many")
        assert "--limit expects a number" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_sync_without_events(
        self, repl: Repl, session: SessionContext, capsys: pytest.CaptureFixture[str]
    ) -> None:
        await session.provider_manager.load_network("Ethereum")
        await repl.execute("sync")
        assert "Data appears to be synced" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_sync_in_progress(
        self, repl: Repl, session: SessionContext, capsys: pytest.CaptureFixture[str]
    ) -> None:
        await session.provider_manager.load_network("Ethereum")
        session.tracker.apply(
            ScanProgressEvent(
                chain_id=1, track=ScanTrack.UTXO, status=ScanStatus.UPDATED, progress=0.25
            )
        )
        await repl.execute("sy")

        out = capsys.readouterr().out
        assert "UTXO Merkletree: 25%" in out
        assert "TXID Merkletree: Unknown" in out
        assert 'Use "sync --wait"' in out

    @pytest.mark.asyncio
    async def test_sync_wait_until_complete(
        self, repl: Repl, session: SessionContext, capsys: pytest.CaptureFixture[str]
    ) -> None:
        await session.provider_manager.load_network("Ethereum")
        session.tracker.apply(
            ScanProgressEvent(chain_id=1, track=ScanTrack.UTXO, status=ScanStatus.STARTED)
        )
        complete = ScanProgressEvent(
            chain_id=1, track=ScanTrack.UTXO, status=ScanStatus.COMPLETE
        )
        asyncio.get_running_loop().call_later(0.05, session.tracker.publish, complete)

        await asyncio.wait_for(repl.execute("sync --wait"), timeout=2)
        assert "UTXO sync complete!" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_sync_wait_stops_on_exit_request(
        self, repl: Repl, session: SessionContext, capsys: pytest.CaptureFixture[str]
    ) -> None:
        await session.provider_manager.load_network("Ethereum")
        session.tracker.apply(
            ScanProgressEvent(chain_id=1, track=ScanTrack.UTXO, status=ScanStatus.STARTED)
        )
        asyncio.get_running_loop().call_later(0.05, repl.request_exit)

        await asyncio.wait_for(repl.execute("sync -w"), timeout=2)
        assert "Stopped waiting for sync." in capsys.readouterr().out


class TestGeneralCommands:
    """Tests for help and status."""

    @pytest.mark.asyncio
    async def test_help_lists_categories(
        self, repl: Repl, capsys: pytest.CaptureFixture[str]
    ) -> None:
        await repl.execute("help")
        out = capsys.readouterr().out
        for heading in ("GENERAL", "WALLET", "NETWORK", "BALANCE"):
            assert heading in out
        assert "wallet create (wc)" in out
        assert "Usage: history [--limit <n>]" in out

    @pytest.mark.asyncio
    async def test_status_empty(self, repl: Repl, capsys: pytest.CaptureFixture[str]) -> None:
        await repl.execute("st")
        out = capsys.readouterr().out
        assert 'None - create with "wallet create"' in out
        assert 'Not connected - use "network connect"' in out

    @pytest.mark.asyncio
    async def test_status_with_wallet_and_network(
        self,
        repl: Repl,
        session: SessionContext,
        sample_mnemonic: str,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        wallet = await session.wallet_manager.create_wallet(sample_mnemonic, TEST_PASSWORD)
        await session.provider_manager.load_network("Polygon")
        await repl.execute("status")

        out = capsys.readouterr().out
        assert short_id(wallet.id) in out
        assert "[loaded]" in out
        assert "Chain ID: 137" in out

    @pytest.mark.asyncio
    async def test_exit_command(self, repl: Repl) -> None:
        await repl.execute("quit")
        assert repl.cancel_event.is_set()

"""
Balance, history and sync REPL commands.
"""

from __future__ import annotations

import json
from typing import Any

import typer

from polaris import output
from polaris.balance import format_balance
from polaris.commands.base import (
    CommandContext,
    CommandRegistry,
    ensure_wallet_loaded,
    has_flag,
    int_option,
    require_active_network,
    require_active_wallet,
)
from polaris.errors import NotFoundError
from polaris.models import ScanState, ScanStatus, TrackState, WalletBalances

DEFAULT_HISTORY_LIMIT = 10


def format_track(track: TrackState | None) -> str:
    if track is None:
        return output.style("Unknown", dim=True)
    if track.status == ScanStatus.STARTED:
        return output.style("Starting...", fg=typer.colors.YELLOW)
    if track.status == ScanStatus.UPDATED:
        return output.style(f"{round(track.progress * 100)}%", fg=typer.colors.CYAN)
    if track.status == ScanStatus.COMPLETE:
        return output.style("Complete", fg=typer.colors.GREEN)
    return output.style("Incomplete", fg=typer.colors.RED)


async def _wallet_and_network(ctx: CommandContext) -> tuple[str, str]:
    wallet = require_active_wallet(ctx)
    await ensure_wallet_loaded(ctx, wallet.id)
    return wallet.id, require_active_network(ctx)


async def balance_command(args: list[str], ctx: CommandContext) -> None:
    wallet_id, network = await _wallet_and_network(ctx)

    if not has_flag(args, "--no-refresh", "-n"):
        output.info("Syncing balances...")
        await ctx.balance_service.refresh_balances(wallet_id, network)

    output.info(f"Fetching balances for {network}...")
    balances = await ctx.balance_service.get_balances(wallet_id, network)
    render_balances(balances)


def render_balances(balances: WalletBalances) -> None:
    output.newline()
    output.bold(
        f"Private Balances on {output.style(balances.network_name, fg=typer.colors.CYAN)}:"
    )
    output.newline()

    if not balances.tokens:
        output.dim("  No private balances found.")
        output.dim("  Shield tokens to see them here.")
    else:
        for token in balances.tokens:
            short_address = f"{token.token_address[:10]}..."
            if token.symbol:
                name = output.style(token.symbol, fg=typer.colors.YELLOW)
                hint = output.style(f" ({short_address})", dim=True)
            else:
                name = output.style(short_address, dim=True)
                hint = ""
            output.plain(f"  {name}{hint}")
            formatted = format_balance(token.balance, token.decimals)
            output.plain(f"    Balance: {output.style(formatted, fg=typer.colors.GREEN)}")

    if not balances.fresh:
        output.newline()
        output.warn('UTXO scan not complete, balances may be stale. Check with "sync".')

    output.newline()


async def refresh_command(args: list[str], ctx: CommandContext) -> None:
    wallet_id, network = await _wallet_and_network(ctx)

    full_scan = has_flag(args, "--full")
    output.info(f"Refreshing balances{' (full scan)' if full_scan else ''}...")

    if full_scan:
        await ctx.balance_service.full_rescan(wallet_id, network)
    else:
        await ctx.balance_service.refresh_balances(wallet_id, network)

    output.success("Balances refreshed!")


async def history_command(args: list[str], ctx: CommandContext) -> None:
    limit = int_option(args, "--limit", DEFAULT_HISTORY_LIMIT)
    wallet_id, network = await _wallet_and_network(ctx)

    output.info("Fetching transaction history...")
    history = await ctx.balance_service.get_transaction_history(wallet_id, network)
    render_history(history, network, limit)


def render_history(history: list[dict[str, Any]], network: str, limit: int) -> None:
    output.newline()
    output.bold(f"Transaction History on {output.style(network, fg=typer.colors.CYAN)}:")
    output.newline()

    if not history:
        output.dim("  No transactions found.")
    else:
        for transaction in history[: max(limit, 0)]:
            output.dim(json.dumps(transaction, indent=2, default=str))
        if len(history) > limit:
            output.dim(f"  ... and {len(history) - limit} more transactions")

    output.newline()


async def sync_command(args: list[str], ctx: CommandContext) -> None:
    network = require_active_network(ctx)
    config = ctx.provider_manager.get_network_config(network)
    if config is None:
        raise NotFoundError("Network config not found")

    chain_id = config.chain_id
    state = ctx.tracker.get_scan_state(chain_id)

    output.newline()
    output.bold(f"Sync Status for {output.style(network, fg=typer.colors.CYAN)}:")
    output.newline()

    if state is None:
        output.success("Data appears to be synced (using cached merkletrees).")
        output.dim("  If balances show incorrectly, try: br --full")
        output.newline()
        return

    output.plain(f"  UTXO Merkletree: {format_track(state.utxo)}")
    output.plain(f"  TXID Merkletree: {format_track(state.txid)}")
    output.newline()

    utxo_complete = ctx.tracker.is_utxo_scan_complete(chain_id)

    if has_flag(args, "--wait", "-w") and not utxo_complete:
        output.info("Waiting for UTXO sync to complete...")
        output.dim("  This may take a few minutes on first run.")
        output.newline()

        def show_progress(current: ScanState) -> None:
            if current.utxo is not None:
                typer.echo(f"\r  Progress: {round(current.utxo.progress * 100)}%   ", nl=False)

        completed = await ctx.tracker.wait_for_utxo_scan(
            chain_id, cancel=ctx.cancel_event, on_progress=show_progress
        )
        output.newline()
        if completed:
            output.success("UTXO sync complete! You can now check balances.")
        else:
            output.warn("Stopped waiting for sync.")
    elif utxo_complete:
        output.success("Sync complete. Ready for balance queries.")
    else:
        output.info('Sync in progress. Use "sync --wait" to wait for completion.')
    output.newline()


def register(registry: CommandRegistry) -> None:
    registry.add(
        "sync",
        sync_command,
        ("sy",),
        "Show sync status or wait for sync to complete",
        "sync [--wait]",
        category="balance",
    )
    registry.add(
        "balance",
        balance_command,
        ("bal", "b"),
        "Show private (shielded) balances",
        "balance [--no-refresh]",
    )
    registry.add(
        "balance refresh",
        refresh_command,
        ("br",),
        "Refresh wallet balances from blockchain",
        "balance refresh [--full]",
    )
    registry.add(
        "history",
        history_command,
        ("hist",),
        "Show transaction history",
        "history [--limit <n>]",
        category="balance",
    )

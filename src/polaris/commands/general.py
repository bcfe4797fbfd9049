"""
General REPL commands: help, status, clear, exit.
"""

from __future__ import annotations

import typer

from polaris import output
from polaris.commands.base import CATEGORIES, CommandContext, CommandRegistry, short_id

NO_WALLET_HINT = 'None - create with "wallet create"'
NO_NETWORK_HINT = 'Not connected - use "network connect"'


async def help_command(args: list[str], ctx: CommandContext) -> None:
    output.newline()
    output.bold("Available Commands:")
    output.newline()

    for category in CATEGORIES:
        commands = ctx.registry.by_category(category)
        if not commands:
            continue
        typer.secho(f"  {category.upper()}", fg=typer.colors.CYAN)
        for command in commands:
            aliases = (
                output.style(f" ({', '.join(command.aliases)})", dim=True)
                if command.aliases
                else ""
            )
            output.plain(f"    {output.style(command.name, fg=typer.colors.YELLOW)}{aliases}")
            output.dim(f"      {command.description}")
            if command.usage:
                output.dim(f"      Usage: {command.usage}")
        output.newline()


async def status_command(args: list[str], ctx: CommandContext) -> None:
    output.newline()
    output.bold("Status:")
    output.newline()

    wallet = ctx.wallet_manager.get_active_wallet()
    if wallet is not None:
        if ctx.wallet_manager.is_wallet_loaded(wallet.id):
            loaded = output.style("[loaded]", fg=typer.colors.GREEN)
        else:
            loaded = output.style("[not loaded]", dim=True)
        kind = output.style(" [view-only]", fg=typer.colors.MAGENTA) if wallet.view_only else ""
        output.plain(
            f"  {output.style('Wallet:', dim=True)} "
            f"{output.style(short_id(wallet.id), fg=typer.colors.YELLOW)} {loaded}{kind}"
        )
        output.plain(f"  {output.style('Address:', dim=True)} {wallet.railgun_address[:50]}...")
    else:
        output.plain(
            f"  {output.style('Wallet:', dim=True)} "
            f"{output.style(NO_WALLET_HINT, dim=True)}"
        )

    output.newline()

    network = ctx.provider_manager.get_active_network()
    if network is not None:
        output.plain(
            f"  {output.style('Network:', dim=True)} {output.style(network, fg=typer.colors.GREEN)}"
        )
        config = ctx.provider_manager.get_network_config(network)
        if config is not None:
            output.plain(f"  {output.style('Chain ID:', dim=True)} {config.chain_id}")
    else:
        output.plain(
            f"  {output.style('Network:', dim=True)} "
            f"{output.style(NO_NETWORK_HINT, dim=True)}"
        )

    output.newline()


async def clear_command(args: list[str], ctx: CommandContext) -> None:
    typer.clear()
    ctx.print_banner()


async def exit_command(args: list[str], ctx: CommandContext) -> None:
    ctx.request_exit()


def register(registry: CommandRegistry) -> None:
    registry.add("help", help_command, ("h", "?"), "Show this help message")
    registry.add("status", status_command, ("st",), "Show current wallet and network status")
    registry.add("clear", clear_command, ("cls",), "Clear the screen")
    registry.add("exit", exit_command, ("quit", "q"), "Exit Polaris")

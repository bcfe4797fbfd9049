"""
Network REPL commands.
"""

from __future__ import annotations

import typer

from polaris import output
from polaris.commands.base import CommandContext, CommandRegistry, positional
from polaris.config import get_supported_networks
from polaris.errors import NotFoundError, UnsupportedNetworkError


def _supported(ctx: CommandContext) -> list[str]:
    return get_supported_networks(ctx.provider_manager.networks)


async def list_command(args: list[str], ctx: CommandContext) -> None:
    loaded = ctx.provider_manager.get_loaded_networks()
    active = ctx.provider_manager.get_active_network()

    output.newline()
    output.bold("Available Networks:")
    output.newline()

    for network_name in _supported(ctx):
        config = ctx.provider_manager.get_network_config(network_name)
        if config is None:
            continue

        if network_name == active:
            status = output.style(" (active)", fg=typer.colors.GREEN)
        elif network_name in loaded:
            status = output.style(" [connected]", fg=typer.colors.CYAN)
        else:
            status = ""

        output.plain(f"  {output.style(network_name, fg=typer.colors.YELLOW)}{status}")
        output.dim(f"    Chain ID: {config.chain_id}")
        if config.explorer_url:
            output.dim(f"    Explorer: {config.explorer_url}")
        output.newline()


async def connect_command(args: list[str], ctx: CommandContext) -> None:
    network_name = positional(args)
    supported = _supported(ctx)

    if network_name is None:
        network_name = await ctx.prompter.select("Select a network", supported)
    elif network_name not in supported:
        raise UnsupportedNetworkError(f"Unsupported network: {network_name}")

    output.info(f"Connecting to {network_name}...")
    fees = await ctx.provider_manager.load_network(network_name)

    output.success(f"Connected to {network_name}")
    output.dim(f"  Shield fee: {fees.shield_fee_v2} basis points")
    output.dim(f"  Unshield fee: {fees.unshield_fee_v2} basis points")


async def disconnect_command(args: list[str], ctx: CommandContext) -> None:
    loaded = ctx.provider_manager.get_loaded_networks()
    if not loaded:
        output.info("No networks connected.")
        return

    network_name = positional(args)
    if network_name is None:
        network_name = await ctx.prompter.select("Select a network to disconnect", loaded)
    elif network_name not in loaded:
        raise NotFoundError(f"Network not connected: {network_name}")

    await ctx.provider_manager.unload_network(network_name)
    output.success(f"Disconnected from {network_name}")


async def switch_command(args: list[str], ctx: CommandContext) -> None:
    network_name = positional(args)
    if network_name is None:
        network_name = await ctx.prompter.select("Select a network", _supported(ctx))

    await ctx.provider_manager.switch_network(network_name)
    output.success(f"Switched to {network_name}")


def register(registry: CommandRegistry) -> None:
    registry.add("network list", list_command, ("nl",), "List available networks")
    registry.add(
        "network connect",
        connect_command,
        ("nc",),
        "Connect to a network",
        "network connect [network-name]",
    )
    registry.add(
        "network disconnect",
        disconnect_command,
        ("nd",),
        "Disconnect from a network",
        "network disconnect [network-name]",
    )
    registry.add(
        "network switch",
        switch_command,
        ("ns",),
        "Switch active network",
        "network switch [network-name]",
    )

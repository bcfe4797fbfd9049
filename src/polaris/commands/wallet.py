"""
Wallet REPL commands.
"""

from __future__ import annotations

import typer

from polaris import output
from polaris.commands.base import (
    CommandContext,
    CommandRegistry,
    ensure_wallet_loaded,
    int_option,
    positional,
    short_id,
)
from polaris.errors import StateError, ValidationError
from polaris.models import WalletInfo

DEFAULT_FIND_COUNT = 5


def render_created(wallet: WalletInfo, verb: str) -> None:
    output.newline()
    output.success(f"Wallet {verb} successfully!")
    output.info(f"Wallet ID: {wallet.id}")
    output.info(f"RAILGUN Address: {wallet.railgun_address}")
    output.newline()


def render_mnemonic(mnemonic: str, title: str) -> None:
    output.newline()
    output.bold(title)
    output.newline()
    typer.secho(f"  {mnemonic}", fg=typer.colors.GREEN)
    output.newline()


def _target_wallet_id(args: list[str], ctx: CommandContext) -> str:
    wallet_id = positional(args)
    if wallet_id:
        return wallet_id
    active = ctx.wallet_manager.get_active_wallet()
    if active is None:
        raise StateError("No active wallet. Specify a wallet ID or create a wallet first.")
    return active.id


async def create_command(args: list[str], ctx: CommandContext) -> None:
    mnemonic = ctx.wallet_manager.generate_mnemonic()

    render_mnemonic(mnemonic, "=== IMPORTANT: BACKUP YOUR RECOVERY PHRASE ===")
    output.warn("Write this down and store it safely.")
    output.warn("Anyone with this phrase can access your funds.")
    output.newline()

    if not await ctx.prompter.confirm("I have written down my recovery phrase", default=False):
        output.error("You must backup your recovery phrase before continuing.")
        return

    password = await ctx.prompter.new_password()
    wallet = await ctx.wallet_manager.create_wallet(mnemonic, password, 0)
    render_created(wallet, "created")


async def import_command(args: list[str], ctx: CommandContext) -> None:
    derivation_index = int_option(args, "--index", 0, "-i")
    if derivation_index < 0:
        raise ValidationError("--index must be non-negative")

    mnemonic = await ctx.prompter.mnemonic(ctx.wallet_manager.validate_mnemonic)
    password = await ctx.prompter.new_password()

    wallet = await ctx.wallet_manager.create_wallet(mnemonic, password, derivation_index)
    render_created(wallet, "imported")


async def import_view_only_command(args: list[str], ctx: CommandContext) -> None:
    viewing_key = (await ctx.prompter.ask("Enter the shareable viewing key")).strip()
    if not viewing_key:
        raise ValidationError("Viewing key is required")
    password = await ctx.prompter.new_password("Enter a password to encrypt the wallet")

    wallet = await ctx.wallet_manager.create_view_only_wallet(viewing_key, password)
    output.newline()
    output.success("View-only wallet imported successfully!")
    output.info(f"Wallet ID: {wallet.id}")
    output.info(f"RAILGUN Address: {wallet.railgun_address}")
    output.newline()


async def list_command(args: list[str], ctx: CommandContext) -> None:
    wallets = ctx.wallet_manager.get_all_wallets()
    if not wallets:
        output.info("No wallets found. Create one with: wallet create")
        return

    active = ctx.wallet_manager.get_active_wallet()

    output.newline()
    output.bold("Your Wallets:")
    output.newline()

    for wallet in wallets:
        is_active = active is not None and wallet.id == active.id
        status = output.style(" (active)", fg=typer.colors.GREEN) if is_active else ""
        loaded = (
            output.style(" [loaded]", fg=typer.colors.CYAN)
            if ctx.wallet_manager.is_wallet_loaded(wallet.id)
            else ""
        )
        view_only = (
            output.style(" [view-only]", fg=typer.colors.MAGENTA) if wallet.view_only else ""
        )
        wallet_label = output.style(short_id(wallet.id), fg=typer.colors.YELLOW)
        output.plain(f"  {wallet_label}{status}{loaded}{view_only}")
        output.dim(f"    Address: {wallet.railgun_address[:30]}...")
        output.dim(f"    Created: {wallet.created_at}")
        output.newline()


async def load_command(args: list[str], ctx: CommandContext) -> None:
    wallet_id = _target_wallet_id(args, ctx)
    password = await ctx.prompter.password()
    await ctx.wallet_manager.load_wallet(wallet_id, password)
    output.success(f"Wallet {short_id(wallet_id)} loaded successfully!")


async def unload_command(args: list[str], ctx: CommandContext) -> None:
    wallet_id = _target_wallet_id(args, ctx)
    if not ctx.wallet_manager.is_wallet_loaded(wallet_id):
        output.info(f"Wallet {short_id(wallet_id)} is not loaded.")
        return
    await ctx.wallet_manager.unload_wallet(wallet_id)
    output.success(f"Wallet {short_id(wallet_id)} unloaded.")


async def use_command(args: list[str], ctx: CommandContext) -> None:
    wallet_id = positional(args)
    if not wallet_id:
        raise ValidationError("Please specify a wallet ID.")
    ctx.wallet_manager.set_active_wallet(wallet_id)
    output.success(f"Active wallet set to {short_id(wallet_id)}")


async def export_command(args: list[str], ctx: CommandContext) -> None:
    wallet_id = _target_wallet_id(args, ctx)
    password = await ctx.prompter.password()
    mnemonic = await ctx.wallet_manager.export_mnemonic(wallet_id, password)

    render_mnemonic(mnemonic, "=== YOUR RECOVERY PHRASE ===")
    output.warn("Keep this phrase private and secure!")
    output.newline()


async def viewing_key_command(args: list[str], ctx: CommandContext) -> None:
    wallet_id = _target_wallet_id(args, ctx)
    await ensure_wallet_loaded(ctx, wallet_id)
    viewing_key = await ctx.wallet_manager.get_viewing_key(wallet_id)

    output.newline()
    output.bold("Shareable Viewing Key:")
    output.newline()
    typer.secho(viewing_key, fg=typer.colors.CYAN)
    output.newline()
    output.dim("Share this key to allow others to view your balances (read-only).")
    output.newline()


async def delete_command(args: list[str], ctx: CommandContext) -> None:
    wallet_id = positional(args)
    if not wallet_id:
        raise ValidationError("Please specify a wallet ID.")

    confirmed = await ctx.prompter.confirm(
        f"Are you sure you want to delete wallet {short_id(wallet_id)}? This cannot be undone.",
        default=False,
    )
    if not confirmed:
        output.info("Deletion cancelled.")
        return

    password = await ctx.prompter.password("Enter your wallet password to confirm")
    await ctx.wallet_manager.delete_wallet(wallet_id, password)
    output.success("Wallet deleted.")


async def find_addresses_command(args: list[str], ctx: CommandContext) -> None:
    count = int_option(args, "--num", DEFAULT_FIND_COUNT, "-n")
    mnemonic = await ctx.prompter.mnemonic(ctx.wallet_manager.validate_mnemonic)

    output.newline()
    output.bold("Checking derivation indices...")
    output.newline()

    for probe in await ctx.wallet_manager.find_addresses(mnemonic, count):
        label = output.style(f"Index {probe.index}:", fg=typer.colors.YELLOW)
        if probe.address is not None:
            output.plain(f"  {label} {probe.address}")
        else:
            output.plain(f"  {label} {output.style('Error generating', fg=typer.colors.RED)}")

    output.newline()
    output.info("If you see your expected address above, use that index with:")
    output.dim("  wallet import --index <index>")
    output.newline()


def register(registry: CommandRegistry) -> None:
    registry.add("wallet create", create_command, ("wc",), "Create a new wallet")
    registry.add(
        "wallet import",
        import_command,
        ("wi",),
        "Import a wallet from recovery phrase",
        "wallet import [--index <n>]",
    )
    registry.add(
        "wallet import-view-only",
        import_view_only_command,
        ("wiv",),
        "Import a view-only wallet using a viewing key",
    )
    registry.add("wallet list", list_command, ("wl",), "List all wallets")
    registry.add(
        "wallet load",
        load_command,
        ("wload",),
        "Load a wallet into memory",
        "wallet load [wallet-id]",
    )
    registry.add(
        "wallet unload",
        unload_command,
        ("wun",),
        "Unload a wallet from memory",
        "wallet unload [wallet-id]",
    )
    registry.add(
        "wallet use", use_command, ("wu",), "Set the active wallet", "wallet use <wallet-id>"
    )
    registry.add(
        "wallet export",
        export_command,
        ("we",),
        "Export wallet recovery phrase",
        "wallet export [wallet-id]",
    )
    registry.add(
        "wallet viewing-key",
        viewing_key_command,
        ("wvk",),
        "Show the shareable viewing key",
        "wallet viewing-key [wallet-id]",
    )
    registry.add(
        "wallet delete",
        delete_command,
        ("wd",),
        "Delete a wallet permanently",
        "wallet delete <wallet-id>",
    )
    registry.add(
        "wallet find",
        find_addresses_command,
        ("wf",),
        "Find wallet addresses for a recovery phrase",
        "wallet find [--num <count>]",
    )

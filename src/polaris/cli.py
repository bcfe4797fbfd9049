"""
Command-line interface for Polaris.

Running ``polaris`` with no subcommand starts the interactive shell. The
subcommands run a single operation against a fresh session and exit.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from polaris import __version__, output
from polaris.commands.balance import DEFAULT_HISTORY_LIMIT, render_balances, render_history
from polaris.commands.wallet import DEFAULT_FIND_COUNT, render_created, render_mnemonic
from polaris.config import NETWORK_CONFIGS, Settings, get_settings
from polaris.errors import PolarisError, StateError, ValidationError
from polaris.output import setup_logging
from polaris.prompts import check_new_password
from polaris.repl import run_repl
from polaris.session import SessionContext

app = typer.Typer(
    name="polaris",
    help="Polaris - Privacy-First Wallet",
    add_completion=False,
)
wallet_app = typer.Typer(help="Wallet management commands", add_completion=False)
network_app = typer.Typer(help="Network management commands", add_completion=False)
balance_app = typer.Typer(help="View wallet balances", add_completion=False)
app.add_typer(wallet_app, name="wallet")
app.add_typer(network_app, name="network")
app.add_typer(balance_app, name="balance")

PasswordOption = Annotated[
    str | None,
    typer.Option("--password", "-p", envvar="POLARIS_PASSWORD", help="Wallet password"),
]
NetworkOption = Annotated[
    str | None,
    typer.Option("--network", "-N", help="Network name (defaults to the configured network)"),
]


def create_session(settings: Settings) -> SessionContext:
    return SessionContext(settings)


def _settings(ctx: typer.Context) -> Settings:
    settings = ctx.obj
    if not isinstance(settings, Settings):
        raise typer.Exit(1)
    return settings


def _run(settings: Settings, action: Callable[[SessionContext], Awaitable[None]]) -> None:
    """Run one operation against a started session, exiting 1 on failure."""

    async def _with_session() -> None:
        session = create_session(settings)
        try:
            await session.start()
            await action(session)
        finally:
            await session.shutdown()

    try:
        asyncio.run(_with_session())
    except PolarisError as e:
        output.error(str(e))
        raise typer.Exit(1)


def _read_password(password: str | None, new: bool = False) -> str:
    if password is None:
        password = typer.prompt(
            "Enter a password to encrypt your wallet" if new else "Enter your wallet password",
            hide_input=True,
            confirmation_prompt=new,
        )
    if new:
        try:
            check_new_password(password)
        except ValidationError as e:
            output.error(str(e))
            raise typer.Exit(1)
    return password


def _active_wallet_id(session: SessionContext, wallet_id: str | None) -> str:
    if wallet_id:
        return wallet_id
    active = session.wallet_manager.get_active_wallet()
    if active is None:
        raise StateError("No active wallet. Specify a wallet ID or create a wallet first.")
    return active.id


async def _connect(session: SessionContext, network: str | None) -> str:
    network_name = network or session.settings.default_network.value
    output.info(f"Connecting to {network_name}...")
    await session.provider_manager.load_network(network_name)
    return network_name


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    data_dir: Annotated[
        Path | None, typer.Option("--data-dir", help="Data directory (default: ~/.polaris)")
    ] = None,
    debug: Annotated[bool, typer.Option("--debug", "-d", help="Enable debug logging")] = False,
    engine_url: Annotated[
        str | None, typer.Option("--engine-url", help="Shielded-ledger engine REST URL")
    ] = None,
    log_level: Annotated[str | None, typer.Option("--log-level", "-l", help="Log level")] = None,
    version: Annotated[bool, typer.Option("--version", help="Show version and exit")] = False,
) -> None:
    """Polaris - Privacy-First Wallet. Starts the interactive shell without a subcommand."""
    if version:
        typer.echo(f"polaris {__version__}")
        raise typer.Exit()

    overrides: dict[str, object] = {}
    if data_dir is not None:
        overrides["data_dir"] = data_dir
    if debug:
        overrides["debug"] = True
    if engine_url is not None:
        overrides["engine_url"] = engine_url
    if log_level is not None:
        overrides["log_level"] = log_level

    try:
        settings = get_settings(**overrides)
    except PydanticValidationError as e:
        output.error(f"Invalid configuration: {e}")
        raise typer.Exit(1)

    setup_logging(settings.effective_log_level)
    ctx.obj = settings

    if ctx.invoked_subcommand is None:
        session = create_session(settings)
        exit_code = asyncio.run(run_repl(session))
        raise typer.Exit(exit_code)


@app.command()
def status(ctx: typer.Context) -> None:
    """Show wallets and configuration."""
    settings = _settings(ctx)
    session = create_session(settings)

    wallets = session.wallet_manager.get_all_wallets()
    active = session.wallet_manager.get_active_wallet()

    output.newline()
    output.bold("Status:")
    output.newline()
    output.plain(f"  Data directory: {settings.data_dir}")
    output.plain(f"  Engine: {settings.engine_url}")
    output.plain(f"  Default network: {settings.default_network.value}")
    output.plain(f"  Wallets: {len(wallets)}")
    if active is not None:
        output.plain(f"  Active wallet: {active.id}")
        output.plain(f"  Address: {active.railgun_address}")
    else:
        output.plain('  Active wallet: None - create with "polaris wallet create"')
    output.newline()


@wallet_app.command("create")
def wallet_create(
    ctx: typer.Context,
    password: PasswordOption = None,
    words: Annotated[int, typer.Option("--words", "-w", help="Number of words (12 or 24)")] = 12,
) -> None:
    """Create a new wallet with a freshly generated recovery phrase."""
    settings = _settings(ctx)
    if words not in (12, 24):
        output.error("--words must be 12 or 24")
        raise typer.Exit(1)
    secret = _read_password(password, new=True)

    async def action(session: SessionContext) -> None:
        mnemonic = session.wallet_manager.generate_mnemonic(128 if words == 12 else 256)
        wallet = await session.wallet_manager.create_wallet(mnemonic, secret)
        render_mnemonic(mnemonic, "=== IMPORTANT: BACKUP YOUR RECOVERY PHRASE ===")
        output.warn("Write this down and store it safely.")
        output.warn("Anyone with this phrase can access your funds.")
        render_created(wallet, "created")

    _run(settings, action)


@wallet_app.command("import")
def wallet_import(
    ctx: typer.Context,
    mnemonic: Annotated[
        str | None,
        typer.Option("--mnemonic", "-m", envvar="POLARIS_MNEMONIC", help="Recovery phrase"),
    ] = None,
    index: Annotated[int, typer.Option("--index", "-i", help="Derivation index", min=0)] = 0,
    password: PasswordOption = None,
) -> None:
    """Import a wallet from a recovery phrase."""
    settings = _settings(ctx)
    if mnemonic is None:
        mnemonic = typer.prompt("Enter your 12 or 24 word recovery phrase", hide_input=True)
    phrase = mnemonic.strip()
    secret = _read_password(password, new=True)

    async def action(session: SessionContext) -> None:
        wallet = await session.wallet_manager.create_wallet(phrase, secret, index)
        render_created(wallet, "imported")

    _run(settings, action)


@wallet_app.command("import-view-only")
def wallet_import_view_only(
    ctx: typer.Context,
    viewing_key: Annotated[
        str | None, typer.Option("--viewing-key", "-k", help="Shareable viewing key")
    ] = None,
    password: PasswordOption = None,
) -> None:
    """Import a view-only wallet using a shareable viewing key."""
    settings = _settings(ctx)
    if viewing_key is None:
        viewing_key = typer.prompt("Enter the shareable viewing key")
    key = viewing_key.strip()
    secret = _read_password(password, new=True)

    async def action(session: SessionContext) -> None:
        wallet = await session.wallet_manager.create_view_only_wallet(key, secret)
        output.newline()
        output.success("View-only wallet imported successfully!")
        output.info(f"Wallet ID: {wallet.id}")
        output.info(f"RAILGUN Address: {wallet.railgun_address}")
        output.newline()

    _run(settings, action)


@wallet_app.command("list")
def wallet_list(ctx: typer.Context) -> None:
    """List all wallets."""
    session = create_session(_settings(ctx))
    wallets = session.wallet_manager.get_all_wallets()
    if not wallets:
        output.info("No wallets found. Create one with: polaris wallet create")
        return

    active = session.wallet_manager.get_active_wallet()
    output.newline()
    output.bold("Your Wallets:")
    output.newline()
    for wallet in wallets:
        marker = " (active)" if active is not None and wallet.id == active.id else ""
        view_only = " [view-only]" if wallet.view_only else ""
        output.plain(f"  {wallet.id}{marker}{view_only}")
        output.dim(f"    Address: {wallet.railgun_address}")
        output.dim(f"    Created: {wallet.created_at}")
        output.newline()


@wallet_app.command("use")
def wallet_use(
    ctx: typer.Context,
    wallet_id: Annotated[str, typer.Argument(help="Wallet ID to set as active")],
) -> None:
    """Set the active wallet."""
    session = create_session(_settings(ctx))
    try:
        session.wallet_manager.set_active_wallet(wallet_id)
    except PolarisError as e:
        output.error(str(e))
        raise typer.Exit(1)
    output.success(f"Active wallet set to {wallet_id[:8]}...")


@wallet_app.command("load")
def wallet_load(
    ctx: typer.Context,
    wallet_id: Annotated[
        str | None, typer.Argument(help="Wallet ID (uses active wallet if not specified)")
    ] = None,
    password: PasswordOption = None,
) -> None:
    """Check that a wallet loads with the given password."""
    settings = _settings(ctx)
    secret = _read_password(password)

    async def action(session: SessionContext) -> None:
        target = _active_wallet_id(session, wallet_id)
        await session.wallet_manager.load_wallet(target, secret)
        output.success(f"Wallet {target[:8]}... loaded successfully!")

    _run(settings, action)


@wallet_app.command("export")
def wallet_export(
    ctx: typer.Context,
    wallet_id: Annotated[
        str | None, typer.Argument(help="Wallet ID (uses active wallet if not specified)")
    ] = None,
    password: PasswordOption = None,
) -> None:
    """Export a wallet's recovery phrase."""
    settings = _settings(ctx)
    secret = _read_password(password)

    async def action(session: SessionContext) -> None:
        target = _active_wallet_id(session, wallet_id)
        mnemonic = await session.wallet_manager.export_mnemonic(target, secret)
        render_mnemonic(mnemonic, "=== YOUR RECOVERY PHRASE ===")
        output.warn("Keep this phrase private and secure!")

    _run(settings, action)


@wallet_app.command("viewing-key")
def wallet_viewing_key(
    ctx: typer.Context,
    wallet_id: Annotated[
        str | None, typer.Argument(help="Wallet ID (uses active wallet if not specified)")
    ] = None,
    password: PasswordOption = None,
) -> None:
    """Show a wallet's shareable viewing key."""
    settings = _settings(ctx)
    secret = _read_password(password)

    async def action(session: SessionContext) -> None:
        target = _active_wallet_id(session, wallet_id)
        await session.wallet_manager.load_wallet(target, secret)
        viewing_key = await session.wallet_manager.get_viewing_key(target)
        output.bold("Shareable Viewing Key:")
        typer.secho(viewing_key, fg=typer.colors.CYAN)

    _run(settings, action)


@wallet_app.command("delete")
def wallet_delete(
    ctx: typer.Context,
    wallet_id: Annotated[str, typer.Argument(help="Wallet ID to delete")],
    password: PasswordOption = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> None:
    """Delete a wallet permanently."""
    settings = _settings(ctx)
    if not yes and not typer.confirm(
        f"Are you sure you want to delete wallet {wallet_id[:8]}...? This cannot be undone.",
        default=False,
    ):
        output.info("Deletion cancelled.")
        return
    secret = _read_password(password)

    async def action(session: SessionContext) -> None:
        await session.wallet_manager.delete_wallet(wallet_id, secret)
        output.success("Wallet deleted.")

    _run(settings, action)


@wallet_app.command("find")
def wallet_find(
    ctx: typer.Context,
    mnemonic: Annotated[
        str | None,
        typer.Option("--mnemonic", "-m", envvar="POLARIS_MNEMONIC", help="Recovery phrase"),
    ] = None,
    num: Annotated[
        int, typer.Option("--num", "-n", help="Number of derivation indices to check", min=1)
    ] = DEFAULT_FIND_COUNT,
) -> None:
    """Find wallet addresses for a recovery phrase at several derivation indices."""
    settings = _settings(ctx)
    if mnemonic is None:
        mnemonic = typer.prompt("Enter your 12 or 24 word recovery phrase", hide_input=True)
    phrase = mnemonic.strip()

    async def action(session: SessionContext) -> None:
        output.bold("Checking derivation indices...")
        for probe in await session.wallet_manager.find_addresses(phrase, num):
            output.plain(f"  Index {probe.index}: {probe.address or 'Error generating'}")
        output.info("If you see your expected address above, use that index with:")
        output.dim("  polaris wallet import --index <index>")

    _run(settings, action)


@network_app.command("list")
def network_list(ctx: typer.Context) -> None:
    """List available networks."""
    _settings(ctx)
    output.newline()
    output.bold("Available Networks:")
    output.newline()
    for name, config in NETWORK_CONFIGS.items():
        output.plain(f"  {name}")
        output.dim(f"    Chain ID: {config.chain_id}")
        if config.explorer_url:
            output.dim(f"    Explorer: {config.explorer_url}")
        output.newline()


@network_app.command("connect")
def network_connect(
    ctx: typer.Context,
    network: Annotated[str, typer.Argument(help="Network name")],
) -> None:
    """Connect to a network and report its fees."""
    settings = _settings(ctx)

    async def action(session: SessionContext) -> None:
        fees = await session.provider_manager.load_network(network)
        output.success(f"Connected to {network}")
        output.dim(f"  Shield fee: {fees.shield_fee_v2} basis points")
        output.dim(f"  Unshield fee: {fees.unshield_fee_v2} basis points")

    _run(settings, action)


@network_app.command("disconnect")
def network_disconnect(
    ctx: typer.Context,
    network: Annotated[str, typer.Argument(help="Network name")],
) -> None:
    """Disconnect from a network."""
    settings = _settings(ctx)

    async def action(session: SessionContext) -> None:
        if not session.provider_manager.is_network_loaded(network):
            # Connections live only as long as one invocation
            output.info(f"Not connected to {network}.")
            return
        await session.provider_manager.unload_network(network)
        output.success(f"Disconnected from {network}")

    _run(settings, action)


@balance_app.command("show")
def balance_show(
    ctx: typer.Context,
    network: NetworkOption = None,
    wallet_id: Annotated[str | None, typer.Option("--wallet", "-w", help="Wallet ID")] = None,
    password: PasswordOption = None,
    no_refresh: Annotated[
        bool, typer.Option("--no-refresh", "-n", help="Skip refreshing before showing")
    ] = False,
) -> None:
    """Show private (shielded) balances."""
    settings = _settings(ctx)
    secret = _read_password(password)

    async def action(session: SessionContext) -> None:
        target = _active_wallet_id(session, wallet_id)
        await session.wallet_manager.load_wallet(target, secret)
        network_name = await _connect(session, network)
        if not no_refresh:
            output.info("Syncing balances...")
            await session.balance_service.refresh_balances(target, network_name)
        render_balances(await session.balance_service.get_balances(target, network_name))

    _run(settings, action)


@balance_app.command("refresh")
def balance_refresh(
    ctx: typer.Context,
    network: NetworkOption = None,
    wallet_id: Annotated[str | None, typer.Option("--wallet", "-w", help="Wallet ID")] = None,
    password: PasswordOption = None,
    full: Annotated[bool, typer.Option("--full", help="Full rescan (slower)")] = False,
) -> None:
    """Refresh wallet balances from the blockchain."""
    settings = _settings(ctx)
    secret = _read_password(password)

    async def action(session: SessionContext) -> None:
        target = _active_wallet_id(session, wallet_id)
        await session.wallet_manager.load_wallet(target, secret)
        network_name = await _connect(session, network)
        if full:
            await session.balance_service.full_rescan(target, network_name)
        else:
            await session.balance_service.refresh_balances(target, network_name)
        output.success("Balances refreshed!")

    _run(settings, action)


@balance_app.command("history")
def balance_history(
    ctx: typer.Context,
    network: NetworkOption = None,
    wallet_id: Annotated[str | None, typer.Option("--wallet", "-w", help="Wallet ID")] = None,
    password: PasswordOption = None,
    limit: Annotated[
        int, typer.Option("--limit", help="Number of transactions to show", min=1)
    ] = DEFAULT_HISTORY_LIMIT,
) -> None:
    """Show transaction history."""
    settings = _settings(ctx)
    secret = _read_password(password)

    async def action(session: SessionContext) -> None:
        target = _active_wallet_id(session, wallet_id)
        await session.wallet_manager.load_wallet(target, secret)
        network_name = await _connect(session, network)
        history = await session.balance_service.get_transaction_history(target, network_name)
        render_history(history, network_name, limit)

    _run(settings, action)


def main() -> None:
    """Entry point."""
    try:
        app()
    except KeyboardInterrupt:
        logger.debug("Interrupted")
        raise SystemExit(130) from None


if __name__ == "__main__":
    main()

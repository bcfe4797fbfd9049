"""
Command registry, input parsing and helpers shared by REPL command handlers.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from polaris import output
from polaris.errors import StateError, ValidationError
from polaris.models import WalletInfo
from polaris.prompts import Prompter
from polaris.session import SessionContext

if TYPE_CHECKING:
    from polaris.balance import BalanceService
    from polaris.network.provider_manager import ProviderManager
    from polaris.scan import ScanTracker
    from polaris.wallet.manager import WalletManager

CATEGORIES = ("general", "wallet", "network", "balance")


@dataclass
class CommandContext:
    """What a command handler gets besides its arguments."""

    session: SessionContext
    prompter: Prompter
    registry: CommandRegistry
    # Set when the session is shutting down; long waits watch it
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    request_exit: Callable[[], None] = lambda: None
    print_banner: Callable[[], None] = lambda: None

    @property
    def wallet_manager(self) -> WalletManager:
        return self.session.wallet_manager

    @property
    def provider_manager(self) -> ProviderManager:
        return self.session.provider_manager

    @property
    def balance_service(self) -> BalanceService:
        return self.session.balance_service

    @property
    def tracker(self) -> ScanTracker:
        return self.session.tracker


CommandHandler = Callable[[list[str], CommandContext], Awaitable[None]]


@dataclass(frozen=True)
class Command:
    name: str
    handler: CommandHandler
    aliases: tuple[str, ...] = ()
    description: str = ""
    usage: str | None = None
    category: str = "general"


class CommandRegistry:
    def __init__(self) -> None:
        self._commands: list[Command] = []
        self._lookup: dict[str, Command] = {}

    def register(self, command: Command) -> Command:
        for key in (command.name, *command.aliases):
            key = key.lower()
            if key in self._lookup:
                raise ValueError(f"Command name or alias already registered: {key}")
        self._commands.append(command)
        for key in (command.name, *command.aliases):
            self._lookup[key.lower()] = command
        return command

    def add(
        self,
        name: str,
        handler: CommandHandler,
        aliases: tuple[str, ...] = (),
        description: str = "",
        usage: str | None = None,
        category: str | None = None,
    ) -> Command:
        if category is None:
            first_word = name.split()[0]
            category = first_word if first_word in CATEGORIES else "general"
        return self.register(
            Command(
                name=name,
                handler=handler,
                aliases=aliases,
                description=description,
                usage=usage,
                category=category,
            )
        )

    def get(self, key: str) -> Command | None:
        return self._lookup.get(key.lower())

    def by_category(self, category: str) -> list[Command]:
        return [command for command in self._commands if command.category == category]

    def __iter__(self) -> Iterator[Command]:
        return iter(self._commands)

    def __len__(self) -> int:
        return len(self._commands)


def parse_input(line: str) -> list[str]:
    return line.split()


def find_command(line: str, registry: CommandRegistry) -> tuple[Command, list[str]] | None:
    """
    Resolve an input line to a command and its arguments.

    The first two words are tried as a two-word name or alias before the
    first word alone, so ``wallet create`` never resolves to a one-word
    command.
    """
    tokens = parse_input(line)
    if not tokens:
        return None

    if len(tokens) >= 2:
        command = registry.get(f"{tokens[0]} {tokens[1]}")
        if command is not None:
            return command, tokens[2:]

    command = registry.get(tokens[0])
    if command is not None:
        return command, tokens[1:]
    return None


def has_flag(args: list[str], *names: str) -> bool:
    return any(name in args for name in names)


def int_option(args: list[str], name: str, default: int, *aliases: str) -> int:
    """Read ``--name N`` from the arguments."""
    for flag in (name, *aliases):
        if flag in args:
            position = args.index(flag)
            if position + 1 >= len(args):
                raise ValidationError(f"{flag} requires a value")
            try:
                return int(args[position + 1])
            except ValueError:
                raise ValidationError(
                    f"{flag} expects a number, got {args[position + 1]!r}"
                ) from None
    return default


def positional(args: list[str], index: int = 0) -> str | None:
    """Get a positional argument, skipping flags and their values."""
    values: list[str] = []
    skip_next = False
    for arg in args:
        if skip_next:
            skip_next = False
            continue
        if arg.startswith("--"):
            skip_next = arg in ("--index", "--num", "--limit")
            continue
        if arg.startswith("-") and len(arg) == 2:
            continue
        values.append(arg)
    return values[index] if index < len(values) else None


def require_active_wallet(ctx: CommandContext) -> WalletInfo:
    wallet = ctx.wallet_manager.get_active_wallet()
    if wallet is None:
        raise StateError("No active wallet. Create or load one first.")
    return wallet


def require_active_network(ctx: CommandContext) -> str:
    network = ctx.provider_manager.get_active_network()
    if network is None:
        raise StateError("No network connected. Connect with: network connect")
    return network


async def ensure_wallet_loaded(ctx: CommandContext, wallet_id: str) -> None:
    """Prompt for the password and load the wallet if it is not loaded yet."""
    if ctx.wallet_manager.is_wallet_loaded(wallet_id):
        return

    output.info("Wallet not loaded. Enter password to load it:")
    password = await ctx.prompter.password("Wallet password")
    await ctx.wallet_manager.load_wallet(wallet_id, password)
    output.success("Wallet loaded!")


def short_id(wallet_id: str) -> str:
    return f"{wallet_id[:8]}..."

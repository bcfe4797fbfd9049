"""
Interactive shell.

One command runs at a time. SIGINT/SIGTERM cancel whatever is running,
including a pending prompt, and move the shell to SHUTTING_DOWN. Teardown
runs once however many times shutdown is requested.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Coroutine
from enum import Enum
from typing import Any, TypeVar

import typer
from loguru import logger

from polaris import __version__, output
from polaris.commands import build_registry
from polaris.commands.base import (
    Command,
    CommandContext,
    CommandRegistry,
    find_command,
    parse_input,
)
from polaris.errors import PolarisError
from polaris.prompts import INPUT_CLOSED, Prompter
from polaris.session import SessionContext

T = TypeVar("T")

EXIT_WORDS = ("exit", "quit", "q")

BANNER_LINES = (
    "╔═══════════════════════════════════════════════════════════╗",
    "║  POLARIS - Privacy-First Wallet                           ║",
    "║  Powered by RAILGUN                                       ║",
    "╚═══════════════════════════════════════════════════════════╝",
)


class ReplState(str, Enum):
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"


def print_banner() -> None:
    output.newline()
    for line in BANNER_LINES:
        typer.secho(line, fg=typer.colors.CYAN)
    output.dim(f"  v{__version__}")
    output.newline()


def build_prompt(session: SessionContext, color: bool = True) -> str:
    """
    Render the prompt from the active network and wallet.

    Reads state only. The network shows as its first three letters, the
    wallet as its first 12 address characters, cyan when loaded and dim
    otherwise.
    """

    def paint(text: str, **styles: Any) -> str:
        return typer.style(text, **styles) if color else text

    parts: list[str] = []

    network = session.provider_manager.get_active_network()
    if network:
        parts.append(paint(network[:3].upper(), fg=typer.colors.GREEN))
    else:
        parts.append(paint("---", dim=True))

    wallet = session.wallet_manager.get_active_wallet_cached()
    if wallet is not None:
        address = wallet.railgun_address[:12]
        if session.wallet_manager.is_wallet_loaded(wallet.id):
            parts.append(paint(address, fg=typer.colors.CYAN))
        else:
            parts.append(paint(address, dim=True))

    context = f"[{' '.join(parts)}]" if parts else ""
    return f"{paint('polaris', bold=True)} {context} {paint('>', fg=typer.colors.CYAN)} "


class Repl:
    def __init__(
        self,
        session: SessionContext,
        registry: CommandRegistry | None = None,
        prompter: Prompter | None = None,
        color: bool = True,
    ):
        self.session = session
        self.registry = registry if registry is not None else build_registry()
        self.prompter = prompter if prompter is not None else Prompter()
        self.color = color
        self.state = ReplState.RUNNING

        self.cancel_event = asyncio.Event()
        self.context = CommandContext(
            session=session,
            prompter=self.prompter,
            registry=self.registry,
            cancel_event=self.cancel_event,
            request_exit=self.request_exit,
            print_banner=print_banner,
        )

        self._current_task: asyncio.Task[Any] | None = None
        self._shutdown_task: asyncio.Task[None] | None = None
        self._signals_installed: list[signal.Signals] = []

    def request_exit(self) -> None:
        """Leave the loop after the current command. Safe to call repeatedly."""
        if self.state == ReplState.SHUTTING_DOWN:
            return
        self.state = ReplState.SHUTTING_DOWN
        self.cancel_event.set()

    def interrupt(self) -> None:
        """Shut down from a signal: also cancel the running command or prompt."""
        already_shutting_down = self.state == ReplState.SHUTTING_DOWN
        self.request_exit()
        if self._current_task is not None and not self._current_task.done():
            self._current_task.cancel()
        if not already_shutting_down:
            logger.debug("Interrupt received, shutting down")

    def install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.interrupt)
            except (NotImplementedError, RuntimeError):
                # Not on the main thread, or not supported by this platform
                continue
            self._signals_installed.append(sig)

    def remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in self._signals_installed:
            loop.remove_signal_handler(sig)
        self._signals_installed.clear()

    async def _run_current(self, coro: Coroutine[Any, Any, T]) -> T:
        task = asyncio.create_task(coro)
        self._current_task = task
        try:
            return await task
        finally:
            self._current_task = None

    def find(self, line: str) -> tuple[Command, list[str]] | None:
        return find_command(line, self.registry)

    async def execute(self, line: str) -> None:
        """
        Run one input line.

        Command failures are rendered and never end the loop. A closed input
        stream inside a command prompt shuts the shell down.
        """
        tokens = parse_input(line)
        if not tokens:
            return

        if tokens[0].lower() in EXIT_WORDS and len(tokens) == 1:
            self.request_exit()
            return

        match = self.find(line)
        if match is None:
            output.error(f"Unknown command: {tokens[0]}")
            output.dim('Type "help" for available commands.')
            output.newline()
            return

        command, args = match
        try:
            await self._run_current(command.handler(args, self.context))
        except asyncio.CancelledError:
            if self.state != ReplState.SHUTTING_DOWN:
                raise
        except INPUT_CLOSED:
            output.newline()
            self.request_exit()
        except PolarisError as e:
            output.error(str(e))
        except Exception as e:
            logger.opt(exception=True).debug(f"Command {command.name} failed")
            output.error(f"Error: {e}")

    async def auto_connect(self, network_name: str) -> None:
        try:
            output.info(f"Connecting to {network_name}...")
            fees = await self._run_current(
                self.session.provider_manager.load_network(network_name)
            )
        except asyncio.CancelledError:
            if self.state != ReplState.SHUTTING_DOWN:
                raise
            return
        except PolarisError as e:
            output.warn(f"Failed to auto-connect to {network_name}: {e}")
            output.dim('  Use "nc" to connect to a network manually.')
            output.newline()
            return

        output.success(f"Connected to {network_name}")
        output.dim(f"  Shield fee: {fees.shield_fee_v2} basis points")
        output.dim(f"  Unshield fee: {fees.unshield_fee_v2} basis points")
        output.newline()

    async def run(self) -> int:
        """Read and execute commands until exit, interrupt or end of input."""
        output.dim('Type "help" for available commands, "exit" to quit.')
        output.newline()

        try:
            while self.state == ReplState.RUNNING:
                try:
                    line = await self._run_current(
                        self.prompter.read_line(build_prompt(self.session, self.color))
                    )
                except asyncio.CancelledError:
                    if self.state == ReplState.SHUTTING_DOWN:
                        break
                    raise
                except INPUT_CLOSED:
                    output.newline()
                    self.request_exit()
                    break

                await self.execute(line.strip())
                if self.state == ReplState.RUNNING:
                    output.newline()
        finally:
            self.request_exit()
            await self.shutdown()

        return 0

    async def shutdown(self) -> None:
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.create_task(self._shutdown())
        await asyncio.shield(self._shutdown_task)

    async def _shutdown(self) -> None:
        output.dim("Shutting down...")
        try:
            await self.session.shutdown()
        finally:
            self.remove_signal_handlers()


async def run_repl(
    session: SessionContext,
    prompter: Prompter | None = None,
    registry: CommandRegistry | None = None,
    handle_signals: bool = True,
) -> int:
    """
    Start the engine, auto-connect and run the shell.

    Returns the process exit code: 1 when the engine cannot start, otherwise
    0 after shutdown.
    """
    print_banner()

    output.info("Initializing Polaris engine...")
    try:
        await session.start()
    except PolarisError as e:
        output.error(f"Failed to initialize engine: {e}")
        await session.shutdown()
        return 1

    output.success("Engine initialized")
    output.newline()

    repl = Repl(session, registry=registry, prompter=prompter)
    if handle_signals:
        repl.install_signal_handlers()

    if session.settings.auto_connect:
        await repl.auto_connect(session.settings.default_network.value)

    return await repl.run()

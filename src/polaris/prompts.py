"""
Interactive prompts for the REPL.

Terminal reads block, so they run on a daemon thread and are awaited from
the event loop. A read still pending at shutdown does not keep the process
alive.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from typing import TypeVar

import typer

from polaris.errors import ValidationError

T = TypeVar("T")

MIN_PASSWORD_LENGTH = 8

# Raised by a prompt whose input stream is closed (Ctrl-D, end of a pipe)
INPUT_CLOSED: tuple[type[BaseException], ...] = (EOFError, typer.Abort)


def check_new_password(password: str, confirmation: str | None = None) -> None:
    """
    Raises:
        ValidationError: If the password is shorter than 8 characters or does
            not match its confirmation
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if confirmation is not None and password != confirmation:
        raise ValidationError("Passwords do not match.")


async def run_blocking(func: Callable[[], T]) -> T:
    """Run a blocking terminal read on a daemon thread and await its result."""
    loop = asyncio.get_running_loop()
    future: asyncio.Future[T] = loop.create_future()

    def _set_result(value: T) -> None:
        if not future.done():
            future.set_result(value)

    def _set_exception(exc: BaseException) -> None:
        if not future.done():
            future.set_exception(exc)

    def _worker() -> None:
        try:
            value = func()
        except BaseException as e:  # noqa: BLE001 - re-raised on the loop thread
            loop.call_soon_threadsafe(_set_exception, e)
        else:
            loop.call_soon_threadsafe(_set_result, value)

    threading.Thread(target=_worker, name="polaris-prompt", daemon=True).start()
    return await future


class Prompter:
    """
    Reads user input.

    ``read_line``, ``ask`` and ``confirm`` are the only methods that touch
    the terminal; everything else is built on them, so tests can replace
    just those three.
    """

    async def read_line(self, prompt: str) -> str:
        """Read one command line. Raises typer.Abort when input is closed."""
        return await run_blocking(
            lambda: typer.prompt(prompt, default="", show_default=False, prompt_suffix="")
        )

    async def ask(self, message: str, hide_input: bool = False) -> str:
        return await run_blocking(lambda: typer.prompt(message, hide_input=hide_input))

    async def confirm(self, message: str, default: bool = False) -> bool:
        return await run_blocking(lambda: typer.confirm(message, default=default))

    async def password(self, message: str = "Enter your wallet password") -> str:
        return await self.ask(message, hide_input=True)

    async def new_password(self, message: str = "Enter a password to encrypt your wallet") -> str:
        """
        Ask for a new password twice.

        Raises:
            ValidationError: If it is shorter than 8 characters or the two
                entries differ
        """
        password = await self.ask(message, hide_input=True)
        check_new_password(password)
        confirmation = await self.ask("Confirm your password", hide_input=True)
        check_new_password(password, confirmation)
        return password

    async def mnemonic(self, validate: Callable[[str], bool]) -> str:
        phrase = (
            await self.ask("Enter your 12 or 24 word recovery phrase", hide_input=True)
        ).strip()
        if not validate(phrase):
            raise ValidationError("Invalid mnemonic phrase.")
        return phrase

    async def select(self, message: str, choices: list[str]) -> str:
        """Pick one of ``choices`` by number or by name."""
        if not choices:
            raise ValidationError("Nothing to select")

        for index, choice in enumerate(choices, start=1):
            typer.echo(f"  {index}) {choice}")

        answer = (await self.ask(message)).strip()
        if answer in choices:
            return answer
        try:
            position = int(answer)
        except ValueError:
            raise ValidationError(f"Invalid selection: {answer}") from None
        if not 1 <= position <= len(choices):
            raise ValidationError(f"Invalid selection: {answer}")
        return choices[position - 1]

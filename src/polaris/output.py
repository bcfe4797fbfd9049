"""
Terminal output: loguru setup and user-facing message helpers.
"""

from __future__ import annotations

import sys

import typer
from loguru import logger

LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=LOG_FORMAT,
    )


def success(message: str) -> None:
    typer.secho(f"✓ {message}", fg=typer.colors.GREEN)


def error(message: str) -> None:
    typer.secho(f"✗ {message}", fg=typer.colors.RED)


def info(message: str) -> None:
    typer.secho(f"ℹ {message}", fg=typer.colors.CYAN)


def warn(message: str) -> None:
    typer.secho(f"⚠ {message}", fg=typer.colors.YELLOW)


def dim(message: str) -> None:
    typer.secho(message, dim=True)


def bold(message: str) -> None:
    typer.secho(message, bold=True)


def plain(message: str = "") -> None:
    typer.echo(message)


def newline() -> None:
    typer.echo()


def style(text: str, **kwargs: object) -> str:
    return typer.style(text, **kwargs)  # type: ignore[arg-type]

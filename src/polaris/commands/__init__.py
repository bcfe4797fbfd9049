"""
REPL command set.
"""

from polaris.commands import balance, general, network, wallet
from polaris.commands.base import (
    Command,
    CommandContext,
    CommandRegistry,
    find_command,
    parse_input,
)


def build_registry() -> CommandRegistry:
    registry = CommandRegistry()
    for module in (general, wallet, network, balance):
        module.register(registry)
    return registry


__all__ = [
    "Command",
    "CommandContext",
    "CommandRegistry",
    "build_registry",
    "find_command",
    "parse_input",
]

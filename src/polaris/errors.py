"""
Exception hierarchy for Polaris.

Command handlers catch PolarisError subclasses and render them as messages;
only engine start failures end the process.
"""

from __future__ import annotations


class PolarisError(Exception):
    """Base class for all Polaris errors."""

    pass


class ValidationError(PolarisError):
    """Invalid user input: bad mnemonic, short password, confirmation mismatch."""

    pass


class NotFoundError(PolarisError):
    """Unknown wallet id or unknown/unconnected network."""

    pass


class UnsupportedNetworkError(NotFoundError):
    pass


class StateError(PolarisError):
    """Operation not valid in the current session state."""

    pass


class EngineError(PolarisError):
    """Failure surfaced by the shielded-ledger engine."""

    pass


class EngineNotImplementedError(EngineError):
    pass


class CatalogIOError(PolarisError):
    """Wallet catalog could not be read or parsed."""

    pass

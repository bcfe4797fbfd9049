"""
Network provider session management.
"""

from polaris.network.provider_manager import DEFAULT_POLLING_INTERVAL_MS, ProviderManager

__all__ = [
    "DEFAULT_POLLING_INTERVAL_MS",
    "ProviderManager",
]

"""
Network session: connected providers and the single active network.
"""

from __future__ import annotations

from loguru import logger

from polaris.config import NETWORK_CONFIGS, get_fallback_provider_config
from polaris.engine.base import ChainProvider
from polaris.errors import NotFoundError, UnsupportedNetworkError
from polaris.models import FeeData, NetworkConfig

DEFAULT_POLLING_INTERVAL_MS = 15_000


class ProviderManager:
    """
    Tracks which networks have a loaded provider and which one is active.

    At most one network is active, and it is always one of the loaded
    networks. Loaded networks keep insertion order, so the replacement
    chosen when the active network is unloaded is the oldest remaining one.
    """

    def __init__(
        self,
        provider: ChainProvider,
        networks: dict[str, NetworkConfig] | None = None,
        polling_interval: int = DEFAULT_POLLING_INTERVAL_MS,
    ):
        self.provider = provider
        self.networks = networks if networks is not None else NETWORK_CONFIGS
        self.polling_interval = polling_interval
        self._loaded: dict[str, FeeData] = {}
        self._active: str | None = None

    def _check_invariant(self) -> None:
        assert self._active is None or self._active in self._loaded, (
            f"Active network {self._active} is not loaded"
        )

    async def load_network(self, network_name: str, polling_interval: int | None = None) -> FeeData:
        """
        Connect to a network and make it active.

        Calling this for a network that is already connected does not
        reconnect and returns zero fees rather than the fees reported on the
        first connect.

        Raises:
            UnsupportedNetworkError: If the network is not in the registry
        """
        if network_name in self._loaded:
            logger.warning(f"Network already loaded: {network_name}")
            return FeeData(shield_fee_v2="0", unshield_fee_v2="0")

        config = get_fallback_provider_config(network_name, self.networks)
        if config is None:
            raise UnsupportedNetworkError(f"Unsupported network: {network_name}")

        logger.info(f"Loading provider for {network_name}...")

        fees = await self.provider.load_provider(
            config,
            network_name,
            polling_interval if polling_interval is not None else self.polling_interval,
        )

        self._loaded[network_name] = fees
        self._active = network_name
        self._check_invariant()

        logger.info(f"Provider loaded for {network_name}")
        logger.debug(f"Shield fee V2: {fees.shield_fee_v2} basis points")
        logger.debug(f"Unshield fee V2: {fees.unshield_fee_v2} basis points")
        return fees

    async def unload_network(self, network_name: str) -> None:
        if network_name not in self._loaded:
            return

        logger.info(f"Unloading provider for {network_name}...")

        await self.provider.unload_provider(network_name)
        del self._loaded[network_name]

        if self._active == network_name:
            self._active = next(iter(self._loaded), None)
            if self._active:
                # the fallback may have been paused by an earlier switch
                await self.provider.resume_polling(self._active)
                logger.info(f"Active network is now {self._active}")
        self._check_invariant()

        logger.info(f"Provider unloaded for {network_name}")

    async def switch_network(self, network_name: str) -> None:
        """Make a network active, connecting first if needed, and pause all others."""
        if network_name not in self._loaded:
            await self.load_network(network_name)

        await self.provider.pause_all_polling(except_network=network_name)
        await self.provider.resume_polling(network_name)

        self._active = network_name
        self._check_invariant()
        logger.info(f"Switched to network: {network_name}")

    async def unload_all(self) -> None:
        for network_name in list(self._loaded):
            await self.unload_network(network_name)

    def get_active_network(self) -> str | None:
        return self._active

    def is_network_loaded(self, network_name: str) -> bool:
        return network_name in self._loaded

    def get_loaded_networks(self) -> list[str]:
        return list(self._loaded)

    def get_network_config(self, network_name: str) -> NetworkConfig | None:
        return self.networks.get(network_name)

    def require_network_config(self, network_name: str) -> NetworkConfig:
        config = self.networks.get(network_name)
        if config is None:
            raise NotFoundError(f"Network config not found: {network_name}")
        return config

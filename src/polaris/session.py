"""
Session context: every long-lived component of a running Polaris session.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any

from loguru import logger

from polaris.balance import BalanceService
from polaris.config import NETWORK_CONFIGS, Settings, get_supported_networks
from polaris.engine.base import ChainProvider, WalletEngine
from polaris.engine.remote import RemoteEngine
from polaris.errors import PolarisError
from polaris.models import NetworkConfig
from polaris.network.provider_manager import ProviderManager
from polaris.scan import ScanTracker
from polaris.storage import WalletStorage
from polaris.transactions import TransactionService
from polaris.wallet.manager import WalletManager


class SessionContext:
    """
    Owns the engine and the session components built on top of it.

    Constructed once per process. ``shutdown()`` releases everything and is
    safe to call more than once, for example from an exit command and a
    signal handler racing each other.
    """

    def __init__(
        self,
        settings: Settings,
        engine: WalletEngine | None = None,
        provider: ChainProvider | None = None,
        networks: dict[str, NetworkConfig] | None = None,
    ):
        self.settings = settings
        self.networks = networks if networks is not None else NETWORK_CONFIGS

        if engine is None:
            remote = RemoteEngine(
                engine_url=settings.engine_url,
                db_path=settings.db_path,
                artifacts_dir=settings.artifacts_dir,
                debug=settings.debug,
                event_poll_interval=settings.sync_poll_interval,
            )
            engine = remote
            provider = provider or remote
        if provider is None:
            if not isinstance(engine, ChainProvider):
                raise TypeError("engine does not provide networks; pass a ChainProvider")
            provider = engine

        self.engine: WalletEngine = engine
        self.provider: ChainProvider = provider

        self.storage = WalletStorage(settings.data_dir)
        self.tracker = ScanTracker()
        self.wallet_manager = WalletManager(
            self.engine, self.storage, get_supported_networks(self.networks)
        )
        self.provider_manager = ProviderManager(
            self.provider, self.networks, settings.polling_interval_ms
        )
        self.balance_service = BalanceService(self.engine, self.tracker, self.networks)
        self.transaction_service = TransactionService()

        self._tracker_task: asyncio.Task[None] | None = None
        self._started = False
        self._shutdown_started = False
        self._shutdown_done = asyncio.Event()

    @property
    def started(self) -> bool:
        return self._started

    @property
    def is_shutting_down(self) -> bool:
        return self._shutdown_started

    async def start(self) -> None:
        """
        Start the engine and the scan progress consumer.

        Raises:
            PolarisError: If the engine cannot be started
        """
        if self._started:
            return

        self.storage.ensure_data_dir()
        self._tracker_task = asyncio.create_task(self.tracker.run())
        try:
            await self.engine.start(on_scan_progress=self.tracker.publish)
        except BaseException:
            await self._stop_tracker()
            raise
        self._started = True

    async def _stop_tracker(self) -> None:
        if self._tracker_task is None:
            return
        self._tracker_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._tracker_task
        self._tracker_task = None

    async def shutdown(self) -> None:
        """
        Disconnect networks, unload wallets and stop the engine.

        Teardown is best effort: a failing step is logged and the remaining
        steps still run. Concurrent callers wait for the first one to finish.
        """
        if self._shutdown_started:
            await self._shutdown_done.wait()
            return
        self._shutdown_started = True

        try:
            if self._started:
                try:
                    await self.provider_manager.unload_all()
                except PolarisError as e:
                    logger.warning(f"Failed to unload networks: {e}")

                await self.wallet_manager.unload_all()

            try:
                await self.engine.stop()
            except PolarisError as e:
                logger.warning(f"Failed to stop engine: {e}")

            await self._stop_tracker()
            self._started = False
            logger.debug("Session shut down")
        finally:
            self._shutdown_done.set()

    async def __aenter__(self) -> SessionContext:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.shutdown()

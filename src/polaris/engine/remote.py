"""
REST client for a shielded-ledger engine daemon.

The engine (proving, merkletree scanning, wallet database) runs as a
separate process. This client implements both engine capability sets over
its HTTP API and forwards scan progress events to the session.
"""

from __future__ import annotations

import asyncio
import contextlib
from pathlib import Path
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from polaris.engine.base import (
    ChainProvider,
    EngineWallet,
    RawTokenBalance,
    ScanProgressSink,
    WalletEngine,
)
from polaris.errors import EngineError, StateError
from polaris.models import (
    FallbackProviderConfig,
    FeeData,
    ScanProgressEvent,
    TokenType,
    TxidVersion,
)

WALLET_SOURCE = "polaris"

# Proof-of-innocence aggregator nodes, required by the engine on mainnets
POI_NODE_URLS = [
    "https://poi-node.railgun.org",
    "https://ppoi-agg.horsewithsixlegs.xyz",
]


class RemoteEngine(WalletEngine, ChainProvider):
    """
    Shielded-ledger engine reached over REST.

    Wallet and provider calls map one-to-one onto daemon endpoints under
    ``v1/``. Scan progress is pulled from ``v1/scan/events`` by a background
    task while the engine is running.
    """

    def __init__(
        self,
        engine_url: str = "http://127.0.0.1:8340",
        db_path: Path | None = None,
        artifacts_dir: Path | None = None,
        debug: bool = False,
        event_poll_interval: float = 2.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.engine_url = engine_url.rstrip("/")
        self.db_path = db_path
        self.artifacts_dir = artifacts_dir
        self.debug = debug
        self.event_poll_interval = event_poll_interval
        # Proof generation and full rescans can take minutes
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(600.0, connect=10.0))

        self._started = False
        self._event_cursor = 0
        self._event_task: asyncio.Task[None] | None = None
        self._on_scan_progress: ScanProgressSink | None = None

    @property
    def started(self) -> bool:
        return self._started

    async def _api_call(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> Any:
        """Make an API call to the engine daemon."""
        url = f"{self.engine_url}/{endpoint}"

        try:
            if method == "GET":
                response = await self.client.get(url, params=params)
            elif method == "POST":
                response = await self.client.post(url, json=data or {})
            elif method == "DELETE":
                response = await self.client.delete(url)
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")

            response.raise_for_status()
            if not response.content:
                return {}
            return response.json()

        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            logger.error(f"Engine API call failed: {endpoint} - {detail}")
            raise EngineError(detail) from e
        except httpx.HTTPError as e:
            logger.error(f"Engine API call failed: {endpoint} - {e}")
            raise EngineError(f"Engine unreachable at {self.engine_url}: {e}") from e

    def _require_started(self) -> None:
        if not self._started:
            raise StateError("Engine not initialized. Call start() first.")

    async def start(self, on_scan_progress: ScanProgressSink | None = None) -> None:
        if self._started:
            logger.warning("Engine already initialized")
            return

        logger.info("Initializing shielded-ledger engine...")
        await self._api_call(
            "POST",
            "v1/engine/start",
            data={
                "wallet_source": WALLET_SOURCE,
                "db_path": str(self.db_path) if self.db_path else None,
                "artifacts_dir": str(self.artifacts_dir) if self.artifacts_dir else None,
                "debug": self.debug,
                "skip_merkletree_scans": False,
                "poi_node_urls": POI_NODE_URLS,
            },
        )

        self._on_scan_progress = on_scan_progress
        self._started = True
        if on_scan_progress is not None:
            self._event_task = asyncio.create_task(self._poll_scan_events())

        logger.info("Engine initialized successfully")

    async def stop(self) -> None:
        if not self._started:
            await self.client.aclose()
            return

        logger.info("Shutting down engine...")
        self._started = False

        if self._event_task is not None:
            self._event_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._event_task
            self._event_task = None

        try:
            await self._api_call("POST", "v1/engine/stop")
        finally:
            await self.client.aclose()

        logger.info("Engine stopped")

    async def _poll_scan_events(self) -> None:
        """Forward merkletree scan events from the daemon to the progress sink."""
        while self._started:
            try:
                result = await self._api_call(
                    "GET", "v1/scan/events", params={"since": self._event_cursor}
                )
                for raw in result.get("events", []):
                    try:
                        event = ScanProgressEvent.model_validate(raw)
                    except PydanticValidationError as e:
                        logger.warning(f"Dropping malformed scan event {raw}: {e}")
                        continue
                    self._forward_scan_event(event)
                self._event_cursor = int(result.get("cursor", self._event_cursor))
            except EngineError as e:
                logger.debug(f"Scan event poll failed: {e}")
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Malformed scan event batch: {e}")

            await asyncio.sleep(self.event_poll_interval)

    def _forward_scan_event(self, event: ScanProgressEvent) -> None:
        if self._on_scan_progress is None:
            return
        try:
            self._on_scan_progress(event)
        except Exception as e:
            logger.warning(f"Scan progress sink failed for chain {event.chain_id}: {e}")

    # Wallet capability set

    async def create_wallet(
        self,
        encryption_key: str,
        mnemonic: str,
        creation_block_numbers: dict[str, int],
        derivation_index: int = 0,
    ) -> EngineWallet:
        self._require_started()
        result = await self._api_call(
            "POST",
            "v1/wallets",
            data={
                "encryption_key": encryption_key,
                "mnemonic": mnemonic,
                "creation_block_numbers": creation_block_numbers,
                "derivation_index": derivation_index,
            },
        )
        return _engine_wallet(result)

    async def create_view_only_wallet(
        self,
        encryption_key: str,
        shareable_viewing_key: str,
        creation_block_numbers: dict[str, int],
    ) -> EngineWallet:
        self._require_started()
        result = await self._api_call(
            "POST",
            "v1/wallets/view-only",
            data={
                "encryption_key": encryption_key,
                "shareable_viewing_key": shareable_viewing_key,
                "creation_block_numbers": creation_block_numbers,
            },
        )
        return _engine_wallet(result)

    async def load_wallet(self, encryption_key: str, wallet_id: str, is_view_only: bool) -> None:
        self._require_started()
        await self._api_call(
            "POST",
            f"v1/wallets/{wallet_id}/load",
            data={"encryption_key": encryption_key, "is_view_only": is_view_only},
        )

    async def unload_wallet(self, wallet_id: str) -> None:
        self._require_started()
        await self._api_call("POST", f"v1/wallets/{wallet_id}/unload")

    async def delete_wallet(self, wallet_id: str) -> None:
        self._require_started()
        await self._api_call("DELETE", f"v1/wallets/{wallet_id}")

    async def get_mnemonic(self, encryption_key: str, wallet_id: str) -> str:
        self._require_started()
        result = await self._api_call(
            "POST", f"v1/wallets/{wallet_id}/mnemonic", data={"encryption_key": encryption_key}
        )
        return str(result["mnemonic"])

    async def get_viewing_key(self, wallet_id: str) -> str:
        self._require_started()
        result = await self._api_call("GET", f"v1/wallets/{wallet_id}/viewing-key")
        return str(result["viewing_key"])

    async def refresh_balances(self, chain_id: int, wallet_ids: list[str]) -> None:
        self._require_started()
        await self._api_call(
            "POST", f"v1/chains/{chain_id}/refresh", data={"wallet_ids": wallet_ids}
        )

    async def get_token_balances(
        self, wallet_id: str, chain_id: int, txid_version: TxidVersion
    ) -> list[RawTokenBalance]:
        self._require_started()
        result = await self._api_call(
            "GET",
            f"v1/wallets/{wallet_id}/balances",
            params={"chain_id": chain_id, "txid_version": txid_version.value},
        )
        balances = []
        for entry in result.get("balances", []):
            try:
                token_type = TokenType(entry.get("token_type", TokenType.ERC20.value))
            except ValueError:
                logger.debug(f"Unknown token type in balance entry: {entry}")
                continue
            balances.append(
                RawTokenBalance(
                    token_address=str(entry["token_address"]),
                    # Sent as decimal strings, values exceed JSON-safe integers
                    balance=int(entry["balance"]),
                    token_type=token_type,
                    token_hash=entry.get("token_hash"),
                )
            )
        return balances

    async def get_transaction_history(
        self, chain_id: int, wallet_id: str, starting_block: int | None = None
    ) -> list[dict[str, Any]]:
        self._require_started()
        params: dict[str, Any] = {"chain_id": chain_id}
        if starting_block is not None:
            params["starting_block"] = starting_block
        result = await self._api_call("GET", f"v1/wallets/{wallet_id}/history", params=params)
        return list(result.get("transactions", []))

    async def rescan_full_utxo_merkletrees(self, chain_id: int, wallet_ids: list[str]) -> None:
        self._require_started()
        await self._api_call(
            "POST", f"v1/chains/{chain_id}/rescan", data={"wallet_ids": wallet_ids}
        )

    async def reset_txid_merkletrees(self, chain_id: int) -> None:
        self._require_started()
        await self._api_call("POST", f"v1/chains/{chain_id}/reset-txid")

    async def validate_address(self, address: str) -> bool:
        self._require_started()
        try:
            result = await self._api_call("GET", f"v1/addresses/{address}/validate")
        except EngineError:
            return False
        return bool(result.get("valid", False))

    # Provider capability set

    async def load_provider(
        self,
        config: FallbackProviderConfig,
        network_name: str,
        polling_interval: int,
    ) -> FeeData:
        self._require_started()
        result = await self._api_call(
            "POST",
            "v1/providers",
            data={
                "network_name": network_name,
                "polling_interval": polling_interval,
                "config": config.model_dump(),
            },
        )
        return FeeData.model_validate(result.get("fees", {}))

    async def unload_provider(self, network_name: str) -> None:
        self._require_started()
        await self._api_call("DELETE", f"v1/providers/{network_name}")

    async def pause_all_polling(self, except_network: str | None = None) -> None:
        self._require_started()
        await self._api_call(
            "POST", "v1/providers/pause", data={"except_network": except_network}
        )

    async def resume_polling(self, network_name: str) -> None:
        self._require_started()
        await self._api_call("POST", f"v1/providers/{network_name}/resume")


def _engine_wallet(result: dict[str, Any]) -> EngineWallet:
    try:
        return EngineWallet(id=str(result["id"]), railgun_address=str(result["railgun_address"]))
    except KeyError as e:
        raise EngineError(f"Engine returned incomplete wallet data: missing {e}") from e


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:200]}"
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return f"HTTP {response.status_code}"

"""
Wallet session: catalog of wallet records, loaded wallets and their keys.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from loguru import logger
from mnemonic import Mnemonic

from polaris.config import get_supported_networks
from polaris.crypto import derive_encryption_key
from polaris.engine.base import WalletEngine
from polaris.errors import EngineError, NotFoundError, StateError, ValidationError
from polaris.models import WalletInfo, utc_now_iso
from polaris.storage import WalletStorage

# Used only to derive throwaway wallets while probing derivation indices
EPHEMERAL_PASSWORD = "temporary_password_for_address_check"


@dataclass
class AddressProbe:
    index: int
    address: str | None = None
    error: str | None = None


class WalletManager:
    """
    Owns the wallet catalog and the in-memory encryption sessions.

    A wallet is "loaded" exactly when an encryption key is held for it.
    Keys are derived from the user's password and the persisted salt and
    never written to disk.
    """

    def __init__(
        self,
        engine: WalletEngine,
        storage: WalletStorage,
        networks: list[str] | None = None,
    ):
        self.engine = engine
        self.storage = storage
        self.networks = networks if networks is not None else get_supported_networks()
        self._mnemonic = Mnemonic("english")
        self._loaded_wallets: dict[str, str] = {}

    def generate_mnemonic(self, strength: int = 128) -> str:
        """Generate a BIP39 mnemonic (128 bits = 12 words, 256 bits = 24 words)."""
        if strength not in (128, 256):
            raise ValidationError("strength must be 128 or 256")
        return self._mnemonic.generate(strength=strength)

    def validate_mnemonic(self, mnemonic: str) -> bool:
        try:
            return self._mnemonic.check(mnemonic.strip())
        except (ValueError, LookupError):
            return False

    def _creation_block_numbers(self) -> dict[str, int]:
        # 0 means scan from the beginning of each chain
        return {network: 0 for network in self.networks}

    def _check_not_imported(self, wallet_id: str) -> None:
        # Engine ids are derived from the key material, so a repeat import
        # returns the id of a wallet we already hold. Its salt must survive.
        if self.storage.get_wallet_by_id(wallet_id) is not None:
            raise ValidationError("Wallet already imported")

    async def _register(self, info: WalletInfo, salt: str, encryption_key: str) -> None:
        """Persist a wallet the engine just built, discarding it if persisting fails."""
        try:
            self.storage.save_encryption_salt(info.id, salt)
            self.storage.add_wallet(info)
        except OSError:
            logger.error(f"Could not persist wallet {info.id}, removing it from the engine")
            self.storage.remove_encryption_salt(info.id)
            await self.engine.delete_wallet(info.id)
            raise
        self._loaded_wallets[info.id] = encryption_key

    async def create_wallet(
        self,
        mnemonic: str,
        password: str,
        derivation_index: int = 0,
    ) -> WalletInfo:
        """
        Create a wallet from a mnemonic.

        The new wallet is loaded, and becomes active when no wallet is active.

        Raises:
            ValidationError: If the mnemonic fails checksum validation or the
                wallet is already in the catalog
            EngineError: If the engine cannot build the wallet
        """
        mnemonic = mnemonic.strip()
        if not self.validate_mnemonic(mnemonic):
            raise ValidationError("Invalid mnemonic phrase")
        if derivation_index < 0:
            raise ValidationError("Derivation index must be non-negative")

        logger.info("Creating new wallet...")
        derived = derive_encryption_key(password)

        engine_wallet = await self.engine.create_wallet(
            derived.key,
            mnemonic,
            self._creation_block_numbers(),
            derivation_index,
        )
        self._check_not_imported(engine_wallet.id)

        info = WalletInfo(
            id=engine_wallet.id,
            railgun_address=engine_wallet.railgun_address,
            created_at=utc_now_iso(),
            networks=list(self.networks),
        )
        await self._register(info, derived.salt, derived.key)

        logger.info(f"Wallet created: {info.id}")
        return info

    async def create_view_only_wallet(
        self, shareable_viewing_key: str, password: str
    ) -> WalletInfo:
        """Create a wallet that can see balances but not spend."""
        logger.info("Creating view-only wallet...")
        derived = derive_encryption_key(password)

        engine_wallet = await self.engine.create_view_only_wallet(
            derived.key,
            shareable_viewing_key.strip(),
            self._creation_block_numbers(),
        )
        self._check_not_imported(engine_wallet.id)

        info = WalletInfo(
            id=engine_wallet.id,
            railgun_address=engine_wallet.railgun_address,
            created_at=utc_now_iso(),
            networks=list(self.networks),
            view_only=True,
        )
        await self._register(info, derived.salt, derived.key)

        logger.info(f"View-only wallet created: {info.id}")
        return info

    def _derive_for_existing(self, wallet_id: str, password: str) -> str:
        salt = self.storage.get_encryption_salt(wallet_id)
        if not salt:
            raise NotFoundError(f"Encryption salt not found for wallet: {wallet_id}")
        return derive_encryption_key(password, salt).key

    async def load_wallet(self, wallet_id: str, password: str) -> WalletInfo:
        """
        Load a wallet into the engine.

        The password is not checked here: a wrong password makes the engine's
        load call fail.

        Raises:
            NotFoundError: If the wallet record or its salt is missing
            EngineError: If the engine rejects the key
        """
        info = self.storage.get_wallet_by_id(wallet_id)
        if info is None:
            raise NotFoundError(f"Wallet not found: {wallet_id}")

        logger.info(f"Loading wallet: {wallet_id}")
        encryption_key = self._derive_for_existing(wallet_id, password)

        await self.engine.load_wallet(encryption_key, wallet_id, info.view_only)
        self._loaded_wallets[wallet_id] = encryption_key

        logger.info(f"Wallet loaded: {wallet_id}")
        return info

    async def unload_wallet(self, wallet_id: str) -> None:
        if wallet_id not in self._loaded_wallets:
            return

        await self.engine.unload_wallet(wallet_id)
        del self._loaded_wallets[wallet_id]

        logger.info(f"Wallet unloaded: {wallet_id}")

    async def unload_all(self) -> None:
        for wallet_id in list(self._loaded_wallets):
            try:
                await self.unload_wallet(wallet_id)
            except EngineError as e:
                logger.warning(f"Failed to unload wallet {wallet_id}: {e}")
                self._loaded_wallets.pop(wallet_id, None)

    async def delete_wallet(self, wallet_id: str, password: str) -> None:
        """
        Delete a wallet permanently.

        The wallet is loaded first as proof of the password. If it was the
        active wallet, the first remaining wallet becomes active.
        """
        info = self.storage.get_wallet_by_id(wallet_id)
        encryption_key = self._derive_for_existing(wallet_id, password)

        await self.engine.load_wallet(
            encryption_key, wallet_id, info.view_only if info is not None else False
        )
        await self.engine.delete_wallet(wallet_id)

        self.storage.remove_wallet(wallet_id)
        self.storage.remove_encryption_salt(wallet_id)
        self._loaded_wallets.pop(wallet_id, None)

        logger.info(f"Wallet deleted: {wallet_id}")

    async def export_mnemonic(self, wallet_id: str, password: str) -> str:
        encryption_key = self._derive_for_existing(wallet_id, password)

        if wallet_id not in self._loaded_wallets:
            info = self.storage.get_wallet_by_id(wallet_id)
            await self.engine.load_wallet(
                encryption_key, wallet_id, info.view_only if info is not None else False
            )
            self._loaded_wallets[wallet_id] = encryption_key

        return await self.engine.get_mnemonic(encryption_key, wallet_id)

    async def get_viewing_key(self, wallet_id: str) -> str:
        if wallet_id not in self._loaded_wallets:
            raise StateError("Wallet not loaded")
        return await self.engine.get_viewing_key(wallet_id)

    @asynccontextmanager
    async def ephemeral_wallet(
        self, mnemonic: str, derivation_index: int
    ) -> AsyncIterator[WalletInfo]:
        """
        Create a throwaway wallet and delete it on exit.

        Cleanup runs even when the body raises. If the engine built the
        wallet but it never reached the catalog, it is still deleted from
        the engine. When the mnemonic and index belong to a wallet already
        in the catalog, that wallet is yielded and left untouched.
        """
        derived = derive_encryption_key(EPHEMERAL_PASSWORD)
        engine_wallet = await self.engine.create_wallet(
            derived.key,
            mnemonic.strip(),
            self._creation_block_numbers(),
            derivation_index,
        )

        existing = self.storage.get_wallet_by_id(engine_wallet.id)
        if existing is not None:
            logger.debug(f"Derivation index {derivation_index} is wallet {existing.id}")
            yield existing
            return

        info = WalletInfo(
            id=engine_wallet.id,
            railgun_address=engine_wallet.railgun_address,
            created_at=utc_now_iso(),
            networks=list(self.networks),
        )
        await self._register(info, derived.salt, derived.key)
        try:
            yield info
        finally:
            try:
                await self.delete_wallet(info.id, EPHEMERAL_PASSWORD)
            except Exception as e:
                # Never leave an orphaned record behind, even if the engine refused
                logger.warning(f"Engine cleanup of ephemeral wallet {info.id} failed: {e}")
                self.storage.remove_wallet(info.id)
                self.storage.remove_encryption_salt(info.id)
                self._loaded_wallets.pop(info.id, None)

    async def find_addresses(self, mnemonic: str, count: int = 5) -> list[AddressProbe]:
        """
        Derive the address at derivation indices 0..count-1 for a mnemonic.

        Each index gets its own ephemeral wallet, deleted before the next
        index is tried.
        """
        if not self.validate_mnemonic(mnemonic):
            raise ValidationError("Invalid mnemonic phrase")
        if count < 1:
            raise ValidationError("Number of indices must be at least 1")

        previous_active = self.storage.read().active_wallet_id
        results: list[AddressProbe] = []

        for index in range(count):
            try:
                async with self.ephemeral_wallet(mnemonic, index) as wallet:
                    results.append(AddressProbe(index=index, address=wallet.railgun_address))
            except EngineError as e:
                logger.debug(f"Derivation index {index} failed: {e}")
                results.append(AddressProbe(index=index, error=str(e)))

        # Probing must not change which wallet is active
        if previous_active is not None and self.storage.get_wallet_by_id(previous_active):
            self.storage.set_active_wallet(previous_active)

        return results

    def get_all_wallets(self) -> list[WalletInfo]:
        return self.storage.get_all_wallets()

    def get_wallet(self, wallet_id: str) -> WalletInfo | None:
        return self.storage.get_wallet_by_id(wallet_id)

    def get_active_wallet(self) -> WalletInfo | None:
        return self.storage.get_active_wallet()

    def get_active_wallet_cached(self) -> WalletInfo | None:
        return self.storage.get_active_wallet_cached()

    def set_active_wallet(self, wallet_id: str) -> None:
        self.storage.set_active_wallet(wallet_id)
        logger.info(f"Active wallet set to {wallet_id}")

    def is_wallet_loaded(self, wallet_id: str) -> bool:
        return wallet_id in self._loaded_wallets

    def get_loaded_wallet_ids(self) -> list[str]:
        return list(self._loaded_wallets)

    def get_wallet_encryption_key(self, wallet_id: str) -> str | None:
        return self._loaded_wallets.get(wallet_id)

    async def validate_address(self, address: str) -> bool:
        try:
            return await self.engine.validate_address(address)
        except EngineError:
            return False

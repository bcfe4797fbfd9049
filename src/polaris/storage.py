"""
Persisted wallet catalog and per-wallet encryption salts.

The catalog is a single JSON file held in memory and written through on
every mutation. The REPL is single-threaded, so no locking is done here.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from polaris.errors import CatalogIOError, NotFoundError
from polaris.models import StoredWalletData, WalletInfo

WALLET_DATA_FILE = "wallets.json"
SALT_SUFFIX = ".salt"
SECURE_FILE_MODE = 0o600


class WalletStorage:
    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self._cached: StoredWalletData | None = None

    @property
    def catalog_path(self) -> Path:
        return self.data_dir / WALLET_DATA_FILE

    def salt_path(self, wallet_id: str) -> Path:
        return self.data_dir / f"{wallet_id}{SALT_SUFFIX}"

    def ensure_data_dir(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _read_catalog_file(self) -> StoredWalletData:
        try:
            raw = self.catalog_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return StoredWalletData()
        except OSError as e:
            raise CatalogIOError(f"Cannot read {self.catalog_path}: {e}") from e

        try:
            return StoredWalletData.model_validate(json.loads(raw))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            raise CatalogIOError(f"Malformed wallet catalog {self.catalog_path}: {e}") from e

    def read(self) -> StoredWalletData:
        """
        Read the catalog from disk.

        A missing or unreadable catalog is treated as empty. Corruption is
        logged but not raised, so a damaged file looks like a fresh install.
        """
        try:
            data = self._read_catalog_file()
        except CatalogIOError as e:
            logger.warning(f"{e} - treating wallet catalog as empty")
            data = StoredWalletData()
        self._cached = data
        return data

    def read_cached(self) -> StoredWalletData:
        if self._cached is None:
            return self.read()
        return self._cached

    def write(self, data: StoredWalletData) -> None:
        self.ensure_data_dir()
        payload = data.model_dump(by_alias=True, mode="json")
        tmp_path = self.catalog_path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp_path, self.catalog_path)
        self._cached = data

    def add_wallet(self, wallet: WalletInfo) -> None:
        data = self.read()
        if data.get(wallet.id) is not None:
            return
        data.wallets.append(wallet)
        if not data.active_wallet_id:
            data.active_wallet_id = wallet.id
        self.write(data)

    def remove_wallet(self, wallet_id: str) -> None:
        data = self.read()
        data.wallets = [w for w in data.wallets if w.id != wallet_id]
        if data.active_wallet_id == wallet_id:
            data.active_wallet_id = data.wallets[0].id if data.wallets else None
        self.write(data)

    def get_all_wallets(self) -> list[WalletInfo]:
        return list(self.read().wallets)

    def get_wallet_by_id(self, wallet_id: str) -> WalletInfo | None:
        return self.read().get(wallet_id)

    def get_active_wallet(self) -> WalletInfo | None:
        data = self.read()
        if not data.active_wallet_id:
            return None
        return data.get(data.active_wallet_id)

    def get_active_wallet_cached(self) -> WalletInfo | None:
        """Active wallet from the in-memory copy, without touching disk."""
        data = self.read_cached()
        if not data.active_wallet_id:
            return None
        return data.get(data.active_wallet_id)

    def set_active_wallet(self, wallet_id: str) -> None:
        data = self.read()
        if data.get(wallet_id) is None:
            raise NotFoundError(f"Wallet not found: {wallet_id}")
        data.active_wallet_id = wallet_id
        self.write(data)

    def save_encryption_salt(self, wallet_id: str, salt: str) -> None:
        self.ensure_data_dir()
        path = self.salt_path(wallet_id)
        path.write_text(salt, encoding="utf-8")
        os.chmod(path, SECURE_FILE_MODE)

    def get_encryption_salt(self, wallet_id: str) -> str | None:
        try:
            return self.salt_path(wallet_id).read_text(encoding="utf-8").strip() or None
        except OSError:
            return None

    def remove_encryption_salt(self, wallet_id: str) -> None:
        self.salt_path(wallet_id).unlink(missing_ok=True)

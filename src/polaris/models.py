"""
Session data models using Pydantic for validation and serialization.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class NetworkName(str, Enum):
    ETHEREUM = "Ethereum"
    POLYGON = "Polygon"
    BNB_CHAIN = "BNB_Chain"
    ARBITRUM = "Arbitrum"
    ETHEREUM_SEPOLIA = "Ethereum_Sepolia"


class TxidVersion(str, Enum):
    V2_POSEIDON_MERKLE = "V2_PoseidonMerkle"
    V3_POSEIDON_MERKLE = "V3_PoseidonMerkle"


class TokenType(str, Enum):
    ERC20 = "ERC20"
    ERC721 = "ERC721"
    ERC1155 = "ERC1155"


class ScanStatus(str, Enum):
    STARTED = "Started"
    UPDATED = "Updated"
    COMPLETE = "Complete"
    INCOMPLETE = "Incomplete"


class ScanTrack(str, Enum):
    UTXO = "utxo"
    TXID = "txid"


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class WalletInfo(BaseModel):
    """Persisted wallet record. Immutable once created."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    railgun_address: str = Field(..., alias="railgunAddress", min_length=1)
    created_at: str = Field(default_factory=utc_now_iso, alias="createdAt")
    networks: list[str] = Field(default_factory=list)
    view_only: bool = Field(default=False, alias="viewOnly")


class StoredWalletData(BaseModel):
    """On-disk wallet catalog."""

    model_config = ConfigDict(populate_by_name=True)

    wallets: list[WalletInfo] = Field(default_factory=list)
    active_wallet_id: str | None = Field(default=None, alias="activeWalletId")

    def get(self, wallet_id: str) -> WalletInfo | None:
        for wallet in self.wallets:
            if wallet.id == wallet_id:
                return wallet
        return None


class NetworkConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    chain_id: int = Field(..., gt=0)
    rpc_urls: list[str] = Field(..., min_length=1)
    explorer_url: str | None = None


class ProviderEntry(BaseModel):
    provider: str
    priority: int = Field(..., ge=1)
    weight: int = Field(default=1, ge=1)


class FallbackProviderConfig(BaseModel):
    chain_id: int
    providers: list[ProviderEntry]


class FeeData(BaseModel):
    """Shield/unshield fees in basis points, as reported when a provider loads."""

    shield_fee_v2: str = "0"
    unshield_fee_v2: str = "0"
    shield_fee_v3: str | None = None
    unshield_fee_v3: str | None = None


class TokenInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    decimals: int = Field(..., ge=0)


class TokenBalance(BaseModel):
    token_address: str
    symbol: str | None = None
    balance: int = Field(..., ge=0)
    decimals: int = Field(default=18, ge=0)


class WalletBalances(BaseModel):
    network_name: str
    tokens: list[TokenBalance] = Field(default_factory=list)
    # False until the UTXO merkletree scan for the chain has completed
    fresh: bool = False


class TrackState(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: ScanStatus
    progress: float = Field(default=0.0, ge=0.0, le=1.0)


class ScanState(BaseModel):
    """Scan progress for one chain. Replaced as a whole on every update."""

    model_config = ConfigDict(frozen=True)

    chain_id: int
    utxo: TrackState | None = None
    txid: TrackState | None = None

    def track(self, track: ScanTrack) -> TrackState | None:
        return self.utxo if track == ScanTrack.UTXO else self.txid


class ScanProgressEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    chain_id: int
    track: ScanTrack
    status: ScanStatus
    progress: float = Field(default=0.0, ge=0.0, le=1.0)

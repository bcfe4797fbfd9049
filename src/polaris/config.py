"""
Configuration management using pydantic-settings, plus the static network
and token registries.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from polaris.models import (
    FallbackProviderConfig,
    NetworkConfig,
    NetworkName,
    ProviderEntry,
    TokenInfo,
)

DEFAULT_DATA_DIR = Path.home() / ".polaris"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="POLARIS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    data_dir: Path = DEFAULT_DATA_DIR
    debug: bool = False
    log_level: str = "INFO"

    engine_url: str = "http://127.0.0.1:8340"
    polling_interval_ms: int = Field(default=15_000, ge=1_000)
    sync_poll_interval: float = Field(default=2.0, gt=0.0)

    default_network: NetworkName = NetworkName.ETHEREUM
    auto_connect: bool = True

    @property
    def db_path(self) -> Path:
        return self.data_dir / "wallet.db"

    @property
    def artifacts_dir(self) -> Path:
        return self.data_dir / "artifacts"

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level.upper()


def get_settings(**overrides: object) -> Settings:
    return Settings(**overrides)  # type: ignore[arg-type]


NETWORK_CONFIGS: dict[str, NetworkConfig] = {
    NetworkName.ETHEREUM.value: NetworkConfig(
        name=NetworkName.ETHEREUM.value,
        chain_id=1,
        rpc_urls=[
            "https://eth.llamarpc.com",
            "https://rpc.ankr.com/eth",
            "https://ethereum.publicnode.com",
        ],
        explorer_url="https://etherscan.io",
    ),
    NetworkName.POLYGON.value: NetworkConfig(
        name=NetworkName.POLYGON.value,
        chain_id=137,
        rpc_urls=[
            "https://polygon.llamarpc.com",
            "https://rpc.ankr.com/polygon",
            "https://polygon-bor.publicnode.com",
        ],
        explorer_url="https://polygonscan.com",
    ),
    NetworkName.BNB_CHAIN.value: NetworkConfig(
        name=NetworkName.BNB_CHAIN.value,
        chain_id=56,
        rpc_urls=[
            "https://bsc.llamarpc.com",
            "https://rpc.ankr.com/bsc",
            "https://bsc.publicnode.com",
        ],
        explorer_url="https://bscscan.com",
    ),
    NetworkName.ARBITRUM.value: NetworkConfig(
        name=NetworkName.ARBITRUM.value,
        chain_id=42161,
        rpc_urls=[
            "https://arbitrum.llamarpc.com",
            "https://rpc.ankr.com/arbitrum",
            "https://arbitrum-one.publicnode.com",
        ],
        explorer_url="https://arbiscan.io",
    ),
    NetworkName.ETHEREUM_SEPOLIA.value: NetworkConfig(
        name=NetworkName.ETHEREUM_SEPOLIA.value,
        chain_id=11155111,
        rpc_urls=[
            "https://rpc.ankr.com/eth_sepolia",
            "https://ethereum-sepolia.publicnode.com",
        ],
        explorer_url="https://sepolia.etherscan.io",
    ),
}

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Keyed by lower-cased token address
TOKEN_REGISTRY: dict[str, dict[str, TokenInfo]] = {
    NetworkName.ETHEREUM.value: {
        ZERO_ADDRESS: TokenInfo(symbol="ETH", decimals=18),
        "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2": TokenInfo(symbol="WETH", decimals=18),
        "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48": TokenInfo(symbol="USDC", decimals=6),
        "0xdac17f958d2ee523a2206206994597c13d831ec7": TokenInfo(symbol="USDT", decimals=6),
        "0x6b175474e89094c44da98b954eedeac495271d0f": TokenInfo(symbol="DAI", decimals=18),
        "0xe76c6c83af64e4c60245d8c7de953df673a7a33d": TokenInfo(symbol="RAIL", decimals=18),
    },
    NetworkName.POLYGON.value: {
        ZERO_ADDRESS: TokenInfo(symbol="MATIC", decimals=18),
        "0x0d500b1d8e8ef31e21c99d1db9a6444d3adf1270": TokenInfo(symbol="WMATIC", decimals=18),
        "0x2791bca1f2de4661ed88a30c99a7a9449aa84174": TokenInfo(symbol="USDC", decimals=6),
        "0xc2132d05d31c914a87c6611c10748aeb04b58e8f": TokenInfo(symbol="USDT", decimals=6),
        "0x8f3cf7ad23cd3cadbd9735aff958023239c6a063": TokenInfo(symbol="DAI", decimals=18),
        "0x92a9c92c215092720c731c96d4ff508c831a714f": TokenInfo(symbol="RAIL", decimals=18),
    },
    NetworkName.BNB_CHAIN.value: {
        ZERO_ADDRESS: TokenInfo(symbol="BNB", decimals=18),
        "0xbb4cdb9cbd36b01bd1cbaebf2de08d9173bc095c": TokenInfo(symbol="WBNB", decimals=18),
        "0x8ac76a51cc950d9822d68b83fe1ad97b32cd580d": TokenInfo(symbol="USDC", decimals=18),
        "0x55d398326f99059ff775485246999027b3197955": TokenInfo(symbol="USDT", decimals=18),
        "0x1af3f329e8be154074d8769d1ffa4ee058b1dbc3": TokenInfo(symbol="DAI", decimals=18),
    },
    NetworkName.ARBITRUM.value: {
        ZERO_ADDRESS: TokenInfo(symbol="ETH", decimals=18),
        "0x82af49447d8a07e3bd95bd0d56f35241523fbab1": TokenInfo(symbol="WETH", decimals=18),
        "0xaf88d065e77c8cc2239327c5edb3a432268e5831": TokenInfo(symbol="USDC", decimals=6),
        "0xfd086bc7cd5c481dcc9c85ebe478a1c0b69fcbb9": TokenInfo(symbol="USDT", decimals=6),
        "0xda10009cbd5d07dd0cecc66161fc93d7c9000da1": TokenInfo(symbol="DAI", decimals=18),
    },
    NetworkName.ETHEREUM_SEPOLIA.value: {
        ZERO_ADDRESS: TokenInfo(symbol="ETH", decimals=18),
    },
}


def get_supported_networks(
    networks: dict[str, NetworkConfig] | None = None,
) -> list[str]:
    """Get the names of all networks with a provider configuration."""
    return list((networks if networks is not None else NETWORK_CONFIGS).keys())


def get_fallback_provider_config(
    network_name: str,
    networks: dict[str, NetworkConfig] | None = None,
) -> FallbackProviderConfig | None:
    """
    Build the fallback provider config for a network.

    RPC endpoints are tried in list order: priority is the 1-based position,
    every endpoint gets weight 1.
    """
    config = (networks if networks is not None else NETWORK_CONFIGS).get(network_name)
    if config is None:
        return None

    return FallbackProviderConfig(
        chain_id=config.chain_id,
        providers=[
            ProviderEntry(provider=url, priority=index + 1, weight=1)
            for index, url in enumerate(config.rpc_urls)
        ],
    )


def get_token_info(
    network_name: str,
    token_address: str,
    registry: dict[str, dict[str, TokenInfo]] | None = None,
) -> TokenInfo | None:
    tokens = (registry if registry is not None else TOKEN_REGISTRY).get(network_name)
    if not tokens:
        return None
    return tokens.get(token_address.lower())

"""
Shield, transfer and unshield transactions.

Transaction construction needs the engine's proving API, which is not wired
up yet. Every operation here logs and raises EngineNotImplementedError, so
command handlers render it like any other engine failure.
"""

from __future__ import annotations

from loguru import logger
from pydantic import BaseModel

from polaris.errors import EngineNotImplementedError
from polaris.models import TxidVersion

EVM_GAS_TYPE_2 = 2


class GasDetails(BaseModel):
    evm_gas_type: int = EVM_GAS_TYPE_2
    gas_estimate: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int


def _not_implemented(what: str) -> EngineNotImplementedError:
    logger.warning(f"{what} not yet implemented")
    return EngineNotImplementedError(f"{what} not yet implemented")


class TransactionService:
    def get_gas_details(
        self, gas_estimate: int, max_fee_per_gas: int, max_priority_fee_per_gas: int
    ) -> GasDetails:
        return GasDetails(
            gas_estimate=gas_estimate,
            max_fee_per_gas=max_fee_per_gas,
            max_priority_fee_per_gas=max_priority_fee_per_gas,
        )

    async def shield_tokens(
        self,
        network_name: str,
        txid_version: TxidVersion,
        railgun_address: str,
        token_address: str,
        amount: int,
        from_wallet_address: str,
    ) -> None:
        """Shield ERC20 tokens (public -> private)."""
        raise _not_implemented("Shield transaction")

    async def generate_transfer_proof(
        self,
        network_name: str,
        txid_version: TxidVersion,
        wallet_id: str,
        encryption_key: str,
        to_railgun_address: str,
        token_address: str,
        amount: int,
        send_with_public_wallet: bool = False,
        overall_batch_min_gas_price: int | None = None,
    ) -> None:
        raise _not_implemented("Transfer proof generation")

    async def populate_transfer(
        self,
        network_name: str,
        txid_version: TxidVersion,
        wallet_id: str,
        to_railgun_address: str,
        token_address: str,
        amount: int,
        gas_details: GasDetails,
    ) -> None:
        raise _not_implemented("Transfer transaction")

    async def generate_unshield_proof(
        self,
        network_name: str,
        txid_version: TxidVersion,
        wallet_id: str,
        encryption_key: str,
        to_public_address: str,
        token_address: str,
        amount: int,
    ) -> None:
        """Unshield tokens (private -> public)."""
        raise _not_implemented("Unshield proof generation")

    async def populate_unshield(
        self,
        network_name: str,
        txid_version: TxidVersion,
        wallet_id: str,
        to_public_address: str,
        token_address: str,
        amount: int,
        gas_details: GasDetails,
    ) -> None:
        raise _not_implemented("Unshield transaction")

    async def estimate_transfer_gas(
        self,
        network_name: str,
        txid_version: TxidVersion,
        wallet_id: str,
        encryption_key: str,
        to_railgun_address: str,
        token_address: str,
        amount: int,
    ) -> int:
        raise _not_implemented("Transfer gas estimation")

    async def estimate_unshield_gas(
        self,
        network_name: str,
        txid_version: TxidVersion,
        wallet_id: str,
        encryption_key: str,
        to_public_address: str,
        token_address: str,
        amount: int,
    ) -> int:
        raise _not_implemented("Unshield gas estimation")

"""Read-side view of vault and factory state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from ..errors import AccountNotFoundError
from . import pda
from .layout import (
    FactoryAccount,
    VaultAccount,
    decode_factory,
    decode_mint_decimals,
    decode_token_account,
    decode_vault,
)
from .rpc import LedgerRpcClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VaultAddresses:
    """Program-derived accounts of one vault."""

    factory: Pubkey
    vault: Pubkey
    vault_mint: Pubkey
    vault_stablecoin: Pubkey

    @classmethod
    def derive(cls, program_id: Pubkey, vault_index: int) -> "VaultAddresses":
        factory = pda.factory_address(program_id)
        vault = pda.vault_address(program_id, factory, vault_index)
        return cls(
            factory=factory,
            vault=vault,
            vault_mint=pda.vault_mint_address(program_id, vault),
            vault_stablecoin=pda.vault_stablecoin_address(program_id, vault),
        )


@dataclass(frozen=True)
class AssetHolding:
    """Vault custody of one underlying asset."""

    mint: Pubkey
    allocation_bps: int
    account: Pubkey
    balance: int
    account_exists: bool


@dataclass(frozen=True)
class VaultSnapshot:
    vault_index: int
    addresses: VaultAddresses
    factory: FactoryAccount
    vault: VaultAccount
    share_decimals: int
    stablecoin_balance: int
    holdings: list[AssetHolding] = field(default_factory=list)

    def holding(self, mint: Pubkey) -> AssetHolding | None:
        for h in self.holdings:
            if h.mint == mint:
                return h
        return None


class VaultAccountReader:
    """Reads and decodes vault program accounts and token balances."""

    def __init__(self, rpc: LedgerRpcClient, program_id: Pubkey):
        self.rpc = rpc
        self.program_id = program_id

    def addresses(self, vault_index: int) -> VaultAddresses:
        return VaultAddresses.derive(self.program_id, vault_index)

    async def read_factory(self) -> FactoryAccount:
        factory = pda.factory_address(self.program_id)
        data = await self.rpc.get_account_info(factory)
        if data is None:
            raise AccountNotFoundError("Factory", str(factory))
        return decode_factory(data)

    async def read_vault(self, vault_index: int) -> VaultAccount:
        vault = self.addresses(vault_index).vault
        data = await self.rpc.get_account_info(vault)
        if data is None:
            raise AccountNotFoundError("Vault", str(vault))
        return decode_vault(data)

    async def read_token_balance(self, account: Pubkey) -> int:
        """Raw token balance; a missing account reads as zero."""
        data = await self.rpc.get_account_info(account)
        if data is None:
            return 0
        return decode_token_account(account, data).amount

    async def read_mint_decimals(self, mint: Pubkey) -> int:
        data = await self.rpc.get_account_info(mint)
        if data is None:
            raise AccountNotFoundError("Mint", str(mint))
        return decode_mint_decimals(data)

    async def account_exists(self, address: Pubkey) -> bool:
        return await self.rpc.get_account_info(address) is not None

    async def snapshot(self, vault_index: int) -> VaultSnapshot:
        """Read factory, vault, share mint and every custody balance.

        Uses two batched reads: the program accounts, then the vault's
        associated token account for each underlying asset.
        """
        addrs = self.addresses(vault_index)
        factory_data, vault_data, mint_data, stable_data = (
            await self.rpc.get_multiple_accounts(
                [addrs.factory, addrs.vault, addrs.vault_mint, addrs.vault_stablecoin]
            )
        )
        if factory_data is None:
            raise AccountNotFoundError("Factory", str(addrs.factory))
        if vault_data is None:
            raise AccountNotFoundError("Vault", str(addrs.vault))
        if mint_data is None:
            raise AccountNotFoundError("Vault mint", str(addrs.vault_mint))

        vault = decode_vault(vault_data)
        stablecoin_balance = (
            decode_token_account(addrs.vault_stablecoin, stable_data).amount
            if stable_data is not None
            else 0
        )

        asset_accounts = [
            get_associated_token_address(addrs.vault, asset.mint)
            for asset in vault.underlying_assets
        ]
        asset_datas = (
            await self.rpc.get_multiple_accounts(asset_accounts)
            if asset_accounts
            else []
        )

        holdings = []
        for asset, account, data in zip(
            vault.underlying_assets, asset_accounts, asset_datas
        ):
            balance = decode_token_account(account, data).amount if data else 0
            holdings.append(
                AssetHolding(
                    mint=asset.mint,
                    allocation_bps=asset.allocation_bps,
                    account=account,
                    balance=balance,
                    account_exists=data is not None,
                )
            )

        logger.debug(
            "Vault %d snapshot: %d assets, stablecoin balance %d",
            vault_index,
            len(holdings),
            stablecoin_balance,
        )
        return VaultSnapshot(
            vault_index=vault_index,
            addresses=addrs,
            factory=decode_factory(factory_data),
            vault=vault,
            share_decimals=decode_mint_decimals(mint_data),
            stablecoin_balance=stablecoin_balance,
            holdings=holdings,
        )

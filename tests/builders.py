"""Builders for vault state and raw account bytes used across tests."""

from __future__ import annotations

import struct
from decimal import Decimal
from unittest.mock import AsyncMock

from solders.instruction import Instruction
from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address

from vault_keeper.adapters.price_adapters.base import AssetPrice, PriceData
from vault_keeper.adapters.swap_adapters.base import SwapInstructions, SwapRoute
from vault_keeper.constants import DEFAULT_PROGRAM_ID, MSOL_MINT, USDC_MINT, WSOL_MINT
from vault_keeper.ledger import instructions as ix
from vault_keeper.ledger.layout import (
    FactoryAccount,
    FactoryState,
    UnderlyingAsset,
    VaultAccount,
    VaultState,
    account_discriminator,
)
from vault_keeper.ledger.reader import AssetHolding, VaultAddresses, VaultSnapshot

USDC = Pubkey.from_string(USDC_MINT)
WSOL = Pubkey.from_string(WSOL_MINT)
MSOL = Pubkey.from_string(MSOL_MINT)
PROGRAM_ID = Pubkey.from_string(DEFAULT_PROGRAM_ID)


def make_factory(**overrides) -> FactoryAccount:
    fields = dict(
        bump=255,
        admin=Pubkey.new_unique(),
        fee_recipient=Pubkey.new_unique(),
        vault_count=1,
        state=FactoryState.ACTIVE,
        entry_fee_bps=25,
        exit_fee_bps=25,
        vault_creation_fee_usdc=0,
        min_management_fee_bps=0,
        max_management_fee_bps=2_000,
        vault_creator_fee_ratio_bps=7_000,
        platform_fee_ratio_bps=3_000,
    )
    fields.update(overrides)
    return FactoryAccount(**fields)


def make_vault(**overrides) -> VaultAccount:
    fields = dict(
        bump=254,
        vault_index=0,
        factory=Pubkey.new_unique(),
        admin=Pubkey.new_unique(),
        name="Blue Chip",
        symbol="BLUE",
        underlying_assets=[
            UnderlyingAsset(mint=WSOL, allocation_bps=6_000),
            UnderlyingAsset(mint=MSOL, allocation_bps=4_000),
        ],
        management_fee_bps=200,
        state=VaultState.ACTIVE,
        total_assets=1_000_000,
        total_supply=2_000_000,
        created_at=1_700_000_000,
        last_fee_accrual_ts=1_700_000_000,
        accrued_management_fees_usdc=0,
    )
    fields.update(overrides)
    return VaultAccount(**fields)


def make_snapshot(
    vault: VaultAccount | None = None,
    factory: FactoryAccount | None = None,
    balances: dict[Pubkey, int] | None = None,
    stablecoin_balance: int = 0,
    program_id: Pubkey | None = None,
) -> VaultSnapshot:
    vault = vault or make_vault()
    factory = factory or make_factory()
    program_id = program_id or PROGRAM_ID
    addrs = VaultAddresses.derive(program_id, vault.vault_index)
    balances = balances or {}
    holdings = [
        AssetHolding(
            mint=asset.mint,
            allocation_bps=asset.allocation_bps,
            account=get_associated_token_address(addrs.vault, asset.mint),
            balance=balances.get(asset.mint, 0),
            account_exists=asset.mint in balances,
        )
        for asset in vault.underlying_assets
    ]
    return VaultSnapshot(
        vault_index=vault.vault_index,
        addresses=addrs,
        factory=factory,
        vault=vault,
        share_decimals=6,
        stablecoin_balance=stablecoin_balance,
        holdings=holdings,
    )


def encode_factory(factory: FactoryAccount) -> bytes:
    return (
        account_discriminator("Factory")
        + struct.pack("<B", factory.bump)
        + bytes(factory.admin)
        + bytes(factory.fee_recipient)
        + struct.pack(
            "<IBHHQHHHH",
            factory.vault_count,
            factory.state,
            factory.entry_fee_bps,
            factory.exit_fee_bps,
            factory.vault_creation_fee_usdc,
            factory.min_management_fee_bps,
            factory.max_management_fee_bps,
            factory.vault_creator_fee_ratio_bps,
            factory.platform_fee_ratio_bps,
        )
    )


def _borsh_string(value: str) -> bytes:
    raw = value.encode()
    return struct.pack("<I", len(raw)) + raw


def encode_vault(vault: VaultAccount) -> bytes:
    assets = b"".join(
        bytes(a.mint) + struct.pack("<H", a.allocation_bps)
        for a in vault.underlying_assets
    )
    return (
        account_discriminator("Vault")
        + struct.pack("<BI", vault.bump, vault.vault_index)
        + bytes(vault.factory)
        + bytes(vault.admin)
        + _borsh_string(vault.name)
        + _borsh_string(vault.symbol)
        + struct.pack("<I", len(vault.underlying_assets))
        + assets
        + struct.pack(
            "<HBQQqqQ",
            vault.management_fee_bps,
            vault.state,
            vault.total_assets,
            vault.total_supply,
            vault.created_at,
            vault.last_fee_accrual_ts,
            vault.accrued_management_fees_usdc,
        )
    )


def encode_token_account(mint: Pubkey, owner: Pubkey, amount: int) -> bytes:
    return bytes(mint) + bytes(owner) + struct.pack("<Q", amount) + bytes(93)


def make_prices(usd: dict[Pubkey, int] | None = None) -> PriceData:
    """Resolved prices; SOL and mSOL default to $150 and $180."""
    usd = usd or {WSOL: 150_000_000, MSOL: 180_000_000}
    return PriceData(
        prices={str(m): AssetPrice(str(m), price) for m, price in usd.items()},
        decimals={str(m): 9 for m in usd},
    )


def make_route(input_mint: Pubkey, output_mint: Pubkey, amount: int) -> SwapRoute:
    return SwapRoute(
        input_mint=str(input_mint),
        output_mint=str(output_mint),
        in_amount=amount,
        out_amount=amount * 2,
        price_impact_pct=Decimal("0"),
        quote={},
        fetched_at=0.0,
        valid_until=10.0,
    )


JUPITER_SWAP = Instruction(ix.JUPITER_PROGRAM, b"swap", [])


def wire_services(services, snapshot: VaultSnapshot, balances=None, prices=None):
    """Point mocked services at ``snapshot``.

    ``balances`` maps token account -> balance for ``read_token_balance``;
    unknown accounts hold a large balance.
    """
    balances = balances or {}
    services.reader.snapshot = AsyncMock(return_value=snapshot)
    services.reader.read_vault = AsyncMock(return_value=snapshot.vault)
    services.reader.read_factory = AsyncMock(return_value=snapshot.factory)
    services.reader.addresses = lambda index: VaultAddresses.derive(PROGRAM_ID, index)
    services.reader.read_token_balance = AsyncMock(
        side_effect=lambda account: balances.get(account, 10**15)
    )
    services.prices.fetch_prices = AsyncMock(
        side_effect=lambda mints: prices or make_prices()
    )
    services.prices.get_decimals = AsyncMock(return_value=6)
    services.swaps.quote = AsyncMock(side_effect=make_route)
    services.swaps.build_instructions = AsyncMock(
        return_value=SwapInstructions(swap=JUPITER_SWAP)
    )
    return services


def submitted_programs(services, call: int) -> list[Pubkey]:
    """Program ids of the instructions in the ``call``-th submission."""
    instructions = services.submitter.submit.await_args_list[call].args[0]
    return [i.program_id for i in instructions]

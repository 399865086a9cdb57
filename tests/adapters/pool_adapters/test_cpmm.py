from unittest.mock import AsyncMock

import pytest
from solders.pubkey import Pubkey

from builders import USDC, WSOL
from vault_keeper.adapters.pool_adapters import SwapPoolResolver, iter_pool_candidates
from vault_keeper.errors import PoolNotFoundError
from vault_keeper.ledger import pda

VENUE_A = Pubkey.new_unique()
VENUE_B = Pubkey.new_unique()


def test_candidates_cover_both_mint_orders_per_config():
    candidates = list(iter_pool_candidates([VENUE_A], WSOL, USDC, 3))
    assert len(candidates) == 6
    assert {(c.mint_a, c.mint_b) for c in candidates} == {(WSOL, USDC), (USDC, WSOL)}
    assert [c.config_index for c in candidates] == [0, 0, 1, 1, 2, 2]


def test_candidate_addresses_are_derived():
    first = next(iter_pool_candidates([VENUE_A], WSOL, USDC, 1))
    config = pda.amm_config_address(VENUE_A, 0)
    assert first.amm_config == config
    assert first.address == pda.pool_address(VENUE_A, config, WSOL, USDC)


@pytest.mark.asyncio
async def test_known_pool_resolves_without_ledger_calls():
    target = list(iter_pool_candidates([VENUE_B], WSOL, USDC, 4))[5]
    account_exists = AsyncMock(return_value=True)
    resolver = SwapPoolResolver(account_exists, [str(VENUE_A), str(VENUE_B)], 4)

    reference = await resolver.resolve(WSOL, USDC, known_pool_id=target.address)

    account_exists.assert_not_awaited()
    assert reference.address == target.address
    assert reference.venue == VENUE_B
    assert reference.vault_a == pda.pool_vault_address(
        VENUE_B, target.address, target.mint_a
    )


@pytest.mark.asyncio
async def test_search_stops_at_first_existing_pool():
    candidates = list(iter_pool_candidates([VENUE_A], WSOL, USDC, 8))
    hit = candidates[3].address

    async def exists(address: Pubkey) -> bool:
        return address == hit

    account_exists = AsyncMock(side_effect=exists)
    resolver = SwapPoolResolver(account_exists, [str(VENUE_A)], 8)

    reference = await resolver.resolve(WSOL, USDC)

    assert reference.address == hit
    assert account_exists.await_count == 4


@pytest.mark.asyncio
async def test_hits_are_cached_per_pair_and_venue():
    account_exists = AsyncMock(return_value=True)
    resolver = SwapPoolResolver(account_exists, [str(VENUE_A)], 2)

    first = await resolver.resolve(WSOL, USDC)
    second = await resolver.resolve(USDC, WSOL)

    assert first == second
    assert account_exists.await_count == 1


@pytest.mark.asyncio
async def test_require_raises_when_no_venue_has_pool():
    account_exists = AsyncMock(return_value=False)
    resolver = SwapPoolResolver(account_exists, [str(VENUE_A), str(VENUE_B)], 2)

    with pytest.raises(PoolNotFoundError):
        await resolver.require(WSOL, USDC)
    assert account_exists.await_count == 8

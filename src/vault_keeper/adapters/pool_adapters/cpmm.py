"""Constant-product pool discovery by deterministic address derivation."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator, Sequence
from dataclasses import dataclass

from solders.pubkey import Pubkey

from ...errors import PoolNotFoundError
from ...ledger import pda

logger = logging.getLogger(__name__)

AccountExists = Callable[[Pubkey], Awaitable[bool]]


@dataclass(frozen=True)
class PoolCandidate:
    """A derived pool address that may or may not exist on the ledger."""

    venue: Pubkey
    config_index: int
    amm_config: Pubkey
    mint_a: Pubkey
    mint_b: Pubkey
    address: Pubkey


@dataclass(frozen=True)
class PoolReference:
    """A confirmed pool and the accounts a swap against it needs."""

    venue: Pubkey
    address: Pubkey
    amm_config: Pubkey
    authority: Pubkey
    mint_a: Pubkey
    mint_b: Pubkey
    vault_a: Pubkey
    vault_b: Pubkey
    observation: Pubkey


def iter_pool_candidates(
    venues: Sequence[Pubkey],
    mint_x: Pubkey,
    mint_y: Pubkey,
    index_limit: int,
) -> Iterator[PoolCandidate]:
    """Every (venue, config index, mint ordering) pool address, lazily.

    Pure; no ledger access. Callers stop iterating at the first match.
    """
    for venue in venues:
        for index in range(index_limit):
            amm_config = pda.amm_config_address(venue, index)
            for mint_a, mint_b in ((mint_x, mint_y), (mint_y, mint_x)):
                yield PoolCandidate(
                    venue=venue,
                    config_index=index,
                    amm_config=amm_config,
                    mint_a=mint_a,
                    mint_b=mint_b,
                    address=pda.pool_address(venue, amm_config, mint_a, mint_b),
                )


def complete_reference(candidate: PoolCandidate) -> PoolReference:
    """Derive dependent accounts for a confirmed pool."""
    venue, pool = candidate.venue, candidate.address
    return PoolReference(
        venue=venue,
        address=pool,
        amm_config=candidate.amm_config,
        authority=pda.pool_authority_address(venue),
        mint_a=candidate.mint_a,
        mint_b=candidate.mint_b,
        vault_a=pda.pool_vault_address(venue, pool, candidate.mint_a),
        vault_b=pda.pool_vault_address(venue, pool, candidate.mint_b),
        observation=pda.observation_address(venue, pool),
    )


class SwapPoolResolver:
    """Finds the pool for an asset pair across candidate venues.

    With a known pool id, resolution is address equality against the
    derived candidates and issues no ledger calls. Otherwise candidates are
    checked in order until one exists. Hits are cached per (pair, venue) for
    the life of the resolver.
    """

    def __init__(
        self,
        account_exists: AccountExists,
        venues: Sequence[str],
        index_limit: int,
    ):
        self.account_exists = account_exists
        self.venues = [Pubkey.from_string(v) for v in venues]
        self.index_limit = index_limit
        self._cache: dict[tuple[frozenset[Pubkey], Pubkey], PoolReference] = {}

    async def resolve(
        self,
        input_mint: Pubkey,
        output_mint: Pubkey,
        venues: Sequence[Pubkey] | None = None,
        known_pool_id: Pubkey | None = None,
    ) -> PoolReference | None:
        pair = frozenset((input_mint, output_mint))
        for venue in venues or self.venues:
            cached = self._cache.get((pair, venue))
            if cached is not None and (
                known_pool_id is None or cached.address == known_pool_id
            ):
                return cached

            match = await self._search_venue(
                venue, input_mint, output_mint, known_pool_id
            )
            if match is not None:
                reference = complete_reference(match)
                self._cache[(pair, venue)] = reference
                logger.debug(
                    " Pool %s found on %s (config %d)",
                    reference.address,
                    venue,
                    match.config_index,
                )
                return reference

        logger.warning(" No pool for %s / %s", input_mint, output_mint)
        return None

    async def _search_venue(
        self,
        venue: Pubkey,
        input_mint: Pubkey,
        output_mint: Pubkey,
        known_pool_id: Pubkey | None,
    ) -> PoolCandidate | None:
        candidates = iter_pool_candidates(
            [venue], input_mint, output_mint, self.index_limit
        )
        for candidate in candidates:
            if known_pool_id is not None:
                if candidate.address == known_pool_id:
                    return candidate
                continue
            if await self.account_exists(candidate.address):
                return candidate
        return None

    async def require(
        self,
        input_mint: Pubkey,
        output_mint: Pubkey,
        known_pool_id: Pubkey | None = None,
    ) -> PoolReference:
        """Like :meth:`resolve` but raises when nothing is found.

        Raises:
            PoolNotFoundError: If no candidate venue has the pool
        """
        reference = await self.resolve(
            input_mint, output_mint, known_pool_id=known_pool_id
        )
        if reference is None:
            raise PoolNotFoundError(str(input_mint), str(output_mint))
        return reference

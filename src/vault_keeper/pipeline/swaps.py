"""Quote, build and submit one swap, re-quoting when the route goes stale."""

from __future__ import annotations

from collections.abc import Sequence

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from ..adapters.swap_adapters.base import SwapRoute
from ..constants import MAX_REQUOTES
from ..errors import QuoteExpiredError
from .context import PipelineContext


async def ensure_pool(
    ctx: PipelineContext, asset_mint: Pubkey, other_mint: Pubkey
) -> None:
    """When configured, require a direct pool for the pair before quoting.

    Raises:
        PoolNotFoundError: If no candidate venue has the pool
    """
    pools = ctx.state.settings.pools
    if not pools.require_direct_pool:
        return
    known = pools.known_pools.get(str(asset_mint))
    reference = await ctx.services.pools.require(
        asset_mint,
        other_mint,
        known_pool_id=Pubkey.from_string(known) if known else None,
    )
    ctx.state.logger.debug("Direct pool for %s: %s", asset_mint, reference.address)


async def swap_with_requote(
    ctx: PipelineContext,
    *,
    input_mint: Pubkey,
    output_mint: Pubkey,
    amount: int,
    destination: Pubkey,
    prefix: Sequence[Instruction] = (),
) -> tuple[SwapRoute, str]:
    """Swap ``amount`` of ``input_mint`` into ``destination`` in one transaction.

    ``prefix`` instructions ride in the same transaction, ahead of the swap.
    A route that expires before submission is discarded and re-quoted up to
    ``MAX_REQUOTES`` times.

    Returns:
        The route that was executed and the transaction signature

    Raises:
        QuoteExpiredError: If every quote went stale before it could be sent
        PoolNotFoundError: If the aggregator has no route
        TransientNetworkError: If quoting or building keeps failing
        LedgerRejectionError: If the ledger rejects the transaction
        ConfirmationTimeoutError: If the swap was sent but not confirmed in time
    """
    svc = ctx.services
    swaps = svc.swaps
    log = ctx.state.logger
    attempts = MAX_REQUOTES + 1

    for attempt in range(1, attempts + 1):
        route = await swaps.quote(str(input_mint), str(output_mint), amount)
        try:
            instructions = await swaps.build_instructions(
                route, svc.signer, destination
            )
        except QuoteExpiredError:
            log.warning(
                "Quote %s -> %s expired before build (attempt %d of %d)",
                input_mint,
                output_mint,
                attempt,
                attempts,
            )
            continue
        if swaps.is_stale(route):
            log.warning(
                "Quote %s -> %s expired before submission (attempt %d of %d)",
                input_mint,
                output_mint,
                attempt,
                attempts,
            )
            continue

        signature = await svc.submitter_required.submit(
            instructions.ordered(prefix), instructions.lookup_tables
        )
        return route, signature

    raise QuoteExpiredError(
        f"Quote {input_mint} -> {output_mint} went stale {attempts} times; giving up"
    )

"""Snapshot, price and value a vault."""

from __future__ import annotations

from ..adapters.price_adapters.base import AssetPrice
from ..constants import USD_DECIMALS
from ..processors import Valuation, compute_valuation
from .context import PipelineContext


async def valuate_vault(ctx: PipelineContext) -> Valuation:
    """Read the vault, fetch prices for its assets and compute GAV/NAV.

    Populates ``ctx.snapshot``, ``ctx.price_data`` and ``ctx.valuation``.
    Unpriced assets are logged, not raised; callers decide whether a
    partial valuation is acceptable.
    """
    svc = ctx.services
    log = ctx.state.logger
    stablecoin = ctx.state.settings.stablecoin_mint

    snapshot = await svc.reader.snapshot(ctx.vault_index_required)
    ctx.snapshot = snapshot
    ctx.step(
        "Read vault %d (%s): %d assets, supply %d, total assets %d",
        ctx.vault_index_required,
        snapshot.vault.symbol,
        len(snapshot.holdings),
        snapshot.vault.total_supply,
        snapshot.vault.total_assets,
    )

    mints = [str(h.mint) for h in snapshot.holdings if str(h.mint) != stablecoin]
    ctx.price_data = await svc.prices.fetch_prices(mints)
    stablecoin_decimals = await svc.prices.get_decimals(stablecoin)

    # held stablecoin in an asset ATA is valued at par
    stable_holding = snapshot.holding(ctx.state.settings.stablecoin_pubkey)
    if stable_holding is not None:
        ctx.price_data.prices.setdefault(
            stablecoin, AssetPrice(mint=stablecoin, usd_price=10**USD_DECIMALS)
        )
        ctx.price_data.decimals.setdefault(stablecoin, stablecoin_decimals)

    valuation = compute_valuation(
        snapshot,
        ctx.price_data,
        now=int(ctx.wall_clock()),
        stablecoin_decimals=stablecoin_decimals,
    )
    ctx.valuation = valuation

    if valuation.has_unpriced_assets:
        log.warning(
            "Valuation is partial; no price for %s",
            ", ".join(valuation.unpriced_assets),
        )
    ctx.step(
        "Valued vault %d: GAV %d, NAV %d, accrued fees %d over %ds",
        ctx.vault_index_required,
        valuation.gav,
        valuation.nav,
        valuation.accrued_fees,
        valuation.elapsed_seconds,
    )
    return valuation


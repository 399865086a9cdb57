"""Vault valuation: GAV, management fee accrual and NAV.

All values are 6-decimal fixed point USD (micro-USD) integers, the same
scale as the stablecoin, so they can be compared directly with ledger
amounts. Every division truncates.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..constants import MAX_BPS, SECONDS_PER_YEAR, USD_DECIMALS
from ..errors import InvariantViolation
from ..adapters.price_adapters.base import PriceData
from ..ledger.reader import VaultSnapshot


@dataclass(frozen=True)
class AssetValuation:
    mint: str
    balance: int
    decimals: int
    usd_price: int
    value: int
    priced: bool


@dataclass(frozen=True)
class Valuation:
    gav: int
    nav: int
    gav_per_token: int
    nav_per_token: int
    accrued_fees: int
    newly_accrued_fees: int
    previously_accrued_fees: int
    stablecoin_value: int
    elapsed_seconds: int
    display_nav_estimate: int
    assets: list[AssetValuation] = field(default_factory=list)
    unpriced_assets: list[str] = field(default_factory=list)

    @property
    def has_unpriced_assets(self) -> bool:
        """GAV may be understated: some held asset had no price."""
        return bool(self.unpriced_assets)


def asset_value(balance: int, decimals: int, usd_price: int) -> int:
    """balance / 10^decimals * price, in micro-USD."""
    if balance < 0 or usd_price < 0:
        raise InvariantViolation(
            f"negative balance or price (balance={balance}, price={usd_price})"
        )
    return balance * usd_price // 10**decimals


def stablecoin_value(balance: int, decimals: int) -> int:
    """Stablecoin balance at par, rescaled to micro-USD."""
    if decimals >= USD_DECIMALS:
        return balance // 10 ** (decimals - USD_DECIMALS)
    return balance * 10 ** (USD_DECIMALS - decimals)


def newly_accrued_fees(gav: int, fee_bps: int, elapsed_seconds: int) -> int:
    """Management fee accrued over ``elapsed_seconds`` at an annual rate of ``fee_bps``.

    Zero when no time has elapsed; non-decreasing in ``elapsed_seconds``.
    """
    elapsed = max(0, elapsed_seconds)
    if gav <= 0 or fee_bps <= 0 or elapsed == 0:
        return 0
    return gav * fee_bps * elapsed // (MAX_BPS * SECONDS_PER_YEAR)


def total_accrued_fees(previous: int, newly: int, gav: int) -> int:
    """Previously plus newly accrued fees, clamped to ``[0, gav]``."""
    return max(0, min(previous + newly, gav))


def per_token(value: int, total_supply: int, share_decimals: int) -> int:
    """Value per whole share in micro-USD; zero while no shares exist."""
    if total_supply <= 0:
        return 0
    return value * 10**share_decimals // total_supply


def display_nav_estimate(gav: int, fee_bps: int) -> int:
    """One full year of fee taken off GAV.

    A rough display figure only. Settlement uses the time-accrued model in
    :func:`compute_valuation`.
    """
    return gav - gav * fee_bps // MAX_BPS


def compute_valuation(
    snapshot: VaultSnapshot,
    price_data: PriceData,
    now: int,
    stablecoin_decimals: int = USD_DECIMALS,
) -> Valuation:
    """Value a vault snapshot against a price snapshot.

    Pure and idempotent: the same snapshot, prices and ``now`` always give
    the same result.

    Args:
        snapshot: Vault state and custody balances
        price_data: Prices and decimals for every underlying mint
        now: Unix timestamp used for fee accrual
        stablecoin_decimals: Decimals of the vault's stablecoin

    Returns:
        Valuation with ``unpriced_assets`` listing any held mint whose price
        was unresolved and therefore contributed 0 to GAV.
    """
    vault = snapshot.vault
    assets: list[AssetValuation] = []
    unpriced: list[str] = []

    for holding in snapshot.holdings:
        mint = str(holding.mint)
        price = price_data.prices.get(mint)
        decimals = price_data.decimals.get(mint)
        if price is None or not price.resolved or decimals is None:
            if holding.balance > 0:
                unpriced.append(mint)
            assets.append(
                AssetValuation(
                    mint=mint,
                    balance=holding.balance,
                    decimals=decimals or 0,
                    usd_price=0,
                    value=0,
                    priced=False,
                )
            )
            continue

        assets.append(
            AssetValuation(
                mint=mint,
                balance=holding.balance,
                decimals=decimals,
                usd_price=price.usd_price,
                value=asset_value(holding.balance, decimals, price.usd_price),
                priced=True,
            )
        )

    stable = stablecoin_value(snapshot.stablecoin_balance, stablecoin_decimals)
    gav = sum(a.value for a in assets) + stable

    elapsed = max(0, now - vault.last_fee_accrual_ts)
    previous = vault.accrued_management_fees_usdc
    newly = newly_accrued_fees(gav, vault.management_fee_bps, elapsed)
    accrued = total_accrued_fees(previous, newly, gav)
    nav = gav - accrued

    return Valuation(
        gav=gav,
        nav=nav,
        gav_per_token=per_token(gav, vault.total_supply, snapshot.share_decimals),
        nav_per_token=per_token(nav, vault.total_supply, snapshot.share_decimals),
        accrued_fees=accrued,
        newly_accrued_fees=newly,
        previously_accrued_fees=previous,
        stablecoin_value=stable,
        elapsed_seconds=elapsed,
        display_nav_estimate=display_nav_estimate(gav, vault.management_fee_bps),
        assets=assets,
        unpriced_assets=unpriced,
    )

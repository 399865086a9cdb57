"""Share and fee arithmetic mirrored from the vault program.

The program is authoritative at settlement; these functions reproduce its
integer math so a flow can log and sanity-check what it is about to submit.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..constants import MAX_BPS, MAX_ENTRY_EXIT_FEE_BPS, MAX_MANAGEMENT_FEE_BPS
from ..errors import InvariantViolation
from ..ledger.layout import UnderlyingAsset


def _check_bps(name: str, bps: int) -> None:
    if not 0 <= bps <= MAX_BPS:
        raise InvariantViolation(f"{name} must be within 0..{MAX_BPS} bps, got {bps}")


def _check_non_negative(**values: int) -> None:
    for name, value in values.items():
        if value < 0:
            raise InvariantViolation(f"{name} must not be negative, got {value}")


def bps_of(amount: int, bps: int) -> int:
    return amount * bps // MAX_BPS


def share_price(total_assets: int, total_supply: int, share_decimals: int) -> int:
    """Stablecoin units per whole share; 0 while no shares exist."""
    _check_non_negative(total_assets=total_assets, total_supply=total_supply)
    if total_supply == 0:
        return 0
    return total_assets * 10**share_decimals // total_supply


def shares_for_amount(amount: int, price: int, share_decimals: int) -> int:
    """Shares worth ``amount`` stablecoin at ``price``; 1:1 when price is 0."""
    if price == 0:
        return amount
    return amount * 10**share_decimals // price


@dataclass(frozen=True)
class DepositBreakdown:
    """Fees and shares for one gross deposit.

    ``management_fee`` is an estimate on the gross amount for logging only;
    the program deducts just the entry fee at deposit and accrues management
    fees over time, so ``net_amount`` excludes only ``entry_fee``.
    """

    amount: int
    entry_fee: int
    net_amount: int
    share_price: int
    expected_shares: int
    management_fee: int = 0


def deposit_breakdown(
    amount: int,
    entry_fee_bps: int,
    price: int,
    share_decimals: int,
    management_fee_bps: int = 0,
) -> DepositBreakdown:
    """Entry fee, net deposit and minted shares for a gross deposit.

    >>> deposit_breakdown(10_000_000, 25, 0, 6).expected_shares
    9975000
    >>> deposit_breakdown(10_000_000, 25, 563_500, 6).expected_shares
    17701863
    """
    _check_non_negative(amount=amount, share_price=price)
    _check_bps("entry_fee_bps", entry_fee_bps)
    _check_bps("management_fee_bps", management_fee_bps)
    fee = bps_of(amount, entry_fee_bps)
    net = amount - fee
    return DepositBreakdown(
        amount=amount,
        entry_fee=fee,
        net_amount=net,
        share_price=price,
        expected_shares=shares_for_amount(net, price, share_decimals),
        management_fee=bps_of(amount, management_fee_bps),
    )


def validate_allocation(assets: list[UnderlyingAsset]) -> None:
    """Reject vault configurations whose allocations exceed 100%."""
    for asset in assets:
        _check_bps(f"allocation of {asset.mint}", asset.allocation_bps)
    total = sum(a.allocation_bps for a in assets)
    if total > MAX_BPS:
        raise InvariantViolation(
            f"underlying allocations sum to {total} bps, above {MAX_BPS}"
        )


def allocation_amounts(
    amount: int, assets: list[UnderlyingAsset]
) -> list[tuple[UnderlyingAsset, int]]:
    """Stablecoin to swap into each asset, sliced from the gross deposit.

    Integer division leaves a residual of stablecoin in the vault.
    """
    validate_allocation(assets)
    _check_non_negative(amount=amount)
    return [(asset, bps_of(amount, asset.allocation_bps)) for asset in assets]


def pro_rata_amount(balance: int, shares: int, total_supply: int) -> int:
    _check_non_negative(balance=balance, shares=shares)
    if total_supply <= 0:
        raise InvariantViolation("pro-rata share of a vault with no supply")
    return balance * shares // total_supply


def required_stablecoin(shares: int, total_assets: int, total_supply: int) -> int:
    if total_supply == 0:
        return 0
    return shares * total_assets // total_supply


def downscale_shares(
    requested: int, available: int, total_assets: int, total_supply: int
) -> int:
    """Largest share amount the vault's stablecoin can cover, capped at ``requested``.

    >>> downscale_shares(2_000_000, 250_000, 1_000_000, 2_000_000)
    500000
    """
    _check_non_negative(requested=requested, available=available)
    if total_assets <= 0:
        return requested
    return min(requested, available * total_supply // total_assets)


@dataclass(frozen=True)
class RedeemBreakdown:
    shares: int
    share_price: int
    gross_amount: int
    exit_fee: int
    net_amount: int


def redeem_breakdown(
    shares: int, price: int, share_decimals: int, exit_fee_bps: int
) -> RedeemBreakdown:
    _check_non_negative(shares=shares, share_price=price)
    _check_bps("exit_fee_bps", exit_fee_bps)
    gross = shares * price // 10**share_decimals
    fee = bps_of(gross, exit_fee_bps)
    return RedeemBreakdown(
        shares=shares,
        share_price=price,
        gross_amount=gross,
        exit_fee=fee,
        net_amount=gross - fee,
    )


@dataclass(frozen=True)
class FeeSplit:
    fees_amount: int
    share_price: int
    creator_amount: int
    platform_amount: int
    creator_shares: int
    platform_shares: int

    @property
    def total_shares(self) -> int:
        return self.creator_shares + self.platform_shares


def split_fees(
    fees_amount: int, creator_ratio_bps: int, price: int, share_decimals: int
) -> FeeSplit:
    """Creator and platform portions of ``fees_amount`` and the shares minted for each."""
    _check_non_negative(fees_amount=fees_amount, share_price=price)
    _check_bps("vault_creator_fee_ratio_bps", creator_ratio_bps)
    creator = bps_of(fees_amount, creator_ratio_bps)
    platform = fees_amount - creator
    return FeeSplit(
        fees_amount=fees_amount,
        share_price=price,
        creator_amount=creator,
        platform_amount=platform,
        creator_shares=shares_for_amount(creator, price, share_decimals),
        platform_shares=shares_for_amount(platform, price, share_decimals),
    )


@dataclass(frozen=True)
class FeeSchedule:
    """Factory-wide fee parameters set by ``update_factory_fees``."""

    entry_fee_bps: int
    exit_fee_bps: int
    vault_creation_fee_usdc: int
    min_management_fee_bps: int
    max_management_fee_bps: int
    vault_creator_fee_ratio_bps: int
    platform_fee_ratio_bps: int


def validate_fee_schedule(schedule: FeeSchedule) -> None:
    """Reject fee parameters the program would refuse.

    Raises:
        InvariantViolation: If any bound is broken
    """
    _check_non_negative(vault_creation_fee_usdc=schedule.vault_creation_fee_usdc)
    for name in ("entry_fee_bps", "exit_fee_bps"):
        value = getattr(schedule, name)
        if not 0 <= value <= MAX_ENTRY_EXIT_FEE_BPS:
            raise InvariantViolation(
                f"{name} must be within 0..{MAX_ENTRY_EXIT_FEE_BPS} bps, got {value}"
            )
    low, high = schedule.min_management_fee_bps, schedule.max_management_fee_bps
    if not 0 <= low <= high <= MAX_MANAGEMENT_FEE_BPS:
        raise InvariantViolation(
            f"management fee bounds must satisfy 0 <= min <= max <= "
            f"{MAX_MANAGEMENT_FEE_BPS}, got min={low} max={high}"
        )
    _check_bps("vault_creator_fee_ratio_bps", schedule.vault_creator_fee_ratio_bps)
    _check_bps("platform_fee_ratio_bps", schedule.platform_fee_ratio_bps)
    ratio = schedule.vault_creator_fee_ratio_bps + schedule.platform_fee_ratio_bps
    if ratio != MAX_BPS:
        raise InvariantViolation(
            f"creator and platform ratios must sum to {MAX_BPS} bps, got {ratio}"
        )

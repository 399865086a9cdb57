from __future__ import annotations

from .fees import (
    DepositBreakdown,
    FeeSchedule,
    FeeSplit,
    RedeemBreakdown,
    allocation_amounts,
    deposit_breakdown,
    downscale_shares,
    pro_rata_amount,
    redeem_breakdown,
    required_stablecoin,
    share_price,
    split_fees,
    validate_allocation,
    validate_fee_schedule,
)
from .valuation import AssetValuation, Valuation, compute_valuation

__all__ = [
    "AssetValuation",
    "DepositBreakdown",
    "FeeSchedule",
    "FeeSplit",
    "RedeemBreakdown",
    "Valuation",
    "allocation_amounts",
    "compute_valuation",
    "deposit_breakdown",
    "downscale_shares",
    "pro_rata_amount",
    "redeem_breakdown",
    "required_stablecoin",
    "share_price",
    "split_fees",
    "validate_allocation",
    "validate_fee_schedule",
]

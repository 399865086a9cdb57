from __future__ import annotations

from .formatter import format_receipt, format_valuation
from .receipts import (
    AdminReceipt,
    DepositReceipt,
    FeeReceipt,
    LegStatus,
    RedeemReceipt,
    SwapLeg,
)

__all__ = [
    "AdminReceipt",
    "DepositReceipt",
    "FeeReceipt",
    "LegStatus",
    "RedeemReceipt",
    "SwapLeg",
    "format_receipt",
    "format_valuation",
]

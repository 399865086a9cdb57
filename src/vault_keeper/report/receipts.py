"""Structured results of keeper operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..processors import DepositBreakdown, FeeSplit, RedeemBreakdown


class LegStatus(str, Enum):
    SWAPPED = "swapped"
    SKIPPED = "skipped"
    HELD = "held"  # asset is the stablecoin itself
    EMPTY = "empty"  # nothing to move
    UNCONFIRMED = "unconfirmed"  # sent, confirmation timed out


@dataclass(frozen=True)
class SwapLeg:
    """Outcome for one underlying asset of a deposit or redeem."""

    mint: str
    amount_in: int
    quoted_out: int = 0
    status: LegStatus = LegStatus.SWAPPED
    signature: str | None = None
    reason: str | None = None


@dataclass
class DepositReceipt:
    vault_index: int
    breakdown: DepositBreakdown
    deposit_signature: str
    legs: list[SwapLeg] = field(default_factory=list)

    @property
    def skipped(self) -> list[SwapLeg]:
        return [leg for leg in self.legs if leg.status == LegStatus.SKIPPED]

    @property
    def unconfirmed(self) -> list[SwapLeg]:
        return [leg for leg in self.legs if leg.status == LegStatus.UNCONFIRMED]


@dataclass
class RedeemReceipt:
    vault_index: int
    requested_shares: int
    breakdown: RedeemBreakdown
    finalize_signature: str
    available_stablecoin: int
    required_stablecoin: int
    legs: list[SwapLeg] = field(default_factory=list)

    @property
    def unconfirmed(self) -> list[SwapLeg]:
        return [leg for leg in self.legs if leg.status == LegStatus.UNCONFIRMED]

    @property
    def redeemed_shares(self) -> int:
        return self.breakdown.shares

    @property
    def downscaled(self) -> bool:
        return self.breakdown.shares < self.requested_shares


@dataclass
class FeeReceipt:
    """Result of a fee distribution or claim.

    ``signature`` is None for a no-op, in which case ``noop_reason`` says why
    and no ledger call was issued.
    """

    vault_index: int
    action: str
    split: FeeSplit | None = None
    signature: str | None = None
    noop_reason: str | None = None

    @property
    def is_noop(self) -> bool:
        return self.signature is None


@dataclass
class AdminReceipt:
    action: str
    detail: str
    vault_index: int | None = None
    signature: str | None = None

    @property
    def is_noop(self) -> bool:
        return self.signature is None

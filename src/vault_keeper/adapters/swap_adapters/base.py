from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from solders.instruction import Instruction
from solders.pubkey import Pubkey

from ...settings import KeeperSettings


@dataclass(frozen=True)
class SwapRoute:
    """A priced route, usable only until ``valid_until`` (monotonic clock)."""

    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    price_impact_pct: Decimal
    quote: dict[str, Any]
    fetched_at: float
    valid_until: float

    def is_expired(self, now: float | None = None) -> bool:
        return (time.monotonic() if now is None else now) >= self.valid_until


@dataclass(frozen=True)
class SwapInstructions:
    """Ledger instructions that execute a route."""

    swap: Instruction
    setup: list[Instruction] = field(default_factory=list)
    compute_budget: list[Instruction] = field(default_factory=list)
    cleanup: Instruction | None = None
    lookup_tables: list[Pubkey] = field(default_factory=list)

    def ordered(self, prefix: Sequence[Instruction] = ()) -> list[Instruction]:
        """Instructions in submission order.

        ``prefix`` runs after the compute budget and before the swap setup,
        so a custody transfer and the swap it funds land atomically.
        """
        ixs = [*self.compute_budget, *prefix, *self.setup, self.swap]
        if self.cleanup is not None:
            ixs.append(self.cleanup)
        return ixs


class BaseSwapAdapter(ABC):
    """Abstract base class for swap quote adapters."""

    def __init__(
        self,
        config: KeeperSettings,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.clock = clock

    def is_stale(self, route: SwapRoute) -> bool:
        """True once ``route`` must not be built or submitted."""
        return route.is_expired(self.clock())

    @property
    @abstractmethod
    def adapter_name(self) -> str:
        """Return the name of this adapter."""
        ...

    @abstractmethod
    async def quote(self, input_mint: str, output_mint: str, amount: int) -> SwapRoute:
        """Quote swapping ``amount`` raw units of ``input_mint``."""
        ...

    @abstractmethod
    async def build_instructions(
        self,
        route: SwapRoute,
        payer: Pubkey,
        destination: Pubkey | None = None,
    ) -> SwapInstructions:
        """Build ledger instructions for a still-valid route."""
        ...

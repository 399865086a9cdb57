from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from solders.pubkey import Pubkey

from ..adapters.pool_adapters import SwapPoolResolver
from ..adapters.price_adapters.base import BasePriceAdapter, PriceData
from ..adapters.swap_adapters.base import BaseSwapAdapter
from ..errors import OperationCancelled
from ..ledger import LedgerRpcClient, TransactionSubmitter, VaultAccountReader
from ..logger import StepLog
from ..processors import Valuation
from ..ledger.reader import VaultSnapshot
from ..state import AppState


@dataclass
class KeeperServices:
    """Clients a flow talks to. ``submitter`` is None for read-only runs."""

    rpc: LedgerRpcClient
    reader: VaultAccountReader
    prices: BasePriceAdapter
    swaps: BaseSwapAdapter
    pools: SwapPoolResolver
    submitter: TransactionSubmitter | None = None

    @property
    def submitter_required(self) -> TransactionSubmitter:
        if self.submitter is None:
            raise RuntimeError(
                "No signer configured. A keypair is required for operations that submit transactions."
            )
        return self.submitter

    @property
    def signer(self) -> Pubkey:
        return self.submitter_required.payer


@dataclass
class PipelineContext:
    state: AppState
    services: KeeperServices
    vault_index: int | None = None
    confirm: Callable[[str], bool] = lambda _prompt: False
    wall_clock: Callable[[], float] = time.time
    step: StepLog = field(init=False)
    snapshot: VaultSnapshot | None = None
    price_data: PriceData | None = None
    valuation: Valuation | None = None

    def __post_init__(self) -> None:
        self.step = StepLog(self.state.logger)

    @property
    def vault_index_required(self) -> int:
        if self.vault_index is None:
            raise RuntimeError(
                "Vault index has not been set. Vault operations need a vault index."
            )
        return self.vault_index

    @property
    def snapshot_required(self) -> VaultSnapshot:
        if self.snapshot is None:
            raise RuntimeError(
                "Vault snapshot has not been set. Ensure valuate_vault() is called before accessing this property."
            )
        return self.snapshot

    @property
    def valuation_required(self) -> Valuation:
        if self.valuation is None:
            raise RuntimeError(
                "Valuation has not been set. Ensure valuate_vault() is called before accessing this property."
            )
        return self.valuation

    def decision_point(self, summary: str) -> None:
        """Last point at which the operation can stop with nothing submitted.

        Raises:
            OperationCancelled: On a dry run, or when confirmation is declined
        """
        s = self.state.settings
        self.state.logger.info("Plan: %s", summary)
        if s.dry_run:
            raise OperationCancelled(f"Dry run, nothing submitted: {summary}")
        if s.assume_yes:
            return
        if not self.confirm(f"{summary}. Submit?"):
            raise OperationCancelled(f"Declined, nothing submitted: {summary}")

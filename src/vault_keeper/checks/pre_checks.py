from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from solders.pubkey import Pubkey

from ..constants import MAX_BPS, MAX_UNDERLYING_ASSETS
from ..ledger.layout import FactoryState, VaultState
from ..ledger.reader import VaultSnapshot
from ..processors import Valuation, validate_allocation

logger = logging.getLogger(__name__)


class PreCheckError(Exception):
    """Raised when a pre-check fails and execution should stop."""

    def __init__(self, message: str, retry_recommended: bool = False):
        super().__init__(message)
        self.retry_recommended = retry_recommended


class Operation(str, Enum):
    DEPOSIT = "deposit"
    REDEEM = "redeem"
    DISTRIBUTE_FEES = "distribute-fees"
    CLAIM_FEE = "claim-fee"
    PAUSE = "pause"
    RESUME = "resume"
    VALUATE = "valuate"


# operations that move funds or mint shares need an active vault
ACTIVE_VAULT_OPERATIONS = {
    Operation.DEPOSIT,
    Operation.REDEEM,
    Operation.DISTRIBUTE_FEES,
    Operation.CLAIM_FEE,
}


@dataclass
class CheckResult:
    """Result from a single pre-check."""

    name: str
    passed: bool
    message: str
    retry_recommended: bool = False


def check_factory_active(snapshot: VaultSnapshot) -> CheckResult:
    state = snapshot.factory.state
    return CheckResult(
        name="factory state",
        passed=state == FactoryState.ACTIVE,
        message=f"factory is {state.name.lower()}",
    )


def check_vault_active(snapshot: VaultSnapshot) -> CheckResult:
    state = snapshot.vault.state
    return CheckResult(
        name="vault state",
        passed=state == VaultState.ACTIVE,
        message=f"vault {snapshot.vault_index} is {state.name.lower()}",
    )


def check_asset_count(snapshot: VaultSnapshot) -> CheckResult:
    count = len(snapshot.vault.underlying_assets)
    return CheckResult(
        name="asset count",
        passed=0 < count <= MAX_UNDERLYING_ASSETS,
        message=f"vault holds {count} underlying assets (max {MAX_UNDERLYING_ASSETS})",
    )


def check_prices_resolved(valuation: Valuation) -> CheckResult:
    """Unresolved prices understate GAV; they are often a transient outage."""
    if not valuation.has_unpriced_assets:
        return CheckResult(
            name="prices", passed=True, message="all held assets priced"
        )
    return CheckResult(
        name="prices",
        passed=False,
        message=f"no price for held assets: {', '.join(valuation.unpriced_assets)}",
        retry_recommended=True,
    )


def check_signer(signer: Pubkey, expected: Pubkey, role: str) -> CheckResult:
    passed = signer == expected
    verb = "is" if passed else "is not"
    return CheckResult(
        name=f"{role} signer",
        passed=passed,
        message=f"signer {signer} {verb} the {role} {expected}",
    )


def run_pre_checks(
    snapshot: VaultSnapshot,
    operation: Operation,
    valuation: Valuation | None = None,
    require_priced: bool = False,
    extra: list[CheckResult] | None = None,
) -> None:
    """Run state checks for ``operation`` against a vault snapshot.

    Args:
        snapshot: Fresh vault snapshot
        operation: The operation about to run
        valuation: Valuation of the snapshot, when the operation prices assets
        require_priced: Fail (retryably) when any held asset has no price
        extra: Operation-specific results evaluated alongside the standard ones

    Raises:
        InvariantViolation: If the vault's allocations exceed 100%
        PreCheckError: If any check fails
    """
    validate_allocation(snapshot.vault.underlying_assets)
    if snapshot.vault.total_allocation_bps < MAX_BPS:
        logger.debug(
            "Vault %d allocates %d bps; the rest stays in stablecoin",
            snapshot.vault_index,
            snapshot.vault.total_allocation_bps,
        )

    results = [check_factory_active(snapshot), check_asset_count(snapshot)]
    if operation in ACTIVE_VAULT_OPERATIONS:
        results.append(check_vault_active(snapshot))
    if require_priced and valuation is not None:
        results.append(check_prices_resolved(valuation))
    results.extend(extra or [])

    failed_checks = []
    retry_recommended = False
    for result in results:
        if result.passed:
            logger.info(f"✓ {result.name}: {result.message}")
        else:
            logger.warning(f"✗ {result.name}: {result.message}")
            failed_checks.append(result.message)
            # Retry if ANY failed check recommends it
            if result.retry_recommended:
                retry_recommended = True

    if failed_checks:
        error_msg = f"Pre-checks failed: {'; '.join(failed_checks)}"
        raise PreCheckError(error_msg, retry_recommended=retry_recommended)

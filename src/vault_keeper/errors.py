"""Exception hierarchy shared by the keeper flows."""

from __future__ import annotations


class VaultKeeperError(Exception):
    """Base class for all keeper errors."""


class TransientNetworkError(VaultKeeperError):
    """An HTTP or RPC call kept failing after bounded retries."""


class PoolNotFoundError(VaultKeeperError):
    """No liquidity pool or swap route exists for an asset pair."""

    def __init__(self, input_mint: str, output_mint: str, detail: str = ""):
        message = f"No pool or route for {input_mint} -> {output_mint}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.input_mint = input_mint
        self.output_mint = output_mint


class InsufficientLiquidityError(VaultKeeperError):
    """The vault cannot pay out any shares with its current stablecoin."""

    def __init__(self, available: int, required: int):
        super().__init__(
            f"Vault lacks stablecoin to redeem any shares "
            f"(available={available}, required={required})"
        )
        self.available = available
        self.required = required


class LedgerRejectionError(VaultKeeperError):
    """The ledger program rejected a transaction. Never retried."""

    def __init__(self, message: str, logs: list[str] | None = None):
        self.logs = list(logs or [])
        if self.logs:
            excerpt = "\n  ".join(self.logs[-10:])
            message = f"{message}\n  {excerpt}"
        super().__init__(message)


class InvariantViolation(VaultKeeperError):
    """Configuration or arithmetic invariant broken; the operation aborts."""


class QuoteExpiredError(VaultKeeperError):
    """A swap route outlived its validity window."""


class AccountNotFoundError(VaultKeeperError):
    """A required ledger account does not exist."""

    def __init__(self, kind: str, address: str):
        super().__init__(f"{kind} account not found: {address}")
        self.kind = kind
        self.address = address


class OperationCancelled(VaultKeeperError):
    """The operation was declined at its confirmation point; nothing was submitted."""


class ConfirmationTimeoutError(VaultKeeperError):
    """A sent transaction was not confirmed in time; it may still land."""

    def __init__(self, signature: str, timeout: float):
        super().__init__(f"Transaction {signature} not confirmed within {timeout:.0f}s")
        self.signature = signature
        self.timeout = timeout

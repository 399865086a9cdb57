"""Preflight checks before any keeper operation submits."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import backoff

from ..checks.pre_checks import CheckResult, Operation, PreCheckError, run_pre_checks
from .context import PipelineContext
from .valuation import valuate_vault

ExtraChecks = Callable[[PipelineContext], list[CheckResult]]


async def run_preflight(
    ctx: PipelineContext,
    operation: Operation,
    require_priced: bool = False,
    extra_checks: ExtraChecks | None = None,
) -> None:
    """Valuate the vault and run pre-checks, with retry logic.

    Each attempt re-reads the vault and re-fetches prices, so a retry
    sees fresh state.

    Args:
        ctx: Pipeline context; snapshot and valuation are populated on success
        operation: The operation about to run
        require_priced: Treat unpriced held assets as a (retryable) failure
        extra_checks: Operation-specific checks built from the fresh snapshot

    Raises:
        PreCheckError: If pre-checks fail after all retries
        InvariantViolation: If the vault configuration is invalid
    """
    s = ctx.state.settings
    log = ctx.state.logger
    require_priced = require_priced and not s.allow_unpriced_assets

    log.info(
        "Running pre-checks for %s (max retries: %d, timeout: %.1fs)...",
        operation.value,
        s.pre_check_retries,
        s.pre_check_timeout,
    )

    def _should_giveup(e: Exception) -> bool:
        """Determine if we should give up retrying based on the exception."""
        return isinstance(e, PreCheckError) and not e.retry_recommended

    def _on_backoff(details: Any) -> None:
        """Log retry attempts."""
        log.warning(
            "Pre-check failed (attempt %d of %d): %s",
            details["tries"],
            s.pre_check_retries + 1,
            details.get("exception", details.get("value")),
        )

    def _on_giveup(details: Any) -> None:
        """Log when we give up retrying."""
        exc = details.get("exception", details.get("value"))
        if isinstance(exc, PreCheckError) and not exc.retry_recommended:
            log.error("Pre-check failed (retry not recommended): %s", exc)
        else:
            log.error(
                "Pre-checks failed after %d attempts: %s",
                details["tries"],
                exc,
            )

    @backoff.on_exception(
        backoff.constant,
        PreCheckError,
        max_tries=s.pre_check_retries + 1,
        interval=s.pre_check_timeout,
        jitter=None,
        giveup=_should_giveup,
        on_backoff=_on_backoff,
        on_giveup=_on_giveup,
    )
    async def _run_pre_checks_with_retry() -> None:
        """Run pre-checks with automatic retry on retriable errors."""
        await valuate_vault(ctx)
        run_pre_checks(
            ctx.snapshot_required,
            operation,
            valuation=ctx.valuation,
            require_priced=require_priced,
            extra=extra_checks(ctx) if extra_checks else None,
        )

    await _run_pre_checks_with_retry()
    ctx.step("Pre-checks passed for %s", operation.value)

"""High-level pipeline orchestration."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from solders.keypair import Keypair

from ..adapters import JupiterPriceAdapter, JupiterSwapAdapter, SwapPoolResolver
from ..ledger import LedgerRpcClient, TransactionSubmitter, VaultAccountReader
from ..settings import KeeperSettings
from ..state import AppState
from .context import KeeperServices, PipelineContext

T = TypeVar("T")

Flow = Callable[[PipelineContext], Awaitable[T]]


def build_services(
    settings: KeeperSettings, signer: Keypair | None = None
) -> KeeperServices:
    """Wire the ledger and aggregator clients from settings.

    Without a ``signer`` the services are read-only.
    """
    rpc = LedgerRpcClient(
        settings.rpc_url,
        commitment=settings.commitment.value,
        timeout=settings.http_timeout,
    )
    reader = VaultAccountReader(rpc, settings.program_pubkey)
    submitter = (
        TransactionSubmitter(
            rpc,
            signer,
            confirm_timeout=settings.confirm_timeout_seconds,
            poll_interval=settings.confirm_poll_interval,
        )
        if signer is not None
        else None
    )
    return KeeperServices(
        rpc=rpc,
        reader=reader,
        prices=JupiterPriceAdapter(settings, reader),
        swaps=JupiterSwapAdapter(settings),
        pools=SwapPoolResolver(
            reader.account_exists,
            settings.pools.venues,
            settings.pools.config_index_limit,
        ),
        submitter=submitter,
    )


async def run_operation(
    state: AppState,
    name: str,
    flow: Flow[T],
    *,
    services: KeeperServices,
    vault_index: int | None = None,
    confirm: Callable[[str], bool] | None = None,
) -> T:
    """Run one keeper operation under the global timeout.

    Args:
        state: Application state containing settings and logger
        name: Operation name for logs
        flow: Coroutine function taking the pipeline context
        services: Ledger and aggregator clients
        vault_index: Target vault, when the operation has one
        confirm: Prompt used at the decision point when not running with --yes

    Returns:
        Whatever ``flow`` returns, usually a receipt
    """
    s = state.settings
    log = state.logger

    log.info(
        "Starting %s",
        name,
        extra={"vault_index": vault_index, "dry_run": s.dry_run},
    )

    timeout_s = s.global_timeout_seconds

    ctx = PipelineContext(state=state, services=services, vault_index=vault_index)
    if confirm is not None:
        ctx.confirm = confirm

    try:
        if timeout_s is None or timeout_s <= 0:
            result = await flow(ctx)
        else:
            async with asyncio.timeout(timeout_s):
                result = await flow(ctx)
    except asyncio.TimeoutError as exc:
        log.error(
            "%s timed out",
            name,
            extra={"vault_index": vault_index, "timeout_seconds": timeout_s},
        )
        raise asyncio.TimeoutError(
            f"{name} exceeded global timeout {timeout_s}s (vault={vault_index})\n"
            " N.B. Transactions confirmed before the timeout are final. "
            "The limit can be changed via `global_timeout_seconds`."
        ) from exc

    log.info("%s completed", name, extra={"vault_index": vault_index})
    return result

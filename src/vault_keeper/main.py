"""CLI entrypoint for the vault keeper."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError

from .checks.pre_checks import PreCheckError
from .errors import OperationCancelled, VaultKeeperError
from .logger import setup_logging
from .processors import FeeSchedule
from .settings import KeeperSettings
from .state import AppState

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    add_help_option=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Keeper for tokenized index vaults: deposits, redemptions, fees and admin.",
)

VaultIndex = Annotated[
    int, typer.Argument(min=0, help="Vault index within the factory.")
]
SharePrice = Annotated[
    int | None,
    typer.Argument(
        min=0,
        help="Share price override in raw stablecoin units per whole share.",
    ),
]
FeesAmount = Annotated[
    int | None,
    typer.Option(
        "--fees-amount",
        min=0,
        help="Fee amount to mint, in raw stablecoin units, instead of the accrued figure.",
    ),
]


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("vault_keeper")


def _redacted_dump(settings: KeeperSettings) -> dict:
    """Return settings as dict with secrets redacted."""
    return settings.as_safe_dict()


def _state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if not isinstance(state, AppState):
        raise typer.BadParameter("configuration was not loaded")
    return state


def _warn_unconfirmed(receipt: Any) -> None:
    if receipt.unconfirmed:
        signatures = ", ".join(leg.signature or "?" for leg in receipt.unconfirmed)
        typer.echo(
            f"{len(receipt.unconfirmed)} swap(s) were sent but not confirmed; "
            f"check before retrying: {signatures}"
        )


def _execute(
    ctx: typer.Context,
    name: str,
    flow: Callable[[Any], Awaitable[Any]],
    vault_index: int | None = None,
    require_signer: bool = True,
) -> Any:
    """Run ``flow`` and map keeper failures to exit codes.

    A cancelled operation (dry run or declined confirmation) exits 0; any
    other keeper failure exits 1.
    """
    from .pipeline.run import build_services, run_operation

    state = _state(ctx)
    signer = None
    if require_signer:
        try:
            signer = state.settings.load_keypair()
        except (ValueError, OSError) as e:
            raise typer.BadParameter(
                str(e), param_hint=["--keypair", "VAULT_KEEPER_PRIVATE_KEY"]
            ) from e

    services = build_services(state.settings, signer)
    try:
        return asyncio.run(
            run_operation(
                state,
                name,
                flow,
                services=services,
                vault_index=vault_index,
                confirm=lambda prompt: typer.confirm(prompt, default=False),
            )
        )
    except OperationCancelled as e:
        state.logger.info("%s", e)
        typer.echo(str(e))
        raise typer.Exit(code=0) from e
    except (VaultKeeperError, PreCheckError, asyncio.TimeoutError) as e:
        state.logger.error("%s failed: %s", name, e)
        raise typer.Exit(code=1) from e


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [vault_keeper] table).",
        ),
    ] = None,
    rpc_url: Annotated[
        str | None,
        typer.Option("--rpc-url", help="Ledger JSON-RPC endpoint."),
    ] = None,
    keypair: Annotated[
        Path | None,
        typer.Option("--keypair", "-k", help="Path to a JSON byte-array keypair file."),
    ] = None,
    dry_run: Annotated[
        bool | None,
        typer.Option(
            "--dry-run/--no-dry-run",
            help="Plan and log only; submit nothing.",
        ),
    ] = None,
    assume_yes: Annotated[
        bool | None,
        typer.Option("--yes", "-y", help="Submit without asking for confirmation."),
    ] = None,
    deposit_strict: Annotated[
        bool | None,
        typer.Option(
            "--strict/--skip-failed-swaps",
            help="Abort remaining deposit swaps on the first failed asset.",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config (with secrets redacted) and exit.",
        ),
    ] = False,
):
    """Load configuration shared by every command.

    Precedence is CLI options, then VAULT_KEEPER_* environment variables,
    then the TOML config file.
    """
    if config_path:
        os.environ["VAULT_KEEPER_CONFIG"] = str(config_path)

    init_kwargs: dict[str, Any] = {}
    if rpc_url is not None:
        init_kwargs["rpc_url"] = rpc_url
    if keypair is not None:
        init_kwargs["keypair_path"] = keypair
    if dry_run is not None:
        init_kwargs["dry_run"] = dry_run
    if assume_yes is not None:
        init_kwargs["assume_yes"] = assume_yes
    if deposit_strict is not None:
        init_kwargs["deposit_strict"] = deposit_strict
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()

    try:
        settings = KeeperSettings(**init_kwargs)
    except ValidationError as e:
        raise typer.BadParameter(str(e)) from e

    setup_logging(settings.log_level)
    ctx.obj = AppState(settings=settings, logger=_build_logger())

    if show_config:
        typer.echo(json.dumps(_redacted_dump(settings), indent=2))
        raise typer.Exit(code=0)


@app.command()
def deposit(
    ctx: typer.Context,
    vault_index: VaultIndex,
    amount: Annotated[
        int, typer.Argument(min=1, help="Stablecoin amount in raw units.")
    ],
    share_price: SharePrice = None,
):
    """Deposit stablecoin and swap it into the vault's underlying assets."""
    from .pipeline.deposit import run_deposit
    from .report import format_receipt

    receipt = _execute(
        ctx, "deposit", lambda c: run_deposit(c, amount, share_price), vault_index
    )
    format_receipt(receipt)
    if receipt.skipped:
        typer.echo(
            f"{len(receipt.skipped)} asset swap(s) skipped; "
            "their stablecoin remains in the vault."
        )
    _warn_unconfirmed(receipt)


@app.command()
def redeem(
    ctx: typer.Context,
    vault_index: VaultIndex,
    shares: Annotated[
        int, typer.Argument(min=1, help="Vault shares to redeem, in raw units.")
    ],
    share_price: SharePrice = None,
):
    """Unwind the vault's assets pro rata and pay out stablecoin for shares."""
    from .pipeline.redeem import run_redeem
    from .report import format_receipt

    receipt = _execute(
        ctx, "redeem", lambda c: run_redeem(c, shares, share_price), vault_index
    )
    format_receipt(receipt)
    _warn_unconfirmed(receipt)


@app.command("distribute-fees")
def distribute_fees(
    ctx: typer.Context,
    vault_index: VaultIndex,
    share_price: SharePrice = None,
    fees_amount: FeesAmount = None,
):
    """Mint accrued management fees as shares to creator and platform."""
    from .pipeline.fees import run_distribute_fees
    from .report import format_receipt

    receipt = _execute(
        ctx,
        "distribute-fees",
        lambda c: run_distribute_fees(c, share_price, fees_amount),
        vault_index,
    )
    format_receipt(receipt)


@app.command("claim-fee")
def claim_fee(
    ctx: typer.Context,
    vault_index: VaultIndex,
    share_price: SharePrice = None,
    fees_amount: FeesAmount = None,
):
    """Claim accrued management fees; must be signed by the vault admin."""
    from .pipeline.fees import run_claim_fee
    from .report import format_receipt

    receipt = _execute(
        ctx,
        "claim-fee",
        lambda c: run_claim_fee(c, share_price, fees_amount),
        vault_index,
    )
    format_receipt(receipt)


@app.command()
def pause(ctx: typer.Context, vault_index: VaultIndex):
    """Pause a vault."""
    from .pipeline.admin import run_set_paused
    from .report import format_receipt

    receipt = _execute(
        ctx, "pause", lambda c: run_set_paused(c, True), vault_index
    )
    format_receipt(receipt)


@app.command()
def resume(ctx: typer.Context, vault_index: VaultIndex):
    """Resume a paused vault."""
    from .pipeline.admin import run_set_paused
    from .report import format_receipt

    receipt = _execute(
        ctx, "resume", lambda c: run_set_paused(c, False), vault_index
    )
    format_receipt(receipt)


@app.command("update-fees")
def update_fees(
    ctx: typer.Context,
    entry_bps: Annotated[int, typer.Option("--entry-bps", min=0, help="Entry fee.")],
    exit_bps: Annotated[int, typer.Option("--exit-bps", min=0, help="Exit fee.")],
    min_management_bps: Annotated[
        int, typer.Option("--min-management-bps", min=0, help="Lowest vault fee.")
    ],
    max_management_bps: Annotated[
        int, typer.Option("--max-management-bps", min=0, help="Highest vault fee.")
    ],
    creator_ratio_bps: Annotated[
        int,
        typer.Option("--creator-ratio-bps", min=0, help="Creator share of fees."),
    ],
    platform_ratio_bps: Annotated[
        int,
        typer.Option("--platform-ratio-bps", min=0, help="Platform share of fees."),
    ],
    vault_creation_fee: Annotated[
        int,
        typer.Option(
            "--vault-creation-fee", min=0, help="Vault creation fee, raw stablecoin."
        ),
    ] = 0,
):
    """Replace the factory's fee parameters; must be signed by the factory admin."""
    from .pipeline.admin import run_update_fees
    from .report import format_receipt

    schedule = FeeSchedule(
        entry_fee_bps=entry_bps,
        exit_fee_bps=exit_bps,
        vault_creation_fee_usdc=vault_creation_fee,
        min_management_fee_bps=min_management_bps,
        max_management_fee_bps=max_management_bps,
        vault_creator_fee_ratio_bps=creator_ratio_bps,
        platform_fee_ratio_bps=platform_ratio_bps,
    )
    receipt = _execute(ctx, "update-fees", lambda c: run_update_fees(c, schedule))
    format_receipt(receipt)


@app.command()
def valuate(ctx: typer.Context, vault_index: VaultIndex):
    """Print the vault's GAV, NAV and accrued fees. Read-only."""
    from .pipeline.valuation import valuate_vault
    from .report import format_valuation

    async def _valuate(c):
        await valuate_vault(c)
        return c

    pipeline_ctx = _execute(
        ctx, "valuate", _valuate, vault_index, require_signer=False
    )
    format_valuation(pipeline_ctx.snapshot_required, pipeline_ctx.valuation_required)


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()

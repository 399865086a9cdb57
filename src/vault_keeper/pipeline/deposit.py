"""Deposit stablecoin into a vault and swap it into the underlying assets."""

from __future__ import annotations

from spl.token.instructions import (
    create_idempotent_associated_token_account,
    get_associated_token_address,
)

from ..checks.pre_checks import Operation, PreCheckError
from ..errors import (
    ConfirmationTimeoutError,
    InvariantViolation,
    PoolNotFoundError,
    QuoteExpiredError,
    TransientNetworkError,
)
from ..ledger import instructions as ix
from ..ledger.layout import UnderlyingAsset
from ..processors import allocation_amounts, deposit_breakdown
from ..report.receipts import DepositReceipt, LegStatus, SwapLeg
from .context import PipelineContext
from .preflight import run_preflight
from .swaps import ensure_pool, swap_with_requote

# failures that skip one asset instead of the whole deposit
SKIPPABLE_SWAP_ERRORS = (PoolNotFoundError, TransientNetworkError, QuoteExpiredError)


def unconfirmed_leg(mint: str, amount: int, e: ConfirmationTimeoutError) -> SwapLeg:
    """A leg whose transaction was sent but may or may not have landed."""
    return SwapLeg(
        mint,
        amount,
        status=LegStatus.UNCONFIRMED,
        signature=e.signature,
        reason=str(e),
    )


async def run_deposit(
    ctx: PipelineContext,
    amount: int,
    share_price_override: int | None = None,
) -> DepositReceipt:
    """Deposit ``amount`` raw stablecoin units and allocate them across assets.

    The deposit itself settles first. Each asset's swap then moves its slice
    of the gross amount out of the vault's stablecoin account and into the
    vault's asset account within a single transaction, so a failed swap
    leaves the stablecoin in custody. Slices are capped at the stablecoin
    the vault holds once the deposit has settled.

    Args:
        ctx: Pipeline context with a signer
        amount: Gross deposit in raw stablecoin units
        share_price_override: Share price passed to the program instead of
            the valuation's NAV per token

    Raises:
        InvariantViolation: If the amount or the vault configuration is invalid
        PreCheckError: If the vault cannot accept deposits
        OperationCancelled: On dry run or declined confirmation
        LedgerRejectionError: If the program rejects any transaction
    """
    if amount <= 0:
        raise InvariantViolation(f"deposit amount must be positive, got {amount}")

    s = ctx.state.settings
    svc = ctx.services
    index = ctx.vault_index_required
    keeper = svc.signer
    stablecoin = s.stablecoin_pubkey

    await run_preflight(
        ctx, Operation.DEPOSIT, require_priced=share_price_override is None
    )
    snapshot = ctx.snapshot_required
    factory, vault, addrs = snapshot.factory, snapshot.vault, snapshot.addresses

    user_stablecoin = get_associated_token_address(keeper, stablecoin)
    balance = await svc.reader.read_token_balance(user_stablecoin)
    if balance < amount:
        raise PreCheckError(
            f"Keeper holds {balance} stablecoin units, deposit needs {amount}"
        )

    price = (
        share_price_override
        if share_price_override is not None
        else ctx.valuation_required.nav_per_token
    )
    breakdown = deposit_breakdown(
        amount,
        factory.entry_fee_bps,
        price,
        snapshot.share_decimals,
        management_fee_bps=vault.management_fee_bps,
    )
    plan = allocation_amounts(amount, vault.underlying_assets)
    ctx.step(
        "Deposit %d: entry fee %d, management fee (est.) %d, net %d, "
        "share price %d, expected shares %d",
        amount,
        breakdown.entry_fee,
        breakdown.management_fee,
        breakdown.net_amount,
        breakdown.share_price,
        breakdown.expected_shares,
    )
    for asset, asset_amount in plan:
        ctx.state.logger.info(
            "  %s: %d bps -> %d", asset.mint, asset.allocation_bps, asset_amount
        )

    ctx.decision_point(
        f"deposit {amount} into vault {index} for ~{breakdown.expected_shares} shares "
        f"across {len(plan)} assets"
    )

    user_vault_account = get_associated_token_address(keeper, addrs.vault_mint)
    fee_recipient_stablecoin = get_associated_token_address(
        factory.fee_recipient, stablecoin
    )
    admin_stablecoin = get_associated_token_address(vault.admin, stablecoin)
    deposit_signature = await svc.submitter_required.submit(
        [
            create_idempotent_associated_token_account(
                payer=keeper, owner=keeper, mint=addrs.vault_mint
            ),
            create_idempotent_associated_token_account(
                payer=keeper, owner=factory.fee_recipient, mint=stablecoin
            ),
            create_idempotent_associated_token_account(
                payer=keeper, owner=vault.admin, mint=stablecoin
            ),
            ix.deposit(
                s.program_pubkey,
                user=keeper,
                factory=addrs.factory,
                vault=addrs.vault,
                vault_mint=addrs.vault_mint,
                user_stablecoin_account=user_stablecoin,
                stablecoin_mint=stablecoin,
                vault_stablecoin_account=addrs.vault_stablecoin,
                user_vault_account=user_vault_account,
                fee_recipient_stablecoin_account=fee_recipient_stablecoin,
                vault_admin_stablecoin_account=admin_stablecoin,
                vault_index=index,
                amount=amount,
                etf_share_price=price,
            ),
        ]
    )
    ctx.step("Deposit confirmed: %s", deposit_signature)

    available = await svc.reader.read_token_balance(addrs.vault_stablecoin)
    legs: list[SwapLeg] = []
    for asset, asset_amount in plan:
        mint = str(asset.mint)
        if asset_amount > available:
            ctx.step.warning(
                "Vault holds %d stablecoin; capping %s slice %d -> %d",
                available,
                mint,
                asset_amount,
                available,
            )
            asset_amount = available
        available -= asset_amount
        if asset.mint == stablecoin:
            legs.append(SwapLeg(mint, asset_amount, asset_amount, LegStatus.HELD))
            ctx.step("%s is the stablecoin; %d held as-is", mint, asset_amount)
            continue
        if asset_amount == 0:
            legs.append(SwapLeg(mint, 0, status=LegStatus.EMPTY))
            continue

        try:
            leg = await _swap_into_vault(ctx, asset, asset_amount)
        except SKIPPABLE_SWAP_ERRORS as e:
            if s.deposit_strict:
                ctx.step.warning(
                    "Swap into %s failed, aborting remaining swaps: %s", mint, e
                )
                raise
            ctx.step.warning(
                "Skipping %s, %d stays in stablecoin: %s", mint, asset_amount, e
            )
            legs.append(
                SwapLeg(mint, asset_amount, status=LegStatus.SKIPPED, reason=str(e))
            )
            continue
        except ConfirmationTimeoutError as e:
            if s.deposit_strict:
                raise
            ctx.step.warning(
                "Swap into %s sent but unconfirmed, continuing: %s", mint, e
            )
            legs.append(unconfirmed_leg(mint, asset_amount, e))
            continue
        legs.append(leg)

    receipt = DepositReceipt(
        vault_index=index,
        breakdown=breakdown,
        deposit_signature=deposit_signature,
        legs=legs,
    )
    ctx.step(
        "Deposit into vault %d complete: %d swapped, %d skipped, %d unconfirmed",
        index,
        sum(1 for leg in legs if leg.status == LegStatus.SWAPPED),
        len(receipt.skipped),
        len(receipt.unconfirmed),
    )
    return receipt


async def _swap_into_vault(
    ctx: PipelineContext, asset: UnderlyingAsset, amount: int
) -> SwapLeg:
    s = ctx.state.settings
    svc = ctx.services
    keeper = svc.signer
    stablecoin = s.stablecoin_pubkey
    addrs = ctx.snapshot_required.addresses

    await ensure_pool(ctx, asset.mint, stablecoin)

    vault_asset_account = get_associated_token_address(addrs.vault, asset.mint)
    prefix = [
        create_idempotent_associated_token_account(
            payer=keeper, owner=addrs.vault, mint=asset.mint
        ),
        ix.transfer_vault_to_user(
            s.program_pubkey,
            user=keeper,
            factory=addrs.factory,
            vault=addrs.vault,
            vault_stablecoin_account=addrs.vault_stablecoin,
            user_stablecoin_account=get_associated_token_address(keeper, stablecoin),
            vault_index=ctx.vault_index_required,
            amount=amount,
        ),
    ]
    route, signature = await swap_with_requote(
        ctx,
        input_mint=stablecoin,
        output_mint=asset.mint,
        amount=amount,
        destination=vault_asset_account,
        prefix=prefix,
    )
    ctx.step(
        "Swapped %d stablecoin into %s (quoted %d): %s",
        amount,
        asset.mint,
        route.out_amount,
        signature,
    )
    return SwapLeg(
        mint=str(asset.mint),
        amount_in=amount,
        quoted_out=route.out_amount,
        status=LegStatus.SWAPPED,
        signature=signature,
    )

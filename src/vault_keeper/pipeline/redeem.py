"""Redeem vault shares: unwind assets into custody, then finalize the payout."""

from __future__ import annotations

from solders.instruction import Instruction
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    TransferParams,
    create_idempotent_associated_token_account,
    get_associated_token_address,
    transfer,
)

from ..checks.pre_checks import CheckResult, Operation, PreCheckError
from ..errors import (
    ConfirmationTimeoutError,
    InsufficientLiquidityError,
    InvariantViolation,
)
from ..ledger import instructions as ix
from ..ledger.reader import AssetHolding
from ..processors import (
    downscale_shares,
    pro_rata_amount,
    redeem_breakdown,
    required_stablecoin,
    share_price,
)
from ..report.receipts import LegStatus, RedeemReceipt, SwapLeg
from .context import PipelineContext
from .deposit import SKIPPABLE_SWAP_ERRORS, unconfirmed_leg
from .preflight import run_preflight
from .swaps import ensure_pool, swap_with_requote


def _supply_checks(shares: int):
    def _checks(ctx: PipelineContext) -> list[CheckResult]:
        supply = ctx.snapshot_required.vault.total_supply
        return [
            CheckResult(
                name="supply",
                passed=supply > 0,
                message=f"vault has {supply} shares outstanding",
            ),
            CheckResult(
                name="requested shares",
                passed=shares <= supply,
                message=f"redeeming {shares} of {supply} shares",
            ),
        ]

    return _checks


async def run_redeem(
    ctx: PipelineContext,
    shares: int,
    share_price_override: int | None = None,
) -> RedeemReceipt:
    """Redeem ``shares`` raw vault-share units for stablecoin.

    Each underlying asset's pro-rata slice is withdrawn to the keeper's
    transit account and swapped straight back into the vault's stablecoin
    account in one transaction. Finalize then burns the shares and pays out,
    downscaled to what the vault's stablecoin can cover.

    Raises:
        InvariantViolation: If ``shares`` is not positive
        PreCheckError: If the vault has no supply or the keeper lacks the shares
        InsufficientLiquidityError: If not a single share can be paid out
        OperationCancelled: On dry run or declined confirmation
        LedgerRejectionError: If the program rejects any transaction
    """
    if shares <= 0:
        raise InvariantViolation(f"share amount must be positive, got {shares}")

    s = ctx.state.settings
    svc = ctx.services
    log = ctx.state.logger
    index = ctx.vault_index_required
    keeper = svc.signer

    await run_preflight(ctx, Operation.REDEEM, extra_checks=_supply_checks(shares))
    snapshot = ctx.snapshot_required
    addrs = snapshot.addresses

    user_vault_account = get_associated_token_address(keeper, addrs.vault_mint)
    held = await svc.reader.read_token_balance(user_vault_account)
    if held < shares:
        raise PreCheckError(f"Keeper holds {held} shares, redeem needs {shares}")

    supply = snapshot.vault.total_supply
    plan = [
        (holding, pro_rata_amount(holding.balance, shares, supply))
        for holding in snapshot.holdings
    ]
    ctx.step("Pro-rata withdrawal for %d of %d shares", shares, supply)
    for holding, amount in plan:
        log.info("  %s: %d of %d", holding.mint, amount, holding.balance)

    ctx.decision_point(
        f"redeem {shares} shares of vault {index}, unwinding {len(plan)} assets"
    )

    legs: list[SwapLeg] = []
    for holding, amount in plan:
        mint = str(holding.mint)
        if amount == 0:
            legs.append(SwapLeg(mint, 0, status=LegStatus.EMPTY))
            continue
        if holding.mint == s.stablecoin_pubkey:
            legs.append(await _return_stablecoin(ctx, holding, amount))
            continue
        try:
            legs.append(await _unwind_asset(ctx, holding, amount))
        except SKIPPABLE_SWAP_ERRORS as e:
            ctx.step.warning("Skipping %s, contributes 0 to the payout: %s", mint, e)
            legs.append(
                SwapLeg(mint, amount, status=LegStatus.SKIPPED, reason=str(e))
            )
        except ConfirmationTimeoutError as e:
            ctx.step.warning("Unwind of %s sent but unconfirmed: %s", mint, e)
            legs.append(unconfirmed_leg(mint, amount, e))

    vault = await svc.reader.read_vault(index)
    available = await svc.reader.read_token_balance(addrs.vault_stablecoin)
    required = required_stablecoin(shares, vault.total_assets, vault.total_supply)
    redeemable = shares
    if available < required:
        redeemable = downscale_shares(
            shares, available, vault.total_assets, vault.total_supply
        )
        if redeemable == 0:
            ctx.step.warning(
                "Vault holds %d stablecoin, %d required; nothing redeemable",
                available,
                required,
            )
            raise InsufficientLiquidityError(available, required)
        ctx.step.warning(
            "Vault holds %d stablecoin, %d required; downscaling %d -> %d shares",
            available,
            required,
            shares,
            redeemable,
        )
    else:
        ctx.step(
            "Liquidity check passed: %d available, %d required", available, required
        )

    price = (
        share_price_override
        if share_price_override is not None
        else share_price(
            vault.total_assets, vault.total_supply, snapshot.share_decimals
        )
    )
    breakdown = redeem_breakdown(
        redeemable, price, snapshot.share_decimals, snapshot.factory.exit_fee_bps
    )

    stablecoin = s.stablecoin_pubkey
    user_stablecoin = get_associated_token_address(keeper, stablecoin)
    fee_recipient_stablecoin = get_associated_token_address(
        snapshot.factory.fee_recipient, stablecoin
    )
    admin_stablecoin = get_associated_token_address(vault.admin, stablecoin)
    signature = await svc.submitter_required.submit(
        [
            create_idempotent_associated_token_account(
                payer=keeper, owner=keeper, mint=stablecoin
            ),
            create_idempotent_associated_token_account(
                payer=keeper, owner=snapshot.factory.fee_recipient, mint=stablecoin
            ),
            create_idempotent_associated_token_account(
                payer=keeper, owner=vault.admin, mint=stablecoin
            ),
            ix.finalize_redeem(
                s.program_pubkey,
                user=keeper,
                factory=addrs.factory,
                vault=addrs.vault,
                vault_mint=addrs.vault_mint,
                user_vault_account=user_vault_account,
                vault_stablecoin_account=addrs.vault_stablecoin,
                user_stablecoin_account=user_stablecoin,
                fee_recipient_stablecoin_account=fee_recipient_stablecoin,
                vault_admin_stablecoin_account=admin_stablecoin,
                vault_index=index,
                vault_token_amount=redeemable,
                etf_share_price=price,
            ),
        ]
    )
    ctx.step(
        "Finalized redeem of %d shares: gross %d, exit fee %d, net %d: %s",
        breakdown.shares,
        breakdown.gross_amount,
        breakdown.exit_fee,
        breakdown.net_amount,
        signature,
    )
    return RedeemReceipt(
        vault_index=index,
        requested_shares=shares,
        breakdown=breakdown,
        finalize_signature=signature,
        available_stablecoin=available,
        required_stablecoin=required,
        legs=legs,
    )


def _withdraw(
    ctx: PipelineContext, holding: AssetHolding, amount: int
) -> list[Instruction]:
    """Create the keeper's transit account and withdraw ``amount`` into it."""
    keeper = ctx.services.signer
    addrs = ctx.snapshot_required.addresses
    transit = get_associated_token_address(keeper, holding.mint)
    return [
        create_idempotent_associated_token_account(
            payer=keeper, owner=keeper, mint=holding.mint
        ),
        ix.withdraw_underlying_to_user(
            ctx.state.settings.program_pubkey,
            user=keeper,
            factory=addrs.factory,
            vault=addrs.vault,
            vault_asset_account=holding.account,
            user_asset_account=transit,
            vault_index=ctx.vault_index_required,
            amount=amount,
        ),
    ]


async def _unwind_asset(
    ctx: PipelineContext, holding: AssetHolding, amount: int
) -> SwapLeg:
    stablecoin = ctx.state.settings.stablecoin_pubkey
    await ensure_pool(ctx, holding.mint, stablecoin)
    route, signature = await swap_with_requote(
        ctx,
        input_mint=holding.mint,
        output_mint=stablecoin,
        amount=amount,
        destination=ctx.snapshot_required.addresses.vault_stablecoin,
        prefix=_withdraw(ctx, holding, amount),
    )
    ctx.step(
        "Unwound %d of %s into vault stablecoin (quoted %d): %s",
        amount,
        holding.mint,
        route.out_amount,
        signature,
    )
    return SwapLeg(
        mint=str(holding.mint),
        amount_in=amount,
        quoted_out=route.out_amount,
        status=LegStatus.SWAPPED,
        signature=signature,
    )


async def _return_stablecoin(
    ctx: PipelineContext, holding: AssetHolding, amount: int
) -> SwapLeg:
    """Stablecoin held as an asset needs no swap, only a move back to custody."""
    keeper = ctx.services.signer
    transit = get_associated_token_address(keeper, holding.mint)
    instructions = _withdraw(ctx, holding, amount)
    instructions.append(
        transfer(
            TransferParams(
                program_id=TOKEN_PROGRAM_ID,
                source=transit,
                dest=ctx.snapshot_required.addresses.vault_stablecoin,
                owner=keeper,
                amount=amount,
            )
        )
    )
    signature = await ctx.services.submitter_required.submit(instructions)
    ctx.step("Returned %d held stablecoin to vault custody: %s", amount, signature)
    return SwapLeg(
        mint=str(holding.mint),
        amount_in=amount,
        quoted_out=amount,
        status=LegStatus.HELD,
        signature=signature,
    )

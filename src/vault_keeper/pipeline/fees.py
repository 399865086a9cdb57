"""Mint accrued management fees as vault shares to creator and platform."""

from __future__ import annotations

from spl.token.instructions import (
    create_idempotent_associated_token_account,
    get_associated_token_address,
)

from ..checks.pre_checks import CheckResult, Operation, check_signer
from ..ledger import instructions as ix
from ..processors import share_price, split_fees
from ..report.receipts import FeeReceipt
from .context import PipelineContext
from .preflight import run_preflight


async def run_distribute_fees(
    ctx: PipelineContext,
    share_price_override: int | None = None,
    fees_amount_override: int | None = None,
) -> FeeReceipt:
    """Mint the vault's accrued fees as shares; the keeper signs as collector."""
    return await _mint_fees(
        ctx,
        Operation.DISTRIBUTE_FEES,
        share_price_override,
        fees_amount_override,
    )


async def run_claim_fee(
    ctx: PipelineContext,
    share_price_override: int | None = None,
    fees_amount_override: int | None = None,
) -> FeeReceipt:
    """Mint the vault's accrued fees as shares; the vault admin must sign."""
    return await _mint_fees(
        ctx,
        Operation.CLAIM_FEE,
        share_price_override,
        fees_amount_override,
    )


async def _mint_fees(
    ctx: PipelineContext,
    operation: Operation,
    share_price_override: int | None,
    fees_amount_override: int | None,
) -> FeeReceipt:
    s = ctx.state.settings
    svc = ctx.services
    index = ctx.vault_index_required
    signer = svc.signer

    def _admin_signs(c: PipelineContext) -> list[CheckResult]:
        return [check_signer(signer, c.snapshot_required.vault.admin, "vault admin")]

    extra_checks = _admin_signs if operation == Operation.CLAIM_FEE else None
    await run_preflight(
        ctx,
        operation,
        require_priced=fees_amount_override is None,
        extra_checks=extra_checks,
    )
    snapshot = ctx.snapshot_required
    factory, vault, addrs = snapshot.factory, snapshot.vault, snapshot.addresses

    fees = (
        fees_amount_override
        if fees_amount_override is not None
        else ctx.valuation_required.accrued_fees
    )
    if fees <= 0:
        ctx.step("No accrued fees on vault %d; nothing to mint", index)
        return FeeReceipt(
            vault_index=index, action=operation.value, noop_reason="no accrued fees"
        )
    if vault.total_supply == 0 or vault.total_assets == 0:
        ctx.step("Vault %d is empty; fees cannot be priced in shares", index)
        return FeeReceipt(
            vault_index=index,
            action=operation.value,
            noop_reason="vault has no shares or assets",
        )

    price = (
        share_price_override
        if share_price_override is not None
        else share_price(
            vault.total_assets, vault.total_supply, snapshot.share_decimals
        )
    )
    split = split_fees(
        fees, factory.vault_creator_fee_ratio_bps, price, snapshot.share_decimals
    )
    ctx.step(
        "Fees %d at share price %d: creator %d (%d shares), platform %d (%d shares)",
        fees,
        price,
        split.creator_amount,
        split.creator_shares,
        split.platform_amount,
        split.platform_shares,
    )

    ctx.decision_point(
        f"{operation.value} on vault {index}: mint {split.total_shares} shares"
    )

    creator_account = get_associated_token_address(vault.admin, addrs.vault_mint)
    platform_account = get_associated_token_address(
        factory.fee_recipient, addrs.vault_mint
    )
    common = dict(
        factory=addrs.factory,
        vault=addrs.vault,
        vault_mint=addrs.vault_mint,
        vault_index=index,
        share_price=price,
        management_fees_amount=fees,
    )
    if operation == Operation.CLAIM_FEE:
        mint_ix = ix.claim_management_fee(
            s.program_pubkey,
            creator=signer,
            creator_vault_account=creator_account,
            fee_recipient_vault_account=platform_account,
            **common,
        )
    else:
        mint_ix = ix.distribute_accrued_fees(
            s.program_pubkey,
            collector=signer,
            vault_admin_vault_account=creator_account,
            fee_recipient_vault_account=platform_account,
            **common,
        )

    signature = await svc.submitter_required.submit(
        [
            create_idempotent_associated_token_account(
                payer=signer, owner=vault.admin, mint=addrs.vault_mint
            ),
            create_idempotent_associated_token_account(
                payer=signer, owner=factory.fee_recipient, mint=addrs.vault_mint
            ),
            mint_ix,
        ]
    )
    ctx.step(
        "Minted %d fee shares on vault %d: %s", split.total_shares, index, signature
    )
    return FeeReceipt(
        vault_index=index, action=operation.value, split=split, signature=signature
    )

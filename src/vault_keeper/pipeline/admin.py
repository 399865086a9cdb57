"""Administrative operations: pause, resume and factory fee updates."""

from __future__ import annotations

from ..checks.pre_checks import PreCheckError
from ..ledger import instructions as ix
from ..ledger import pda
from ..ledger.layout import FactoryState, VaultState
from ..processors import FeeSchedule, validate_fee_schedule
from ..report.receipts import AdminReceipt
from .context import PipelineContext


async def run_set_paused(ctx: PipelineContext, paused: bool) -> AdminReceipt:
    """Pause or resume a vault. A vault already in that state is a no-op.

    Raises:
        PreCheckError: If the vault is closed or the signer is not an admin
        OperationCancelled: On dry run or declined confirmation
    """
    svc = ctx.services
    index = ctx.vault_index_required
    action = "pause" if paused else "resume"
    target = VaultState.PAUSED if paused else VaultState.ACTIVE

    factory = await svc.reader.read_factory()
    vault = await svc.reader.read_vault(index)
    ctx.step("Vault %d (%s) is %s", index, vault.symbol, vault.state.name.lower())

    if vault.state == target:
        detail = f"vault {index} is already {target.name.lower()}"
        ctx.step("Nothing to do: %s", detail)
        return AdminReceipt(action=action, detail=detail, vault_index=index)
    if vault.state == VaultState.CLOSED:
        raise PreCheckError(f"Vault {index} is closed and cannot {action}")

    signer = svc.signer
    if signer not in (vault.admin, factory.admin):
        raise PreCheckError(
            f"Signer {signer} is neither the vault admin {vault.admin} "
            f"nor the factory admin {factory.admin}"
        )

    ctx.decision_point(f"{action} vault {index}")

    addrs = svc.reader.addresses(index)
    signature = await svc.submitter_required.submit(
        [
            ix.set_vault_paused(
                ctx.state.settings.program_pubkey,
                admin=signer,
                factory=addrs.factory,
                vault=addrs.vault,
                vault_index=index,
                paused=paused,
            )
        ]
    )
    ctx.step("Vault %d is now %s: %s", index, target.name.lower(), signature)
    return AdminReceipt(
        action=action,
        detail=f"vault {index} {target.name.lower()}",
        vault_index=index,
        signature=signature,
    )


async def run_update_fees(
    ctx: PipelineContext, schedule: FeeSchedule
) -> AdminReceipt:
    """Replace the factory's fee parameters.

    Raises:
        InvariantViolation: If the schedule breaks a fee bound
        PreCheckError: If the signer is not the factory admin
        OperationCancelled: On dry run or declined confirmation
    """
    validate_fee_schedule(schedule)
    svc = ctx.services

    factory = await svc.reader.read_factory()
    if factory.state == FactoryState.DEPRECATED:
        raise PreCheckError("Factory is deprecated")
    signer = svc.signer
    if signer != factory.admin:
        raise PreCheckError(f"Signer {signer} is not the factory admin {factory.admin}")
    ctx.step(
        "Fees: entry %d -> %d, exit %d -> %d, management %d..%d -> %d..%d bps",
        factory.entry_fee_bps,
        schedule.entry_fee_bps,
        factory.exit_fee_bps,
        schedule.exit_fee_bps,
        factory.min_management_fee_bps,
        factory.max_management_fee_bps,
        schedule.min_management_fee_bps,
        schedule.max_management_fee_bps,
    )

    ctx.decision_point("update factory fees")

    signature = await svc.submitter_required.submit(
        [
            ix.update_factory_fees(
                ctx.state.settings.program_pubkey,
                admin=signer,
                factory=pda.factory_address(ctx.state.settings.program_pubkey),
                entry_fee_bps=schedule.entry_fee_bps,
                exit_fee_bps=schedule.exit_fee_bps,
                vault_creation_fee_usdc=schedule.vault_creation_fee_usdc,
                min_management_fee_bps=schedule.min_management_fee_bps,
                max_management_fee_bps=schedule.max_management_fee_bps,
                vault_creator_fee_ratio_bps=schedule.vault_creator_fee_ratio_bps,
                platform_fee_ratio_bps=schedule.platform_fee_ratio_bps,
            )
        ]
    )
    ctx.step("Factory fees updated: %s", signature)
    return AdminReceipt(
        action="update-fees", detail="factory fees updated", signature=signature
    )

import struct

import pytest
from solders.pubkey import Pubkey

from builders import PROGRAM_ID, make_factory, make_snapshot, make_vault, wire_services
from vault_keeper.checks.pre_checks import PreCheckError
from vault_keeper.errors import InvariantViolation, OperationCancelled
from vault_keeper.ledger import pda
from vault_keeper.ledger.layout import FactoryState, VaultState
from vault_keeper.pipeline.admin import run_set_paused, run_update_fees
from vault_keeper.processors import FeeSchedule

SCHEDULE = FeeSchedule(
    entry_fee_bps=30,
    exit_fee_bps=30,
    vault_creation_fee_usdc=1_000_000,
    min_management_fee_bps=50,
    max_management_fee_bps=500,
    vault_creator_fee_ratio_bps=6_000,
    platform_fee_ratio_bps=4_000,
)


def _wire(services, vault_state=VaultState.ACTIVE, vault_admin=None, factory=None):
    vault_fields = {"state": vault_state}
    if vault_admin is not None:
        vault_fields["admin"] = vault_admin
    snapshot = make_snapshot(vault=make_vault(**vault_fields), factory=factory)
    return wire_services(services, snapshot)


@pytest.mark.asyncio
async def test_vault_admin_pauses(make_ctx, services, keeper):
    _wire(services, vault_admin=keeper.pubkey())

    receipt = await run_set_paused(make_ctx(), True)

    assert receipt.signature == "sig1"
    instruction = services.submitter.submit.await_args.args[0][0]
    assert instruction.data[8:] == struct.pack("<I?", 0, True)


@pytest.mark.asyncio
async def test_factory_admin_resumes(make_ctx, services, keeper):
    _wire(
        services,
        vault_state=VaultState.PAUSED,
        factory=make_factory(admin=keeper.pubkey()),
    )

    receipt = await run_set_paused(make_ctx(), False)

    assert receipt.action == "resume"
    assert not receipt.is_noop


@pytest.mark.asyncio
async def test_already_in_state_is_noop(make_ctx, services):
    _wire(services, vault_state=VaultState.PAUSED)

    receipt = await run_set_paused(make_ctx(), True)

    assert receipt.is_noop
    assert "already paused" in receipt.detail
    services.submitter.submit.assert_not_awaited()


@pytest.mark.asyncio
async def test_closed_vault_cannot_resume(make_ctx, services, keeper):
    _wire(services, vault_state=VaultState.CLOSED, vault_admin=keeper.pubkey())
    with pytest.raises(PreCheckError, match="closed"):
        await run_set_paused(make_ctx(), False)


@pytest.mark.asyncio
async def test_stranger_cannot_pause(make_ctx, services):
    _wire(services)
    with pytest.raises(PreCheckError, match="neither the vault admin"):
        await run_set_paused(make_ctx(), True)
    services.submitter.submit.assert_not_awaited()


@pytest.mark.asyncio
async def test_pause_dry_run(make_ctx, services, keeper, state):
    state.settings = state.settings.model_copy(update={"dry_run": True})
    _wire(services, vault_admin=keeper.pubkey())
    with pytest.raises(OperationCancelled):
        await run_set_paused(make_ctx(), True)


@pytest.mark.asyncio
async def test_factory_admin_updates_fees(make_ctx, services, keeper):
    _wire(services, factory=make_factory(admin=keeper.pubkey()))

    receipt = await run_update_fees(make_ctx(vault_index=None), SCHEDULE)

    assert receipt.signature == "sig1"
    instruction = services.submitter.submit.await_args.args[0][0]
    assert instruction.accounts[1].pubkey == pda.factory_address(PROGRAM_ID)
    assert struct.unpack("<HHQHHHH", instruction.data[8:]) == (
        30, 30, 1_000_000, 50, 500, 6_000, 4_000
    )


@pytest.mark.asyncio
async def test_update_fees_requires_factory_admin(make_ctx, services):
    _wire(services, factory=make_factory(admin=Pubkey.new_unique()))
    with pytest.raises(PreCheckError, match="not the factory admin"):
        await run_update_fees(make_ctx(vault_index=None), SCHEDULE)


@pytest.mark.asyncio
async def test_deprecated_factory_rejects_fee_update(make_ctx, services, keeper):
    factory = make_factory(admin=keeper.pubkey(), state=FactoryState.DEPRECATED)
    _wire(services, factory=factory)
    with pytest.raises(PreCheckError, match="deprecated"):
        await run_update_fees(make_ctx(vault_index=None), SCHEDULE)


@pytest.mark.asyncio
async def test_invalid_schedule_fails_before_any_read(make_ctx, services):
    _wire(services)
    bad = FeeSchedule(
        entry_fee_bps=2_000,
        exit_fee_bps=0,
        vault_creation_fee_usdc=0,
        min_management_fee_bps=0,
        max_management_fee_bps=0,
        vault_creator_fee_ratio_bps=10_000,
        platform_fee_ratio_bps=0,
    )
    with pytest.raises(InvariantViolation):
        await run_update_fees(make_ctx(vault_index=None), bad)
    services.reader.read_factory.assert_not_awaited()

import struct
from unittest.mock import AsyncMock

import pytest
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID
from spl.token.instructions import decode_transfer, get_associated_token_address

from builders import (
    MSOL,
    PROGRAM_ID,
    USDC,
    WSOL,
    make_snapshot,
    make_vault,
    submitted_programs,
    wire_services,
)
from vault_keeper.checks.pre_checks import PreCheckError
from vault_keeper.errors import (
    ConfirmationTimeoutError,
    InsufficientLiquidityError,
    OperationCancelled,
    TransientNetworkError,
)
from vault_keeper.ledger import instructions as ix
from vault_keeper.ledger.layout import UnderlyingAsset, instruction_discriminator
from vault_keeper.pipeline.redeem import run_redeem
from vault_keeper.report.receipts import LegStatus


def _finalize_args(services) -> tuple[int, int, int]:
    finalize = services.submitter.submit.await_args_list[-1].args[0][-1]
    assert finalize.data[:8] == instruction_discriminator("finalize_redeem")
    return struct.unpack("<IQQ", finalize.data[8:])


@pytest.fixture
def snapshot():
    return make_snapshot(
        balances={WSOL: 2_000_000_000, MSOL: 1_000_000_000},
        stablecoin_balance=0,
    )


def _wire(services, snapshot, keeper, shares_held=10**12, vault_stablecoin=600_000):
    user_shares = get_associated_token_address(
        keeper.pubkey(), snapshot.addresses.vault_mint
    )
    return wire_services(
        services,
        snapshot,
        balances={
            user_shares: shares_held,
            snapshot.addresses.vault_stablecoin: vault_stablecoin,
        },
    )


@pytest.mark.asyncio
async def test_unwinds_pro_rata_then_finalizes(make_ctx, services, snapshot, keeper):
    _wire(services, snapshot, keeper)

    receipt = await run_redeem(make_ctx(), 1_000_000)

    assert [(leg.amount_in, leg.status) for leg in receipt.legs] == [
        (1_000_000_000, LegStatus.SWAPPED),
        (500_000_000, LegStatus.SWAPPED),
    ]
    # withdraw and swap back into vault custody in one transaction
    assert submitted_programs(services, 0) == [
        ASSOCIATED_TOKEN_PROGRAM_ID,
        PROGRAM_ID,
        ix.JUPITER_PROGRAM,
    ]
    destination = services.swaps.build_instructions.await_args_list[0].args[2]
    assert destination == snapshot.addresses.vault_stablecoin

    assert not receipt.downscaled
    assert receipt.required_stablecoin == 500_000
    assert receipt.breakdown.share_price == 500_000
    assert receipt.breakdown.net_amount == 498_750
    assert _finalize_args(services) == (0, 1_000_000, 500_000)
    assert receipt.finalize_signature == "sig3"


@pytest.mark.asyncio
async def test_downscales_to_available_stablecoin(make_ctx, services, snapshot, keeper):
    _wire(services, snapshot, keeper, vault_stablecoin=250_000)

    receipt = await run_redeem(make_ctx(), 2_000_000)

    assert receipt.downscaled
    assert receipt.redeemed_shares == 500_000
    assert _finalize_args(services)[1] == 500_000


@pytest.mark.asyncio
async def test_no_liquidity_raises_without_finalizing(
    make_ctx, services, snapshot, keeper
):
    _wire(services, snapshot, keeper, vault_stablecoin=0)

    with pytest.raises(InsufficientLiquidityError) as exc_info:
        await run_redeem(make_ctx(), 2_000_000)

    assert exc_info.value.required == 1_000_000
    # only the two unwind swaps were submitted
    assert services.submitter.submit.await_count == 2


@pytest.mark.asyncio
async def test_failed_unwind_is_skipped(make_ctx, services, snapshot, keeper):
    _wire(services, snapshot, keeper)
    services.swaps.quote = AsyncMock(side_effect=TransientNetworkError("timeout"))

    receipt = await run_redeem(make_ctx(), 1_000_000)

    assert [leg.status for leg in receipt.legs] == [LegStatus.SKIPPED, LegStatus.SKIPPED]
    assert services.submitter.submit.await_count == 1


@pytest.mark.asyncio
async def test_unconfirmed_unwind_still_finalizes(make_ctx, services, snapshot, keeper):
    _wire(services, snapshot, keeper)
    services.submitter.submit = AsyncMock(
        side_effect=[ConfirmationTimeoutError("sig1", 60), "sig2", "sig3"]
    )

    receipt = await run_redeem(make_ctx(), 1_000_000)

    assert [leg.status for leg in receipt.legs] == [
        LegStatus.UNCONFIRMED,
        LegStatus.SWAPPED,
    ]
    assert receipt.unconfirmed[0].signature == "sig1"
    assert receipt.finalize_signature == "sig3"


@pytest.mark.asyncio
async def test_stablecoin_holding_is_returned_without_swap(make_ctx, services, keeper):
    vault = make_vault(
        underlying_assets=[UnderlyingAsset(USDC, 5_000), UnderlyingAsset(WSOL, 5_000)]
    )
    snapshot = make_snapshot(vault=vault, balances={USDC: 800_000, WSOL: 0})
    _wire(services, snapshot, keeper)

    receipt = await run_redeem(make_ctx(), 1_000_000)

    assert [leg.status for leg in receipt.legs] == [LegStatus.HELD, LegStatus.EMPTY]
    assert receipt.legs[0].amount_in == 400_000
    services.swaps.quote.assert_not_awaited()
    returned = services.submitter.submit.await_args_list[0].args[0]
    params = decode_transfer(returned[-1])
    assert params.program_id == TOKEN_PROGRAM_ID
    assert params.dest == snapshot.addresses.vault_stablecoin
    assert params.owner == keeper.pubkey()
    assert params.amount == 400_000


@pytest.mark.asyncio
async def test_keeper_without_enough_shares(make_ctx, services, snapshot, keeper):
    _wire(services, snapshot, keeper, shares_held=10)
    with pytest.raises(PreCheckError, match="redeem needs"):
        await run_redeem(make_ctx(), 1_000_000)
    services.submitter.submit.assert_not_awaited()


@pytest.mark.asyncio
async def test_more_shares_than_supply(make_ctx, services, snapshot, keeper):
    _wire(services, snapshot, keeper)
    with pytest.raises(PreCheckError, match="redeeming 3000000 of 2000000"):
        await run_redeem(make_ctx(), 3_000_000)


@pytest.mark.asyncio
async def test_empty_vault_cannot_redeem(make_ctx, services, keeper):
    snapshot = make_snapshot(vault=make_vault(total_supply=0, total_assets=0))
    _wire(services, snapshot, keeper)
    with pytest.raises(PreCheckError, match="0 shares outstanding"):
        await run_redeem(make_ctx(), 1)


@pytest.mark.asyncio
async def test_declined_confirmation_submits_nothing(
    make_ctx, services, snapshot, keeper, state
):
    state.settings = state.settings.model_copy(update={"assume_yes": False})
    _wire(services, snapshot, keeper)
    with pytest.raises(OperationCancelled):
        await run_redeem(make_ctx(), 1_000_000)
    services.submitter.submit.assert_not_awaited()

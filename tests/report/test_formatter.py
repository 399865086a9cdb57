from io import StringIO

import pytest
from rich.console import Console

from builders import MSOL, WSOL, make_prices, make_snapshot
from vault_keeper.processors import (
    compute_valuation,
    deposit_breakdown,
    redeem_breakdown,
    split_fees,
)
from vault_keeper.report import (
    AdminReceipt,
    DepositReceipt,
    FeeReceipt,
    LegStatus,
    RedeemReceipt,
    SwapLeg,
    format_receipt,
    format_valuation,
)


@pytest.fixture
def console():
    return Console(file=StringIO(), width=140, color_system=None)


def rendered(console: Console) -> str:
    return console.file.getvalue()


def test_format_valuation_shows_summary_and_assets(console):
    snapshot = make_snapshot(balances={WSOL: 10**9, MSOL: 2 * 10**9})
    valuation = compute_valuation(snapshot, make_prices(), now=1_700_000_000)

    format_valuation(snapshot, valuation, console=console)

    out = rendered(console)
    assert "Vault Valuation" in out
    assert "Blue Chip (BLUE)" in out
    assert "SOL" in out and "mSOL" in out
    assert "$510.00" in out
    assert "understated" not in out


def test_format_valuation_flags_unpriced_assets(console):
    snapshot = make_snapshot(balances={WSOL: 10**9, MSOL: 10**9})
    valuation = compute_valuation(
        snapshot, make_prices({WSOL: 150_000_000}), now=1_700_000_000
    )

    format_valuation(snapshot, valuation, console=console)

    out = rendered(console)
    assert "<unpriced>" in out
    assert "GAV is understated: no price for mSOL" in out


def test_deposit_receipt_lists_legs(console):
    receipt = DepositReceipt(
        vault_index=0,
        breakdown=deposit_breakdown(10_000_000, 25, 0, 6),
        deposit_signature="D" * 88,
        legs=[
            SwapLeg(str(WSOL), 5_985_000, 39_900_000, signature="A" * 88),
            SwapLeg(
                str(MSOL), 3_990_000, status=LegStatus.SKIPPED, reason="no route"
            ),
        ],
    )

    format_receipt(receipt, console=console)

    out = rendered(console)
    assert "Deposit Receipt" in out
    assert "9,975,000" in out
    assert "1:1" in out
    assert "skipped (no route)" in out
    assert "DDDDDDDD...DDDDDDDD" in out


def test_deposit_receipt_shows_unconfirmed_leg_and_fee_estimate(console):
    receipt = DepositReceipt(
        vault_index=0,
        breakdown=deposit_breakdown(10_000_000, 25, 0, 6, management_fee_bps=200),
        deposit_signature="D" * 88,
        legs=[
            SwapLeg(
                str(WSOL),
                5_985_000,
                status=LegStatus.UNCONFIRMED,
                signature="U" * 88,
                reason="timed out",
            ),
        ],
    )

    format_receipt(receipt, console=console)

    out = rendered(console)
    assert "Mgmt Fee (est.)" in out
    assert "200,000" in out
    assert "unconfirmed (timed out)" in out
    assert "UUUUUUUU...UUUUUUUU" in out


def test_redeem_receipt_marks_downscale(console):
    receipt = RedeemReceipt(
        vault_index=1,
        requested_shares=1_000_000,
        breakdown=redeem_breakdown(500_000, 500_000, 6, 25),
        finalize_signature="F" * 88,
        available_stablecoin=250_000,
        required_stablecoin=500_000,
    )

    format_receipt(receipt, console=console)

    out = rendered(console)
    assert "Redeem Receipt" in out
    assert "500,000 (downscaled)" in out
    assert "250,000 available / 500,000 required" in out


def test_fee_receipt_split(console):
    receipt = FeeReceipt(
        vault_index=0,
        action="distribute-fees",
        split=split_fees(1_001, 7_000, 500_000, 6),
        signature="S" * 88,
    )

    format_receipt(receipt, console=console)

    out = rendered(console)
    assert "Fee Receipt" in out
    assert "700 (1,400 shares)" in out
    assert "301 (602 shares)" in out


def test_noop_receipts(console):
    format_receipt(
        FeeReceipt(vault_index=0, action="claim-fee", noop_reason="no accrued fees"),
        console=console,
    )
    format_receipt(
        AdminReceipt(action="pause", detail="vault 0 already paused", vault_index=0),
        console=console,
    )

    out = rendered(console)
    assert "no-op: no accrued fees" in out
    assert "no-op: vault 0 already paused" in out

"""Rich console rendering for valuations and operation receipts."""

from __future__ import annotations

from decimal import Decimal

from rich.columns import Columns
from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table

from ..constants import KNOWN_ASSETS, USD_DECIMALS
from ..ledger.reader import VaultSnapshot
from ..processors import Valuation
from .receipts import (
    AdminReceipt,
    DepositReceipt,
    FeeReceipt,
    LegStatus,
    RedeemReceipt,
    SwapLeg,
)

Receipt = DepositReceipt | RedeemReceipt | FeeReceipt | AdminReceipt

_MINT_TO_SYMBOL: dict[str, str] = {
    mint: asset["symbol"] for mint, asset in KNOWN_ASSETS.items()
}

_STATUS_STYLE = {
    LegStatus.SWAPPED: "green",
    LegStatus.HELD: "cyan",
    LegStatus.SKIPPED: "yellow",
    LegStatus.EMPTY: "dim",
    LegStatus.UNCONFIRMED: "red",
}


def _get_symbol(mint: str) -> str:
    """Symbol for a known mint, or a truncated address."""
    return _MINT_TO_SYMBOL.get(mint, f"{mint[:4]}...{mint[-4:]}")


def _format_units(raw: int, decimals: int) -> str:
    return f"{Decimal(raw) / Decimal(10**decimals):,.{decimals}f}"


def _format_usd(micro_usd: int) -> str:
    return f"${Decimal(micro_usd) / Decimal(10**USD_DECIMALS):,.2f}"


def _truncate(signature: str | None) -> str:
    if not signature:
        return "[dim]-[/]"
    return f"{signature[:8]}...{signature[-8:]}"


def _key_value_table(style: str) -> Table:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Key", style="dim")
    table.add_column("Value", style=style)
    return table


def format_valuation(
    snapshot: VaultSnapshot, valuation: Valuation, console: Console | None = None
) -> None:
    """Print vault info, valuation summary and per-asset breakdown."""
    console = console or Console()
    vault = snapshot.vault

    vault_table = _key_value_table("cyan")
    vault_table.add_row("Index", str(snapshot.vault_index))
    vault_table.add_row("Name", f"{vault.name} ({vault.symbol})")
    vault_table.add_row("State", vault.state.name.lower())
    vault_table.add_row("Management Fee", f"{vault.management_fee_bps} bps")
    vault_table.add_row(
        "Supply", _format_units(vault.total_supply, snapshot.share_decimals)
    )
    vault_panel = Panel(
        vault_table, title="[bold]Vault Info[/]", border_style="blue"
    )

    summary_table = _key_value_table("green")
    summary_table.add_row("GAV", _format_usd(valuation.gav))
    summary_table.add_row("NAV", _format_usd(valuation.nav))
    summary_table.add_row("NAV / share", _format_usd(valuation.nav_per_token))
    summary_table.add_row("Accrued Fees", _format_usd(valuation.accrued_fees))
    summary_table.add_row("Since Accrual", f"{valuation.elapsed_seconds:,}s")
    summary_table.add_row(
        "NAV (1y fee est.)", f"[dim]{_format_usd(valuation.display_nav_estimate)}[/]"
    )
    summary_panel = Panel(
        summary_table, title="[bold]Summary[/]", border_style="green"
    )

    top_row = Columns([vault_panel, summary_panel], equal=True, expand=True)

    asset_table = Table(title=None, expand=True, show_lines=False)
    asset_table.add_column("Asset", style="cyan", no_wrap=True)
    asset_table.add_column("Balance", justify="right")
    asset_table.add_column("Price", justify="right", style="yellow")
    asset_table.add_column("Value", justify="right", style="green")

    for asset in valuation.assets:
        price = _format_usd(asset.usd_price) if asset.priced else "[red]<unpriced>[/]"
        asset_table.add_row(
            _get_symbol(asset.mint),
            _format_units(asset.balance, asset.decimals),
            price,
            _format_usd(asset.value),
        )
    asset_table.add_row(
        "Stablecoin (custody)", "", "", _format_usd(valuation.stablecoin_value)
    )
    total = f"[bold]{_format_usd(valuation.gav)}[/]"
    asset_table.add_row("[bold]TOTAL[/]", "", "", total, style="bold")

    asset_panel = Panel(asset_table, title="[bold]Assets[/]", border_style="cyan")
    parts: list = [top_row, "", asset_panel]
    if valuation.has_unpriced_assets:
        parts.append(
            "[yellow]GAV is understated: no price for "
            f"{', '.join(_get_symbol(m) for m in valuation.unpriced_assets)}[/]"
        )

    console.print()
    console.print(
        Panel(
            Group(*parts),
            title="[bold white]Vault Valuation[/]",
            border_style="white",
            padding=(1, 2),
        )
    )
    console.print()


def _legs_table(legs: list[SwapLeg]) -> Table:
    table = Table(expand=True)
    table.add_column("Asset", style="cyan", no_wrap=True)
    table.add_column("In", justify="right")
    table.add_column("Quoted Out", justify="right")
    table.add_column("Status")
    table.add_column("Signature", style="dim")
    for leg in legs:
        style = _STATUS_STYLE[leg.status]
        status = f"[{style}]{leg.status.value}[/]"
        if leg.reason:
            status = f"{status} [dim]({leg.reason})[/]"
        table.add_row(
            _get_symbol(leg.mint),
            f"{leg.amount_in:,}",
            f"{leg.quoted_out:,}" if leg.quoted_out else "-",
            status,
            _truncate(leg.signature),
        )
    return table


def format_deposit_receipt(receipt: DepositReceipt, console: Console) -> None:
    b = receipt.breakdown
    summary = _key_value_table("green")
    summary.add_row("Vault", str(receipt.vault_index))
    summary.add_row("Amount", f"{b.amount:,}")
    summary.add_row("Entry Fee", f"{b.entry_fee:,}")
    summary.add_row("Net", f"{b.net_amount:,}")
    summary.add_row("Mgmt Fee (est.)", f"{b.management_fee:,}")
    summary.add_row("Share Price", f"{b.share_price:,}" if b.share_price else "1:1")
    summary.add_row("Expected Shares", f"{b.expected_shares:,}")
    summary.add_row("Deposit Tx", _truncate(receipt.deposit_signature))
    console.print(
        Panel(
            Group(summary, "", _legs_table(receipt.legs)),
            title="[bold white]Deposit Receipt[/]",
            border_style=(
                "yellow" if receipt.skipped or receipt.unconfirmed else "green"
            ),
        )
    )


def format_redeem_receipt(receipt: RedeemReceipt, console: Console) -> None:
    b = receipt.breakdown
    summary = _key_value_table("green")
    summary.add_row("Vault", str(receipt.vault_index))
    summary.add_row("Requested Shares", f"{receipt.requested_shares:,}")
    redeemed = f"{receipt.redeemed_shares:,}"
    if receipt.downscaled:
        redeemed = f"[yellow]{redeemed} (downscaled)[/]"
    summary.add_row("Redeemed Shares", redeemed)
    summary.add_row("Share Price", f"{b.share_price:,}")
    summary.add_row("Gross", f"{b.gross_amount:,}")
    summary.add_row("Exit Fee", f"{b.exit_fee:,}")
    summary.add_row("Net Payout", f"{b.net_amount:,}")
    summary.add_row(
        "Liquidity",
        f"{receipt.available_stablecoin:,} available / "
        f"{receipt.required_stablecoin:,} required",
    )
    summary.add_row("Finalize Tx", _truncate(receipt.finalize_signature))
    console.print(
        Panel(
            Group(summary, "", _legs_table(receipt.legs)),
            title="[bold white]Redeem Receipt[/]",
            border_style=(
                "yellow" if receipt.downscaled or receipt.unconfirmed else "green"
            ),
        )
    )


def format_fee_receipt(receipt: FeeReceipt, console: Console) -> None:
    summary = _key_value_table("green")
    summary.add_row("Vault", str(receipt.vault_index))
    summary.add_row("Action", receipt.action)
    if receipt.split is None:
        summary.add_row("Result", f"[yellow]no-op: {receipt.noop_reason}[/]")
    else:
        split = receipt.split
        summary.add_row("Fees", f"{split.fees_amount:,}")
        summary.add_row("Share Price", f"{split.share_price:,}")
        summary.add_row(
            "Creator", f"{split.creator_amount:,} ({split.creator_shares:,} shares)"
        )
        summary.add_row(
            "Platform",
            f"{split.platform_amount:,} ({split.platform_shares:,} shares)",
        )
        summary.add_row("Tx", _truncate(receipt.signature))
    console.print(
        Panel(summary, title="[bold white]Fee Receipt[/]", border_style="green")
    )


def format_admin_receipt(receipt: AdminReceipt, console: Console) -> None:
    summary = _key_value_table("green")
    if receipt.vault_index is not None:
        summary.add_row("Vault", str(receipt.vault_index))
    summary.add_row("Action", receipt.action)
    result = receipt.detail if receipt.signature else f"no-op: {receipt.detail}"
    summary.add_row("Result", result)
    summary.add_row("Tx", _truncate(receipt.signature))
    console.print(
        Panel(summary, title="[bold white]Admin Receipt[/]", border_style="green")
    )


def format_receipt(receipt: Receipt, console: Console | None = None) -> None:
    """Print any operation receipt."""
    console = console or Console()
    console.print()
    if isinstance(receipt, DepositReceipt):
        format_deposit_receipt(receipt, console)
    elif isinstance(receipt, RedeemReceipt):
        format_redeem_receipt(receipt, console)
    elif isinstance(receipt, FeeReceipt):
        format_fee_receipt(receipt, console)
    else:
        format_admin_receipt(receipt, console)
    console.print()

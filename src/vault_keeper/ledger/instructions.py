"""Instruction builders for the vault program.

Account order matters: each list mirrors the program's account struct
exactly. Arguments are Borsh encoded after the 8-byte discriminator.
"""

from __future__ import annotations

import struct

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM
from spl.token.constants import TOKEN_PROGRAM_ID as TOKEN_PROGRAM

from ..constants import JUPITER_PROGRAM_ID
from .layout import instruction_discriminator

JUPITER_PROGRAM = Pubkey.from_string(JUPITER_PROGRAM_ID)

U64_MAX = 2**64 - 1


def _signer(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=True, is_writable=True)


def _writable(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=False, is_writable=True)


def _readonly(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey, is_signer=False, is_writable=False)


def _u64(value: int) -> bytes:
    if not 0 <= value <= U64_MAX:
        raise ValueError(f"value {value} does not fit in u64")
    return struct.pack("<Q", value)


def _data(method: str, *args: bytes) -> bytes:
    return instruction_discriminator(method) + b"".join(args)


def _index(vault_index: int) -> bytes:
    return struct.pack("<I", vault_index)


def deposit(
    program_id: Pubkey,
    *,
    user: Pubkey,
    factory: Pubkey,
    vault: Pubkey,
    vault_mint: Pubkey,
    user_stablecoin_account: Pubkey,
    stablecoin_mint: Pubkey,
    vault_stablecoin_account: Pubkey,
    user_vault_account: Pubkey,
    fee_recipient_stablecoin_account: Pubkey,
    vault_admin_stablecoin_account: Pubkey,
    vault_index: int,
    amount: int,
    etf_share_price: int,
) -> Instruction:
    accounts = [
        _signer(user),
        _readonly(factory),
        _writable(vault),
        _writable(vault_mint),
        _writable(user_stablecoin_account),
        _readonly(stablecoin_mint),
        _writable(vault_stablecoin_account),
        _writable(user_vault_account),
        _writable(fee_recipient_stablecoin_account),
        _writable(vault_admin_stablecoin_account),
        _readonly(JUPITER_PROGRAM),
        _readonly(TOKEN_PROGRAM),
        _readonly(SYSTEM_PROGRAM),
    ]
    data = _data("deposit", _index(vault_index), _u64(amount), _u64(etf_share_price))
    return Instruction(program_id, data, accounts)


def transfer_vault_to_user(
    program_id: Pubkey,
    *,
    user: Pubkey,
    factory: Pubkey,
    vault: Pubkey,
    vault_stablecoin_account: Pubkey,
    user_stablecoin_account: Pubkey,
    vault_index: int,
    amount: int,
) -> Instruction:
    accounts = [
        _signer(user),
        _readonly(factory),
        _writable(vault),
        _writable(vault_stablecoin_account),
        _writable(user_stablecoin_account),
        _readonly(TOKEN_PROGRAM),
        _readonly(SYSTEM_PROGRAM),
    ]
    data = _data("transfer_vault_to_user", _index(vault_index), _u64(amount))
    return Instruction(program_id, data, accounts)


def withdraw_underlying_to_user(
    program_id: Pubkey,
    *,
    user: Pubkey,
    factory: Pubkey,
    vault: Pubkey,
    vault_asset_account: Pubkey,
    user_asset_account: Pubkey,
    vault_index: int,
    amount: int,
) -> Instruction:
    accounts = [
        _signer(user),
        _readonly(factory),
        _writable(vault),
        _writable(vault_asset_account),
        _writable(user_asset_account),
        _readonly(TOKEN_PROGRAM),
        _readonly(SYSTEM_PROGRAM),
    ]
    data = _data("withdraw_underlying_to_user", _index(vault_index), _u64(amount))
    return Instruction(program_id, data, accounts)


def finalize_redeem(
    program_id: Pubkey,
    *,
    user: Pubkey,
    factory: Pubkey,
    vault: Pubkey,
    vault_mint: Pubkey,
    user_vault_account: Pubkey,
    vault_stablecoin_account: Pubkey,
    user_stablecoin_account: Pubkey,
    fee_recipient_stablecoin_account: Pubkey,
    vault_admin_stablecoin_account: Pubkey,
    vault_index: int,
    vault_token_amount: int,
    etf_share_price: int,
) -> Instruction:
    accounts = [
        _signer(user),
        _readonly(factory),
        _writable(vault),
        _writable(vault_mint),
        _writable(user_vault_account),
        _writable(vault_stablecoin_account),
        _writable(user_stablecoin_account),
        _writable(fee_recipient_stablecoin_account),
        _writable(vault_admin_stablecoin_account),
        _readonly(TOKEN_PROGRAM),
        _readonly(SYSTEM_PROGRAM),
    ]
    data = _data(
        "finalize_redeem",
        _index(vault_index),
        _u64(vault_token_amount),
        _u64(etf_share_price),
    )
    return Instruction(program_id, data, accounts)


def _fee_mint_accounts(
    signer: Pubkey,
    factory: Pubkey,
    vault: Pubkey,
    vault_mint: Pubkey,
    creator_vault_account: Pubkey,
    fee_recipient_vault_account: Pubkey,
) -> list[AccountMeta]:
    return [
        _signer(signer),
        _readonly(factory),
        _writable(vault),
        _writable(vault_mint),
        _writable(creator_vault_account),
        _writable(fee_recipient_vault_account),
        _readonly(TOKEN_PROGRAM),
        _readonly(SYSTEM_PROGRAM),
    ]


def distribute_accrued_fees(
    program_id: Pubkey,
    *,
    collector: Pubkey,
    factory: Pubkey,
    vault: Pubkey,
    vault_mint: Pubkey,
    vault_admin_vault_account: Pubkey,
    fee_recipient_vault_account: Pubkey,
    vault_index: int,
    share_price: int,
    management_fees_amount: int,
) -> Instruction:
    accounts = _fee_mint_accounts(
        collector,
        factory,
        vault,
        vault_mint,
        vault_admin_vault_account,
        fee_recipient_vault_account,
    )
    data = _data(
        "distribute_accrued_fees",
        _index(vault_index),
        _u64(share_price),
        _u64(management_fees_amount),
    )
    return Instruction(program_id, data, accounts)


def claim_management_fee(
    program_id: Pubkey,
    *,
    creator: Pubkey,
    factory: Pubkey,
    vault: Pubkey,
    vault_mint: Pubkey,
    creator_vault_account: Pubkey,
    fee_recipient_vault_account: Pubkey,
    vault_index: int,
    share_price: int,
    management_fees_amount: int,
) -> Instruction:
    accounts = _fee_mint_accounts(
        creator,
        factory,
        vault,
        vault_mint,
        creator_vault_account,
        fee_recipient_vault_account,
    )
    data = _data(
        "claim_management_fee",
        _index(vault_index),
        _u64(share_price),
        _u64(management_fees_amount),
    )
    return Instruction(program_id, data, accounts)


def set_vault_paused(
    program_id: Pubkey,
    *,
    admin: Pubkey,
    factory: Pubkey,
    vault: Pubkey,
    vault_index: int,
    paused: bool,
) -> Instruction:
    accounts = [
        _signer(admin),
        _readonly(factory),
        _writable(vault),
        _readonly(SYSTEM_PROGRAM),
    ]
    data = _data("set_vault_paused", _index(vault_index), struct.pack("<?", paused))
    return Instruction(program_id, data, accounts)


def update_factory_fees(
    program_id: Pubkey,
    *,
    admin: Pubkey,
    factory: Pubkey,
    entry_fee_bps: int,
    exit_fee_bps: int,
    vault_creation_fee_usdc: int,
    min_management_fee_bps: int,
    max_management_fee_bps: int,
    vault_creator_fee_ratio_bps: int,
    platform_fee_ratio_bps: int,
) -> Instruction:
    accounts = [_signer(admin), _writable(factory)]
    data = _data(
        "update_factory_fees",
        struct.pack("<HH", entry_fee_bps, exit_fee_bps),
        _u64(vault_creation_fee_usdc),
        struct.pack(
            "<HHHH",
            min_management_fee_bps,
            max_management_fee_bps,
            vault_creator_fee_ratio_bps,
            platform_fee_ratio_bps,
        ),
    )
    return Instruction(program_id, data, accounts)

import struct

import pytest
from solders.pubkey import Pubkey

from builders import PROGRAM_ID, USDC
from vault_keeper.ledger import instructions as ix
from vault_keeper.ledger.layout import instruction_discriminator


def _keys(n: int) -> list[Pubkey]:
    return [Pubkey.new_unique() for _ in range(n)]


def test_deposit_data_and_account_order():
    (user, factory, vault, mint, user_stable, vault_stable, user_vault, fee, admin) = (
        _keys(9)
    )
    instruction = ix.deposit(
        PROGRAM_ID,
        user=user,
        factory=factory,
        vault=vault,
        vault_mint=mint,
        user_stablecoin_account=user_stable,
        stablecoin_mint=USDC,
        vault_stablecoin_account=vault_stable,
        user_vault_account=user_vault,
        fee_recipient_stablecoin_account=fee,
        vault_admin_stablecoin_account=admin,
        vault_index=3,
        amount=10_000_000,
        etf_share_price=563_500,
    )

    assert instruction.program_id == PROGRAM_ID
    assert instruction.data[:8] == instruction_discriminator("deposit")
    assert struct.unpack("<IQQ", instruction.data[8:]) == (3, 10_000_000, 563_500)

    keys = [meta.pubkey for meta in instruction.accounts]
    assert keys[:10] == [
        user, factory, vault, mint, user_stable, USDC, vault_stable, user_vault, fee, admin
    ]
    assert keys[10:] == [ix.JUPITER_PROGRAM, ix.TOKEN_PROGRAM, ix.SYSTEM_PROGRAM]
    assert instruction.accounts[0].is_signer
    assert not instruction.accounts[1].is_writable
    assert instruction.accounts[2].is_writable


def test_finalize_redeem_encodes_amount_then_price():
    keys = _keys(9)
    instruction = ix.finalize_redeem(
        PROGRAM_ID,
        user=keys[0],
        factory=keys[1],
        vault=keys[2],
        vault_mint=keys[3],
        user_vault_account=keys[4],
        vault_stablecoin_account=keys[5],
        user_stablecoin_account=keys[6],
        fee_recipient_stablecoin_account=keys[7],
        vault_admin_stablecoin_account=keys[8],
        vault_index=0,
        vault_token_amount=500_000,
        etf_share_price=500_000,
    )
    assert instruction.data[:8] == instruction_discriminator("finalize_redeem")
    assert struct.unpack("<IQQ", instruction.data[8:]) == (0, 500_000, 500_000)
    assert [m.pubkey for m in instruction.accounts[:9]] == keys


def test_amount_outside_u64_is_rejected():
    keys = _keys(5)
    with pytest.raises(ValueError, match="u64"):
        ix.transfer_vault_to_user(
            PROGRAM_ID,
            user=keys[0],
            factory=keys[1],
            vault=keys[2],
            vault_stablecoin_account=keys[3],
            user_stablecoin_account=keys[4],
            vault_index=0,
            amount=2**64,
        )
    with pytest.raises(ValueError):
        ix.transfer_vault_to_user(
            PROGRAM_ID,
            user=keys[0],
            factory=keys[1],
            vault=keys[2],
            vault_stablecoin_account=keys[3],
            user_stablecoin_account=keys[4],
            vault_index=0,
            amount=-1,
        )


def test_fee_mint_instructions_share_layout_but_not_discriminator():
    keys = _keys(6)
    kwargs = dict(
        factory=keys[1],
        vault=keys[2],
        vault_mint=keys[3],
        fee_recipient_vault_account=keys[5],
        vault_index=1,
        share_price=1_000_000,
        management_fees_amount=7,
    )
    claim = ix.claim_management_fee(
        PROGRAM_ID, creator=keys[0], creator_vault_account=keys[4], **kwargs
    )
    distribute = ix.distribute_accrued_fees(
        PROGRAM_ID, collector=keys[0], vault_admin_vault_account=keys[4], **kwargs
    )
    assert claim.data[8:] == distribute.data[8:]
    assert claim.data[:8] != distribute.data[:8]
    assert [m.pubkey for m in claim.accounts] == [m.pubkey for m in distribute.accounts]


def test_set_vault_paused_encodes_bool():
    admin, factory, vault = _keys(3)
    paused = ix.set_vault_paused(
        PROGRAM_ID, admin=admin, factory=factory, vault=vault, vault_index=2, paused=True
    )
    resumed = ix.set_vault_paused(
        PROGRAM_ID, admin=admin, factory=factory, vault=vault, vault_index=2, paused=False
    )
    assert paused.data[8:] == struct.pack("<I?", 2, True)
    assert resumed.data[8:] == struct.pack("<I?", 2, False)


def test_update_factory_fees_layout():
    admin, factory = _keys(2)
    instruction = ix.update_factory_fees(
        PROGRAM_ID,
        admin=admin,
        factory=factory,
        entry_fee_bps=25,
        exit_fee_bps=30,
        vault_creation_fee_usdc=5_000_000,
        min_management_fee_bps=10,
        max_management_fee_bps=300,
        vault_creator_fee_ratio_bps=7_000,
        platform_fee_ratio_bps=3_000,
    )
    assert struct.unpack("<HHQHHHH", instruction.data[8:]) == (
        25, 30, 5_000_000, 10, 300, 7_000, 3_000
    )
    assert instruction.accounts[1].is_writable
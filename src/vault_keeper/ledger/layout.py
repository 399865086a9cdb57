"""Borsh account layouts of the vault program and the SPL token program."""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field
from enum import IntEnum

from solders.pubkey import Pubkey

DISCRIMINATOR_SIZE = 8
TOKEN_ACCOUNT_MIN_SIZE = 72
MINT_DECIMALS_OFFSET = 44
LOOKUP_TABLE_HEADER_SIZE = 56


def account_discriminator(name: str) -> bytes:
    """Anchor account discriminator, e.g. ``account_discriminator("Vault")``."""
    return hashlib.sha256(f"account:{name}".encode()).digest()[:DISCRIMINATOR_SIZE]


def instruction_discriminator(name: str) -> bytes:
    """Anchor instruction discriminator for a snake_case method name."""
    return hashlib.sha256(f"global:{name}".encode()).digest()[:DISCRIMINATOR_SIZE]


class FactoryState(IntEnum):
    ACTIVE = 0
    PAUSED = 1
    DEPRECATED = 2


class VaultState(IntEnum):
    ACTIVE = 0
    PAUSED = 1
    CLOSED = 2


@dataclass(frozen=True)
class UnderlyingAsset:
    mint: Pubkey
    allocation_bps: int


@dataclass(frozen=True)
class FactoryAccount:
    bump: int
    admin: Pubkey
    fee_recipient: Pubkey
    vault_count: int
    state: FactoryState
    entry_fee_bps: int
    exit_fee_bps: int
    vault_creation_fee_usdc: int
    min_management_fee_bps: int
    max_management_fee_bps: int
    vault_creator_fee_ratio_bps: int
    platform_fee_ratio_bps: int


@dataclass(frozen=True)
class VaultAccount:
    bump: int
    vault_index: int
    factory: Pubkey
    admin: Pubkey
    name: str
    symbol: str
    underlying_assets: list[UnderlyingAsset] = field(default_factory=list)
    management_fee_bps: int = 0
    state: VaultState = VaultState.ACTIVE
    total_assets: int = 0
    total_supply: int = 0
    created_at: int = 0
    last_fee_accrual_ts: int = 0
    accrued_management_fees_usdc: int = 0

    @property
    def total_allocation_bps(self) -> int:
        return sum(asset.allocation_bps for asset in self.underlying_assets)


@dataclass(frozen=True)
class TokenAccount:
    address: Pubkey
    mint: Pubkey
    owner: Pubkey
    amount: int


class _BorshReader:
    """Sequential little-endian reader over an account buffer."""

    def __init__(self, data: bytes, offset: int = 0):
        self._data = data
        self._offset = offset

    def _take(self, size: int) -> bytes:
        end = self._offset + size
        if end > len(self._data):
            raise ValueError(
                f"account data truncated: need {end} bytes, have {len(self._data)}"
            )
        chunk = self._data[self._offset : end]
        self._offset = end
        return chunk

    def _unpack(self, fmt: str) -> int:
        size = struct.calcsize(fmt)
        return struct.unpack(fmt, self._take(size))[0]

    def u8(self) -> int:
        return self._unpack("<B")

    def u16(self) -> int:
        return self._unpack("<H")

    def u32(self) -> int:
        return self._unpack("<I")

    def u64(self) -> int:
        return self._unpack("<Q")

    def i64(self) -> int:
        return self._unpack("<q")

    def pubkey(self) -> Pubkey:
        return Pubkey.from_bytes(self._take(32))

    def string(self) -> str:
        length = self.u32()
        return self._take(length).decode("utf-8")


def _check_discriminator(data: bytes, name: str) -> None:
    expected = account_discriminator(name)
    if data[:DISCRIMINATOR_SIZE] != expected:
        raise ValueError(f"account data is not a {name} account")


def decode_factory(data: bytes) -> FactoryAccount:
    _check_discriminator(data, "Factory")
    r = _BorshReader(data, DISCRIMINATOR_SIZE)
    return FactoryAccount(
        bump=r.u8(),
        admin=r.pubkey(),
        fee_recipient=r.pubkey(),
        vault_count=r.u32(),
        state=FactoryState(r.u8()),
        entry_fee_bps=r.u16(),
        exit_fee_bps=r.u16(),
        vault_creation_fee_usdc=r.u64(),
        min_management_fee_bps=r.u16(),
        max_management_fee_bps=r.u16(),
        vault_creator_fee_ratio_bps=r.u16(),
        platform_fee_ratio_bps=r.u16(),
    )


def decode_vault(data: bytes) -> VaultAccount:
    _check_discriminator(data, "Vault")
    r = _BorshReader(data, DISCRIMINATOR_SIZE)
    bump = r.u8()
    vault_index = r.u32()
    factory = r.pubkey()
    admin = r.pubkey()
    name = r.string()
    symbol = r.string()
    assets = [
        UnderlyingAsset(mint=r.pubkey(), allocation_bps=r.u16())
        for _ in range(r.u32())
    ]
    return VaultAccount(
        bump=bump,
        vault_index=vault_index,
        factory=factory,
        admin=admin,
        name=name,
        symbol=symbol,
        underlying_assets=assets,
        management_fee_bps=r.u16(),
        state=VaultState(r.u8()),
        total_assets=r.u64(),
        total_supply=r.u64(),
        created_at=r.i64(),
        last_fee_accrual_ts=r.i64(),
        accrued_management_fees_usdc=r.u64(),
    )


def decode_token_account(address: Pubkey, data: bytes) -> TokenAccount:
    """Decode the fixed prefix shared by SPL Token and Token-2022 accounts."""
    if len(data) < TOKEN_ACCOUNT_MIN_SIZE:
        raise ValueError(f"token account {address} has {len(data)} bytes")
    return TokenAccount(
        address=address,
        mint=Pubkey.from_bytes(data[0:32]),
        owner=Pubkey.from_bytes(data[32:64]),
        amount=struct.unpack_from("<Q", data, 64)[0],
    )


def decode_mint_decimals(data: bytes) -> int:
    if len(data) <= MINT_DECIMALS_OFFSET:
        raise ValueError(f"mint account has {len(data)} bytes")
    return data[MINT_DECIMALS_OFFSET]


def decode_lookup_table_addresses(data: bytes) -> list[Pubkey]:
    """Addresses stored in an address lookup table account."""
    body = data[LOOKUP_TABLE_HEADER_SIZE:]
    if len(body) % 32:
        raise ValueError("lookup table body is not a whole number of addresses")
    return [Pubkey.from_bytes(body[i : i + 32]) for i in range(0, len(body), 32)]

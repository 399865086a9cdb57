"""Program-derived address families.

Every address the keeper touches is a pure function of a seed tuple and a
program id. Seeds are assembled here and nowhere else.
"""

from __future__ import annotations

from solders.pubkey import Pubkey

Seed = bytes | Pubkey

FACTORY_SEED = b"factory_v2"
VAULT_SEED = b"vault"
VAULT_MINT_SEED = b"vault_mint"
VAULT_STABLECOIN_SEED = b"vault_stablecoin_account"

AMM_CONFIG_SEED = b"amm_config"
POOL_SEED = b"pool"
POOL_VAULT_SEED = b"pool_vault"
OBSERVATION_SEED = b"observation"
POOL_AUTHORITY_SEED = b"vault_and_lp_mint_auth_seed"


def u32_le(value: int) -> bytes:
    return value.to_bytes(4, "little")


def u16_be(value: int) -> bytes:
    return value.to_bytes(2, "big")


def derive(program_id: Pubkey, *seeds: Seed) -> Pubkey:
    """Derive the canonical (highest-bump) address for ``seeds``."""
    raw = [bytes(seed) for seed in seeds]
    address, _bump = Pubkey.find_program_address(raw, program_id)
    return address


# --- vault program ---


def factory_address(program_id: Pubkey) -> Pubkey:
    return derive(program_id, FACTORY_SEED)


def vault_address(program_id: Pubkey, factory: Pubkey, vault_index: int) -> Pubkey:
    return derive(program_id, VAULT_SEED, factory, u32_le(vault_index))


def vault_mint_address(program_id: Pubkey, vault: Pubkey) -> Pubkey:
    return derive(program_id, VAULT_MINT_SEED, vault)


def vault_stablecoin_address(program_id: Pubkey, vault: Pubkey) -> Pubkey:
    return derive(program_id, VAULT_STABLECOIN_SEED, vault)


# --- CPMM venues ---


def amm_config_address(venue: Pubkey, index: int) -> Pubkey:
    return derive(venue, AMM_CONFIG_SEED, u16_be(index))


def pool_address(
    venue: Pubkey, amm_config: Pubkey, mint_a: Pubkey, mint_b: Pubkey
) -> Pubkey:
    return derive(venue, POOL_SEED, amm_config, mint_a, mint_b)


def pool_vault_address(venue: Pubkey, pool: Pubkey, mint: Pubkey) -> Pubkey:
    return derive(venue, POOL_VAULT_SEED, pool, mint)


def observation_address(venue: Pubkey, pool: Pubkey) -> Pubkey:
    return derive(venue, OBSERVATION_SEED, pool)


def pool_authority_address(venue: Pubkey) -> Pubkey:
    return derive(venue, POOL_AUTHORITY_SEED)

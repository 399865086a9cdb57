"""Ledger program ids, known mints and protocol constants."""

from typing import TypedDict


class KnownAsset(TypedDict):
    symbol: str
    decimals: int


DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_JUPITER_API_URL = "https://lite-api.jup.ag"

# Deployed vault program (mainnet)
DEFAULT_PROGRAM_ID = "CtH2WicL6g2NkP3GPzc6aKyvkeeHxioiaiG8kXjCaHVs"

JUPITER_PROGRAM_ID = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
WSOL_MINT = "So11111111111111111111111111111111111111112"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
MSOL_MINT = "mSoLzYCxHdYgdzU16g5QSh3i5K3z3KZK7ytfqcJm7So"
WETH_WORMHOLE_MINT = "7vfCXTUXx5WJV5JADk17DUJ4ksgau7utNKj4b963voxs"
USDCET_MINT = "A9mUU4qviSctJVPJdBJWkb28deg915LYJKrzQ19ji3FM"

KNOWN_ASSETS: dict[str, KnownAsset] = {
    WSOL_MINT: {"symbol": "SOL", "decimals": 9},
    USDC_MINT: {"symbol": "USDC", "decimals": 6},
    USDT_MINT: {"symbol": "USDT", "decimals": 6},
    MSOL_MINT: {"symbol": "mSOL", "decimals": 9},
    WETH_WORMHOLE_MINT: {"symbol": "ETH", "decimals": 8},
    USDCET_MINT: {"symbol": "USDCet", "decimals": 6},
}

# Raydium CPMM venues searched during pool discovery
CPMM_PROGRAM_IDS = [
    "DRaycpLY18LhpbydsBWbVJtxpNv9oXPgjRSfpF2bWpYb",
    "DRayAUgENGQBKVaX8owNhgzkEDyoHTGVEGHVJT1E9pfH",
]
CPMM_CONFIG_INDEX_LIMIT = 32

MAX_BPS = 10_000
SECONDS_PER_YEAR = 365 * 24 * 60 * 60
USD_DECIMALS = 6

# Fee bounds enforced by the vault program
MAX_ENTRY_EXIT_FEE_BPS = 1_000
MAX_MANAGEMENT_FEE_BPS = 2_000
MAX_UNDERLYING_ASSETS = 240

# Swap aggregator
SLIPPAGE_BPS = 200
MAX_ROUTE_ACCOUNTS = 64
MIN_QUOTE_TTL_SECONDS = 5.0
MAX_QUOTE_TTL_SECONDS = 10.0
MAX_REQUOTES = 2

# Transport retries: 1s, 2s between 3 attempts
RETRY_MAX_TRIES = 3
RETRY_BASE = 2
RETRY_FACTOR = 1
RETRYABLE_HTTP_STATUSES = {429, 500, 502, 503, 504}

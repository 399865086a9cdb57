from __future__ import annotations

import asyncio
import logging
import time
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any

import requests
from solders.pubkey import Pubkey

from ...constants import KNOWN_ASSETS, USD_DECIMALS
from ...errors import TransientNetworkError
from ...ledger.reader import VaultAccountReader
from ...retry import retry_transport
from ...settings import KeeperSettings
from .base import AssetPrice, BasePriceAdapter

logger = logging.getLogger(__name__)

MAX_IDS_PER_REQUEST = 50
USD_SCALE = Decimal(10) ** USD_DECIMALS


def to_micro_usd(value: Any) -> int:
    """Convert a JSON price to 6-decimal fixed point, truncating.

    Raises:
        ValueError: If the value is not a finite non-negative number
    """
    try:
        price = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid price value: {value}") from e
    if not price.is_finite() or price < 0:
        raise ValueError(f"Invalid price value: {value}")
    return int((price * USD_SCALE).to_integral_value(rounding=ROUND_DOWN))


class JupiterPriceAdapter(BasePriceAdapter):
    """USD prices from the Jupiter price API.

    All requested mints go out in one comma-separated batch. A failed batch
    degrades every mint in it to an unresolved zero price so a valuation can
    proceed and flag the gap instead of aborting.
    """

    def __init__(self, config: KeeperSettings, reader: VaultAccountReader):
        super().__init__(config)
        self.api_base_url = config.jupiter_api_url.rstrip("/")
        self.timeout = config.http_timeout
        self.cache_ttl = config.price_cache_ttl_seconds
        self.reader = reader

        self._decimals_cache: dict[str, int] = {}
        self._price_cache: dict[str, tuple[float, AssetPrice]] = {}

    @property
    def adapter_name(self) -> str:
        return "jupiter"

    @retry_transport
    async def fetch_price_payload(self, mints: list[str]) -> dict[str, Any]:
        """Call the price endpoint for a batch of mints.

        Raises:
            ValueError: If the response is not a JSON object
            requests.exceptions.RequestException: If the request keeps failing
        """
        url = f"{self.api_base_url}/price/v3?ids={','.join(mints)}"
        logger.debug(f"Calling {url}")
        response = await asyncio.to_thread(requests.get, url, timeout=self.timeout)
        response.raise_for_status()

        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Invalid response structure: {data}")
        return data

    def _parse_entry(self, mint: str, entry: Any) -> AssetPrice:
        if not isinstance(entry, dict) or "usdPrice" not in entry:
            logger.warning(" No price returned for %s", mint)
            return AssetPrice.unresolved(mint)
        try:
            usd_price = to_micro_usd(entry["usdPrice"])
        except ValueError as e:
            logger.warning(" Invalid price data for %s: %s", mint, e)
            return AssetPrice.unresolved(mint)

        change = entry.get("priceChange24h")
        return AssetPrice(
            mint=mint,
            usd_price=usd_price,
            price_change_24h=float(change) if change is not None else None,
        )

    def _cached(self, mint: str) -> AssetPrice | None:
        hit = self._price_cache.get(mint)
        if hit is None:
            return None
        fetched_at, price = hit
        if time.monotonic() - fetched_at > self.cache_ttl:
            return None
        return price

    async def get_prices(self, mints: list[str]) -> dict[str, AssetPrice]:
        """Return a price for every requested mint.

        Args:
            mints: Base58 mint addresses; duplicates are ignored.

        Returns:
            Mapping mint -> AssetPrice. Empty input returns an empty mapping
            without any request.

        Notes:
            - Fresh cached prices are reused; only the rest are requested.
            - Mints missing from the response, or in a batch that failed
              after retries, come back with ``resolved=False``.
        """
        if not mints:
            return {}

        ordered = list(dict.fromkeys(mints))
        result: dict[str, AssetPrice] = {}
        missing: list[str] = []
        for mint in ordered:
            cached = self._cached(mint)
            if cached is not None:
                result[mint] = cached
            else:
                missing.append(mint)

        for start in range(0, len(missing), MAX_IDS_PER_REQUEST):
            batch = missing[start : start + MAX_IDS_PER_REQUEST]
            try:
                payload = await self.fetch_price_payload(batch)
            except (requests.exceptions.RequestException, ValueError) as e:
                logger.warning(
                    " Price fetch failed for %d mint(s), degrading to 0: %s",
                    len(batch),
                    e,
                )
                for mint in batch:
                    result[mint] = AssetPrice.unresolved(mint)
                continue

            now = time.monotonic()
            for mint in batch:
                price = self._parse_entry(mint, payload.get(mint))
                result[mint] = price
                if price.resolved:
                    self._price_cache[mint] = (now, price)

        return {mint: result[mint] for mint in ordered}

    async def get_decimals(self, mint: str) -> int:
        """Decimals from the known-asset table, else one on-chain mint read.

        The first answer per mint is cached for the life of the adapter.
        """
        cached = self._decimals_cache.get(mint)
        if cached is not None:
            return cached

        known = KNOWN_ASSETS.get(mint)
        if known is not None:
            decimals = known["decimals"]
        else:
            try:
                decimals = await self.reader.read_mint_decimals(
                    Pubkey.from_string(mint)
                )
            except TransientNetworkError:
                logger.error(" Could not read decimals for %s", mint)
                raise

        self._decimals_cache.setdefault(mint, decimals)
        return self._decimals_cache[mint]

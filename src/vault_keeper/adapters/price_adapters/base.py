from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ...errors import AccountNotFoundError, TransientNetworkError
from ...settings import KeeperSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetPrice:
    """USD price of one mint.

    ``usd_price`` is 6-decimal fixed point. ``resolved`` is False when the
    price could not be obtained and was degraded to zero, which is distinct
    from a feed that confirms the asset is worth nothing.
    """

    mint: str
    usd_price: int
    price_change_24h: float | None = None
    resolved: bool = True

    @classmethod
    def unresolved(cls, mint: str) -> "AssetPrice":
        return cls(mint=mint, usd_price=0, price_change_24h=None, resolved=False)


@dataclass
class PriceData:
    """Prices and decimal precision for a set of mints."""

    prices: dict[str, AssetPrice] = field(default_factory=dict)
    decimals: dict[str, int] = field(default_factory=dict)


class BasePriceAdapter(ABC):
    """Abstract base class for price adapters."""

    def __init__(self, config: KeeperSettings):
        """Initialize the adapter with configuration."""
        self.config = config

    @property
    @abstractmethod
    def adapter_name(self) -> str:
        """Return the name of this adapter."""
        ...

    @abstractmethod
    async def get_prices(self, mints: list[str]) -> dict[str, AssetPrice]:
        """Fetch USD prices for the given mints; never raises on transport failure."""
        ...

    @abstractmethod
    async def get_decimals(self, mint: str) -> int:
        """Return the decimal precision of ``mint``."""
        ...

    async def fetch_prices(self, mints: list[str]) -> PriceData:
        """Collect prices and decimals for ``mints`` into one PriceData.

        A mint whose decimals cannot be read is left out of ``decimals``, so
        valuation reports it as unpriced instead of aborting.
        """
        prices = await self.get_prices(mints)
        decimals: dict[str, int] = {}
        for mint in prices:
            try:
                decimals[mint] = await self.get_decimals(mint)
            except (TransientNetworkError, AccountNotFoundError) as e:
                logger.warning("Decimals unavailable for %s, leaving it unpriced: %s", mint, e)
        return PriceData(prices=prices, decimals=decimals)

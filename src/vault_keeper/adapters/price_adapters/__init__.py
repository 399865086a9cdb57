from __future__ import annotations

from .base import AssetPrice, BasePriceAdapter, PriceData
from .jupiter import JupiterPriceAdapter

__all__ = ["AssetPrice", "BasePriceAdapter", "JupiterPriceAdapter", "PriceData"]

from __future__ import annotations

from .pool_adapters import SwapPoolResolver
from .price_adapters import JupiterPriceAdapter
from .swap_adapters import JupiterSwapAdapter

__all__ = ["JupiterPriceAdapter", "JupiterSwapAdapter", "SwapPoolResolver"]

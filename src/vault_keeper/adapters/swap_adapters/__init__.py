from __future__ import annotations

from .base import BaseSwapAdapter, SwapInstructions, SwapRoute
from .jupiter import JupiterSwapAdapter

__all__ = ["BaseSwapAdapter", "JupiterSwapAdapter", "SwapInstructions", "SwapRoute"]

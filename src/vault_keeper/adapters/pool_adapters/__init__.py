from __future__ import annotations

from .cpmm import PoolReference, SwapPoolResolver, iter_pool_candidates

__all__ = ["PoolReference", "SwapPoolResolver", "iter_pool_candidates"]

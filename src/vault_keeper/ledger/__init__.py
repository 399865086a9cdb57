from __future__ import annotations

from .reader import AssetHolding, VaultAccountReader, VaultAddresses, VaultSnapshot
from .rpc import LedgerRpcClient
from .submitter import TransactionSubmitter

__all__ = [
    "AssetHolding",
    "LedgerRpcClient",
    "TransactionSubmitter",
    "VaultAccountReader",
    "VaultAddresses",
    "VaultSnapshot",
]

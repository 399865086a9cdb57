"""Minimal JSON-RPC client for the ledger node."""

from __future__ import annotations

import asyncio
import base64
import itertools
import logging
import time
from typing import Any

import requests
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from ..errors import (
    ConfirmationTimeoutError,
    LedgerRejectionError,
    TransientNetworkError,
    VaultKeeperError,
)
from ..retry import retry_transport

logger = logging.getLogger(__name__)

MAX_ACCOUNTS_PER_REQUEST = 100
COMMITMENT_ORDER = ("processed", "confirmed", "finalized")


class RpcError(VaultKeeperError):
    """The node answered with a JSON-RPC error object."""

    def __init__(self, method: str, error: dict[str, Any]):
        self.code = error.get("code")
        self.error_message = str(error.get("message", ""))
        self.data = error.get("data")
        super().__init__(f"RPC {method} error {self.code}: {self.error_message}")


def _decode_data(value: dict[str, Any] | None) -> bytes | None:
    if value is None:
        return None
    encoded, _encoding = value["data"]
    return base64.b64decode(encoded)


class LedgerRpcClient:
    """Async facade over the node's JSON-RPC HTTP endpoint.

    Requests run in a worker thread; transport failures are retried with
    exponential backoff and surface as ``TransientNetworkError``.
    """

    def __init__(
        self,
        url: str,
        *,
        commitment: str = "confirmed",
        timeout: float = 10.0,
    ):
        self.url = url
        self.commitment = commitment
        self.timeout = timeout
        self._ids = itertools.count(1)

    @retry_transport
    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        response = await asyncio.to_thread(
            requests.post, self.url, json=payload, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()

    async def call(self, method: str, params: list[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        logger.debug("RPC %s", method)
        try:
            body = await self._post(payload)
        except (requests.exceptions.RequestException, ValueError) as e:
            raise TransientNetworkError(f"RPC {method} failed: {e}") from e

        if "error" in body:
            raise RpcError(method, body["error"])
        return body.get("result")

    async def get_account_info(self, address: Pubkey) -> bytes | None:
        result = await self.call(
            "getAccountInfo",
            [str(address), {"encoding": "base64", "commitment": self.commitment}],
        )
        return _decode_data(result["value"])

    async def get_multiple_accounts(
        self, addresses: list[Pubkey]
    ) -> list[bytes | None]:
        accounts: list[bytes | None] = []
        for start in range(0, len(addresses), MAX_ACCOUNTS_PER_REQUEST):
            chunk = addresses[start : start + MAX_ACCOUNTS_PER_REQUEST]
            result = await self.call(
                "getMultipleAccounts",
                [
                    [str(a) for a in chunk],
                    {"encoding": "base64", "commitment": self.commitment},
                ],
            )
            accounts.extend(_decode_data(value) for value in result["value"])
        return accounts

    async def get_latest_blockhash(self) -> Hash:
        result = await self.call(
            "getLatestBlockhash", [{"commitment": self.commitment}]
        )
        return Hash.from_string(result["value"]["blockhash"])

    async def send_transaction(self, transaction: VersionedTransaction) -> str:
        """Submit a signed transaction with preflight simulation enabled.

        Raises:
            LedgerRejectionError: If preflight simulation fails
        """
        encoded = base64.b64encode(bytes(transaction)).decode()
        try:
            return await self.call(
                "sendTransaction",
                [
                    encoded,
                    {
                        "encoding": "base64",
                        "skipPreflight": False,
                        "preflightCommitment": self.commitment,
                    },
                ],
            )
        except RpcError as e:
            logs: list[str] = []
            if isinstance(e.data, dict):
                logs = e.data.get("logs") or []
            raise LedgerRejectionError(
                f"Transaction rejected: {e.error_message}", logs
            ) from e

    async def get_signature_status(self, signature: str) -> dict[str, Any] | None:
        result = await self.call(
            "getSignatureStatuses",
            [[signature], {"searchTransactionHistory": False}],
        )
        return result["value"][0]

    async def get_transaction_logs(self, signature: str) -> list[str]:
        result = await self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "commitment": "confirmed",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if not result:
            return []
        return (result.get("meta") or {}).get("logMessages") or []

    async def confirm_transaction(
        self,
        signature: str,
        *,
        timeout: float,
        poll_interval: float = 1.0,
    ) -> None:
        """Wait until ``signature`` reaches the client commitment.

        Raises:
            LedgerRejectionError: If the transaction landed with an error
            ConfirmationTimeoutError: If it is not confirmed within ``timeout``
        """
        target = COMMITMENT_ORDER.index(self.commitment)
        deadline = time.monotonic() + timeout
        while True:
            status = await self.get_signature_status(signature)
            if status is not None:
                if status.get("err") is not None:
                    logs = await self.get_transaction_logs(signature)
                    raise LedgerRejectionError(
                        f"Transaction {signature} failed: {status['err']}", logs
                    )
                reached = status.get("confirmationStatus") or "processed"
                if COMMITMENT_ORDER.index(reached) >= target:
                    return
            if time.monotonic() >= deadline:
                raise ConfirmationTimeoutError(signature, timeout)
            await asyncio.sleep(poll_interval)

from __future__ import annotations

import asyncio
import base64
import logging
import time
from collections.abc import Callable
from decimal import Decimal, InvalidOperation
from typing import Any

import requests
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from ...constants import MAX_ROUTE_ACCOUNTS, SLIPPAGE_BPS
from ...errors import (
    InvariantViolation,
    PoolNotFoundError,
    QuoteExpiredError,
    TransientNetworkError,
)
from ...retry import retry_transport
from ...settings import KeeperSettings
from .base import BaseSwapAdapter, SwapInstructions, SwapRoute

logger = logging.getLogger(__name__)

NO_ROUTE_CODES = {"COULD_NOT_FIND_ANY_ROUTE", "TOKEN_NOT_TRADABLE", "NO_ROUTES_FOUND"}


def deserialize_instruction(raw: dict[str, Any]) -> Instruction:
    """Turn an aggregator JSON instruction into a solders Instruction."""
    accounts = [
        AccountMeta(
            Pubkey.from_string(meta["pubkey"]),
            is_signer=bool(meta["isSigner"]),
            is_writable=bool(meta["isWritable"]),
        )
        for meta in raw["accounts"]
    ]
    return Instruction(
        Pubkey.from_string(raw["programId"]),
        base64.b64decode(raw["data"]),
        accounts,
    )


def _error_body(e: requests.exceptions.HTTPError) -> dict[str, Any]:
    if e.response is None:
        return {}
    try:
        body = e.response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class JupiterSwapAdapter(BaseSwapAdapter):
    """Quotes and swap instructions from the Jupiter aggregator.

    Slippage is fixed at ``SLIPPAGE_BPS``. Routes expire ``quote_ttl_seconds``
    after they are fetched and are refused by ``build_instructions`` once
    stale.
    """

    def __init__(
        self,
        config: KeeperSettings,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(config, clock)
        self.api_base_url = config.jupiter_api_url.rstrip("/")
        self.timeout = config.http_timeout
        self.ttl = config.quote_ttl_seconds

    @property
    def adapter_name(self) -> str:
        return "jupiter"

    @retry_transport
    async def fetch_quote_payload(
        self, input_mint: str, output_mint: str, amount: int
    ) -> dict[str, Any]:
        url = (
            f"{self.api_base_url}/swap/v1/quote"
            f"?inputMint={input_mint}&outputMint={output_mint}&amount={amount}"
            f"&slippageBps={SLIPPAGE_BPS}&onlyDirectRoutes=false"
            f"&maxAccounts={MAX_ROUTE_ACCOUNTS}"
        )
        logger.debug(f"Calling {url}")
        response = await asyncio.to_thread(requests.get, url, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    @retry_transport
    async def fetch_swap_instructions_payload(
        self, body: dict[str, Any]
    ) -> dict[str, Any]:
        url = f"{self.api_base_url}/swap/v1/swap-instructions"
        logger.debug(f"Calling {url}")
        response = await asyncio.to_thread(
            requests.post, url, json=body, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()

    async def quote(self, input_mint: str, output_mint: str, amount: int) -> SwapRoute:
        """Quote a swap of ``amount`` raw units.

        Raises:
            PoolNotFoundError: If the aggregator has no route for the pair
            TransientNetworkError: If the quote cannot be fetched after retries
        """
        if amount <= 0:
            raise InvariantViolation(f"swap amount must be positive, got {amount}")
        try:
            data = await self.fetch_quote_payload(input_mint, output_mint, amount)
        except requests.exceptions.HTTPError as e:
            body = _error_body(e)
            if body.get("errorCode") in NO_ROUTE_CODES:
                raise PoolNotFoundError(
                    input_mint, output_mint, str(body.get("error", ""))
                ) from e
            raise TransientNetworkError(f"Quote request failed: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransientNetworkError(f"Quote request failed: {e}") from e

        if not isinstance(data, dict):
            raise TransientNetworkError(f"Invalid quote response: {data}")
        if data.get("error"):
            if data.get("errorCode") in NO_ROUTE_CODES:
                raise PoolNotFoundError(input_mint, output_mint, str(data["error"]))
            raise TransientNetworkError(f"Quote failed: {data['error']}")

        try:
            in_amount = int(data["inAmount"])
            out_amount = int(data["outAmount"])
            impact = Decimal(str(data.get("priceImpactPct") or "0"))
        except (KeyError, ValueError, InvalidOperation) as e:
            raise TransientNetworkError(f"Malformed quote response: {data}") from e

        fetched_at = self.clock()
        logger.info(
            " Quote %s -> %s: %d -> %d (%s%% impact)",
            input_mint,
            output_mint,
            in_amount,
            out_amount,
            impact,
        )
        return SwapRoute(
            input_mint=input_mint,
            output_mint=output_mint,
            in_amount=in_amount,
            out_amount=out_amount,
            price_impact_pct=impact,
            quote=data,
            fetched_at=fetched_at,
            valid_until=fetched_at + self.ttl,
        )

    async def build_instructions(
        self,
        route: SwapRoute,
        payer: Pubkey,
        destination: Pubkey | None = None,
    ) -> SwapInstructions:
        """Build the instruction set for ``route``.

        Args:
            route: A route from :meth:`quote`
            payer: Account that signs and holds the input tokens
            destination: Token account that receives the output

        Raises:
            QuoteExpiredError: If the route is past its validity window
            TransientNetworkError: If the build request fails after retries
        """
        if self.is_stale(route):
            raise QuoteExpiredError(
                f"Route {route.input_mint} -> {route.output_mint} expired; re-quote"
            )

        body: dict[str, Any] = {
            "quoteResponse": route.quote,
            "userPublicKey": str(payer),
        }
        if destination is not None:
            body["destinationTokenAccount"] = str(destination)

        try:
            data = await self.fetch_swap_instructions_payload(body)
        except requests.exceptions.RequestException as e:
            raise TransientNetworkError(f"Swap instruction request failed: {e}") from e

        if not isinstance(data, dict) or data.get("error"):
            raise TransientNetworkError(f"Swap instruction build failed: {data}")

        try:
            return SwapInstructions(
                swap=deserialize_instruction(data["swapInstruction"]),
                setup=[
                    deserialize_instruction(ix)
                    for ix in data.get("setupInstructions") or []
                ],
                compute_budget=[
                    deserialize_instruction(ix)
                    for ix in data.get("computeBudgetInstructions") or []
                ],
                cleanup=(
                    deserialize_instruction(data["cleanupInstruction"])
                    if data.get("cleanupInstruction")
                    else None
                ),
                lookup_tables=[
                    Pubkey.from_string(addr)
                    for addr in data.get("addressLookupTableAddresses") or []
                ],
            )
        except (KeyError, ValueError, TypeError) as e:
            raise TransientNetworkError(f"Malformed swap instructions: {e}") from e

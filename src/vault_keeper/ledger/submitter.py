"""Compile, sign, submit and confirm versioned transactions."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from .layout import decode_lookup_table_addresses
from .rpc import LedgerRpcClient

logger = logging.getLogger(__name__)


class TransactionSubmitter:
    """Sends instruction batches as v0 transactions signed by the keeper."""

    def __init__(
        self,
        rpc: LedgerRpcClient,
        signer: Keypair,
        *,
        confirm_timeout: float = 60.0,
        poll_interval: float = 1.0,
    ):
        self.rpc = rpc
        self.signer = signer
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval

    @property
    def payer(self) -> Pubkey:
        return self.signer.pubkey()

    async def load_lookup_tables(
        self, addresses: Sequence[Pubkey]
    ) -> list[AddressLookupTableAccount]:
        """Fetch lookup tables; tables that no longer exist are dropped."""
        if not addresses:
            return []
        datas = await self.rpc.get_multiple_accounts(list(addresses))
        tables: list[AddressLookupTableAccount] = []
        for key, data in zip(addresses, datas):
            if data is None:
                logger.warning("Lookup table %s not found, compiling without it", key)
                continue
            tables.append(
                AddressLookupTableAccount(key, decode_lookup_table_addresses(data))
            )
        return tables

    async def submit(
        self,
        instructions: Sequence[Instruction],
        lookup_tables: Sequence[Pubkey] = (),
    ) -> str:
        """Submit ``instructions`` in one transaction and wait for confirmation.

        Returns:
            The transaction signature

        Raises:
            LedgerRejectionError: If preflight or execution fails
            TransientNetworkError: If the node is unreachable
            ConfirmationTimeoutError: If the sent transaction is not confirmed in time
        """
        tables = await self.load_lookup_tables(lookup_tables)
        blockhash = await self.rpc.get_latest_blockhash()
        message = MessageV0.try_compile(
            self.payer, list(instructions), tables, blockhash
        )
        transaction = VersionedTransaction(message, [self.signer])
        signature = await self.rpc.send_transaction(transaction)
        logger.debug("Submitted %s, awaiting confirmation", signature)
        await self.rpc.confirm_transaction(
            signature,
            timeout=self.confirm_timeout,
            poll_interval=self.poll_interval,
        )
        return signature

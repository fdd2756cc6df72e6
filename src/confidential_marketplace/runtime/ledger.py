"""
Ledger clients for the two marketplace contracts.

Both contracts expose the same logical operations; they differ only in how
dataset values and query parameters are passed:

- MockLedgerClient: plaintext ``uint256[]`` values and ``uint256`` parameter
- FHELedgerClient: encrypted handles plus input proofs

Usage:
    client = MockLedgerClient(rpc, contract_address, network)
    result = await client.upload_dataset("Ages", "", [100, 200], price)
    submission = await client.submit_query(result.dataset_id, QueryType.MEAN, 0, price)
    query = await client.get_query(submission.query_id)
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from ..core.defs import NetworkDef
from ..core.errors import (
    ContractNotInitialized,
    DatasetNotFound,
    LedgerUnavailable,
    NetworkMismatch,
    PollTimeout,
    QueryNotFound,
    RPCError,
    TransactionReverted,
    TransactionTimeout,
    UnsupportedOperation,
    WalletNotConnected,
)
from ..core.settlement import MAX_DATA_SIZE
from ..core.types import (
    Dataset,
    EncryptedInput,
    ExecutionMode,
    PlatformStats,
    PreparedInputs,
    PreparedParameter,
    ProviderSummary,
    Query,
    QuerySubmission,
    QueryType,
    TxRef,
    UploadResult,
)
from ..core.utils import to_int
from .encryption import EncryptionAdapter, EncryptorFactory, HomomorphicAdapter, PlaintextAdapter
from .events import DatasetCreated, QueryExecuted, find_event
from .polling import poll_until
from .rpc_client import LedgerRPC

logger = logging.getLogger(__name__)


class LedgerClient(ABC):
    """
    Common interface to a marketplace contract.

    Every write resolves the sending account explicitly, bounds the submit
    call with ``request_timeout`` and then polls for the receipt.
    """

    mode: ExecutionMode

    def __init__(
        self,
        rpc: LedgerRPC,
        contract_address: str,
        network: NetworkDef,
        *,
        account: Optional[str] = None,
        request_timeout: float = 60.0,
        confirm_interval: float = 2.0,
        confirm_attempts: int = 60,
        max_data_size: int = MAX_DATA_SIZE,
    ):
        if not contract_address:
            raise ContractNotInitialized(self.mode.value)

        self.rpc = rpc
        self.contract_address = contract_address
        self.network = network
        self.account = account
        self.request_timeout = request_timeout
        self.confirm_interval = confirm_interval
        self.confirm_attempts = confirm_attempts
        self.max_data_size = max_data_size
        self._sender: Optional[str] = None
        self._network_checked = False

    # === Binding ===

    async def ensure_network(self) -> int:
        """
        Verify the node is on the configured chain.

        Returns:
            The connected chain id

        Raises:
            NetworkMismatch: If the chain differs from the configured network
        """
        if self._network_checked:
            return self.network.chain_id

        chain_id = await self.rpc.chain_id()
        if chain_id != self.network.chain_id:
            raise NetworkMismatch(self.network.chain_id, chain_id, self.mode.value)
        self._network_checked = True
        return chain_id

    async def sender_address(self) -> str:
        """Configured account, else the node's first account."""
        if self._sender is None:
            if self.account:
                self._sender = self.account
            else:
                accounts = await self.rpc.accounts()
                if not accounts:
                    raise WalletNotConnected()
                self._sender = accounts[0]
        return self._sender

    @abstractmethod
    async def get_adapter(self) -> EncryptionAdapter:
        """Encryption adapter matching this contract's input format."""

    async def close(self) -> None:
        pass

    # === Reads ===

    async def _call(self, function: str, *args: Any) -> Any:
        return await self.rpc.call(self.contract_address, function, list(args))

    async def get_dataset(self, dataset_id: int) -> Dataset:
        data = await self._call("getDataset", dataset_id)
        if not data or to_int(data.get("id", 0)) == 0:
            raise DatasetNotFound(dataset_id)
        return Dataset.model_validate(data)

    async def get_query(self, query_id: int) -> Query:
        data = await self._call("getQuery", query_id)
        if not data or to_int(data.get("id", 0)) == 0:
            raise QueryNotFound(query_id)
        return Query.model_validate(data)

    async def list_active_dataset_ids(self) -> list[int]:
        return [to_int(item) for item in await self._call("getActiveDatasets") or []]

    async def list_buyer_query_ids(self, buyer: str) -> list[int]:
        return [to_int(item) for item in await self._call("getBuyerQueries", buyer) or []]

    async def list_provider_dataset_ids(self, provider: str) -> list[int]:
        return [to_int(item) for item in await self._call("getProviderDatasets", provider) or []]

    async def get_dataset_count(self) -> int:
        return to_int(await self._call("getDatasetCount"))

    async def get_query_count(self) -> int:
        return to_int(await self._call("getQueryCount"))

    async def get_platform_stats(self) -> PlatformStats:
        return PlatformStats.model_validate(await self._call("getPlatformStats"))

    async def get_provider_summary(self, provider: str) -> ProviderSummary:
        """Totals across every dataset owned by ``provider``."""
        summary = ProviderSummary(provider=provider)
        for dataset_id in await self.list_provider_dataset_ids(provider):
            dataset = await self.get_dataset(dataset_id)
            summary.total_datasets += 1
            summary.active_datasets += int(dataset.active)
            summary.total_queries += dataset.total_queries
            summary.total_revenue += dataset.total_revenue
        return summary

    # === Writes ===

    async def _transact(self, function: str, args: list[Any], value: int = 0) -> dict[str, Any]:
        """Send a transaction and wait for a successful receipt."""
        await self.ensure_network()
        sender = await self.sender_address()

        try:
            tx_hash = await asyncio.wait_for(
                self.rpc.send_transaction(sender, self.contract_address, function, args, value),
                timeout=self.request_timeout,
            )
        except asyncio.TimeoutError:
            raise TransactionTimeout(self.request_timeout, stage="submit")

        logger.info(f"Transaction sent: {function} {tx_hash}")
        receipt = await self._wait_for_receipt(tx_hash)

        if to_int(receipt.get("status", 1)) == 0:
            raise TransactionReverted(tx_hash, receipt.get("revertReason"))

        logger.info(f"Transaction confirmed: {tx_hash} in block {receipt.get('blockNumber')}")
        return receipt

    async def _wait_for_receipt(self, tx_hash: str) -> dict[str, Any]:
        try:
            result = await poll_until(
                lambda: self.rpc.get_transaction_receipt(tx_hash),
                interval=self.confirm_interval,
                max_attempts=self.confirm_attempts,
                retry_on=(RPCError, LedgerUnavailable),
                label=f"receipt {tx_hash}",
            )
        except PollTimeout as e:
            raise TransactionTimeout(
                self.confirm_interval * self.confirm_attempts, tx_hash, stage="confirm"
            ) from e
        return result.value

    @staticmethod
    def _tx_ref(receipt: dict[str, Any]) -> TxRef:
        block = receipt.get("blockNumber")
        return TxRef(
            tx_hash=receipt.get("transactionHash", ""),
            block_number=to_int(block) if block is not None else None,
            status=to_int(receipt.get("status", 1)),
        )

    @abstractmethod
    def _upload_args(self, name: str, description: str, inputs: PreparedInputs, price: int) -> list[Any]:
        ...

    @abstractmethod
    def _query_args(self, dataset_id: int, query_type: QueryType, parameter: PreparedParameter) -> list[Any]:
        ...

    async def upload_dataset(
        self,
        name: str,
        description: str,
        prepared_inputs: PreparedInputs,
        price: int,
    ) -> UploadResult:
        """
        Register a dataset.

        Args:
            name: Display name
            description: Display description
            prepared_inputs: Output of the adapter's prepare_upload_inputs
            price: Price per query in wei

        Returns:
            UploadResult; ``dataset_id`` is None if the event was not found
        """
        receipt = await self._transact(
            "uploadDataset", self._upload_args(name, description, prepared_inputs, price)
        )
        event = find_event(receipt.get("logs"), DatasetCreated)
        if event is None:
            logger.warning(f"DatasetCreated event not found in {receipt.get('transactionHash')}")
        return UploadResult(
            dataset_id=event.dataset_id if event else None,
            tx=self._tx_ref(receipt),
            mode=self.mode,
        )

    async def submit_query(
        self,
        dataset_id: int,
        query_type: QueryType,
        prepared_parameter: PreparedParameter,
        price: int,
    ) -> QuerySubmission:
        """
        Pay for and submit a query.

        Returns:
            QuerySubmission; ``query_id`` is None if the event was not found
        """
        query_type = QueryType(query_type)
        receipt = await self._transact(
            "executeQuery",
            self._query_args(dataset_id, query_type, prepared_parameter),
            value=price,
        )
        event = find_event(receipt.get("logs"), QueryExecuted)
        if event is None:
            logger.warning(f"QueryExecuted event not found in {receipt.get('transactionHash')}")
        return QuerySubmission(
            query_id=event.query_id if event else None,
            dataset_id=dataset_id,
            query_type=query_type,
            price=price,
            buyer=await self.sender_address(),
            tx=self._tx_ref(receipt),
            mode=self.mode,
        )

    async def update_dataset(self, dataset_id: int, new_price: int, active: bool) -> TxRef:
        raise UnsupportedOperation("update_dataset", self.mode.value)


class MockLedgerClient(LedgerClient):
    """Client for the plaintext mock contract."""

    mode = ExecutionMode.MOCK

    def __init__(self, rpc: LedgerRPC, contract_address: str, network: NetworkDef, **kwargs):
        super().__init__(rpc, contract_address, network, **kwargs)
        self._adapter = PlaintextAdapter(self.max_data_size)

    async def get_adapter(self) -> EncryptionAdapter:
        return self._adapter

    def _upload_args(self, name, description, inputs, price):
        return [name, description, list(inputs), price]

    def _query_args(self, dataset_id, query_type, parameter):
        return [dataset_id, int(query_type), parameter]

    async def update_dataset(self, dataset_id: int, new_price: int, active: bool) -> TxRef:
        """Change price and availability of an owned dataset."""
        receipt = await self._transact("updateDataset", [dataset_id, new_price, active])
        return self._tx_ref(receipt)


class FHELedgerClient(LedgerClient):
    """
    Client for the encrypted contract.

    Requires an FHE-capable network. The adapter (and with it the external
    encryptor) is built on first use, bound to the contract and the sender.
    """

    mode = ExecutionMode.FHE

    def __init__(
        self,
        rpc: LedgerRPC,
        contract_address: str,
        network: NetworkDef,
        *,
        encryptor_factory: EncryptorFactory,
        **kwargs,
    ):
        super().__init__(rpc, contract_address, network, **kwargs)
        self.encryptor_factory = encryptor_factory
        self._adapter: Optional[HomomorphicAdapter] = None

    async def ensure_network(self) -> int:
        if not self.network.is_fhevm:
            raise NetworkMismatch(None, self.network.chain_id, self.mode.value)
        return await super().ensure_network()

    async def get_adapter(self) -> EncryptionAdapter:
        # No await between the check and the assignment
        sender = await self.sender_address()
        if self._adapter is None:
            self._adapter = HomomorphicAdapter(
                self.encryptor_factory, self.contract_address, sender, self.max_data_size
            )
        return self._adapter

    async def close(self) -> None:
        if self._adapter is not None:
            await self._adapter.close()
            self._adapter = None

    def _upload_args(self, name, description, inputs, price):
        handles = [item.handle for item in inputs]
        proofs = [item.proof for item in inputs]
        return [name, description, handles, proofs, price]

    def _query_args(self, dataset_id, query_type, parameter):
        if not isinstance(parameter, EncryptedInput):
            raise TypeError("FHE queries take an encrypted parameter")
        return [dataset_id, int(query_type), parameter.handle, parameter.proof]

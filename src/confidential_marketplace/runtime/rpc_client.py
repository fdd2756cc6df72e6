"""
JSON-RPC client for the external ledger.

Makes POST calls to the ledger node. Contract functions are addressed by
name; argument and result encoding happens on the node side.
"""

from __future__ import annotations

import itertools
from typing import Any, Optional

import httpx

from ..core.errors import LedgerUnavailable, RPCError
from ..core.utils import to_hex_quantity, to_int


class LedgerRPC:
    """
    HTTP client for the ledger's read/write RPC interface.

    Usage:
        rpc = LedgerRPC("http://127.0.0.1:8545")
        chain_id = await rpc.chain_id()
        dataset = await rpc.call(contract, "getDataset", [1])
        tx_hash = await rpc.send_transaction(sender, contract, "executeQuery", [1, 0, 0], value=price)
        receipt = await rpc.get_transaction_receipt(tx_hash)
    """

    def __init__(self, rpc_url: str, timeout: float = 30.0, client: httpx.AsyncClient | None = None):
        """
        Initialize the RPC client.

        Args:
            rpc_url: Ledger node URL
            timeout: HTTP request timeout in seconds
            client: Optional shared HTTP client (not closed by this object)
        """
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._ids = itertools.count(1)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        """Close the HTTP client if we own it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def request(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """
        Perform a single JSON-RPC call.

        Args:
            method: RPC method name
            params: Positional parameters

        Returns:
            The ``result`` member of the response

        Raises:
            LedgerUnavailable: If the node cannot be reached
            RPCError: If the node returns an HTTP or JSON-RPC error
        """
        client = await self._get_client()
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }

        try:
            response = await client.post(self.rpc_url, json=payload)
        except httpx.RequestError as e:
            raise LedgerUnavailable(self.rpc_url, str(e)) from e

        if response.status_code != 200:
            raise RPCError(method, response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as e:
            raise RPCError(method, -32700, f"Invalid JSON response: {e}") from e
        if not isinstance(data, dict):
            raise RPCError(method, -32700, "Response is not a JSON-RPC object")

        error = data.get("error")
        if error:
            raise RPCError(
                method,
                error.get("code", -32603),
                error.get("message", "unknown error"),
                data=error.get("data"),
            )
        return data.get("result")

    # === Chain ===

    async def chain_id(self) -> int:
        return to_int(await self.request("ledger_chainId"))

    async def accounts(self) -> list[str]:
        return list(await self.request("ledger_accounts") or [])

    # === Contract ===

    async def call(self, contract: str, function: str, args: Optional[list[Any]] = None) -> Any:
        """Read-only contract call; returns the decoded outputs."""
        return await self.request(
            "ledger_call",
            [{"to": contract, "function": function, "args": args or []}],
        )

    async def send_transaction(
        self,
        sender: str,
        contract: str,
        function: str,
        args: Optional[list[Any]] = None,
        value: int = 0,
    ) -> str:
        """
        Submit a signed contract transaction.

        Args:
            sender: Explicit sending account
            contract: Contract address
            function: Contract function name
            args: Function arguments
            value: Payment in wei

        Returns:
            Transaction hash
        """
        return await self.request(
            "ledger_sendTransaction",
            [{
                "from": sender,
                "to": contract,
                "function": function,
                "args": args or [],
                "value": to_hex_quantity(value),
            }],
        )

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict[str, Any]]:
        """Receipt of a mined transaction, or None while it is pending."""
        return await self.request("ledger_getTransactionReceipt", [tx_hash])

"""
Encryption adapters.

Turns plaintext data points and query parameters into the shape a
backend expects:

- PlaintextAdapter: values pass through unchanged (mock contract)
- HomomorphicAdapter: each value becomes an encrypted handle plus input
  proof, produced by an external InputEncryptor

Usage:
    adapter = HomomorphicAdapter(relayer_encryptor_factory(url), contract, user)
    inputs = await adapter.prepare_upload_inputs([100, 200, 150])
    parameter = await adapter.prepare_query_parameter(200)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Optional, Protocol

import httpx

from ..core.errors import EncryptionFailed, InvalidInputSize, RPCError, ValueOutOfRange
from ..core.settlement import MAX_DATA_SIZE
from ..core.types import EncryptedInput, PreparedInputs, PreparedParameter

logger = logging.getLogger(__name__)


UINT32_MAX = 2**32 - 1

# Placeholder for an absent encrypted parameter
ZERO_HANDLE = "0x" + "00" * 32
EMPTY_PROOF = "0x"


class InputEncryptor(Protocol):
    """External encryptor bound to one contract and one user account."""

    async def encrypt_uint32(self, value: int) -> EncryptedInput:
        ...


EncryptorFactory = Callable[[str, str], InputEncryptor]


def validate_values(values: Iterable[Any], max_size: int = MAX_DATA_SIZE) -> list[int]:
    """
    Check dataset values against size and width constraints.

    Returns:
        The values as a list

    Raises:
        InvalidInputSize: If there are no values or more than ``max_size``
        ValueOutOfRange: If a value is not an integer in [0, 2**32 - 1]
    """
    items = list(values)
    if not 1 <= len(items) <= max_size:
        raise InvalidInputSize(len(items), max_size)

    for index, value in enumerate(items):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueOutOfRange(index, value, 0, UINT32_MAX)
        if not 0 <= value <= UINT32_MAX:
            raise ValueOutOfRange(index, value, 0, UINT32_MAX)
    return items


def _check_parameter(value: Optional[int]) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= UINT32_MAX:
        raise ValueOutOfRange(0, value, 0, UINT32_MAX)


class EncryptionAdapter(ABC):
    """Prepares inputs for one backend."""

    def __init__(self, max_size: int = MAX_DATA_SIZE):
        self.max_size = max_size

    def validate(self, values: Iterable[Any]) -> list[int]:
        return validate_values(values, self.max_size)

    @abstractmethod
    async def prepare_upload_inputs(self, values: Iterable[Any]) -> PreparedInputs:
        """Validate and convert dataset values for an upload."""

    @abstractmethod
    async def prepare_query_parameter(self, value: Optional[int]) -> PreparedParameter:
        """Convert a query threshold; an absent threshold gets a neutral value."""

    async def close(self) -> None:
        pass


class PlaintextAdapter(EncryptionAdapter):
    """Identity adapter for the mock backend."""

    async def prepare_upload_inputs(self, values: Iterable[Any]) -> list[int]:
        return self.validate(values)

    async def prepare_query_parameter(self, value: Optional[int]) -> int:
        _check_parameter(value)
        return 0 if value is None else value


class HomomorphicAdapter(EncryptionAdapter):
    """
    Adapter for the FHE backend.

    The encryptor is created on first use and reused for the lifetime of
    the adapter. Values are encrypted one at a time; the first failure
    aborts the whole batch.
    """

    def __init__(
        self,
        encryptor_factory: EncryptorFactory,
        contract_address: str,
        user_address: str,
        max_size: int = MAX_DATA_SIZE,
    ):
        super().__init__(max_size)
        self.encryptor_factory = encryptor_factory
        self.contract_address = contract_address
        self.user_address = user_address
        self._encryptor: Optional[InputEncryptor] = None

    def _get_encryptor(self) -> InputEncryptor:
        if self._encryptor is None:
            logger.info(f"Creating encryptor for contract {self.contract_address}")
            self._encryptor = self.encryptor_factory(self.contract_address, self.user_address)
        return self._encryptor

    async def _encrypt(self, index: int, value: int) -> EncryptedInput:
        encryptor = self._get_encryptor()
        try:
            return await encryptor.encrypt_uint32(value)
        except Exception as e:
            raise EncryptionFailed(index, str(e)) from e

    async def prepare_upload_inputs(self, values: Iterable[Any]) -> list[EncryptedInput]:
        items = self.validate(values)
        encrypted = []
        for index, value in enumerate(items):
            encrypted.append(await self._encrypt(index, value))
        logger.debug(f"Encrypted {len(encrypted)} values")
        return encrypted

    async def prepare_query_parameter(self, value: Optional[int]) -> EncryptedInput:
        _check_parameter(value)
        if value is None:
            return EncryptedInput(handle=ZERO_HANDLE, proof=EMPTY_PROOF)
        return await self._encrypt(0, value)

    async def close(self) -> None:
        close = getattr(self._encryptor, "close", None)
        if close is not None:
            await close()
        self._encryptor = None


class RelayerEncryptor:
    """
    InputEncryptor backed by an HTTP input-encryption relayer.

    The relayer answers ``POST /v1/input-proof`` with the ciphertext handles
    and a single proof covering them.
    """

    def __init__(
        self,
        relayer_url: str,
        contract_address: str,
        user_address: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.relayer_url = relayer_url.rstrip("/")
        self.contract_address = contract_address
        self.user_address = user_address
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

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

    async def encrypt_uint32(self, value: int) -> EncryptedInput:
        client = await self._get_client()
        url = f"{self.relayer_url}/v1/input-proof"
        response = await client.post(url, json={
            "contractAddress": self.contract_address,
            "userAddress": self.user_address,
            "values": [{"type": "euint32", "value": value}],
        })
        if response.status_code != 200:
            raise RPCError("input-proof", response.status_code, response.text)

        data = response.json()
        handles = data.get("handles") or []
        if not handles:
            raise RPCError("input-proof", -32603, "Relayer returned no handles")
        return EncryptedInput(handle=handles[0], proof=data.get("inputProof", EMPTY_PROOF))


def relayer_encryptor_factory(relayer_url: str, timeout: float = 30.0) -> EncryptorFactory:
    """Build an EncryptorFactory that creates RelayerEncryptor instances."""

    def factory(contract_address: str, user_address: str) -> RelayerEncryptor:
        return RelayerEncryptor(relayer_url, contract_address, user_address, timeout=timeout)

    return factory

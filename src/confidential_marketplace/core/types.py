"""
Pydantic models for marketplace records.

Ledger records arrive with the contract's camelCase field names; every
model accepts both the ledger alias and the Python field name.
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Annotated, Any, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from .utils import to_int


# Ledger integers may be hex quantities or decimal strings
LedgerInt = Annotated[int, BeforeValidator(to_int)]


class ExecutionMode(str, Enum):
    """Backend a workflow runs against."""
    MOCK = "mock"
    FHE = "fhe"

    @classmethod
    def parse(cls, value: Any) -> ExecutionMode:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown execution mode: {value!r}")


class QueryType(IntEnum):
    """Aggregate statistics a buyer can purchase (codes match the contract)."""
    MEAN = 0
    VARIANCE = 1
    COUNT_ABOVE = 2
    COUNT_BELOW = 3

    @property
    def requires_parameter(self) -> bool:
        return self in (QueryType.COUNT_ABOVE, QueryType.COUNT_BELOW)

    @property
    def display_name(self) -> str:
        return QUERY_TYPE_NAMES[self]

    @classmethod
    def parse(cls, value: Any) -> QueryType:
        """Accept a QueryType, its integer code, or a name like "mean" / "COMPUTE_MEAN"."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        name = str(value).strip().upper().replace("-", "_")
        if name.startswith("COMPUTE_"):
            name = name[len("COMPUTE_"):]
        if name.isdigit():
            return cls(int(name))
        try:
            return cls[name]
        except KeyError:
            raise ValueError(f"Unknown query type: {value!r}")


QUERY_TYPE_NAMES = {
    QueryType.MEAN: "Calculate Mean",
    QueryType.VARIANCE: "Calculate Variance",
    QueryType.COUNT_ABOVE: "Count Above Threshold",
    QueryType.COUNT_BELOW: "Count Below Threshold",
}


class QueryStatus(IntEnum):
    """Query state machine (codes match the contract)."""
    PENDING = 0
    PROCESSING = 1
    COMPLETED = 2
    FAILED = 3
    REFUNDED = 4

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    def can_transition_to(self, target: QueryStatus) -> bool:
        """
        Whether an observed move from this status to ``target`` is legal.

        Observations may skip intermediate states (a poll can miss PROCESSING),
        so any forward move is accepted. Terminal states never change.
        """
        if self.is_terminal:
            return target == self
        if target.is_terminal:
            return True
        return target >= self


TERMINAL_STATUSES = frozenset({QueryStatus.COMPLETED, QueryStatus.FAILED, QueryStatus.REFUNDED})


# --- Ledger records ---


class Dataset(BaseModel):
    """A named, priced collection of confidential values."""
    model_config = ConfigDict(populate_by_name=True)

    id: LedgerInt
    owner: str
    name: str
    description: str = ""
    size: LedgerInt = Field(alias="dataSize")
    price_per_query: LedgerInt = Field(alias="pricePerQuery")
    total_queries: LedgerInt = Field(0, alias="totalQueries")
    total_revenue: LedgerInt = Field(0, alias="totalRevenue")
    created_at: LedgerInt = Field(0, alias="createdAt")
    active: bool = True


class Query(BaseModel):
    """A single paid aggregate query against a dataset."""
    model_config = ConfigDict(populate_by_name=True)

    id: LedgerInt
    dataset_id: LedgerInt = Field(alias="datasetId")
    buyer: str
    query_type: Annotated[QueryType, BeforeValidator(to_int)] = Field(alias="queryType")
    parameter: LedgerInt = 0
    result: Optional[LedgerInt] = None
    status: Annotated[QueryStatus, BeforeValidator(to_int)]
    price: LedgerInt
    timestamp: LedgerInt = 0

    @model_validator(mode="after")
    def _result_only_when_completed(self) -> Query:
        # The ledger reports 0 for results that are not available yet
        if self.status != QueryStatus.COMPLETED:
            self.result = None
        return self


class PlatformStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_datasets: LedgerInt = Field(alias="totalDatasets")
    total_queries: LedgerInt = Field(alias="totalQueries")
    total_platform_fees: LedgerInt = Field(alias="totalPlatformFees")


class ProviderSummary(BaseModel):
    """Aggregated totals across all datasets owned by a provider."""
    provider: str
    total_datasets: int = 0
    active_datasets: int = 0
    total_queries: int = 0
    total_revenue: int = 0


# --- Backend inputs ---


class EncryptedInput(BaseModel):
    """Ciphertext handle plus the proof the ledger verifies it with."""
    handle: str
    proof: str


PreparedInputs = Union[list[int], list[EncryptedInput]]
PreparedParameter = Union[int, EncryptedInput]


# --- Workflow results ---


class TxRef(BaseModel):
    """Reference to a confirmed ledger transaction."""
    tx_hash: str
    block_number: Optional[int] = None
    status: int = 1


class UploadResult(BaseModel):
    """
    Result of a dataset upload.

    ``dataset_id`` is None when the creation event could not be decoded.
    """
    dataset_id: Optional[int] = None
    tx: TxRef
    mode: ExecutionMode


class QuerySubmission(BaseModel):
    """
    Result of a query submission.

    ``query_id`` is None when the creation event could not be decoded; the
    id must then be resolved with a lookup.
    """
    query_id: Optional[int] = None
    dataset_id: int
    query_type: QueryType
    price: int
    buyer: str
    tx: TxRef
    mode: ExecutionMode


class Settlement(BaseModel):
    """Provider/platform split of a query price."""
    price: int
    provider_share: int
    platform_share: int
    platform_fee_percent: int


class QueryOutcome(BaseModel):
    """Terminal, successful outcome of a query."""
    query: Query
    result: int
    attempts: int
    settlement: Settlement

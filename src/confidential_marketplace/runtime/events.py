"""
Typed decoding of ledger receipt logs.

A log either decodes into the requested event type or it does not; a
failed decode is a normal "not this event" outcome and never raises.

Usage:
    event = find_event(receipt["logs"], QueryExecuted)
    if event is None:
        logger.warning("QueryExecuted event not found")
"""

from __future__ import annotations

from typing import Any, ClassVar, Iterable, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..core.types import LedgerInt


class LedgerEvent(BaseModel):
    """Base class for events emitted by the marketplace contracts."""
    model_config = ConfigDict(populate_by_name=True)

    event_name: ClassVar[str] = ""


class DatasetCreated(LedgerEvent):
    event_name: ClassVar[str] = "DatasetCreated"

    dataset_id: LedgerInt = Field(alias="datasetId")
    owner: str
    name: str = ""
    price_per_query: Optional[LedgerInt] = Field(None, alias="pricePerQuery")
    data_size: Optional[LedgerInt] = Field(None, alias="dataSize")  # FHE contract only


class QueryExecuted(LedgerEvent):
    event_name: ClassVar[str] = "QueryExecuted"

    query_id: LedgerInt = Field(alias="queryId")
    dataset_id: LedgerInt = Field(alias="datasetId")
    buyer: str
    query_type: LedgerInt = Field(alias="queryType")
    result: Optional[LedgerInt] = None  # mock contract: computed synchronously
    price: Optional[LedgerInt] = None  # FHE contract


class QueryCompleted(LedgerEvent):
    event_name: ClassVar[str] = "QueryCompleted"

    query_id: LedgerInt = Field(alias="queryId")
    result: LedgerInt


class QueryRefunded(LedgerEvent):
    event_name: ClassVar[str] = "QueryRefunded"

    query_id: LedgerInt = Field(alias="queryId")
    buyer: str
    amount: LedgerInt


class DecryptionRequested(LedgerEvent):
    event_name: ClassVar[str] = "DecryptionRequested"

    request_id: LedgerInt = Field(alias="requestId")
    query_id: LedgerInt = Field(alias="queryId")
    timestamp: LedgerInt = 0


E = TypeVar("E", bound=LedgerEvent)


def decode_event(log: Any, event_type: type[E]) -> Optional[E]:
    """
    Decode a single receipt log as ``event_type``.

    Returns:
        The decoded event, or None if the log is of another type or malformed
    """
    if not isinstance(log, dict) or log.get("event") != event_type.event_name:
        return None

    args = log.get("args")
    if not isinstance(args, dict):
        return None

    try:
        return event_type.model_validate(args)
    except (ValidationError, TypeError, ValueError):
        return None


def find_event(logs: Optional[Iterable[Any]], event_type: type[E]) -> Optional[E]:
    """Return the first log that decodes as ``event_type``."""
    for log in logs or ():
        event = decode_event(log, event_type)
        if event is not None:
            return event
    return None

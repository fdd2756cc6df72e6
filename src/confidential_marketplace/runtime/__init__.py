"""
Runtime module - ledger bindings, encryption, mode selection and query lifecycle.
"""

from __future__ import annotations

from .context import MarketplaceSettings, WorkflowContext
from .encryption import (
    EncryptionAdapter,
    HomomorphicAdapter,
    InputEncryptor,
    PlaintextAdapter,
    RelayerEncryptor,
    relayer_encryptor_factory,
    validate_values,
)
from .events import (
    DatasetCreated,
    DecryptionRequested,
    LedgerEvent,
    QueryCompleted,
    QueryExecuted,
    QueryRefunded,
    decode_event,
    find_event,
)
from .gateway import DecryptionGateway
from .ledger import FHELedgerClient, LedgerClient, MockLedgerClient
from .lifecycle import ProgressCallback, QueryLifecycleManager, QueryTracker
from .polling import PollResult, poll_until
from .rpc_client import LedgerRPC
from .session import ModeSelector, Session

__all__ = [
    # Context
    "MarketplaceSettings",
    "WorkflowContext",
    # Encryption
    "EncryptionAdapter",
    "PlaintextAdapter",
    "HomomorphicAdapter",
    "InputEncryptor",
    "RelayerEncryptor",
    "relayer_encryptor_factory",
    "validate_values",
    # Events
    "LedgerEvent",
    "DatasetCreated",
    "QueryExecuted",
    "QueryCompleted",
    "QueryRefunded",
    "DecryptionRequested",
    "decode_event",
    "find_event",
    # Ledger
    "LedgerRPC",
    "LedgerClient",
    "MockLedgerClient",
    "FHELedgerClient",
    "DecryptionGateway",
    # Lifecycle
    "PollResult",
    "poll_until",
    "QueryLifecycleManager",
    "QueryTracker",
    "ProgressCallback",
    # Session
    "ModeSelector",
    "Session",
]

"""
Immutable settings and per-workflow context.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from ..core.defs import NetworkDef
from ..core.settlement import DEFAULT_PLATFORM_FEE_PERCENT, MAX_DATA_SIZE, MIN_PRICE_WEI
from ..core.types import ExecutionMode

if TYPE_CHECKING:
    from .ledger import LedgerClient


@dataclass(frozen=True)
class MarketplaceSettings:
    """Configuration values a session and its workflows run with."""
    network: NetworkDef
    mock_address: str = ""
    fhe_address: str = ""
    account: Optional[str] = None
    default_mode: ExecutionMode = ExecutionMode.MOCK
    min_price: int = MIN_PRICE_WEI
    max_data_size: int = MAX_DATA_SIZE
    platform_fee_percent: int = DEFAULT_PLATFORM_FEE_PERCENT
    poll_interval: float = 2.0
    poll_attempts: int = 60
    confirm_interval: float = 2.0
    confirm_attempts: int = 60
    request_timeout: float = 60.0
    gateway_timeout: float = 5.0
    relayer_url: Optional[str] = None

    def contract_address(self, mode: ExecutionMode) -> str:
        return self.fhe_address if mode == ExecutionMode.FHE else self.mock_address


@dataclass(frozen=True, eq=False)
class WorkflowContext:
    """
    Snapshot handed to a single workflow.

    The mode and client are fixed for the whole workflow, even if the
    session switches mode while it runs.
    Contexts compare by identity.
    """
    mode: ExecutionMode
    client: LedgerClient
    settings: MarketplaceSettings

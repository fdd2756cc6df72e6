"""
Confidential data marketplace client.

Providers upload numeric datasets, buyers pay for aggregate queries
(mean, variance, threshold counts) without seeing the raw values. Queries
run either against a plaintext mock contract or an FHE contract whose
results are decrypted by an external gateway.

Usage:
    from confidential_marketplace import Session, load_config

    async with Session.from_config(load_config()) as session:
        manager = await session.lifecycle()
        outcome = await manager.run_query(1, "mean")
"""

__version__ = "0.1.0"

from .config import MarketplaceConfig, load_config
from .core import (
    Dataset,
    ExecutionMode,
    MarketplaceError,
    Query,
    QueryStatus,
    QueryType,
    describe_error,
    split_price,
)
from .runtime import QueryLifecycleManager, Session

__all__ = [
    "__version__",
    "MarketplaceConfig",
    "load_config",
    "Session",
    "QueryLifecycleManager",
    "ExecutionMode",
    "QueryType",
    "QueryStatus",
    "Dataset",
    "Query",
    "MarketplaceError",
    "describe_error",
    "split_price",
]

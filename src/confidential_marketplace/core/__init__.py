"""
Core module - records, errors, network definitions, settlement.
"""

from __future__ import annotations

from .defs import (
    DEFAULT_NETWORKS,
    FHEVM_CHAIN_IDS,
    NetworkDef,
    get_network_by_chain,
    is_fhe_network,
    network_name,
)
from .errors import (
    ConfigError,
    ContractNotInitialized,
    DatasetInactive,
    DatasetNotFound,
    DatasetTooLarge,
    DecryptionTimeout,
    EncryptionFailed,
    GatewayUnavailable,
    InvalidInputSize,
    LedgerUnavailable,
    MarketplaceError,
    MissingQueryParameter,
    NetworkMismatch,
    PollTimeout,
    PriceTooLow,
    QueryFailed,
    QueryNotFound,
    QueryRefunded,
    RPCError,
    TransactionReverted,
    TransactionTimeout,
    UnsupportedOperation,
    ValueOutOfRange,
    WalletNotConnected,
    describe_error,
)
from .settlement import (
    DEFAULT_PLATFORM_FEE_PERCENT,
    MAX_DATA_SIZE,
    MIN_PRICE_WEI,
    expected_provider_revenue,
    split_price,
    validate_upload,
)
from .types import (
    QUERY_TYPE_NAMES,
    Dataset,
    EncryptedInput,
    ExecutionMode,
    PlatformStats,
    PreparedInputs,
    PreparedParameter,
    ProviderSummary,
    Query,
    QueryOutcome,
    QueryStatus,
    QuerySubmission,
    QueryType,
    Settlement,
    TxRef,
    UploadResult,
)
from .utils import (
    format_address,
    format_ether,
    parse_data_points,
    parse_ether,
    to_hex_quantity,
    to_int,
)

__all__ = [
    # Definitions
    "NetworkDef",
    "DEFAULT_NETWORKS",
    "FHEVM_CHAIN_IDS",
    "get_network_by_chain",
    "is_fhe_network",
    "network_name",
    # Errors
    "MarketplaceError",
    "InvalidInputSize",
    "ValueOutOfRange",
    "EncryptionFailed",
    "PriceTooLow",
    "DatasetTooLarge",
    "MissingQueryParameter",
    "WalletNotConnected",
    "ContractNotInitialized",
    "NetworkMismatch",
    "UnsupportedOperation",
    "RPCError",
    "LedgerUnavailable",
    "DatasetNotFound",
    "DatasetInactive",
    "QueryNotFound",
    "TransactionTimeout",
    "TransactionReverted",
    "DecryptionTimeout",
    "QueryFailed",
    "QueryRefunded",
    "GatewayUnavailable",
    "PollTimeout",
    "ConfigError",
    "describe_error",
    # Settlement
    "DEFAULT_PLATFORM_FEE_PERCENT",
    "MIN_PRICE_WEI",
    "MAX_DATA_SIZE",
    "split_price",
    "validate_upload",
    "expected_provider_revenue",
    # Types
    "ExecutionMode",
    "QueryType",
    "QueryStatus",
    "QUERY_TYPE_NAMES",
    "Dataset",
    "Query",
    "PlatformStats",
    "ProviderSummary",
    "EncryptedInput",
    "PreparedInputs",
    "PreparedParameter",
    "TxRef",
    "UploadResult",
    "QuerySubmission",
    "Settlement",
    "QueryOutcome",
    # Utils
    "to_int",
    "to_hex_quantity",
    "parse_ether",
    "format_ether",
    "format_address",
    "parse_data_points",
]

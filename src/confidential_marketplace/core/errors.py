"""
Custom exceptions for the confidential marketplace.

Every error carries a short ``user_message`` suitable for display and an
HTTP ``status_code`` used by the API layer.
"""

from __future__ import annotations

from typing import Any, Optional


class MarketplaceError(Exception):
    """Base exception for all marketplace errors."""

    user_message = "Unexpected marketplace error"
    status_code = 500

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)

    @property
    def kind(self) -> str:
        return type(self).__name__


# --- Validation errors (raised before any transaction is built) ---


class InvalidInputSize(MarketplaceError):
    """Raised when a dataset has no values or more than the allowed maximum."""

    user_message = "Dataset must contain between 1 and 1000 data points"
    status_code = 400

    def __init__(self, size: int, max_size: int = 1000):
        self.size = size
        self.max_size = max_size
        super().__init__(f"Invalid input size {size}: expected 1..{max_size} values")


class ValueOutOfRange(MarketplaceError):
    """Raised when a value does not fit the backend's unsigned 32-bit width."""

    user_message = "Data values must be whole numbers between 0 and 4294967295"
    status_code = 400

    def __init__(self, index: int, value: Any, lower: int = 0, upper: int = 2**32 - 1):
        self.index = index
        self.value = value
        self.lower = lower
        self.upper = upper
        super().__init__(f"Value {value!r} at index {index} is outside [{lower}, {upper}]")


class PriceTooLow(MarketplaceError):
    user_message = "Price per query is below the marketplace minimum"
    status_code = 400

    def __init__(self, price: int, min_price: int):
        self.price = price
        self.min_price = min_price
        super().__init__(f"Price {price} is below minimum {min_price}")


class DatasetTooLarge(MarketplaceError):
    user_message = "Dataset exceeds the maximum number of data points"
    status_code = 400

    def __init__(self, size: int, max_size: int):
        self.size = size
        self.max_size = max_size
        super().__init__(f"Dataset size {size} exceeds maximum {max_size}")


class MissingQueryParameter(MarketplaceError):
    """Raised when a threshold query is submitted without a threshold."""

    user_message = "This query type requires a threshold parameter"
    status_code = 400

    def __init__(self, query_type: Any):
        self.query_type = query_type
        super().__init__(f"Query type {query_type} requires a threshold parameter")


class EncryptionFailed(MarketplaceError):
    """Raised when the external encryptor fails; the whole batch is aborted."""

    user_message = "Data encryption failed, please check the input values"
    status_code = 502

    def __init__(self, index: int, reason: str = ""):
        self.index = index
        self.reason = reason
        super().__init__(f"Encryption failed at index {index}: {reason}")


# --- Binding errors ---


class WalletNotConnected(MarketplaceError):
    user_message = "No wallet account is connected"
    status_code = 401


class ContractNotInitialized(MarketplaceError):
    user_message = "Marketplace contract is not configured for this mode"
    status_code = 503

    def __init__(self, mode: Any):
        self.mode = mode
        super().__init__(f"No contract address configured for {mode} mode")


class NetworkMismatch(MarketplaceError):
    """Raised when the connected chain does not fit the selected mode."""

    user_message = "Wrong network for the selected mode, please switch networks"
    status_code = 409

    def __init__(self, expected: Optional[int], actual: Optional[int], mode: Any = None):
        self.expected = expected
        self.actual = actual
        self.mode = mode
        if expected is None:
            message = f"Chain {actual} does not support {mode} mode"
        else:
            message = f"Expected chain {expected}, connected to {actual}"
        super().__init__(message)


class UnsupportedOperation(MarketplaceError):
    user_message = "Operation is not available in the current mode"
    status_code = 400

    def __init__(self, operation: str, mode: Any):
        self.operation = operation
        self.mode = mode
        super().__init__(f"'{operation}' is not supported in {mode} mode")


# --- Ledger errors ---


class RPCError(MarketplaceError):
    """Raised when the ledger RPC endpoint returns an error."""

    user_message = "Ledger request failed"
    status_code = 502

    def __init__(self, method: str, code: int, message: str, data: Any = None):
        self.method = method
        self.code = code
        self.data = data
        super().__init__(f"RPC '{method}' failed ({code}): {message}")


class LedgerUnavailable(MarketplaceError):
    """Raised when the ledger RPC endpoint cannot be reached."""

    user_message = "Ledger node is unreachable, please try again"
    status_code = 503

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Ledger at {url} is unavailable: {reason}")


class DatasetNotFound(MarketplaceError):
    user_message = "Dataset does not exist"
    status_code = 404

    def __init__(self, dataset_id: int):
        self.dataset_id = dataset_id
        super().__init__(f"Dataset {dataset_id} not found")


class DatasetInactive(MarketplaceError):
    user_message = "Dataset is no longer available for queries"
    status_code = 409

    def __init__(self, dataset_id: int):
        self.dataset_id = dataset_id
        super().__init__(f"Dataset {dataset_id} is inactive")


class QueryNotFound(MarketplaceError):
    user_message = "Query does not exist yet"
    status_code = 404

    def __init__(self, query_id: Optional[int], message: Optional[str] = None):
        self.query_id = query_id
        super().__init__(message or f"Query {query_id} not found")


class TransactionTimeout(MarketplaceError):
    """Raised when the signer or the confirmation wait does not respond in time."""

    user_message = "Transaction timed out, check the transaction before resubmitting"
    status_code = 504

    def __init__(self, timeout: float, tx_hash: Optional[str] = None, stage: str = "submit"):
        self.timeout = timeout
        self.tx_hash = tx_hash
        self.stage = stage
        if tx_hash:
            message = f"Transaction {tx_hash} not confirmed within {timeout:g}s"
        else:
            message = f"Signer did not respond within {timeout:g}s"
        super().__init__(message)


class TransactionReverted(MarketplaceError):
    user_message = "Transaction failed on the ledger"
    status_code = 502

    def __init__(self, tx_hash: str, reason: Optional[str] = None):
        self.tx_hash = tx_hash
        self.reason = reason
        super().__init__(f"Transaction {tx_hash} reverted{f': {reason}' if reason else ''}")


# --- Query lifecycle errors ---


class DecryptionTimeout(MarketplaceError):
    """Raised when the poll budget is exhausted before a terminal status."""

    user_message = "Decryption timed out, please check the query again later"
    status_code = 504

    def __init__(self, query_id: int, attempts: int, interval: float, last_status: Any = None):
        self.query_id = query_id
        self.attempts = attempts
        self.interval = interval
        self.last_status = last_status
        super().__init__(
            f"Query {query_id} not terminal after {attempts} attempts "
            f"({attempts * interval:g}s), last status {last_status}"
        )


class QueryFailed(MarketplaceError):
    user_message = "Query execution failed"
    status_code = 409

    def __init__(self, query_id: int):
        self.query_id = query_id
        super().__init__(f"Query {query_id} failed")


class QueryRefunded(MarketplaceError):
    user_message = "Query was refunded"
    status_code = 409

    def __init__(self, query_id: int, amount: Optional[int] = None):
        self.query_id = query_id
        self.amount = amount
        super().__init__(f"Query {query_id} refunded")


class GatewayUnavailable(MarketplaceError):
    """Raised when the decryption gateway health probe fails."""

    user_message = "Decryption gateway is unavailable, falling back to mock mode"
    status_code = 503

    def __init__(self, url: Optional[str], reason: str = ""):
        self.url = url
        self.reason = reason
        super().__init__(f"Gateway {url} unavailable{f': {reason}' if reason else ''}")


class PollTimeout(MarketplaceError):
    """Raised by poll_until when the attempt budget runs out."""

    user_message = "Operation timed out"
    status_code = 504

    def __init__(self, label: str, attempts: int, last_error: Optional[BaseException] = None):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{label}: no result after {attempts} attempts")


class ConfigError(MarketplaceError):
    user_message = "Marketplace configuration is invalid"
    status_code = 500


# Substrings of foreign error messages that map onto a friendlier text
_MESSAGE_HINTS = {
    "insufficient funds": "Insufficient balance, please top up and retry",
    "user rejected": "Transaction was rejected in the wallet",
    "nonce too low": "Account nonce is stale, please retry",
}


def describe_error(exc: BaseException) -> str:
    """Return a short human-readable message for any exception."""
    # Ledger errors wrap foreign messages that may carry a better hint
    if isinstance(exc, MarketplaceError) and not isinstance(exc, (RPCError, TransactionReverted)):
        return exc.user_message

    text = str(exc)
    lowered = text.lower()
    for hint, message in _MESSAGE_HINTS.items():
        if hint in lowered:
            return message
    if isinstance(exc, MarketplaceError):
        return exc.user_message
    return text or type(exc).__name__

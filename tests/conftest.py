"""
Shared fixtures: fake ledger, clients and settings with zero poll intervals.
"""

import dataclasses

import pytest

from confidential_marketplace.core.defs import DEFAULT_NETWORKS
from confidential_marketplace.runtime.context import MarketplaceSettings, WorkflowContext
from confidential_marketplace.runtime.ledger import FHELedgerClient, MockLedgerClient
from confidential_marketplace.core.types import ExecutionMode

from fakes import FHE_ADDRESS, MOCK_ADDRESS, EncryptorRegistry, FakeLedger

HARDHAT = DEFAULT_NETWORKS["hardhat"]
SEPOLIA = DEFAULT_NETWORKS["sepolia"]


@pytest.fixture
def settings():
    """Settings for a local hardhat node with instant polling"""
    return MarketplaceSettings(
        network=HARDHAT,
        mock_address=MOCK_ADDRESS,
        fhe_address=FHE_ADDRESS,
        poll_interval=0,
        poll_attempts=5,
        confirm_interval=0,
        confirm_attempts=5,
        request_timeout=1.0,
    )


@pytest.fixture
def fhe_settings(settings):
    """Same settings on an FHE-capable network"""
    return dataclasses.replace(settings, network=SEPOLIA)


@pytest.fixture
def ledger():
    return FakeLedger(chain_id=HARDHAT.chain_id)


@pytest.fixture
def fhe_ledger():
    return FakeLedger(chain_id=SEPOLIA.chain_id)


@pytest.fixture
def encryptors():
    return EncryptorRegistry()


@pytest.fixture
def mock_client(ledger, settings):
    return MockLedgerClient(
        ledger, MOCK_ADDRESS, HARDHAT,
        confirm_interval=0, confirm_attempts=5, request_timeout=1.0,
    )


@pytest.fixture
def fhe_client(fhe_ledger, encryptors):
    return FHELedgerClient(
        fhe_ledger, FHE_ADDRESS, SEPOLIA,
        encryptor_factory=encryptors,
        confirm_interval=0, confirm_attempts=5, request_timeout=1.0,
    )


@pytest.fixture
def mock_context(mock_client, settings):
    return WorkflowContext(mode=ExecutionMode.MOCK, client=mock_client, settings=settings)


@pytest.fixture
def fhe_context(fhe_client, fhe_settings):
    return WorkflowContext(mode=ExecutionMode.FHE, client=fhe_client, settings=fhe_settings)

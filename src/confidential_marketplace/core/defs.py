"""
Core dataclass definitions for ledger networks.

These describe the chains the marketplace can bind to and which of them
support encrypted (FHE) execution.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class NetworkDef:
    """Definition of a ledger network."""
    key: str  # config key, e.g. "sepolia"
    chain_id: int
    name: str
    rpc_url: str
    is_fhevm: bool = False
    gateway_url: Optional[str] = None  # decryption gateway, FHE networks only
    block_explorer: Optional[str] = None

    def explorer_tx_url(self, tx_hash: str) -> Optional[str]:
        """Link to a transaction on the block explorer, if one is known."""
        if not self.block_explorer:
            return None
        return f"{self.block_explorer.rstrip('/')}/tx/{tx_hash}"


DEFAULT_NETWORKS: dict[str, NetworkDef] = {
    "hardhat": NetworkDef(
        key="hardhat",
        chain_id=31337,
        name="Hardhat",
        rpc_url="http://127.0.0.1:8545",
    ),
    "sepolia": NetworkDef(
        key="sepolia",
        chain_id=11155111,
        name="Sepolia Testnet",
        rpc_url="https://ethereum-sepolia-rpc.publicnode.com",
        is_fhevm=True,
        gateway_url="https://gateway.sepolia.zama.ai",
        block_explorer="https://sepolia.etherscan.io",
    ),
    "zamaDevnet": NetworkDef(
        key="zamaDevnet",
        chain_id=8009,
        name="Zama Devnet",
        rpc_url="https://devnet.zama.ai",
        is_fhevm=True,
        gateway_url="https://gateway.zama.ai",
        block_explorer="https://explorer.zama.ai",
    ),
    "zamaLocal": NetworkDef(
        key="zamaLocal",
        chain_id=9000,
        name="Zama Local",
        rpc_url="http://localhost:8545",
        is_fhevm=True,
        gateway_url="http://localhost:8545",
    ),
}

FHEVM_CHAIN_IDS = frozenset(
    network.chain_id for network in DEFAULT_NETWORKS.values() if network.is_fhevm
)


def is_fhe_network(chain_id: Optional[int]) -> bool:
    """Check whether a chain supports encrypted execution."""
    return chain_id in FHEVM_CHAIN_IDS


def get_network_by_chain(chain_id: int) -> Optional[NetworkDef]:
    """Find a known network by chain id."""
    for network in DEFAULT_NETWORKS.values():
        if network.chain_id == chain_id:
            return network
    return None


def network_name(chain_id: Optional[int]) -> str:
    """Human-readable name of a chain."""
    network = get_network_by_chain(chain_id) if chain_id is not None else None
    return network.name if network else f"Unknown Network ({chain_id})"

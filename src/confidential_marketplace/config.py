"""
Configuration loading for the marketplace.

Configuration lives in ``marketplace.yaml`` and is read once at startup.
Environment overrides:

- MARKETPLACE_CONFIG: path of the config file
- MARKETPLACE_ACCOUNT: sending account
- REDIS_URL: switches preferences to the redis backend
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .core.defs import DEFAULT_NETWORKS, NetworkDef
from .core.errors import ConfigError
from .core.settlement import DEFAULT_PLATFORM_FEE_PERCENT, MAX_DATA_SIZE, MIN_PRICE_WEI
from .core.types import ExecutionMode
from .runtime.context import MarketplaceSettings

DEFAULT_CONFIG_PATH = "marketplace.yaml"


@dataclass
class ContractsConfig:
    """Deployed contract addresses."""
    mock: str = ""
    fhe: str = ""
    fhe_enabled: bool = False  # default mode when no preference is stored


@dataclass
class LimitsConfig:
    min_price_wei: int = MIN_PRICE_WEI
    max_data_size: int = MAX_DATA_SIZE
    platform_fee_percent: int = DEFAULT_PLATFORM_FEE_PERCENT


@dataclass
class PollingConfig:
    """Fixed-interval polling budget."""
    interval: float = 2.0
    attempts: int = 60


@dataclass
class PreferencesConfig:
    """Where the preferred execution mode is stored."""
    backend: str = "file"  # file | redis | memory
    path: Optional[str] = None
    redis_url: Optional[str] = None
    redis_key: str = "marketplace:contract_mode"


@dataclass
class MarketplaceConfig:
    """Main marketplace configuration."""
    version: int = 1
    network: str = "hardhat"
    networks: dict[str, NetworkDef] = field(default_factory=lambda: dict(DEFAULT_NETWORKS))
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    account: Optional[str] = None
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    confirmation: PollingConfig = field(default_factory=PollingConfig)
    request_timeout: float = 60.0
    gateway_timeout: float = 5.0
    relayer_url: Optional[str] = None
    preferences: PreferencesConfig = field(default_factory=PreferencesConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MarketplaceConfig":
        """Create config from dictionary."""
        networks = dict(DEFAULT_NETWORKS)
        for key, net_data in (data.get("networks") or {}).items():
            base = networks.get(key)
            networks[key] = NetworkDef(
                key=key,
                chain_id=int(net_data.get("chain_id", base.chain_id if base else 0)),
                name=net_data.get("name", base.name if base else key),
                rpc_url=net_data.get("rpc_url", base.rpc_url if base else ""),
                is_fhevm=net_data.get("is_fhevm", base.is_fhevm if base else False),
                gateway_url=net_data.get("gateway_url", base.gateway_url if base else None),
                block_explorer=net_data.get("block_explorer", base.block_explorer if base else None),
            )

        contracts_data = data.get("contracts") or {}
        contracts = ContractsConfig(
            mock=contracts_data.get("mock", ""),
            fhe=contracts_data.get("fhe", ""),
            fhe_enabled=contracts_data.get("fhe_enabled", False),
        )

        limits_data = data.get("limits") or {}
        limits = LimitsConfig(
            min_price_wei=int(limits_data.get("min_price_wei", MIN_PRICE_WEI)),
            max_data_size=int(limits_data.get("max_data_size", MAX_DATA_SIZE)),
            platform_fee_percent=int(
                limits_data.get("platform_fee_percent", DEFAULT_PLATFORM_FEE_PERCENT)
            ),
        )

        polling_data = data.get("polling") or {}
        confirm_data = data.get("confirmation") or {}
        prefs_data = data.get("preferences") or {}

        return cls(
            version=data.get("version", 1),
            network=data.get("network", "hardhat"),
            networks=networks,
            contracts=contracts,
            account=data.get("account"),
            limits=limits,
            polling=PollingConfig(
                interval=float(polling_data.get("interval", 2.0)),
                attempts=int(polling_data.get("attempts", 60)),
            ),
            confirmation=PollingConfig(
                interval=float(confirm_data.get("interval", 2.0)),
                attempts=int(confirm_data.get("attempts", 60)),
            ),
            request_timeout=float(data.get("request_timeout", 60.0)),
            gateway_timeout=float(data.get("gateway_timeout", 5.0)),
            relayer_url=data.get("relayer_url"),
            preferences=PreferencesConfig(
                backend=prefs_data.get("backend", "file"),
                path=prefs_data.get("path"),
                redis_url=prefs_data.get("redis_url"),
                redis_key=prefs_data.get("redis_key", "marketplace:contract_mode"),
            ),
        )

    def apply_env(self, environ: Optional[dict[str, str]] = None) -> "MarketplaceConfig":
        """Apply environment overrides in place."""
        environ = os.environ if environ is None else environ
        if environ.get("MARKETPLACE_ACCOUNT"):
            self.account = environ["MARKETPLACE_ACCOUNT"]
        if environ.get("REDIS_URL"):
            self.preferences.backend = "redis"
            self.preferences.redis_url = environ["REDIS_URL"]
        return self

    def get_network(self) -> NetworkDef:
        network = self.networks.get(self.network)
        if network is None:
            raise ConfigError(f"Unknown network '{self.network}'")
        return network

    def validate(self) -> None:
        """
        Check value ranges.

        Raises:
            ConfigError: On the first invalid value
        """
        self.get_network()
        if not 0 <= self.limits.platform_fee_percent <= 100:
            raise ConfigError("limits.platform_fee_percent must be within 0..100")
        if not 1 <= self.limits.max_data_size <= MAX_DATA_SIZE:
            raise ConfigError(f"limits.max_data_size must be within 1..{MAX_DATA_SIZE}")
        if self.limits.min_price_wei < 0:
            raise ConfigError("limits.min_price_wei must be non-negative")
        for name, polling in (("polling", self.polling), ("confirmation", self.confirmation)):
            if polling.attempts < 1 or polling.interval < 0:
                raise ConfigError(f"{name} needs attempts >= 1 and interval >= 0")
        if self.preferences.backend not in ("file", "redis", "memory"):
            raise ConfigError(f"Unknown preferences backend '{self.preferences.backend}'")

    def settings(self) -> MarketplaceSettings:
        """Frozen settings for a session."""
        self.validate()
        return MarketplaceSettings(
            network=self.get_network(),
            mock_address=self.contracts.mock,
            fhe_address=self.contracts.fhe,
            account=self.account,
            default_mode=ExecutionMode.FHE if self.contracts.fhe_enabled else ExecutionMode.MOCK,
            min_price=self.limits.min_price_wei,
            max_data_size=self.limits.max_data_size,
            platform_fee_percent=self.limits.platform_fee_percent,
            poll_interval=self.polling.interval,
            poll_attempts=self.polling.attempts,
            confirm_interval=self.confirmation.interval,
            confirm_attempts=self.confirmation.attempts,
            request_timeout=self.request_timeout,
            gateway_timeout=self.gateway_timeout,
            relayer_url=self.relayer_url,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for YAML serialization."""
        return {
            "version": self.version,
            "network": self.network,
            "networks": {
                key: {
                    "chain_id": net.chain_id,
                    "name": net.name,
                    "rpc_url": net.rpc_url,
                    "is_fhevm": net.is_fhevm,
                    "gateway_url": net.gateway_url,
                    "block_explorer": net.block_explorer,
                }
                for key, net in self.networks.items()
            },
            "contracts": {
                "mock": self.contracts.mock,
                "fhe": self.contracts.fhe,
                "fhe_enabled": self.contracts.fhe_enabled,
            },
            "account": self.account,
            "limits": {
                "min_price_wei": self.limits.min_price_wei,
                "max_data_size": self.limits.max_data_size,
                "platform_fee_percent": self.limits.platform_fee_percent,
            },
            "polling": {
                "interval": self.polling.interval,
                "attempts": self.polling.attempts,
            },
            "confirmation": {
                "interval": self.confirmation.interval,
                "attempts": self.confirmation.attempts,
            },
            "request_timeout": self.request_timeout,
            "gateway_timeout": self.gateway_timeout,
            "relayer_url": self.relayer_url,
            "preferences": {
                "backend": self.preferences.backend,
                "path": self.preferences.path,
                "redis_url": self.preferences.redis_url,
                "redis_key": self.preferences.redis_key,
            },
        }

    def save(self, path: Path | str = DEFAULT_CONFIG_PATH) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        content = yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)
        path.write_text(content)


def load_config(path: Path | str | None = None) -> MarketplaceConfig | None:
    """
    Load configuration from YAML file.

    Returns None if the file does not exist.
    """
    path = Path(path or os.environ.get("MARKETPLACE_CONFIG") or DEFAULT_CONFIG_PATH)
    if not path.exists():
        return None

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return MarketplaceConfig.from_dict(data).apply_env()

"""
Persistence of the user's execution-mode preference.

Only one key is stored: the preferred contract mode. An unreadable or
unknown stored value counts as "no preference".

Backends:
- MemoryPreferenceStore: process-local, for tests and throwaway sessions
- FilePreferenceStore: YAML file in the user's home directory
- RedisPreferenceStore: shared between API workers
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import yaml

from ..core.types import ExecutionMode
from .client import RedisClient

if TYPE_CHECKING:
    from ..config import PreferencesConfig

logger = logging.getLogger(__name__)

PREFERENCE_KEY = "contract_mode"
DEFAULT_PREFERENCES_PATH = Path.home() / ".confidential_marketplace" / "preferences.yaml"
DEFAULT_REDIS_KEY = "marketplace:contract_mode"


def _parse_mode(value: Optional[str]) -> Optional[ExecutionMode]:
    if value is None:
        return None
    try:
        return ExecutionMode.parse(value)
    except ValueError:
        logger.warning(f"Ignoring unknown stored mode {value!r}")
        return None


class PreferenceStore(ABC):
    """Async storage for the preferred execution mode."""

    @abstractmethod
    async def get_mode(self) -> Optional[ExecutionMode]:
        """Stored preference, or None if there is none."""

    @abstractmethod
    async def set_mode(self, mode: ExecutionMode) -> None:
        ...

    async def close(self) -> None:
        pass


class MemoryPreferenceStore(PreferenceStore):

    def __init__(self, mode: Optional[ExecutionMode] = None):
        self.mode = mode

    async def get_mode(self) -> Optional[ExecutionMode]:
        return self.mode

    async def set_mode(self, mode: ExecutionMode) -> None:
        self.mode = mode


class FilePreferenceStore(PreferenceStore):
    """Preference kept in a small YAML file."""

    def __init__(self, path: Path | str = DEFAULT_PREFERENCES_PATH):
        self.path = Path(path).expanduser()

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = yaml.safe_load(self.path.read_text())
        except yaml.YAMLError as e:
            logger.warning(f"Unreadable preferences file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    async def get_mode(self) -> Optional[ExecutionMode]:
        return _parse_mode(self._read().get(PREFERENCE_KEY))

    async def set_mode(self, mode: ExecutionMode) -> None:
        data = self._read()
        data[PREFERENCE_KEY] = mode.value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))


class RedisPreferenceStore(PreferenceStore):
    """Preference kept under a single Redis key."""

    def __init__(self, client: RedisClient, key: str = DEFAULT_REDIS_KEY):
        self.client = client
        self.key = key

    async def get_mode(self) -> Optional[ExecutionMode]:
        await self.client.connect()
        return _parse_mode(await self.client.get(self.key))

    async def set_mode(self, mode: ExecutionMode) -> None:
        await self.client.connect()
        await self.client.set(self.key, mode.value)

    async def close(self) -> None:
        await self.client.disconnect()


def create_preference_store(config: Optional[PreferencesConfig] = None) -> PreferenceStore:
    """Build the store selected in the configuration."""
    if config is None:
        return FilePreferenceStore()
    if config.backend == "memory":
        return MemoryPreferenceStore()
    if config.backend == "redis":
        if not config.redis_url:
            raise ValueError("preferences.redis_url is required for the redis backend")
        return RedisPreferenceStore(RedisClient(config.redis_url), key=config.redis_key)
    return FilePreferenceStore(config.path or DEFAULT_PREFERENCES_PATH)

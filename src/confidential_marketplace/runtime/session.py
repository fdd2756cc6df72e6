"""
Mode selection and session bindings.

ModeSelector owns the process-wide execution mode. Session owns the
selector, the settings, the shared RPC transport and the lazily built
ledger client for each mode. Workflows call ``Session.resolve()`` once and
keep the returned context for their whole run.

Usage:
    async with Session.from_config(config) as session:
        manager = await session.lifecycle()
        outcome = await manager.run_query(1, "mean")
"""

from __future__ import annotations

import logging
import weakref
from typing import Callable, Optional

from ..core.errors import ConfigError, GatewayUnavailable, NetworkMismatch
from ..core.types import ExecutionMode
from ..storage.preferences import MemoryPreferenceStore, PreferenceStore, create_preference_store
from .context import MarketplaceSettings, WorkflowContext
from .encryption import EncryptorFactory, relayer_encryptor_factory
from .gateway import DecryptionGateway
from .ledger import FHELedgerClient, LedgerClient, MockLedgerClient
from .lifecycle import QueryLifecycleManager
from .rpc_client import LedgerRPC

logger = logging.getLogger(__name__)

ModeListener = Callable[[ExecutionMode], None]


class ModeSelector:
    """
    Current execution mode with a persisted user preference.

    ``auto_fallback()`` switches to MOCK for this process only; the stored
    preference is left as it was.
    """

    def __init__(self, store: PreferenceStore, default_mode: ExecutionMode = ExecutionMode.MOCK):
        self.store = store
        self.default_mode = default_mode
        self._mode = default_mode
        self._preferred = default_mode
        self._auto_fallback = False
        self._listeners: list[ModeListener] = []

    async def load(self) -> ExecutionMode:
        """Read the stored preference; falls back to the default mode."""
        stored = await self.store.get_mode()
        self._preferred = stored if stored is not None else self.default_mode
        self._mode = self._preferred
        self._auto_fallback = False
        return self._mode

    def current_mode(self) -> ExecutionMode:
        return self._mode

    @property
    def is_auto_fallback(self) -> bool:
        return self._auto_fallback

    @property
    def preferred_mode(self) -> ExecutionMode:
        return self._preferred

    def on_change(self, listener: ModeListener) -> None:
        self._listeners.append(listener)

    def _switch(self, mode: ExecutionMode) -> None:
        previous = self._mode
        self._mode = mode
        if previous != mode:
            for listener in self._listeners:
                listener(mode)

    async def set_mode(self, mode: ExecutionMode | str) -> ExecutionMode:
        """Persist ``mode`` as the preference and switch to it."""
        mode = ExecutionMode.parse(mode)
        await self.store.set_mode(mode)
        self._preferred = mode
        self._auto_fallback = False
        logger.info(f"Execution mode set to {mode.value}")
        self._switch(mode)
        return mode

    def auto_fallback(self) -> ExecutionMode:
        """Force MOCK mode and flag it as an automatic fallback."""
        if not self._auto_fallback or self._mode != ExecutionMode.MOCK:
            logger.warning(f"Falling back to mock mode (was {self._mode.value})")
        self._auto_fallback = True
        self._switch(ExecutionMode.MOCK)
        return self._mode


class Session:
    """
    Process-wide marketplace session.

    A mode change drops the cached binding for new workflows. Workflows
    that already resolved a context keep using the old client until they
    finish. A retired client is closed once no live context refers to it,
    or with the session.
    """

    def __init__(
        self,
        settings: MarketplaceSettings,
        rpc: Optional[LedgerRPC] = None,
        gateway: Optional[DecryptionGateway] = None,
        preferences: Optional[PreferenceStore] = None,
        encryptor_factory: Optional[EncryptorFactory] = None,
    ):
        self.settings = settings
        self.rpc = rpc or LedgerRPC(settings.network.rpc_url, timeout=settings.request_timeout)
        self.gateway = gateway or DecryptionGateway(
            settings.network.gateway_url, timeout=settings.gateway_timeout
        )
        self.selector = ModeSelector(preferences or MemoryPreferenceStore(), settings.default_mode)
        self.selector.on_change(self._on_mode_change)

        if encryptor_factory is None and settings.relayer_url:
            encryptor_factory = relayer_encryptor_factory(settings.relayer_url)
        self.encryptor_factory = encryptor_factory

        self._bindings: dict[ExecutionMode, LedgerClient] = {}
        self._retired: list[LedgerClient] = []
        self._contexts: weakref.WeakSet[WorkflowContext] = weakref.WeakSet()
        self._started = False

    @classmethod
    def from_config(cls, config, **kwargs) -> Session:
        """Build a session from a MarketplaceConfig."""
        kwargs.setdefault("preferences", create_preference_store(config.preferences))
        return cls(config.settings(), **kwargs)

    # === Lifecycle ===

    async def start(self) -> ExecutionMode:
        """Load the preference and validate it against the network."""
        mode = await self.selector.load()
        if mode == ExecutionMode.FHE and not self.settings.network.is_fhevm:
            logger.warning(
                f"FHE preferred but {self.settings.network.name} has no FHE support"
            )
            mode = self.selector.auto_fallback()
        self._started = True
        logger.info(f"Session started in {mode.value} mode on {self.settings.network.name}")
        return mode

    async def close(self) -> None:
        for client in [*self._bindings.values(), *self._retired]:
            await client.close()
        self._bindings.clear()
        self._retired.clear()
        await self.gateway.close()
        await self.rpc.close()
        await self.selector.store.close()

    async def __aenter__(self) -> Session:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # === Mode ===

    @property
    def mode(self) -> ExecutionMode:
        return self.selector.current_mode()

    async def set_mode(self, mode: ExecutionMode | str) -> ExecutionMode:
        """
        Explicitly select a mode.

        Raises:
            NetworkMismatch: If FHE is selected on a network without FHE support
        """
        mode = ExecutionMode.parse(mode)
        if mode == ExecutionMode.FHE and not self.settings.network.is_fhevm:
            raise NetworkMismatch(None, self.settings.network.chain_id, mode.value)
        mode = await self.selector.set_mode(mode)
        await self.release_retired()
        return mode

    def _on_mode_change(self, mode: ExecutionMode) -> None:
        if self._bindings:
            logger.info(f"Mode changed to {mode.value}, dropping cached bindings")
            self._retired.extend(self._bindings.values())
            self._bindings.clear()

    async def release_retired(self) -> int:
        """
        Close retired clients that no live workflow context holds.

        Returns:
            Number of clients closed
        """
        in_use = {id(context.client) for context in self._contexts}
        idle = [client for client in self._retired if id(client) not in in_use]
        self._retired = [client for client in self._retired if id(client) in in_use]
        for client in idle:
            await client.close()
        if idle:
            logger.debug(f"Closed {len(idle)} retired client(s), {len(self._retired)} still in use")
        return len(idle)

    async def check_gateway(self) -> bool:
        """
        Probe the decryption gateway.

        In FHE mode a failed probe triggers the automatic fallback.
        """
        try:
            await self.gateway.probe()
        except GatewayUnavailable as e:
            if self.mode == ExecutionMode.FHE:
                logger.warning(f"Decryption gateway unavailable: {e}")
                self.selector.auto_fallback()
            return False
        return True

    # === Bindings ===

    def binding(self, mode: ExecutionMode) -> LedgerClient:
        """Ledger client for ``mode``, built on first use."""
        client = self._bindings.get(mode)
        if client is None:
            client = self._build_client(mode)
            self._bindings[mode] = client
        return client

    def _build_client(self, mode: ExecutionMode) -> LedgerClient:
        settings = self.settings
        options = dict(
            account=settings.account,
            request_timeout=settings.request_timeout,
            confirm_interval=settings.confirm_interval,
            confirm_attempts=settings.confirm_attempts,
            max_data_size=settings.max_data_size,
        )
        address = settings.contract_address(mode)
        if mode == ExecutionMode.FHE:
            if self.encryptor_factory is None:
                raise ConfigError("No input encryptor configured for FHE mode")
            return FHELedgerClient(
                self.rpc, address, settings.network,
                encryptor_factory=self.encryptor_factory, **options,
            )
        return MockLedgerClient(self.rpc, address, settings.network, **options)

    async def resolve(self) -> WorkflowContext:
        """
        Snapshot mode and client for one workflow.

        FHE workflows probe the gateway first and run in MOCK mode if it is
        down.
        """
        if not self._started:
            await self.start()

        if self.mode == ExecutionMode.FHE:
            await self.check_gateway()

        await self.release_retired()

        mode = self.mode
        context = WorkflowContext(mode=mode, client=self.binding(mode), settings=self.settings)
        self._contexts.add(context)
        return context

    async def lifecycle(self) -> QueryLifecycleManager:
        return QueryLifecycleManager(await self.resolve())

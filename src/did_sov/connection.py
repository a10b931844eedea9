"""Lazy, idempotent ledger connection setup."""

import asyncio
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any

from did_sov.config import DriverConfig
from did_sov.ledger import (
    LedgerClient,
    LedgerError,
    PoolConfigExistsError,
    StoreExistsError,
    get_genesis_transactions,
)

LOGGER = logging.getLogger(__name__)


class ConnectionSetupError(Exception):
    """Raised when the ledger connection cannot be established."""


class RuntimeInitError(ConnectionSetupError):
    """Raised when the ledger library cannot be loaded."""


class PoolConfigError(ConnectionSetupError):
    """Raised when the pool configuration cannot be created."""


class StoreCreateError(ConnectionSetupError):
    """Raised when the credential store cannot be created."""


class PoolOpenError(ConnectionSetupError):
    """Raised when the pool cannot be opened."""


class StoreOpenError(ConnectionSetupError):
    """Raised when the credential store cannot be opened."""


class SubmitterCreateError(ConnectionSetupError):
    """Raised when the submitter identity cannot be created."""


@dataclass(frozen=True)
class ConnectionState:
    """Handles needed to submit ledger requests."""

    pool: Any
    store: Any
    submitter_did: str


class ConnectionManager:
    """Open the pool, the store and a submitter identity on first use.

    The state is either fully set or unset. Concurrent callers wait on a lock
    and the first one to get it performs the setup; a failed setup leaves
    nothing behind so the next call starts over.
    """

    def __init__(self, config: DriverConfig, client: LedgerClient):
        """Init connection manager."""
        self.config = config
        self.client = client
        self._state: ConnectionState | None = None
        self._lock = asyncio.Lock()

    @property
    def is_ready(self) -> bool:
        """Whether the connection state is set."""
        return self._state is not None

    async def ensure_ready(self) -> ConnectionState:
        """Set up the connection if needed and return its state."""
        state = self._state
        if state:
            return state

        async with self._lock:
            if self._state:
                LOGGER.debug("Connection was set up while waiting")
                return self._state

            self._state = await self._connect()
            return self._state

    async def close(self):
        """Close the pool and store, if open."""
        async with self._lock:
            state = self._state
            self._state = None
            if not state:
                return
            try:
                await self.client.close_store(state.store)
            finally:
                await self.client.close_pool(state.pool)

    async def _connect(self) -> ConnectionState:
        self._init_runtime()
        await self._create_pool_config()
        await self._create_store()

        async with AsyncExitStack() as stack:
            pool = await self._open_pool()
            stack.push_async_callback(self.client.close_pool, pool)

            store = await self._open_store()
            stack.push_async_callback(self.client.close_store, store)

            submitter_did = await self._create_submitter(store)

            stack.pop_all()

        LOGGER.info(
            "Connected to pool '%s' with submitter %s",
            self.config.pool_config_name,
            submitter_did,
        )
        return ConnectionState(pool=pool, store=store, submitter_did=submitter_did)

    def _init_runtime(self):
        path = self.config.lib_indy_path
        if not path or self.client.runtime_initialized:
            return

        try:
            self.client.init_runtime(path)
        except LedgerError as err:
            raise RuntimeInitError(
                f"Cannot initialize ledger library {path}: {err}"
            ) from err

    async def _create_pool_config(self):
        name = self.config.pool_config_name
        try:
            genesis = await get_genesis_transactions(self.config.pool_genesis_txn)
            await self.client.create_pool_config(name, genesis)
            LOGGER.info("Pool config %s successfully created.", name)
        except PoolConfigExistsError:
            LOGGER.info("Pool config %s has already been created.", name)
        except LedgerError as err:
            raise PoolConfigError(
                f"Cannot create pool config {name}: {err}"
            ) from err

    async def _create_store(self):
        name = self.config.wallet_name
        try:
            await self.client.create_store(self.config.pool_config_name, name)
            LOGGER.info("Wallet %s successfully created.", name)
        except StoreExistsError:
            LOGGER.info("Wallet %s has already been created.", name)
        except LedgerError as err:
            raise StoreCreateError(f"Cannot create wallet {name}: {err}") from err

    async def _open_pool(self) -> Any:
        name = self.config.pool_config_name
        try:
            return await self.client.open_pool(name)
        except LedgerError as err:
            raise PoolOpenError(f"Cannot open pool {name}: {err}") from err

    async def _open_store(self) -> Any:
        name = self.config.wallet_name
        try:
            return await self.client.open_store(name)
        except LedgerError as err:
            raise StoreOpenError(f"Cannot open wallet {name}: {err}") from err

    async def _create_submitter(self, store: Any) -> str:
        # A fresh identity on every cold start; nothing is reused across restarts
        try:
            identity = await self.client.create_identity(store)
        except LedgerError as err:
            raise SubmitterCreateError(f"Cannot create submitter DID: {err}") from err
        return identity.did

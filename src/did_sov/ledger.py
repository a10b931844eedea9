"""Ledger client capability and its indy-vdr / askar implementation."""

import ctypes
import hashlib
import json
import logging
import os
import sys
import tempfile
from dataclasses import dataclass
from io import StringIO
from pathlib import Path
from typing import Any, Literal, Optional, Protocol, cast

from aries_askar import AskarError, Key, KeyAlg, Store
from base58 import b58encode
from indy_vdr import Pool, Request, VdrError, bindings, ledger, open_pool

from did_sov.config import DriverConfig
from did_sov.utils import FetchError, fetch_text

LOGGER = logging.getLogger(__name__)

ReadRequestKind = Literal["NYM", "ATTRIB"]


def _normalize_txns(txns: str) -> str:
    """Normalize a set of genesis transactions."""
    lines = StringIO()
    for line in txns.splitlines():
        line = line.strip()
        if line:
            lines.write(line)
            lines.write("\n")
    return lines.getvalue()


def _write_safe(path: Path, content: str):
    """Atomically write to a file path."""
    dir_path = path.parent
    with tempfile.NamedTemporaryFile(dir=dir_path, delete=False) as tmp:
        tmp.write(content.encode("utf-8"))
        tmp_name = tmp.name
    os.rename(tmp_name, path)


def _hash_txns(txns: str) -> str:
    """Obtain a hash of a set of genesis transactions."""
    return hashlib.sha256(txns.encode("utf-8")).hexdigest()[-16:]


def _path_from_env(var: str, default: Path) -> Path:
    """Return a path from an environment variable"""
    if (value := os.getenv(var)) and (path := Path(value)).is_absolute():
        return path
    return default


def default_storage_root() -> Path:
    """Return the root directory for pool configs and stores."""
    data_dir = _path_from_env("XDG_DATA_HOME", Path.home() / ".local" / "share")
    return data_dir / "did_sov"


def _library_file_name() -> str:
    if sys.platform == "win32":
        return "indy_vdr.dll"
    if sys.platform == "darwin":
        return "libindy_vdr.dylib"
    return "libindy_vdr.so"


async def fetch_genesis_transactions(genesis_url: str) -> str:
    """Get genesis transactions."""
    LOGGER.info("Fetching genesis transactions from: %s", genesis_url)
    try:
        return await fetch_text(genesis_url, max_attempts=20)
    except FetchError as e:
        raise LedgerConfigError("Error retrieving ledger genesis transactions") from e


async def get_genesis_transactions(source: str) -> str:
    """Load genesis transactions from a URL, a file path or inline text."""
    if source.startswith(("http://", "https://")):
        return await fetch_genesis_transactions(source)

    if source.lstrip().startswith("{"):
        LOGGER.debug("Using inline ledger genesis transactions")
        return source

    try:
        LOGGER.info("Reading ledger genesis transactions from: %s", source)
        with open(source, "r") as genesis_file:
            return genesis_file.read()
    except (IOError, UnicodeDecodeError) as e:
        raise LedgerConfigError("Error reading ledger genesis transactions") from e


class LedgerError(Exception):
    """Raised on general ledger errors."""


class LedgerConfigError(LedgerError):
    """Raised on error configuring the ledger."""


class PoolConfigExistsError(LedgerError):
    """Raised when a pool configuration of the same name already exists."""


class StoreExistsError(LedgerError):
    """Raised when a store of the same name already exists."""


class ClosedPoolError(LedgerError):
    """Raised on pool closed."""


class BadLedgerRequestError(LedgerError):
    """Raised on bad ledger request."""


class LedgerTransactionError(LedgerError):
    """Raised on error with a txn."""


@dataclass
class Identity:
    """A local DID with its verification key."""

    did: str
    verkey: str


class LedgerClient(Protocol):
    """Operations the resolver needs from a ledger client."""

    def init_runtime(self, path: str):
        """Load the native ledger client library."""
        ...

    @property
    def runtime_initialized(self) -> bool:
        """Whether the native library has been loaded."""
        ...

    async def create_pool_config(self, name: str, genesis: str):
        """Register genesis transactions under a pool name.

        Raises PoolConfigExistsError if the name is already registered.
        """
        ...

    async def open_pool(self, name: str) -> Any:
        """Open a registered pool and return its handle."""
        ...

    async def close_pool(self, pool: Any):
        """Close a pool handle."""
        ...

    async def create_store(self, pool_name: str, store_name: str):
        """Create a credential store.

        Raises StoreExistsError if the store is already present.
        """
        ...

    async def open_store(self, name: str) -> Any:
        """Open a store and return its handle."""
        ...

    async def close_store(self, store: Any):
        """Close a store handle."""
        ...

    async def create_identity(self, store: Any) -> Identity:
        """Generate a new DID and key inside the store."""
        ...

    def build_read_request(
        self,
        kind: ReadRequestKind,
        submitter_did: str,
        target_id: str,
        attr_name: str | None = None,
    ) -> Any:
        """Build a GET_NYM or GET_ATTRIB request."""
        ...

    async def sign_and_submit(
        self, pool: Any, store: Any, submitter_did: str, request: Any
    ) -> str:
        """Sign a request with the submitter key, submit it, return the reply JSON."""
        ...


class VdrLedgerClient(LedgerClient):
    """Ledger client backed by indy-vdr for the pool and askar for the store.

    Files are kept under the configured storage path (by default
    `$XDG_DATA_HOME/did_sov` or `$HOME/.local/share/did_sov`):

        - {root}/pool/{pool name}/genesis holds the registered genesis txns
        - {root}/pool/{pool name}/cache-{genesis hash} caches the refreshed
          pool transactions
        - {root}/wallet/{store name}.db is the askar sqlite store
    """

    def __init__(self, config: DriverConfig):
        """Initialize the client."""
        self.config = config
        self.root_cache: Optional[Path] = None

    @property
    def root(self) -> Path:
        """Get the storage root, ensuring it's created."""
        if not self.root_cache:
            self.root_cache = self.config.storage_path or default_storage_root()
            self.root_cache.mkdir(parents=True, exist_ok=True)
        return self.root_cache

    def pool_path(self, name: str) -> Path:
        """Directory holding a pool configuration."""
        path = self.root / "pool" / name
        path.mkdir(parents=True, exist_ok=True)
        return path

    def store_uri(self, name: str) -> str:
        """Askar URI of a store."""
        return f"sqlite://{self.store_path(name)}"

    def store_path(self, name: str) -> Path:
        """Path of a store database."""
        path = self.root / "wallet"
        path.mkdir(parents=True, exist_ok=True)
        return path / f"{name}.db"

    @property
    def runtime_initialized(self) -> bool:
        """Whether the indy-vdr bindings have a native library loaded."""
        return bindings.LIB is not None

    def init_runtime(self, path: str):
        """Load the indy-vdr shared library from a file or directory.

        The loaded library becomes the one used by the indy-vdr bindings. A
        library already loaded by the bindings is left in place.
        """
        if self.runtime_initialized:
            LOGGER.info("Ledger library already loaded, ignoring %s", path)
            return

        lib_path = Path(path)
        if lib_path.is_dir():
            lib_path = lib_path / _library_file_name()

        LOGGER.info("Initializing ledger library: %s (%s)", path, lib_path.absolute())
        try:
            bindings.LIB = ctypes.CDLL(str(lib_path))
        except OSError as err:
            raise LedgerConfigError(f"Cannot load ledger library {lib_path}") from err

        try:
            bindings.do_call("indy_vdr_set_default_logger")
        except VdrError as err:
            bindings.LIB = None
            raise LedgerConfigError(
                f"Cannot initialize ledger library {lib_path}"
            ) from err

    async def create_pool_config(self, name: str, genesis: str):
        """Create the pool ledger configuration."""
        genesis = _normalize_txns(genesis)
        if not genesis:
            raise LedgerConfigError("Empty genesis transactions")

        genesis_path = self.pool_path(name) / "genesis"
        try:
            cmp_genesis = open(genesis_path).read()
        except FileNotFoundError:
            pass
        else:
            if _normalize_txns(cmp_genesis) != genesis:
                LOGGER.warning(
                    "Pool ledger config '%s' exists with different genesis "
                    "transactions; keeping the existing config",
                    name,
                )
            raise PoolConfigExistsError(f"Pool ledger config '{name}' already exists")

        try:
            _write_safe(genesis_path, genesis)
        except OSError as err:
            raise LedgerConfigError("Error writing genesis transactions") from err
        LOGGER.debug("Wrote pool ledger config '%s'", name)

    async def open_pool(self, name: str) -> Pool:
        """Open the pool ledger from its stored configuration."""
        cfg_pool = self.pool_path(name)
        try:
            genesis = _normalize_txns(open(cfg_pool / "genesis").read())
        except FileNotFoundError:
            raise LedgerConfigError(f"Pool config '{name}' not found") from None

        cache_path = cfg_pool / f"cache-{_hash_txns(genesis)}"
        try:
            txns = open(cache_path).read()
            cached = True
        except FileNotFoundError:
            txns = genesis
            cached = False

        try:
            pool = await open_pool(transactions=txns)
            upd_txns = _normalize_txns(await pool.get_transactions())
        except VdrError as err:
            raise LedgerError(f"Cannot open pool '{name}'") from err

        if not cached or upd_txns != txns:
            try:
                _write_safe(cache_path, upd_txns)
            except OSError:
                LOGGER.exception("Error writing cached genesis transactions")

        return pool

    async def close_pool(self, pool: Pool):
        """Close the pool ledger."""
        try:
            pool.close()
        except VdrError as err:
            raise LedgerError("Exception when closing pool ledger") from err

    async def create_store(self, pool_name: str, store_name: str):
        """Provision an askar store for the submitter keys."""
        if self.store_path(store_name).exists():
            raise StoreExistsError(f"Store '{store_name}' already exists")

        LOGGER.debug("Provisioning store '%s' for pool '%s'", store_name, pool_name)
        try:
            store = await Store.provision(
                self.store_uri(store_name),
                self.config.wallet_key_method,
                self.config.wallet_key,
            )
        except AskarError as err:
            raise LedgerError(f"Cannot create store '{store_name}'") from err
        await store.close()

    async def open_store(self, name: str) -> Store:
        """Open an askar store."""
        try:
            return await Store.open(
                self.store_uri(name),
                self.config.wallet_key_method,
                self.config.wallet_key,
            )
        except AskarError as err:
            raise LedgerError(f"Cannot open store '{name}'") from err

    async def close_store(self, store: Store):
        """Close an askar store."""
        try:
            await store.close()
        except AskarError as err:
            raise LedgerError("Cannot close store") from err

    async def create_identity(self, store: Store) -> Identity:
        """Generate a new ed25519 key and store it under its nym."""
        try:
            key = Key.generate(KeyAlg.ED25519)
            pub_bytes = key.get_public_bytes()
        except AskarError as err:
            raise LedgerError("Cannot generate submitter key") from err
        nym = b58encode(pub_bytes[:16]).decode()
        verkey = b58encode(pub_bytes).decode()

        try:
            async with store.session() as session:
                await session.insert_key(name=nym, key=key, tags={"nym": nym})
        except AskarError as err:
            raise LedgerError("Cannot store submitter key") from err

        return Identity(did=nym, verkey=verkey)

    def build_read_request(
        self,
        kind: ReadRequestKind,
        submitter_did: str,
        target_id: str,
        attr_name: str | None = None,
    ) -> Request:
        """Build a GET_NYM or GET_ATTRIB request."""
        try:
            if kind == "NYM":
                return ledger.build_get_nym_request(submitter_did, target_id)
            if kind == "ATTRIB":
                if not attr_name:
                    raise BadLedgerRequestError("Attribute name required")
                return ledger.build_get_attrib_request(
                    submitter_did, target_id, raw=attr_name
                )
        except VdrError as err:
            raise BadLedgerRequestError(f"Cannot build {kind} request") from err

        raise BadLedgerRequestError(f"Unsupported read request: {kind}")

    async def sign_and_submit(
        self, pool: Pool, store: Store, submitter_did: str, request: Request
    ) -> str:
        """Sign and submit request to ledger, returning the reply envelope."""
        if not pool or not pool.handle:
            raise ClosedPoolError("Cannot sign and submit request to closed pool")

        try:
            async with store.session() as session:
                entry = await session.fetch_key(submitter_did)
        except AskarError as err:
            raise LedgerTransactionError("Cannot load submitter key") from err
        if not entry:
            raise LedgerError(f"No key found for submitter {submitter_did}")

        try:
            key = cast(Key, entry.key)
            request.set_signature(key.sign_message(request.signature_input))
            LOGGER.debug(request.body)
        except (AskarError, VdrError) as err:
            raise LedgerTransactionError("Cannot sign ledger request") from err

        try:
            reply = await pool.submit_request(request)
        except VdrError as err:
            raise LedgerTransactionError("Ledger request error") from err

        if not ("op" in reply and "result" in reply):
            reply = {"op": "REPLY", "result": reply}
        return json.dumps(reply)

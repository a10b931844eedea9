import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Iterable, List

import pytest

from did_sov.config import DriverConfig
from did_sov.ledger import Identity, PoolConfigExistsError, StoreExistsError

UNIT_TEST_DIR = Path(__file__).parent

GENESIS = '{"reqSignature":{},"txn":{"data":{"data":{"alias":"Node1"}}}}'


def pytest_collection_modifyitems(config, items: Iterable[pytest.Item]):
    for item in items:
        path = Path(item.fspath)
        if path.is_relative_to(UNIT_TEST_DIR):
            item.add_marker(pytest.mark.unit)


class FakeLedgerClient:
    """In-memory ledger client recording every call."""

    def __init__(self):
        self.calls: List[str] = []
        self.failures: Dict[str, Exception] = {}
        self.nyms: Dict[str, Any] = {}
        self.attribs: Dict[str, Any] = {}
        self.pool_configs: Dict[str, str] = {}
        self.stores: set[str] = set()
        self.open_pools: List[str] = []
        self.open_stores: List[str] = []
        self.identities: List[str] = []
        self.runtime_path: str | None = None

    async def _call(self, name: str):
        self.calls.append(name)
        # Let concurrent callers interleave
        await asyncio.sleep(0)
        if name in self.failures:
            raise self.failures[name]

    @property
    def submitted(self) -> List[str]:
        return [call for call in self.calls if call.startswith("submit_")]

    @property
    def runtime_initialized(self) -> bool:
        return self.runtime_path is not None

    def init_runtime(self, path: str):
        self.calls.append("init_runtime")
        if "init_runtime" in self.failures:
            raise self.failures["init_runtime"]
        self.runtime_path = path

    async def create_pool_config(self, name: str, genesis: str):
        await self._call("create_pool_config")
        if name in self.pool_configs:
            raise PoolConfigExistsError(name)
        self.pool_configs[name] = genesis

    async def open_pool(self, name: str):
        await self._call("open_pool")
        self.open_pools.append(name)
        return f"pool:{name}"

    async def close_pool(self, pool):
        self.calls.append("close_pool")
        self.open_pools.remove(pool.removeprefix("pool:"))

    async def create_store(self, pool_name: str, store_name: str):
        await self._call("create_store")
        if store_name in self.stores:
            raise StoreExistsError(store_name)
        self.stores.add(store_name)

    async def open_store(self, name: str):
        await self._call("open_store")
        self.open_stores.append(name)
        return f"store:{name}"

    async def close_store(self, store):
        self.calls.append("close_store")
        self.open_stores.remove(store.removeprefix("store:"))

    async def create_identity(self, store) -> Identity:
        await self._call("create_identity")
        did = f"Submitter{len(self.identities) + 1}"
        self.identities.append(did)
        return Identity(did=did, verkey=f"verkey-{did}")

    def build_read_request(self, kind, submitter_did, target_id, attr_name=None):
        self.calls.append(f"build_{kind}")
        if f"build_{kind}" in self.failures:
            raise self.failures[f"build_{kind}"]
        return {
            "kind": kind,
            "submitter": submitter_did,
            "target": target_id,
            "attr": attr_name,
        }

    async def sign_and_submit(self, pool, store, submitter_did, request) -> str:
        await self._call(f"submit_{request['kind']}")
        records = self.nyms if request["kind"] == "NYM" else self.attribs
        record = records.get(request["target"])
        if isinstance(record, str):
            # Raw reply
            return record
        return json.dumps(
            {
                "op": "REPLY",
                "result": {
                    "dest": request["target"],
                    "identifier": submitter_did,
                    "data": None if record is None else json.dumps(record),
                },
            }
        )


@pytest.fixture
def ledger_client() -> FakeLedgerClient:
    return FakeLedgerClient()


@pytest.fixture
def config(tmp_path: Path) -> DriverConfig:
    return DriverConfig(
        _env_file=None,  # type: ignore
        pool_config_name="test",
        pool_genesis_txn=GENESIS,
        wallet_name="test_wallet",
        storage_path=tmp_path,
    )

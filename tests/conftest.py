"""
Shared fixtures for MDB_SCHEMA tests.

FakeConnection implements the SchemaConnection primitives over in-memory
dicts so the reconciliation engine can be exercised without MongoDB.
"""

import copy
from typing import Any, Dict, List, Optional, Tuple

import pytest
from pymongo.errors import CollectionInvalid, OperationFailure

from mdb_schema.exceptions import ReadinessTimeoutError

INDEX_OPTIONS_CONFLICT = 85


class FakeConnection:
    """In-memory stand-in for SchemaConnection."""

    def __init__(self, db_name: str = "test_app"):
        self.db_name = db_name
        self.internal_db_name = f"{db_name}_internal"
        self.metadata_initialized = False
        self.ready = True
        self.closed = False
        # collection name -> {index name: keys}
        self.tables: Dict[str, Dict[str, List[Tuple[str, Any]]]] = {}
        self.collection_meta: Dict[str, Dict[str, Any]] = {}
        self.groups: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, Any]] = []
        # (method, key) -> exception to raise
        self.failures: Dict[Tuple[str, str], Exception] = {}

    # helpers for tests ------------------------------------------------

    def add_live_collection(self, name: str, indexes: Optional[Dict[str, Any]] = None) -> None:
        self.metadata_initialized = True
        self.tables[name] = dict(indexes or {})
        self.collection_meta[name] = {"_id": name}

    def add_live_group(self, doc: Dict[str, Any]) -> None:
        self.metadata_initialized = True
        self.groups[doc["_id"]] = copy.deepcopy(doc)

    def fail(self, method: str, key: str, error: Exception) -> None:
        self.failures[(method, key)] = error

    def writes(self) -> List[Tuple[str, Any]]:
        reads = {"collection_ids", "collection_records", "group_ids", "group_records", "get_group", "index_list", "index_keys"}
        return [c for c in self.calls if c[0] not in reads]

    def _call(self, method: str, key: Any = None) -> None:
        self.calls.append((method, key))
        error = self.failures.get((method, key))
        if error is not None:
            raise error

    # SchemaConnection interface ---------------------------------------

    def close(self) -> None:
        self.closed = True

    async def initialize_metadata(self) -> bool:
        self._call("initialize_metadata")
        created = not self.metadata_initialized
        self.metadata_initialized = True
        return created

    async def wait_for(self, mode: str, timeout: float = 30) -> None:
        self._call("wait_for", mode)
        if not self.ready:
            raise ReadinessTimeoutError(self.internal_db_name, timeout)

    async def collection_ids(self) -> List[str]:
        self._call("collection_ids")
        return list(self.collection_meta)

    async def collection_records(self) -> List[Dict[str, Any]]:
        self._call("collection_records")
        return [copy.deepcopy(doc) for doc in self.collection_meta.values()]

    async def group_ids(self) -> List[str]:
        self._call("group_ids")
        return list(self.groups)

    async def group_records(self) -> List[Dict[str, Any]]:
        self._call("group_records")
        return [copy.deepcopy(doc) for doc in self.groups.values()]

    async def get_group(self, group_id: str) -> Optional[Dict[str, Any]]:
        self._call("get_group", group_id)
        doc = self.groups.get(group_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def insert_group(self, doc: Dict[str, Any]) -> None:
        self._call("insert_group", doc["_id"])
        self.groups[doc["_id"]] = copy.deepcopy(doc)

    async def set_group_rules(self, group_id: str, rules: Dict[str, Dict[str, str]]) -> None:
        self._call("set_group_rules", group_id)
        group = self.groups.setdefault(group_id, {"_id": group_id})
        group.setdefault("rules", {})
        for name, rule in rules.items():
            group["rules"][name] = copy.deepcopy(rule)

    async def replace_group(self, doc: Dict[str, Any]) -> None:
        self._call("replace_group", doc["_id"])
        self.groups[doc["_id"]] = copy.deepcopy(doc)

    async def delete_group(self, group_id: str) -> bool:
        self._call("delete_group", group_id)
        return self.groups.pop(group_id, None) is not None

    async def create_collection(self, name: str) -> bool:
        self._call("create_collection", name)
        created = name not in self.tables
        self.tables.setdefault(name, {})
        self.collection_meta.setdefault(name, {"_id": name})
        return created

    async def remove_collection(self, name: str) -> bool:
        self._call("remove_collection", name)
        if self.collection_meta.pop(name, None) is None:
            return False
        self.tables.pop(name, None)
        return True

    async def index_list(self, name: str) -> List[str]:
        self._call("index_list", name)
        return list(self.tables.get(name, {}))

    async def index_keys(self, name: str) -> Dict[str, List[Tuple[str, Any]]]:
        self._call("index_keys", name)
        return {index: list(keys) for index, keys in self.tables.get(name, {}).items()}

    async def index_create(self, name: str, index_name: str, keys) -> None:
        self._call("index_create", f"{name}.{index_name}")
        indexes = self.tables.setdefault(name, {})
        if index_name in indexes:
            raise CollectionInvalid(f"index {index_name} already exists")
        for existing, existing_keys in indexes.items():
            if list(existing_keys) == list(keys):
                # MongoDB allows one index per key pattern.
                raise OperationFailure(
                    f"Index already exists with a different name: {existing}",
                    code=INDEX_OPTIONS_CONFLICT,
                )
        indexes[index_name] = list(keys)

    async def index_drop(self, name: str, index_name: str) -> None:
        self._call("index_drop", f"{name}.{index_name}")
        del self.tables[name][index_name]


@pytest.fixture
def fake_conn():
    """Empty in-memory database."""
    return FakeConnection()


@pytest.fixture
def sample_schema_toml():
    return """
[collections.posts]
indexes = ["byDate"]

[groups.default.rules.everyone]
template = "true"
"""

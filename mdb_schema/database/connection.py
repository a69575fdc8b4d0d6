"""
MongoDB connection for schema reconciliation.

SchemaConnection exposes the primitive reads and writes the reconciliation
engine needs (metadata bootstrap, readiness wait, record get/insert/replace/
delete, collection create/drop, index list/create/drop) on top of a motor
client. Nothing here decides *what* to change; that is the engine's job.

Layout:
    <project>             user collections and their indexes
    <project>_internal    hz_collections: {"_id": <collection>}
                          hz_groups:      {"_id": <group>, "rules": {...}}

This module is part of MDB_SCHEMA - MongoDB Schema Reconciler.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import CollectionInvalid, ConnectionFailure, OperationFailure

from ..exceptions import ReadinessTimeoutError, SchemaConnectionError

logger = logging.getLogger(__name__)

COLLECTIONS_METADATA = "hz_collections"
GROUPS_METADATA = "hz_groups"
METADATA_COLLECTIONS = (COLLECTIONS_METADATA, GROUPS_METADATA)

PRIMARY_INDEX_NAME = "_id_"

READY_FOR_WRITES = "ready_for_writes"
READY_FOR_READS = "ready_for_reads"
DEFAULT_READY_TIMEOUT = 30  # seconds
READY_POLL_INTERVAL = 0.25  # seconds


class SchemaConnection:
    """
    A single MongoDB connection owned by one apply or save run.

    Use SchemaConnection.connect() to build one from host and port; the
    constructor accepts an existing motor client (tests pass a mock).
    """

    def __init__(self, client: AsyncIOMotorClient, db_name: str):
        self.client = client
        self.db_name = db_name
        self.internal_db_name = f"{db_name}_internal"
        self._closed = False

    @classmethod
    async def connect(
        cls,
        host: str,
        port: int,
        db_name: str,
        server_selection_timeout_ms: int = 5000,
    ) -> "SchemaConnection":
        """
        Connect to a MongoDB server and verify it answers.

        Raises:
            SchemaConnectionError: If the server cannot be reached
        """
        client = AsyncIOMotorClient(
            host=host,
            port=port,
            serverSelectionTimeoutMS=server_selection_timeout_ms,
        )
        try:
            await client.admin.command("ping")
        except ConnectionFailure as e:
            client.close()
            raise SchemaConnectionError(f"Failed to connect to MongoDB at {host}:{port}: {e}") from e

        logger.info(f"Connected to MongoDB at {host}:{port} (database '{db_name}')")
        return cls(client, db_name)

    @property
    def db(self):
        return self.client[self.db_name]

    @property
    def internal_db(self):
        return self.client[self.internal_db_name]

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close the client. Aborts in-flight operations; idempotent."""
        if self._closed:
            return
        self._closed = True
        self.client.close()
        logger.debug("MongoDB connection closed")

    # ------------------------------------------------------------------
    # Metadata bootstrap and readiness
    # ------------------------------------------------------------------

    async def initialize_metadata(self) -> bool:
        """
        Ensure the metadata collections exist.

        Returns:
            True if at least one metadata collection was created
        """
        existing = set(await self.internal_db.list_collection_names())
        created = False
        for name in METADATA_COLLECTIONS:
            if name in existing:
                continue
            try:
                await self.internal_db.create_collection(name)
                created = True
                logger.debug(f"Created metadata collection '{self.internal_db_name}.{name}'")
            except CollectionInvalid:
                # Created concurrently by another client
                pass
        return created

    async def _is_ready(self, mode: str) -> bool:
        try:
            hello = await self.client.admin.command("hello")
            if mode == READY_FOR_WRITES and not hello.get("isWritablePrimary", False):
                return False
            names = set(await self.internal_db.list_collection_names())
        except (ConnectionFailure, OperationFailure) as e:
            logger.debug(f"Server not ready ({mode}): {e}")
            return False
        return all(name in names for name in METADATA_COLLECTIONS)

    async def _poll_until_ready(self, mode: str) -> None:
        while not await self._is_ready(mode):
            await asyncio.sleep(READY_POLL_INTERVAL)

    async def wait_for(self, mode: str = READY_FOR_WRITES, timeout: float = DEFAULT_READY_TIMEOUT) -> None:
        """
        Block until the metadata collections accept reads or writes.

        Args:
            mode: READY_FOR_WRITES or READY_FOR_READS
            timeout: Deadline in seconds

        Raises:
            ReadinessTimeoutError: If not ready within timeout
        """
        if mode not in (READY_FOR_WRITES, READY_FOR_READS):
            raise ValueError(f"Unknown readiness mode: {mode!r}")
        try:
            await asyncio.wait_for(self._poll_until_ready(mode), timeout)
        except asyncio.TimeoutError:
            raise ReadinessTimeoutError(self.internal_db_name, timeout) from None
        logger.debug(f"'{self.internal_db_name}' is {mode}")

    # ------------------------------------------------------------------
    # Metadata records
    # ------------------------------------------------------------------

    async def collection_records(self) -> List[Dict[str, Any]]:
        cursor = self.internal_db[COLLECTIONS_METADATA].find({})
        return await cursor.to_list(length=None)

    async def collection_ids(self) -> List[str]:
        cursor = self.internal_db[COLLECTIONS_METADATA].find({}, {"_id": 1})
        return [doc["_id"] for doc in await cursor.to_list(length=None)]

    async def group_records(self) -> List[Dict[str, Any]]:
        cursor = self.internal_db[GROUPS_METADATA].find({})
        return await cursor.to_list(length=None)

    async def group_ids(self) -> List[str]:
        cursor = self.internal_db[GROUPS_METADATA].find({}, {"_id": 1})
        return [doc["_id"] for doc in await cursor.to_list(length=None)]

    async def get_group(self, group_id: str) -> Optional[Dict[str, Any]]:
        return await self.internal_db[GROUPS_METADATA].find_one({"_id": group_id})

    async def insert_group(self, doc: Dict[str, Any]) -> None:
        await self.internal_db[GROUPS_METADATA].insert_one(doc)

    async def set_group_rules(self, group_id: str, rules: Dict[str, Dict[str, str]]) -> None:
        """
        Overwrite the named rules of a group, leaving its other rules alone.

        Rule names are taken literally, including names that contain "."
        or start with "$".
        """
        if not rules:
            return
        desired = [{"k": name, "v": rule} for name, rule in rules.items()]
        pipeline = [
            {
                "$set": {
                    "rules": {
                        "$mergeObjects": [
                            {"$ifNull": ["$rules", {}]},
                            {"$arrayToObject": {"$literal": desired}},
                        ]
                    }
                }
            }
        ]
        await self.internal_db[GROUPS_METADATA].update_one({"_id": group_id}, pipeline, upsert=True)

    async def replace_group(self, doc: Dict[str, Any]) -> None:
        """Insert a group record or replace an existing one wholesale."""
        await self.internal_db[GROUPS_METADATA].replace_one({"_id": doc["_id"]}, doc, upsert=True)

    async def delete_group(self, group_id: str) -> bool:
        result = await self.internal_db[GROUPS_METADATA].delete_one({"_id": group_id})
        return result.deleted_count > 0

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    async def create_collection(self, name: str) -> bool:
        """
        Ensure a collection and its metadata record exist.

        Returns:
            True if the MongoDB collection was newly created
        """
        created = True
        try:
            await self.db.create_collection(name)
        except CollectionInvalid:
            created = False

        await self.internal_db[COLLECTIONS_METADATA].update_one(
            {"_id": name}, {"$setOnInsert": {"_id": name}}, upsert=True
        )
        return created

    async def remove_collection(self, name: str) -> bool:
        """
        Delete a collection's metadata record, then drop the collection.

        The collection is only dropped if this call removed the record.

        Returns:
            True if the collection was removed by this call
        """
        removed = await self.internal_db[COLLECTIONS_METADATA].find_one_and_delete({"_id": name})
        if removed is None:
            logger.warning(f"Collection '{name}' was already removed")
            return False
        await self.db.drop_collection(name)
        return True

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    async def index_list(self, name: str) -> List[str]:
        """Names of the secondary indexes on a collection."""
        info = await self.db[name].index_information()
        return [index for index in info if index != PRIMARY_INDEX_NAME]

    async def index_keys(self, name: str) -> Dict[str, List[Tuple[str, Any]]]:
        """Key pattern of each secondary index on a collection, by index name."""
        info = await self.db[name].index_information()
        return {
            index: [(field, direction) for field, direction in details["key"]]
            for index, details in info.items()
            if index != PRIMARY_INDEX_NAME
        }

    async def index_create(
        self, name: str, index_name: str, keys: Sequence[Tuple[str, Union[int, str]]]
    ) -> None:
        await self.db[name].create_index(list(keys), name=index_name)

    async def index_drop(self, name: str, index_name: str) -> None:
        await self.db[name].drop_index(index_name)

"""
Reconciliation Engine

Converges a live MongoDB deployment to a DesiredSchema (apply) and reads the
live state back into a DesiredSchema (save).

Apply runs these steps strictly in order; each one finishes before the next
starts:

    1. metadata bootstrap
    2. wait until metadata collections accept writes (30s)
    3. destructive-removal guard                     (authoritative only)
    4. group reconciliation
    5. collection materialization
    6. obsolete collection removal                   (authoritative only)
    7. index name decoding
    8. renamed index release                         (authoritative only)
    9. index creation
   10. obsolete index removal                        (authoritative only)

Incremental ("update") mode only adds and updates; it never removes a
collection, index, group or rule. Authoritative mode also removes anything
live but undeclared, and refuses to remove collections unless forced.

Failures abort the run. Writes already made are not rolled back.

This module is part of MDB_SCHEMA - MongoDB Schema Reconciler.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Dict, List, Optional, Tuple

from pymongo.errors import PyMongoError

from ..database.connection import DEFAULT_READY_TIMEOUT, READY_FOR_READS, READY_FOR_WRITES
from ..exceptions import DestructiveChangeError, SchemaValidationError, WriteError
from .index_names import IndexInfo, name_to_info
from .interrupt import Interrupt
from .model import Collection, DesiredSchema, Group

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    """What an apply run changed."""

    metadata_created: bool = False
    groups_written: int = 0
    groups_removed: int = 0
    collections_created: int = 0
    collections_removed: int = 0
    indexes_created: int = 0
    indexes_removed: int = 0

    @property
    def changes(self) -> int:
        """Number of creates and deletes (group rewrites are not counted)."""
        return (
            self.collections_created
            + self.collections_removed
            + self.groups_removed
            + self.indexes_created
            + self.indexes_removed
        )


class SchemaReconciler:
    """
    Runs apply and save against one SchemaConnection.

    The connection is borrowed; closing it is up to the caller (see
    apply_schema and save_schema).
    """

    def __init__(
        self,
        conn,
        interrupt: Optional[Interrupt] = None,
        ready_timeout: float = DEFAULT_READY_TIMEOUT,
    ):
        self.conn = conn
        self.interrupt = interrupt or Interrupt()
        self.ready_timeout = ready_timeout

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    async def apply(self, schema: DesiredSchema, update: bool = False, force: bool = False) -> ApplyResult:
        """
        Converge the live database to schema.

        Args:
            schema: Desired schema (read only)
            update: Incremental mode; never remove anything
            force: Allow authoritative mode to remove collections

        Raises:
            DestructiveChangeError: Collections would be removed without force
            ReadinessTimeoutError: Metadata collections never became writable
            InvalidIndexNameError: A declared index name does not decode
            SchemaValidationError: Two declared indexes share a key pattern
            WriteError: A database write failed
            ReconciliationInterrupted: The interrupt fired between steps
        """
        result = ApplyResult()
        mode = "update" if update else "replace"
        logger.info(f"Applying schema to '{self.conn.db_name}' ({mode} mode)")

        self.interrupt.check("initialize metadata")
        result.metadata_created = await self.conn.initialize_metadata()
        if result.metadata_created:
            logger.info("Initialized new application metadata")

        self.interrupt.check("wait for metadata")
        await self.conn.wait_for(READY_FOR_WRITES, timeout=self.ready_timeout)

        obsolete_collections: List[str] = []
        if not update:
            self.interrupt.check("check obsolete collections")
            obsolete_collections = await self._obsolete_collections(schema)
            if obsolete_collections and not force:
                raise DestructiveChangeError(obsolete_collections)

        self.interrupt.check("write groups")
        if update:
            result.groups_written = await self._update_groups(schema.groups)
        else:
            result.groups_written, result.groups_removed = await self._replace_groups(schema.groups)

        self.interrupt.check("create collections")
        for collection in schema.collections:
            result.collections_created += await self._ensure_collection(collection)

        self.interrupt.check("remove collections")
        for name in obsolete_collections:
            result.collections_removed += await self._remove_collection(name)

        self.interrupt.check("resolve indexes")
        index_infos = self._resolve_indexes(schema.collections)

        if not update:
            self.interrupt.check("release renamed indexes")
            result.indexes_removed += await self._release_renamed_indexes(schema.collections, index_infos)

        self.interrupt.check("create indexes")
        result.indexes_created = await self._create_indexes(schema.collections, index_infos)

        if not update:
            self.interrupt.check("remove indexes")
            result.indexes_removed += await self._remove_indexes(schema.collections)

        logger.info(
            f"Schema applied: {result.collections_created} collection(s) created, "
            f"{result.collections_removed} removed, {result.indexes_created} index(es) created, "
            f"{result.indexes_removed} removed, {result.groups_written} group(s) written, "
            f"{result.groups_removed} removed"
        )
        return result

    async def _obsolete_collections(self, schema: DesiredSchema) -> List[str]:
        live = await self.conn.collection_ids()
        desired = set(schema.collection_ids())
        return sorted(c for c in live if c not in desired)

    async def _update_groups(self, groups: List[Group]) -> int:
        for group in groups:
            try:
                existing = await self.conn.get_group(group.id)
                if existing is None:
                    logger.debug(f"Inserting group '{group.id}'")
                    await self.conn.insert_group(group.to_document())
                else:
                    logger.debug(f"Merging {len(group.rules)} rule(s) into group '{group.id}'")
                    await self.conn.set_group_rules(group.id, group.rule_documents())
            except PyMongoError as e:
                raise WriteError(group.id, e) from e
        return len(groups)

    async def _write_group(self, group_id: str, write: Awaitable) -> None:
        try:
            await write
        except PyMongoError as e:
            raise WriteError(group_id, e) from e

    async def _replace_groups(self, groups: List[Group]):
        desired = {g.id for g in groups}
        try:
            live = await self.conn.group_ids()
        except PyMongoError as e:
            raise WriteError("groups", e) from e
        obsolete = [g for g in live if g not in desired]

        # Deletes and upserts touch disjoint records
        results = await asyncio.gather(
            *(self._write_group(g, self.conn.delete_group(g)) for g in obsolete),
            *(self._write_group(g.id, self.conn.replace_group(g.to_document())) for g in groups),
            return_exceptions=True,
        )
        for outcome in results:
            if isinstance(outcome, BaseException):
                raise outcome

        for group_id in obsolete:
            logger.debug(f"Removed group '{group_id}'")
        return len(groups), len(obsolete)

    async def _ensure_collection(self, collection: Collection) -> int:
        try:
            created = await self.conn.create_collection(collection.id)
        except PyMongoError as e:
            raise WriteError(collection.id, e) from e
        if created:
            logger.debug(f"Created collection '{collection.id}'")
        return int(created)

    async def _remove_collection(self, name: str) -> int:
        try:
            removed = await self.conn.remove_collection(name)
        except PyMongoError as e:
            raise WriteError(name, e) from e
        if removed:
            logger.info(f"Removed collection '{name}'")
        return int(removed)

    def _resolve_indexes(self, collections: List[Collection]) -> Dict[str, Dict[str, IndexInfo]]:
        resolved = {}
        for collection in collections:
            infos = {index: name_to_info(index) for index in collection.indexes}
            seen: Dict[Tuple, str] = {}
            for index, info in infos.items():
                pattern = tuple(info.keys())
                if pattern in seen:
                    # MongoDB allows one index per key pattern.
                    raise SchemaValidationError(
                        f'indexes "{seen[pattern]}" and "{index}" cover the same fields',
                        path=("collections", collection.id, "indexes"),
                    )
                seen[pattern] = index
            resolved[collection.id] = infos
        return resolved

    async def _release_collection_indexes(
        self, collection: Collection, infos: Dict[str, IndexInfo]
    ) -> Tuple[int, List[WriteError]]:
        """Drop undeclared live indexes whose key pattern a missing index needs."""
        try:
            live = await self.conn.index_keys(collection.id)
        except PyMongoError as e:
            return 0, [WriteError(collection.id, e)]

        wanted = {tuple(info.keys()): index for index, info in infos.items() if index not in live}
        released = 0
        errors = []
        for index, keys in live.items():
            if index in infos or tuple(keys) not in wanted:
                continue
            logger.debug(f"Dropping index '{index}' from '{collection.id}' to make way for '{wanted[tuple(keys)]}'")
            try:
                await self.conn.index_drop(collection.id, index)
            except PyMongoError as e:
                errors.append(WriteError(f"{collection.id}.{index}", e))
                continue
            released += 1
        return released, errors

    async def _release_renamed_indexes(
        self, collections: List[Collection], infos: Dict[str, Dict[str, IndexInfo]]
    ) -> int:
        return await self._gather_collections(
            "release renamed indexes",
            [self._release_collection_indexes(c, infos[c.id]) for c in collections],
        )

    async def _create_collection_indexes(
        self, collection: Collection, infos: Dict[str, IndexInfo]
    ) -> Tuple[int, List[WriteError]]:
        try:
            live = set(await self.conn.index_list(collection.id))
        except PyMongoError as e:
            return 0, [WriteError(collection.id, e)]

        created = 0
        errors = []
        for index in collection.indexes:
            if index in live:
                continue
            logger.debug(f"Creating index '{index}' on '{collection.id}': {infos[index].field_paths()}")
            try:
                await self.conn.index_create(collection.id, index, infos[index].keys())
            except PyMongoError as e:
                errors.append(WriteError(f"{collection.id}.{index}", e))
                continue
            live.add(index)
            created += 1
        return created, errors

    async def _remove_collection_indexes(self, collection: Collection) -> Tuple[int, List[WriteError]]:
        try:
            live = await self.conn.index_list(collection.id)
        except PyMongoError as e:
            return 0, [WriteError(collection.id, e)]

        desired = set(collection.indexes)
        removed = 0
        errors = []
        for index in live:
            if index in desired:
                continue
            logger.debug(f"Dropping index '{index}' from '{collection.id}'")
            try:
                await self.conn.index_drop(collection.id, index)
            except PyMongoError as e:
                errors.append(WriteError(f"{collection.id}.{index}", e))
                continue
            removed += 1
        return removed, errors

    async def _gather_collections(self, label: str, work: List[Awaitable]) -> int:
        """Run per-collection work concurrently; raise one WriteError for every failure."""
        total = 0
        errors: List[WriteError] = []
        for outcome in await asyncio.gather(*work, return_exceptions=True):
            if isinstance(outcome, WriteError):
                errors.append(outcome)
            elif isinstance(outcome, Exception):
                errors.append(WriteError(label, outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                count, collection_errors = outcome
                total += count
                errors.extend(collection_errors)

        if errors:
            for error in errors:
                logger.error(f"Failed to {label}: {error}")
            raise WriteError("indexes", errors[0].cause, errors=errors)
        return total

    async def _create_indexes(
        self, collections: List[Collection], infos: Dict[str, Dict[str, IndexInfo]]
    ) -> int:
        return await self._gather_collections(
            "create indexes",
            [self._create_collection_indexes(c, infos[c.id]) for c in collections],
        )

    async def _remove_indexes(self, collections: List[Collection]) -> int:
        return await self._gather_collections(
            "remove old indexes",
            [self._remove_collection_indexes(c) for c in collections],
        )

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    async def save(self) -> DesiredSchema:
        """
        Read the live schema.

        Index lists come from the collections themselves, not from the
        metadata records. Nothing read back is validated.

        Raises:
            ReadinessTimeoutError: Metadata collections never became readable
            ReconciliationInterrupted: The interrupt fired between steps
        """
        self.interrupt.check("wait for metadata")
        await self.conn.wait_for(READY_FOR_READS, timeout=self.ready_timeout)

        self.interrupt.check("read collections")
        collections = []
        for record in await self.conn.collection_records():
            indexes = await self.conn.index_list(record["_id"])
            collections.append(Collection.from_document(record, indexes))

        self.interrupt.check("read groups")
        groups = [Group.from_document(record) for record in await self.conn.group_records()]

        logger.info(f"Read {len(collections)} collection(s) and {len(groups)} group(s)")
        return DesiredSchema(collections=collections, groups=groups)


async def apply_schema(
    conn,
    schema: DesiredSchema,
    update: bool = False,
    force: bool = False,
    interrupt: Optional[Interrupt] = None,
) -> ApplyResult:
    """Apply schema, then close conn whether or not the run succeeded."""
    try:
        return await SchemaReconciler(conn, interrupt).apply(schema, update=update, force=force)
    finally:
        conn.close()


async def save_schema(conn, interrupt: Optional[Interrupt] = None) -> DesiredSchema:
    """Read the live schema, then close conn before anything is written out."""
    try:
        return await SchemaReconciler(conn, interrupt).save()
    finally:
        conn.close()

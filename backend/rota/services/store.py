"""
Document store used by the rota services.

``DocumentStore`` is the generic CRUD collaborator every rota operation goes
through. ``MongoStore`` is the production backend (motor); ``MemoryStore``
keeps documents in process for development and tests.

Documents are plain dicts keyed by a caller-generated ``_id`` string.
"""

import copy
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

from pymongo import UpdateOne
from pymongo.errors import PyMongoError

from rota.services.errors import NotFoundError, PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 450


class _DeleteField:
    """Update value meaning "remove this field", as opposed to setting it to null."""

    def __repr__(self):
        return "DELETE_FIELD"


DELETE_FIELD = _DeleteField()


class ArrayUnion:
    """Update value adding ``values`` to an array field with set semantics."""

    def __init__(self, *values: Any):
        self.values = values

    def __repr__(self):
        return f"ArrayUnion{self.values!r}"


class ArrayRemove:
    """Update value removing every occurrence of ``values`` from an array field."""

    def __init__(self, *values: Any):
        self.values = values

    def __repr__(self):
        return f"ArrayRemove{self.values!r}"


class Filter(NamedTuple):
    field: str
    op: str
    value: Any


OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "in", "array_contains")


def batch_size() -> int:
    return int(os.getenv("ROTA_BATCH_SIZE", str(DEFAULT_BATCH_SIZE)))


def chunked(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


class DocumentStore(ABC):
    """Generic persistence contract for the rota core."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[Tuple[str, str]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def create(self, collection: str, record: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        ...

    @abstractmethod
    async def batch_create(self, collection: str, records: List[Dict[str, Any]]) -> int:
        ...

    @abstractmethod
    async def batch_update(self, collection: str, updates: List[Tuple[str, Dict[str, Any]]]) -> int:
        ...

    @abstractmethod
    async def batch_delete(self, collection: str, doc_ids: List[str]) -> int:
        ...

    @abstractmethod
    async def count(self, collection: str, filters: Sequence[Filter] = ()) -> int:
        ...

    async def ping(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# MongoDB (motor) backend
# ---------------------------------------------------------------------------

_MONGO_OPS = {
    "==": "$eq",
    "!=": "$ne",
    "<": "$lt",
    "<=": "$lte",
    ">": "$gt",
    ">=": "$gte",
    "in": "$in",
}


def to_mongo_filter(filters: Sequence[Filter]) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    for f in filters:
        if f.op not in OPERATORS:
            raise ValueError(f"Unsupported filter operator: {f.op}")
        clause = query.setdefault(f.field, {})
        if f.op == "array_contains":
            clause.setdefault("$all", []).append(f.value)
        elif f.op == "in":
            clause["$in"] = list(f.value)
        else:
            clause[_MONGO_OPS[f.op]] = f.value
    return query


def to_mongo_update(changes: Dict[str, Any]) -> Dict[str, Any]:
    update: Dict[str, Dict[str, Any]] = {}
    for field, value in changes.items():
        if value is DELETE_FIELD:
            update.setdefault("$unset", {})[field] = ""
        elif isinstance(value, ArrayUnion):
            update.setdefault("$addToSet", {})[field] = {"$each": list(value.values)}
        elif isinstance(value, ArrayRemove):
            update.setdefault("$pull", {})[field] = {"$in": list(value.values)}
        else:
            update.setdefault("$set", {})[field] = value
    return update


class MongoStore(DocumentStore):
    def __init__(self, db):
        self.db = db

    async def get(self, collection, doc_id):
        try:
            return await self.db[collection].find_one({"_id": doc_id})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to load {collection}/{doc_id}: {e}")

    async def query(self, collection, filters=(), order_by=None, limit=None):
        try:
            cursor = self.db[collection].find(to_mongo_filter(filters))
            if order_by:
                field, direction = order_by
                cursor = cursor.sort(field, -1 if direction == "desc" else 1)
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list(None)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to query {collection}: {e}")

    async def create(self, collection, record):
        try:
            await self.db[collection].insert_one(record)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to create {collection} record: {e}")

    async def update(self, collection, doc_id, changes):
        try:
            result = await self.db[collection].update_one({"_id": doc_id}, to_mongo_update(changes))
        except PyMongoError as e:
            raise PersistenceError(f"Failed to update {collection}/{doc_id}: {e}")
        if result.matched_count == 0:
            raise NotFoundError(f"{collection} record {doc_id} not found")

    async def delete(self, collection, doc_id):
        try:
            result = await self.db[collection].delete_one({"_id": doc_id})
        except PyMongoError as e:
            raise PersistenceError(f"Failed to delete {collection}/{doc_id}: {e}")
        if result.deleted_count == 0:
            raise NotFoundError(f"{collection} record {doc_id} not found")

    async def batch_create(self, collection, records):
        written = 0
        for chunk in chunked(records, batch_size()):
            try:
                await self.db[collection].insert_many(list(chunk), ordered=True)
            except PyMongoError as e:
                raise PersistenceError(
                    f"Batch write to {collection} failed after {written} of {len(records)} records. "
                    "Retrying may create duplicates.",
                    details={"written": written, "total": len(records), "cause": str(e)},
                )
            written += len(chunk)
        return written

    async def batch_update(self, collection, updates):
        written = 0
        for chunk in chunked(updates, batch_size()):
            ops = [UpdateOne({"_id": doc_id}, to_mongo_update(changes)) for doc_id, changes in chunk]
            try:
                result = await self.db[collection].bulk_write(ops, ordered=True)
            except PyMongoError as e:
                raise PersistenceError(
                    f"Batch update of {collection} failed after {written} of {len(updates)} records",
                    details={"written": written, "total": len(updates), "cause": str(e)},
                )
            written += result.matched_count
        return written

    async def batch_delete(self, collection, doc_ids):
        deleted = 0
        for chunk in chunked(doc_ids, batch_size()):
            try:
                result = await self.db[collection].delete_many({"_id": {"$in": list(chunk)}})
            except PyMongoError as e:
                raise PersistenceError(
                    f"Batch delete from {collection} failed after {deleted} of {len(doc_ids)} records",
                    details={"deleted": deleted, "total": len(doc_ids), "cause": str(e)},
                )
            deleted += result.deleted_count
        return deleted

    async def count(self, collection, filters=()):
        try:
            return await self.db[collection].count_documents(to_mongo_filter(filters))
        except PyMongoError as e:
            raise PersistenceError(f"Failed to count {collection}: {e}")

    async def ping(self):
        try:
            await self.db.command("ping")
            return True
        except PyMongoError as e:
            logger.warning("Store ping failed: %s", e)
            return False


# ---------------------------------------------------------------------------
# In-memory backend (single process / development only)
# ---------------------------------------------------------------------------

def _matches(doc: Dict[str, Any], f: Filter) -> bool:
    value = doc.get(f.field)
    if f.op == "==":
        return value == f.value
    if f.op == "!=":
        return value != f.value
    if f.op == "in":
        return value in f.value
    if f.op == "array_contains":
        return f.value in (value or [])
    if value is None or f.value is None:
        return False
    if f.op == "<":
        return value < f.value
    if f.op == "<=":
        return value <= f.value
    if f.op == ">":
        return value > f.value
    if f.op == ">=":
        return value >= f.value
    raise ValueError(f"Unsupported filter operator: {f.op}")


def apply_changes(doc: Dict[str, Any], changes: Dict[str, Any]) -> None:
    for field, value in changes.items():
        if value is DELETE_FIELD:
            doc.pop(field, None)
        elif isinstance(value, ArrayUnion):
            current = list(doc.get(field) or [])
            for v in value.values:
                if v not in current:
                    current.append(v)
            doc[field] = current
        elif isinstance(value, ArrayRemove):
            doc[field] = [v for v in (doc.get(field) or []) if v not in value.values]
        else:
            doc[field] = copy.deepcopy(value)


class MemoryStore(DocumentStore):
    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def _col(self, collection: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.setdefault(collection, {})

    async def get(self, collection, doc_id):
        doc = self._col(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def query(self, collection, filters=(), order_by=None, limit=None):
        docs = [d for d in self._col(collection).values() if all(_matches(d, f) for f in filters)]
        if order_by:
            field, direction = order_by
            docs.sort(key=lambda d: (d.get(field) is None, d.get(field)), reverse=direction == "desc")
        if limit:
            docs = docs[:limit]
        return copy.deepcopy(docs)

    async def create(self, collection, record):
        if "_id" not in record:
            raise ValueError("Records must carry a caller-generated _id")
        col = self._col(collection)
        if record["_id"] in col:
            raise PersistenceError(f"Duplicate id {record['_id']} in {collection}")
        col[record["_id"]] = copy.deepcopy(record)

    async def update(self, collection, doc_id, changes):
        doc = self._col(collection).get(doc_id)
        if doc is None:
            raise NotFoundError(f"{collection} record {doc_id} not found")
        apply_changes(doc, changes)

    async def delete(self, collection, doc_id):
        if self._col(collection).pop(doc_id, None) is None:
            raise NotFoundError(f"{collection} record {doc_id} not found")

    async def batch_create(self, collection, records):
        col = self._col(collection)
        ids = [record.get("_id") for record in records]
        if None in ids:
            raise ValueError("Records must carry a caller-generated _id")
        clashes = sorted({i for i in ids if i in col or ids.count(i) > 1})
        if clashes:
            raise PersistenceError(f"Duplicate id(s) {', '.join(clashes)} in {collection}; nothing was written",
                                   details={"written": 0, "total": len(records)})
        for record in records:
            col[record["_id"]] = copy.deepcopy(record)
        return len(records)

    async def batch_update(self, collection, updates):
        col = self._col(collection)
        written = 0
        for doc_id, changes in updates:
            doc = col.get(doc_id)
            if doc is None:
                continue
            apply_changes(doc, changes)
            written += 1
        return written

    async def batch_delete(self, collection, doc_ids):
        col = self._col(collection)
        return sum(1 for doc_id in doc_ids if col.pop(doc_id, None) is not None)

    async def count(self, collection, filters=()):
        return len([d for d in self._col(collection).values() if all(_matches(d, f) for f in filters)])

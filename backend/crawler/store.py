# backend/crawler/store.py
"""
Document store - the persistence boundary for players and the world.

Provides:
- DocumentStore: async get/set/update/delete/query contract
- InMemoryDocumentStore: dict-backed store for tests and local play
- SqlDocumentStore: SQLAlchemy async store over a single JSON documents table

Stores hand out deep copies, so no caller ever holds a live reference into
stored state. There are no transactions across documents; concurrent
writers to the same document are last-write-wins.
"""

from __future__ import annotations
import copy
import logging
import operator
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence, Tuple

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import Document

logger = logging.getLogger(__name__)

# Collection names
PLAYERS = "players"
ROOMS = "rooms"
ENTITIES = "entities"
ITEMS = "items"
LOOT_TABLES = "loot_tables"

Doc = Dict[str, Any]
Filter = Tuple[str, str, Any]  # (field, op, value)


class StoreError(Exception):
    """Base class for store-layer failures. These propagate to the caller."""


class DocumentNotFoundError(StoreError):
    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"No document {collection}/{doc_id}")
        self.collection = collection
        self.doc_id = doc_id


class InvalidFilterError(StoreError):
    pass


def _array_contains(container: Any, value: Any) -> bool:
    return isinstance(container, (list, tuple)) and value in container


_OPS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": lambda field_value, value: field_value in value,
    "not-in": lambda field_value, value: field_value not in value,
    "array-contains": _array_contains,
}


def matches_filters(doc: Mapping[str, Any], filters: Iterable[Filter]) -> bool:
    """
    Evaluate ``(field, op, value)`` filters against a document.

    Dotted field names reach into nested mappings. Comparisons against a
    missing field (or with incompatible types) simply don't match.
    """
    for field_name, op, value in filters:
        compare = _OPS.get(op)
        if compare is None:
            raise InvalidFilterError(f"Unsupported filter operator: {op}")

        current: Any = doc
        for part in field_name.split("."):
            if not isinstance(current, Mapping) or part not in current:
                return False
            current = current[part]

        try:
            if not compare(current, value):
                return False
        except TypeError:
            return False
    return True


def merge_partial(doc: Doc, partial: Mapping[str, Any]) -> Doc:
    """Apply a partial update. Dotted keys set nested fields."""
    merged = copy.deepcopy(doc)
    for key, value in partial.items():
        target = merged
        parts = key.split(".")
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        target[parts[-1]] = copy.deepcopy(value)
    return merged


class DocumentStore(ABC):
    """Async key-value document store with no schema enforcement."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Doc | None:
        raise NotImplementedError

    @abstractmethod
    async def set(self, collection: str, doc_id: str, doc: Mapping[str, Any]) -> Doc:
        """Full overwrite. Returns the stored document."""
        raise NotImplementedError

    @abstractmethod
    async def update(self, collection: str, doc_id: str, partial: Mapping[str, Any]) -> Doc:
        """
        Merge fields into an existing document and return the result.

        Raises:
            DocumentNotFoundError: if the document does not exist
        """
        raise NotImplementedError

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def query(self, collection: str, filters: Sequence[Filter] = ()) -> List[Doc]:
        """All documents in a collection matching every filter, in id order."""
        raise NotImplementedError


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed store.

    Usage:
        store = InMemoryDocumentStore()
        await store.set("rooms", "plaza", {...})
    """

    def __init__(self, initial: Mapping[str, Mapping[str, Mapping[str, Any]]] | None = None) -> None:
        self._collections: Dict[str, Dict[str, Doc]] = {}
        for collection, docs in (initial or {}).items():
            self._collections[collection] = {
                doc_id: copy.deepcopy(dict(doc)) for doc_id, doc in docs.items()
            }

    def _bucket(self, collection: str) -> Dict[str, Doc]:
        return self._collections.setdefault(collection, {})

    async def get(self, collection: str, doc_id: str) -> Doc | None:
        doc = self._bucket(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def set(self, collection: str, doc_id: str, doc: Mapping[str, Any]) -> Doc:
        stored = copy.deepcopy(dict(doc))
        self._bucket(collection)[doc_id] = stored
        return copy.deepcopy(stored)

    async def update(self, collection: str, doc_id: str, partial: Mapping[str, Any]) -> Doc:
        bucket = self._bucket(collection)
        if doc_id not in bucket:
            raise DocumentNotFoundError(collection, doc_id)
        bucket[doc_id] = merge_partial(bucket[doc_id], partial)
        return copy.deepcopy(bucket[doc_id])

    async def delete(self, collection: str, doc_id: str) -> None:
        self._bucket(collection).pop(doc_id, None)

    async def query(self, collection: str, filters: Sequence[Filter] = ()) -> List[Doc]:
        bucket = self._bucket(collection)
        return [
            copy.deepcopy(bucket[doc_id])
            for doc_id in sorted(bucket)
            if matches_filters(bucket[doc_id], filters)
        ]


class SqlDocumentStore(DocumentStore):
    """
    Store backed by the ``documents`` table via SQLAlchemy async sessions.

    Each call opens its own session and commits before returning, which gives
    read-after-write consistency within one call chain.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, collection: str, doc_id: str) -> Doc | None:
        async with self._session_factory() as session:
            row = await session.get(Document, (collection, doc_id))
            return copy.deepcopy(row.data) if row is not None else None

    async def set(self, collection: str, doc_id: str, doc: Mapping[str, Any]) -> Doc:
        data = copy.deepcopy(dict(doc))
        async with self._session_factory() as session:
            row = await session.get(Document, (collection, doc_id))
            if row is None:
                session.add(Document(collection=collection, doc_id=doc_id, data=data))
            else:
                row.data = data
            await session.commit()
        return copy.deepcopy(data)

    async def update(self, collection: str, doc_id: str, partial: Mapping[str, Any]) -> Doc:
        async with self._session_factory() as session:
            row = await session.get(Document, (collection, doc_id))
            if row is None:
                raise DocumentNotFoundError(collection, doc_id)
            # Assign a new object so the JSON column registers the change
            row.data = merge_partial(row.data or {}, partial)
            merged = copy.deepcopy(row.data)
            await session.commit()
        return merged

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                delete(Document).where(
                    Document.collection == collection,
                    Document.doc_id == doc_id,
                )
            )
            await session.commit()

    async def query(self, collection: str, filters: Sequence[Filter] = ()) -> List[Doc]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Document)
                .where(Document.collection == collection)
                .order_by(Document.doc_id)
            )
            rows = result.scalars().all()
        docs = [copy.deepcopy(row.data) for row in rows]
        matched = [doc for doc in docs if matches_filters(doc, filters)]
        logger.debug("query %s %s -> %d/%d", collection, list(filters), len(matched), len(docs))
        return matched

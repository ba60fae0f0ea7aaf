"""
In-Memory Vector Collection

Process-local implementation of the collection interface.

Key Properties
--------------
- No persistence across process restarts
- Thread-safe access using a re-entrant lock
- Copy-on-read semantics (callers cannot mutate internal state)
- Cosine ranking computed with numpy over the filtered candidates

Used by the test-suite and for local development
(``VECTOR_STORE_BACKEND=memory``).
"""

from __future__ import annotations

import copy
from collections import Counter
from threading import RLock
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .base import (
    CollectionError,
    Document,
    GroupBucket,
    GroupCount,
    InsertManyResult,
    RecordFilter,
    RecordUpdate,
    SortSpec,
)


def _copy(doc: Document, similarity: Optional[float] = None) -> Document:
    return Document(
        id=doc.id,
        vector=list(doc.vector),
        metadata=copy.deepcopy(doc.metadata),
        similarity=similarity,
    )


def _matches(doc: Document, query: RecordFilter) -> bool:
    if query.id is not None and doc.id != query.id:
        return False

    for key, expected in query.metadata.items():
        if doc.metadata.get(key) != expected:
            return False

    if query.tags_any is not None:
        tags = doc.metadata.get("tags") or []
        if not set(tags) & set(query.tags_any):
            return False

    if query.created_at is not None:
        created = doc.metadata.get("created_at")
        if created is None:
            return False
        if query.created_at.gte is not None and created < query.created_at.gte:
            return False
        if query.created_at.lte is not None and created > query.created_at.lte:
            return False

    return True


def _sort_key(value: Any) -> Tuple[int, Any]:
    # Missing values sort first, as they do in document stores
    return (0, "") if value is None else (1, value)


class InMemoryCollection:
    """
    Dictionary-backed collection keyed by record id.
    """

    def __init__(self, name: str = "vector_embeddings") -> None:
        self.name = name
        self._docs: Dict[str, Document] = {}
        self._lock = RLock()

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    def _select(self, query: RecordFilter) -> List[Document]:
        with self._lock:
            if query.id is not None:
                doc = self._docs.get(query.id)
                candidates = [doc] if doc is not None else []
            else:
                candidates = list(self._docs.values())
            return [_copy(d) for d in candidates if _matches(d, query)]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_one(self, doc: Document) -> str:
        with self._lock:
            if doc.id in self._docs:
                raise CollectionError(f"Duplicate id: {doc.id}", code="duplicate_key")
            self._docs[doc.id] = _copy(doc)
            return doc.id

    async def insert_many(self, docs: Sequence[Document]) -> InsertManyResult:
        """
        Insert all documents or none of them.
        """
        with self._lock:
            ids = [d.id for d in docs]
            if len(set(ids)) != len(ids) or any(i in self._docs for i in ids):
                raise CollectionError("Duplicate id in batch", code="duplicate_key")

            for doc in docs:
                self._docs[doc.id] = _copy(doc)

            return InsertManyResult(inserted_count=len(ids), inserted_ids=ids)

    async def find_one_and_update(
        self,
        query: RecordFilter,
        update: RecordUpdate,
    ) -> Optional[Document]:
        with self._lock:
            matches = self._select(query)
            if not matches:
                return None

            stored = self._docs[matches[0].id]
            if update.vector is not None:
                stored.vector = list(update.vector)
            stored.metadata.update(copy.deepcopy(update.set_metadata))
            return _copy(stored)

    async def delete_one(self, query: RecordFilter) -> int:
        with self._lock:
            matches = self._select(query)
            if not matches:
                return 0
            del self._docs[matches[0].id]
            return 1

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_one(self, query: RecordFilter) -> Optional[Document]:
        matches = self._select(query)
        return matches[0] if matches else None

    async def find(
        self,
        query: RecordFilter,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        skip: int = 0,
    ) -> AsyncIterator[Document]:
        docs = self._select(query)

        if sort is not None:
            docs.sort(
                key=lambda d: _sort_key(d.metadata.get(sort.field)),
                reverse=sort.descending,
            )

        end = None if limit is None else skip + limit
        for doc in docs[skip:end]:
            yield doc

    async def find_similar(
        self,
        query: RecordFilter,
        vector: Sequence[float],
        limit: int,
    ) -> AsyncIterator[Document]:
        # Only vectors of the query's dimensionality can be compared
        candidates = [d for d in self._select(query) if len(d.vector) == len(vector)]
        if not candidates:
            return

        q = np.asarray(vector, dtype="float64")
        q_norm = np.linalg.norm(q)
        matrix = np.asarray([d.vector for d in candidates], dtype="float64")
        norms = np.linalg.norm(matrix, axis=1) * q_norm

        dots = matrix @ q
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0)

        # Stable sort keeps insertion order among equal scores
        order = np.argsort(-scores, kind="stable")[:limit]
        for idx in order:
            yield _copy(candidates[int(idx)], similarity=float(scores[idx]))

    async def count_documents(self, query: RecordFilter) -> int:
        return len(self._select(query))

    async def estimated_document_count(self) -> int:
        with self._lock:
            return len(self._docs)

    async def aggregate(self, group: GroupCount) -> List[GroupBucket]:
        with self._lock:
            counts = Counter(d.metadata.get(group.field) for d in self._docs.values())

        buckets = [GroupBucket(value=v, count=c) for v, c in counts.items()]
        if group.sort_by == "count":
            buckets.sort(key=lambda b: b.count, reverse=group.descending)
        else:
            buckets.sort(key=lambda b: _sort_key(b.value), reverse=group.descending)
        return buckets

    # ------------------------------------------------------------------
    # Utility operations
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """
        Remove all documents.

        Intended primarily for test setup/teardown.
        """
        with self._lock:
            self._docs.clear()

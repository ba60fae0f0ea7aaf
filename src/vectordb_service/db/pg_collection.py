"""
PostgreSQL Vector Collection

PostgreSQL + pgvector implementation of the collection interface.

Each operation runs in its own short-lived session; nothing is shared
between calls except the engine's connection pool. SQLAlchemy and driver
failures are translated into ``CollectionError`` codes at this boundary.
"""

from __future__ import annotations

import logging
import math
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Mapping, Optional, Sequence

from sqlalchemy import Table, Text, cast, delete, func, insert, select, text, update
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

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

logger = logging.getLogger("vectordb.db")


# ---------------------------------------------------------------------
# Expression Helpers
# ---------------------------------------------------------------------

def metadata_field(table: Table, name: str):
    """
    Typed accessor for a top-level metadata key (``metadata ->> name``).
    """
    element = table.c["metadata"][name]
    if name == "dimensions":
        return element.as_integer()
    if name == "confidence_score":
        return element.as_float()
    return element.as_string()


def build_conditions(table: Table, query: RecordFilter) -> List[Any]:
    """
    Translate a RecordFilter into SQLAlchemy WHERE clauses over ``table``.
    """
    conditions: List[Any] = []
    metadata = table.c["metadata"]

    if query.id is not None:
        conditions.append(table.c.id == query.id)

    for key, value in query.metadata.items():
        # Containment (@>) is served by the GIN index on metadata
        conditions.append(metadata.contains({key: value}))

    if query.tags_any is not None:
        conditions.append(metadata["tags"].has_any(cast(query.tags_any, ARRAY(Text))))

    if query.created_at is not None:
        created = metadata_field(table, "created_at")
        if query.created_at.gte is not None:
            conditions.append(created >= query.created_at.gte)
        if query.created_at.lte is not None:
            conditions.append(created <= query.created_at.lte)

    return conditions


def _translate(exc: BaseException, operation: str) -> CollectionError:
    if isinstance(exc, IntegrityError):
        code = "duplicate_key"
    elif isinstance(exc, (OperationalError, InterfaceError, OSError)):
        code = "unavailable"
    elif getattr(exc, "connection_invalidated", False):
        code = "unavailable"
    else:
        code = "backend_error"
    return CollectionError(f"{operation} failed: {type(exc).__name__}", code=code)


def _similarity(value: Any) -> Optional[float]:
    if value is None:
        return None
    score = float(value)
    # pgvector yields NaN cosine distance when either vector has zero magnitude
    return 0.0 if math.isnan(score) else score


def _to_document(row: Mapping[str, Any]) -> Document:
    return Document(
        id=row["id"],
        vector=[float(x) for x in row["embedding"]],
        metadata=dict(row["metadata"] or {}),
        similarity=_similarity(row.get("similarity")),
    )


def _to_values(doc: Document) -> dict:
    return {"id": doc.id, "embedding": list(doc.vector), "metadata": doc.metadata}


# ---------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------

class PgVectorCollection:
    """
    PostgreSQL-backed collection using pgvector for similarity ranking.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        table: Table,
    ) -> None:
        """
        Parameters
        ----------
        session_factory : async_sessionmaker[AsyncSession]
            Factory producing one session per operation.
        table : Table
            Records table; its name is reported in statistics.
        """
        self._session_factory = session_factory
        self._table = table
        self.name = table.name

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            logger.error("Collection operation '%s' failed: %s", operation, type(exc).__name__)
            raise _translate(exc, operation) from exc

    def _where(self, query: RecordFilter) -> List[Any]:
        return build_conditions(self._table, query)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_one(self, doc: Document) -> str:
        async with self._session("insert_one") as session:
            await session.execute(insert(self._table).values(_to_values(doc)))
            await session.commit()
        return doc.id

    async def insert_many(self, docs: Sequence[Document]) -> InsertManyResult:
        """
        Insert all documents in a single transaction.
        """
        if not docs:
            return InsertManyResult(inserted_count=0, inserted_ids=[])

        async with self._session("insert_many") as session:
            await session.execute(insert(self._table), [_to_values(d) for d in docs])
            await session.commit()

        ids = [d.id for d in docs]
        return InsertManyResult(inserted_count=len(ids), inserted_ids=ids)

    async def find_one_and_update(
        self,
        query: RecordFilter,
        update_spec: RecordUpdate,
    ) -> Optional[Document]:
        table = self._table
        values: dict = {}
        if update_spec.vector is not None:
            values[table.c.embedding] = list(update_spec.vector)
        if update_spec.set_metadata:
            # Shallow merge: jsonb || jsonb replaces only the named keys
            values[table.c["metadata"]] = table.c["metadata"].op("||")(
                cast(update_spec.set_metadata, JSONB)
            )

        if not values:
            return await self.find_one(query)

        stmt = (
            update(table)
            .where(*self._where(query))
            .values(values)
            .returning(table.c.id, table.c.embedding, table.c["metadata"])
        )

        async with self._session("find_one_and_update") as session:
            result = await session.execute(stmt)
            row = result.mappings().first()
            await session.commit()

        return _to_document(row) if row is not None else None

    async def delete_one(self, query: RecordFilter) -> int:
        table = self._table
        target = select(table.c.id).where(*self._where(query)).limit(1)
        stmt = delete(table).where(table.c.id.in_(target))

        async with self._session("delete_one") as session:
            result = await session.execute(stmt)
            await session.commit()
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_one(self, query: RecordFilter) -> Optional[Document]:
        stmt = select(self._table).where(*self._where(query)).limit(1)

        async with self._session("find_one") as session:
            result = await session.execute(stmt)
            row = result.mappings().first()
            return _to_document(row) if row is not None else None

    async def find(
        self,
        query: RecordFilter,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        skip: int = 0,
    ) -> AsyncIterator[Document]:
        stmt = select(self._table).where(*self._where(query))

        if sort is not None:
            column = metadata_field(self._table, sort.field)
            stmt = stmt.order_by(column.desc() if sort.descending else column.asc())
        # Deterministic paging among equal sort keys
        stmt = stmt.order_by(self._table.c.id)

        if skip:
            stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._session("find") as session:
            result = await session.stream(stmt)
            async for row in result.mappings():
                yield _to_document(row)

    async def find_similar(
        self,
        query: RecordFilter,
        vector: Sequence[float],
        limit: int,
    ) -> AsyncIterator[Document]:
        """
        Rank by cosine distance using pgvector's ``<=>`` operator.

        Similarity is reported as ``1 - cosine_distance``, and as 0.0 when
        either vector has zero magnitude. Only rows with the query's
        dimensionality are compared.
        """
        query_vector = list(vector)
        cosine_distance = self._table.c.embedding.cosine_distance(query_vector)

        stmt = (
            select(self._table, (1 - cosine_distance).label("similarity"))
            .where(*self._where(query))
            .where(metadata_field(self._table, "dimensions") == len(query_vector))
            .order_by(cosine_distance)
            .limit(limit)
        )

        async with self._session("find_similar") as session:
            result = await session.stream(stmt)
            async for row in result.mappings():
                yield _to_document(row)

    async def count_documents(self, query: RecordFilter) -> int:
        stmt = select(func.count()).select_from(self._table).where(*self._where(query))

        async with self._session("count_documents") as session:
            result = await session.execute(stmt)
            return int(result.scalar() or 0)

    async def estimated_document_count(self) -> int:
        """
        Planner estimate from pg_class, falling back to an exact count when
        the table has not been analysed yet.
        """
        stmt = text("SELECT reltuples::bigint FROM pg_class WHERE oid = to_regclass(:name)")

        async with self._session("estimated_document_count") as session:
            result = await session.execute(stmt, {"name": self.name})
            estimate = result.scalar()

        if estimate is None or estimate < 0:
            return await self.count_documents(RecordFilter())
        return int(estimate)

    async def aggregate(self, group: GroupCount) -> List[GroupBucket]:
        key = metadata_field(self._table, group.field)
        value_col = key.label("value")
        count_col = func.count().label("count")

        order_col = count_col if group.sort_by == "count" else value_col
        stmt = (
            select(value_col, count_col)
            .select_from(self._table)
            .group_by(key)
            .order_by(order_col.desc() if group.descending else order_col.asc())
        )

        async with self._session("aggregate") as session:
            result = await session.execute(stmt)
            return [GroupBucket(value=value, count=int(count)) for value, count in result]

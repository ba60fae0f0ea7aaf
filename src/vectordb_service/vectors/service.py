"""
Vector Record Store

Core service for vector records: CRUD, batch insert, paginated listing,
similarity search and collection statistics over an injected collection.

Behavior
--------
- Every request is validated before any backend call is made.
- Backend failures are re-raised as ``StoreError`` naming the operation;
  nothing is retried or swallowed here.
- ``RecordNotFoundError`` is raised for unknown ids and is never folded
  into ``StoreError``.
- The service keeps no state between calls; concurrent updates to one id
  race and the backend's last accepted write wins.
"""

from __future__ import annotations

import logging
import math
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from ..config import Settings, settings as default_settings
from ..core.clock import MonotonicClock, to_iso
from ..core.errors import FieldError, RecordNotFoundError, RecordValidationError, StoreError
from ..db.base import (
    CollectionError,
    Document,
    GroupCount,
    RecordFilter,
    RecordUpdate,
    SortSpec,
    TimeRange,
    VectorCollection,
)
from .models import (
    DEFAULT_MODEL_VERSION,
    BatchCreateResult,
    CollectionStatistics,
    DistributionBucket,
    PageResult,
    SearchFilters,
    SimilarityMatch,
    SimilaritySearchResult,
    VectorRecord,
)
from .validation import RecordValidator, ValidationLimits, ValidationMode

logger = logging.getLogger("vectordb.service")


@contextmanager
def _backend(operation: str) -> Iterator[None]:
    """
    Re-raise collection failures as StoreError with operation context.
    """
    try:
        yield
    except CollectionError as exc:
        raise StoreError(operation, detail=f"[{exc.code}] {exc}") from exc
    except PydanticValidationError as exc:
        raise StoreError(operation, detail="unexpected document shape") from exc


def _to_record(doc: Document) -> VectorRecord:
    return VectorRecord(id=doc.id, vector=doc.vector, metadata=doc.metadata)


class VectorRecordStore:
    """
    Orchestrates vector record operations against a collection.
    """

    def __init__(
        self,
        collection: VectorCollection,
        validator: Optional[RecordValidator] = None,
        clock: Optional[MonotonicClock] = None,
        config: Optional[Settings] = None,
    ) -> None:
        """
        Parameters
        ----------
        collection : VectorCollection
            Backing collection (PostgreSQL or in-memory).
        validator : Optional[RecordValidator]
            Defaults to a validator built from ``config``.
        clock : Optional[MonotonicClock]
            Timestamp source for created_at / updated_at.
        config : Optional[Settings]
            Paging and search limits. Defaults to the process settings.
        """
        self._config = config or default_settings
        self._collection = collection
        self._validator = validator or RecordValidator(ValidationLimits.from_settings(self._config))
        self._clock = clock or MonotonicClock()

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    def _new_document(self, vector: Sequence[float], metadata: Mapping[str, Any]) -> Document:
        timestamp = self._clock.now_iso()
        values = [float(v) for v in vector]

        doc_metadata: Dict[str, Any] = dict(metadata)
        doc_metadata.setdefault("model_version", DEFAULT_MODEL_VERSION)
        doc_metadata["dimensions"] = len(values)
        doc_metadata["created_at"] = timestamp
        doc_metadata["updated_at"] = timestamp

        return Document(id=str(uuid.uuid4()), vector=values, metadata=doc_metadata)

    @staticmethod
    def _coerce_filters(
        filters: Union[SearchFilters, Mapping[str, Any], None],
    ) -> Optional[SearchFilters]:
        if filters is None or isinstance(filters, SearchFilters):
            return filters
        try:
            return SearchFilters.model_validate(dict(filters))
        except PydanticValidationError as exc:
            raise RecordValidationError([
                FieldError(
                    "filters." + ".".join(str(part) for part in err["loc"]),
                    err["msg"],
                )
                for err in exc.errors()
            ]) from exc

    @staticmethod
    def _search_filter(filters: Optional[SearchFilters]) -> RecordFilter:
        if filters is None:
            return RecordFilter()

        equality = {
            key: getattr(filters, key)
            for key in ("user_id", "source_type", "source_id")
            if getattr(filters, key) is not None
        }

        created_range = None
        if filters.created_after is not None or filters.created_before is not None:
            created_range = TimeRange(
                gte=to_iso(filters.created_after) if filters.created_after else None,
                lte=to_iso(filters.created_before) if filters.created_before else None,
            )

        return RecordFilter(
            metadata=equality,
            tags_any=list(filters.tags) if filters.tags else None,
            created_at=created_range,
        )

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def create(self, vector: Sequence[float], metadata: Mapping[str, Any]) -> VectorRecord:
        """
        Validate and persist a new record.

        Assigns a UUID, sets ``created_at == updated_at`` and derives
        ``metadata.dimensions`` from the vector.
        """
        self._validator.check(vector, metadata, ValidationMode.CREATE)

        doc = self._new_document(vector, metadata)
        with _backend("create vector"):
            await self._collection.insert_one(doc)

        logger.info("Created vector %s (%d dimensions)", doc.id, len(doc.vector))
        return _to_record(doc)

    async def get_by_id(self, record_id: str) -> VectorRecord:
        with _backend("get vector"):
            doc = await self._collection.find_one(RecordFilter.by_id(record_id))
            if doc is None:
                raise RecordNotFoundError(record_id)
            return _to_record(doc)

    async def update(
        self,
        record_id: str,
        vector: Optional[Sequence[float]] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> VectorRecord:
        """
        Partially update a record.

        Provided metadata keys replace stored ones, omitted keys are kept.
        ``updated_at`` is always refreshed; ``dimensions`` is recomputed when
        a new vector is given.
        """
        self._validator.check(vector, metadata, ValidationMode.UPDATE)

        patch: Dict[str, Any] = dict(metadata or {})
        new_vector: Optional[List[float]] = None
        if vector is not None:
            new_vector = [float(v) for v in vector]
            patch["dimensions"] = len(new_vector)
        patch["updated_at"] = self._clock.now_iso()

        with _backend("update vector"):
            doc = await self._collection.find_one_and_update(
                RecordFilter.by_id(record_id),
                RecordUpdate(vector=new_vector, set_metadata=patch),
            )
            if doc is None:
                raise RecordNotFoundError(record_id)
            record = _to_record(doc)

        logger.info("Updated vector %s (fields: %s)", record_id, ", ".join(sorted(patch)))
        return record

    async def delete(self, record_id: str) -> Dict[str, Any]:
        """Hard-delete a record."""
        with _backend("delete vector"):
            deleted = await self._collection.delete_one(RecordFilter.by_id(record_id))

        if deleted == 0:
            raise RecordNotFoundError(record_id)

        logger.info("Deleted vector %s", record_id)
        return {"deleted": True, "id": record_id}

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        user_id: Optional[str] = None,
        source_type: Optional[str] = None,
        sort: str = "-created_at",
    ) -> Tuple[List[VectorRecord], PageResult]:
        """
        Return one page of records plus pagination info.

        The page and the total count come from two separate backend calls
        and may disagree under concurrent writes.
        """
        limit = self._config.default_page_size if limit is None else limit

        errors: List[FieldError] = []
        if page < 1:
            errors.append(FieldError("page", "must be greater than or equal to 1"))
        if not 1 <= limit <= self._config.max_page_size:
            errors.append(FieldError(
                "limit",
                f"must be between 1 and {self._config.max_page_size}",
            ))
        try:
            sort_spec = SortSpec.parse(sort)
        except ValueError as exc:
            errors.append(FieldError("sort", str(exc)))
        if errors:
            raise RecordValidationError(errors)

        equality = {}
        if user_id:
            equality["user_id"] = user_id
        if source_type:
            equality["source_type"] = source_type
        query = RecordFilter(metadata=equality)

        skip = (page - 1) * limit
        records: List[VectorRecord] = []

        with _backend("list vectors"):
            async for doc in self._collection.find(query, sort=sort_spec, limit=limit, skip=skip):
                records.append(_to_record(doc))
            total = await self._collection.count_documents(query)

        page_result = PageResult(
            current_page=page,
            per_page=limit,
            total_items=total,
            total_pages=math.ceil(total / limit),
            has_next=page * limit < total,
            has_prev=page > 1,
        )
        return records, page_result

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def batch_create(self, items: Sequence[Mapping[str, Any]]) -> BatchCreateResult:
        """
        Validate a whole batch, then persist it with one backend call.

        ``inserted_count`` / ``inserted_ids`` are reported exactly as the
        backend confirms them; a short insert is logged, not corrected.
        """
        self._validator.check_batch(items)

        docs = [self._new_document(item["vector"], item["metadata"]) for item in items]

        with _backend("create vectors batch"):
            result = await self._collection.insert_many(docs)

        if result.inserted_count != len(docs):
            logger.warning(
                "Partial batch insert: backend confirmed %d of %d vectors",
                result.inserted_count,
                len(docs),
            )
        else:
            logger.info("Created %d vectors in batch", result.inserted_count)

        return BatchCreateResult(
            inserted_count=result.inserted_count,
            inserted_ids=list(result.inserted_ids),
            records=[_to_record(d) for d in docs],
        )

    # ------------------------------------------------------------------
    # Similarity Search
    # ------------------------------------------------------------------

    async def find_similar(
        self,
        query_vector: Sequence[float],
        limit: Optional[int] = None,
        filters: Union[SearchFilters, Mapping[str, Any], None] = None,
    ) -> SimilaritySearchResult:
        """
        Rank stored vectors by similarity to ``query_vector``.

        Ranking is delegated to the collection; results keep its order
        (most similar first) and are not re-sorted here.
        """
        limit = self._config.default_search_limit if limit is None else limit
        search_filters = self._coerce_filters(filters)

        errors = self._validator.validate_search(query_vector, search_filters)
        if not 1 <= limit <= self._config.max_search_limit:
            errors.append(FieldError(
                "limit",
                f"must be between 1 and {self._config.max_search_limit}",
            ))
        if errors:
            raise RecordValidationError(errors)

        query = self._search_filter(search_filters)
        values = [float(v) for v in query_vector]
        results: List[SimilarityMatch] = []

        with _backend("find similar vectors"):
            async for doc in self._collection.find_similar(query, values, limit):
                results.append(SimilarityMatch(
                    id=doc.id,
                    vector=doc.vector,
                    metadata=doc.metadata,
                    similarity_score=doc.similarity,
                ))

        return SimilaritySearchResult(
            query_vector_dimensions=len(values),
            results=results,
            total_results=len(results),
        )

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    async def statistics(self) -> CollectionStatistics:
        """
        Approximate total plus source-type and dimension distributions.
        """
        with _backend("get statistics"):
            total = await self._collection.estimated_document_count()
            source_types = await self._collection.aggregate(
                GroupCount("source_type", sort_by="count", descending=True)
            )
            dimensions = await self._collection.aggregate(
                GroupCount("dimensions", sort_by="value", descending=False)
            )

            return CollectionStatistics(
                total_vectors=total,
                source_type_distribution=[
                    DistributionBucket(value=b.value, count=b.count) for b in source_types
                ],
                dimension_distribution=[
                    DistributionBucket(value=b.value, count=b.count) for b in dimensions
                ],
                collection_name=self._collection.name,
            )

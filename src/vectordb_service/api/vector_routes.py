"""
Vector Routes

This module exposes the vector record endpoints:

- CRUD on single records
- Paginated, filtered listing
- Batch creation
- Similarity search
- Collection statistics

Routes only translate HTTP to service calls. Validation, not-found and
store failures propagate as service exceptions and are rendered by the
handlers registered in ``main.create_app``.
"""

from typing import Annotated, Literal, Optional

from fastapi import APIRouter, Depends, Query, status

from .dependencies import get_vector_store
from .models import (
    BatchCreateRequest,
    BatchCreateResponse,
    DeleteResponse,
    DeleteResult,
    SimilaritySearchRequest,
    SimilaritySearchResponse,
    StatisticsResponse,
    VectorCreateRequest,
    VectorListResponse,
    VectorResponse,
    VectorUpdateRequest,
)
from ..vectors.models import SourceType
from ..vectors.service import VectorRecordStore

router = APIRouter(prefix="/api/vectors", tags=["vectors"])

SortToken = Literal["created_at", "-created_at", "updated_at", "-updated_at"]

Store = Annotated[VectorRecordStore, Depends(get_vector_store)]


# ---------------------------------------------------------------------
# Collection-level Routes
# ---------------------------------------------------------------------
# Declared before "/{vector_id}" so the literal paths win.

@router.get(
    "/stats",
    response_model=StatisticsResponse,
    summary="Get collection statistics",
)
async def get_statistics(store: Store) -> StatisticsResponse:
    stats = await store.statistics()
    return StatisticsResponse(data=stats)


@router.post(
    "/similarity",
    response_model=SimilaritySearchResponse,
    summary="Find similar vectors",
)
async def find_similar(
    req: SimilaritySearchRequest,
    store: Store,
) -> SimilaritySearchResponse:
    """
    Rank stored vectors by similarity to the query vector, optionally
    constrained by metadata filters.
    """
    result = await store.find_similar(req.vector, limit=req.limit, filters=req.filters)
    return SimilaritySearchResponse(
        data=result,
        message=f"Found {result.total_results} similar vectors",
    )


@router.post(
    "/batch",
    response_model=BatchCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create multiple vectors in one request",
)
async def batch_create(req: BatchCreateRequest, store: Store) -> BatchCreateResponse:
    result = await store.batch_create([item.model_dump() for item in req.vectors])
    return BatchCreateResponse(
        data=result,
        message=f"Successfully created {result.inserted_count} vectors",
    )


# ---------------------------------------------------------------------
# Record Routes
# ---------------------------------------------------------------------

@router.get(
    "/{vector_id}",
    response_model=VectorResponse,
    summary="Get a vector by id",
)
async def get_vector(vector_id: str, store: Store) -> VectorResponse:
    record = await store.get_by_id(vector_id)
    return VectorResponse(data=record)


@router.put(
    "/{vector_id}",
    response_model=VectorResponse,
    summary="Update a vector by id",
)
async def update_vector(
    vector_id: str,
    req: VectorUpdateRequest,
    store: Store,
) -> VectorResponse:
    record = await store.update(vector_id, vector=req.vector, metadata=req.metadata)
    return VectorResponse(data=record, message="Vector updated successfully")


@router.delete(
    "/{vector_id}",
    response_model=DeleteResponse,
    summary="Delete a vector by id",
)
async def delete_vector(vector_id: str, store: Store) -> DeleteResponse:
    result = await store.delete(vector_id)
    return DeleteResponse(
        data=DeleteResult(**result),
        message="Vector deleted successfully",
    )


@router.post(
    "",
    response_model=VectorResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a vector",
)
async def create_vector(req: VectorCreateRequest, store: Store) -> VectorResponse:
    record = await store.create(req.vector, req.metadata)
    return VectorResponse(data=record, message="Vector created successfully")


@router.get(
    "",
    response_model=VectorListResponse,
    summary="List vectors with pagination and filtering",
)
async def list_vectors(
    store: Store,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    user_id: Optional[str] = None,
    source_type: Optional[SourceType] = None,
    sort: SortToken = "-created_at",
) -> VectorListResponse:
    records, pagination = await store.list(
        page=page,
        limit=limit,
        user_id=user_id,
        source_type=source_type,
        sort=sort,
    )
    return VectorListResponse(data=records, pagination=pagination)

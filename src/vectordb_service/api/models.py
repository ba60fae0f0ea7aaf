"""
API Models

Pydantic request/response models for the vector endpoints.

Request models only establish JSON shape and types; field rules (dimension
bounds, required metadata, enumerations) are enforced by the record
validator so all violations come back together in one 400 response.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..vectors.models import (
    BatchCreateResult,
    CollectionStatistics,
    PageResult,
    SearchFilters,
    SimilaritySearchResult,
    VectorRecord,
)


# ---------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------

class VectorCreateRequest(BaseModel):
    vector: List[float]
    metadata: Dict[str, Any]

    model_config = ConfigDict(extra="forbid")


class VectorUpdateRequest(BaseModel):
    """
    Partial update; at least one of ``vector`` / ``metadata`` is expected.
    """
    vector: Optional[List[float]] = None
    metadata: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="forbid")


class SimilaritySearchRequest(BaseModel):
    vector: List[float]
    # Default and upper bound come from the store's configuration
    limit: Optional[int] = Field(default=None, ge=1)
    filters: Optional[SearchFilters] = None

    model_config = ConfigDict(extra="forbid")


class BatchCreateRequest(BaseModel):
    vectors: List[VectorCreateRequest]

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------

class DeleteResult(BaseModel):
    deleted: bool
    id: str


class VectorResponse(BaseModel):
    success: bool = True
    data: VectorRecord
    message: Optional[str] = None


class VectorListResponse(BaseModel):
    success: bool = True
    data: List[VectorRecord]
    pagination: PageResult


class DeleteResponse(BaseModel):
    success: bool = True
    data: DeleteResult
    message: Optional[str] = None


class BatchCreateResponse(BaseModel):
    success: bool = True
    data: BatchCreateResult
    message: Optional[str] = None


class SimilaritySearchResponse(BaseModel):
    success: bool = True
    data: SimilaritySearchResult
    message: Optional[str] = None


class StatisticsResponse(BaseModel):
    success: bool = True
    data: CollectionStatistics

"""
Vector Record Data Models

Canonical shapes returned by the vector record store. Each VectorRecord
corresponds to ONE stored embedding and its metadata.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


SourceType = Literal["journal", "mood", "activity", "therapy", "meditation", "other"]

SOURCE_TYPES = ("journal", "mood", "activity", "therapy", "meditation", "other")

# Metadata keys a client may send, per operation
CREATE_METADATA_FIELDS = frozenset({
    "source_type",
    "source_id",
    "user_id",
    "content_preview",
    "model_version",
    "dimensions",
    "tags",
    "confidence_score",
})
UPDATE_METADATA_FIELDS = CREATE_METADATA_FIELDS - {"dimensions"}

DEFAULT_MODEL_VERSION = "unknown"


class VectorRecord(BaseModel):
    """
    A single stored vector with its metadata.

    ``metadata`` always carries ``dimensions``, ``created_at`` and
    ``updated_at`` once persisted.
    """

    id: str = Field(..., min_length=1)
    vector: List[float]
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class SimilarityMatch(VectorRecord):
    """A search hit, ranked by the backend."""

    similarity_score: Optional[float] = None


class SearchFilters(BaseModel):
    """
    Optional metadata constraints for similarity search.

    ``tags`` matches records carrying any of the given tags; the two date
    bounds compose into a single range on ``created_at``.
    """

    user_id: Optional[str] = None
    source_type: Optional[str] = None
    source_id: Optional[str] = None
    tags: Optional[List[str]] = None
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")


class PageResult(BaseModel):
    current_page: int = Field(..., ge=1)
    per_page: int = Field(..., ge=1)
    total_items: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    has_next: bool
    has_prev: bool

    model_config = ConfigDict(extra="forbid")


class BatchCreateResult(BaseModel):
    inserted_count: int = Field(..., ge=0)
    inserted_ids: List[str] = Field(default_factory=list)
    records: List[VectorRecord] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class SimilaritySearchResult(BaseModel):
    query_vector_dimensions: int = Field(..., ge=1)
    results: List[SimilarityMatch] = Field(default_factory=list)
    total_results: int = Field(..., ge=0)

    model_config = ConfigDict(extra="forbid")


class DistributionBucket(BaseModel):
    """Count of records sharing one metadata value."""

    value: Optional[Union[int, str]] = None
    count: int = Field(..., ge=0)

    model_config = ConfigDict(extra="forbid")


class CollectionStatistics(BaseModel):
    total_vectors: int = Field(..., ge=0)
    source_type_distribution: List[DistributionBucket] = Field(default_factory=list)
    dimension_distribution: List[DistributionBucket] = Field(default_factory=list)
    collection_name: str

    model_config = ConfigDict(extra="forbid")

"""
Collection Interface

Typed contract between the vector record store and its backing collection.

Implementations
---------------
- PgVectorCollection   (PostgreSQL + pgvector)
- InMemoryCollection   (process-local, for tests and local development)

Filters, sorts, updates and aggregations are plain dataclasses rather than
backend query dialects, so the service never builds backend-specific
expressions and backends never parse free-form queries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncIterator,
    Dict,
    List,
    Literal,
    Optional,
    Protocol,
    Sequence,
    Union,
    runtime_checkable,
)


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

CollectionErrorCode = Literal["duplicate_key", "unavailable", "backend_error"]


class CollectionError(RuntimeError):
    """
    Raised by a collection when the backend rejects or fails an operation.

    ``code`` classifies the failure so callers never inspect messages.
    """

    def __init__(self, message: str, code: CollectionErrorCode = "backend_error") -> None:
        self.code = code
        super().__init__(message)


# ---------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------

@dataclass
class Document:
    """A stored record as exchanged with a collection."""

    id: str
    vector: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)
    # Only populated by similarity queries
    similarity: Optional[float] = None


@dataclass(frozen=True)
class InsertManyResult:
    inserted_count: int
    inserted_ids: List[str]


# ---------------------------------------------------------------------
# Query Structures
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class TimeRange:
    """Inclusive bounds over an ISO-8601 timestamp field."""

    gte: Optional[str] = None
    lte: Optional[str] = None


@dataclass(frozen=True)
class RecordFilter:
    """
    Conjunction of constraints over a record.

    - ``id``: exact record id
    - ``metadata``: equality on top-level metadata fields
    - ``tags_any``: record carries at least one of these tags
    - ``created_at``: inclusive range on metadata.created_at
    """

    id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    tags_any: Optional[List[str]] = None
    created_at: Optional[TimeRange] = None

    @classmethod
    def by_id(cls, record_id: str) -> "RecordFilter":
        return cls(id=record_id)


@dataclass(frozen=True)
class SortSpec:
    """Sort over a metadata field."""

    field: str
    descending: bool = False

    @classmethod
    def parse(cls, token: str) -> "SortSpec":
        """
        Parse a ``[-]field`` token; a leading ``-`` means descending.
        """
        descending = token.startswith("-")
        name = token[1:] if descending else token
        if not name:
            raise ValueError(f"Invalid sort token: {token!r}")
        return cls(field=name, descending=descending)


@dataclass(frozen=True)
class RecordUpdate:
    """
    Partial update: optional vector replacement plus top-level metadata keys
    to set. Metadata keys not named are left untouched.
    """

    vector: Optional[List[float]] = None
    set_metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class GroupCount:
    """Group records by one metadata field and count each group."""

    field: str
    sort_by: Literal["count", "value"] = "count"
    descending: bool = True


@dataclass(frozen=True)
class GroupBucket:
    value: Optional[Union[int, str]]
    count: int


# ---------------------------------------------------------------------
# Collection Protocol
# ---------------------------------------------------------------------

@runtime_checkable
class VectorCollection(Protocol):
    """Operations the vector record store needs from its backend."""

    name: str

    async def insert_one(self, doc: Document) -> str:
        """Persist a document and return its id."""
        ...

    async def insert_many(self, docs: Sequence[Document]) -> InsertManyResult:
        """Persist documents in one backend call."""
        ...

    async def find_one(self, query: RecordFilter) -> Optional[Document]:
        ...

    def find(
        self,
        query: RecordFilter,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
        skip: int = 0,
    ) -> AsyncIterator[Document]:
        """
        Lazily iterate matching documents.

        Every call starts a fresh, forward-only cursor.
        """
        ...

    def find_similar(
        self,
        query: RecordFilter,
        vector: Sequence[float],
        limit: int,
    ) -> AsyncIterator[Document]:
        """
        Lazily iterate matching documents ranked by similarity to ``vector``,
        most similar first, each with ``similarity`` set.
        """
        ...

    async def find_one_and_update(
        self,
        query: RecordFilter,
        update: RecordUpdate,
    ) -> Optional[Document]:
        """Apply ``update`` atomically and return the document after it, or None."""
        ...

    async def delete_one(self, query: RecordFilter) -> int:
        """Delete at most one matching document and return the deleted count."""
        ...

    async def count_documents(self, query: RecordFilter) -> int:
        ...

    async def estimated_document_count(self) -> int:
        ...

    async def aggregate(self, group: GroupCount) -> List[GroupBucket]:
        ...

"""
Database Package

Collection interface plus the PostgreSQL (pgvector) and in-memory
implementations, and the clients that own their lifecycle.
"""

from .base import (
    CollectionError,
    Document,
    GroupBucket,
    GroupCount,
    InsertManyResult,
    RecordFilter,
    RecordUpdate,
    SortSpec,
    TimeRange,
    VectorCollection,
)
from .client import (
    InMemoryClient,
    NotConnectedError,
    PgVectorClient,
    VectorStoreClient,
    create_client,
)
from .memory_collection import InMemoryCollection
from .pg_collection import PgVectorCollection

__all__ = [
    "CollectionError",
    "Document",
    "GroupBucket",
    "GroupCount",
    "InsertManyResult",
    "RecordFilter",
    "RecordUpdate",
    "SortSpec",
    "TimeRange",
    "VectorCollection",
    "InMemoryClient",
    "NotConnectedError",
    "PgVectorClient",
    "VectorStoreClient",
    "create_client",
    "InMemoryCollection",
    "PgVectorCollection",
]

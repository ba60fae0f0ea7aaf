"""
Vector Store Clients

Explicitly constructed clients owning the backend connection lifecycle:

- ``connect()``       idempotent; prepares the backend and the collection
- ``health_check()``  cheap round-trip, never raises
- ``disconnect()``    releases connections; safe to call more than once

The application factory builds one client and stores it on ``app.state``;
nothing here is a module-level singleton.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Union

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from ..config import Settings, settings as default_settings
from .base import CollectionError, RecordFilter, VectorCollection
from .memory_collection import InMemoryCollection
from .models import build_vector_table
from .pg_collection import PgVectorCollection
from .session import build_engine, build_session_factory

logger = logging.getLogger("vectordb.db")


class NotConnectedError(RuntimeError):
    """Raised when the collection is requested before connect()."""


# ---------------------------------------------------------------------
# PostgreSQL Client
# ---------------------------------------------------------------------

class PgVectorClient:
    """
    Client for the PostgreSQL + pgvector backend.
    """

    def __init__(self, config: Optional[Settings] = None) -> None:
        self._config = config or default_settings
        self._engine: Optional[AsyncEngine] = None
        self._collection: Optional[PgVectorCollection] = None
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._collection is not None

    @property
    def collection(self) -> VectorCollection:
        if self._collection is None:
            raise NotConnectedError("Database not connected. Call connect() first.")
        return self._collection

    async def connect(self) -> VectorCollection:
        """
        Create the engine, the ``vector`` extension and the records table.
        """
        async with self._lock:
            if self._collection is not None:
                return self._collection

            logger.info("Connecting to PostgreSQL vector store")
            engine = build_engine(self._config)
            table = build_vector_table(self._config.collection_name)

            try:
                async with engine.begin() as conn:
                    await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
                    await conn.run_sync(table.metadata.create_all)
            except (SQLAlchemyError, OSError) as exc:
                await engine.dispose()
                logger.error("Vector store connection failed: %s", type(exc).__name__)
                raise CollectionError(
                    f"Database connection failed: {type(exc).__name__}",
                    code="unavailable",
                ) from exc

            self._engine = engine
            self._collection = PgVectorCollection(
                build_session_factory(engine),
                table,
            )
            logger.info("Connected to collection '%s'", self._config.collection_name)
            return self._collection

    async def health_check(self) -> Dict[str, Any]:
        try:
            if self._collection is None:
                await self.connect()
            await self.collection.find_one(RecordFilter())
            return {"status": "healthy", "connected": True}
        except CollectionError as exc:
            return {"status": "unhealthy", "connected": False, "error": str(exc)}

    async def disconnect(self) -> None:
        async with self._lock:
            if self._engine is None:
                return
            await self._engine.dispose()
            self._engine = None
            self._collection = None
            logger.info("Disconnected from PostgreSQL vector store")


# ---------------------------------------------------------------------
# In-Memory Client
# ---------------------------------------------------------------------

class InMemoryClient:
    """
    Client for the process-local backend. Data survives disconnect/connect
    cycles within one client instance.
    """

    def __init__(self, config: Optional[Settings] = None) -> None:
        self._config = config or default_settings
        self._store = InMemoryCollection(name=self._config.collection_name)
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def collection(self) -> VectorCollection:
        if not self._connected:
            raise NotConnectedError("Database not connected. Call connect() first.")
        return self._store

    async def connect(self) -> VectorCollection:
        if not self._connected:
            self._connected = True
            logger.info("Using in-memory vector store '%s'", self._store.name)
        return self._store

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy", "connected": self._connected}

    async def disconnect(self) -> None:
        self._connected = False


VectorStoreClient = Union[PgVectorClient, InMemoryClient]


def create_client(config: Optional[Settings] = None) -> VectorStoreClient:
    """Build the client for the configured backend."""
    config = config or default_settings
    if config.vector_store_backend == "memory":
        return InMemoryClient(config)
    return PgVectorClient(config)

"""
Application Entry Point

This module defines the FastAPI application factory, registers all routers,
configures exception handling and owns the vector store lifecycle.

Design Goals
------------
- Explicit dependency construction (no implicit store singleton)
- Idempotent connect on startup, teardown on shutdown
- Centralized router and exception handler registration
- Test-friendly via create_app(client=...)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import health_routes, vector_routes
from .config import Settings, settings as default_settings
from .core.errors import (
    RecordNotFoundError,
    RecordValidationError,
    StoreError,
    http_exception_handler,
    not_found_exception_handler,
    record_validation_exception_handler,
    request_validation_exception_handler,
    store_exception_handler,
    unhandled_exception_handler,
    vector_math_exception_handler,
)
from .db import VectorStoreClient, create_client
from .vectors.math import VectorMathError
from .vectors.service import VectorRecordStore


logger = logging.getLogger("vectordb.app")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


# ---------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Connect the vector store client before serving and disconnect it on
    shutdown (uvicorn maps SIGTERM/SIGINT onto this path).
    """
    client: VectorStoreClient = app.state.vector_client
    config: Settings = app.state.settings

    logger.info("Starting %s", config.service_name)
    collection = await client.connect()
    app.state.vector_store = VectorRecordStore(collection, config=config)

    try:
        yield
    finally:
        logger.info("Shutting down %s", config.service_name)
        await client.disconnect()


# ---------------------------------------------------------------------
# Application Factory (Test-Friendly)
# ---------------------------------------------------------------------

def create_app(
    client: Optional[VectorStoreClient] = None,
    config: Optional[Settings] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Parameters
    ----------
    client : Optional[VectorStoreClient]
        Store client to use. Defaults to the backend named in settings.
    config : Optional[Settings]
        Settings override, mainly for tests.

    Returns
    -------
    FastAPI
        Fully configured FastAPI application.
    """
    config = config or default_settings
    configure_logging(config.log_level)

    app = FastAPI(
        title=config.service_name,
        version=config.service_version,
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.vector_client = client or create_client(config)

    # --------------------------------------------------------------
    # Exception Handling
    # --------------------------------------------------------------

    app.add_exception_handler(RecordValidationError, record_validation_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(VectorMathError, vector_math_exception_handler)
    app.add_exception_handler(RecordNotFoundError, not_found_exception_handler)
    app.add_exception_handler(StoreError, store_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --------------------------------------------------------------
    # Router Registration
    # --------------------------------------------------------------

    app.include_router(health_routes.router)
    app.include_router(vector_routes.router)

    return app


# ---------------------------------------------------------------------
# Default Application Instance (for Uvicorn)
# ---------------------------------------------------------------------

app = create_app()

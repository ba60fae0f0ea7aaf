import time
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from .dependencies import get_settings, get_vector_client
from ..config import Settings
from ..core.clock import to_iso, utc_now
from ..db import VectorStoreClient

router = APIRouter(tags=["health"])

_started = time.monotonic()


@router.get("/health")
async def health(
    client: Annotated[VectorStoreClient, Depends(get_vector_client)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    database = await client.health_check()
    healthy = database.get("status") == "healthy"

    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "success": healthy,
            "status": "healthy" if healthy else "unhealthy",
            "timestamp": to_iso(utc_now()),
            "service": settings.service_name,
            "version": settings.service_version,
            "database": database,
            "uptime": round(time.monotonic() - _started, 3),
        },
    )


@router.get("/")
def root(settings: Annotated[Settings, Depends(get_settings)]):
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "description": "Vector database operations for AI/ML services",
        "endpoints": {
            "health": "GET /health",
            "vectors": "GET|POST|PUT|DELETE /api/vectors",
            "similarity": "POST /api/vectors/similarity",
            "batch": "POST /api/vectors/batch",
            "stats": "GET /api/vectors/stats",
        },
    }

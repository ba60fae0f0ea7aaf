from fastapi import Request

from ..config import Settings
from ..db import VectorStoreClient
from ..vectors.service import VectorRecordStore


def get_vector_client(request: Request) -> VectorStoreClient:
    return request.app.state.vector_client


def get_vector_store(request: Request) -> VectorRecordStore:
    # Built once in the application lifespan, after the client connects
    return request.app.state.vector_store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings

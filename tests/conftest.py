"""Shared fixtures for the vector service tests."""

from __future__ import annotations

from typing import Any, Dict, List

import pytest

from vectordb_service.db import InMemoryCollection
from vectordb_service.vectors.math import random_vector
from vectordb_service.vectors.service import VectorRecordStore


def make_vector(dimensions: int = 128, seed: int = 0) -> List[float]:
    return random_vector(dimensions, seed=seed)


def make_metadata(**overrides: Any) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "source_type": "journal",
        "source_id": "entry-1",
        "user_id": "user-1",
    }
    metadata.update(overrides)
    return metadata


@pytest.fixture
def collection() -> InMemoryCollection:
    return InMemoryCollection()


@pytest.fixture
def store(collection: InMemoryCollection) -> VectorRecordStore:
    return VectorRecordStore(collection)

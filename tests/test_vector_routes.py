import pytest
from fastapi.testclient import TestClient

from conftest import make_metadata, make_vector
from vectordb_service.config import Settings
from vectordb_service.db import CollectionError, InMemoryClient
from vectordb_service.main import create_app


@pytest.fixture
def client():
    config = Settings(vector_store_backend="memory")
    app = create_app(client=InMemoryClient(config), config=config)
    with TestClient(app) as c:
        yield c


def create_vector(client, **metadata):
    payload = {"vector": make_vector(seed=len(metadata)), "metadata": make_metadata(**metadata)}
    response = client.post("/api/vectors", json=payload)
    assert response.status_code == 201
    return response.json()["data"]


# ---------------------------------------------------------------------
# Health & Info
# ---------------------------------------------------------------------

def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "healthy"
    assert body["database"]["connected"] is True
    assert "uptime" in body


def test_root_lists_endpoints(client):
    body = client.get("/").json()
    assert body["endpoints"]["similarity"] == "POST /api/vectors/similarity"


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["requested_path"] == "/api/nothing-here"
    assert body["method"] == "GET"


# ---------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------

def test_create_and_get(client):
    created = create_vector(client, tags=["a"])

    response = client.get(f"/api/vectors/{created['id']}")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["id"] == created["id"]
    assert body["data"]["metadata"]["dimensions"] == 128


def test_create_returns_message(client):
    response = client.post(
        "/api/vectors",
        json={"vector": make_vector(), "metadata": make_metadata()},
    )
    assert response.json()["message"] == "Vector created successfully"


def test_create_invalid_returns_field_details(client):
    response = client.post(
        "/api/vectors",
        json={"vector": make_vector(10), "metadata": {"source_type": "tweet"}},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Validation Error"
    fields = {d["field"] for d in body["details"]}
    assert {"vector", "metadata.source_type", "metadata.user_id"} <= fields


def test_create_malformed_body_is_400(client):
    response = client.post("/api/vectors", json={"vector": "not-a-list", "metadata": {}})

    assert response.status_code == 400
    assert response.json()["details"][0]["field"].startswith("vector")


def test_get_missing_is_404(client):
    response = client.get("/api/vectors/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Vector not found"}


def test_update(client):
    created = create_vector(client)

    response = client.put(
        f"/api/vectors/{created['id']}",
        json={"metadata": {"tags": ["updated"]}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Vector updated successfully"
    assert body["data"]["metadata"]["tags"] == ["updated"]
    assert body["data"]["metadata"]["updated_at"] > created["metadata"]["updated_at"]


def test_update_missing_is_404(client):
    response = client.put("/api/vectors/nope", json={"metadata": {"tags": []}})
    assert response.status_code == 404


def test_delete(client):
    created = create_vector(client)

    response = client.delete(f"/api/vectors/{created['id']}")

    assert response.status_code == 200
    assert response.json()["data"] == {"deleted": True, "id": created["id"]}
    assert client.get(f"/api/vectors/{created['id']}").status_code == 404


# ---------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------

def test_list_with_pagination(client):
    for i in range(3):
        create_vector(client, source_id=f"entry-{i}")

    response = client.get("/api/vectors", params={"page": 1, "limit": 2})

    assert response.status_code == 200
    body = response.json()
    assert len(body["data"]) == 2
    assert body["pagination"] == {
        "current_page": 1,
        "per_page": 2,
        "total_items": 3,
        "total_pages": 2,
        "has_next": True,
        "has_prev": False,
    }


def test_list_filters_by_source_type(client):
    create_vector(client, source_type="mood")
    create_vector(client)

    body = client.get("/api/vectors", params={"source_type": "mood"}).json()

    assert [r["metadata"]["source_type"] for r in body["data"]] == ["mood"]


@pytest.mark.parametrize("params", [
    {"page": 0},
    {"limit": 1000},
    {"source_type": "tweet"},
    {"sort": "source_id"},
])
def test_list_rejects_bad_query(client, params):
    response = client.get("/api/vectors", params=params)
    assert response.status_code == 400


# ---------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------

def test_batch_create(client):
    payload = {"vectors": [
        {"vector": make_vector(seed=1), "metadata": make_metadata(source_id="a")},
        {"vector": make_vector(seed=2), "metadata": make_metadata(source_id="b")},
    ]}

    response = client.post("/api/vectors/batch", json=payload)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Successfully created 2 vectors"
    assert body["data"]["inserted_count"] == 2
    assert len(set(body["data"]["inserted_ids"])) == 2


def test_batch_invalid_item_is_400(client):
    payload = {"vectors": [
        {"vector": make_vector(seed=1), "metadata": make_metadata()},
        {"vector": make_vector(seed=2), "metadata": make_metadata(confidence_score=3)},
    ]}

    response = client.post("/api/vectors/batch", json=payload)

    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "vectors[1].metadata.confidence_score"
    assert client.get("/api/vectors").json()["pagination"]["total_items"] == 0


def test_empty_batch_is_400(client):
    assert client.post("/api/vectors/batch", json={"vectors": []}).status_code == 400


# ---------------------------------------------------------------------
# Similarity & Statistics
# ---------------------------------------------------------------------

def test_similarity_search(client):
    query = make_vector(seed=42)
    target = client.post(
        "/api/vectors",
        json={"vector": query, "metadata": make_metadata(user_id="alice")},
    ).json()["data"]
    create_vector(client, user_id="bob")

    response = client.post(
        "/api/vectors/similarity",
        json={"vector": query, "limit": 5, "filters": {"user_id": "alice"}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Found 1 similar vectors"
    assert body["data"]["query_vector_dimensions"] == 128
    assert body["data"]["results"][0]["id"] == target["id"]
    assert body["data"]["results"][0]["similarity_score"] == pytest.approx(1.0)


def test_similarity_limit_out_of_range_is_400(client):
    response = client.post("/api/vectors/similarity", json={"vector": make_vector(), "limit": 0})
    assert response.status_code == 400


def test_stats(client):
    create_vector(client)
    create_vector(client, source_type="mood")
    create_vector(client, source_type="mood", source_id="x")

    response = client.get("/api/vectors/stats")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_vectors"] == 3
    assert data["source_type_distribution"][0] == {"value": "mood", "count": 2}
    assert data["dimension_distribution"] == [{"value": 128, "count": 3}]


# ---------------------------------------------------------------------
# Backend Failures
# ---------------------------------------------------------------------

def test_store_failure_is_opaque_500(client):
    store = client.app.state.vector_store

    async def broken(*args, **kwargs):
        raise CollectionError("connection reset", code="unavailable")

    store._collection.estimated_document_count = broken

    response = client.get("/api/vectors/stats")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Database operation failed"}


# ---------------------------------------------------------------------
# Injected Configuration
# ---------------------------------------------------------------------

@pytest.fixture
def small_limits_client():
    config = Settings(
        vector_store_backend="memory",
        service_name="Small Limits",
        default_page_size=2,
        max_page_size=3,
        default_search_limit=1,
        max_search_limit=2,
    )
    app = create_app(client=InMemoryClient(config), config=config)
    with TestClient(app) as c:
        yield c


def test_list_limits_follow_injected_config(small_limits_client):
    for i in range(4):
        create_vector(small_limits_client, source_id=f"entry-{i}")

    default_page = small_limits_client.get("/api/vectors").json()
    too_large = small_limits_client.get("/api/vectors", params={"limit": 4})

    assert default_page["pagination"]["per_page"] == 2
    assert len(default_page["data"]) == 2
    assert too_large.status_code == 400
    assert too_large.json()["details"] == [{"field": "limit", "message": "must be between 1 and 3"}]


def test_search_limits_follow_injected_config(small_limits_client):
    for i in range(3):
        create_vector(small_limits_client, source_id=f"entry-{i}")

    default_search = small_limits_client.post("/api/vectors/similarity", json={"vector": make_vector()})
    too_large = small_limits_client.post("/api/vectors/similarity", json={"vector": make_vector(), "limit": 3})

    assert default_search.json()["data"]["total_results"] == 1
    assert too_large.status_code == 400
    assert too_large.json()["details"][0]["field"] == "limit"


def test_service_info_follows_injected_config(small_limits_client):
    assert small_limits_client.get("/").json()["service"] == "Small Limits"
    assert small_limits_client.get("/health").json()["service"] == "Small Limits"

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError

from vectordb_service.db import CollectionError, Document, PgVectorCollection, RecordFilter, TimeRange
from vectordb_service.db.models import build_vector_table
from vectordb_service.db.pg_collection import _translate, build_conditions, metadata_field


table = build_vector_table("vector_embeddings")


def compile_sql(clause):
    return str(clause.compile(dialect=postgresql.dialect()))


# ---------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------

def test_table_follows_collection_name():
    custom = build_vector_table("custom_vectors")

    assert custom.name == "custom_vectors"
    assert {index.name for index in custom.indexes} == {"idx_custom_vectors_metadata"}
    (condition,) = build_conditions(custom, RecordFilter.by_id("abc"))
    assert "custom_vectors.id = " in compile_sql(condition)


def test_tables_for_different_names_are_independent():
    first = build_vector_table("first_vectors")
    second = build_vector_table("second_vectors")

    assert first.metadata is not second.metadata
    assert PgVectorCollection(MagicMock(), second).name == "second_vectors"


# ---------------------------------------------------------------------
# Filter Translation
# ---------------------------------------------------------------------

def test_empty_filter_has_no_conditions():
    assert build_conditions(table, RecordFilter()) == []


def test_id_condition():
    (condition,) = build_conditions(table, RecordFilter.by_id("abc"))
    assert ".id = " in compile_sql(condition)


def test_metadata_equality_uses_containment():
    conditions = build_conditions(table, RecordFilter(metadata={"user_id": "u", "source_type": "mood"}))

    assert len(conditions) == 2
    assert all("@>" in compile_sql(c) for c in conditions)


def test_tags_use_any_key_operator():
    (condition,) = build_conditions(table, RecordFilter(tags_any=["a", "b"]))
    assert "?|" in compile_sql(condition)


def test_created_range_compares_text_value():
    conditions = build_conditions(table, RecordFilter(created_at=TimeRange(gte="2024-01-01", lte="2024-02-01")))

    sql = [compile_sql(c) for c in conditions]
    assert len(sql) == 2
    assert ">=" in sql[0] and "->>" in sql[0]
    assert "<=" in sql[1]


def test_metadata_field_casts_numeric_keys():
    assert "INTEGER" in compile_sql(metadata_field(table, "dimensions"))
    assert "FLOAT" in compile_sql(metadata_field(table, "confidence_score")).upper()
    assert "->>" in compile_sql(metadata_field(table, "user_id"))


# ---------------------------------------------------------------------
# Error Translation
# ---------------------------------------------------------------------

@pytest.mark.parametrize("exc, code", [
    (IntegrityError("INSERT", {}, Exception("duplicate")), "duplicate_key"),
    (OperationalError("SELECT", {}, Exception("down")), "unavailable"),
    (ConnectionRefusedError(), "unavailable"),
    (ProgrammingError("SELECT", {}, Exception("syntax")), "backend_error"),
])
def test_translate_classifies_errors(exc, code):
    error = _translate(exc, "find")
    assert error.code == code
    assert str(error).startswith("find failed")


# ---------------------------------------------------------------------
# Collection (mocked sessions)
# ---------------------------------------------------------------------

def failing_factory(exc):
    factory = MagicMock(side_effect=exc)
    return factory


def session_factory(session):
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    factory.return_value.__aexit__.return_value = False
    return factory


class FakeResult:

    def __init__(self, value):
        self.value = value

    def scalar(self):
        return self.value


class FakeStream:
    """Stands in for the AsyncResult returned by ``session.stream``."""

    def __init__(self, rows):
        self.rows = rows

    async def _iterate(self):
        for row in self.rows:
            yield row

    def mappings(self):
        return self._iterate()


def stored_row(record_id, similarity):
    return {
        "id": record_id,
        "embedding": [0.0, 0.0, 0.0],
        "metadata": {"dimensions": 3},
        "similarity": similarity,
    }


@pytest.mark.asyncio
async def test_insert_failure_surfaces_as_collection_error():
    collection = PgVectorCollection(failing_factory(OperationalError("INSERT", {}, Exception("down"))), table)

    with pytest.raises(CollectionError) as exc_info:
        await collection.insert_one(Document(id="a", vector=[0.1, 0.2]))

    assert exc_info.value.code == "unavailable"


@pytest.mark.asyncio
async def test_estimated_count_falls_back_to_exact_count():
    session = AsyncMock()
    session.execute.side_effect = [FakeResult(-1), FakeResult(7)]
    collection = PgVectorCollection(session_factory(session), table)

    assert await collection.estimated_document_count() == 7
    assert session.execute.await_count == 2


@pytest.mark.asyncio
async def test_estimated_count_looks_up_configured_table():
    session = AsyncMock()
    session.execute.side_effect = [FakeResult(1200)]
    collection = PgVectorCollection(session_factory(session), build_vector_table("custom_vectors"))

    assert await collection.estimated_document_count() == 1200
    _, params = session.execute.await_args.args
    assert params == {"name": "custom_vectors"}


@pytest.mark.asyncio
async def test_insert_many_with_no_documents_skips_backend():
    factory = MagicMock()
    collection = PgVectorCollection(factory, table)

    result = await collection.insert_many([])

    assert result.inserted_count == 0
    factory.assert_not_called()


@pytest.mark.asyncio
async def test_zero_magnitude_similarity_is_reported_as_zero():
    session = AsyncMock()
    session.stream.return_value = FakeStream([
        stored_row("unit", 0.5),
        stored_row("zero", float("nan")),
    ])
    collection = PgVectorCollection(session_factory(session), table)

    results = [d async for d in collection.find_similar(RecordFilter(), [0.0, 0.0, 0.0], limit=10)]

    assert [d.id for d in results] == ["unit", "zero"]
    assert [d.similarity for d in results] == [0.5, 0.0]

import pytest

from vectordb_service.db import (
    CollectionError,
    Document,
    GroupCount,
    InMemoryCollection,
    RecordFilter,
    RecordUpdate,
    SortSpec,
    TimeRange,
    VectorCollection,
)


def doc(record_id, vector=(1.0, 0.0), **metadata):
    return Document(id=record_id, vector=list(vector), metadata=metadata)


async def collect(aiter):
    return [d async for d in aiter]


def test_satisfies_collection_protocol(collection):
    assert isinstance(collection, VectorCollection)


@pytest.mark.asyncio
async def test_insert_one_rejects_duplicate_id(collection):
    await collection.insert_one(doc("a"))

    with pytest.raises(CollectionError) as exc_info:
        await collection.insert_one(doc("a"))
    assert exc_info.value.code == "duplicate_key"


@pytest.mark.asyncio
async def test_insert_many_is_all_or_nothing(collection):
    await collection.insert_one(doc("b"))

    with pytest.raises(CollectionError):
        await collection.insert_many([doc("a"), doc("b")])

    assert await collection.find_one(RecordFilter.by_id("a")) is None
    assert await collection.estimated_document_count() == 1


@pytest.mark.asyncio
async def test_reads_are_copies(collection):
    await collection.insert_one(doc("a", tags=["x"]))

    fetched = await collection.find_one(RecordFilter.by_id("a"))
    fetched.metadata["tags"].append("mutated")
    fetched.vector[0] = 99.0

    again = await collection.find_one(RecordFilter.by_id("a"))
    assert again.metadata["tags"] == ["x"]
    assert again.vector == [1.0, 0.0]


@pytest.mark.asyncio
async def test_find_sorts_skips_and_limits(collection):
    for i, ts in enumerate(["2024-01-03", "2024-01-01", "2024-01-02"]):
        await collection.insert_one(doc(f"id-{i}", created_at=ts))

    ascending = await collect(collection.find(RecordFilter(), sort=SortSpec.parse("created_at")))
    page = await collect(collection.find(RecordFilter(), sort=SortSpec.parse("-created_at"), limit=1, skip=1))

    assert [d.id for d in ascending] == ["id-1", "id-2", "id-0"]
    assert [d.id for d in page] == ["id-2"]


@pytest.mark.asyncio
async def test_find_is_a_fresh_cursor_per_call(collection):
    await collection.insert_one(doc("a"))

    assert len(await collect(collection.find(RecordFilter()))) == 1
    assert len(await collect(collection.find(RecordFilter()))) == 1


@pytest.mark.asyncio
async def test_filter_by_tags_and_created_range(collection):
    await collection.insert_one(doc("a", tags=["x"], created_at="2024-01-01"))
    await collection.insert_one(doc("b", tags=["y"], created_at="2024-02-01"))
    await collection.insert_one(doc("c", created_at="2024-03-01"))

    tagged = await collection.count_documents(RecordFilter(tags_any=["x", "y"]))
    in_range = await collect(collection.find(
        RecordFilter(created_at=TimeRange(gte="2024-01-15", lte="2024-03-01"))
    ))

    assert tagged == 2
    assert sorted(d.id for d in in_range) == ["b", "c"]


@pytest.mark.asyncio
async def test_find_one_and_update_merges_top_level_keys(collection):
    await collection.insert_one(doc("a", user_id="u", tags=["x"]))

    updated = await collection.find_one_and_update(
        RecordFilter.by_id("a"),
        RecordUpdate(vector=[0.0, 1.0], set_metadata={"tags": ["y"]}),
    )

    assert updated.vector == [0.0, 1.0]
    assert updated.metadata == {"user_id": "u", "tags": ["y"]}
    assert await collection.find_one_and_update(RecordFilter.by_id("zzz"), RecordUpdate()) is None


@pytest.mark.asyncio
async def test_delete_one_returns_count(collection):
    await collection.insert_one(doc("a"))

    assert await collection.delete_one(RecordFilter.by_id("a")) == 1
    assert await collection.delete_one(RecordFilter.by_id("a")) == 0


@pytest.mark.asyncio
async def test_find_similar_orders_and_scores(collection):
    await collection.insert_one(doc("orthogonal", vector=(0.0, 1.0)))
    await collection.insert_one(doc("same", vector=(2.0, 0.0)))
    await collection.insert_one(doc("opposite", vector=(-1.0, 0.0)))
    await collection.insert_one(doc("zero", vector=(0.0, 0.0)))
    await collection.insert_one(doc("longer", vector=(1.0, 0.0, 0.0)))

    results = await collect(collection.find_similar(RecordFilter(), [1.0, 0.0], limit=10))

    assert [d.id for d in results] == ["same", "orthogonal", "zero", "opposite"]
    assert [d.similarity for d in results] == pytest.approx([1.0, 0.0, 0.0, -1.0])


@pytest.mark.asyncio
async def test_find_similar_respects_limit(collection):
    for i in range(5):
        await collection.insert_one(doc(f"id-{i}", vector=(1.0, float(i))))

    results = await collect(collection.find_similar(RecordFilter(), [1.0, 0.0], limit=2))

    assert [d.id for d in results] == ["id-0", "id-1"]


@pytest.mark.asyncio
async def test_aggregate_orders_buckets(collection):
    await collection.insert_one(doc("a", dimensions=256))
    await collection.insert_one(doc("b", dimensions=128))
    await collection.insert_one(doc("c", dimensions=128))
    await collection.insert_one(doc("d"))

    by_value = await collection.aggregate(GroupCount("dimensions", sort_by="value", descending=False))
    by_count = await collection.aggregate(GroupCount("dimensions"))

    assert [(b.value, b.count) for b in by_value] == [(None, 1), (128, 2), (256, 1)]
    assert by_count[0].value == 128


@pytest.mark.asyncio
async def test_clear(collection):
    await collection.insert_one(doc("a"))
    collection.clear()
    assert await collection.estimated_document_count() == 0

"""
Seed the configured vector store with random records.

Usage:
    python scripts/seed_vectors.py --count 250 --dimensions 1536 --user-id demo-user
"""

import argparse
import asyncio
import os
import sys

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from vectordb_service.config import settings
from vectordb_service.db import create_client
from vectordb_service.vectors.math import random_vector
from vectordb_service.vectors.models import SOURCE_TYPES
from vectordb_service.vectors.service import VectorRecordStore


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--count", type=int, default=100)
    parser.add_argument("--dimensions", type=int, default=1536)
    parser.add_argument("--user-id", default="seed-user")
    parser.add_argument("--seed", type=int, default=None)
    return parser.parse_args(argv)


def build_items(start, size, dimensions, user_id, seed):
    items = []
    for i in range(start, start + size):
        items.append({
            "vector": random_vector(dimensions, seed=None if seed is None else seed + i),
            "metadata": {
                "source_type": SOURCE_TYPES[i % len(SOURCE_TYPES)],
                "source_id": f"seed-{i}",
                "user_id": user_id,
                "content_preview": f"Seeded record {i}",
                "model_version": "random",
                "tags": ["seed"],
            },
        })
    return items


async def main(argv=None):
    args = parse_args(argv)

    client = create_client(settings)
    print(f"Connecting to {settings.vector_store_backend} backend...")
    collection = await client.connect()
    store = VectorRecordStore(collection)

    try:
        batch_size = settings.max_batch_size
        inserted = 0
        for start in range(0, args.count, batch_size):
            size = min(batch_size, args.count - start)
            items = build_items(start, size, args.dimensions, args.user_id, args.seed)
            result = await store.batch_create(items)
            inserted += result.inserted_count
            print(f"Inserted batch {start}-{start + size} ({result.inserted_count} confirmed)")

        stats = await store.statistics()
        print(f"Done! {inserted} vectors inserted, ~{stats.total_vectors} in '{stats.collection_name}'.")
    finally:
        await client.disconnect()


if __name__ == "__main__":
    asyncio.run(main())

"""
SQLAlchemy Models

Defines the database schema for vector records stored with pgvector.

The table is built per collection name, so a client configured with a
different ``collection_name`` creates and queries its own table.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Column, Index, MetaData, String, Table
from sqlalchemy.dialects.postgresql import JSONB
from pgvector.sqlalchemy import Vector


# ---------------------------------------------------------------------
# Vector Record Table
# ---------------------------------------------------------------------

def build_vector_table(name: str, metadata: Optional[MetaData] = None) -> Table:
    """
    Build the table holding one embedding and its metadata per row.

    The vector column is left unconstrained so records of different
    dimensionality can share the table; metadata (including timestamps and
    ``dimensions``) lives in a JSONB document.

    Parameters
    ----------
    name : str
        Table name, normally ``settings.collection_name``.
    metadata : Optional[MetaData]
        MetaData to attach to. A fresh one is used by default so tables for
        different names never collide.
    """
    return Table(
        name,
        metadata if metadata is not None else MetaData(),
        Column("id", String(36), primary_key=True),
        # pgvector column, dimension checked by the service rather than the type
        Column("embedding", Vector(), nullable=False),
        Column("metadata", JSONB, nullable=False, default=dict),
        Index(f"idx_{name}_metadata", "metadata", postgresql_using="gin"),
    )

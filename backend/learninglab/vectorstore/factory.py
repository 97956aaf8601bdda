"""
Vector Store Factory

Selects the backend (pinecone | memory) from config. Callers only import
get_vector_store(); one instance per process so the in-memory backend is
shared between the pipeline and the answer stage.
"""

from __future__ import annotations

from functools import lru_cache

from learninglab.core.config import settings
from learninglab.vectorstore.base import VectorStoreBase


@lru_cache(maxsize=1)
def get_vector_store() -> VectorStoreBase:
    backend = settings.vector_store_backend.lower()

    if backend == "pinecone":
        from learninglab.vectorstore.pinecone_store import PineconeVectorStore
        return PineconeVectorStore()

    if backend == "memory":
        from learninglab.vectorstore.memory_store import InMemoryVectorStore
        return InMemoryVectorStore()

    raise ValueError(
        f"Unknown vector store backend: '{backend}'. "
        f"Valid options: 'pinecone', 'memory'"
    )

"""
In-process vector store.

Used for local development, the eager Celery mode and tests. Records live
in an insertion-ordered dict; overwriting an id keeps its original
position, so ties in score come back in first-indexed order.
"""

from __future__ import annotations

import asyncio
import logging
import math

from learninglab.vectorstore.base import QueryResult, VectorRecord, VectorStoreBase

logger = logging.getLogger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine of the angle between a and b; 0.0 when either has zero norm."""
    dot    = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorStore(VectorStoreBase):

    def __init__(self) -> None:
        self._records: dict[str, VectorRecord] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, records: list[VectorRecord]) -> int:
        async with self._lock:
            for rec in records:
                self._records[rec.id] = VectorRecord(
                    id=rec.id,
                    vector=list(rec.vector),
                    metadata=dict(rec.metadata),
                )
        logger.debug("Memory upsert | count=%d total=%d", len(records), len(self._records))
        return len(records)

    async def query(self, vector: list[float], top_k: int = 5) -> list[QueryResult]:
        scored = [
            QueryResult(
                id=rec.id,
                score=cosine_similarity(vector, rec.vector),
                metadata=dict(rec.metadata),
            )
            for rec in self._records.values()
        ]
        # sorted() is stable: equal scores keep insertion order
        scored = sorted(scored, key=lambda r: r.score, reverse=True)
        return scored[:top_k]

    async def delete(self, ids: list[str]) -> None:
        async with self._lock:
            for vec_id in ids:
                self._records.pop(vec_id, None)

    async def count(self) -> int:
        return len(self._records)

    def get(self, vec_id: str) -> VectorRecord | None:
        return self._records.get(vec_id)

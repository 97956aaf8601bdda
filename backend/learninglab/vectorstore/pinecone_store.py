"""
Pinecone Vector Store

One serverless index (cosine metric, dimension 3, created outside the
service) holding one vector per document, id = document id, metadata = {text, name}.

The Pinecone client is synchronous; calls run in the default executor so
the worker's event loop keeps servicing pollers in the meantime.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial

from pinecone import Pinecone

from learninglab.core.config import settings
from learninglab.vectorstore.base import QueryResult, VectorRecord, VectorStoreBase

logger = logging.getLogger(__name__)

# Pinecone metadata values are capped at 40 KB per vector; measured in UTF-8 bytes
MAX_METADATA_TEXT_BYTES = 30_000


def _truncate_utf8(text: str, max_bytes: int = MAX_METADATA_TEXT_BYTES) -> str:
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    # drop a multi-byte character cut in half at the boundary
    return encoded[:max_bytes].decode("utf-8", errors="ignore")


def _is_zero(vector: list[float]) -> bool:
    return not any(vector)


class PineconeVectorStore(VectorStoreBase):

    def __init__(self, index=None, namespace: str = "documents") -> None:
        if index is None:
            pc = Pinecone(api_key=settings.pinecone_api_key)
            index = pc.Index(settings.pinecone_index_name)
        self._index     = index
        self._namespace = namespace

    async def _run(self, fn, *args, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(fn, *args, **kwargs))

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    async def upsert(self, records: list[VectorRecord], batch_size: int = 100) -> int:
        """
        Batches stay well within Pinecone's 2MB request limit.

        A cosine index rejects all-zero vectors (the embedding of empty
        text), so those records are not written; any vector stored earlier
        under the same id is deleted instead. Returns the number written.
        """
        zero_ids = [rec.id for rec in records if _is_zero(rec.vector)]
        storable = [rec for rec in records if not _is_zero(rec.vector)]
        if zero_ids:
            logger.info("Pinecone upsert skipped zero vectors | count=%d", len(zero_ids))
            await self.delete(zero_ids)

        total = 0
        for i in range(0, len(storable), batch_size):
            batch = storable[i : i + batch_size]
            vectors = [
                {
                    "id":       rec.id,
                    "values":   rec.vector,
                    "metadata": {
                        **rec.metadata,
                        "text": _truncate_utf8(str(rec.metadata.get("text", ""))),
                    },
                }
                for rec in batch
            ]
            await self._run(self._index.upsert, vectors=vectors, namespace=self._namespace)
            total += len(batch)
            logger.debug("Pinecone upsert | batch=%d total=%d", len(batch), total)

        return total

    async def query(self, vector: list[float], top_k: int = 5) -> list[QueryResult]:
        if _is_zero(vector):
            # no direction to compare against; cosine is undefined
            return []

        resp = await self._run(
            self._index.query,
            vector=vector,
            top_k=min(top_k, 100),
            namespace=self._namespace,
            include_metadata=True,
            include_values=False,
        )

        results = []
        for match in resp.get("matches", []):
            meta = match.get("metadata") or {}
            results.append(QueryResult(
                id=match["id"],
                score=match["score"],
                metadata=meta,
                text=meta.get("text", ""),
            ))

        logger.debug("Pinecone query | top_k=%d results=%d", top_k, len(results))
        return results

    async def delete(self, ids: list[str]) -> None:
        if not ids:
            return
        await self._run(self._index.delete, ids=ids, namespace=self._namespace)
        logger.info("Pinecone delete | count=%d", len(ids))

    async def count(self) -> int:
        stats = await self._run(self._index.describe_index_stats)
        ns_stats = stats.get("namespaces", {}).get(self._namespace, {})
        return ns_stats.get("vector_count", 0)

"""
Retrieval Embedding & Index Stage
═════════════════════════════════

    clean_text(text) -> str            whitespace runs → single space, stripped
    embed(text)      -> [m, m/2, m/3]  m = mean UTF-16 code unit of text
    IndexStage.index(document_id, vector, text, name)
    IndexStage.remove(document_id)

The embedding is a deliberately simple, deterministic scaffold so stored
vectors stay comparable across runs: embed("") == [0.0, 0.0, 0.0] and
identical input always gives identical output. Embedder is the seam for
swapping in a real model; MeanCharCodeEmbedder is the default.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod

from learninglab.vectorstore.base import VectorRecord, VectorStoreBase

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def embed(text: str) -> list[float]:
    if not text:
        return [0.0, 0.0, 0.0]
    # UTF-16 code units so astral characters count as two surrogate halves
    units = memoryview(text.encode("utf-16-le")).cast("H")
    mean = sum(units) / len(units)
    return [mean, mean / 2, mean / 3]


class Embedder(ABC):

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        ...


class MeanCharCodeEmbedder(Embedder):

    def embed(self, text: str) -> list[float]:
        return embed(text)


class IndexStage:
    """Upserts one vector per document into the shared index."""

    def __init__(self, store: VectorStoreBase) -> None:
        self._store = store

    async def index(self, document_id: str, vector: list[float], text: str, name: str) -> None:
        await self._store.upsert([
            VectorRecord(
                id=str(document_id),
                vector=list(vector),
                metadata={"text": text, "name": name},
            )
        ])
        logger.info("Indexed | doc=%s chars=%d", document_id, len(text))

    async def remove(self, document_id: str) -> None:
        await self._store.delete([str(document_id)])

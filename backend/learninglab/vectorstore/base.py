"""
Vector Store — Abstract Base

Every backend (Pinecone, in-process memory) implements this interface.
The pipeline and the answer stage only speak this protocol, so backends
are swappable without touching either.

Contract:
  - One record per document, keyed by document id; upsert overwrites.
  - query() scores by cosine similarity, highest first; equal scores keep
    the engine's native order.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


# ---------------------------------------------------------------------------
# Shared data types
# ---------------------------------------------------------------------------

@dataclass
class VectorRecord:
    """A single embedding record to upsert into the vector store."""
    id:        str              # document id
    vector:    list[float]      # [mean, mean/2, mean/3]
    metadata:  dict             # {"text": cleaned text, "name": display name}


@dataclass
class QueryResult:
    """One result returned from a similarity search."""
    id:         str
    score:      float           # cosine similarity in [-1, 1]
    metadata:   dict
    text:       str = field(default="")   # convenience alias for metadata["text"]

    def __post_init__(self) -> None:
        if not self.text and "text" in self.metadata:
            self.text = self.metadata["text"]


# ---------------------------------------------------------------------------
# Abstract interface
# ---------------------------------------------------------------------------

class VectorStoreBase(ABC):

    @abstractmethod
    async def upsert(self, records: list[VectorRecord]) -> int:
        """Insert or overwrite records; return the number written."""

    @abstractmethod
    async def query(self, vector: list[float], top_k: int = 5) -> list[QueryResult]:
        """Nearest neighbours by cosine similarity."""

    @abstractmethod
    async def delete(self, ids: list[str]) -> None:
        """Delete by id; unknown ids are ignored."""

    @abstractmethod
    async def count(self) -> int:
        ...

"""
Retrieval / Answer Stage
════════════════════════

    AnswerService.answer(prompt, access_secret) -> str

  1. constant-time shared-secret check          → Unauthorized (nothing touched)
  2. load every `processed` document
  3. ensure cleaned text (derived text, else the original blob)
  4. embed + upsert each into the vector index    (skipped when the content
                                                   hash is unchanged)
  5. embed the prompt, top-K cosine search (K = settings.retrieval_top_k)
  6. context = retrieved texts joined by "\n"
  7. final prompt = "Query: …\nContext: …\nAnswer:" → generator, or the
     deterministic placeholder when generation is unavailable

The answer path never changes a document's status. Anything other than
Unauthorized comes out as RetrievalError.
"""

from __future__ import annotations

import hashlib
import hmac
import logging

from learninglab.core.config import settings
from learninglab.core.exceptions import RetrievalError, Unauthorized
from learninglab.db.repository import DocumentRepository
from learninglab.llm.gateway import TextGenerator
from learninglab.models.documents import Document, DocumentStatus
from learninglab.processing.embeddings import Embedder, clean_text
from learninglab.storage.s3 import ArtifactStore
from learninglab.vectorstore.base import VectorRecord, VectorStoreBase

logger = logging.getLogger(__name__)

ANSWER_PLACEHOLDER_PREFIX = "Simulated answer based on prompt: "


def build_final_prompt(prompt: str, context: str) -> str:
    return f"Query: {prompt}\nContext: {context}\nAnswer:"


def placeholder_answer(final_prompt: str) -> str:
    return f"{ANSWER_PLACEHOLDER_PREFIX}{final_prompt}"


def _content_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class AnswerService:

    def __init__(
        self,
        *,
        repository:    DocumentRepository,
        store:         ArtifactStore,
        vector_store:  VectorStoreBase,
        embedder:      Embedder,
        generator:     TextGenerator,
        access_secret: str | None = None,
        top_k:         int | None = None,
    ) -> None:
        self._repo      = repository
        self._store     = store
        self._vectors   = vector_store
        self._embedder  = embedder
        self._generator = generator
        self._secret    = settings.access_token_secret if access_secret is None else access_secret
        self._top_k     = top_k or settings.retrieval_top_k
        # doc id → hash of the text last upserted from this process
        self._indexed: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def answer(self, prompt: str, access_secret: str | None) -> str:
        self._authorize(access_secret)

        try:
            await self._refresh_index()

            query_vector = self._embedder.embed(clean_text(prompt))
            hits = await self._vectors.query(query_vector, top_k=self._top_k)
        except Exception as exc:
            logger.exception("Retrieval failed")
            raise RetrievalError(f"Retrieval failed: {exc}") from exc

        context = "\n".join(hit.text for hit in hits)
        final_prompt = build_final_prompt(prompt, context)
        logger.info("Answer | hits=%d context_chars=%d", len(hits), len(context))

        try:
            answer = (await self._generator.answer(final_prompt)).strip()
        except Exception as exc:
            logger.warning("Generation unavailable, using placeholder answer | error=%s", exc)
            return placeholder_answer(final_prompt)
        return answer or placeholder_answer(final_prompt)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _authorize(self, access_secret: str | None) -> None:
        expected = self._secret.encode("utf-8")
        given    = (access_secret or "").encode("utf-8")
        if not expected or not hmac.compare_digest(given, expected):
            logger.warning("Answer request rejected | reason=bad_secret")
            raise Unauthorized("Unauthorized")

    async def _refresh_index(self) -> None:
        documents = await self._repo.list_by_status(DocumentStatus.PROCESSED)

        pending: list[VectorRecord] = []
        digests: dict[str, str] = {}
        for doc in documents:
            text = doc.cleaned_text
            if text is None:
                text = await self._reload_text(doc)

            doc_id = str(doc.id)
            digest = _content_hash(f"{doc.name}\x00{text}")
            if self._indexed.get(doc_id) == digest:
                continue

            pending.append(VectorRecord(
                id=doc_id,
                vector=self._embedder.embed(text),
                metadata={"text": text, "name": doc.name},
            ))
            digests[doc_id] = digest

        if pending:
            await self._vectors.upsert(pending)
            self._indexed.update(digests)
        logger.info("Index refresh | documents=%d upserted=%d", len(documents), len(pending))

    async def _reload_text(self, doc: Document) -> str:
        key = doc.derived_text_key or doc.original_key
        raw = await self._store.get(key)
        return clean_text(raw.decode("utf-8", errors="replace"))

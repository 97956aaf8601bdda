"""
Unit Tests — AnswerService (retrieval / answer stage)
═════════════════════════════════════════════════════
Coverage:
  ✅ Wrong / missing secret → Unauthorized; index and generator untouched
  ✅ Empty configured secret rejects everything
  ✅ Processed documents are indexed; other statuses are not
  ✅ Missing cleaned text is reloaded from the derived artifact
  ✅ Final prompt format "Query: …\nContext: …\nAnswer:"
  ✅ Generator failure → deterministic placeholder answer
  ✅ Unchanged documents are not re-upserted
  ✅ Retrieval failures → RetrievalError
  ✅ Answering never changes a document's status
"""

from __future__ import annotations

import pytest

from learninglab.core.exceptions import GenerationUnavailable, RetrievalError, Unauthorized
from learninglab.models.documents import DocumentStatus
from learninglab.processing.embeddings import MeanCharCodeEmbedder
from learninglab.rag.answer import AnswerService, build_final_prompt, placeholder_answer

SECRET = "test-secret"


async def _process_all(repository, doc_ids, texts):
    """Commit documents as processed with the given cleaned text."""
    for doc_id, text in zip(doc_ids, texts):
        doc = await repository.get(doc_id)
        doc.cleaned_text = text
        doc.transition_to(DocumentStatus.PROCESSED)
        await repository.commit_transition(doc, DocumentStatus.UPLOADED)


class _CountingVectors:
    """Wraps a vector store and counts upserted records."""

    def __init__(self, inner) -> None:
        self.inner = inner
        self.upserted = 0

    async def upsert(self, records):
        self.upserted += len(records)
        return await self.inner.upsert(records)

    async def query(self, vector, top_k=5):
        return await self.inner.query(vector, top_k=top_k)


@pytest.mark.unit
@pytest.mark.retrieval
class TestAuthorization:

    @pytest.mark.parametrize("secret", ["wrong", "", None])
    async def test_bad_secret_is_unauthorized(self, answer_service, generator, vectors, secret):
        with pytest.raises(Unauthorized):
            await answer_service.answer("What is osmosis?", secret)

        assert generator.calls == []
        assert await vectors.count() == 0

    async def test_empty_configured_secret_rejects_everything(self, repository, store, vectors, generator):
        service = AnswerService(
            repository=repository, store=store, vector_store=vectors,
            embedder=MeanCharCodeEmbedder(), generator=generator, access_secret="",
        )

        with pytest.raises(Unauthorized):
            await service.answer("q", "")


@pytest.mark.unit
@pytest.mark.retrieval
class TestAnswer:

    async def test_answer_uses_generator_with_final_prompt(
        self, answer_service, seed_document, repository, generator,
    ):
        doc_id = await seed_document("bio.txt", b"", "text/plain")
        await _process_all(repository, [doc_id], ["Cells divide by mitosis."])
        generator.reply = "Mitosis."

        answer = await answer_service.answer("How do cells divide?", SECRET)

        assert answer == "Mitosis."
        _, user_content = generator.calls[-1]
        assert user_content == build_final_prompt("How do cells divide?", "Cells divide by mitosis.")

    async def test_generator_failure_gives_placeholder(
        self, answer_service, seed_document, repository, generator,
    ):
        doc_id = await seed_document("bio.txt", b"", "text/plain")
        await _process_all(repository, [doc_id], ["Cells divide by mitosis."])
        generator.error = GenerationUnavailable("no backend")

        answer = await answer_service.answer("How?", SECRET)

        assert answer == placeholder_answer("Query: How?\nContext: Cells divide by mitosis.\nAnswer:")
        assert answer.startswith("Simulated answer based on prompt: Query: How?")

    async def test_only_processed_documents_are_indexed(
        self, answer_service, seed_document, repository, vectors,
    ):
        processed = await seed_document("a.txt", b"", "text/plain")
        pending   = await seed_document("b.txt", b"", "text/plain")
        await _process_all(repository, [processed], ["alpha"])

        await answer_service.answer("alpha?", SECRET)

        assert vectors.get(str(processed)) is not None
        assert vectors.get(str(pending)) is None

    async def test_context_joins_hits_with_newline(
        self, answer_service, seed_document, repository, generator,
    ):
        first  = await seed_document("a.txt", b"", "text/plain")
        second = await seed_document("b.txt", b"", "text/plain")
        await _process_all(repository, [first, second], ["aaaa", "bbbb"])

        await answer_service.answer("ab", SECRET)

        _, user_content = generator.calls[-1]
        context = user_content.split("\nContext: ", 1)[1].rsplit("\nAnswer:", 1)[0]
        assert sorted(context.split("\n")) == ["aaaa", "bbbb"]

    async def test_missing_cleaned_text_is_reloaded_from_derived_artifact(
        self, answer_service, seed_document, repository, store, vectors,
    ):
        doc_id = await seed_document("notes.txt", b"original", "text/plain")
        doc = await repository.get(doc_id)
        doc.derived_text_key = f"text/{doc_id}_notes.txt"
        doc.transition_to(DocumentStatus.PROCESSED)
        await repository.commit_transition(doc, DocumentStatus.UPLOADED)
        await store.put(doc.derived_text_key, b"derived   text", "text/plain")

        await answer_service.answer("text", SECRET)

        assert vectors.get(str(doc_id)).metadata["text"] == "derived text"

    async def test_unchanged_documents_are_not_reupserted(
        self, seed_document, repository, store, vectors, generator,
    ):
        counting = _CountingVectors(vectors)
        service = AnswerService(
            repository=repository, store=store, vector_store=counting,
            embedder=MeanCharCodeEmbedder(), generator=generator, access_secret=SECRET,
        )
        doc_id = await seed_document("a.txt", b"", "text/plain")
        await _process_all(repository, [doc_id], ["stable"])

        await service.answer("q1", SECRET)
        await service.answer("q2", SECRET)

        assert counting.upserted == 1

    async def test_answer_does_not_change_status(self, answer_service, seed_document, repository):
        doc_id = await seed_document("a.txt", b"", "text/plain")
        await _process_all(repository, [doc_id], ["text"])
        saves = repository.commit_calls

        await answer_service.answer("q", SECRET)

        assert repository.commit_calls == saves
        assert repository.row(doc_id)["status"] == "processed"

    async def test_vector_failure_is_retrieval_error(
        self, seed_document, repository, store, generator,
    ):
        class _Broken:
            async def upsert(self, records):
                raise ConnectionError("pinecone down")

        service = AnswerService(
            repository=repository, store=store, vector_store=_Broken(),
            embedder=MeanCharCodeEmbedder(), generator=generator, access_secret=SECRET,
        )
        doc_id = await seed_document("a.txt", b"", "text/plain")
        await _process_all(repository, [doc_id], ["text"])

        with pytest.raises(RetrievalError):
            await service.answer("q", SECRET)

    async def test_no_documents_gives_empty_context(self, answer_service, generator):
        await answer_service.answer("anything?", SECRET)

        assert generator.calls[-1][1] == "Query: anything?\nContext: \nAnswer:"

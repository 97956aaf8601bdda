"""
Document Processing Worker — one run per delivered job
═══════════════════════════════════════════════════════

  Received ─► Downloaded ─► Moderated ─► Extracted ─► Published ─► Summarized ─► Embedded ─► Committed
                               │  (skip if n/a)          (skip if empty)
                               └─► unsafe: delete original, commit rejected_moderation

Failure policy:
  - download, moderation engine, extraction and derived-text publish errors
    propagate (as PipelineError subclasses) and leave the record untouched,
    so a redelivered job reruns the whole pipeline from scratch;
  - summarization never fails the run (placeholder summary);
  - an index upsert failure is logged and the run still commits, since the
    answer stage re-indexes every processed document anyway.

The record is loaded once and only mutated right before the single
conditional commit (status must still be `uploaded`). Runs for the same
document are serialized by the lock manager; a terminal document is skipped
(duplicate delivery). When the commit finds the record already terminal or
deleted, the run is superseded: its vector and derived text are removed and
nothing is written.
"""

from __future__ import annotations

import logging
import uuid

from learninglab.core.exceptions import DownloadError, PersistError, PipelineError
from learninglab.db.repository import DocumentRepository
from learninglab.models.documents import Document, DocumentStatus
from learninglab.processing.dispatcher import ExtractionDispatcher, resolve_strategy
from learninglab.processing.embeddings import Embedder, IndexStage, clean_text
from learninglab.processing.moderation import ModerationGate
from learninglab.processing.publisher import DerivedTextPublisher
from learninglab.processing.stages import (
    ProcessingOutcome,
    ProcessingReport,
    StageResult,
)
from learninglab.processing.summarizer import Summarizer
from learninglab.storage.s3 import ArtifactStore
from learninglab.workers.locks import DocumentLockManager

logger = logging.getLogger(__name__)


class DocumentProcessor:
    """All capabilities are injected; see learninglab.dependencies for wiring."""

    def __init__(
        self,
        *,
        repository: DocumentRepository,
        store:      ArtifactStore,
        dispatcher: ExtractionDispatcher,
        moderation: ModerationGate,
        publisher:  DerivedTextPublisher,
        summarizer: Summarizer,
        embedder:   Embedder,
        index:      IndexStage,
        locks:      DocumentLockManager,
    ) -> None:
        self._repo       = repository
        self._store      = store
        self._dispatcher = dispatcher
        self._moderation = moderation
        self._publisher  = publisher
        self._summarizer = summarizer
        self._embedder   = embedder
        self._index      = index
        self._locks      = locks

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def process(self, document_id: uuid.UUID) -> ProcessingReport:
        report = ProcessingReport(document_id=str(document_id))

        async with self._locks.hold(str(document_id)):
            doc = await self._repo.get(document_id)
            if doc is None:
                logger.error("Document not found | doc=%s", document_id)
                report.outcome = ProcessingOutcome.NOT_FOUND
                return report

            if doc.status_enum.is_terminal:
                logger.warning(
                    "Document already in status=%s, skipping | doc=%s",
                    doc.status, document_id,
                )
                report.outcome = ProcessingOutcome.SKIPPED
                return report

            logger.info(
                "Processing | doc=%s type=%s key=%s",
                document_id, doc.content_type, doc.original_key,
            )
            try:
                await self._run(doc, report)
            except PipelineError as exc:
                report.outcome = ProcessingOutcome.FAILED
                logger.error(
                    "Processing aborted | doc=%s stage=%s error=%s",
                    document_id, report.stages[-1].stage if report.stages else "?", exc,
                )
                raise

        return report

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run(self, doc: Document, report: ProcessingReport) -> None:
        # --- Download ---------------------------------------------------
        try:
            data = await self._store.get(doc.original_key)
        except Exception as exc:
            report.record(StageResult.failed("download", exc))
            raise DownloadError(f"Could not download {doc.original_key}: {exc}") from exc
        report.record(StageResult.ok("download", len(data)))

        # --- Moderation -------------------------------------------------
        if not ModerationGate.applies_to(doc.content_type, doc.original_key):
            report.record(StageResult.skipped("moderation"))
        else:
            try:
                unsafe = await self._moderation.check_unsafe(
                    doc.content_type, data, self._store.ref(doc.original_key),
                )
            except PipelineError as exc:
                report.record(StageResult.failed("moderation", exc))
                raise
            report.record(StageResult.ok("moderation", unsafe))
            if unsafe:
                await self._reject(doc, report)
                return

        # --- Extraction -------------------------------------------------
        strategy = resolve_strategy(doc.content_type, doc.original_key)
        try:
            text = await self._dispatcher.extract(data, doc.content_type, doc.original_key)
        except PipelineError as exc:
            report.record(StageResult.failed("extract", exc))
            raise
        report.record(
            StageResult.ok("extract", len(text)) if text.strip()
            else StageResult.empty("extract", 0)
        )

        # --- Publish derived text ---------------------------------------
        derived_key: str | None = None
        if text.strip():
            try:
                derived_key = await self._publisher.publish(
                    doc.original_key, text, transcript=strategy.is_transcript,
                )
            except PipelineError as exc:
                report.record(StageResult.failed("publish", exc))
                raise
            report.record(StageResult.ok("publish", derived_key))
        else:
            report.record(StageResult.skipped("publish"))

        # --- Summarize (never fatal) ------------------------------------
        summary = await self._summarizer.summarize(text)
        report.record(StageResult.ok("summarize", summary))

        # --- Embed + index ----------------------------------------------
        cleaned = clean_text(text)
        vector  = self._embedder.embed(cleaned)
        report.record(StageResult.ok("embed", vector))
        try:
            await self._index.index(str(doc.id), vector, cleaned, doc.name)
            report.record(StageResult.ok("index"))
        except Exception as exc:
            logger.warning("Index upsert failed, committing anyway | doc=%s error=%s", doc.id, exc)
            report.record(StageResult.failed("index", exc))

        # --- Commit -----------------------------------------------------
        doc.derived_text_key = derived_key
        doc.summary          = summary
        doc.embedding        = vector
        doc.cleaned_text     = cleaned
        doc.error_message    = None
        doc.transition_to(DocumentStatus.PROCESSED)
        if not await self._commit(doc, report):
            await self._discard(doc, derived_key)
            return

        report.outcome = ProcessingOutcome.PROCESSED
        logger.info(
            "Processing complete | doc=%s derived=%s chars=%d",
            doc.id, derived_key, len(cleaned),
        )

    async def _reject(self, doc: Document, report: ProcessingReport) -> None:
        try:
            await self._store.delete(doc.original_key)
        except Exception as exc:
            report.record(StageResult.failed("delete_original", exc))
            raise PersistError(f"Could not delete flagged original {doc.original_key}: {exc}") from exc
        report.record(StageResult.ok("delete_original", doc.original_key))

        doc.transition_to(DocumentStatus.REJECTED_MODERATION)
        if not await self._commit(doc, report):
            return

        report.outcome = ProcessingOutcome.REJECTED_MODERATION
        logger.warning("Document rejected by moderation | doc=%s", doc.id)

    async def _commit(self, doc: Document, report: ProcessingReport) -> bool:
        try:
            committed = await self._repo.commit_transition(doc, DocumentStatus.UPLOADED)
        except Exception as exc:
            report.record(StageResult.failed("commit", exc))
            raise PersistError(f"Could not commit document {doc.id}: {exc}") from exc

        if not committed:
            report.record(StageResult.skipped("commit"))
            report.outcome = ProcessingOutcome.SUPERSEDED
            logger.warning(
                "Record changed during the run, result dropped | doc=%s status=%s",
                doc.id, doc.status,
            )
            return False

        report.record(StageResult.ok("commit", doc.status))
        return True

    async def _discard(self, doc: Document, derived_key: str | None) -> None:
        """Remove what a superseded run already wrote outside the record."""
        try:
            await self._index.remove(str(doc.id))
        except Exception as exc:
            logger.warning("Could not remove superseded vector | doc=%s error=%s", doc.id, exc)
        if derived_key:
            try:
                await self._store.delete(derived_key)
            except Exception as exc:
                logger.warning("Could not remove superseded text | key=%s error=%s", derived_key, exc)

    # ------------------------------------------------------------------
    # Retry exhaustion
    # ------------------------------------------------------------------

    async def mark_failed(self, document_id: uuid.UUID, error_message: str) -> bool:
        """Commit status=failed unless the document already reached a terminal state."""
        doc = await self._repo.get(document_id)
        if doc is None or doc.status_enum.is_terminal:
            return False

        doc.error_message = error_message[:2000]
        doc.transition_to(DocumentStatus.FAILED)
        if not await self._repo.commit_transition(doc, DocumentStatus.UPLOADED):
            logger.warning("Document left uploaded before it could be marked failed | doc=%s", document_id)
            return False

        logger.error("Document marked failed | doc=%s error=%s", document_id, error_message)
        return True

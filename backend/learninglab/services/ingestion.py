"""
Document Ingestion Service

Upload path:
  1. Validate presence and size of the file (400 / 413)
  2. Store the original at docs/<uuid4>_<sanitized filename>
  3. Insert the document record (status=uploaded)
  4. Publish the processing job {document_id} to Celery
     (broker failure is non-fatal: the beat scanner re-queues `uploaded`
      documents after settings.stale_after_minutes)

Also: tag replacement, status lookup, search, and delete (record, original
blob, derived text, vector entry).
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid

from fastapi import HTTPException, UploadFile, status

from learninglab.core.config import settings
from learninglab.core.exceptions import ArtifactNotFound
from learninglab.db.repository import DocumentRepository
from learninglab.models.documents import Document
from learninglab.schemas.documents import (
    MAX_FILE_SIZE_BYTES,
    ApiErrors,
    DocumentUploadResponse,
)
from learninglab.storage.s3 import ArtifactStore
from learninglab.vectorstore.base import VectorStoreBase

logger = logging.getLogger(__name__)

OCTET_STREAM = "application/octet-stream"


# ---------------------------------------------------------------------------
# Filename helpers
# ---------------------------------------------------------------------------

def _sanitize_filename(filename: str) -> str:
    """
    Strip path components and replace unsafe characters.
    Returns only the basename with S3-safe characters.
    """
    basename = filename.replace("\\", "/").rsplit("/", 1)[-1]
    safe = re.sub(r"[^a-zA-Z0-9._\-]", "_", basename)
    return safe[:200] or "upload"


def original_key_for(document_id: uuid.UUID, filename: str) -> str:
    return f"{settings.upload_prefix}{document_id}_{_sanitize_filename(filename)}"


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class IngestionService:
    """Stateless; all collaborators are injected."""

    def __init__(
        self,
        repository:     DocumentRepository,
        store:          ArtifactStore,
        vector_store:   VectorStoreBase,
        task_publisher: "TaskPublisher",
    ) -> None:
        self._repo      = repository
        self._store     = store
        self._vectors   = vector_store
        self._publisher = task_publisher

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload(
        self,
        file: UploadFile | None,
        name: str | None = None,
        tags: list[str] | None = None,
    ) -> DocumentUploadResponse:
        data = await self._read_upload(file)

        filename     = _sanitize_filename(file.filename or "upload")
        content_type = (file.content_type or OCTET_STREAM).split(";", 1)[0].strip() or OCTET_STREAM
        document_id  = uuid.uuid4()
        key          = original_key_for(document_id, filename)

        logger.info(
            "Ingest start | doc=%s file=%s type=%s size=%d",
            document_id, filename, content_type, len(data),
        )

        try:
            ref = await self._store.put(key, data, content_type)
        except Exception as exc:
            logger.exception("S3 upload failed | doc=%s", document_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=ApiErrors.storage_error(str(exc)).model_dump(),
            )

        doc = Document.new(
            document_id=document_id,
            original_key=key,
            content_type=content_type,
            filename=filename,
            name=(name or "").strip() or filename,
            tags=tags,
        )
        await self._repo.add(doc)

        queued = True
        try:
            await self._publisher.publish_processing_task(document_id)
        except Exception as exc:
            # Non-fatal: the document is stored; the stale scanner will queue it
            queued = False
            logger.error("Failed to publish processing task | doc=%s error=%s", document_id, exc)

        return DocumentUploadResponse(
            document_id=document_id,
            s3_uri=ref.uri,
            original_key=key,
            status=doc.status,
            queued=queued,
        )

    # ------------------------------------------------------------------
    # Record operations
    # ------------------------------------------------------------------

    async def get(self, document_id: uuid.UUID) -> Document:
        doc = await self._repo.get(document_id)
        if doc is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=ApiErrors.document_not_found(document_id).model_dump(),
            )
        return doc

    async def set_tags(self, document_id: uuid.UUID, tags: list[str]) -> Document:
        # tags column only; status and derived fields belong to the worker
        if not await self._repo.update_tags(document_id, list(tags)):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=ApiErrors.document_not_found(document_id).model_dump(),
            )
        logger.info("Tags updated | doc=%s tags=%s", document_id, tags)
        return await self.get(document_id)

    async def search(self, name: str | None, tags: list[str] | None) -> list[Document]:
        return await self._repo.search(name=name or None, tags=tags or None)

    async def delete(self, document_id: uuid.UUID) -> None:
        doc = await self.get(document_id)

        for key in filter(None, (doc.original_key, doc.derived_text_key)):
            try:
                await self._store.delete(key)
            except ArtifactNotFound:
                pass
        await self._vectors.delete([str(doc.id)])
        await self._repo.delete(doc.id)

        logger.info("Document deleted | doc=%s", document_id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _read_upload(self, file: UploadFile | None) -> bytes:
        """Read the upload into memory with a hard size ceiling (400 / 413)."""
        if file is None or not file.filename:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=ApiErrors.missing_file().model_dump(),
            )

        limit = min(MAX_FILE_SIZE_BYTES, settings.max_upload_bytes)
        data = await file.read(limit + 1)

        if not data:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=ApiErrors.missing_file().model_dump(),
            )
        if len(data) > limit:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=ApiErrors.file_too_large(len(data), limit).model_dump(),
            )
        return data


# ---------------------------------------------------------------------------
# Task publisher — thin abstraction over Celery apply_async()
# Injected into IngestionService so it can be mocked in tests.
# ---------------------------------------------------------------------------

class TaskPublisher:
    """
    Sends the processing job to the Celery broker.
    Import is deferred so the broker is not needed at module load time.
    """

    async def publish_processing_task(self, document_id: uuid.UUID) -> None:
        from learninglab.workers.tasks import process_document

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None,
            lambda: process_document.apply_async(kwargs={"document_id": str(document_id)}),
        )
        logger.info("Processing task published | doc=%s", document_id)

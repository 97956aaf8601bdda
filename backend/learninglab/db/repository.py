"""
Document repository — the only way the pipeline and API touch the documents table.

The worker never keeps a transaction open across a processing run (external
jobs can poll for many minutes), so every repository call opens its own
short session through the injected session factory and returns detached
Document instances. Writes are targeted UPDATEs: `commit_transition` only
lands while the stored status is still the expected one, so a stale copy can
never move a document backwards or resurrect a deleted row.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from learninglab.models.documents import Document, DocumentStatus

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class DocumentRepository(ABC):

    @abstractmethod
    async def get(self, document_id: uuid.UUID) -> Document | None:
        """Return the document or None."""

    @abstractmethod
    async def add(self, document: Document) -> None:
        """Insert a new document."""

    @abstractmethod
    async def commit_transition(self, document: Document, expected: DocumentStatus) -> bool:
        """
        Write status and the derived fields of `document` only if the stored
        status is still `expected`. False when the row changed or is gone.
        """

    @abstractmethod
    async def update_tags(self, document_id: uuid.UUID, tags: list[str]) -> bool:
        """Replace the tags column only; False if the document does not exist."""

    @abstractmethod
    async def list_by_status(self, status: DocumentStatus) -> list[Document]:
        ...

    @abstractmethod
    async def search(
        self,
        name: str | None = None,
        tags: list[str] | None = None,
    ) -> list[Document]:
        """Case-insensitive name substring match AND all-of tag match."""

    @abstractmethod
    async def list_stale(self, older_than: timedelta, limit: int = 50) -> list[Document]:
        """Documents still `uploaded` and created before now - older_than."""

    @abstractmethod
    async def delete(self, document_id: uuid.UUID) -> bool:
        """Delete the record; True if a row was removed."""


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------

class SQLDocumentRepository(DocumentRepository):

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def get(self, document_id: uuid.UUID) -> Document | None:
        async with self._session_factory() as db:
            return await db.get(Document, document_id)

    async def add(self, document: Document) -> None:
        async with self._session_factory() as db:
            db.add(document)
            await db.flush()
        logger.debug("Document inserted | doc=%s", document.id)

    async def commit_transition(self, document: Document, expected: DocumentStatus) -> bool:
        stmt = (
            update(Document)
            .where(Document.id == document.id, Document.status == expected.value)
            .values(
                status=document.status,
                derived_text_key=document.derived_text_key,
                summary=document.summary,
                cleaned_text=document.cleaned_text,
                embedding=document.embedding,
                error_message=document.error_message,
            )
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as db:
            result = await db.execute(stmt)
            committed = (result.rowcount or 0) > 0

        logger.debug(
            "Document transition | doc=%s %s→%s committed=%s",
            document.id, expected.value, document.status, committed,
        )
        return committed

    async def update_tags(self, document_id: uuid.UUID, tags: list[str]) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(
                update(Document)
                .where(Document.id == document_id)
                .values(tags=list(tags))
                .execution_options(synchronize_session=False)
            )
            return (result.rowcount or 0) > 0

    async def list_by_status(self, status: DocumentStatus) -> list[Document]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Document)
                .where(Document.status == status.value)
                .order_by(Document.created_at)
            )
            return list(result.scalars().all())

    async def search(
        self,
        name: str | None = None,
        tags: list[str] | None = None,
    ) -> list[Document]:
        stmt = select(Document)
        if name:
            stmt = stmt.where(Document.name.ilike(f"%{name}%"))
        if tags:
            stmt = stmt.where(Document.tags.contains(tags))

        async with self._session_factory() as db:
            result = await db.execute(stmt.order_by(Document.created_at.desc()))
            return list(result.scalars().all())

    async def list_stale(self, older_than: timedelta, limit: int = 50) -> list[Document]:
        cutoff = datetime.now(timezone.utc) - older_than
        async with self._session_factory() as db:
            result = await db.execute(
                select(Document)
                .where(
                    Document.status == DocumentStatus.UPLOADED.value,
                    Document.created_at < cutoff,
                )
                .order_by(Document.created_at)
                .limit(limit)
            )
            return list(result.scalars().all())

    async def delete(self, document_id: uuid.UUID) -> bool:
        async with self._session_factory() as db:
            result = await db.execute(delete(Document).where(Document.id == document_id))
            return (result.rowcount or 0) > 0

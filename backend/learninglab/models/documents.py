"""
SQLAlchemy ORM Models — Documents

Maps the `documents` table (SQLAlchemy 2.x typed declarative style) used by
both the API and the Celery worker.

State machine (status column), monotonic:

    uploaded ──► processed
        │
        ├──────► rejected_moderation
        │
        └──────► failed

Only the worker moves a document out of `uploaded`. Terminal states never
change again; a re-delivered job for a terminal document is a no-op.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, Text, func
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from learninglab.core.exceptions import InvalidStatusTransition


# ---------------------------------------------------------------------------
# Declarative base
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Status state machine
# ---------------------------------------------------------------------------

class DocumentStatus(str, Enum):
    UPLOADED            = "uploaded"
    PROCESSED           = "processed"
    REJECTED_MODERATION = "rejected_moderation"
    FAILED              = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not DocumentStatus.UPLOADED

    def can_transition_to(self, target: "DocumentStatus") -> bool:
        return self is DocumentStatus.UPLOADED and target is not DocumentStatus.UPLOADED


# ---------------------------------------------------------------------------
# Document model
# ---------------------------------------------------------------------------

class Document(Base):
    """
    One uploaded file and everything the pipeline derived from it.

    original_key / content_type are immutable after upload.
    derived_text_key is set only when extraction produced non-empty text.
    summary / embedding are written together with status=processed.
    """

    __tablename__ = "documents"
    __table_args__ = (
        CheckConstraint(
            "status IN ('uploaded', 'processed', 'rejected_moderation', 'failed')",
            name="documents_status_check",
        ),
        Index("idx_documents_status",     "status"),
        Index("idx_documents_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Display name; defaults to the uploaded filename",
    )
    filename: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Sanitized original filename",
    )
    content_type: Mapped[str] = mapped_column(Text, nullable=False)

    # Blob references
    original_key: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="docs/<uuid>_<filename>",
    )
    derived_text_key: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="text/<stem>.txt or text/<stem>_transcript.txt",
    )

    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=DocumentStatus.UPLOADED.value,
        server_default=DocumentStatus.UPLOADED.value,
    )
    error_message: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Populated only when status='failed'",
    )

    # Derived content
    summary:      Mapped[Optional[str]]         = mapped_column(Text, nullable=True)
    cleaned_text: Mapped[Optional[str]]         = mapped_column(Text, nullable=True)
    embedding:    Mapped[Optional[list[float]]] = mapped_column(JSONB, nullable=True)

    tags: Mapped[list[str]] = mapped_column(
        ARRAY(Text),
        nullable=False,
        default=list,
        server_default="{}",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @classmethod
    def new(
        cls,
        *,
        original_key: str,
        content_type: str,
        filename:     str,
        name:         str | None = None,
        tags:         list[str] | None = None,
        document_id:  uuid.UUID | None = None,
    ) -> "Document":
        return cls(
            id=document_id or uuid.uuid4(),
            name=name or filename,
            filename=filename,
            content_type=content_type,
            original_key=original_key,
            status=DocumentStatus.UPLOADED.value,
            tags=list(tags or []),
        )

    @property
    def status_enum(self) -> DocumentStatus:
        return DocumentStatus(self.status)

    def transition_to(self, target: DocumentStatus) -> None:
        """Move to `target`, refusing anything but uploaded → terminal."""
        current = self.status_enum
        if not current.can_transition_to(target):
            raise InvalidStatusTransition(current.value, target.value)
        self.status = target.value

    def __repr__(self) -> str:
        return (
            f"<Document id={self.id} status={self.status} "
            f"type={self.content_type!r} key={self.original_key!r}>"
        )

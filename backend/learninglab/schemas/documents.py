"""
Pydantic Request/Response Schemas — Documents & Generation

Covers:
  - POST /documents/upload         upload response (202 Accepted)
  - POST /documents/{id}/tags      tag replacement
  - GET  /documents/{id}/status    document view
  - GET  /documents                search results
  - POST /generate                 shared-secret answer request
  - Uniform ErrorResponse envelope for all 4xx/5xx
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

# 1 GiB hard ceiling on a single upload
MAX_FILE_SIZE_BYTES: int = 1024 * 1024 * 1024


def parse_tags(raw: str | list[str] | None) -> list[str]:
    """Accept "a, b,c" or ["a", "b"]; drop blanks and duplicates, keep order."""
    if raw is None:
        return []
    items = raw.split(",") if isinstance(raw, str) else [
        part for item in raw for part in str(item).split(",")
    ]
    seen: dict[str, None] = {}
    for item in items:
        tag = item.strip()
        if tag:
            seen.setdefault(tag, None)
    return list(seen)


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

class DocumentUploadResponse(BaseModel):
    """HTTP 202 — the file is stored; processing is asynchronous."""
    message:      str  = Field("File uploaded successfully", description="Human-readable result")
    document_id:  UUID = Field(..., description="Server-generated document UUID")
    s3_uri:       str  = Field(..., description="s3://<bucket>/<original key>")
    original_key: str
    status:       str  = Field("uploaded", description="Pipeline status at response time")
    queued:       bool = Field(True, description="False if the broker was unreachable; the scanner re-queues")


# ---------------------------------------------------------------------------
# Document views
# ---------------------------------------------------------------------------

class DocumentView(BaseModel):
    """Returned by status, tag and search endpoints."""
    model_config = ConfigDict(from_attributes=True)

    id:               UUID
    name:             str
    filename:         str
    content_type:     str
    original_key:     str
    derived_text_key: str | None = None
    status:           str
    summary:          str | None = None
    tags:             list[str] = Field(default_factory=list)
    error_message:    str | None = None
    created_at:       datetime | None = None
    updated_at:       datetime | None = None


class TagsRequest(BaseModel):
    tags: list[str] | str = Field(..., description="List of tags or a comma-separated string")

    @field_validator("tags")
    @classmethod
    def _normalize(cls, value: list[str] | str) -> list[str]:
        return parse_tags(value)


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_secret: str | None = Field(None, alias="ACCESS_TOKEN_SECRET")
    prompt:        str        = Field(..., min_length=1, max_length=20_000)


class GenerateResponse(BaseModel):
    answer: str


# ---------------------------------------------------------------------------
# Structured error bodies
# ---------------------------------------------------------------------------

class ErrorDetail(BaseModel):
    """Single structured error — may appear in a list."""
    field:   str | None = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str


class ErrorResponse(BaseModel):
    """Uniform error envelope for all 4xx/5xx responses."""
    error_code: str               = Field(..., description="Stable machine-readable code")
    message:    str               = Field(..., description="Human-readable summary")
    details:    list[ErrorDetail] = Field(default_factory=list)
    request_id: str | None        = Field(None, description="Trace ID for log correlation")


class ApiErrors:
    """Factories for every documented error case."""

    @staticmethod
    def missing_file() -> ErrorResponse:
        return ErrorResponse(
            error_code="MISSING_FILE",
            message="No file uploaded",
            details=[ErrorDetail(field="file", message="The 'file' multipart field is required.", code="MISSING_FILE")],
        )

    @staticmethod
    def file_too_large(size_bytes: int, limit_bytes: int = MAX_FILE_SIZE_BYTES) -> ErrorResponse:
        if limit_bytes % (1024 * 1024) == 0:
            limit_label = f"{limit_bytes // (1024 * 1024)} MB"
        else:
            limit_label = f"{limit_bytes:,} byte"
        return ErrorResponse(
            error_code="FILE_TOO_LARGE",
            message=f"Uploaded file exceeds the {limit_label} limit.",
            details=[
                ErrorDetail(
                    field="file",
                    message=f"Received {size_bytes:,} bytes; limit is {limit_bytes:,} bytes.",
                    code="FILE_TOO_LARGE",
                )
            ],
        )

    @staticmethod
    def storage_error(detail: str | None = None) -> ErrorResponse:
        return ErrorResponse(
            error_code="STORAGE_ERROR",
            message="Failed to store the document. Please retry.",
            details=[ErrorDetail(message=detail, code="STORAGE_ERROR")] if detail else [],
        )

    @staticmethod
    def document_not_found(document_id: UUID) -> ErrorResponse:
        return ErrorResponse(
            error_code="DOCUMENT_NOT_FOUND",
            message=f"Document '{document_id}' was not found.",
        )

    @staticmethod
    def unauthorized() -> ErrorResponse:
        return ErrorResponse(error_code="UNAUTHORIZED", message="Unauthorized")

    @staticmethod
    def generation_failed(request_id: str | None = None) -> ErrorResponse:
        return ErrorResponse(
            error_code="GENERATION_FAILED",
            message="Failed to generate answer",
            request_id=request_id,
        )

    @staticmethod
    def internal_error(request_id: str | None = None) -> ErrorResponse:
        return ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred.",
            request_id=request_id,
        )

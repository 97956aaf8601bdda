"""
Document API Router

POST   /api/v1/documents/upload          multipart upload → 202
POST   /api/v1/documents/{id}/tags       replace tags
GET    /api/v1/documents/{id}/status     record view (pipeline status, summary, keys)
GET    /api/v1/documents?name=&tags=     search by name substring and tags
DELETE /api/v1/documents/{id}            remove record, blobs and vector entry

Processing is asynchronous: the upload response only confirms that the
original is stored and the job was queued. Clients poll /status for the
pipeline outcome (uploaded → processed | rejected_moderation | failed).
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse

from learninglab.dependencies import get_ingestion_service
from learninglab.schemas.documents import (
    ApiErrors,
    DocumentUploadResponse,
    DocumentView,
    ErrorResponse,
    TagsRequest,
    parse_tags,
)
from learninglab.services.ingestion import IngestionService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/documents",
    tags=["Documents"],
)


# ---------------------------------------------------------------------------
# POST /documents/upload
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=DocumentUploadResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Upload a document for processing",
    description=(
        "Accepts any file up to 1 GiB. Returns 202 immediately; text extraction, "
        "moderation and indexing run in the background. "
        "Poll GET /documents/{id}/status for the outcome."
    ),
    responses={
        202: {"model": DocumentUploadResponse, "description": "File stored and queued"},
        400: {"model": ErrorResponse, "description": "No file in the request"},
        413: {"model": ErrorResponse, "description": "File exceeds the 1 GiB limit"},
        500: {"model": ErrorResponse, "description": "Blob storage or database failure"},
    },
)
async def upload_document(
    file:    Optional[UploadFile] = File(None, description="Document, image, audio or video file"),
    name:    Optional[str]        = Form(None, max_length=255, description="Display name; defaults to the filename"),
    tags:    Optional[str]        = Form(None, description="Comma-separated tags"),
    service: IngestionService     = Depends(get_ingestion_service),
) -> JSONResponse:
    request_id = str(uuid.uuid4())

    try:
        result = await service.upload(file=file, name=name, tags=parse_tags(tags))
    except HTTPException:
        raise
    except Exception:
        logger.exception("Unhandled upload error | request_id=%s", request_id)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ApiErrors.internal_error(request_id).model_dump(mode="json"),
            headers={"X-Request-ID": request_id},
        )

    return JSONResponse(
        status_code=status.HTTP_202_ACCEPTED,
        content=result.model_dump(mode="json"),
        headers={
            "X-Request-ID":  request_id,
            "X-Document-ID": str(result.document_id),
            "Location":      f"/api/v1/documents/{result.document_id}/status",
        },
    )


# ---------------------------------------------------------------------------
# POST /documents/{document_id}/tags
# ---------------------------------------------------------------------------

@router.post(
    "/{document_id}/tags",
    response_model=DocumentView,
    summary="Replace the tags of a document",
    responses={404: {"model": ErrorResponse}},
)
async def set_document_tags(
    document_id: UUID,
    body:        TagsRequest,
    service:     IngestionService = Depends(get_ingestion_service),
) -> DocumentView:
    doc = await service.set_tags(document_id, body.tags)
    return DocumentView.model_validate(doc)


# ---------------------------------------------------------------------------
# GET /documents/{document_id}/status
# ---------------------------------------------------------------------------

@router.get(
    "/{document_id}/status",
    response_model=DocumentView,
    summary="Poll processing status",
    responses={404: {"model": ErrorResponse}},
)
async def get_document_status(
    document_id: UUID,
    service:     IngestionService = Depends(get_ingestion_service),
) -> DocumentView:
    doc = await service.get(document_id)
    return DocumentView.model_validate(doc)


# ---------------------------------------------------------------------------
# GET /documents  — search
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=list[DocumentView],
    summary="Search documents by name and tags",
    description="`name` matches case-insensitively as a substring; every tag in `tags` must be present.",
)
async def search_documents(
    name:    Optional[str] = Query(None, max_length=255),
    tags:    Optional[str] = Query(None, description="Comma-separated tags"),
    service: IngestionService = Depends(get_ingestion_service),
) -> list[DocumentView]:
    docs = await service.search(name=name, tags=parse_tags(tags))
    return [DocumentView.model_validate(d) for d in docs]


# ---------------------------------------------------------------------------
# DELETE /documents/{document_id}
# ---------------------------------------------------------------------------

@router.delete(
    "/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a document and its artifacts",
    responses={
        204: {"description": "Document deleted"},
        404: {"model": ErrorResponse},
    },
)
async def delete_document(
    document_id: UUID,
    service:     IngestionService = Depends(get_ingestion_service),
) -> None:
    await service.delete(document_id)

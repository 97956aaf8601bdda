"""
Generate API — shared-secret RAG answer

POST /api/v1/generate
  body:  {"ACCESS_TOKEN_SECRET": "...", "prompt": "..."}
  200:   {"answer": "..."}
  401:   secret missing or wrong (index untouched)
  500:   retrieval failure

When the text generator is unavailable the answer degrades to a
placeholder built from the final prompt instead of failing.
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from learninglab.core.exceptions import Unauthorized
from learninglab.dependencies import get_answer_service
from learninglab.rag.answer import AnswerService
from learninglab.schemas.documents import (
    ApiErrors,
    ErrorResponse,
    GenerateRequest,
    GenerateResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Generate"])


@router.post(
    "/generate",
    response_model=GenerateResponse,
    summary="Answer a prompt from indexed documents",
    responses={
        200: {"model": GenerateResponse},
        401: {"model": ErrorResponse, "description": "Missing or wrong ACCESS_TOKEN_SECRET"},
        500: {"model": ErrorResponse, "description": "Retrieval failed"},
    },
)
async def generate(
    body:    GenerateRequest,
    service: AnswerService = Depends(get_answer_service),
) -> JSONResponse:
    request_id = str(uuid.uuid4())
    start = time.perf_counter()

    try:
        answer = await service.answer(body.prompt, body.access_secret)
    except Unauthorized:
        logger.warning("Generate rejected | reason=unauthorized request_id=%s", request_id)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content=ApiErrors.unauthorized().model_dump(mode="json"),
            headers={"X-Request-ID": request_id},
        )
    except Exception:
        logger.exception("Generate failed | request_id=%s", request_id)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ApiErrors.generation_failed(request_id).model_dump(mode="json"),
            headers={"X-Request-ID": request_id},
        )

    logger.info(
        "Generate complete | request_id=%s latency_ms=%d",
        request_id, int((time.perf_counter() - start) * 1000),
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=GenerateResponse(answer=answer).model_dump(mode="json"),
        headers={"X-Request-ID": request_id},
    )

"""
Celery Tasks — Document Processing

Task: process_document(document_id=...)
  Runs DocumentProcessor.process() (download → moderation → extract →
  publish → summarize → embed/index → commit) on an event loop.
  - PipelineError / unexpected error → retry with exponential countdown
  - retries exhausted                → status=failed + error_message
  - DocumentBusy                     → dropped; the lock holder finishes the run
  - unknown / terminal document      → no-op

Task: requeue_stale_documents
  Beat task — re-queues documents still `uploaded` after
  settings.stale_after_minutes (covers broker outages during upload and
  workers lost mid-run).
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import timedelta
from typing import Any

from celery import Task

from learninglab.core.config import settings
from learninglab.core.exceptions import DocumentBusy
from learninglab.workers.celery_app import celery_app

logger = logging.getLogger(__name__)

RETRY_BASE_DELAY = 30     # seconds; doubles per attempt
RETRY_MAX_DELAY  = 600


# ---------------------------------------------------------------------------
# Async task helper
# Run async coroutines inside Celery's synchronous task context.
# ---------------------------------------------------------------------------

def run_async(coro):
    """Execute an async coroutine from a synchronous Celery task."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    import concurrent.futures
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


def retry_countdown(retries: int) -> int:
    return min(RETRY_BASE_DELAY * (2 ** retries), RETRY_MAX_DELAY)


# ---------------------------------------------------------------------------
# Main processing task
# ---------------------------------------------------------------------------

@celery_app.task(
    name="learninglab.workers.tasks.process_document",
    bind=True,
    max_retries=3,
    acks_late=True,
    reject_on_worker_lost=True,
)
def process_document(self: Task, *, document_id: str) -> dict[str, Any]:
    try:
        doc_id = uuid.UUID(document_id)
    except (ValueError, TypeError):
        logger.error("Invalid document id in job payload | doc=%r", document_id)
        return {"status": "invalid", "document_id": document_id}

    try:
        return run_async(_process_document_async(doc_id))
    except DocumentBusy:
        logger.info("Document locked by another run, dropping delivery | doc=%s", doc_id)
        return {"status": "busy", "document_id": document_id}
    except Exception as exc:
        if self.request.retries >= self.max_retries:
            logger.error(
                "Retries exhausted | doc=%s retries=%d error=%s",
                doc_id, self.request.retries, exc,
            )
            run_async(_mark_failed_async(doc_id, f"{type(exc).__name__}: {exc}"))
            return {"status": "failed", "document_id": document_id, "error": str(exc)}
        raise self.retry(exc=exc, countdown=retry_countdown(self.request.retries))


async def _process_document_async(document_id: uuid.UUID) -> dict[str, Any]:
    from learninglab.db.session import engine
    from learninglab.dependencies import build_processor

    try:
        report = await build_processor().process(document_id)
        return report.as_dict()
    finally:
        # pooled connections are bound to this run's event loop
        await engine.dispose()


async def _mark_failed_async(document_id: uuid.UUID, error_message: str) -> None:
    from learninglab.db.session import engine
    from learninglab.dependencies import build_processor

    try:
        await build_processor().mark_failed(document_id, error_message)
    finally:
        await engine.dispose()


# ---------------------------------------------------------------------------
# Stale upload scanner — runs every 60 seconds via Celery Beat
# ---------------------------------------------------------------------------

@celery_app.task(
    name="learninglab.workers.tasks.requeue_stale_documents",
    acks_late=True,
    soft_time_limit=55,
    time_limit=60,
)
def requeue_stale_documents() -> dict[str, int]:
    return run_async(_requeue_stale_documents_async())


async def _requeue_stale_documents_async() -> dict[str, int]:
    from learninglab.db.session import engine
    from learninglab.dependencies import get_repository

    try:
        stale = await get_repository().list_stale(
            timedelta(minutes=settings.stale_after_minutes), limit=50,
        )
    finally:
        await engine.dispose()

    for doc in stale:
        process_document.apply_async(kwargs={"document_id": str(doc.id)}, countdown=5)
        logger.info("Re-queued stale document | doc=%s", doc.id)

    return {"requeued": len(stale)}


# ---------------------------------------------------------------------------
# Health check task
# ---------------------------------------------------------------------------

@celery_app.task(name="learninglab.workers.tasks.health_check")
def health_check() -> dict[str, str]:
    return {"status": "ok", "worker": "healthy"}

"""
Celery Application Factory

Configures the Celery app for asynchronous document processing.
Broker: RabbitMQ (amqp://) in production; Redis (redis://) works for local dev.
Result backend: Redis (optional — document state lives in PostgreSQL).

Queue topology:
  documents.process  — processing pipeline, one job per document id
  documents.requeue  — beat-driven re-queue of stale uploads
  system.health      — internal health-check tasks

Task payloads carry only the document id; the worker loads everything else
from the database and blob storage.
"""

from __future__ import annotations

import logging

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun, task_retry
from kombu import Exchange, Queue

from learninglab.core.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Queue and exchange definitions
# ---------------------------------------------------------------------------

DOCUMENTS_EXCHANGE = Exchange("documents", type="direct", durable=True)

TASK_QUEUES = (
    Queue(
        "documents.process",
        exchange=DOCUMENTS_EXCHANGE,
        routing_key="documents.process",
        durable=True,
    ),
    Queue(
        "documents.requeue",
        exchange=DOCUMENTS_EXCHANGE,
        routing_key="documents.requeue",
        durable=True,
    ),
    Queue(
        "system.health",
        Exchange("system", type="direct"),
        routing_key="system.health",
        durable=True,
    ),
)

TASK_ROUTES = {
    "learninglab.workers.tasks.process_document":        {"queue": "documents.process"},
    "learninglab.workers.tasks.requeue_stale_documents": {"queue": "documents.requeue"},
    "learninglab.workers.tasks.health_check":            {"queue": "system.health"},
}

# Longest external wait is a transcription poll; leave headroom on top of it
_MAX_POLL_SECONDS = int(
    settings.transcription_poll_interval_seconds * settings.transcription_poll_max_attempts
)
SOFT_TIME_LIMIT = _MAX_POLL_SECONDS + 300
HARD_TIME_LIMIT = SOFT_TIME_LIMIT + 60


# ---------------------------------------------------------------------------
# Celery app factory
# ---------------------------------------------------------------------------

def create_celery_app() -> Celery:
    app = Celery("learninglab")

    app.conf.update(
        # --- Broker / Backend ---
        broker_url=settings.celery_broker_url,
        result_backend=settings.celery_result_backend,

        # --- Serialization ---
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        event_serializer="json",

        # --- Queues ---
        task_queues=TASK_QUEUES,
        task_routes=TASK_ROUTES,
        task_default_queue="documents.process",
        task_default_exchange="documents",
        task_default_routing_key="documents.process",

        # --- Reliability (at-least-once) ---
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,

        # --- Retries ---
        task_max_retries=3,
        task_default_retry_delay=30,

        # --- Timeouts ---
        task_soft_time_limit=SOFT_TIME_LIMIT,
        task_time_limit=HARD_TIME_LIMIT,
        # redelivery must not happen while a long transcription is still running
        broker_transport_options={"visibility_timeout": HARD_TIME_LIMIT + 600},

        result_expires=3600,

        timezone="UTC",
        enable_utc=True,

        # --- Beat schedule (stale upload scanner) ---
        beat_schedule={
            "requeue-stale-documents-every-60s": {
                "task":     "learninglab.workers.tasks.requeue_stale_documents",
                "schedule": 60,
                "options":  {"queue": "documents.requeue"},
            },
        },

        worker_max_tasks_per_child=200,
    )

    app.autodiscover_tasks(["learninglab.workers"])

    return app


celery_app = create_celery_app()


# ---------------------------------------------------------------------------
# Celery signals — task lifecycle logging
# ---------------------------------------------------------------------------

@task_prerun.connect
def on_task_prerun(task_id, task, args, kwargs, **_):
    logger.info(
        "Task start | task_id=%s task=%s doc=%s",
        task_id, task.name, (kwargs or {}).get("document_id", "?"),
    )


@task_postrun.connect
def on_task_postrun(task_id, task, args, kwargs, retval, state, **_):
    logger.info(
        "Task end | task_id=%s task=%s state=%s doc=%s",
        task_id, task.name, state, (kwargs or {}).get("document_id", "?"),
    )


@task_retry.connect
def on_task_retry(request, reason, einfo, **_):
    logger.warning(
        "Task retry | task_id=%s doc=%s retries=%s reason=%s",
        request.id, (request.kwargs or {}).get("document_id", "?"), request.retries, reason,
    )


@task_failure.connect
def on_task_failure(task_id, exception, args, kwargs, traceback, einfo, **_):
    logger.error(
        "Task failed | task_id=%s doc=%s error=%s",
        task_id, (kwargs or {}).get("document_id", "?"), exception,
        exc_info=True,
    )

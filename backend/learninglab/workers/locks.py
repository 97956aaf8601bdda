"""
Per-document processing locks.

At-least-once delivery means two workers can receive the same document id.
Both would race on the record and on the derived-text key, so a run holds
`lock:document:<id>` for its whole duration. A second run that cannot take
the lock immediately raises DocumentBusy; the task drops that delivery.

  RedisDocumentLockManager   shared across worker processes (redis.asyncio)
  LocalDocumentLockManager   one process only; eager mode and tests
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator

from learninglab.core.config import settings
from learninglab.core.exceptions import DocumentBusy

logger = logging.getLogger(__name__)


def lock_name(document_id: str) -> str:
    return f"lock:document:{document_id}"


class DocumentLockManager(ABC):

    @abstractmethod
    def hold(self, document_id: str) -> "AsyncIterator[None]":
        """Async context manager; raises DocumentBusy if already held."""


class RedisDocumentLockManager(DocumentLockManager):

    def __init__(self, redis_url: str | None = None, ttl_seconds: int | None = None) -> None:
        self._redis_url = redis_url or settings.redis_url
        self._ttl       = ttl_seconds or settings.document_lock_ttl_seconds

    @asynccontextmanager
    async def hold(self, document_id: str):
        import redis.asyncio as aioredis

        # Client per run: each Celery task may run on a fresh event loop
        client = aioredis.from_url(self._redis_url, socket_connect_timeout=5)
        lock = client.lock(lock_name(document_id), timeout=self._ttl, blocking=False)
        try:
            if not await lock.acquire():
                raise DocumentBusy(f"Document {document_id} is already being processed")
            logger.debug("Lock acquired | doc=%s", document_id)
            try:
                yield
            finally:
                try:
                    await lock.release()
                except Exception as exc:
                    # expired under us (run outlived the TTL)
                    logger.warning("Lock release failed | doc=%s error=%s", document_id, exc)
        finally:
            await client.aclose()


class LocalDocumentLockManager(DocumentLockManager):

    def __init__(self) -> None:
        self._held: set[str] = set()

    @asynccontextmanager
    async def hold(self, document_id: str):
        if document_id in self._held:
            raise DocumentBusy(f"Document {document_id} is already being processed")
        self._held.add(document_id)
        try:
            yield
        finally:
            self._held.discard(document_id)

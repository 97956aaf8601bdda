"""
Composition root.

Every capability (blob store, OCR, transcription, moderation, generator,
vector index, document repository, locks) is built here once per process
and injected into the pipeline, the answer service and the API. Tests swap
any of them through FastAPI dependency_overrides or by constructing
DocumentProcessor / AnswerService directly with fakes.
"""

from __future__ import annotations

from functools import lru_cache

from learninglab.db.repository import DocumentRepository, SQLDocumentRepository
from learninglab.db.session import session_scope
from learninglab.llm.gateway import TextGenerator, get_text_generator
from learninglab.processing.dispatcher import ExtractionDispatcher
from learninglab.processing.embeddings import Embedder, IndexStage, MeanCharCodeEmbedder
from learninglab.processing.moderation import ModerationGate, RekognitionModeration
from learninglab.processing.ocr import TextractOCR
from learninglab.processing.publisher import DerivedTextPublisher
from learninglab.processing.summarizer import Summarizer
from learninglab.processing.transcription import TranscribeEngine
from learninglab.rag.answer import AnswerService
from learninglab.services.ingestion import IngestionService, TaskPublisher
from learninglab.storage.s3 import ArtifactStore, S3ArtifactStore
from learninglab.vectorstore.base import VectorStoreBase
from learninglab.vectorstore.factory import get_vector_store
from learninglab.workers.locks import DocumentLockManager, RedisDocumentLockManager
from learninglab.workers.pipeline import DocumentProcessor


# ---------------------------------------------------------------------------
# Leaf capabilities
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_artifact_store() -> ArtifactStore:
    return S3ArtifactStore()


@lru_cache(maxsize=1)
def get_repository() -> DocumentRepository:
    return SQLDocumentRepository(session_scope)


@lru_cache(maxsize=1)
def get_generator() -> TextGenerator:
    return get_text_generator()


@lru_cache(maxsize=1)
def get_embedder() -> Embedder:
    return MeanCharCodeEmbedder()


def get_vectors() -> VectorStoreBase:
    return get_vector_store()


def get_lock_manager() -> DocumentLockManager:
    return RedisDocumentLockManager()


# ---------------------------------------------------------------------------
# Composed services
# ---------------------------------------------------------------------------

def build_processor(
    store:      ArtifactStore | None = None,
    repository: DocumentRepository | None = None,
    locks:      DocumentLockManager | None = None,
) -> DocumentProcessor:
    store = store or get_artifact_store()
    return DocumentProcessor(
        repository=repository or get_repository(),
        store=store,
        dispatcher=ExtractionDispatcher(
            store=store,
            ocr=TextractOCR(),
            transcription=TranscribeEngine(store),
        ),
        moderation=ModerationGate(RekognitionModeration()),
        publisher=DerivedTextPublisher(store),
        summarizer=Summarizer(get_generator()),
        embedder=get_embedder(),
        index=IndexStage(get_vectors()),
        locks=locks or get_lock_manager(),
    )


@lru_cache(maxsize=1)
def get_answer_service() -> AnswerService:
    return AnswerService(
        repository=get_repository(),
        store=get_artifact_store(),
        vector_store=get_vectors(),
        embedder=get_embedder(),
        generator=get_generator(),
    )


def get_task_publisher() -> TaskPublisher:
    return TaskPublisher()


def get_ingestion_service() -> IngestionService:
    return IngestionService(
        repository=get_repository(),
        store=get_artifact_store(),
        vector_store=get_vectors(),
        task_publisher=get_task_publisher(),
    )

"""
Document Processing Package
════════════════════════════

Stages the worker runs for each uploaded document:

  Download → Moderation → Extraction → Derived text → Summary → Embedding → Index

Modules
───────
  dispatcher.py     Content-type / extension → extraction strategy
  parsers.py        Local parsers (PDF, CSV, XLSX, XLS, DOCX, DOC, plain text)
  ocr.py            Textract line detection for images
  transcription.py  Transcribe jobs for audio and video
  poller.py         Bounded polling of long-running external jobs
  moderation.py     Rekognition unsafe-content gate for images and video
  publisher.py      Derived text artifact keys and writes
  summarizer.py     Summary with placeholder fallback
  embeddings.py     Text cleaning, 3-dim embedding, index stage
  stages.py         Per-stage results and the processing report

Design principles
─────────────────
  • Every external capability is injected behind an ABC.
  • All heavy computation runs in the Celery worker, never in the API process.
  • Every step emits "Stage | key=value" log lines.
"""

from learninglab.processing.dispatcher import ExtractionDispatcher, ExtractionStrategy, resolve_strategy
from learninglab.processing.embeddings import clean_text, embed
from learninglab.processing.moderation import ModerationGate
from learninglab.processing.poller import JobState, JobStatus, PollPolicy, await_job
from learninglab.processing.publisher import DerivedTextPublisher, derived_text_key
from learninglab.processing.stages import ProcessingOutcome, ProcessingReport, StageResult
from learninglab.processing.summarizer import Summarizer

__all__ = [
    "ExtractionDispatcher",
    "ExtractionStrategy",
    "resolve_strategy",
    "clean_text",
    "embed",
    "ModerationGate",
    "JobState",
    "JobStatus",
    "PollPolicy",
    "await_job",
    "DerivedTextPublisher",
    "derived_text_key",
    "ProcessingOutcome",
    "ProcessingReport",
    "StageResult",
    "Summarizer",
]

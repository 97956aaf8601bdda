"""
Extraction Dispatcher
═════════════════════

    resolve_strategy(content_type, storage_key) -> ExtractionStrategy   (pure)
    ExtractionDispatcher.extract(data, content_type, storage_key) -> str

Resolution order (first match wins):

  1. image/*                               → OCR
  2. application/octet-stream + audio/video extension
                                           → TRANSCRIPTION
     (other octet-stream keys fall through)
  3. audio/* or video/*                    → TRANSCRIPTION
  4. exact MIME table                      → local parser
  5. anything else                         → PLAIN_TEXT (UTF-8 decode)

Strategies return "" when a file holds no text; that is a valid result,
not an error. Any parser or engine exception comes out as ExtractionError.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable

from learninglab.core.exceptions import ExtractionError
from learninglab.processing import parsers
from learninglab.processing.ocr import OCREngine
from learninglab.processing.transcription import TranscriptionEngine
from learninglab.storage.s3 import ArtifactStore

logger = logging.getLogger(__name__)

OCTET_STREAM = "application/octet-stream"

AUDIO_EXTENSIONS: frozenset[str] = frozenset(
    {".mp3", ".wav", ".flac", ".ogg", ".m4a", ".aac", ".amr", ".opus"}
)
VIDEO_EXTENSIONS: frozenset[str] = frozenset(
    {".mp4", ".mov", ".m4v", ".webm", ".mkv", ".avi"}
)


class ExtractionStrategy(str, Enum):
    OCR                = "ocr"
    TRANSCRIPTION      = "transcription"
    PDF                = "pdf"
    CSV                = "csv"
    SPREADSHEET        = "spreadsheet"
    LEGACY_SPREADSHEET = "legacy_spreadsheet"
    WORD               = "word"
    LEGACY_WORD        = "legacy_word"
    PLAIN_TEXT         = "plain_text"

    @property
    def is_transcript(self) -> bool:
        return self is ExtractionStrategy.TRANSCRIPTION


DOCUMENT_TYPES: dict[str, ExtractionStrategy] = {
    "application/pdf":  ExtractionStrategy.PDF,
    "text/csv":         ExtractionStrategy.CSV,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet":
                        ExtractionStrategy.SPREADSHEET,
    "application/vnd.ms-excel":
                        ExtractionStrategy.LEGACY_SPREADSHEET,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document":
                        ExtractionStrategy.WORD,
    "application/msword":
                        ExtractionStrategy.LEGACY_WORD,
}

_LOCAL_PARSERS: dict[ExtractionStrategy, Callable[[bytes], str]] = {
    ExtractionStrategy.PDF:                parsers.parse_pdf,
    ExtractionStrategy.CSV:                parsers.parse_csv,
    ExtractionStrategy.SPREADSHEET:        parsers.parse_xlsx,
    ExtractionStrategy.LEGACY_SPREADSHEET: parsers.parse_xls,
    ExtractionStrategy.WORD:               parsers.parse_docx,
    ExtractionStrategy.LEGACY_WORD:        parsers.parse_doc_legacy,
    ExtractionStrategy.PLAIN_TEXT:         parsers.decode_text,
}


def key_extension(storage_key: str) -> str:
    """Lowercased extension of the key's basename, including the dot ("" if none)."""
    basename = storage_key.rsplit("/", 1)[-1]
    stem, dot, ext = basename.rpartition(".")
    return f".{ext.lower()}" if dot and stem else ""


def normalize_content_type(content_type: str) -> str:
    """Lowercased MIME type without parameters ("Text/Plain; charset=x" → "text/plain")."""
    return (content_type or "").split(";", 1)[0].strip().lower()


def resolve_strategy(content_type: str, storage_key: str) -> ExtractionStrategy:
    ct = normalize_content_type(content_type)

    if ct.startswith("image/"):
        return ExtractionStrategy.OCR

    if ct == OCTET_STREAM:
        ext = key_extension(storage_key)
        if ext in AUDIO_EXTENSIONS or ext in VIDEO_EXTENSIONS:
            return ExtractionStrategy.TRANSCRIPTION

    if ct.startswith("audio/") or ct.startswith("video/"):
        return ExtractionStrategy.TRANSCRIPTION

    return DOCUMENT_TYPES.get(ct, ExtractionStrategy.PLAIN_TEXT)


class ExtractionDispatcher:
    """Runs the resolved strategy; OCR and transcription go through injected engines."""

    def __init__(
        self,
        store:         ArtifactStore,
        ocr:           OCREngine,
        transcription: TranscriptionEngine,
    ) -> None:
        self._store         = store
        self._ocr           = ocr
        self._transcription = transcription

    async def extract(self, data: bytes, content_type: str, storage_key: str) -> str:
        strategy = resolve_strategy(content_type, storage_key)
        logger.info(
            "Extract | key=%s type=%s strategy=%s size=%d",
            storage_key, content_type, strategy.value, len(data),
        )

        try:
            if strategy is ExtractionStrategy.OCR:
                text = await self._ocr.detect_text(self._store.ref(storage_key))
            elif strategy is ExtractionStrategy.TRANSCRIPTION:
                text = await self._transcription.transcribe(self._store.ref(storage_key))
            else:
                # CPU-bound parsers run off the event loop
                loop = asyncio.get_running_loop()
                text = await loop.run_in_executor(None, _LOCAL_PARSERS[strategy], data)
        except ExtractionError:
            raise
        except Exception as exc:
            logger.warning(
                "Extraction failed | key=%s strategy=%s error=%s",
                storage_key, strategy.value, exc,
            )
            raise ExtractionError(
                f"{strategy.value} extraction failed for {storage_key}: {exc}",
                strategy=strategy.value,
            ) from exc

        return text or ""

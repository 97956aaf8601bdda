"""
Derived-Text Publisher

    docs/<uuid>_report.pdf   →  text/<uuid>_report.txt
    docs/<uuid>_talk.mp3     →  text/<uuid>_talk_transcript.txt

The key is a pure function of the original key: basename, last extension
stripped, derived prefix in front, suffix by extraction kind. Original
basenames already carry a uuid, so derived keys never collide.
"""

from __future__ import annotations

import logging

from learninglab.core.config import settings
from learninglab.core.exceptions import PersistError
from learninglab.storage.s3 import ArtifactStore

logger = logging.getLogger(__name__)

TEXT_SUFFIX       = ".txt"
TRANSCRIPT_SUFFIX = "_transcript.txt"


def derived_text_key(original_key: str, transcript: bool = False, prefix: str | None = None) -> str:
    basename = original_key.rsplit("/", 1)[-1]
    stem, dot, _ = basename.rpartition(".")
    if not dot or not stem:
        stem = basename
    suffix = TRANSCRIPT_SUFFIX if transcript else TEXT_SUFFIX
    return f"{settings.derived_text_prefix if prefix is None else prefix}{stem}{suffix}"


class DerivedTextPublisher:

    def __init__(self, store: ArtifactStore) -> None:
        self._store = store

    async def publish(self, original_key: str, text: str, transcript: bool = False) -> str:
        key = derived_text_key(original_key, transcript=transcript)
        try:
            await self._store.put(key, text.encode("utf-8"), "text/plain; charset=utf-8")
        except Exception as exc:
            raise PersistError(f"Could not write derived text {key}: {exc}") from exc

        logger.info("Derived text published | original=%s derived=%s chars=%d", original_key, key, len(text))
        return key

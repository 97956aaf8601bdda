"""
OCR — Text Extraction from Images
═════════════════════════════════

Design: Strategy
────────────────
The dispatcher depends only on OCREngine.detect_text(ref). The production
engine is AWS Textract's synchronous DetectDocumentText API, which reads
the image straight from S3 (no bytes re-uploaded by the worker):

    detect_document_text(Document={"S3Object": {"Bucket": b, "Name": k}})

Only LINE blocks are kept; lines are joined with newlines in the order
Textract returns them (reading order). An image with no text yields "".

IAM permissions required on the worker role:
  textract:DetectDocumentText
  s3:GetObject
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

from learninglab.core.aws import client_config, new_session
from learninglab.storage.s3 import StorageRef

logger = logging.getLogger(__name__)


class OCREngine(ABC):
    """Image → text capability."""

    @property
    @abstractmethod
    def engine_name(self) -> str:
        """Unique name for logging."""

    @abstractmethod
    async def detect_text(self, ref: StorageRef) -> str:
        """Return the text found in the stored image ("" if none)."""


def lines_from_blocks(blocks: list[dict]) -> str:
    return "\n".join(
        block.get("Text", "")
        for block in blocks
        if block.get("BlockType") == "LINE" and block.get("Text")
    )


class TextractOCR(OCREngine):
    """AWS Textract DetectDocumentText on an S3 object."""

    def __init__(self) -> None:
        self._session = new_session()

    @property
    def engine_name(self) -> str:
        return "textract"

    async def detect_text(self, ref: StorageRef) -> str:
        t0 = time.monotonic()
        async with self._session.client("textract", config=client_config()) as client:
            response = await client.detect_document_text(
                Document={"S3Object": {"Bucket": ref.bucket, "Name": ref.key}}
            )

        text = lines_from_blocks(response.get("Blocks", []))
        logger.info(
            "Textract | key=%s chars=%d elapsed_ms=%.0f",
            ref.key, len(text), (time.monotonic() - t0) * 1000,
        )
        return text

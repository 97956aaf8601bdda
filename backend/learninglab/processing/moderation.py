"""
Moderation Gate
═══════════════

    check_unsafe(content_type, data, ref) -> bool

  image/*   Rekognition DetectModerationLabels on the bytes, one call.
  video/*   Rekognition StartContentModeration on the stored object, then
            GetContentModeration driven through await_job(). An
            application/octet-stream upload whose key has a video extension
            counts as video, matching the extraction dispatcher.
  other     never flagged (documents, audio, other octet-stream).

Unsafe iff at least one label at or above `min_confidence` is returned.
A verdict is a result, not an error: the worker handles the side effects
(delete original, commit rejected_moderation). Engine failures raise
ModerationError; video poll failures raise JobFailed / JobTimeout.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum

from learninglab.core.aws import client_config, new_session
from learninglab.core.config import settings
from learninglab.core.exceptions import JobFailed, JobTimeout, ModerationError
from learninglab.processing.dispatcher import (
    OCTET_STREAM,
    VIDEO_EXTENSIONS,
    key_extension,
    normalize_content_type,
)
from learninglab.processing.poller import JobState, JobStatus, PollPolicy, await_job
from learninglab.storage.s3 import StorageRef

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Capability
# ---------------------------------------------------------------------------

class ModerationEngine(ABC):

    @abstractmethod
    async def detect_unsafe_labels(self, data: bytes, min_confidence: float) -> list[dict]:
        """Image labels at or above min_confidence."""

    @abstractmethod
    async def start_video_job(self, ref: StorageRef, min_confidence: float) -> str:
        """Start asynchronous video moderation; return the job handle."""

    @abstractmethod
    async def poll_video_job(self, handle: str) -> JobStatus:
        """JobStatus whose result is the list of labels once terminal."""


class RekognitionModeration(ModerationEngine):

    def __init__(self) -> None:
        self._session = new_session()

    def _client(self):
        return self._session.client("rekognition", config=client_config())

    async def detect_unsafe_labels(self, data: bytes, min_confidence: float) -> list[dict]:
        async with self._client() as client:
            resp = await client.detect_moderation_labels(
                Image={"Bytes": data},
                MinConfidence=min_confidence,
            )
        return resp.get("ModerationLabels", [])

    async def start_video_job(self, ref: StorageRef, min_confidence: float) -> str:
        async with self._client() as client:
            resp = await client.start_content_moderation(
                Video={"S3Object": {"Bucket": ref.bucket, "Name": ref.key}},
                MinConfidence=min_confidence,
            )
        return resp["JobId"]

    async def poll_video_job(self, handle: str) -> JobStatus:
        labels: list[dict] = []
        next_token: str | None = None

        async with self._client() as client:
            while True:
                kwargs: dict = {"JobId": handle}
                if next_token:
                    kwargs["NextToken"] = next_token
                resp = await client.get_content_moderation(**kwargs)

                state = JobState.parse(resp.get("JobStatus"))
                if not state.is_success:
                    return JobStatus(state=state, message=resp.get("StatusMessage"))

                labels.extend(resp.get("ModerationLabels", []))
                next_token = resp.get("NextToken")
                if not next_token:
                    break

        return JobStatus(state=JobState.SUCCEEDED, result=labels)


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------

class ModerationKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    NONE  = "none"


def moderation_kind(content_type: str, storage_key: str) -> ModerationKind:
    """Same MIME + extension rules the extraction dispatcher uses."""
    ct = normalize_content_type(content_type)
    if ct.startswith("image/"):
        return ModerationKind.IMAGE
    if ct.startswith("video/"):
        return ModerationKind.VIDEO
    if ct == OCTET_STREAM and key_extension(storage_key) in VIDEO_EXTENSIONS:
        return ModerationKind.VIDEO
    return ModerationKind.NONE


def _label_name(label: dict) -> str | None:
    # video results nest the label under "ModerationLabel"
    return label.get("Name") or label.get("ModerationLabel", {}).get("Name")


class ModerationGate:

    def __init__(
        self,
        engine:         ModerationEngine,
        policy:         PollPolicy | None = None,
        min_confidence: float | None = None,
    ) -> None:
        self._engine = engine
        self._policy = policy or PollPolicy(
            interval_seconds=settings.moderation_poll_interval_seconds,
            max_attempts=settings.moderation_poll_max_attempts,
        )
        self._min_confidence = (
            settings.moderation_min_confidence if min_confidence is None else min_confidence
        )

    @staticmethod
    def applies_to(content_type: str, storage_key: str) -> bool:
        return moderation_kind(content_type, storage_key) is not ModerationKind.NONE

    async def check_unsafe(self, content_type: str, data: bytes, ref: StorageRef) -> bool:
        kind = moderation_kind(content_type, ref.key)

        try:
            if kind is ModerationKind.IMAGE:
                labels = await self._engine.detect_unsafe_labels(data, self._min_confidence)
            elif kind is ModerationKind.VIDEO:
                handle = await self._engine.start_video_job(ref, self._min_confidence)
                logger.info("Video moderation started | job=%s key=%s", handle, ref.key)
                labels = await await_job(handle, self._engine.poll_video_job, self._policy) or []
            else:
                return False
        except (JobFailed, JobTimeout):
            raise
        except Exception as exc:
            raise ModerationError(f"Moderation check failed for {ref.key}: {exc}") from exc

        if labels:
            logger.warning(
                "Moderation flagged | key=%s labels=%s",
                ref.key, [_label_name(label) for label in labels],
            )
        return bool(labels)

"""
Speech-to-text for audio and video uploads (AWS Transcribe).

Flow:
  1. start_transcription_job on the stored media (s3:// URI); the engine
     writes its JSON result to our bucket under settings.transcript_prefix.
  2. await_job() polls get_transcription_job until COMPLETED / FAILED.
  3. The result JSON is read back through the ArtifactStore and the text
     of results.transcripts[*].transcript is returned.

Job names must be unique per account, so each start uses a fresh uuid.
"""

from __future__ import annotations

import json
import logging
import uuid
from abc import ABC, abstractmethod

from learninglab.core.aws import client_config, new_session
from learninglab.core.config import settings
from learninglab.processing.poller import JobState, JobStatus, PollPolicy, await_job
from learninglab.storage.s3 import ArtifactStore, StorageRef

logger = logging.getLogger(__name__)

# Extension → Transcribe MediaFormat
_MEDIA_FORMATS: dict[str, str] = {
    "mp3":  "mp3",
    "mp4":  "mp4",
    "m4a":  "mp4",
    "m4v":  "mp4",
    "mov":  "mp4",
    "wav":  "wav",
    "flac": "flac",
    "ogg":  "ogg",
    "opus": "ogg",
    "amr":  "amr",
    "webm": "webm",
}


def media_format_for(key: str) -> str | None:
    """MediaFormat hint from the key's extension; None lets the engine detect it."""
    _, dot, ext = key.rpartition(".")
    return _MEDIA_FORMATS.get(ext.lower()) if dot else None


def transcript_text(payload: dict) -> str:
    transcripts = payload.get("results", {}).get("transcripts", [])
    return " ".join(t.get("transcript", "") for t in transcripts).strip()


class TranscriptionEngine(ABC):
    """Audio/video → text capability (start + poll + fetch)."""

    @abstractmethod
    async def transcribe(self, ref: StorageRef) -> str:
        ...


class TranscribeEngine(TranscriptionEngine):
    """AWS Transcribe batch jobs, polled through await_job()."""

    def __init__(self, store: ArtifactStore, policy: PollPolicy | None = None) -> None:
        self._store   = store
        self._session = new_session()
        self._policy  = policy or PollPolicy(
            interval_seconds=settings.transcription_poll_interval_seconds,
            max_attempts=settings.transcription_poll_max_attempts,
        )

    def _client(self):
        return self._session.client("transcribe", config=client_config())

    async def start(self, ref: StorageRef) -> tuple[str, str]:
        """Start a job; return (job_name, output_key)."""
        job_name   = f"learninglab-{uuid.uuid4()}"
        output_key = f"{settings.transcript_prefix}{job_name}.json"

        params: dict = {
            "TranscriptionJobName": job_name,
            "Media":                {"MediaFileUri": ref.uri},
            "LanguageCode":         settings.transcription_language_code,
            "OutputBucketName":     ref.bucket,
            "OutputKey":            output_key,
        }
        media_format = media_format_for(ref.key)
        if media_format:
            params["MediaFormat"] = media_format

        async with self._client() as client:
            await client.start_transcription_job(**params)

        logger.info("Transcription started | job=%s key=%s", job_name, ref.key)
        return job_name, output_key

    async def poll(self, job_name: str) -> JobStatus:
        async with self._client() as client:
            resp = await client.get_transcription_job(TranscriptionJobName=job_name)

        job = resp["TranscriptionJob"]
        return JobStatus(
            state=JobState.parse(job.get("TranscriptionJobStatus")),
            result=job.get("Transcript", {}).get("TranscriptFileUri"),
            message=job.get("FailureReason"),
        )

    async def transcribe(self, ref: StorageRef) -> str:
        job_name, output_key = await self.start(ref)
        await await_job(job_name, self.poll, self._policy)

        payload = json.loads(await self._store.get(output_key))
        text = transcript_text(payload)
        logger.info("Transcription fetched | job=%s chars=%d", job_name, len(text))
        return text

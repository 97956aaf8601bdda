"""
Artifact Store — S3 adapter

Key layout (single bucket):

    docs/<uuid>_<filename>          original uploads (immutable)
    text/<stem>.txt                 derived plain text
    text/<stem>_transcript.txt      derived text from audio/video
    transcripts/<job>.json          raw transcription engine output

Errors:
  - A missing object surfaces as ArtifactNotFound (NoSuchKey / 404).
  - Every other ClientError propagates unchanged; callers decide whether
    it is fatal for the stage they are running.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from botocore.exceptions import ClientError

from learninglab.core.aws import client_config, new_session
from learninglab.core.config import settings
from learninglab.core.exceptions import ArtifactNotFound

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StorageRef:
    """Location of a stored object; handed to engines that read S3 directly."""
    bucket: str
    key:    str

    @property
    def uri(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class ArtifactStore(ABC):
    """get / put / delete by key; the pipeline never sees the backend."""

    @abstractmethod
    def ref(self, key: str) -> StorageRef:
        ...

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Raise ArtifactNotFound if the key does not exist."""

    @abstractmethod
    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> StorageRef:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Idempotent: deleting a missing key is not an error."""


# ---------------------------------------------------------------------------
# S3 implementation
# ---------------------------------------------------------------------------

class S3ArtifactStore(ArtifactStore):
    """
    Async S3 operations against a single bucket.

    One instance per process is enough; each call opens its own client
    context so the object is safe to share between coroutines.
    """

    def __init__(self, bucket: str | None = None) -> None:
        self._bucket  = bucket or settings.s3_bucket
        self._session = new_session()

    def _client(self):
        return self._session.client("s3", config=client_config())

    def ref(self, key: str) -> StorageRef:
        return StorageRef(bucket=self._bucket, key=key)

    async def get(self, key: str) -> bytes:
        async with self._client() as s3:
            try:
                resp = await s3.get_object(Bucket=self._bucket, Key=key)
                return await resp["Body"].read()
            except ClientError as exc:
                code = exc.response["Error"]["Code"]
                if code in ("NoSuchKey", "404"):
                    raise ArtifactNotFound(key) from exc
                raise

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> StorageRef:
        async with self._client() as s3:
            await s3.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )

        logger.info("S3 upload ok | key=%s size=%d", key, len(data))
        return self.ref(key)

    async def delete(self, key: str) -> None:
        async with self._client() as s3:
            await s3.delete_object(Bucket=self._bucket, Key=key)
        logger.info("S3 delete | key=%s", key)

"""
Exception hierarchy for the document pipeline and the answer stage.

  LearningLabError
    ├── PipelineError            retryable by the Celery task
    │     ├── DownloadError
    │     ├── ExtractionError
    │     ├── PersistError
    │     ├── JobFailed
    │     ├── JobTimeout
    │     ├── DocumentBusy
    │     └── ModerationError    moderation engine failure, not a verdict
    ├── ArtifactNotFound
    ├── InvalidStatusTransition
    ├── GenerationUnavailable
    ├── Unauthorized
    └── RetrievalError
"""

from __future__ import annotations


class LearningLabError(Exception):
    """Base class for every error raised by this package."""


# ---------------------------------------------------------------------------
# Processing pipeline
# ---------------------------------------------------------------------------

class PipelineError(LearningLabError):
    """A processing attempt failed; the job may be redelivered."""


class DownloadError(PipelineError):
    pass


class ExtractionError(PipelineError):
    """Raised when a parser or extraction engine fails on a document."""

    def __init__(self, message: str, strategy: str | None = None) -> None:
        super().__init__(message)
        self.strategy = strategy


class PersistError(PipelineError):
    pass


class JobFailed(PipelineError):
    """An external asynchronous job reported FAILED."""

    def __init__(self, handle: str, message: str | None = None) -> None:
        super().__init__(f"Job {handle} failed: {message or 'no reason given'}")
        self.handle = handle
        self.reason = message


class JobTimeout(PipelineError):
    """An external asynchronous job did not finish within its poll bound."""

    def __init__(self, handle: str, attempts: int) -> None:
        super().__init__(f"Job {handle} still running after {attempts} polls")
        self.handle = handle
        self.attempts = attempts


class DocumentBusy(PipelineError):
    """Another worker holds the processing lock for this document."""


class ModerationError(PipelineError):
    """The moderation engine itself failed (not a content verdict)."""


# ---------------------------------------------------------------------------
# Storage / records
# ---------------------------------------------------------------------------

class ArtifactNotFound(LearningLabError):
    def __init__(self, key: str) -> None:
        super().__init__(f"Object not found: {key}")
        self.key = key


class InvalidStatusTransition(LearningLabError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move document from '{current}' to '{target}'")
        self.current = current
        self.target = target


# ---------------------------------------------------------------------------
# Generation / retrieval
# ---------------------------------------------------------------------------

class GenerationUnavailable(LearningLabError):
    """No generative-text backend is configured or it did not answer in time."""


class Unauthorized(LearningLabError):
    pass


class RetrievalError(LearningLabError):
    pass

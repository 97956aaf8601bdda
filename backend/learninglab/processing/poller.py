"""
External Job Poller
═══════════════════

Turns a start/poll style cloud job (Transcribe, Rekognition video
moderation) into one awaitable call:

    result = await await_job(job_name, poll_fn, PollPolicy(10, 90))

Loop contract:
  1. sleep `interval`            (cooperative; the event loop stays free)
  2. status = await poll_fn(handle)
  3. COMPLETED / SUCCEEDED  → return status.result
     FAILED                 → raise JobFailed
     anything else          → next attempt
  4. after `max_attempts` polls → raise JobTimeout

With backoff > 1.0 the interval grows geometrically up to
`max_interval_seconds`; the default (1.0) keeps it fixed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from learninglab.core.exceptions import JobFailed, JobTimeout

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    QUEUED      = "QUEUED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED   = "COMPLETED"
    SUCCEEDED   = "SUCCEEDED"
    FAILED      = "FAILED"

    @property
    def is_success(self) -> bool:
        return self in (JobState.COMPLETED, JobState.SUCCEEDED)

    @classmethod
    def parse(cls, raw: str | None) -> "JobState":
        """Map an engine status string; unknown values count as still running."""
        try:
            return cls((raw or "").upper())
        except ValueError:
            return cls.IN_PROGRESS


@dataclass
class JobStatus:
    state:   JobState
    result:  Any = None
    message: str | None = None


@dataclass(frozen=True)
class PollPolicy:
    interval_seconds:     float
    max_attempts:         int
    backoff:              float = 1.0
    max_interval_seconds: float | None = None

    def delays(self):
        delay = self.interval_seconds
        for _ in range(self.max_attempts):
            yield delay
            delay = delay * self.backoff
            if self.max_interval_seconds is not None:
                delay = min(delay, self.max_interval_seconds)


PollFn = Callable[[str], Awaitable[JobStatus]]
SleepFn = Callable[[float], Awaitable[Any]]


async def await_job(
    handle:  str,
    poll_fn: PollFn,
    policy:  PollPolicy,
    sleep:   SleepFn = asyncio.sleep,
) -> Any:
    attempt = 0
    for delay in policy.delays():
        await sleep(delay)
        attempt += 1

        status = await poll_fn(handle)
        if status.state.is_success:
            logger.info("Job complete | handle=%s attempts=%d", handle, attempt)
            return status.result
        if status.state is JobState.FAILED:
            logger.warning("Job failed | handle=%s reason=%s", handle, status.message)
            raise JobFailed(handle, status.message)

        logger.debug(
            "Job pending | handle=%s state=%s attempt=%d/%d",
            handle, status.state.value, attempt, policy.max_attempts,
        )

    raise JobTimeout(handle, attempt)

"""
Per-stage results for the document worker.

Each stage reports one of four outcomes so the run log can tell
"not applicable" apart from "ran and produced nothing":

    SUCCEEDED   ran, produced a value
    EMPTY       ran, produced nothing usable (e.g. no text in the file)
    SKIPPED     not applicable to this document
    FAILED      raised; `error` holds the exception
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class StageStatus(str, Enum):
    SUCCEEDED = "succeeded"
    EMPTY     = "empty"
    SKIPPED   = "skipped"
    FAILED    = "failed"


@dataclass
class StageResult:
    stage:  str
    status: StageStatus
    value:  Any = None
    error:  BaseException | None = None

    @classmethod
    def ok(cls, stage: str, value: Any = None) -> "StageResult":
        return cls(stage=stage, status=StageStatus.SUCCEEDED, value=value)

    @classmethod
    def empty(cls, stage: str, value: Any = None) -> "StageResult":
        return cls(stage=stage, status=StageStatus.EMPTY, value=value)

    @classmethod
    def skipped(cls, stage: str) -> "StageResult":
        return cls(stage=stage, status=StageStatus.SKIPPED)

    @classmethod
    def failed(cls, stage: str, error: BaseException) -> "StageResult":
        return cls(stage=stage, status=StageStatus.FAILED, error=error)


class ProcessingOutcome(str, Enum):
    PROCESSED           = "processed"
    REJECTED_MODERATION = "rejected_moderation"
    SKIPPED             = "skipped"       # already terminal (duplicate delivery)
    NOT_FOUND           = "not_found"
    FAILED              = "failed"
    SUPERSEDED          = "superseded"    # record went terminal or was deleted mid-run


@dataclass
class ProcessingReport:
    document_id: str
    outcome:     ProcessingOutcome | None = None
    stages:      list[StageResult] = field(default_factory=list)

    def record(self, result: StageResult) -> StageResult:
        self.stages.append(result)
        return result

    def stage(self, name: str) -> StageResult | None:
        for result in self.stages:
            if result.stage == name:
                return result
        return None

    def as_dict(self) -> dict[str, Any]:
        return {
            "status":      self.outcome.value if self.outcome else None,
            "document_id": self.document_id,
            "stages":      {r.stage: r.status.value for r in self.stages},
        }

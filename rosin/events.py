"""Pipeline events consumed by the UI, plus their SSE frame encoding."""

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar

from rosin.models import ModelRef, VerificationSummary


@dataclass(frozen=True)
class PipelineEvent:
    type: ClassVar[str] = ""

    def payload(self) -> dict:
        return {}

    def to_dict(self) -> dict:
        return {"type": self.type, **self.payload()}


@dataclass(frozen=True)
class StageStart(PipelineEvent):
    type: ClassVar[str] = "stage_start"
    stage: int
    model: ModelRef

    def payload(self) -> dict:
        return {"stage": self.stage, "model": self.model.to_dict()}


@dataclass(frozen=True)
class StageContent(PipelineEvent):
    type: ClassVar[str] = "stage_content"
    stage: int
    content: str

    def payload(self) -> dict:
        return {"stage": self.stage, "content": self.content}


@dataclass(frozen=True)
class StageComplete(PipelineEvent):
    type: ClassVar[str] = "stage_complete"
    stage: int

    def payload(self) -> dict:
        return {"stage": self.stage}


@dataclass(frozen=True)
class StageRetry(PipelineEvent):
    type: ClassVar[str] = "stage_retry"
    stage: int
    model: ModelRef
    attempt: int  # 2 = same model again, 3 = fallback model

    def payload(self) -> dict:
        return {"stage": self.stage, "model": self.model.to_dict(), "attempt": self.attempt}


@dataclass(frozen=True)
class StageSkipped(PipelineEvent):
    type: ClassVar[str] = "stage_skipped"
    stage: int
    error: str

    def payload(self) -> dict:
        return {"stage": self.stage, "error": self.error}


@dataclass(frozen=True)
class StageError(PipelineEvent):
    type: ClassVar[str] = "stage_error"
    stage: int
    error: str

    def payload(self) -> dict:
        return {"stage": self.stage, "error": self.error}


@dataclass(frozen=True)
class Summary(PipelineEvent):
    type: ClassVar[str] = "summary"
    summary: VerificationSummary

    def payload(self) -> dict:
        return {"summary": self.summary.to_dict()}


@dataclass(frozen=True)
class Done(PipelineEvent):
    type: ClassVar[str] = "done"


EventSink = Callable[[PipelineEvent], None]


def encode_sse(event: PipelineEvent) -> str:
    """Encode one event as a single Server-Sent-Events frame."""
    return f"data: {json.dumps(event.to_dict())}\n\n"

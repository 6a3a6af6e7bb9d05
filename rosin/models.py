"""Dataclasses for the verification pipeline. No I/O, no provider deps."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

MIN_CHAIN_LENGTH = 2
MAX_CHAIN_LENGTH = 4


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"
    XAI = "xai"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    Provider.OPENAI: "OpenAI",
    Provider.ANTHROPIC: "Anthropic",
    Provider.GEMINI: "Gemini",
    Provider.XAI: "xAI",
}


@dataclass(frozen=True)
class ModelRef:
    provider: Provider
    model: str

    @property
    def label(self) -> str:
        return f"{self.provider.display_name}/{self.model}"

    def to_dict(self) -> dict[str, str]:
        return {"provider": self.provider.value, "model": self.model}

    @classmethod
    def from_dict(cls, raw: dict) -> "ModelRef":
        return cls(provider=Provider(raw["provider"]), model=str(raw["model"]))


class ComplexityTier(str, Enum):
    BRIEF = "brief"
    MODERATE = "moderate"
    DETAILED = "detailed"


@dataclass(frozen=True)
class LengthConfig:
    tier: ComplexityTier
    max_tokens: int
    prompt_instruction: str
    verify_instruction: str
    final_instruction: str


class StageStatus(str, Enum):
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERROR = "error"
    SKIPPED = "skipped"
    RETRYING = "retrying"


@dataclass
class StageResult:
    stage: int             # 1-based
    model: ModelRef        # model of the attempt that produced `content`
    content: str = ""
    status: StageStatus = StageStatus.STREAMING
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (StageStatus.COMPLETE, StageStatus.ERROR, StageStatus.SKIPPED)

    def to_dict(self) -> dict:
        data = {
            "stage": self.stage,
            "model": self.model.to_dict(),
            "content": self.content,
            "status": self.status.value,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class RunRequest:
    query: str
    chain: list[ModelRef]
    adversarial_mode: bool = False

    def __post_init__(self) -> None:
        if not self.query or not self.query.strip():
            raise ValueError("Query must not be empty")
        if not MIN_CHAIN_LENGTH <= len(self.chain) <= MAX_CHAIN_LENGTH:
            raise ValueError(
                f"Chain must have {MIN_CHAIN_LENGTH}-{MAX_CHAIN_LENGTH} stages, got {len(self.chain)}"
            )


@dataclass
class PipelineRun:
    query: str
    chain: list[ModelRef]
    length_config: LengthConfig
    adversarial_mode: bool = False
    completed_stages: list[StageResult] = field(default_factory=list)

    @property
    def total_stages(self) -> int:
        return len(self.chain)

    @property
    def skipped_count(self) -> int:
        return self.total_stages - len(self.completed_stages)


@dataclass(frozen=True)
class Contradiction:
    topic: str
    stage_a: int
    stage_b: int
    description: str

    def to_dict(self) -> dict:
        return {
            "topic": self.topic,
            "stageA": self.stage_a,
            "stageB": self.stage_b,
            "description": self.description,
        }


@dataclass
class VerificationSummary:
    consistency: str
    hallucinations: str
    confidence: str
    confidence_score: float | None = None
    contradictions: list[Contradiction] = field(default_factory=list)
    is_analyzed: bool = False

    def to_dict(self) -> dict:
        data = {
            "consistency": self.consistency,
            "hallucinations": self.hallucinations,
            "confidence": self.confidence,
            "contradictions": [c.to_dict() for c in self.contradictions],
            "isAnalyzed": self.is_analyzed,
        }
        if self.confidence_score is not None:
            data["confidenceScore"] = self.confidence_score
        return data


@dataclass
class RunRecord:
    """Finished run handed to the history store. Never read back by the pipeline."""

    query: str
    chain: list[ModelRef]
    stages: list[StageResult]
    summary: VerificationSummary | None
    adversarial_mode: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "query": self.query,
            "chain": [m.to_dict() for m in self.chain],
            "stages": [s.to_dict() for s in self.stages],
            "summary": self.summary.to_dict() if self.summary else None,
            "adversarialMode": self.adversarial_mode,
            "createdAt": self.created_at,
        }

"""Shared pytest fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from rosin.classifier import DEFAULT_RULES
from rosin.config.config_loader import AnalyzerConfig, AppConfig, DefaultsConfig, ProviderConfig, PromptsConfig
from rosin.credentials import Credentials
from rosin.events import PipelineEvent
from rosin.models import ModelRef, Provider
from rosin.providers.base import StreamingAdapter

CLAUDE = ModelRef(Provider.ANTHROPIC, "claude-sonnet-4-5")
GEMINI_PRO = ModelRef(Provider.GEMINI, "gemini-2.5-pro")
GEMINI_FLASH = ModelRef(Provider.GEMINI, "gemini-2.5-flash")
GROK = ModelRef(Provider.XAI, "grok-3")
GROK_FAST = ModelRef(Provider.XAI, "grok-3-fast")
GPT = ModelRef(Provider.OPENAI, "gpt-4o")
GPT_MINI = ModelRef(Provider.OPENAI, "gpt-4o-mini")
HAIKU = ModelRef(Provider.ANTHROPIC, "claude-haiku-4-5")

ANALYSIS_JSON = (
    '{"consistencySummary": "Both stages agree Paris is the capital.", '
    '"hallucinationRisk": "Low", "confidenceLevel": "High", "confidenceScore": 0.92, '
    '"contradictions": []}'
)


def provider_config(provider: Provider) -> ProviderConfig:
    return ProviderConfig(
        provider=provider,
        api_key_env=f"TEST_{provider.value.upper()}_KEY",
        base_url=f"https://{provider.value}.test/v1",
        timeout_sec=5,
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        initial="INITIAL stage {stage}/{total}. {instruction}",
        verify="VERIFY stage {stage}/{total}. {instruction}",
        adversarial="ADVERSARIAL stage {stage}/{total}. {instruction}",
        final="FINAL stage {stage}/{total}. {instruction}",
        analysis="Return JSON only.",
    )


@pytest.fixture
def sample_app_config(tmp_path: Path, sample_prompts_config: PromptsConfig) -> AppConfig:
    return AppConfig(
        defaults=DefaultsConfig(output_dir=tmp_path / "output", chain=[CLAUDE, GEMINI_PRO, GROK, GPT]),
        providers={p: provider_config(p) for p in Provider},
        prompts=sample_prompts_config,
        analyzer=AnalyzerConfig(max_tokens=256, models=[GEMINI_FLASH, GPT_MINI]),
        fallback_models=[GEMINI_FLASH, GROK_FAST, HAIKU, GPT_MINI],
        classifier=DEFAULT_RULES,
        available_providers=set(Provider),
    )


@pytest.fixture
def all_credentials() -> Credentials:
    return Credentials({p: f"sk-{p.value}" for p in Provider})


class ScriptedAdapter(StreamingAdapter):
    """Test double adapter. Each stream() call plays the next scripted outcome.

    An outcome is a list of tokens; an Exception item inside the list is raised
    at that point, and an Exception outcome is raised before any token.
    """

    def __init__(self, provider: Provider, outcomes: list | None = None, completion: str = ANALYSIS_JSON) -> None:
        super().__init__(provider_config(provider))
        self.provider = provider
        self.outcomes = list(outcomes or [])
        self.calls: list[dict] = []
        # Shadow the class method with an AsyncMock at the instance level.
        self.complete = AsyncMock(return_value=completion)  # type: ignore[method-assign]

    def build_request(self, model, system_prompt, user_content, api_key, max_tokens):
        raise NotImplementedError

    def extract_text(self, event):
        return None

    async def complete(self, model, system_prompt, user_content, api_key, max_tokens) -> str:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return ""

    async def stream(self, model, system_prompt, user_content, api_key, max_tokens):  # type: ignore[override]
        self.calls.append(
            {
                "model": model,
                "system_prompt": system_prompt,
                "user_content": user_content,
                "api_key": api_key,
                "max_tokens": max_tokens,
            }
        )
        outcome = self.outcomes.pop(0) if self.outcomes else [f"{self.provider.value} says ", "Paris."]
        if isinstance(outcome, Exception):
            raise outcome
        for item in outcome:
            if isinstance(item, Exception):
                raise item
            yield item


@pytest.fixture
def adapters() -> dict[Provider, ScriptedAdapter]:
    return {p: ScriptedAdapter(p) for p in Provider}


@pytest.fixture
def events() -> list[PipelineEvent]:
    return []

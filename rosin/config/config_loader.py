"""Load settings.yaml into typed dataclasses. Reports which providers have API keys."""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType

import yaml

from rosin.classifier import DEFAULT_RULES, DEFAULT_TIERS, ClassifierRules, TierSpec
from rosin.models import ComplexityTier, ModelRef, Provider

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ProviderConfig:
    provider: Provider
    api_key_env: str
    base_url: str
    timeout_sec: int


@dataclass
class PromptsConfig:
    initial: str
    verify: str
    adversarial: str
    final: str
    analysis: str


@dataclass
class AnalyzerConfig:
    max_tokens: int
    models: list[ModelRef] = field(default_factory=list)


@dataclass
class DefaultsConfig:
    output_dir: Path
    chain: list[ModelRef] = field(default_factory=list)


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    providers: dict[Provider, ProviderConfig]
    prompts: PromptsConfig
    analyzer: AnalyzerConfig
    fallback_models: list[ModelRef] = field(default_factory=list)
    catalog: dict[Provider, list[str]] = field(default_factory=dict)
    classifier: ClassifierRules = DEFAULT_RULES
    available_providers: set[Provider] = field(default_factory=set)


def parse_model_ref(value: str) -> ModelRef:
    """Parse ``provider:model`` (e.g. ``gemini:gemini-2.5-flash``)."""
    provider_name, sep, model = value.partition(":")
    if not sep or not model.strip():
        raise ValueError(f"Expected provider:model, got {value!r}")
    try:
        provider = Provider(provider_name.strip().lower())
    except ValueError as exc:
        raise ValueError(f"Unknown provider {provider_name!r} in {value!r}") from exc
    return ModelRef(provider=provider, model=model.strip())


def _parse_classifier(raw: dict | None) -> ClassifierRules:
    if not raw:
        return DEFAULT_RULES
    overrides: dict = {}
    for key in ("depth_keywords", "simplicity_patterns"):
        if key in raw:
            overrides[key] = tuple(str(k).lower() for k in raw[key])
    for key in ("multipart_pattern", "numbered_list_pattern"):
        if key in raw:
            overrides[key] = str(raw[key])
    for key in ("depth_cap", "simplicity_penalty", "brief_max_score", "moderate_max_score",
                "question_mark_threshold", "question_mark_points", "multipart_points"):
        if key in raw:
            overrides[key] = int(raw[key])
    if "word_bands" in raw:
        overrides["word_bands"] = tuple(
            (int(b["min"]), int(b["max"]) if b.get("max") is not None else None, int(b["points"]))
            for b in raw["word_bands"]
        )
    if "tiers" in raw:
        tiers = dict(DEFAULT_TIERS)
        for tier_name, tier_raw in raw["tiers"].items():
            tier = ComplexityTier(tier_name)
            base = tiers[tier]
            tiers[tier] = TierSpec(
                max_tokens=int(tier_raw.get("max_tokens", base.max_tokens)),
                prompt_instruction=tier_raw.get("prompt_instruction", base.prompt_instruction),
                verify_instruction=tier_raw.get("verify_instruction", base.verify_instruction),
                final_instruction=tier_raw.get("final_instruction", base.final_instruction),
            )
        overrides["tiers"] = MappingProxyType(tiers)
    return replace(DEFAULT_RULES, **overrides)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError on unknown
    providers or malformed model references.
    Logs which providers lack API keys but does not raise; callers decide
    whether a chain is runnable.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        output_dir=Path(defaults_raw["output_dir"]),
        chain=[parse_model_ref(m) for m in defaults_raw.get("chain", [])],
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        initial=prompts_raw["initial"],
        verify=prompts_raw["verify"],
        adversarial=prompts_raw["adversarial"],
        final=prompts_raw["final"],
        analysis=prompts_raw["analysis"],
    )

    analyzer_raw = raw.get("analyzer", {})
    analyzer = AnalyzerConfig(
        max_tokens=int(analyzer_raw.get("max_tokens", 1024)),
        models=[parse_model_ref(m) for m in analyzer_raw.get("models", [])],
    )

    providers: dict[Provider, ProviderConfig] = {}
    available_providers: set[Provider] = set()

    for provider_name, provider_raw in raw["providers"].items():
        provider = Provider(provider_name)
        providers[provider] = ProviderConfig(
            provider=provider,
            api_key_env=provider_raw["api_key_env"],
            base_url=str(provider_raw["base_url"]).rstrip("/"),
            timeout_sec=int(provider_raw["timeout_sec"]),
        )

        api_key = os.environ.get(provider_raw["api_key_env"], "").strip()
        if api_key:
            available_providers.add(provider)
            logger.info("Provider available: %s", provider.value)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider.value,
                provider_raw["api_key_env"],
            )

    catalog = {Provider(name): list(models) for name, models in raw.get("models", {}).items()}

    return AppConfig(
        defaults=defaults,
        providers=providers,
        prompts=prompts,
        analyzer=analyzer,
        fallback_models=[parse_model_ref(m) for m in raw.get("fallback_models", [])],
        catalog=catalog,
        classifier=_parse_classifier(raw.get("classifier")),
        available_providers=available_providers,
    )

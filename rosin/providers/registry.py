"""Closed provider -> adapter dispatch table."""

import httpx

from rosin.config.config_loader import ProviderConfig
from rosin.models import Provider
from rosin.providers.anthropic import AnthropicAdapter
from rosin.providers.base import StreamingAdapter
from rosin.providers.gemini import GeminiAdapter
from rosin.providers.openai_provider import OpenAIAdapter
from rosin.providers.xai import XAIAdapter

ADAPTER_CLASSES: dict[Provider, type[StreamingAdapter]] = {
    Provider.OPENAI: OpenAIAdapter,
    Provider.ANTHROPIC: AnthropicAdapter,
    Provider.GEMINI: GeminiAdapter,
    Provider.XAI: XAIAdapter,
}


def build_adapters(
    providers: dict[Provider, ProviderConfig],
    client: httpx.AsyncClient | None = None,
) -> dict[Provider, StreamingAdapter]:
    """One adapter per configured provider, optionally sharing an HTTP client."""
    missing = set(Provider) - set(providers)
    if missing:
        raise ValueError(f"No provider config for: {', '.join(sorted(p.value for p in missing))}")
    return {p: ADAPTER_CLASSES[p](providers[p], client) for p in Provider}

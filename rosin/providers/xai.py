"""xAI Grok adapter. Same wire format as OpenAI, different endpoint and key."""

from rosin.models import Provider
from rosin.providers.openai_provider import OpenAIAdapter


class XAIAdapter(OpenAIAdapter):
    """xAI Grok via its OpenAI-compatible API."""

    provider = Provider.XAI

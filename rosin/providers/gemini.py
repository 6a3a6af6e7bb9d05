"""Gemini adapter: raw SSE streaming plus google-genai SDK completion."""

import asyncio
import logging
import time

from google import genai
from google.genai import types as genai_types

from rosin.models import Provider
from rosin.providers.base import ProviderError, StreamingAdapter

logger = logging.getLogger(__name__)


def _combined_prompt(system_prompt: str, user_content: str) -> str:
    # No system role in this integration; the system prompt leads the user turn.
    return f"{system_prompt}\n\n{user_content}"


class GeminiAdapter(StreamingAdapter):
    """Google Gemini via streamGenerateContent."""

    provider = Provider.GEMINI

    def build_request(
        self,
        model: str,
        system_prompt: str,
        user_content: str,
        api_key: str,
        max_tokens: int,
    ) -> tuple[str, dict[str, str], dict]:
        url = f"{self._config.base_url}/models/{model}:streamGenerateContent?alt=sse"
        headers = {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }
        body = {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": _combined_prompt(system_prompt, user_content)}],
                }
            ],
            "generationConfig": {"maxOutputTokens": max_tokens},
        }
        return url, headers, body

    def extract_text(self, event: dict) -> str | None:
        candidates = event.get("candidates") or []
        if not candidates:
            return None
        parts = (candidates[0].get("content") or {}).get("parts") or []
        if not parts:
            return None
        text = parts[0].get("text")
        return text if isinstance(text, str) else None

    def _build_sdk_client(self, api_key: str) -> genai.Client:
        return genai.Client(api_key=api_key)

    async def complete(
        self,
        model: str,
        system_prompt: str,
        user_content: str,
        api_key: str,
        max_tokens: int,
    ) -> str:
        client = self._sdk_client(api_key)
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=model,
                    contents=_combined_prompt(system_prompt, user_content),
                    config=genai_types.GenerateContentConfig(max_output_tokens=max_tokens),
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self.name, f"API call failed: {exc}") from exc

        if not response.text:
            raise ProviderError(self.name, "Empty response content")

        logger.info("%s completion (%s): %.2fs", self.name, model, time.monotonic() - start)
        return response.text

"""OpenAI chat-completions adapter: raw SSE streaming plus openai SDK completion."""

import asyncio
import logging
import time

from openai import AsyncOpenAI

from rosin.models import Provider
from rosin.providers.base import ProviderError, StreamingAdapter

logger = logging.getLogger(__name__)


class OpenAIAdapter(StreamingAdapter):
    """OpenAI-style chat completions (also spoken by xAI)."""

    provider = Provider.OPENAI

    def build_request(
        self,
        model: str,
        system_prompt: str,
        user_content: str,
        api_key: str,
        max_tokens: int,
    ) -> tuple[str, dict[str, str], dict]:
        url = f"{self._config.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        body = {
            "model": model,
            "stream": True,
            "max_tokens": max_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
        }
        return url, headers, body

    def extract_text(self, event: dict) -> str | None:
        choices = event.get("choices") or []
        if not choices:
            return None
        delta = choices[0].get("delta") or {}
        content = delta.get("content")
        return content if isinstance(content, str) else None

    def _build_sdk_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, base_url=self._config.base_url)

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
                client.chat.completions.create(
                    model=model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_content},
                    ],
                    max_tokens=max_tokens,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self.name, f"API call failed: {exc}") from exc

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self.name, "Empty response content")

        logger.info("%s completion (%s): %.2fs", self.name, model, time.monotonic() - start)
        return choice.message.content

"""Anthropic Messages adapter: raw SSE streaming plus anthropic SDK completion."""

import asyncio
import logging
import time

import anthropic as anthropic_sdk

from rosin.models import Provider
from rosin.providers.base import ProviderError, StreamingAdapter

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(StreamingAdapter):
    """Anthropic Claude via the Messages API."""

    provider = Provider.ANTHROPIC

    def build_request(
        self,
        model: str,
        system_prompt: str,
        user_content: str,
        api_key: str,
        max_tokens: int,
    ) -> tuple[str, dict[str, str], dict]:
        url = f"{self._config.base_url}/v1/messages"
        headers = {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        body = {
            "model": model,
            "max_tokens": max_tokens,
            "stream": True,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_content}],
        }
        return url, headers, body

    def extract_text(self, event: dict) -> str | None:
        event_type = event.get("type")
        if event_type == "error":
            error = event.get("error") or {}
            raise ProviderError(self.name, f"Stream error: {error.get('message', 'unknown error')}")
        if event_type != "content_block_delta":
            return None
        delta = event.get("delta") or {}
        if delta.get("type") != "text_delta":
            return None
        text = delta.get("text")
        return text if isinstance(text, str) else None

    def is_terminal(self, event: dict) -> bool:
        return event.get("type") == "message_stop"

    def _build_sdk_client(self, api_key: str) -> anthropic_sdk.AsyncAnthropic:
        return anthropic_sdk.AsyncAnthropic(api_key=api_key, base_url=self._config.base_url)

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
                client.messages.create(
                    model=model,
                    max_tokens=max_tokens,
                    system=system_prompt,
                    messages=[{"role": "user", "content": user_content}],
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self.name, f"API call failed: {exc}") from exc

        text_blocks = [b.text for b in response.content or [] if b.type == "text"]
        if not text_blocks:
            raise ProviderError(self.name, "No text blocks in response")

        logger.info("%s completion (%s): %.2fs", self.name, model, time.monotonic() - start)
        return "\n".join(text_blocks)

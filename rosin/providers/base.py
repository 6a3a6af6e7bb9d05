"""Shared streaming machinery and error types for all provider adapters."""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

import httpx

from rosin.config.config_loader import ProviderConfig
from rosin.models import Provider
from rosin.sse import iter_sse_payloads

logger = logging.getLogger(__name__)

_ERROR_MESSAGE_MAX_CHARS = 200


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class MissingApiKeyError(ProviderError):
    def __init__(self, provider: Provider) -> None:
        super().__init__(provider.display_name, f"Missing API key for {provider.display_name}")


class ApiError(ProviderError):
    """Non-2xx response. `detail` keeps the full body, the message is truncated."""

    def __init__(self, provider_name: str, status_code: int, detail: str) -> None:
        self.status_code = status_code
        self.detail = detail
        truncated = detail[:_ERROR_MESSAGE_MAX_CHARS]
        super().__init__(provider_name, f"API error ({status_code}): {truncated}")


class StreamingAdapter(ABC):
    """One provider's wire format behind a uniform ``stream`` / ``complete`` pair."""

    provider: Provider

    def __init__(self, config: ProviderConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client
        # One SDK client per key, reused across complete() calls.
        self._sdk_clients: dict[str, Any] = {}

    @property
    def name(self) -> str:
        return self.provider.display_name

    @abstractmethod
    def build_request(
        self,
        model: str,
        system_prompt: str,
        user_content: str,
        api_key: str,
        max_tokens: int,
    ) -> tuple[str, dict[str, str], dict]:
        """Return (url, headers, json_body) for a streaming call."""
        ...

    @abstractmethod
    def extract_text(self, event: dict) -> str | None:
        """Pull the text delta out of one decoded stream event, if any."""
        ...

    def _build_sdk_client(self, api_key: str) -> Any:
        """Create the vendor SDK client used by complete()."""
        raise NotImplementedError

    def _sdk_client(self, api_key: str) -> Any:
        client = self._sdk_clients.get(api_key)
        if client is None:
            client = self._sdk_clients[api_key] = self._build_sdk_client(api_key)
        return client

    def is_terminal(self, event: dict) -> bool:
        """True when the event is the provider's end-of-message marker."""
        return False

    @abstractmethod
    async def complete(
        self,
        model: str,
        system_prompt: str,
        user_content: str,
        api_key: str,
        max_tokens: int,
    ) -> str:
        """Non-streaming call through the provider SDK. Returns the full text.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...

    async def stream(
        self,
        model: str,
        system_prompt: str,
        user_content: str,
        api_key: str,
        max_tokens: int,
    ) -> AsyncIterator[str]:
        """Yield text deltas in transport order.

        Raises:
            ApiError: Non-2xx response, before any token is yielded.
            ProviderError: Connection or read failure, or an in-stream error event.
        """
        url, headers, body = self.build_request(model, system_prompt, user_content, api_key, max_tokens)
        client = self._client or httpx.AsyncClient(timeout=httpx.Timeout(self._config.timeout_sec, connect=10.0))
        try:
            async with client.stream("POST", url, headers=headers, json=body) as response:
                if not response.is_success:
                    error_body = await response.aread()
                    raise ApiError(self.name, response.status_code, error_body.decode("utf-8", errors="replace"))

                async for payload in iter_sse_payloads(response.aiter_bytes()):
                    try:
                        event = json.loads(payload)
                    except json.JSONDecodeError:
                        logger.debug("%s: skipping undecodable payload %r", self.name, payload[:80])
                        continue
                    if not isinstance(event, dict):
                        continue
                    text = self.extract_text(event)
                    if text:
                        yield text
                    if self.is_terminal(event):
                        break
        except httpx.HTTPError as exc:
            raise ProviderError(self.name, f"Connection failed: {exc}") from exc
        finally:
            if client is not self._client:
                await client.aclose()

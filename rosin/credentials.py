"""Read-only per-provider API key lookup."""

import os
from collections.abc import Mapping

from rosin.config.config_loader import ProviderConfig
from rosin.models import Provider


class Credentials:
    """API keys by provider. The pipeline only ever reads from this."""

    def __init__(self, keys: Mapping[Provider, str] | None = None) -> None:
        self._keys = {p: k.strip() for p, k in (keys or {}).items() if k and k.strip()}

    @classmethod
    def from_env(cls, providers: Mapping[Provider, ProviderConfig]) -> "Credentials":
        return cls({p: os.environ.get(cfg.api_key_env, "") for p, cfg in providers.items()})

    def get(self, provider: Provider) -> str | None:
        return self._keys.get(provider)

    def has(self, provider: Provider) -> bool:
        return provider in self._keys

    def __repr__(self) -> str:
        return f"Credentials(providers={sorted(p.value for p in self._keys)})"

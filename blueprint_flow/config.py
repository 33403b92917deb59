"""Configuration helpers for the blueprint research backend."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Mapping

from dotenv import load_dotenv

OTHER_PROVIDER_PREFIX = "BLUEPRINT_LLM_"
OTHER_PROVIDER_SUFFIX = "_API_KEY"
OTHER_PROVIDER_URL_SUFFIX = "_BASE_URL"

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

# OpenRouter model identifiers.
PERPLEXITY_SONAR = "perplexity/sonar-pro"
CLAUDE_SONNET = "anthropic/claude-sonnet-4"
GEMINI_FLASH = "google/gemini-2.0-flash-001"

load_dotenv(override=False)


def _flag(environ: Mapping[str, str], name: str, default: bool = True) -> bool:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Settings container for model credentials, collaborators and feature flags.

    OpenRouter is the primary provider because it serves the web-search
    research model; a plain OpenAI key is accepted as a fallback.
    """

    openrouter_api_key: str | None = None
    openai_api_key: str | None = None
    searchapi_key: str | None = None
    firecrawl_api_key: str | None = None
    research_model: str = PERPLEXITY_SONAR
    synthesis_model: str = CLAUDE_SONNET
    extraction_model: str = GEMINI_FLASH
    enable_ads: bool = True
    enable_pricing: bool = True
    enable_reviews: bool = True
    # Additional providers discovered from environment variables. A provider
    # is only usable once both its key and its endpoint are known.
    additional_api_keys: Dict[str, str] = field(default_factory=dict)
    additional_base_urls: Dict[str, str] = field(default_factory=dict)

    @property
    def primary_provider(self) -> str | None:
        """Return the preferred provider based on available credentials."""

        if self.openrouter_api_key:
            return "openrouter"
        if self.openai_api_key:
            return "openai"
        for provider, api_key in self.additional_api_keys.items():
            if api_key and self.additional_base_urls.get(provider):
                return provider
        return None

    def get_api_key(self, provider: str | None = None) -> str | None:
        """Return the API key for the requested provider.

        When *provider* is omitted the primary provider's key is returned.
        """

        resolved_provider = provider or self.primary_provider
        if resolved_provider == "openrouter":
            return self.openrouter_api_key
        if resolved_provider == "openai":
            return self.openai_api_key
        if resolved_provider is None:
            return None
        if not self.additional_base_urls.get(resolved_provider):
            return None
        return self.additional_api_keys.get(resolved_provider)

    @property
    def base_url(self) -> str | None:
        """OpenAI-compatible endpoint for the primary provider (``None`` means the SDK default)."""

        provider = self.primary_provider
        if provider == "openai":
            return None
        if provider in self.additional_base_urls:
            return self.additional_base_urls[provider]
        return OPENROUTER_BASE_URL

    @property
    def has_any_keys(self) -> bool:
        """True when at least one provider API key is configured."""

        return self.primary_provider is not None


def _extract_additional_provider_values(environ: Mapping[str, str], suffix: str) -> Dict[str, str]:
    """Collect values of ``BLUEPRINT_LLM_<PROVIDER><suffix>`` variables keyed by provider."""

    discovered: Dict[str, str] = {}
    for env_key, value in environ.items():
        if not env_key.startswith(OTHER_PROVIDER_PREFIX) or not env_key.endswith(suffix):
            continue

        provider = env_key[len(OTHER_PROVIDER_PREFIX) : -len(suffix)].lower()
        if provider in {"openrouter", "openai"}:
            # Handled explicitly above.
            continue
        if value:
            discovered[provider] = value
    return discovered


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read environment variables and return cached settings."""

    environ = os.environ
    return Settings(
        openrouter_api_key=environ.get("OPENROUTER_API_KEY"),
        openai_api_key=environ.get("OPENAI_API_KEY"),
        searchapi_key=environ.get("SEARCHAPI_KEY"),
        firecrawl_api_key=environ.get("FIRECRAWL_API_KEY"),
        research_model=environ.get("BLUEPRINT_RESEARCH_MODEL") or PERPLEXITY_SONAR,
        synthesis_model=environ.get("BLUEPRINT_SYNTHESIS_MODEL") or CLAUDE_SONNET,
        extraction_model=environ.get("BLUEPRINT_EXTRACTION_MODEL") or GEMINI_FLASH,
        enable_ads=_flag(environ, "BLUEPRINT_ENABLE_ADS"),
        enable_pricing=_flag(environ, "BLUEPRINT_ENABLE_PRICING"),
        enable_reviews=_flag(environ, "BLUEPRINT_ENABLE_REVIEWS"),
        additional_api_keys=_extract_additional_provider_values(environ, OTHER_PROVIDER_SUFFIX),
        additional_base_urls=_extract_additional_provider_values(environ, OTHER_PROVIDER_URL_SUFFIX),
    )

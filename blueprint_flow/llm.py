"""OpenAI-compatible research model client used by every section researcher."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI, RateLimitError

from .config import CLAUDE_SONNET, GEMINI_FLASH, PERPLEXITY_SONAR, Settings, get_settings
from .errors import MissingCredentialsError, ResearchRequestError, ResearchTimeoutError
from .schemas import Citation

_LOGGER = logging.getLogger(__name__)

MAX_RETRIES = 2
RETRY_DELAY_SECONDS = 1.0

# USD per 1M tokens (input, output).
MODEL_COSTS: Dict[str, tuple[float, float]] = {
    PERPLEXITY_SONAR: (3.0, 15.0),
    CLAUDE_SONNET: (3.0, 15.0),
    GEMINI_FLASH: (0.075, 0.30),
}
DEFAULT_MODEL_COST = (1.0, 1.0)

WEB_SEARCH_MODELS = frozenset({PERPLEXITY_SONAR})
# Perplexity rejects response_format.
JSON_MODE_MODELS = frozenset({CLAUDE_SONNET, GEMINI_FLASH})

# Each citation is billed roughly like 5k input tokens at $2/1M.
CITATION_TOKEN_ESTIMATE = 5000
CITATION_COST_PER_MILLION = 2.0


@dataclass(frozen=True)
class PromptSpec:
    """Container describing how to call the model for a section."""

    system_prompt: str
    user_prompt: str
    model: str = PERPLEXITY_SONAR
    temperature: float = 0.3
    max_tokens: int = 4096
    json_mode: bool = True
    timeout: float = 60.0
    section: str = "research"


@dataclass(frozen=True)
class ResearchResponse:
    """Text answer plus provenance and an estimated dollar cost."""

    content: str
    model: str
    citations: List[Citation] = field(default_factory=list)
    cost: float = 0.0
    prompt_tokens: int = 0
    completion_tokens: int = 0


class ResearchModel(Protocol):
    async def research(self, spec: PromptSpec) -> ResearchResponse: ...


def estimate_cost(model: str, prompt_tokens: int, completion_tokens: int, citation_count: int = 0) -> float:
    input_rate, output_rate = MODEL_COSTS.get(model, DEFAULT_MODEL_COST)
    cost = prompt_tokens / 1_000_000 * input_rate + completion_tokens / 1_000_000 * output_rate
    if model in WEB_SEARCH_MODELS and citation_count:
        cost += CITATION_TOKEN_ESTIMATE * citation_count / 1_000_000 * CITATION_COST_PER_MILLION
    return cost


def _extra_field(response: Any, name: str) -> Any:
    extra = getattr(response, "model_extra", None) or {}
    if name in extra:
        return extra[name]
    return getattr(response, name, None)


def extract_citations(response: Any) -> List[Citation]:
    """Prefer structured ``search_results``; fall back to the bare ``citations`` URL list."""

    search_results = _extra_field(response, "search_results")
    if isinstance(search_results, list) and search_results:
        citations = []
        for result in search_results:
            item = result if isinstance(result, dict) else getattr(result, "__dict__", {})
            url = item.get("url")
            if url:
                citations.append(
                    Citation(url=url, title=item.get("title"), date=item.get("date"), snippet=item.get("snippet"))
                )
        if citations:
            return citations

    urls = _extra_field(response, "citations")
    if isinstance(urls, list):
        return [Citation(url=url) for url in urls if isinstance(url, str) and url]
    return []


class ResearchClient:
    """Thin async wrapper over the chat completions endpoint.

    Rate limits and 5xx responses are retried up to ``MAX_RETRIES`` times
    with a fixed delay; timeouts and other 4xx responses fail immediately.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)
        self._logger = logger or _LOGGER

    @classmethod
    def from_settings(cls, settings: Settings | None = None, logger: logging.Logger | None = None) -> "ResearchClient":
        settings = settings or get_settings()
        api_key = settings.get_api_key()
        if not api_key:
            raise MissingCredentialsError("OPENROUTER_API_KEY (or OPENAI_API_KEY) is not configured")
        return cls(api_key, base_url=settings.base_url, logger=logger)

    async def research(self, spec: PromptSpec) -> ResearchResponse:
        request: Dict[str, Any] = {
            "model": spec.model,
            "messages": [
                {"role": "system", "content": spec.system_prompt.strip()},
                {"role": "user", "content": spec.user_prompt.strip()},
            ],
            "temperature": spec.temperature,
            "max_tokens": spec.max_tokens,
            "timeout": spec.timeout,
        }
        if spec.json_mode and spec.model in JSON_MODE_MODELS:
            request["response_format"] = {"type": "json_object"}

        attempt = 0
        while True:
            attempt += 1
            try:
                self._logger.info("[%s] model call: model=%s attempt=%d", spec.section, spec.model, attempt)
                response = await asyncio.wait_for(
                    self._client.chat.completions.create(**request),
                    timeout=spec.timeout,
                )
                break
            except (APITimeoutError, asyncio.TimeoutError) as exc:
                raise ResearchTimeoutError(spec.section, spec.timeout) from exc
            except RateLimitError as exc:
                if attempt > MAX_RETRIES:
                    raise ResearchRequestError(f"{spec.section}: rate limited after {attempt} attempts") from exc
                self._logger.warning("[%s] rate limited, retrying in %.0fs", spec.section, RETRY_DELAY_SECONDS)
            except APIStatusError as exc:
                if exc.status_code < 500 or attempt > MAX_RETRIES:
                    raise ResearchRequestError(f"{spec.section}: HTTP {exc.status_code} from model API") from exc
                self._logger.warning(
                    "[%s] server error %d, retrying in %.0fs", spec.section, exc.status_code, RETRY_DELAY_SECONDS
                )
            except APIConnectionError as exc:
                raise ResearchRequestError(f"{spec.section}: connection to model API failed") from exc
            await asyncio.sleep(RETRY_DELAY_SECONDS)

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        usage = response.usage
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0
        citations = extract_citations(response)
        model = response.model or spec.model
        cost = estimate_cost(spec.model, prompt_tokens, completion_tokens, len(citations))
        self._logger.info(
            "[%s] model response: model=%s tokens=%d citations=%d cost=$%.4f",
            spec.section,
            model,
            prompt_tokens + completion_tokens,
            len(citations),
            cost,
        )
        return ResearchResponse(
            content=content,
            model=model,
            citations=citations,
            cost=cost,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
        )

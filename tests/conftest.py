"""Shared fakes for the research model and the page scraper."""

from __future__ import annotations

from typing import Dict, Iterator, List, Mapping

import pytest

from blueprint_flow.config import get_settings
from blueprint_flow.llm import PromptSpec, ResearchResponse
from blueprint_flow.schemas import Citation
from blueprint_flow.scraper import PricingPageResult, ScrapeResult


class FakeResearchModel:
    """Answer each prompt with the canned content registered for its section."""

    def __init__(
        self,
        responses: Mapping[str, object],
        *,
        citations: Mapping[str, List[Citation]] | None = None,
        cost: float = 0.01,
    ) -> None:
        self.responses = dict(responses)
        self.citations = dict(citations or {})
        self.cost = cost
        self.specs: List[PromptSpec] = []

    async def research(self, spec: PromptSpec) -> ResearchResponse:
        self.specs.append(spec)
        answer = self.responses[spec.section]
        if isinstance(answer, Exception):
            raise answer
        return ResearchResponse(
            content=str(answer),
            model=spec.model,
            citations=self.citations.get(spec.section, []),
            cost=self.cost,
        )


class FakeScraper:
    """Serve markdown for known URLs; unknown URLs fail like an empty scrape."""

    def __init__(self, pages: Mapping[str, str] | None = None, *, available: bool = True) -> None:
        self.pages: Dict[str, str] = dict(pages or {})
        self.available = available
        self.scraped: List[str] = []

    def is_available(self) -> bool:
        return self.available

    async def scrape(self, url: str, *, timeout: float = 30.0, force_us_location: bool = False) -> ScrapeResult:
        self.scraped.append(url)
        markdown = self.pages.get(url)
        if markdown is None:
            return ScrapeResult(success=False, url=url, error="Scrape returned empty content")
        return ScrapeResult(success=True, url=url, markdown=markdown)

    async def scrape_pricing_page(self, website: str) -> PricingPageResult:
        base = website.rstrip("/")
        for path in ("/pricing", "/plans", "/buy"):
            markdown = self.pages.get(f"{base}{path}")
            if markdown:
                return PricingPageResult(found=True, url=f"{base}{path}", markdown=markdown)
        return PricingPageResult(found=False, error="No pricing page found")


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_model_factory():
    return FakeResearchModel


@pytest.fixture
def fake_scraper_factory():
    return FakeScraper

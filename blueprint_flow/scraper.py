"""Firecrawl page scraper used for pricing pages and review sites."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Protocol
from urllib.parse import urlsplit

import httpx

from .errors import UpstreamServiceError

_LOGGER = logging.getLogger(__name__)

FIRECRAWL_SCRAPE_URL = "https://api.firecrawl.dev/v1/scrape"
DEFAULT_TIMEOUT = 30.0
MAX_RETRIES = 2
RETRY_DELAY_SECONDS = 1.0
PRICING_PATHS = ("/pricing", "/plans", "/buy")
LOW_WORD_COUNT = 100


@dataclass(frozen=True)
class ScrapeResult:
    success: bool
    url: str | None = None
    markdown: str | None = None
    title: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class PricingPageResult:
    found: bool
    url: str | None = None
    markdown: str | None = None
    title: str | None = None
    error: str | None = None
    attempted_urls: List[str] = field(default_factory=list)


class PageScraper(Protocol):
    def is_available(self) -> bool: ...

    async def scrape(self, url: str, *, timeout: float = DEFAULT_TIMEOUT, force_us_location: bool = False) -> ScrapeResult: ...

    async def scrape_pricing_page(self, website: str) -> PricingPageResult: ...


def normalize_base_url(url: str) -> str:
    """Return ``scheme://host`` for *url*, forcing https when no scheme is given."""

    candidate = url.strip()
    if not candidate.startswith("http"):
        candidate = f"https://{candidate}"
    candidate = candidate.rstrip("/")
    parts = urlsplit(candidate)
    if not parts.netloc:
        return candidate
    return f"{parts.scheme}://{parts.netloc}"


class FirecrawlScraper:
    """Scrape pages to markdown through the Firecrawl REST API."""

    def __init__(
        self,
        api_key: str | None,
        *,
        http_client: httpx.AsyncClient | None = None,
        endpoint: str = FIRECRAWL_SCRAPE_URL,
        logger: logging.Logger | None = None,
    ) -> None:
        self._api_key = api_key
        self._http = http_client
        self._endpoint = endpoint
        self._logger = logger or _LOGGER

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def _post(self, payload: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        if self._http is not None:
            response = await self._http.post(self._endpoint, json=payload, headers=headers, timeout=timeout)
        else:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(self._endpoint, json=payload, headers=headers)
        if response.status_code >= 400:
            raise UpstreamServiceError("Firecrawl", response.text[:200], response.status_code)
        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamServiceError("Firecrawl", f"invalid JSON response: {exc}", response.status_code) from exc
        if not isinstance(body, dict):
            raise UpstreamServiceError("Firecrawl", "unexpected response shape", response.status_code)
        return body

    async def _post_with_retry(self, payload: Dict[str, Any], timeout: float) -> Dict[str, Any]:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await self._post(payload, timeout)
            except UpstreamServiceError as exc:
                if not exc.transient or attempt > MAX_RETRIES:
                    raise
                self._logger.warning(
                    "[Firecrawl] %s attempt %d failed (%s), retrying in %.0fs",
                    payload["url"],
                    attempt,
                    exc.status_code,
                    RETRY_DELAY_SECONDS,
                )
            await asyncio.sleep(RETRY_DELAY_SECONDS)

    async def scrape(self, url: str, *, timeout: float = DEFAULT_TIMEOUT, force_us_location: bool = False) -> ScrapeResult:
        if not self.is_available():
            return ScrapeResult(success=False, url=url, error="Firecrawl not available: FIRECRAWL_API_KEY not configured")

        payload: Dict[str, Any] = {"url": url, "formats": ["markdown"], "timeout": int(timeout * 1000)}
        if force_us_location:
            payload["location"] = {"country": "US", "languages": ["en-US"]}
            payload["headers"] = {"Accept-Language": "en-US,en;q=0.9"}

        try:
            body = await self._post_with_retry(payload, timeout)
        except httpx.TimeoutException:
            self._logger.error("[Firecrawl] Timeout scraping %s after %.0fs", url, timeout)
            return ScrapeResult(success=False, url=url, error=f"Request timed out after {timeout:g}s")
        except (httpx.HTTPError, UpstreamServiceError) as exc:
            self._logger.error("[Firecrawl] Error scraping %s: %s", url, exc)
            return ScrapeResult(success=False, url=url, error=str(exc))

        data = body.get("data") or {}
        markdown = data.get("markdown")
        if not body.get("success", True) or not markdown or not markdown.strip():
            return ScrapeResult(success=False, url=url, error=body.get("error") or "Scrape returned empty content")

        word_count = len(markdown.split())
        if word_count < LOW_WORD_COUNT:
            self._logger.warning("[Firecrawl] Low word count (%d) for %s", word_count, url)

        metadata = data.get("metadata") or {}
        return ScrapeResult(
            success=True,
            url=metadata.get("url") or metadata.get("sourceURL") or url,
            markdown=markdown,
            title=metadata.get("title"),
        )

    async def scrape_pricing_page(self, website: str) -> PricingPageResult:
        """Try the conventional pricing paths in order and return the first non-empty page."""

        if not self.is_available():
            return PricingPageResult(found=False, error="Firecrawl not available: FIRECRAWL_API_KEY not configured")

        base_url = normalize_base_url(website)
        attempted: List[str] = []
        for path in PRICING_PATHS:
            url = f"{base_url}{path}"
            attempted.append(url)
            result = await self.scrape(url, force_us_location=True)
            if result.success and result.markdown:
                return PricingPageResult(
                    found=True,
                    url=result.url or url,
                    markdown=result.markdown,
                    title=result.title,
                    attempted_urls=attempted,
                )
            self._logger.info("[Firecrawl] %s failed: %s", url, result.error or "unknown error")

        return PricingPageResult(
            found=False,
            error=f"No pricing page found. Tried: {', '.join(PRICING_PATHS)}",
            attempted_urls=attempted,
        )

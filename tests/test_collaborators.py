from __future__ import annotations

import json
from typing import List

import httpx
import pytest

from blueprint_flow import scraper as scraper_module
from blueprint_flow.ads import SearchApiAdLibrary, guess_domain
from blueprint_flow.errors import MissingCredentialsError
from blueprint_flow.schemas import AdFormat, AdPlatform
from blueprint_flow.scraper import FirecrawlScraper, normalize_base_url

LINKEDIN = {
    "ads": [
        {
            "ad_id": "li-7",
            "advertiser": {"name": "HubSpot"},
            "content": {"headline": "Grow better", "body": "Free CRM", "image": "https://img/li.png"},
        }
    ]
}
META = {
    "ads": [
        {
            "id": "m-1",
            "page_name": "HubSpot",
            "is_active": True,
            "snapshot": {"body": {"text": "Meet Breeze"}, "videos": [{"video_sd_url": "https://v/m.mp4"}]},
            "publisher_platform": ["facebook", "instagram"],
        }
    ]
}


def _ad_transport(seen: List[str]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        engine = request.url.params["engine"]
        seen.append(engine)
        if engine == "linkedin_ad_library":
            return httpx.Response(200, json=LINKEDIN)
        if engine == "meta_ad_library":
            return httpx.Response(200, json=META)
        return httpx.Response(500, text="engine down")

    return httpx.MockTransport(handler)


def test_guess_domain() -> None:
    assert guess_domain("hubspot.com") == "hubspot.com"
    assert guess_domain("Monday Com") == "mondaycom.com"
    assert guess_domain("!!") is None


def test_normalize_base_url() -> None:
    assert normalize_base_url("acme.com/about/") == "https://acme.com"
    assert normalize_base_url("http://www.acme.com/pricing") == "http://www.acme.com"


@pytest.mark.asyncio
async def test_fetch_all_platforms_keeps_working_platforms() -> None:
    seen: List[str] = []
    async with httpx.AsyncClient(transport=_ad_transport(seen)) as http:
        library = SearchApiAdLibrary("key", http_client=http)
        ads = await library.fetch_all_platforms("hubspot", domain="hubspot.com")

    assert sorted(seen) == ["google_ads_transparency_center", "linkedin_ad_library", "meta_ad_library"]
    assert [(ad.platform, ad.id) for ad in ads] == [(AdPlatform.LINKEDIN, "li-7"), (AdPlatform.META, "m-1")]
    assert ads[0].format is AdFormat.IMAGE
    assert ads[1].format is AdFormat.VIDEO
    assert ads[1].platforms == ["facebook", "instagram"]


@pytest.mark.asyncio
async def test_fetch_all_platforms_requires_key() -> None:
    with pytest.raises(MissingCredentialsError):
        await SearchApiAdLibrary(None).fetch_all_platforms("hubspot")


@pytest.mark.asyncio
async def test_scraper_retries_transient_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(scraper_module, "RETRY_DELAY_SECONDS", 0)
    calls: List[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(json.loads(request.content))
        if len(calls) < 3:
            return httpx.Response(503, text="busy")
        body = {"success": True, "data": {"markdown": "# Pricing\nPro $20/mo", "metadata": {"title": "Pricing"}}}
        return httpx.Response(200, json=body)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        scraper = FirecrawlScraper("key", http_client=http)
        result = await scraper.scrape("https://acme.com/pricing", force_us_location=True)

    assert len(calls) == 3
    assert calls[0]["formats"] == ["markdown"]
    assert calls[0]["location"]["country"] == "US"
    assert result.success
    assert result.title == "Pricing"
    assert result.url == "https://acme.com/pricing"


@pytest.mark.asyncio
async def test_scraper_does_not_retry_client_errors() -> None:
    calls: List[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(json.loads(request.content)["url"])
        return httpx.Response(404, text="not found")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        scraper = FirecrawlScraper("key", http_client=http)
        page = await scraper.scrape_pricing_page("https://acme.com/about")

    assert calls == ["https://acme.com/pricing", "https://acme.com/plans", "https://acme.com/buy"]
    assert not page.found
    assert page.attempted_urls == calls


@pytest.mark.asyncio
async def test_scraper_without_key_is_unavailable() -> None:
    scraper = FirecrawlScraper(None)
    assert not scraper.is_available()
    result = await scraper.scrape("https://acme.com")
    assert not result.success
    assert "FIRECRAWL_API_KEY" in result.error


@pytest.mark.asyncio
async def test_ad_library_treats_html_reply_as_platform_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>Bad gateway page</html>")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        library = SearchApiAdLibrary("key", http_client=http)
        response = await library.fetch_linkedin_ads("hubspot")
        ads = await library.fetch_all_platforms("hubspot")

    assert not response.success
    assert "invalid JSON" in response.error
    assert ads == []


@pytest.mark.asyncio
async def test_ad_library_reads_formatted_total_count() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={**LINKEDIN, "search_information": {"total_results": "1,000"}})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        response = await SearchApiAdLibrary("key", http_client=http).fetch_linkedin_ads("hubspot")

    assert response.success
    assert response.total_count == 1000


@pytest.mark.asyncio
async def test_scraper_treats_html_reply_as_failed_scrape() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>Bad gateway page</html>")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        result = await FirecrawlScraper("key", http_client=http).scrape("https://acme.com/pricing")

    assert not result.success
    assert "invalid JSON" in result.error

"""SearchAPI ad-library client for LinkedIn, Meta and Google creatives."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Protocol

import httpx

from .errors import MissingCredentialsError, UpstreamServiceError
from .schemas import AdCreative, AdFormat, AdPlatform

_LOGGER = logging.getLogger(__name__)

SEARCHAPI_BASE = "https://www.searchapi.io/api/v1/search"
DEFAULT_TIMEOUT = 30.0
DEFAULT_LIMIT = 10
DEFAULT_COUNTRY = "US"


@dataclass(frozen=True)
class AdLibraryResponse:
    platform: AdPlatform
    success: bool
    ads: List[AdCreative] = field(default_factory=list)
    total_count: int = 0
    error: str | None = None


class AdFetcher(Protocol):
    async def fetch_all_platforms(self, query: str, *, domain: str | None = None, limit: int = DEFAULT_LIMIT) -> List[AdCreative]: ...


def _first(value: Any) -> Any:
    if isinstance(value, list) and value:
        return value[0]
    return None


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, dict) else {}


def _media_url(item: Any, *keys: str) -> str | None:
    if isinstance(item, str):
        return item
    media = _mapping(item)
    for key in keys:
        if media.get(key):
            return media[key]
    return None


def _format_for(image_url: str | None, video_url: str | None, image_count: int = 0) -> AdFormat:
    if video_url:
        return AdFormat.VIDEO
    if image_count > 1:
        return AdFormat.CAROUSEL
    if image_url:
        return AdFormat.IMAGE
    return AdFormat.UNKNOWN


def normalize_linkedin_ad(raw: Mapping[str, Any]) -> AdCreative:
    content = _mapping(raw.get("content"))
    image_url = content.get("image")
    return AdCreative(
        platform=AdPlatform.LINKEDIN,
        id=str(raw.get("ad_id") or raw.get("id") or uuid.uuid4().hex),
        advertiser=_mapping(raw.get("advertiser")).get("name") or "Unknown",
        headline=content.get("headline"),
        body=content.get("body"),
        image_url=image_url,
        format=_format_for(image_url, None),
        is_active=True,
        first_seen=raw.get("first_shown_datetime"),
        last_seen=raw.get("last_shown_datetime"),
        details_url=raw.get("link"),
    )


def normalize_meta_ad(raw: Mapping[str, Any]) -> AdCreative:
    snapshot = _mapping(raw.get("snapshot"))
    images = snapshot.get("images") if isinstance(snapshot.get("images"), list) else []
    image_url = _media_url(_first(images), "url", "original_image_url")
    video_url = _media_url(_first(snapshot.get("videos")), "video_hd_url", "video_sd_url")
    platforms = raw.get("publisher_platform")
    return AdCreative(
        platform=AdPlatform.META,
        id=str(raw.get("id") or uuid.uuid4().hex),
        advertiser=raw.get("page_name") or snapshot.get("page_name") or "Unknown",
        headline=snapshot.get("title"),
        body=_mapping(snapshot.get("body")).get("text"),
        image_url=image_url,
        video_url=video_url,
        format=_format_for(image_url, video_url, len(images)),
        is_active=bool(raw.get("is_active")),
        first_seen=raw.get("start_date"),
        last_seen=raw.get("end_date"),
        platforms=[str(item) for item in platforms] if isinstance(platforms, list) else [],
        details_url=raw.get("link"),
    )


def normalize_google_ad(raw: Mapping[str, Any]) -> AdCreative:
    image_url = _mapping(raw.get("image")).get("link")
    video_url = None
    if str(raw.get("format") or "").lower() == "video":
        video_url = _mapping(raw.get("video")).get("link")
    return AdCreative(
        platform=AdPlatform.GOOGLE,
        id=str(raw.get("creative_id") or raw.get("id") or uuid.uuid4().hex),
        advertiser=_mapping(raw.get("advertiser")).get("name") or "Unknown",
        headline=raw.get("headline"),
        body=raw.get("description"),
        image_url=image_url,
        video_url=video_url,
        format=_format_for(image_url, video_url),
        is_active=True,
        first_seen=raw.get("first_shown_datetime"),
        last_seen=raw.get("last_shown_datetime"),
        details_url=raw.get("details_link"),
    )


def _total_count(value: Any, fallback: int) -> int:
    if isinstance(value, int):
        return value
    digits = "".join(char for char in str(value or "") if char.isdigit())
    return int(digits) if digits else fallback


def guess_domain(query: str) -> str | None:
    """Use *query* as a domain when it looks like one, else assume ``<query>.com``."""

    if "." in query and " " not in query:
        return query.lower()
    sanitized = "".join(char for char in query.lower() if char.isalnum())
    return f"{sanitized}.com" if sanitized else None


class SearchApiAdLibrary:
    """Fetch creatives from the three ad libraries exposed by SearchAPI."""

    def __init__(
        self,
        api_key: str | None,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        country: str = DEFAULT_COUNTRY,
        logger: logging.Logger | None = None,
    ) -> None:
        self._api_key = api_key
        self._http = http_client
        self._timeout = timeout
        self._country = country
        self._logger = logger or _LOGGER

    async def _get(self, params: Dict[str, str]) -> Dict[str, Any]:
        query = {**params, "api_key": self._api_key or ""}
        if self._http is not None:
            response = await self._http.get(SEARCHAPI_BASE, params=query, timeout=self._timeout)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(SEARCHAPI_BASE, params=query)
        if response.status_code >= 400:
            raise UpstreamServiceError("SearchAPI", response.text[:200], response.status_code)
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamServiceError("SearchAPI", f"invalid JSON response: {exc}", response.status_code) from exc
        if not isinstance(data, dict):
            raise UpstreamServiceError("SearchAPI", "unexpected response shape", response.status_code)
        if data.get("error"):
            raise UpstreamServiceError("SearchAPI", str(data["error"]))
        return data

    async def _fetch(self, platform: AdPlatform, params: Dict[str, str], limit: int) -> AdLibraryResponse:
        try:
            data = await self._get(params)
        except httpx.TimeoutException:
            error = f"Request timed out after {self._timeout:g} seconds"
            self._logger.error("[AdLibrary] %s error: %s", platform.value, error)
            return AdLibraryResponse(platform=platform, success=False, error=error)
        except (httpx.HTTPError, UpstreamServiceError) as exc:
            self._logger.error("[AdLibrary] %s error: %s", platform.value, exc)
            return AdLibraryResponse(platform=platform, success=False, error=str(exc))

        key = "ad_creatives" if platform is AdPlatform.GOOGLE else "ads"
        raw_ads = [item for item in data.get(key) or [] if isinstance(item, dict)]
        normalizer = {
            AdPlatform.LINKEDIN: normalize_linkedin_ad,
            AdPlatform.META: normalize_meta_ad,
            AdPlatform.GOOGLE: normalize_google_ad,
        }[platform]
        total = _total_count(_mapping(data.get("search_information")).get("total_results"), len(raw_ads))
        return AdLibraryResponse(
            platform=platform,
            success=True,
            ads=[normalizer(item) for item in raw_ads[:limit]],
            total_count=total,
        )

    async def fetch_linkedin_ads(self, query: str, limit: int = DEFAULT_LIMIT) -> AdLibraryResponse:
        return await self._fetch(AdPlatform.LINKEDIN, {"engine": "linkedin_ad_library", "q": query}, limit)

    async def fetch_meta_ads(self, query: str, limit: int = DEFAULT_LIMIT) -> AdLibraryResponse:
        params = {"engine": "meta_ad_library", "q": query, "country": self._country}
        return await self._fetch(AdPlatform.META, params, limit)

    async def fetch_google_ads(self, query: str, domain: str | None = None, limit: int = DEFAULT_LIMIT) -> AdLibraryResponse:
        resolved = domain or guess_domain(query)
        if not resolved:
            return AdLibraryResponse(
                platform=AdPlatform.GOOGLE, success=False, error="Domain is required for Google Ads Transparency"
            )
        params = {"engine": "google_ads_transparency_center", "domain": resolved}
        return await self._fetch(AdPlatform.GOOGLE, params, limit)

    async def fetch_all_platforms(self, query: str, *, domain: str | None = None, limit: int = DEFAULT_LIMIT) -> List[AdCreative]:
        """Query all three libraries concurrently; a failing platform contributes no ads."""

        if not self._api_key:
            raise MissingCredentialsError("SEARCHAPI_KEY is not configured")

        results = await asyncio.gather(
            self.fetch_linkedin_ads(query, limit),
            self.fetch_meta_ads(query, limit),
            self.fetch_google_ads(query, domain, limit),
        )
        ads: List[AdCreative] = []
        for result in results:
            ads.extend(result.ads)
        return ads

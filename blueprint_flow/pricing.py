"""Resolve a competitor's real pricing tiers from its own pricing page.

Pricing proposed by the research model is never trusted. The resolver finds
the pricing URL (sitemap, then HEAD probes, then the scraper's own path
heuristic), scrapes it, asks a low-temperature model for a strictly quoted
extraction, scores how well the extraction is grounded in the page, and
drops tiers that look like add-ons or other products.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from textwrap import dedent
from typing import Any, Iterable, List, Mapping, Sequence

import httpx

from .config import GEMINI_FLASH
from .errors import BlueprintError
from .extraction import parse_json_object
from .llm import PromptSpec, ResearchModel
from .scraper import PageScraper, normalize_base_url
from .schemas import (
    CompetitorSnapshot,
    ConfidenceBreakdown,
    ConfidenceLevel,
    PricingSource,
    PricingTier,
    ScoredPricingResult,
)
from .validators import as_text, ensure_string_list

_LOGGER = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; PricingBot/1.0)"
SITEMAP_PATHS = ("/sitemap.xml", "/sitemap_index.xml", "/sitemap-0.xml")
PRICING_PATHS = ("/pricing", "/plans", "/price", "/buy", "/pricing-plans")
EXCLUDED_PATHS = (
    "/blog",
    "/help",
    "/docs",
    "/academy",
    "/learn",
    "/guide",
    "/tutorial",
    "/article",
    "/support",
    "/faq",
    "/changelog",
    "/templates",
    "/examples",
    "/community",
    "/resources",
)
SITEMAP_TIMEOUT = 10.0
HEAD_TIMEOUT = 5.0
SCRAPE_TIMEOUT = 30.0
EXTRACTION_TIMEOUT = 45.0
MAX_MARKDOWN_CHARS = 15_000
LOW_WORD_COUNT = 50

TRUSTED_CONFIDENCE = 60
MIN_TIER_RELEVANCE = 40

_LOC_PATTERN = re.compile(r"<loc>(.*?)</loc>", re.IGNORECASE | re.DOTALL)

EXTRACTION_SYSTEM_PROMPT = dedent(
    """
    You are a pricing data extraction specialist. Extract structured pricing
    information from scraped pricing page content.

    CRITICAL RULES:
    1. Extract ONLY pricing explicitly stated in the content. Do NOT infer, guess, or make up prices.
    2. If you cannot find explicit pricing, return an empty tiers array.
    3. For each tier, include a sourceQuote: the exact text from the content where you found it.
    4. "Contact sales", "Contact us", "Get a quote" or "Custom pricing" means custom pricing; set hasCustomPricing to true.
    5. Price formats vary: "$99/mo", "$1,188/year", "€99/mo", "Free".
    6. Extract billing period and currency when identifiable.
    7. The "price" field is REQUIRED and never empty. Use "Custom" or "Contact sales" for unlisted
       enterprise tiers and "Free" for free tiers.

    REQUIRED JSON OUTPUT STRUCTURE:
    {
      "tiers": [
        {
          "tier": "tier name exactly as shown",
          "price": "price exactly as shown",
          "description": "brief description if available",
          "targetAudience": "who this tier is for if mentioned",
          "features": ["key features if listed"],
          "limitations": "usage limits if mentioned",
          "sourceQuote": "exact quote from content"
        }
      ],
      "hasCustomPricing": boolean,
      "currency": "USD | EUR | GBP | null",
      "billingPeriod": "monthly | annual | null"
    }

    If no pricing information is found, return: {"tiers": [], "hasCustomPricing": false}
    """
)


class ExtractedTier(PricingTier):
    """Tier as extracted from a page, with the quote it was read from."""

    source_quote: str | None = None


@dataclass(frozen=True)
class TierRelevance:
    score: int
    category: str
    explanation: str
    signals: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ScoredTier:
    tier: ExtractedTier
    relevance: TierRelevance


def failure_result(error: str, source_url: str | None = None) -> ScoredPricingResult:
    return ScoredPricingResult(success=False, error=error, source_url=source_url)


# ---------------------------------------------------------------------------
# URL discovery
# ---------------------------------------------------------------------------


def rank_sitemap_urls(urls: Iterable[str]) -> str | None:
    """Pick the most pricing-like URL from a sitemap, preferring shallow ``/pricing`` pages."""

    best: tuple[int, str] | None = None
    for url in urls:
        lower = url.lower()
        if any(path in lower for path in EXCLUDED_PATHS):
            continue
        if "/pricing" not in lower and "/plans" not in lower and "/price" not in lower:
            continue
        score = 100 - url.count("/") * 10
        if lower.endswith("/pricing") or lower.endswith("/pricing/"):
            score += 50
        elif lower.endswith("/plans") or lower.endswith("/plans/"):
            score += 40
        if best is None or score > best[0]:
            best = (score, url)
    return best[1] if best else None


async def find_pricing_url_from_sitemap(client: httpx.AsyncClient, base_url: str) -> str | None:
    for path in SITEMAP_PATHS:
        try:
            response = await client.get(f"{base_url}{path}", timeout=SITEMAP_TIMEOUT)
        except httpx.HTTPError:
            continue
        if not response.is_success:
            continue
        locations = [match.strip() for match in _LOC_PATTERN.findall(response.text)]
        candidate = rank_sitemap_urls(locations)
        if candidate:
            return candidate
    return None


async def find_pricing_url_from_common_paths(client: httpx.AsyncClient, base_url: str) -> str | None:
    for path in PRICING_PATHS:
        url = f"{base_url}{path}"
        try:
            response = await client.head(url, timeout=HEAD_TIMEOUT, follow_redirects=True)
        except httpx.HTTPError:
            continue
        if response.is_success:
            return url
    return None


async def find_pricing_url(base_url: str, *, http_client: httpx.AsyncClient | None = None) -> str | None:
    """Sitemap scan first, HEAD probes of conventional paths second."""

    if http_client is not None:
        return await find_pricing_url_from_sitemap(http_client, base_url) or await find_pricing_url_from_common_paths(
            http_client, base_url
        )
    async with httpx.AsyncClient(headers={"User-Agent": USER_AGENT}) as client:
        return await find_pricing_url_from_sitemap(client, base_url) or await find_pricing_url_from_common_paths(
            client, base_url
        )


# ---------------------------------------------------------------------------
# Confidence scoring
# ---------------------------------------------------------------------------

_PLAUSIBLE_PRICE_PATTERNS = [
    re.compile(r"^free$", re.IGNORECASE),
    re.compile(r"^custom", re.IGNORECASE),
    re.compile(r"^contact", re.IGNORECASE),
    re.compile(r"^get\s+quote", re.IGNORECASE),
    re.compile(r"^[$€£¥]?\s*[\d,]+(?:\.\d{2})?\s*(?:/?\s*(?:mo|month|yr|year|user|seat|agent)?)?$", re.IGNORECASE),
    re.compile(r"^[\d,]+(?:\.\d{2})?\s*(?:usd|eur|gbp)?(?:\s*/?\s*(?:mo|month|yr|year))?$", re.IGNORECASE),
]
_PRICE_DIGITS = re.compile(r"[\d,]+(?:\.\d{2})?")


def _percent(found: int, total: int) -> int:
    return round(found / total * 100) if total else 0


def is_plausible_price(price: str) -> bool:
    lowered = price.lower()
    return any(pattern.search(lowered) for pattern in _PLAUSIBLE_PRICE_PATTERNS)


def source_overlap_score(tiers: Sequence[ExtractedTier], markdown: str) -> int:
    """Share of tier names, price figures and quotes that can be found on the page."""

    if not tiers:
        return 0
    lowered = markdown.lower()
    found = total = 0
    for tier in tiers:
        total += 1
        if tier.tier.lower() in lowered:
            found += 1
        total += 1
        digits = _PRICE_DIGITS.search(tier.price)
        if digits and digits.group(0) in markdown:
            found += 1
        if tier.source_quote:
            total += 1
            words = tier.source_quote.lower().split()
            present = [word for word in words if word in lowered]
            if len(present) >= len(words) * 0.6:
                found += 1
    return _percent(found, total)


def schema_completeness_score(tiers: Sequence[ExtractedTier]) -> int:
    if not tiers:
        return 0
    filled = total = 0
    for tier in tiers:
        total += 7
        filled += 2
        filled += sum(
            1
            for value in (tier.description, tier.target_audience, tier.features, tier.limitations, tier.source_quote)
            if value
        )
    return _percent(filled, total)


def field_plausibility_score(tiers: Sequence[ExtractedTier]) -> int:
    if not tiers:
        return 0
    plausible = total = 0
    for tier in tiers:
        total += 1
        if 1 <= len(tier.tier) <= 50:
            plausible += 1
        total += 1
        if is_plausible_price(tier.price):
            plausible += 1
        if tier.features:
            total += 1
            reasonable = [feature for feature in tier.features if 3 < len(feature) < 200]
            if len(reasonable) >= len(tier.features) * 0.8:
                plausible += 1
    return _percent(plausible, total)


def tier_count_score(count: int) -> int:
    if count == 0:
        return 0
    if 2 <= count <= 5:
        return 100
    if count == 1:
        return 70
    if count == 6:
        return 80
    if 7 <= count <= 10:
        return 60
    return 40


def price_format_score(tiers: Sequence[ExtractedTier]) -> int:
    if not tiers:
        return 0
    return _percent(sum(1 for tier in tiers if is_plausible_price(tier.price)), len(tiers))


def confidence_breakdown(tiers: Sequence[ExtractedTier], markdown: str) -> ConfidenceBreakdown:
    return ConfidenceBreakdown(
        source_overlap=source_overlap_score(tiers, markdown),
        schema_completeness=schema_completeness_score(tiers),
        field_plausibility=field_plausibility_score(tiers),
        tier_count_reasonable=tier_count_score(len(tiers)),
        price_format_valid=price_format_score(tiers),
    )


def overall_confidence(breakdown: ConfidenceBreakdown) -> int:
    weighted = (
        breakdown.source_overlap * 0.4
        + breakdown.schema_completeness * 0.2
        + breakdown.field_plausibility * 0.2
        + breakdown.tier_count_reasonable * 0.1
        + breakdown.price_format_valid * 0.1
    )
    return round(weighted)


def confidence_level(confidence: int) -> ConfidenceLevel:
    if confidence >= 80:
        return ConfidenceLevel.HIGH
    if confidence >= 50:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


# ---------------------------------------------------------------------------
# Model extraction
# ---------------------------------------------------------------------------


def build_extraction_prompt(markdown: str, company_name: str | None = None) -> str:
    content = markdown
    if len(content) > MAX_MARKDOWN_CHARS:
        content = content[:MAX_MARKDOWN_CHARS] + "\n\n[Content truncated...]"
    parts = ["Extract pricing information from this pricing page content:\n"]
    if company_name:
        parts.append(f"Company: {company_name}\n")
    parts.append(f"---BEGIN CONTENT---\n{content}\n---END CONTENT---\n")
    parts.append("Extract all pricing tiers found in the content above. If no pricing is found, return empty tiers array.")
    return "\n".join(parts)


def _parse_tiers(raw: Any) -> List[ExtractedTier]:
    tiers: List[ExtractedTier] = []
    if not isinstance(raw, list):
        return tiers
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = as_text(item.get("tier"))
        if not name:
            continue
        features = ensure_string_list(item.get("features"))
        tiers.append(
            ExtractedTier(
                tier=name,
                price=as_text(item.get("price"), "Custom"),
                description=as_text(item.get("description")) or None,
                target_audience=as_text(item.get("targetAudience")) or None,
                features=features or None,
                limitations=as_text(item.get("limitations")) or None,
                source_quote=as_text(item.get("sourceQuote")) or None,
            )
        )
    return tiers


async def extract_pricing(
    model: ResearchModel,
    markdown: str,
    *,
    source_url: str | None = None,
    company_name: str | None = None,
    extraction_model: str = GEMINI_FLASH,
    timeout: float = EXTRACTION_TIMEOUT,
    logger: logging.Logger | None = None,
) -> ScoredPricingResult:
    """Ask the model for quoted tiers and score the answer against the page."""

    log = logger or _LOGGER
    if not markdown or not markdown.strip():
        return failure_result("Empty markdown content provided", source_url)

    word_count = len(markdown.split())
    if word_count < LOW_WORD_COUNT:
        log.warning("[Pricing Extraction] Very low word count (%d) for %s", word_count, source_url or "unknown")

    spec = PromptSpec(
        system_prompt=EXTRACTION_SYSTEM_PROMPT,
        user_prompt=build_extraction_prompt(markdown, company_name),
        model=extraction_model,
        temperature=0.1,
        max_tokens=2048,
        json_mode=True,
        timeout=timeout,
        section="pricingExtraction",
    )
    try:
        response = await model.research(spec)
        payload = parse_json_object(response.content, "pricingExtraction")
    except BlueprintError as exc:
        log.error("[Pricing Extraction] Failed for %s: %s", source_url or "unknown", exc)
        return failure_result(str(exc), source_url)

    tiers = _parse_tiers(payload.get("tiers"))
    breakdown = confidence_breakdown(tiers, markdown)
    confidence = overall_confidence(breakdown)
    log.info(
        "[Pricing Extraction] Extracted %d tiers for %s (confidence: %d%%)",
        len(tiers),
        source_url or "unknown",
        confidence,
    )
    return ScoredPricingResult(
        success=True,
        tiers=tiers,
        confidence=confidence,
        confidence_level=confidence_level(confidence),
        confidence_breakdown=breakdown,
        has_custom_pricing=bool(payload.get("hasCustomPricing")),
        currency=as_text(payload.get("currency")) or None,
        billing_period=as_text(payload.get("billingPeriod")) or None,
        source_url=source_url,
        cost=response.cost,
    )


# ---------------------------------------------------------------------------
# Tier relevance
# ---------------------------------------------------------------------------

CORE_TIER_NAMES = [
    "free",
    "starter",
    "basic",
    "hobby",
    "personal",
    "individual",
    "solo",
    "pro",
    "professional",
    "plus",
    "premium",
    "team",
    "teams",
    "business",
    "organization",
    "enterprise",
    "scale",
    "growth",
    "unlimited",
]

ADD_ON_KEYWORDS = [
    "add-on",
    "addon",
    "add on",
    "module",
    "extra",
    "additional",
    "upgrade",
    "boost",
    "credits",
    "storage",
    "seats",
    "users",
    "compute",
    "bandwidth",
    "sso",
    "sla",
    "support",
    "dedicated",
    "priority",
    "micro",
    "small",
    "medium",
    "large",
    "xl",
    "xxl",
    "2xl",
    "4xl",
    "8xl",
    "16xl",
]

KNOWN_PRODUCT_LINES = {
    "figma": ["design", "figjam", "slides", "dev mode"],
    "adobe": ["photoshop", "illustrator", "premiere", "after effects", "xd", "lightroom", "indesign", "acrobat"],
    "microsoft": ["office", "365", "teams", "azure", "dynamics", "power bi"],
    "google": ["workspace", "cloud", "analytics", "ads", "maps"],
    "atlassian": ["jira", "confluence", "trello", "bitbucket"],
    "salesforce": ["sales cloud", "service cloud", "marketing cloud", "commerce cloud"],
    "notion": ["notion", "calendar"],
    "slack": ["slack", "huddles", "canvas"],
    "zoom": ["meetings", "phone", "rooms", "webinars", "events"],
    "hubspot": ["marketing hub", "sales hub", "service hub", "cms hub", "operations hub"],
}

CORE_DESCRIPTION_KEYWORDS = ["everything", "all features", "full access", "complete", "unlimited", "core", "essential", "standard"]
ADD_ON_DESCRIPTION_KEYWORDS = ["additional", "extra", "more", "upgrade", "boost"]

_NON_WORD = re.compile(r"[^\w\s]")


def _normalize(text: str) -> str:
    if not text:
        return ""
    return re.sub(r"\s+", " ", _NON_WORD.sub(" ", text.lower().strip()))


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    normalized = _normalize(text)
    return any(keyword in normalized for keyword in keywords)


def _word_overlap(first: str, second: str) -> float:
    words1 = {word for word in _normalize(first).split(" ") if len(word) > 1}
    words2 = {word for word in _normalize(second).split(" ") if len(word) > 1}
    if not words1 or not words2:
        return 0.0
    return len(words1 & words2) / min(len(words1), len(words2))


def _is_standard_tier_name(name: str) -> bool:
    normalized = _normalize(name)
    return any(
        normalized == core or normalized.startswith(core + " ") or normalized.endswith(" " + core)
        for core in CORE_TIER_NAMES
    )


def _different_product(tier: PricingTier, competitor_name: str, product_name: str | None) -> str | None:
    first_word = _normalize(competitor_name).split(" ")[0] if competitor_name else ""
    product_lines = KNOWN_PRODUCT_LINES.get(first_word, [])
    if not product_lines or not product_name:
        return None
    tier_text = _normalize(f"{tier.tier} {tier.description or ''}")
    target = _normalize(product_name)
    for product in product_lines:
        if product in tier_text and product not in target:
            return product
    return None


def score_tier_relevance(tier: PricingTier, competitor_name: str, product_name: str | None = None) -> TierRelevance:
    """Score 0-100 how likely *tier* is part of the competitor's main product pricing."""

    signals: List[str] = []
    score = 0
    description = tier.description or ""
    tier_text = f"{tier.tier} {description}"

    target_name = product_name or competitor_name
    overlap = _word_overlap(tier_text, target_name)
    if overlap >= 0.5:
        score += 40
        signals.append(f'Tier matches product name "{target_name}"')
    elif overlap > 0:
        score += round(overlap * 40)
        signals.append(f"Partial product name match ({round(overlap * 100)}%)")

    other_product = _different_product(tier, competitor_name, product_name)
    if other_product:
        score -= 30
        signals.append(f"Different product detected: {other_product}")

    is_standard = _is_standard_tier_name(tier.tier)
    is_add_on = _contains_any(tier_text, ADD_ON_KEYWORDS)
    if is_standard and not is_add_on:
        score += 30
        signals.append("Standard SaaS tier structure")
    elif is_standard:
        score += 15
        signals.append("Standard tier name but has add-on characteristics")
    elif is_add_on:
        score += 5
        signals.append("Appears to be an add-on or supplementary pricing")
    else:
        score += 10
        signals.append("Non-standard tier naming")

    price = (tier.price or "").lower()
    if "free" in price or "$0" in price:
        score += 20
        signals.append("Free tier (common for main product)")
    elif any(marker in price for marker in ("/mo", "/month", "/yr", "/year", "/user")):
        score += 15
        signals.append("Subscription pricing pattern")
    elif any(marker in price for marker in ("contact", "custom", "sales")):
        score += 10
        signals.append("Enterprise/custom pricing")
    elif any(marker in price for marker in ("/gb", "/hour", "/credit", "usage")):
        score += 5
        signals.append("Usage-based pricing (likely add-on)")

    if description:
        if _contains_any(description, CORE_DESCRIPTION_KEYWORDS):
            score += 10
            signals.append("Description suggests core product")
        elif _contains_any(description, ADD_ON_DESCRIPTION_KEYWORDS):
            score += 3
            signals.append("Description suggests add-on/upgrade")
        else:
            score += 5
            signals.append("Neutral description")

    score = max(0, min(100, score))
    if other_product:
        category = "different_product"
        explanation = f"This tier appears to be for {other_product}, a different product from {competitor_name}."
    elif is_add_on and score < 50:
        category = "add_on"
        explanation = "This appears to be add-on or supplementary pricing, not the main product tiers."
    elif score >= 60:
        category = "core_product"
        explanation = f"This tier appears to be part of {competitor_name}'s main product pricing."
    elif score >= 40:
        category = "add_on" if is_add_on else "unclear"
        explanation = "Could not confidently determine if this is core product pricing."
    else:
        category = "unclear"
        explanation = f"Low confidence match for {competitor_name}'s core offering."
    return TierRelevance(score=score, category=category, explanation=explanation, signals=signals)


def filter_relevant_pricing(
    tiers: Sequence[ExtractedTier],
    competitor_name: str,
    *,
    product_name: str | None = None,
    min_score: int = MIN_TIER_RELEVANCE,
    include_add_ons: bool = False,
) -> List[ScoredTier]:
    """Keep tiers scoring at least *min_score*, highest first."""

    scored = [ScoredTier(tier, score_tier_relevance(tier, competitor_name, product_name)) for tier in tiers]
    kept = [
        item
        for item in scored
        if item.relevance.score >= min_score or (include_add_ons and item.relevance.category == "add_on")
    ]
    kept.sort(key=lambda item: item.relevance.score, reverse=True)
    return kept


# ---------------------------------------------------------------------------
# Deduplication and merge
# ---------------------------------------------------------------------------


def _filled_fields(tier: PricingTier) -> int:
    return sum(1 for value in (tier.description, tier.target_audience, tier.features, tier.limitations) if value)


def deduplicate_tiers(tiers: Iterable[PricingTier]) -> List[PricingTier]:
    """Collapse tiers with the same normalised name and price, keeping the most complete one."""

    seen: dict[str, PricingTier] = {}
    for tier in tiers:
        key = f"{tier.tier.lower().strip()}:{tier.price.lower().strip()}"
        plain = PricingTier(
            tier=tier.tier,
            price=tier.price,
            description=tier.description or None,
            target_audience=tier.target_audience or None,
            features=tier.features or None,
            limitations=tier.limitations or None,
        )
        existing = seen.get(key)
        if existing is None or _filled_fields(plain) > _filled_fields(existing):
            seen[key] = plain
    return list(seen.values())


def apply_pricing(
    competitor: CompetitorSnapshot,
    result: ScoredPricingResult | None,
    *,
    logger: logging.Logger | None = None,
) -> CompetitorSnapshot:
    """Replace any pricing on *competitor* with trusted scraped tiers or an unavailable marker."""

    log = logger or _LOGGER
    if result is not None and result.success and result.confidence >= TRUSTED_CONFIDENCE:
        tiers = deduplicate_tiers(result.tiers)
        if tiers:
            log.info(
                "[Competitor Research] %s: using scraped pricing - %d tiers (confidence: %d%%)",
                competitor.name,
                len(tiers),
                result.confidence,
            )
            return competitor.model_copy(
                update={
                    "pricing_tiers": tiers,
                    "pricing_source": PricingSource.SCRAPED,
                    "pricing_confidence": result.confidence,
                    "pricing_note": f"Scraped from {result.source_url}" if result.source_url else None,
                }
            )

    if result is None:
        reason = "scraping failed"
    elif result.error:
        reason = result.error
    elif result.success and result.confidence >= TRUSTED_CONFIDENCE:
        reason = "no relevant tiers"
    else:
        reason = f"low confidence ({result.confidence}%)"
    log.info("[Competitor Research] %s: pricing unavailable - %s", competitor.name, reason)

    if competitor.website:
        note = f"Pricing unavailable - verify at {competitor.website.rstrip('/')}/pricing"
    else:
        note = "Pricing unavailable - no website URL"
    return competitor.model_copy(
        update={
            "pricing_tiers": [],
            "pricing_source": PricingSource.UNAVAILABLE,
            "pricing_confidence": 0,
            "pricing_note": note,
        }
    )


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class PricingResolver:
    """Discover, scrape, extract and filter pricing for one competitor at a time."""

    def __init__(
        self,
        scraper: PageScraper,
        model: ResearchModel,
        *,
        extraction_model: str = GEMINI_FLASH,
        http_client: httpx.AsyncClient | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._scraper = scraper
        self._model = model
        self._extraction_model = extraction_model
        self._http = http_client
        self._logger = logger or _LOGGER

    def is_available(self) -> bool:
        return self._scraper.is_available()

    async def resolve(self, name: str, website: str | None) -> ScoredPricingResult | None:
        """Return a scored result, or ``None`` when the competitor has no website."""

        if not website:
            self._logger.info("[Competitor Research] %s: no website URL - skipping pricing", name)
            return None

        base_url = normalize_base_url(website)
        pricing_url = await find_pricing_url(base_url, http_client=self._http)

        if pricing_url is None:
            self._logger.info("[Competitor Research] %s: trying scraper pricing discovery", name)
            page = await self._scraper.scrape_pricing_page(website)
            if not page.found or not page.markdown:
                return failure_result("No pricing page found")
            return await self._extract_and_filter(page.markdown, page.url or f"{base_url}/pricing", name)

        self._logger.info("[Competitor Research] %s: found pricing URL %s", name, pricing_url)
        scraped = await self._scraper.scrape(pricing_url, timeout=SCRAPE_TIMEOUT)
        if not scraped.success or not scraped.markdown:
            return failure_result(scraped.error or "Scrape failed", pricing_url)
        return await self._extract_and_filter(scraped.markdown, pricing_url, name)

    async def _extract_and_filter(self, markdown: str, source_url: str, name: str) -> ScoredPricingResult:
        result = await extract_pricing(
            self._model,
            markdown,
            source_url=source_url,
            company_name=name,
            extraction_model=self._extraction_model,
            logger=self._logger,
        )
        if not result.success or not result.tiers:
            return result
        relevant = filter_relevant_pricing(result.tiers, name)
        self._logger.info(
            "[Competitor Research] %s: extracted %d tiers, %d passed relevance filter (confidence: %d%%)",
            name,
            len(result.tiers),
            len(relevant),
            result.confidence,
        )
        return result.model_copy(update={"tiers": [item.tier for item in relevant]})


def pricing_results_by_name(pairs: Iterable[tuple[str, ScoredPricingResult | None]]) -> Mapping[str, ScoredPricingResult]:
    """Build the per-competitor map after concurrent resolution has finished."""

    return {name: result for name, result in pairs if result is not None}

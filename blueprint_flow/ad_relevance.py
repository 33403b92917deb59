"""Score ad creatives against a competitor and merge them into its snapshot."""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence

from .name_matching import (
    calculate_similarity,
    extract_company_from_domain,
    is_advertiser_match,
    normalize_company_name,
)
from .schemas import AdCreative, AdRelevance, CompetitorSnapshot, EnrichedAdCreative, PricingTier, RelevanceCategory

_LOGGER = logging.getLogger(__name__)

MIN_RELEVANCE_SCORE = 40
UNSCORED_RELEVANCE = 50
MAX_THEMES = 5
MAX_PRICING_TEXT = 50_000

LEAD_MAGNET_KEYWORDS = [
    "free guide",
    "free ebook",
    "free book",
    "download free",
    "get the guide",
    "get your free",
    "webinar",
    "masterclass",
    "workshop",
    "checklist",
    "template",
    "playbook",
    "blueprint",
    "cheat sheet",
    "toolkit",
    "framework",
    "secrets",
    "revealed",
    "discover how",
    "learn how",
]

PRODUCT_KEYWORDS = [
    "attribution",
    "analytics",
    "dashboard",
    "roi",
    "revenue",
    "marketing",
    "data",
    "tracking",
    "metrics",
    "report",
    "platform",
    "software",
    "tool",
    "solution",
    "automation",
    "insight",
    "performance",
    "conversion",
]

KNOWN_SUBSIDIARIES: Dict[str, List[str]] = {
    "salesforce": ["slack", "tableau", "mulesoft", "heroku", "pardot"],
    "microsoft": ["linkedin", "github", "azure"],
    "google": ["youtube", "waze", "fitbit"],
    "meta": ["facebook", "instagram", "whatsapp", "oculus"],
    "amazon": ["aws", "twitch", "audible", "imdb", "whole foods"],
    "oracle": ["netsuite", "java"],
    "adobe": ["figma", "magento", "marketo"],
    "hubspot": ["clearbit"],
    "intuit": ["mailchimp", "quickbooks", "turbotax", "mint"],
}

STOP_WORDS = frozenset(
    """
    that this with from your have more will what when which their they been
    were being other some than then into only over such make like just also
    well very most even back much here take each where after before about
    through could should
    """.split()
)

CTA_PATTERNS = [
    re.compile(phrase, re.IGNORECASE)
    for phrase in (
        r"get started",
        r"sign up",
        r"try free",
        r"learn more",
        r"book a demo",
        r"start free",
        r"join now",
        r"contact us",
        r"request demo",
        r"free trial",
        r"schedule",
    )
]

_PRICE = r"\$[\d,]+(?:\.\d{2})?(?:\s*/\s*(?:mo|month|yr|year|user|seat))?"
PRICE_PATTERN = re.compile(_PRICE, re.IGNORECASE)
TIER_PRICE_PATTERN = re.compile(r"(?:(\w+)\s+(?:plan|tier)?[:.]?\s*)?" + _PRICE, re.IGNORECASE)
_TLD_SUFFIX = re.compile(r"\.(ai|io|com|co|net|org|app|dev|tech)$", re.IGNORECASE)
_NON_WORD = re.compile(r"[^\w\s]")


# ---------------------------------------------------------------------------
# Relevance scoring
# ---------------------------------------------------------------------------


def related_brands(company: str) -> List[str]:
    """Parent, subsidiaries and siblings of *company* from the known-ownership table."""

    normalized = normalize_company_name(company)
    related = list(KNOWN_SUBSIDIARIES.get(normalized, []))
    for parent, subsidiaries in KNOWN_SUBSIDIARIES.items():
        if normalized in subsidiaries:
            related.append(parent)
            related.extend(name for name in subsidiaries if name != normalized)
    return related


def _mentions_company(text: str, company: str) -> bool:
    if not text or not company:
        return False
    normalized_text = normalize_company_name(text)
    normalized_company = normalize_company_name(company)
    if not normalized_company:
        return False
    return normalized_company in normalized_text or normalized_company in normalized_text.split()


def assess_ad_relevance(ad: AdCreative, company: str, domain: str | None = None) -> AdRelevance:
    """Score how likely *ad* belongs to *company* (0-100) and categorise it."""

    signals: List[str] = []
    searched_core = normalize_company_name(_TLD_SUFFIX.sub("", company))
    advertiser = ad.advertiser or ""
    advertiser_core = normalize_company_name(advertiser)
    content = f"{ad.headline or ''} {ad.body or ''}".lower()

    similarity = max(
        calculate_similarity(advertiser, company),
        calculate_similarity(advertiser_core, searched_core),
    )
    score = round(similarity * 40)

    advertiser_words = [word for word in advertiser_core.split() if len(word) > 2]
    searched_words = [word for word in searched_core.split() if len(word) > 2]
    extra_words = [
        word for word in advertiser_words if not any(sw in word or word in sw for sw in searched_words)
    ]
    has_extra_words = len(extra_words) >= 2

    if similarity >= 0.9:
        signals.append("Advertiser name closely matches search")
    elif similarity >= 0.7:
        signals.append("Advertiser name partially matches search")
    elif similarity < 0.5 or has_extra_words:
        signals.append("Advertiser name differs from search")
        if has_extra_words:
            score -= 20
            signals.append(f'Different company detected: "{" ".join(extra_words)}"')

    is_subsidiary = any(calculate_similarity(advertiser_core, brand) >= 0.8 for brand in related_brands(company))
    if is_subsidiary:
        signals.append(f"{advertiser} is a known related brand")
        score = max(score, 35)

    mentions_company = _mentions_company(content, company)
    if mentions_company:
        score += 30
        signals.append("Ad content mentions searched company")
    else:
        signals.append("Ad content does not mention searched company")

    if domain:
        domain_company = extract_company_from_domain(domain)
        if domain_company:
            url_match = bool(ad.details_url) and domain_company.lower() in ad.details_url.lower()
            if url_match or is_advertiser_match(advertiser_core, domain_company):
                score += 20
                signals.append("Domain association confirmed")

    is_lead_magnet = any(keyword in content for keyword in LEAD_MAGNET_KEYWORDS)
    if is_lead_magnet:
        signals.append("Ad appears to be lead generation content")
        if similarity < 0.8:
            score -= 10
            signals.append("Lead magnet from different brand")

    is_partnership = False
    if similarity >= 0.8 and not mentions_company and not is_lead_magnet:
        if not any(keyword in content for keyword in PRODUCT_KEYWORDS):
            is_partnership = True
            score -= 25
            signals.append("Ad content appears unrelated to company product (possible partnership/sponsored ad)")

    if similarity >= 0.8 and mentions_company:
        category = RelevanceCategory.DIRECT
        explanation = "This ad directly promotes the searched company's products or services."
    elif similarity >= 0.8 and is_lead_magnet:
        category = RelevanceCategory.LEAD_MAGNET
        explanation = (
            f"This appears to be a lead generation ad from {advertiser}. It may promote educational "
            "content (book, guide, webinar) rather than their core product."
        )
    elif is_partnership:
        category = RelevanceCategory.LEAD_MAGNET
        explanation = (
            f"This ad is from {advertiser} but promotes unrelated content (likely a partnership or "
            "sponsored ad)."
        )
    elif similarity >= 0.8:
        category = RelevanceCategory.BRAND_AWARENESS
        explanation = f"This ad is from {advertiser} but doesn't mention their product directly."
    elif is_subsidiary:
        category = RelevanceCategory.SUBSIDIARY
        explanation = f"{advertiser} is a brand related to or owned by {company}."
    elif similarity < 0.5:
        category = RelevanceCategory.UNCLEAR
        explanation = f'This ad is from {advertiser}, which doesn\'t clearly match "{company}".'
    else:
        category = RelevanceCategory.UNCLEAR
        explanation = f'The relationship between this ad and "{company}" is not immediately clear.'

    return AdRelevance(
        score=max(0, min(100, score)),
        category=category,
        explanation=explanation,
        signals=signals,
    )


# ---------------------------------------------------------------------------
# Messaging analysis
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AdMessagingAnalysis:
    """Recurring words, CTA phrases and price mentions found in ad copy."""

    themes: List[str] = field(default_factory=list)
    common_ctas: List[str] = field(default_factory=list)
    price_mentions: List[str] = field(default_factory=list)


def analyze_ad_messaging(ads: Sequence[AdCreative]) -> AdMessagingAnalysis:
    parts: List[str] = []
    for ad in ads:
        if ad.headline:
            parts.append(ad.headline.lower())
        if ad.body:
            parts.append(ad.body.lower())
    if not parts:
        return AdMessagingAnalysis()

    full_text = " ".join(parts)
    words = [
        word
        for word in _NON_WORD.sub(" ", full_text).split()
        if len(word) > 3 and word not in STOP_WORDS
    ]
    # Counter.most_common keeps first-seen order among ties.
    themes = [word for word, count in Counter(words).most_common() if count >= 2][:MAX_THEMES]

    ctas: List[str] = []
    for pattern in CTA_PATTERNS:
        match = pattern.search(full_text)
        if match and match.group(0).lower() not in ctas:
            ctas.append(match.group(0).lower())

    prices = list(dict.fromkeys(match.group(0) for match in PRICE_PATTERN.finditer(full_text)))
    return AdMessagingAnalysis(themes=themes, common_ctas=ctas, price_mentions=prices)


def extract_pricing_from_text(text: str) -> List[PricingTier]:
    """Pull ``<name> plan: $X/mo`` style mentions out of free text."""

    if not text:
        return []
    tiers: List[PricingTier] = []
    for match in TIER_PRICE_PATTERN.finditer(text[:MAX_PRICING_TEXT]):
        price = PRICE_PATTERN.search(match.group(0))
        if price:
            tiers.append(PricingTier(tier=match.group(1) or "Standard", price=price.group(0)))
    return tiers


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def domain_from_url(url: str | None) -> str | None:
    """Hostname of *url* without ``www.`` (``https://www.tesla.com/about`` -> ``tesla.com``)."""

    if not url:
        return None
    match = re.match(r"(?:https?://)?(?:www\.)?([^/\s?#:]+)", url.strip(), re.IGNORECASE)
    return match.group(1).lower() if match else None


def ad_search_query(competitor: CompetitorSnapshot) -> str:
    """Ad-library query: first domain label when a website is known, else the compacted name."""

    domain = domain_from_url(competitor.website)
    if domain:
        return domain.split(".")[0]
    return re.sub(r"[^a-z0-9]", "", competitor.name.lower())


def _relevance_score(ad: EnrichedAdCreative) -> int:
    return ad.relevance.score if ad.relevance is not None else UNSCORED_RELEVANCE


def merge_ads_into_competitor(
    competitor: CompetitorSnapshot,
    ads: Sequence[AdCreative],
    *,
    logger: logging.Logger | None = None,
) -> CompetitorSnapshot:
    """Return a copy of *competitor* with scored, filtered and sorted creatives attached."""

    log = logger or _LOGGER
    domain = domain_from_url(competitor.website)

    scored: List[EnrichedAdCreative] = []
    for ad in ads:
        enriched = ad if isinstance(ad, EnrichedAdCreative) else EnrichedAdCreative(**ad.model_dump())
        if enriched.relevance is None:
            enriched = enriched.model_copy(
                update={"relevance": assess_ad_relevance(enriched, competitor.name, domain)}
            )
        scored.append(enriched)

    kept = [ad for ad in scored if _relevance_score(ad) >= MIN_RELEVANCE_SCORE]
    dropped = [ad for ad in scored if _relevance_score(ad) < MIN_RELEVANCE_SCORE]
    if dropped:
        log.info(
            "[Competitor Research] %s: filtered out %d low-relevance ads: [%s]",
            competitor.name,
            len(dropped),
            ", ".join(f"{ad.advertiser} ({_relevance_score(ad)})" for ad in dropped),
        )
    kept.sort(key=_relevance_score, reverse=True)

    update: Dict[str, object] = {"ad_creatives": kept}
    if kept:
        analysis = analyze_ad_messaging(kept)
        if analysis.themes:
            update["ad_messaging_themes"] = analysis.themes
            log.info(
                "[Competitor Research] %s: %d messaging themes from %d ads",
                competitor.name,
                len(analysis.themes),
                len(kept),
            )
        if not competitor.pricing_tiers:
            ad_text = " ".join(f"{ad.headline or ''} {ad.body or ''}" for ad in kept)
            provisional = extract_pricing_from_text(ad_text)
            if provisional:
                update["pricing_tiers"] = provisional
                log.info(
                    "[Competitor Research] %s: %d provisional pricing tiers from ad text",
                    competitor.name,
                    len(provisional),
                )
    return competitor.model_copy(update=update)


def merge_ads_into_competitors(
    competitors: Sequence[CompetitorSnapshot],
    ads_by_name: Mapping[str, Sequence[AdCreative]],
    *,
    logger: logging.Logger | None = None,
) -> List[CompetitorSnapshot]:
    return [
        merge_ads_into_competitor(competitor, ads_by_name.get(competitor.name, []), logger=logger)
        for competitor in competitors
    ]

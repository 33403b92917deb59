from __future__ import annotations

import json

import httpx
import pytest

from blueprint_flow.errors import ResearchTimeoutError
from blueprint_flow.pricing import (
    ExtractedTier,
    PricingResolver,
    apply_pricing,
    confidence_breakdown,
    deduplicate_tiers,
    extract_pricing,
    filter_relevant_pricing,
    find_pricing_url,
    is_plausible_price,
    overall_confidence,
    rank_sitemap_urls,
    score_tier_relevance,
    tier_count_score,
)
from blueprint_flow.schemas import (
    CompetitorSnapshot,
    ConfidenceLevel,
    PricingSource,
    PricingTier,
    ScoredPricingResult,
)

PRICING_PAGE = """
# Acme pricing

Simple plans for every stage of your business. Billed monthly, cancel any time.

## Starter
$29/mo
For individuals getting organised with a single workspace and shared boards.

## Pro
$99/mo
For growing teams who need automations, reporting and guest access.

## Enterprise
Contact sales for custom pricing, SAML, audit logs and a dedicated success manager.
"""

EXTRACTION_ANSWER = json.dumps(
    {
        "tiers": [
            {"tier": "Starter", "price": "$29/mo", "description": "For individuals", "sourceQuote": "Starter $29/mo"},
            {"tier": "Pro", "price": "$99/mo", "description": "For growing teams", "sourceQuote": "Pro $99/mo"},
            {"tier": "Enterprise", "price": None},
        ],
        "hasCustomPricing": True,
        "currency": "USD",
        "billingPeriod": "monthly",
    }
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.parametrize(
    "price, expected",
    [
        ("Free", True),
        ("$29/mo", True),
        ("Contact sales", True),
        ("1,200 USD/year", True),
        ("about thirty bucks", False),
    ],
)
def test_is_plausible_price(price: str, expected: bool) -> None:
    assert is_plausible_price(price) is expected


@pytest.mark.parametrize("count, expected", [(0, 0), (1, 70), (3, 100), (6, 80), (8, 60), (12, 40)])
def test_tier_count_score(count: int, expected: int) -> None:
    assert tier_count_score(count) == expected


def test_confidence_of_empty_extraction_is_zero() -> None:
    breakdown = confidence_breakdown([], PRICING_PAGE)
    assert overall_confidence(breakdown) == 0


def test_rank_sitemap_urls_prefers_shallow_pricing_page() -> None:
    urls = [
        "https://acme.com/blog/pricing-tips",
        "https://acme.com/en/plans",
        "https://acme.com/pricing",
        "https://acme.com/about",
    ]
    assert rank_sitemap_urls(urls) == "https://acme.com/pricing"
    assert rank_sitemap_urls(["https://acme.com/help/pricing"]) is None


@pytest.mark.asyncio
async def test_find_pricing_url_reads_sitemap() -> None:
    sitemap = (
        "<urlset><url><loc>https://acme.com/blog/pricing-tips</loc></url>"
        "<url><loc>https://acme.com/en/plans</loc></url>"
        "<url><loc>https://acme.com/pricing</loc></url></urlset>"
    )

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/sitemap.xml":
            return httpx.Response(200, text=sitemap)
        return httpx.Response(404)

    async with _client(handler) as client:
        assert await find_pricing_url("https://acme.com", http_client=client) == "https://acme.com/pricing"


@pytest.mark.asyncio
async def test_find_pricing_url_falls_back_to_head_probes() -> None:
    probed = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "HEAD":
            probed.append(request.url.path)
            return httpx.Response(200 if request.url.path == "/plans" else 404)
        return httpx.Response(404)

    async with _client(handler) as client:
        assert await find_pricing_url("https://acme.com", http_client=client) == "https://acme.com/plans"
    assert probed == ["/pricing", "/plans"]


@pytest.mark.asyncio
async def test_extract_pricing_scores_grounded_answer(fake_model_factory) -> None:
    model = fake_model_factory({"pricingExtraction": EXTRACTION_ANSWER}, cost=0.002)

    result = await extract_pricing(model, PRICING_PAGE, source_url="https://acme.com/pricing", company_name="Acme")

    assert result.success
    assert [tier.tier for tier in result.tiers] == ["Starter", "Pro", "Enterprise"]
    assert result.tiers[2].price == "Custom"
    assert result.confidence_breakdown.source_overlap == 88
    assert result.confidence_breakdown.schema_completeness == 48
    assert result.confidence == 85
    assert result.confidence_level is ConfidenceLevel.HIGH
    assert result.has_custom_pricing
    assert result.cost == pytest.approx(0.002)

    spec = model.specs[0]
    assert spec.temperature == pytest.approx(0.1)
    assert "Company: Acme" in spec.user_prompt


@pytest.mark.asyncio
async def test_extract_pricing_failures(fake_model_factory) -> None:
    empty = await extract_pricing(fake_model_factory({}), "   ")
    assert not empty.success
    assert empty.error == "Empty markdown content provided"

    garbled = await extract_pricing(fake_model_factory({"pricingExtraction": "no json here"}), PRICING_PAGE)
    assert not garbled.success

    timed_out = fake_model_factory({"pricingExtraction": ResearchTimeoutError("pricingExtraction", 45)})
    result = await extract_pricing(timed_out, PRICING_PAGE, source_url="https://acme.com/pricing")
    assert not result.success
    assert result.source_url == "https://acme.com/pricing"


def test_core_tier_scores_as_core_product() -> None:
    tier = PricingTier(tier="Acme Pro", price="$49/month", description="Everything in Starter plus unlimited projects")
    relevance = score_tier_relevance(tier, "Acme")
    assert relevance.score == 95
    assert relevance.category == "core_product"


def test_other_product_line_is_flagged() -> None:
    tier = PricingTier(tier="FigJam Professional", price="$5/mo")
    relevance = score_tier_relevance(tier, "Figma", product_name="Figma Design")
    assert relevance.category == "different_product"


def test_filter_relevant_pricing_drops_add_ons() -> None:
    core = ExtractedTier(tier="Acme Pro", price="$49/month", description="Everything in Starter plus unlimited projects")
    storage = ExtractedTier(tier="Extra storage", price="$5/GB", description="Additional 100GB")

    kept = filter_relevant_pricing([storage, core], "Acme")
    assert [item.tier.tier for item in kept] == ["Acme Pro"]

    with_add_ons = filter_relevant_pricing([storage, core], "Acme", include_add_ons=True)
    assert [item.tier.tier for item in with_add_ons] == ["Acme Pro", "Extra storage"]
    assert with_add_ons[1].relevance.category == "add_on"


def test_deduplicate_tiers_keeps_most_complete() -> None:
    tiers = [
        ExtractedTier(tier="Pro", price="$99/mo", source_quote="Pro $99/mo"),
        PricingTier(tier=" pro ", price="$99/MO", description="For teams", features=["Automations", "Reports"]),
        PricingTier(tier="Starter", price="$29/mo"),
    ]

    deduped = deduplicate_tiers(tiers)

    assert len(deduped) == 2
    assert deduped[0].description == "For teams"
    assert all(type(tier) is PricingTier for tier in deduped)


def test_apply_pricing_uses_trusted_result() -> None:
    competitor = CompetitorSnapshot(
        name="Acme",
        website="https://acme.com/",
        pricing_tiers=[PricingTier(tier="Standard", price="$20/mo")],
    )
    result = ScoredPricingResult(
        success=True,
        tiers=[PricingTier(tier="Starter", price="$29/mo")],
        confidence=72,
        source_url="https://acme.com/pricing",
    )

    updated = apply_pricing(competitor, result)

    assert updated.pricing_source is PricingSource.SCRAPED
    assert updated.pricing_confidence == 72
    assert [tier.tier for tier in updated.pricing_tiers] == ["Starter"]
    assert updated.pricing_note == "Scraped from https://acme.com/pricing"


@pytest.mark.parametrize(
    "result",
    [
        None,
        ScoredPricingResult(success=True, tiers=[PricingTier(tier="Starter", price="$29/mo")], confidence=45),
        ScoredPricingResult(success=True, tiers=[], confidence=90),
        ScoredPricingResult(success=False, error="No pricing page found"),
    ],
)
def test_apply_pricing_marks_untrusted_results_unavailable(result: ScoredPricingResult | None) -> None:
    competitor = CompetitorSnapshot(
        name="Acme",
        website="https://acme.com/",
        pricing_tiers=[PricingTier(tier="Standard", price="$20/mo")],
    )

    updated = apply_pricing(competitor, result)

    assert updated.pricing_source is PricingSource.UNAVAILABLE
    assert updated.pricing_tiers == []
    assert updated.pricing_confidence == 0
    assert updated.pricing_note == "Pricing unavailable - verify at https://acme.com/pricing"


def test_apply_pricing_without_website() -> None:
    updated = apply_pricing(CompetitorSnapshot(name="Acme"), None)
    assert updated.pricing_note == "Pricing unavailable - no website URL"


@pytest.mark.asyncio
async def test_resolver_discovers_scrapes_and_filters(fake_model_factory, fake_scraper_factory) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "HEAD" and request.url.path == "/pricing":
            return httpx.Response(200)
        return httpx.Response(404)

    scraper = fake_scraper_factory({"https://acme.com/pricing": PRICING_PAGE})
    model = fake_model_factory({"pricingExtraction": EXTRACTION_ANSWER})

    async with _client(handler) as client:
        resolver = PricingResolver(scraper, model, http_client=client)
        result = await resolver.resolve("Acme", "https://acme.com/about")
        missing = await resolver.resolve("Acme", None)

    assert missing is None
    assert scraper.scraped == ["https://acme.com/pricing"]
    assert result is not None and result.success
    assert result.source_url == "https://acme.com/pricing"
    assert [tier.tier for tier in result.tiers] == ["Starter", "Pro", "Enterprise"]
    assert result.confidence == 85


@pytest.mark.asyncio
async def test_resolver_reports_missing_pricing_page(fake_model_factory, fake_scraper_factory) -> None:
    async with _client(lambda request: httpx.Response(404)) as client:
        resolver = PricingResolver(fake_scraper_factory(), fake_model_factory({}), http_client=client)
        result = await resolver.resolve("Acme", "acme.com")

    assert result is not None
    assert not result.success
    assert result.error == "No pricing page found"

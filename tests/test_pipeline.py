from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict, List

import httpx
import pytest

from blueprint_flow.ads import SearchApiAdLibrary
from blueprint_flow.competitors import CompetitorResearcher
from blueprint_flow.config import CLAUDE_SONNET, PERPLEXITY_SONAR
from blueprint_flow.errors import UpstreamServiceError
from blueprint_flow.pipeline import BlueprintPipeline
from blueprint_flow.pricing import PricingResolver
from blueprint_flow.research import (
    ICPValidationResearcher,
    MarketOverviewResearcher,
    OfferViabilityResearcher,
    SectionResearcher,
    SynthesisResearcher,
)
from blueprint_flow.reviews import ReviewMiner
from blueprint_flow.schemas import (
    AdCreative,
    AdPlatform,
    BlueprintProgress,
    BlueprintSection,
    Citation,
    PartialBlueprint,
    PricingSource,
    PricingTier,
    ScoredPricingResult,
)
from blueprint_flow.scraper import FirecrawlScraper

CONTEXT = "## BUSINESS CONTEXT FOR STRATEGIC BLUEPRINT\n- Business Name: Acme"

COMPETITOR_ANSWER = json.dumps(
    {
        "competitors": [
            {"name": "HubSpot", "website": "https://www.hubspot.com", "positioning": "All-in-one CRM"},
            {"name": "Pipedrive", "website": "pipedrive.com"},
        ],
        "creativeLibrary": {"adHooks": ["Close more deals"]},
        "funnelBreakdown": {},
        "gapsAndOpportunities": {},
    }
)

TRUSTPILOT_PAGE = (
    "# HubSpot Reviews\nTrustScore 4.5 | 2,000 reviews\n\n"
    "Rated 5 out of 5 stars\n"
    "The reporting dashboard saves our sales team hours every single week.\n"
    "Date of experience: March 01, 2024\n\n"
    "Rated 2 out of 5 stars\n"
    "Billing support took far too long to resolve a duplicate charge on our subscription.\n"
    "Date of experience: March 03, 2024\n\n"
    "Rated 4 out of 5 stars\n"
    "Solid platform overall, although the pricing jumps sharply once you add more seats.\n"
    "Date of experience: March 09, 2024\n"
)


def _answers(**overrides: object) -> Dict[str, object]:
    answers: Dict[str, object] = {
        "industryMarketOverview": '{"categorySnapshot": {"category": "CRM"}}',
        "icpAnalysisValidation": "{}",
        "offerAnalysisViability": "{}",
        "competitorAnalysis": COMPETITOR_ANSWER,
        "crossAnalysisSynthesis": "{}",
    }
    answers.update(overrides)
    return answers


def _pipeline(model, competitor: CompetitorResearcher | None = None) -> BlueprintPipeline:
    return BlueprintPipeline(
        {
            BlueprintSection.INDUSTRY_MARKET_OVERVIEW: MarketOverviewResearcher(model),
            BlueprintSection.ICP_ANALYSIS_VALIDATION: ICPValidationResearcher(model),
            BlueprintSection.OFFER_ANALYSIS_VIABILITY: OfferViabilityResearcher(model),
            BlueprintSection.COMPETITOR_ANALYSIS: competitor
            or CompetitorResearcher(model, enable_ads=False, enable_pricing=False, enable_reviews=False),
            BlueprintSection.CROSS_ANALYSIS_SYNTHESIS: SynthesisResearcher(model),
        }
    )


class FakeAdFetcher:
    def __init__(self, ads: Dict[str, List[AdCreative]], failing: set[str] | None = None) -> None:
        self.ads = ads
        self.failing = failing or set()
        self.queries: List[tuple[str, str | None]] = []

    async def fetch_all_platforms(self, query: str, *, domain: str | None = None, limit: int = 10) -> List[AdCreative]:
        self.queries.append((query, domain))
        if query in self.failing:
            raise UpstreamServiceError("SearchAPI", "upstream exploded", 500)
        return self.ads.get(query, [])


class FakePricingResolver:
    def __init__(self, results: Dict[str, ScoredPricingResult]) -> None:
        self.results = results

    def is_available(self) -> bool:
        return True

    async def resolve(self, name: str, website: str | None) -> ScoredPricingResult | None:
        if name not in self.results:
            raise httpx.ConnectError("connection refused")
        return self.results[name]


def _hubspot_ad(body: str = "Try HubSpot free") -> AdCreative:
    return AdCreative(
        platform=AdPlatform.LINKEDIN,
        id="li-1",
        advertiser="HubSpot",
        headline="HubSpot CRM for growing teams",
        body=body,
    )


def test_pipeline_requires_every_section(fake_model_factory) -> None:
    model = fake_model_factory(_answers())
    with pytest.raises(ValueError, match="crossAnalysisSynthesis"):
        BlueprintPipeline({BlueprintSection.INDUSTRY_MARKET_OVERVIEW: MarketOverviewResearcher(model)})


@pytest.mark.asyncio
async def test_full_run_assembles_blueprint(fake_model_factory) -> None:
    citation = Citation(url="https://example.com/crm-report", title="CRM report")
    model = fake_model_factory(_answers(), citations={"industryMarketOverview": [citation]})
    events: List[BlueprintProgress] = []

    result = await _pipeline(model).run(CONTEXT, on_progress=events.append)

    assert result.success
    assert result.error is None
    assert [spec.section for spec in model.specs] == [
        "industryMarketOverview",
        "icpAnalysisValidation",
        "offerAnalysisViability",
        "competitorAnalysis",
        "crossAnalysisSynthesis",
    ]

    output = result.output
    assert output is not None
    assert output.industry_market_overview.category_snapshot.category == "CRM"
    assert output.metadata.version == "1.1"
    assert output.metadata.overall_confidence == 75
    assert output.metadata.models_used == [PERPLEXITY_SONAR, CLAUDE_SONNET]
    assert output.metadata.section_citations == {"industryMarketOverview": [citation]}
    assert output.metadata.total_cost == pytest.approx(0.05)
    assert set(result.metadata.section_timings) == {section.value for section in BlueprintSection}

    hubspot, pipedrive = output.competitor_analysis.competitors
    assert hubspot.pricing_source is PricingSource.UNAVAILABLE
    assert hubspot.pricing_note == "Pricing unavailable - verify at https://www.hubspot.com/pricing"
    assert pipedrive.pricing_tiers == []

    assert events[0].progress_percentage == 0
    assert events[0].current_section is BlueprintSection.INDUSTRY_MARKET_OVERVIEW
    assert events[-1].progress_percentage == 100
    assert "with 1 citations" in events[1].message

    wire = result.to_wire()
    assert wire["output"]["industryMarketOverview"]["categorySnapshot"]["category"] == "CRM"


@pytest.mark.asyncio
async def test_later_sections_see_earlier_results(fake_model_factory) -> None:
    model = fake_model_factory(_answers())

    await _pipeline(model).run(CONTEXT)

    icp_spec = model.specs[1]
    assert "CONTEXT FROM PREVIOUS MARKET ANALYSIS" in icp_spec.system_prompt
    synthesis_spec = model.specs[-1]
    assert synthesis_spec.model == CLAUDE_SONNET
    assert "HubSpot" in synthesis_spec.system_prompt


@pytest.mark.asyncio
async def test_failed_section_returns_partial_output(fake_model_factory, caplog: pytest.LogCaptureFixture) -> None:
    model = fake_model_factory(_answers(offerAnalysisViability="I could not find anything useful."))
    events: List[BlueprintProgress] = []

    with caplog.at_level(logging.ERROR, logger="blueprint_flow.pipeline"):
        result = await _pipeline(model).run(CONTEXT, on_progress=events.append)

    assert not result.success
    assert not result.cancelled
    assert result.output is None
    assert result.failed_section is BlueprintSection.OFFER_ANALYSIS_VIABILITY
    assert "offerAnalysisViability" in result.error
    partial = result.partial_output
    assert partial.industry_market_overview is not None
    assert partial.icp_analysis_validation is not None
    assert partial.offer_analysis_viability is None
    assert partial.competitor_analysis is None
    assert len(model.specs) == 3
    assert events[-1].error == result.error
    assert any(record.levelno == logging.ERROR for record in caplog.records)


@pytest.mark.asyncio
async def test_cancellation_stops_before_next_section(fake_model_factory) -> None:
    model = fake_model_factory(_answers())
    cancel = asyncio.Event()

    def on_progress(progress: BlueprintProgress) -> None:
        if progress.completed_sections:
            cancel.set()

    result = await _pipeline(model).run(CONTEXT, cancel_event=cancel, on_progress=on_progress)

    assert result.cancelled
    assert not result.success
    assert result.error is None
    assert result.partial_output.industry_market_overview is not None
    assert result.partial_output.icp_analysis_validation is None
    assert len(model.specs) == 1


@pytest.mark.asyncio
async def test_competitor_enrichment_merges_every_branch(
    fake_model_factory, fake_scraper_factory, caplog: pytest.LogCaptureFixture
) -> None:
    model = fake_model_factory({"competitorAnalysis": COMPETITOR_ANSWER})
    fetcher = FakeAdFetcher({"hubspot": [_hubspot_ad()]}, failing={"pipedrive"})
    resolver = FakePricingResolver(
        {
            "HubSpot": ScoredPricingResult(
                success=True,
                tiers=[PricingTier(tier="Starter", price="$20/mo")],
                confidence=80,
                source_url="https://www.hubspot.com/pricing",
                cost=0.003,
            )
        }
    )
    scraper = fake_scraper_factory({"https://www.trustpilot.com/review/hubspot.com": TRUSTPILOT_PAGE})
    researcher = CompetitorResearcher(
        model, ad_fetcher=fetcher, pricing_resolver=resolver, review_miner=ReviewMiner(scraper)
    )

    with caplog.at_level(logging.INFO, logger="blueprint_flow.competitors"):
        output = await researcher.run(CONTEXT, PartialBlueprint())

    assert sorted(fetcher.queries) == [("hubspot", "hubspot.com"), ("pipedrive", "pipedrive.com")]
    assert output.cost == pytest.approx(0.013)

    hubspot, pipedrive = output.data.competitors
    assert [ad.id for ad in hubspot.ad_creatives] == ["li-1"]
    assert hubspot.ad_creatives[0].relevance.score == 90
    assert hubspot.pricing_source is PricingSource.SCRAPED
    assert hubspot.pricing_confidence == 80
    assert [tier.tier for tier in hubspot.pricing_tiers] == ["Starter"]
    assert hubspot.review_data is not None
    assert hubspot.review_data.trust_score == pytest.approx(4.5)
    assert len(hubspot.review_data.reviews) == 3

    assert pipedrive.ad_creatives == []
    assert pipedrive.pricing_source is PricingSource.UNAVAILABLE
    assert pipedrive.pricing_note == "Pricing unavailable - verify at pipedrive.com/pricing"
    assert pipedrive.review_data is None
    assert any("Failed to fetch ads for Pipedrive" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_disabled_pricing_drops_provisional_ad_tiers(fake_model_factory) -> None:
    model = fake_model_factory({"competitorAnalysis": COMPETITOR_ANSWER})
    fetcher = FakeAdFetcher({"hubspot": [_hubspot_ad("Try HubSpot Starter plan: $15/mo")]})
    researcher = CompetitorResearcher(model, ad_fetcher=fetcher, enable_pricing=False, enable_reviews=False)

    output = await researcher.run(CONTEXT, PartialBlueprint())

    hubspot = output.data.competitors[0]
    assert len(hubspot.ad_creatives) == 1
    assert hubspot.pricing_tiers == []
    assert hubspot.pricing_source is PricingSource.UNAVAILABLE


@pytest.mark.asyncio
async def test_missing_ad_credentials_skip_ads_quietly(fake_model_factory, caplog: pytest.LogCaptureFixture) -> None:
    model = fake_model_factory({"competitorAnalysis": COMPETITOR_ANSWER})
    researcher = CompetitorResearcher(
        model, ad_fetcher=SearchApiAdLibrary(None), enable_pricing=False, enable_reviews=False
    )

    with caplog.at_level(logging.INFO, logger="blueprint_flow.competitors"):
        output = await researcher.run(CONTEXT, PartialBlueprint())

    assert all(competitor.ad_creatives == [] for competitor in output.data.competitors)
    assert not any(record.levelno >= logging.WARNING for record in caplog.records)


@pytest.mark.asyncio
async def test_html_error_pages_degrade_enrichment(fake_model_factory) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>Bad gateway page</html>")

    model = fake_model_factory({"competitorAnalysis": COMPETITOR_ANSWER})
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        scraper = FirecrawlScraper("firecrawl-key", http_client=http)
        researcher = CompetitorResearcher(
            model,
            ad_fetcher=SearchApiAdLibrary("searchapi-key", http_client=http),
            pricing_resolver=PricingResolver(scraper, model, http_client=http),
            review_miner=ReviewMiner(scraper),
        )
        output = await researcher.run(CONTEXT, PartialBlueprint())

    hubspot, pipedrive = output.data.competitors
    for competitor in (hubspot, pipedrive):
        assert competitor.ad_creatives == []
        assert competitor.pricing_source is PricingSource.UNAVAILABLE
        assert competitor.pricing_tiers == []
        assert competitor.review_data is None
    assert hubspot.pricing_note == "Pricing unavailable - verify at https://www.hubspot.com/pricing"


class BrokenPricingResolver:
    def is_available(self) -> bool:
        return True

    async def resolve(self, name: str, website: str | None) -> ScoredPricingResult | None:
        raise RuntimeError(f"unexpected payload for {name}")


@pytest.mark.asyncio
async def test_unexpected_branch_error_marks_pricing_unavailable(
    fake_model_factory, caplog: pytest.LogCaptureFixture
) -> None:
    model = fake_model_factory({"competitorAnalysis": COMPETITOR_ANSWER})
    researcher = CompetitorResearcher(
        model, ad_fetcher=FakeAdFetcher({}), pricing_resolver=BrokenPricingResolver(), enable_reviews=False
    )

    with caplog.at_level(logging.ERROR, logger="blueprint_flow.competitors"):
        output = await researcher.run(CONTEXT, PartialBlueprint())

    assert all(c.pricing_source is PricingSource.UNAVAILABLE for c in output.data.competitors)
    assert any("unexpected payload for HubSpot" in record.getMessage() for record in caplog.records)


def test_researcher_without_normalize_cannot_be_built(fake_model_factory) -> None:
    class PromptOnlyResearcher(SectionResearcher):
        section = BlueprintSection.INDUSTRY_MARKET_OVERVIEW

        def build_prompt(self, context, prior):
            return MarketOverviewResearcher(fake_model_factory({})).build_prompt(context, prior)

    with pytest.raises(TypeError, match="normalize"):
        PromptOnlyResearcher(fake_model_factory({}))

"""Competitor researcher: model research followed by ad, pricing and review enrichment."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Mapping, Sequence, Tuple

from .ad_relevance import ad_search_query, domain_from_url, merge_ads_into_competitors
from .ads import AdFetcher
from .config import PERPLEXITY_SONAR
from .errors import MissingCredentialsError
from .llm import PromptSpec, ResearchModel
from .pricing import PricingResolver, apply_pricing, failure_result, pricing_results_by_name
from .prompts import competitor_analysis_prompt
from .reviews import ReviewMiner
from .schemas import (
    AdCreative,
    BlueprintSection,
    CompetitorAnalysis,
    CompetitorSnapshot,
    PartialBlueprint,
    ReviewData,
    ScoredPricingResult,
    SectionOutput,
)
from .research import SectionResearcher
from .validators import normalize_competitor_analysis

_LOGGER = logging.getLogger(__name__)

AdPair = Tuple[str, List[AdCreative]]
PricingPair = Tuple[str, ScoredPricingResult | None]
ReviewPair = Tuple[str, ReviewData | None]


class CompetitorResearcher(SectionResearcher[CompetitorAnalysis]):
    """Research competitors, then attach ads, scraped pricing and reviews.

    Each enrichment branch is switched by a feature flag and needs its collaborator.
    Branches run concurrently; every branch returns ``(name, result)`` pairs and the
    per-competitor maps are built only after all of them have finished.
    """

    section = BlueprintSection.COMPETITOR_ANALYSIS

    def __init__(
        self,
        model: ResearchModel,
        *,
        ad_fetcher: AdFetcher | None = None,
        pricing_resolver: PricingResolver | None = None,
        review_miner: ReviewMiner | None = None,
        enable_ads: bool = True,
        enable_pricing: bool = True,
        enable_reviews: bool = True,
        model_name: str = PERPLEXITY_SONAR,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(model, model_name=model_name, logger=logger or _LOGGER)
        self._ads = ad_fetcher
        self._pricing = pricing_resolver
        self._reviews = review_miner
        self._enable_ads = enable_ads
        self._enable_pricing = enable_pricing
        self._enable_reviews = enable_reviews

    def build_prompt(self, context: str, prior: PartialBlueprint) -> PromptSpec:
        return competitor_analysis_prompt(context, model=self._model_name)

    def normalize(self, raw: Mapping[str, Any]) -> CompetitorAnalysis:
        return normalize_competitor_analysis(raw)

    async def run(self, context: str, prior: PartialBlueprint) -> SectionOutput[CompetitorAnalysis]:
        spec = self.build_prompt(context, prior)
        response = await self.call_model(spec)
        analysis = self.validate(response)
        enriched, enrichment_cost = await self.enrich(analysis)
        return SectionOutput[CompetitorAnalysis](
            data=enriched,
            citations=response.citations,
            model=response.model,
            cost=response.cost + enrichment_cost,
        )

    async def enrich(self, analysis: CompetitorAnalysis) -> Tuple[CompetitorAnalysis, float]:
        competitors = analysis.competitors
        self._logger.info(
            "[Competitor Research] Starting parallel fetch: ads + pricing for %d competitors", len(competitors)
        )
        ad_pairs, pricing_pairs, review_pairs = await asyncio.gather(
            self._fetch_ads(competitors),
            self._resolve_pricing(competitors),
            self._mine_reviews(competitors),
        )
        ads_by_name = dict(ad_pairs)
        pricing_by_name = pricing_results_by_name(pricing_pairs)
        reviews_by_name = {name: data for name, data in review_pairs if data is not None}
        self._logger.info(
            "[Competitor Research] Fetched ads for %d competitors, scraped pricing for %d",
            sum(1 for ads in ads_by_name.values() if ads),
            len(pricing_by_name),
        )

        merged = merge_ads_into_competitors(competitors, ads_by_name, logger=self._logger)
        merged = [
            apply_pricing(competitor, pricing_by_name.get(competitor.name), logger=self._logger)
            for competitor in merged
        ]
        if reviews_by_name:
            merged = [
                competitor.model_copy(update={"review_data": reviews_by_name[competitor.name]})
                if competitor.name in reviews_by_name
                else competitor
                for competitor in merged
            ]
        cost = sum(result.cost for result in pricing_by_name.values())
        return analysis.model_copy(update={"competitors": merged}), cost

    async def _fetch_ads(self, competitors: Sequence[CompetitorSnapshot]) -> List[AdPair]:
        if not self._enable_ads or self._ads is None:
            return []
        return list(await asyncio.gather(*(self._fetch_ads_for(competitor) for competitor in competitors)))

    async def _fetch_ads_for(self, competitor: CompetitorSnapshot) -> AdPair:
        query = ad_search_query(competitor)
        try:
            ads = await self._ads.fetch_all_platforms(query, domain=domain_from_url(competitor.website))
        except MissingCredentialsError as exc:
            self._logger.info("[Competitor Research] Ad library unavailable for %s: %s", competitor.name, exc)
            return competitor.name, []
        except Exception as exc:
            self._logger.warning("[Competitor Research] Failed to fetch ads for %s: %s", competitor.name, exc)
            return competitor.name, []
        self._logger.info("[Competitor Research] %s: fetched %d ads (query %r)", competitor.name, len(ads), query)
        return competitor.name, ads

    async def _resolve_pricing(self, competitors: Sequence[CompetitorSnapshot]) -> List[PricingPair]:
        if not self._enable_pricing or self._pricing is None:
            return []
        if not self._pricing.is_available():
            self._logger.warning("[Competitor Research] Page scraper not available, skipping pricing scraping")
            return []
        return list(await asyncio.gather(*(self._resolve_pricing_for(competitor) for competitor in competitors)))

    async def _resolve_pricing_for(self, competitor: CompetitorSnapshot) -> PricingPair:
        try:
            result = await self._pricing.resolve(competitor.name, competitor.website)
        except Exception as exc:
            self._logger.error("[Competitor Research] %s: pricing scraping error: %s", competitor.name, exc)
            result = failure_result(str(exc))
        return competitor.name, result

    async def _mine_reviews(self, competitors: Sequence[CompetitorSnapshot]) -> List[ReviewPair]:
        if not self._enable_reviews or self._reviews is None or not self._reviews.is_available():
            return []
        return list(await asyncio.gather(*(self._mine_reviews_for(competitor) for competitor in competitors)))

    async def _mine_reviews_for(self, competitor: CompetitorSnapshot) -> ReviewPair:
        try:
            data = await self._reviews.mine(competitor.name, competitor.website)
        except Exception as exc:
            self._logger.warning("[Competitor Research] %s: review mining failed: %s", competitor.name, exc)
            data = None
        return competitor.name, data

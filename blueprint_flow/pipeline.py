"""Sequential orchestrator for the five blueprint sections."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping

from .ads import SearchApiAdLibrary
from .competitors import CompetitorResearcher
from .config import Settings, get_settings
from .errors import GenerationCancelled
from .llm import ResearchClient, ResearchModel
from .pricing import PricingResolver
from .research import (
    ICPValidationResearcher,
    MarketOverviewResearcher,
    OfferViabilityResearcher,
    SectionResearcher,
    SynthesisResearcher,
)
from .reviews import ReviewMiner
from .schemas import (
    SECTION_ORDER,
    BlueprintMetadata,
    BlueprintProgress,
    BlueprintResult,
    BlueprintSection,
    Citation,
    PartialBlueprint,
    RunMetadata,
    StrategicBlueprintOutput,
)
from .scraper import FirecrawlScraper

_LOGGER = logging.getLogger(__name__)

BLUEPRINT_VERSION = "1.1"
OVERALL_CONFIDENCE = 75

ProgressCallback = Callable[[BlueprintProgress], None]

_FIELD_NAMES = {
    BlueprintSection.INDUSTRY_MARKET_OVERVIEW: "industry_market_overview",
    BlueprintSection.ICP_ANALYSIS_VALIDATION: "icp_analysis_validation",
    BlueprintSection.OFFER_ANALYSIS_VIABILITY: "offer_analysis_viability",
    BlueprintSection.COMPETITOR_ANALYSIS: "competitor_analysis",
    BlueprintSection.CROSS_ANALYSIS_SYNTHESIS: "cross_analysis_synthesis",
}


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def build_researchers(
    model: ResearchModel,
    settings: Settings,
    *,
    logger: logging.Logger | None = None,
) -> Dict[BlueprintSection, SectionResearcher]:
    """Wire the default researchers and their HTTP collaborators from *settings*."""

    scraper = FirecrawlScraper(settings.firecrawl_api_key, logger=logger)
    return {
        BlueprintSection.INDUSTRY_MARKET_OVERVIEW: MarketOverviewResearcher(
            model, model_name=settings.research_model, logger=logger
        ),
        BlueprintSection.ICP_ANALYSIS_VALIDATION: ICPValidationResearcher(
            model, model_name=settings.research_model, logger=logger
        ),
        BlueprintSection.OFFER_ANALYSIS_VIABILITY: OfferViabilityResearcher(
            model, model_name=settings.research_model, logger=logger
        ),
        BlueprintSection.COMPETITOR_ANALYSIS: CompetitorResearcher(
            model,
            ad_fetcher=SearchApiAdLibrary(settings.searchapi_key, logger=logger),
            pricing_resolver=PricingResolver(
                scraper, model, extraction_model=settings.extraction_model, logger=logger
            ),
            review_miner=ReviewMiner(scraper, logger=logger),
            enable_ads=settings.enable_ads,
            enable_pricing=settings.enable_pricing,
            enable_reviews=settings.enable_reviews,
            model_name=settings.research_model,
            logger=logger,
        ),
        BlueprintSection.CROSS_ANALYSIS_SYNTHESIS: SynthesisResearcher(
            model, model_name=settings.synthesis_model, logger=logger
        ),
    }


class BlueprintPipeline:
    """Run market, ICP, offer, competitor and synthesis research in order.

    ``run`` never raises. A failing section stops the run and the sections
    completed so far are returned as ``partial_output`` together with the
    error and the failing section. Cancellation is checked before each section.
    """

    def __init__(
        self,
        researchers: Mapping[BlueprintSection, SectionResearcher],
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        missing = [section.value for section in SECTION_ORDER if section not in researchers]
        if missing:
            raise ValueError(f"No researcher configured for: {', '.join(missing)}")
        self._researchers = dict(researchers)
        self._logger = logger or _LOGGER

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        logger: logging.Logger | None = None,
    ) -> "BlueprintPipeline":
        settings = settings or get_settings()
        client = ResearchClient.from_settings(settings, logger=logger)
        return cls(build_researchers(client, settings, logger=logger), logger=logger)

    async def run(
        self,
        context: str,
        cancel_event: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BlueprintResult:
        start = time.perf_counter()
        partial = PartialBlueprint()
        completed: List[BlueprintSection] = []
        section_timings: Dict[str, int] = {}
        section_citations: Dict[str, List[Citation]] = {}
        models_used: List[str] = []
        total_cost = 0.0

        def emit(section: BlueprintSection | None, message: str, error: str | None = None) -> None:
            if on_progress is None:
                return
            on_progress(
                BlueprintProgress(
                    current_section=section,
                    current_label=section.label if section else None,
                    completed_sections=list(completed),
                    progress_percentage=round(len(completed) / len(SECTION_ORDER) * 100),
                    message=message,
                    error=error,
                )
            )

        def run_metadata() -> RunMetadata:
            return RunMetadata(
                total_time=_elapsed_ms(start),
                total_cost=round(total_cost, 4),
                section_timings=dict(section_timings),
            )

        current: BlueprintSection | None = None
        try:
            for section in SECTION_ORDER:
                if cancel_event is not None and cancel_event.is_set():
                    raise GenerationCancelled(f"Generation cancelled before {section.label}")
                current = section
                section_start = time.perf_counter()
                emit(section, f"Generating {section.label}...")
                self._logger.info("[Blueprint] Starting %s", section.value)

                result = await self._researchers[section].run(context, partial.model_copy())

                partial = partial.model_copy(update={_FIELD_NAMES[section]: result.data})
                total_cost += result.cost
                if result.model and result.model not in models_used:
                    models_used.append(result.model)
                if result.citations:
                    section_citations[section.value] = list(result.citations)
                section_timings[section.value] = _elapsed_ms(section_start)
                completed.append(section)

                suffix = f" (with {len(result.citations)} citations)" if result.citations else ""
                emit(section, f"Completed {section.label}{suffix}")
                self._logger.info(
                    "[Blueprint] Completed %s in %dms (cost $%.4f)",
                    section.value,
                    section_timings[section.value],
                    result.cost,
                )
        except GenerationCancelled as exc:
            self._logger.info("[Blueprint] %s", exc)
            emit(None, "Generation cancelled")
            return BlueprintResult(
                success=False,
                cancelled=True,
                partial_output=partial,
                metadata=run_metadata(),
            )
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            self._logger.exception("[Blueprint] %s failed: %s", current.value if current else "pipeline", message)
            emit(current, f"Error: {message}", message)
            return BlueprintResult(
                success=False,
                partial_output=partial,
                error=message,
                failed_section=current,
                metadata=run_metadata(),
            )

        metadata = run_metadata()
        output = StrategicBlueprintOutput(
            industry_market_overview=partial.industry_market_overview,
            icp_analysis_validation=partial.icp_analysis_validation,
            offer_analysis_viability=partial.offer_analysis_viability,
            competitor_analysis=partial.competitor_analysis,
            cross_analysis_synthesis=partial.cross_analysis_synthesis,
            metadata=BlueprintMetadata(
                generated_at=datetime.now(timezone.utc).isoformat(),
                version=BLUEPRINT_VERSION,
                processing_time=metadata.total_time,
                total_cost=round(total_cost, 4),
                models_used=models_used,
                overall_confidence=OVERALL_CONFIDENCE,
                section_citations=section_citations,
            ),
        )
        emit(None, "Strategic Blueprint generation complete!")
        return BlueprintResult(success=True, output=output, metadata=metadata)

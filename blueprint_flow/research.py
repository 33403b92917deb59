"""Single-call section researchers: prompt, model call, JSON extraction, validation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, Mapping, TypeVar

from pydantic import BaseModel

from .config import CLAUDE_SONNET, PERPLEXITY_SONAR
from .extraction import parse_json_object
from .llm import PromptSpec, ResearchModel, ResearchResponse
from .prompts import (
    icp_validation_prompt,
    market_overview_prompt,
    offer_viability_prompt,
    synthesis_prompt,
)
from .schemas import (
    BlueprintSection,
    CrossAnalysisSynthesis,
    ICPAnalysisValidation,
    IndustryMarketOverview,
    OfferAnalysisViability,
    PartialBlueprint,
    SectionOutput,
)
from .validators import (
    normalize_icp_validation,
    normalize_market_overview,
    normalize_offer_viability,
    normalize_synthesis,
)

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class SectionResearcher(ABC, Generic[T]):
    """Run one section: build the prompt, call the model, extract JSON and validate it.

    Errors from the model call, extraction or validation propagate unchanged so the
    pipeline can stop at the failing section.
    """

    section: BlueprintSection

    def __init__(
        self,
        model: ResearchModel,
        *,
        model_name: str = PERPLEXITY_SONAR,
        logger: logging.Logger | None = None,
    ) -> None:
        self._model = model
        self._model_name = model_name
        self._logger = logger or _LOGGER

    @abstractmethod
    def build_prompt(self, context: str, prior: PartialBlueprint) -> PromptSpec:
        """Return the prompt for this section given the sections finished so far."""

    @abstractmethod
    def normalize(self, raw: Mapping[str, Any]) -> T:
        """Turn the extracted JSON object into the validated section record."""

    async def call_model(self, spec: PromptSpec) -> ResearchResponse:
        self._logger.info("[%s] Calling %s (timeout %.0fs)", self.section.value, spec.model, spec.timeout)
        return await self._model.research(spec)

    def validate(self, response: ResearchResponse) -> T:
        raw = parse_json_object(response.content, self.section.value)
        return self.normalize(raw)

    async def run(self, context: str, prior: PartialBlueprint) -> SectionOutput[T]:
        spec = self.build_prompt(context, prior)
        response = await self.call_model(spec)
        data = self.validate(response)
        self._logger.info(
            "[%s] Validated response from %s with %d citations",
            self.section.value,
            response.model,
            len(response.citations),
        )
        return SectionOutput[type(data)](
            data=data,
            citations=response.citations,
            model=response.model,
            cost=response.cost,
        )


class MarketOverviewResearcher(SectionResearcher[IndustryMarketOverview]):
    section = BlueprintSection.INDUSTRY_MARKET_OVERVIEW

    def build_prompt(self, context: str, prior: PartialBlueprint) -> PromptSpec:
        return market_overview_prompt(context, model=self._model_name)

    def normalize(self, raw: Mapping[str, Any]) -> IndustryMarketOverview:
        return normalize_market_overview(raw)


class ICPValidationResearcher(SectionResearcher[ICPAnalysisValidation]):
    section = BlueprintSection.ICP_ANALYSIS_VALIDATION

    def build_prompt(self, context: str, prior: PartialBlueprint) -> PromptSpec:
        return icp_validation_prompt(context, prior.industry_market_overview, model=self._model_name)

    def normalize(self, raw: Mapping[str, Any]) -> ICPAnalysisValidation:
        return normalize_icp_validation(raw)


class OfferViabilityResearcher(SectionResearcher[OfferAnalysisViability]):
    section = BlueprintSection.OFFER_ANALYSIS_VIABILITY

    def build_prompt(self, context: str, prior: PartialBlueprint) -> PromptSpec:
        return offer_viability_prompt(context, prior.icp_analysis_validation, model=self._model_name)

    def normalize(self, raw: Mapping[str, Any]) -> OfferAnalysisViability:
        return normalize_offer_viability(raw)


class SynthesisResearcher(SectionResearcher[CrossAnalysisSynthesis]):
    section = BlueprintSection.CROSS_ANALYSIS_SYNTHESIS

    def __init__(
        self,
        model: ResearchModel,
        *,
        model_name: str = CLAUDE_SONNET,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(model, model_name=model_name, logger=logger)

    def build_prompt(self, context: str, prior: PartialBlueprint) -> PromptSpec:
        return synthesis_prompt(context, prior, model=self._model_name)

    def normalize(self, raw: Mapping[str, Any]) -> CrossAnalysisSynthesis:
        return normalize_synthesis(raw)


"""Normalise raw section payloads into typed records.

Model output is treated as untrusted: enum values outside the vocabulary fall
back to a documented default, lists are coerced to ``list[str]``, scores are
rounded and clamped, derived numbers are recomputed, and nested objects are
filled field by field. Only the competitor section has required top-level
keys; everything else is repaired rather than rejected.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Type, TypeVar

from .errors import SchemaValidationError
from .schemas import (
    AudienceObjection,
    AudienceObjections,
    AwarenessLevel,
    BlueprintSection,
    BuyingBehavior,
    CategorySnapshot,
    CoherenceCheck,
    CompetitorAnalysis,
    CompetitorOffer,
    CompetitorSnapshot,
    CreativeFormats,
    CreativeLibrary,
    CrossAnalysisSynthesis,
    EconomicFeasibility,
    FinalVerdict,
    FitAssessment,
    FormFriction,
    FunnelBreakdown,
    GapsAndOpportunities,
    GapType,
    ICPAnalysisValidation,
    ICPRiskAssessment,
    IndustryMarketOverview,
    InsightPriority,
    KeyInsight,
    MacroRisks,
    MarketDynamics,
    MarketMaturity,
    MarketOfferFit,
    MarketReachability,
    MessagingOpportunities,
    OfferAnalysisViability,
    OfferClarity,
    OfferRecommendation,
    OfferRecommendationDetail,
    OfferRedFlag,
    OfferStrength,
    PainPoints,
    PainSolutionFit,
    PlatformPriority,
    PsychologicalDriver,
    PsychologicalDrivers,
    RecommendedPlatform,
    RiskRating,
    ThreatAssessment,
    ThreatClassification,
    ThreatFactors,
    ValidationStatus,
    WhiteSpaceGap,
)

E = TypeVar("E", bound=Enum)

DEFAULT_SCORE = 5

THREAT_WEIGHTS: Dict[str, float] = {
    "marketShareRecognition": 0.25,
    "adSpendIntensity": 0.20,
    "productOverlap": 0.25,
    "priceCompetitiveness": 0.15,
    "growthTrajectory": 0.15,
}
PRIMARY_THREAT_THRESHOLD = 7.0
SECONDARY_THREAT_THRESHOLD = 4.5

CANONICAL_PLATFORMS = {
    "meta": "Meta",
    "linkedin": "LinkedIn",
    "google": "Google",
    "youtube": "YouTube",
    "tiktok": "TikTok",
}


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def coerce_enum(value: Any, enum_cls: Type[E], default: E) -> E:
    """Return the enum member matching *value*, or *default* when out of vocabulary."""

    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip())
        except ValueError:
            return default
    return default


def ensure_string_list(value: Any) -> List[str]:
    """Coerce *value* to ``list[str]``; anything that is not a list becomes ``[]``."""

    if not isinstance(value, list):
        return []
    return [item if isinstance(item, str) else str(item) for item in value if item is not None]


def as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, dict) else {}


def as_text(value: Any, default: str = "") -> str:
    """Return *value* as a non-empty string, else *default*."""

    if isinstance(value, str):
        return value if value.strip() else default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def clamp_score(value: Any, low: int = 1, high: int = 10, default: int = DEFAULT_SCORE) -> int:
    """Round a 1-10 style score and clamp it into range; non-numbers become *default*."""

    number = _as_number(value)
    if number is None:
        return default
    return max(low, min(high, _round_half_up(number)))


def average_score(scores: Iterable[int]) -> float:
    """Mean of *scores* rounded to one decimal."""

    values = list(scores)
    if not values:
        return 0.0
    return _round_half_up(sum(values) / len(values) * 10) / 10


# ---------------------------------------------------------------------------
# Industry & market overview
# ---------------------------------------------------------------------------


def normalize_market_overview(raw: Mapping[str, Any]) -> IndustryMarketOverview:
    """Fill every field of the market overview, substituting defaults as needed."""

    snapshot = as_mapping(raw.get("categorySnapshot"))
    dynamics = as_mapping(raw.get("marketDynamics"))
    macro = as_mapping(dynamics.get("macroRisks"))
    pains = as_mapping(raw.get("painPoints"))
    drivers = as_mapping(raw.get("psychologicalDrivers"))
    objections = as_mapping(raw.get("audienceObjections"))
    messaging = as_mapping(raw.get("messagingOpportunities"))

    return IndustryMarketOverview(
        category_snapshot=CategorySnapshot(
            category=as_text(snapshot.get("category"), "Unknown category"),
            market_maturity=coerce_enum(snapshot.get("marketMaturity"), MarketMaturity, MarketMaturity.GROWING),
            awareness_level=coerce_enum(snapshot.get("awarenessLevel"), AwarenessLevel, AwarenessLevel.MEDIUM),
            buying_behavior=coerce_enum(snapshot.get("buyingBehavior"), BuyingBehavior, BuyingBehavior.MIXED),
            average_sales_cycle=as_text(snapshot.get("averageSalesCycle"), "Variable"),
            seasonality=as_text(snapshot.get("seasonality"), "Year-round"),
        ),
        market_dynamics=MarketDynamics(
            demand_drivers=ensure_string_list(dynamics.get("demandDrivers")),
            buying_triggers=ensure_string_list(dynamics.get("buyingTriggers")),
            barriers_to_purchase=ensure_string_list(dynamics.get("barriersToPurchase")),
            macro_risks=MacroRisks(
                regulatory_concerns=as_text(macro.get("regulatoryConcerns"), "None identified"),
                market_downturn_risks=as_text(macro.get("marketDownturnRisks"), "Standard market risk"),
                industry_consolidation=as_text(macro.get("industryConsolidation"), "No significant consolidation"),
            ),
        ),
        pain_points=PainPoints(
            primary=ensure_string_list(pains.get("primary")),
            secondary=ensure_string_list(pains.get("secondary")),
        ),
        psychological_drivers=PsychologicalDrivers(
            drivers=[
                PsychologicalDriver(
                    driver=as_text(item.get("driver"), "Unknown driver"),
                    description=as_text(item.get("description")),
                )
                for item in _mappings(drivers.get("drivers"))
            ]
        ),
        audience_objections=AudienceObjections(
            objections=[
                AudienceObjection(
                    objection=as_text(item.get("objection"), "Unknown objection"),
                    how_to_address=as_text(item.get("howToAddress")),
                )
                for item in _mappings(objections.get("objections"))
            ]
        ),
        messaging_opportunities=MessagingOpportunities(
            opportunities=ensure_string_list(messaging.get("opportunities")),
            summary_recommendations=ensure_string_list(messaging.get("summaryRecommendations")),
        ),
    )


def _mappings(value: Any) -> List[Mapping[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


# ---------------------------------------------------------------------------
# ICP analysis & validation
# ---------------------------------------------------------------------------


def normalize_icp_validation(raw: Mapping[str, Any]) -> ICPAnalysisValidation:
    coherence = as_mapping(raw.get("coherenceCheck"))
    fit = as_mapping(raw.get("painSolutionFit"))
    reach = as_mapping(raw.get("marketReachability"))
    economics = as_mapping(raw.get("economicFeasibility"))
    risks = as_mapping(raw.get("riskAssessment"))
    verdict = as_mapping(raw.get("finalVerdict"))

    def risk(key: str) -> RiskRating:
        return coerce_enum(risks.get(key), RiskRating, RiskRating.MEDIUM)

    return ICPAnalysisValidation(
        coherence_check=CoherenceCheck(
            clearly_defined=as_bool(coherence.get("clearlyDefined")),
            reachable_through_paid_channels=as_bool(coherence.get("reachableThroughPaidChannels")),
            adequate_scale=as_bool(coherence.get("adequateScale")),
            has_pain_offer_solves=as_bool(coherence.get("hasPainOfferSolves")),
            has_budget_and_authority=as_bool(coherence.get("hasBudgetAndAuthority")),
        ),
        pain_solution_fit=PainSolutionFit(
            primary_pain=as_text(fit.get("primaryPain"), "Not identified"),
            offer_component_solving_it=as_text(fit.get("offerComponentSolvingIt")),
            fit_assessment=coerce_enum(fit.get("fitAssessment"), FitAssessment, FitAssessment.MODERATE),
            notes=as_text(fit.get("notes")),
        ),
        market_reachability=MarketReachability(
            meta_volume=as_bool(reach.get("metaVolume")),
            linked_in_volume=as_bool(reach.get("linkedInVolume")),
            google_search_demand=as_bool(reach.get("googleSearchDemand")),
            contradicting_signals=ensure_string_list(reach.get("contradictingSignals")),
        ),
        economic_feasibility=EconomicFeasibility(
            has_budget=as_bool(economics.get("hasBudget")),
            purchases_similar=as_bool(economics.get("purchasesSimilar")),
            tam_aligned_with_cac=as_bool(economics.get("tamAlignedWithCac")),
            notes=as_text(economics.get("notes")),
        ),
        risk_assessment=ICPRiskAssessment(
            reachability=risk("reachability"),
            budget=risk("budget"),
            pain_strength=risk("painStrength"),
            competitiveness=risk("competitiveness"),
        ),
        final_verdict=FinalVerdict(
            status=coerce_enum(verdict.get("status"), ValidationStatus, ValidationStatus.WORKABLE),
            reasoning=as_text(verdict.get("reasoning"), "ICP requires further analysis"),
            recommendations=ensure_string_list(verdict.get("recommendations")),
        ),
    )


# ---------------------------------------------------------------------------
# Offer analysis & viability
# ---------------------------------------------------------------------------


def normalize_offer_viability(raw: Mapping[str, Any]) -> OfferAnalysisViability:
    """Normalise the offer section; ``overallScore`` is always recomputed."""

    clarity = as_mapping(raw.get("offerClarity"))
    strength = as_mapping(raw.get("offerStrength"))
    fit = as_mapping(raw.get("marketOfferFit"))
    recommendation = as_mapping(raw.get("recommendation"))

    scores = {
        key: clamp_score(strength.get(key))
        for key in ("painRelevance", "urgency", "differentiation", "tangibility", "proof", "pricingLogic")
    }

    red_flags: List[OfferRedFlag] = []
    for flag in ensure_string_list(raw.get("redFlags")):
        try:
            member = OfferRedFlag(flag.strip())
        except ValueError:
            continue
        if member not in red_flags:
            red_flags.append(member)

    return OfferAnalysisViability(
        offer_clarity=OfferClarity(
            clearly_articulated=as_bool(clarity.get("clearlyArticulated")),
            solves_real_pain=as_bool(clarity.get("solvesRealPain")),
            benefits_easy_to_understand=as_bool(clarity.get("benefitsEasyToUnderstand")),
            transformation_measurable=as_bool(clarity.get("transformationMeasurable")),
            value_proposition_obvious=as_bool(clarity.get("valuePropositionObvious")),
        ),
        offer_strength=OfferStrength(
            pain_relevance=scores["painRelevance"],
            urgency=scores["urgency"],
            differentiation=scores["differentiation"],
            tangibility=scores["tangibility"],
            proof=scores["proof"],
            pricing_logic=scores["pricingLogic"],
            overall_score=average_score(scores.values()),
        ),
        market_offer_fit=MarketOfferFit(
            market_wants_now=as_bool(fit.get("marketWantsNow")),
            competitors_offer_similar=as_bool(fit.get("competitorsOfferSimilar")),
            price_matches_expectations=as_bool(fit.get("priceMatchesExpectations")),
            proof_strong_for_cold_traffic=as_bool(fit.get("proofStrongForColdTraffic")),
            transformation_believable=as_bool(fit.get("transformationBelievable")),
        ),
        red_flags=red_flags,
        recommendation=OfferRecommendationDetail(
            status=coerce_enum(
                recommendation.get("status"), OfferRecommendation, OfferRecommendation.ADJUST_MESSAGING
            ),
            reasoning=as_text(recommendation.get("reasoning"), "Offer requires further analysis"),
            action_items=ensure_string_list(recommendation.get("actionItems")),
        ),
    )


# ---------------------------------------------------------------------------
# Competitor analysis
# ---------------------------------------------------------------------------


def weighted_threat_score(factors: ThreatFactors) -> float:
    values = factors.model_dump(by_alias=True)
    total = sum(values[key] * weight for key, weight in THREAT_WEIGHTS.items())
    return _round_half_up(total * 10) / 10


def classify_threat(score: float) -> ThreatClassification:
    if score >= PRIMARY_THREAT_THRESHOLD:
        return ThreatClassification.PRIMARY
    if score >= SECONDARY_THREAT_THRESHOLD:
        return ThreatClassification.SECONDARY
    return ThreatClassification.LOW


def _normalize_threat(raw: Any) -> ThreatAssessment | None:
    threat = as_mapping(raw)
    factors_raw = threat.get("threatFactors")
    if not isinstance(factors_raw, dict):
        return None
    factors = ThreatFactors(
        market_share_recognition=clamp_score(factors_raw.get("marketShareRecognition")),
        ad_spend_intensity=clamp_score(factors_raw.get("adSpendIntensity")),
        product_overlap=clamp_score(factors_raw.get("productOverlap")),
        price_competitiveness=clamp_score(factors_raw.get("priceCompetitiveness")),
        growth_trajectory=clamp_score(factors_raw.get("growthTrajectory")),
    )
    score = weighted_threat_score(factors)
    likely = as_text(threat.get("likelyResponse"))
    counter = as_text(threat.get("counterPositioning"))
    return ThreatAssessment(
        threat_factors=factors,
        weighted_threat_score=score,
        classification=classify_threat(score),
        top_ad_hooks=ensure_string_list(threat.get("topAdHooks"))[:3],
        likely_response=likely or None,
        counter_positioning=counter or None,
    )


def _normalize_main_offer(raw: Any) -> CompetitorOffer | None:
    offer = as_mapping(raw)
    headline = as_text(offer.get("headline"))
    if not headline:
        return None
    return CompetitorOffer(
        headline=headline,
        value_proposition=as_text(offer.get("valueProposition"), headline),
        cta=as_text(offer.get("cta"), "Get Started"),
    )


def _normalize_competitor(raw: Mapping[str, Any]) -> CompetitorSnapshot:
    """Build a snapshot; model-proposed pricing tiers and creatives are discarded."""

    website = as_text(raw.get("website"))
    return CompetitorSnapshot(
        name=as_text(raw.get("name"), "Unknown"),
        website=website or None,
        positioning=as_text(raw.get("positioning")),
        offer=as_text(raw.get("offer")),
        price=as_text(raw.get("price"), "Custom pricing"),
        funnels=as_text(raw.get("funnels")),
        ad_platforms=ensure_string_list(raw.get("adPlatforms")),
        strengths=ensure_string_list(raw.get("strengths")),
        weaknesses=ensure_string_list(raw.get("weaknesses")),
        main_offer=_normalize_main_offer(raw.get("mainOffer")),
        threat_assessment=_normalize_threat(raw.get("threatAssessment")),
    )


def _normalize_gap(raw: Mapping[str, Any]) -> WhiteSpaceGap:
    exploitability = clamp_score(raw.get("exploitability"))
    impact = clamp_score(raw.get("impact"))
    return WhiteSpaceGap(
        gap=as_text(raw.get("gap"), "Unspecified gap"),
        type=coerce_enum(raw.get("type"), GapType, GapType.MESSAGING),
        evidence=as_text(raw.get("evidence")),
        exploitability=exploitability,
        impact=impact,
        composite_score=exploitability * impact,
        recommended_action=as_text(raw.get("recommendedAction")),
    )


def normalize_competitor_analysis(raw: Mapping[str, Any]) -> CompetitorAnalysis:
    """Validate the competitor section.

    ``competitors`` must be a list and ``creativeLibrary``, ``funnelBreakdown``
    and ``gapsAndOpportunities`` must be present; every other field is defaulted.
    """

    section = BlueprintSection.COMPETITOR_ANALYSIS.value
    competitors = raw.get("competitors")
    if not isinstance(competitors, list):
        raise SchemaValidationError(section, "missing competitors array")
    for key in ("creativeLibrary", "funnelBreakdown", "gapsAndOpportunities"):
        if raw.get(key) is None:
            raise SchemaValidationError(section, f"missing {key}")

    library = as_mapping(raw.get("creativeLibrary"))
    formats = as_mapping(library.get("creativeFormats"))
    funnel = as_mapping(raw.get("funnelBreakdown"))
    gaps = as_mapping(raw.get("gapsAndOpportunities"))

    white_space = [_normalize_gap(item) for item in _mappings(raw.get("whiteSpaceGaps"))]
    white_space.sort(key=lambda gap: gap.composite_score, reverse=True)

    return CompetitorAnalysis(
        competitors=[_normalize_competitor(item) for item in _mappings(competitors)],
        creative_library=CreativeLibrary(
            ad_hooks=ensure_string_list(library.get("adHooks")),
            creative_formats=CreativeFormats(
                ugc=as_bool(formats.get("ugc")),
                carousels=as_bool(formats.get("carousels")),
                statics=as_bool(formats.get("statics")),
                testimonial=as_bool(formats.get("testimonial")),
                product_demo=as_bool(formats.get("productDemo")),
            ),
        ),
        funnel_breakdown=FunnelBreakdown(
            landing_page_patterns=ensure_string_list(funnel.get("landingPagePatterns")),
            headline_structure=ensure_string_list(funnel.get("headlineStructure")),
            cta_hierarchy=ensure_string_list(funnel.get("ctaHierarchy")),
            social_proof_patterns=ensure_string_list(funnel.get("socialProofPatterns")),
            lead_capture_methods=ensure_string_list(funnel.get("leadCaptureMethods")),
            form_friction=coerce_enum(funnel.get("formFriction"), FormFriction, FormFriction.MEDIUM),
        ),
        market_strengths=ensure_string_list(raw.get("marketStrengths")),
        market_weaknesses=ensure_string_list(raw.get("marketWeaknesses")),
        gaps_and_opportunities=GapsAndOpportunities(
            messaging_opportunities=ensure_string_list(gaps.get("messagingOpportunities")),
            creative_opportunities=ensure_string_list(gaps.get("creativeOpportunities")),
            funnel_opportunities=ensure_string_list(gaps.get("funnelOpportunities")),
        ),
        white_space_gaps=white_space,
    )


# ---------------------------------------------------------------------------
# Cross-analysis synthesis
# ---------------------------------------------------------------------------

_INSIGHT_SOURCES = [section for section in BlueprintSection if section is not BlueprintSection.CROSS_ANALYSIS_SYNTHESIS]


def _insight_source(value: Any) -> BlueprintSection:
    source = coerce_enum(value, BlueprintSection, BlueprintSection.INDUSTRY_MARKET_OVERVIEW)
    if source not in _INSIGHT_SOURCES:
        return BlueprintSection.INDUSTRY_MARKET_OVERVIEW
    return source


def _canonical_platform(value: Any) -> str:
    name = as_text(value, "Meta").strip()
    return CANONICAL_PLATFORMS.get(name.lower(), name)


def normalize_synthesis(raw: Mapping[str, Any]) -> CrossAnalysisSynthesis:
    return CrossAnalysisSynthesis(
        key_insights=[
            KeyInsight(
                insight=as_text(item.get("insight")),
                source=_insight_source(item.get("source")),
                implication=as_text(item.get("implication")),
                priority=coerce_enum(item.get("priority"), InsightPriority, InsightPriority.MEDIUM),
            )
            for item in _mappings(raw.get("keyInsights"))
        ],
        recommended_positioning=as_text(raw.get("recommendedPositioning"), "Positioning requires further analysis"),
        primary_messaging_angles=ensure_string_list(raw.get("primaryMessagingAngles")),
        recommended_platforms=[
            RecommendedPlatform(
                platform=_canonical_platform(item.get("platform")),
                reasoning=as_text(item.get("reasoning")),
                priority=coerce_enum(item.get("priority"), PlatformPriority, PlatformPriority.TESTING),
            )
            for item in _mappings(raw.get("recommendedPlatforms"))
        ],
        critical_success_factors=ensure_string_list(raw.get("criticalSuccessFactors")),
        potential_blockers=ensure_string_list(raw.get("potentialBlockers")),
        next_steps=ensure_string_list(raw.get("nextSteps")),
    )

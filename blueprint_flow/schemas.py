"""Pydantic models and enums for the strategic blueprint pipeline.

Attributes are snake_case in Python; every model serialises to the camelCase
wire shape consumed by renderers (``model_dump(by_alias=True)``).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base model that accepts snake_case or camelCase and emits camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


class BlueprintSection(str, Enum):
    """Enumerate the blueprint sections in generation order."""

    INDUSTRY_MARKET_OVERVIEW = "industryMarketOverview"
    ICP_ANALYSIS_VALIDATION = "icpAnalysisValidation"
    OFFER_ANALYSIS_VIABILITY = "offerAnalysisViability"
    COMPETITOR_ANALYSIS = "competitorAnalysis"
    CROSS_ANALYSIS_SYNTHESIS = "crossAnalysisSynthesis"

    @property
    def order(self) -> int:
        """Return a human-friendly order index for the section."""
        return list(BlueprintSection).index(self) + 1

    @property
    def label(self) -> str:
        labels = {
            BlueprintSection.INDUSTRY_MARKET_OVERVIEW: "Industry & Market Overview",
            BlueprintSection.ICP_ANALYSIS_VALIDATION: "ICP Analysis & Validation",
            BlueprintSection.OFFER_ANALYSIS_VIABILITY: "Offer Analysis & Viability",
            BlueprintSection.COMPETITOR_ANALYSIS: "Competitor Analysis",
            BlueprintSection.CROSS_ANALYSIS_SYNTHESIS: "Cross-Analysis Synthesis",
        }
        return labels[self]


SECTION_ORDER: List[BlueprintSection] = list(BlueprintSection)


class SectionDefinition(WireModel):
    """Section metadata exposed to the UI."""

    id: BlueprintSection
    label: str
    order: int


# ---------------------------------------------------------------------------
# Enumerated vocabularies
# ---------------------------------------------------------------------------


class MarketMaturity(str, Enum):
    EARLY = "early"
    GROWING = "growing"
    SATURATED = "saturated"


class AwarenessLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class BuyingBehavior(str, Enum):
    IMPULSIVE = "impulsive"
    COMMITTEE_DRIVEN = "committee_driven"
    ROI_BASED = "roi_based"
    MIXED = "mixed"


class FitAssessment(str, Enum):
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"


class RiskRating(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ValidationStatus(str, Enum):
    VALIDATED = "validated"
    WORKABLE = "workable"
    INVALID = "invalid"


class OfferRedFlag(str, Enum):
    OFFER_TOO_VAGUE = "offer_too_vague"
    OVERCROWDED_MARKET = "overcrowded_market"
    PRICE_MISMATCH = "price_mismatch"
    WEAK_OR_NO_PROOF = "weak_or_no_proof"
    NO_FUNNEL_BUILT = "no_funnel_built"
    TRANSFORMATION_UNCLEAR = "transformation_unclear"


class OfferRecommendation(str, Enum):
    PROCEED = "proceed"
    ADJUST_MESSAGING = "adjust_messaging"
    ADJUST_PRICING = "adjust_pricing"
    ICP_REFINEMENT_NEEDED = "icp_refinement_needed"
    MAJOR_OFFER_REBUILD = "major_offer_rebuild"


class FormFriction(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class InsightPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PlatformPriority(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    TESTING = "testing"


class GapType(str, Enum):
    MESSAGING = "messaging"
    FEATURE = "feature"
    AUDIENCE = "audience"
    CHANNEL = "channel"


class ThreatClassification(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    LOW = "low"


class AdPlatform(str, Enum):
    LINKEDIN = "linkedin"
    META = "meta"
    GOOGLE = "google"


class AdFormat(str, Enum):
    VIDEO = "video"
    IMAGE = "image"
    CAROUSEL = "carousel"
    UNKNOWN = "unknown"


class RelevanceCategory(str, Enum):
    DIRECT = "direct"
    LEAD_MAGNET = "lead_magnet"
    BRAND_AWARENESS = "brand_awareness"
    SUBSIDIARY = "subsidiary"
    UNCLEAR = "unclear"


class PricingSource(str, Enum):
    SCRAPED = "scraped"
    UNAVAILABLE = "unavailable"


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ---------------------------------------------------------------------------
# Citations
# ---------------------------------------------------------------------------


class Citation(WireModel):
    """Source reference returned by the research model, passed through verbatim."""

    url: str
    title: Optional[str] = None
    date: Optional[str] = None
    snippet: Optional[str] = None


T = TypeVar("T", bound=BaseModel)


class SectionOutput(WireModel, Generic[T]):
    """One researched section together with its provenance and cost."""

    data: T
    citations: List[Citation] = Field(default_factory=list)
    model: str
    cost: float = 0.0


# ---------------------------------------------------------------------------
# Industry & market overview
# ---------------------------------------------------------------------------


class CategorySnapshot(WireModel):
    category: str
    market_maturity: MarketMaturity
    awareness_level: AwarenessLevel
    buying_behavior: BuyingBehavior
    average_sales_cycle: str
    seasonality: str


class MacroRisks(WireModel):
    regulatory_concerns: str
    market_downturn_risks: str
    industry_consolidation: str


class MarketDynamics(WireModel):
    demand_drivers: List[str] = Field(default_factory=list)
    buying_triggers: List[str] = Field(default_factory=list)
    barriers_to_purchase: List[str] = Field(default_factory=list)
    macro_risks: MacroRisks


class PainPoints(WireModel):
    primary: List[str] = Field(default_factory=list)
    secondary: List[str] = Field(default_factory=list)


class PsychologicalDriver(WireModel):
    driver: str
    description: str = ""


class PsychologicalDrivers(WireModel):
    drivers: List[PsychologicalDriver] = Field(default_factory=list)


class AudienceObjection(WireModel):
    objection: str
    how_to_address: str = ""


class AudienceObjections(WireModel):
    objections: List[AudienceObjection] = Field(default_factory=list)


class MessagingOpportunities(WireModel):
    opportunities: List[str] = Field(default_factory=list)
    summary_recommendations: List[str] = Field(default_factory=list)


class IndustryMarketOverview(WireModel):
    """Market category, dynamics, pains and messaging angles."""

    category_snapshot: CategorySnapshot
    market_dynamics: MarketDynamics
    pain_points: PainPoints
    psychological_drivers: PsychologicalDrivers
    audience_objections: AudienceObjections
    messaging_opportunities: MessagingOpportunities


# ---------------------------------------------------------------------------
# ICP analysis & validation
# ---------------------------------------------------------------------------


class CoherenceCheck(WireModel):
    clearly_defined: bool = False
    reachable_through_paid_channels: bool = False
    adequate_scale: bool = False
    has_pain_offer_solves: bool = False
    has_budget_and_authority: bool = False


class PainSolutionFit(WireModel):
    primary_pain: str
    offer_component_solving_it: str = ""
    fit_assessment: FitAssessment
    notes: str = ""


class MarketReachability(WireModel):
    meta_volume: bool = False
    linked_in_volume: bool = False
    google_search_demand: bool = False
    contradicting_signals: List[str] = Field(default_factory=list)


class EconomicFeasibility(WireModel):
    has_budget: bool = False
    purchases_similar: bool = False
    tam_aligned_with_cac: bool = False
    notes: str = ""


class ICPRiskAssessment(WireModel):
    reachability: RiskRating
    budget: RiskRating
    pain_strength: RiskRating
    competitiveness: RiskRating


class FinalVerdict(WireModel):
    status: ValidationStatus
    reasoning: str
    recommendations: List[str] = Field(default_factory=list)


class ICPAnalysisValidation(WireModel):
    """Coherence, reachability and economics of the ideal customer profile."""

    coherence_check: CoherenceCheck
    pain_solution_fit: PainSolutionFit
    market_reachability: MarketReachability
    economic_feasibility: EconomicFeasibility
    risk_assessment: ICPRiskAssessment
    final_verdict: FinalVerdict


# ---------------------------------------------------------------------------
# Offer analysis & viability
# ---------------------------------------------------------------------------


class OfferClarity(WireModel):
    clearly_articulated: bool = False
    solves_real_pain: bool = False
    benefits_easy_to_understand: bool = False
    transformation_measurable: bool = False
    value_proposition_obvious: bool = False


class OfferStrength(WireModel):
    pain_relevance: int
    urgency: int
    differentiation: int
    tangibility: int
    proof: int
    pricing_logic: int
    overall_score: float


class MarketOfferFit(WireModel):
    market_wants_now: bool = False
    competitors_offer_similar: bool = False
    price_matches_expectations: bool = False
    proof_strong_for_cold_traffic: bool = False
    transformation_believable: bool = False


class OfferRecommendationDetail(WireModel):
    status: OfferRecommendation
    reasoning: str
    action_items: List[str] = Field(default_factory=list)


class OfferAnalysisViability(WireModel):
    """Clarity, strength scores and red flags of the offer."""

    offer_clarity: OfferClarity
    offer_strength: OfferStrength
    market_offer_fit: MarketOfferFit
    red_flags: List[OfferRedFlag] = Field(default_factory=list)
    recommendation: OfferRecommendationDetail


# ---------------------------------------------------------------------------
# Ads and pricing
# ---------------------------------------------------------------------------


class AdRelevance(WireModel):
    score: int
    category: RelevanceCategory
    explanation: str = ""
    signals: List[str] = Field(default_factory=list)


class AdCreative(WireModel):
    """Normalised creative from one of the ad libraries."""

    platform: AdPlatform
    id: str
    advertiser: str
    headline: Optional[str] = None
    body: Optional[str] = None
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    format: AdFormat = AdFormat.UNKNOWN
    is_active: bool = True
    first_seen: Optional[str] = None
    last_seen: Optional[str] = None
    platforms: List[str] = Field(default_factory=list)
    details_url: Optional[str] = None


class EnrichedAdCreative(AdCreative):
    """Creative carrying relevance scoring and optional transcript enrichment."""

    relevance: Optional[AdRelevance] = None
    transcript: Optional[str] = None
    hook_text: Optional[str] = None
    hook_type: Optional[str] = None
    emotional_tones: List[str] = Field(default_factory=list)


class PricingTier(WireModel):
    tier: str
    price: str
    description: Optional[str] = None
    target_audience: Optional[str] = None
    features: Optional[List[str]] = None
    limitations: Optional[str] = None


class ConfidenceBreakdown(WireModel):
    source_overlap: int = 0
    schema_completeness: int = 0
    field_plausibility: int = 0
    tier_count_reasonable: int = 0
    price_format_valid: int = 0


class ScoredPricingResult(WireModel):
    """Outcome of a pricing-page resolution, including extraction confidence."""

    success: bool
    tiers: List[PricingTier] = Field(default_factory=list)
    confidence: int = 0
    confidence_level: ConfidenceLevel = ConfidenceLevel.LOW
    confidence_breakdown: ConfidenceBreakdown = Field(default_factory=ConfidenceBreakdown)
    has_custom_pricing: bool = False
    currency: Optional[str] = None
    billing_period: Optional[str] = None
    source_url: Optional[str] = None
    error: Optional[str] = None
    cost: float = 0.0


# ---------------------------------------------------------------------------
# Competitor analysis
# ---------------------------------------------------------------------------


class CompetitorOffer(WireModel):
    headline: str
    value_proposition: str
    cta: str


class ThreatFactors(WireModel):
    market_share_recognition: int
    ad_spend_intensity: int
    product_overlap: int
    price_competitiveness: int
    growth_trajectory: int


class ThreatAssessment(WireModel):
    threat_factors: ThreatFactors
    weighted_threat_score: float
    classification: ThreatClassification
    top_ad_hooks: List[str] = Field(default_factory=list)
    likely_response: Optional[str] = None
    counter_positioning: Optional[str] = None


class Review(WireModel):
    rating: int
    text: str
    date: Optional[str] = None
    author: Optional[str] = None


class ReviewData(WireModel):
    trustpilot_url: Optional[str] = None
    trust_score: Optional[float] = None
    total_reviews: Optional[int] = None
    ai_summary: Optional[str] = None
    reviews: List[Review] = Field(default_factory=list)


class CompetitorSnapshot(WireModel):
    """One researched competitor, enriched after validation."""

    name: str
    website: Optional[str] = None
    positioning: str = ""
    offer: str = ""
    price: str = "Custom pricing"
    funnels: str = ""
    ad_platforms: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    main_offer: Optional[CompetitorOffer] = None
    threat_assessment: Optional[ThreatAssessment] = None
    review_data: Optional[ReviewData] = None
    ad_creatives: List[EnrichedAdCreative] = Field(default_factory=list)
    pricing_tiers: List[PricingTier] = Field(default_factory=list)
    pricing_source: PricingSource = PricingSource.UNAVAILABLE
    pricing_confidence: int = 0
    pricing_note: Optional[str] = None
    ad_messaging_themes: List[str] = Field(default_factory=list)


class CreativeFormats(WireModel):
    ugc: bool = False
    carousels: bool = False
    statics: bool = False
    testimonial: bool = False
    product_demo: bool = False


class CreativeLibrary(WireModel):
    ad_hooks: List[str] = Field(default_factory=list)
    creative_formats: CreativeFormats = Field(default_factory=CreativeFormats)


class FunnelBreakdown(WireModel):
    landing_page_patterns: List[str] = Field(default_factory=list)
    headline_structure: List[str] = Field(default_factory=list)
    cta_hierarchy: List[str] = Field(default_factory=list)
    social_proof_patterns: List[str] = Field(default_factory=list)
    lead_capture_methods: List[str] = Field(default_factory=list)
    form_friction: FormFriction = FormFriction.MEDIUM


class GapsAndOpportunities(WireModel):
    messaging_opportunities: List[str] = Field(default_factory=list)
    creative_opportunities: List[str] = Field(default_factory=list)
    funnel_opportunities: List[str] = Field(default_factory=list)


class WhiteSpaceGap(WireModel):
    gap: str
    type: GapType
    evidence: str = ""
    exploitability: int
    impact: int
    composite_score: int
    recommended_action: str = ""


class CompetitorAnalysis(WireModel):
    """Competitor snapshots plus market-wide creative and funnel patterns."""

    competitors: List[CompetitorSnapshot] = Field(default_factory=list)
    creative_library: CreativeLibrary
    funnel_breakdown: FunnelBreakdown
    market_strengths: List[str] = Field(default_factory=list)
    market_weaknesses: List[str] = Field(default_factory=list)
    gaps_and_opportunities: GapsAndOpportunities
    white_space_gaps: List[WhiteSpaceGap] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Cross-analysis synthesis
# ---------------------------------------------------------------------------


class KeyInsight(WireModel):
    insight: str
    source: BlueprintSection
    implication: str = ""
    priority: InsightPriority


class RecommendedPlatform(WireModel):
    platform: str
    reasoning: str = ""
    priority: PlatformPriority


class CrossAnalysisSynthesis(WireModel):
    """Strategy distilled from the four research sections."""

    key_insights: List[KeyInsight] = Field(default_factory=list)
    recommended_positioning: str
    primary_messaging_angles: List[str] = Field(default_factory=list)
    recommended_platforms: List[RecommendedPlatform] = Field(default_factory=list)
    critical_success_factors: List[str] = Field(default_factory=list)
    potential_blockers: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Pipeline output
# ---------------------------------------------------------------------------


class BlueprintMetadata(WireModel):
    generated_at: str
    version: str
    processing_time: int
    total_cost: float
    models_used: List[str] = Field(default_factory=list)
    overall_confidence: int
    section_citations: Dict[str, List[Citation]] = Field(default_factory=dict)


class PartialBlueprint(WireModel):
    """Sections completed so far; absent sections are ``None``."""

    industry_market_overview: Optional[IndustryMarketOverview] = None
    icp_analysis_validation: Optional[ICPAnalysisValidation] = None
    offer_analysis_viability: Optional[OfferAnalysisViability] = None
    competitor_analysis: Optional[CompetitorAnalysis] = None
    cross_analysis_synthesis: Optional[CrossAnalysisSynthesis] = None


class StrategicBlueprintOutput(WireModel):
    """Complete blueprint document."""

    industry_market_overview: IndustryMarketOverview
    icp_analysis_validation: ICPAnalysisValidation
    offer_analysis_viability: OfferAnalysisViability
    competitor_analysis: CompetitorAnalysis
    cross_analysis_synthesis: CrossAnalysisSynthesis
    metadata: BlueprintMetadata


class BlueprintProgress(WireModel):
    current_section: Optional[BlueprintSection] = None
    current_label: Optional[str] = None
    completed_sections: List[BlueprintSection] = Field(default_factory=list)
    progress_percentage: int = 0
    message: str = ""
    error: Optional[str] = None


class RunMetadata(WireModel):
    total_time: int
    total_cost: float
    section_timings: Dict[str, int] = Field(default_factory=dict)


class BlueprintResult(WireModel):
    """Terminal outcome of a pipeline run; never raised, always returned."""

    success: bool
    cancelled: bool = False
    output: Optional[StrategicBlueprintOutput] = None
    partial_output: PartialBlueprint = Field(default_factory=PartialBlueprint)
    error: Optional[str] = None
    failed_section: Optional[BlueprintSection] = None
    metadata: RunMetadata


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------


class BusinessProfile(WireModel):
    """Structured onboarding answers turned into the research context."""

    company_name: str = Field(..., min_length=1)
    website: Optional[str] = None
    industry: Optional[str] = None
    product_description: Optional[str] = None
    target_customer: Optional[str] = None
    pain_points: Optional[str] = None
    offer: Optional[str] = None
    pricing: Optional[str] = None
    competitors: Optional[str] = None
    differentiators: Optional[str] = None
    goals: Optional[str] = None
    notes: Optional[str] = None


class GenerateRequest(WireModel):
    """Payload for generating a blueprint from raw text or a structured profile."""

    context: Optional[str] = Field(
        default=None,
        description="Free-text business context supplied by the user.",
    )
    profile: Optional[BusinessProfile] = Field(
        default=None,
        description="Structured onboarding profile used when no free-text context is given.",
    )


class ContextResponse(WireModel):
    context: str

"""Prompt builders for each blueprint section.

Every system prompt embeds the exact JSON shape the validators read and asks
for JSON only. Later sections receive a short digest of the sections already
completed.
"""

from __future__ import annotations

from textwrap import dedent
from typing import Iterable

from .config import CLAUDE_SONNET, PERPLEXITY_SONAR
from .llm import PromptSpec
from .schemas import (
    CompetitorAnalysis,
    ICPAnalysisValidation,
    IndustryMarketOverview,
    OfferAnalysisViability,
    PartialBlueprint,
)

SECTION_TIMEOUT = 60.0
COMPETITOR_TIMEOUT = 120.0

JSON_ONLY = "CRITICAL: You must output ONLY valid JSON. No text before or after the JSON object."
JSON_FOOTER = "OUTPUT ONLY THE JSON OBJECT. No explanations, no markdown code blocks."


def _join(items: Iterable[str], limit: int, fallback: str = "Not analyzed") -> str:
    selected = [item for item in list(items)[:limit] if item]
    return "; ".join(selected) if selected else fallback


# ---------------------------------------------------------------------------
# Digests of completed sections
# ---------------------------------------------------------------------------


def market_digest(market: IndustryMarketOverview | None) -> str:
    if market is None:
        return ""
    snapshot = market.category_snapshot
    dynamics = market.market_dynamics
    return dedent(
        f"""
        CONTEXT FROM PREVIOUS MARKET ANALYSIS:
        - Primary Pain Points: {_join(market.pain_points.primary, 5)}
        - Market Maturity: {snapshot.market_maturity.value}
        - Buying Behavior: {snapshot.buying_behavior.value}
        - Awareness Level: {snapshot.awareness_level.value}
        - Demand Drivers: {_join(dynamics.demand_drivers, 3)}
        - Barriers to Purchase: {_join(dynamics.barriers_to_purchase, 3)}
        """
    ).strip()


def icp_digest(icp: ICPAnalysisValidation | None) -> str:
    if icp is None:
        return ""
    risks = icp.risk_assessment
    economics = icp.economic_feasibility
    return dedent(
        f"""
        CONTEXT FROM PREVIOUS ICP ANALYSIS:
        - ICP Validation Status: {icp.final_verdict.status.value}
        - Pain-Solution Fit: {icp.pain_solution_fit.fit_assessment.value}
        - Primary Pain: {icp.pain_solution_fit.primary_pain}
        - Has Budget: {"Yes" if economics.has_budget else "No/Unknown"}
        - Purchases Similar: {"Yes" if economics.purchases_similar else "No/Unknown"}
        - Risk Levels: Reachability={risks.reachability.value}, Budget={risks.budget.value}, Competition={risks.competitiveness.value}
        """
    ).strip()


def offer_digest(offer: OfferAnalysisViability | None) -> str:
    if offer is None:
        return ""
    red_flags = ", ".join(flag.value for flag in offer.red_flags) or "None"
    return dedent(
        f"""
        - Offer Overall Score: {offer.offer_strength.overall_score}/10
        - Offer Recommendation: {offer.recommendation.status.value}
        - Red Flags: {red_flags}
        """
    ).strip()


def competitor_digest(competitors: CompetitorAnalysis | None) -> str:
    if competitors is None:
        return ""
    names = ", ".join(item.name for item in competitors.competitors) or "None identified"
    return dedent(
        f"""
        - Competitors Analyzed: {len(competitors.competitors)} ({names})
        - Market Strengths: {_join(competitors.market_strengths, 2)}
        - Key Opportunities: {_join(competitors.gaps_and_opportunities.messaging_opportunities, 2)}
        """
    ).strip()


def synthesis_digest(prior: PartialBlueprint) -> str:
    market = prior.industry_market_overview
    icp = prior.icp_analysis_validation
    parts = ["PREVIOUS ANALYSIS SUMMARY:"]
    if market is not None:
        snapshot = market.category_snapshot
        parts.append(
            dedent(
                f"""
                - Market Maturity: {snapshot.market_maturity.value}
                - Buying Behavior: {snapshot.buying_behavior.value}
                - Awareness Level: {snapshot.awareness_level.value}
                - Top Pain Points: {_join(market.pain_points.primary, 3)}
                """
            ).strip()
        )
    else:
        parts.append("- Market Overview: Not yet analyzed")
    if icp is not None:
        risks = icp.risk_assessment
        parts.append(
            dedent(
                f"""
                - ICP Validation Status: {icp.final_verdict.status.value}
                - Pain-Solution Fit: {icp.pain_solution_fit.fit_assessment.value}
                - Risk Levels: Reachability={risks.reachability.value}, Budget={risks.budget.value}, Competition={risks.competitiveness.value}
                """
            ).strip()
        )
    else:
        parts.append("- ICP Analysis: Not yet analyzed")
    parts.append(offer_digest(prior.offer_analysis_viability) or "- Offer Analysis: Not yet analyzed")
    parts.append(competitor_digest(prior.competitor_analysis) or "- Competitor Analysis: Not yet analyzed")
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# JSON shapes
# ---------------------------------------------------------------------------

MARKET_SCHEMA = dedent(
    """
    {
      "categorySnapshot": {
        "category": "string - market category name based on web research",
        "marketMaturity": "early" | "growing" | "saturated",
        "awarenessLevel": "low" | "medium" | "high",
        "buyingBehavior": "impulsive" | "committee_driven" | "roi_based" | "mixed",
        "averageSalesCycle": "string - e.g. '2-4 weeks' or '3-6 months'",
        "seasonality": "string - seasonal patterns or 'Year-round'"
      },
      "marketDynamics": {
        "demandDrivers": ["4-6 factors driving demand"],
        "buyingTriggers": ["4-6 events that trigger purchases"],
        "barriersToPurchase": ["3-5 obstacles from customer feedback"],
        "macroRisks": {
          "regulatoryConcerns": "string",
          "marketDownturnRisks": "string",
          "industryConsolidation": "string"
        }
      },
      "painPoints": {
        "primary": ["5-7 most critical pain points"],
        "secondary": ["3-5 secondary pain points"]
      },
      "psychologicalDrivers": {
        "drivers": [{"driver": "string", "description": "string"}]
      },
      "audienceObjections": {
        "objections": [{"objection": "string", "howToAddress": "string"}]
      },
      "messagingOpportunities": {
        "opportunities": ["4-6 messaging angles"],
        "summaryRecommendations": ["3-4 key recommendations"]
      }
    }
    """
).strip()

ICP_SCHEMA = dedent(
    """
    {
      "coherenceCheck": {
        "clearlyDefined": true | false,
        "reachableThroughPaidChannels": true | false,
        "adequateScale": true | false,
        "hasPainOfferSolves": true | false,
        "hasBudgetAndAuthority": true | false
      },
      "painSolutionFit": {
        "primaryPain": "string",
        "offerComponentSolvingIt": "string",
        "fitAssessment": "strong" | "moderate" | "weak",
        "notes": "string"
      },
      "marketReachability": {
        "metaVolume": true | false,
        "linkedInVolume": true | false,
        "googleSearchDemand": true | false,
        "contradictingSignals": ["conflicting data, can be empty []"]
      },
      "economicFeasibility": {
        "hasBudget": true | false,
        "purchasesSimilar": true | false,
        "tamAlignedWithCac": true | false,
        "notes": "string"
      },
      "riskAssessment": {
        "reachability": "low" | "medium" | "high" | "critical",
        "budget": "low" | "medium" | "high" | "critical",
        "painStrength": "low" | "medium" | "high" | "critical",
        "competitiveness": "low" | "medium" | "high" | "critical"
      },
      "finalVerdict": {
        "status": "validated" | "workable" | "invalid",
        "reasoning": "2-3 sentences explaining the verdict",
        "recommendations": ["2-4 actionable recommendations"]
      }
    }
    """
).strip()

OFFER_SCHEMA = dedent(
    """
    {
      "offerClarity": {
        "clearlyArticulated": true | false,
        "solvesRealPain": true | false,
        "benefitsEasyToUnderstand": true | false,
        "transformationMeasurable": true | false,
        "valuePropositionObvious": true | false
      },
      "offerStrength": {
        "painRelevance": 1-10,
        "urgency": 1-10,
        "differentiation": 1-10,
        "tangibility": 1-10,
        "proof": 1-10,
        "pricingLogic": 1-10
      },
      "marketOfferFit": {
        "marketWantsNow": true | false,
        "competitorsOfferSimilar": true | false,
        "priceMatchesExpectations": true | false,
        "proofStrongForColdTraffic": true | false,
        "transformationBelievable": true | false
      },
      "redFlags": ["offer_too_vague" | "overcrowded_market" | "price_mismatch" | "weak_or_no_proof" | "no_funnel_built" | "transformation_unclear"],
      "recommendation": {
        "status": "proceed" | "adjust_messaging" | "adjust_pricing" | "icp_refinement_needed" | "major_offer_rebuild",
        "reasoning": "string",
        "actionItems": ["3-5 specific action items"]
      }
    }
    """
).strip()

COMPETITOR_SCHEMA = dedent(
    """
    {
      "competitors": [
        {
          "name": "actual competitor company name",
          "website": "competitor website URL (e.g. https://competitor.com)",
          "positioning": "how they position themselves",
          "offer": "their main offer or product",
          "price": "headline price as advertised, e.g. '$997/mo' or 'Custom pricing'",
          "funnels": "e.g. 'Demo call, Free trial'",
          "adPlatforms": ["platforms they advertise on"],
          "strengths": ["2-3 verified strengths"],
          "weaknesses": ["2-3 weaknesses from user feedback"],
          "mainOffer": {
            "headline": "primary value proposition",
            "valueProposition": "what they promise to deliver",
            "cta": "common call-to-action"
          },
          "threatAssessment": {
            "threatFactors": {
              "marketShareRecognition": 1-10,
              "adSpendIntensity": 1-10,
              "productOverlap": 1-10,
              "priceCompetitiveness": 1-10,
              "growthTrajectory": 1-10
            },
            "topAdHooks": ["up to 3 hooks from their ads"],
            "likelyResponse": "how they would respond to our campaign",
            "counterPositioning": "how we should position against them"
          }
        }
      ],
      "creativeLibrary": {
        "adHooks": ["5-7 actual hook examples from competitor ads"],
        "creativeFormats": {
          "ugc": true | false,
          "carousels": true | false,
          "statics": true | false,
          "testimonial": true | false,
          "productDemo": true | false
        }
      },
      "funnelBreakdown": {
        "landingPagePatterns": ["3-4 patterns"],
        "headlineStructure": ["3-4 headline formulas"],
        "ctaHierarchy": ["2-3 CTA patterns"],
        "socialProofPatterns": ["3-4 social proof types"],
        "leadCaptureMethods": ["2-3 approaches"],
        "formFriction": "low" | "medium" | "high"
      },
      "marketStrengths": ["3-4 industry-wide strengths"],
      "marketWeaknesses": ["3-4 industry-wide weaknesses"],
      "gapsAndOpportunities": {
        "messagingOpportunities": ["3-4 messaging gaps"],
        "creativeOpportunities": ["2-3 creative opportunities"],
        "funnelOpportunities": ["2-3 funnel opportunities"]
      },
      "whiteSpaceGaps": [
        {
          "gap": "unclaimed position in the market",
          "type": "messaging" | "feature" | "audience" | "channel",
          "evidence": "what in the research shows this gap",
          "exploitability": 1-10,
          "impact": 1-10,
          "recommendedAction": "how to exploit it"
        }
      ]
    }
    """
).strip()

SYNTHESIS_SCHEMA = dedent(
    """
    {
      "keyInsights": [
        {
          "insight": "the key finding",
          "source": "industryMarketOverview" | "icpAnalysisValidation" | "offerAnalysisViability" | "competitorAnalysis",
          "implication": "what this means for the paid media strategy",
          "priority": "high" | "medium" | "low"
        }
      ],
      "recommendedPositioning": "2-3 sentence positioning statement",
      "primaryMessagingAngles": ["specific messaging angle to test in ads"],
      "recommendedPlatforms": [
        {
          "platform": "Meta" | "LinkedIn" | "Google" | "YouTube" | "TikTok",
          "reasoning": "why this platform fits the ICP and offer",
          "priority": "primary" | "secondary" | "testing"
        }
      ],
      "criticalSuccessFactors": ["must-have element for campaign success"],
      "potentialBlockers": ["factor that could prevent success"],
      "nextSteps": ["specific recommended next action"]
    }
    """
).strip()


def _system_prompt(role: str, digest: str, schema: str, instructions: str) -> str:
    blocks = [role]
    if digest:
        blocks.append(digest)
    blocks.extend([JSON_ONLY, f"REQUIRED JSON STRUCTURE (follow EXACTLY):\n{schema}", instructions.strip(), JSON_FOOTER])
    return "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# Section prompt specs
# ---------------------------------------------------------------------------


def market_overview_prompt(context: str, *, model: str = PERPLEXITY_SONAR) -> PromptSpec:
    system_prompt = _system_prompt(
        "You are an expert market researcher with real-time web search capabilities.\n"
        "Research the industry and market landscape using current web data to inform paid media strategy.",
        "",
        MARKET_SCHEMA,
        dedent(
            """
            RESEARCH INSTRUCTIONS:
            1. Search for current industry reports and market size data
            2. Find real pain points from forums, reviews and communities
            3. Identify demand drivers and buying triggers from recent trends
            4. Use ONLY the exact enum values shown
            """
        ),
    )
    user_prompt = dedent(
        """
        Research the industry and market for this business:

        {context}

        Return the market analysis as a JSON object following the exact structure specified.
        """
    ).format(context=context)
    return PromptSpec(
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        model=model,
        max_tokens=8192,
        timeout=SECTION_TIMEOUT,
        section="industryMarketOverview",
    )


def icp_validation_prompt(
    context: str,
    market: IndustryMarketOverview | None = None,
    *,
    model: str = PERPLEXITY_SONAR,
) -> PromptSpec:
    system_prompt = _system_prompt(
        "You are an expert ICP (Ideal Customer Profile) analyst with real-time web search capabilities.\n"
        "Research and validate the ICP for paid media campaigns using current web data.",
        market_digest(market),
        ICP_SCHEMA,
        dedent(
            """
            VALIDATION CRITERIA:
            - "validated" = ICP is solid and ready for paid campaigns based on evidence
            - "workable" = ICP has issues but can proceed with adjustments
            - "invalid" = ICP needs major rework before running ads
            Be honest and critical. Flag real concerns based on research.
            """
        ),
    )
    user_prompt = dedent(
        """
        Research and validate the ICP (Ideal Customer Profile) for this business:

        {context}

        Return the validation analysis as a JSON object following the exact structure specified.
        """
    ).format(context=context)
    return PromptSpec(
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        model=model,
        max_tokens=8192,
        timeout=SECTION_TIMEOUT,
        section="icpAnalysisValidation",
    )


def offer_viability_prompt(
    context: str,
    icp: ICPAnalysisValidation | None = None,
    *,
    model: str = PERPLEXITY_SONAR,
) -> PromptSpec:
    system_prompt = _system_prompt(
        "You are an expert offer analyst with real-time web search capabilities.\n"
        "Evaluate offer viability for paid media campaigns using current market data.",
        icp_digest(icp),
        OFFER_SCHEMA,
        dedent(
            """
            SCORING:
            - Score every offerStrength factor as an integer from 1 to 10
            - Only list red flags that genuinely apply, using the exact values shown
            - Compare pricing against what competitors charge for similar outcomes
            """
        ),
    )
    user_prompt = dedent(
        """
        Analyze the offer viability for this business:

        {context}

        Return the offer analysis as a JSON object following the exact structure specified.
        """
    ).format(context=context)
    return PromptSpec(
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        model=model,
        max_tokens=8192,
        timeout=SECTION_TIMEOUT,
        section="offerAnalysisViability",
    )


def competitor_analysis_prompt(context: str, *, model: str = PERPLEXITY_SONAR) -> PromptSpec:
    system_prompt = _system_prompt(
        "You are an expert competitive analyst with real-time web search capabilities.\n"
        "Research the competitor landscape using current web data to inform paid media strategy.",
        "",
        COMPETITOR_SCHEMA,
        dedent(
            """
            RESEARCH INSTRUCTIONS:
            1. Include 3-5 competitors with verified information and their real website URLs
            2. Check Meta Ad Library and LinkedIn Ad Library for actual ad examples
            3. Use real reviews on G2, Capterra and Trustpilot to identify strengths and weaknesses
            4. Score each threat factor from 1 to 10 and each white-space gap's exploitability and impact from 1 to 10
            5. Do not list pricing tiers; they are collected separately from the competitors' own pricing pages
            """
        ),
    )
    user_prompt = dedent(
        """
        Research the competitor landscape for this business and provide real-time competitive intelligence:

        {context}

        Return the analysis as a JSON object following the exact structure specified.
        """
    ).format(context=context)
    return PromptSpec(
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        model=model,
        temperature=0.3,
        max_tokens=8192,
        timeout=COMPETITOR_TIMEOUT,
        section="competitorAnalysis",
    )


def synthesis_prompt(context: str, prior: PartialBlueprint, *, model: str = CLAUDE_SONNET) -> PromptSpec:
    system_prompt = _system_prompt(
        "You are a strategic analyst synthesizing all research into actionable paid media strategy.",
        synthesis_digest(prior),
        SYNTHESIS_SCHEMA,
        dedent(
            """
            RULES:
            - keyInsights: 5-7 insights with at least one from each section
            - primaryMessagingAngles: 3-5 specific, testable angles
            - recommendedPlatforms: 2-3 platforms, exactly one "primary"
            - nextSteps: 4-5 actionable steps in priority order
            - Use ONLY the exact enum values shown for source, priority and platform
            """
        ),
    )
    user_prompt = dedent(
        """
        Synthesize all analysis into a strategic blueprint for:

        {context}
        """
    ).format(context=context)
    return PromptSpec(
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        model=model,
        temperature=0.4,
        max_tokens=4096,
        timeout=SECTION_TIMEOUT,
        section="crossAnalysisSynthesis",
    )

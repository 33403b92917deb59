"""Build the sanitized business-context string every researcher receives."""

from __future__ import annotations

import logging
import re
from typing import List

from .schemas import BusinessProfile

_LOGGER = logging.getLogger(__name__)

MAX_INPUT_LENGTH = 5000
MAX_COMPETITORS = 20
FILTERED = "[FILTERED]"

_INJECTION_PATTERNS = [
    re.compile(r"ignore\s+(all\s+)?(previous|above|prior)\s+(instructions?|prompts?|context)", re.IGNORECASE),
    re.compile(r"disregard\s+(all\s+)?(previous|above|prior)\s+(instructions?|prompts?|context)", re.IGNORECASE),
    re.compile(r"forget\s+(all\s+)?(previous|above|prior)\s+(instructions?|prompts?|context)", re.IGNORECASE),
    re.compile(r"system\s*:\s*", re.IGNORECASE),
    re.compile(r"assistant\s*:\s*", re.IGNORECASE),
    re.compile(r"user\s*:\s*", re.IGNORECASE),
    re.compile(r"\[\s*INST\s*\]", re.IGNORECASE),
    re.compile(r"\[\s*/INST\s*\]", re.IGNORECASE),
    re.compile(r"<\|im_start\|>", re.IGNORECASE),
    re.compile(r"<\|im_end\|>", re.IGNORECASE),
    re.compile(r"```\s*(json|javascript|python|bash|sh|cmd)", re.IGNORECASE),
]
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_COMPETITOR_SPLIT = re.compile(r"[,;\n]|\s+and\s+|\s+vs\.?\s+|\s+/\s+", re.IGNORECASE)
_LIST_NUMBER = re.compile(r"^\d+[.)]\s*")


def sanitize_input(value: str | None, *, field: str = "input", logger: logging.Logger | None = None) -> str:
    """Cap length, neutralise prompt-injection phrases and strip control characters."""

    if not value:
        return ""
    sanitized = str(value)[:MAX_INPUT_LENGTH]
    filtered = 0
    for pattern in _INJECTION_PATTERNS:
        sanitized, count = pattern.subn(FILTERED, sanitized)
        filtered += count
    if filtered:
        (logger or _LOGGER).warning(
            "Filtered prompt-injection patterns from business context",
            extra={"field": field, "matches": filtered},
        )
    sanitized = sanitized.replace("```", "'''")
    sanitized = _CONTROL_CHARS.sub("", sanitized)
    return sanitized.strip()


def parse_competitor_names(raw: str | None) -> List[str]:
    """Split a free-text competitor list on commas, semicolons, newlines, "and", "vs" and "/".

    Numbered-list prefixes are removed and names are deduplicated case-insensitively.
    """

    if not raw or not raw.strip():
        return []
    text = raw.replace("\r\n", "\n").replace("\r", "\n")
    seen = set()
    names: List[str] = []
    for part in _COMPETITOR_SPLIT.split(text):
        cleaned = _LIST_NUMBER.sub("", part.strip())
        if not cleaned:
            continue
        key = cleaned.lower()
        if key in seen:
            continue
        seen.add(key)
        names.append(cleaned)
    return names[:MAX_COMPETITORS]


def build_business_context(profile: BusinessProfile, *, logger: logging.Logger | None = None) -> str:
    """Render *profile* as the markdown context block used in every section prompt."""

    def clean(value: str | None, field: str) -> str:
        return sanitize_input(value, field=field, logger=logger)

    def line(label: str, value: str | None, field: str) -> str:
        text = clean(value, field)
        return f"- {label}: {text or 'Not specified'}"

    competitors = parse_competitor_names(clean(profile.competitors, "competitors"))
    lines = [
        "## BUSINESS CONTEXT FOR STRATEGIC BLUEPRINT",
        "",
        "### Company Information",
        line("Business Name", profile.company_name, "companyName"),
        line("Website", profile.website, "website"),
        line("Industry", profile.industry, "industry"),
        "",
        "### Ideal Customer Profile (ICP)",
        line("Primary ICP", profile.target_customer, "targetCustomer"),
        line("Pain Points", profile.pain_points, "painPoints"),
        "",
        "### Product & Offer",
        line("Product Description", profile.product_description, "productDescription"),
        line("Core Offer", profile.offer, "offer"),
        line("Pricing", profile.pricing, "pricing"),
        "",
        "### Market & Competition",
        f"- Top Competitors: {', '.join(competitors) if competitors else 'Not specified'}",
        line("Unique Edge", profile.differentiators, "differentiators"),
        "",
        "### Goals",
        line("Campaign Goals", profile.goals, "goals"),
    ]
    notes = clean(profile.notes, "notes")
    if notes:
        lines.extend(["", "### Additional Notes", notes])
    return "\n".join(lines).strip()

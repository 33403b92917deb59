"""Fuzzy company-name matching used to decide whether an ad belongs to a competitor."""

from __future__ import annotations

import re

_SUFFIX_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\s+inc\.?$",
        r"\s+llc\.?$",
        r"\s+corp\.?$",
        r"\s+corporation$",
        r"\s+ltd\.?$",
        r"\s+limited$",
        r"\s+co\.?$",
        r"\s+company$",
        r"\s+group$",
        r"\s+international$",
        r"\s+intl\.?$",
    )
]
_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

SHORT_NAME_LENGTH = 5


def normalize_company_name(name: str) -> str:
    """Lowercase, strip legal suffixes and punctuation, collapse whitespace."""

    if not name or not isinstance(name, str):
        return ""
    normalized = name.lower().strip()
    for pattern in _SUFFIX_PATTERNS:
        normalized = pattern.sub("", normalized)
    normalized = _PUNCTUATION.sub("", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()


def _jaro(s1: str, s2: str) -> float:
    match_window = max(max(len(s1), len(s2)) // 2 - 1, 0)
    s1_matches = [False] * len(s1)
    s2_matches = [False] * len(s2)
    matches = 0

    for i, char in enumerate(s1):
        start = max(0, i - match_window)
        end = min(i + match_window + 1, len(s2))
        for j in range(start, end):
            if s2_matches[j] or s2[j] != char:
                continue
            s1_matches[i] = True
            s2_matches[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    transpositions = 0
    k = 0
    for i, char in enumerate(s1):
        if not s1_matches[i]:
            continue
        while not s2_matches[k]:
            k += 1
        if char != s2[k]:
            transpositions += 1
        k += 1

    return (matches / len(s1) + matches / len(s2) + (matches - transpositions / 2) / matches) / 3


def jaro_winkler(s1: str, s2: str, prefix_scale: float = 0.1, max_prefix: int = 4) -> float:
    """Jaro-Winkler similarity of two raw strings."""

    if not s1 or not s2:
        return 0.0
    jaro = _jaro(s1, s2)
    prefix = 0
    for a, b in zip(s1[:max_prefix], s2[:max_prefix]):
        if a != b:
            break
        prefix += 1
    return min(jaro + prefix * prefix_scale * (1 - jaro), 1.0)


def _word_boundary_contains(haystack: str, needle: str) -> bool:
    return (
        haystack == needle
        or haystack.startswith(needle + " ")
        or haystack.endswith(" " + needle)
        or f" {needle} " in haystack
    )


def calculate_similarity(first: str, second: str) -> float:
    """Return a 0-1 similarity between two company names.

    Short names (five characters or fewer after normalisation) must match
    as a leading or whole word; otherwise a different two-letter prefix
    scores 0.3, so "huel" does not match "nuel labs".
    """

    if not first or not second:
        return 0.0
    if first == second:
        return 1.0

    s1 = normalize_company_name(first)
    s2 = normalize_company_name(second)
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    shorter, longer = (s1, s2) if len(s1) <= len(s2) else (s2, s1)
    if len(shorter) <= SHORT_NAME_LENGTH:
        if longer.startswith(shorter + " ") or longer == shorter:
            return 0.95
        if shorter in longer.split(" "):
            return 0.9
        if s1[:2] != s2[:2]:
            return 0.3

    if s2 in s1:
        return 0.85 if _word_boundary_contains(s1, s2) else 0.5
    if s1 in s2:
        return 0.85 if _word_boundary_contains(s2, s1) else 0.5

    return jaro_winkler(s1, s2)


def is_advertiser_match(advertiser: str, company: str, threshold: float = 0.7) -> bool:
    if not advertiser or not company:
        return False
    if normalize_company_name(advertiser) == normalize_company_name(company):
        return True
    return calculate_similarity(advertiser, company) >= threshold


def extract_company_from_domain(domain: str) -> str | None:
    """Return the registrable label of *domain* (``acme`` for ``https://www.acme.co.uk/x``)."""

    if not domain:
        return None
    cleaned = re.sub(r"^https?://", "", domain.strip(), flags=re.IGNORECASE)
    cleaned = re.sub(r"^www\.", "", cleaned, flags=re.IGNORECASE)
    cleaned = cleaned.split("/")[0].split("?")[0]
    parts = [part for part in cleaned.split(".") if part]
    if len(parts) < 2:
        return None
    if len(parts) >= 3 and parts[-2] in {"co", "com", "org", "net"}:
        return parts[-3]
    return parts[-2]

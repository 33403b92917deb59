"""Trustpilot review mining for competitor snapshots."""

from __future__ import annotations

import logging
import re
from typing import List
from urllib.parse import urlparse

from .schemas import Review, ReviewData
from .scraper import PageScraper

_LOGGER = logging.getLogger(__name__)

TRUSTPILOT_URL = "https://www.trustpilot.com/review/{domain}"
SCRAPE_TIMEOUT = 15.0
MIN_PAGE_LENGTH = 300
MIN_REVIEW_LENGTH = 30
MIN_LINE_LENGTH = 15
MAX_REVIEW_CHARS = 500
MAX_REVIEWS = 10

EMPLOYMENT_KEYWORDS = [
    "applying for a job",
    "job application",
    "job interview",
    "hiring process",
    "interview process",
    "as an employee",
    "working there",
    "work environment",
    "got hired",
    "got fired",
    "called me a",
    "called the",
    "applied for",
]

PRODUCT_KEYWORDS = [
    "software",
    "tool",
    "platform",
    "dashboard",
    "data",
    "integration",
    "report",
    "analytics",
    "feature",
    "api",
    "subscription",
    "billing",
    "pricing",
    "support ticket",
    "bug",
    "app",
    "product",
]

_RATING_SPLIT = re.compile(r"(?=Rated \d out of 5 stars)")
_RATING = re.compile(r"Rated (\d) out of 5 stars")
_TRUST_SCORE = re.compile(r"(\d+\.\d+)")
_TOTAL_REVIEWS = (
    re.compile(r"Reviews\s*(\d[\d,]*)", re.IGNORECASE),
    re.compile(r"(\d[\d,]*)\s*reviews", re.IGNORECASE),
)
_AI_SUMMARY = re.compile(
    r"Review summary\s*\n\s*Based on reviews, created with AI\s*\n([\s\S]*?)(?=\n###|\nBased on these reviews)"
)


def review_domain(website: str) -> str:
    """Bare host of *website* without ``www.``."""

    url = website.strip()
    if not url.startswith("http"):
        url = f"https://{url}"
    host = urlparse(url).hostname or ""
    return host[4:] if host.startswith("www.") else host


def is_product_review(text: str) -> bool:
    """False for reviews about working at the company rather than using its product."""

    lowered = text.lower()
    if not any(keyword in lowered for keyword in EMPLOYMENT_KEYWORDS):
        return True
    return any(keyword in lowered for keyword in PRODUCT_KEYWORDS)


def parse_reviews(markdown: str) -> List[Review]:
    reviews: List[Review] = []
    for block in _RATING_SPLIT.split(markdown)[1:]:
        rating = _RATING.search(block)
        if rating is None:
            continue
        lines = [line for line in block.split("\n") if line.strip()]
        text_lines: List[str] = []
        date = ""
        for line in lines[1:]:
            if "Useful" in line or "Share" in line or "Flag" in line:
                continue
            if "Reply from" in line:
                break
            if "Date of experience" in line:
                date = line.replace("Date of experience:", "").replace("Date of experience", "").strip()
                continue
            if len(line.strip()) > MIN_LINE_LENGTH:
                text_lines.append(line.strip())
        text = " ".join(text_lines).strip()
        if len(text) <= MIN_REVIEW_LENGTH:
            continue
        if not is_product_review(text):
            _LOGGER.info("[ReviewMining] Filtered non-product review: %s...", text[:80])
            continue
        reviews.append(Review(rating=int(rating.group(1)), text=text[:MAX_REVIEW_CHARS], date=date or None))
        if len(reviews) >= MAX_REVIEWS:
            break
    return reviews


def parse_trustpilot_page(markdown: str, url: str) -> ReviewData:
    trust_score = _TRUST_SCORE.search(markdown)
    total = _TOTAL_REVIEWS[0].search(markdown) or _TOTAL_REVIEWS[1].search(markdown)
    summary = _AI_SUMMARY.search(markdown)
    return ReviewData(
        trustpilot_url=url,
        trust_score=float(trust_score.group(1)) if trust_score else None,
        total_reviews=int(total.group(1).replace(",", "")) if total else None,
        ai_summary=summary.group(1).strip() if summary else None,
        reviews=parse_reviews(markdown),
    )


class ReviewMiner:
    def __init__(self, scraper: PageScraper, *, logger: logging.Logger | None = None) -> None:
        self._scraper = scraper
        self._logger = logger or _LOGGER

    def is_available(self) -> bool:
        return self._scraper.is_available()

    async def mine(self, name: str, website: str | None) -> ReviewData | None:
        """Scrape the Trustpilot page for *website*; ``None`` when the company is not listed."""

        if not website:
            return None
        domain = review_domain(website)
        if not domain:
            return None
        url = TRUSTPILOT_URL.format(domain=domain)
        result = await self._scraper.scrape(url, timeout=SCRAPE_TIMEOUT)
        if not result.success or not result.markdown:
            return None
        if len(result.markdown) < MIN_PAGE_LENGTH:
            self._logger.info("[ReviewMining] Trustpilot page too short for %s, likely not listed", domain)
            return None
        data = parse_trustpilot_page(result.markdown, url)
        self._logger.info(
            "[ReviewMining] Trustpilot %s (%s): score=%s, total=%s, scraped=%d reviews",
            name,
            domain,
            data.trust_score,
            data.total_reviews,
            len(data.reviews),
        )
        return data

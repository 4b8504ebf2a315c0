import logging
import random
import re
from collections.abc import AsyncIterator
from typing import Literal
from urllib.parse import urlencode

import httpx
from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel, ValidationError

from tech_job_ingest.filters import JobFilter
from tech_job_ingest.models import RawCandidate
from tech_job_ingest.rate_limiter import RateLimiter
from tech_job_ingest.scrapers.base import BaseScraper, SourceRateLimitedError

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 15.0  # seconds
PAGE_SIZE = 25
MAX_CONSECUTIVE_ERRORS = 2
MAX_PAGES = 40

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.1 Safari/605.1.15",
]

DATE_SINCE_POSTED = {"past month": "r2592000", "past week": "r604800", "24hr": "r86400"}
EXPERIENCE_LEVELS = {
    "internship": "1",
    "entry level": "2",
    "associate": "3",
    "senior": "4",
    "director": "5",
    "executive": "6",
}
JOB_TYPES = {
    "full time": "F",
    "full-time": "F",
    "part time": "P",
    "part-time": "P",
    "contract": "C",
    "temporary": "T",
    "volunteer": "V",
    "internship": "I",
}
REMOTE_FILTERS = {"on-site": "1", "on site": "1", "remote": "2", "hybrid": "3"}
SALARY_FLOORS = {"40000": "1", "60000": "2", "80000": "3", "100000": "4", "120000": "5"}


class SearchQuery(BaseModel):
    """Search options understood by the LinkedIn guest job search."""

    keywords: str = ""
    location: str = ""
    date_since_posted: str = "past week"
    sort_by: Literal["recent", "relevant"] | None = "recent"
    job_type: str | None = None
    remote_filter: str | None = None
    experience_level: str | None = None
    salary: str | None = None
    has_verification: bool | None = None
    under_10_applicants: bool | None = None
    page: int = 0


def build_search_url(query: SearchQuery, start: int) -> str:
    """Build the guest search URL for one page of results."""
    params: list[tuple[str, str]] = []
    if query.keywords:
        params.append(("keywords", query.keywords))
    if query.location:
        params.append(("location", query.location))
    if tpr := DATE_SINCE_POSTED.get(query.date_since_posted.lower()):
        params.append(("f_TPR", tpr))
    if query.salary and (sb := SALARY_FLOORS.get(query.salary)):
        params.append(("f_SB2", sb))
    if query.experience_level and (e := EXPERIENCE_LEVELS.get(query.experience_level.lower())):
        params.append(("f_E", e))
    if query.remote_filter and (wt := REMOTE_FILTERS.get(query.remote_filter.lower())):
        params.append(("f_WT", wt))
    if query.job_type and (jt := JOB_TYPES.get(query.job_type.lower())):
        params.append(("f_JT", jt))
    if query.has_verification is not None:
        params.append(("f_VJ", "true" if query.has_verification else "false"))
    if query.under_10_applicants is not None:
        params.append(("f_EA", "true" if query.under_10_applicants else "false"))

    params.append(("start", str(start + query.page * PAGE_SIZE)))

    if query.sort_by == "recent":
        params.append(("sortBy", "DD"))
    elif query.sort_by == "relevant":
        params.append(("sortBy", "R"))

    return f"{LinkedInScraper.SEARCH_URL}?{urlencode(params)}"


class LinkedInScraper(BaseScraper):
    """
    Pages through LinkedIn's public (guest) job search and yields one
    RawCandidate per job card.

    Every page request goes through the shared RateLimiter. A 429 ends the
    run with SourceRateLimitedError, a 403 ends it quietly, and other errors
    are retried until MAX_CONSECUTIVE_ERRORS is exceeded.
    """

    SEARCH_URL = "https://www.linkedin.com/jobs-guest/jobs/api/seeMoreJobPostings/search"
    SOURCE_NAME = "LinkedIn"

    def __init__(self, rate_limiter: RateLimiter) -> None:
        self.rate_limiter = rate_limiter
        self.job_filter = JobFilter()

    async def fetch(self, query: SearchQuery, limit: int = PAGE_SIZE) -> AsyncIterator[RawCandidate]:
        produced = 0
        start = 0
        pages = 0

        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, follow_redirects=True) as client:
            while produced < limit and pages < MAX_PAGES:
                await self.rate_limiter.acquire()
                url = build_search_url(query, start)
                logger.info(f"Fetching listing page {start // PAGE_SIZE + 1}: {url}")

                try:
                    response = await client.get(url, headers=self._headers())
                    response.raise_for_status()
                except httpx.HTTPStatusError as e:
                    self.rate_limiter.record_error()
                    status = e.response.status_code
                    if status == 429:
                        logger.error("Rate limit reached (HTTP 429). Stopping this run.")
                        raise SourceRateLimitedError(f"HTTP 429 for {url}") from e
                    if status == 403:
                        logger.warning("Access forbidden (HTTP 403). The source may have blocked us.")
                        return
                    if self._too_many_errors():
                        return
                    logger.warning(f"HTTP {status} fetching listing page. Retrying with backoff...")
                    continue
                except httpx.HTTPError as e:
                    self.rate_limiter.record_error()
                    if self._too_many_errors():
                        return
                    logger.warning(f"Network error fetching listing page: {e}. Retrying with backoff...")
                    continue

                self.rate_limiter.record_success()
                pages += 1

                soup = BeautifulSoup(response.text, "html.parser")
                cards = soup.select("li")
                if not cards:
                    logger.info("No more jobs found.")
                    return

                for card in cards:
                    candidate = self.parse_card(card)
                    if candidate is None:
                        continue
                    yield candidate
                    produced += 1
                    if produced >= limit:
                        break

                logger.info(f"Found {len(cards)} cards on this page, {produced} candidates so far")
                start += PAGE_SIZE

    def _too_many_errors(self) -> bool:
        if self.rate_limiter.consecutive_errors > MAX_CONSECUTIVE_ERRORS:
            logger.error("Too many consecutive errors. Stopping with partial results.")
            return True
        return False

    @staticmethod
    def _headers() -> dict[str, str]:
        return {
            "User-Agent": random.choice(USER_AGENTS),
            "Accept": "application/json, text/javascript, */*; q=0.01",
            "Accept-Language": "en-US,en;q=0.9",
            "Referer": "https://www.linkedin.com/jobs",
            "X-Requested-With": "XMLHttpRequest",
            "Cache-Control": "no-cache",
        }

    def parse_card(self, card: Tag) -> RawCandidate | None:
        """Parse one job card. Returns None for malformed cards."""
        position = self._text(card, ".base-search-card__title")
        company = self._text(card, ".base-search-card__subtitle")
        link = card.select_one(".base-card__full-link")
        href = str(link.get("href", "")).strip() if link else ""

        if not position or not company or not href:
            return None

        city = self._text(card, ".job-search-card__location")
        time_el = card.select_one("time")
        posted = str(time_el.get("datetime", "")) if time_el else ""
        salary = re.sub(r"\s+", " ", self._text(card, ".job-search-card__salary-info"))

        try:
            return RawCandidate(
                position=clean_position(position),
                company=company,
                city_text=clean_city(city),
                posted_date_text=posted,
                salary_text=salary or "Not specified",
                listing_url=href,
                source_ago_text=self._text(card, ".job-search-card__listdate"),
                remote_hint=self.job_filter.looks_remote(position, city),
            )
        except ValidationError as e:
            logger.warning(f"Skipping malformed job card: {e}")
            return None

    @staticmethod
    def _text(card: Tag, selector: str) -> str:
        el = card.select_one(selector)
        return el.get_text(strip=True) if el else ""


def clean_position(position: str) -> str:
    """Drop "at Company" suffixes and trailing parentheses like "(Remote)"."""
    cleaned = re.sub(r"\s+at\s+.*$", "", position, flags=re.IGNORECASE)
    cleaned = re.sub(r"\s*\([^)]*\)\s*$", "", cleaned)
    return cleaned.strip() or position.strip()


def clean_city(city: str) -> str:
    """Keep just the city from "Lagos, Lagos State, Nigeria" unless it is a remote/hybrid label."""
    if not city or city.lower() == "remote":
        return city
    lowered = city.lower()
    if "remote" in lowered or "hybrid" in lowered:
        return city
    return city.split(",")[0].strip() or city

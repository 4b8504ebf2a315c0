import asyncio
import logging
import random
import re

from bs4 import BeautifulSoup
from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright_stealth import Stealth

from tech_job_ingest.filters import JobFilter
from tech_job_ingest.models import EnrichedCandidate, RawCandidate
from tech_job_ingest.salary import find_salary_in_description, parse_salary
from tech_job_ingest.scrapers.apply_strategies import (
    ApplyUrlStrategy,
    ExtractionContext,
    default_strategies,
)
from tech_job_ingest.scrapers.linkedin_scraper import USER_AGENTS
from tech_job_ingest.urls import SOURCE_DOMAIN, extract_job_id

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
INITIAL_BACKOFF = 2  # seconds
PAGE_TIMEOUT = 30000  # milliseconds
MAX_CONCURRENCY = 2
BATCH_DELAY = 3.0  # seconds between batches
MIN_DESCRIPTION_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 10000

DESCRIPTION_SELECTORS = [
    ".jobs-description",
    ".job-details-jobs-unified-description",
    ".jobs-description__content",
    ".job-details-description",
    '[data-test-id="job-details-description"]',
    ".job-detail-description",
    ".show-more-less-html__markup",
    ".description__text",
    ".job-description",
]

CITY_SELECTORS = [
    ".job-details-jobs-unified-top-card__bullet",
    ".jobs-unified-top-card__bullet",
    ".topcard__flavor--bullet",
    ".job-details-jobs-unified-top-card__primary-description-container .tvm__text",
    ".jobs-unified-top-card__subtitle-primary-grouping .jobs-unified-top-card__bullet",
]

_job_filter = JobFilter()


def extract_description(soup: BeautifulSoup) -> str:
    """First description block long enough to be real, whitespace-collapsed and capped."""
    for selector in DESCRIPTION_SELECTORS:
        el = soup.select_one(selector)
        if not el:
            continue
        text = re.sub(r"\s+", " ", el.get_text(" ", strip=True)).strip()
        if len(text) >= MIN_DESCRIPTION_LENGTH:
            return text[:MAX_DESCRIPTION_LENGTH]
    return ""


def extract_city(soup: BeautifulSoup) -> str:
    for selector in CITY_SELECTORS:
        el = soup.select_one(selector)
        if el:
            text = el.get_text(strip=True)
            if text:
                return text
    return ""


def complete_candidate(
    candidate: RawCandidate,
    description: str = "",
    city: str = "",
    apply_url: str | None = None,
) -> EnrichedCandidate:
    """
    Build the EnrichedCandidate for a card. Salary and sponsorship hints are
    derived here so that they are present even when the detail page failed.
    """
    salary = parse_salary(candidate.salary_text)
    if salary.is_empty:
        salary = find_salary_in_description(description)

    card = candidate.model_dump(include=set(RawCandidate.model_fields))
    card["city_text"] = city or candidate.city_text

    return EnrichedCandidate(
        **card,
        description=description,
        apply_url=apply_url or candidate.listing_url,
        source_id=extract_job_id(candidate.listing_url),
        is_sponsored_hint=_job_filter.mentions_sponsorship(candidate.position, description),
        salary_min=salary.min,
        salary_max=salary.max,
        currency=salary.currency,
    )


class DetailExtractor:
    """
    Visits job detail pages in a stealth headless Chromium and completes each
    RawCandidate with its description, a better city and the real apply URL.

    Use as an async context manager:

        async with DetailExtractor() as extractor:
            enriched = await extractor.extract_many(candidates)
    """

    def __init__(
        self,
        strategies: list[ApplyUrlStrategy] | None = None,
        source_domain: str = SOURCE_DOMAIN,
        max_concurrency: int = MAX_CONCURRENCY,
        batch_delay: float = BATCH_DELAY,
        max_retries: int = MAX_RETRIES,
        initial_backoff: float = INITIAL_BACKOFF,
    ) -> None:
        self.strategies = strategies if strategies is not None else default_strategies()
        self.source_domain = source_domain
        self.max_concurrency = max_concurrency
        self.batch_delay = batch_delay
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self._playwright_cm = None
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def __aenter__(self) -> "DetailExtractor":
        self._playwright_cm = Stealth().use_async(async_playwright())
        self._playwright = await self._playwright_cm.__aenter__()
        self._browser = await self._playwright.chromium.launch(
            headless=True,
            args=["--no-sandbox", "--disable-dev-shm-usage"],
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright_cm is not None:
            await self._playwright_cm.__aexit__(*exc_info)
            self._playwright_cm = None
            self._playwright = None

    async def extract_many(self, candidates: list[RawCandidate]) -> list[EnrichedCandidate]:
        """Extract in batches of `max_concurrency`, pausing between batches. Keeps input order."""
        results: list[EnrichedCandidate] = []
        for i in range(0, len(candidates), self.max_concurrency):
            batch = candidates[i : i + self.max_concurrency]
            results.extend(await asyncio.gather(*(self.extract(c) for c in batch)))
            if i + self.max_concurrency < len(candidates):
                await asyncio.sleep(self.batch_delay)
        return results

    async def extract(self, candidate: RawCandidate) -> EnrichedCandidate:
        """Never raises: on any failure the candidate comes back with listing-only data."""
        if self._browser is None:
            raise RuntimeError("DetailExtractor must be used as an async context manager")

        context = None
        try:
            context = await self._browser.new_context(
                user_agent=random.choice(USER_AGENTS),
                viewport={"width": 1920, "height": 1080},
                locale="en-US",
            )
            page = await context.new_page()
            extraction = ExtractionContext(candidate.listing_url, self.source_domain)
            page.on("request", lambda request: extraction.record_request(request.url))

            html = await self._fetch_page(page, candidate.listing_url)
            if html is None:
                logger.warning(f"Failed to fetch detail page: {candidate.listing_url}")
                return complete_candidate(candidate)
            extraction.html = html

            soup = BeautifulSoup(html, "html.parser")
            description = extract_description(soup)
            city = extract_city(soup)
            apply_url = await self.resolve_apply_url(page, extraction)

            return complete_candidate(candidate, description, city, apply_url)
        except Exception as e:
            logger.warning(f"Detail extraction failed for {candidate.listing_url}: {e}")
            return complete_candidate(candidate)
        finally:
            if context is not None:
                await context.close()

    async def resolve_apply_url(self, page: Page, extraction: ExtractionContext) -> str | None:
        """Run the strategies in order; the first external URL wins."""
        for strategy in self.strategies:
            try:
                url = await strategy.attempt(page, extraction)
            except Exception as e:
                logger.debug(f"Apply strategy {strategy.name} failed: {e}")
                continue
            if url:
                logger.info(f"Found apply URL via {strategy.name}: {url}")
                return url
        logger.info(f"No external apply URL found, using listing URL {extraction.listing_url}")
        return None

    async def _fetch_page(self, page: Page, url: str) -> str | None:
        """Navigate with retry and exponential backoff. Returns the HTML or None."""
        for attempt in range(1, self.max_retries + 1):
            try:
                response = await page.goto(url, timeout=PAGE_TIMEOUT, wait_until="domcontentloaded")
                if response and response.status >= 400:
                    raise Exception(f"HTTP {response.status} for {url}")
                return await page.content()
            except Exception as e:
                if attempt == self.max_retries:
                    logger.error(f"Failed after {self.max_retries} attempts fetching {url}: {e}")
                else:
                    backoff = self.initial_backoff * (2 ** (attempt - 1))
                    logger.warning(
                        f"Fetch attempt {attempt}/{self.max_retries} failed for {url}: {e}. "
                        f"Retrying in {backoff}s..."
                    )
                    await asyncio.sleep(backoff)
        return None

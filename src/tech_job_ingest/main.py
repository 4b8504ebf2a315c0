import argparse
import asyncio
import logging
import signal
import sys
from collections import Counter
from datetime import UTC, datetime, timedelta

from tech_job_ingest.categories import CATEGORY_KEYWORDS, search_keywords
from tech_job_ingest.config import (
    DATE_SINCE_POSTED,
    DB_PATH,
    QUALITY_THRESHOLD,
    RATE_LIMIT_PER_HOUR,
    RATE_LIMIT_PER_MINUTE,
    SCRAPE_INTERVAL,
    SEARCH_LOCATION,
)
from tech_job_ingest.db import Database
from tech_job_ingest.enrichment.client import AIEnrichmentClient
from tech_job_ingest.models import JobCategory, PipelineStatus, RawCandidate
from tech_job_ingest.notifier import TelegramNotifier
from tech_job_ingest.pipeline import JobProcessingPipeline
from tech_job_ingest.quality import QualityPolicy
from tech_job_ingest.rate_limiter import RateLimitConfig, RateLimiter
from tech_job_ingest.scrapers.base import SourceRateLimitedError
from tech_job_ingest.scrapers.detail_extractor import DetailExtractor
from tech_job_ingest.scrapers.linkedin_scraper import LinkedInScraper, SearchQuery

# Set up logging once, in the application entry point only
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=logging.INFO
)
logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 25


def build_searches(keywords: str | None, category: str | None) -> list[tuple[str, str | None]]:
    """
    (keywords, category) pairs for one crawl. Explicit keywords win; a
    category alone expands to its keyword query; neither means every category.
    """
    if keywords:
        return [(keywords, category)]
    if category:
        return [(search_keywords(category), category)]
    return [(search_keywords(c), c.value) for c in CATEGORY_KEYWORDS]


def known_country_for(location: str) -> str | None:
    """The country part of a search location such as "Lagos, Nigeria"."""
    country = location.split(",")[-1].strip()
    return country or None


async def fetch_candidates(
    scraper: LinkedInScraper,
    query: SearchQuery,
    limit: int,
) -> list[RawCandidate]:
    candidates: list[RawCandidate] = []
    async for candidate in scraper.fetch(query, limit):
        candidates.append(candidate)
    return candidates


def build_rate_limiter() -> RateLimiter:
    """The source budget from RATE_LIMIT_PER_MINUTE / RATE_LIMIT_PER_HOUR."""
    return RateLimiter(
        RateLimitConfig(
            max_requests_per_minute=RATE_LIMIT_PER_MINUTE,
            max_requests_per_hour=RATE_LIMIT_PER_HOUR,
        )
    )


async def run_pipeline(
    keywords: str | None = None,
    location: str | None = None,
    category: str | None = None,
    limit: int = DEFAULT_LIMIT,
    date_since_posted: str | None = None,
    rate_limiter: RateLimiter | None = None,
) -> Counter[str]:
    """
    Run a single crawl: fetch listings, visit detail pages, process every job.

    Pass the same `rate_limiter` to every run of a long-lived process so the
    per-hour budget holds across runs.
    """
    logger.info("Starting tech job ingestion run...")

    location = location if location is not None else SEARCH_LOCATION
    date_since_posted = date_since_posted or DATE_SINCE_POSTED
    counts: Counter[str] = Counter()

    scraper = LinkedInScraper(rate_limiter or build_rate_limiter())

    with Database(db_path=DB_PATH) as db:
        pipeline = JobProcessingPipeline(
            db,
            AIEnrichmentClient.from_config(),
            QualityPolicy(threshold=QUALITY_THRESHOLD),
            TelegramNotifier.from_config(),
        )

        async with DetailExtractor() as extractor:
            for search_keywords_, search_category in build_searches(keywords, category):
                query = SearchQuery(
                    keywords=search_keywords_,
                    location=location,
                    date_since_posted=date_since_posted,
                )
                logger.info(f"Searching {scraper.SOURCE_NAME} for '{search_keywords_}' in {location}")

                try:
                    candidates = await fetch_candidates(scraper, query, limit)
                except SourceRateLimitedError as e:
                    logger.error(f"Source rate limit hit, ending this run: {e}")
                    break

                counts["fetched"] += len(candidates)
                detailed = await extractor.extract_many(candidates)

                for candidate in detailed:
                    result = await pipeline.process_incoming_job(
                        candidate,
                        source=scraper.SOURCE_NAME,
                        known_country=known_country_for(location),
                        category=search_category,
                    )
                    counts[result.status.value] += 1

    logger.info(
        f"Pipeline finished. "
        f"Fetched: {counts['fetched']}, "
        f"Saved: {counts[PipelineStatus.SUCCESS.value]}, "
        f"Duplicates: {counts[PipelineStatus.DUPLICATE.value]}, "
        f"Not tech: {counts[PipelineStatus.NOT_TECH_JOB.value]}, "
        f"Low quality: {counts[PipelineStatus.LOW_QUALITY.value]}, "
        f"Errors: {counts[PipelineStatus.ERROR.value]}"
    )
    return counts


async def run_loop(interval_minutes: int, **run_options) -> None:
    """
    Run the pipeline in a continuous loop with a configurable interval.

    Handles SIGINT/SIGTERM for graceful shutdown. Errors in a single pipeline
    run are logged but do not crash the loop.
    """
    shutdown_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received. Finishing current cycle...")
        shutdown_event.set()

    # Register signal handlers on the running event loop
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    logger.info(
        f"Starting continuous loop (interval: {interval_minutes} min). Press Ctrl+C to stop."
    )

    rate_limiter = build_rate_limiter()

    while not shutdown_event.is_set():
        try:
            await run_pipeline(rate_limiter=rate_limiter, **run_options)
        except Exception as e:
            logger.error(f"Pipeline error (will retry next cycle): {e}")

        if shutdown_event.is_set():
            break

        next_run = datetime.now(tz=UTC) + timedelta(minutes=interval_minutes)
        logger.info(f"Next run at {next_run.strftime('%Y-%m-%d %H:%M:%S UTC')}")

        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval_minutes * 60)
        except TimeoutError:
            # The interval elapsed without a shutdown signal
            pass

    logger.info("Shutting down gracefully.")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="tech-job-ingest",
        description=(
            "Crawl LinkedIn job listings, enrich them with AI, and store the "
            "tech jobs that pass the quality gate."
        ),
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        help="Run the pipeline once and exit.",
    )
    mode.add_argument(
        "--loop",
        action="store_true",
        default=True,
        help="Run the pipeline in a continuous loop (default).",
    )

    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        metavar="MINUTES",
        help=(
            "Scrape interval in minutes (overrides SCRAPE_INTERVAL env var). "
            "Must be a positive integer."
        ),
    )
    parser.add_argument(
        "--keywords",
        default=None,
        help="Search keywords. Defaults to the keyword list of --category.",
    )
    parser.add_argument(
        "--location",
        default=None,
        help="Search location (overrides SEARCH_LOCATION env var).",
    )
    parser.add_argument(
        "--category",
        type=str.upper,
        choices=[c.value for c in JobCategory],
        default=None,
        help="Job category to crawl. Without --keywords or --category every category is crawled.",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_LIMIT,
        help=f"Maximum listings per search (default: {DEFAULT_LIMIT}).",
    )
    parser.add_argument(
        "--date-since-posted",
        choices=["past month", "past week", "24hr"],
        default=None,
        help="Freshness window (overrides DATE_SINCE_POSTED env var).",
    )

    return parser.parse_args(argv)


def cli(argv: list[str] | None = None) -> None:
    """CLI entry point for the package."""
    args = parse_args(argv)

    # Determine interval: CLI flag > env var > default (1440)
    if args.interval is not None:
        if args.interval <= 0:
            logger.error("--interval must be a positive integer.")
            sys.exit(1)
        interval = args.interval
    else:
        interval = SCRAPE_INTERVAL

    if args.limit <= 0:
        logger.error("--limit must be a positive integer.")
        sys.exit(1)

    run_options = {
        "keywords": args.keywords,
        "location": args.location,
        "category": args.category,
        "limit": args.limit,
        "date_since_posted": args.date_since_posted,
    }

    if args.once:
        asyncio.run(run_pipeline(**run_options))
    else:
        asyncio.run(run_loop(interval, **run_options))


if __name__ == "__main__":
    cli()

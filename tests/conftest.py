import os
from datetime import UTC, datetime

import pytest

# Set environment variables for tests before any imports happen
os.environ["TELEGRAM_BOT_TOKEN"] = "test_bot_token"
os.environ["TELEGRAM_CHANNEL_ID"] = "test_channel_id"
os.environ["GOOGLE_API_KEY"] = "test_google_key"
os.environ["OPENAI_API_KEY"] = "test_openai_key"
os.environ["ANTHROPIC_API_KEY"] = "test_anthropic_key"
os.environ["DB_PATH"] = ":memory:"

from tech_job_ingest.db import Database  # noqa: E402
from tech_job_ingest.models import (  # noqa: E402
    EnrichedCandidate,
    EnrichedJob,
    ExperienceLevel,
    JobCategory,
    JobType,
    NormalizedJob,
    RawCandidate,
)

LISTING_URL = "https://www.linkedin.com/jobs/view/senior-software-engineer-at-paystack-3912345678"


@pytest.fixture
def db():
    """A fresh in-memory job store."""
    with Database(db_path=":memory:") as database:
        yield database


@pytest.fixture
def raw_candidate():
    """A job card as the listing fetcher produces it."""
    return RawCandidate(
        position="Senior Software Engineer",
        company="Paystack",
        city_text="Lagos",
        posted_date_text="2025-01-10",
        salary_text="$120,000 - $160,000",
        listing_url=LISTING_URL,
        source_ago_text="1 week ago",
    )


@pytest.fixture
def enriched_candidate(raw_candidate):
    """The same card after the detail page was visited."""
    return EnrichedCandidate(
        **raw_candidate.model_dump(),
        description=(
            "Build payment APIs in Go and Python. We offer visa sponsorship "
            "and relocation assistance for the right candidate."
        ),
        apply_url="https://careers.paystack.com/apply/123",
        source_id="3912345678",
        is_sponsored_hint=True,
        salary_min=120000,
        salary_max=160000,
        currency="USD",
    )


@pytest.fixture
def normalized_job():
    return NormalizedJob(
        title="Senior Software Engineer",
        description="Build payment APIs in Go and Python.",
        company_name="Paystack",
        city="Lagos",
        country="Nigeria",
        posted_at=datetime(2025, 1, 10, tzinfo=UTC),
        url="https://careers.paystack.com/apply/123",
        listing_url=LISTING_URL,
        source="LinkedIn",
        source_id="3912345678",
    )


@pytest.fixture
def enriched_job(normalized_job):
    """A job as it comes out of AI enrichment."""
    data = normalized_job.model_dump()
    data["experience_level"] = ExperienceLevel.SENIOR
    return EnrichedJob(
        **data,
        cleaned_title="Senior Software Engineer",
        standardized_city="Lagos",
        job_type=JobType.FULL_TIME,
        quality_score=0.8,
        is_visa_sponsored=True,
        summarized_description="Senior engineer building payment APIs.",
        company_website="paystack.com",
        ai_category=JobCategory.ENGINEERING,
        ai_provider="gemini",
    )

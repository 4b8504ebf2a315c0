import logging
import re
from datetime import UTC, datetime, timedelta

from tech_job_ingest.filters import JobFilter
from tech_job_ingest.models import (
    EnrichedCandidate,
    ExperienceLevel,
    JobType,
    NormalizedJob,
    RawCandidate,
)
from tech_job_ingest.salary import parse_salary
from tech_job_ingest.urls import extract_job_id

logger = logging.getLogger(__name__)

UNTITLED_POSITION = "Untitled Position"
UNKNOWN_COMPANY = "Unknown Company"

_RELATIVE_DATE = re.compile(
    r"(\d+)\s*(minute|min|hour|hr|day|week|month|year)s?\s+ago", re.IGNORECASE
)
_UNIT_DAYS = {"day": 1, "week": 7, "month": 30, "year": 365}

_job_filter = JobFilter()


def parse_posted_at(*texts: str | None, now: datetime | None = None) -> datetime:
    """
    First parsable date among `texts`: ISO dates/timestamps, or relative text
    like "3 days ago". Falls back to `now` (UTC).
    """
    now = now or datetime.now(UTC)
    for text in texts:
        if not text:
            continue
        text = text.strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
        except ValueError:
            pass

        match = _RELATIVE_DATE.search(text)
        if match:
            amount = int(match.group(1))
            unit = match.group(2).lower()
            if unit in ("minute", "min"):
                return now - timedelta(minutes=amount)
            if unit in ("hour", "hr"):
                return now - timedelta(hours=amount)
            return now - timedelta(days=amount * _UNIT_DAYS[unit])
        if text.lower() in ("just now", "today"):
            return now

    return now


def _country_from(city_text: str) -> str:
    parts = [part.strip() for part in city_text.split(",") if part.strip()]
    return parts[-1] if len(parts) > 1 else ""


def normalize_job(
    candidate: RawCandidate,
    source: str,
    known_country: str | None = None,
    category: str | None = None,
) -> NormalizedJob:
    """
    Map a candidate onto the canonical NormalizedJob shape. Pure: no I/O.

    Missing title and company get placeholders, an unparsable date becomes
    "now", and an internship-looking title sets INTERNSHIP / ENTRY_LEVEL
    (the AI may override both later).
    """
    enriched = candidate if isinstance(candidate, EnrichedCandidate) else None

    title = candidate.position.strip() or UNTITLED_POSITION
    company = candidate.company.strip() or UNKNOWN_COMPANY
    city = candidate.city_text.strip()
    description = enriched.description if enriched else ""

    job_type = JobType.FULL_TIME
    level = ExperienceLevel.MID_LEVEL
    if _job_filter.is_internship_title(title):
        job_type = JobType.INTERNSHIP
        level = ExperienceLevel.ENTRY_LEVEL

    salary_min = enriched.salary_min if enriched else None
    salary_max = enriched.salary_max if enriched else None
    currency = enriched.currency if enriched else None
    if salary_min is None and salary_max is None:
        salary = parse_salary(candidate.salary_text)
        salary_min, salary_max, currency = salary.min, salary.max, salary.currency or currency

    url = (enriched.resolved_apply_url if enriched else "") or candidate.listing_url
    source_id = (enriched.source_id if enriched else None) or extract_job_id(candidate.listing_url)

    return NormalizedJob(
        title=title,
        description=description,
        company_name=company,
        city=city,
        country=known_country or _country_from(city),
        posted_at=parse_posted_at(candidate.posted_date_text, candidate.source_ago_text),
        type=job_type,
        experience_level=level,
        salary_text=candidate.salary_text or None,
        salary_min=salary_min,
        salary_max=salary_max,
        currency=currency,
        url=url,
        listing_url=candidate.listing_url,
        source=source,
        source_id=source_id,
        remote=candidate.remote_hint or _job_filter.looks_remote(city),
        category=category,
        sponsorship_hint=(enriched is not None and enriched.is_sponsored_hint)
        or _job_filter.mentions_sponsorship(title, description),
    )

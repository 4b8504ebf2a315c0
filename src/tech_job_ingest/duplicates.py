import logging
from datetime import timedelta

from tech_job_ingest.db import Database
from tech_job_ingest.models import ExistingJobRef, NormalizedJob
from tech_job_ingest.normalizer import UNKNOWN_COMPANY

logger = logging.getLogger(__name__)

FUZZY_WINDOW = timedelta(days=7)


class DuplicateDetector:
    """
    Finds an already-stored job matching an incoming one. Tiers run in order
    and the first hit wins:

    1. same source and source id
    2. same URL (apply URL, then listing URL)
    3. same company, similar title, posted within FUZZY_WINDOW (skipped when
       the company is unknown)

    A failing tier is logged and treated as "no match" so the next one still runs.
    """

    def __init__(self, db: Database, window: timedelta = FUZZY_WINDOW) -> None:
        self.db = db
        self.window = window

    def find_existing(self, job: NormalizedJob) -> ExistingJobRef | None:
        for tier in (self._by_source_id, self._by_url, self._by_similarity):
            try:
                match = tier(job)
            except Exception as e:
                logger.warning(f"Duplicate check {tier.__name__} failed for {job.url}: {e}")
                continue
            if match is not None:
                logger.info(f"Duplicate of job {match.id} ({match.matched_on}): {job.title}")
                return match
        return None

    def _by_source_id(self, job: NormalizedJob) -> ExistingJobRef | None:
        if not job.source_id:
            return None
        job_id = self.db.find_by_source_id(job.source, job.source_id)
        return ExistingJobRef(id=job_id, matched_on="source_id") if job_id is not None else None

    def _by_url(self, job: NormalizedJob) -> ExistingJobRef | None:
        for url in dict.fromkeys(u for u in (job.url, job.listing_url) if u):
            job_id = self.db.find_by_url(url)
            if job_id is not None:
                return ExistingJobRef(id=job_id, matched_on="url")
        return None

    def _by_similarity(self, job: NormalizedJob) -> ExistingJobRef | None:
        # unidentified companies would all collapse into one
        if job.company_name == UNKNOWN_COMPANY:
            return None
        matches = self.db.find_similar_jobs(
            job.company_name,
            job.title,
            job.posted_at - self.window,
            job.posted_at + self.window,
        )
        if not matches:
            return None
        job_id, score = matches[0]
        return ExistingJobRef(id=job_id, matched_on="similarity", score=score)

import logging

from pydantic import BaseModel, Field

from tech_job_ingest.models import EnrichedJob, JobCategory, QualityResult
from tech_job_ingest.normalizer import UNKNOWN_COMPANY
from tech_job_ingest.urls import SOURCE_DOMAIN, is_source_url

logger = logging.getLogger(__name__)


class QualityPolicy(BaseModel):
    """Acceptance threshold and the bonuses added on top of the AI quality score."""

    threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    min_title_length: int = 5
    title_bonus: float = 0.1
    company_bonus: float = 0.1
    city_bonus: float = 0.05
    source_url_bonus: float = 0.1
    remote_bonus: float = 0.05
    source_domain: str = SOURCE_DOMAIN


def evaluate(job: EnrichedJob, policy: QualityPolicy | None = None) -> QualityResult:
    """
    Final score = AI quality score plus bonuses, capped at 1.0.

    Category is the caller's, else the AI's, else OTHER. `is_tech_job` is
    not looked at here; the pipeline gates on it before this runs.
    """
    policy = policy or QualityPolicy()
    score = job.quality_score

    if len(job.cleaned_title.strip()) >= policy.min_title_length:
        score += policy.title_bonus
    if job.company_name and job.company_name != UNKNOWN_COMPANY:
        score += policy.company_bonus
    if job.standardized_city and job.standardized_city.strip().lower() != "remote":
        score += policy.city_bonus
    if is_source_url(job.url, policy.source_domain):
        score += policy.source_url_bonus
    if job.remote:
        score += policy.remote_bonus

    final_score = round(min(score, 1.0), 4)
    category = job.category or (job.ai_category.value if job.ai_category else JobCategory.OTHER.value)
    accept = final_score >= policy.threshold

    logger.debug(f"Quality for '{job.cleaned_title}': {job.quality_score} -> {final_score}")
    return QualityResult(final_score=final_score, category=category, accept=accept)

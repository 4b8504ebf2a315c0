import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from tech_job_ingest.db import Database
from tech_job_ingest.duplicates import DuplicateDetector
from tech_job_ingest.enrichment.client import AIEnrichmentClient
from tech_job_ingest.models import (
    EnrichedCandidate,
    EnrichedJob,
    PipelineResult,
    PipelineStatus,
    QualityResult,
    RawCandidate,
)
from tech_job_ingest.normalizer import normalize_job
from tech_job_ingest.notifier import TelegramNotifier
from tech_job_ingest.quality import QualityPolicy, evaluate

logger = logging.getLogger(__name__)


class JobProcessingPipeline:
    """
    Takes one incoming job through

        normalize -> duplicate check -> AI enrichment -> tech gate
        -> quality gate -> persist -> notify

    and reports exactly one PipelineResult. Each stage returns either the
    value for the next stage or a terminal PipelineResult that ends the run.
    Anything unexpected becomes an `error` result; nothing is raised.
    """

    def __init__(
        self,
        db: Database,
        ai_client: AIEnrichmentClient,
        policy: QualityPolicy | None = None,
        notifier: TelegramNotifier | None = None,
    ) -> None:
        self.db = db
        self.ai_client = ai_client
        self.policy = policy or QualityPolicy()
        self.notifier = notifier
        self.duplicates = DuplicateDetector(db)

    async def process_incoming_job(
        self,
        raw_job_data: RawCandidate | Mapping[str, Any],
        source: str,
        known_country: str | None = None,
        category: str | None = None,
    ) -> PipelineResult:
        try:
            return await self._process(raw_job_data, source, known_country, category)
        except Exception as e:
            logger.error(f"Unexpected error processing job from {source}: {e}")
            return PipelineResult.error()

    async def _process(
        self,
        raw_job_data: RawCandidate | Mapping[str, Any],
        source: str,
        known_country: str | None,
        category: str | None,
    ) -> PipelineResult:
        candidate = self._validate(raw_job_data)
        if isinstance(candidate, PipelineResult):
            return candidate

        job = normalize_job(candidate, source, known_country, category)

        existing = self.duplicates.find_existing(job)
        if existing is not None:
            return PipelineResult.duplicate(existing.id)

        enriched = await self.ai_client.enrich(job)
        if not enriched.is_tech_job:
            logger.info(f"Not a tech job, skipping: {job.title} at {job.company_name}")
            return PipelineResult.not_tech_job()

        quality = evaluate(enriched, self.policy)
        if not quality.accept:
            logger.info(
                f"Low quality ({quality.final_score:.2f} < {self.policy.threshold}), "
                f"skipping: {job.title} at {job.company_name}"
            )
            return PipelineResult.low_quality()

        result = self._persist(enriched, quality)
        if result.status == PipelineStatus.SUCCESS and result.job_id is not None:
            await self._notify(result.job_id)
        return result

    def _validate(self, raw_job_data: RawCandidate | Mapping[str, Any]) -> RawCandidate | PipelineResult:
        if isinstance(raw_job_data, RawCandidate):
            return raw_job_data
        try:
            return EnrichedCandidate.model_validate(dict(raw_job_data))
        except ValidationError as e:
            logger.warning(f"Rejecting malformed job payload: {e}")
            return PipelineResult.error()

    def _persist(self, job: EnrichedJob, quality: QualityResult) -> PipelineResult:
        job_id = self.db.save_job(job, quality.final_score, quality.category)
        if job_id is not None:
            logger.info(f"Saved job {job_id}: {job.cleaned_title} at {job.company_name}")
            return PipelineResult.success(job_id)

        # Lost a race with a concurrent insert of the same job.
        existing = self.duplicates.find_existing(job)
        if existing is None:
            raise RuntimeError(f"Insert conflict for {job.url} but no stored job matches it")
        return PipelineResult.duplicate(existing.id)

    async def _notify(self, job_id: int) -> None:
        """Best-effort: a failed notification never changes the result."""
        if self.notifier is None:
            return
        try:
            persisted = self.db.get_job(job_id)
            if persisted is not None:
                await self.notifier.notify(persisted)
        except Exception as e:
            logger.warning(f"Failed to send notification for job {job_id}: {e}")

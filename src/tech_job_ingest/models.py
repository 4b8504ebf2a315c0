from datetime import datetime
from enum import StrEnum
from typing import Annotated

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StringConstraints


class JobType(StrEnum):
    FULL_TIME = "FULL_TIME"
    PART_TIME = "PART_TIME"
    CONTRACT = "CONTRACT"
    FREELANCE = "FREELANCE"
    INTERNSHIP = "INTERNSHIP"
    APPRENTICESHIP = "APPRENTICESHIP"


class ExperienceLevel(StrEnum):
    ENTRY_LEVEL = "ENTRY_LEVEL"
    JUNIOR = "JUNIOR"
    MID_LEVEL = "MID_LEVEL"
    SENIOR = "SENIOR"
    EXECUTIVE = "EXECUTIVE"


class JobCategory(StrEnum):
    ENGINEERING = "ENGINEERING"
    SALES = "SALES"
    MARKETING = "MARKETING"
    DATA = "DATA"
    DEVOPS = "DEVOPS"
    PRODUCT = "PRODUCT"
    DESIGN = "DESIGN"
    CLOUD = "CLOUD"
    SUPPORT = "SUPPORT"
    MANAGEMENT = "MANAGEMENT"
    RESEARCH = "RESEARCH"
    LEGAL = "LEGAL"
    FINANCE = "FINANCE"
    OPERATIONS = "OPERATIONS"
    PR = "PR"
    HR = "HR"
    OTHER = "OTHER"


class SalaryInfo(BaseModel):
    """Best-effort parse of a salary string. All fields empty when nothing matched."""

    min: float | None = None
    max: float | None = None
    currency: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.min is None and self.max is None


class RawCandidate(BaseModel):
    """
    A job card as read from a listing page, before any cleanup.
    Accepts the camelCase keys used by upstream job payloads.
    """

    model_config = ConfigDict(populate_by_name=True)

    position: str = Field(validation_alias=AliasChoices("position", "title"))
    company: str = ""
    city_text: str = Field(
        default="", validation_alias=AliasChoices("city_text", "cityText", "location", "city")
    )
    posted_date_text: str = Field(
        default="", validation_alias=AliasChoices("posted_date_text", "postedDateText", "date")
    )
    salary_text: str = Field(
        default="", validation_alias=AliasChoices("salary_text", "salaryText", "salary")
    )
    listing_url: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)] = Field(
        validation_alias=AliasChoices("listing_url", "listingUrl", "jobUrl", "url")
    )
    source_ago_text: str = Field(
        default="", validation_alias=AliasChoices("source_ago_text", "sourceAgoText", "agoTime")
    )
    remote_hint: bool = Field(
        default=False, validation_alias=AliasChoices("remote_hint", "remoteHint", "remote")
    )


class EnrichedCandidate(RawCandidate):
    """A RawCandidate completed with what the job detail page revealed."""

    description: str = ""
    apply_url: str | None = Field(
        default=None, validation_alias=AliasChoices("apply_url", "applyUrl")
    )
    source_id: str | None = Field(
        default=None, validation_alias=AliasChoices("source_id", "sourceId")
    )
    is_sponsored_hint: bool = Field(
        default=False,
        validation_alias=AliasChoices("is_sponsored_hint", "isSponsoredHint", "isSponsored"),
    )
    salary_min: float | None = Field(
        default=None, validation_alias=AliasChoices("salary_min", "salaryMin")
    )
    salary_max: float | None = Field(
        default=None, validation_alias=AliasChoices("salary_max", "salaryMax")
    )
    currency: str | None = None

    @property
    def resolved_apply_url(self) -> str:
        return self.apply_url or self.listing_url


class NormalizedJob(BaseModel):
    """Canonical job shape before AI enrichment."""

    title: str
    description: str = ""
    company_name: str
    city: str = ""
    country: str = ""
    posted_at: datetime
    type: JobType = JobType.FULL_TIME
    experience_level: ExperienceLevel = ExperienceLevel.MID_LEVEL
    salary_text: str | None = None
    salary_min: float | None = None
    salary_max: float | None = None
    currency: str | None = None
    url: str = Field(min_length=1)
    listing_url: str | None = None
    source: str
    source_id: str | None = None
    remote: bool = False
    category: str | None = None
    sponsorship_hint: bool = False


class AIClassification(BaseModel):
    """What a language model answered about a job, after parsing."""

    is_tech_job: bool
    quality_score: float = Field(ge=0.0, le=1.0)
    is_visa_sponsored: bool
    category: JobCategory | None = None
    job_type: JobType | None = None
    experience_level: ExperienceLevel | None = None
    salary_min: float | None = None
    salary_max: float | None = None
    currency: str | None = None
    standardized_city: str | None = None
    cleaned_title: str | None = None
    remote: bool | None = None
    apply_url: str | None = None
    company_website: str | None = None
    summarized_description: str | None = None
    parse_strategy: str = "strict"


class EnrichedJob(NormalizedJob):
    """NormalizedJob with the AI-authoritative fields filled in."""

    cleaned_title: str
    standardized_city: str = ""
    job_type: JobType = JobType.FULL_TIME
    is_tech_job: bool = True
    quality_score: float = Field(default=0.5, ge=0.0, le=1.0)
    is_visa_sponsored: bool = False
    summarized_description: str | None = None
    company_website: str | None = None
    ai_category: JobCategory | None = None
    ai_provider: str | None = None


class QualityResult(BaseModel):
    final_score: float
    category: str
    accept: bool


class PersistedJob(EnrichedJob):
    """A row of the jobs table."""

    id: int
    final_score: float
    category: str | None = None
    is_active: bool = True
    created_at: datetime | None = None


class ExistingJobRef(BaseModel):
    """Pointer to an already-stored job that matches an incoming one."""

    id: int
    matched_on: str
    score: float | None = None


class PipelineStatus(StrEnum):
    SUCCESS = "success"
    DUPLICATE = "duplicate"
    NOT_TECH_JOB = "not_tech_job"
    LOW_QUALITY = "low_quality"
    ERROR = "error"


class PipelineResult(BaseModel):
    """
    Terminal outcome of processing one job.
    `job_id` is the new id on success and the existing id on duplicate.
    """

    model_config = ConfigDict(frozen=True)

    status: PipelineStatus
    job_id: int | None = None

    @classmethod
    def success(cls, job_id: int) -> "PipelineResult":
        return cls(status=PipelineStatus.SUCCESS, job_id=job_id)

    @classmethod
    def duplicate(cls, existing_id: int) -> "PipelineResult":
        return cls(status=PipelineStatus.DUPLICATE, job_id=existing_id)

    @classmethod
    def not_tech_job(cls) -> "PipelineResult":
        return cls(status=PipelineStatus.NOT_TECH_JOB)

    @classmethod
    def low_quality(cls) -> "PipelineResult":
        return cls(status=PipelineStatus.LOW_QUALITY)

    @classmethod
    def error(cls) -> "PipelineResult":
        return cls(status=PipelineStatus.ERROR)

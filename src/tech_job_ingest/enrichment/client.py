import logging

from tech_job_ingest.enrichment.parsing import parse_response
from tech_job_ingest.enrichment.providers import AIProvider, ProviderError, build_providers
from tech_job_ingest.filters import JobFilter
from tech_job_ingest.models import AIClassification, EnrichedJob, JobCategory, NormalizedJob
from tech_job_ingest.urls import SOURCE_DOMAIN, is_source_url

logger = logging.getLogger(__name__)

DESCRIPTION_EXCERPT = 500

PROMPT_TEMPLATE = """Analyze this job posting.

Answer with ONE first line of exactly three space-separated values:
<TECH> <QUALITY> <VISA>
TECH: 1 if this is a real tech/software job or a role at a tech company, 0 if not. \
Reject non-tech companies, pure consulting and generic business roles.
QUALITY: 0.0 to 1.0 based on detail, specificity and company reputation.
VISA: 1 if the posting offers visa sponsorship, work permits or relocation assistance, else 0.

Then one line per field, formatted KEY: value
TITLE: clean job title without company name or location
CATEGORY: {categories}
TYPE: FULL_TIME|PART_TIME|CONTRACT|FREELANCE|INTERNSHIP|APPRENTICESHIP
LEVEL: ENTRY_LEVEL|JUNIOR|MID_LEVEL|SENIOR|EXECUTIVE
SALARY_MIN: minimum salary as a plain number, or NULL
SALARY_MAX: maximum salary as a plain number, or NULL
CURRENCY: 3-letter currency code
CITY: clean city name (e.g. "Lagos", not "Greater Lagos Area"), or "Remote"
REMOTE: yes or no
APPLY_URL: external application URL if the description has one, else NULL
WEBSITE: company main website (e.g. "shopify.com")
DESCRIPTION: one sentence summarizing the role and requirements, at most 270 characters

Example:
1 0.85 0
TITLE: Senior React Developer
CATEGORY: ENGINEERING
TYPE: FULL_TIME
LEVEL: SENIOR
SALARY_MIN: 80000
SALARY_MAX: 120000
CURRENCY: USD
CITY: Lagos
REMOTE: no
APPLY_URL: NULL
WEBSITE: example.com
DESCRIPTION: Senior React developer building scalable web applications with React and Node.js.

Job Title: "{title}"
Company: {company}
Location: {location}
{extra}"""

_job_filter = JobFilter()


def build_prompt(job: NormalizedJob) -> str:
    """Prompt for one job: title, company, location and the optional extras."""
    location = ", ".join(part for part in (job.city, job.country) if part) or "Unknown"
    extra: list[str] = []
    if job.salary_text and job.salary_text.lower() != "not specified":
        extra.append(f"Salary Info: {job.salary_text}")
    if job.description:
        excerpt = job.description[:DESCRIPTION_EXCERPT]
        if len(job.description) > DESCRIPTION_EXCERPT:
            excerpt += "..."
        extra.append(f"Description: {excerpt}")
    if job.sponsorship_hint:
        extra.append("Note: keyword matching suggests this posting mentions visa sponsorship or relocation.")

    return PROMPT_TEMPLATE.format(
        categories="|".join(c.value for c in JobCategory),
        title=job.title,
        company=job.company_name,
        location=location,
        extra="\n".join(extra),
    )


def safe_default(job: NormalizedJob) -> EnrichedJob:
    """Enrichment used when no provider answered: tech, average quality, no sponsorship."""
    return EnrichedJob(
        **job.model_dump(),
        cleaned_title=job.title,
        standardized_city=job.city,
        job_type=job.type,
        is_tech_job=True,
        quality_score=0.5,
        is_visa_sponsored=False,
        ai_provider=None,
    )


def apply_classification(
    job: NormalizedJob,
    classification: AIClassification,
    provider: str | None,
    source_domain: str = SOURCE_DOMAIN,
) -> EnrichedJob:
    """
    Merge the model's answer into the job. The model is authoritative for the
    flags, the score and any field it actually filled in.
    """
    data = job.model_dump()

    if classification.salary_min is not None or classification.salary_max is not None:
        data["salary_min"] = classification.salary_min
        data["salary_max"] = classification.salary_max
        data["currency"] = classification.currency or job.currency
    if classification.experience_level is not None:
        data["experience_level"] = classification.experience_level

    city = classification.standardized_city or job.city
    ai_says_remote_city = city.strip().lower() == "remote"
    declared_on_site = not job.remote and bool(job.city) and not _job_filter.looks_remote(job.city)
    if ai_says_remote_city and declared_on_site:
        city = job.city
        data["remote"] = False
    elif classification.remote is not None:
        data["remote"] = classification.remote
    else:
        data["remote"] = job.remote or ai_says_remote_city

    # Only replace a URL that still points back at the job source.
    if classification.apply_url and is_source_url(job.url, source_domain):
        if not is_source_url(classification.apply_url, source_domain):
            data["url"] = classification.apply_url

    return EnrichedJob(
        **data,
        cleaned_title=classification.cleaned_title or job.title,
        standardized_city=city,
        job_type=classification.job_type or job.type,
        is_tech_job=classification.is_tech_job,
        quality_score=classification.quality_score,
        is_visa_sponsored=classification.is_visa_sponsored,
        summarized_description=classification.summarized_description,
        company_website=classification.company_website,
        ai_category=classification.category,
        ai_provider=provider,
    )


class AIEnrichmentClient:
    """
    Classifies jobs with the first provider that answers.

    Providers are tried in `preferred_order`, then any remaining ones.
    Providers without credentials are skipped; a ProviderError moves on to
    the next provider. When every provider fails, the safe default is used.
    """

    def __init__(
        self,
        providers: list[AIProvider],
        preferred_order: list[str] | str | None = None,
    ) -> None:
        if isinstance(preferred_order, str):
            preferred_order = [preferred_order]
        self.providers = providers
        self.preferred_order = preferred_order or []

    @classmethod
    def from_config(cls) -> "AIEnrichmentClient":
        from tech_job_ingest import config

        providers = build_providers(
            {
                "gemini": config.GOOGLE_API_KEY,
                "openai": config.OPENAI_API_KEY,
                "anthropic": config.ANTHROPIC_API_KEY,
            }
        )
        return cls(providers, config.AI_MODEL)

    def provider_order(self) -> list[AIProvider]:
        by_name = {p.name: p for p in self.providers}
        ordered = [by_name[name] for name in self.preferred_order if name in by_name]
        ordered += [p for p in self.providers if p not in ordered]
        return ordered

    async def classify(self, job: NormalizedJob) -> tuple[AIClassification, str] | None:
        """The parsed answer and the name of the provider that gave it, or None."""
        prompt = build_prompt(job)
        for provider in self.provider_order():
            if not provider.has_credentials:
                logger.debug(f"No API key found for {provider.name}, trying next...")
                continue
            try:
                text = await provider.generate(prompt)
            except ProviderError as e:
                logger.warning(f"AI provider failed for '{job.title}' at {job.company_name}: {e}")
                continue
            logger.debug(f"AI response from {provider.name}: {text!r}")
            return parse_response(text), provider.name

        return None

    async def enrich(self, job: NormalizedJob) -> EnrichedJob:
        result = await self.classify(job)
        if result is None:
            logger.warning(f"All AI providers unavailable, using defaults for '{job.title}'")
            return safe_default(job)
        classification, provider = result
        return apply_classification(job, classification, provider)

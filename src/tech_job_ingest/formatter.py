import re

from tech_job_ingest.models import PersistedJob


class JobFormatter:
    """
    Formats a stored job into a Telegram MarkdownV2 compatible string.
    """

    # Characters that must be escaped in MarkdownV2 outside of code blocks/links
    # See: https://core.telegram.org/bots/api#markdownv2-style
    ESCAPE_CHARS = r"_*[]()~`>#+-=|{}.!\\"

    DESCRIPTION_LIMIT = 200

    @classmethod
    def escape_markdown(cls, text: str) -> str:
        """
        Escapes reserved characters in Telegram MarkdownV2.
        """
        if not text:
            return ""
        return re.sub(f"([{re.escape(cls.ESCAPE_CHARS)}])", r"\\\1", text)

    @staticmethod
    def format_salary(job: PersistedJob) -> str | None:
        if job.salary_min is None and job.salary_max is None:
            return None
        currency = job.currency or ""
        low = f"{job.salary_min:,.0f}" if job.salary_min is not None else None
        high = f"{job.salary_max:,.0f}" if job.salary_max is not None else None
        if low and high and low != high:
            return f"{currency} {low} - {high}".strip()
        return f"{currency} {low or high}".strip()

    @classmethod
    def format_job(cls, job: PersistedJob) -> str:
        """
        Formats the job into a structured Markdown message.
        """
        message = "🚀 *New Tech Job*\n\n"
        message += f"*Title:* {cls.escape_markdown(job.cleaned_title)}\n"
        message += f"*Company:* {cls.escape_markdown(job.company_name)}\n"

        location = "Remote" if job.remote else job.standardized_city or job.city
        if job.country and job.country.lower() not in location.lower():
            location = f"{location}, {job.country}" if location else job.country
        if location:
            message += f"*Location:* {cls.escape_markdown(location)}\n"

        level = job.experience_level.value.replace("_", " ").title()
        job_type = job.job_type.value.replace("_", " ").title()
        message += f"*Level:* {cls.escape_markdown(f'{level} · {job_type}')}\n"

        salary = cls.format_salary(job)
        if salary:
            message += f"*Salary:* {cls.escape_markdown(salary)}\n"
        if job.is_visa_sponsored:
            message += "*Visa sponsorship:* yes\n"
        if job.category:
            message += f"*Category:* {cls.escape_markdown(job.category.title())}\n"

        message += f"*Source:* {cls.escape_markdown(job.source)}\n\n"

        desc = (job.summarized_description or job.description or "").strip()
        if desc:
            # Truncate at the last word boundary
            if len(desc) > cls.DESCRIPTION_LIMIT:
                desc = desc[: cls.DESCRIPTION_LIMIT].rsplit(" ", 1)[0] + "..."
            message += f"{cls.escape_markdown(desc)}\n\n"

        # The url itself doesn't need escaping in MarkdownV2 [text](url)
        message += f"[Apply Here / View Details]({job.url})"

        return message

"""
Parsing of free-text model answers.

The model is asked for a first line `<tech 0|1> <quality 0.0-1.0> <visa 0|1>`
followed by `KEY: value` detail lines. Answers drift from that format, so the
three core flags are recovered by a chain of increasingly lenient strategies;
the detail lines are parsed on their own.
"""

import logging
import re
from collections.abc import Callable
from typing import Any

from tech_job_ingest.filters import JobFilter
from tech_job_ingest.models import AIClassification, ExperienceLevel, JobCategory, JobType

logger = logging.getLogger(__name__)

NUMBER = re.compile(r"\b\d+(?:\.\d+)?\b")
_LABELLED = re.compile(r"^\s*(TECH_JOB|QUALITY|VISA)\s*:\s*(\S+)", re.IGNORECASE | re.MULTILINE)

_job_filter = JobFilter()


def _flag(token: str) -> bool | None:
    if token == "1":
        return True
    if token == "0":
        return False
    return None


def _score(token: str) -> float | None:
    try:
        value = float(token)
    except ValueError:
        return None
    return value if 0.0 <= value <= 1.0 else None


def _classification(
    tech: bool | None, quality: float | None, visa: bool | None, strategy: str
) -> AIClassification | None:
    if tech is None or quality is None or visa is None:
        return None
    return AIClassification(
        is_tech_job=tech, quality_score=quality, is_visa_sponsored=visa, parse_strategy=strategy
    )


def parse_strict(text: str) -> AIClassification | None:
    """First non-empty line is exactly three tokens: flag, score, flag."""
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        return None
    tokens = lines[0].split()
    if len(tokens) != 3:
        return None
    return _classification(_flag(tokens[0]), _score(tokens[1]), _flag(tokens[2]), "strict")


def parse_labelled(text: str) -> AIClassification | None:
    """`TECH_JOB: 1` / `QUALITY: 0.8` / `VISA: 0` lines in any order."""
    values = {key.upper(): value for key, value in _LABELLED.findall(text)}
    if len(values) != 3:
        return None
    return _classification(
        _flag(values["TECH_JOB"]), _score(values["QUALITY"]), _flag(values["VISA"]), "labelled"
    )


def parse_three_numbers(text: str) -> AIClassification | None:
    """The first three numbers anywhere in the text, if they look like flag/score/flag."""
    numbers = NUMBER.findall(text)
    if len(numbers) < 3:
        return None
    return _classification(
        _flag(numbers[0]), _score(numbers[1]), _flag(numbers[2]), "three_numbers"
    )


def parse_two_numbers(text: str) -> AIClassification | None:
    """Tech flag and score from the first two numbers; sponsorship from keywords."""
    numbers = NUMBER.findall(text)
    if len(numbers) < 2:
        return None
    return _classification(
        _flag(numbers[0]),
        _score(numbers[1]),
        _job_filter.mentions_sponsorship(text),
        "two_numbers",
    )


def parse_keywords(text: str) -> AIClassification:
    """Last resort. Always produces a classification."""
    if _job_filter.mentions_non_tech(text):
        tech, quality = False, 0.2
    else:
        tech, quality = True, 0.5
    return AIClassification(
        is_tech_job=tech,
        quality_score=quality,
        is_visa_sponsored=_job_filter.mentions_sponsorship(text),
        parse_strategy="keywords",
    )


STRATEGIES: list[Callable[[str], AIClassification | None]] = [
    parse_strict,
    parse_labelled,
    parse_three_numbers,
    parse_two_numbers,
    parse_keywords,
]


def _enum_value(enum: type, raw: str) -> Any:
    try:
        return enum(raw.strip().upper().replace(" ", "_").replace("-", "_"))
    except ValueError:
        return None


def _amount(raw: str) -> float | None:
    cleaned = raw.replace(",", "").strip()
    if not cleaned or cleaned.upper() in ("NULL", "NONE", "N/A"):
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def _yes_no(raw: str) -> bool | None:
    lowered = raw.strip().lower()
    if lowered in ("1", "yes", "true", "remote"):
        return True
    if lowered in ("0", "no", "false"):
        return False
    return None


def _http_url(raw: str) -> str | None:
    raw = raw.strip()
    return raw if raw.lower().startswith(("http://", "https://")) else None


def _text(raw: str) -> str | None:
    raw = raw.strip().strip('"')
    if not raw or raw.upper() in ("NULL", "NONE", "N/A", "UNKNOWN"):
        return None
    return raw


def _website(raw: str) -> str | None:
    value = _text(raw)
    if not value or value.lower() == "unknown.com":
        return None
    return value


def _currency(raw: str) -> str | None:
    value = raw.strip().upper()
    return value if re.fullmatch(r"[A-Z]{3}", value) else None


DETAIL_FIELDS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "TITLE": ("cleaned_title", _text),
    "CATEGORY": ("category", lambda raw: _enum_value(JobCategory, raw)),
    "TYPE": ("job_type", lambda raw: _enum_value(JobType, raw)),
    "LEVEL": ("experience_level", lambda raw: _enum_value(ExperienceLevel, raw)),
    "SALARY_MIN": ("salary_min", _amount),
    "SALARY_MAX": ("salary_max", _amount),
    "CURRENCY": ("currency", _currency),
    "CITY": ("standardized_city", _text),
    "REMOTE": ("remote", _yes_no),
    "APPLY_URL": ("apply_url", _http_url),
    "WEBSITE": ("company_website", _website),
    "DESCRIPTION": ("summarized_description", _text),
}


def parse_detail_fields(text: str) -> dict[str, Any]:
    """
    Parse `KEY: value` lines into AIClassification field values. Unknown keys
    and invalid values (e.g. a category outside the enum) are ignored.
    """
    fields: dict[str, Any] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        field = DETAIL_FIELDS.get(key.strip().upper())
        if field is None:
            continue
        name, convert = field
        converted = convert(value)
        if converted is not None:
            fields[name] = converted
    return fields


def parse_response(text: str) -> AIClassification:
    """Parse a model answer. Never raises; the keyword strategy always answers."""
    classification = next(
        result for result in (strategy(text) for strategy in STRATEGIES) if result is not None
    )

    if classification.parse_strategy != "strict":
        logger.info(f"AI response parsed with fallback strategy '{classification.parse_strategy}'")

    details = parse_detail_fields(text)
    return classification.model_copy(update=details)

"""
Salary text parsing.

Handles currency symbols ($, €, £), ISO codes, "k" shorthand and the range
separators "-", "–", "to" and "and". Anything unrecognised yields an empty
SalaryInfo; parsing never raises.
"""

import logging
import re

from tech_job_ingest.models import SalaryInfo

logger = logging.getLogger(__name__)

_SYMBOL = r"[\$€£]"
_CODE = r"(?:USD|EUR|GBP|CAD|AUD)"
_PREFIX = rf"(?:{_SYMBOL}|{_CODE}\s*)"
_AMOUNT = r"(\d[\d,]*(?:\.\d+)?)\s*(k(?![a-z]))?"
_SEP = r"\s*(?:-|–|to|and)\s*"
_PLAIN = r"\d{1,3}(?:,\d{3})+(?!\d)|\d{4,7}(?!\d)"

_SALARY_PATTERNS = [
    # $50,000 - $70,000 / €40k - €60k / USD 50000 to 70000
    re.compile(rf"{_PREFIX}{_AMOUNT}{_SEP}{_PREFIX}?{_AMOUNT}", re.IGNORECASE),
    # 120k - 160k
    re.compile(rf"(\d{{2,3}}(?:\.\d+)?)\s*(k){_SEP}(\d{{2,3}}(?:\.\d+)?)\s*(k)(?![a-z])", re.IGNORECASE),
    # 50000 - 70000 / 1,200,000 - 1,500,000
    re.compile(rf"({_PLAIN})(){_SEP}({_PLAIN})()"),
    # $60000, €50k, GBP 45000
    re.compile(rf"{_PREFIX}{_AMOUNT}", re.IGNORECASE),
]

# Salary phrases worth looking for in a full job description.
_DESCRIPTION_PATTERNS = [
    re.compile(rf"{_SYMBOL}\d[\d,]*(?:\.\d+)?\s*k?{_SEP}{_SYMBOL}?\d[\d,]*(?:\.\d+)?\s*k?", re.IGNORECASE),
    re.compile(
        rf"\d{{1,3}}(?:,\d{{3}})*(?:\.\d+)?\s*k?{_SEP}\d{{1,3}}(?:,\d{{3}})*(?:\.\d+)?\s*k?"
        r"\s*(?:per year|per annum|p\.?a\.?|salary|pay|compensation)",
        re.IGNORECASE,
    ),
    re.compile(
        rf"(?:salary|pay|compensation).{{0,80}}?\d{{1,3}}(?:,\d{{3}})*(?:\.\d+)?\s*k?{_SEP}"
        r"\d{1,3}(?:,\d{3})*(?:\.\d+)?\s*k?",
        re.IGNORECASE | re.DOTALL,
    ),
]

_SYMBOL_CURRENCIES = {"$": "USD", "€": "EUR", "£": "GBP"}
_CODE_RE = re.compile(rf"\b{_CODE}\b", re.IGNORECASE)


def _detect_currency(text: str, start: int, end: int) -> str:
    """
    Currency of the amount found at text[start:end]. ISO codes right next to
    the amount win ("CAD $90k"), then its symbol, then a code anywhere else.
    """
    codes = list(_CODE_RE.finditer(text))
    for code in codes:
        if code.end() >= start - 4 and code.start() <= end + 4:
            return code.group(0).upper()
    for symbol, currency in _SYMBOL_CURRENCIES.items():
        if symbol in text[start:end]:
            return currency
    return codes[0].group(0).upper() if codes else "USD"


def _to_number(raw: str, k_suffix: str | None) -> float:
    value = float(raw.replace(",", ""))
    if k_suffix:
        value *= 1000
    return value


def parse_salary(text: str | None) -> SalaryInfo:
    """
    Parse a free-text salary into min/max/currency.

    "$50,000 - $70,000" -> 50000, 70000, USD
    "€40k - €60k"       -> 40000, 60000, EUR
    "Not specified"     -> empty
    """
    if not text or text.strip().lower() == "not specified":
        return SalaryInfo()

    try:
        for index, pattern in enumerate(_SALARY_PATTERNS):
            match = pattern.search(text)
            if not match:
                continue

            groups = match.groups()
            currency = _detect_currency(text, match.start(), match.end())

            if len(groups) == 2:
                amount = _to_number(groups[0], groups[1])
                return SalaryInfo(min=amount, max=amount, currency=currency)

            min_raw, min_k, max_raw, max_k = groups
            low = _to_number(min_raw, min_k)
            high = _to_number(max_raw, max_k)
            # "$40-60k": shorthand on the upper bound only
            if max_k and not min_k and low < 1000:
                low *= 1000
            if low > high:
                low, high = high, low
            logger.debug(f"Salary pattern {index} matched '{match.group(0)}'")
            return SalaryInfo(min=low, max=high, currency=currency)
    except ValueError as e:
        logger.debug(f"Failed to parse salary '{text}': {e}")

    return SalaryInfo()


def find_salary_in_description(description: str | None) -> SalaryInfo:
    """Look for a salary range mentioned inside a job description."""
    if not description:
        return SalaryInfo()

    for pattern in _DESCRIPTION_PATTERNS:
        match = pattern.search(description)
        if not match:
            continue
        info = parse_salary(match.group(0))
        if not info.is_empty:
            return info

    return SalaryInfo()

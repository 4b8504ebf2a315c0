import logging
import re
from urllib.parse import parse_qs, unquote, urlparse

logger = logging.getLogger(__name__)

SOURCE_DOMAIN = "linkedin.com"

# Most specific first; LinkedIn job ids are usually 10 digits.
JOB_ID_PATTERNS = [
    re.compile(r"/jobs/view/[^/?#]*?-(\d{6,})(?:[/?#]|$)"),
    re.compile(r"/jobs/view/(\d+)"),
    re.compile(r"[?&](?:currentJobId|jobId)=(\d+)"),
    re.compile(r"-(\d{6,})\?"),
    re.compile(r"/(\d{6,})\?"),
    re.compile(r"(\d{10,})"),
]


def extract_job_id(url: str | None) -> str | None:
    """Pull the provider-native job id out of a listing URL."""
    if not url:
        return None
    for pattern in JOB_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    logger.debug(f"No job id found in URL: {url}")
    return None


def domain_of(url: str | None) -> str:
    if not url:
        return ""
    try:
        return urlparse(url).netloc.lower().removeprefix("www.")
    except ValueError:
        return ""


def is_source_url(url: str | None, source_domain: str = SOURCE_DOMAIN) -> bool:
    """True if the URL belongs to the job source itself (or any of its subdomains)."""
    domain = domain_of(url)
    return domain == source_domain or domain.endswith("." + source_domain)


def decode_external_apply(href: str) -> str | None:
    """
    Unwrap a source-side redirect such as `/jobs/view/externalApply/123?url=https%3A...`
    into the real target URL.
    """
    if "externalApply" not in href or "url=" not in href:
        return None
    query = urlparse(href).query
    values = parse_qs(query).get("url")
    if values:
        return values[0]
    match = re.search(r"url=([^&]+)", href)
    return unquote(match.group(1)) if match else None


def external_apply_target(href: str | None, source_domain: str = SOURCE_DOMAIN) -> str | None:
    """
    Turn an href found on a detail page into an external apply URL, or None
    if it only points back at the job source.
    """
    if not href:
        return None
    href = href.strip()
    decoded = decode_external_apply(href)
    if decoded:
        href = decoded
    if href.startswith("http") and not is_source_url(href, source_domain):
        return href
    return None

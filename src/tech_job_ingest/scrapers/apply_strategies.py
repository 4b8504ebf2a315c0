"""
Strategies for recovering the real application URL from a job detail page.

Each strategy implements `attempt(page, context)` and returns an external
(non-source) URL or None. DetailExtractor runs them in order and stops at
the first hit.
"""

import html
import logging
import re
from abc import ABC, abstractmethod
from urllib.parse import unquote, urlparse

from bs4 import BeautifulSoup, Comment
from playwright.async_api import ElementHandle, Page
from playwright.async_api import Error as PlaywrightError

from tech_job_ingest.urls import SOURCE_DOMAIN, external_apply_target

logger = logging.getLogger(__name__)

CLICK_TIMEOUT = 8000  # milliseconds


class ExtractionContext:
    """Per-page state shared by the strategies."""

    def __init__(self, listing_url: str, source_domain: str = SOURCE_DOMAIN) -> None:
        self.listing_url = listing_url
        self.source_domain = source_domain
        self.observed_requests: list[str] = []
        self.html: str | None = None

    def record_request(self, url: str) -> None:
        self.observed_requests.append(url)

    async def page_source(self, page: Page) -> str:
        """The page HTML as first loaded, fetched once."""
        if self.html is None:
            self.html = await page.content()
        return self.html

    def external(self, href: str | None) -> str | None:
        return external_apply_target(href, self.source_domain)


class ApplyUrlStrategy(ABC):
    name: str = "strategy"

    @abstractmethod
    async def attempt(self, page: Page, context: ExtractionContext) -> str | None:
        """Return an external apply URL, or None if this strategy found nothing."""


class HiddenMetadataStrategy(ApplyUrlStrategy):
    """Apply URL embedded in hidden page metadata, e.g. `<code id="applyUrl"><!--"..."--></code>`."""

    name = "hidden-metadata"

    async def attempt(self, page: Page, context: ExtractionContext) -> str | None:
        soup = BeautifulSoup(await context.page_source(page), "html.parser")

        code = soup.find("code", id="applyUrl")
        if code is not None:
            comment = code.find(string=lambda text: isinstance(text, Comment))
            raw = str(comment) if comment else code.get_text()
            target = context.external(raw.strip().strip('"'))
            if target:
                return target

        for hidden in soup.select('input[type="hidden"][name*="apply" i], [data-apply-url]'):
            value = hidden.get("value") or hidden.get("data-apply-url")
            target = context.external(str(value) if value else None)
            if target:
                return target

        return None


# Descending specificity: explicit offsite links first, generic buttons last.
APPLY_SELECTORS = [
    'a[href*="externalApply"]',
    'a[data-tracking-control-name="public_jobs_apply-link-offsite"]',
    'a[href*="/jobs/apply/"]',
    'a[data-tracking-control-name*="apply"]',
    'button[data-tracking-control-name*="apply"]',
    'a[data-control-name*="apply"]',
    'button[data-control-name*="apply"]',
    "button#jobs-apply-button-id",
    'button[data-control-name="jobdetails_topcard_primary_apply"]',
    ".jobs-apply-button",
    ".jobs-apply-button--primary",
    'a[aria-label*="Apply"]',
    'button[aria-label*="Apply"]',
    'a:has-text("Apply")',
    'button:has-text("Apply")',
    "a.apply",
    "button.apply",
    ".apply-button",
    ".apply-btn",
]

HREF_ATTRIBUTES = ("href", "data-apply-url", "data-job-url")


class ApplySelectorStrategy(ApplyUrlStrategy):
    """Visible apply anchors and buttons, matched by a selector list."""

    name = "apply-selector"

    def __init__(self, selectors: list[str] | None = None) -> None:
        self.selectors = selectors or APPLY_SELECTORS

    async def attempt(self, page: Page, context: ExtractionContext) -> str | None:
        for selector in self.selectors:
            try:
                element = await page.query_selector(selector)
                if element is None or not await element.is_visible():
                    continue
                for attribute in HREF_ATTRIBUTES:
                    target = context.external(await element.get_attribute(attribute))
                    if target:
                        return target
            except PlaywrightError as e:
                logger.debug(f"Selector {selector!r} failed: {e}")
        return None


CLICK_SELECTORS = [
    "button#jobs-apply-button-id",
    'button[data-tracking-control-name*="apply"]',
    'button[data-control-name*="apply"]',
    ".jobs-apply-button",
    'button[aria-label*="Apply"]',
    'button:has-text("Apply")',
    'a:has-text("Apply")',
]

REVEALED_LINK_SELECTORS = [
    'a[href*="externalApply"]',
    'a[data-tracking-control-name="public_jobs_apply-link-offsite"]',
    'a[href*="apply"]',
]


class ClickRevealStrategy(ApplyUrlStrategy):
    """
    Click the apply control and see where it leads: a popup, an in-page
    navigation, or a link that only appears after the click.
    """

    name = "click-reveal"

    async def attempt(self, page: Page, context: ExtractionContext) -> str | None:
        element = await self._find_button(page)
        if element is None:
            return None

        before = page.url
        popup_url = await self._click(page, element)

        target = context.external(popup_url)
        if target:
            return target
        if page.url != before:
            target = context.external(page.url)
            if target:
                return target

        return await self._revealed_link(page, context)

    async def _find_button(self, page: Page) -> ElementHandle | None:
        for selector in CLICK_SELECTORS:
            try:
                element = await page.query_selector(selector)
                if element is not None and await element.is_visible():
                    return element
            except PlaywrightError as e:
                logger.debug(f"Selector {selector!r} failed: {e}")
        return None

    async def _click(self, page: Page, element: ElementHandle) -> str | None:
        """Click the element; return the URL of a popup window if one opened."""
        try:
            await element.scroll_into_view_if_needed(timeout=CLICK_TIMEOUT)
            async with page.expect_popup(timeout=CLICK_TIMEOUT) as popup_info:
                await element.click(timeout=CLICK_TIMEOUT)
            popup = await popup_info.value
            await popup.wait_for_load_state("domcontentloaded", timeout=CLICK_TIMEOUT)
            url = popup.url
            await popup.close()
            return url
        except PlaywrightError as e:
            # No popup: the click may still have navigated or revealed a link.
            logger.debug(f"No popup after clicking apply: {e}")
            try:
                await page.wait_for_load_state("domcontentloaded", timeout=CLICK_TIMEOUT)
            except PlaywrightError:
                pass
            return None

    async def _revealed_link(self, page: Page, context: ExtractionContext) -> str | None:
        for selector in REVEALED_LINK_SELECTORS:
            try:
                for element in await page.query_selector_all(selector):
                    target = context.external(await element.get_attribute("href"))
                    if target:
                        return target
            except PlaywrightError as e:
                logger.debug(f"Selector {selector!r} failed after click: {e}")
        return None


class NetworkObservationStrategy(ApplyUrlStrategy):
    """Outbound requests seen while the page loaded whose path mentions "apply"."""

    name = "network-observation"

    async def attempt(self, page: Page, context: ExtractionContext) -> str | None:
        for url in context.observed_requests:
            try:
                path = urlparse(url).path.lower()
            except ValueError:
                continue
            if "apply" not in path:
                continue
            target = context.external(url)
            if target:
                return target
        return None


PAGE_SOURCE_PATTERNS = [
    re.compile(r'"applyUrl"\s*:\s*"([^"]+)"'),
    re.compile(r'externalApply[^"\'\s<>]*?[?&]url=([^&"\'\s<>]+)'),
    re.compile(
        r"https?://(?:boards\.greenhouse\.io|jobs\.lever\.co|[\w-]+\.myworkdayjobs\.com"
        r"|apply\.workable\.com|jobs\.ashbyhq\.com|[\w.-]+\.smartrecruiters\.com)"
        r"/[^\s\"'<>]+"
    ),
    re.compile(r"https?://[^\s\"'<>]+/apply[^\s\"'<>]*", re.IGNORECASE),
]


class PageSourceRegexStrategy(ApplyUrlStrategy):
    """Regex scan of the raw page source for embedded apply URLs."""

    name = "page-source-regex"

    async def attempt(self, page: Page, context: ExtractionContext) -> str | None:
        source = await context.page_source(page)
        for pattern in PAGE_SOURCE_PATTERNS:
            for match in pattern.finditer(source):
                raw = match.group(1) if pattern.groups else match.group(0)
                raw = html.unescape(raw).replace("\\u002F", "/").replace("\\/", "/")
                if raw.startswith("http%3A") or raw.startswith("https%3A"):
                    raw = unquote(raw)
                target = context.external(raw)
                if target:
                    return target
        return None


def default_strategies() -> list[ApplyUrlStrategy]:
    return [
        HiddenMetadataStrategy(),
        ApplySelectorStrategy(),
        ClickRevealStrategy(),
        NetworkObservationStrategy(),
        PageSourceRegexStrategy(),
    ]

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError

from tech_job_ingest.models import RawCandidate
from tech_job_ingest.scrapers.apply_strategies import (
    ApplySelectorStrategy,
    ClickRevealStrategy,
    ExtractionContext,
    HiddenMetadataStrategy,
    NetworkObservationStrategy,
    PageSourceRegexStrategy,
    default_strategies,
)
from tech_job_ingest.scrapers.detail_extractor import (
    MAX_DESCRIPTION_LENGTH,
    DetailExtractor,
    complete_candidate,
    extract_city,
    extract_description,
)

LISTING_URL = "https://www.linkedin.com/jobs/view/backend-engineer-at-paystack-3912345678"

DESCRIPTION = (
    "We are hiring a backend engineer to build payment APIs in Go and Python. "
    "Visa sponsorship is available for strong candidates."
)

DETAIL_HTML = f"""
<html><body>
  <span class="topcard__flavor--bullet">Ikeja, Lagos State, Nigeria</span>
  <div class="description__text">
    <p>{DESCRIPTION}</p>
  </div>
  <code id="applyUrl" style="display: none"><!--"https://www.linkedin.com/jobs/view/externalApply/3912345678?url=https%3A%2F%2Fjobs%2Elever%2Eco%2Fpaystack%2F42&urlHash=abc"--></code>
</body></html>
"""


def make_context(html: str = "") -> ExtractionContext:
    context = ExtractionContext(LISTING_URL)
    context.html = html
    return context


def make_element(href: str | None = None, visible: bool = True) -> MagicMock:
    element = MagicMock()
    element.is_visible = AsyncMock(return_value=visible)
    element.get_attribute = AsyncMock(side_effect=lambda name: href if name == "href" else None)
    return element


def make_page(elements: dict[str, MagicMock] | None = None) -> MagicMock:
    elements = elements or {}
    page = MagicMock()
    page.url = LISTING_URL
    page.query_selector = AsyncMock(side_effect=lambda selector: elements.get(selector))
    page.query_selector_all = AsyncMock(
        side_effect=lambda selector: [elements[selector]] if selector in elements else []
    )
    return page


@pytest.fixture
def candidate():
    return RawCandidate(
        position="Backend Engineer",
        company="Paystack",
        city_text="Lagos",
        posted_date_text="2025-01-10",
        salary_text="Not specified",
        listing_url=LISTING_URL,
    )


# --- Strategies ---


@pytest.mark.asyncio
async def test_hidden_metadata_decodes_external_apply():
    url = await HiddenMetadataStrategy().attempt(make_page(), make_context(DETAIL_HTML))
    assert url == "https://jobs.lever.co/paystack/42"


@pytest.mark.asyncio
async def test_hidden_metadata_reads_hidden_inputs():
    html = '<input type="hidden" name="applyUrl" value="https://acme.workable.com/j/1">'
    url = await HiddenMetadataStrategy().attempt(make_page(), make_context(html))
    assert url == "https://acme.workable.com/j/1"


@pytest.mark.asyncio
async def test_hidden_metadata_ignores_source_urls():
    html = '<code id="applyUrl"><!--"https://www.linkedin.com/jobs/view/1"--></code>'
    assert await HiddenMetadataStrategy().attempt(make_page(), make_context(html)) is None


@pytest.mark.asyncio
async def test_page_source_is_fetched_once():
    page = make_page()
    page.content = AsyncMock(return_value="<html></html>")
    context = ExtractionContext(LISTING_URL)

    await context.page_source(page)
    await context.page_source(page)

    page.content.assert_awaited_once()


@pytest.mark.asyncio
async def test_apply_selector_finds_visible_offsite_link():
    page = make_page(
        {
            'a[href*="externalApply"]': make_element("https://www.linkedin.com/jobs/view/1"),
            'a[data-tracking-control-name="public_jobs_apply-link-offsite"]': make_element(
                "https://careers.acme.com/apply/7"
            ),
        }
    )
    url = await ApplySelectorStrategy().attempt(page, make_context())
    assert url == "https://careers.acme.com/apply/7"


@pytest.mark.asyncio
async def test_apply_selector_skips_hidden_elements():
    page = make_page({".apply-button": make_element("https://careers.acme.com/apply", visible=False)})
    assert await ApplySelectorStrategy().attempt(page, make_context()) is None


@pytest.mark.asyncio
async def test_apply_selector_survives_selector_errors():
    good = make_element("https://careers.acme.com/apply/7")

    def query(selector):
        if selector == 'a[href*="externalApply"]':
            raise PlaywrightError("bad selector")
        return good if selector == ".apply-btn" else None

    page = make_page()
    page.query_selector = AsyncMock(side_effect=query)

    assert await ApplySelectorStrategy().attempt(page, make_context()) == "https://careers.acme.com/apply/7"


@pytest.mark.asyncio
async def test_click_reveal_uses_popup_url():
    page = make_page({"button#jobs-apply-button-id": make_element()})
    strategy = ClickRevealStrategy()

    with patch.object(strategy, "_click", AsyncMock(return_value="https://jobs.lever.co/acme/1")):
        assert await strategy.attempt(page, make_context()) == "https://jobs.lever.co/acme/1"


@pytest.mark.asyncio
async def test_click_reveal_follows_in_page_navigation():
    page = make_page({".jobs-apply-button": make_element()})
    strategy = ClickRevealStrategy()

    async def navigate(*_):
        page.url = "https://careers.acme.com/apply/9"
        return None

    with patch.object(strategy, "_click", AsyncMock(side_effect=navigate)):
        assert await strategy.attempt(page, make_context()) == "https://careers.acme.com/apply/9"


@pytest.mark.asyncio
async def test_click_reveal_finds_revealed_link():
    page = make_page(
        {
            'button[aria-label*="Apply"]': make_element(),
            'a[href*="apply"]': make_element("https://careers.acme.com/apply/3"),
        }
    )
    strategy = ClickRevealStrategy()

    with patch.object(strategy, "_click", AsyncMock(return_value=None)):
        assert await strategy.attempt(page, make_context()) == "https://careers.acme.com/apply/3"


@pytest.mark.asyncio
async def test_click_reveal_without_button_returns_none():
    assert await ClickRevealStrategy().attempt(make_page(), make_context()) is None


@pytest.mark.asyncio
async def test_network_observation_picks_apply_requests():
    context = make_context()
    context.record_request("https://careers.acme.com/assets/app.js")
    context.record_request("https://www.linkedin.com/jobs/apply/123")
    context.record_request("https://analytics.example.com/collect")
    context.record_request("https://acme.myworkdayjobs.com/en-US/careers/job/apply")

    url = await NetworkObservationStrategy().attempt(make_page(), context)

    assert url == "https://acme.myworkdayjobs.com/en-US/careers/job/apply"


@pytest.mark.asyncio
async def test_page_source_regex_reads_embedded_json():
    html = '<script>{"applyUrl":"https:\\/\\/boards.greenhouse.io\\/acme\\/jobs\\/42"}</script>'
    url = await PageSourceRegexStrategy().attempt(make_page(), make_context(html))
    assert url == "https://boards.greenhouse.io/acme/jobs/42"


@pytest.mark.asyncio
async def test_page_source_regex_finds_ats_links():
    html = '<p>Apply at https://jobs.ashbyhq.com/acme/abc-123 today</p>'
    url = await PageSourceRegexStrategy().attempt(make_page(), make_context(html))
    assert url == "https://jobs.ashbyhq.com/acme/abc-123"


def test_default_strategy_order():
    names = [strategy.name for strategy in default_strategies()]
    assert names == [
        "hidden-metadata",
        "apply-selector",
        "click-reveal",
        "network-observation",
        "page-source-regex",
    ]


# --- Page parsing ---


def test_extract_description_collapses_whitespace():
    soup = BeautifulSoup(DETAIL_HTML, "html.parser")
    assert extract_description(soup) == DESCRIPTION


def test_extract_description_skips_short_blocks_and_caps_length():
    long_text = "word " * 5000
    html = f'<div class="jobs-description">Too short</div><div class="job-description">{long_text}</div>'
    text = extract_description(BeautifulSoup(html, "html.parser"))
    assert len(text) == MAX_DESCRIPTION_LENGTH
    assert text.startswith("word word")


def test_extract_city():
    soup = BeautifulSoup(DETAIL_HTML, "html.parser")
    assert extract_city(soup) == "Ikeja, Lagos State, Nigeria"
    assert extract_city(BeautifulSoup("<html></html>", "html.parser")) == ""


def test_complete_candidate_uses_description_salary_and_sponsorship(candidate):
    enriched = complete_candidate(
        candidate,
        description="Salary: $90k - $110k. We offer visa sponsorship.",
    )
    assert enriched.salary_min == 90000
    assert enriched.salary_max == 110000
    assert enriched.currency == "USD"
    assert enriched.is_sponsored_hint is True
    assert enriched.apply_url == LISTING_URL
    assert enriched.source_id == "3912345678"
    assert enriched.city_text == "Lagos"


# --- DetailExtractor ---


def make_browser(page: MagicMock) -> MagicMock:
    browser_context = MagicMock()
    browser_context.new_page = AsyncMock(return_value=page)
    browser_context.close = AsyncMock()
    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=browser_context)
    return browser


@pytest.mark.asyncio
async def test_extract_success(candidate):
    page = make_page()
    page.on = MagicMock()
    page.goto = AsyncMock(return_value=MagicMock(status=200))
    page.content = AsyncMock(return_value=DETAIL_HTML)

    extractor = DetailExtractor()
    extractor._browser = make_browser(page)

    enriched = await extractor.extract(candidate)

    assert enriched.apply_url == "https://jobs.lever.co/paystack/42"
    assert enriched.description == DESCRIPTION
    assert enriched.city_text == "Ikeja, Lagos State, Nigeria"
    assert enriched.is_sponsored_hint is True
    assert enriched.source_id == "3912345678"
    page.on.assert_called_once()
    assert page.on.call_args[0][0] == "request"


@pytest.mark.asyncio
async def test_extract_records_network_requests(candidate):
    page = make_page()
    page.content = AsyncMock(return_value="<html></html>")
    handlers = {}
    page.on = MagicMock(side_effect=lambda event, handler: handlers.setdefault(event, handler))

    async def goto(url, **kwargs):
        handlers["request"](MagicMock(url="https://careers.acme.com/jobs/apply?id=5"))
        return MagicMock(status=200)

    page.goto = AsyncMock(side_effect=goto)

    extractor = DetailExtractor(strategies=[NetworkObservationStrategy()])
    extractor._browser = make_browser(page)

    enriched = await extractor.extract(candidate)

    assert enriched.apply_url == "https://careers.acme.com/jobs/apply?id=5"


@pytest.mark.asyncio
async def test_extract_failure_falls_back_to_listing_data(candidate):
    page = make_page()
    page.on = MagicMock()
    page.goto = AsyncMock(side_effect=PlaywrightError("net::ERR_TIMED_OUT"))

    extractor = DetailExtractor(initial_backoff=0.01)
    browser = make_browser(page)
    extractor._browser = browser
    candidate = candidate.model_copy(update={"salary_text": "$50,000 - $70,000"})

    with patch("tech_job_ingest.scrapers.detail_extractor.asyncio.sleep", new_callable=AsyncMock):
        enriched = await extractor.extract(candidate)

    assert enriched.apply_url == LISTING_URL
    assert enriched.description == ""
    assert (enriched.salary_min, enriched.salary_max) == (50000, 70000)
    assert page.goto.await_count == 3
    browser.new_context.return_value.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_extract_many_survives_closed_browser(candidate):
    """A browser that can't open a context degrades every candidate to listing data."""
    candidates = [
        candidate,
        candidate.model_copy(
            update={"listing_url": "https://www.linkedin.com/jobs/view/qa-engineer-3912345679"}
        ),
    ]
    browser = MagicMock()
    browser.new_context = AsyncMock(side_effect=PlaywrightError("Target closed"))

    extractor = DetailExtractor()
    extractor._browser = browser

    results = await extractor.extract_many(candidates)

    assert [r.apply_url for r in results] == [c.listing_url for c in candidates]
    assert all(r.description == "" for r in results)
    assert browser.new_context.await_count == 2


@pytest.mark.asyncio
async def test_extract_requires_open_browser(candidate):
    with pytest.raises(RuntimeError):
        await DetailExtractor().extract(candidate)


@pytest.mark.asyncio
async def test_resolve_apply_url_stops_at_first_hit():
    first = MagicMock(name="first")
    first.attempt = AsyncMock(return_value=None)
    broken = MagicMock(name="broken")
    broken.attempt = AsyncMock(side_effect=RuntimeError("boom"))
    second = MagicMock(name="second")
    second.attempt = AsyncMock(return_value="https://careers.acme.com/apply")
    never = MagicMock(name="never")
    never.attempt = AsyncMock(return_value="https://other.example.com/apply")

    extractor = DetailExtractor(strategies=[first, broken, second, never])
    url = await extractor.resolve_apply_url(make_page(), make_context())

    assert url == "https://careers.acme.com/apply"
    never.attempt.assert_not_awaited()


@pytest.mark.asyncio
async def test_extract_many_batches_and_keeps_order(candidate):
    candidates = [
        candidate.model_copy(update={"position": f"Engineer {i}"}) for i in range(3)
    ]
    extractor = DetailExtractor(max_concurrency=2, batch_delay=3.0)

    with (
        patch.object(
            extractor, "extract", AsyncMock(side_effect=lambda c: complete_candidate(c))
        ) as mock_extract,
        patch(
            "tech_job_ingest.scrapers.detail_extractor.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep,
    ):
        results = await extractor.extract_many(candidates)

    assert [r.position for r in results] == ["Engineer 0", "Engineer 1", "Engineer 2"]
    assert mock_extract.await_count == 3
    mock_sleep.assert_awaited_once_with(3.0)

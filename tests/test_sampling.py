import pytest
from playwright.async_api import Error as PlaywrightError

from prospect.contexts.extraction.sampling import (
    ContractViolation,
    Sample,
    SamplerFault,
    SelectorSampler,
    coerce_sample,
)
from prospect.utils.text_processing import looks_like_email

from fakes import FakeElement, FakePage

PRIMARY = "span.email-finder__text"
FALLBACK = ".email-address"
SPINNER = '[class*="spinner"]'


def make_sampler(page, **kwargs):
    options = {
        "selectors": [PRIMARY, FALLBACK],
        "busy_selectors": [SPINNER],
        "terminal_phrases": ["not found", "cannot find"],
        "text_filter": looks_like_email,
    }
    options.update(kwargs)
    return SelectorSampler(page, **options)


@pytest.mark.asyncio
async def test_reads_primary_selector_first():
    page = FakePage({PRIMARY: [FakeElement("jane@acme.com")], FALLBACK: [FakeElement("other@acme.com")]})
    sample = await make_sampler(page)()
    assert sample == Sample("jane@acme.com", False, None)


@pytest.mark.asyncio
async def test_falls_back_when_primary_text_fails_filter():
    page = FakePage({PRIMARY: [FakeElement("Searching...")], FALLBACK: [FakeElement(" jane@acme.com\n")]})
    sample = await make_sampler(page)()
    assert sample.raw_text == "jane@acme.com"
    # Primary slot still shows a loading placeholder
    assert sample.busy is True


@pytest.mark.asyncio
async def test_without_filter_first_non_empty_text_wins():
    page = FakePage({PRIMARY: [FakeElement(""), FakeElement("Loading")]})
    sample = await make_sampler(page, text_filter=None)()
    assert sample.raw_text == "Loading"


@pytest.mark.asyncio
async def test_visible_busy_indicator_marks_page_busy():
    page = FakePage({SPINNER: [FakeElement(visible=False), FakeElement(visible=True)]})
    sample = await make_sampler(page)()
    assert sample.raw_text is None
    assert sample.busy is True


@pytest.mark.asyncio
async def test_hidden_busy_indicator_is_ignored():
    page = FakePage({SPINNER: [FakeElement(visible=False)]})
    assert (await make_sampler(page)()).busy is False


@pytest.mark.asyncio
async def test_terminal_phrase_is_reported():
    page = FakePage(body="Sorry, the email was NOT FOUND for this person")
    sample = await make_sampler(page)()
    assert sample.terminal_error == "not found"


@pytest.mark.asyncio
async def test_reads_attribute_instead_of_text():
    link = 'a[href^="http"]'
    page = FakePage({link: [FakeElement("Acme", attrs={"href": "https://acme.com"})]})
    sampler = SelectorSampler(page, selectors=[link], attribute="href")
    assert (await sampler()).raw_text == "https://acme.com"


@pytest.mark.asyncio
async def test_closed_page_raises_sampler_fault():
    page = FakePage(error=PlaywrightError("Target page, context or browser has been closed"))
    page.closed = True
    with pytest.raises(SamplerFault):
        await make_sampler(page)()


@pytest.mark.asyncio
async def test_read_error_on_open_page_propagates_as_is():
    page = FakePage(error=PlaywrightError("Element is not attached to the DOM"))
    with pytest.raises(PlaywrightError):
        await make_sampler(page)()


def test_requires_at_least_one_selector():
    with pytest.raises(ValueError):
        SelectorSampler(FakePage(), selectors=[])


@pytest.mark.parametrize(
    "reading",
    [
        Sample("x", True, None),
        ("x", True, None),
        {"raw_text": "x", "busy": True, "terminal_error": None},
    ],
)
def test_coerce_sample_accepts_supported_shapes(reading):
    assert coerce_sample(reading) == Sample("x", True, None)


@pytest.mark.parametrize(
    "reading",
    [
        [None, False, None],
        {"raw_text": "x"},
        (1, False, None),
        (None, False, 404),
    ],
)
def test_coerce_sample_rejects_other_shapes(reading):
    with pytest.raises(ContractViolation):
        coerce_sample(reading)


@pytest.mark.asyncio
async def test_terminal_phrase_must_match_whole_words():
    sampler = SelectorSampler(FakePage(body="Acme employees: 10 results"), selectors=[PRIMARY], terminal_phrases=["0 results"])
    assert (await sampler()).terminal_error is None

    sampler = SelectorSampler(FakePage(body="Showing 0 results"), selectors=[PRIMARY], terminal_phrases=["0 results"])
    assert (await sampler()).terminal_error == "0 results"


@pytest.mark.asyncio
async def test_terminal_phrases_only_read_from_empty_state_elements():
    options = {"selectors": [PRIMARY], "terminal_phrases": ["no results"], "terminal_selectors": [".no-results"]}

    # A sidebar mentioning "no results" is not an empty state
    page = FakePage(body="Tip: no results? Try fewer keywords")
    assert (await SelectorSampler(page, **options)()).terminal_error is None

    page = FakePage({".no-results": [FakeElement("No results for this search")]})
    assert (await SelectorSampler(page, **options)()).terminal_error == "no results"


@pytest.mark.asyncio
async def test_read_all_collects_distinct_filtered_values():
    page = FakePage(
        {
            PRIMARY: [FakeElement("jane@acme.com"), FakeElement("Searching..."), FakeElement("john@acme.com")],
            FALLBACK: [FakeElement("jane@acme.com"), FakeElement("ann@acme.com")],
        }
    )
    assert await make_sampler(page).read_all() == ["jane@acme.com", "john@acme.com", "ann@acme.com"]


@pytest.mark.asyncio
async def test_read_all_on_closed_page_raises_sampler_fault():
    page = FakePage(error=PlaywrightError("Target page, context or browser has been closed"))
    page.closed = True
    with pytest.raises(SamplerFault):
        await make_sampler(page).read_all()

import pytest
from playwright.async_api import Error as PlaywrightError

from prospect.contexts.extraction.extractor import ExtractionBudget
from prospect.contexts.extraction.harvest import (
    EXHAUSTED,
    LIMIT_REACHED,
    NO_MORE_RESULTS,
    STALLED,
    Harvester,
    HarvestSettings,
)
from prospect.contexts.extraction.predicates import ValidityPredicate
from prospect.contexts.extraction.sampling import SamplerFault, SelectorSampler
from prospect.contexts.extraction.verdicts import NOT_FOUND
from prospect.utils.text_processing import looks_like_person_name

from fakes import FakeClock, FakeElement, FakePage

NAME = ".org-people-profile-card__profile-title"
LOAD_MORE = ".scaffold-finite-scroll__load-button"
EMPTY_STATE = ".artdeco-empty-state"

BUDGET = ExtractionBudget(max_attempts=3, inter_attempt_delay_ms=1000, max_wall_clock_ms=60_000)


def people_page(batches):
    """Page showing one more batch of name cards per load-more click."""
    page = FakePage()
    shown = {"batches": 1}

    def refresh():
        page.elements[NAME] = [FakeElement(name) for batch in batches[: shown["batches"]] for name in batch]
        has_more = shown["batches"] < len(batches)
        page.elements[LOAD_MORE] = [button if has_more else FakeElement("Show more", enabled=False)]

    def show_more():
        shown["batches"] += 1
        refresh()

    button = FakeElement("Show more", on_click=show_more)
    refresh()
    return page


def make_harvester(page, **settings):
    options = {"round_delay_ms": 2000, "load_more_selectors": (LOAD_MORE,), "max_stalled_rounds": 3}
    options.update(settings)
    clock = FakeClock()
    harvester = Harvester(
        SelectorSampler(
            page,
            selectors=[NAME],
            terminal_phrases=["no results"],
            terminal_selectors=[EMPTY_STATE],
            text_filter=looks_like_person_name,
        ),
        ValidityPredicate(looks_like_person_name),
        BUDGET,
        HarvestSettings(**options),
        clock=clock,
        sleep=clock.sleep,
    )
    return harvester, clock


@pytest.mark.asyncio
async def test_collects_distinct_names_across_load_more_rounds():
    page = people_page([["Ada Lovelace", "Alan Turing"], ["Grace Hopper", "Alan Turing"], ["Edsger Dijkstra"]])
    harvester, clock = make_harvester(page)

    result = await harvester.run()

    assert result.values == ("Ada Lovelace", "Alan Turing", "Grace Hopper", "Edsger Dijkstra")
    assert result.stop_reason == EXHAUSTED
    assert result.rounds == 4
    assert clock.sleeps == [2.0, 2.0, 2.0]
    assert page.scripts


@pytest.mark.asyncio
async def test_stops_at_value_limit():
    page = people_page([["Ada Lovelace", "Alan Turing"], ["Grace Hopper", "Katherine Johnson"]])
    harvester, _ = make_harvester(page, max_values=3)

    result = await harvester.run()

    assert result.values == ("Ada Lovelace", "Alan Turing", "Grace Hopper")
    assert result.stop_reason == LIMIT_REACHED


@pytest.mark.asyncio
async def test_stops_when_rounds_bring_nothing_new():
    page = FakePage(
        {
            NAME: [FakeElement("Ada Lovelace")],
            LOAD_MORE: [FakeElement("Show more")],
        }
    )
    harvester, _ = make_harvester(page, max_stalled_rounds=2)

    result = await harvester.run()

    assert result.values == ("Ada Lovelace",)
    assert result.stop_reason == STALLED
    assert result.rounds == 3
    assert page.elements[LOAD_MORE][0].clicks == 2


@pytest.mark.asyncio
async def test_stops_when_page_reports_no_more_results():
    page = FakePage({NAME: [FakeElement("Ada Lovelace")]})

    def show_last():
        page.elements[NAME].append(FakeElement("Grace Hopper"))
        page.elements[EMPTY_STATE] = [FakeElement("No results beyond this point")]

    page.elements[LOAD_MORE] = [FakeElement("Show more", on_click=show_last)]
    harvester, _ = make_harvester(page)

    result = await harvester.run()

    assert result.values == ("Ada Lovelace", "Grace Hopper")
    assert result.stop_reason == NO_MORE_RESULTS


@pytest.mark.asyncio
async def test_nothing_harvested_when_list_never_appears():
    page = FakePage({EMPTY_STATE: [FakeElement("No results")]})
    harvester, _ = make_harvester(page)

    result = await harvester.run()

    assert result.values == ()
    assert result.rounds == 0
    assert result.stop_reason == NOT_FOUND
    assert result.outcome.attempts_used == 1


@pytest.mark.asyncio
async def test_names_failing_the_predicate_are_skipped():
    page = FakePage({NAME: [FakeElement("Ada Lovelace"), FakeElement("LinkedIn Member")]})
    clock = FakeClock()
    harvester = Harvester(
        SelectorSampler(page, selectors=[NAME]),
        ValidityPredicate(lambda name: looks_like_person_name(name, blocked_substrings=("member",))),
        BUDGET,
        HarvestSettings(round_delay_ms=0),
        clock=clock,
        sleep=clock.sleep,
    )

    result = await harvester.run()

    assert result.values == ("Ada Lovelace",)


class ClosingPage(FakePage):
    async def evaluate(self, script):
        self.closed = True
        raise PlaywrightError("Target page, context or browser has been closed")


@pytest.mark.asyncio
async def test_page_closing_mid_harvest_raises_sampler_fault():
    page = ClosingPage({NAME: [FakeElement("Ada Lovelace")]})
    harvester, _ = make_harvester(page)

    with pytest.raises(SamplerFault):
        await harvester.run()


def test_settings_validation():
    with pytest.raises(ValueError):
        HarvestSettings(max_values=0)
    with pytest.raises(ValueError):
        HarvestSettings(round_delay_ms=-1)
    assert HarvestSettings.from_config(None) == HarvestSettings()

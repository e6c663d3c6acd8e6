"""
Harvest mode: collect every acceptable value on a page, not just the first.

A harvest first polls the page like a normal extraction, so nothing is
collected before the list has rendered. It then reads all values, scrolls or
clicks "load more", and repeats until it has enough values, the page says
there are no more, or several rounds in a row bring nothing new.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Optional, Tuple

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from prospect.contexts.extraction.extractor import ExtractionBudget, PollingExtractor
from prospect.contexts.extraction.predicates import ValidityPredicate
from prospect.contexts.extraction.sampling import SamplerFault, SelectorSampler
from prospect.contexts.extraction.verdicts import ExtractionOutcome

# Harvest stop reasons
LIMIT_REACHED = "limit_reached"
NO_MORE_RESULTS = "no_more_results"
STALLED = "stalled"
EXHAUSTED = "exhausted"
MAX_ROUNDS = "max_rounds"

SCROLL_TO_BOTTOM = "window.scrollTo(0, document.body.scrollHeight)"


@dataclass(frozen=True)
class HarvestSettings:
    max_values: int = 50
    max_rounds: int = 200
    max_stalled_rounds: int = 10
    round_delay_ms: int = 3000
    load_more_selectors: Tuple[str, ...] = ()

    def __post_init__(self):
        if self.max_values < 1 or self.max_rounds < 1 or self.max_stalled_rounds < 1:
            raise ValueError("Harvest limits must be at least 1")
        if self.round_delay_ms < 0:
            raise ValueError("round_delay_ms must be non-negative")

    @classmethod
    def from_config(cls, config) -> "HarvestSettings":
        if config is None:
            return cls()
        return cls(
            max_values=int(config.get("max_values", cls.max_values)),
            max_rounds=int(config.get("max_rounds", cls.max_rounds)),
            max_stalled_rounds=int(config.get("max_stalled_rounds", cls.max_stalled_rounds)),
            round_delay_ms=int(config.get("round_delay_ms", cls.round_delay_ms)),
            load_more_selectors=tuple(config.get("load_more_selectors", [])),
        )


@dataclass(frozen=True)
class HarvestResult:
    """
    Values collected from one page.

    stop_reason is one of the harvest stop reasons, or the status of the
    initial poll (not_found, timed_out) when the list never showed up.
    """

    values: Tuple[str, ...]
    rounds: int
    stop_reason: str
    outcome: Optional[ExtractionOutcome] = None


class Harvester:
    """
    Collect distinct accepted values from one page.

    Args:
        sampler: SelectorSampler bound to the page to harvest
        predicate: Decides which values count; accepted values are kept in
            their final (normalized) form
        budget: Limits for the initial wait until the first value appears
        settings: Harvest bounds and load-more selectors
        label: Name used in log lines
        clock: Monotonic clock in seconds
        sleep: Coroutine function used between rounds and attempts
    """

    def __init__(
        self,
        sampler: SelectorSampler,
        predicate: ValidityPredicate,
        budget: ExtractionBudget,
        settings: HarvestSettings,
        label: str = "harvest",
        clock=time.monotonic,
        sleep=asyncio.sleep,
    ):
        self.sampler = sampler
        self.predicate = predicate
        self.budget = budget
        self.settings = settings
        self.label = label
        self.clock = clock
        self.sleep = sleep

    async def _accepted_values(self) -> list:
        values = []
        for value in await self.sampler.read_all():
            verdict = self.predicate.evaluate(value, False, None)
            if verdict.is_accepted and verdict.value not in values:
                values.append(verdict.value)
        return values

    async def _no_more_results(self) -> bool:
        sample = await self.sampler()
        return sample.terminal_error is not None

    async def _load_more(self) -> bool:
        """Scroll to the bottom and click the first usable load-more button."""
        page = self.sampler.page
        try:
            await page.evaluate(SCROLL_TO_BOTTOM)
            for selector in self.settings.load_more_selectors:
                for button in await page.query_selector_all(selector):
                    if await button.is_visible() and await button.is_enabled():
                        await button.click()
                        return True
        except PlaywrightError as e:
            if page.is_closed():
                raise SamplerFault(f"Page closed while loading more results: {e}") from e
            logger.debug(f"[{self.label}] Load more failed: {e}")
        return False

    async def run(self) -> HarvestResult:
        """
        Harvest until a stop condition is met.

        Raises:
            SamplerFault: If the page goes away mid-harvest
        """
        outcome = await PollingExtractor(
            self.sampler, self.predicate, self.budget, label=self.label, clock=self.clock, sleep=self.sleep
        ).run()
        if not outcome.found:
            logger.info(f"[{self.label}] Nothing to harvest ({outcome.status})")
            return HarvestResult(values=(), rounds=0, stop_reason=outcome.status, outcome=outcome)

        max_values = self.settings.max_values
        values = []
        rounds = 0
        stalled_rounds = 0

        while True:
            rounds += 1
            new_values = [value for value in await self._accepted_values() if value not in values]
            values.extend(new_values[: max_values - len(values)])
            stalled_rounds = 0 if new_values else stalled_rounds + 1
            logger.debug(f"[{self.label}] Round {rounds}: {len(new_values)} new, {len(values)}/{max_values} total")

            if len(values) >= max_values:
                stop_reason = LIMIT_REACHED
            elif await self._no_more_results():
                stop_reason = NO_MORE_RESULTS
            elif stalled_rounds >= self.settings.max_stalled_rounds:
                stop_reason = STALLED
            elif rounds >= self.settings.max_rounds:
                stop_reason = MAX_ROUNDS
            elif not await self._load_more() and not new_values:
                stop_reason = EXHAUSTED
            else:
                await self.sleep(self.settings.round_delay_ms / 1000)
                continue
            break

        logger.info(f"[{self.label}] Harvested {len(values)} value(s) in {rounds} round(s): {stop_reason}")
        return HarvestResult(values=tuple(values), rounds=rounds, stop_reason=stop_reason, outcome=outcome)

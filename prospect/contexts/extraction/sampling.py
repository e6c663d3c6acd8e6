"""
Sampler contract and the selector-driven page sampler.

A sampler is any zero-argument coroutine function returning a Sample. It reads
the current state of one page and must not raise just because nothing has
rendered yet. It raises SamplerFault only when the page itself is gone.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence

from loguru import logger
from playwright.async_api import Error as PlaywrightError

from prospect.contexts.extraction.predicates import DEFAULT_TRANSIENT_MARKERS
from prospect.utils.text_processing import clean_scraped_text, contains_any, find_phrase


class ExtractionError(Exception):
    pass


class SamplerFault(ExtractionError):
    """The resource behind a sampler is unusable (browser crashed, context closed)."""


class ContractViolation(ExtractionError):
    """A sampler returned something that is not a Sample. Indicates a bug in the adapter."""


@dataclass(frozen=True)
class Sample:
    raw_text: Optional[str] = None
    busy: bool = False
    terminal_error: Optional[str] = None


Sampler = Callable[[], Awaitable[Sample]]


def coerce_sample(reading: Any) -> Sample:
    """
    Validate a sampler's return value and normalize it to a Sample.

    Accepts a Sample, a (raw_text, busy, terminal_error) tuple, or a dict with
    those keys.

    Raises:
        ContractViolation: If the reading has any other shape or wrong field types
    """
    if isinstance(reading, Sample):
        sample = reading
    elif isinstance(reading, tuple) and len(reading) == 3:
        sample = Sample(*reading)
    elif isinstance(reading, dict) and set(reading) == {"raw_text", "busy", "terminal_error"}:
        sample = Sample(**reading)
    else:
        raise ContractViolation(f"Sampler returned {type(reading).__name__}, expected Sample")

    if sample.raw_text is not None and not isinstance(sample.raw_text, str):
        raise ContractViolation(f"raw_text must be str or None, got {type(sample.raw_text).__name__}")
    if not isinstance(sample.busy, bool):
        raise ContractViolation(f"busy must be bool, got {type(sample.busy).__name__}")
    if sample.terminal_error is not None and not isinstance(sample.terminal_error, str):
        raise ContractViolation(
            f"terminal_error must be str or None, got {type(sample.terminal_error).__name__}"
        )
    return sample


class SelectorSampler:
    """
    Sample a rendered page through ordered selector lists.

    Works with a Playwright Page, or anything exposing the same async
    query_selector_all / inner_text API plus a sync is_closed().

    Args:
        page: The page to read. Must not be shared with another running extraction.
        selectors: Value selectors in priority order; the first element whose text
            passes text_filter wins
        busy_selectors: Selectors whose visible elements mean the page is still working
        terminal_phrases: Phrases that mean there is no answer, matched as whole words
        terminal_selectors: Empty-state elements to look for terminal phrases in.
            When empty, the whole page body is searched.
        transient_markers: Words that mark the primary element text as still loading
        text_filter: Optional check a candidate text must pass to be returned
        attribute: Read this attribute (e.g., "href") instead of element text
    """

    def __init__(
        self,
        page,
        selectors: Sequence[str],
        busy_selectors: Sequence[str] = (),
        terminal_phrases: Sequence[str] = (),
        terminal_selectors: Sequence[str] = (),
        transient_markers: Iterable[str] = DEFAULT_TRANSIENT_MARKERS,
        text_filter: Optional[Callable[[str], bool]] = None,
        attribute: Optional[str] = None,
    ):
        if not selectors:
            raise ValueError("At least one value selector is required")

        self.page = page
        self.attribute = attribute
        self.selectors = list(selectors)
        self.busy_selectors = list(busy_selectors)
        self.terminal_phrases = list(terminal_phrases)
        self.terminal_selectors = list(terminal_selectors)
        self.transient_markers = tuple(transient_markers)
        self.text_filter = text_filter

    async def __call__(self) -> Sample:
        try:
            raw_text = await self._read_value()
            busy = await self._is_busy()
            terminal_error = await self._read_terminal_error()
        except PlaywrightError as e:
            self._raise_if_closed(e)
            raise

        return Sample(raw_text=raw_text, busy=busy, terminal_error=terminal_error)

    async def read_all(self) -> List[str]:
        """
        Every distinct value on the page that passes text_filter, in page order.

        Used to harvest lists (e.g., all names on a people page) rather than
        a single answer.
        """
        values = []
        try:
            for selector in self.selectors:
                for value in await self._element_values(selector, self.attribute):
                    if value in values:
                        continue
                    if self.text_filter is None or self.text_filter(value):
                        values.append(value)
        except PlaywrightError as e:
            self._raise_if_closed(e)
            raise
        return values

    def _raise_if_closed(self, error: Exception):
        if self.page.is_closed():
            raise SamplerFault(f"Page closed while sampling: {error}") from error

    async def _element_values(self, selector: str, attribute: Optional[str] = None) -> list:
        values = []
        for element in await self.page.query_selector_all(selector):
            if attribute:
                value = (await element.get_attribute(attribute) or "").strip()
            else:
                value = clean_scraped_text(await element.inner_text())
            if value:
                values.append(value)
        return values

    async def _read_value(self) -> Optional[str]:
        for selector in self.selectors:
            for value in await self._element_values(selector, self.attribute):
                if self.text_filter is None or self.text_filter(value):
                    return value
        return None

    async def _is_busy(self) -> bool:
        for selector in self.busy_selectors:
            for element in await self.page.query_selector_all(selector):
                if await element.is_visible():
                    return True

        # The result slot itself often reads "Searching..." until it resolves
        for text in await self._element_values(self.selectors[0]):
            if contains_any(text, self.transient_markers):
                return True
        return False

    async def _terminal_texts(self) -> List[str]:
        if not self.terminal_selectors:
            return [await self.page.inner_text("body")]

        texts = []
        for selector in self.terminal_selectors:
            texts.extend(await self._element_values(selector))
        return texts

    async def _read_terminal_error(self) -> Optional[str]:
        if not self.terminal_phrases:
            return None

        for text in await self._terminal_texts():
            phrase = find_phrase(text, self.terminal_phrases)
            if phrase:
                logger.debug(f"Terminal phrase on page: '{phrase}'")
                return phrase
        return None

import pytest
from playwright.async_api import Error as PlaywrightError

from prospect.contexts.extraction.browser import BrowserSession
from prospect.contexts.extraction.sampling import SamplerFault


class FakeBrowserPage:
    def __init__(self, goto_error=None):
        self.goto_error = goto_error
        self.navigation_timeout = None
        self.visited = []

    def set_default_navigation_timeout(self, timeout):
        self.navigation_timeout = timeout

    async def goto(self, url, wait_until=None):
        self.visited.append((url, wait_until))
        if self.goto_error is not None:
            raise self.goto_error


class FakeContext:
    def __init__(self, page):
        self.page = page
        self.closed = False

    async def new_page(self):
        return self.page

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, goto_error=None, context_error=None):
        self.goto_error = goto_error
        self.context_error = context_error
        self.contexts = []
        self.context_options = []
        self.closed = False

    async def new_context(self, **options):
        if self.context_error is not None:
            raise self.context_error
        self.context_options.append(options)
        self.contexts.append(FakeContext(FakeBrowserPage(self.goto_error)))
        return self.contexts[-1]

    async def close(self):
        self.closed = True


class FakeChromium:
    def __init__(self, browser):
        self.browser = browser
        self.launches = []

    async def launch(self, **options):
        self.launches.append(options)
        return self.browser


class FakePlaywright:
    def __init__(self, browser):
        self.chromium = FakeChromium(browser)
        self.stopped = False

    async def stop(self):
        self.stopped = True


class FakeBackend:
    """Callable standing in for async_playwright."""

    def __init__(self, **browser_options):
        self.playwright = FakePlaywright(FakeBrowser(**browser_options))

    def __call__(self):
        return self

    async def start(self):
        return self.playwright

    @property
    def browser(self):
        return self.playwright.chromium.browser


@pytest.mark.asyncio
async def test_open_page_navigates_in_fresh_context():
    backend = FakeBackend()

    async with BrowserSession(navigation_timeout_ms=5000, backend=backend) as session:
        page, release = await session.open_page("https://example.test/")
        second, release_second = await session.open_page()

        assert page.visited == [("https://example.test/", "domcontentloaded")]
        assert page.navigation_timeout == 5000
        assert second.visited == []
        assert len(backend.browser.contexts) == 2

        await release()
        assert backend.browser.contexts[0].closed
        assert not backend.browser.contexts[1].closed
        await release_second()

    assert backend.playwright.chromium.launches[0]["headless"] is True
    assert backend.browser.context_options[0]["viewport"] == {"width": 1200, "height": 800}


@pytest.mark.asyncio
async def test_exit_closes_browser_and_stops_playwright():
    backend = FakeBackend()

    async with BrowserSession(headless=False, backend=backend):
        pass

    assert backend.playwright.chromium.launches[0]["headless"] is False
    assert backend.browser.closed
    assert backend.playwright.stopped


@pytest.mark.asyncio
async def test_failed_navigation_raises_sampler_fault_and_closes_context():
    backend = FakeBackend(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))

    async with BrowserSession(backend=backend) as session:
        with pytest.raises(SamplerFault, match="ERR_NAME_NOT_RESOLVED"):
            await session.open_page("https://nowhere.test/")

    assert backend.browser.contexts[0].closed


@pytest.mark.asyncio
async def test_context_creation_failure_raises_sampler_fault():
    backend = FakeBackend(context_error=PlaywrightError("Browser has been closed"))

    async with BrowserSession(backend=backend) as session:
        with pytest.raises(SamplerFault, match="browser context"):
            await session.open_page("https://example.test/")


@pytest.mark.asyncio
async def test_open_page_before_start_raises_sampler_fault():
    session = BrowserSession(backend=FakeBackend())

    with pytest.raises(SamplerFault, match="not started"):
        await session.open_page("https://example.test/")

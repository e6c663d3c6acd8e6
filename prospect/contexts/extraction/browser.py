"""
Playwright browser session handing out one isolated context per extraction.

Every page opened here lives in its own BrowserContext, so concurrent
extractions in a batch never read each other's DOM state.
"""

from typing import Awaitable, Callable, Optional, Tuple

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from prospect.contexts.extraction.sampling import SamplerFault

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class BrowserSession:
    """
    Async context manager around a headless Chromium instance.

    Example:
        >>> async with BrowserSession() as session:
        ...     page, release = await session.open_page("https://example.com")
        ...     try:
        ...         ...
        ...     finally:
        ...         await release()
    """

    def __init__(
        self,
        headless: bool = True,
        navigation_timeout_ms: int = 60_000,
        user_agent: str = DEFAULT_USER_AGENT,
        backend=async_playwright,
    ):
        self.headless = headless
        self.navigation_timeout_ms = navigation_timeout_ms
        self.user_agent = user_agent
        self._backend = backend
        self._playwright = None
        self._browser = None

    async def __aenter__(self) -> "BrowserSession":
        self._playwright = await self._backend().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            args=["--no-sandbox", "--disable-setuid-sandbox"],
        )
        logger.debug(f"Launched Chromium (headless={self.headless})")
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def open_page(self, url: Optional[str] = None) -> Tuple[object, Callable[[], Awaitable[None]]]:
        """
        Open a page in a fresh browser context, optionally navigating to url.

        Returns:
            (page, release) where release() closes the page's whole context

        Raises:
            SamplerFault: If the browser is not running or the page cannot be opened
        """
        if self._browser is None:
            raise SamplerFault("BrowserSession is not started; use 'async with BrowserSession()'")

        try:
            context = await self._browser.new_context(
                user_agent=self.user_agent,
                viewport={"width": 1200, "height": 800},
            )
        except PlaywrightError as e:
            raise SamplerFault(f"Could not open browser context: {e}") from e

        async def release():
            await context.close()

        try:
            page = await context.new_page()
            page.set_default_navigation_timeout(self.navigation_timeout_ms)
            if url:
                await page.goto(url, wait_until="domcontentloaded")
        except PlaywrightError as e:
            await release()
            raise SamplerFault(f"Could not load {url}: {e}") from e

        return page, release

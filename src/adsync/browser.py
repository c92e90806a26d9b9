"""Playwright browsing collaborator for the Ad Library.

Opens the Ad Library in headless Chromium, forwards every relevant
network response to a handler, and scrolls the result list so the page
keeps issuing GraphQL queries. It knows nothing about ads: the handler
(a sync orchestrator's ``handle_response``) decides what a response holds.
"""

import asyncio
import random
from typing import Any, Awaitable, Callable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from .config import Settings, get_settings
from .exceptions import AdSyncError, NavigationError
from .logging import get_logger

logger = get_logger(__name__)

# (body or None, url, status) -> anything
ResponseHandler = Callable[[str | None, str, int], Any]

SCROLL_BY_VIEWPORT_JS = "() => window.scrollBy(0, window.innerHeight * 0.8)"
SCROLL_TO_BOTTOM_JS = "() => window.scrollTo(0, document.body.scrollHeight)"
AT_BOTTOM_JS = "() => window.innerHeight + window.pageYOffset >= document.body.offsetHeight - 1000"
MAIN_SELECTOR = '[role="main"]'


def is_relevant_response(url: str, content_type: str = "") -> bool:
    """Whether a response may carry Ad Library data."""
    if "graphql" in url and ("ad_library" in url or "AdLibrary" in url):
        return True
    if "/api/graphql/" in url or "ads/library" in url or "ad_archive" in url:
        return True
    return "facebook.com" in url and "application/json" in content_type


class AdLibraryBrowser:
    """Headless Chromium session on the Ad Library.

    Usage:
        async with AdLibraryBrowser() as browser:
            browser.on_response(sync.handle_response)
            await browser.navigate(url)
            await browser.scroll_until_exhausted(sync.should_continue, sync.session.size)

    Errors raised by the response handler cannot propagate through
    Playwright's event loop, so the first one is kept and re-raised from
    the next navigation or scroll step.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        headless: bool | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.headless = self.settings.browser_headless if headless is None else headless
        self._sleep = sleep
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None
        self._handler: ResponseHandler | None = None
        self._lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()
        self.handler_error: AdSyncError | None = None
        self.responses_forwarded = 0

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        """Launch the browser and open a page."""
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.headless)
        self._context = await self._browser.new_context(
            user_agent=self.settings.browser_user_agent,
            viewport={
                "width": self.settings.viewport_width,
                "height": self.settings.viewport_height,
            },
        )
        self._page = await self._context.new_page()
        self._page.on("response", self._on_response)

    async def close(self) -> None:
        """Clean up browser resources."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._page:
            await self._page.close()
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()
        self._page = self._context = self._browser = self._playwright = None

    def on_response(self, handler: ResponseHandler) -> None:
        """Set the callable that receives relevant response bodies."""
        self._handler = handler

    def _on_response(self, response) -> None:
        task = asyncio.ensure_future(self.forward_response(response))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def forward_response(self, response) -> None:
        """Read a response body and hand it to the handler.

        Bodies are read concurrently, but the handler runs for one
        response at a time.
        """
        if self._handler is None or self.handler_error is not None:
            return

        url = response.url
        content_type = response.headers.get("content-type", "")
        if not is_relevant_response(url, content_type):
            return

        status = response.status
        body: str | None = None
        if status == 200:
            try:
                body = await response.text()
            except PlaywrightError as e:
                logger.debug(f"Could not read response body from {url[:100]}: {e}")

        async with self._lock:
            if self.handler_error is not None:
                return
            logger.debug(f"Intercepted response from: {url[:100]}")
            self.responses_forwarded += 1
            try:
                self._handler(body, url, status)
            except AdSyncError as e:
                self.handler_error = e
            except Exception:
                logger.exception(f"Response handler failed for {url[:100]}")

    def raise_if_failed(self) -> None:
        """Re-raise the first fatal error from the response handler."""
        if self.handler_error is not None:
            raise self.handler_error

    async def drain(self) -> None:
        """Wait for responses already intercepted to be handled."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        self.raise_if_failed()

    async def navigate(self, url: str, wait_until: str = "domcontentloaded") -> None:
        """Load ``url`` and wait for the result list to render.

        Raises:
            NavigationError: If the page does not load in time
        """
        if not self._page:
            raise RuntimeError("Browser not started. Use async context manager.")

        logger.info(f"Navigating to: {url}")
        try:
            await self._page.goto(
                url,
                wait_until=wait_until,
                timeout=self.settings.navigation_timeout_ms,
            )
        except PlaywrightTimeoutError as e:
            raise NavigationError(f"Timed out loading {url}", url=url) from e
        except PlaywrightError as e:
            raise NavigationError(f"Failed to load {url}: {e}", url=url) from e

        await self._sleep(self.settings.initial_wait_seconds)

        try:
            await self._page.wait_for_selector(
                MAIN_SELECTOR, timeout=self.settings.main_selector_timeout_ms
            )
            logger.debug("Main content area found")
        except PlaywrightTimeoutError:
            logger.info("Main content selector not found, continuing...")

        self.raise_if_failed()

    async def scroll_until_exhausted(
        self,
        should_continue: Callable[[], bool],
        progress: Callable[[], int],
    ) -> int:
        """Scroll until the caller is satisfied or the page stops growing.

        Stops when ``should_continue()`` turns false, after
        ``max_scroll_attempts`` scrolls, after ``max_idle_scrolls``
        consecutive scrolls without ``progress()`` growing, or at the page
        bottom once ``bottom_idle_scrolls`` idle scrolls have passed.

        Returns:
            Number of scrolls performed
        """
        settings = self.settings
        previous = progress()
        idle = 0
        attempts = 0

        while should_continue() and attempts < settings.max_scroll_attempts:
            await self._page.evaluate(SCROLL_BY_VIEWPORT_JS)
            await self._sleep(
                random.uniform(settings.scroll_wait_min_seconds, settings.scroll_wait_max_seconds)
            )
            await self.drain()
            attempts += 1

            count = progress()
            logger.info(f"Scroll attempt {attempts}, ads found: {count}")

            if count == previous:
                idle += 1
                if idle >= settings.max_idle_scrolls:
                    logger.info(f"No new ads found after {idle} scroll attempts")
                    break
            else:
                idle = 0
                previous = count

            if idle >= settings.bottom_idle_scrolls and await self._page.evaluate(AT_BOTTOM_JS):
                logger.info("Reached bottom of page")
                break

        return attempts

    async def scroll_fixed(self, times: int | None = None, wait_seconds: float | None = None) -> None:
        """Jump to the page bottom a fixed number of times."""
        times = self.settings.incremental_scrolls if times is None else times
        wait = self.settings.incremental_scroll_wait_seconds if wait_seconds is None else wait_seconds
        for _ in range(times):
            await self._page.evaluate(SCROLL_TO_BOTTOM_JS)
            await self._sleep(wait)
            await self.drain()

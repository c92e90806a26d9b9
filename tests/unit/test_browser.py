"""Unit tests for the Playwright browsing collaborator.

Playwright itself is mocked; these tests cover response filtering,
forwarding and the scroll stop conditions.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from adsync.browser import AT_BOTTOM_JS, AdLibraryBrowser, is_relevant_response
from adsync.config import Settings
from adsync.exceptions import NavigationError, PersistenceError


def make_response(url="https://www.facebook.com/api/graphql/", status=200, body="{}", content_type="text/html"):
    response = MagicMock()
    response.url = url
    response.status = status
    response.headers = {"content-type": content_type}
    response.text = AsyncMock(return_value=body)
    return response


def make_page(at_bottom=False):
    page = MagicMock()
    page.goto = AsyncMock()
    page.wait_for_selector = AsyncMock()
    page.close = AsyncMock()

    async def evaluate(script):
        return at_bottom if script == AT_BOTTOM_JS else None

    page.evaluate = AsyncMock(side_effect=evaluate)
    return page


@pytest.fixture
def settings():
    return Settings(
        max_scroll_attempts=20,
        max_idle_scrolls=5,
        bottom_idle_scrolls=2,
        scroll_wait_min_seconds=0,
        scroll_wait_max_seconds=0,
        initial_wait_seconds=0,
    )


@pytest.fixture
def browser(settings):
    b = AdLibraryBrowser(settings=settings, sleep=AsyncMock())
    b._page = make_page()
    return b


class TestIsRelevantResponse:
    """Tests for the response URL filter."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://www.facebook.com/api/graphql/",
            "https://www.facebook.com/graphql?q=AdLibrarySearchPaginationQuery",
            "https://www.facebook.com/ads/library/async/search_ads/",
            "https://www.facebook.com/ad_archive/render/",
        ],
    )
    def test_ad_library_urls(self, url):
        """Test that Ad Library endpoints are relevant."""
        assert is_relevant_response(url)

    def test_facebook_json(self):
        """Test that any Facebook JSON response is relevant."""
        assert is_relevant_response("https://www.facebook.com/ajax/x", "application/json; charset=utf-8")

    @pytest.mark.parametrize(
        "url,content_type",
        [
            ("https://static.xx.fbcdn.net/rsrc.php/app.js", "application/javascript"),
            ("https://www.facebook.com/ajax/bz", "text/html"),
            ("https://example.com/data.json", "application/json"),
        ],
    )
    def test_irrelevant(self, url, content_type):
        """Test that static assets and foreign hosts are dropped."""
        assert not is_relevant_response(url, content_type)


class TestForwardResponse:
    """Tests for response forwarding."""

    @pytest.mark.asyncio
    async def test_forwards_body(self, browser):
        """Test that a relevant body reaches the handler."""
        handler = MagicMock()
        browser.on_response(handler)

        await browser.forward_response(make_response(body='{"data": {}}'))

        handler.assert_called_once_with('{"data": {}}', "https://www.facebook.com/api/graphql/", 200)
        assert browser.responses_forwarded == 1

    @pytest.mark.asyncio
    async def test_irrelevant_not_forwarded(self, browser):
        """Test that filtered responses never reach the handler."""
        handler = MagicMock()
        browser.on_response(handler)

        await browser.forward_response(make_response(url="https://static.xx.fbcdn.net/x.css"))

        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_unreadable_body_forwarded_as_none(self, browser):
        """Test that a body read failure forwards None."""
        handler = MagicMock()
        browser.on_response(handler)
        response = make_response()
        response.text = AsyncMock(side_effect=PlaywrightError("Response body is unavailable"))

        await browser.forward_response(response)

        handler.assert_called_once_with(None, response.url, 200)

    @pytest.mark.asyncio
    async def test_non_200_body_not_read(self, browser):
        """Test that error responses are forwarded without reading the body."""
        handler = MagicMock()
        browser.on_response(handler)
        response = make_response(status=302)

        await browser.forward_response(response)

        response.text.assert_not_called()
        handler.assert_called_once_with(None, response.url, 302)

    @pytest.mark.asyncio
    async def test_handler_error_kept_and_reraised(self, browser):
        """Test that a fatal handler error stops forwarding and is re-raised."""
        handler = MagicMock(side_effect=PersistenceError("disk full"))
        browser.on_response(handler)

        await browser.forward_response(make_response())
        await browser.forward_response(make_response())

        assert handler.call_count == 1
        with pytest.raises(PersistenceError):
            browser.raise_if_failed()
        with pytest.raises(PersistenceError):
            await browser.drain()

    @pytest.mark.asyncio
    async def test_unexpected_handler_error_logged(self, browser, caplog):
        """Test that a non-fatal handler error is logged and forwarding continues."""
        handler = MagicMock(side_effect=[ValueError("boom"), None])
        browser.on_response(handler)

        with caplog.at_level("ERROR", logger="adsync.browser"):
            await browser.forward_response(make_response())
        await browser.forward_response(make_response())

        assert handler.call_count == 2
        assert browser.handler_error is None
        assert "Response handler failed" in caplog.text
        browser.raise_if_failed()


class TestNavigate:
    """Tests for page loading."""

    @pytest.mark.asyncio
    async def test_navigate(self, browser, settings):
        """Test that navigation loads the URL and waits for the main area."""
        await browser.navigate("https://www.facebook.com/ads/library/")

        browser._page.goto.assert_awaited_once_with(
            "https://www.facebook.com/ads/library/",
            wait_until="domcontentloaded",
            timeout=settings.navigation_timeout_ms,
        )
        browser._page.wait_for_selector.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_navigation_timeout(self, browser):
        """Test that a load timeout becomes NavigationError."""
        browser._page.goto.side_effect = PlaywrightTimeoutError("Timeout 60000ms exceeded")

        with pytest.raises(NavigationError) as exc_info:
            await browser.navigate("https://www.facebook.com/ads/library/")
        assert exc_info.value.url == "https://www.facebook.com/ads/library/"

    @pytest.mark.asyncio
    async def test_missing_main_selector_tolerated(self, browser):
        """Test that a missing result area does not abort the run."""
        browser._page.wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout")
        await browser.navigate("https://www.facebook.com/ads/library/")

    @pytest.mark.asyncio
    async def test_not_started(self, settings):
        """Test that navigating before start is an error."""
        with pytest.raises(RuntimeError):
            await AdLibraryBrowser(settings=settings).navigate("https://x")


class TestScrolling:
    """Tests for scroll stop conditions."""

    @pytest.mark.asyncio
    async def test_stops_when_idle(self, browser):
        """Test that scrolling stops after max_idle_scrolls without progress."""
        attempts = await browser.scroll_until_exhausted(lambda: True, lambda: 10)
        assert attempts == 5

    @pytest.mark.asyncio
    async def test_stops_at_bottom(self, browser):
        """Test that the page bottom ends scrolling once idle."""
        browser._page = make_page(at_bottom=True)
        attempts = await browser.scroll_until_exhausted(lambda: True, lambda: 10)
        assert attempts == 2

    @pytest.mark.asyncio
    async def test_stops_at_max_attempts(self, browser):
        """Test the hard scroll limit while ads keep arriving."""
        counter = iter(range(1000))
        attempts = await browser.scroll_until_exhausted(lambda: True, lambda: next(counter))
        assert attempts == 20

    @pytest.mark.asyncio
    async def test_stops_when_caller_satisfied(self, browser):
        """Test that should_continue ends scrolling immediately."""
        answers = iter([True, True, False])
        counter = iter(range(1000))
        attempts = await browser.scroll_until_exhausted(lambda: next(answers), lambda: next(counter))
        assert attempts == 2

    @pytest.mark.asyncio
    async def test_progress_resets_idle(self, browser):
        """Test that new ads reset the idle counter."""
        # Two idle scrolls, growth, then idle until the limit
        counts = iter([0, 0, 0, 5, 5, 5, 5, 5, 5])
        attempts = await browser.scroll_until_exhausted(lambda: True, lambda: next(counts))
        assert attempts == 8

    @pytest.mark.asyncio
    async def test_scroll_fixed(self, browser):
        """Test that fixed scrolling jumps to the bottom N times."""
        await browser.scroll_fixed(times=3, wait_seconds=0)
        assert browser._page.evaluate.await_count == 3


class TestLifecycle:
    """Tests for browser start and close."""

    @pytest.mark.asyncio
    async def test_context_manager(self, settings):
        """Test that the browser is launched and torn down."""
        page = make_page()
        context = MagicMock(new_page=AsyncMock(return_value=page), close=AsyncMock())
        chromium_browser = MagicMock(new_context=AsyncMock(return_value=context), close=AsyncMock())
        playwright = MagicMock(stop=AsyncMock())
        playwright.chromium.launch = AsyncMock(return_value=chromium_browser)
        starter = MagicMock(start=AsyncMock(return_value=playwright))

        with patch("adsync.browser.async_playwright", return_value=starter):
            async with AdLibraryBrowser(settings=settings, headless=False) as browser:
                page.on.assert_called_once_with("response", browser._on_response)

        playwright.chromium.launch.assert_awaited_once_with(headless=False)
        chromium_browser.new_context.assert_awaited_once_with(
            user_agent=settings.browser_user_agent,
            viewport={"width": settings.viewport_width, "height": settings.viewport_height},
        )
        page.close.assert_awaited_once()
        context.close.assert_awaited_once()
        chromium_browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

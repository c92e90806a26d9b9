"""Browser-driven sync runs.

Wires an orchestrator to an ``AdLibraryBrowser``: the browser pushes every
relevant response into the orchestrator while it scrolls, and the run is
finalized once browsing stops.

Usage:
    result = await run_initial_sync(url, max_ads=500)
    result = await run_incremental_sync("282592881929497")
"""

from urllib.parse import parse_qs, urlencode, urlparse

from ..browser import AdLibraryBrowser
from ..config import Settings, get_settings
from ..models import SyncResult
from ..storage import AdStore, get_store
from .orchestrator import FullCaptureSync, IncrementalSync

AD_LIBRARY_URL = "https://www.facebook.com/ads/library/"


def build_ad_library_url(
    page_id: str,
    country: str = "ALL",
    active_status: str = "all",
    ad_type: str = "all",
    base_url: str = AD_LIBRARY_URL,
) -> str:
    """Build the Ad Library URL listing every ad of one page."""
    query = urlencode({
        "active_status": active_status,
        "ad_type": ad_type,
        "country": country,
        "view_all_page_id": page_id,
    })
    return f"{base_url}?{query}"


def page_id_from_url(url: str) -> str | None:
    """Return the ``view_all_page_id`` of an Ad Library URL, if any."""
    values = parse_qs(urlparse(url).query).get("view_all_page_id")
    return values[0] if values else None


async def run_initial_sync(
    url: str,
    max_ads: int | None = None,
    store: AdStore | None = None,
    settings: Settings | None = None,
    browser: AdLibraryBrowser | None = None,
    headless: bool | None = None,
) -> SyncResult:
    """Capture every ad reachable from an Ad Library URL.

    Scrolls until no new ads appear, the page bottom is reached, or
    ``max_ads`` distinct ads have been captured.

    Raises:
        NavigationError: If the page could not be loaded
        PersistenceError: If the store failed
    """
    settings = settings or get_settings()
    store = store if store is not None else get_store(settings.data_dir)
    sync = FullCaptureSync(store, max_ads=max_ads, page_id=page_id_from_url(url))
    browser = browser or AdLibraryBrowser(settings=settings, headless=headless)

    try:
        async with browser:
            browser.on_response(sync.handle_response)
            await browser.navigate(url)
            await browser.drain()
            await browser.scroll_until_exhausted(sync.should_continue, sync.session.size)
            await browser.drain()
    except Exception as e:
        sync.fail(e)
        raise

    return sync.finish()


async def run_incremental_sync(
    page_id: str,
    store: AdStore | None = None,
    settings: Settings | None = None,
    browser: AdLibraryBrowser | None = None,
    headless: bool | None = None,
    scrolls: int | None = None,
) -> SyncResult:
    """Refresh the stored ads of one page.

    Loads the page's Ad Library listing, scrolls a fixed number of times
    and persists only ads that are new or changed.

    Raises:
        NavigationError: If the page could not be loaded
        PersistenceError: If the store failed
    """
    settings = settings or get_settings()
    store = store if store is not None else get_store(settings.data_dir)
    sync = IncrementalSync(store, page_id=page_id)
    browser = browser or AdLibraryBrowser(settings=settings, headless=headless)
    url = build_ad_library_url(
        page_id,
        country=settings.default_country,
        base_url=settings.ad_library_base_url,
    )

    try:
        async with browser:
            browser.on_response(sync.handle_response)
            await browser.navigate(url, wait_until="networkidle")
            await browser.drain()
            await browser.scroll_fixed(scrolls)
            await browser.drain()
    except Exception as e:
        sync.fail(e)
        raise

    return sync.finish()

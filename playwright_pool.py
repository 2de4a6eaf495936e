import asyncio
import logging
import sys
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
)

from lib.playlist.errors import NavigationFault

logger = logging.getLogger(__name__)

_lock = asyncio.Lock()
_pw: Optional[Playwright] = None
_browser: Optional[Browser] = None

SCRAPE_NAV_TIMEOUT_MS = int(os.getenv("SCRAPE_NAV_TIMEOUT_MS", "30000"))

# View text is only parsed in English ("1.2K views")
_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
_LOCALE = "en-US"
_BLOCKED_RESOURCES = ("media", "font")


def _launch_args() -> list[str]:
    args: list[str] = []
    # Render/Linux: disable sandbox and /dev/shm usage
    if sys.platform.startswith("linux"):
        args += ["--no-sandbox", "--disable-dev-shm-usage"]
    return args


async def get_browser() -> Browser:
    global _pw, _browser
    if _browser is not None:
        return _browser

    async with _lock:
        if _browser is not None:
            return _browser
        if _pw is None:
            _pw = await async_playwright().start()
        headless = os.getenv("SCRAPE_PLAYWRIGHT_HEADLESS", "1") != "0"
        _browser = await _pw.chromium.launch(headless=headless, args=_launch_args())
        logger.info("[PW_POOL] launch browser")
        return _browser


def _reset_browser_globals() -> None:
    global _pw, _browser
    if _browser is not None:
        # fire-and-forget: the next new_context() relaunches
        asyncio.create_task(_browser.close())
        _browser = None
        logger.info("[PW_POOL] close browser (reset)")
    if _pw is not None:
        asyncio.create_task(_pw.stop())
        _pw = None


async def _create_context() -> BrowserContext:
    browser = await get_browser()
    ctx = await browser.new_context(
        user_agent=_USER_AGENT,
        locale=_LOCALE,
        extra_http_headers={"Accept-Language": "en-US,en;q=0.9"},
        viewport={"width": 1920, "height": 1080},
    )
    logger.info("[PW_POOL] ephemeral context created")
    return ctx


async def new_context() -> BrowserContext:
    """Fresh browser context per job; one reset-and-retry if the browser is dead."""
    try:
        return await _create_context()
    except Exception as e:
        logger.warning(f"[PW_POOL] new_context() failed: {e}; resetting browser")
        _reset_browser_globals()
    try:
        return await _create_context()
    except Exception as e:
        logger.error(f"[PW_POOL] new_context() failed again: {e}")
        raise RuntimeError("[PW_POOL] new_context failed twice; aborting") from e


async def close_browser() -> None:
    global _pw, _browser
    async with _lock:
        if _browser is not None:
            try:
                await _browser.close()
            finally:
                _browser = None
                logger.info("[PW_POOL] close browser")
        if _pw is not None:
            try:
                await _pw.stop()
            finally:
                _pw = None


class PlaywrightPage:
    """RenderablePage backed by a Playwright page."""

    def __init__(self, page: Page, nav_timeout_ms: int = SCRAPE_NAV_TIMEOUT_MS):
        self._page = page
        self._nav_timeout_ms = nav_timeout_ms

    async def navigate(self, url: str) -> None:
        resp = await self._page.goto(url, wait_until="domcontentloaded", timeout=self._nav_timeout_ms)
        status = resp.status if resp else None
        if status and status >= 400:
            raise NavigationFault(
                f"Page returned HTTP {status}",
                meta={"http_status": status, "final_url": resp.url},
            )

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> None:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise TimeoutError(str(e)) from e

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self._page.evaluate(script, arg)

    async def query_all_map(self, selector: str, script: str, arg: Any = None) -> Any:
        return await self._page.eval_on_selector_all(selector, script, arg)

    async def content(self) -> str:
        return await self._page.content()


async def _block_heavy_resources(route) -> None:
    if route.request.resource_type in _BLOCKED_RESOURCES:
        await route.abort()
    else:
        await route.continue_()


@asynccontextmanager
async def open_page() -> AsyncIterator[PlaywrightPage]:
    """Exclusive page for one job; its context is closed on exit."""
    context = await new_context()
    try:
        page = await context.new_page()
        page.set_default_navigation_timeout(SCRAPE_NAV_TIMEOUT_MS)
        await page.route("**/*", _block_heavy_resources)
        yield PlaywrightPage(page)
    finally:
        try:
            await context.close()
        except Exception as e:
            logger.debug(f"[PW_POOL] context close failed: {e}")

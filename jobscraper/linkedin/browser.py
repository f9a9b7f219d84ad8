"""Browser launch and cookie-authenticated sessions.

A session is one browser context (own cookie jar) with a single page. Each
pool worker owns exactly one session at a time.
"""
from __future__ import annotations
import logging
from typing import Callable, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
)

from .constants import (
    DEFAULT_LOCALE,
    DEFAULT_VIEWPORT,
    HOME_URL,
    SELECTORS,
    SESSION_COOKIE_DOMAIN,
    SESSION_COOKIE_NAME,
)
from .errors import AuthenticationError
from .extractor import JobExtractor
from .models import BrowserOptions
from .page import PlaywrightSearchPage
from .settings import SETTINGS, Settings

logger = logging.getLogger('browser')


class BrowserSession:
    def __init__(self, context: BrowserContext, page: Page, settings: Settings = SETTINGS,
                 on_close: Optional[Callable[['BrowserSession'], None]] = None):
        self.context = context
        self.page = page
        self.search_page = PlaywrightSearchPage(page, settings)
        self.extractor = JobExtractor(page, settings)
        self._on_close = on_close
        self.closed = False

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self.context.close()
        except PlaywrightError as e:
            # context already gone together with the browser
            logger.debug(f"context close failed: {e}")
        finally:
            if self._on_close is not None:
                self._on_close(self)


async def launch_browser(playwright: Playwright, options: BrowserOptions) -> Browser:
    kwargs = options.launch_kwargs()
    logger.info(f"Launching chromium headless={kwargs['headless']} slow_mo={kwargs['slow_mo']}")
    return await playwright.chromium.launch(**kwargs)


async def authenticate(context: BrowserContext, page: Page, cookie: str, timeout_ms: float) -> None:
    """Install the ``li_at`` cookie and check LinkedIn shows a logged-in nav bar."""
    await context.add_cookies([{
        'name': SESSION_COOKIE_NAME,
        'value': cookie,
        'domain': SESSION_COOKIE_DOMAIN,
        'path': '/',
        'httpOnly': True,
        'secure': True,
    }])
    await page.goto(HOME_URL, wait_until='domcontentloaded')
    try:
        await page.locator(SELECTORS['active_menu']).first.wait_for(state='visible', timeout=timeout_ms)
    except PlaywrightTimeoutError:
        raise AuthenticationError('LinkedIn rejected the li_at session cookie (expired or invalid)') from None


class SessionFactory:
    """Opens authenticated sessions on a shared browser and counts open ones."""

    def __init__(self, browser: Browser, cookie: str, options: Optional[BrowserOptions] = None,
                 settings: Settings = SETTINGS):
        self.browser = browser
        self.cookie = cookie
        self.options = options or BrowserOptions()
        self.settings = settings
        self.active = 0
        self.peak = 0

    def _released(self, _session: BrowserSession) -> None:
        self.active -= 1

    async def open(self) -> BrowserSession:
        context = await self.browser.new_context(viewport=DEFAULT_VIEWPORT, locale=DEFAULT_LOCALE)
        context.set_default_timeout(self.options.timeout)
        try:
            page = await context.new_page()
            await authenticate(context, page, self.cookie, self.options.timeout)
        except BaseException:
            await context.close()
            raise
        self.active += 1
        self.peak = max(self.peak, self.active)
        logger.debug(f"session opened (active={self.active})")
        return BrowserSession(context, page, self.settings, on_close=self._released)

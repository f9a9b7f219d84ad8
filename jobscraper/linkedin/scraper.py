"""Public entry point: ``LinkedInScraper``.

Usage::

    async with LinkedInScraper(os.environ['LI_AT_COOKIE']) as scraper:
        await scraper.search({'keywords': 'python', 'location': 'Berlin'}, on_scrape=db_upsert)
"""
from __future__ import annotations
import enum
import logging
from typing import Iterable, List, Mapping, Optional, Union

from playwright.async_api import Browser, Playwright, async_playwright

from .browser import BrowserSession, SessionFactory, launch_browser
from .dedup import DedupTracker
from .errors import ConfigurationError, ScraperStateError
from .filters import FilterLike, normalize_filters
from .logging_config import log_event, setup_logging
from .models import BrowserOptions, GlobalFilters, LoggerOptions, normalize_exclude_fields
from .orchestrator import ScrapeOrchestrator
from .session import OnScrape, SessionOutcome
from .settings import SETTINGS, Settings

logger = logging.getLogger('scraper')


class ScraperState(enum.Enum):
    NEW = 'new'
    READY = 'ready'
    SEARCHING = 'searching'
    CLOSED = 'closed'


class LinkedInScraper:
    def __init__(self, li_at_cookie: Optional[str], *, scraped_ids: Optional[Iterable[str]] = None,
                 browser_options: Union[BrowserOptions, Mapping, None] = None,
                 logger_options: Union[LoggerOptions, Mapping, None] = None,
                 settings: Settings = SETTINGS):
        if not li_at_cookie or not li_at_cookie.strip():
            raise ConfigurationError('A LinkedIn li_at session cookie is required')
        self._cookie = li_at_cookie.strip()
        self.settings = settings
        self.browser_options = (browser_options if isinstance(browser_options, BrowserOptions)
                                else BrowserOptions.model_validate(dict(browser_options or {})))
        if logger_options is not None:
            opts = (logger_options if isinstance(logger_options, LoggerOptions)
                    else LoggerOptions.model_validate(dict(logger_options)))
            setup_logging(level=opts.level, sinks=opts.sinks, file_path=opts.file_path,
                          max_bytes=opts.max_file_size, backup_count=settings.log_backup_count, force=True)
        self.tracker = DedupTracker(scraped_ids)
        self.state = ScraperState.NEW
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._factory: Optional[SessionFactory] = None
        self._primary: Optional[BrowserSession] = None

    @property
    def factory(self) -> Optional[SessionFactory]:
        return self._factory

    async def open(self) -> 'LinkedInScraper':
        """Launch the browser and authenticate; raises ``AuthenticationError`` on a rejected cookie."""
        if self.state is not ScraperState.NEW:
            raise ScraperStateError(f"Cannot open a scraper in state {self.state.value}")
        self._playwright = await async_playwright().start()
        try:
            self._browser = await launch_browser(self._playwright, self.browser_options)
            self._factory = SessionFactory(self._browser, self._cookie, self.browser_options, self.settings)
            self._primary = await self._factory.open()
        except BaseException:
            await self._shutdown()
            self.state = ScraperState.CLOSED
            raise
        self.state = ScraperState.READY
        logger.info(f"Authenticated; {len(self.tracker)} known job ids")
        log_event('scraper_ready', known_ids=len(self.tracker))
        return self

    async def search(self, filters: Union[FilterLike, Iterable[FilterLike]], on_scrape: OnScrape, *,
                     limit: Optional[int] = None, exclude_fields: Iterable[str] = (),
                     max_concurrent: Optional[int] = None,
                     global_filters: Union[GlobalFilters, Mapping, None] = None) -> List[SessionOutcome]:
        """Scrape every filter, calling ``on_scrape(record, filter_index)`` per job."""
        if self.state is ScraperState.SEARCHING:
            raise ScraperStateError('A search is already running on this scraper')
        if self.state is not ScraperState.READY:
            raise ScraperStateError(f"Cannot search in state {self.state.value}; call open() first")
        if not callable(on_scrape):
            raise ConfigurationError('on_scrape must be callable')
        flts = normalize_filters(filters, global_filters)
        excluded = normalize_exclude_fields(exclude_fields)
        self.state = ScraperState.SEARCHING
        try:
            if self._primary is None or self._primary.closed or self._primary.search_page.is_closed():
                logger.warning('Primary session lost, re-authenticating')
                if self._primary is not None:
                    await self._primary.close()
                self._primary = await self._factory.open()
            orchestrator = ScrapeOrchestrator(self._factory.open, self.tracker, self.settings)
            outcomes = await orchestrator.run(
                flts,
                on_scrape,
                limit=self.settings.default_limit if limit is None else limit,
                exclude_fields=excluded,
                max_concurrent=max_concurrent or self.settings.max_concurrent,
                primary=self._primary,
            )
        finally:
            if self.state is ScraperState.SEARCHING:
                self.state = ScraperState.READY
        logger.info(f"Search finished: {sum(o.emitted for o in outcomes)} jobs from {len(outcomes)} filters")
        return outcomes

    async def close(self) -> None:
        if self.state is ScraperState.CLOSED:
            return
        self.state = ScraperState.CLOSED
        await self._shutdown()
        logger.info('Scraper closed')

    async def _shutdown(self) -> None:
        if self._primary is not None:
            await self._primary.close()
            self._primary = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def __aenter__(self) -> 'LinkedInScraper':
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
